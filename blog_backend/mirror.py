"""
Markdown mirror of posts: one `<slug>.md` file per post, on disk or in memory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from blog_backend.frontmatter import render_post_file

logger = logging.getLogger(__name__)

FILE_SUFFIX = ".md"


class PostMirror(Protocol):
    """Defines the operations the storage layer needs from the mirror."""

    def write_post(self, post) -> None:
        ...

    def delete_post(self, slug: str) -> bool:
        ...

    def list_slugs(self) -> list[str]:
        ...

    def read_post(self, slug: str) -> str:
        ...


@dataclass
class InMemoryPostMirror:
    """Test double for the markdown mirror."""

    files: dict = None

    def __post_init__(self):
        if self.files is None:
            self.files = {}

    def write_post(self, post) -> None:
        self.files[post.slug] = render_post_file(post)

    def delete_post(self, slug: str) -> bool:
        return self.files.pop(slug, None) is not None

    def list_slugs(self) -> list[str]:
        return sorted(self.files)

    def read_post(self, slug: str) -> str:
        content = self.files.get(slug)
        if content is None:
            raise FileNotFoundError(slug)
        return content


@dataclass
class FilesystemPostMirror:
    """
    Mirror backed by a local directory. The directory is created on the
    first write.
    """

    posts_dir: str

    def __post_init__(self):
        self._root = Path(self.posts_dir)

    def path_for(self, slug: str) -> Path:
        return self._root / f"{slug}{FILE_SUFFIX}"

    def write_post(self, post) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        self.path_for(post.slug).write_text(render_post_file(post), encoding="utf-8")

    def delete_post(self, slug: str) -> bool:
        try:
            self.path_for(slug).unlink()
        except OSError as exc:
            logger.warning("Could not delete mirrored post %s: %s", slug, exc)
            return False
        return True

    def list_slugs(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return [
            path.stem
            for path in sorted(self._root.glob(f"*{FILE_SUFFIX}"))
            if path.is_file()
        ]

    def read_post(self, slug: str) -> str:
        return self.path_for(slug).read_text(encoding="utf-8")
