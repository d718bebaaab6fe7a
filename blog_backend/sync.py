"""
Best-effort import of mirrored markdown posts into storage.

Runs when the storage singleton is built so posts dropped into the posts
directory show up without going through the admin API.
"""

from __future__ import annotations

import logging

from blog_backend.db import BlogStorage
from blog_backend.frontmatter import parse_post_file
from blog_backend.mirror import PostMirror

logger = logging.getLogger(__name__)


def sync_posts_from_mirror(
    storage: BlogStorage, mirror: PostMirror, *, dry_run: bool = False
) -> int:
    """
    Insert a post for every mirrored file that has no matching slug yet.

    Failures are per file: they are logged and the file is skipped. Returns
    the number of posts imported (or that would be, with dry_run).
    """
    imported = 0
    for slug in mirror.list_slugs():
        try:
            if storage.get_post_by_slug(slug) is not None:
                continue
            parsed = parse_post_file(mirror.read_post(slug))
            if dry_run:
                logger.info("Would import post %s", slug)
            else:
                storage.create_post(
                    title=parsed.title,
                    slug=slug,
                    content=parsed.body,
                    excerpt=parsed.excerpt,
                    read_time=parsed.read_time,
                    category=parsed.category,
                    tags=parsed.tags,
                    status=parsed.status,
                    write_file=False,
                )
                logger.info("Imported post %s from markdown", slug)
            imported += 1
        except Exception:
            logger.exception("Failed to import markdown post %s", slug)

    if imported:
        logger.info("Markdown sync imported %d posts", imported)
    return imported
