"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from blog_backend.config import get_settings
from blog_backend.db import BlogStorage, InMemoryBlogStorage, SqlBlogStorage
from blog_backend.mirror import FilesystemPostMirror, PostMirror
from blog_backend.sync import sync_posts_from_mirror

logger = logging.getLogger(__name__)

_storage: BlogStorage | None = None
_mirror: PostMirror | None = None


def get_mirror() -> PostMirror:
    global _mirror
    if _mirror:
        return _mirror

    settings = get_settings()
    _mirror = FilesystemPostMirror(settings.posts_dir)
    return _mirror


def get_storage() -> BlogStorage:
    """
    Return a singleton storage so state persists across requests.

    The first call also imports any markdown posts that have no row yet.
    """
    global _storage
    if _storage:
        return _storage

    settings = get_settings()
    mirror = get_mirror()
    if settings.use_in_memory_backends or not settings.database_url:
        storage: BlogStorage = InMemoryBlogStorage(mirror)
    else:
        storage = SqlBlogStorage(
            settings.database_url,
            mirror,
            pool_size=settings.database_pool_size,
        )
    logger.info("Storage backend: %s", storage.__class__.__name__)

    if settings.sync_posts_on_startup:
        sync_posts_from_mirror(storage, mirror)
    _storage = storage
    return _storage
