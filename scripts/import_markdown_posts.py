"""
Import markdown posts from the posts directory into the configured storage.

Files whose slug already has a row are left alone. Useful after copying
posts onto a server without restarting the API.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from blog_backend.config import get_settings
from blog_backend.db import InMemoryBlogStorage, SqlBlogStorage
from blog_backend.mirror import FilesystemPostMirror
from blog_backend.sync import sync_posts_from_mirror


logger = logging.getLogger(__name__)


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Import markdown posts that have no database row yet."
    )
    parser.add_argument(
        "--posts-dir",
        default=settings.posts_dir,
        help="Directory holding <slug>.md files (default: POSTS_DIR)",
    )
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help="SQLAlchemy URL to import into (default: DATABASE_URL)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report how many posts would be imported without saving",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    mirror = FilesystemPostMirror(args.posts_dir)

    if args.database_url:
        storage = SqlBlogStorage(
            args.database_url, mirror, pool_size=settings.database_pool_size
        )
    else:
        logger.warning("No database URL configured; importing into memory only")
        storage = InMemoryBlogStorage(mirror)

    imported = sync_posts_from_mirror(storage, mirror, dry_run=args.dry_run)
    if args.dry_run:
        logger.info("Would import %d posts", imported)
    else:
        logger.info("Imported %d posts", imported)
    return 0


if __name__ == "__main__":
    sys.exit(main())
