"""
Configuration and settings for the blog backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(
        default=None, validation_alias="DATABASE_URL"
    )
    database_pool_size: int = Field(
        default=10, validation_alias="DATABASE_POOL_SIZE"
    )

    # Single shared admin password
    admin_password: str = Field(
        default="admin123", validation_alias="ADMIN_PASSWORD"
    )

    # Markdown mirror
    posts_dir: str = Field(default="posts", validation_alias="POSTS_DIR")
    sync_posts_on_startup: bool = Field(
        default=True, validation_alias="BLOG_SYNC_POSTS_ON_STARTUP"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="BLOG_USE_IN_MEMORY_BACKENDS"
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
