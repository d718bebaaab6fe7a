"""
Pydantic schemas for the blog API. Field names match the JSON the admin
panel sends and reads.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

SLUG_PATTERN = r"^[A-Za-z0-9_-]+$"

PostStatus = Literal["published", "draft"]


def _check_title(value: Optional[str]) -> Optional[str]:
    if value is not None and not value.strip():
        raise ValueError("Title is required")
    return value


def _check_tags(value: Optional[list[str]]) -> Optional[list[str]]:
    # Tags are stored comma-separated in the markdown header.
    for tag in value or []:
        if "," in tag or "\n" in tag or "\r" in tag:
            raise ValueError("Tags may not contain commas or line breaks")
    return value


class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255, pattern=SLUG_PATTERN)
    content: str
    excerpt: Optional[str] = None
    readTime: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    status: PostStatus = "published"

    title_not_blank = field_validator("title")(_check_title)
    tags_fit_header = field_validator("tags")(_check_tags)


class PostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255, pattern=SLUG_PATTERN)
    content: Optional[str] = None
    excerpt: Optional[str] = None
    readTime: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[list[str]] = None
    status: Optional[PostStatus] = None

    title_not_blank = field_validator("title")(_check_title)
    tags_fit_header = field_validator("tags")(_check_tags)


class PostResponse(BaseModel):
    id: int
    title: str
    slug: str
    content: str
    excerpt: Optional[str] = None
    readTime: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    status: str
    viewCount: int = 0
    createdAt: datetime
    updatedAt: datetime


class PostStatsResponse(BaseModel):
    totalPosts: int
    publishedPosts: int
    draftPosts: int
    thisMonthPosts: int
    totalViews: int
    topPosts: list[PostResponse]
    tagDistribution: dict[str, int]


class ContactCreate(BaseModel):
    name: str = Field(..., max_length=255)
    email: EmailStr
    subject: str = Field(..., max_length=255)
    message: str = Field(..., max_length=5000)

    @field_validator("name", "subject", "message", mode="before")
    @classmethod
    def strip_required(cls, value):
        if isinstance(value, str):
            value = value.strip()
        if not value:
            raise ValueError("All fields are required")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class ContactResponse(BaseModel):
    id: int
    name: str
    email: str
    subject: str
    message: str
    status: Literal["unread", "read"]
    createdAt: datetime


class ContactSubmitResponse(BaseModel):
    success: Literal[True] = True
    message: str
    id: int


class LoginRequest(BaseModel):
    password: str


class SuccessResponse(BaseModel):
    success: bool = True
