"""
HTTP routes for the blog API.
"""

from __future__ import annotations

import logging
import re
import secrets

from fastapi import APIRouter, Depends, HTTPException

from blog_backend.config import Settings, get_settings
from blog_backend.db import BlogStorage, PostRecord
from blog_backend.dependencies import get_storage
from blog_backend.schemas import (
    ContactCreate,
    ContactResponse,
    ContactSubmitResponse,
    LoginRequest,
    PostCreate,
    PostResponse,
    PostStatsResponse,
    PostUpdate,
    SuccessResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Wire name -> storage field for post payloads.
_POST_FIELD_NAMES = {
    "title": "title",
    "slug": "slug",
    "content": "content",
    "excerpt": "excerpt",
    "readTime": "read_time",
    "category": "category",
    "tags": "tags",
    "status": "status",
}
_REQUIRED_POST_FIELDS = {"title", "slug", "content", "status"}


def slugify(title: str) -> str:
    """Lowercase, drop non-word characters, hyphenate whitespace."""
    slug = title.lower()
    slug = re.sub(r"[^\w\s-]", "", slug, flags=re.ASCII)
    slug = re.sub(r"\s+", "-", slug, flags=re.ASCII)
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


def _post_response(post: PostRecord) -> PostResponse:
    return PostResponse(**post.as_dict())


def _post_changes(payload: PostUpdate) -> dict:
    changes = {}
    for name, value in payload.model_dump(exclude_unset=True).items():
        field = _POST_FIELD_NAMES[name]
        if value is None and field in _REQUIRED_POST_FIELDS:
            continue
        if field == "tags":
            value = value or []
        changes[field] = value
    return changes


@router.get("/posts", response_model=list[PostResponse])
def list_posts(storage: BlogStorage = Depends(get_storage)):
    return [_post_response(post) for post in storage.get_all_posts()]


@router.get("/posts/search/{query}", response_model=list[PostResponse])
def search_posts(query: str, storage: BlogStorage = Depends(get_storage)):
    return [_post_response(post) for post in storage.search_posts(query)]


@router.get("/posts/tag/{tag}", response_model=list[PostResponse])
def posts_by_tag(tag: str, storage: BlogStorage = Depends(get_storage)):
    return [_post_response(post) for post in storage.get_posts_by_tag(tag)]


@router.get("/posts/{slug}", response_model=PostResponse)
def get_post(slug: str, storage: BlogStorage = Depends(get_storage)):
    """
    Fetch a post and count the view.
    """
    post = storage.increment_view_count(slug)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return _post_response(post)


@router.post("/admin/login", response_model=SuccessResponse)
def admin_login(
    payload: LoginRequest, settings: Settings = Depends(get_settings)
):
    if not secrets.compare_digest(
        payload.password.encode("utf-8"), settings.admin_password.encode("utf-8")
    ):
        raise HTTPException(status_code=401, detail="Invalid password")
    return SuccessResponse(success=True)


@router.get("/admin/posts", response_model=list[PostResponse])
def admin_list_posts(storage: BlogStorage = Depends(get_storage)):
    return [
        _post_response(post) for post in storage.get_all_posts(include_drafts=True)
    ]


@router.post("/admin/posts", response_model=PostResponse)
def create_post(payload: PostCreate, storage: BlogStorage = Depends(get_storage)):
    slug = payload.slug or slugify(payload.title)
    if not slug:
        raise HTTPException(
            status_code=400, detail="Could not derive a slug from the title"
        )
    if storage.get_post_by_slug(slug):
        raise HTTPException(
            status_code=400, detail="Post with this slug already exists"
        )

    post = storage.create_post(
        title=payload.title,
        slug=slug,
        content=payload.content,
        excerpt=payload.excerpt,
        read_time=payload.readTime,
        category=payload.category,
        tags=payload.tags,
        status=payload.status,
    )
    logger.info("Created post %s (%s)", post.id, post.slug)
    return _post_response(post)


@router.put("/admin/posts/{post_id}", response_model=PostResponse)
def update_post(
    post_id: int,
    payload: PostUpdate,
    storage: BlogStorage = Depends(get_storage),
):
    changes = _post_changes(payload)
    new_slug = changes.get("slug")
    if new_slug:
        existing = storage.get_post_by_slug(new_slug)
        if existing and existing.id != post_id:
            raise HTTPException(
                status_code=400, detail="Post with this slug already exists"
            )

    post = storage.update_post(post_id, changes)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return _post_response(post)


@router.delete("/admin/posts/{post_id}", response_model=SuccessResponse)
def delete_post(post_id: int, storage: BlogStorage = Depends(get_storage)):
    if not storage.delete_post(post_id):
        raise HTTPException(status_code=404, detail="Post not found")
    logger.info("Deleted post %s", post_id)
    return SuccessResponse(success=True)


@router.get("/admin/stats", response_model=PostStatsResponse)
def admin_stats(storage: BlogStorage = Depends(get_storage)):
    return PostStatsResponse(**storage.get_post_stats().as_dict())


@router.post("/contact", response_model=ContactSubmitResponse)
def submit_contact(
    payload: ContactCreate, storage: BlogStorage = Depends(get_storage)
):
    contact = storage.create_contact(
        name=payload.name,
        email=payload.email,
        subject=payload.subject,
        message=payload.message,
    )
    logger.info("Stored contact message %s", contact.id)
    return ContactSubmitResponse(message="Message sent successfully", id=contact.id)


@router.get("/admin/contacts", response_model=list[ContactResponse])
def list_contacts(storage: BlogStorage = Depends(get_storage)):
    return [ContactResponse(**c.as_dict()) for c in storage.get_all_contacts()]


@router.get("/admin/contacts/unread", response_model=list[ContactResponse])
def list_unread_contacts(storage: BlogStorage = Depends(get_storage)):
    return [ContactResponse(**c.as_dict()) for c in storage.get_unread_contacts()]


@router.patch("/admin/contacts/{contact_id}/read", response_model=SuccessResponse)
def mark_contact_read(contact_id: int, storage: BlogStorage = Depends(get_storage)):
    if not storage.mark_contact_read(contact_id):
        raise HTTPException(status_code=404, detail="Contact not found")
    return SuccessResponse(success=True)


@router.delete("/admin/contacts/{contact_id}", response_model=SuccessResponse)
def delete_contact(contact_id: int, storage: BlogStorage = Depends(get_storage)):
    if not storage.delete_contact(contact_id):
        raise HTTPException(status_code=404, detail="Contact not found")
    return SuccessResponse(success=True)
