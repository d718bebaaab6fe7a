"""
Storage layer for posts, contacts and users.

Two implementations share the `BlogStorage` interface: an in-memory one for
development and tests, and a SQLAlchemy-backed one for Postgres (or SQLite).
Both keep the markdown mirror in step with every post write.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Protocol

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    create_engine,
    or_,
    select,
    update,
)
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from blog_backend.mirror import InMemoryPostMirror, PostMirror

POST_FIELDS = (
    "title",
    "slug",
    "content",
    "excerpt",
    "read_time",
    "category",
    "tags",
    "status",
)
TOP_POSTS_LIMIT = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BlogStorage(Protocol):
    """Interface for blog persistence."""

    def get_user(self, user_id: int) -> Optional["UserRecord"]:
        ...

    def get_user_by_username(self, username: str) -> Optional["UserRecord"]:
        ...

    def create_user(self, username: str, password: str) -> "UserRecord":
        ...

    def get_all_posts(self, include_drafts: bool = False) -> list["PostRecord"]:
        ...

    def get_post(self, post_id: int) -> Optional["PostRecord"]:
        ...

    def get_post_by_slug(self, slug: str) -> Optional["PostRecord"]:
        ...

    def create_post(
        self,
        *,
        title: str,
        slug: str,
        content: str,
        excerpt: Optional[str] = None,
        read_time: Optional[str] = None,
        category: Optional[str] = None,
        tags: Optional[list[str]] = None,
        status: str = "published",
        write_file: bool = True,
    ) -> "PostRecord":
        ...

    def update_post(self, post_id: int, changes: dict) -> Optional["PostRecord"]:
        ...

    def delete_post(self, post_id: int) -> bool:
        ...

    def increment_view_count(self, slug: str) -> Optional["PostRecord"]:
        ...

    def get_posts_by_tag(self, tag: str) -> list["PostRecord"]:
        ...

    def search_posts(self, query: str) -> list["PostRecord"]:
        ...

    def get_post_stats(self) -> "PostStats":
        ...

    def create_contact(
        self, *, name: str, email: str, subject: str, message: str
    ) -> "ContactRecord":
        ...

    def get_all_contacts(self) -> list["ContactRecord"]:
        ...

    def get_unread_contacts(self) -> list["ContactRecord"]:
        ...

    def get_contact(self, contact_id: int) -> Optional["ContactRecord"]:
        ...

    def mark_contact_read(self, contact_id: int) -> bool:
        ...

    def delete_contact(self, contact_id: int) -> bool:
        ...


@dataclass
class UserRecord:
    id: int
    username: str
    password: str


@dataclass
class PostRecord:
    id: int
    title: str
    slug: str
    content: str
    excerpt: Optional[str] = None
    read_time: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    status: str = "published"
    view_count: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "content": self.content,
            "excerpt": self.excerpt,
            "readTime": self.read_time,
            "category": self.category,
            "tags": list(self.tags or []),
            "status": self.status,
            "viewCount": self.view_count,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class ContactRecord:
    id: int
    name: str
    email: str
    subject: str
    message: str
    status: str = "unread"
    created_at: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "subject": self.subject,
            "message": self.message,
            "status": self.status,
            "createdAt": self.created_at,
        }


@dataclass
class PostStats:
    total_posts: int
    published_posts: int
    draft_posts: int
    this_month_posts: int
    total_views: int
    top_posts: list[PostRecord]
    tag_distribution: Dict[str, int]

    def as_dict(self) -> dict:
        return {
            "totalPosts": self.total_posts,
            "publishedPosts": self.published_posts,
            "draftPosts": self.draft_posts,
            "thisMonthPosts": self.this_month_posts,
            "totalViews": self.total_views,
            "topPosts": [post.as_dict() for post in self.top_posts],
            "tagDistribution": dict(self.tag_distribution),
        }


def _newest_first(posts: Iterable[PostRecord]) -> list[PostRecord]:
    return sorted(posts, key=lambda p: (p.created_at, p.id), reverse=True)


def compute_post_stats(
    posts: list[PostRecord], now: Optional[datetime] = None
) -> PostStats:
    """Aggregate dashboard numbers over every post."""
    now = now or _utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    published = [p for p in posts if p.status == "published"]
    drafts = [p for p in posts if p.status == "draft"]

    tag_counts: Counter = Counter()
    for post in published:
        tag_counts.update(post.tags or [])

    top_posts = sorted(published, key=lambda p: (-p.view_count, p.id))
    return PostStats(
        total_posts=len(posts),
        published_posts=len(published),
        draft_posts=len(drafts),
        this_month_posts=sum(
            1 for p in posts if _aware(p.created_at) >= month_start
        ),
        total_views=sum(p.view_count or 0 for p in posts),
        top_posts=top_posts[:TOP_POSTS_LIMIT],
        tag_distribution=dict(tag_counts),
    )


def _matches_query(post: PostRecord, needle: str) -> bool:
    return any(
        needle in (value or "").lower()
        for value in (post.title, post.content, post.excerpt)
    )


class InMemoryBlogStorage:
    """Simple in-memory storage for development and tests."""

    def __init__(self, mirror: Optional[PostMirror] = None):
        self.mirror = mirror if mirror is not None else InMemoryPostMirror()
        self.users: Dict[int, UserRecord] = {}
        self.posts: Dict[int, PostRecord] = {}
        self.contacts: Dict[int, ContactRecord] = {}
        self._next_ids = {"user": 1, "post": 1, "contact": 1}

    def _next_id(self, kind: str) -> int:
        value = self._next_ids[kind]
        self._next_ids[kind] = value + 1
        return value

    @staticmethod
    def _copy(post: PostRecord) -> PostRecord:
        return replace(post, tags=list(post.tags or []))

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.posts.clear()
        self.contacts.clear()
        self._next_ids = {"user": 1, "post": 1, "contact": 1}

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.username == username:
                return user
        return None

    def create_user(self, username: str, password: str) -> UserRecord:
        if self.get_user_by_username(username):
            raise ValueError(f"User {username!r} already exists")
        user = UserRecord(id=self._next_id("user"), username=username, password=password)
        self.users[user.id] = user
        return user

    def get_all_posts(self, include_drafts: bool = False) -> list[PostRecord]:
        posts = [
            p for p in self.posts.values() if include_drafts or p.status == "published"
        ]
        return [self._copy(p) for p in _newest_first(posts)]

    def get_post(self, post_id: int) -> Optional[PostRecord]:
        post = self.posts.get(post_id)
        return self._copy(post) if post else None

    def _find_by_slug(self, slug: str) -> Optional[PostRecord]:
        for post in self.posts.values():
            if post.slug == slug:
                return post
        return None

    def get_post_by_slug(self, slug: str) -> Optional[PostRecord]:
        post = self._find_by_slug(slug)
        return self._copy(post) if post else None

    def create_post(
        self,
        *,
        title: str,
        slug: str,
        content: str,
        excerpt: Optional[str] = None,
        read_time: Optional[str] = None,
        category: Optional[str] = None,
        tags: Optional[list[str]] = None,
        status: str = "published",
        write_file: bool = True,
    ) -> PostRecord:
        now = _utcnow()
        post = PostRecord(
            id=self._next_id("post"),
            title=title,
            slug=slug,
            content=content,
            excerpt=excerpt,
            read_time=read_time,
            category=category,
            tags=list(tags or []),
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.posts[post.id] = post
        if write_file:
            self.mirror.write_post(post)
        return self._copy(post)

    def update_post(self, post_id: int, changes: dict) -> Optional[PostRecord]:
        post = self.posts.get(post_id)
        if not post:
            return None
        old_slug = post.slug
        for key, value in changes.items():
            if key in POST_FIELDS:
                setattr(post, key, list(value) if key == "tags" else value)
        post.updated_at = _utcnow()
        if post.slug != old_slug:
            self.mirror.delete_post(old_slug)
        self.mirror.write_post(post)
        return self._copy(post)

    def delete_post(self, post_id: int) -> bool:
        post = self.posts.pop(post_id, None)
        if not post:
            return False
        self.mirror.delete_post(post.slug)
        return True

    def increment_view_count(self, slug: str) -> Optional[PostRecord]:
        post = self._find_by_slug(slug)
        if not post:
            return None
        post.view_count = (post.view_count or 0) + 1
        return self._copy(post)

    def get_posts_by_tag(self, tag: str) -> list[PostRecord]:
        return [p for p in self.get_all_posts() if tag in p.tags]

    def search_posts(self, query: str) -> list[PostRecord]:
        needle = query.lower()
        return [p for p in self.get_all_posts() if _matches_query(p, needle)]

    def get_post_stats(self) -> PostStats:
        return compute_post_stats([self._copy(p) for p in self.posts.values()])

    def create_contact(
        self, *, name: str, email: str, subject: str, message: str
    ) -> ContactRecord:
        contact = ContactRecord(
            id=self._next_id("contact"),
            name=name,
            email=email,
            subject=subject,
            message=message,
        )
        self.contacts[contact.id] = contact
        return replace(contact)

    def get_all_contacts(self) -> list[ContactRecord]:
        return [
            replace(c)
            for c in sorted(
                self.contacts.values(),
                key=lambda c: (c.created_at, c.id),
                reverse=True,
            )
        ]

    def get_unread_contacts(self) -> list[ContactRecord]:
        return [c for c in self.get_all_contacts() if c.status == "unread"]

    def get_contact(self, contact_id: int) -> Optional[ContactRecord]:
        contact = self.contacts.get(contact_id)
        return replace(contact) if contact else None

    def mark_contact_read(self, contact_id: int) -> bool:
        contact = self.contacts.get(contact_id)
        if not contact:
            return False
        contact.status = "read"
        return True

    def delete_contact(self, contact_id: int) -> bool:
        return self.contacts.pop(contact_id, None) is not None


class SqlBlogStorage:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(
        self,
        database_url: str,
        mirror: Optional[PostMirror] = None,
        pool_size: int = 10,
    ):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlBlogStorage")
        self.mirror = mirror if mirror is not None else InMemoryPostMirror()
        self.engine = create_engine(
            database_url, future=True, **self._engine_options(database_url, pool_size)
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @staticmethod
    def _engine_options(database_url: str, pool_size: int) -> dict:
        url = make_url(database_url)
        if url.get_backend_name() == "sqlite":
            options = {"connect_args": {"check_same_thread": False}}
            if url.database in (None, "", ":memory:"):
                # One shared connection, otherwise every thread sees an empty database.
                options["poolclass"] = StaticPool
            return options
        return {
            "pool_size": pool_size,
            "max_overflow": 0,
            "pool_pre_ping": True,
            "pool_recycle": 1800,
        }

    @staticmethod
    def _to_user_record(row: "UserRow") -> UserRecord:
        return UserRecord(id=row.id, username=row.username, password=row.password)

    @staticmethod
    def _to_post_record(row: "PostRow") -> PostRecord:
        return PostRecord(
            id=row.id,
            title=row.title,
            slug=row.slug,
            content=row.content,
            excerpt=row.excerpt,
            read_time=row.read_time,
            category=row.category,
            tags=list(row.tags or []),
            status=row.status,
            view_count=row.view_count or 0,
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at),
        )

    @staticmethod
    def _to_contact_record(row: "ContactRow") -> ContactRecord:
        return ContactRecord(
            id=row.id,
            name=row.name,
            email=row.email,
            subject=row.subject,
            message=row.message,
            status=row.status,
            created_at=_aware(row.created_at),
        )

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            return self._to_user_record(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        with self.Session() as session:
            stmt = select(UserRow).where(UserRow.username == username)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_user_record(row) if row else None

    def create_user(self, username: str, password: str) -> UserRecord:
        with self.Session() as session:
            row = UserRow(username=username, password=password)
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_user_record(row)

    def _select_posts(self, *criteria) -> list[PostRecord]:
        with self.Session() as session:
            stmt = (
                select(PostRow)
                .where(*criteria)
                .order_by(PostRow.created_at.desc(), PostRow.id.desc())
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_post_record(row) for row in rows]

    def get_all_posts(self, include_drafts: bool = False) -> list[PostRecord]:
        if include_drafts:
            return self._select_posts()
        return self._select_posts(PostRow.status == "published")

    def get_post(self, post_id: int) -> Optional[PostRecord]:
        with self.Session() as session:
            row = session.get(PostRow, post_id)
            return self._to_post_record(row) if row else None

    def get_post_by_slug(self, slug: str) -> Optional[PostRecord]:
        with self.Session() as session:
            stmt = select(PostRow).where(PostRow.slug == slug)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_post_record(row) if row else None

    def create_post(
        self,
        *,
        title: str,
        slug: str,
        content: str,
        excerpt: Optional[str] = None,
        read_time: Optional[str] = None,
        category: Optional[str] = None,
        tags: Optional[list[str]] = None,
        status: str = "published",
        write_file: bool = True,
    ) -> PostRecord:
        now = _utcnow()
        with self.Session() as session:
            row = PostRow(
                title=title,
                slug=slug,
                content=content,
                excerpt=excerpt,
                read_time=read_time,
                category=category,
                tags=list(tags or []),
                status=status,
                view_count=0,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            post = self._to_post_record(row)
        if write_file:
            self.mirror.write_post(post)
        return post

    def update_post(self, post_id: int, changes: dict) -> Optional[PostRecord]:
        with self.Session() as session:
            row = session.get(PostRow, post_id)
            if not row:
                return None
            old_slug = row.slug
            for key, value in changes.items():
                if key in POST_FIELDS:
                    setattr(row, key, list(value) if key == "tags" else value)
            row.updated_at = _utcnow()
            session.commit()
            session.refresh(row)
            post = self._to_post_record(row)
        if post.slug != old_slug:
            self.mirror.delete_post(old_slug)
        self.mirror.write_post(post)
        return post

    def delete_post(self, post_id: int) -> bool:
        with self.Session() as session:
            row = session.get(PostRow, post_id)
            if not row:
                return False
            slug = row.slug
            session.delete(row)
            session.commit()
        self.mirror.delete_post(slug)
        return True

    def increment_view_count(self, slug: str) -> Optional[PostRecord]:
        with self.Session() as session:
            result = session.execute(
                update(PostRow)
                .where(PostRow.slug == slug)
                .values(view_count=PostRow.view_count + 1)
            )
            session.commit()
            if not result.rowcount:
                return None
        return self.get_post_by_slug(slug)

    def get_posts_by_tag(self, tag: str) -> list[PostRecord]:
        # Tags live in a JSON column; match in Python to stay portable.
        return [p for p in self.get_all_posts() if tag in p.tags]

    def search_posts(self, query: str) -> list[PostRecord]:
        return self._select_posts(
            PostRow.status == "published",
            or_(
                PostRow.title.icontains(query, autoescape=True),
                PostRow.content.icontains(query, autoescape=True),
                PostRow.excerpt.icontains(query, autoescape=True),
            ),
        )

    def get_post_stats(self) -> PostStats:
        return compute_post_stats(self._select_posts())

    def create_contact(
        self, *, name: str, email: str, subject: str, message: str
    ) -> ContactRecord:
        with self.Session() as session:
            row = ContactRow(
                name=name,
                email=email,
                subject=subject,
                message=message,
                status="unread",
                created_at=_utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_contact_record(row)

    def _select_contacts(self, *criteria) -> list[ContactRecord]:
        with self.Session() as session:
            stmt = (
                select(ContactRow)
                .where(*criteria)
                .order_by(ContactRow.created_at.desc(), ContactRow.id.desc())
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_contact_record(row) for row in rows]

    def get_all_contacts(self) -> list[ContactRecord]:
        return self._select_contacts()

    def get_unread_contacts(self) -> list[ContactRecord]:
        return self._select_contacts(ContactRow.status == "unread")

    def get_contact(self, contact_id: int) -> Optional[ContactRecord]:
        with self.Session() as session:
            row = session.get(ContactRow, contact_id)
            return self._to_contact_record(row) if row else None

    def mark_contact_read(self, contact_id: int) -> bool:
        with self.Session() as session:
            row = session.get(ContactRow, contact_id)
            if not row:
                return False
            row.status = "read"
            session.commit()
            return True

    def delete_contact(self, contact_id: int) -> bool:
        with self.Session() as session:
            row = session.get(ContactRow, contact_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, nullable=False, unique=True)
    password = Column(String, nullable=False)


class PostRow(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    content = Column(Text, nullable=False)
    excerpt = Column(Text, nullable=True)
    read_time = Column(String, nullable=True)
    category = Column(String, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    status = Column(String, nullable=False, default="published", index=True)
    view_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class ContactRow(Base):
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String, nullable=False, default="unread", index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
