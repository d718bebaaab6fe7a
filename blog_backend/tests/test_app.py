import unittest

from fastapi.testclient import TestClient

from blog_backend.app import create_app
from blog_backend.config import Settings, get_settings
from blog_backend.db import InMemoryBlogStorage
from blog_backend.dependencies import get_storage
from blog_backend.mirror import InMemoryPostMirror
from blog_backend.routes import slugify
from blog_backend.sync import sync_posts_from_mirror


def _post_payload(**overrides):
    payload = {
        "title": "Hello World",
        "content": "First paragraph.\n\nSecond paragraph.",
        "excerpt": "A greeting",
        "readTime": "2 min read",
        "category": "Notes",
        "tags": ["python", "web"],
        "status": "published",
    }
    payload.update(overrides)
    return payload


class SlugifyTests(unittest.TestCase):
    def test_lowercases_and_hyphenates(self):
        self.assertEqual(slugify("Hello World"), "hello-world")

    def test_strips_punctuation_and_collapses_hyphens(self):
        self.assertEqual(slugify("Hello,  World -- Again!"), "hello-world-again")

    def test_drops_non_ascii_letters(self):
        self.assertEqual(slugify("Café Notes"), "caf-notes")

    def test_only_punctuation_gives_empty_slug(self):
        self.assertEqual(slugify("!!!"), "")


class BlogApiTests(unittest.TestCase):
    def setUp(self):
        self.mirror = InMemoryPostMirror()
        self.storage = InMemoryBlogStorage(self.mirror)
        self.app = create_app()
        self.app.dependency_overrides[get_storage] = lambda: self.storage
        self.app.dependency_overrides[get_settings] = lambda: Settings(
            ADMIN_PASSWORD="letmein"
        )
        self.client = TestClient(self.app)

    def _create_post(self, **overrides):
        response = self.client.post("/api/admin/posts", json=_post_payload(**overrides))
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def test_create_post_derives_slug_from_title(self):
        post = self._create_post(title="Hello, World! Again")
        self.assertEqual(post["slug"], "hello-world-again")
        self.assertEqual(post["viewCount"], 0)
        self.assertEqual(post["readTime"], "2 min read")
        self.assertIn("hello-world-again", self.mirror.files)

    def test_create_post_keeps_explicit_slug(self):
        post = self._create_post(slug="custom-slug")
        self.assertEqual(post["slug"], "custom-slug")

    def test_create_post_with_duplicate_slug_is_rejected(self):
        self._create_post()
        response = self.client.post("/api/admin/posts", json=_post_payload())
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["error"], "Post with this slug already exists"
        )
        self.assertEqual(len(self.storage.posts), 1)

    def test_create_post_with_underivable_slug_is_rejected(self):
        response = self.client.post("/api/admin/posts", json=_post_payload(title="???"))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(len(self.storage.posts), 0)

    def test_create_post_validation_error_returns_400_with_details(self):
        response = self.client.post(
            "/api/admin/posts", json={"title": "No content", "slug": "bad slug!"}
        )
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["error"], "Invalid request data")
        self.assertTrue(body["details"])

    def test_get_post_increments_view_count_once_per_fetch(self):
        self._create_post()
        first = self.client.get("/api/posts/hello-world")
        second = self.client.get("/api/posts/hello-world")
        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json()["viewCount"], 1)
        self.assertEqual(second.json()["viewCount"], 2)
        self.assertEqual(self.storage.get_post_by_slug("hello-world").view_count, 2)

    def test_get_missing_post_returns_404(self):
        response = self.client.get("/api/posts/missing")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Post not found"})

    def test_public_listing_hides_drafts(self):
        self._create_post(title="Public")
        self._create_post(title="Hidden", status="draft")

        public = self.client.get("/api/posts").json()
        self.assertEqual([p["slug"] for p in public], ["public"])

        admin = self.client.get("/api/admin/posts").json()
        self.assertEqual({p["slug"] for p in admin}, {"public", "hidden"})

    def test_search_and_tag_filters(self):
        self._create_post(title="FastAPI Tips", tags=["python"])
        self._create_post(title="Gardening", content="Tomatoes", tags=["outdoors"])

        found = self.client.get("/api/posts/search/fastapi").json()
        self.assertEqual([p["slug"] for p in found], ["fastapi-tips"])

        tagged = self.client.get("/api/posts/tag/outdoors").json()
        self.assertEqual([p["slug"] for p in tagged], ["gardening"])

    def test_update_post(self):
        post = self._create_post()
        response = self.client.put(
            f"/api/admin/posts/{post['id']}",
            json={"title": "Renamed", "slug": "renamed", "tags": ["misc"]},
        )
        self.assertEqual(response.status_code, 200)
        updated = response.json()
        self.assertEqual(updated["title"], "Renamed")
        self.assertEqual(updated["tags"], ["misc"])
        self.assertEqual(updated["content"], post["content"])
        self.assertNotIn("hello-world", self.mirror.files)
        self.assertIn("renamed", self.mirror.files)

    def test_update_post_slug_conflict(self):
        first = self._create_post(title="First")
        self._create_post(title="Second")
        response = self.client.put(
            f"/api/admin/posts/{first['id']}", json={"slug": "second"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.storage.get_post(first["id"]).slug, "first")

    def test_update_post_rejects_blank_title(self):
        post = self._create_post()
        response = self.client.put(
            f"/api/admin/posts/{post['id']}", json={"title": "   "}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.storage.get_post(post["id"]).title, "Hello World")
        self.assertIn("title: Hello World\n", self.mirror.files["hello-world"])

    def test_tags_with_commas_are_rejected(self):
        response = self.client.post(
            "/api/admin/posts", json=_post_payload(tags=["a,b", "c"])
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.storage.posts, {})

        post = self._create_post()
        response = self.client.put(
            f"/api/admin/posts/{post['id']}", json={"tags": ["x\ny"]}
        )
        self.assertEqual(response.status_code, 400)

    def test_draft_with_multiline_excerpt_stays_draft_after_reimport(self):
        self._create_post(
            title="Secret",
            status="draft",
            excerpt="Intro line\n---\nstatus: published",
            content="Body text",
        )
        fresh = InMemoryBlogStorage(self.mirror)
        self.assertEqual(sync_posts_from_mirror(fresh, self.mirror), 1)

        post = fresh.get_post_by_slug("secret")
        self.assertEqual(post.status, "draft")
        self.assertEqual(post.excerpt, "Intro line --- status: published")
        self.assertEqual(post.tags, ["python", "web"])
        self.assertEqual(post.content, "Body text")

    def test_update_missing_post_returns_404(self):
        response = self.client.put("/api/admin/posts/999", json={"title": "Nope"})
        self.assertEqual(response.status_code, 404)

    def test_delete_post_removes_row_and_file(self):
        post = self._create_post()
        response = self.client.delete(f"/api/admin/posts/{post['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True})
        self.assertIsNone(self.storage.get_post(post["id"]))
        self.assertNotIn("hello-world", self.mirror.files)

        again = self.client.delete(f"/api/admin/posts/{post['id']}")
        self.assertEqual(again.status_code, 404)

    def test_admin_stats(self):
        self._create_post(title="One", tags=["python"])
        self._create_post(title="Two", tags=["python", "web"])
        self._create_post(title="Three", status="draft", tags=["python"])
        self.client.get("/api/posts/two")

        stats = self.client.get("/api/admin/stats").json()
        self.assertEqual(stats["totalPosts"], 3)
        self.assertEqual(stats["publishedPosts"], 2)
        self.assertEqual(stats["draftPosts"], 1)
        self.assertEqual(stats["thisMonthPosts"], 3)
        self.assertEqual(stats["totalViews"], 1)
        self.assertEqual(stats["topPosts"][0]["slug"], "two")
        self.assertEqual(stats["tagDistribution"], {"python": 2, "web": 1})

    def test_admin_login(self):
        ok = self.client.post("/api/admin/login", json={"password": "letmein"})
        self.assertEqual(ok.status_code, 200)
        self.assertEqual(ok.json(), {"success": True})

        bad = self.client.post("/api/admin/login", json={"password": "nope"})
        self.assertEqual(bad.status_code, 401)
        self.assertEqual(bad.json(), {"error": "Invalid password"})

        malformed = self.client.post("/api/admin/login", json={})
        self.assertEqual(malformed.status_code, 400)

    def test_submit_contact(self):
        response = self.client.post(
            "/api/contact",
            json={
                "name": "  Ada  ",
                "email": " Ada.Reader@Gmail.com ",
                "subject": "Hi",
                "message": "Loved the post.",
            },
        )
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "Message sent successfully")

        contact = self.storage.get_contact(body["id"])
        self.assertEqual(contact.name, "Ada")
        self.assertEqual(contact.email, "ada.reader@gmail.com")
        self.assertEqual(contact.status, "unread")

    def test_submit_contact_rejects_malformed_email(self):
        for email in ("no-at-sign.com", "reader@localhost", "reader@"):
            response = self.client.post(
                "/api/contact",
                json={
                    "name": "Ada",
                    "email": email,
                    "subject": "Hi",
                    "message": "Hello",
                },
            )
            self.assertEqual(response.status_code, 400, email)
            self.assertIn("error", response.json())
        self.assertEqual(self.storage.contacts, {})

    def test_submit_contact_rejects_reserved_domains_and_oversized_fields(self):
        base = {"name": "Ada", "email": "ada@gmail.com", "subject": "Hi", "message": "Hello"}
        for overrides in (
            {"email": "me@home.local"},
            {"subject": "s" * 256},
            {"message": "m" * 5001},
        ):
            response = self.client.post("/api/contact", json={**base, **overrides})
            self.assertEqual(response.status_code, 400, overrides)
        self.assertEqual(self.storage.contacts, {})

    def test_submit_contact_requires_all_fields(self):
        response = self.client.post(
            "/api/contact",
            json={"name": "   ", "email": "ada@gmail.com", "subject": "Hi", "message": "x"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.storage.contacts, {})

    def test_mark_contact_read_is_idempotent(self):
        contact = self.storage.create_contact(
            name="Ada", email="ada@gmail.com", subject="Hi", message="Hello"
        )
        unread = self.client.get("/api/admin/contacts/unread").json()
        self.assertEqual([c["id"] for c in unread], [contact.id])

        for _ in range(2):
            response = self.client.patch(f"/api/admin/contacts/{contact.id}/read")
            self.assertEqual(response.status_code, 200)
            self.assertEqual(self.storage.get_contact(contact.id).status, "read")

        self.assertEqual(self.client.get("/api/admin/contacts/unread").json(), [])
        listed = self.client.get("/api/admin/contacts").json()
        self.assertEqual(listed[0]["status"], "read")

    def test_mark_missing_contact_read_returns_404(self):
        response = self.client.patch("/api/admin/contacts/42/read")
        self.assertEqual(response.status_code, 404)

    def test_delete_contact(self):
        contact = self.storage.create_contact(
            name="Ada", email="ada@gmail.com", subject="Hi", message="Hello"
        )
        response = self.client.delete(f"/api/admin/contacts/{contact.id}")
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(self.storage.get_contact(contact.id))

        again = self.client.delete(f"/api/admin/contacts/{contact.id}")
        self.assertEqual(again.status_code, 404)
        self.assertEqual(again.json(), {"error": "Contact not found"})

    def test_unexpected_error_returns_500(self):
        class BrokenStorage(InMemoryBlogStorage):
            def get_all_posts(self, include_drafts=False):
                raise RuntimeError("database went away")

        self.app.dependency_overrides[get_storage] = lambda: BrokenStorage()
        client = TestClient(self.app, raise_server_exceptions=False)
        with self.assertLogs("blog_backend.app", level="ERROR"):
            response = client.get("/api/posts")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Internal server error"})


if __name__ == "__main__":
    unittest.main()
