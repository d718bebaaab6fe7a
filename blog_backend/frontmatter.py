"""
Frontmatter parsing and rendering for mirrored markdown posts.

A post file looks like:

    ---
    title: Hello
    excerpt: A short teaser
    readTime: 3 min read
    category: Notes
    tags: python, web
    status: published
    ---

    Markdown body...
"""

from __future__ import annotations

from dataclasses import dataclass, field

DELIMITER = "---"
EXCERPT_LENGTH = 150

DEFAULT_TITLE = "Untitled"
DEFAULT_READ_TIME = "5 min read"
DEFAULT_CATEGORY = "General"
DEFAULT_STATUS = "published"
POST_STATUSES = ("published", "draft")


@dataclass
class ParsedPost:
    title: str = DEFAULT_TITLE
    excerpt: str = ""
    read_time: str = DEFAULT_READ_TIME
    category: str = DEFAULT_CATEGORY
    tags: list[str] = field(default_factory=list)
    status: str = DEFAULT_STATUS
    body: str = ""


def split_tags(value: str) -> list[str]:
    return [tag.strip() for tag in value.split(",") if tag.strip()]


def excerpt_from_body(body: str) -> str:
    """First non-blank line of the body, cut to EXCERPT_LENGTH plus an ellipsis."""
    for line in body.splitlines():
        if line.strip():
            return line.strip()[:EXCERPT_LENGTH] + "..."
    return ""


def _apply_field(parsed: ParsedPost, key: str, value: str) -> None:
    if key == "title":
        parsed.title = value
    elif key == "excerpt":
        parsed.excerpt = value
    elif key == "readTime":
        parsed.read_time = value
    elif key == "category":
        parsed.category = value
    elif key == "tags":
        parsed.tags = split_tags(value)
    elif key == "status":
        parsed.status = value if value in POST_STATUSES else DEFAULT_STATUS


def parse_post_file(content: str) -> ParsedPost:
    """
    Parse a markdown file with an optional leading frontmatter block.

    Without an opening and closing `---` line the whole content is the body
    and all metadata keeps its defaults.
    """
    lines = content.replace("\r\n", "\n").split("\n")
    parsed = ParsedPost(body=content)

    if lines and lines[0].strip() == DELIMITER:
        end_index = None
        for index in range(1, len(lines)):
            if lines[index].strip() == DELIMITER:
                end_index = index
                break

        if end_index is not None:
            body_lines = lines[end_index + 1 :]
            # Drop the one blank separator line written after the header.
            if body_lines and not body_lines[0].strip():
                body_lines = body_lines[1:]
            parsed.body = "\n".join(body_lines)
            for line in lines[1:end_index]:
                key, sep, value = line.partition(":")
                if not sep:
                    continue
                _apply_field(parsed, key.strip(), value.strip())

    if not parsed.excerpt:
        parsed.excerpt = excerpt_from_body(parsed.body)
    return parsed


def single_line(value) -> str:
    """Collapse all whitespace, newlines included, to single spaces."""
    return " ".join(str(value or "").split())


def _header_tags(tags) -> str:
    # Commas separate tags in the header, so none may survive inside one.
    cleaned = (single_line(tag.replace(",", " ")) for tag in tags or [])
    return ", ".join(tag for tag in cleaned if tag)


def render_post_file(post) -> str:
    """
    Serialize a post record (anything with the post attributes) to markdown.

    Header values are flattened to one line so a stray newline or `---`
    cannot end the header early.
    """
    header = [
        DELIMITER,
        f"title: {single_line(post.title)}",
        f"excerpt: {single_line(post.excerpt)}",
        f"readTime: {single_line(post.read_time)}",
        f"category: {single_line(post.category)}",
        f"tags: {_header_tags(post.tags)}",
        f"status: {single_line(post.status)}",
        DELIMITER,
    ]
    return "\n".join(header) + "\n\n" + (post.content or "")
