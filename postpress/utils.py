"""Utility functions for postpress.

String and path helpers shared by the content, build and CLI modules.

Key functions:
    slugify: Convert a post filename or title into a URL slug.
    titleize: Convert a post filename into a human-readable title.
    split_post_name: Split a post filename stem into its date prefix and slug part.
    extract_date_from_name: Parse the YYYY-MM-DD prefix of a post filename.
    is_post_file: Check whether a path is a Markdown post.
    first_paragraph: Extract a plain-text summary from Markdown.
    strip_fenced_code: Blank out fenced code blocks in Markdown.
    ensure_clean_dir: Ensure a directory exists and is empty.
    build_tags_index: Group posts by tag.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

POST_NAME_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})-(.+)$")

POST_EXTENSIONS = (".md", ".markdown")

# Opening or closing line of a fenced code block
FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")


def split_post_name(name: str) -> tuple[tuple[int, int, int], str] | None:
    """Split a post filename stem into its date parts and the slug part.

    Args:
        name: Filename stem, e.g. ``2018-02-08-validation-patterns``.

    Returns:
        ``((year, month, day), rest)`` or None when there is no date prefix.

    Examples:
        >>> split_post_name("2018-02-08-validation")
        ((2018, 2, 8), 'validation')

        >>> split_post_name("about") is None
        True
    """
    match = POST_NAME_RE.match(name)
    if not match:
        return None
    year, month, day, rest = match.groups()
    return (int(year), int(month), int(day)), rest


def slugify(name: str) -> str:
    """Convert a filename stem or title to a slug, dropping any date prefix.

    Args:
        name: Filename stem or free text.

    Returns:
        URL-friendly slug.
    """
    parts = split_post_name(name)
    cleaned = parts[1] if parts else name
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", cleaned)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "untitled"


def titleize(filename: str) -> str:
    """Convert a post filename to a human-readable title.

    Removes the date prefix, replaces hyphens and underscores with spaces,
    and capitalizes each word.

    Examples:
        >>> titleize("2017-11-08-building-a-rest-api.md")
        'Building A Rest Api'
    """
    base = Path(filename).stem
    parts = split_post_name(base)
    if parts:
        base = parts[1]
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Extract the publication date from a ``YYYY-MM-DD-slug`` filename stem.

    Args:
        name: Filename stem (without extension).

    Returns:
        datetime at midnight, or None if the prefix is missing or not a
        real calendar date.
    """
    parts = split_post_name(name)
    if parts is None:
        return None
    year, month, day = parts[0]
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def is_post_file(path: Path) -> bool:
    """Check if a path is a Markdown post file."""
    return path.suffix.lower() in POST_EXTENSIONS


def first_paragraph(text: str, limit: int = 160) -> str:
    """Extract the first prose paragraph of Markdown as plain text.

    Headings, images, fenced code and rules are skipped. HTML tags and
    Markdown emphasis markers are stripped, whitespace is collapsed and the
    result is truncated to ``limit`` characters (0 disables truncation).
    """
    paragraphs = [p.strip() for p in strip_fenced_code(text).split("\n\n") if p.strip()]
    for para in paragraphs:
        if para.startswith(("#", "![", "```", "~~~", "---", "<")):
            continue
        para = re.sub(r"<[^>]+>", "", para)
        para = re.sub(r"!?\[([^\]]*)\]\([^)]*\)", r"\1", para)
        para = re.sub(r"[*_`]+", "", para)
        collapsed = " ".join(para.split())
        if not limit or len(collapsed) <= limit:
            return collapsed
        return collapsed[: limit - 3].rstrip() + "..."
    return ""


def strip_fenced_code(text: str) -> str:
    """Blank out fenced code blocks so blank lines inside them split nothing.

    A fence closes on a line of at least as many of the same fence
    characters; an unclosed fence runs to the end of the text.

    Examples:
        >>> strip_fenced_code("Intro\\n\\n```\\na\\n\\nb\\n```\\nAfter")
        'Intro\\n\\n\\nAfter'
    """
    kept: list[str] = []
    fence = ""
    for line in text.splitlines():
        if not fence:
            match = FENCE_RE.match(line)
            if match:
                fence = match.group(1)
                kept.append("")
            else:
                kept.append(line)
            continue
        closing = line.strip()
        if closing and set(closing) == {fence[0]} and len(closing) >= len(fence):
            fence = ""
    return "\n".join(kept)


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


def build_tags_index(posts: Iterable) -> dict[str, list]:
    """Build an index mapping tags to the posts carrying them.

    Args:
        posts: Iterable of Post objects with a ``tags`` attribute.

    Returns:
        Dictionary mapping tag names to lists of posts, in input order.
    """
    tags: dict[str, list] = {}
    for post in posts:
        for tag in post.tags:
            tags.setdefault(tag, []).append(post)
    return tags
