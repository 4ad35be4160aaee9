"""Front matter and metadata extraction for postpress.

Each extractor pulls one piece of post metadata out of a raw document and
its filename. ``parse_document`` in :mod:`postpress.content` runs them in
order through :class:`CompositeMetadataExtractor`.

Key classes:
- FrontmatterExtractor: Splits and validates the YAML front matter block.
- BodyExtractor: Renders the body to HTML and collects its headings.
- TitleExtractor: Title from front matter, first heading or filename.
- AuthorExtractor: Author from front matter or the site default.
- TagExtractor: Tags from front matter.
- DateExtractor: Publication date from the filename prefix.
- SlugExtractor: Permalink slug from front matter or the filename.
- DescriptionExtractor: Summary from front matter or the first paragraph.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

from .errors import InvalidDate, MalformedFrontMatter
from .protocols import ContentRenderer, MetadataExtractor
from .renderers import MarkdownRenderer
from .utils import (
    extract_date_from_name,
    first_paragraph,
    slugify,
    strip_fenced_code,
    titleize,
)

FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE
)

# Fields that must load as scalars when present
SCALAR_FIELDS = ("title", "author", "description", "slug")


def extract_frontmatter(
    text: str, filename: str = "<string>"
) -> tuple[dict[str, Any], str]:
    """Split YAML front matter from the Markdown body.

    Args:
        text: Raw document content.
        filename: Name used in error messages.

    Returns:
        Tuple of (front matter mapping, body).

    Raises:
        MalformedFrontMatter: The block is absent, unterminated, invalid
            YAML, or not a mapping.
    """
    text = text.lstrip("\ufeff")
    match = FRONTMATTER_RE.match(text)
    if not match:
        if text.startswith("---"):
            raise MalformedFrontMatter(
                filename, "front matter block is not terminated"
            )
        raise MalformedFrontMatter(filename, "missing front matter block")
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise MalformedFrontMatter(filename, f"invalid YAML: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedFrontMatter(
            filename, f"expected key/value pairs, got {type(data).__name__}"
        )
    for key in SCALAR_FIELDS:
        value = data.get(key)
        if isinstance(value, (dict, list)):
            raise MalformedFrontMatter(filename, f"'{key}' must be a single value")
    return data, text[match.end() :]


def normalize_tags(value: Any, filename: str = "<string>") -> list[str]:
    """Normalize a front matter ``tags`` value to an ordered, unique list.

    Accepts a list of scalars or a whitespace separated string.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split()
    elif isinstance(value, list):
        if any(isinstance(item, (dict, list)) for item in value):
            raise MalformedFrontMatter(filename, "'tags' must be a list of names")
        items = [str(item).strip() for item in value if item is not None]
    else:
        raise MalformedFrontMatter(filename, "'tags' must be a list or a string")
    seen: list[str] = []
    for item in items:
        if item and item not in seen:
            seen.append(item)
    return seen


class FrontmatterExtractor:
    """Parses the YAML front matter at the top of a document."""

    def extract(
        self, content: str, path: Path, context: dict[str, Any]
    ) -> dict[str, Any]:
        frontmatter, body = extract_frontmatter(content, path.name)
        return {"frontmatter": frontmatter, "body": body}


class BodyExtractor:
    """Renders the body, providing ``content`` and the ``toc`` headings."""

    def __init__(self, renderer: ContentRenderer | None = None):
        self.renderer = renderer or MarkdownRenderer()

    def extract(
        self, content: str, path: Path, context: dict[str, Any]
    ) -> dict[str, Any]:
        html, toc = self.renderer.render(context.get("body", content))
        return {"content": html, "toc": toc}


class TitleExtractor:
    """Extracts the post title.

    Front matter ``title`` wins, then the first level-1 heading of the
    body, then the titleized filename. Headings come from the rendered
    ``toc`` when the chain has one, so a ``#`` line inside code never counts.
    """

    def extract(
        self, content: str, path: Path, context: dict[str, Any]
    ) -> dict[str, Any]:
        title = context.get("frontmatter", {}).get("title")
        if title is not None and str(title).strip():
            return {"title": str(title).strip()}
        if "toc" in context:
            for heading in context["toc"]:
                if heading.level == 1:
                    return {"title": heading.text.strip()}
            return {"title": titleize(path.name)}
        for line in strip_fenced_code(context.get("body", content)).splitlines():
            stripped = line.strip()
            if stripped.startswith("# "):
                return {"title": stripped[2:].strip()}
        return {"title": titleize(path.name)}


class AuthorExtractor:
    """Extracts the post author, falling back to the site author."""

    def __init__(self, default_author: str = ""):
        self.default_author = default_author

    def extract(
        self, content: str, path: Path, context: dict[str, Any]
    ) -> dict[str, Any]:
        author = context.get("frontmatter", {}).get("author")
        if author is None or not str(author).strip():
            return {"author": self.default_author}
        return {"author": str(author).strip()}


class TagExtractor:
    """Extracts tags from the front matter."""

    def extract(
        self, content: str, path: Path, context: dict[str, Any]
    ) -> dict[str, Any]:
        raw = context.get("frontmatter", {}).get("tags")
        return {"tags": normalize_tags(raw, path.name)}


class DateExtractor:
    """Extracts the publication date from the ``YYYY-MM-DD`` filename prefix."""

    def extract(
        self, content: str, path: Path, context: dict[str, Any]
    ) -> dict[str, Any]:
        date = extract_date_from_name(path.stem)
        if date is None:
            raise InvalidDate(
                path.name, "filename must start with a valid YYYY-MM-DD date"
            )
        return {"date": date}


class SlugExtractor:
    """Derives the permalink slug from front matter ``slug`` or the filename."""

    def extract(
        self, content: str, path: Path, context: dict[str, Any]
    ) -> dict[str, Any]:
        override = context.get("frontmatter", {}).get("slug")
        if override is not None and str(override).strip():
            return {"slug": slugify(str(override))}
        return {"slug": slugify(path.stem)}


class DescriptionExtractor:
    """Extracts the summary shown on listings and in feeds.

    ``excerpt`` is the full first prose paragraph, ``description`` is the
    front matter value or the excerpt truncated to 160 characters.
    """

    def extract(
        self, content: str, path: Path, context: dict[str, Any]
    ) -> dict[str, Any]:
        body = context.get("body", content)
        excerpt = first_paragraph(body, limit=0)
        description = context.get("frontmatter", {}).get("description")
        if description is None or not str(description).strip():
            description = first_paragraph(body)
        return {"description": str(description).strip(), "excerpt": excerpt}


class CompositeMetadataExtractor:
    """Runs a chain of extractors, merging each result into a shared context.

    Later extractors see what earlier ones produced, so the front matter
    extractor must come first.
    """

    def __init__(
        self,
        extractors: list[MetadataExtractor] | None = None,
        default_author: str = "",
        renderer: ContentRenderer | None = None,
    ):
        if extractors is None:
            self._extractors = [
                FrontmatterExtractor(),
                DateExtractor(),
                BodyExtractor(renderer),
                TitleExtractor(),
                AuthorExtractor(default_author),
                TagExtractor(),
                SlugExtractor(),
                DescriptionExtractor(),
            ]
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor: MetadataExtractor) -> None:
        self._extractors.append(extractor)

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        """Extract all metadata from a document.

        Args:
            content: Raw document content.
            path: Path (or bare filename) of the document.

        Returns:
            Dictionary with all extracted metadata.

        Raises:
            ParseError: An extractor rejected the document.
        """
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(content, path, result))
        return result
