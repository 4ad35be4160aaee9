"""Post loading and parsing for postpress.

This module turns post documents into Post objects. Parsing never touches
the filesystem: ``parse_document`` works on the raw text and the filename,
and ``ContentProcessor`` wraps it with directory discovery and per-document
failure isolation.

Key members:
- Post: Dataclass representing one blog post.
- Heading: Dataclass representing a heading for TOC generation.
- parse_document: Parse raw text into a Post.
- FileContentLoader: Discovers post files in a posts directory.
- ContentProcessor: Loads every post, collecting parse failures.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import ContentIOError, ParseError
from .extractors import CompositeMetadataExtractor
from .protocols import ContentLoader, ContentRenderer
from .renderers import MarkdownRenderer
from .utils import is_post_file

logger = logging.getLogger(__name__)


@dataclass
class Heading:
    """A heading extracted from a post body for TOC generation.

    Attributes:
        id: Anchor id for the heading.
        text: Plain text of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


@dataclass
class Post:
    """A blog post parsed from a ``YYYY-MM-DD-slug.md`` document.

    Attributes:
        title: Post title.
        author: Post author.
        tags: Ordered, de-duplicated tag names.
        date: Publication date taken from the filename.
        body: Markdown source after the front matter.
        content: Rendered HTML of the body.
        slug: URL-friendly identifier, unique across a site.
        filename: Name of the source document.
        description: Short summary for listings and feeds.
        excerpt: Full first prose paragraph of the body.
        frontmatter: Raw front matter mapping.
        toc: Headings of the body in document order.
        path: Source file path, when loaded from disk.
    """

    title: str
    author: str
    tags: list[str]
    date: datetime
    body: str
    content: str
    slug: str
    filename: str
    description: str = ""
    excerpt: str = ""
    frontmatter: dict[str, Any] = field(default_factory=dict)
    toc: list[Heading] = field(default_factory=list)
    path: Path | None = None

    @property
    def url(self) -> str:
        """Permalink path of the post."""
        return f"/{self.slug}/"


def parse_document(
    raw: str,
    filename: str,
    default_author: str = "",
    renderer: ContentRenderer | None = None,
) -> Post:
    """Parse a post document into a Post.

    Args:
        raw: Raw document text, front matter included.
        filename: Document filename, which carries the publication date.
        default_author: Author used when the front matter names none.
        renderer: Optional Markdown renderer.

    Returns:
        The parsed Post with its body rendered to HTML.

    Raises:
        MalformedFrontMatter: The front matter is absent or not a mapping.
        InvalidDate: The filename has no valid ``YYYY-MM-DD`` prefix.
    """
    path = Path(filename)
    extractor = CompositeMetadataExtractor(
        default_author=default_author, renderer=renderer
    )
    metadata = extractor.extract(raw, path)
    return Post(
        title=metadata["title"],
        author=metadata["author"],
        tags=metadata["tags"],
        date=metadata["date"],
        body=metadata["body"],
        content=metadata["content"],
        slug=metadata["slug"],
        filename=path.name,
        description=metadata["description"],
        excerpt=metadata["excerpt"],
        frontmatter=metadata["frontmatter"],
        toc=metadata["toc"],
    )


class FileContentLoader:
    """Discovers post files in a posts directory.

    Files and folders starting with ``_`` or ``.`` are skipped, as are files
    that are not Markdown.

    Attributes:
        posts_dir: Directory containing post documents.
    """

    def __init__(self, posts_dir: Path):
        self.posts_dir = posts_dir

    def iter_files(self) -> list[Path]:
        """Return post files sorted by their path relative to the posts directory.

        Raises:
            ContentIOError: The directory is missing or cannot be listed.
        """
        if not self.posts_dir.is_dir():
            raise ContentIOError(self.posts_dir, "posts directory does not exist")
        try:
            candidates = sorted(self.posts_dir.rglob("*"))
        except OSError as exc:
            raise ContentIOError(
                self.posts_dir, f"cannot list directory: {exc}", exc
            ) from exc
        files: list[Path] = []
        for path in candidates:
            if path.is_dir():
                continue
            rel = path.relative_to(self.posts_dir)
            if any(part.startswith(("_", ".")) for part in rel.parts):
                continue
            if is_post_file(path):
                files.append(path)
        return files


@dataclass
class LoadResult:
    """Posts that parsed plus the documents that were skipped.

    Attributes:
        posts: Successfully parsed posts, in discovery order.
        failures: Parse errors of skipped documents.
    """

    posts: list[Post]
    failures: list[ParseError] = field(default_factory=list)


class ContentProcessor:
    """Loads every post in a directory.

    A document that fails to parse is skipped and reported; it never stops
    the others from loading. Read failures are fatal.

    Attributes:
        posts_dir: Directory containing post documents.
        default_author: Author for posts whose front matter names none.
    """

    def __init__(
        self,
        posts_dir: Path,
        default_author: str = "",
        content_loader: ContentLoader | None = None,
        renderer: ContentRenderer | None = None,
    ):
        self.posts_dir = posts_dir
        self.default_author = default_author
        self._content_loader = content_loader or FileContentLoader(posts_dir)
        self._renderer = renderer or MarkdownRenderer()

    def load(self) -> LoadResult:
        """Load and parse all posts.

        Returns:
            LoadResult with parsed posts and skipped-document errors.

        Raises:
            ContentIOError: The directory or a file could not be read.
        """
        result = LoadResult(posts=[])
        for path in self._content_loader.iter_files():
            raw = self._read(path)
            try:
                post = parse_document(
                    raw, path.name, self.default_author, renderer=self._renderer
                )
            except ParseError as exc:
                logger.warning("Skipping %s: %s", path.name, exc.message)
                result.failures.append(exc)
                continue
            post.path = path
            logger.debug("Parsed %s as /%s/", path.name, post.slug)
            result.posts.append(post)
        return result

    def _read(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ContentIOError(path, f"cannot read file: {exc}", exc) from exc
