"""Exceptions raised while parsing posts and building a site.

Parse errors are per-document: the build skips the document and reports
it. Build errors abort the whole build.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path


class ParseError(Exception):
    """A post document could not be parsed.

    Attributes:
        filename: Name of the offending document.
        message: Human-readable reason.
    """

    def __init__(self, filename: str, message: str):
        self.filename = filename
        self.message = message
        super().__init__(f"{filename}: {message}")


class MalformedFrontMatter(ParseError):
    """The front matter block is missing or is not a well-formed mapping."""


class InvalidDate(ParseError):
    """The filename does not start with a valid ``YYYY-MM-DD`` date."""


class BuildError(Exception):
    """Error that aborts a site build.

    Attributes:
        source_path: Path to the file or directory that caused the error.
        message: Human-readable error message.
        original_error: The exception that was caught, if any.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


class ContentIOError(BuildError):
    """The posts directory or a post file could not be read."""


class DuplicateSlugError(BuildError):
    """Two or more posts resolve to the same permalink.

    Attributes:
        duplicates: Mapping of clashing slug to the filenames that share it.
    """

    def __init__(self, source_path: Path, duplicates: Mapping[str, Sequence[str]]):
        self.duplicates = {slug: list(names) for slug, names in duplicates.items()}
        details = "; ".join(
            f"'{slug}' used by {', '.join(names)}"
            for slug, names in self.duplicates.items()
        )
        super().__init__(source_path, f"duplicate slug {details}")
