"""Protocol definitions for postpress.

The interfaces the build pipeline depends on, so loaders, extractors,
renderers and template engines can be swapped in tests or extended
without touching the pipeline itself.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .build import Site
    from .collections import PostCollection
    from .content import Heading, Post


@runtime_checkable
class ContentRenderer(Protocol):
    """Protocol for rendering post bodies to HTML."""

    @abstractmethod
    def render(self, content: str) -> tuple[str, list[Heading]]:
        """Render a post body.

        Args:
            content: Body source, front matter removed.

        Returns:
            Tuple of (rendered HTML, headings in document order).
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier, e.g. ``markdown``."""
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Protocol for extracting one piece of post metadata.

    ``context`` holds what earlier extractors in the chain produced.
    """

    @abstractmethod
    def extract(
        self, content: str, path: Path, context: dict[str, Any]
    ) -> dict[str, Any]:
        ...


@runtime_checkable
class ContentLoader(Protocol):
    """Protocol for discovering post files."""

    @abstractmethod
    def iter_files(self) -> list[Path]:
        """Return post files in a stable order.

        Raises:
            ContentIOError: The source cannot be listed.
        """
        ...


@runtime_checkable
class TemplateRenderer(Protocol):
    """Protocol for rendering the site's pages."""

    @abstractmethod
    def render_index(self, site: Site) -> str:
        ...

    @abstractmethod
    def render_post(
        self,
        site: Site,
        post: Post,
        newer: Post | None = None,
        older: Post | None = None,
    ) -> str:
        ...

    @abstractmethod
    def render_tag(self, site: Site, tag: str, posts: PostCollection) -> str:
        ...

    @abstractmethod
    def tag_url(self, tag: str) -> str:
        ...

    @abstractmethod
    def update_collections(self, posts: PostCollection, tags: Any) -> None:
        ...
