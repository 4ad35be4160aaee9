"""Feed generation for postpress.

Builds ``feed.xml`` (RSS 2.0) and ``sitemap.xml`` from the site's posts.
Both need an absolute site ``url`` in the configuration and are skipped
without one.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates sitemap.xml.
    RSSGenerator: Generates an RSS 2.0 feed.
    FeedRegistry: Runs every registered generator.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .html_utils import escape_html, join_root_url

if TYPE_CHECKING:
    from .content import Post

RFC822_UTC = "%a, %d %b %Y %H:%M:%S +0000"


class FeedGenerator(ABC):
    """Base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Output filename, such as ``sitemap.xml``."""
        ...

    @abstractmethod
    def generate(self, posts: Sequence[Post], config: dict[str, Any]) -> str | None:
        """Generate feed content from posts in listing order.

        Returns:
            Feed content, or None when the feed cannot be generated.
        """
        ...

    def write(self, output_dir: Path, posts: Sequence[Post], config: dict[str, Any]) -> bool:
        """Generate the feed and write it to ``output_dir``.

        Returns:
            True if the feed was written, False if skipped.
        """
        content = self.generate(posts, config)
        if content is None:
            return False
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return True


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml listing the index and every post permalink."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, posts: Sequence[Post], config: dict[str, Any]) -> str | None:
        base_url = str(config.get("url") or "").rstrip("/")
        if not base_url:
            return None

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        if posts:
            lastmod = posts[0].date.strftime("%Y-%m-%d")
            lines.append(f"  <url><loc>{escape_html(base_url)}/</loc><lastmod>{lastmod}</lastmod></url>")
        for post in posts:
            loc = escape_html(join_root_url(base_url, post.url))
            lastmod = post.date.strftime("%Y-%m-%d")
            lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed of the most recent posts.

    ``feed_limit`` in the configuration caps the number of items.

    The channel ``lastBuildDate`` is the newest post date rather than the
    wall clock, so rebuilding unchanged content yields an identical feed.
    """

    @property
    def filename(self) -> str:
        return "feed.xml"

    def generate(self, posts: Sequence[Post], config: dict[str, Any]) -> str | None:
        base_url = str(config.get("url") or "").rstrip("/")
        if not base_url:
            return None
        limit = int(config.get("feed_limit") or 0)
        selected = list(posts[:limit] if limit else posts)

        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/"><channel>',
            f"<title>{escape_html(str(config.get('title', '')))}</title>",
            f"<link>{escape_html(base_url)}/</link>",
            f"<description>{escape_html(str(config.get('description', '')))}</description>",
        ]
        if selected:
            rss.append(f"<lastBuildDate>{selected[0].date.strftime(RFC822_UTC)}</lastBuildDate>")
        for post in selected:
            link = escape_html(join_root_url(base_url, post.url))
            item = [
                "<item>",
                f"<title>{escape_html(post.title)}</title>",
                f"<link>{link}</link>",
                f'<guid isPermaLink="true">{link}</guid>',
                f"<description>{escape_html(post.description or post.title)}</description>",
                f"<pubDate>{post.date.strftime(RFC822_UTC)}</pubDate>",
            ]
            if post.author:
                item.append(f"<dc:creator>{escape_html(post.author)}</dc:creator>")
            item.extend(f"<category>{escape_html(tag)}</category>" for tag in post.tags)
            item.append("</item>")
            rss.append("".join(item))
        rss.append("</channel></rss>")
        return "\n".join(rss) + "\n"


class FeedRegistry:
    """Registry of feed generators run at the end of a build."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self, output_dir: Path, posts: Sequence[Post], config: dict[str, Any]
    ) -> list[str]:
        """Write every registered feed.

        Returns:
            Filenames that were written.
        """
        generated = []
        for generator in self._generators:
            if generator.write(output_dir, posts, config):
                generated.append(generator.filename)
        return generated


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with the sitemap and RSS generators."""
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
