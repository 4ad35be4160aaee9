"""Site building for postpress.

A build is a pure re-run-from-scratch transformation: posts are loaded,
ordered and rendered into pages, then the output directory is replaced
wholesale. Nothing is carried over from a previous build.

Key functions:
- load_config: Load ``_config.yml`` over the defaults.
- build_site: Order parsed posts and render every page in memory.
- build_project: Load, render and write a whole project to disk.
"""

from __future__ import annotations

import logging
import shutil
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jinja2 import TemplateError

from .collections import PostCollection, TagCollection
from .content import ContentProcessor, Post
from .errors import BuildError, ContentIOError, DuplicateSlugError, ParseError
from .feeds import create_default_feed_registry
from .html_utils import absolutize_html_urls
from .protocols import TemplateRenderer
from .templates import TemplateEngine
from .utils import build_tags_index, ensure_clean_dir

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "_config.yml"

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "My Blog",
    "description": "",
    "author": "",
    "url": "",
    "root_url": "",
    "output_dir": "_site",
    "posts_dir": "_posts",
    "static_dir": "assets",
    "feed_limit": 20,
    "port": 4000,
}


@dataclass
class Site:
    """An ordered collection of posts plus the site's static configuration.

    Attributes:
        title: Site title.
        description: Site description.
        author: Default author.
        url: Absolute site URL, if configured.
        posts: Posts in listing order.
        tags: Tag name to posts mapping.
    """

    title: str
    description: str
    author: str
    url: str
    posts: PostCollection
    tags: TagCollection


@dataclass
class RenderedPage:
    """One output HTML page.

    Attributes:
        url: URL path of the page, ``/`` for the index.
        html: Rendered document.
        source: Post the page was rendered from, if any.
    """

    url: str
    html: str
    source: Post | None = None

    @property
    def output_path(self) -> Path:
        """Path of the page file relative to the output directory."""
        url_path = self.url.strip("/")
        return Path(url_path) / "index.html" if url_path else Path("index.html")


@dataclass
class SiteOutput:
    """Everything a build renders.

    Attributes:
        site: The ordered site the pages were rendered from.
        index_page: The listing page.
        post_pages: One page per post, in listing order.
        tag_pages: One listing page per tag.
    """

    site: Site
    index_page: RenderedPage
    post_pages: list[RenderedPage]
    tag_pages: list[RenderedPage] = field(default_factory=list)

    @property
    def pages(self) -> list[RenderedPage]:
        return [self.index_page, *self.post_pages, *self.tag_pages]


@dataclass
class BuildResult:
    """Result of a project build.

    Attributes:
        posts: Posts included in the site, in listing order.
        output_dir: Directory where the site was written.
        config: Effective configuration.
        skipped: Parse errors of documents left out of the site.
        feeds: Feed filenames written.
    """

    posts: list[Post]
    output_dir: Path
    config: dict[str, Any]
    skipped: list[ParseError] = field(default_factory=list)
    feeds: list[str] = field(default_factory=list)


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from ``_config.yml``.

    Args:
        project_root: Root directory of the project.

    Returns:
        Configuration values with defaults applied.

    Raises:
        BuildError: The file exists but is not valid YAML.
    """
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise BuildError(config_path, f"invalid YAML: {exc}", exc) from exc
        if isinstance(loaded, dict):
            config.update(loaded)
        else:
            logger.warning("Ignoring %s: expected key/value pairs", CONFIG_FILENAME)
    config.setdefault("ws_port", int(config["port"]) + 1)
    return config


def find_duplicate_slugs(posts: list[Post]) -> dict[str, list[str]]:
    """Return every slug shared by more than one post with the clashing filenames."""
    counts = Counter(post.slug for post in posts)
    duplicates: dict[str, list[str]] = {}
    for post in sorted(posts, key=lambda p: p.filename):
        if counts[post.slug] > 1:
            duplicates.setdefault(post.slug, []).append(post.filename)
    return duplicates


def build_site(
    posts: list[Post],
    config: dict[str, Any] | None = None,
    engine: TemplateRenderer | None = None,
    posts_dir: Path | None = None,
) -> SiteOutput:
    """Order posts and render the index, permalink and tag pages.

    Nothing is written to disk.

    Args:
        posts: Parsed posts, in any order.
        config: Site configuration; defaults apply when omitted.
        engine: Template engine; one rooted at the current directory when omitted.
        posts_dir: Posts directory, used to locate errors.

    Returns:
        SiteOutput with every rendered page.

    Raises:
        DuplicateSlugError: Two posts share a slug.
        BuildError: A template failed to render.
    """
    config = {**DEFAULT_CONFIG, **(config or {})}
    duplicates = find_duplicate_slugs(posts)
    if duplicates:
        raise DuplicateSlugError(posts_dir or Path(config["posts_dir"]), duplicates)

    ordered = PostCollection(posts).sorted()
    tags = TagCollection(build_tags_index(ordered))
    site = Site(
        title=str(config.get("title") or ""),
        description=str(config.get("description") or ""),
        author=str(config.get("author") or ""),
        url=str(config.get("url") or ""),
        posts=ordered,
        tags=tags,
    )
    engine = engine or TemplateEngine(Path.cwd(), config)
    engine.update_collections(ordered, tags)

    index_page = RenderedPage(url="/", html=_render(engine.render_index, site))
    post_pages = []
    for post in ordered:
        newer, older = ordered.neighbours(post)
        html = _render(engine.render_post, site, post, newer, older, source=post)
        post_pages.append(RenderedPage(url=post.url, html=html, source=post))

    tag_pages = []
    for url, names in _group_tags_by_url(tags, engine).items():
        tag = names[0]
        tagged = tags[tag]
        if len(names) > 1:
            logger.warning(
                "Tags %s share the page %s; listing them together as '%s'",
                ", ".join(f"'{name}'" for name in names),
                url,
                tag,
            )
            merged = {id(post): post for name in names for post in tags[name]}
            tagged = PostCollection(merged.values()).sorted()
        html = _render(engine.render_tag, site, tag, tagged)
        tag_pages.append(RenderedPage(url=url, html=html))

    return SiteOutput(
        site=site, index_page=index_page, post_pages=post_pages, tag_pages=tag_pages
    )


def _group_tags_by_url(
    tags: TagCollection, engine: TemplateRenderer
) -> dict[str, list[str]]:
    """Group tag names by the page they link to, in tag order."""
    groups: dict[str, list[str]] = {}
    for tag in tags:
        groups.setdefault(engine.tag_url(tag), []).append(tag)
    return groups


def _render(render, *args, source: Post | None = None) -> str:
    """Call a render method, turning template failures into BuildError."""
    try:
        return render(*args)
    except TemplateError as exc:
        if source is not None:
            where = source.path or Path(source.filename)
        else:
            where = Path("_layouts")
        raise BuildError(where, _format_error_message(exc), exc) from exc


def _format_error_message(exc: Exception) -> str:
    error_type = type(exc).__name__
    lineno = getattr(exc, "lineno", None)
    if error_type == "TemplateSyntaxError" and lineno:
        return f"Template syntax error on line {lineno}: {exc}"
    if error_type == "UndefinedError":
        return f"Undefined variable: {exc}"
    if error_type == "TemplateNotFound":
        return f"Template not found: {exc}"
    return f"{error_type}: {exc}"


def build_project(
    project_root: Path,
    root_url: str | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
) -> BuildResult:
    """Build a whole project into its output directory.

    Documents that fail to parse are skipped with a warning and listed on
    the result. Read failures and duplicate slugs abort the build before
    anything is written.

    Args:
        project_root: Root directory of the project.
        root_url: Optional base URL to absolutize links with.
        clean_output: Whether to wipe the output directory before writing.
        output_dir_override: Write here instead of the configured output_dir.

    Returns:
        BuildResult describing the build.

    Raises:
        BuildError: The build could not complete.
    """
    config = load_config(project_root)
    if root_url is not None:
        config["root_url"] = root_url
    resolved_root = str(config.get("root_url") or "")
    output_dir = output_dir_override or (project_root / config["output_dir"])
    posts_dir = project_root / config["posts_dir"]

    default_author = str(config.get("author") or "")
    processor = ContentProcessor(posts_dir, default_author=default_author)
    loaded = processor.load()
    engine = TemplateEngine(project_root, config, root_url=resolved_root)
    output = build_site(loaded.posts, config, engine, posts_dir=posts_dir)

    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)
    for page in output.pages:
        html = page.html
        if resolved_root:
            html = absolutize_html_urls(html, resolved_root)
        _write_page(output_dir, page, html)

    static_dir = str(config["static_dir"])
    _copy_static(project_root / static_dir, output_dir / static_dir)
    ordered = list(output.site.posts)
    feeds = create_default_feed_registry().generate_all(output_dir, ordered, config)

    logger.info(
        "Built %d posts and %d tag pages into %s",
        len(ordered),
        len(output.tag_pages),
        output_dir,
    )
    if loaded.failures:
        logger.warning(
            "Skipped %d document(s) that failed to parse", len(loaded.failures)
        )
    return BuildResult(
        posts=ordered,
        output_dir=output_dir,
        config=config,
        skipped=list(loaded.failures),
        feeds=feeds,
    )


def _write_page(output_dir: Path, page: RenderedPage, html: str) -> None:
    target = output_dir / page.output_path
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        f.write(html)


def _copy_static(source: Path, target: Path) -> None:
    """Copy the static folder verbatim into the output directory."""
    if not source.is_dir():
        return
    try:
        shutil.copytree(source, target, dirs_exist_ok=True)
    except OSError as exc:
        raise ContentIOError(source, f"cannot copy static files: {exc}", exc) from exc
