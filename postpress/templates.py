"""Template rendering engine for postpress.

Pages are rendered with Jinja2. Built-in layouts ship in the package's
``layouts`` folder; a project's ``_layouts`` folder is searched first, so a
file there named like a built-in (``index.html.jinja``, ``post.html.jinja``,
``tag.html.jinja``, ``base.html.jinja``) replaces it.

Key members:
- TemplateEngine: Renders the index, post and tag pages.
- render_toc: Render a post's headings as a nested list.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup, escape
from pygments.formatters import HtmlFormatter

from .collections import PostCollection, TagCollection
from .content import Heading, Post
from .html_utils import join_root_url
from .utils import slugify

if TYPE_CHECKING:
    from .build import Site

__all__ = ["BUILTIN_LAYOUTS_DIR", "TemplateEngine", "render_toc"]

BUILTIN_LAYOUTS_DIR = Path(__file__).parent / "layouts"


def render_toc(post: Post) -> Markup:
    """Render a table of contents as nested HTML from post headings.

    Generates ``<ul><li><a href="#id">text</a></li></ul>`` nested by
    heading level.
    """
    if not post.toc:
        return Markup("")
    return _render_toc_from_headings(post.toc)


def _render_toc_from_headings(headings: list[Heading]) -> Markup:
    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        # Close nested lists when going back up
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        else:
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(f'<li><a href="#{escape(heading.id)}">{escape(heading.text)}</a>')

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        project_root: Project directory; ``_layouts`` overrides live here.
        config: Site configuration.
        env: Jinja2 environment.
        posts: All posts in listing order.
        tags: Tag name to posts mapping.
    """

    def __init__(
        self,
        project_root: Path,
        config: dict[str, Any],
        root_url: str | None = None,
    ):
        """Initialize the template engine.

        Args:
            project_root: Project directory.
            config: Site configuration.
            root_url: Optional base URL for links; defaults to ``config["root_url"]``.
        """
        self.project_root = project_root
        self.config = config
        self.root_url = root_url if root_url is not None else config.get("root_url", "")
        self.env = Environment(
            loader=ChoiceLoader(
                [
                    FileSystemLoader(str(project_root / "_layouts")),
                    FileSystemLoader(str(BUILTIN_LAYOUTS_DIR)),
                ]
            ),
            autoescape=select_autoescape(["html", "xml", "html.jinja", "xml.jinja"]),
            keep_trailing_newline=True,
        )
        self.posts: PostCollection = PostCollection([])
        self.tags: TagCollection = TagCollection({})
        self._install_globals()

    def _install_globals(self) -> None:
        self.env.globals["config"] = self.config
        self.env.globals["posts"] = self.posts
        self.env.globals["tags"] = self.tags
        self.env.globals["url_for"] = self._url_for
        self.env.globals["tag_url"] = self.tag_url
        self.env.globals["pygments_css"] = self._pygments_css
        self.env.globals["render_toc"] = render_toc

    @staticmethod
    def _pygments_css() -> Markup:
        """Return Pygments CSS rules for the ``.highlight`` class."""
        return Markup(HtmlFormatter().get_style_defs(".highlight"))

    @staticmethod
    def tag_url(tag: str) -> str:
        """Return the listing page path for a tag."""
        return f"/tags/{slugify(tag)}/"

    def update_collections(self, posts: PostCollection, tags: TagCollection) -> None:
        """Make the site's posts and tags visible to every template."""
        self.posts = posts
        self.tags = tags
        self.env.globals["posts"] = self.posts
        self.env.globals["tags"] = self.tags

    def _url_for(self, path: str) -> str:
        """Generate a URL for a path, applying root_url when configured."""
        if path.startswith(("http://", "https://", "//")):
            return path
        path = path if path.startswith("/") else f"/{path}"
        if self.root_url:
            return join_root_url(self.root_url, path)
        return path

    def render_index(self, site: Site) -> str:
        """Render the listing page of all posts."""
        template = self.env.get_template("index.html.jinja")
        return template.render(site=site, page_title=site.title)

    def render_post(
        self,
        site: Site,
        post: Post,
        newer: Post | None = None,
        older: Post | None = None,
    ) -> str:
        """Render a post's permalink page.

        Args:
            site: The site being built.
            post: Post to render.
            newer: Adjacent newer post, if any.
            older: Adjacent older post, if any.
        """
        template = self.env.get_template("post.html.jinja")
        return template.render(
            site=site,
            post=post,
            page_title=post.title,
            post_content=Markup(post.content),
            frontmatter=post.frontmatter,
            newer=newer,
            older=older,
        )

    def render_tag(self, site: Site, tag: str, posts: PostCollection) -> str:
        """Render the listing page for one tag."""
        template = self.env.get_template("tag.html.jinja")
        return template.render(site=site, tag=tag, tag_posts=posts, page_title=tag)

    def render_string(self, template: str, context: dict[str, Any]) -> str:
        """Render a template string with the engine's globals."""
        return self.env.from_string(template).render(**context)
