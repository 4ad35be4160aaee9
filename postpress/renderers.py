"""Markdown rendering for postpress.

Converts post bodies to HTML with mistune. Rendering is a pure function of
the Markdown text: heading ids come from the heading text and code
highlighting from Pygments, so identical input always yields identical HTML.

Key members:
- render_body: Render Markdown to HTML.
- MarkdownRenderer: Renders Markdown and collects headings for a TOC.
"""

from __future__ import annotations

import re
from html import unescape

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .html_utils import escape_html

MARKDOWN_PLUGINS = ["strikethrough", "footnotes", "table", "url"]


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly anchor id from heading text.

    Inline markup is dropped and entities decoded before slugging, so
    ``<code>Startup</code> class`` becomes ``startup-class``.
    """
    slug = _plain_text(text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-") or "section"


def _plain_text(text: str) -> str:
    """Return rendered inline HTML as plain text."""
    return unescape(re.sub(r"<[^>]+>", "", text))


class _PostRenderer(mistune.HTMLRenderer):
    """HTML renderer with heading anchors and Pygments code blocks.

    Attributes:
        headings: Heading objects collected during rendering, in order.
    """

    def __init__(self):
        super().__init__(escape=False)
        self.headings: list = []
        self._used_ids: set[str] = set()

    def heading(self, text: str, level: int, **attrs) -> str:
        # Import here to avoid circular imports
        from .content import Heading

        base_id = _generate_heading_id(text)
        heading_id = base_id
        suffix = 0
        while heading_id in self._used_ids:
            suffix += 1
            heading_id = f"{base_id}-{suffix}"
        self._used_ids.add(heading_id)

        self.headings.append(Heading(id=heading_id, text=_plain_text(text), level=level))
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a fenced or indented code block.

        The code text is emitted verbatim (escaped) so whitespace survives.
        A language tag known to Pygments gets highlighted markup.
        """
        lang = info.strip().split(None, 1)[0] if info and info.strip() else ""
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripnl=False, ensurenl=False)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(cssclass="highlight", wrapcode=True)
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{escape_html(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown post bodies to HTML."""

    source_type = "markdown"

    def render(self, content: str) -> tuple[str, list]:
        """Render Markdown content to HTML.

        Args:
            content: Markdown source.

        Returns:
            Tuple of (rendered HTML, list of Heading objects).
        """
        renderer = _PostRenderer()
        markdown = mistune.create_markdown(renderer=renderer, plugins=MARKDOWN_PLUGINS)
        rendered = markdown(content)
        return rendered, renderer.headings


def render_body(markdown: str) -> str:
    """Render a Markdown body to HTML.

    Args:
        markdown: Markdown source text.

    Returns:
        Rendered HTML.
    """
    html, _ = MarkdownRenderer().render(markdown)
    return html
