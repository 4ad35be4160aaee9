"""HTML utility functions for postpress.

Functions:
    escape_html: Escape special HTML characters in a string.
    join_root_url: Join a base URL with a path.
    absolutize_html_urls: Convert root-relative URLs to absolute in HTML.
"""

from __future__ import annotations

import re

_URL_ATTR_RE = re.compile(
    r'(?P<prefix>\b(?:href|src|action)=["\'])(?P<url>[^"\']+)(?P<suffix>["\'])'
)

# Left untouched by absolutize_html_urls
_URL_SKIP_PREFIXES = (
    "http://",
    "https://",
    "//",
    "mailto:",
    "tel:",
    "#",
    "javascript:",
)


def escape_html(text: str) -> str:
    """Escape ``&``, ``<``, ``>`` and ``"`` for inclusion in HTML or XML.

    Examples:
        >>> escape_html('Tom & "Jerry" <3')
        'Tom &amp; &quot;Jerry&quot; &lt;3'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def join_root_url(root_url: str, path: str) -> str:
    """Join a root URL and a path without doubling slashes.

    Examples:
        >>> join_root_url('https://blog.example.com/', 'about/')
        'https://blog.example.com/about/'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def absolutize_html_urls(html: str, root_url: str) -> str:
    """Rewrite root-relative ``href``/``src``/``action`` URLs to absolute ones.

    External URLs, anchors, mailto/tel links and javascript: URLs are left
    unchanged, and so are relative paths that do not start with ``/``.

    Examples:
        >>> absolutize_html_urls('<a href="/rest-api/">API</a>', 'https://blog.example.com')
        '<a href="https://blog.example.com/rest-api/">API</a>'
    """
    if not root_url:
        return html

    def repl(match: re.Match) -> str:
        url = match.group("url")
        if url.startswith(_URL_SKIP_PREFIXES) or not url.startswith("/"):
            return match.group(0)
        absolute = join_root_url(root_url, url)
        return f"{match.group('prefix')}{absolute}{match.group('suffix')}"

    return _URL_ATTR_RE.sub(repl, html)
