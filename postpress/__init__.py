"""postpress static blog generator.

Turns a folder of dated Markdown posts with YAML front matter into a static
blog: an index listing newest first, one permalink page per post, tag
pages and an RSS feed. Markdown is rendered with mistune and pages with
Jinja2.

The main entry point is the CLI module, which provides commands for
scaffolding a blog, writing posts, building and previewing the site.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
