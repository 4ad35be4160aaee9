"""Command-line interface for postpress.

Commands:
- new: Scaffold a new blog project.
- build: Build the blog into the output directory.
- serve: Preview the blog locally with live reload.
- post: Create a new dated post interactively.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .utils import slugify, titleize

WELCOME_POST = """\
Welcome to your new blog. Posts live in `_posts/` and are named
`YYYY-MM-DD-slug.md`; the date in the name is the publication date.

## Writing

Every post starts with a front matter block:

```yaml
title: My Post
author: Jane Doe
tags: [dotnet, webpack]
```

Run `postpress serve` to preview while you write.
"""


@click.group()
@click.version_option(version=__version__, prog_name="postpress")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug: bool):
    """postpress static blog generator."""
    if debug:
        logging.basicConfig(
            level=logging.DEBUG, format="%(name)s - %(levelname)s - %(message)s"
        )
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


@cli.command()
@click.argument("name")
@click.option("--title", default=None, help="Site title (defaults to the folder name)")
@click.option("--author", default="", help="Default post author")
def new(name: str, title: str | None, author: str):
    """Scaffold a new blog project."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(f"Refusing to initialize into non-empty directory: {target}")
    _scaffold(target, title or titleize(target.name), author)
    click.echo(f"New blog created at {target}")


@cli.command()
@click.option("--root-url", default=None, help="Rewrite root-relative links against this URL")
@click.option(
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Write the site here instead of output_dir from _config.yml",
)
def build(root_url: str | None, output_dir: Path | None):
    """Build the blog into the output directory."""
    project_root = Path.cwd()
    from .build import build_project
    from .errors import BuildError

    try:
        result = build_project(
            project_root,
            root_url=root_url,
            output_dir_override=output_dir.resolve() if output_dir else None,
        )
    except BuildError as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        location = _display_path(exc.source_path, project_root)
        click.echo(click.style(f"  File: {location}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None
    for error in result.skipped:
        message = f"Skipped {error.filename}: {error.message}"
        click.echo(click.style(message, fg="yellow"), err=True)
    click.echo(f"Built {len(result.posts)} posts into {result.output_dir}")


@cli.command()
@click.option("--port", type=int, required=False, help="Port to serve on (overrides _config.yml)")
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket (overrides _config.yml ws_port)",
)
def serve(port: int | None, ws_port: int | None):
    """Preview the blog with live reload."""
    project_root = Path.cwd()
    from .errors import BuildError
    from .server import DevServer

    server = DevServer(project_root, http_port=port, ws_port=ws_port)
    try:
        server.start()
    except BuildError as exc:
        raise click.ClickException(str(exc)) from None


@cli.command()
def post():
    """Create a new post interactively."""
    project_root = Path.cwd()
    from .build import CONFIG_FILENAME, load_config

    if not (project_root / CONFIG_FILENAME).exists():
        raise click.ClickException(
            f"No {CONFIG_FILENAME} found. Run this command from a postpress project root."
        )
    config = load_config(project_root)
    posts_dir = project_root / str(config["posts_dir"])

    title = questionary.text(
        "Title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()
    title = title.strip()

    author = questionary.text(
        "Author:",
        default=str(config.get("author") or ""),
        style=_questionary_style(),
    ).ask()
    if author is None:
        raise click.Abort()

    tags_answer = questionary.text(
        "Tags (comma separated):",
        style=_questionary_style(),
    ).ask()
    if tags_answer is None:
        raise click.Abort()
    tags = [t.strip() for t in tags_answer.split(",") if t.strip()]

    slug = slugify(title)
    filename = f"{datetime.now().strftime('%Y-%m-%d')}-{slug}.md"
    target_path = posts_dir / filename
    if target_path.exists():
        raise click.ClickException(f"File already exists: {_display_path(target_path, project_root)}")

    conflicting = _find_slug(posts_dir, slug)
    if conflicting is not None:
        raise click.ClickException(f"A post with slug '{slug}' already exists: {conflicting.name}")

    posts_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(
        front_matter_text({"title": title, "author": author.strip(), "tags": tags}),
        encoding="utf-8",
    )
    click.echo(f"Created {_display_path(target_path, project_root)}")


def front_matter_text(data: dict) -> str:
    """Serialize a front matter mapping as a ``---`` delimited YAML block."""
    yaml_text = yaml.safe_dump(data, allow_unicode=True, sort_keys=False, default_flow_style=False)
    return f"---\n{yaml_text}---\n\n"


def _find_slug(posts_dir: Path, slug: str) -> Path | None:
    """Return an existing post that would be published at ``slug``.

    Posts are found and slugged the way a build does, so a front matter
    ``slug`` override counts and ignored folders do not.
    """
    from .content import FileContentLoader
    from .errors import ParseError
    from .extractors import (
        CompositeMetadataExtractor,
        DateExtractor,
        FrontmatterExtractor,
        SlugExtractor,
    )

    if not posts_dir.is_dir():
        return None
    extractor = CompositeMetadataExtractor(
        [FrontmatterExtractor(), DateExtractor(), SlugExtractor()]
    )
    for path in FileContentLoader(posts_dir).iter_files():
        try:
            metadata = extractor.extract(path.read_text(encoding="utf-8"), path)
        except (OSError, UnicodeDecodeError) as exc:
            raise click.ClickException(f"Cannot read {path}: {exc}") from exc
        except ParseError:
            # builds skip unparseable posts, so they hold no slug
            continue
        if metadata["slug"] == slug:
            return path
    return None


def _display_path(path: Path, project_root: Path) -> Path:
    try:
        return path.relative_to(project_root)
    except ValueError:
        return path


def _questionary_style():
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path, title: str, author: str) -> None:
    """Create the directory structure and starter files for a new blog."""
    from .build import CONFIG_FILENAME, DEFAULT_CONFIG

    root.mkdir(parents=True, exist_ok=True)
    config = {
        "title": title,
        "description": "",
        "author": author,
        "url": "",
        "output_dir": DEFAULT_CONFIG["output_dir"],
        "posts_dir": DEFAULT_CONFIG["posts_dir"],
    }
    (root / CONFIG_FILENAME).write_text(
        yaml.safe_dump(config, allow_unicode=True, sort_keys=False), encoding="utf-8"
    )

    posts_dir = root / DEFAULT_CONFIG["posts_dir"]
    posts_dir.mkdir()
    today = datetime.now().strftime("%Y-%m-%d")
    front_matter = front_matter_text({"title": "Welcome", "author": author, "tags": ["meta"]})
    (posts_dir / f"{today}-welcome.md").write_text(front_matter + WELCOME_POST, encoding="utf-8")

    static_dir = root / DEFAULT_CONFIG["static_dir"]
    (static_dir / "css").mkdir(parents=True)
    (static_dir / "css" / "style.css").write_text(
        "body { max-width: 42rem; margin: 2rem auto; font-family: sans-serif; }\n",
        encoding="utf-8",
    )
    (root / "_layouts").mkdir()
