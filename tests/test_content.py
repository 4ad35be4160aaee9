from datetime import datetime
from pathlib import Path

import pytest

from postpress.content import ContentProcessor, FileContentLoader, parse_document
from postpress.errors import ContentIOError, InvalidDate, MalformedFrontMatter, ParseError
from postpress.extractors import extract_frontmatter, normalize_tags

REST_API_POST = """\
---
title: Building a REST API with .NET Core
author: Jane Doe
tags: [dotnet, api, dotnet]
---

This post walks through a **minimal** REST API.

## Controllers

```csharp
public class ValuesController : Controller { }
```
"""


def create_posts(tmp_path: Path) -> Path:
    posts = tmp_path / "_posts"
    posts.mkdir()
    (posts / "2017-11-08-building-a-rest-api.md").write_text(REST_API_POST, encoding="utf-8")
    (posts / "2018-02-08-validation-patterns.md").write_text(
        "---\ntitle: Validation patterns\ntags: validation dotnet\n---\n\nBody.\n",
        encoding="utf-8",
    )
    (posts / "2018-03-01-no-front-matter.md").write_text("# Just a heading\n", encoding="utf-8")
    (posts / "2018-02-30-bad-date.md").write_text("---\ntitle: Bad\n---\n", encoding="utf-8")
    (posts / "notes.txt").write_text("ignored", encoding="utf-8")
    (posts / "_drafts").mkdir()
    (posts / "_drafts" / "2018-05-01-draft.md").write_text("---\n---\n", encoding="utf-8")
    (posts / "2019").mkdir()
    (posts / "2019" / "2019-01-01-nested.md").write_text(
        "---\ntitle: Nested\n---\nNested body.\n", encoding="utf-8"
    )
    return posts


def test_parse_document_extracts_metadata_and_renders():
    post = parse_document(REST_API_POST, "2017-11-08-building-a-rest-api.md")
    assert post.title == "Building a REST API with .NET Core"
    assert post.author == "Jane Doe"
    assert post.tags == ["dotnet", "api"]
    assert post.date == datetime(2017, 11, 8)
    assert post.slug == "building-a-rest-api"
    assert post.url == "/building-a-rest-api/"
    assert post.filename == "2017-11-08-building-a-rest-api.md"
    assert post.body.startswith("\nThis post walks through")
    assert "<strong>minimal</strong>" in post.content
    assert '<h2 id="controllers">Controllers</h2>' in post.content
    assert post.description == "This post walks through a minimal REST API."
    assert post.excerpt == "This post walks through a minimal REST API."
    assert [h.id for h in post.toc] == ["controllers"]
    assert post.frontmatter["author"] == "Jane Doe"
    assert post.path is None


def test_parse_document_defaults():
    post = parse_document("---\n---\n# Heading Title\n\nHello.\n", "2018-01-02-some-post.md")
    assert post.title == "Heading Title"
    assert post.author == ""
    assert post.tags == []

    post = parse_document("---\n---\nHello.\n", "2018-01-02-some-post.md", default_author="Site Owner")
    assert post.title == "Some Post"
    assert post.author == "Site Owner"


def test_parse_document_front_matter_overrides():
    raw = "---\ntitle: 2018\nslug: Custom Slug\ndescription: Short summary\nauthor: ''\n---\nLong first paragraph.\n"
    post = parse_document(raw, "2018-01-02-original.md", default_author="Fallback")
    assert post.title == "2018"
    assert post.slug == "custom-slug"
    assert post.description == "Short summary"
    assert post.excerpt == "Long first paragraph."
    assert post.author == "Fallback"


def test_parse_document_is_deterministic():
    first = parse_document(REST_API_POST, "2017-11-08-building-a-rest-api.md")
    second = parse_document(REST_API_POST, "2017-11-08-building-a-rest-api.md")
    assert first == second


@pytest.mark.parametrize(
    "raw",
    [
        "# No front matter\n",
        "---\ntitle: never closed\n",
        "---\ntitle: [unclosed\n---\nbody\n",
        "---\n- just\n- a list\n---\nbody\n",
        "---\ntitle:\n  nested: mapping\n---\nbody\n",
        "---\ntags:\n  - {a: b}\n---\nbody\n",
        "---\ntags: 42\n---\nbody\n",
    ],
)
def test_parse_document_rejects_malformed_front_matter(raw):
    with pytest.raises(MalformedFrontMatter) as excinfo:
        parse_document(raw, "2018-01-02-post.md")
    assert excinfo.value.filename == "2018-01-02-post.md"
    assert isinstance(excinfo.value, ParseError)


@pytest.mark.parametrize(
    "filename",
    ["about.md", "2018-02-30-impossible.md", "2018-13-01-month.md", "2018-1-2-short.md"],
)
def test_parse_document_rejects_invalid_dates(filename):
    with pytest.raises(InvalidDate) as excinfo:
        parse_document("---\ntitle: x\n---\n", filename)
    assert excinfo.value.filename == filename


def test_extract_frontmatter_variants():
    assert extract_frontmatter("---\n---\n") == ({}, "")
    assert extract_frontmatter("\ufeff---\na: 1\n---\nbody") == ({"a": 1}, "body")
    assert extract_frontmatter("---\r\na: 1\r\n---\r\nbody") == ({"a": 1}, "body")
    data, body = extract_frontmatter("---\na: 1\n---\ntext\n---\nmore\n")
    assert data == {"a": 1}
    assert body == "text\n---\nmore\n"


def test_normalize_tags():
    assert normalize_tags(None) == []
    assert normalize_tags("webpack react  bootstrap") == ["webpack", "react", "bootstrap"]
    assert normalize_tags(["a", "b", "a", 3, None, " "]) == ["a", "b", "3"]
    with pytest.raises(MalformedFrontMatter):
        normalize_tags({"a": 1})


def test_loader_finds_post_files(tmp_path):
    posts_dir = create_posts(tmp_path)
    names = [p.name for p in FileContentLoader(posts_dir).iter_files()]
    assert "notes.txt" not in names
    assert "2018-05-01-draft.md" not in names
    assert "2019-01-01-nested.md" in names
    assert "2017-11-08-building-a-rest-api.md" in names


def test_loader_missing_directory_is_fatal(tmp_path):
    with pytest.raises(ContentIOError):
        FileContentLoader(tmp_path / "_posts").iter_files()


def test_processor_skips_bad_documents_and_keeps_the_rest(tmp_path, caplog):
    posts_dir = create_posts(tmp_path)
    with caplog.at_level("WARNING", logger="postpress.content"):
        result = ContentProcessor(posts_dir, default_author="Owner").load()

    slugs = sorted(p.slug for p in result.posts)
    assert slugs == ["building-a-rest-api", "nested", "validation-patterns"]
    failed = {type(e).__name__: e.filename for e in result.failures}
    assert failed == {
        "MalformedFrontMatter": "2018-03-01-no-front-matter.md",
        "InvalidDate": "2018-02-30-bad-date.md",
    }
    assert "2018-03-01-no-front-matter.md" in caplog.text
    assert "2018-02-30-bad-date.md" in caplog.text

    validation = next(p for p in result.posts if p.slug == "validation-patterns")
    assert validation.author == "Owner"
    assert validation.tags == ["validation", "dotnet"]
    assert validation.path == posts_dir / "2018-02-08-validation-patterns.md"


def test_processor_read_failure_is_fatal(tmp_path):
    posts_dir = tmp_path / "_posts"
    posts_dir.mkdir()
    (posts_dir / "2018-01-01-binary.md").write_bytes(b"\xff\xfe\x00bad")
    with pytest.raises(ContentIOError) as excinfo:
        ContentProcessor(posts_dir).load()
    assert excinfo.value.source_path == posts_dir / "2018-01-01-binary.md"


def test_builtin_components_satisfy_protocols(tmp_path):
    from postpress.extractors import TagExtractor, TitleExtractor
    from postpress.protocols import (
        ContentLoader,
        ContentRenderer,
        MetadataExtractor,
        TemplateRenderer,
    )
    from postpress.renderers import MarkdownRenderer
    from postpress.templates import TemplateEngine

    assert isinstance(MarkdownRenderer(), ContentRenderer)
    assert isinstance(FileContentLoader(tmp_path), ContentLoader)
    assert isinstance(TitleExtractor(), MetadataExtractor)
    assert isinstance(TagExtractor(), MetadataExtractor)
    assert isinstance(TemplateEngine(tmp_path, {}), TemplateRenderer)


def test_processor_accepts_custom_loader(tmp_path):
    document = tmp_path / "2018-02-08-validation.md"
    document.write_text("---\ntitle: Validation\n---\nBody.\n", encoding="utf-8")

    class ListLoader:
        def iter_files(self):
            return [document]

    result = ContentProcessor(tmp_path / "unused", content_loader=ListLoader()).load()
    assert [p.title for p in result.posts] == ["Validation"]


def test_title_ignores_comments_inside_code_blocks():
    raw = "---\nauthor: A\n---\nSetup:\n\n```bash\n# install deps\nnpm i\n```\n"
    post = parse_document(raw, "2018-01-01-webpack-setup.md")
    assert post.title == "Webpack Setup"
    assert post.description == "Setup:"

    raw = "---\n---\n```bash\n# install deps\n```\n\n# Bundling with Webpack\n\nText.\n"
    post = parse_document(raw, "2018-01-01-webpack-setup.md")
    assert post.title == "Bundling with Webpack"
    assert post.toc[0].level == 1
