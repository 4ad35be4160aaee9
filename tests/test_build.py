from pathlib import Path

import pytest

from postpress.build import (
    DEFAULT_CONFIG,
    RenderedPage,
    build_project,
    build_site,
    find_duplicate_slugs,
    load_config,
)
from postpress.content import parse_document
from postpress.errors import BuildError, ContentIOError, DuplicateSlugError
from postpress.templates import TemplateEngine

REST_API = "---\ntitle: Building a REST API\nauthor: Jane Doe\ntags: [dotnet, api]\n---\n\nControllers first.\n"
VALIDATION = "---\ntitle: Validation patterns\ntags: [dotnet]\n---\n\nModel state.\n"


def make_project(tmp_path: Path, config: str = "title: Dev Notes\nurl: https://blog.example.com\n") -> Path:
    (tmp_path / "_config.yml").write_text(config, encoding="utf-8")
    posts = tmp_path / "_posts"
    posts.mkdir()
    (posts / "2017-11-08-building-a-rest-api.md").write_text(REST_API, encoding="utf-8")
    (posts / "2018-02-08-validation-patterns.md").write_text(VALIDATION, encoding="utf-8")
    (posts / "2018-03-01-broken.md").write_text("no front matter here\n", encoding="utf-8")
    css = tmp_path / "assets" / "css"
    css.mkdir(parents=True)
    (css / "style.css").write_text("body { color: #333; }\n", encoding="utf-8")
    return tmp_path


def test_rendered_page_output_path():
    assert RenderedPage(url="/", html="").output_path == Path("index.html")
    assert RenderedPage(url="/rest-api/", html="").output_path == Path("rest-api/index.html")
    assert RenderedPage(url="/tags/dotnet/", html="").output_path == Path("tags/dotnet/index.html")


def test_build_site_lists_newest_first(tmp_path):
    posts = [
        parse_document(REST_API, "2017-11-08-building-a-rest-api.md"),
        parse_document(VALIDATION, "2018-02-08-validation-patterns.md"),
    ]
    output = build_site(posts, {"title": "Dev Notes"}, TemplateEngine(tmp_path, {}))

    assert [p.slug for p in output.site.posts] == ["validation-patterns", "building-a-rest-api"]
    index = output.index_page.html
    assert index.index("/validation-patterns/") < index.index("/building-a-rest-api/")
    assert [page.url for page in output.post_pages] == [
        "/validation-patterns/",
        "/building-a-rest-api/",
    ]
    assert output.post_pages[0].source is output.site.posts[0]
    assert "Validation patterns" in output.post_pages[1].html  # newer link
    assert [page.url for page in output.tag_pages] == ["/tags/api/", "/tags/dotnet/"]
    assert len(output.pages) == 5


def test_build_site_same_date_orders_by_filename(tmp_path):
    posts = [
        parse_document("---\ntitle: Zeta\n---\n", "2018-02-08-zeta.md"),
        parse_document("---\ntitle: Alpha\n---\n", "2018-02-08-alpha.md"),
    ]
    output = build_site(posts, {}, TemplateEngine(tmp_path, {}))
    assert [p.title for p in output.site.posts] == ["Alpha", "Zeta"]


def test_build_site_is_deterministic(tmp_path):
    posts = [
        parse_document(REST_API, "2017-11-08-building-a-rest-api.md"),
        parse_document(VALIDATION, "2018-02-08-validation-patterns.md"),
    ]
    first = build_site(posts, {}, TemplateEngine(tmp_path, {}))
    second = build_site(list(reversed(posts)), {}, TemplateEngine(tmp_path, {}))
    assert [p.html for p in first.pages] == [p.html for p in second.pages]


def test_duplicate_slugs_abort_the_build(tmp_path):
    posts = [
        parse_document("---\ntitle: One\n---\n", "2017-01-01-intro.md"),
        parse_document("---\ntitle: Two\n---\n", "2018-01-01-intro.md"),
        parse_document("---\ntitle: Three\nslug: intro\n---\n", "2018-05-01-other.md"),
    ]
    assert find_duplicate_slugs(posts) == {
        "intro": ["2017-01-01-intro.md", "2018-01-01-intro.md", "2018-05-01-other.md"]
    }
    with pytest.raises(DuplicateSlugError) as excinfo:
        build_site(posts, {}, TemplateEngine(tmp_path, {}), posts_dir=tmp_path / "_posts")
    assert excinfo.value.duplicates["intro"][0] == "2017-01-01-intro.md"
    assert excinfo.value.source_path == tmp_path / "_posts"
    assert isinstance(excinfo.value, BuildError)


def test_clashing_tags_share_one_page(tmp_path, caplog):
    posts = [
        parse_document("---\ntitle: Sharp\ntags: ['C#', c]\n---\n", "2018-01-01-sharp.md"),
        parse_document("---\ntitle: Only Sharp\ntags: ['C#']\n---\n", "2018-02-01-only-sharp.md"),
        parse_document("---\ntitle: Plain C\ntags: [c]\n---\n", "2017-01-01-plain-c.md"),
    ]
    output = build_site(posts, {}, TemplateEngine(tmp_path, {}))
    assert [page.url for page in output.tag_pages] == ["/tags/c/"]
    assert "share the page /tags/c/" in caplog.text

    page = output.tag_pages[0].html
    assert page.count("class=\"post-link\"") == 3
    assert page.index("Only Sharp") < page.index(">Sharp<") < page.index("Plain C")
    only_sharp = next(p for p in output.post_pages if p.url == "/only-sharp/")
    assert 'href="/tags/c/"' in only_sharp.html


def test_template_errors_become_build_errors(tmp_path):
    layouts = tmp_path / "_layouts"
    layouts.mkdir()
    (layouts / "post.html.jinja").write_text("{% if %}", encoding="utf-8")
    posts = [parse_document(VALIDATION, "2018-02-08-validation-patterns.md")]
    with pytest.raises(BuildError) as excinfo:
        build_site(posts, {}, TemplateEngine(tmp_path, {}))
    assert excinfo.value.source_path == Path("2018-02-08-validation-patterns.md")
    assert excinfo.value.message.startswith("Template syntax error on line 1")


def test_build_project_writes_site(tmp_path, caplog):
    root = make_project(tmp_path)
    stale = root / "_site" / "old" / "index.html"
    stale.parent.mkdir(parents=True)
    stale.write_text("stale", encoding="utf-8")

    result = build_project(root)

    site = root / "_site"
    assert result.output_dir == site
    assert [p.slug for p in result.posts] == ["validation-patterns", "building-a-rest-api"]
    assert [e.filename for e in result.skipped] == ["2018-03-01-broken.md"]
    assert "Skipped 1 document(s)" in caplog.text
    assert not stale.exists()
    for rel in (
        "index.html",
        "validation-patterns/index.html",
        "building-a-rest-api/index.html",
        "tags/dotnet/index.html",
        "tags/api/index.html",
        "assets/css/style.css",
    ):
        assert (site / rel).is_file(), rel
    assert result.feeds == ["sitemap.xml", "feed.xml"]
    assert "<title>Validation patterns</title>" in (site / "feed.xml").read_text(encoding="utf-8")
    assert not (site / "broken").exists()


def test_build_project_root_url_and_output_override(tmp_path):
    root = make_project(tmp_path, "title: Dev Notes\n")
    out = tmp_path / "public"
    result = build_project(root, root_url="https://example.com/blog", output_dir_override=out)
    assert result.output_dir == out
    assert result.feeds == []
    index = (out / "index.html").read_text(encoding="utf-8")
    assert 'href="https://example.com/blog/validation-patterns/"' in index
    assert not (root / "_site").exists()


def test_build_project_twice_is_identical(tmp_path):
    root = make_project(tmp_path)
    build_project(root)
    first = (root / "_site" / "index.html").read_bytes()
    feed = (root / "_site" / "feed.xml").read_bytes()
    build_project(root)
    assert (root / "_site" / "index.html").read_bytes() == first
    assert (root / "_site" / "feed.xml").read_bytes() == feed


def test_build_project_without_posts_dir_fails(tmp_path):
    (tmp_path / "_config.yml").write_text("title: Empty\n", encoding="utf-8")
    with pytest.raises(ContentIOError):
        build_project(tmp_path)
    assert not (tmp_path / "_site").exists()


def test_load_config(tmp_path, caplog):
    config = load_config(tmp_path)
    assert config["title"] == DEFAULT_CONFIG["title"]
    assert config["ws_port"] == DEFAULT_CONFIG["port"] + 1

    (tmp_path / "_config.yml").write_text("title: Dev Notes\nport: 5000\n", encoding="utf-8")
    config = load_config(tmp_path)
    assert config["title"] == "Dev Notes"
    assert config["ws_port"] == 5001
    assert config["posts_dir"] == "_posts"

    (tmp_path / "_config.yml").write_text("- not\n- a mapping\n", encoding="utf-8")
    assert load_config(tmp_path)["title"] == DEFAULT_CONFIG["title"]
    assert "expected key/value pairs" in caplog.text

    (tmp_path / "_config.yml").write_text("title: [unclosed\n", encoding="utf-8")
    with pytest.raises(BuildError) as excinfo:
        load_config(tmp_path)
    assert excinfo.value.source_path == tmp_path / "_config.yml"
