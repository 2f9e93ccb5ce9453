from pathlib import Path, PurePosixPath

import pytest

from weaving import executable_utils
from weaving.build import build
from weaving.config import load_config
from weaving.errors import ErrorKind, OutputCollision, ScanError

LAYOUT = "<html><head><title>{{ page.title }}</title></head><body>{{ page.body | raw }}</body></html>\n"


def _make_site(root: Path, pages: dict[str, str], layout: str = LAYOUT, config: str = "") -> Path:
    (root / "templates").mkdir(parents=True, exist_ok=True)
    (root / "templates" / "default.liquid").write_text(layout, encoding="utf-8")
    for rel, text in pages.items():
        path = root / "content" / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    if config:
        (root / "weaving.toml").write_text(config, encoding="utf-8")
    return root


def _files(directory: Path) -> dict[str, bytes]:
    return {
        p.relative_to(directory).as_posix(): p.read_bytes()
        for p in sorted(directory.rglob("*"))
        if p.is_file()
    }


def test_build_renders_page_with_title_and_body(tmp_path):
    _make_site(tmp_path, {"index.md": "---\ntitle: Hello\ntags: []\n---\n# Hi\n"})
    report = build(load_config(tmp_path))
    assert report.ok
    assert report.pages_built == 1
    html = (tmp_path / "site" / "index.html").read_text(encoding="utf-8")
    assert "<title>Hello</title>" in html
    assert "<h1>Hi</h1>" in html
    assert tmp_path / "site" / "index.html" in report.written


def test_build_isolates_page_failures(tmp_path):
    _make_site(
        tmp_path,
        {
            "good.md": "---\ntitle: Good\ntags: []\n---\ngood\n",
            "bad.md": "---\ntags: []\n---\nno title\n",
            "broken.md": "---\ntitle: [oops\n---\n",
            "notemplate.md": "---\ntitle: T\ntags: []\ntemplate: missing\n---\n",
        },
    )
    report = build(load_config(tmp_path))
    assert not report.ok
    assert report.pages_built == 1
    kinds = {error.path: error.kind for error in report.errors}
    assert kinds == {
        PurePosixPath("bad.md"): ErrorKind.MISSING_REQUIRED_FIELD,
        PurePosixPath("broken.md"): ErrorKind.MALFORMED_FRONTMATTER,
        PurePosixPath("notemplate.md"): ErrorKind.TEMPLATE_NOT_FOUND,
    }
    assert (tmp_path / "site" / "good" / "index.html").exists()
    assert not (tmp_path / "site" / "bad").exists()
    assert not (tmp_path / "site" / "notemplate").exists()


def test_build_render_error_is_reported_per_page(tmp_path):
    _make_site(
        tmp_path,
        {
            "a.md": "---\ntitle: A\ntags: []\nauthor: Sam\n---\n",
            "b.md": "---\ntitle: B\ntags: []\n---\n",
        },
        layout="{{ page.user.author }}",
    )
    report = build(load_config(tmp_path))
    assert [(e.path, e.kind) for e in report.errors] == [
        (PurePosixPath("b.md"), ErrorKind.TEMPLATE_RENDER_ERROR)
    ]
    assert (tmp_path / "site" / "a" / "index.html").read_text(encoding="utf-8") == "Sam"


def test_build_exposes_tag_index_to_templates(tmp_path):
    layout = "{% for p in tags.python %}{{ p.title }},{% endfor %}"
    _make_site(
        tmp_path,
        {
            "b.md": "---\ntitle: Bee\ntags: [python]\n---\n",
            "a.md": "---\ntitle: Ay\ntags: [python, web]\n---\n",
            "c.md": "---\ntitle: Sea\ntags: [web]\n---\n",
        },
        layout=layout,
    )
    build(load_config(tmp_path))
    assert (tmp_path / "site" / "c" / "index.html").read_text(encoding="utf-8") == "Ay,Bee,"


def test_build_skips_pages_that_do_not_emit(tmp_path):
    _make_site(
        tmp_path,
        {
            "hidden.md": "---\ntitle: Hidden\ntags: [x]\nemit: false\n---\n",
            "shown.md": "---\ntitle: Shown\ntags: []\n---\n",
        },
        layout="{% for p in tags.x %}{{ p.title }}{% endfor %}",
    )
    report = build(load_config(tmp_path))
    assert report.pages_built == 1
    assert not (tmp_path / "site" / "hidden").exists()
    assert (tmp_path / "site" / "shown" / "index.html").read_text(encoding="utf-8") == "Hidden"


def test_build_is_idempotent(tmp_path):
    _make_site(
        tmp_path,
        {
            "index.md": "---\ntitle: Home\ntags: [a]\n---\n# Home\n",
            "posts/one.md": "---\ntitle: One\ntags: [a, b]\n---\n```python\nx = 1\n```\n",
        },
    )
    (tmp_path / "public").mkdir()
    (tmp_path / "public" / "style.css").write_text("body{}", encoding="utf-8")
    config = load_config(tmp_path)
    build(config)
    first = _files(config.build_dir)
    build(config)
    assert _files(config.build_dir) == first


def test_build_copies_static_directories_and_writes_feeds(tmp_path):
    _make_site(
        tmp_path,
        {"index.md": "---\ntitle: Home\ntags: []\n---\n"},
        config='base_url = "https://example.com"\n',
    )
    for name, filename in (("public", "style.css"), ("partials", "nav.liquid"), (".well-known", "security.txt")):
        (tmp_path / name).mkdir()
        (tmp_path / name / filename).write_text("x", encoding="utf-8")
    build(load_config(tmp_path))
    site = tmp_path / "site"
    assert (site / "public" / "style.css").exists()
    assert (site / "partials" / "nav.liquid").exists()
    assert (site / ".well-known" / "security.txt").exists()
    assert "<loc>https://example.com/</loc>" in (site / "sitemap.xml").read_text(encoding="utf-8")
    assert "<feed" in (site / "atom.xml").read_text(encoding="utf-8")


def test_build_without_base_url_writes_no_feeds(tmp_path):
    _make_site(
        tmp_path,
        {"index.md": "---\ntitle: Home\ntags: []\n---\n"},
        config='base_url = ""\n',
    )
    build(load_config(tmp_path))
    assert not (tmp_path / "site" / "sitemap.xml").exists()
    assert not (tmp_path / "site" / "atom.xml").exists()


def test_build_output_collision_is_fatal(tmp_path):
    _make_site(
        tmp_path,
        {
            "a.md": "---\ntitle: A\ntags: []\n---\n",
            "a/index.md": "---\ntitle: A index\ntags: []\n---\n",
        },
    )
    with pytest.raises(OutputCollision):
        build(load_config(tmp_path))


def test_build_missing_content_dir_is_fatal(tmp_path):
    with pytest.raises(ScanError):
        build(load_config(tmp_path))


def test_interactive_build_applies_watch_excludes_and_npm(monkeypatch, tmp_path):
    _make_site(
        tmp_path,
        {
            "index.md": "---\ntitle: Home\ntags: []\n---\n",
            "scratch/tmp.md": "---\ntitle: Scratch\ntags: []\n---\n",
        },
        config='[serve_config]\nwatch_excludes = ["scratch"]\nnpm_build = true\n',
    )
    calls = []
    monkeypatch.setattr("weaving.build.run_npm_build", lambda root: calls.append(root))
    config = load_config(tmp_path)

    report = build(config, interactive=True)
    assert report.pages_built == 1
    assert calls == [config.base_dir]

    report = build(config)
    assert report.pages_built == 2
    assert len(calls) == 1


def test_run_npm_build_without_npm_is_skipped(monkeypatch, tmp_path):
    monkeypatch.setattr(executable_utils, "find_executable", lambda name, root=None: None)
    assert executable_utils.run_npm_build(tmp_path) is False
