import os
from pathlib import Path, PurePosixPath

import pytest

from weaving.content import ContentScanner, Page, PageBuilder
from weaving.errors import ErrorKind, MalformedFrontmatter, MissingRequiredField, ScanError
from weaving.extractors import parse_frontmatter, split_frontmatter


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_parse_frontmatter_splits_metadata_and_body():
    text = "---\ntitle: Hello\ntags: [a, b]\nauthor: Sam\n---\n# Hi\n\nBody text.\n"
    metadata, body = parse_frontmatter(text)
    assert metadata.title == "Hello"
    assert metadata.tags == ("a", "b")
    assert metadata.user == {"author": "Sam"}
    assert body == "# Hi\n\nBody text.\n"


def test_parse_frontmatter_keeps_body_verbatim_and_normalises_crlf():
    text = "---\r\ntitle: T\r\ntags: []\r\n---\r\n\n  indented\n---\nnot frontmatter\n"
    metadata, body = parse_frontmatter(text)
    assert metadata.tags == ()
    assert body == "\n  indented\n---\nnot frontmatter\n"


def test_parse_frontmatter_optional_fields_and_nested_user_values():
    text = (
        "---\n"
        "title: Post\n"
        "tags: [x]\n"
        "keywords: [k1]\n"
        "description: Desc\n"
        "template: post\n"
        "emit: false\n"
        "published: 2024-03-01\n"
        "series:\n"
        "  name: Intro\n"
        "  parts: [1, 2]\n"
        "---\n"
        "body\n"
    )
    metadata, _ = parse_frontmatter(text)
    assert metadata.keywords == ("k1",)
    assert metadata.description == "Desc"
    assert metadata.template == "post"
    assert metadata.emit is False
    assert metadata.published == "2024-03-01"
    assert metadata.user == {"series": {"name": "Intro", "parts": [1, 2]}}


@pytest.mark.parametrize(
    "text, missing",
    [
        ("---\ntags: []\n---\nbody", "title"),
        ("---\ntitle: T\n---\nbody", "tags"),
        ("---\ntitle: T\ntags:\n---\nbody", "tags"),
        ("no frontmatter at all", "title"),
    ],
)
def test_parse_frontmatter_reports_missing_required_field(text, missing):
    with pytest.raises(MissingRequiredField) as exc:
        parse_frontmatter(text, Path("post.md"))
    assert exc.value.field == missing
    assert exc.value.kind is ErrorKind.MISSING_REQUIRED_FIELD
    assert exc.value.path == Path("post.md")


@pytest.mark.parametrize(
    "text",
    [
        "---\ntitle: T\ntags: []\nbody without closing marker\n",
        "---\ntitle: [unclosed\n---\nbody",
        "---\n- just\n- a list\n---\nbody",
        "---\ntitle: T\ntags: notalist\n---\nbody",
        "---\ntitle: T\ntags: []\nemit: \"false\"\n---\nbody",
    ],
)
def test_parse_frontmatter_rejects_malformed_blocks(text):
    with pytest.raises(MalformedFrontmatter) as exc:
        parse_frontmatter(text, Path("bad.md"))
    assert exc.value.path == Path("bad.md")


def test_split_frontmatter_without_marker_returns_whole_text():
    assert split_frontmatter("# Just markdown\n") == ({}, "# Just markdown\n")


def test_scanner_yields_markdown_files_in_sorted_order(tmp_path):
    root = tmp_path / "content"
    _write(root / "b.md", "x")
    _write(root / "a.md", "x")
    _write(root / "posts" / "z.md", "x")
    _write(root / "posts" / "notes.txt", "x")
    scanner = ContentScanner(root)
    found = [p.relative_to(root).as_posix() for p in scanner.scan()]
    assert found == ["a.md", "b.md", "posts/z.md"]
    # Each scan walks the tree again.
    _write(root / "c.md", "x")
    assert len(list(scanner.scan())) == 4


def test_scanner_applies_excludes(tmp_path):
    root = tmp_path / "content"
    _write(root / "keep.md", "x")
    _write(root / "drafts" / "skip.md", "x")
    _write(root / "scratch.md", "x")
    scanner = ContentScanner(root, excludes=["drafts", "scratch*"])
    found = [p.name for p in scanner.scan()]
    assert found == ["keep.md"]

    scanner = ContentScanner(root, excludes=["content/drafts/*"], exclude_base=tmp_path)
    assert [p.name for p in scanner.scan()] == ["keep.md", "scratch.md"]


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
def test_scanner_does_not_follow_symlinked_directories(tmp_path):
    root = tmp_path / "content"
    _write(root / "index.md", "x")
    (root / "loop").symlink_to(root, target_is_directory=True)
    found = [p.relative_to(root).as_posix() for p in ContentScanner(root).scan()]
    assert found == ["index.md"]


def test_scanner_missing_root_raises_scan_error(tmp_path):
    with pytest.raises(ScanError) as exc:
        ContentScanner(tmp_path / "nope").scan()
    assert exc.value.kind is ErrorKind.IO_FAILURE


def test_page_builder_derives_route_output_and_dates(tmp_path):
    root = tmp_path / "content"
    path = _write(
        root / "posts" / "hello.md",
        "---\ntitle: Hello\ntags: [intro]\npublished: 2024-01-02T03:04:05+00:00\n---\n# Hi\n",
    )
    page = PageBuilder(root).build(path)
    assert page.identifier == "posts/hello.md"
    assert page.source_path == PurePosixPath("posts/hello.md")
    assert page.route == "/posts/hello/"
    assert page.output_path == PurePosixPath("posts/hello/index.html")
    assert page.published == "2024-01-02T03:04:05+00:00"
    assert page.last_updated == page.published
    assert page.body_source == "# Hi\n"


def test_page_builder_falls_back_to_file_mtime(tmp_path):
    root = tmp_path / "content"
    path = _write(root / "index.md", "---\ntitle: Home\ntags: []\n---\n")
    os.utime(path, (1_700_000_000, 1_700_000_000))
    page = PageBuilder(root).build(path)
    assert page.route == "/"
    assert page.output_path == PurePosixPath("index.html")
    assert page.published == "2023-11-14T22:13:20+00:00"
    assert page.last_updated == page.published


def test_page_to_context_exposes_body_toc_and_user():
    page = Page(
        title="T",
        tags=("a",),
        body_source="",
        source_path=PurePosixPath("t.md"),
        route="/t/",
        output_path=PurePosixPath("t/index.html"),
        user={"author": "Sam"},
    )
    context = page.to_context("<p>x</p>")
    assert context["body"] == "<p>x</p>"
    assert context["route"] == "/t/"
    assert context["user"] == {"author": "Sam"}
    assert context["tags"] == ["a"]
    assert context["toc"] == []
