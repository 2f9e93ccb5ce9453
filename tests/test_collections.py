from pathlib import PurePosixPath

import pytest

from weaving.collections import PageRegistry, TagIndex
from weaving.content import Page
from weaving.errors import OutputCollision
from weaving.utils import output_path_for_route


def _page(source: str, route: str, tags=(), published=None, title=None):
    return Page(
        title=title or source,
        tags=tuple(tags),
        body_source="",
        source_path=PurePosixPath(source),
        route=route,
        output_path=output_path_for_route(route),
        published=published,
    )


def test_tag_index_maps_tags_to_identifiers():
    pages = [
        _page("a.md", "/a/", tags=["x", "y"]),
        _page("b.md", "/b/", tags=["x"]),
        _page("c.md", "/c/"),
    ]
    index = TagIndex(pages)
    assert index["x"] == frozenset({"a.md", "b.md"})
    assert index["y"] == frozenset({"a.md"})
    assert index.lookup("missing") == frozenset()
    assert set(index) == {"x", "y"}


def test_registry_lookup_and_iteration_order():
    registry = PageRegistry()
    registry.add(_page("b.md", "/b/", tags=["t"]))
    registry.add(_page("a.md", "/a/", tags=["t"]))
    registry.freeze()
    assert [p.identifier for p in registry] == ["b.md", "a.md"]
    assert len(registry) == 2
    assert "a.md" in registry
    assert registry.get("a.md").route == "/a/"
    assert registry.get("zzz.md") is None
    assert registry.by_tag("t") == frozenset({"a.md", "b.md"})
    assert registry.by_tag("unknown") == frozenset()
    assert [p.route for p in registry.pages_with_tag("t")] == ["/a/", "/b/"]


def test_registry_rejects_output_collisions():
    registry = PageRegistry([_page("a.md", "/a/")])
    with pytest.raises(OutputCollision) as exc:
        registry.add(_page("a/index.md", "/a/"))
    assert "a/index.html" in exc.value.message


def test_registry_is_read_only_after_freeze():
    registry = PageRegistry([_page("a.md", "/a/")])
    registry.freeze()
    with pytest.raises(RuntimeError):
        registry.add(_page("b.md", "/b/"))


def test_tags_context_lists_summaries_sorted_by_route():
    registry = PageRegistry(
        [
            _page("z.md", "/z/", tags=["news"], title="Zed"),
            _page("a.md", "/a/", tags=["news", "misc"], title="Ay"),
        ]
    )
    registry.freeze()
    tags = registry.tags_context()
    assert list(tags) == ["misc", "news"]
    assert [s["title"] for s in tags["news"]] == ["Ay", "Zed"]


def test_content_map_groups_sections_newest_first():
    registry = PageRegistry(
        [
            _page("index.md", "/"),
            _page("about.md", "/about/"),
            _page("posts/index.md", "/posts/"),
            _page("posts/old.md", "/posts/old/", published="2023-01-01"),
            _page("posts/new.md", "/posts/new/", published="2024-01-01"),
        ]
    )
    registry.freeze()
    content = registry.content_map(exclude_route="/posts/new/")
    assert [s["route"] for s in content["posts"]] == ["/posts/old/"]
    assert [s["route"] for s in content["about"]] == ["/about/"]
    assert [s["route"] for s in content["/"]] == ["/"]

    content = registry.content_map()
    assert [s["route"] for s in content["posts"]] == ["/posts/new/", "/posts/old/"]
