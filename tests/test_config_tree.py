from __future__ import annotations

from flowio_console.services.config_tree import (
    ConfigTreeCache,
    cache_key,
    normalize_children,
    normalize_path,
)


def test_normalize_path_strips_spaces_and_slashes() -> None:
    assert normalize_path("  /pool/ph/ ") == "pool/ph"
    assert normalize_path("") == ""
    assert cache_key("/") == "__root__"
    assert cache_key("pool") == "pool"


def test_normalize_children_dedupes_and_sorts_case_sensitively() -> None:
    raw = ["b", "/a/", "", None, 3, "B", "a", "  "]

    assert normalize_children(raw) == ("B", "a", "b")


async def test_fetch_children_uses_cache_until_forced(device, api) -> None:
    device.route("GET", "/api/flowcfg/children", {"ok": True, "children": ["pool", "mqtt"]})
    device.route(
        "GET",
        "/api/flowcfg/children",
        {"ok": True, "children": ["pool", "mqtt", "wifi"], "has_exact": False},
    )
    cache = ConfigTreeCache(api)

    first = await cache.fetch_children("")
    cached = await cache.fetch_children("/")
    reloaded = await cache.fetch_children("", force_reload=True)

    assert first.children == ("mqtt", "pool")
    assert cached is first
    assert reloaded.children == ("mqtt", "pool", "wifi")
    assert len(device.calls("GET", "/api/flowcfg/children")) == 2
    assert cache.get("") is reloaded


async def test_invalidate_all_drops_every_branch(device, api) -> None:
    device.route("GET", "/api/flowcfg/children", {"ok": True, "children": ["ph"], "has_exact": True})
    cache = ConfigTreeCache(api)
    await cache.fetch_children("")
    await cache.fetch_children("pool")
    assert len(cache) == 2

    cache.invalidate_all()
    await cache.fetch_children("pool")

    assert len(cache) == 1
    assert "pool" in cache
    assert "" not in cache
    assert len(device.calls("GET", "/api/flowcfg/children")) == 3


async def test_fetch_children_records_exact_module_flag(device, api) -> None:
    device.route("GET", "/api/flowcfg/children", {"ok": True, "children": [], "has_exact": 1})
    cache = ConfigTreeCache(api)

    node = await cache.fetch_children("pool/ph/")

    assert node.prefix == "pool/ph"
    assert node.has_exact_module is True
    assert node.children == ()
