from __future__ import annotations

from rn_ios_simulator_mcp.registry import ToolRegistry, ToolSpec


async def _noop(args):
    return "ok"


def _spec(name: str, category: str = "simulator", description: str = "") -> ToolSpec:
    return ToolSpec(name=name, description=description or name, handler=_noop, category=category)


def test_duplicate_registration_overwrites() -> None:
    registry = ToolRegistry()
    registry.register(_spec("a", description="first"))
    registry.register(_spec("b"))
    registry.register(_spec("a", description="second"))

    assert registry.count() == 2
    assert registry.has("a")
    assert not registry.has("c")
    assert registry.get("a").description == "second"


def test_get_returns_registered_name() -> None:
    registry = ToolRegistry()
    registry.register_all([_spec("boot_simulator"), _spec("tap_coordinates", "ui-automation")])

    for name in ("boot_simulator", "tap_coordinates"):
        assert registry.get(name).name == name
    assert registry.get("missing") is None


def test_filter_by_category_and_categories() -> None:
    registry = ToolRegistry()
    registry.register_all([
        _spec("boot_simulator"),
        _spec("shutdown_simulator"),
        _spec("tap_coordinates", "ui-automation"),
    ])

    assert [t.name for t in registry.by_category("simulator")] == ["boot_simulator", "shutdown_simulator"]
    assert registry.by_category("testing") == []
    assert registry.categories() == ["simulator", "ui-automation"]


def test_unregister() -> None:
    registry = ToolRegistry()
    registry.register(_spec("a"))

    assert registry.unregister("a")
    assert not registry.unregister("a")
    assert len(registry) == 0
    assert "a" not in registry


def test_definition_uses_wire_field_names() -> None:
    definition = _spec("a").to_definition()
    assert definition == {
        "name": "a",
        "description": "a",
        "inputSchema": {"type": "object", "properties": {}},
    }
