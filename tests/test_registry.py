"""Unit tests for the canvas registry"""

import json

import pytest

from termcanvas.errors import UnknownCanvasError
from termcanvas.host import CanvasRegistry, RegistryEntry, build_registry
from termcanvas.host.registry import CANVAS_TABLE


class TestRegistryEntry:
    """Test spawn argv construction"""

    def test_build_argv(self):
        entry = RegistryEntry(kind="weather", command=("canvas", "show", "weather"), default_scenario="weather")
        argv = entry.build_argv("weather-1", "/tmp/canvas-weather-1.sock", config={"location": "Berlin"})

        assert argv[:3] == ["canvas", "show", "weather"]
        assert argv[argv.index("--id") + 1] == "weather-1"
        assert argv[argv.index("--socket") + 1] == "/tmp/canvas-weather-1.sock"
        assert argv[argv.index("--scenario") + 1] == "weather"
        assert json.loads(argv[argv.index("--config") + 1]) == {"location": "Berlin"}

    def test_build_argv_without_config(self):
        entry = RegistryEntry(kind="calendar", command=("cal",))
        argv = entry.build_argv("c-1", "/tmp/c.sock", scenario="meeting-picker")
        assert "--config" not in argv
        assert argv[argv.index("--scenario") + 1] == "meeting-picker"


class TestCanvasRegistry:
    """Test lookups"""

    def test_duplicate_kind(self):
        entry = RegistryEntry(kind="a", command=("a",))
        with pytest.raises(ValueError):
            CanvasRegistry([entry, entry])

    def test_require_unknown(self):
        registry = CanvasRegistry([RegistryEntry(kind="a", command=("a",))])
        with pytest.raises(UnknownCanvasError) as exc_info:
            registry.require("b")
        assert exc_info.value.kind == "b"

    def test_membership(self):
        registry = CanvasRegistry([RegistryEntry(kind="a", command=("a",))])
        assert "a" in registry
        assert "b" not in registry
        assert len(registry) == 1
        assert registry.get("b") is None


class TestBuildRegistry:
    """Test the built-in canvas table"""

    def test_all_kinds(self):
        registry = build_registry(["canvas", "show"])
        assert len(registry) == len(CANVAS_TABLE)
        assert registry.require("weather").command == ("canvas", "show", "weather")
        assert registry.require("weather").default_scenario == "weather"
        assert registry.require("calendar").default_scenario == "display"

    def test_overrides(self):
        registry = build_registry(["canvas", "show"], {"system": ["/opt/sysmon", "--tui"], "bogus": ["x"]})
        assert registry.require("system").command == ("/opt/sysmon", "--tui")
        assert "bogus" not in registry

    def test_shortcuts(self):
        registry = build_registry(["canvas", "show"])
        assert registry.by_shortcut("5").kind == "system"
        assert registry.by_shortcut("=").kind == "calculator"
        assert registry.by_shortcut("?") is None

    def test_shortcuts_unique(self):
        keys = [row[2] for row in CANVAS_TABLE if row[2]]
        assert len(keys) == len(set(keys))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
