"""
Canvas registry.

Static ``kind -> spawn descriptor`` table, built once when the host starts
and read-only afterwards. Navigation targets are validated against it.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Sequence

from ..errors import UnknownCanvasError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryEntry:
    """How to start one canvas kind"""

    kind: str
    command: tuple[str, ...]
    default_scenario: str = "display"
    name: str = ""
    description: str = ""
    shortcut: str | None = None

    def build_argv(
        self,
        session_id: str,
        socket_path: str,
        scenario: str | None = None,
        config: Mapping[str, Any] | None = None,
    ) -> list[str]:
        """Command line for one session of this canvas."""
        argv = [
            *self.command,
            "--id", session_id,
            "--socket", socket_path,
            "--scenario", scenario or self.default_scenario,
        ]
        if config:
            argv += ["--config", json.dumps(dict(config))]
        return argv

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "description": self.description,
            "shortcut": self.shortcut,
            "defaultScenario": self.default_scenario,
            "command": list(self.command),
        }


# (kind, name, shortcut, default scenario, description)
CANVAS_TABLE: tuple[tuple[str, str, str | None, str, str], ...] = (
    ("dashboard", "Dashboard", "1", "dashboard", "Unified view with all widgets"),
    ("calendar", "Calendar", "2", "display", "Date and time picker"),
    ("tracker", "Flight Tracker", "3", "tracker", "Real-time flight tracking"),
    ("weather", "Weather", "4", "weather", "Weather conditions & forecast"),
    ("system", "System", "5", "system", "CPU, memory, processes"),
    ("document", "Document", "6", "display", "Document viewer/editor"),
    ("pomodoro", "Pomodoro", "7", "pomodoro", "Focus timer with work/break cycles"),
    ("notes", "Notes", "8", "notes", "Quick notes scratchpad"),
    ("crypto", "Crypto", "9", "crypto", "Real-time crypto prices"),
    ("github", "GitHub", "0", "github", "PRs, issues & repo stats"),
    ("network", "Network", "n", "network", "Ping monitor & connectivity"),
    ("logs", "Logs", "l", "logs", "Real-time log file viewer"),
    ("process", "Process", "x", "process", "htop-like process manager"),
    ("database", "Database", "d", "database", "SQLite database viewer"),
    ("rss", "RSS", "r", "rss", "News feed reader"),
    ("chat", "AI Chat", "a", "chat", "Chat with AI assistant"),
    ("clipboard", "Clipboard", "b", "clipboard", "Clipboard history manager"),
    ("music", "Music", "m", "music", "Music player control"),
    ("files", "Files", "f", "files", "File browser with preview"),
    ("timer", "Timer", "t", "timer", "Stopwatch & countdown timer"),
    ("bookmarks", "Bookmarks", "k", "bookmarks", "URL bookmark manager"),
    ("colors", "Colors", "c", "colors", "Color picker with conversion"),
    ("calculator", "Calculator", "=", "calculator", "Calculator with history"),
    ("habits", "Habits", "h", "habits", "Habit tracking with streaks"),
    ("flight", "Flight", None, "booking", "Flight search and seat booking"),
    ("docker", "Docker", None, "docker", "Container overview"),
    ("json", "JSON", None, "json", "JSON explorer"),
    ("kanban", "Kanban", None, "kanban", "Kanban board"),
    ("markdown", "Markdown", None, "markdown", "Markdown viewer"),
    ("password", "Password", None, "password", "Password generator"),
    ("regex", "Regex", None, "regex", "Regex tester"),
    ("units", "Units", None, "units", "Unit converter"),
    ("worldclock", "World Clock", None, "worldclock", "Time across time zones"),
)


class CanvasRegistry:
    """Read-only mapping of canvas kinds to registry entries"""

    def __init__(self, entries: Sequence[RegistryEntry]):
        table: dict[str, RegistryEntry] = {}
        for entry in entries:
            if entry.kind in table:
                raise ValueError(f"Duplicate canvas kind: {entry.kind}")
            table[entry.kind] = entry
        self._entries: Mapping[str, RegistryEntry] = MappingProxyType(table)
        self._shortcuts: Mapping[str, str] = MappingProxyType(
            {e.shortcut: e.kind for e in entries if e.shortcut}
        )

    def __contains__(self, kind: object) -> bool:
        return kind in self._entries

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, kind: str) -> RegistryEntry | None:
        return self._entries.get(kind)

    def require(self, kind: str) -> RegistryEntry:
        """
        Look up a kind.

        Raises:
            UnknownCanvasError: kind is not registered
        """
        entry = self._entries.get(kind)
        if entry is None:
            raise UnknownCanvasError(kind)
        return entry

    def kinds(self) -> list[str]:
        return list(self._entries)

    def by_shortcut(self, key: str) -> RegistryEntry | None:
        """Entry bound to a navigator shortcut key."""
        kind = self._shortcuts.get(key)
        return self._entries[kind] if kind else None


def build_registry(
    canvas_command: Sequence[str],
    overrides: Mapping[str, Sequence[str]] | None = None,
) -> CanvasRegistry:
    """
    Build the registry from the fixed canvas table.

    Args:
        canvas_command: Base command; the kind is appended
            (``canvas show`` -> ``canvas show weather``)
        overrides: Per-kind full commands replacing the default

    Returns:
        Registry with every known canvas kind
    """
    overrides = overrides or {}
    unknown = set(overrides) - {row[0] for row in CANVAS_TABLE}
    if unknown:
        logger.warning(f"Ignoring command overrides for unknown canvases: {sorted(unknown)}")

    entries = []
    for kind, name, shortcut, scenario, description in CANVAS_TABLE:
        command = tuple(overrides.get(kind) or (*canvas_command, kind))
        entries.append(RegistryEntry(
            kind=kind,
            command=command,
            default_scenario=scenario,
            name=name,
            description=description,
            shortcut=shortcut,
        ))

    registry = CanvasRegistry(entries)
    logger.debug(f"Canvas registry built with {len(registry)} kinds")
    return registry


__all__ = [
    "RegistryEntry",
    "CanvasRegistry",
    "CANVAS_TABLE",
    "build_registry",
]
