"""
Pytest configuration for termcanvas tests

Shared fixtures for tests that launch real canvas processes.
"""
import shutil
import sys
import tempfile
from pathlib import Path

import pytest

from termcanvas.config import HostConfig, invalidate_config_cache
from termcanvas.host import CanvasRegistry, RegistryEntry

ROOT = Path(__file__).resolve().parent.parent
FIXTURES = Path(__file__).resolve().parent / "fixtures"
FAKE_CANVAS = str(FIXTURES / "fake_canvas.py")
RAW_CANVAS = str(FIXTURES / "raw_canvas.py")


@pytest.fixture
def socket_dir():
    # Unix socket paths are limited to ~104 bytes, so stay out of tmp_path
    path = Path(tempfile.mkdtemp(prefix="tc-"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def host_config(socket_dir, monkeypatch):
    monkeypatch.setenv("PYTHONPATH", str(ROOT))
    return HostConfig(socket_dir=socket_dir, connect_timeout_s=15.0, exit_grace_s=2.0)


@pytest.fixture(autouse=True)
def _fresh_config_cache():
    invalidate_config_cache()
    yield
    invalidate_config_cache()


def fake_entry(kind: str, scenario: str = "select") -> RegistryEntry:
    return RegistryEntry(
        kind=kind,
        command=(sys.executable, FAKE_CANVAS, "show", kind),
        default_scenario=scenario,
        name=kind.title(),
    )


def raw_entry(kind: str, scenario: str) -> RegistryEntry:
    return RegistryEntry(kind=kind, command=(sys.executable, RAW_CANVAS, scenario))


def script_entry(kind: str, source: str) -> RegistryEntry:
    return RegistryEntry(kind=kind, command=(sys.executable, "-c", source))


def make_registry(*entries: RegistryEntry) -> CanvasRegistry:
    return CanvasRegistry(list(entries))
