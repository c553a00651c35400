"""Configuration loader for the canvas host.

Loads configuration from a JSON5 file and environment variables:
- JSON5 parsing (comments, trailing commas, unquoted keys)
- ${ENV_VAR} substitution inside string values
- TERMCANVAS_* environment overrides (a local .env file is honored)
"""

from __future__ import annotations

import logging
import os
import re
import shlex
from pathlib import Path
from typing import Any, Optional

import json5
from dotenv import load_dotenv

from .schema import HostConfig

logger = logging.getLogger(__name__)

_cached_config: Optional[HostConfig] = None

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")

# environment variable -> (config key, converter)
ENV_OVERRIDES: dict[str, tuple[str, Any]] = {
    "TERMCANVAS_SOCKET_DIR": ("socket_dir", str),
    "TERMCANVAS_CANVAS_COMMAND": ("canvas_command", shlex.split),
    "TERMCANVAS_CONNECT_TIMEOUT": ("connect_timeout_s", float),
    "TERMCANVAS_EXIT_GRACE": ("exit_grace_s", float),
    "TERMCANVAS_LOG_LEVEL": ("log_level", str),
    "TERMCANVAS_LOG_FILE": ("log_file", str),
}


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively replace ${VAR} with os.environ values (unknown vars are left as-is)."""
    if isinstance(obj, str):
        def _replace(m: re.Match) -> str:
            return os.environ.get(m.group(1), m.group(0))

        return _ENV_VAR_RE.sub(_replace, obj)
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(v) for v in obj]
    return obj


def _apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    result = dict(config_dict)
    for env_name, (key, convert) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is None or value == "":
            continue
        try:
            result[key] = convert(value)
        except ValueError as exc:
            logger.warning(f"Ignoring {env_name}={value!r}: {exc}")
    return result


def _search_paths() -> list[Path]:
    """Project file first, then the per-user file"""
    user_dir = Path.home() / ".termcanvas"
    return [
        Path.cwd() / "termcanvas.json",
        Path.cwd() / "termcanvas.json5",
        user_dir / "config.json",
        user_dir / "config.json5",
    ]


def _find_config_file(config_path: Optional[str | Path]) -> Optional[Path]:
    if config_path:
        return Path(config_path)
    return next((p for p in _search_paths() if p.is_file()), None)


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse a JSON5 config file and expand ${VAR} references."""
    parsed = json5.loads(path.read_text(encoding="utf-8"))
    if not isinstance(parsed, dict):
        raise ValueError(f"{path} must contain an object")
    return _substitute_env_vars(parsed)


def load_config(config_path: Optional[str | Path] = None, use_cache: bool = True) -> HostConfig:
    """Load the host configuration.

    Args:
        config_path: Optional path to a config file. Supports JSON5.
        use_cache: Return the cached configuration if one was loaded before.

    Returns:
        Validated HostConfig. Falls back to defaults when the file cannot be
        read or does not validate.
    """
    global _cached_config

    if use_cache and _cached_config is not None:
        return _cached_config

    load_dotenv()

    config_dict: dict[str, Any] = {}
    path = _find_config_file(config_path)

    if path and path.exists():
        try:
            config_dict = read_config_file(path)
            logger.debug(f"Loaded config from {path}")
        except (OSError, ValueError) as exc:
            logger.warning(f"Failed to load config from {path}: {exc}")
    elif config_path:
        logger.warning(f"Config file not found: {config_path}")

    config_dict = _apply_env_overrides(config_dict)

    try:
        config_obj = HostConfig(**config_dict)
    except ValueError as exc:
        logger.warning(f"Failed to parse config: {exc}")
        config_obj = HostConfig()

    _cached_config = config_obj
    return config_obj


def invalidate_config_cache() -> None:
    """Forget the cached HostConfig; the next load_config() reads the file again."""
    global _cached_config
    _cached_config = None


__all__ = [
    "ENV_OVERRIDES",
    "load_config",
    "read_config_file",
    "invalidate_config_cache",
]
