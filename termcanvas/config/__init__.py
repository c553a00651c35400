"""Host configuration."""

from .loader import invalidate_config_cache, load_config
from .schema import HostConfig

__all__ = [
    "HostConfig",
    "load_config",
    "invalidate_config_cache",
]
