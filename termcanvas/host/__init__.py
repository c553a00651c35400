"""
Canvas host.

Launches canvas processes, owns their sessions and sockets, and chains
sessions when a canvas requests navigation.
"""

from .manager import HostConnectionManager, SessionHandle
from .navigation import NavigationDispatcher
from .registry import CanvasRegistry, RegistryEntry, build_registry
from .session import CanvasSession, SessionOutcome, SessionState

__all__ = [
    "HostConnectionManager",
    "SessionHandle",
    "NavigationDispatcher",
    "CanvasRegistry",
    "RegistryEntry",
    "build_registry",
    "CanvasSession",
    "SessionOutcome",
    "SessionState",
]
