"""
Canvas client library.

Used inside canvas processes to talk to the host that launched them.
"""

from .canvas_client import CanvasClient
from .runtime import LaunchContext, create_canvas_app, run_canvas

__all__ = [
    "CanvasClient",
    "LaunchContext",
    "create_canvas_app",
    "run_canvas",
]
