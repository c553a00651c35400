"""termcanvas - host controller for full-screen terminal canvases.

The host launches each canvas as its own process and talks to it over a
private Unix socket: the canvas reports ``ready``, any number of
``alert``s, and exactly one terminal frame (``selected``, ``cancelled`` or
``error``).
"""

__version__ = "0.1.0"

from .errors import (
    ApplicationError,
    CanvasConnectionError,
    CanvasError,
    ErrorCode,
    ProtocolError,
    UnknownCanvasError,
)
from .protocol import Frame, FrameType

__all__ = [
    "__version__",
    "Frame",
    "FrameType",
    "ErrorCode",
    "CanvasError",
    "CanvasConnectionError",
    "ProtocolError",
    "ApplicationError",
    "UnknownCanvasError",
]
