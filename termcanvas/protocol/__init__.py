"""
Canvas wire protocol.

Frames, payload schemas and the line-delimited JSON codec shared by the
host and the canvas client library.
"""

from .codec import FRAME_DELIMITER, MAX_FRAME_SIZE, FrameDecoder, decode_record, encode_frame
from .frames import (
    CONNECTION_LOST_REASON,
    NAVIGATE_ACTION,
    TERMINAL_FRAME_TYPES,
    Frame,
    FrameType,
    navigation_target,
)

__all__ = [
    "Frame",
    "FrameType",
    "TERMINAL_FRAME_TYPES",
    "NAVIGATE_ACTION",
    "CONNECTION_LOST_REASON",
    "navigation_target",
    "FRAME_DELIMITER",
    "MAX_FRAME_SIZE",
    "FrameDecoder",
    "decode_record",
    "encode_frame",
]
