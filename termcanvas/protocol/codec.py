"""
Line-delimited JSON framing for canvas frames.

Each frame is a single JSON object followed by ``\\n``. JSON serialization
escapes newlines inside strings, so the newline is always a frame boundary.

Decoding is incremental: feed arbitrary chunks, then pull complete frames.
A malformed record is consumed before ``ProtocolError`` is raised, so the
next call continues with the following record.
"""
from __future__ import annotations

import json
from typing import Iterator

from pydantic import ValidationError

from ..errors import ErrorCode, ProtocolError
from .frames import Frame, FrameType

FRAME_DELIMITER = b"\n"
MAX_FRAME_SIZE = 1024 * 1024  # 1 MiB

_FRAME_TYPES = {t.value for t in FrameType}


def encode_frame(frame: Frame) -> bytes:
    """Serialize a frame to its wire form (including the delimiter)."""
    return frame.model_dump_json().encode("utf-8") + FRAME_DELIMITER


def decode_record(record: bytes) -> Frame:
    """
    Decode one record (without delimiter).

    Raises:
        ProtocolError: invalid JSON, non-object record, unknown type or
            missing required payload fields
    """
    try:
        data = json.loads(record.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(f"Invalid JSON: {e}", raw=record) from e

    if not isinstance(data, dict):
        raise ProtocolError("Frame must be a JSON object", raw=record)

    frame_type = data.get("type")
    if not isinstance(frame_type, str) or frame_type not in _FRAME_TYPES:
        raise ProtocolError(
            f"Unknown frame type: {frame_type!r}",
            error_code=ErrorCode.UNKNOWN_FRAME_TYPE,
            raw=record,
        )

    payload = data.get("payload")
    if payload is None:
        payload = {}

    try:
        return Frame(type=frame_type, payload=payload)
    except ValidationError as e:
        raise ProtocolError(f"Invalid {frame_type} frame: {e.errors()[0]['msg']}", raw=record) from e


class FrameDecoder:
    """
    Incremental frame decoder.

    Usage:
        decoder = FrameDecoder()
        decoder.feed(chunk)
        for frame in decoder.frames():
            ...
    """

    def __init__(self, max_frame_size: int = MAX_FRAME_SIZE):
        self.max_frame_size = max_frame_size
        self._buffer = bytearray()
        self._discarding = False

    @property
    def buffered(self) -> int:
        """Number of bytes waiting for a delimiter"""
        return len(self._buffer)

    def feed(self, data: bytes) -> None:
        self._buffer.extend(data)

    def next_frame(self) -> Frame | None:
        """
        Pop the next complete frame.

        Returns:
            The next frame, or None if no complete frame is buffered

        Raises:
            ProtocolError: the next record is malformed or too large; it has
                already been dropped from the buffer
        """
        while True:
            index = self._buffer.find(FRAME_DELIMITER)

            if index < 0:
                if len(self._buffer) > self.max_frame_size and not self._discarding:
                    raw = bytes(self._buffer)
                    self._buffer.clear()
                    self._discarding = True
                    raise ProtocolError(
                        f"Frame exceeds {self.max_frame_size} bytes",
                        error_code=ErrorCode.FRAME_TOO_LARGE,
                        raw=raw,
                    )
                if self._discarding:
                    self._buffer.clear()
                return None

            record = bytes(self._buffer[:index])
            del self._buffer[: index + 1]

            # Tail of an oversized record that was already reported
            if self._discarding:
                self._discarding = False
                continue

            if not record.strip():
                continue

            if len(record) > self.max_frame_size:
                raise ProtocolError(
                    f"Frame exceeds {self.max_frame_size} bytes",
                    error_code=ErrorCode.FRAME_TOO_LARGE,
                    raw=record,
                )

            return decode_record(record)

    def frames(self) -> Iterator[Frame]:
        """Yield every complete frame currently buffered."""
        while True:
            frame = self.next_frame()
            if frame is None:
                return
            yield frame

    def reset(self) -> None:
        self._buffer.clear()
        self._discarding = False


__all__ = [
    "FRAME_DELIMITER",
    "MAX_FRAME_SIZE",
    "encode_frame",
    "decode_record",
    "FrameDecoder",
]
