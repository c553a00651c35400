from __future__ import annotations

from enum import Enum
from typing import Any

# Raw bytes kept on a ProtocolError for diagnosis
RAW_PREVIEW_LIMIT = 200


class ErrorCode(str, Enum):
    CONNECTION_FAILED = "CONNECTION_FAILED"
    SPAWN_FAILED = "SPAWN_FAILED"
    MALFORMED_FRAME = "MALFORMED_FRAME"
    FRAME_TOO_LARGE = "FRAME_TOO_LARGE"
    UNKNOWN_FRAME_TYPE = "UNKNOWN_FRAME_TYPE"
    UNEXPECTED_FRAME = "UNEXPECTED_FRAME"
    HANDSHAKE_TIMEOUT = "HANDSHAKE_TIMEOUT"
    CANVAS_EXITED = "CANVAS_EXITED"
    UNKNOWN_CANVAS = "UNKNOWN_CANVAS"
    NAVIGATION_LIMIT = "NAVIGATION_LIMIT"
    APPLICATION_ERROR = "APPLICATION_ERROR"


class CanvasError(Exception):
    def __init__(self, message: str, error_code: ErrorCode, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Payload for a synthesized ``error`` frame."""
        payload: dict[str, Any] = {
            "message": str(self),
            "code": self.error_code.value,
        }
        if self.details:
            payload["data"] = self.details
        return payload


class CanvasConnectionError(CanvasError):
    def __init__(self, message: str | None = None, error_code: ErrorCode = ErrorCode.CONNECTION_FAILED):
        msg = message or "Could not connect to canvas host"
        super().__init__(msg, error_code)


class ProtocolError(CanvasError):
    def __init__(
        self,
        message: str | None = None,
        error_code: ErrorCode = ErrorCode.MALFORMED_FRAME,
        raw: bytes | None = None,
    ):
        msg = message or "Malformed frame"
        self.raw = raw[:RAW_PREVIEW_LIMIT] if raw is not None else None
        details = {"raw": self.raw.decode("utf-8", errors="replace")} if self.raw is not None else None
        super().__init__(msg, error_code, details)


class ApplicationError(CanvasError):
    def __init__(self, message: str | None = None, data: Any = None):
        msg = message or "Canvas reported an error"
        super().__init__(msg, ErrorCode.APPLICATION_ERROR, {"data": data} if data is not None else None)
        self.data = data


class UnknownCanvasError(CanvasError):
    def __init__(self, kind: str, requested_by: str | None = None):
        details = {"kind": kind}
        if requested_by is not None:
            details["requestedBy"] = requested_by
        super().__init__(f"Unknown canvas kind: {kind}", ErrorCode.UNKNOWN_CANVAS, details)
        self.kind = kind
        self.requested_by = requested_by


__all__ = [
    "ErrorCode",
    "CanvasError",
    "CanvasConnectionError",
    "ProtocolError",
    "ApplicationError",
    "UnknownCanvasError",
]
