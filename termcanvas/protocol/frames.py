"""
Frame definitions

Pydantic models for the frames a canvas sends to its host. The frame
``type`` is validated strictly; payloads are validated only for the
fields each type requires, and unknown payload fields are kept.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


class FrameType(str, Enum):
    READY = "ready"
    SELECTED = "selected"
    CANCELLED = "cancelled"
    ERROR = "error"
    ALERT = "alert"


TERMINAL_FRAME_TYPES = frozenset({FrameType.SELECTED, FrameType.CANCELLED, FrameType.ERROR})

NAVIGATE_ACTION = "navigate"
CONNECTION_LOST_REASON = "connection lost"


# ============================================================================
# Payloads
# ============================================================================

class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")


class ReadyPayload(_Payload):
    """Payload for ready (no required fields)"""


class SelectedPayload(_Payload):
    """Payload for selected"""
    action: str = Field(..., description="What the user chose to do")


class NavigatePayload(SelectedPayload):
    """Payload for a navigation request"""
    canvas: str = Field(..., min_length=1, description="Canvas kind to open next")


class CancelledPayload(_Payload):
    """Payload for cancelled"""
    reason: str


class ErrorPayload(_Payload):
    """Payload for error"""
    message: str
    data: Optional[Any] = None


class AlertPayload(_Payload):
    """Payload for alert"""
    type: str
    message: str
    data: Optional[Any] = None


PAYLOAD_MODELS: dict[FrameType, type[_Payload]] = {
    FrameType.READY: ReadyPayload,
    FrameType.SELECTED: SelectedPayload,
    FrameType.CANCELLED: CancelledPayload,
    FrameType.ERROR: ErrorPayload,
    FrameType.ALERT: AlertPayload,
}


# ============================================================================
# Frame
# ============================================================================

class Frame(BaseModel):
    """One complete message on the wire"""
    model_config = ConfigDict(frozen=True)

    type: FrameType
    payload: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_payload(self) -> "Frame":
        PAYLOAD_MODELS[self.type].model_validate(self.payload)
        return self

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_FRAME_TYPES

    @property
    def is_navigation(self) -> bool:
        return navigation_target(self) is not None

    # Constructors mirroring the client send_* calls

    @classmethod
    def ready(cls) -> "Frame":
        return cls(type=FrameType.READY)

    @classmethod
    def selected(cls, payload: dict[str, Any]) -> "Frame":
        return cls(type=FrameType.SELECTED, payload=dict(payload))

    @classmethod
    def navigate(cls, kind: str) -> "Frame":
        return cls.selected({"action": NAVIGATE_ACTION, "canvas": kind})

    @classmethod
    def cancelled(cls, reason: str) -> "Frame":
        return cls(type=FrameType.CANCELLED, payload={"reason": reason})

    @classmethod
    def error(cls, message: str, data: Any = None, **extra: Any) -> "Frame":
        payload: dict[str, Any] = {"message": message, **extra}
        if data is not None:
            payload["data"] = data
        return cls(type=FrameType.ERROR, payload=payload)

    @classmethod
    def alert(cls, alert_type: str, message: str, data: Any = None) -> "Frame":
        payload: dict[str, Any] = {"type": alert_type, "message": message}
        if data is not None:
            payload["data"] = data
        return cls(type=FrameType.ALERT, payload=payload)


def navigation_target(frame: Frame) -> str | None:
    """Return the requested canvas kind if ``frame`` is a navigation request."""
    if frame.type != FrameType.SELECTED:
        return None
    if frame.payload.get("action") != NAVIGATE_ACTION:
        return None
    try:
        return NavigatePayload.model_validate(frame.payload).canvas
    except ValidationError:
        return None


__all__ = [
    "FrameType",
    "Frame",
    "TERMINAL_FRAME_TYPES",
    "NAVIGATE_ACTION",
    "CONNECTION_LOST_REASON",
    "ReadyPayload",
    "SelectedPayload",
    "NavigatePayload",
    "CancelledPayload",
    "ErrorPayload",
    "AlertPayload",
    "PAYLOAD_MODELS",
    "navigation_target",
]
