"""
Per-canvas session state machine.

    LISTENING -> CONNECTED -> ACTIVE -> TERMINATED

- LISTENING -> CONNECTED: the canvas connection was accepted
- CONNECTED -> ACTIVE: a ``ready`` frame arrived
- ACTIVE -> ACTIVE: ``alert`` frames, forwarded to the alert sink
- ACTIVE -> TERMINATED: the first ``selected``/``cancelled``/``error``
- any -> TERMINATED: handshake timeout, protocol error or connection loss,
  each with a synthesized terminal frame

TERMINATED is final. ``terminal_frame`` is set exactly once and every
frame that arrives afterwards is discarded.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from ..errors import ApplicationError, CanvasError, ErrorCode, ProtocolError
from ..protocol import CONNECTION_LOST_REASON, Frame, FrameType, navigation_target

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    LISTENING = "listening"
    CONNECTED = "connected"
    ACTIVE = "active"
    TERMINATED = "terminated"


AlertSink = Callable[["CanvasSession", Frame], None]


@dataclass
class SessionOutcome:
    """
    What the host's caller observes when a session ends.

    ``synthesized`` is True when the host produced the terminal frame
    itself (timeout, protocol error, connection loss, unknown kind).
    """

    session_id: str
    kind: str
    frame: Frame
    synthesized: bool = False
    returncode: Optional[int] = None

    @property
    def status(self) -> str:
        return self.frame.type.value

    @property
    def is_navigation(self) -> bool:
        return self.navigation_target is not None

    @property
    def navigation_target(self) -> str | None:
        return navigation_target(self.frame)

    @property
    def error_code(self) -> str | None:
        if self.frame.type != FrameType.ERROR:
            return None
        code = self.frame.payload.get("code")
        return code if isinstance(code, str) else ErrorCode.APPLICATION_ERROR.value

    @property
    def requested_by(self) -> str | None:
        """Kind of the canvas whose navigation request produced this error"""
        if self.frame.type != FrameType.ERROR:
            return None
        data = self.frame.payload.get("data")
        return data.get("requestedBy") if isinstance(data, dict) else None

    @property
    def exit_code(self) -> int:
        """
        Process exit code for a CLI host.

        2 is reserved for an unknown kind given at launch; an unknown
        navigation target comes from the canvas and is an error (3).
        """
        if self.frame.type == FrameType.SELECTED:
            return 0
        if self.frame.type == FrameType.CANCELLED:
            return 1
        if self.error_code == ErrorCode.UNKNOWN_CANVAS.value and self.requested_by is None:
            return 2
        return 3

    def raise_for_error(self) -> None:
        """
        Raise if the session ended in error.

        Raises:
            ApplicationError: the canvas sent an ``error`` frame
            CanvasError: the host synthesized the error
        """
        if self.frame.type != FrameType.ERROR:
            return
        message = self.frame.payload.get("message", "")
        data = self.frame.payload.get("data")
        if not self.synthesized:
            raise ApplicationError(message, data)
        try:
            code = ErrorCode(self.error_code)
        except ValueError:
            code = ErrorCode.APPLICATION_ERROR
        raise CanvasError(message, code, data if isinstance(data, dict) else None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "kind": self.kind,
            "status": self.status,
            "payload": self.frame.payload,
            "synthesized": self.synthesized,
            "returncode": self.returncode,
        }


class CanvasSession:
    """
    State of one launched canvas.

    Owned by the host connection manager; the manager feeds it connection
    events and decoded frames, and waits on ``terminated``.
    """

    def __init__(
        self,
        session_id: str,
        kind: str,
        socket_path: Path | None = None,
        scenario: str = "display",
        alert_sink: AlertSink | None = None,
    ):
        self.session_id = session_id
        self.kind = kind
        self.socket_path = socket_path
        self.scenario = scenario
        self.created_at = time.time()

        self._alert_sink = alert_sink
        self._state = SessionState.LISTENING
        self._terminal_frame: Frame | None = None
        self._synthesized = False
        self._terminated = asyncio.Event()
        self.alerts_received = 0
        self.discarded_frames = 0

    def __repr__(self) -> str:
        return f"CanvasSession(id={self.session_id!r}, kind={self.kind!r}, state={self._state.value})"

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def terminal_frame(self) -> Frame | None:
        return self._terminal_frame

    @property
    def synthesized(self) -> bool:
        return self._synthesized

    @property
    def is_terminated(self) -> bool:
        return self._state == SessionState.TERMINATED

    async def wait_terminated(self) -> Frame:
        await self._terminated.wait()
        assert self._terminal_frame is not None
        return self._terminal_frame

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_connected(self) -> bool:
        """Canvas connection accepted."""
        if self._state != SessionState.LISTENING:
            logger.warning(f"[{self.session_id}] connect event in state {self._state.value}, ignoring")
            return False
        self._transition(SessionState.CONNECTED)
        return True

    def handle_frame(self, frame: Frame) -> bool:
        """
        Apply a frame received from the canvas.

        Returns:
            True if the frame changed or was delivered by the session,
            False if it was discarded
        """
        if self._state == SessionState.TERMINATED:
            self.discarded_frames += 1
            logger.warning(
                f"[{self.session_id}] discarding {frame.type.value} frame received after termination"
            )
            return False

        if self._state != SessionState.ACTIVE:
            if frame.type == FrameType.READY:
                self._transition(SessionState.ACTIVE)
                return True
            self.fail(ProtocolError(
                f"Expected ready, got {frame.type.value}",
                error_code=ErrorCode.UNEXPECTED_FRAME,
            ))
            return False

        if frame.type == FrameType.READY:
            self.discarded_frames += 1
            logger.warning(f"[{self.session_id}] duplicate ready frame, ignoring")
            return False

        if frame.type == FrameType.ALERT:
            self.alerts_received += 1
            self._deliver_alert(frame)
            return True

        self._terminate(frame, synthesized=False)
        return True

    def handshake_timeout(self, timeout_s: float) -> bool:
        """Handshake deadline passed; terminates unless already ACTIVE."""
        if self._state not in (SessionState.LISTENING, SessionState.CONNECTED):
            return False
        waiting_for = "connection" if self._state == SessionState.LISTENING else "ready frame"
        return self.fail(ProtocolError(
            f"No {waiting_for} within {timeout_s:g}s",
            error_code=ErrorCode.HANDSHAKE_TIMEOUT,
        ))

    def fail(self, error: CanvasError) -> bool:
        """Terminate with a synthesized error frame."""
        if self._state == SessionState.TERMINATED:
            logger.debug(f"[{self.session_id}] already terminated, not failing with: {error}")
            return False
        if isinstance(error, ProtocolError) and error.raw is not None:
            logger.error(f"[{self.session_id}] protocol error: {error} (raw={error.raw!r})")
        else:
            logger.error(f"[{self.session_id}] {error.error_code.value}: {error}")
        payload = error.to_payload()
        self._terminate(
            Frame.error(payload.pop("message"), payload.pop("data", None), **payload),
            synthesized=True,
        )
        return True

    def connection_lost(self) -> bool:
        """Socket closed; equivalent to cancelled if no terminal frame yet."""
        if self._state == SessionState.TERMINATED:
            return False
        logger.info(f"[{self.session_id}] connection lost before a terminal frame")
        self._terminate(Frame.cancelled(CONNECTION_LOST_REASON), synthesized=True)
        return True

    def cancel(self, reason: str) -> bool:
        """Host-side abort (e.g. host shutdown)."""
        if self._state == SessionState.TERMINATED:
            return False
        self._terminate(Frame.cancelled(reason), synthesized=True)
        return True

    def outcome(self, returncode: int | None = None) -> SessionOutcome:
        if self._terminal_frame is None:
            raise RuntimeError(f"Session {self.session_id} has not terminated")
        return SessionOutcome(
            session_id=self.session_id,
            kind=self.kind,
            frame=self._terminal_frame,
            synthesized=self._synthesized,
            returncode=returncode,
        )

    # ------------------------------------------------------------------

    def _transition(self, state: SessionState) -> None:
        logger.debug(f"[{self.session_id}] {self._state.value} -> {state.value}")
        self._state = state

    def _terminate(self, frame: Frame, synthesized: bool) -> None:
        self._terminal_frame = frame
        self._synthesized = synthesized
        self._transition(SessionState.TERMINATED)
        self._terminated.set()
        logger.info(
            f"[{self.session_id}] {self.kind} session ended: {frame.type.value}"
            f"{' (synthesized)' if synthesized else ''}"
        )

    def _deliver_alert(self, frame: Frame) -> None:
        if self._alert_sink is None:
            return
        try:
            self._alert_sink(self, frame)
        except Exception as e:
            logger.error(f"[{self.session_id}] alert subscriber failed: {e}", exc_info=True)


__all__ = [
    "SessionState",
    "SessionOutcome",
    "CanvasSession",
    "AlertSink",
]
