"""Unit tests for the session state machine"""

import asyncio

import pytest

from termcanvas.errors import ApplicationError, CanvasError, ErrorCode, ProtocolError, UnknownCanvasError
from termcanvas.host import CanvasSession, SessionState
from termcanvas.protocol import Frame, FrameType


def active_session(**kwargs) -> CanvasSession:
    session = CanvasSession("system-1", "system", **kwargs)
    session.mark_connected()
    session.handle_frame(Frame.ready())
    return session


class TestHandshake:
    """Test LISTENING -> CONNECTED -> ACTIVE"""

    def test_transitions(self):
        session = CanvasSession("s", "calendar")
        assert session.state == SessionState.LISTENING
        assert session.mark_connected()
        assert session.state == SessionState.CONNECTED
        assert session.handle_frame(Frame.ready())
        assert session.state == SessionState.ACTIVE

    def test_frame_before_ready_is_protocol_error(self):
        session = CanvasSession("s", "calendar")
        session.mark_connected()

        assert not session.handle_frame(Frame.alert("x", "early"))
        assert session.is_terminated
        assert session.synthesized
        assert session.terminal_frame.type == FrameType.ERROR
        assert session.terminal_frame.payload["code"] == ErrorCode.UNEXPECTED_FRAME.value

    def test_duplicate_ready_ignored(self):
        session = active_session()
        assert not session.handle_frame(Frame.ready())
        assert session.state == SessionState.ACTIVE
        assert session.discarded_frames == 1

    def test_second_connect_ignored(self):
        session = CanvasSession("s", "calendar")
        session.mark_connected()
        assert not session.mark_connected()

    @pytest.mark.parametrize("connect, expected", [
        (False, "No connection"),
        (True, "No ready frame"),
    ])
    def test_handshake_timeout(self, connect, expected):
        session = CanvasSession("s", "calendar")
        if connect:
            session.mark_connected()

        assert session.handshake_timeout(5.0)
        payload = session.terminal_frame.payload
        assert payload["code"] == ErrorCode.HANDSHAKE_TIMEOUT.value
        assert payload["message"].startswith(expected)

    def test_handshake_timeout_after_ready_is_noop(self):
        session = active_session()
        assert not session.handshake_timeout(5.0)
        assert session.state == SessionState.ACTIVE


class TestTermination:
    """Test exactly-one terminal frame"""

    def test_first_terminal_wins(self):
        session = active_session()
        assert session.handle_frame(Frame.selected({"action": "first"}))
        assert not session.handle_frame(Frame.cancelled("second"))
        assert not session.handle_frame(Frame.alert("late", "after end"))

        assert session.terminal_frame.payload == {"action": "first"}
        assert session.discarded_frames == 2
        assert not session.synthesized

    def test_no_synthesis_after_termination(self):
        session = active_session()
        session.handle_frame(Frame.cancelled("q"))

        assert not session.connection_lost()
        assert not session.fail(ProtocolError("late garbage"))
        assert not session.cancel("host shutdown")
        assert session.terminal_frame.type == FrameType.CANCELLED
        assert session.terminal_frame.payload == {"reason": "q"}

    def test_connection_lost_is_cancelled(self):
        session = active_session()
        assert session.connection_lost()
        assert session.terminal_frame == Frame.cancelled("connection lost")
        assert session.synthesized

    def test_fail_keeps_raw_bytes(self):
        session = active_session()
        session.fail(ProtocolError("bad", raw=b'{"type":'))
        payload = session.terminal_frame.payload
        assert payload["code"] == ErrorCode.MALFORMED_FRAME.value
        assert payload["data"] == {"raw": '{"type":'}

    @pytest.mark.asyncio
    async def test_wait_terminated(self):
        session = active_session()
        waiter = asyncio.ensure_future(session.wait_terminated())
        await asyncio.sleep(0)
        assert not waiter.done()

        session.handle_frame(Frame.selected({"action": "ok"}))
        frame = await asyncio.wait_for(waiter, timeout=1.0)
        assert frame.payload == {"action": "ok"}

    def test_outcome_before_termination(self):
        with pytest.raises(RuntimeError):
            active_session().outcome()


class TestAlerts:
    """Test alert forwarding"""

    def test_alerts_in_send_order(self):
        received = []
        session = active_session(alert_sink=lambda s, f: received.append(f.payload["message"]))

        for i in range(5):
            session.handle_frame(Frame.alert("cpu-high", f"alert {i}"))

        assert received == [f"alert {i}" for i in range(5)]
        assert session.alerts_received == 5
        assert session.state == SessionState.ACTIVE

    def test_failing_sink_does_not_break_session(self):
        def sink(session, frame):
            raise RuntimeError("subscriber bug")

        session = active_session(alert_sink=sink)
        assert session.handle_frame(Frame.alert("x", "y"))
        assert session.handle_frame(Frame.selected({"action": "done"}))
        assert session.terminal_frame.payload == {"action": "done"}


class TestSessionOutcome:
    """Test outcome helpers"""

    def test_selected(self):
        session = active_session()
        session.handle_frame(Frame.selected({"action": "select", "date": "2025-01-01"}))
        outcome = session.outcome(returncode=0)

        assert outcome.status == "selected"
        assert outcome.exit_code == 0
        assert outcome.error_code is None
        assert not outcome.is_navigation
        outcome.raise_for_error()
        assert outcome.to_dict() == {
            "sessionId": "system-1",
            "kind": "system",
            "status": "selected",
            "payload": {"action": "select", "date": "2025-01-01"},
            "synthesized": False,
            "returncode": 0,
        }

    def test_navigation(self):
        session = active_session()
        session.handle_frame(Frame.navigate("weather"))
        outcome = session.outcome()
        assert outcome.is_navigation
        assert outcome.navigation_target == "weather"

    def test_cancelled_exit_code(self):
        session = active_session()
        session.handle_frame(Frame.cancelled("q"))
        assert session.outcome().exit_code == 1

    def test_application_error(self):
        session = active_session()
        session.handle_frame(Frame.error("disk full", {"path": "/tmp"}))
        outcome = session.outcome()

        assert outcome.error_code == ErrorCode.APPLICATION_ERROR.value
        assert outcome.exit_code == 3
        with pytest.raises(ApplicationError) as exc_info:
            outcome.raise_for_error()
        assert exc_info.value.data == {"path": "/tmp"}

    @pytest.mark.parametrize("requested_by, expected", [
        (None, 2),
        ("network", 3),
    ])
    def test_unknown_canvas_exit_code(self, requested_by, expected):
        session = CanvasSession("s", "spreadsheet")
        session.fail(UnknownCanvasError("spreadsheet", requested_by=requested_by))
        outcome = session.outcome()

        assert outcome.error_code == ErrorCode.UNKNOWN_CANVAS.value
        assert outcome.requested_by == requested_by
        assert outcome.exit_code == expected

    def test_synthesized_error(self):
        session = CanvasSession("s", "calendar")
        session.handshake_timeout(1.0)
        outcome = session.outcome()

        with pytest.raises(CanvasError) as exc_info:
            outcome.raise_for_error()
        assert not isinstance(exc_info.value, ApplicationError)
        assert exc_info.value.error_code == ErrorCode.HANDSHAKE_TIMEOUT


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
