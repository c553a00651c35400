"""
Host connection manager.

The only component that creates and removes a session's socket. For each
launch it:

1. allocates a session id and a socket path under ``socket_dir``
2. listens on the socket (mode 0600)
3. spawns the canvas with ``--id``, ``--socket``, ``--scenario``, ``--config``
4. accepts exactly one connection and feeds decoded frames to the session
5. on termination closes the connection and the server, unlinks the socket
   and reaps the canvas process, then resolves the session handle

Usage:
    manager = HostConnectionManager(build_registry(config.canvas_command), config)
    manager.subscribe_alerts(lambda session, frame: print(frame.payload))

    handle = await manager.launch("weather", {"location": "Berlin"})
    outcome = await handle.wait()
"""
from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
import os
import uuid
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from ..config.schema import HostConfig
from ..errors import CanvasConnectionError, CanvasError, ErrorCode, ProtocolError, UnknownCanvasError
from ..protocol import Frame, FrameDecoder
from .registry import CanvasRegistry
from .session import CanvasSession, SessionOutcome, SessionState
from .spawner import reap_process, spawn_canvas

logger = logging.getLogger(__name__)

AlertCallback = Callable[[CanvasSession, Frame], Any]

READ_CHUNK_SIZE = 64 * 1024

# How long to wait for a pending connection once the canvas has exited
ACCEPT_GRACE_S = 0.5


class SessionHandle:
    """Resolves to the session's outcome once it has been torn down."""

    def __init__(self, session: CanvasSession, waiter: "asyncio.Future[SessionOutcome]"):
        self.session = session
        self._waiter = waiter

    @property
    def session_id(self) -> str:
        return self.session.session_id

    def done(self) -> bool:
        return self._waiter.done()

    async def wait(self) -> SessionOutcome:
        return await asyncio.shield(self._waiter)

    def __await__(self):
        return self.wait().__await__()


@dataclass
class _LiveSession:
    session: CanvasSession
    server: Optional[asyncio.AbstractServer] = None
    process: Optional[asyncio.subprocess.Process] = None
    writer: Optional[asyncio.StreamWriter] = None
    connection_task: Optional[asyncio.Task] = None
    supervisor: Optional[asyncio.Task] = None
    accepted: asyncio.Event = field(default_factory=asyncio.Event)


class HostConnectionManager:
    """Launches canvases and owns their sessions and sockets."""

    def __init__(self, registry: CanvasRegistry, config: HostConfig | None = None):
        self.registry = registry
        self.config = config or HostConfig()
        self._sessions: dict[str, _LiveSession] = {}
        self._alert_subscribers: list[AlertCallback] = []
        self._ids = itertools.count(1)
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def subscribe_alerts(self, callback: AlertCallback) -> None:
        """Receive ``(session, frame)`` for every alert, in send order."""
        self._alert_subscribers.append(callback)

    def unsubscribe_alerts(self, callback: AlertCallback) -> None:
        with contextlib.suppress(ValueError):
            self._alert_subscribers.remove(callback)

    def _publish_alert(self, session: CanvasSession, frame: Frame) -> None:
        logger.info(
            f"[{session.session_id}] alert {frame.payload.get('type')}: {frame.payload.get('message')}"
        )
        for callback in list(self._alert_subscribers):
            try:
                result = callback(session, frame)
                if asyncio.iscoroutine(result):
                    task = asyncio.ensure_future(result)
                    self._background.add(task)
                    task.add_done_callback(self._background.discard)
            except Exception as e:
                logger.error(f"Alert subscriber failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def active_sessions(self) -> list[CanvasSession]:
        return [live.session for live in self._sessions.values()]

    def socket_path_for(self, session_id: str) -> Path:
        return Path(self.config.socket_dir) / f"canvas-{session_id}.sock"

    def _allocate_session_id(self, kind: str) -> str:
        return f"{kind}-{next(self._ids)}-{uuid.uuid4().hex[:8]}"

    async def launch(
        self,
        kind: str,
        config: Mapping[str, Any] | None = None,
        scenario: str | None = None,
    ) -> SessionHandle:
        """
        Launch a canvas.

        An unknown kind resolves immediately to an ``error`` outcome; no
        socket is created and nothing is spawned.

        Raises:
            CanvasConnectionError: the endpoint could not be created or the
                canvas process could not be started (the socket is removed)
        """
        loop = asyncio.get_running_loop()
        entry = self.registry.get(kind)

        if entry is None:
            session = CanvasSession(self._allocate_session_id("unknown"), kind)
            session.fail(UnknownCanvasError(kind))
            waiter = loop.create_future()
            waiter.set_result(session.outcome())
            return SessionHandle(session, waiter)

        session_id = self._allocate_session_id(kind)
        socket_path = self.socket_path_for(session_id)
        session = CanvasSession(
            session_id,
            kind,
            socket_path=socket_path,
            scenario=scenario or entry.default_scenario,
            alert_sink=self._publish_alert,
        )
        live = _LiveSession(session=session)

        try:
            await self._listen(live)
            argv = entry.build_argv(session_id, str(socket_path), session.scenario, config)
            live.process = await spawn_canvas(argv, env={
                "TERMCANVAS_SESSION_ID": session_id,
                "TERMCANVAS_SOCKET": str(socket_path),
            })
        except BaseException:
            await self._close_endpoint(live)
            raise

        self._sessions[session_id] = live
        live.supervisor = asyncio.create_task(self._supervise(live))
        logger.info(f"[{session_id}] launched {kind} (scenario={session.scenario})")
        return SessionHandle(session, live.supervisor)

    async def shutdown(self, reason: str = "host shutdown") -> None:
        """Cancel every live session and wait for teardown."""
        lives = list(self._sessions.values())
        for live in lives:
            live.session.cancel(reason)
        for live in lives:
            if live.supervisor is not None:
                with contextlib.suppress(asyncio.CancelledError):
                    await live.supervisor

    # ------------------------------------------------------------------
    # Endpoint
    # ------------------------------------------------------------------

    async def _listen(self, live: _LiveSession) -> None:
        socket_path = live.session.socket_path
        assert socket_path is not None

        try:
            socket_path.parent.mkdir(parents=True, exist_ok=True)
            if socket_path.exists() or socket_path.is_symlink():
                logger.warning(f"Removing stale socket file: {socket_path}")
                socket_path.unlink()
            live.server = await asyncio.start_unix_server(
                partial(self._handle_connection, live),
                path=str(socket_path),
            )
            os.chmod(socket_path, 0o600)
        except OSError as e:
            raise CanvasConnectionError(f"Could not listen on {socket_path}: {e}") from e

        logger.debug(f"[{live.session.session_id}] listening on {socket_path}")

    async def _close_endpoint(self, live: _LiveSession) -> None:
        """Close connection and server, remove the socket file. Idempotent."""
        session = live.session

        if live.connection_task is not None and not live.connection_task.done():
            live.connection_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await live.connection_task

        if live.writer is not None:
            live.writer.close()
            with contextlib.suppress(ConnectionError, OSError):
                await live.writer.wait_closed()

        if live.server is not None:
            live.server.close()
            try:
                await asyncio.wait_for(live.server.wait_closed(), timeout=1.0)
            except asyncio.TimeoutError:
                logger.warning(f"[{session.session_id}] server did not close in time")
            live.server = None

        if session.socket_path is not None:
            try:
                session.socket_path.unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"[{session.session_id}] could not remove {session.socket_path}: {e}")

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    async def _handle_connection(
        self,
        live: _LiveSession,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        session = live.session

        if live.writer is not None or session.state != SessionState.LISTENING:
            logger.warning(f"[{session.session_id}] rejecting extra connection")
            writer.close()
            with contextlib.suppress(ConnectionError, OSError):
                await writer.wait_closed()
            return

        live.writer = writer
        live.connection_task = asyncio.current_task()
        session.mark_connected()
        live.accepted.set()
        decoder = FrameDecoder(self.config.max_frame_size)

        try:
            while not session.is_terminated:
                data = await reader.read(READ_CHUNK_SIZE)
                if not data:
                    session.connection_lost()
                    break
                decoder.feed(data)
                self._dispatch_frames(session, decoder)
        except (ConnectionError, OSError) as e:
            logger.warning(f"[{session.session_id}] connection error: {e}")
            session.connection_lost()
        finally:
            # Anything still buffered arrived after termination
            self._dispatch_frames(session, decoder)
            writer.close()

    def _dispatch_frames(self, session: CanvasSession, decoder: FrameDecoder) -> None:
        while True:
            try:
                frame = decoder.next_frame()
            except ProtocolError as e:
                if session.is_terminated:
                    logger.warning(f"[{session.session_id}] ignoring malformed frame after termination: {e}")
                    continue
                session.fail(e)
                continue
            if frame is None:
                return
            session.handle_frame(frame)

    # ------------------------------------------------------------------
    # Supervision
    # ------------------------------------------------------------------

    async def _supervise(self, live: _LiveSession) -> SessionOutcome:
        session = live.session
        assert live.process is not None

        watchdog = asyncio.create_task(self._handshake_watchdog(session))
        terminated = asyncio.create_task(session.wait_terminated())
        exited = asyncio.create_task(live.process.wait())

        try:
            await asyncio.wait({terminated, exited}, return_when=asyncio.FIRST_COMPLETED)

            if not session.is_terminated:
                await self._settle_after_exit(live)
        finally:
            for task in (watchdog, terminated, exited):
                task.cancel()
            await self._close_endpoint(live)
            returncode = await reap_process(live.process, self.config.exit_grace_s)
            self._sessions.pop(session.session_id, None)
            logger.debug(f"[{session.session_id}] torn down (returncode={returncode})")

        return session.outcome(returncode)

    async def _settle_after_exit(self, live: _LiveSession) -> None:
        """The process exited before the session terminated."""
        session = live.session
        returncode = live.process.returncode if live.process else None

        # A connection queued before the exit may not have been handed to us yet
        if not live.accepted.is_set():
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(live.accepted.wait(), timeout=ACCEPT_GRACE_S)

        # Let the reader consume whatever the canvas wrote before exiting
        if live.connection_task is not None and not live.connection_task.done():
            try:
                await asyncio.wait_for(asyncio.shield(live.connection_task), timeout=1.0)
            except asyncio.TimeoutError:
                logger.warning(f"[{session.session_id}] connection still open after canvas exit")

        if session.is_terminated:
            return
        if session.state == SessionState.LISTENING:
            session.fail(CanvasError(
                f"Canvas exited with code {returncode} before connecting",
                ErrorCode.CANVAS_EXITED,
                {"returncode": returncode},
            ))
        else:
            session.connection_lost()

    async def _handshake_watchdog(self, session: CanvasSession) -> None:
        timeout = self.config.connect_timeout_s
        await asyncio.sleep(timeout)
        session.handshake_timeout(timeout)


__all__ = [
    "HostConnectionManager",
    "SessionHandle",
    "AlertCallback",
]
