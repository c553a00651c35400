"""
Canvas client.

Linked into every canvas process. Owns the outbound connection to the
host and exposes fire-and-forget sends for the canvas UI loop:

    client = CanvasClient(socket_path)
    client.on_close(lambda: app.exit())
    await client.connect()
    client.send_ready()
    ...
    client.send_alert("cpu-high", "CPU usage at 97.0%", {"cpu": 97.0})
    ...
    client.send_selected({"action": "select", "date": "2025-01-01"})

Sends only enqueue; a writer task flushes the queue on the connection's
own schedule, so the UI loop never waits on socket I/O. The sends are
also safe to call from a thread other than the event loop's.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError

from ..errors import CanvasConnectionError
from ..infra.retry_policy import CANVAS_CONNECT_RETRY, RetryConfig, retry_async
from ..protocol import Frame, encode_frame

logger = logging.getLogger(__name__)

CloseCallback = Callable[[], Any]

# Queue marker: flush everything before it, then close
_CLOSE = object()


def _is_retryable(error: Exception) -> bool:
    """Host endpoint not created yet, or not accepting yet"""
    return isinstance(error, (FileNotFoundError, ConnectionRefusedError))


class CanvasClient:
    """
    Outbound connection from a canvas to its host.

    Enforces the single terminal frame rule locally: once selected,
    cancelled or error has been queued, every later send is refused with a
    warning and returns False. The same goes for any send before ready and
    for payloads that fail validation.

    A client created without a socket path runs detached: sends are
    accepted and dropped, which lets a canvas run without a host.
    """

    def __init__(
        self,
        socket_path: str | Path | None,
        retry: Optional[RetryConfig] = None,
    ):
        self.socket_path = Path(socket_path) if socket_path else None
        self.retry = retry or CANVAS_CONNECT_RETRY

        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._writer_task: asyncio.Task | None = None
        self._reader_task: asyncio.Task | None = None

        self._send_lock = threading.Lock()
        self._ready_sent = False
        self._terminal_frame: Frame | None = None

        self._close_callback: CloseCallback | None = None
        self._closed = asyncio.Event()
        self._shutting_down = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def detached(self) -> bool:
        return self.socket_path is None

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._shutting_down

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def terminal_frame(self) -> Frame | None:
        return self._terminal_frame

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Connect to the host endpoint.

        Retries with exponential backoff while the endpoint is missing or
        refusing connections.

        Raises:
            CanvasConnectionError: the host could not be reached
        """
        self._loop = asyncio.get_running_loop()

        if self.detached:
            logger.debug("No socket path given, running detached")
            return

        if self._writer is not None:
            raise CanvasConnectionError("Client is already connected")

        async def _open() -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
            return await asyncio.open_unix_connection(str(self.socket_path))

        try:
            self._reader, self._writer = await retry_async(
                _open,
                config=self.retry,
                should_retry=_is_retryable,
                label=f"connect {self.socket_path}",
            )
        except OSError as e:
            raise CanvasConnectionError(f"Could not connect to host at {self.socket_path}: {e}") from e

        logger.info(f"Connected to canvas host: {self.socket_path}")

        self._writer_task = asyncio.create_task(self._write_loop())
        self._reader_task = asyncio.create_task(self._read_loop())

    def on_close(self, callback: CloseCallback) -> None:
        """
        Register the close callback (once).

        Called when the host closes the connection, on socket error, or
        after this client's terminal frame has been flushed.
        """
        if self._close_callback is not None:
            raise RuntimeError("on_close callback already registered")
        self._close_callback = callback

    async def close(self) -> None:
        """Flush queued frames and close the connection."""
        if self.closed:
            return
        if self._writer_task is None:
            await self._shutdown()
            return
        self._put(_CLOSE)
        await self._closed.wait()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def __aenter__(self) -> "CanvasClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Sends
    # ------------------------------------------------------------------

    def send_ready(self) -> bool:
        with self._send_lock:
            if self._ready_sent:
                logger.warning("ready already sent, ignoring")
                return False
            self._ready_sent = True
        return self._enqueue(Frame.ready)

    def send_selected(self, payload: dict[str, Any]) -> bool:
        return self._enqueue(Frame.selected, payload)

    def send_navigate(self, kind: str) -> bool:
        """Ask the host to replace this canvas with ``kind``."""
        return self._enqueue(Frame.navigate, kind)

    def send_cancelled(self, reason: str) -> bool:
        return self._enqueue(Frame.cancelled, reason)

    def send_error(self, message: str, data: Any = None) -> bool:
        return self._enqueue(Frame.error, message, data)

    def send_alert(self, alert_type: str, message: str, data: Any = None) -> bool:
        """Queue a non-terminal alert. Never waits for the host."""
        return self._enqueue(Frame.alert, alert_type, message, data)

    def _enqueue(self, build: Callable[..., Frame], *args: Any) -> bool:
        try:
            frame = build(*args)
        except ValidationError as e:
            logger.warning(f"Refusing invalid {build.__name__} frame: {e}")
            return False

        with self._send_lock:
            if self._terminal_frame is not None:
                logger.warning(
                    f"Refusing {frame.type.value} frame: session already ended "
                    f"with {self._terminal_frame.type.value}"
                )
                return False
            if self._shutting_down or self.closed:
                logger.warning(f"Refusing {frame.type.value} frame: connection closed")
                return False
            if not self._ready_sent:
                logger.warning(f"Refusing {frame.type.value} frame: ready not sent yet")
                return False
            if frame.is_terminal:
                self._terminal_frame = frame

        if self.detached:
            logger.debug(f"Detached, dropping {frame.type.value} frame")
            return True

        self._put(frame)
        return True

    def _put(self, item: Any) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if self._loop is None or running is self._loop:
            self._queue.put_nowait(item)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)

    # ------------------------------------------------------------------
    # I/O tasks
    # ------------------------------------------------------------------

    async def _write_loop(self) -> None:
        assert self._writer is not None
        try:
            while True:
                item = await self._queue.get()
                if item is _CLOSE:
                    break
                self._writer.write(encode_frame(item))
                await self._writer.drain()
                logger.debug(f"Sent {item.type.value} frame")
                if item.is_terminal:
                    break
        except asyncio.CancelledError:
            raise
        except (ConnectionError, OSError) as e:
            logger.warning(f"Connection to host failed while sending: {e}")
        await self._shutdown()

    async def _read_loop(self) -> None:
        assert self._reader is not None
        try:
            while True:
                data = await self._reader.read(4096)
                if not data:
                    logger.info("Host closed the connection")
                    break
                logger.debug(f"Ignoring {len(data)} unexpected bytes from host")
        except asyncio.CancelledError:
            raise
        except (ConnectionError, OSError) as e:
            logger.warning(f"Connection to host failed: {e}")
        await self._shutdown()

    async def _shutdown(self) -> None:
        if self._shutting_down:
            return
        self._shutting_down = True

        current = asyncio.current_task()
        for task in (self._writer_task, self._reader_task):
            if task is not None and task is not current and not task.done():
                task.cancel()

        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug(f"Error while closing connection: {e}")

        self._closed.set()

        if self._close_callback is not None:
            try:
                result = self._close_callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Close callback failed: {e}", exc_info=True)


__all__ = [
    "CanvasClient",
    "CloseCallback",
]
