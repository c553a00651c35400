"""
Canvas process spawning.

Canvases run as direct child processes sharing the host's terminal, so
the host can observe their exit.
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Mapping, Sequence

from ..errors import CanvasConnectionError, ErrorCode

logger = logging.getLogger(__name__)


async def spawn_canvas(
    argv: Sequence[str],
    env: Mapping[str, str] | None = None,
) -> asyncio.subprocess.Process:
    """
    Start a canvas process.

    Args:
        argv: Full command line
        env: Extra environment variables (merged over os.environ)

    Raises:
        CanvasConnectionError: the process could not be started
    """
    if not argv:
        raise CanvasConnectionError("Empty canvas command", ErrorCode.SPAWN_FAILED)

    proc_env = dict(os.environ)
    if env:
        proc_env.update(env)

    try:
        proc = await asyncio.create_subprocess_exec(*argv, env=proc_env)
    except OSError as e:
        raise CanvasConnectionError(f"Could not start canvas '{argv[0]}': {e}", ErrorCode.SPAWN_FAILED) from e

    logger.info(f"Started canvas process {proc.pid}: {argv[0]}")
    return proc


async def reap_process(proc: asyncio.subprocess.Process, grace_s: float) -> int:
    """
    Wait for a canvas process to exit, escalating to terminate and kill.

    Returns:
        The process return code
    """
    if proc.returncode is not None:
        return proc.returncode

    try:
        return await asyncio.wait_for(proc.wait(), timeout=grace_s)
    except asyncio.TimeoutError:
        logger.warning(f"Canvas process {proc.pid} still running after {grace_s:g}s, terminating")

    try:
        proc.terminate()
    except ProcessLookupError:
        pass

    try:
        return await asyncio.wait_for(proc.wait(), timeout=grace_s or 1.0)
    except asyncio.TimeoutError:
        logger.warning(f"Canvas process {proc.pid} ignored SIGTERM, killing")

    try:
        proc.kill()
    except ProcessLookupError:
        pass
    return await proc.wait()


__all__ = [
    "spawn_canvas",
    "reap_process",
]
