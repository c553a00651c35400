"""Host configuration schema."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..protocol.codec import MAX_FRAME_SIZE

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class HostConfig(BaseModel):
    """Configuration for the canvas host"""

    socket_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        description="Directory holding per-session socket files",
    )
    canvas_command: list[str] = Field(
        default_factory=lambda: ["canvas", "show"],
        description="Base command; the canvas kind is appended",
    )
    commands: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Per-kind commands replacing canvas_command",
    )

    # Timeouts
    connect_timeout_s: float = Field(5.0, gt=0, description="Wait for connection + ready")
    exit_grace_s: float = Field(2.0, ge=0, description="Wait for canvas exit before terminating it")

    max_frame_size: int = Field(MAX_FRAME_SIZE, gt=0)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @field_validator("canvas_command")
    @classmethod
    def validate_canvas_command(cls, v):
        if not v:
            raise ValueError("canvas_command must not be empty")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level


__all__ = [
    "HostConfig",
    "LOG_LEVELS",
]
