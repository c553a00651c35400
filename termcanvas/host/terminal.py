"""
Terminal environment detection.

Identifies the terminal emulator or multiplexer the host is running in,
from environment variables only.
"""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from typing import Any, Mapping

TERMINAL_SUMMARIES = {
    "tmux": "tmux",
    "iterm2": "iTerm2",
    "kitty": "Kitty",
    "wezterm": "WezTerm",
    "alacritty": "Alacritty",
    "vscode": "VS Code",
    "apple-terminal": "Apple Terminal",
    "none": "unsupported terminal",
}


@dataclass(frozen=True)
class TerminalEnvironment:
    in_tmux: bool
    in_iterm2: bool
    in_apple_terminal: bool
    in_kitty: bool
    in_wezterm: bool
    in_alacritty: bool
    in_vscode: bool
    terminal_type: str
    summary: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def detect_terminal(environ: Mapping[str, str] | None = None) -> TerminalEnvironment:
    """Detect the terminal from environment variables."""
    env = os.environ if environ is None else environ
    term_program = env.get("TERM_PROGRAM", "")

    in_tmux = bool(env.get("TMUX"))
    in_iterm2 = term_program == "iTerm.app" or bool(env.get("ITERM_SESSION_ID"))
    in_apple_terminal = term_program == "Apple_Terminal"
    in_kitty = term_program == "kitty" or bool(env.get("KITTY_PID"))
    in_wezterm = term_program == "WezTerm"
    in_alacritty = term_program == "Alacritty" or bool(env.get("ALACRITTY_SOCKET"))
    in_vscode = term_program == "vscode" or bool(env.get("VSCODE_INJECTION"))

    # Multiplexer first, then the emulators
    checks = (
        ("tmux", in_tmux),
        ("iterm2", in_iterm2),
        ("kitty", in_kitty),
        ("wezterm", in_wezterm),
        ("alacritty", in_alacritty),
        ("vscode", in_vscode),
        ("apple-terminal", in_apple_terminal),
    )
    terminal_type = next((name for name, hit in checks if hit), "none")

    return TerminalEnvironment(
        in_tmux=in_tmux,
        in_iterm2=in_iterm2,
        in_apple_terminal=in_apple_terminal,
        in_kitty=in_kitty,
        in_wezterm=in_wezterm,
        in_alacritty=in_alacritty,
        in_vscode=in_vscode,
        terminal_type=terminal_type,
        summary=TERMINAL_SUMMARIES[terminal_type],
    )


__all__ = [
    "TerminalEnvironment",
    "detect_terminal",
]
