"""
Terminal side of sshm: raw-mode switching, prompt detection and the PTY
session controller.

Usage:
    >>> from sshm.terminal import connect
    >>> result = await connect("db1", store=store)
"""

from sshm.terminal.modes import (
    TerminalMode,
    get_terminal_size,
    is_tty,
)
from sshm.terminal.prompts import (
    PROMPT_TABLE,
    PROMPT_TABLE_VERSION,
    PromptDetector,
    PromptKind,
    classify,
)
from sshm.terminal.session import PtySession, SessionState, connect

__all__ = [
    # Modes
    "TerminalMode",
    "get_terminal_size",
    "is_tty",
    # Prompts
    "PromptKind",
    "PromptDetector",
    "PROMPT_TABLE",
    "PROMPT_TABLE_VERSION",
    "classify",
    # Session
    "PtySession",
    "SessionState",
    "connect",
]
