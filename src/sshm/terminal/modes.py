"""
Terminal mode management.

Provides TTY state management for the raw-mode passthrough used by PTY
sessions. Unix only (termios).

Unlike a module-level flag, the mode state lives on a TerminalMode instance
owned by the session, so entering and restoring are paired per session.
"""

from __future__ import annotations

import os
import signal
import sys
import termios
import tty
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Generator

from sshm.logging import get_logger

logger = get_logger(__name__)


def is_tty(fd: int | None = None) -> bool:
    """Check if ``fd`` (default: stdin) is a TTY."""
    if fd is None:
        return sys.stdin.isatty()
    return os.isatty(fd)


def get_terminal_size() -> tuple[int, int]:
    """
    Get current terminal size.

    Returns:
        Tuple of (columns, rows).
    """
    try:
        size = os.get_terminal_size()
        return size.columns, size.lines
    except OSError:
        return 80, 24  # Default fallback


@dataclass
class TerminalMode:
    """
    Raw-mode switch for the controlling terminal.

    Stores the original terminal settings for restoration. ``restore()`` is a
    no-op unless ``enter_raw()`` succeeded, so it is safe to call from every
    exit path.
    """

    fd: int | None = None
    original_settings: Any | None = None
    is_raw: bool = False

    def _fileno(self) -> int:
        return sys.stdin.fileno() if self.fd is None else self.fd

    def enter_raw(self) -> bool:
        """
        Enter raw terminal mode (unbuffered, no echo).

        Raw mode:
        - Disables line buffering
        - Disables local echo
        - Disables signal generation (Ctrl+C, Ctrl+Z go to the remote side)

        Returns:
            True if successful, False if stdin is not a terminal.
        """
        if self.is_raw:
            return True

        if not is_tty(self.fd):
            return False

        try:
            fd = self._fileno()
            self.original_settings = termios.tcgetattr(fd)
            tty.setraw(fd)
            self.is_raw = True
            return True

        except (OSError, termios.error) as e:
            logger.warning("Could not enter raw mode: %s", e)
            return False

    def restore(self) -> bool:
        """
        Restore the settings saved by enter_raw().

        Returns:
            True if settings were restored, False if not in raw mode.
        """
        if not self.is_raw or self.original_settings is None:
            return False

        try:
            termios.tcsetattr(self._fileno(), termios.TCSADRAIN, self.original_settings)
        except (OSError, termios.error) as e:
            logger.warning("Could not restore terminal mode: %s", e)
            return False
        finally:
            self.original_settings = None
            self.is_raw = False

        return True

    @contextmanager
    def raw(self) -> Generator[bool, None, None]:
        """
        Context manager for raw terminal mode.

        Yields whether raw mode was actually entered.

        Usage:
            >>> with TerminalMode().raw():
            ...     pump_io()
        """
        entered = self.enter_raw()
        try:
            yield entered
        finally:
            self.restore()


# =============================================================================
# SIGWINCH Handler
# =============================================================================


# Handler that was active before setup_resize_handler() replaced it.
_previous_winch_handler: Any = None


def setup_resize_handler(callback: Callable[[int, int], None]) -> bool:
    """
    Setup terminal resize signal handler.

    The handler it replaces is kept and put back by remove_resize_handler().

    Args:
        callback: Function to call with (cols, rows) on resize.

    Returns:
        True if handler was installed successfully.
    """
    global _previous_winch_handler

    def sigwinch_handler(signum: int, frame: Any) -> None:
        cols, rows = get_terminal_size()
        try:
            callback(cols, rows)
        except OSError as e:
            logger.debug("Resize forwarding failed: %s", e)

    try:
        _previous_winch_handler = signal.signal(signal.SIGWINCH, sigwinch_handler)
    except (ValueError, OSError) as e:
        # ValueError: not called from the main thread.
        logger.debug("Could not install resize handler: %s", e)
        return False
    return True


def remove_resize_handler() -> bool:
    """
    Put back the resize handler that setup_resize_handler() replaced.

    Returns:
        True if handler was restored successfully.
    """
    global _previous_winch_handler

    previous = _previous_winch_handler
    if previous is None:
        previous = signal.SIG_DFL

    try:
        signal.signal(signal.SIGWINCH, previous)
    except (ValueError, OSError) as e:
        logger.debug("Could not restore resize handler: %s", e)
        return False
    finally:
        _previous_winch_handler = None
    return True
