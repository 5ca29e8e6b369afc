"""
PTY session controller.

Runs ssh on a pseudo-terminal and passes the local terminal straight
through to it, answering login prompts on the user's behalf.

Flow:
1. Resolve the stored credential and build the ssh command line
   (``-i keyfile`` for key auth, optionally wrapped in sshpass for
   password auth).
2. Spawn ssh on a pty sized like the local terminal.
3. Put the local terminal in raw mode.
4. On the event loop: pty output -> local stdout + prompt detector,
   local stdin -> pty. Host-key confirmations get ``yes``; password and
   passphrase prompts get the stored secret, or are left to the human.
5. On EOF from the pty, reap ssh, restore the terminal, and report the
   exit status.

Everything runs on one asyncio loop; each reader callback finishes before
the next one is dispatched, so the prompt state machine never races itself.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import signal
import sys
from enum import Enum
from pathlib import Path
from typing import IO, Callable

import pexpect
from pydantic import SecretStr

from sshm.config import SSHMSettings, get_settings
from sshm.exceptions import SpawnError
from sshm.logging import get_logger
from sshm.models import ServerEntry, SessionResult
from sshm.resolver import CredentialResolver
from sshm.store import CredentialStore, is_valid_key_file
from sshm.terminal.modes import (
    TerminalMode,
    get_terminal_size,
    is_tty,
    remove_resize_handler,
    setup_resize_handler,
)
from sshm.terminal.prompts import PromptDetector, PromptKind

logger = get_logger(__name__)

# Host keys are not pinned; the tool targets throwaway and lab machines.
SSH_OPTIONS = (
    "-o", "StrictHostKeyChecking=no",
    "-o", "UserKnownHostsFile=/dev/null",
    "-o", "LogLevel=ERROR",
)

LINE_TERMINATOR = b"\n"
HOST_KEY_ANSWER = b"yes"
REDACTED = "******"

# Signals that end the session through the normal exit path.
TERMINATE_SIGNALS = (signal.SIGTERM, signal.SIGHUP)


class SessionState(str, Enum):
    """States of a PTY session."""

    SPAWNING = "spawning"
    STREAMING = "streaming"
    SECRET_SENT = "secret_sent"
    AWAITING_HUMAN_INPUT = "awaiting_human_input"
    EXITED = "exited"


SpawnFn = Callable[[list[str], tuple[int, int]], "pexpect.spawn"]


def spawn_pty(argv: list[str], dimensions: tuple[int, int]) -> pexpect.spawn:
    """
    Start ``argv`` on a new pty.

    Args:
        argv: Command and arguments.
        dimensions: Pty size as (rows, cols).

    Raises:
        SpawnError: The executable is missing or could not be started.
    """
    try:
        return pexpect.spawn(argv[0], argv[1:], dimensions=dimensions, encoding=None)
    except (pexpect.ExceptionPexpect, OSError) as e:
        raise SpawnError(argv[0], cause=e) from e


def redact_command(argv: list[str], secret: SecretStr | None) -> list[str]:
    """Copy of ``argv`` safe for logging."""
    if secret is None:
        return list(argv)
    value = secret.get_secret_value()
    return [REDACTED if arg == value else arg for arg in argv]


class PtySession:
    """One interactive ssh session for a saved server."""

    def __init__(
        self,
        server: ServerEntry,
        *,
        store: CredentialStore,
        settings: SSHMSettings | None = None,
        resolver: CredentialResolver | None = None,
        terminal: TerminalMode | None = None,
        spawn: SpawnFn = spawn_pty,
        stdin_fd: int | None = None,
        output: IO[bytes] | None = None,
    ) -> None:
        self.server = server
        self.state = SessionState.SPAWNING

        self._store = store
        self._settings = settings or get_settings()
        self._resolver = resolver or CredentialResolver(store)
        self._terminal = terminal or TerminalMode()
        self._spawn = spawn
        self._stdin_fd = stdin_fd if stdin_fd is not None else self._default_stdin_fd()
        self._output = output if output is not None else sys.stdout.buffer

        self._detector = PromptDetector()
        self._secret: SecretStr | None = None
        self._secrets_sent = 0
        # Set when sshpass carries the secret; it is then never typed into the pty.
        self._relayed = False
        self._notified = False
        self._child: pexpect.spawn | None = None
        self._done: asyncio.Future[None] | None = None
        self._eof = False

    @staticmethod
    def _default_stdin_fd() -> int | None:
        return sys.stdin.fileno() if is_tty() else None

    @property
    def secrets_sent(self) -> int:
        return self._secrets_sent

    # =========================================================================
    # Spawning
    # =========================================================================

    def build_command(self) -> list[str]:
        """
        Build the ssh argument vector for this server.

        Key sessions make sure the key file is usable first and regenerate
        it from the store if it is not; that raises CredentialNotFoundError,
        InvalidContentError or KeyFileError when the store cannot help either.
        """
        argv = [self._settings.ssh_command, *SSH_OPTIONS, "-p", str(self.server.port)]
        if self.server.uses_key:
            argv += ["-i", str(self._prepare_key_file())]
        argv.append(self.server.target)

        self._relayed = self._secret is not None and self._use_password_relay()
        if self._relayed:
            argv = [
                self._settings.password_relay_command,
                "-p",
                self._secret.get_secret_value(),
                *argv,
            ]
        return argv

    def _use_password_relay(self) -> bool:
        mode = self._settings.password_relay
        if mode == "never":
            return False
        if mode == "always":
            return True
        return shutil.which(self._settings.password_relay_command) is not None

    def _prepare_key_file(self) -> Path:
        alias = self.server.name
        if self.server.key_path:
            configured = Path(self.server.key_path).expanduser()
        else:
            configured = self._store.key_file_path(alias)

        if is_valid_key_file(configured):
            return configured

        logger.warning("Key file %s is missing or invalid, regenerating", configured)
        return self._store.regenerate_key_file(alias)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def run(self) -> SessionResult:
        """
        Run the session until ssh exits.

        Raw mode is entered only after ssh has been spawned and is restored
        on every way out of the loop.

        Returns:
            SessionResult carrying ssh's exit status.
        """
        self.state = SessionState.SPAWNING
        self._secret = self._resolver.resolve(self.server.name, self.server.auth_method)
        argv = self.build_command()
        logger.info("Spawning %s", " ".join(redact_command(argv, self._secret)))

        cols, rows = get_terminal_size()
        self._child = self._spawn(argv, (rows, cols))
        self.state = SessionState.STREAMING

        self._terminal.enter_raw()
        try:
            await self._pump()
        finally:
            self._terminal.restore()
            self._close_child()
            self.state = SessionState.EXITED

        result = self._result()
        logger.info("Session ended: %s", result)
        return result

    async def _pump(self) -> None:
        loop = asyncio.get_running_loop()
        self._done = loop.create_future()
        child_fd = self._child.child_fd

        loop.add_reader(child_fd, self._on_child_readable)
        if self._stdin_fd is not None:
            loop.add_reader(self._stdin_fd, self._on_stdin_readable)
        setup_resize_handler(self._on_resize)
        handled = self._install_signal_handlers(loop)

        try:
            await self._done
        finally:
            loop.remove_reader(child_fd)
            if self._stdin_fd is not None:
                loop.remove_reader(self._stdin_fd)
            remove_resize_handler()
            for signum in handled:
                loop.remove_signal_handler(signum)

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> list[int]:
        handled = []
        for signum in TERMINATE_SIGNALS:
            try:
                loop.add_signal_handler(signum, self._on_terminate, signum)
            except (NotImplementedError, RuntimeError, ValueError):
                continue
            handled.append(signum)
        return handled

    def _close_child(self) -> None:
        if self._child is None:
            return
        try:
            if self._eof:
                self._child.wait()
            self._child.close(force=True)
        except pexpect.ExceptionPexpect as e:
            logger.warning("Error while closing ssh: %s", e)

    def _result(self) -> SessionResult:
        exit_code = self._child.exitstatus
        signalstatus = self._child.signalstatus
        if exit_code is None:
            exit_code = 128 + signalstatus if signalstatus else 1
        return SessionResult(
            alias=self.server.name,
            exit_code=exit_code,
            signal=signalstatus,
            secrets_sent=self._secrets_sent,
        )

    def _finish(self, error: BaseException | None = None) -> None:
        if self._done is None or self._done.done():
            return
        if error is None:
            self._done.set_result(None)
        else:
            self._done.set_exception(error)

    # =========================================================================
    # Event callbacks
    # =========================================================================

    def _on_child_readable(self) -> None:
        try:
            data = self._child.read_nonblocking(self._settings.read_size, timeout=0)
        except pexpect.EOF:
            self._eof = True
            self._finish()
            return
        except pexpect.TIMEOUT:
            return

        try:
            self.handle_output(data)
        except OSError as e:
            self._finish(e)

    def _on_stdin_readable(self) -> None:
        try:
            data = os.read(self._stdin_fd, 1024)
        except OSError as e:
            self._finish(e)
            return

        if not data:
            # Local input closed; keep streaming output until ssh exits.
            asyncio.get_running_loop().remove_reader(self._stdin_fd)
            self._stdin_fd = None
            return

        try:
            self.handle_input(data)
        except OSError as e:
            self._finish(e)

    def _on_resize(self, cols: int, rows: int) -> None:
        if self._child is not None:
            self._child.setwinsize(rows, cols)

    def _on_terminate(self, signum: int) -> None:
        logger.info("Received signal %d, hanging up ssh", signum)
        if self._child is not None and self._child.isalive():
            self._child.kill(signal.SIGHUP)
        else:
            self._finish()

    # =========================================================================
    # Prompt state machine
    # =========================================================================

    def handle_output(self, data: bytes) -> None:
        """Forward pty output and react to any prompt at its end."""
        self._output.write(data)
        self._output.flush()

        if self.state is SessionState.SECRET_SENT:
            self.state = SessionState.STREAMING

        kind = self._detector.feed(data)
        if kind is PromptKind.HOST_KEY_CONFIRM:
            logger.info("Confirming host key for %s", self.server.host)
            self._send(HOST_KEY_ANSWER + LINE_TERMINATOR)
        elif kind is PromptKind.SECRET_PROMPT:
            self._on_secret_prompt()

    def handle_input(self, data: bytes) -> None:
        """Forward local keystrokes to the pty, whatever the state."""
        self._send(data)
        if self.state is SessionState.AWAITING_HUMAN_INPUT and (b"\r" in data or b"\n" in data):
            self.state = SessionState.STREAMING

    def _on_secret_prompt(self) -> None:
        if (
            self._secret is not None
            and not self._relayed
            and self._secrets_sent < self._settings.max_secret_attempts
        ):
            self._send(self._secret.get_secret_value().encode() + LINE_TERMINATOR)
            self._secrets_sent += 1
            self.state = SessionState.SECRET_SENT
            logger.info("Sent stored credential for %s", self.server.name)
            return

        self.state = SessionState.AWAITING_HUMAN_INPUT
        if self._notified:
            return
        self._notified = True

        what = "passphrase" if self.server.uses_key else "password"
        if self._secret is None:
            notice = f"[sshm] No stored {what} for {self.server.name}; type it yourself."
        else:
            notice = f"[sshm] Stored {what} for {self.server.name} was already sent; type it yourself."
        self._output.write(b"\r\n" + notice.encode() + b"\r\n")
        self._output.flush()

    def _send(self, data: bytes) -> None:
        self._child.send(data)


async def connect(
    alias: str,
    *,
    store: CredentialStore,
    settings: SSHMSettings | None = None,
) -> SessionResult:
    """
    Open an interactive session for a saved alias.

    Raises:
        ServerNotFoundError: No server is saved under ``alias``.
        CredentialNotFoundError / InvalidContentError / KeyFileError: Key
            session whose key file could not be regenerated.
        SpawnError: ssh could not be started.
    """
    server = store.get_server(alias)
    session = PtySession(server, store=store, settings=settings)
    return await session.run()
