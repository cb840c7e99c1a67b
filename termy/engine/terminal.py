"""Terminal sessions — the factory boundary behind a terminal surface.

TerminalService / TerminalSession are the protocols the surface
depends on. ShellTerminalService is the reference implementation: it
runs the user's shell with asyncio.create_subprocess_exec (array-based,
no shell re-parsing) over plain pipes and pumps its output to a
callback, scanning it for shell-integration markers on the way.
"""
from __future__ import annotations

import asyncio
import codecs
import logging
import os
import sys
import uuid
from collections.abc import Callable
from typing import Protocol

from .errors import SessionInitError
from .models import OscEvent, OscEventKind
from .osc import ShellIntegrationScanner

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], None]
ShellEventCallback = Callable[[OscEvent], None]
TitleCallback = Callable[[str], None]
FocusCallback = Callable[[], None]

DEFAULT_TITLE = "Terminal"


class TerminalSession(Protocol):
    """A live session the surface can type into."""

    id: str

    @property
    def title(self) -> str: ...

    def write(self, text: str) -> None: ...

    def is_alive(self) -> bool: ...

    def focus(self) -> None: ...


class TerminalService(Protocol):
    """Creates and destroys sessions."""

    async def create_session(self) -> TerminalSession: ...

    async def destroy_session(self, session_id: str) -> None: ...


def default_shell() -> str:
    if sys.platform == "win32":
        return os.environ.get("COMSPEC", "cmd.exe")
    return os.environ.get("SHELL", "/bin/sh")


class ShellSession:
    """A shell subprocess wired to output and focus callbacks."""

    READ_CHUNK: int = 4096
    CLOSE_TIMEOUT: float = 3.0

    def __init__(
        self,
        session_id: str,
        process: asyncio.subprocess.Process,
        *,
        title: str = DEFAULT_TITLE,
        on_output: OutputCallback | None = None,
        on_event: ShellEventCallback | None = None,
    ) -> None:
        self.id = session_id
        self._process = process
        self._title = title
        self.on_output = on_output
        self.on_event = on_event
        self.on_focus: FocusCallback | None = None
        self.on_title_change: TitleCallback | None = None
        self.last_exit_code: int | None = None
        self._scanner = ShellIntegrationScanner()
        self._pump_task: asyncio.Task | None = None

    @property
    def title(self) -> str:
        return self._title

    @property
    def pid(self) -> int:
        return self._process.pid

    def set_title(self, title: str) -> None:
        title = title.strip()
        if not title or title == self._title:
            return
        self._title = title
        if self.on_title_change is not None:
            self.on_title_change(title)

    def start(self) -> None:
        if self._pump_task is None:
            self._pump_task = asyncio.create_task(self._pump_output())

    def write(self, text: str) -> None:
        stdin = self._process.stdin
        if stdin is None or not self.is_alive():
            logger.warning("Write to dead session %s dropped", self.id)
            return
        stdin.write(text.encode("utf-8"))

    def is_alive(self) -> bool:
        return self._process.returncode is None

    def focus(self) -> None:
        if self.on_focus is not None:
            self.on_focus()

    async def _pump_output(self) -> None:
        stdout = self._process.stdout
        if stdout is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                chunk = await stdout.read(self.READ_CHUNK)
                if not chunk:
                    break
                for event in self._scanner.scan(chunk):
                    self._handle_event(event)
                text = decoder.decode(chunk)
                if text and self.on_output is not None:
                    self.on_output(text)
        except asyncio.CancelledError:
            return
        except Exception:
            logger.exception("Output pump for session %s failed", self.id)
        returncode = await self._process.wait()
        logger.info("Session %s exited (rc=%s)", self.id, returncode)

    def _handle_event(self, event: OscEvent) -> None:
        if event.kind is OscEventKind.COMMAND_END:
            self.last_exit_code = event.exit_code
        logger.debug(
            "Session %s shell event %s (%s) exit=%s",
            self.id, event.kind.value, event.source.value, event.exit_code,
        )
        if self.on_event is not None:
            self.on_event(event)

    async def close(self) -> None:
        """Terminate the shell, killing it if it does not exit in time."""
        if self.is_alive():
            try:
                if self._process.stdin is not None:
                    self._process.stdin.close()
                self._process.terminate()
                await asyncio.wait_for(self._process.wait(), timeout=self.CLOSE_TIMEOUT)
            except ProcessLookupError:
                pass
            except asyncio.TimeoutError:
                logger.warning("Session %s did not exit; killing", self.id)
                self._process.kill()
                await self._process.wait()
        if self._pump_task is not None:
            self._pump_task.cancel()
            self._pump_task = None


class ShellTerminalService:
    """Spawns one shell subprocess per session."""

    def __init__(
        self,
        shell: str | None = None,
        *,
        shell_args: list[str] | None = None,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        on_output: OutputCallback | None = None,
    ) -> None:
        self._shell = shell or default_shell()
        self._shell_args = list(shell_args or [])
        self._cwd = cwd
        self._env = env
        self.on_output = on_output
        self._sessions: dict[str, ShellSession] = {}

    @property
    def shell(self) -> str:
        return self._shell

    def get_session(self, session_id: str) -> ShellSession | None:
        return self._sessions.get(session_id)

    async def create_session(self) -> ShellSession:
        env = dict(os.environ)
        if self._env:
            env.update(self._env)
        env.setdefault("TERM", "dumb")

        cmd = [self._shell, *self._shell_args]
        try:
            # Args go in as an array, never through a shell
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=self._cwd,
                env=env,
            )
        except FileNotFoundError as exc:
            raise SessionInitError(f"shell '{self._shell}' not found", cause=exc) from exc
        except OSError as exc:
            raise SessionInitError(f"cannot start '{self._shell}': {exc}", cause=exc) from exc

        session_id = uuid.uuid4().hex[:12]
        title = os.path.basename(self._shell) or DEFAULT_TITLE
        session = ShellSession(
            session_id, process, title=title, on_output=self.on_output,
        )
        self._sessions[session_id] = session
        session.start()
        logger.info("Session %s started: %s (pid=%d)", session_id, " ".join(cmd), process.pid)
        return session

    async def destroy_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            logger.debug("destroy_session: unknown session %s", session_id)
            return
        await session.close()
        logger.info("Session %s destroyed", session_id)

    async def shutdown(self) -> None:
        for session_id in list(self._sessions):
            await self.destroy_session(session_id)
