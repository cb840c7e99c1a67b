"""Terminal surface — one panel's session plus its drop handling.

The surface owns a SessionLifecycle and a PathResolver. They share no
state: a drop is resolved to paths first, then written into whatever
session the lifecycle produces, waiting for it if needed.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from termy.shared.models.drop import DropPayload
from termy.shared.path_resolver import (
    PathResolver,
    describe_drop_payload,
    format_for_injection,
)
from termy.shared.vault import VaultIndex, VaultLookup

from .config import DetachCallback, NoticeCallback, TermyConfig
from .errors import SessionInitError, TermyError
from .lifecycle import SessionLifecycle
from .terminal import DEFAULT_TITLE, TerminalService, TerminalSession

logger = logging.getLogger(__name__)

NO_USABLE_PATH_NOTICE = (
    "Termy: no usable path found. "
    "Check that the drag source provides file paths."
)
INIT_FAILED_NOTICE = "Terminal initialization failed: {message}"


class TerminalSurface:
    """A terminal panel: lazily created session, drop-to-type paths."""

    def __init__(
        self,
        service: TerminalService,
        resolver: PathResolver,
        *,
        init_timeout: float = SessionLifecycle.DEFAULT_TIMEOUT_SECONDS,
        notice: NoticeCallback | None = None,
        detach: DetachCallback | None = None,
        on_ready: Callable[[TerminalSession], None] | None = None,
    ) -> None:
        self._service = service
        self._resolver = resolver
        self._notice = notice
        self._detach = detach
        self._on_ready = on_ready
        self._lifecycle: SessionLifecycle[TerminalSession] = SessionLifecycle(
            service.create_session,
            default_timeout=init_timeout,
            on_ready=self._handle_ready,
            on_failed=self._handle_failed,
        )
        self._init_attempted = False
        self._init_task: asyncio.Task | None = None
        self._opened = False
        self._closed = False
        self._detached = False

    @classmethod
    def from_config(
        cls,
        config: TermyConfig,
        service: TerminalService,
        *,
        vault: VaultLookup | None = None,
        notice: NoticeCallback | None = None,
        detach: DetachCallback | None = None,
        on_ready: Callable[[TerminalSession], None] | None = None,
    ) -> TerminalSurface:
        """Build a surface with a resolver configured from config."""
        if vault is None and config.vault_path:
            vault = VaultIndex(
                Path(config.vault_path).expanduser(),
                active_document=config.active_document,
            )
        resolver = PathResolver(
            vault,
            config.resolved_platform,
            app_link_scheme=config.app_link_scheme,
        )
        return cls(
            service,
            resolver,
            init_timeout=config.init_timeout_seconds,
            notice=notice,
            detach=detach,
            on_ready=on_ready,
        )

    @property
    def lifecycle(self) -> SessionLifecycle[TerminalSession]:
        return self._lifecycle

    @property
    def resolver(self) -> PathResolver:
        return self._resolver

    @property
    def session(self) -> TerminalSession | None:
        return self._lifecycle.session

    @property
    def title(self) -> str:
        session = self._lifecycle.session
        return session.title if session is not None and session.title else DEFAULT_TITLE

    @property
    def detached(self) -> bool:
        return self._detached

    async def open(self) -> None:
        """Open the surface and start creating its session (once)."""
        if self._opened:
            return
        self._opened = True
        self._lifecycle.open()
        if not self._init_attempted:
            self._init_attempted = True
            self._init_task = asyncio.create_task(self._initialize())

    async def _initialize(self) -> None:
        session = await self._lifecycle.begin_initialization()
        if session is not None and self._closed:
            await self._destroy(session)

    async def wait_for_ready(self, timeout: float | None = None) -> TerminalSession:
        return await self._lifecycle.wait_for_ready(timeout)

    async def handle_drop(self, payload: DropPayload | None) -> str:
        """Resolve a drop and type the quoted paths into the session.

        Returns the injected text, or "" when nothing was usable.
        """
        paths = await self._resolver.resolve(payload)
        if not paths:
            logger.debug("No usable file path in drop payload")
            logger.error(
                "No usable path details: %s",
                describe_drop_payload(payload, self._resolver.file_path_lookup),
            )
            self._post_notice(NO_USABLE_PATH_NOTICE)
            return ""

        text = format_for_injection(paths)
        logger.debug("Inject input: %s", text)
        await self.write_input(text)
        return text

    async def handle_paste(self, text: str) -> str:
        """Type pasted text into the session.

        Terminal hosts deliver dropped files as a paste, so a paste whose
        every line resolves to a path is handled as a drop. Anything else
        is ordinary input and is typed unchanged. Returns the typed text.
        """
        if not text:
            return ""
        if self._is_path_paste(text):
            return await self.handle_drop(DropPayload.from_text(text))
        await self.write_input(text)
        return text

    def _is_path_paste(self, text: str) -> bool:
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        return bool(lines) and all(self._resolver.resolve_token(line) for line in lines)

    async def write_input(self, text: str) -> bool:
        """Write text to the session, waiting for it if necessary."""
        session = self._lifecycle.session
        if session is None:
            try:
                session = await self._lifecycle.wait_for_ready()
            except TermyError as exc:
                logger.warning("Input dropped, terminal unavailable: %s", exc)
                return False
        if not session.is_alive():
            logger.warning("Input dropped, session %s has exited", session.id)
            return False
        session.write(text)
        session.focus()
        return True

    async def close(self) -> None:
        """Destroy the session and release anything still waiting."""
        if self._closed:
            return
        self._closed = True
        session = self._lifecycle.session
        self._lifecycle.close()
        if session is not None:
            await self._destroy(session)

    async def _destroy(self, session: TerminalSession) -> None:
        try:
            await self._service.destroy_session(session.id)
        except Exception as exc:
            logger.error("Destroy failed for session %s: %s", session.id, exc)

    def _handle_ready(self, session: TerminalSession) -> None:
        logger.info("Terminal surface ready: %s", session.title or DEFAULT_TITLE)
        if self._on_ready is not None:
            self._on_ready(session)

    async def _handle_failed(self, error: SessionInitError) -> None:
        self._post_notice(INIT_FAILED_NOTICE.format(message=error.reason))
        if self._detached:
            return
        self._detached = True
        if self._detach is not None:
            await self._detach()

    def _post_notice(self, message: str) -> None:
        if self._notice is None:
            return
        try:
            self._notice(message)
        except Exception:
            logger.exception("Notice callback failed")
