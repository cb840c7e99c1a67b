"""Session lifecycle state machine and single-flight coordinator.

Defines valid transitions and enforces them. Invalid transitions
raise ValueError rather than silently proceeding.

State Diagram:

    UNINITIALIZED ──> PENDING ──┬──> READY
                                │
                                └──> FAILED

READY and FAILED are terminal: a surface never goes back to PENDING.
The outcome lives in one asyncio.Future, so any number of waiters
share it and settlement happens exactly once.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from .errors import SessionInitError, SessionNotInitializedError
from .models import SessionState

logger = logging.getLogger(__name__)

T = TypeVar("T")

VALID_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.UNINITIALIZED: {
        SessionState.PENDING,
    },
    SessionState.PENDING: {
        SessionState.READY,
        SessionState.FAILED,
    },
    SessionState.READY: set(),
    SessionState.FAILED: set(),
}


def validate_transition(current: SessionState, target: SessionState) -> None:
    """Validate a state transition. Raises ValueError if invalid."""
    allowed = VALID_TRANSITIONS.get(current, set())
    if target not in allowed:
        allowed_str = ", ".join(s.value for s in allowed) or "none (terminal)"
        raise ValueError(
            f"Invalid state transition: {current.value} -> {target.value}. "
            f"Allowed from {current.value}: {allowed_str}"
        )


# Hooks may be plain callables or coroutines.
LifecycleHook = Callable[[Any], "Awaitable[None] | None"]


class SessionLifecycle(Generic[T]):
    """Single-flight creation of one terminal session.

    open() is called when the surface opens. begin_initialization()
    runs the factory once and settles the shared outcome. Callers of
    wait_for_ready() either get the session or one of two named
    failures: SessionInitError (factory failed, fatal) or
    SessionNotInitializedError (timed out, retryable).
    """

    DEFAULT_TIMEOUT_SECONDS: float = 8.0

    def __init__(
        self,
        factory: Callable[[], Awaitable[T]],
        *,
        default_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        on_ready: LifecycleHook | None = None,
        on_failed: LifecycleHook | None = None,
    ) -> None:
        self._factory = factory
        self._default_timeout = default_timeout
        self._on_ready = on_ready
        self._on_failed = on_failed
        self._state = SessionState.UNINITIALIZED
        self._future: asyncio.Future[T] | None = None
        self._session: T | None = None
        self._error: SessionInitError | None = None
        self._started = False
        self._closed = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> T | None:
        return self._session

    @property
    def error(self) -> SessionInitError | None:
        return self._error

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY and self._session is not None

    @property
    def started(self) -> bool:
        return self._started

    def _transition(self, target: SessionState) -> None:
        validate_transition(self._state, target)
        logger.debug("Session lifecycle: %s -> %s", self._state.value, target.value)
        self._state = target

    def open(self) -> None:
        """Create the pending outcome. Must run inside the event loop."""
        self._transition(SessionState.PENDING)
        self._future = asyncio.get_running_loop().create_future()

    async def begin_initialization(self) -> T | None:
        """Run the factory and settle the outcome.

        Returns the session on success and None on failure. If the
        lifecycle was closed while the factory ran, the session is
        returned unsettled and the caller owns its disposal.
        Cancelling the call releases pending waiters and propagates.
        """
        if self._state is not SessionState.PENDING or self._started:
            raise ValueError(
                f"Cannot begin initialization from state {self._state.value}"
                + (" (already started)" if self._started else "")
            )
        self._started = True
        logger.info("Terminal initialization started")

        try:
            session = await self._factory()
        except asyncio.CancelledError:
            logger.info("Terminal initialization cancelled")
            self._release_waiters()
            raise
        except Exception as exc:
            if isinstance(exc, SessionInitError):
                error = exc
            else:
                error = SessionInitError(str(exc) or type(exc).__name__, cause=exc)
            reason = error.reason
            if self._closed:
                logger.info("Terminal initialization failed after close: %s", reason)
                return None
            self._settle_failed(error)
            logger.error("Terminal initialization failed: %s", reason)
            await self._fire("on_failed", self._on_failed, error)
            return None

        if self._closed:
            logger.info("Surface closed during initialization; session discarded")
            return session

        self._settle_ready(session)
        logger.info("Terminal initialization complete")
        await self._fire("on_ready", self._on_ready, session)
        return session

    async def wait_for_ready(self, timeout: float | None = None) -> T:
        """Return the session, waiting at most timeout seconds.

        A timeout of 0 or less waits without limit. Timing out abandons
        the wait only; initialization keeps running and later callers
        still see its outcome.
        """
        if self.is_ready:
            return self._session  # type: ignore[return-value]
        if self._state is SessionState.FAILED and self._error is not None:
            raise self._error
        if self._future is None or self._closed:
            raise SessionNotInitializedError()

        limit = self._default_timeout if timeout is None else timeout
        if limit <= 0:
            return await asyncio.shield(self._future)
        try:
            return await asyncio.wait_for(asyncio.shield(self._future), timeout=limit)
        except asyncio.TimeoutError:
            logger.debug("wait_for_ready timed out after %.3fs", limit)
            raise SessionNotInitializedError(limit) from None

    def close(self) -> None:
        """Drop the session reference and release pending waiters."""
        self._closed = True
        self._session = None
        self._release_waiters()

    def _release_waiters(self) -> None:
        if self._future is not None and not self._future.done():
            self._future.set_exception(SessionNotInitializedError())
            # Mark retrieved so an unwaited future does not warn on GC
            self._future.exception()

    def _settle_ready(self, session: T) -> None:
        self._transition(SessionState.READY)
        self._session = session
        if self._future is not None and not self._future.done():
            self._future.set_result(session)

    def _settle_failed(self, error: SessionInitError) -> None:
        self._transition(SessionState.FAILED)
        self._error = error
        if self._future is not None and not self._future.done():
            self._future.set_exception(error)
            self._future.exception()

    @staticmethod
    async def _fire(name: str, hook: LifecycleHook | None, value: Any) -> None:
        """Run a settlement hook; its errors are logged, never raised."""
        if hook is None:
            return
        try:
            result = hook(value)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Session lifecycle %s hook failed", name)
