"""Exception hierarchy for the terminal engine.

Initialization failure and wait timeout are distinct types so callers
can choose between retrying the wait and giving up on the surface.
"""
from __future__ import annotations


class TermyError(Exception):
    """Base exception for all terminal engine errors."""


class SessionInitError(TermyError):
    """The session factory failed. Fatal for the owning surface."""
    def __init__(self, reason: str, cause: BaseException | None = None):
        self.reason = reason
        self.cause = cause
        super().__init__(f"Terminal initialization failed: {reason}")


class SessionNotInitializedError(TermyError):
    """No session is available yet (never opened, closed, or wait timed out)."""
    def __init__(self, timeout_seconds: float | None = None):
        self.timeout_seconds = timeout_seconds
        if timeout_seconds is None:
            message = "Terminal is not initialized"
        else:
            message = (
                f"Terminal is not initialized "
                f"(no session after {timeout_seconds:g}s)"
            )
        super().__init__(message)

    @property
    def timed_out(self) -> bool:
        return self.timeout_seconds is not None
