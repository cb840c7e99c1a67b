"""Termy engine — terminal session lifecycle and drop-to-type surface."""
from .models import OscEvent, OscEventKind, OscSource, SessionState
from .config import TermyConfig
from .errors import SessionInitError, SessionNotInitializedError, TermyError
from .lifecycle import SessionLifecycle, validate_transition
from .surface import TerminalSurface
from .terminal import ShellSession, ShellTerminalService, TerminalService, TerminalSession

__all__ = [
    # Models
    "OscEvent",
    "OscEventKind",
    "OscSource",
    "SessionState",
    # Config
    "TermyConfig",
    # Errors
    "TermyError",
    "SessionInitError",
    "SessionNotInitializedError",
    # Lifecycle
    "SessionLifecycle",
    "validate_transition",
    # Surface and sessions
    "TerminalSurface",
    "TerminalService",
    "TerminalSession",
    "ShellSession",
    "ShellTerminalService",
]
