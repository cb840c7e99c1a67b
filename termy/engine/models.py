"""Core engine types."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SessionState(str, Enum):
    """Session lifecycle states. See lifecycle.py for transition rules."""
    UNINITIALIZED = "uninitialized"
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class OscSource(str, Enum):
    """Which shell-integration dialect emitted a marker."""
    OSC133 = "osc133"
    OSC633 = "osc633"


class OscEventKind(str, Enum):
    PROMPT_START = "prompt_start"
    COMMAND_START = "command_start"
    COMMAND_EXECUTED = "command_executed"
    COMMAND_END = "command_end"


@dataclass(frozen=True)
class OscEvent:
    """A shell-integration marker found in session output."""
    kind: OscEventKind
    source: OscSource
    exit_code: int | None = None
