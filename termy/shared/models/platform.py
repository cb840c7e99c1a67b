"""Platform flavour used for path shapes and case folding."""

from __future__ import annotations

import sys
from enum import Enum


class Platform(str, Enum):
    """Path conventions of the host filesystem."""

    WINDOWS = "windows"
    POSIX = "posix"

    @classmethod
    def current(cls) -> Platform:
        return cls.WINDOWS if sys.platform == "win32" else cls.POSIX

    @classmethod
    def parse(cls, value: str | None) -> Platform:
        """Parse a config value, falling back to the running interpreter."""
        if not value:
            return cls.current()
        normalized = value.strip().lower()
        if normalized in ("windows", "win32", "win", "nt"):
            return cls.WINDOWS
        if normalized in ("posix", "linux", "darwin", "macos", "unix"):
            return cls.POSIX
        raise ValueError(
            f"Unknown platform '{value}'. Expected one of: windows, posix"
        )

    @property
    def case_insensitive(self) -> bool:
        return self is Platform.WINDOWS
