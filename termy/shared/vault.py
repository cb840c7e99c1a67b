"""Vault index — host-side file lookup for vault-relative paths.

Shared between the TUI and one-shot CLI mode. No Textual dependency.

Provides:
- VaultLookup: the protocol the path resolver consumes
- VaultIndex: cached scanner over a vault directory on disk
- normalize_vault_path: separator/slash normalization for vault paths
"""

from __future__ import annotations

import logging
import os
import re
import time
import unicodedata
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class VaultLookup(Protocol):
    """What the path resolver needs from the host's file index."""

    def active_document_path(self) -> str: ...

    def find_link_target(self, linkpath: str, source_path: str) -> str | None: ...

    def find_by_path(self, path: str) -> str | None: ...

    def absolute_base_path(self) -> str | None: ...


# ── Path normalization ───────────────────────────────────────

_SEPARATORS = re.compile(r"[\\/]+")


def normalize_vault_path(path: str) -> str:
    """Normalize a vault-relative path.

    Collapses runs of slashes/backslashes into "/", strips leading and
    trailing slashes, replaces non-breaking spaces and applies NFC.
    """
    cleaned = _SEPARATORS.sub("/", path).strip("/")
    cleaned = cleaned.replace("\u00a0", " ").replace("\u202f", " ")
    return unicodedata.normalize("NFC", cleaned)


# ── VaultIndex ───────────────────────────────────────────────

SKIP_DIRS: set[str] = {
    ".git", ".obsidian", ".trash", "node_modules", "__pycache__",
    ".venv", "venv",
}

DEFAULT_EXTENSION = ".md"


class VaultIndex:
    """Vault file lookup with skip-dir filtering and caching."""

    CACHE_TTL: float = 30.0

    def __init__(self, root: Path, *, active_document: str = "") -> None:
        self._root = root
        self._active_document = normalize_vault_path(active_document)
        self._files: list[str] = []
        self._known: set[str] = set()
        self._by_lower: dict[str, str] = {}
        self._last_scan: float | None = None

    @property
    def root(self) -> Path:
        return self._root

    def _scan(self) -> list[str]:
        """Walk the vault using os.scandir()."""
        files: list[str] = []
        self._scan_dir(self._root, "", files)
        files.sort(key=str.lower)
        return files

    def _scan_dir(self, abs_path: Path, rel_prefix: str, files: list[str]) -> None:
        try:
            with os.scandir(abs_path) as it:
                for entry in it:
                    if entry.name in SKIP_DIRS:
                        continue
                    rel = f"{rel_prefix}{entry.name}"
                    if entry.is_dir(follow_symlinks=False):
                        self._scan_dir(abs_path / entry.name, rel + "/", files)
                    else:
                        files.append(unicodedata.normalize("NFC", rel))
        except OSError:
            logger.debug("Vault scan skipped unreadable directory %s", abs_path)

    def _ensure_fresh(self) -> None:
        """Refresh cache if stale."""
        now = time.monotonic()
        if self._last_scan is None or now - self._last_scan > self.CACHE_TTL:
            self._files = self._scan()
            self._known = set(self._files)
            self._by_lower = {}
            for rel in self._files:
                self._by_lower.setdefault(rel.lower(), rel)
            self._last_scan = now
            logger.debug("Vault index refreshed: %d files under %s", len(self._files), self._root)

    def invalidate(self) -> None:
        self._last_scan = None
        self._files = []
        self._known = set()
        self._by_lower = {}

    # ── VaultLookup protocol ──

    def active_document_path(self) -> str:
        return self._active_document

    def set_active_document(self, path: str) -> None:
        self._active_document = normalize_vault_path(path)

    def absolute_base_path(self) -> str | None:
        return str(self._root.resolve())

    def find_by_path(self, path: str) -> str | None:
        """Exact vault-path lookup (case-sensitive)."""
        self._ensure_fresh()
        normalized = normalize_vault_path(path)
        if not normalized:
            return None
        return normalized if normalized in self._known else None

    def find_link_target(self, linkpath: str, source_path: str) -> str | None:
        """Best file for a wiki-style link.

        Resolution order:
        - exact path, then the path with ".md" appended
        - case-insensitive exact match of either
        - files whose path ends with "/<linkpath>" or whose name equals it,
          preferring the source document's folder, then the shortest path
        """
        self._ensure_fresh()
        target = normalize_vault_path(linkpath)
        if not target:
            return None

        candidates = [target]
        if not target.lower().endswith(DEFAULT_EXTENSION):
            candidates.append(target + DEFAULT_EXTENSION)

        for candidate in candidates:
            if candidate in self._known:
                return candidate
        for candidate in candidates:
            match = self._by_lower.get(candidate.lower())
            if match:
                return match

        suffixes = [f"/{c.lower()}" for c in candidates]
        matches = [
            rel for rel in self._files
            if any(rel.lower().endswith(suffix) for suffix in suffixes)
        ]
        if not matches:
            return None

        source_dir = normalize_vault_path(source_path).rpartition("/")[0]
        if source_dir:
            local = [rel for rel in matches if rel.startswith(source_dir + "/")]
            if local:
                matches = local
        return min(matches, key=lambda rel: (len(rel), rel.lower()))
