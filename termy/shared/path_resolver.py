"""Path resolver — turn a drop payload into absolute filesystem paths.

Shared between the TUI and one-shot CLI mode. No Textual dependency.

Provides:
- PathResolver: payload -> ordered, deduplicated list of absolute paths
- extract_drop_tokens: split free text into candidate tokens
- format_for_injection / unquote_injected: shell-safe quoting of paths
- describe_drop_payload: diagnostic summary for unusable drops

Candidates are collected from every source in a fixed order (item
paths, item file handles, item entries, native files, then free text)
and deduplicated last, so the first source to name a file decides the
casing that survives.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Iterable
from typing import Any
from urllib.parse import parse_qsl, unquote, urlsplit

from termy.shared.models.drop import (
    FILES_TYPE,
    HTML_TEXT,
    PLAIN_TEXT,
    URI_LIST,
    DropItem,
    DropPayload,
    NativeFile,
)
from termy.shared.models.platform import Platform
from termy.shared.vault import VaultLookup, normalize_vault_path

logger = logging.getLogger(__name__)

# Host capability mapping a dropped file handle to its real path.
FilePathLookup = Callable[[NativeFile], "str | None"]

DEFAULT_APP_SCHEME = "obsidian"

_TEXT_TYPES = (URI_LIST, PLAIN_TEXT, HTML_TEXT)
_APP_LINK_KEYS = ("file", "path", "linkpath")

_LINE_BREAK = re.compile(r"\r?\n")
_WINDOWS_ABSOLUTE = re.compile(r"^[A-Za-z]:[\\/]")
_MISENCODED_DRIVE = re.compile(r"^/[A-Za-z]:[\\/]")
_URI_DRIVE = re.compile(r"^/[A-Za-z]:")
_BACKSLASHES = re.compile(r"[\\/]+")
_SLASHES = re.compile(r"/+")
_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_INJECTED_PATH = re.compile(r'"((?:\\"|[^"])*)"')

# [[target]], [[target#section]], [[target|alias]], [[target#section|alias]]
_WIKI_LINK = re.compile(r"^\[\[([^\]|#]+)(?:#[^\]|]+)?(?:\|[^\]]+)?\]\]$")


# ── Token helpers ────────────────────────────────────────────

def decode_percent(value: str) -> str:
    """Percent-decode value; malformed input is returned unchanged."""
    if "%" not in value or _MALFORMED_ESCAPE.search(value):
        return value
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return value


def normalize_token(value: str) -> str:
    """Strip one layer of <...> or matching quotes, percent-decode, trim."""
    normalized = value.strip()
    if len(normalized) >= 2:
        first, last = normalized[0], normalized[-1]
        if (first, last) == ("<", ">") or (first == last and first in "\"'"):
            normalized = normalized[1:-1]
    return decode_percent(normalized).strip()


def extract_drop_tokens(text: str, app_scheme: str = DEFAULT_APP_SCHEME) -> list[str]:
    """Split dropped text into candidate tokens.

    Every non-empty, non-comment line is a token. URIs of the app-link
    and file schemes are also picked out of the whole text, since they
    often sit inline inside HTML or Markdown.
    """
    if not text:
        return []

    line_tokens = [
        line.strip() for line in _LINE_BREAK.split(text)
        if line.strip() and not line.strip().startswith("#")
    ]
    uri_pattern = re.compile(
        rf"(?:{re.escape(app_scheme)}|file)://[^\s<>\"'`]+"
    )
    uri_tokens = [m.group(0) for m in uri_pattern.finditer(text)]
    return list(dict.fromkeys(line_tokens + uri_tokens))


def entry_to_path(full_path: str | None) -> str | None:
    """Accept a filesystem-entry path only if it already looks absolute."""
    if not full_path:
        return None
    value = full_path.strip()
    if not value:
        return None
    if _WINDOWS_ABSOLUTE.match(value) or value.startswith("\\\\"):
        return value.replace("/", "\\")
    if _MISENCODED_DRIVE.match(value):
        return value[1:].replace("/", "\\")
    # Relative entry paths cannot be resolved without guessing
    return None


def is_absolute_path(value: str, platform: Platform) -> bool:
    value = value.strip()
    if not value:
        return False
    if platform is Platform.WINDOWS:
        return bool(_WINDOWS_ABSOLUTE.match(value)) or value.startswith("\\\\")
    return value.startswith("/")


def file_uri_to_path(uri: str, platform: Platform) -> str | None:
    """Convert a file:// URI to a platform path, or None."""
    if not uri.lower().startswith("file://"):
        return None
    try:
        parts = urlsplit(uri)
    except ValueError:
        return None
    if parts.scheme.lower() != "file":
        return None

    path = decode_percent(parts.path)
    host = parts.netloc
    if host.lower() == "localhost":
        host = ""

    if platform is Platform.WINDOWS:
        if _URI_DRIVE.match(path):
            path = path[1:]
        path = path.replace("/", "\\")
        if host:
            share_path = path if path.startswith("\\") else "\\" + path
            return f"\\\\{host}{share_path}"
    elif host:
        path = f"//{host}{path}"

    return path or None


def join_vault_path(base: str, relative: str, platform: Platform) -> str:
    """Join a vault base path and a vault-relative path for the platform."""
    combined = base.rstrip("\\/") + "/" + relative.lstrip("\\/")
    if platform is Platform.WINDOWS:
        unc = combined.startswith(("\\\\", "//"))
        joined = _BACKSLASHES.sub(r"\\", combined)
        return "\\" + joined if unc else joined
    network = combined.startswith("//")
    joined = _SLASHES.sub("/", combined)
    return "/" + joined if network else joined


def unique_paths(paths: Iterable[str], platform: Platform) -> list[str]:
    """Drop blanks and duplicates, keeping the first spelling of each path."""
    result: list[str] = []
    seen: set[str] = set()
    for raw in paths:
        normalized = raw.strip()
        if not normalized:
            continue
        key = normalized.lower() if platform.case_insensitive else normalized
        if key in seen:
            continue
        seen.add(key)
        result.append(normalized)
    return result


# ── Injection formatting ─────────────────────────────────────

def format_for_injection(paths: Iterable[str]) -> str:
    """Quote each path for a shell prompt and join with spaces."""
    return " ".join('"' + path.replace('"', '\\"') + '"' for path in paths)


def unquote_injected(text: str) -> list[str]:
    """Reverse format_for_injection."""
    return [m.group(1).replace('\\"', '"') for m in _INJECTED_PATH.finditer(text)]


# ── Diagnostics ──────────────────────────────────────────────

def describe_drop_payload(
    payload: DropPayload | None,
    file_path_lookup: FilePathLookup | None = None,
) -> dict[str, Any]:
    """Summarize a payload for troubleshooting logs."""
    if payload is None:
        return {"has_payload": False}

    items = [
        {
            "kind": item.kind,
            "type": item.mime_type,
            "has_entry": item.has_entry,
            "entry_is_directory": bool(item.entry and item.entry.is_directory),
            "path": item.path,
        }
        for item in payload.items
    ]
    files = [
        {
            "name": file.name,
            "size": file.size,
            "type": file.mime_type,
            "path": _native_file_path(file, file_path_lookup),
        }
        for file in payload.files
    ]
    return {
        "has_payload": True,
        "types": payload.types,
        "files": files,
        "items": items,
    }


def _native_file_path(
    file: NativeFile,
    file_path_lookup: FilePathLookup | None,
) -> str | None:
    if file.has_native_path:
        return file.path.strip()
    if file_path_lookup is None:
        return None
    try:
        resolved = file_path_lookup(file)
    except Exception as exc:
        logger.debug("File path lookup failed for %s: %s", file.name, exc)
        return None
    if isinstance(resolved, str) and resolved.strip():
        return resolved.strip()
    return None


# ── PathResolver ─────────────────────────────────────────────

class PathResolver:
    """Resolve drop payloads against a vault for one platform."""

    def __init__(
        self,
        vault: VaultLookup | None,
        platform: Platform,
        *,
        file_path_lookup: FilePathLookup | None = None,
        app_link_scheme: str = DEFAULT_APP_SCHEME,
    ) -> None:
        self._vault = vault
        self._platform = platform
        self._file_path_lookup = file_path_lookup
        self._app_scheme = app_link_scheme.lower().rstrip(":/")

    @property
    def platform(self) -> Platform:
        return self._platform

    @property
    def file_path_lookup(self) -> FilePathLookup | None:
        return self._file_path_lookup

    async def resolve(self, payload: DropPayload | None) -> list[str]:
        """Return every usable absolute path in payload, deduplicated.

        Never raises. An empty list means nothing in the payload could
        be resolved; surfacing that is up to the caller.
        """
        if payload is None:
            return []

        paths: list[str] = []

        for item in payload.items:
            if item.has_native_path:
                paths.append(item.path.strip())
            if item.file is not None:
                file_path = _native_file_path(item.file, self._file_path_lookup)
                if file_path:
                    paths.append(file_path)
            if item.has_entry:
                entry_path = entry_to_path(item.entry.full_path)
                if entry_path:
                    paths.append(entry_path)

        for file in payload.files:
            file_path = _native_file_path(file, self._file_path_lookup)
            if file_path:
                paths.append(file_path)

        text = await self._collect_text(payload)
        for token in extract_drop_tokens(text, self._app_scheme):
            resolved = self.resolve_token(token)
            if resolved:
                logger.debug("Drop token resolved: %r -> %s", token, resolved)
                paths.append(resolved)

        return unique_paths(paths, self._platform)

    def resolve_token(self, token: str) -> str | None:
        """Resolve a single text token; None if nothing matches."""
        normalized = normalize_token(token)
        if not normalized:
            return None

        app_path = self._app_link_to_path(normalized)
        if app_path:
            return app_path

        file_path = file_uri_to_path(normalized, self._platform)
        if file_path:
            return file_path

        wiki = _WIKI_LINK.match(normalized)
        if wiki:
            return self._vault_path_to_absolute(wiki.group(1))

        vault_path = self._vault_path_to_absolute(normalized)
        if vault_path:
            return vault_path

        if is_absolute_path(normalized, self._platform):
            return normalized

        return None

    async def _collect_text(self, payload: DropPayload) -> str:
        parts = [payload.get_text(mime) for mime in _TEXT_TYPES]
        for mime in payload.types:
            if mime == FILES_TYPE or mime in _TEXT_TYPES:
                continue
            parts.append(payload.get_text(mime))
        parts.extend(await self._string_item_payloads(payload.items))
        return "\n".join(dict.fromkeys(part for part in parts if part))

    async def _string_item_payloads(self, items: list[DropItem]) -> list[str]:
        """Fetch the content of every string item concurrently."""

        async def _read(item: DropItem) -> str:
            try:
                value = await item.get_string()
            except Exception as exc:
                logger.debug("Drop item string retrieval failed (%s): %s", item.mime_type, exc)
                return ""
            if isinstance(value, str) and value.strip():
                return value
            return ""

        string_items = [item for item in items if item.has_string_content]
        if not string_items:
            return []
        results = await asyncio.gather(*(_read(item) for item in string_items))
        return [value for value in results if value]

    def _app_link_to_path(self, uri: str) -> str | None:
        if not uri.lower().startswith(f"{self._app_scheme}://"):
            return None
        try:
            query = urlsplit(uri).query
        except ValueError:
            return None

        params: dict[str, str] = {}
        for key, value in parse_qsl(query, keep_blank_values=True):
            params.setdefault(key, value)

        target = next(
            (params[key] for key in _APP_LINK_KEYS if key in params),
            None,
        )
        if not target:
            return None
        return self._vault_path_to_absolute(target)

    def _vault_path_to_absolute(self, path_like: str) -> str | None:
        if self._vault is None:
            return None
        normalized = normalize_vault_path(normalize_token(path_like).lstrip("/"))
        if not normalized:
            return None

        try:
            active = self._vault.active_document_path()
            found = (
                self._vault.find_link_target(normalized, active)
                or self._vault.find_by_path(normalized)
            )
            if not found:
                return None
            base = self._vault.absolute_base_path()
        except Exception as exc:
            logger.debug("Vault lookup failed for %r: %s", normalized, exc)
            return None

        if not base:
            return found
        return join_vault_path(base, found, self._platform)
