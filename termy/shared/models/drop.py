"""Drop payload data models.

A drop payload is whatever the host attached to a drag-and-drop event.
Every field is optional and environment-dependent, so the models expose
capability probes (has_native_path, has_entry, has_string_content)
rather than assuming a fixed shape. Absence is normal, not an error.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

# Async getter for the string content of a string-kind item.
StringGetter = Callable[[], Awaitable[str]]

URI_LIST = "text/uri-list"
PLAIN_TEXT = "text/plain"
HTML_TEXT = "text/html"
FILES_TYPE = "Files"


@dataclass
class NativeFile:
    """A dropped file handle."""

    name: str
    path: str | None = None  # Set by hosts that expose real paths
    size: int = 0
    mime_type: str = ""

    @property
    def has_native_path(self) -> bool:
        return isinstance(self.path, str) and bool(self.path.strip())


@dataclass
class DropEntry:
    """A filesystem entry attached to a drag item."""

    full_path: str
    is_directory: bool = False


@dataclass
class DropItem:
    """A single drag item.

    kind is "file" or "string". A file item may carry a direct path,
    a file handle and a filesystem entry; a string item carries an
    async getter for its content.
    """

    kind: str = "string"
    mime_type: str = ""
    path: str | None = None
    file: NativeFile | None = None
    entry: DropEntry | None = None
    get_string: StringGetter | None = field(default=None, repr=False)

    @property
    def has_native_path(self) -> bool:
        return isinstance(self.path, str) and bool(self.path.strip())

    @property
    def has_entry(self) -> bool:
        return self.entry is not None

    @property
    def has_string_content(self) -> bool:
        return self.kind == "string" and self.get_string is not None


@dataclass
class DropPayload:
    """Everything attached to one drop event."""

    files: list[NativeFile] = field(default_factory=list)
    items: list[DropItem] = field(default_factory=list)
    # MIME type -> text, in the order the source exposed them
    texts: dict[str, str] = field(default_factory=dict)

    @property
    def types(self) -> list[str]:
        """Named representations, with "Files" first when files are present."""
        names = list(self.texts)
        if self.files and FILES_TYPE not in names:
            names.insert(0, FILES_TYPE)
        return names

    def get_text(self, mime_type: str) -> str:
        return self.texts.get(mime_type) or ""

    def is_empty(self) -> bool:
        return not self.files and not self.items and not any(self.texts.values())

    @classmethod
    def from_text(cls, text: str, mime_type: str = PLAIN_TEXT) -> DropPayload:
        """Build a text-only payload.

        Terminal hosts deliver dropped files as pasted text, so this is
        the usual shape inside a TUI.
        """
        return cls(texts={mime_type: text} if text else {})
