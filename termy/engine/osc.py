"""Shell-integration marker scanner.

Finds OSC 133 / OSC 633 sequences in raw session output:

    ESC ] 133 ; A            prompt start
    ESC ] 133 ; B            command start
    ESC ] 133 ; C            command executed
    ESC ] 133 ; D [; <exit>] command end

terminated by BEL or ESC \\. Output arrives in arbitrary chunks, so an
unterminated sequence is carried over to the next scan() call.
"""
from __future__ import annotations

from .models import OscEvent, OscEventKind, OscSource

ESC = 0x1B
BEL = 0x07

_SOURCES = {
    b"133": OscSource.OSC133,
    b"633": OscSource.OSC633,
}

_MARKERS = {
    b"A": OscEventKind.PROMPT_START,
    b"B": OscEventKind.COMMAND_START,
    b"C": OscEventKind.COMMAND_EXECUTED,
    b"D": OscEventKind.COMMAND_END,
}

_INCOMPLETE = object()
_INVALID = object()


class ShellIntegrationScanner:
    """Stateful OSC 133/633 parser."""

    MAX_BUFFER: int = 8192

    def __init__(self, max_buffer: int = MAX_BUFFER) -> None:
        self._buffer = bytearray()
        self._max_buffer = max_buffer

    def scan(self, data: bytes) -> list[OscEvent]:
        """Feed a chunk of output and return the markers it completed."""
        self._buffer.extend(data)
        buf = self._buffer
        events: list[OscEvent] = []
        index = 0
        length = len(buf)

        while index + 1 < length:
            if buf[index] == ESC and buf[index + 1] == ord("]"):
                result = self._parse_sequence(index)
                if result is _INCOMPLETE:
                    break
                if result is _INVALID:
                    index += 1
                    continue
                next_index, event = result
                if event is not None:
                    events.append(event)
                index = next_index
                continue
            index += 1

        if index > 0:
            del buf[:index]
        if len(buf) > self._max_buffer:
            del buf[: len(buf) - self._max_buffer]

        return events

    def reset(self) -> None:
        self._buffer.clear()

    def _parse_sequence(self, start: int):
        buf = self._buffer
        length = len(buf)
        if start + 2 >= length:
            return _INCOMPLETE

        code_end = None
        i = start + 2
        while i < length:
            if buf[i] == ord(";"):
                code_end = i
                break
            if not 0x30 <= buf[i] <= 0x39:
                return _INVALID
            i += 1
        if code_end is None:
            return _INCOMPLETE

        terminator = None
        terminator_len = 0
        j = code_end + 1
        while j < length:
            if buf[j] == BEL:
                terminator, terminator_len = j, 1
                break
            if buf[j] == ESC and j + 1 < length and buf[j + 1] == ord("\\"):
                terminator, terminator_len = j, 2
                break
            j += 1
        if terminator is None:
            return _INCOMPLETE

        code = bytes(buf[start + 2:code_end])
        payload = bytes(buf[code_end + 1:terminator])
        return terminator + terminator_len, _parse_payload(code, payload)


def _parse_payload(code: bytes, payload: bytes) -> OscEvent | None:
    source = _SOURCES.get(code)
    if source is None or not payload:
        return None

    parts = payload.split(b";")
    kind = _MARKERS.get(parts[0])
    if kind is None:
        return None

    exit_code = None
    if kind is OscEventKind.COMMAND_END and len(parts) > 1:
        try:
            exit_code = int(parts[1].decode("ascii"))
        except (UnicodeDecodeError, ValueError):
            exit_code = None
    return OscEvent(kind=kind, source=source, exit_code=exit_code)
