"""Streaming helpers for shell output: line-capped buffers and the workdir marker parser."""

from __future__ import annotations

from collections import deque

DEFAULT_MAX_OUTPUT_LINES = 128
WORKDIR_MARKER = "__PLS_WORKDIR_5f3a9c__"
MARKER_SLACK_CHARS = 5
_MAX_TRAILER_CHARS = 8_192


class OutputBuffer:
    """Keep only the last ``max_lines`` lines of a stream."""

    def __init__(self, max_lines: int = DEFAULT_MAX_OUTPUT_LINES) -> None:
        if max_lines <= 0:
            raise ValueError("max_lines must be > 0")
        self.max_lines = max_lines
        self._lines: deque[str] = deque(maxlen=max_lines)
        self._partial = ""

    def push(self, data: str) -> None:
        if not data:
            return
        parts = (self._partial + data).split("\n")
        self._partial = parts.pop()
        self._lines.extend(parts)

    def lines(self) -> list[str]:
        lines = list(self._lines)
        if self._partial:
            lines.append(self._partial)
        return lines[-self.max_lines :]

    @property
    def text(self) -> str:
        return "\n".join(self.lines())

    def clear(self) -> None:
        self._lines.clear()
        self._partial = ""


class MarkerStreamParser:
    """Strip the workdir trailer from stdout without ever emitting marker bytes.

    Until the marker is seen the tail of the stream (marker length plus a few
    characters) is held back, since a chunk may end inside the marker. Once
    seen, the text before it is released right-trimmed and everything after it
    is kept to read the working directory from.
    """

    def __init__(self, marker: str = WORKDIR_MARKER, slack: int = MARKER_SLACK_CHARS) -> None:
        self.marker = marker
        self._reserve = len(marker) + slack
        self._pending = ""
        self._trailer = ""
        self.found = False

    def feed(self, chunk: str) -> str:
        """Consume a chunk; return the text that is safe to show."""

        if self.found:
            if len(self._trailer) < _MAX_TRAILER_CHARS:
                self._trailer = (self._trailer + chunk)[:_MAX_TRAILER_CHARS]
            return ""

        self._pending += chunk
        index = self._pending.find(self.marker)
        if index != -1:
            self.found = True
            emitted = self._pending[:index].rstrip()
            self._trailer = self._pending[index + len(self.marker) :][:_MAX_TRAILER_CHARS]
            self._pending = ""
            return emitted

        if len(self._pending) <= self._reserve:
            return ""
        emitted = self._pending[: -self._reserve]
        self._pending = self._pending[-self._reserve :]
        return emitted

    def finish(self) -> str:
        """Release held-back text when the stream ended without a marker."""

        if self.found:
            return ""
        rest, self._pending = self._pending, ""
        return rest

    @property
    def workdir(self) -> str | None:
        if not self.found:
            return None
        for line in self._trailer.splitlines():
            stripped = line.strip()
            if stripped:
                return stripped
        return None
