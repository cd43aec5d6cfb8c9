from __future__ import annotations

import allure
import pytest

from pls_shell.execution.buffers import (
    WORKDIR_MARKER,
    MarkerStreamParser,
    OutputBuffer,
)

pytestmark = [
    allure.epic("Shell Execution"),
    allure.feature("Output Streaming"),
]


def test_output_buffer_keeps_last_lines_including_partial_tail() -> None:
    buffer = OutputBuffer(max_lines=3)

    buffer.push("a\nb\nc\nd\ne")

    assert buffer.lines() == ["c", "d", "e"]
    assert buffer.text == "c\nd\ne"


def test_output_buffer_joins_lines_split_across_chunks() -> None:
    buffer = OutputBuffer()

    for chunk in ("hel", "lo\nwor", "ld"):
        buffer.push(chunk)

    assert buffer.lines() == ["hello", "world"]
    buffer.clear()
    assert buffer.lines() == []


def test_output_buffer_requires_positive_capacity() -> None:
    with pytest.raises(ValueError, match="max_lines must be > 0"):
        OutputBuffer(max_lines=0)


def test_marker_split_at_any_position_never_leaks() -> None:
    stream = f"hello\nworld\n\n{WORKDIR_MARKER}\n/tmp/work\n"

    for split in range(1, len(stream)):
        parser = MarkerStreamParser()
        shown = parser.feed(stream[:split]) + parser.feed(stream[split:])

        assert WORKDIR_MARKER not in shown, split
        assert shown == "hello\nworld", split
        assert parser.workdir == "/tmp/work", split


def test_marker_arriving_byte_by_byte() -> None:
    parser = MarkerStreamParser()
    stream = f"x\n{WORKDIR_MARKER}\n/home/user\n"

    shown = "".join(parser.feed(char) for char in stream)

    assert shown == "x"
    assert parser.finish() == ""
    assert parser.workdir == "/home/user"


def test_finish_releases_held_text_when_marker_never_arrives() -> None:
    parser = MarkerStreamParser()

    assert parser.feed("short") == ""
    assert parser.finish() == "short"
    assert parser.workdir is None
    assert not parser.found


def test_long_output_is_released_before_the_marker_arrives() -> None:
    parser = MarkerStreamParser()
    reserve = len(WORKDIR_MARKER) + 5

    shown = parser.feed("x" * 100)

    assert shown == "x" * (100 - reserve)
