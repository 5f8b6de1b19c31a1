# -*- coding: utf-8 -*-
########################
# line_cursor.py
########################
# Purpose:
# - Split a chart text buffer into logical lines for osu_store.
#
# Design notes:
# - Lazy: lines are produced one at a time from the current cursor position.
# - Leading/trailing whitespace (space, tab, CR, LF) is trimmed; blank lines and // comments are skipped.
# - A buffer without a trailing newline is fine.
#
########################
# Interfaces:
# Public classes:
# - class LineCursor
#   - __init__(text: str)
#   - next_line() -> Optional[str]
#   - reset() -> None
#   - line_number -> int   (1-based line of the last returned line, 0 before the first)
#   - __iter__() -> Iterator[str]
#
########################

from __future__ import annotations

from typing import Iterator, Optional

_WHITESPACE = " \t\r\n"


class LineCursor:
    def __init__(self, text: str) -> None:
        self._text = text
        self._position = 0
        self._line_number = 0
        self._next_line_number = 1

    @property
    def line_number(self) -> int:
        return self._line_number

    def reset(self) -> None:
        self._position = 0
        self._line_number = 0
        self._next_line_number = 1

    def next_line(self) -> Optional[str]:
        text = self._text
        length = len(text)

        while self._position < length:
            # Skip whitespace runs, counting the line breaks we pass.
            while self._position < length and text[self._position] in _WHITESPACE:
                if text[self._position] == "\n":
                    self._next_line_number += 1
                self._position += 1
            if self._position >= length:
                break

            end = text.find("\n", self._position)
            if end < 0:
                end = length
            line_text = text[self._position:end].strip(_WHITESPACE)
            line_number = self._next_line_number
            self._position = end

            if not line_text or line_text.startswith("//"):
                continue

            self._line_number = line_number
            return line_text

        return None

    def __iter__(self) -> Iterator[str]:
        while True:
            line_text = self.next_line()
            if line_text is None:
                return
            yield line_text


def _run_unit_tests() -> None:
    cursor = LineCursor("  osu file format v14\r\n\r\n// comment\n[General]\n\tAudioFilename: a.mp3")
    assert list(cursor) == ["osu file format v14", "[General]", "AudioFilename: a.mp3"]
    assert cursor.next_line() is None

    cursor.reset()
    assert cursor.next_line() == "osu file format v14"
    assert cursor.line_number == 1
    assert cursor.next_line() == "[General]"
    assert cursor.line_number == 4

    assert list(LineCursor(" \r\n\t ")) == []


if __name__ == "__main__":
    _run_unit_tests()
    print("line_cursor.py: ok")
