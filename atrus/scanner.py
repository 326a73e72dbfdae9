"""Line scanning for Markdown source text."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from .constants import TAB_STOP


@dataclass(frozen=True)
class Line:
    """One source line without its terminator.

    Attributes:
        text: Line content, line ending removed.
        offset: Character offset of the first character in the source.
        number: One-based line number.
    """

    text: str
    offset: int
    number: int

    @property
    def end(self) -> int:
        return self.offset + len(self.text)


def normalize_source(text: str) -> str:
    """Replace characters that may not appear in a parsed document.

    NUL is replaced with U+FFFD, as CommonMark requires; a leading byte order
    mark is dropped.
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    return text.replace("\x00", "\ufffd")


class Scanner:
    """Restartable iterator over the lines of a text.

    Lines may end with ``\\n``, ``\\r\\n`` or ``\\r``; a final line without a
    terminator is still a complete line. Iterating again starts over from the
    first line.

    Examples:
        [line.text for line in Scanner("a\\r\\nb")]  # ["a", "b"]
    """

    def __init__(self, text: str):
        self.text = text

    def __iter__(self) -> Iterator[Line]:
        text = self.text
        length = len(text)
        position = 0
        number = 1
        while position < length:
            end = position
            while end < length and text[end] not in "\r\n":
                end += 1
            yield Line(text[position:end], position, number)

            if end < length and text[end] == "\r" and end + 1 < length and text[end + 1] == "\n":
                end += 1
            position = end + 1
            number += 1


def is_blank(text: str) -> bool:
    """Return True when the text holds only spaces and tabs."""
    return text.strip(" \t") == ""


def leading_whitespace_columns(line: str, start_column: int = 0) -> int:
    """Compute the column width of leading whitespace.

    Tabs advance to the next multiple of four columns to match Markdown
    indentation rules.

    Args:
        line: Line whose leading whitespace should be measured.
        start_column: Column at which `line` begins, used to place tab stops.

    Returns:
        int: Number of columns occupied by the leading whitespace.

    Examples:
        leading_whitespace_columns("    text")  # 4
        leading_whitespace_columns("\\ttext")  # 4
    """
    column = start_column
    for character in line:
        if character == " ":
            column += 1
            continue
        if character == "\t":
            column += TAB_STOP - (column % TAB_STOP)
            continue
        break
    return column - start_column
