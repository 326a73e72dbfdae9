"""Backslash escapes, entity references and label normalization."""

from __future__ import annotations

import html
import re

from .constants import ENTITY_PATTERN, ESCAPABLE

_ESCAPE_OR_ENTITY = re.compile(r"\\([" + re.escape(ESCAPABLE) + r"])|" + ENTITY_PATTERN.pattern)


def is_escaped(text: str, pos: int, start: int = 0) -> bool:
    """Determine whether a character is escaped by preceding backslashes.

    Counts consecutive backslashes immediately before `pos`; an odd count marks
    the character as escaped.

    Args:
        text: Text containing the character.
        pos: Zero-based index of the character to inspect.
        start: Index before which backslashes are not counted.

    Returns:
        bool: True when the character is escaped, otherwise False.

    Examples:
        is_escaped("\\\\*", 2)  # False, two backslashes
        is_escaped("\\*", 1)  # True, one backslash
    """
    backslash_count = 0
    i = pos - 1
    while i >= start and text[i] == "\\":
        backslash_count += 1
        i -= 1

    return backslash_count % 2 == 1


def unescape_string(text: str) -> str:
    r"""Resolve backslash escapes and entity references.

    Only ASCII punctuation can be escaped; any other backslash is literal.

    Examples:
        unescape_string(r"/url\*x")  # "/url*x"
        unescape_string("&amp;copy;")  # "&copy;"
    """
    if "\\" not in text and "&" not in text:
        return text

    def _replace(match: re.Match[str]) -> str:
        if match.group(1) is not None:
            return match.group(1)
        return html.unescape(match.group(0))

    return _ESCAPE_OR_ENTITY.sub(_replace, text)


def normalize_label(label: str) -> str:
    """Normalize a link label for matching: case-fold and collapse whitespace.

    Examples:
        normalize_label("  Foo  Bar ")  # "foo bar"
    """
    return " ".join(label.split()).casefold()
