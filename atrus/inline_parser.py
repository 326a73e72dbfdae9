"""Inline parsing: turns the raw text of a leaf block into inline nodes.

Resolution runs in four passes over one shared character buffer:

1. code spans, math spans and autolinks;
2. links and images, innermost brackets first;
3. roles, ``{name}`` directly followed by a code span;
4. emphasis, backslash escapes, entity references and line breaks.

A span resolved by an earlier pass is overwritten in the buffer by a
placeholder of the same length (a NUL followed by filler characters), so later
passes see it as one opaque unit and every buffer index still refers to the
same character of the original text.
"""

from __future__ import annotations

import html
import logging
import string
import unicodedata
from bisect import bisect_right
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass

from .config import ParserConfig
from .constants import (
    AUTOLINK_PATTERN,
    DEFAULT_CONFIG,
    EMAIL_AUTOLINK_PATTERN,
    ENTITY_PATTERN,
    ESCAPABLE,
    MAX_LINK_PAREN_DEPTH,
    PLACEHOLDER_MARK,
    ROLE_NAME_PATTERN,
)
from .escape import is_escaped, normalize_label, unescape_string
from .models import (
    CodeSpan,
    Definition,
    Emphasis,
    Image,
    LineBreak,
    Link,
    Node,
    RawMath,
    Role,
    Strong,
    Text,
    plain_text,
)

logger = logging.getLogger(__name__)

_FILLER = "\x01"
_ROLE_LOOKBEHIND = 128


class SourceMap:
    """Map indices in a leaf block's content to offsets in the source text.

    Args:
        segments: ``(content_index, source_offset)`` pairs, one per content
            line, sorted by content index.

    Examples:
        SourceMap([(0, 2), (4, 9)]).offset(5)  # 10
    """

    def __init__(self, segments: Sequence[tuple[int, int]] = ((0, 0),)):
        self._indices = [index for index, _ in segments] or [0]
        self._offsets = [offset for _, offset in segments] or [0]

    def offset(self, index: int) -> int:
        position = max(bisect_right(self._indices, index) - 1, 0)
        return self._offsets[position] + index - self._indices[position]


@dataclass
class _Opaque:
    node: Node
    length: int


@dataclass
class _Bracket:
    index: int
    image: bool
    active: bool = True


class _Item:
    """Entry of the doubly linked inline sequence used by the emphasis pass."""

    __slots__ = ("text", "node", "start", "end", "prev", "next")

    def __init__(self, start: int, end: int, text: str = "", node: Node | None = None):
        self.text = text
        self.node = node
        self.start = start
        self.end = end
        self.prev: _Item | None = None
        self.next: _Item | None = None


class _Sequence:
    def __init__(self):
        self.first: _Item | None = None
        self.last: _Item | None = None

    def append(self, item: _Item) -> None:
        item.prev = self.last
        if self.last is None:
            self.first = item
        else:
            self.last.next = item
        self.last = item

    def remove(self, item: _Item) -> None:
        if item.prev is None:
            self.first = item.next
        else:
            item.prev.next = item.next
        if item.next is None:
            self.last = item.prev
        else:
            item.next.prev = item.prev

    def between(self, first: _Item, last: _Item) -> list[_Item]:
        items = []
        current = first.next
        while current is not None and current is not last:
            items.append(current)
            current = current.next
        return items

    def replace_between(self, first: _Item, last: _Item, item: _Item) -> None:
        first.next = item
        item.prev = first
        item.next = last
        last.prev = item

    def __iter__(self) -> Iterator[_Item]:
        current = self.first
        while current is not None:
            yield current
            current = current.next


@dataclass(eq=False)
class _Delimiter:
    """A run of ``*`` or ``_`` that may open or close emphasis.

    Records live in one list per emphasis pass and link to each other by
    index; -1 marks the end of the chain.
    """

    item: _Item
    char: str
    count: int
    original: int
    can_open: bool
    can_close: bool
    previous: int = -1
    following: int = -1


def _is_punctuation(char: str) -> bool:
    return char in string.punctuation or unicodedata.category(char)[0] in "PS"


def _run_length(text: str | list[str], start: int, char: str, end: int | None = None) -> int:
    end = len(text) if end is None else end
    position = start
    while position < end and text[position] == char:
        position += 1
    return position - start


def _normalize_code(value: str) -> str:
    value = value.replace("\n", " ")
    if len(value) >= 2 and value[0] == " " and value[-1] == " " and value.strip(" "):
        value = value[1:-1]
    return value


class InlineParser:
    """Resolve inline markup of leaf blocks.

    One instance can parse many leaf blocks of the same document; state for a
    single block lives only for the duration of `parse`.

    Args:
        definitions: Link reference definitions keyed by normalized label.
        config: Parser options; defaults to `DEFAULT_CONFIG`.

    Examples:
        InlineParser().parse("*hello* `world`")
    """

    def __init__(
        self,
        definitions: Mapping[str, Definition] | None = None,
        config: ParserConfig | None = None,
    ):
        self.definitions = definitions if definitions is not None else {}
        self.config = config or DEFAULT_CONFIG

    def parse(self, text: str, source_map: SourceMap | None = None) -> tuple[Node, ...]:
        """Return the inline nodes for `text`.

        Args:
            text: Raw content of one leaf block, lines joined with ``\\n``.
            source_map: Mapping from indices in `text` to source offsets.

        Returns:
            tuple[Node, ...]: Inline nodes in order; unresolved markup is Text.
        """
        self._source = text
        self._buffer = list(text)
        self._opaque: dict[int, _Opaque] = {}
        self._map = source_map or SourceMap()
        # Run length -> position from which no closing run exists
        self._no_backtick_close: dict[int, int] = {}
        self._no_math_close: dict[int, int] = {}

        self._resolve_code_spans()
        self._resolve_links(0, len(text))
        return self._resolve_text(0, len(text))

    def _span(self, start: int, end: int) -> dict[str, int]:
        return {"start": self._map.offset(start), "end": self._map.offset(end)}

    def _place(self, start: int, end: int, node: Node) -> None:
        self._buffer[start] = PLACEHOLDER_MARK
        self._buffer[start + 1 : end] = _FILLER * (end - start - 1)
        self._opaque[start] = _Opaque(node, end - start)

    # Pass 1: code spans, math, autolinks

    def _resolve_code_spans(self) -> None:
        text = self._source
        length = len(text)
        i = 0
        while i < length:
            char = text[i]
            if char == "\\":
                i += 2
                continue

            if char == "`":
                run = _run_length(text, i, "`")
                close = self._find_closing_run(i + run, run)
                if close is None:
                    i += run
                    continue
                end = close + run
                value = _normalize_code(text[i + run : close])
                self._place(i, end, CodeSpan(value=value, **self._span(i, end)))
                i = end
                continue

            if char == "$" and self.config.math:
                run = _run_length(text, i, "$")
                close = self._find_math_close(i, run) if run <= 2 else None
                if close is None:
                    i += run
                    continue
                end = close + run
                node = RawMath(value=text[i + run : close], display=run == 2, **self._span(i, end))
                self._place(i, end, node)
                i = end
                continue

            if char == "<":
                match = AUTOLINK_PATTERN.match(text, i)
                destination = match.group(1) if match else None
                if match is None:
                    match = EMAIL_AUTOLINK_PATTERN.match(text, i)
                    destination = f"mailto:{match.group(1)}" if match else None
                if match is not None:
                    end = match.end()
                    label = Text(value=match.group(1), **self._span(i + 1, end - 1))
                    node = Link(destination=destination, children=(label,), **self._span(i, end))
                    self._place(i, end, node)
                    i = end
                    continue

            i += 1

    def _find_closing_run(self, position: int, run: int) -> int | None:
        text = self._source
        if position >= self._no_backtick_close.get(run, len(text) + 1):
            return None
        search_start = position
        while True:
            position = text.find("`", position)
            if position < 0:
                self._no_backtick_close[run] = search_start
                return None
            found = _run_length(text, position, "`")
            if found == run:
                return position
            position += found

    def _find_math_close(self, start: int, run: int) -> int | None:
        text = self._source
        content_start = start + run
        if content_start >= len(text) or (run == 1 and text[content_start].isspace()):
            return None
        if content_start >= self._no_math_close.get(run, len(text) + 1):
            return None

        position = content_start
        while True:
            position = text.find("$", position)
            if position < 0:
                self._no_math_close[run] = content_start
                return None
            found = _run_length(text, position, "$")
            if found != run or is_escaped(text, position, content_start):
                position += found
                continue
            if position == content_start:
                return None
            if run == 1:
                after = position + 1
                if text[position - 1].isspace() or (after < len(text) and text[after].isdigit()):
                    position += 1
                    continue
            return position

    # Pass 2: links and images

    def _resolve_links(self, start: int, end: int) -> None:
        buffer = self._buffer
        brackets: list[_Bracket] = []
        i = start
        while i < end:
            char = buffer[i]
            if char == PLACEHOLDER_MARK:
                i += self._opaque[i].length
                continue
            if char == "\\":
                i += 2
                continue
            if char == "[":
                brackets.append(_Bracket(i, image=False))
            elif char == "!" and i + 1 < end and buffer[i + 1] == "[":
                brackets.append(_Bracket(i, image=True))
                i += 2
                continue
            elif char == "]" and brackets:
                bracket = brackets.pop()
                if bracket.active:
                    resolved_end = self._close_bracket(bracket, i, end)
                    if resolved_end is not None:
                        if not bracket.image:
                            # Links may not contain other links
                            for other in brackets:
                                if not other.image:
                                    other.active = False
                        i = resolved_end
                        continue
            i += 1

    def _close_bracket(self, bracket: _Bracket, close: int, end: int) -> int | None:
        text_start = bracket.index + (2 if bracket.image else 1)
        tail = self._parse_inline_tail(close + 1, end)
        if tail is None:
            tail = self._parse_reference_tail(text_start, close, end)
        if tail is None:
            return None

        destination, title, tail_end = tail
        children = self._resolve_text(text_start, close)
        span = self._span(bracket.index, tail_end)
        if bracket.image:
            node: Node = Image(
                destination=destination, title=title, alt=plain_text(children), **span
            )
        else:
            node = Link(destination=destination, title=title, children=children, **span)
        self._place(bracket.index, tail_end, node)
        return tail_end

    def _skip_whitespace(self, position: int, end: int) -> int:
        while position < end and self._buffer[position] in " \t\n":
            position += 1
        return position

    def _parse_inline_tail(self, position: int, end: int) -> tuple[str, str, int] | None:
        """Parse ``(destination "title")`` starting at `position`."""
        buffer, source = self._buffer, self._source
        if position >= end or buffer[position] != "(":
            return None

        i = self._skip_whitespace(position + 1, end)
        if i < end and buffer[i] == ")":
            return "", "", i + 1

        if i < end and buffer[i] == "<":
            j = i + 1
            while j < end and buffer[j] not in "<>\n" + PLACEHOLDER_MARK:
                j += 2 if buffer[j] == "\\" else 1
            if j >= end or buffer[j] != ">":
                return None
            destination = source[i + 1 : j]
            j += 1
        else:
            depth = 0
            j = i
            while j < end:
                char = buffer[j]
                if char == "\\" and j + 1 < end and buffer[j + 1] in ESCAPABLE:
                    j += 2
                    continue
                if char == "(":
                    depth += 1
                    if depth > MAX_LINK_PAREN_DEPTH:
                        return None
                elif char == ")":
                    if depth == 0:
                        break
                    depth -= 1
                elif char.isspace() or ord(char) < 0x20:
                    break
                j += 1
            if j == i or depth != 0:
                return None
            destination = source[i:j]

        k = self._skip_whitespace(j, end)
        title = ""
        if k > j and k < end and buffer[k] in "\"'(":
            closer = ")" if buffer[k] == "(" else buffer[k]
            m = k + 1
            while m < end and buffer[m] not in (closer, PLACEHOLDER_MARK):
                m += 2 if buffer[m] == "\\" else 1
            if m >= end or buffer[m] != closer:
                return None
            title = source[k + 1 : m]
            k = self._skip_whitespace(m + 1, end)

        if k >= end or buffer[k] != ")":
            return None
        return unescape_string(destination), unescape_string(title), k + 1

    def _parse_reference_tail(self, text_start: int, close: int, end: int) -> tuple[str, str, int] | None:
        """Resolve ``[text][label]``, ``[label][]`` and ``[label]`` forms."""
        if not self.definitions:
            return None

        buffer, source = self._buffer, self._source
        after = close + 1
        label = source[text_start:close]
        tail_end = after
        if after < end and buffer[after] == "[":
            j = after + 1
            while j < end and buffer[j] not in "[]" + PLACEHOLDER_MARK:
                j += 2 if buffer[j] == "\\" else 1
            if j < end and buffer[j] == "]":
                reference = source[after + 1 : j]
                if reference.strip():
                    label = reference
                tail_end = j + 1

        definition = self.definitions.get(normalize_label(label))
        if definition is None:
            return None
        return definition.destination, definition.title, tail_end

    # Passes 3 and 4

    def _resolve_text(self, start: int, end: int) -> tuple[Node, ...]:
        if self.config.roles:
            self._resolve_roles(start, end)
        return self._resolve_emphasis(start, end)

    def _resolve_roles(self, start: int, end: int) -> None:
        buffer = self._buffer
        i = start
        while i < end:
            if buffer[i] != PLACEHOLDER_MARK:
                i += 1
                continue

            opaque = self._opaque[i]
            span_end = i + opaque.length
            if isinstance(opaque.node, CodeSpan) and i > start and buffer[i - 1] == "}":
                prefix = "".join(buffer[max(start, i - _ROLE_LOOKBEHIND) : i])
                match = ROLE_NAME_PATTERN.search(prefix)
                if match is not None:
                    role_start = i - (len(prefix) - match.start())
                    if not is_escaped(self._source, role_start, start):
                        node = Role(
                            name=match.group(1),
                            value=opaque.node.value,
                            **self._span(role_start, span_end),
                        )
                        self._place(role_start, span_end, node)
            i = span_end

    def _resolve_emphasis(self, start: int, end: int) -> tuple[Node, ...]:
        buffer, source = self._buffer, self._source
        sequence = _Sequence()
        delimiters: list[_Delimiter] = []
        chunks: list[str] = []
        chunk_start = start

        def flush(position: int) -> None:
            if chunks:
                sequence.append(_Item(chunk_start, position, text="".join(chunks)))
                chunks.clear()

        i = start
        while i < end:
            char = buffer[i]
            if char == PLACEHOLDER_MARK:
                flush(i)
                opaque = self._opaque[i]
                sequence.append(_Item(i, i + opaque.length, node=opaque.node))
                i += opaque.length
                continue

            if char == "\\" and i + 1 < end:
                following = buffer[i + 1]
                if following == "\n":
                    flush(i)
                    sequence.append(_Item(i, i + 2, node=LineBreak(**self._span(i, i + 2))))
                    i = self._skip_spaces(i + 2, end)
                    continue
                if following in ESCAPABLE:
                    if not chunks:
                        chunk_start = i
                    chunks.append(following)
                    i += 2
                    continue

            if char in "*_":
                flush(i)
                run = _run_length(buffer, i, char, end)
                can_open, can_close = self._flanking(i, i + run, char)
                item = _Item(i, i + run, text=char * run)
                sequence.append(item)
                if can_open or can_close:
                    delimiters.append(_Delimiter(item, char, run, run, can_open, can_close))
                i += run
                continue

            if char == "\n":
                pending = "".join(chunks)
                stripped = pending.rstrip(" ")
                chunks[:] = [stripped] if stripped else []
                if len(pending) - len(stripped) >= 2:
                    flush(i - (len(pending) - len(stripped)))
                    sequence.append(_Item(i, i + 1, node=LineBreak(**self._span(i, i + 1))))
                else:
                    if not chunks:
                        chunk_start = i
                    chunks.append("\n")
                i = self._skip_spaces(i + 1, end)
                continue

            if char == "&":
                match = ENTITY_PATTERN.match(source, i, end)
                if match is not None:
                    if not chunks:
                        chunk_start = i
                    chunks.append(html.unescape(match.group(0)))
                    i = match.end()
                    continue

            if not chunks:
                chunk_start = i
            chunks.append(char)
            i += 1

        flush(end)

        for index, delimiter in enumerate(delimiters):
            delimiter.previous = index - 1
            delimiter.following = index + 1 if index + 1 < len(delimiters) else -1
        self._process_emphasis(sequence, delimiters)
        return self._to_nodes(sequence)

    def _skip_spaces(self, position: int, end: int) -> int:
        while position < end and self._buffer[position] in " \t":
            position += 1
        return position

    def _flanking(self, run_start: int, run_end: int, char: str) -> tuple[bool, bool]:
        source = self._source
        before = source[run_start - 1] if run_start > 0 else "\n"
        after = source[run_end] if run_end < len(source) else "\n"
        before_space, after_space = before.isspace(), after.isspace()
        before_punct, after_punct = _is_punctuation(before), _is_punctuation(after)

        left = not after_space and (not after_punct or before_space or before_punct)
        right = not before_space and (not before_punct or after_space or after_punct)
        if char == "_":
            return left and (not right or before_punct), right and (not left or after_punct)
        return left, right

    def _process_emphasis(self, sequence: _Sequence, delimiters: list[_Delimiter]) -> None:
        """Match delimiter runs left to right into Emphasis and Strong nodes.

        Each closer takes the nearest compatible opener below it; openers that
        cannot match a given closer kind are remembered in `openers_bottom` so
        the stack is never rescanned past them.
        """
        openers_bottom: dict[tuple[str, bool, int], int] = {}
        closer_index = 0 if delimiters else -1

        while closer_index != -1:
            closer = delimiters[closer_index]
            if not closer.can_close:
                closer_index = closer.following
                continue

            key = (closer.char, closer.can_open, closer.original % 3)
            bottom = openers_bottom.get(key, -1)
            opener_index = closer.previous
            found = False
            while opener_index != -1 and opener_index != bottom:
                opener = delimiters[opener_index]
                if opener.char == closer.char and opener.can_open:
                    odd_match = (
                        (opener.can_close or closer.can_open)
                        and closer.original % 3 != 0
                        and (opener.original + closer.original) % 3 == 0
                    )
                    if not odd_match:
                        found = True
                        break
                opener_index = opener.previous

            if not found:
                openers_bottom[key] = closer.previous
                next_index = closer.following
                if not closer.can_open:
                    self._unlink(delimiters, closer_index)
                closer_index = next_index
                continue

            opener = delimiters[opener_index]
            use = 2 if closer.count >= 2 and opener.count >= 2 else 1
            opener.count -= use
            closer.count -= use
            opener.item.text = opener.item.text[:-use]
            opener.item.end -= use
            closer.item.text = closer.item.text[use:]
            closer.item.start += use

            node_start, node_end = opener.item.end, closer.item.start
            children = self._to_nodes(sequence.between(opener.item, closer.item))
            node_class = Strong if use == 2 else Emphasis
            node = node_class(children=children, **self._span(node_start, node_end))
            sequence.replace_between(opener.item, closer.item, _Item(node_start, node_end, node=node))

            # Delimiters inside the new node can no longer match
            opener.following = closer_index
            closer.previous = opener_index

            if opener.count == 0:
                sequence.remove(opener.item)
                self._unlink(delimiters, opener_index)
            if closer.count == 0:
                next_index = closer.following
                sequence.remove(closer.item)
                self._unlink(delimiters, closer_index)
                closer_index = next_index

    @staticmethod
    def _unlink(delimiters: list[_Delimiter], index: int) -> None:
        delimiter = delimiters[index]
        if delimiter.previous != -1:
            delimiters[delimiter.previous].following = delimiter.following
        if delimiter.following != -1:
            delimiters[delimiter.following].previous = delimiter.previous

    def _to_nodes(self, items: Sequence[_Item] | _Sequence) -> tuple[Node, ...]:
        nodes: list[Node] = []
        parts: list[str] = []
        text_start = text_end = 0
        for item in items:
            if item.node is None:
                if not item.text:
                    continue
                if not parts:
                    text_start = item.start
                parts.append(item.text)
                text_end = item.end
                continue
            if parts:
                nodes.append(Text(value="".join(parts), **self._span(text_start, text_end)))
                parts = []
            nodes.append(item.node)
        if parts:
            nodes.append(Text(value="".join(parts), **self._span(text_start, text_end)))
        return tuple(nodes)


def parse_inlines(
    text: str,
    source_map: SourceMap | None = None,
    definitions: Mapping[str, Definition] | None = None,
    config: ParserConfig | None = None,
) -> tuple[Node, ...]:
    """Parse the inline content of one leaf block.

    Args:
        text: Raw block content.
        source_map: Optional mapping of content indices to source offsets.
        definitions: Link reference definitions keyed by normalized label.
        config: Parser options.

    Returns:
        tuple[Node, ...]: Resolved inline nodes.

    Examples:
        parse_inlines("*a _b* c_")  # (Emphasis(...), Text(value=" c_"))
    """
    return InlineParser(definitions, config).parse(text, source_map)
