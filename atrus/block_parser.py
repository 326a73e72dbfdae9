"""Block structure parsing.

Lines are fed one at a time into a stack of open block builders. For every
line the open containers are matched from the outermost inwards; the first
container that does not match, and everything inside it, is closed as soon as
a new block starts or the line is added somewhere else. Leaf content is kept
as raw lines and only handed to the inline parser once the whole document has
been read, so link reference definitions anywhere in the document are known.
"""

from __future__ import annotations

import itertools
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import yaml

from .config import ParserConfig
from .constants import (
    ATX_CLOSING_PATTERN,
    ATX_HEADING_PATTERN,
    BLOCK_BREAK_PATTERN,
    BULLET_ITEM_PATTERN,
    CLOSING_FENCE_MAX_INDENT,
    CODE_FENCE_PATTERN,
    CODE_INDENT,
    DEFAULT_CONFIG,
    DIRECTIVE_FENCE_PATTERN,
    DIRECTIVE_INFO_PATTERN,
    DIRECTIVE_OPTION_PATTERN,
    FRONT_MATTER_CLOSERS,
    FRONT_MATTER_FENCE,
    LINK_DEFINITION_PATTERN,
    ORDERED_ITEM_PATTERN,
    SETEXT_UNDERLINE_PATTERN,
    TAB_STOP,
    THEMATIC_BREAK_PATTERN,
)
from .escape import normalize_label, unescape_string
from .inline_parser import InlineParser, SourceMap
from .models import (
    BlockQuote,
    CodeFence,
    Container,
    Definition,
    DirectiveFence,
    Document,
    FrontMatter,
    Heading,
    List,
    ListItem,
    Node,
    NodeType,
    Paragraph,
    ThematicBreak,
)
from .scanner import Line, Scanner, is_blank, leading_whitespace_columns, normalize_source

logger = logging.getLogger(__name__)

# Continuation results
_MATCHED = 0
_NOT_MATCHED = 1
_LINE_CONSUMED = 2

# Block start results
_NO_START = 0
_CONTAINER_STARTED = 1
_LEAF_STARTED = 2

# First characters that may begin something other than a paragraph
_MAYBE_SPECIAL = re.compile(r"^[#`~*+_=<>0-9:\-]")

_NESTING_KINDS = frozenset({NodeType.BLOCK_QUOTE, NodeType.LIST_ITEM, NodeType.DIRECTIVE_FENCE})
_LINE_KINDS = frozenset({NodeType.PARAGRAPH, NodeType.CODE_FENCE})
_CONTAINER_KINDS = frozenset(
    {
        NodeType.DOCUMENT,
        NodeType.CONTAINER,
        NodeType.BLOCK_QUOTE,
        NodeType.LIST_ITEM,
        NodeType.DIRECTIVE_FENCE,
    }
)


@dataclass
class FenceState:
    """Opening fence of a fenced code block or directive.

    Attributes:
        char: Fence character, one of ``` ` ```, ``~`` or ``:``.
        length: Number of fence characters in the opening run.
        indent_columns: Indentation width preceding the opening fence.
        closed: True once a closing fence has been seen.
    """

    char: str
    length: int
    indent_columns: int = 0
    closed: bool = False


@dataclass
class ListData:
    ordered: bool
    bullet_char: str = ""
    delimiter: str = ""
    start_number: int | None = None
    marker_offset: int = 0
    padding: int = 0

    def matches(self, other: ListData) -> bool:
        return (
            self.ordered == other.ordered
            and self.delimiter == other.delimiter
            and self.bullet_char == other.bullet_char
        )


@dataclass(eq=False)
class _Block:
    """Mutable builder for one block while the document is being read."""

    kind: NodeType
    start: int
    start_line: int
    parent: _Block | None = None
    depth: int = 0
    children: list[_Block] = field(default_factory=list)
    lines: list[tuple[str, int]] = field(default_factory=list)
    open: bool = True
    end: int = 0
    end_line: int = 0
    level: int = 0
    info: str = ""
    value: str = ""
    fence: FenceState | None = None
    name: str = ""
    argument: str = ""
    options: list[tuple[str, str]] = field(default_factory=list)
    options_open: bool = True
    list_data: ListData | None = None
    spread: bool = False
    meta: str | None = None
    data: dict[str, Any] | None = None
    definition: Definition | None = None


def _is_space_or_tab(char: str) -> bool:
    return char == " " or char == "\t"


def _is_closing_fence(fence: FenceState, text: str) -> bool:
    """Check whether `text` closes the fence.

    The closing run must use the opening character, be at least as long as the
    opening run, and be followed only by whitespace.

    Examples:
        _is_closing_fence(FenceState("`", 3), "````")  # True
        _is_closing_fence(FenceState("`", 3), "`` ")  # False
    """
    if not text or text[0] != fence.char:
        return False

    fence_run_length = len(text) - len(text.lstrip(fence.char))
    if fence_run_length < fence.length:
        return False

    return not text[fence_run_length:].strip()


def _ends_with_blank_line(block: _Block, following: _Block) -> bool:
    return block.end_line != following.start_line - 1


def _can_contain(parent: NodeType, child: NodeType) -> bool:
    if parent is NodeType.LIST:
        return child is NodeType.LIST_ITEM
    if parent not in _CONTAINER_KINDS:
        return False
    if child is NodeType.LIST_ITEM:
        return False
    if child is NodeType.CONTAINER:
        return parent is NodeType.DOCUMENT
    return True


class BlockParser:
    """Build a `Document` from Markdown text.

    A parser instance holds the state of one parse and is not reused; the
    `parse` function of the package creates a new one per call.

    Args:
        config: Parser options; defaults to `DEFAULT_CONFIG`.

    Examples:
        BlockParser().parse("# Title\\n\\nSome *text*.")
    """

    def __init__(self, config: ParserConfig | None = None):
        self.config = config or DEFAULT_CONFIG
        self.document = _Block(NodeType.DOCUMENT, start=0, start_line=0)
        self.tip: _Block | None = self.document
        self.old_tip: _Block = self.document
        self.last_matched_container: _Block = self.document
        self.all_closed = True
        self.definitions: dict[str, Definition] = {}

        self.current_line = ""
        self.line_offset = 0
        self.line_number = 0
        self.offset = 0
        self.column = 0
        self.next_nonspace = 0
        self.next_nonspace_column = 0
        self.indent = 0
        self.indented = False
        self.blank = False
        self.partially_consumed_tab = False
        self._line_ends: list[int] = []

        self._block_starts = (
            self._start_setext_heading,
            self._start_thematic_break,
            self._start_atx_heading,
            self._start_fence,
            self._start_block_break,
            self._start_block_quote,
            self._start_list_item,
            self._start_indented_code,
        )

    def parse(self, text: str) -> Document:
        """Parse `text` into a document.

        Args:
            text: Markdown source; NUL characters are replaced with U+FFFD.

        Returns:
            Document: The immutable tree.
        """
        source = normalize_source(text)
        lines: Iterator[Line] = iter(Scanner(source))
        if self.config.front_matter:
            lines = self._read_front_matter(lines)

        for line in lines:
            self._incorporate_line(line)

        while self.tip is not None:
            self._finalize(self.tip, self.line_number)

        inline_parser = InlineParser(self.definitions, self.config)
        children = tuple(self._to_node(child, inline_parser) for child in self.document.children)
        return Document(children, source)

    # Line state

    def _find_next_nonspace(self) -> None:
        rest = self.current_line[self.offset :]
        i = self.offset + len(rest) - len(rest.lstrip(" \t"))
        columns = self.column + leading_whitespace_columns(rest, self.column)
        self.blank = i >= len(self.current_line)
        self.next_nonspace = i
        self.next_nonspace_column = columns
        self.indent = columns - self.column
        self.indented = self.indent >= CODE_INDENT

    def _advance_next_nonspace(self) -> None:
        self.offset = self.next_nonspace
        self.column = self.next_nonspace_column
        self.partially_consumed_tab = False

    def _advance_offset(self, count: int, columns: bool = False) -> None:
        """Move past `count` characters, or `count` columns when `columns` is set.

        Consuming only part of a tab leaves the tab in place and records the
        remainder in `partially_consumed_tab`.
        """
        line = self.current_line
        while count > 0 and self.offset < len(line):
            char = line[self.offset]
            if char == "\t":
                chars_to_tab = TAB_STOP - (self.column % TAB_STOP)
                if columns:
                    self.partially_consumed_tab = chars_to_tab > count
                    chars_to_advance = min(count, chars_to_tab)
                    self.column += chars_to_advance
                    if not self.partially_consumed_tab:
                        self.offset += 1
                    count -= chars_to_advance
                else:
                    self.partially_consumed_tab = False
                    self.column += chars_to_tab
                    self.offset += 1
                    count -= 1
            else:
                self.partially_consumed_tab = False
                self.offset += 1
                self.column += 1
                count -= 1

    def _advance_to_end(self) -> None:
        self._advance_offset(len(self.current_line) - self.offset)

    def _rest(self) -> str:
        return self.current_line[self.next_nonspace :]

    def _peek(self, position: int) -> str:
        line = self.current_line
        return line[position] if position < len(line) else ""

    # Tree building

    def _add_line(self) -> None:
        line = self.current_line
        source_offset = self.line_offset + self.offset
        if self.partially_consumed_tab:
            self.offset += 1
            chars_to_tab = TAB_STOP - (self.column % TAB_STOP)
            text = " " * chars_to_tab + line[self.offset :]
            source_offset = max(self.line_offset, self.line_offset + self.offset - chars_to_tab)
        else:
            text = line[self.offset :]
        self.tip.lines.append((text, source_offset))

    def _add_child(self, kind: NodeType, offset: int) -> _Block:
        while not _can_contain(self.tip.kind, kind):
            self._finalize(self.tip, self.line_number - 1)

        parent = self.tip
        depth = parent.depth + (1 if kind in _NESTING_KINDS else 0)
        block = _Block(
            kind,
            start=self.line_offset + offset,
            start_line=self.line_number,
            parent=parent,
            depth=depth,
        )
        parent.children.append(block)
        self.tip = block
        return block

    def _close_unmatched_blocks(self) -> None:
        if self.all_closed:
            return
        while self.old_tip is not self.last_matched_container:
            parent = self.old_tip.parent
            self._finalize(self.old_tip, self.line_number - 1)
            self.old_tip = parent
        self.all_closed = True

    def _too_deep(self, container: _Block, kind: NodeType) -> bool:
        if container.depth + 1 <= self.config.max_nesting_depth:
            return False
        logger.debug(
            "Line %d: %s would exceed nesting depth %d; reading it as text",
            self.line_number,
            kind.value,
            self.config.max_nesting_depth,
        )
        return True

    # Per-line processing

    def _incorporate_line(self, line: Line) -> None:
        self.current_line = line.text
        self.line_offset = line.offset
        self.line_number = line.number
        self._line_ends.append(line.end)
        self.offset = 0
        self.column = 0
        self.blank = False
        self.partially_consumed_tab = False
        self.old_tip = self.tip

        container = self.document
        while container.children and container.children[-1].open:
            container = container.children[-1]
            self._find_next_nonspace()
            result = self._continue(container)
            if result == _MATCHED:
                continue
            if result == _NOT_MATCHED:
                container = container.parent
                break
            return

        self.all_closed = container is self.old_tip
        self.last_matched_container = container

        matched_leaf = container.kind is not NodeType.PARAGRAPH and container.kind in _LINE_KINDS
        while not matched_leaf:
            self._find_next_nonspace()
            if not self.indented and not _MAYBE_SPECIAL.match(self._rest()):
                self._advance_next_nonspace()
                break

            for start in self._block_starts:
                result = start(container)
                if result == _CONTAINER_STARTED:
                    container = self.tip
                    break
                if result == _LEAF_STARTED:
                    container = self.tip
                    matched_leaf = True
                    break
            else:
                self._advance_next_nonspace()
                break

        if not self.all_closed and not self.blank and self.tip.kind is NodeType.PARAGRAPH:
            # Lazy paragraph continuation
            self._add_line()
            return

        self._close_unmatched_blocks()
        if container.kind in _LINE_KINDS:
            self._add_line()
        elif self.offset < len(self.current_line) and not self.blank:
            self._add_child(NodeType.PARAGRAPH, self.next_nonspace)
            self._advance_next_nonspace()
            self._add_line()

    def _continue(self, container: _Block) -> int:
        kind = container.kind
        if kind in (NodeType.DOCUMENT, NodeType.CONTAINER, NodeType.LIST):
            return _MATCHED
        if kind is NodeType.BLOCK_QUOTE:
            return self._continue_block_quote()
        if kind is NodeType.LIST_ITEM:
            return self._continue_list_item(container)
        if kind is NodeType.CODE_FENCE:
            return self._continue_code(container)
        if kind is NodeType.DIRECTIVE_FENCE:
            return self._continue_directive(container)
        if kind is NodeType.PARAGRAPH:
            return _NOT_MATCHED if self.blank else _MATCHED
        return _NOT_MATCHED

    def _continue_block_quote(self) -> int:
        if self.indented or self._peek(self.next_nonspace) != ">":
            return _NOT_MATCHED
        self._advance_next_nonspace()
        self._advance_offset(1)
        if _is_space_or_tab(self._peek(self.offset)):
            self._advance_offset(1, columns=True)
        return _MATCHED

    def _continue_list_item(self, container: _Block) -> int:
        data = container.list_data
        if self.blank:
            if not container.children:
                # An item may begin with at most one blank line
                return _NOT_MATCHED
            self._advance_next_nonspace()
        elif self.indent >= data.marker_offset + data.padding:
            self._advance_offset(data.marker_offset + data.padding, columns=True)
        else:
            return _NOT_MATCHED
        return _MATCHED

    def _continue_code(self, container: _Block) -> int:
        fence = container.fence
        if fence is None:
            if self.indent >= CODE_INDENT:
                self._advance_offset(CODE_INDENT, columns=True)
            elif self.blank:
                self._advance_next_nonspace()
            else:
                return _NOT_MATCHED
            return _MATCHED

        if self.indent <= CLOSING_FENCE_MAX_INDENT and _is_closing_fence(fence, self._rest()):
            fence.closed = True
            self._finalize(container, self.line_number)
            return _LINE_CONSUMED

        remaining = fence.indent_columns
        while remaining > 0 and _is_space_or_tab(self._peek(self.offset)):
            self._advance_offset(1, columns=True)
            remaining -= 1
        return _MATCHED

    def _continue_directive(self, container: _Block) -> int:
        if self.indent <= CLOSING_FENCE_MAX_INDENT and _is_closing_fence(container.fence, self._rest()):
            container.fence.closed = True
            while self.tip is not container:
                self._finalize(self.tip, self.line_number - 1)
            self._finalize(container, self.line_number)
            return _LINE_CONSUMED

        if container.options_open:
            match = None
            if not container.children and not self.indented:
                match = DIRECTIVE_OPTION_PATTERN.match(self._rest())
            if match is None:
                container.options_open = False
            else:
                container.options.append((match.group("key"), match.group("value") or ""))
                return _LINE_CONSUMED
        return _MATCHED

    # Block starts

    def _start_setext_heading(self, container: _Block) -> int:
        if self.indented or container.kind is not NodeType.PARAGRAPH:
            return _NO_START
        match = SETEXT_UNDERLINE_PATTERN.match(self._rest())
        if match is None:
            return _NO_START

        self._close_unmatched_blocks()
        self._extract_definitions(container)
        if not container.lines:
            return _NO_START

        container.kind = NodeType.HEADING
        container.level = 1 if match.group(1)[0] == "=" else 2
        self._advance_to_end()
        return _LEAF_STARTED

    def _start_thematic_break(self, container: _Block) -> int:
        if self.indented or not THEMATIC_BREAK_PATTERN.match(self._rest()):
            return _NO_START
        self._close_unmatched_blocks()
        self._add_child(NodeType.THEMATIC_BREAK, self.next_nonspace)
        self._advance_to_end()
        return _LEAF_STARTED

    def _start_atx_heading(self, container: _Block) -> int:
        if self.indented:
            return _NO_START
        match = ATX_HEADING_PATTERN.match(self._rest())
        if match is None:
            return _NO_START

        self._close_unmatched_blocks()
        block = self._add_child(NodeType.HEADING, self.next_nonspace)
        block.level = len(match.group(1))
        if match.group(2) is not None:
            content = ATX_CLOSING_PATTERN.sub("", match.group(2)).strip(" \t")
            if content:
                block.lines.append((content, self.line_offset + self.next_nonspace + match.start(2)))
        self._advance_to_end()
        return _LEAF_STARTED

    def _start_fence(self, container: _Block) -> int:
        if self.indented:
            return _NO_START
        rest = self._rest()

        match = DIRECTIVE_FENCE_PATTERN.match(rest)
        if match is not None:
            name = match.group("braced") or match.group("bare")
            return self._open_directive(container, ":", len(match.group("fence")), name, match.group("argument"))

        match = CODE_FENCE_PATTERN.match(rest)
        if match is None:
            return _NO_START
        fence = match.group("fence")
        info = match.group("info").strip(" \t")
        if fence[0] == "`" and "`" in info:
            return _NO_START

        directive = DIRECTIVE_INFO_PATTERN.match(info)
        if directive is not None:
            return self._open_directive(
                container, fence[0], len(fence), directive.group("name"), directive.group("argument")
            )

        self._close_unmatched_blocks()
        block = self._add_child(NodeType.CODE_FENCE, self.next_nonspace)
        block.fence = FenceState(fence[0], len(fence), self.indent)
        block.info = unescape_string(info)
        self._advance_to_end()
        return _LEAF_STARTED

    def _open_directive(self, container: _Block, char: str, length: int, name: str, argument: str | None) -> int:
        if self._too_deep(container, NodeType.DIRECTIVE_FENCE):
            return _NO_START
        self._close_unmatched_blocks()
        block = self._add_child(NodeType.DIRECTIVE_FENCE, self.next_nonspace)
        block.fence = FenceState(char, length, self.indent)
        block.name = name
        block.argument = argument or ""
        self._advance_to_end()
        return _LEAF_STARTED

    def _start_block_break(self, container: _Block) -> int:
        top = container.parent if container.kind is NodeType.PARAGRAPH else container
        if (
            not self.config.block_breaks
            or self.indented
            or top.kind not in (NodeType.DOCUMENT, NodeType.CONTAINER)
        ):
            return _NO_START
        match = BLOCK_BREAK_PATTERN.match(self._rest())
        if match is None:
            return _NO_START

        self._close_unmatched_blocks()
        while self.tip is not self.document:
            self._finalize(self.tip, self.line_number - 1)
        self._wrap_loose_blocks()

        block = self._add_child(NodeType.CONTAINER, self.next_nonspace)
        block.meta = match.group("meta") or None
        self._advance_to_end()
        return _LEAF_STARTED

    def _wrap_loose_blocks(self) -> None:
        """Move top-level blocks preceding the first break into a Container."""
        children = self.document.children
        loose = [
            child
            for child in children
            if child.kind not in (NodeType.CONTAINER, NodeType.FRONT_MATTER)
        ]
        if not loose:
            return

        wrapper = _Block(
            NodeType.CONTAINER,
            start=loose[0].start,
            start_line=loose[0].start_line,
            parent=self.document,
            open=False,
            end=loose[-1].end,
            end_line=loose[-1].end_line,
        )
        for child in loose:
            child.parent = wrapper
        wrapper.children = loose
        kept = [child for child in children if child.kind is NodeType.FRONT_MATTER]
        self.document.children = kept + [wrapper] + [
            child for child in children if child.kind is NodeType.CONTAINER
        ]

    def _start_block_quote(self, container: _Block) -> int:
        if self.indented or self._peek(self.next_nonspace) != ">":
            return _NO_START
        if self._too_deep(container, NodeType.BLOCK_QUOTE):
            return _NO_START

        self._advance_next_nonspace()
        self._advance_offset(1)
        if _is_space_or_tab(self._peek(self.offset)):
            self._advance_offset(1, columns=True)
        self._close_unmatched_blocks()
        self._add_child(NodeType.BLOCK_QUOTE, self.next_nonspace)
        return _CONTAINER_STARTED

    def _start_list_item(self, container: _Block) -> int:
        if self.indented and container.kind is not NodeType.LIST:
            return _NO_START
        data = self._parse_list_marker(container)
        if data is None:
            return _NO_START

        self._close_unmatched_blocks()
        if self.tip.kind is not NodeType.LIST or not self.tip.list_data.matches(data):
            list_block = self._add_child(NodeType.LIST, self.next_nonspace)
            list_block.list_data = data
        item = self._add_child(NodeType.LIST_ITEM, self.next_nonspace)
        item.list_data = data
        return _CONTAINER_STARTED

    def _parse_list_marker(self, container: _Block) -> ListData | None:
        if self.indent >= CODE_INDENT:
            return None
        rest = self._rest()
        match = BULLET_ITEM_PATTERN.match(rest)
        if match is not None:
            data = ListData(ordered=False, bullet_char=match.group(1))
        else:
            match = ORDERED_ITEM_PATTERN.match(rest)
            if match is None:
                return None
            if container.kind is NodeType.PARAGRAPH and match.group(1) != "1":
                return None
            data = ListData(ordered=True, delimiter=match.group(2), start_number=int(match.group(1)))

        marker_length = len(match.group(0))
        if container.kind is NodeType.PARAGRAPH and is_blank(rest[marker_length:]):
            return None
        if self._too_deep(container, NodeType.LIST_ITEM):
            return None

        self._advance_next_nonspace()
        self._advance_offset(marker_length, columns=True)
        spaces_start_column = self.column
        spaces_start_offset = self.offset
        while True:
            self._advance_offset(1, columns=True)
            following = self._peek(self.offset)
            if not (self.column - spaces_start_column < 5 and _is_space_or_tab(following)):
                break

        blank_item = self._peek(self.offset) == ""
        spaces_after_marker = self.column - spaces_start_column
        if spaces_after_marker >= 5 or spaces_after_marker < 1 or blank_item:
            data.padding = marker_length + 1
            self.column = spaces_start_column
            self.offset = spaces_start_offset
            if _is_space_or_tab(self._peek(self.offset)):
                self._advance_offset(1, columns=True)
        else:
            data.padding = marker_length + spaces_after_marker
        data.marker_offset = self.indent
        return data

    def _start_indented_code(self, container: _Block) -> int:
        if not self.indented or self.tip.kind is NodeType.PARAGRAPH or self.blank:
            return _NO_START
        self._advance_offset(CODE_INDENT, columns=True)
        self._close_unmatched_blocks()
        self._add_child(NodeType.CODE_FENCE, self.offset)
        return _LEAF_STARTED

    # Front matter

    def _read_front_matter(self, lines: Iterator[Line]) -> Iterator[Line]:
        first = next(lines, None)
        if first is None:
            return iter(())
        if first.text.rstrip(" \t") != FRONT_MATTER_FENCE:
            return itertools.chain([first], lines)

        buffered = [first]
        for line in lines:
            buffered.append(line)
            if line.text.rstrip(" \t") in FRONT_MATTER_CLOSERS:
                self._add_front_matter(buffered)
                return lines

        logger.debug("Front matter fence on line 1 is never closed; reading it as Markdown")
        return iter(buffered)

    def _add_front_matter(self, lines: list[Line]) -> None:
        value = "\n".join(line.text for line in lines[1:-1])
        data = None
        if value.strip():
            try:
                loaded = yaml.safe_load(value)
            except yaml.YAMLError as error:
                logger.debug("Front matter is not valid YAML: %s", error)
            else:
                if isinstance(loaded, dict):
                    data = loaded
                else:
                    logger.debug("Front matter is not a mapping; keeping raw text only")

        closer = lines[-1]
        block = _Block(
            NodeType.FRONT_MATTER,
            start=lines[0].offset,
            start_line=lines[0].number,
            parent=self.document,
            open=False,
            end=closer.end,
            end_line=closer.number,
            value=value,
            data=data,
        )
        self.document.children.append(block)
        self._line_ends.extend(line.end for line in lines)
        self.line_number = closer.number

    # Finalization

    def _line_end(self, line_number: int) -> int:
        if line_number < 1 or not self._line_ends:
            return 0
        return self._line_ends[min(line_number, len(self._line_ends)) - 1]

    def _finalize(self, block: _Block, line_number: int) -> None:
        parent = block.parent
        block.open = False
        block.end_line = max(line_number, block.start_line)
        block.end = self._line_end(block.end_line)

        kind = block.kind
        if kind is NodeType.PARAGRAPH:
            self._extract_definitions(block)
            if not block.lines:
                parent.children.remove(block)
        elif kind is NodeType.CODE_FENCE:
            self._finalize_code(block)
        elif kind is NodeType.DIRECTIVE_FENCE:
            if not block.fence.closed:
                logger.debug("Directive %r opened on line %d is never closed", block.name, block.start_line)
        elif kind is NodeType.LIST_ITEM:
            self._finalize_list_item(block)
        elif kind is NodeType.LIST:
            self._finalize_list(block)

        self.tip = parent

    def _finalize_code(self, block: _Block) -> None:
        if block.fence is None:
            lines = [text for text, _ in block.lines]
            while lines and is_blank(lines[-1]):
                lines.pop()
            block.value = "\n".join(lines)
            return

        # The first line holds what followed the opening fence
        block.value = "\n".join(text for text, _ in block.lines[1:])
        if not block.fence.closed:
            logger.debug("Code fence opened on line %d is never closed", block.start_line)

    def _finalize_list_item(self, block: _Block) -> None:
        if block.children:
            last = block.children[-1]
            block.end_line = last.end_line
            block.end = last.end
        else:
            block.end_line = block.start_line
            block.end = self._line_end(block.start_line)
        block.spread = any(
            _ends_with_blank_line(child, following)
            for child, following in zip(block.children, block.children[1:])
        )

    def _finalize_list(self, block: _Block) -> None:
        items = block.children
        if items:
            block.end_line = items[-1].end_line
            block.end = items[-1].end
        block.spread = any(item.spread for item in items) or any(
            _ends_with_blank_line(item, following) for item, following in zip(items, items[1:])
        )

    def _paragraph_text(self, block: _Block) -> tuple[str, list[tuple[int, int]]]:
        """Join paragraph lines with leading whitespace removed."""
        parts: list[str] = []
        segments: list[tuple[int, int]] = []
        index = 0
        for text, offset in block.lines:
            stripped = text.lstrip(" \t")
            segments.append((index, offset + len(text) - len(stripped)))
            parts.append(stripped)
            index += len(stripped) + 1
        return "\n".join(parts), segments

    def _extract_definitions(self, block: _Block) -> None:
        """Move link reference definitions at the start of a paragraph out of it."""
        content, segments = self._paragraph_text(block)
        source_map = SourceMap(segments)
        parent = block.parent
        position = 0
        consumed_lines = 0
        found: list[_Block] = []

        while position < len(content) and content[position] == "[":
            match = LINK_DEFINITION_PATTERN.match(content, position)
            if match is None or not match.group("label").strip():
                break

            label = match.group("label")
            destination = match.group("destination")
            if destination.startswith("<"):
                destination = destination[1:-1]
            title = match.group("title")
            title = title[1:-1] if title else ""

            end_index = match.end()
            text_end = end_index - 1 if content[end_index - 1 : end_index] == "\n" else end_index
            line_count = content.count("\n", match.start(), text_end) + 1
            definition = Definition(
                label=label,
                identifier=normalize_label(label),
                destination=unescape_string(destination),
                title=unescape_string(title),
                start=source_map.offset(match.start()),
                end=source_map.offset(text_end),
            )
            self.definitions.setdefault(definition.identifier, definition)
            found.append(
                _Block(
                    NodeType.DEFINITION,
                    start=definition.start,
                    start_line=block.start_line + consumed_lines,
                    parent=parent,
                    open=False,
                    end=definition.end,
                    end_line=block.start_line + consumed_lines + line_count - 1,
                    definition=definition,
                )
            )
            consumed_lines += line_count
            position = end_index

        if not found:
            return

        block.lines = block.lines[consumed_lines:]
        block.start_line += consumed_lines
        if block.lines:
            block.start = block.lines[0][1]
        index = parent.children.index(block)
        parent.children[index:index] = found

    # Conversion

    def _inline_content(self, block: _Block, inline_parser: InlineParser) -> tuple[Node, ...]:
        content, segments = self._paragraph_text(block)
        content = content.rstrip(" \t")
        if not content:
            return ()
        return inline_parser.parse(content, SourceMap(segments))

    def _to_node(self, block: _Block, inline_parser: InlineParser) -> Node:
        span = {"start": block.start, "end": max(block.end, block.start)}
        kind = block.kind

        def children() -> tuple[Node, ...]:
            return tuple(self._to_node(child, inline_parser) for child in block.children)

        if kind is NodeType.PARAGRAPH:
            return Paragraph(children=self._inline_content(block, inline_parser), **span)
        if kind is NodeType.HEADING:
            return Heading(level=block.level, children=self._inline_content(block, inline_parser), **span)
        if kind is NodeType.CODE_FENCE:
            return CodeFence(info=block.info, value=block.value, **span)
        if kind is NodeType.DIRECTIVE_FENCE:
            return DirectiveFence(
                name=block.name,
                argument=block.argument,
                options=tuple(block.options),
                children=children(),
                **span,
            )
        if kind is NodeType.LIST:
            data = block.list_data
            return List(
                ordered=data.ordered,
                start_number=data.start_number,
                spread=block.spread,
                children=children(),
                **span,
            )
        if kind is NodeType.LIST_ITEM:
            return ListItem(spread=block.spread, children=children(), **span)
        if kind is NodeType.BLOCK_QUOTE:
            return BlockQuote(children=children(), **span)
        if kind is NodeType.CONTAINER:
            return Container(meta=block.meta, children=children(), **span)
        if kind is NodeType.THEMATIC_BREAK:
            return ThematicBreak(**span)
        if kind is NodeType.FRONT_MATTER:
            return FrontMatter(value=block.value, data=block.data, **span)
        if kind is NodeType.DEFINITION:
            return block.definition
        raise ValueError(f"Unexpected block kind: {kind}")
