"""Data models for the MyST abstract syntax tree.

Nodes are frozen dataclasses whose children are tuples, so a published tree
cannot be changed. Each node is referenced only by its parent; there are no
back-references, which keeps the tree acyclic and lets `Document.free` drop
the whole tree at once.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

logger = logging.getLogger(__name__)


class NodeType(Enum):
    """Kinds of nodes; the values are the ``type`` strings of the JSON output."""

    DOCUMENT = "root"
    CONTAINER = "block"
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    LIST = "list"
    LIST_ITEM = "listItem"
    BLOCK_QUOTE = "blockquote"
    CODE_FENCE = "code"
    DIRECTIVE_FENCE = "mystDirective"
    THEMATIC_BREAK = "thematicBreak"
    FRONT_MATTER = "frontmatter"
    DEFINITION = "definition"
    TEXT = "text"
    EMPHASIS = "emphasis"
    STRONG = "strong"
    CODE_SPAN = "inlineCode"
    LINK = "link"
    IMAGE = "image"
    ROLE = "mystRole"
    RAW_MATH = "inlineMath"
    LINE_BREAK = "break"


@dataclass(frozen=True, kw_only=True)
class Node:
    """Base class of every tree node.

    Attributes:
        start: Offset of the first source character belonging to the node.
        end: Offset just past the last source character of the node.
    """

    type: ClassVar[NodeType]
    has_children: ClassVar[bool] = False

    start: int = 0
    end: int = 0

    def iter_children(self) -> tuple[Node, ...]:
        return getattr(self, "children", ())

    def walk(self) -> Iterator[Node]:
        """Yield this node and its descendants in document order."""
        stack: list[Node] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.iter_children()))


# Block nodes


@dataclass(frozen=True, kw_only=True)
class Container(Node):
    """A top-level block of a document split by ``+++`` lines."""

    type = NodeType.CONTAINER
    has_children = True

    meta: str | None = None
    children: tuple[Node, ...] = ()


@dataclass(frozen=True, kw_only=True)
class Heading(Node):
    type = NodeType.HEADING
    has_children = True

    level: int
    children: tuple[Node, ...] = ()


@dataclass(frozen=True, kw_only=True)
class Paragraph(Node):
    type = NodeType.PARAGRAPH
    has_children = True

    children: tuple[Node, ...] = ()


@dataclass(frozen=True, kw_only=True)
class ListItem(Node):
    type = NodeType.LIST_ITEM
    has_children = True

    spread: bool = False
    children: tuple[Node, ...] = ()


@dataclass(frozen=True, kw_only=True)
class List(Node):
    """An ordered or bullet list.

    Attributes:
        ordered: True for ``1.``/``1)`` lists.
        start: First number of an ordered list, None for bullet lists.
        spread: True when the list is loose (items separated by blank lines).
    """

    type = NodeType.LIST
    has_children = True

    ordered: bool = False
    start_number: int | None = None
    spread: bool = False
    children: tuple[ListItem, ...] = ()


@dataclass(frozen=True, kw_only=True)
class BlockQuote(Node):
    type = NodeType.BLOCK_QUOTE
    has_children = True

    children: tuple[Node, ...] = ()


@dataclass(frozen=True, kw_only=True)
class CodeFence(Node):
    """Fenced or indented code.

    Attributes:
        info: Full info string after the opening fence; empty for indented code.
        value: Code content without the final line ending.
    """

    type = NodeType.CODE_FENCE

    info: str = ""
    value: str = ""

    @property
    def lang(self) -> str:
        return self.info.split(maxsplit=1)[0] if self.info.strip() else ""


@dataclass(frozen=True, kw_only=True)
class DirectiveFence(Node):
    """A ``:::name`` directive captured structurally.

    Attributes:
        name: Directive name, without braces.
        argument: Text after the name on the opening line.
        options: ``:key: value`` lines at the top of the body, in order.
    """

    type = NodeType.DIRECTIVE_FENCE
    has_children = True

    name: str
    argument: str = ""
    options: tuple[tuple[str, str], ...] = ()
    children: tuple[Node, ...] = ()


@dataclass(frozen=True, kw_only=True)
class ThematicBreak(Node):
    type = NodeType.THEMATIC_BREAK


@dataclass(frozen=True, kw_only=True)
class FrontMatter(Node):
    """Leading YAML block.

    Attributes:
        value: Raw text between the ``---`` fences.
        data: Parsed mapping, or None when the text is not a YAML mapping.
    """

    type = NodeType.FRONT_MATTER

    value: str = ""
    data: Mapping[str, Any] | None = None


@dataclass(frozen=True, kw_only=True)
class Definition(Node):
    """A link reference definition, ``[label]: destination "title"``."""

    type = NodeType.DEFINITION

    label: str
    identifier: str
    destination: str = ""
    title: str = ""


# Inline nodes


@dataclass(frozen=True, kw_only=True)
class Text(Node):
    type = NodeType.TEXT

    value: str = ""


@dataclass(frozen=True, kw_only=True)
class Emphasis(Node):
    type = NodeType.EMPHASIS
    has_children = True

    children: tuple[Node, ...] = ()


@dataclass(frozen=True, kw_only=True)
class Strong(Node):
    type = NodeType.STRONG
    has_children = True

    children: tuple[Node, ...] = ()


@dataclass(frozen=True, kw_only=True)
class CodeSpan(Node):
    type = NodeType.CODE_SPAN

    value: str = ""


@dataclass(frozen=True, kw_only=True)
class Link(Node):
    type = NodeType.LINK
    has_children = True

    destination: str = ""
    title: str = ""
    children: tuple[Node, ...] = ()


@dataclass(frozen=True, kw_only=True)
class Image(Node):
    type = NodeType.IMAGE

    destination: str = ""
    title: str = ""
    alt: str = ""


@dataclass(frozen=True, kw_only=True)
class Role(Node):
    """An inline role, ``{name}`value```."""

    type = NodeType.ROLE

    name: str
    value: str = ""


@dataclass(frozen=True, kw_only=True)
class RawMath(Node):
    """``$...$`` math; `display` is True for ``$$...$$``."""

    type = NodeType.RAW_MATH

    value: str = ""
    display: bool = False


@dataclass(frozen=True, kw_only=True)
class LineBreak(Node):
    type = NodeType.LINE_BREAK


BLOCK_TYPES = frozenset(
    {
        NodeType.CONTAINER,
        NodeType.HEADING,
        NodeType.PARAGRAPH,
        NodeType.LIST,
        NodeType.LIST_ITEM,
        NodeType.BLOCK_QUOTE,
        NodeType.CODE_FENCE,
        NodeType.DIRECTIVE_FENCE,
        NodeType.THEMATIC_BREAK,
        NodeType.FRONT_MATTER,
        NodeType.DEFINITION,
    }
)
INLINE_TYPES = frozenset(set(NodeType) - BLOCK_TYPES - {NodeType.DOCUMENT})


class Document:
    """Root of a parsed tree; owns the top-level blocks and the source text.

    Documents are created by `atrus.parse`. They are read-only: renderers
    traverse them without changing anything, so one document may be rendered
    from several threads at once, as long as none of them frees it.

    Attributes:
        children: Top-level blocks (empty once freed).
        source: Normalized source text the offsets refer to (empty once freed).
    """

    type = NodeType.DOCUMENT
    has_children = True

    def __init__(self, children: Iterable[Node], source: str):
        self._children = tuple(children)
        self._source = source
        self._freed = False

    @property
    def children(self) -> tuple[Node, ...]:
        return self._children

    @property
    def source(self) -> str:
        return self._source

    @property
    def start(self) -> int:
        return 0

    @property
    def end(self) -> int:
        return len(self._source)

    @property
    def freed(self) -> bool:
        return self._freed

    def iter_children(self) -> tuple[Node, ...]:
        return self._children

    def walk(self) -> Iterator[Node | Document]:
        """Yield the document and every descendant in document order."""
        yield self
        for child in self._children:
            yield from child.walk()

    def node_count(self) -> int:
        """Number of nodes owned by the document, the root excluded."""
        return sum(1 for child in self._children for _ in child.walk())

    def free(self) -> int:
        """Release every owned node and the source text.

        Returns:
            int: Number of nodes released; 0 when the document was already freed.
        """
        if self._freed:
            logger.debug("Document already freed; nothing to release")
            return 0

        released = self.node_count()
        self._children = ()
        self._source = ""
        self._freed = True
        logger.debug("Freed document with %d nodes", released)
        return released

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Document):
            return NotImplemented
        return self._children == other._children and self._source == other._source

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        state = "freed" if self._freed else f"{len(self._children)} blocks"
        return f"Document({state})"


def plain_text(nodes: Iterable[Node]) -> str:
    """Concatenate the textual content of inline nodes.

    Used for image ``alt`` text: markup is dropped, literal content kept.
    """
    parts: list[str] = []
    for node in nodes:
        for descendant in node.walk():
            if isinstance(descendant, (Text, CodeSpan, RawMath, Role)):
                parts.append(descendant.value)
            elif isinstance(descendant, Image):
                parts.append(descendant.alt)
            elif isinstance(descendant, LineBreak):
                parts.append("\n")
    return "".join(parts)
