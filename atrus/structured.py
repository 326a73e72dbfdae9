"""Structured renderer: serializes a document tree to JSON.

Every node becomes an object with a ``type`` key, the attributes listed for
its kind in `NODE_FIELDS`, its source ``position``, and ``children`` for kinds
that have children. Attribute names follow mdast, the MyST syntax tree format.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from operator import attrgetter
from typing import Any

from .constants import SCHEMA_VERSION
from .exceptions import RenderFailure
from .models import Document, Node, NodeType

logger = logging.getLogger(__name__)

_Getter = Callable[[Any], Any]


def _options(node: Any) -> dict[str, str]:
    return dict(node.options)


NODE_FIELDS: dict[NodeType, tuple[tuple[str, _Getter], ...]] = {
    NodeType.DOCUMENT: (),
    NodeType.CONTAINER: (("meta", attrgetter("meta")),),
    NodeType.HEADING: (("depth", attrgetter("level")),),
    NodeType.PARAGRAPH: (),
    NodeType.LIST: (
        ("ordered", attrgetter("ordered")),
        ("start", attrgetter("start_number")),
        ("spread", attrgetter("spread")),
    ),
    NodeType.LIST_ITEM: (("spread", attrgetter("spread")),),
    NodeType.BLOCK_QUOTE: (),
    NodeType.CODE_FENCE: (
        ("lang", attrgetter("lang")),
        ("info", attrgetter("info")),
        ("value", attrgetter("value")),
    ),
    NodeType.DIRECTIVE_FENCE: (
        ("name", attrgetter("name")),
        ("args", attrgetter("argument")),
        ("options", _options),
    ),
    NodeType.THEMATIC_BREAK: (),
    NodeType.FRONT_MATTER: (("value", attrgetter("value")), ("data", attrgetter("data"))),
    NodeType.DEFINITION: (
        ("identifier", attrgetter("identifier")),
        ("label", attrgetter("label")),
        ("url", attrgetter("destination")),
        ("title", attrgetter("title")),
    ),
    NodeType.TEXT: (("value", attrgetter("value")),),
    NodeType.EMPHASIS: (),
    NodeType.STRONG: (),
    NodeType.CODE_SPAN: (("value", attrgetter("value")),),
    NodeType.LINK: (("url", attrgetter("destination")), ("title", attrgetter("title"))),
    NodeType.IMAGE: (
        ("url", attrgetter("destination")),
        ("alt", attrgetter("alt")),
        ("title", attrgetter("title")),
    ),
    NodeType.ROLE: (("name", attrgetter("name")), ("value", attrgetter("value"))),
    NodeType.RAW_MATH: (("value", attrgetter("value")), ("display", attrgetter("display"))),
    NodeType.LINE_BREAK: (),
}

_missing = set(NodeType) - set(NODE_FIELDS)
if _missing:
    raise RuntimeError(f"Structured renderer has no fields for: {sorted(kind.value for kind in _missing)}")


def _to_dict(node: Node | Document) -> dict[str, Any]:
    result: dict[str, Any] = {"type": node.type.value}
    for key, getter in NODE_FIELDS[node.type]:
        value = getter(node)
        if value is None:
            continue
        result[key] = value
    result["position"] = {"start": node.start, "end": node.end}
    if node.has_children:
        result["children"] = [_to_dict(child) for child in node.iter_children()]
    return result


def to_dict(document: Document) -> dict[str, Any]:
    """Return the JSON-ready dictionary for `document`.

    Raises:
        RenderFailure: If the document has been freed.
    """
    if document.freed:
        raise RenderFailure("structured", "document has been freed")
    result = _to_dict(document)
    result["version"] = SCHEMA_VERSION
    return result


def render_structured(document: Document, indent: int | None = None) -> str:
    """Serialize a document to JSON.

    Args:
        document: Parsed document.
        indent: Indentation passed to `json.dumps`; None gives compact output.

    Returns:
        str: JSON text; non-ASCII characters are kept as is.

    Raises:
        RenderFailure: If the document has been freed or output cannot be
            produced.

    Examples:
        render_structured(parse("*hi*"))
    """
    try:
        # default=str covers dates and other scalars YAML front matter may hold
        return json.dumps(to_dict(document), ensure_ascii=False, indent=indent, default=str)
    except (MemoryError, RecursionError) as error:
        logger.debug("Structured rendering failed", exc_info=True)
        raise RenderFailure("structured", type(error).__name__, error) from error
