"""Hypertext renderer: serializes a document tree to HTML."""

from __future__ import annotations

import html
import logging
from collections.abc import Callable, Iterable
from urllib.parse import quote

from .constants import ADMONITION_NAMES
from .exceptions import RenderFailure
from .models import (
    BlockQuote,
    CodeFence,
    Container,
    DirectiveFence,
    Document,
    Emphasis,
    Heading,
    Image,
    Link,
    List,
    ListItem,
    Node,
    NodeType,
    Paragraph,
    RawMath,
    Role,
    Strong,
    Text,
)

logger = logging.getLogger(__name__)

DirectiveRenderer = Callable[[DirectiveFence, str], str]

# Characters left as is when percent-encoding link destinations
_URL_SAFE = "/:?#[]@!$&'()*+,;=%~-._"


def escape_text(value: str) -> str:
    """Escape ``& < > "`` for use in element content."""
    return html.escape(value, quote=False).replace('"', "&quot;")


def escape_attribute(value: str) -> str:
    """Escape ``& < > " '`` for use in a quoted attribute value."""
    return html.escape(value, quote=True)


def escape_url(destination: str) -> str:
    return escape_attribute(quote(destination, safe=_URL_SAFE))


def render_admonition(node: DirectiveFence, body: str) -> str:
    title = ""
    if node.argument:
        title = f'<p class="admonition-title">{escape_text(node.argument)}</p>'
    return f'<aside class="admonition {escape_attribute(node.name)}">{title}{body}</aside>'


def render_unknown_directive(node: DirectiveFence, body: str) -> str:
    return f'<div data-directive="{escape_attribute(node.name)}">{body}</div>'


_DIRECTIVE_RENDERERS: dict[str, DirectiveRenderer] = {
    name: render_admonition for name in ADMONITION_NAMES
}


def register_directive_renderer(name: str, renderer: DirectiveRenderer) -> None:
    """Render directives called `name` with `renderer`.

    The renderer receives the directive node and its already rendered
    children, and returns the HTML for the whole directive. Registering a name
    again replaces the previous renderer.

    Examples:
        register_directive_renderer(
            "figure", lambda node, body: f"<figure>{body}</figure>"
        )
    """
    _DIRECTIVE_RENDERERS[name] = renderer


# Element names for kinds rendered as one element wrapping their content
TAGS: dict[NodeType, str] = {
    NodeType.PARAGRAPH: "p",
    NodeType.BLOCK_QUOTE: "blockquote",
    NodeType.LIST_ITEM: "li",
    NodeType.EMPHASIS: "em",
    NodeType.STRONG: "strong",
    NodeType.CODE_SPAN: "code",
    NodeType.LINK: "a",
    NodeType.IMAGE: "img",
    NodeType.THEMATIC_BREAK: "hr",
    NodeType.LINE_BREAK: "br",
    NodeType.ROLE: "span",
    NodeType.RAW_MATH: "span",
}


class HypertextRenderer:
    """Render documents to HTML.

    Sibling blocks are separated by a newline and the output has no trailing
    newline. Paragraphs directly inside items of a tight list are rendered
    without ``<p>``.

    Args:
        directive_renderers: Renderers by directive name; defaults to the
            registry filled by `register_directive_renderer`.
    """

    HANDLERS: dict[NodeType, str] = {
        NodeType.DOCUMENT: "_render_container",
        NodeType.CONTAINER: "_render_container",
        NodeType.HEADING: "_render_heading",
        NodeType.PARAGRAPH: "_render_paragraph",
        NodeType.LIST: "_render_list",
        NodeType.LIST_ITEM: "_render_list_item",
        NodeType.BLOCK_QUOTE: "_render_block_quote",
        NodeType.CODE_FENCE: "_render_code_fence",
        NodeType.DIRECTIVE_FENCE: "_render_directive",
        NodeType.THEMATIC_BREAK: "_render_void",
        NodeType.FRONT_MATTER: "_render_nothing",
        NodeType.DEFINITION: "_render_nothing",
        NodeType.TEXT: "_render_text",
        NodeType.EMPHASIS: "_render_element",
        NodeType.STRONG: "_render_element",
        NodeType.CODE_SPAN: "_render_code_span",
        NodeType.LINK: "_render_link",
        NodeType.IMAGE: "_render_image",
        NodeType.ROLE: "_render_role",
        NodeType.RAW_MATH: "_render_math",
        NodeType.LINE_BREAK: "_render_void",
    }

    def __init__(self, directive_renderers: dict[str, DirectiveRenderer] | None = None):
        self.directive_renderers = (
            directive_renderers if directive_renderers is not None else _DIRECTIVE_RENDERERS
        )

    def render(self, document: Document) -> str:
        if document.freed:
            raise RenderFailure("hypertext", "document has been freed")
        return self._render(document)

    def _render(self, node: Node | Document, tight: bool = False) -> str:
        return getattr(self, self.HANDLERS[node.type])(node, tight)

    def _render_blocks(self, nodes: Iterable[Node], tight: bool = False) -> str:
        parts = (self._render(node, tight) for node in nodes)
        return "\n".join(part for part in parts if part)

    def _render_inlines(self, nodes: Iterable[Node]) -> str:
        return "".join(self._render(node) for node in nodes)

    def _render_container(self, node: Document | Container, tight: bool) -> str:
        return self._render_blocks(node.children)

    def _render_heading(self, node: Heading, tight: bool) -> str:
        return f"<h{node.level}>{self._render_inlines(node.children)}</h{node.level}>"

    def _render_paragraph(self, node: Paragraph, tight: bool) -> str:
        content = self._render_inlines(node.children)
        if tight:
            return content
        return f"<p>{content}</p>"

    def _render_list(self, node: List, tight: bool) -> str:
        tag = "ol" if node.ordered else "ul"
        attributes = ""
        if node.ordered and node.start_number not in (None, 1):
            attributes = f' start="{node.start_number}"'
        items = "\n".join(self._render(item, not node.spread) for item in node.children)
        return f"<{tag}{attributes}>\n{items}\n</{tag}>"

    def _render_list_item(self, node: ListItem, tight: bool) -> str:
        children = [child for child in node.children if child.type is not NodeType.DEFINITION]
        if not children:
            return "<li></li>"
        content = self._render_blocks(children, tight)
        opening = "" if tight and children[0].type is NodeType.PARAGRAPH else "\n"
        closing = "" if tight and children[-1].type is NodeType.PARAGRAPH else "\n"
        return f"<li>{opening}{content}{closing}</li>"

    def _render_block_quote(self, node: BlockQuote, tight: bool) -> str:
        content = self._render_blocks(node.children)
        if not content:
            return "<blockquote>\n</blockquote>"
        return f"<blockquote>\n{content}\n</blockquote>"

    def _render_code_fence(self, node: CodeFence, tight: bool) -> str:
        attributes = ""
        if node.lang:
            attributes = f' class="language-{escape_attribute(node.lang)}"'
        content = escape_text(node.value) + "\n" if node.value else ""
        return f"<pre><code{attributes}>{content}</code></pre>"

    def _render_directive(self, node: DirectiveFence, tight: bool) -> str:
        body = self._render_blocks(node.children)
        renderer = self.directive_renderers.get(node.name, render_unknown_directive)
        return renderer(node, body)

    def _render_void(self, node: Node, tight: bool) -> str:
        return f"<{TAGS[node.type]} />"

    def _render_nothing(self, node: Node, tight: bool) -> str:
        return ""

    def _render_text(self, node: Text, tight: bool) -> str:
        return escape_text(node.value)

    def _render_element(self, node: Emphasis | Strong, tight: bool) -> str:
        tag = TAGS[node.type]
        return f"<{tag}>{self._render_inlines(node.children)}</{tag}>"

    def _render_code_span(self, node: Node, tight: bool) -> str:
        return f"<code>{escape_text(node.value)}</code>"

    def _render_link(self, node: Link, tight: bool) -> str:
        attributes = f' href="{escape_url(node.destination)}"'
        if node.title:
            attributes += f' title="{escape_attribute(node.title)}"'
        return f"<a{attributes}>{self._render_inlines(node.children)}</a>"

    def _render_image(self, node: Image, tight: bool) -> str:
        attributes = f' src="{escape_url(node.destination)}" alt="{escape_attribute(node.alt)}"'
        if node.title:
            attributes += f' title="{escape_attribute(node.title)}"'
        return f"<img{attributes} />"

    def _render_role(self, node: Role, tight: bool) -> str:
        return f'<span data-role="{escape_attribute(node.name)}">{escape_text(node.value)}</span>'

    def _render_math(self, node: RawMath, tight: bool) -> str:
        mode = "display" if node.display else "inline"
        return f'<span class="math {mode}">{escape_text(node.value)}</span>'


_unhandled = [
    kind.value
    for kind in NodeType
    if not hasattr(HypertextRenderer, HypertextRenderer.HANDLERS.get(kind, "<missing>"))
]
if _unhandled:
    raise RuntimeError(f"Hypertext renderer cannot render: {', '.join(_unhandled)}")


def render_hypertext(document: Document) -> str:
    """Serialize a document to HTML.

    Raises:
        RenderFailure: If the document has been freed or output cannot be
            produced.

    Examples:
        render_hypertext(parse(":::foo\\ncontent\\n:::"))
        # '<div data-directive="foo"><p>content</p></div>'
    """
    try:
        return HypertextRenderer().render(document)
    except (MemoryError, RecursionError) as error:
        logger.debug("Hypertext rendering failed", exc_info=True)
        raise RenderFailure("hypertext", type(error).__name__, error) from error
