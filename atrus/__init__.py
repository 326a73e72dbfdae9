"""
atrus: a MyST Markdown parser with JSON and HTML renderers.

Markdown text is parsed into an immutable tree of typed nodes, which can be
serialized to mdast-style JSON or to HTML.

Library Usage:
    from atrus import parse, render_hypertext, render_structured, free

    document = parse(":::note\\nRead {abbr}`MyST` docs.\\n:::\\n")
    html = render_hypertext(document)
    json_text = render_structured(document, indent=2)
    free(document)
"""

from .config import ConfigError, ParserConfig, build_config, load_config
from .exceptions import AtrusError, OtherError, ParseError, ReadFailure, RenderFailure
from .hypertext import register_directive_renderer, render_hypertext
from .models import Document, Node, NodeType
from .parser import free, parse, parse_file
from .structured import render_structured

__version__ = "0.1.0"

__all__ = [
    # Core functionality
    "parse",
    "parse_file",
    "free",
    "render_structured",
    "render_hypertext",
    "register_directive_renderer",
    # Data models
    "Document",
    "Node",
    "NodeType",
    # Configuration
    "ParserConfig",
    "build_config",
    "load_config",
    # Exceptions
    "AtrusError",
    "ConfigError",
    "OtherError",
    "ParseError",
    "ReadFailure",
    "RenderFailure",
    # Version
    "__version__",
]
