"""Constants used across the atrus package."""

from __future__ import annotations

import re

from .config import ParserConfig

DEFAULT_CONFIG = ParserConfig()

# Version of the structured (JSON) output layout; bump on any key change.
SCHEMA_VERSION = 1

TAB_STOP = 4
CODE_INDENT = 4
CLOSING_FENCE_MAX_INDENT = 3

# Block patterns, matched after the container prefixes have been consumed
ATX_HEADING_PATTERN = re.compile(r"^(#{1,6})(?:[ \t]+(.*?))?[ \t]*$")
ATX_CLOSING_PATTERN = re.compile(r"(?:^|[ \t]+)#+[ \t]*$")
SETEXT_UNDERLINE_PATTERN = re.compile(r"^(=+|-+)[ \t]*$")
THEMATIC_BREAK_PATTERN = re.compile(r"^(?:(?:\*[ \t]*){3,}|(?:-[ \t]*){3,}|(?:_[ \t]*){3,})$")
CODE_FENCE_PATTERN = re.compile(r"^(?P<indent>[ \t]{0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
DIRECTIVE_FENCE_PATTERN = re.compile(
    r"^(?P<fence>:{3,})[ \t]*(?:\{(?P<braced>[^{}\s]+)\}|(?P<bare>[A-Za-z][\w\-.:+]*))"
    r"(?:[ \t]+(?P<argument>.*?))?[ \t]*$"
)
DIRECTIVE_INFO_PATTERN = re.compile(r"^\{(?P<name>[^{}\s]+)\}(?:[ \t]+(?P<argument>.*?))?[ \t]*$")
DIRECTIVE_OPTION_PATTERN = re.compile(r"^:(?P<key>[\w\-]+):(?:[ \t]+(?P<value>.*?))?[ \t]*$")
BLOCK_BREAK_PATTERN = re.compile(r"^\+\+\+(?:[ \t]*(?P<meta>.*?))?[ \t]*$")
BULLET_ITEM_PATTERN = re.compile(r"^([-+*])(?=[ \t]|$)")
ORDERED_ITEM_PATTERN = re.compile(r"^(\d{1,9})([.)])(?=[ \t]|$)")
FRONT_MATTER_FENCE = "---"
FRONT_MATTER_CLOSERS = ("---", "...")

LINK_DEFINITION_PATTERN = re.compile(
    r"[ ]{0,3}\[(?P<label>(?:[^\\\[\]]|\\.){1,999})\]:"
    r"[ \t]*\n?[ \t]*(?P<destination><(?:[^\n<>\\]|\\.)*>|[^\s<]\S*)"
    r"(?:(?:[ \t]+|[ \t]*\n[ \t]*)"
    r"(?P<title>\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'|\((?:[^()\\]|\\.)*\)))?"
    r"[ \t]*(?:\n|$)",
    re.DOTALL,
)

# Inline patterns
ROLE_NAME_PATTERN = re.compile(r"\{([A-Za-z][\w\-.:+]*)\}$")
AUTOLINK_PATTERN = re.compile(r"<([A-Za-z][A-Za-z0-9.+\-]{1,31}:[^\s<>]*)>")
EMAIL_AUTOLINK_PATTERN = re.compile(
    r"<([A-Za-z0-9.!#$%&'*+/=?^_`{|}~\-]+@[A-Za-z0-9](?:[A-Za-z0-9\-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9\-]{0,61}[A-Za-z0-9])?)*)>"
)
ENTITY_PATTERN = re.compile(r"&(?:#[0-9]{1,7}|#[xX][0-9a-fA-F]{1,6}|[A-Za-z][A-Za-z0-9]{1,31});")
ESCAPABLE = "!\"#$%&'()*+,-./:;<=>?@[\\]^_`{|}~"
# Balanced parentheses allowed in an unbracketed link destination
MAX_LINK_PAREN_DEPTH = 32

# Resolved inline spans start with PLACEHOLDER_MARK in the inline buffer.
# NUL never survives source normalization, so the marker is unambiguous.
PLACEHOLDER_MARK = "\x00"

ADMONITION_NAMES = (
    "attention",
    "caution",
    "danger",
    "error",
    "hint",
    "important",
    "note",
    "seealso",
    "tip",
    "warning",
)

DEFAULT_MAX_FILE_SIZE = DEFAULT_CONFIG.max_file_size
