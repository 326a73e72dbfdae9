"""Parsing entry points: text or file in, `Document` out."""

from __future__ import annotations

import logging
from pathlib import Path

from .block_parser import BlockParser
from .config import ParserConfig, validate_config
from .constants import DEFAULT_CONFIG
from .exceptions import OtherError, ReadFailure
from .models import Document
from .source import get_max_file_size, safe_read

logger = logging.getLogger(__name__)


def _decode(text: str | bytes) -> str:
    if isinstance(text, str):
        return text
    if isinstance(text, (bytes, bytearray, memoryview)):
        try:
            return bytes(text).decode("utf-8-sig")
        except UnicodeDecodeError as error:
            raise ReadFailure(f"Source is not valid UTF-8: {error}", error) from error
    raise ReadFailure(f"Expected str or bytes, got {type(text).__name__}")


def parse(text: str | bytes, config: ParserConfig | None = None) -> Document:
    """Parse MyST Markdown into a document tree.

    Every well-formed string produces a tree; malformed Markdown degrades to
    paragraphs and text instead of failing.

    Args:
        text: Markdown source. Bytes are decoded as UTF-8 (a BOM is dropped).
        config: Parser options; defaults to `DEFAULT_CONFIG`.

    Returns:
        Document: The parsed tree. Release it with `free` when done.

    Raises:
        ReadFailure: If `text` is neither str nor bytes, or is not valid UTF-8.
        OtherError: If the tree cannot be built (memory exhaustion, runaway
            recursion, or an internal fault).
        ConfigError: If `config` holds invalid values.

    Examples:
        document = parse("# Title\\n\\n:::note\\nBody\\n:::\\n")
        document.children[1].name  # "note"
    """
    config = config or DEFAULT_CONFIG
    validate_config(config)
    source = _decode(text)

    logger.debug("Parsing %d characters", len(source))
    try:
        document = BlockParser(config).parse(source)
    except (MemoryError, RecursionError) as error:
        raise OtherError(f"Could not build the document tree: {type(error).__name__}", error) from error
    except Exception as error:
        logger.debug("Parser failed unexpectedly", exc_info=True)
        raise OtherError(f"Could not build the document tree: {error}", error) from error

    logger.debug(
        "Parsed %d top-level blocks, %d nodes",
        len(document.children),
        document.node_count(),
    )
    return document


def parse_file(path: str | Path, config: ParserConfig | None = None) -> Document:
    """Read and parse a Markdown file.

    The file size limit is `config.max_file_size`, unless the
    ``ATRUS_MAX_FILE_SIZE`` environment variable overrides it.

    Raises:
        ReadFailure: If the file cannot be read, is too large, or is not UTF-8.
        OtherError: As for `parse`.

    Examples:
        document = parse_file(Path("docs/index.md"))
    """
    config = config or DEFAULT_CONFIG
    filepath = Path(path)
    try:
        max_size = get_max_file_size(default=config.max_file_size)
        content = safe_read(filepath, max_size)
    except (IOError, ValueError) as error:
        raise ReadFailure(str(error), error) from error

    logger.debug("Read %d bytes from %s", len(content), filepath)
    return parse(content, config)


def free(document: Document) -> int:
    """Release a document and every node it owns.

    Freeing twice is harmless: the second call releases nothing.

    Returns:
        int: Number of nodes released.

    Examples:
        free(parse("*a*"))  # 3
    """
    return document.free()
