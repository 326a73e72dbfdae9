"""Package-specific exception types.

Exception hierarchy:

- AtrusError
  - ParseError
    - ReadFailure: the source text could not be obtained or decoded.
    - OtherError: any other failure while building the tree.
  - RenderFailure: a renderer could not produce output.

There is no error for malformed Markdown: every input has a tree.
"""

from __future__ import annotations


class AtrusError(Exception):
    """Base class for all atrus errors.

    Args:
        message: Human-readable description of the error.
        original_error: The exception that caused this error, if any.
    """

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ParseError(AtrusError):
    """Base class for failures of a parse call; no tree is produced."""


class ReadFailure(ParseError):
    """Raised when the source text cannot be obtained or decoded."""


class OtherError(ParseError):
    """Raised when the tree cannot be built for a reason other than reading.

    Examples are memory exhaustion or runaway recursion on pathological input.
    """


class RenderFailure(AtrusError):
    """Raised when a renderer cannot produce output for a tree.

    Args:
        renderer: Name of the renderer that failed (``"structured"`` or
            ``"hypertext"``).
        message: Description of the failure.
        original_error: The exception that caused this error, if any.
    """

    def __init__(self, renderer: str, message: str, original_error: Exception | None = None):
        self.renderer = renderer
        super().__init__(f"{renderer} rendering failed: {message}", original_error)
