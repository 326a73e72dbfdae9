from collections.abc import Callable

import pytest

from atrus import free, parse, render_hypertext


@pytest.fixture()
def to_html() -> Callable[[str], str]:
    """Parses Markdown, renders it as HTML and frees the document."""

    def _render(text: str) -> str:
        document = parse(text)
        try:
            return render_hypertext(document)
        finally:
            free(document)

    return _render
