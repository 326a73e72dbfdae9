from __future__ import annotations

import json
import string

from hypothesis import assume, given
from hypothesis import strategies as st
from atrus import free, parse, render_hypertext, render_structured
from atrus.block_parser import FenceState, _is_closing_fence
from atrus.constants import CLOSING_FENCE_MAX_INDENT
from atrus.hypertext import escape_text

markdown_alphabet = string.ascii_letters[:6] + " \t\n#*_`~>-+=:[]()!{}$\\<&|.1"
markdown_text = st.text(alphabet=markdown_alphabet, max_size=200)


@given(st.text(max_size=200))
def test_every_input_parses_and_renders(content: str):
    document = parse(content)

    json.loads(render_structured(document))
    assert isinstance(render_hypertext(document), str)


@given(markdown_text)
def test_markup_heavy_input_parses_and_renders(content: str):
    document = parse(content)

    json.loads(render_structured(document))
    render_hypertext(document)


@given(markdown_text)
def test_parse_is_deterministic(content: str):
    assert parse(content) == parse(content)


@given(markdown_text)
def test_rendering_is_idempotent(content: str):
    document = parse(content)

    assert render_structured(document) == render_structured(document)
    assert render_hypertext(document) == render_hypertext(document)


@given(markdown_text)
def test_offsets_stay_within_source(content: str):
    document = parse(content)
    length = len(document.source)

    for node in document.walk():
        assert 0 <= node.start <= node.end <= length


@given(markdown_text)
def test_free_releases_every_node(content: str):
    document = parse(content)
    count = document.node_count()

    assert free(document) == count
    assert free(document) == 0


@given(st.text(alphabet='ab<&" ', max_size=40))
def test_plain_text_is_escaped(text: str):
    assert render_hypertext(parse("a" + text)) == f"<p>{escape_text(('a' + text).rstrip(' '))}</p>"


@given(
    st.integers(min_value=0, max_value=3),
    st.sampled_from(["`", "~", ":"]),
    st.integers(min_value=3, max_value=10),
    st.integers(min_value=0, max_value=3),
)
def test_longer_fence_closes(indent_columns: int, fence_char: str, fence_length: int, extra: int):
    assume(indent_columns <= CLOSING_FENCE_MAX_INDENT)
    fence = FenceState(fence_char, fence_length, indent_columns)

    assert _is_closing_fence(fence, fence_char * (fence_length + extra) + " ")
    assert not _is_closing_fence(fence, fence_char * (fence_length - 1))
    assert not _is_closing_fence(fence, fence_char * fence_length + " info")


@given(st.text(alphabet=string.ascii_letters + " ", min_size=1, max_size=40))
def test_fenced_content_is_kept_verbatim(body: str):
    assume(body.strip())
    (code,) = parse(f"```\n{body}\n```\n").children

    assert code.value == body
