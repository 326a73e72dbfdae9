from __future__ import annotations

import textwrap

import pytest

from atrus import parse
from atrus.config import ParserConfig
from atrus.models import (
    BlockQuote,
    CodeFence,
    Container,
    Definition,
    DirectiveFence,
    FrontMatter,
    Heading,
    List,
    ListItem,
    NodeType,
    Paragraph,
    Text,
    ThematicBreak,
)


def _blocks(text: str, **options):
    config = ParserConfig(**options) if options else None
    return parse(textwrap.dedent(text), config).children


def _types(nodes) -> list[NodeType]:
    return [node.type for node in nodes]


def test_atx_headings_strip_closing_sequence():
    (h1, h2, h3) = _blocks(
        """\
        # One
        ## Two ##
        ### Three \\#
        """
    )

    assert (h1.level, h1.children) == (1, (Text(value="One", start=2, end=5),))
    assert h2.level == 2
    assert h2.children[0].value == "Two"
    assert h3.children[0].value == "Three #"


def test_hash_without_space_is_paragraph():
    (block,) = _blocks("#hashtag\n")

    assert isinstance(block, Paragraph)


def test_setext_headings():
    (first, second) = _blocks(
        """\
        Title
        =====
        Sub
        title
        ---
        """
    )

    assert isinstance(first, Heading) and first.level == 1
    assert isinstance(second, Heading) and second.level == 2
    assert second.children[0].value == "Sub\ntitle"


def test_thematic_break_interrupts_paragraph_only_when_not_setext():
    blocks = _blocks(
        """\
        para

        * * *
        """
    )

    assert _types(blocks) == [NodeType.PARAGRAPH, NodeType.THEMATIC_BREAK]


def test_leading_thematic_break_without_closing_front_matter():
    blocks = _blocks("---\ntext\n")

    assert isinstance(blocks[0], ThematicBreak)
    assert isinstance(blocks[1], Paragraph)


def test_front_matter_is_parsed_as_yaml():
    (front_matter, heading) = _blocks(
        """\
        ---
        title: Demo
        tags: [a, b]
        ---
        # Body
        """
    )

    assert isinstance(front_matter, FrontMatter)
    assert front_matter.value == "title: Demo\ntags: [a, b]"
    assert front_matter.data == {"title": "Demo", "tags": ["a", "b"]}
    assert isinstance(heading, Heading)


def test_front_matter_with_invalid_yaml_keeps_raw_text(caplog: pytest.LogCaptureFixture):
    caplog.set_level("DEBUG", logger="atrus")

    (front_matter,) = _blocks("---\nkey: [unclosed\n...\n")

    assert front_matter.value == "key: [unclosed"
    assert front_matter.data is None
    assert "not valid YAML" in caplog.text
    assert all(record.levelname == "DEBUG" for record in caplog.records)


def test_front_matter_can_be_disabled():
    blocks = _blocks("---\na: 1\n---\n", front_matter=False)

    assert NodeType.FRONT_MATTER not in _types(blocks)


def test_fenced_code_keeps_info_and_content():
    (code,) = _blocks(
        """\
        ~~~python title="x"
        def f():
            return 1
        ~~~
        """
    )

    assert isinstance(code, CodeFence)
    assert code.info == 'python title="x"'
    assert code.lang == "python"
    assert code.value == "def f():\n    return 1"


def test_unterminated_fence_runs_to_end_of_input():
    (code,) = _blocks("```py\ncode")

    assert code.info == "py"
    assert code.value == "code"


def test_closing_fence_must_be_long_enough():
    (code,) = _blocks("````\n```\n````\n")

    assert code.value == "```"


def test_fence_indentation_is_removed_from_content():
    (code,) = _blocks("  ```\n  a\n    b\n  ```\n")

    assert code.value == "a\n  b"


def test_indented_code_drops_trailing_blank_lines():
    (code, paragraph) = _blocks("    one\n\n    two\n\n\nafter\n")

    assert code.info == ""
    assert code.value == "one\n\ntwo"
    assert isinstance(paragraph, Paragraph)


def test_indented_line_cannot_interrupt_paragraph():
    (paragraph,) = _blocks("text\n    more\n")

    assert paragraph.children[0].value == "text\nmore"


def test_block_quote_with_lazy_continuation():
    (quote,) = _blocks("> a\nb\n> c\n")

    assert isinstance(quote, BlockQuote)
    (paragraph,) = quote.children
    assert paragraph.children[0].value == "a\nb\nc"


def test_nested_block_quotes():
    (outer,) = _blocks("> > inner\n")

    assert isinstance(outer.children[0], BlockQuote)
    assert outer.children[0].children[0].children[0].value == "inner"


def test_tight_bullet_list():
    (lst,) = _blocks("- a\n- b\n")

    assert isinstance(lst, List)
    assert (lst.ordered, lst.start_number, lst.spread) == (False, None, False)
    assert [item.children[0].children[0].value for item in lst.children] == ["a", "b"]
    assert all(isinstance(item, ListItem) for item in lst.children)


def test_loose_list_when_items_are_separated_by_blank_lines():
    (lst,) = _blocks("- a\n\n- b\n")

    assert lst.spread is True


def test_item_with_blank_line_between_children_is_spread():
    (lst,) = _blocks("- a\n\n  b\n- c\n")

    assert lst.children[0].spread is True
    assert lst.children[1].spread is False
    assert lst.spread is True


def test_ordered_list_keeps_start_number():
    (lst,) = _blocks("3. three\n4. four\n")

    assert lst.ordered is True
    assert lst.start_number == 3
    assert len(lst.children) == 2


def test_changing_bullet_starts_new_list():
    blocks = _blocks("- a\n+ b\n")

    assert _types(blocks) == [NodeType.LIST, NodeType.LIST]


def test_nested_list_by_indentation():
    (lst,) = _blocks("- a\n  - b\n")

    (item,) = lst.children
    assert _types(item.children) == [NodeType.PARAGRAPH, NodeType.LIST]


def test_ordered_list_only_interrupts_paragraph_at_one():
    blocks = _blocks("text\n2. no\n")

    assert _types(blocks) == [NodeType.PARAGRAPH]


def test_colon_directive_with_argument_and_options():
    (directive,) = _blocks(
        """\
        :::{note} Read this
        :class: tip
        :name: first

        Body *text*.
        :::
        """
    )

    assert isinstance(directive, DirectiveFence)
    assert directive.name == "note"
    assert directive.argument == "Read this"
    assert directive.options == (("class", "tip"), ("name", "first"))
    assert _types(directive.children) == [NodeType.PARAGRAPH]


def test_unknown_directive_is_captured_structurally():
    (directive,) = _blocks(":::foo\ncontent\n:::\n")

    assert directive.name == "foo"
    assert directive.argument == ""
    assert directive.children[0].children == (Text(value="content", start=7, end=14),)


def test_backtick_fence_with_braced_name_is_directive():
    (directive,) = _blocks("```{warning}\nCareful\n```\n")

    assert isinstance(directive, DirectiveFence)
    assert directive.name == "warning"


def test_directives_nest_with_longer_outer_fence():
    (outer,) = _blocks(
        """\
        ::::{tip}
        :::{note}
        inner
        :::
        ::::
        """
    )

    (inner,) = outer.children
    assert inner.name == "note"
    assert inner.children[0].children[0].value == "inner"


def test_directive_closer_closes_open_children():
    (directive, paragraph) = _blocks(":::note\n- item\n:::\nafter\n")

    assert _types(directive.children) == [NodeType.LIST]
    assert paragraph.children[0].value == "after"


def test_unterminated_directive_closes_at_end(caplog: pytest.LogCaptureFixture):
    caplog.set_level("DEBUG", logger="atrus")

    (directive,) = _blocks(":::note\ntext\n")

    assert directive.children[0].children[0].value == "text"
    assert "never closed" in caplog.text


def test_link_reference_definitions_are_extracted():
    (definition, paragraph) = _blocks('[Foo Bar]: /url "Title"\n[foo bar]\n')

    assert isinstance(definition, Definition)
    assert definition.label == "Foo Bar"
    assert definition.identifier == "foo bar"
    assert definition.destination == "/url"
    assert definition.title == "Title"
    (link,) = paragraph.children
    assert link.destination == "/url"


def test_paragraph_of_only_definitions_disappears():
    blocks = _blocks("[a]: /a\n[b]: </b c>\n")

    assert _types(blocks) == [NodeType.DEFINITION, NodeType.DEFINITION]
    assert blocks[1].destination == "/b c"


def test_block_breaks_split_document_into_containers():
    (first, second) = _blocks('intro\n+++ {"part": 2}\nbody\n')

    assert isinstance(first, Container) and first.meta is None
    assert isinstance(second, Container)
    assert second.meta == '{"part": 2}'
    assert first.children[0].children[0].value == "intro"
    assert second.children[0].children[0].value == "body"


def test_block_breaks_can_be_disabled():
    blocks = _blocks("a\n+++\nb\n", block_breaks=False)

    assert _types(blocks) == [NodeType.PARAGRAPH]


def test_nesting_beyond_limit_is_read_as_text():
    (outer,) = _blocks("> > > deep\n", max_nesting_depth=2)

    inner = outer.children[0]
    assert isinstance(inner, BlockQuote)
    assert inner.children[0].children[0].value == "> deep"


def test_tabs_count_to_next_tab_stop():
    (code,) = parse("\tcode\n").children

    assert isinstance(code, CodeFence)
    assert code.value == "code"


def test_tab_continues_list_item():
    (lst,) = parse("- a\n\n\tb\n").children

    (item,) = lst.children
    assert _types(item.children) == [NodeType.PARAGRAPH, NodeType.PARAGRAPH]
    assert item.children[1].children[0].value == "b"
    assert lst.spread is True


@pytest.mark.parametrize("text", ["", "\n\n", "   \n\t\n"])
def test_blank_input_gives_empty_document(text: str):
    assert _blocks(text) == ()


def test_block_offsets_point_into_source():
    source = "# Head\n\npara *graph*\n"
    document = parse(source)
    heading, paragraph = document.children

    assert source[heading.start : heading.end] == "# Head"
    assert source[paragraph.start : paragraph.end] == "para *graph*"
    emphasis = paragraph.children[1]
    assert source[emphasis.start : emphasis.end] == "*graph*"
