from __future__ import annotations

import json

import pytest

from atrus import parse, render_structured
from atrus.constants import SCHEMA_VERSION
from atrus.models import NodeType
from atrus.structured import NODE_FIELDS, to_dict


def _render(text: str) -> dict:
    return json.loads(render_structured(parse(text)))


def test_root_object_carries_type_and_version():
    tree = _render("hi")

    assert tree["type"] == "root"
    assert tree["version"] == SCHEMA_VERSION
    assert tree["position"] == {"start": 0, "end": 2}
    assert tree["children"] == [
        {
            "type": "paragraph",
            "position": {"start": 0, "end": 2},
            "children": [{"type": "text", "value": "hi", "position": {"start": 0, "end": 2}}],
        }
    ]


def test_every_node_type_has_a_field_table():
    assert set(NODE_FIELDS) == set(NodeType)


def test_heading_and_list_attributes():
    heading, bullets, numbers = _render("## Two\n\n- a\n\n3. b\n")["children"]

    assert heading["depth"] == 2
    assert bullets["ordered"] is False
    assert "start" not in bullets
    assert numbers["ordered"] is True
    assert numbers["start"] == 3
    assert numbers["children"][0]["type"] == "listItem"
    assert numbers["children"][0]["spread"] is False


def test_code_and_directive_attributes():
    code, directive = _render("```py run\nx = 1\n```\n\n:::{note} Title\n:class: tip\nBody\n:::\n")[
        "children"
    ]

    assert code == {
        "type": "code",
        "lang": "py",
        "info": "py run",
        "value": "x = 1",
        "position": {"start": 0, "end": 19},
    }
    assert directive["type"] == "mystDirective"
    assert directive["name"] == "note"
    assert directive["args"] == "Title"
    assert directive["options"] == {"class": "tip"}
    assert directive["children"][0]["type"] == "paragraph"


def test_inline_attributes():
    (paragraph,) = _render('[a](/u "t") ![i](/p) {r}`v` $m$ `c`')["children"]
    link, _, image, _, role, _, math, _, code = paragraph["children"]

    assert (link["type"], link["url"], link["title"]) == ("link", "/u", "t")
    assert (image["type"], image["url"], image["alt"]) == ("image", "/p", "i")
    assert "children" not in image
    assert (role["type"], role["name"], role["value"]) == ("mystRole", "r", "v")
    assert (math["type"], math["value"], math["display"]) == ("inlineMath", "m", False)
    assert (code["type"], code["value"]) == ("inlineCode", "c")


def test_front_matter_and_definition():
    front_matter, definition = _render("---\ntitle: T\n---\n[x]: /y\n")["children"]

    assert front_matter["type"] == "frontmatter"
    assert front_matter["data"] == {"title": "T"}
    assert definition == {
        "type": "definition",
        "identifier": "x",
        "label": "x",
        "url": "/y",
        "title": "",
        "position": {"start": 17, "end": 24},
    }


def test_front_matter_dates_are_serialized_as_strings():
    (front_matter,) = _render("---\ndate: 2024-01-02\n---\n")["children"]

    assert front_matter["data"] == {"date": "2024-01-02"}


def test_block_break_containers():
    children = _render("a\n+++ meta\nb\n")["children"]

    assert [child["type"] for child in children] == ["block", "block"]
    assert "meta" not in children[0]
    assert children[1]["meta"] == "meta"


def test_non_ascii_is_kept():
    assert '"Grüße"' in render_structured(parse("Grüße"))


def test_indent_option():
    rendered = render_structured(parse("a"), indent=2)

    assert rendered.startswith('{\n  "type": "root"')


def test_to_dict_matches_rendered_json():
    document = parse("*a*")

    assert json.loads(render_structured(document)) == to_dict(document)


@pytest.mark.parametrize("text", ["", "# a", "> b\n- c"])
def test_rendering_is_idempotent(text: str):
    document = parse(text)

    assert render_structured(document) == render_structured(document)
