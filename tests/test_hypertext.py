from __future__ import annotations

import pytest

from atrus import parse, register_directive_renderer, render_hypertext
from atrus.hypertext import HypertextRenderer, escape_attribute, escape_text, escape_url


@pytest.mark.parametrize(
    ("markdown", "expected"),
    [
        ("", ""),
        ("# Title", "<h1>Title</h1>"),
        ("### *Deep*", "<h3><em>Deep</em></h3>"),
        ("a & <b>", "<p>a &amp; &lt;b&gt;</p>"),
        ('say "hi"', "<p>say &quot;hi&quot;</p>"),
        ("a\nb", "<p>a\nb</p>"),
        ("a\\\nb", "<p>a<br />b</p>"),
        ("***", "<hr />"),
        ("> quoted", "<blockquote>\n<p>quoted</p>\n</blockquote>"),
        ("**bold** `x<y`", "<p><strong>bold</strong> <code>x&lt;y</code></p>"),
        ("{abbr}`A&B`", '<p><span data-role="abbr">A&amp;B</span></p>'),
        ("$x<y$", '<p><span class="math inline">x&lt;y</span></p>'),
        ("$$E$$", '<p><span class="math display">E</span></p>'),
    ],
)
def test_render_hypertext(to_html, markdown: str, expected: str):
    assert to_html(markdown) == expected


def test_unknown_directive_falls_back_to_div(to_html):
    assert to_html(":::foo\ncontent\n:::") == '<div data-directive="foo"><p>content</p></div>'


def test_admonition_with_title(to_html):
    assert to_html(":::{note} Read *this*\nBody\n:::") == (
        '<aside class="admonition note"><p class="admonition-title">Read *this*</p>'
        "<p>Body</p></aside>"
    )


def test_admonition_without_title(to_html):
    assert to_html("```{warning}\nCareful\n```") == '<aside class="admonition warning"><p>Careful</p></aside>'


def test_tight_list_omits_paragraphs(to_html):
    assert to_html("- a\n- b") == "<ul>\n<li>a</li>\n<li>b</li>\n</ul>"


def test_loose_list_keeps_paragraphs(to_html):
    assert to_html("- a\n\n- b") == "<ul>\n<li>\n<p>a</p>\n</li>\n<li>\n<p>b</p>\n</li>\n</ul>"


def test_nested_tight_list(to_html):
    assert to_html("- a\n  - b") == "<ul>\n<li>a\n<ul>\n<li>b</li>\n</ul>\n</li>\n</ul>"


def test_ordered_list_start_attribute(to_html):
    assert to_html("3. x") == '<ol start="3">\n<li>x</li>\n</ol>'
    assert to_html("1. x") == "<ol>\n<li>x</li>\n</ol>"


def test_empty_list_item(to_html):
    assert to_html("-") == "<ul>\n<li></li>\n</ul>"


def test_code_block_with_language(to_html):
    assert to_html("```py\nx < 1\n```") == '<pre><code class="language-py">x &lt; 1\n</code></pre>'


def test_empty_code_block(to_html):
    assert to_html("```\n```") == "<pre><code></code></pre>"


def test_links_and_images_escape_attributes(to_html):
    assert to_html('[a](</u v> "t&")') == '<p><a href="/u%20v" title="t&amp;">a</a></p>'
    assert to_html('![a "q"](/i.png)') == '<p><img src="/i.png" alt="a &quot;q&quot;" /></p>'


def test_reference_link(to_html):
    assert to_html("[x]\n\n[x]: /target") == '<p><a href="/target">x</a></p>'


def test_front_matter_and_definitions_render_nothing(to_html):
    assert to_html("---\na: 1\n---\n[x]: /y\n\ntext") == "<p>text</p>"


def test_block_break_containers_are_transparent(to_html):
    assert to_html("a\n+++\nb") == "<p>a</p>\n<p>b</p>"


def test_escape_helpers():
    assert escape_text("<a & \"b\">") == "&lt;a &amp; &quot;b&quot;&gt;"
    assert escape_attribute("it's") == "it&#x27;s"
    assert escape_url("/a b?c=d&e") == "/a%20b?c=d&amp;e"


def test_custom_directive_renderers_per_instance():
    document = parse(":::figure\nimg\n:::")
    renderer = HypertextRenderer({"figure": lambda node, body: f"<figure>{body}</figure>"})

    assert renderer.render(document) == "<figure><p>img</p></figure>"
    assert render_hypertext(document) == '<div data-directive="figure"><p>img</p></div>'


def test_register_directive_renderer(monkeypatch: pytest.MonkeyPatch, to_html):
    monkeypatch.setattr("atrus.hypertext._DIRECTIVE_RENDERERS", {})

    register_directive_renderer("sidebar", lambda node, body: f"<aside>{node.argument}|{body}</aside>")

    assert to_html(":::sidebar Side\ntext\n:::") == "<aside>Side|<p>text</p></aside>"
    # Admonitions fall back once the registry is replaced
    assert to_html(":::note\nx\n:::") == '<div data-directive="note"><p>x</p></div>'


def test_rendering_does_not_change_the_document():
    document = parse("- *a*\n\n> b")

    first = render_hypertext(document)

    assert render_hypertext(document) == first
    assert parse("- *a*\n\n> b") == document
