"""Tests for the footnote definition pre-pass."""

from __future__ import annotations

from typst_pages.nodes import (
    BlockQuote,
    DocBody,
    Document,
    FootnoteDefinition,
    FootnoteReference,
    List,
    ListItem,
    Paragraph,
    RichContentBlock,
    Text,
)
from typst_pages.writer.footnotes import collect_footnotes


def _definition(identifier: str, text: str) -> FootnoteDefinition:
    return FootnoteDefinition(id=identifier, children=(Paragraph(children=(Text(text),)),))


def test_definition_after_reference_is_collected() -> None:
    tree = Document(
        children=(
            Paragraph(children=(Text("See"), FootnoteReference("1"))),
            _definition("1", "first"),
        )
    )
    assert set(collect_footnotes(tree)) == {"1"}


def test_nested_definitions_are_collected() -> None:
    nested = List(
        ordered=False,
        items=(ListItem(children=(BlockQuote(children=(_definition("deep", "x"),)),)),),
    )
    assert "deep" in collect_footnotes(Document(children=(nested,)))


def test_definitions_inside_documentation_bodies_are_collected() -> None:
    body = DocBody(tree=Document(children=(_definition("doc", "from docstring"),)))
    block = RichContentBlock(binding_name="pkg.f", bodies=(body,))
    found = collect_footnotes(Document(children=(block,)))
    assert found["doc"].children[0] == Paragraph(children=(Text("from docstring"),))


def test_later_definition_replaces_earlier() -> None:
    tree = Document(children=(_definition("n", "old"), _definition("n", "new")))
    found = collect_footnotes(tree)
    assert found["n"] == _definition("n", "new")


def test_fills_the_given_table_in_place() -> None:
    table: dict[str, FootnoteDefinition] = {}
    result = collect_footnotes(Document(children=(_definition("a", "x"),)), table)
    assert result is table
    assert list(table) == ["a"]
