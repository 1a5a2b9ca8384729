"""Tests for assembling page lists into one Typst document."""

from __future__ import annotations

import datetime as dt
import logging
import typing as typ

import jinja2
import pytest

from typst_pages.nodes import (
    Document,
    FootnoteDefinition,
    FootnoteReference,
    Heading,
    Paragraph,
    ResolvedPageLink,
    Text,
)
from typst_pages.writer.document import (
    NO_CUSTOM_STYLE,
    RawPageNotFoundError,
    default_preamble_template,
    render_document,
    render_preamble,
)
from typst_pages.writer.models import Page

if typ.TYPE_CHECKING:
    from pathlib import Path


def _heading(level: int, text: str) -> Heading:
    return Heading(level=level, children=(Text(text),))


def _paragraph(*children: object) -> Paragraph:
    return Paragraph(children=typ.cast("tuple", children))


def _page(path: str, *children: object, title: str = "", depth: int = 1) -> Page:
    tree = Document(children=typ.cast("tuple", children))
    return Page(path=path, tree=tree, title=title, nesting_depth=depth)


def test_link_without_fragment_targets_first_heading() -> None:
    pages = [
        _page("page1.md", _paragraph(ResolvedPageLink("page2.md", children=(Text("next"),)))),
        _page("page2.md", _heading(1, "Intro"), _heading(2, "Details")),
    ]
    source = render_document(pages)
    assert '#link(label("page2.md#Intro"))[next]' in source
    assert '#heading(level: 1, [Intro]) #label("page2.md#Intro")' in source
    assert '#heading(level: 2, [Details]) #label("page2.md#Details")' in source


def test_page_without_headings_gets_page_label() -> None:
    pages = [
        _page("index.md", _heading(1, "Start"), _paragraph(ResolvedPageLink("notes.md"))),
        _page("notes.md", _paragraph(Text("Plain notes."))),
    ]
    source = render_document(pages)
    assert '#link(label("notes.md#__page__"))[]' in source
    notes = source.split('#metadata("__page__") #label("notes.md#__page__")\n', 1)
    assert len(notes) == 2
    assert notes[1].strip() == "Plain notes."
    assert '#label("index.md#__page__")' not in source


def test_title_shifts_page_headings_down() -> None:
    source = render_document([_page("guide.md", _heading(1, "Intro"), title="Guide")])
    assert source == (
        "#extended_heading(level: 1, [Guide])\n\n"
        '#heading(level: 2, [Intro]) #label("guide.md#Intro")\n\n'
    )


def test_nesting_depth_sets_heading_level() -> None:
    source = render_document([_page("deep.md", _heading(1, "Inner"), depth=3)])
    assert source.startswith('#heading(level: 3, [Inner]) #label("deep.md#Inner")')


def test_section_entries_only_emit_a_title() -> None:
    source = render_document([Page(path="", title="Part_One", nesting_depth=1)])
    assert source == "#extended_heading(level: 1, [Part\\_One])\n\n"


def test_raw_page_is_included_with_offset(tmp_path: Path) -> None:
    (tmp_path / "api.typ").write_text("= API\n", encoding="utf-8")
    page = Page(path="api.typ", title="API", nesting_depth=2)
    source = render_document([page], source_root=tmp_path)
    assert source == (
        "#extended_heading(level: 2, [API])\n\n"
        '#metadata("__page__") #label("api.typ#__page__")\n'
        '#extended_include("api.typ", offset: 2)\n'
    )


def test_missing_raw_page_raises(tmp_path: Path) -> None:
    with pytest.raises(RawPageNotFoundError, match="api.typ"):
        render_document([Page(path="api.typ")], source_root=tmp_path)


def test_too_deep_pages_are_skipped(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        source = render_document([_page("deep.md", _paragraph(Text("x")), depth=8)])
    assert source == ""
    assert "too deep" in caplog.text


def test_footnotes_do_not_leak_between_pages() -> None:
    pages = [
        _page(
            "a.md",
            _paragraph(Text("A"), FootnoteReference("1")),
            FootnoteDefinition("1", (_paragraph(Text("first")),)),
        ),
        _page("b.md", _paragraph(Text("B"), FootnoteReference("1"))),
    ]
    source = render_document(pages)
    assert "A#footnote[first]" in source
    assert "B#footnote[Missing footnote: 1]" in source


def test_preamble_is_written_first() -> None:
    source = render_document([Page(path="", title="T")], preamble="// preamble")
    assert source.startswith("// preamble\n#extended_heading")


def test_render_preamble_fills_metadata() -> None:
    preamble = render_preamble(
        default_preamble_template(),
        sitename="My_Docs",
        version="1.0",
        authors="Ada, Grace",
        date=dt.date(2024, 3, 5),
    )
    assert '#import "typst-pages.typ": *' in preamble
    assert NO_CUSTOM_STYLE in preamble
    assert "title: [My\\_Docs]" in preamble
    assert "date: [Mar 5, 2024]" in preamble
    assert "version: [1.0]" in preamble
    assert "authors: [Ada, Grace]" in preamble


def test_render_preamble_embeds_custom_style() -> None:
    preamble = render_preamble(
        default_preamble_template(), sitename="Docs", custom_style="#let accent = red\n"
    )
    assert "#let accent = red" in preamble
    assert NO_CUSTOM_STYLE not in preamble


def test_render_preamble_rejects_unknown_variables() -> None:
    with pytest.raises(jinja2.UndefinedError):
        render_preamble("{{ missing }}", sitename="Docs")
