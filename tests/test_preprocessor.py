"""Tests for directive expansion in raw Typst pages."""

from __future__ import annotations

import logging
import typing as typ

import pytest

from typst_pages.collaborators import DocumentationEntry, EvaluationResult, SandboxEvaluator
from typst_pages.nodes import (
    DocBody,
    Document,
    FootnoteDefinition,
    FootnoteReference,
    Paragraph,
    Text,
)
from typst_pages.writer.context import Context
from typst_pages.writer.labels import LabelResolver
from typst_pages.writer.preprocessor import DirectivePreprocessor
from typst_pages.writer.renderer import TypstTreeRenderer

if typ.TYPE_CHECKING:
    from pathlib import Path


class FakeLookup:
    def __init__(self, entries: dict[str, DocumentationEntry] | None = None) -> None:
        self.entries = entries or {}
        self.requested: list[str] = []

    def lookup(self, binding: str) -> DocumentationEntry | None:
        self.requested.append(binding)
        return self.entries.get(binding)


class RecordingEvaluator:
    def __init__(self, result: EvaluationResult) -> None:
        self.result = result
        self.calls: list[str] = []

    def evaluate(self, code: str) -> EvaluationResult:
        self.calls.append(code)
        return self.result


def _entry(binding: str, *children: object) -> DocumentationEntry:
    tree = Document(children=typ.cast("tuple", children))
    return DocumentationEntry(binding_name=binding, category="Function", bodies=(DocBody(tree),))


def _preprocessor(
    lookup: FakeLookup | None = None, evaluator: object | None = None
) -> DirectivePreprocessor:
    renderer = TypstTreeRenderer(LabelResolver.from_pages([]), Context())
    return DirectivePreprocessor(
        renderer,
        lookup=lookup or FakeLookup(),
        evaluator=evaluator or SandboxEvaluator(),  # type: ignore[arg-type]
    )


def test_example_block_renders_code_then_output() -> None:
    source = "// @typst-example\n// x = 5\n// print(x + 7)\n// @typst-example-end\n"
    result = _preprocessor().process(source, "api.typ")
    assert result == (
        '#raw("x = 5\nprint(x + 7)", block: true, lang: "python")\n'
        '#raw("12", block: true, lang: "text")\n'
    )


def test_example_without_output_only_shows_code() -> None:
    evaluator = RecordingEvaluator(EvaluationResult())
    source = "// @typst-example\n//   y = 1\n// @typst-example-end"
    result = _preprocessor(evaluator=evaluator).process(source, "api.typ")
    assert evaluator.calls == ["  y = 1"]
    assert result == '#raw("  y = 1", block: true, lang: "python")'


def test_failing_example_reports_the_error(caplog: pytest.LogCaptureFixture) -> None:
    source = "// @typst-example\n// 1 / 0\n// @typst-example-end\n"
    with caplog.at_level(logging.WARNING):
        result = _preprocessor().process(source, "api.typ")
    assert '#raw("1 / 0", block: true, lang: "python")' in result
    assert '#raw("Error: ZeroDivisionError: division by zero", block: true, lang: "text")' in result
    assert "example in api.typ failed" in caplog.text


def test_unterminated_example_is_closed_at_end_of_file(
    caplog: pytest.LogCaptureFixture,
) -> None:
    evaluator = RecordingEvaluator(EvaluationResult(value=3))
    source = "Intro\n// @typst-example\n// 1 + 2\n"
    with caplog.at_level(logging.WARNING):
        result = _preprocessor(evaluator=evaluator).process(source, "api.typ")
    assert result == (
        'Intro\n#raw("1 + 2", block: true, lang: "python")\n'
        '#raw("3", block: true, lang: "text")\n'
    )
    assert "unterminated @typst-example" in caplog.text


def test_ref_without_local_binding_links_literally() -> None:
    result = _preprocessor().process("See @typst-ref(add).", "api.typ")
    assert result == 'See #link(label("api.typ#add"))[#raw("add", block: false)].'


def test_ref_matches_local_binding_case_insensitively() -> None:
    lookup = FakeLookup({"mymod.Add": _entry("mymod.Add", Paragraph(children=(Text("Adds."),)))})
    source = "// @typst-docs mymod.Add\nUse @typst-ref(MYMOD.ADD) here.\n"
    result = _preprocessor(lookup).process(source, "api.typ")
    assert result.endswith(
        'Use #link(label("api.typ#mymod.Add"))[#raw("MYMOD.ADD", block: false)] here.\n'
    )


def test_comment_lines_pass_through_untouched() -> None:
    lookup = FakeLookup()
    source = "// see @typst-ref(add)\n// // @typst-docs hidden.name\n#let x = 1\n"
    result = _preprocessor(lookup).process(source, "api.typ")
    assert result == source
    assert lookup.requested == []


def test_docs_directive_renders_documentation() -> None:
    lookup = FakeLookup({"mymod.add": _entry("mymod.add", Paragraph(children=(Text("Adds."),)))})
    result = _preprocessor(lookup).process("// @typst-docs mymod.add\n", "api.typ")
    assert result.startswith(
        '#raw("mymod.add", block: false) #label("api.typ#mymod.add") -- Function.'
    )
    assert "#grid(columns: (2em, 1fr), [], [" in result
    assert "Adds." in result
    assert result.endswith("])\n")


def test_docs_directive_resolves_docstring_footnotes() -> None:
    entry = _entry(
        "mymod.add",
        Paragraph(children=(Text("Adds"), FootnoteReference("n"))),
        FootnoteDefinition(id="n", children=(Paragraph(children=(Text("note"),)),)),
    )
    result = _preprocessor(FakeLookup({"mymod.add": entry})).process(
        "// @typst-docs mymod.add", "api.typ"
    )
    assert "Adds#footnote[note]" in result


def test_missing_documentation_is_flagged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        result = _preprocessor().process("// @typst-docs nope.x", "api.typ")
    assert result == '#text(fill: red)[Missing documentation: #raw("nope.x", block: false)]'
    assert "no documentation found for nope.x" in caplog.text


def test_process_file_writes_destination(tmp_path: Path) -> None:
    src = tmp_path / "api.typ"
    src.write_text("See @typst-ref(add).\n", encoding="utf-8")
    dst = tmp_path / "out" / "api.typ"
    written = _preprocessor().process_file(src, dst, "api.typ")
    assert written == dst
    assert dst.read_text(encoding="utf-8") == (
        'See #link(label("api.typ#add"))[#raw("add", block: false)].\n'
    )
