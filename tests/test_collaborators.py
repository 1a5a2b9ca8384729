"""Tests for the default documentation lookup and example evaluator."""

from __future__ import annotations

import pytest

from typst_pages.collaborators import EvaluationResult, PythonDocLookup, SandboxEvaluator
from typst_pages.nodes import Document


@pytest.mark.parametrize(
    ("binding", "category"),
    [
        ("json", "Module"),
        ("json.JSONDecoder", "Class"),
        ("json.JSONDecoder.decode", "Function"),
        ("json.dumps", "Function"),
    ],
)
def test_lookup_reports_category(binding: str, category: str) -> None:
    entry = PythonDocLookup().lookup(binding)
    assert entry is not None
    assert entry.binding_name == binding
    assert entry.category == category
    assert isinstance(entry.bodies[0].tree, Document)
    assert entry.bodies[0].source_url is None


@pytest.mark.parametrize("binding", ["no_such_module_xyz.thing", "json.no_such_attribute"])
def test_lookup_misses_return_none(binding: str) -> None:
    assert PythonDocLookup().lookup(binding) is None


def test_source_url_uses_package_relative_path() -> None:
    entry = PythonDocLookup(source_url="https://x/{path}#L{line}").lookup("json.dumps")
    assert entry is not None
    url = entry.bodies[0].source_url
    assert url is not None
    assert url.startswith("https://x/json/__init__.py#L")


def test_evaluator_returns_trailing_expression_value() -> None:
    result = SandboxEvaluator().evaluate("x = 6\nx * 2")
    assert result.value == 12
    assert result.output == ""
    assert result.display_text() == "12"


def test_evaluator_captures_printed_output() -> None:
    result = SandboxEvaluator().evaluate("x = 5\nprint(x + 7)")
    assert result.output == "12\n"
    assert result.display_text() == "12"


def test_evaluator_namespace_persists_between_examples() -> None:
    evaluator = SandboxEvaluator()
    evaluator.evaluate("greeting = 'hi'")
    assert evaluator.evaluate("greeting.upper()").value == "HI"


def test_evaluator_propagates_exceptions() -> None:
    with pytest.raises(ZeroDivisionError):
        SandboxEvaluator().evaluate("1 / 0")


def test_display_text_prefers_output_over_value() -> None:
    assert EvaluationResult(output="out\n", value=3).display_text() == "out"
    assert EvaluationResult(value="s").display_text() == "'s'"
    assert EvaluationResult().display_text() == ""
