"""Documentation lookup and code evaluation used by the directive preprocessor.

Raw Typst pages can pull in API documentation (``// @typst-docs``) and run
examples (``// @typst-example``). Both concerns are reached through small
protocols so builds and tests can inject their own implementations; the
defaults here document Python objects and execute Python snippets.

Examples
--------
>>> lookup = PythonDocLookup()
>>> entry = lookup.lookup("json.dumps")
>>> entry.category
'Function'
>>> SandboxEvaluator().evaluate("x = 6\\nx * 2").value
12
"""

from __future__ import annotations

import ast
import contextlib
import dataclasses as dc
import importlib
import inspect
import io
import logging
import typing as typ

from .markdown_parser import build_markdown_parser, parse_markdown
from .nodes import DocBody

log = logging.getLogger(__name__)

_NO_VALUE = object()


@dc.dataclass(frozen=True, slots=True)
class DocumentationEntry:
    """Documentation found for one binding.

    Attributes
    ----------
    binding_name : str
        Dotted path that was looked up.
    category : str
        Kind of object, such as ``Function`` or ``Class``.
    bodies : tuple[DocBody, ...]
        Parsed documentation bodies in display order.
    """

    binding_name: str
    category: str
    bodies: tuple[DocBody, ...]


class DocumentationLookup(typ.Protocol):
    def lookup(self, binding: str) -> DocumentationEntry | None: ...


@dc.dataclass(frozen=True, slots=True)
class EvaluationResult:
    """Outcome of running one example.

    ``output`` holds captured standard output; ``value`` is the value of a
    trailing expression statement, or ``None`` when there was none.
    """

    output: str = ""
    value: object | None = None

    def display_text(self) -> str:
        """Return the text shown under an example."""
        if self.output.strip():
            return self.output.rstrip("\n")
        if self.value is None:
            return ""
        return repr(self.value)


class Evaluator(typ.Protocol):
    def evaluate(self, code: str) -> EvaluationResult: ...


def _category(obj: object) -> str:
    if inspect.ismodule(obj):
        return "Module"
    if inspect.isclass(obj):
        return "Class"
    if inspect.ismethod(obj) or inspect.ismethoddescriptor(obj):
        return "Method"
    if inspect.isroutine(obj):
        return "Function"
    return "Constant"


def _resolve_binding(binding: str) -> object:
    """Import the longest importable module prefix of ``binding`` and walk the rest.

    Raises
    ------
    ImportError
        If no prefix of ``binding`` is importable.
    AttributeError
        If an attribute along the remaining path is missing.
    """
    parts = binding.split(".")
    for split in range(len(parts), 0, -1):
        module_name = ".".join(parts[:split])
        try:
            obj: object = importlib.import_module(module_name)
        except ImportError:
            continue
        for attribute in parts[split:]:
            obj = getattr(obj, attribute)
        return obj
    msg = f"No importable module in '{binding}'"
    raise ImportError(msg)


class PythonDocLookup:
    """Look up docstrings of importable Python objects.

    Parameters
    ----------
    source_url : str, optional
        Template for links to the defining source, using ``{path}`` (module
        path relative to its package root) and ``{line}``. No source link is
        produced when omitted.
    """

    def __init__(self, source_url: str | None = None) -> None:
        self.source_url = source_url
        self._parser = build_markdown_parser()

    def lookup(self, binding: str) -> DocumentationEntry | None:
        try:
            obj = _resolve_binding(binding)
        except (ImportError, AttributeError) as exc:
            log.debug("cannot resolve %s: %s", binding, exc)
            return None
        docstring = inspect.getdoc(obj)
        if not docstring:
            return None
        tree = parse_markdown(docstring, parser=self._parser)
        body = DocBody(tree=tree, source_url=self._source_link(obj))
        return DocumentationEntry(binding_name=binding, category=_category(obj), bodies=(body,))

    def _source_link(self, obj: object) -> str | None:
        if self.source_url is None:
            return None
        try:
            path = inspect.getsourcefile(obj)  # type: ignore[arg-type]
            _, line = inspect.getsourcelines(obj)  # type: ignore[arg-type]
        except (OSError, TypeError):
            return None
        if path is None:
            return None
        module = inspect.getmodule(obj)
        relative = path
        if module is not None:
            root = module.__name__.split(".")[0]
            marker = f"/{root}/"
            normalized = path.replace("\\", "/")
            if marker in normalized:
                relative = root + "/" + normalized.split(marker, 1)[1]
        return self.source_url.format(path=relative, line=line)


class SandboxEvaluator:
    """Execute Python examples in an isolated namespace.

    One evaluator keeps its namespace between calls, so examples later in a
    file can use names defined earlier. Standard output is captured; the
    value of a trailing expression statement is returned separately.
    """

    def __init__(self) -> None:
        self.namespace: dict[str, typ.Any] = {"__name__": "__typst_example__"}

    def evaluate(self, code: str) -> EvaluationResult:
        module = ast.parse(code, mode="exec")
        trailing: ast.Expression | None = None
        if module.body and isinstance(module.body[-1], ast.Expr):
            trailing = ast.Expression(body=module.body.pop().value)
        buffer = io.StringIO()
        value: object = _NO_VALUE
        with contextlib.redirect_stdout(buffer):
            exec(compile(module, "<example>", "exec"), self.namespace)  # noqa: S102
            if trailing is not None:
                value = eval(compile(trailing, "<example>", "eval"), self.namespace)  # noqa: S307
        return EvaluationResult(
            output=buffer.getvalue(),
            value=None if value is _NO_VALUE else value,
        )


__all__ = [
    "DocumentationEntry",
    "DocumentationLookup",
    "EvaluationResult",
    "Evaluator",
    "PythonDocLookup",
    "SandboxEvaluator",
]
