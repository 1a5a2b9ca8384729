r"""Expand comment directives in hand-written Typst pages.

Raw ``.typ`` pages are not parsed into trees. Instead they are scanned line
by line for three directives:

``// @typst-docs package.module.name``
    Replaced with the rendered documentation of the binding.
``// @typst-example`` ... ``// @typst-example-end``
    The commented lines in between are shown as a code block, executed, and
    followed by a block with the captured output.
``@typst-ref(target)``
    Inline, on non-comment lines; replaced with a link to ``target`` in the
    current file.

Any other line, comment or not, passes through unchanged.

Example
-------
>>> pre = DirectivePreprocessor(renderer, lookup=lookup, evaluator=evaluator)
>>> pre.process("See @typst-ref(add).", "api.typ")
'See #link(label("api.typ#add"))[#raw("add", block: false)].'
"""

from __future__ import annotations

import enum
import logging
import re
import typing as typ

from typst_pages.nodes import RichContentBlock

from .escape import escape_string
from .footnotes import collect_footnotes

if typ.TYPE_CHECKING:
    from pathlib import Path

    from typst_pages.collaborators import DocumentationLookup, Evaluator

    from .renderer import TypstTreeRenderer

log = logging.getLogger(__name__)

DOCS_DIRECTIVE = re.compile(r"^//\s*@typst-docs\s+(?P<binding>[A-Za-z_][\w.]*)\s*$")
EXAMPLE_BEGIN = re.compile(r"^//\s*@typst-example\s*$")
EXAMPLE_END = re.compile(r"^//\s*@typst-example-end\s*$")
REF_DIRECTIVE = re.compile(r"@typst-ref\((?P<target>[^()\s]+)\)")
COMMENT_PREFIX = "//"


class _State(enum.Enum):
    PROSE = enum.auto()
    EXAMPLE = enum.auto()


def _uncomment(line: str) -> str:
    """Strip the ``//`` prefix and one following space from an example line."""
    body = line.lstrip()
    if not body.startswith(COMMENT_PREFIX):
        return line
    body = body[len(COMMENT_PREFIX) :]
    return body[1:] if body.startswith(" ") else body


def _text_block(text: str) -> str:
    return f'#raw("{escape_string(text)}", block: true, lang: "text")'


class DirectivePreprocessor:
    """Line scanner that expands directives in one raw page at a time.

    Parameters
    ----------
    renderer : TypstTreeRenderer
        Renderer (and resolver) of the current run; documentation bodies are
        rendered through it so they look like ordinary pages.
    lookup : DocumentationLookup
        Source of documentation for ``@typst-docs`` bindings.
    evaluator : Evaluator
        Executes ``@typst-example`` code.
    language : str, optional
        Language tag for example code blocks.
    """

    def __init__(
        self,
        renderer: TypstTreeRenderer,
        *,
        lookup: DocumentationLookup,
        evaluator: Evaluator,
        language: str = "python",
    ) -> None:
        self.renderer = renderer
        self.lookup = lookup
        self.evaluator = evaluator
        self.language = language

    def process(self, text: str, page_path: str) -> str:
        """Return ``text`` with every directive expanded."""
        self.renderer.context.reset_for_page(page_path)
        lines = text.splitlines()
        local = self._local_bindings(lines)
        output: list[str] = []
        state = _State.PROSE
        example: list[str] = []
        for line in lines:
            stripped = line.strip()
            if state is _State.EXAMPLE:
                if EXAMPLE_END.match(stripped):
                    output.append(self._expand_example(example, page_path))
                    example = []
                    state = _State.PROSE
                else:
                    example.append(_uncomment(line))
                continue
            if EXAMPLE_BEGIN.match(stripped):
                state = _State.EXAMPLE
                continue
            if docs := DOCS_DIRECTIVE.match(stripped):
                output.append(self._expand_docs(docs["binding"], page_path))
                continue
            if stripped.startswith(COMMENT_PREFIX):
                output.append(line)
                continue
            output.append(
                REF_DIRECTIVE.sub(lambda m: self._expand_ref(m["target"], page_path, local), line)
            )
        if state is _State.EXAMPLE:
            log.warning("unterminated @typst-example in %s; closing at end of file", page_path)
            output.append(self._expand_example(example, page_path))
        result = "\n".join(output)
        return f"{result}\n" if text.endswith("\n") else result

    def process_file(self, src: Path, dst: Path, page_path: str) -> Path:
        """Preprocess ``src`` and write the result to ``dst``."""
        processed = self.process(src.read_text(encoding="utf-8"), page_path)
        dst.parent.mkdir(parents=True, exist_ok=True)
        dst.write_text(processed, encoding="utf-8")
        log.debug("preprocessed %s -> %s", src, dst)
        return dst

    @staticmethod
    def _local_bindings(lines: typ.Iterable[str]) -> dict[str, str]:
        bindings: dict[str, str] = {}
        for line in lines:
            if match := DOCS_DIRECTIVE.match(line.strip()):
                binding = match["binding"]
                bindings.setdefault(binding.lower(), binding)
        return bindings

    def _expand_ref(self, target: str, page_path: str, local: dict[str, str]) -> str:
        resolver = self.renderer.resolver
        binding = local.get(target.lower())
        if binding is not None:
            label_id = resolver.label_id(page_path, binding)
        else:
            label_id = resolver.resolve(page_path, target)
        return f'#link(label("{label_id}"))[#raw("{escape_string(target)}", block: false)]'

    def _expand_docs(self, binding: str, page_path: str) -> str:
        entry = self.lookup.lookup(binding)
        if entry is None or not entry.bodies:
            log.warning("no documentation found for %s in %s", binding, page_path)
            return (
                f'#text(fill: red)[Missing documentation: #raw("{escape_string(binding)}",'
                " block: false)]"
            )
        block = RichContentBlock(
            binding_name=binding,
            category=entry.category,
            bodies=entry.bodies,
            page_path=page_path,
        )
        collect_footnotes(block, self.renderer.context.footnote_definitions)
        return self.renderer.render_fragment([block]).rstrip("\n")

    def _expand_example(self, lines: list[str], page_path: str) -> str:
        code = "\n".join(lines).strip("\n")
        rendered = [f'#raw("{escape_string(code)}", block: true, lang: "{self.language}")']
        try:
            result = self.evaluator.evaluate(code)
        except Exception as exc:  # noqa: BLE001 - example code may raise anything
            log.warning("example in %s failed: %s: %s", page_path, type(exc).__name__, exc)
            rendered.append(_text_block(f"Error: {type(exc).__name__}: {exc}"))
        else:
            shown = result.display_text()
            if shown:
                rendered.append(_text_block(shown))
        return "\n".join(rendered)


__all__ = ["DirectivePreprocessor"]
