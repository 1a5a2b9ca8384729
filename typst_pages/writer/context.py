"""Mutable traversal state threaded through the Typst renderers."""

from __future__ import annotations

import contextlib
import dataclasses as dc
import io
import typing as typ

if typ.TYPE_CHECKING:
    from typst_pages.nodes import FootnoteDefinition


@dc.dataclass(slots=True)
class Context:
    """Render state for the page currently being written.

    One instance is reused for a whole run. :meth:`reset_for_page` clears the
    page-local fields between pages; the output buffer keeps growing.

    Attributes
    ----------
    out : io.StringIO
        Buffer receiving generated markup.
    current_page : str
        Path of the page being rendered.
    heading_depth : int
        Structural level that a level-1 heading maps to.
    in_header : bool
        ``True`` while rendering heading text.
    in_block : bool
        ``True`` inside lists, quotes, admonitions, tables, and footnotes,
        where paragraphs are separated by single newlines.
    footnote_definitions : dict[str, FootnoteDefinition]
        Definitions of the current page, keyed by id.
    """

    out: io.StringIO = dc.field(default_factory=io.StringIO)
    current_page: str = ""
    heading_depth: int = 1
    in_header: bool = False
    in_block: bool = False
    footnote_definitions: dict[str, FootnoteDefinition] = dc.field(default_factory=dict)

    def write(self, *parts: str) -> None:
        for part in parts:
            self.out.write(part)

    def writeln(self, *parts: str) -> None:
        self.write(*parts, "\n")

    def getvalue(self) -> str:
        return self.out.getvalue()

    def reset_for_page(self, page_path: str, heading_depth: int = 1) -> None:
        """Prepare the context for rendering ``page_path``."""
        self.current_page = page_path
        self.heading_depth = heading_depth
        self.in_header = False
        self.in_block = False
        self.footnote_definitions.clear()

    @contextlib.contextmanager
    def block(self) -> typ.Iterator[None]:
        """Render the enclosed content in block context, restoring it afterwards."""
        previous = self.in_block
        self.in_block = True
        try:
            yield
        finally:
            self.in_block = previous

    @contextlib.contextmanager
    def header(self) -> typ.Iterator[None]:
        previous = self.in_header
        self.in_header = True
        try:
            yield
        finally:
            self.in_header = previous


__all__ = ["Context"]
