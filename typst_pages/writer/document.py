"""Assemble every page of a run into one Typst document.

The document starts with a preamble rendered from a Jinja2 template, then
walks the page list in order. Markdown pages are rendered through
:class:`~typst_pages.writer.renderer.TypstTreeRenderer`; hand-written
``.typ`` pages are pulled in with ``#extended_include`` and expanded
separately by the directive preprocessor.

Example
-------
>>> from typst_pages.nodes import Document, Paragraph, Text
>>> from typst_pages.writer.models import Page
>>> pages = [Page("notes.md", Document((Paragraph((Text("Hi"),)),)))]
>>> source = render_document(pages, preamble="")
>>> source.splitlines()[0]
'#metadata("__page__") #label("notes.md#__page__")'
"""

from __future__ import annotations

import datetime as dt
import importlib.resources
import logging
import typing as typ

import jinja2

from typst_pages._constants import DOCUMENT_STRUCTURE, PAGE_LABEL, PREAMBLE_TEMPLATE, STYLE_ASSET

from .context import Context
from .escape import escape_content, escape_string
from .footnotes import collect_footnotes
from .labels import LabelResolver
from .renderer import TypstTreeRenderer

if typ.TYPE_CHECKING:
    from pathlib import Path

    from .models import Page

log = logging.getLogger(__name__)

NO_CUSTOM_STYLE = "// No custom.typ found\n"


class RawPageNotFoundError(FileNotFoundError):
    """Raised when a ``.typ`` page in the page list does not exist."""


def default_preamble_template() -> str:
    """Return the preamble template shipped with the package."""
    resource = importlib.resources.files("typst_pages") / "templates" / PREAMBLE_TEMPLATE
    return resource.read_text(encoding="utf-8")


def render_preamble(
    template: str,
    *,
    sitename: str,
    version: str = "",
    authors: str = "",
    custom_style: str | None = None,
    date: dt.date | None = None,
) -> str:
    """Render the document preamble.

    Parameters
    ----------
    template : str
        Jinja2 template source.
    sitename, version, authors : str
        Document metadata; content-escaped before substitution.
    custom_style : str, optional
        Contents of the project's ``assets/custom.typ``, embedded verbatim.
    date : datetime.date, optional
        Build date shown on the title page; defaults to today.

    Returns
    -------
    str
        Typst source for the top of the document.
    """
    env = jinja2.Environment(  # noqa: S701 - output is Typst, not HTML
        autoescape=False,
        keep_trailing_newline=True,
        undefined=jinja2.StrictUndefined,
    )
    when = date or dt.datetime.now(tz=dt.UTC).date()
    return env.from_string(template).render(
        style_asset=STYLE_ASSET,
        custom_style=custom_style if custom_style is not None else NO_CUSTOM_STYLE,
        title=escape_content(sitename),
        date=f"{when:%b} {when.day}, {when.year}",
        version=escape_content(version),
        authors=escape_content(authors),
    )


class TypstDocumentWriter:
    """Write the page list of one run through a shared renderer.

    Parameters
    ----------
    renderer : TypstTreeRenderer
        Renderer whose context buffer receives the document.
    source_root : Path, optional
        Directory that raw ``.typ`` pages are looked up in. Existence is not
        checked when omitted.
    """

    def __init__(self, renderer: TypstTreeRenderer, *, source_root: Path | None = None) -> None:
        self.renderer = renderer
        self.source_root = source_root

    @property
    def context(self) -> Context:
        return self.renderer.context

    def write(self, pages: typ.Iterable[Page], preamble: str = "") -> str:
        """Render ``preamble`` and every page, returning the whole document."""
        if preamble:
            self.context.writeln(preamble)
        for page in pages:
            self.write_page(page)
        return self.context.getvalue()

    def write_page(self, page: Page) -> None:
        ctx = self.context
        depth = page.nesting_depth
        if not 1 <= depth <= len(DOCUMENT_STRUCTURE):
            log.warning("skipping %s: nesting depth %d is too deep", page.path or page.title, depth)
            return
        ctx.reset_for_page(page.path, heading_depth=depth)
        if page.is_section:
            self._title(page)
            return
        if page.is_raw:
            self._include(page)
            return
        if page.tree is None:
            log.warning("skipping %s: page has no parsed content", page.path)
            return
        collect_footnotes(page.tree, ctx.footnote_definitions)
        ctx.heading_depth = depth + (1 if page.title else 0)
        if page.title:
            self._title(page)
        if not self.renderer.resolver.has_headings(page.path):
            self._page_label(page)
        self.renderer.render_page_body(page.tree)

    def _title(self, page: Page) -> None:
        self.context.writeln(
            f"#extended_heading(level: {page.nesting_depth}, [{escape_content(page.title)}])\n"
        )

    def _page_label(self, page: Page) -> None:
        label_id = self.renderer.resolver.label_id(page.path, PAGE_LABEL)
        self.context.writeln(f'#metadata("{PAGE_LABEL}") #label("{label_id}")')

    def _include(self, page: Page) -> None:
        if self.source_root is not None and not (self.source_root / page.path).is_file():
            msg = f"Typst file not found: {self.source_root / page.path}"
            raise RawPageNotFoundError(msg)
        if page.title:
            self._title(page)
        self._page_label(page)
        offset = page.nesting_depth + (1 if page.title else 0) - 1
        include_path = escape_string(page.path.replace("\\", "/"))
        self.context.writeln(f'#extended_include("{include_path}", offset: {offset})')


def render_document(
    pages: typ.Sequence[Page],
    *,
    preamble: str = "",
    source_root: Path | None = None,
    build_path_prefix: str = "",
    strict: bool = False,
) -> str:
    """Render ``pages`` into one Typst document with fresh run state."""
    resolver = LabelResolver.from_pages(pages, build_path_prefix=build_path_prefix, strict=strict)
    renderer = TypstTreeRenderer(resolver, Context(), asset_root=source_root)
    return TypstDocumentWriter(renderer, source_root=source_root).write(pages, preamble)


__all__ = [
    "NO_CUSTOM_STYLE",
    "RawPageNotFoundError",
    "TypstDocumentWriter",
    "default_preamble_template",
    "render_document",
    "render_preamble",
]
