"""Shared dataclasses used by the Typst writing pipeline."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    from typst_pages.nodes import Document

RAW_SUFFIX = ".typ"


@dc.dataclass(frozen=True, slots=True)
class Page:
    """One entry of the rendered page list.

    Attributes
    ----------
    path : str
        Source path relative to the source directory; empty for a pure
        section title without a body.
    tree : Document or None
        Parsed page body. ``None`` for sections and raw Typst pages.
    title : str
        Title from the page list; empty when the page is listed bare.
    nesting_depth : int
        1-based depth of the entry in the page list.
    """

    path: str
    tree: Document | None = None
    title: str = ""
    nesting_depth: int = 1

    @property
    def is_section(self) -> bool:
        """Return ``True`` for title-only entries."""
        return not self.path

    @property
    def is_raw(self) -> bool:
        """Return ``True`` for hand-written Typst pages."""
        return self.path.endswith(RAW_SUFFIX)


@dc.dataclass(frozen=True, slots=True)
class Anchor:
    """Addressable point of a page.

    Attributes
    ----------
    page_path : str
        Normalised page path the anchor lives in.
    label : str
        True-case anchor label.
    order : int
        Document order across the whole run; lower values come first.
    """

    page_path: str
    label: str
    order: int


__all__ = ["RAW_SUFFIX", "Anchor", "Page"]
