"""Cross-reference labels shared by every page of a render run.

Labels take the form ``relative/page.md#Label``. The index is built once from
all pages before anything is rendered so that links can point forwards and
across pages, and so that a fragment differing only in case still finds the
heading it was written against.

Example
-------
>>> from typst_pages.nodes import Document, Heading, Text
>>> from typst_pages.writer.models import Page
>>> page = Page("guide.md", Document((Heading(1, (Text("Intro"),)),)))
>>> resolver = LabelResolver.from_pages([page])
>>> resolver.resolve("guide.md", "INTRO")
'guide.md#Intro'
>>> resolver.resolve("guide.md")
'guide.md#Intro'
"""

from __future__ import annotations

import dataclasses as dc
import logging
import types
import typing as typ

from typst_pages._constants import PAGE_LABEL
from typst_pages.nodes import heading_label, iter_headings, iter_rich_content

from .escape import escape_string
from .models import Anchor

if typ.TYPE_CHECKING:
    from .models import Page

log = logging.getLogger(__name__)


class UnresolvedReferenceError(KeyError):
    """Raised in strict mode when a link fragment matches no anchor."""


@dc.dataclass(frozen=True, slots=True)
class RenderState:
    """Read-only lookup tables built once per run.

    Attributes
    ----------
    lowercase_anchor_index : Mapping[str, str]
        ``"page#lowercase-label"`` mapped to the true-case label.
    first_anchor_per_page : Mapping[str, str]
        Page path mapped to the label of its earliest heading. Pages without
        headings have no entry.
    build_path_prefix : str
        Output-directory prefix stripped from page paths.
    strict : bool
        Raise :class:`UnresolvedReferenceError` for unknown fragments instead
        of linking to the literal fragment.
    """

    lowercase_anchor_index: typ.Mapping[str, str]
    first_anchor_per_page: typ.Mapping[str, str]
    build_path_prefix: str = ""
    strict: bool = False


def normalize_page_path(path: str, build_path_prefix: str = "") -> str:
    """Return ``path`` with ``/`` separators and without the build prefix."""
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    prefix = build_path_prefix.replace("\\", "/").rstrip("/")
    if prefix and normalized.startswith(f"{prefix}/"):
        normalized = normalized[len(prefix) + 1 :]
    return normalized


def make_label_id(page_path: str, label: str, build_path_prefix: str = "") -> str:
    """Build the escaped ``page#label`` identifier used by ``#label("...")``."""
    path = normalize_page_path(page_path, build_path_prefix)
    full_id = f"{path}#{label}" if path else label
    return escape_string(full_id)


def collect_anchors(pages: typ.Iterable[Page], build_path_prefix: str = "") -> list[Anchor]:
    """Return one anchor per heading across ``pages`` in document order."""
    anchors: list[Anchor] = []
    order = 0
    for page in pages:
        if page.tree is None:
            continue
        path = normalize_page_path(page.path, build_path_prefix)
        for heading in iter_headings(page.tree):
            anchors.append(Anchor(page_path=path, label=heading_label(heading), order=order))
            order += 1
    return anchors


def _binding_anchors(pages: typ.Iterable[Page], build_path_prefix: str) -> list[Anchor]:
    anchors: list[Anchor] = []
    for page in pages:
        if page.tree is None:
            continue
        for block in iter_rich_content(page.tree):
            path = normalize_page_path(block.page_path or page.path, build_path_prefix)
            anchors.append(Anchor(page_path=path, label=block.binding_name, order=-1))
    return anchors


def build_render_state(
    pages: typ.Sequence[Page],
    *,
    build_path_prefix: str = "",
    strict: bool = False,
) -> RenderState:
    """Index every anchor of ``pages`` into a :class:`RenderState`.

    Parameters
    ----------
    pages : Sequence[Page]
        All pages of the run, in page-list order.
    build_path_prefix : str, optional
        Output-directory prefix to strip from page paths.
    strict : bool, optional
        Enable strict fragment resolution.

    Returns
    -------
    RenderState
        Frozen lookup tables shared by all renderers of the run.
    """
    lowercase: dict[str, str] = {}
    first: dict[str, Anchor] = {}
    for anchor in collect_anchors(pages, build_path_prefix):
        lowercase[f"{anchor.page_path}#{anchor.label.lower()}"] = anchor.label
        current = first.get(anchor.page_path)
        if current is None or anchor.order < current.order:
            first[anchor.page_path] = anchor
    for anchor in _binding_anchors(pages, build_path_prefix):
        lowercase.setdefault(f"{anchor.page_path}#{anchor.label.lower()}", anchor.label)
    return RenderState(
        lowercase_anchor_index=types.MappingProxyType(lowercase),
        first_anchor_per_page=types.MappingProxyType(
            {path: anchor.label for path, anchor in first.items()}
        ),
        build_path_prefix=build_path_prefix,
        strict=strict,
    )


class LabelResolver:
    """Resolve ``(page, fragment)`` pairs against a :class:`RenderState`."""

    def __init__(self, state: RenderState) -> None:
        self.state = state

    @classmethod
    def from_pages(
        cls,
        pages: typ.Sequence[Page],
        *,
        build_path_prefix: str = "",
        strict: bool = False,
    ) -> LabelResolver:
        """Build the state for ``pages`` and wrap it in a resolver."""
        return cls(
            build_render_state(pages, build_path_prefix=build_path_prefix, strict=strict)
        )

    def normalize(self, page_path: str) -> str:
        return normalize_page_path(page_path, self.state.build_path_prefix)

    def resolve_label(self, page_path: str, fragment: str = "") -> str:
        """Return the bare label a link to ``page_path#fragment`` should target.

        A non-empty fragment is matched case-insensitively. When nothing
        matches, the literal fragment is returned so the link still renders
        (or :class:`UnresolvedReferenceError` is raised in strict mode). An
        empty fragment targets the page's first heading, or the synthesised
        page label when the page has none.
        """
        path = self.normalize(page_path)
        if fragment:
            key = f"{path}#{fragment.lower()}"
            label = self.state.lowercase_anchor_index.get(key)
            if label is not None:
                return label
            if self.state.strict:
                msg = f"No anchor '{fragment}' in page '{path}'"
                raise UnresolvedReferenceError(msg)
            log.debug("unresolved fragment %s in %s, linking literally", fragment, path)
            return fragment
        return self.state.first_anchor_per_page.get(path, PAGE_LABEL)

    def resolve(self, page_path: str, fragment: str = "") -> str:
        """Return the escaped label identifier for ``page_path#fragment``."""
        label = self.resolve_label(page_path, fragment)
        return self.label_id(page_path, label)

    def label_id(self, page_path: str, label: str) -> str:
        """Return the escaped identifier of ``label`` inside ``page_path``."""
        return make_label_id(page_path, label, self.state.build_path_prefix)

    def has_headings(self, page_path: str) -> bool:
        return self.normalize(page_path) in self.state.first_anchor_per_page


__all__ = [
    "LabelResolver",
    "RenderState",
    "UnresolvedReferenceError",
    "build_render_state",
    "collect_anchors",
    "make_label_id",
    "normalize_page_path",
]
