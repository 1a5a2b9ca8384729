"""Expand ``@docs``, ``@contents`` and ``@index`` fences in parsed pages.

The Markdown parser keeps these fences as placeholder
:class:`~typst_pages.nodes.RawPassthrough` nodes. Documentation blocks are
expanded first, page by page, because the index lists every documented
binding of the run; contents and index blocks are filled afterwards from all
pages at once.

A ``@docs`` fence lists one binding per line. ``@contents`` and ``@index``
accept ``Pages = ["a.md", "b.md"]`` to restrict the pages they cover, and
``@contents`` also accepts ``Depth = N`` (default 2).
"""

from __future__ import annotations

import dataclasses as dc
import logging
import re
import typing as typ

from .nodes import (
    ContentsBlock,
    ContentsEntry,
    Document,
    IndexBlock,
    IndexEntry,
    InlineCode,
    Paragraph,
    RawPassthrough,
    RichContentBlock,
    Strong,
    Text,
    heading_label,
    iter_headings,
    iter_rich_content,
)

if typ.TYPE_CHECKING:
    from .collaborators import DocumentationLookup
    from .nodes import Node
    from .writer.models import Page

log = logging.getLogger(__name__)

DOCS_FENCE = "@docs"
CONTENTS_FENCE = "@contents"
INDEX_FENCE = "@index"
DEFAULT_CONTENTS_DEPTH = 2

_PAGES_OPTION = re.compile(r"^\s*Pages\s*=\s*\[(?P<pages>.*)\]\s*$", re.MULTILINE)
_DEPTH_OPTION = re.compile(r"^\s*Depth\s*=\s*(?P<depth>\d+)\s*$", re.MULTILINE)
_QUOTED = re.compile(r"[\"']([^\"']+)[\"']")


@dc.dataclass(frozen=True, slots=True)
class BlockOptions:
    pages: tuple[str, ...] = ()
    depth: int = DEFAULT_CONTENTS_DEPTH

    @classmethod
    def parse(cls, text: str) -> BlockOptions:
        pages: tuple[str, ...] = ()
        if match := _PAGES_OPTION.search(text):
            pages = tuple(_QUOTED.findall(match["pages"]))
        depth = DEFAULT_CONTENTS_DEPTH
        if match := _DEPTH_OPTION.search(text):
            depth = int(match["depth"])
        return cls(pages=pages, depth=depth)

    def covers(self, page_path: str) -> bool:
        return not self.pages or any(
            page_path == page or page_path.endswith(f"/{page}") for page in self.pages
        )


def _missing_docs(binding: str) -> Paragraph:
    return Paragraph(
        children=(Strong(children=(Text("Missing documentation: "),)), InlineCode(binding))
    )


def expand_docs(tree: Document, page_path: str, lookup: DocumentationLookup) -> Document:
    """Replace ``@docs`` placeholders of ``tree`` with rich content blocks."""
    children: list[Node] = []
    for child in tree.children:
        if not (isinstance(child, RawPassthrough) and child.target_name == DOCS_FENCE):
            children.append(child)
            continue
        for binding in (line.strip() for line in child.text.splitlines()):
            if not binding:
                continue
            entry = lookup.lookup(binding)
            if entry is None or not entry.bodies:
                log.warning("no documentation found for %s in %s", binding, page_path)
                children.append(_missing_docs(binding))
                continue
            children.append(
                RichContentBlock(
                    binding_name=binding,
                    category=entry.category,
                    bodies=entry.bodies,
                    page_path=page_path,
                )
            )
    return Document(children=tuple(children))


def _contents_entries(pages: typ.Sequence[Page], options: BlockOptions) -> ContentsBlock:
    entries: list[ContentsEntry] = []
    for page in pages:
        if page.tree is None or not options.covers(page.path):
            continue
        for heading in iter_headings(page.tree):
            if heading.level > options.depth:
                continue
            entries.append(
                ContentsEntry(
                    page_path=page.path,
                    label=heading_label(heading),
                    level=heading.level,
                    children=heading.children,
                )
            )
    min_depth = min((entry.level for entry in entries), default=1)
    return ContentsBlock(entries=tuple(entries), min_depth=min_depth)


def _index_entries(pages: typ.Sequence[Page], options: BlockOptions) -> IndexBlock:
    entries = [
        IndexEntry(
            binding_name=block.binding_name,
            page_path=block.page_path or page.path,
            label=block.binding_name,
        )
        for page in pages
        if page.tree is not None and options.covers(page.path)
        for block in iter_rich_content(page.tree)
    ]
    entries.sort(key=lambda entry: entry.binding_name.lower())
    return IndexBlock(entries=tuple(entries))


def expand_listings(tree: Document, pages: typ.Sequence[Page]) -> Document:
    """Replace ``@contents`` and ``@index`` placeholders using every page of the run."""
    children: list[Node] = []
    for child in tree.children:
        match child:
            case RawPassthrough(target_name=name, text=text) if name == CONTENTS_FENCE:
                children.append(_contents_entries(pages, BlockOptions.parse(text)))
            case RawPassthrough(target_name=name, text=text) if name == INDEX_FENCE:
                children.append(_index_entries(pages, BlockOptions.parse(text)))
            case _:
                children.append(child)
    return Document(children=tuple(children))


__all__ = [
    "CONTENTS_FENCE",
    "DOCS_FENCE",
    "INDEX_FENCE",
    "BlockOptions",
    "expand_docs",
    "expand_listings",
]
