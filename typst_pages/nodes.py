"""Immutable document tree consumed by the Typst writer.

Every page body is a :class:`Document` whose children are drawn from the closed
:data:`Node` union below. Trees are built once by a parser (see
:mod:`typst_pages.markdown_parser`) or by hand in tests, and never mutated
afterwards; renderers dispatch over the union with ``match`` so that a new node
kind must be handled explicitly.

Example
-------
>>> from typst_pages.nodes import Document, Heading, Paragraph, Text
>>> tree = Document(children=(Heading(level=1, children=(Text("Intro"),)),))
>>> heading_label(tree.children[0])
'Intro'
"""

from __future__ import annotations

import dataclasses as dc
import re
import typing as typ

Alignment = typ.Literal["left", "center", "right"]

_LABEL_STRIP_PATTERN = re.compile(r"[^\w\s.+\-]", re.UNICODE)
_LABEL_SPACE_PATTERN = re.compile(r"\s+")


@dc.dataclass(frozen=True, slots=True)
class Text:
    """Literal prose."""

    text: str


@dc.dataclass(frozen=True, slots=True)
class Strong:
    children: tuple[Node, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class Emph:
    children: tuple[Node, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class InlineCode:
    code: str


@dc.dataclass(frozen=True, slots=True)
class InlineMath:
    source: str


@dc.dataclass(frozen=True, slots=True)
class LineBreak:
    """Hard line break."""


@dc.dataclass(frozen=True, slots=True)
class SoftBreak:
    """Soft line break (a single newline in the source)."""


@dc.dataclass(frozen=True, slots=True)
class ThematicBreak:
    """Horizontal rule."""


@dc.dataclass(frozen=True, slots=True)
class Link:
    """Unresolved link carrying its raw destination.

    Attributes
    ----------
    destination : str
        Absolute URL, ``other.md#fragment`` cross-file reference, or
        ``#fragment`` same-page reference.
    children : tuple[Node, ...]
        Inline nodes forming the link text.
    """

    destination: str
    children: tuple[Node, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class ResolvedPageLink:
    """Internal link already resolved to a page of the current run.

    Attributes
    ----------
    target_page : str
        Page path relative to the source directory.
    fragment : str
        Anchor inside the target page; empty for whole-page links.
    children : tuple[Node, ...]
        Inline nodes forming the link text.
    """

    target_page: str
    fragment: str = ""
    children: tuple[Node, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class FootnoteReference:
    id: str


@dc.dataclass(frozen=True, slots=True)
class FootnoteDefinition:
    id: str
    children: tuple[Node, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class Image:
    """Image with caption.

    Attributes
    ----------
    destination : str
        URL, root-relative (``/``-prefixed) path, or page-relative path.
    children : tuple[Node, ...]
        Inline caption nodes.
    is_local : bool
        When ``True`` the destination is an already-resolved local path and
        only separator normalisation is applied.
    """

    destination: str
    children: tuple[Node, ...] = ()
    is_local: bool = False


@dc.dataclass(frozen=True, slots=True)
class Heading:
    """Section heading.

    Attributes
    ----------
    level : int
        Markdown heading level (1-based).
    children : tuple[Node, ...]
        Inline nodes of the heading text.
    anchor : str or None
        Page-unique anchor label. ``None`` derives one from the text via
        :func:`heading_label`.
    """

    level: int
    children: tuple[Node, ...] = ()
    anchor: str | None = None


@dc.dataclass(frozen=True, slots=True)
class Paragraph:
    children: tuple[Node, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class ListItem:
    children: tuple[Node, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class List:
    """Ordered or bullet list whose children are :class:`ListItem` nodes."""

    ordered: bool = False
    items: tuple[ListItem, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class BlockQuote:
    children: tuple[Node, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class Admonition:
    category: str
    title: str = ""
    children: tuple[Node, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class CodeBlock:
    """Fenced or indented code.

    ``lang`` holds the raw info string; ``"math typst"`` marks native Typst
    math.
    """

    code: str
    lang: str = ""


@dc.dataclass(frozen=True, slots=True)
class DisplayMath:
    source: str


@dc.dataclass(frozen=True, slots=True)
class TableCell:
    children: tuple[Node, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class TableRow:
    cells: tuple[TableCell, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class Table:
    """Table whose column count is ``len(spec)``; the first row is the header."""

    spec: tuple[Alignment, ...]
    rows: tuple[TableRow, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class RawPassthrough:
    """Markup for a named target format, emitted verbatim when it targets Typst."""

    target_name: str
    text: str


@dc.dataclass(frozen=True, slots=True)
class DocBody:
    """One documentation body attached to a binding.

    Attributes
    ----------
    tree : Document
        Parsed documentation text.
    source_url : str or None
        Link to the defining source location, when known.
    """

    tree: Document
    source_url: str | None = None


@dc.dataclass(frozen=True, slots=True)
class RichContentBlock:
    """API documentation for one binding.

    ``bodies`` is a side channel: its trees are not part of ``children`` and
    must be walked explicitly by anything that scans a page.
    """

    binding_name: str
    category: str = ""
    bodies: tuple[DocBody, ...] = ()
    page_path: str = ""

    @property
    def embedded_trees(self) -> tuple[Document, ...]:
        """Return the documentation trees carried outside ``children``."""
        return tuple(body.tree for body in self.bodies)


@dc.dataclass(frozen=True, slots=True)
class IndexEntry:
    binding_name: str
    page_path: str
    label: str


@dc.dataclass(frozen=True, slots=True)
class IndexBlock:
    entries: tuple[IndexEntry, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class ContentsEntry:
    """Table-of-contents line pointing at one heading."""

    page_path: str
    label: str
    level: int
    children: tuple[Node, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class ContentsBlock:
    entries: tuple[ContentsEntry, ...] = ()
    min_depth: int = 1


@dc.dataclass(frozen=True, slots=True)
class Document:
    """Root of one page tree."""

    children: tuple[Node, ...] = ()


Node = (
    Document
    | Heading
    | Paragraph
    | List
    | ListItem
    | BlockQuote
    | Admonition
    | CodeBlock
    | InlineCode
    | Table
    | TableRow
    | TableCell
    | Image
    | DisplayMath
    | InlineMath
    | Link
    | ResolvedPageLink
    | FootnoteDefinition
    | FootnoteReference
    | RawPassthrough
    | RichContentBlock
    | IndexBlock
    | ContentsBlock
    | Text
    | Strong
    | Emph
    | LineBreak
    | SoftBreak
    | ThematicBreak
)

STRUCTURAL_NODES: tuple[type, ...] = (
    Heading,
    IndexBlock,
    ContentsBlock,
    RichContentBlock,
    RawPassthrough,
)
"""Node kinds rendered without surrounding blank lines at page level."""


def children_of(node: Node) -> tuple[Node, ...]:
    """Return the ordinary children of ``node`` in render order."""
    match node:
        case List(items=items):
            return items
        case TableRow(cells=cells):
            return cells
        case Table(rows=rows):
            return rows
        case _:
            return getattr(node, "children", ())


def plain_text(nodes: typ.Iterable[Node]) -> str:
    """Concatenate the literal text below ``nodes``."""
    parts: list[str] = []
    for node in nodes:
        match node:
            case Text(text=text):
                parts.append(text)
            case InlineCode(code=code):
                parts.append(code)
            case InlineMath(source=source):
                parts.append(source)
            case SoftBreak() | LineBreak():
                parts.append(" ")
            case _:
                parts.append(plain_text(children_of(node)))
    return "".join(parts)


def slugify_label(text: str) -> str:
    """Turn heading text into an anchor label such as ``Second-Section``."""
    cleaned = _LABEL_STRIP_PATTERN.sub("", text.strip())
    return _LABEL_SPACE_PATTERN.sub("-", cleaned.strip())


def heading_label(heading: Heading) -> str:
    """Return the anchor label of ``heading``."""
    if heading.anchor:
        return heading.anchor
    return slugify_label(plain_text(heading.children))


def iter_headings(tree: Document) -> typ.Iterator[Heading]:
    """Yield every heading of ``tree`` in document order.

    Documentation bodies of rich content blocks are not searched; their
    headings belong to the docstring, not to the page outline.
    """
    stack: list[Node] = list(reversed(tree.children))
    while stack:
        node = stack.pop()
        if isinstance(node, Heading):
            yield node
            continue
        stack.extend(reversed(children_of(node)))


def iter_rich_content(tree: Document) -> typ.Iterator[RichContentBlock]:
    """Yield the rich content blocks of ``tree`` in document order."""
    stack: list[Node] = list(reversed(tree.children))
    while stack:
        node = stack.pop()
        if isinstance(node, RichContentBlock):
            yield node
            continue
        stack.extend(reversed(children_of(node)))


__all__ = [
    "STRUCTURAL_NODES",
    "Admonition",
    "Alignment",
    "BlockQuote",
    "CodeBlock",
    "ContentsBlock",
    "ContentsEntry",
    "DisplayMath",
    "DocBody",
    "Document",
    "Emph",
    "FootnoteDefinition",
    "FootnoteReference",
    "Heading",
    "Image",
    "IndexBlock",
    "IndexEntry",
    "InlineCode",
    "InlineMath",
    "LineBreak",
    "Link",
    "List",
    "ListItem",
    "Node",
    "Paragraph",
    "RawPassthrough",
    "ResolvedPageLink",
    "RichContentBlock",
    "SoftBreak",
    "Strong",
    "Table",
    "TableCell",
    "TableRow",
    "Text",
    "ThematicBreak",
    "children_of",
    "heading_label",
    "iter_headings",
    "iter_rich_content",
    "plain_text",
    "slugify_label",
]
