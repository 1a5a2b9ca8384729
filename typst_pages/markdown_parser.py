r"""Parse Markdown pages into :mod:`typst_pages.nodes` trees.

The parser wraps markdown-it-py (CommonMark plus tables) with the footnote,
dollar-math, and admonition plugins from mdit-py-plugins, then walks the
resulting syntax tree into the immutable node model the writer consumes.
Headings receive page-unique anchor labels, and relative links to other
``.md``/``.typ`` pages are resolved against the current page so the writer can
address them through the shared label index. ``@docs``, ``@contents`` and
``@index`` fences are kept as placeholders for :mod:`typst_pages.blocks`.

Example
-------
>>> from typst_pages.markdown_parser import parse_markdown
>>> tree = parse_markdown("# Intro\nSee [setup](setup.md).", page_path="guide/index.md")
>>> tree.children[0].anchor
'Intro'
>>> tree.children[1].children[1].target_page
'guide/setup.md'
"""

from __future__ import annotations

import logging
import posixpath
import re
import typing as typ
from urllib.parse import unquote

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode
from mdit_py_plugins.admon import admon_plugin
from mdit_py_plugins.dollarmath import dollarmath_plugin
from mdit_py_plugins.footnote import footnote_plugin

from .nodes import (
    Admonition,
    BlockQuote,
    CodeBlock,
    DisplayMath,
    Document,
    Emph,
    FootnoteDefinition,
    FootnoteReference,
    Heading,
    Image,
    InlineCode,
    InlineMath,
    LineBreak,
    Link,
    List,
    ListItem,
    Paragraph,
    RawPassthrough,
    ResolvedPageLink,
    SoftBreak,
    Strong,
    Table,
    TableCell,
    TableRow,
    Text,
    ThematicBreak,
    plain_text,
    slugify_label,
)
from .writer.renderer import is_absolute_url

if typ.TYPE_CHECKING:
    from .nodes import Alignment, Node

log = logging.getLogger(__name__)

RAW_FENCE_PREFIX = "@raw"
BLOCK_FENCES = frozenset({"@docs", "@contents", "@index"})
PAGE_SUFFIXES = (".md", ".typ")
ALIGN_PATTERN = re.compile(r"text-align:\s*(left|center|right)")


def build_markdown_parser() -> MarkdownIt:
    """Return a markdown-it parser configured for documentation pages."""
    md = MarkdownIt("commonmark", {"html": True})
    md.enable("table")
    md.use(footnote_plugin)
    md.use(dollarmath_plugin)
    md.use(admon_plugin)
    return md


def _local_target(url: str) -> str:
    """Undo markdown-it's percent-encoding of page-local link and image targets."""
    return url if is_absolute_url(url) else unquote(url)


def _unique_label(base: str, used: set[str]) -> str:
    """Return ``base`` or ``base-N`` so labels stay unique within a page."""
    root = base or "section"
    candidate = root
    suffix = 2
    while candidate in used:
        candidate = f"{root}-{suffix}"
        suffix += 1
    used.add(candidate)
    return candidate


class _TreeBuilder:
    """Convert one markdown-it syntax tree into document nodes."""

    def __init__(self, page_path: str) -> None:
        self.page_path = page_path.replace("\\", "/")
        self.used_labels: set[str] = set()

    def document(self, root: SyntaxTreeNode) -> Document:
        return Document(children=self.blocks(root.children))

    def blocks(self, nodes: typ.Iterable[SyntaxTreeNode]) -> tuple[Node, ...]:
        converted: list[Node] = []
        for node in nodes:
            match node.type:
                case "footnote_block":
                    converted.extend(self.footnote(child) for child in node.children)
                case _:
                    block = self.block(node)
                    if block is not None:
                        converted.append(block)
        return tuple(converted)

    def block(self, node: SyntaxTreeNode) -> Node | None:
        match node.type:
            case "heading":
                children = self.inline_of(node)
                label = _unique_label(slugify_label(plain_text(children)), self.used_labels)
                return Heading(level=int(node.tag[1:]), children=children, anchor=label)
            case "paragraph":
                return Paragraph(children=self.inline_of(node))
            case "bullet_list" | "ordered_list":
                items = tuple(ListItem(children=self.blocks(item.children)) for item in node.children)
                return List(ordered=node.type == "ordered_list", items=items)
            case "blockquote":
                return BlockQuote(children=self.blocks(node.children))
            case "fence":
                return self.fence(node)
            case "code_block":
                return CodeBlock(code=node.content.rstrip("\n"))
            case "math_block" | "math_block_label":
                return DisplayMath(source=node.content.strip())
            case "table":
                return self.table(node)
            case "hr":
                return ThematicBreak()
            case "html_block":
                return RawPassthrough(target_name="html", text=node.content)
            case "admonition":
                return self.admonition(node)
            case _:
                log.debug("dropping unsupported markdown block %s in %s", node.type, self.page_path)
                return None

    def fence(self, node: SyntaxTreeNode) -> Node:
        info = node.info.strip()
        code = node.content.rstrip("\n")
        words = info.split()
        if words and words[0] == RAW_FENCE_PREFIX and len(words) > 1:
            return RawPassthrough(target_name=words[1], text=code)
        if words and words[0] in BLOCK_FENCES:
            return RawPassthrough(target_name=words[0], text=code)
        return CodeBlock(code=code, lang=info)

    def table(self, node: SyntaxTreeNode) -> Table:
        rows: list[TableRow] = []
        spec: list[Alignment] = []
        for section in node.children:
            for row in section.children:
                cells: list[TableCell] = []
                for cell in row.children:
                    if not rows:
                        match = ALIGN_PATTERN.search(str(cell.attrs.get("style", "")))
                        spec.append(typ.cast("Alignment", match.group(1)) if match else "left")
                    cells.append(TableCell(children=self.inline_of(cell)))
                rows.append(TableRow(cells=tuple(cells)))
        return Table(spec=tuple(spec), rows=tuple(rows))

    def admonition(self, node: SyntaxTreeNode) -> Admonition:
        title = ""
        body: list[SyntaxTreeNode] = []
        for child in node.children:
            if child.type == "admonition_title":
                title = plain_text(self.inline_of(child))
            else:
                body.append(child)
        category = str(node.meta.get("tag", "")) if node.meta else ""
        return Admonition(category=category, title=title, children=self.blocks(body))

    def footnote(self, node: SyntaxTreeNode) -> FootnoteDefinition:
        meta = node.meta or {}
        identifier = str(meta.get("label") or meta.get("id", ""))
        return FootnoteDefinition(id=identifier, children=self.blocks(node.children))

    # -- inline -----------------------------------------------------------

    def inline_of(self, node: SyntaxTreeNode) -> tuple[Node, ...]:
        """Return inline nodes of a block whose single child is ``inline``."""
        converted: list[Node] = []
        for child in node.children:
            if child.type == "inline":
                converted.extend(self.inlines(child.children))
            else:
                converted.extend(self.inlines([child]))
        return tuple(converted)

    def inlines(self, nodes: typ.Iterable[SyntaxTreeNode]) -> list[Node]:
        converted: list[Node] = []
        for node in nodes:
            match node.type:
                case "text":
                    converted.append(Text(node.content))
                case "softbreak":
                    converted.append(SoftBreak())
                case "hardbreak":
                    converted.append(LineBreak())
                case "code_inline":
                    converted.append(InlineCode(node.content))
                case "strong":
                    converted.append(Strong(children=tuple(self.inlines(node.children))))
                case "em":
                    converted.append(Emph(children=tuple(self.inlines(node.children))))
                case "math_inline" | "math_inline_double":
                    converted.append(InlineMath(node.content))
                case "footnote_ref":
                    meta = node.meta or {}
                    converted.append(
                        FootnoteReference(id=str(meta.get("label") or meta.get("id", "")))
                    )
                case "link":
                    href = str(node.attrs.get("href", ""))
                    converted.append(self.link(href, tuple(self.inlines(node.children))))
                case "image":
                    src = _local_target(str(node.attrs.get("src", "")))
                    converted.append(
                        Image(destination=src, children=tuple(self.inlines(node.children)))
                    )
                case "footnote_anchor" | "html_inline":
                    continue
                case _:
                    log.debug("flattening unsupported inline %s in %s", node.type, self.page_path)
                    converted.extend(self.inlines(node.children))
        return converted

    def link(self, href: str, children: tuple[Node, ...]) -> Node:
        if not href or is_absolute_url(href) or href.startswith("mailto:"):
            return Link(destination=href, children=children)
        href = _local_target(href)
        if href.startswith("#"):
            return Link(destination=href, children=children)
        path, _, fragment = href.partition("#")
        if not path.endswith(PAGE_SUFFIXES):
            return Link(destination=href, children=children)
        base = posixpath.dirname(self.page_path)
        target = posixpath.normpath(posixpath.join(base, path))
        return ResolvedPageLink(target_page=target, fragment=fragment, children=children)


def parse_markdown(
    text: str, *, page_path: str = "", parser: MarkdownIt | None = None
) -> Document:
    """Parse ``text`` into a :class:`~typst_pages.nodes.Document`.

    Parameters
    ----------
    text : str
        Markdown source.
    page_path : str, optional
        Path of the page relative to the source directory; relative links are
        resolved against its directory.
    parser : MarkdownIt, optional
        Pre-built parser to reuse across pages.

    Returns
    -------
    Document
        Immutable page tree.
    """
    md = parser or build_markdown_parser()
    root = SyntaxTreeNode(md.parse(text))
    return _TreeBuilder(page_path).document(root)


__all__ = ["build_markdown_parser", "parse_markdown"]
