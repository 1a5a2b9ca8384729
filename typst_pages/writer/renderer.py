"""Render document trees into Typst markup.

:class:`TypstTreeRenderer` maps every kind in :data:`typst_pages.nodes.Node`
to the markup it emits, writing into the buffer of a shared
:class:`~typst_pages.writer.context.Context`. Cross-references go through a
:class:`~typst_pages.writer.labels.LabelResolver` built from the whole run,
so links may point at any page regardless of render order.

Example
-------
>>> from typst_pages.nodes import Document, Paragraph, Text
>>> from typst_pages.writer.context import Context
>>> from typst_pages.writer.labels import LabelResolver
>>> renderer = TypstTreeRenderer(LabelResolver.from_pages([]), Context())
>>> renderer.render_page_body(Document((Paragraph((Text("a_b"),)),)))
>>> renderer.context.getvalue()
'\\na\\\\_b\\n\\n\\n'
"""

from __future__ import annotations

import logging
import posixpath
import re
import typing as typ

from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from typst_pages._constants import DOCUMENT_STRUCTURE
from typst_pages.nodes import (
    STRUCTURAL_NODES,
    Admonition,
    BlockQuote,
    CodeBlock,
    ContentsBlock,
    DisplayMath,
    Document,
    Emph,
    FootnoteDefinition,
    FootnoteReference,
    Heading,
    Image,
    IndexBlock,
    InlineCode,
    InlineMath,
    LineBreak,
    Link,
    List,
    ListItem,
    Node,
    Paragraph,
    RawPassthrough,
    ResolvedPageLink,
    RichContentBlock,
    SoftBreak,
    Strong,
    Table,
    TableCell,
    TableRow,
    Text,
    ThematicBreak,
    heading_label,
)

from .escape import escape_content, escape_string
from .lists import ListRenderer

if typ.TYPE_CHECKING:
    from pathlib import Path

    from .context import Context
    from .labels import LabelResolver

log = logging.getLogger(__name__)

ABSOLUTE_URL_PATTERN = re.compile(r"^[A-Za-z+\-.]+://")
ADMONITION_TYPES = frozenset({"danger", "warning", "note", "info", "tip", "compat"})
RAW_TARGETS = frozenset({"typst", "typ"})
NATIVE_MATH_INFO = "math typst"
REPL_LANGUAGES: dict[str, str] = {
    "pycon": "python",
    "python-repl": "python",
    ">>>": "python",
    "julia-repl": "julia",
    "jlcon": "julia",
    "@repl": "julia",
}
SOURCE_LINK = '#link("{url}")[`source`]'

Handler = typ.Callable[[typ.Any], None]


class UnsupportedNodeError(TypeError):
    """Raised when the renderer meets a node kind it has no handler for."""


def is_absolute_url(destination: str) -> bool:
    """Return ``True`` when ``destination`` carries a URL scheme."""
    return bool(ABSOLUTE_URL_PATTERN.match(destination))


def normalize_language(info: str) -> str:
    """Map a code fence info string onto a language name Typst understands.

    The first word is used and anything after a comma (``rust,no_run``) is
    dropped. REPL dialects map to their base language; other names are
    canonicalised through Pygments when it knows them.
    """
    words = info.strip().split()
    language = words[0].split(",", 1)[0] if words else ""
    if not language or language == "text/plain":
        return "text"
    if language in REPL_LANGUAGES:
        return REPL_LANGUAGES[language]
    try:
        lexer = get_lexer_by_name(language)
    except ClassNotFound:
        return language
    return lexer.aliases[0] if lexer.aliases else language


class TypstTreeRenderer:
    """Emit Typst markup for document trees.

    Parameters
    ----------
    resolver : LabelResolver
        Label lookups for the whole run.
    context : Context
        Mutable traversal state; its buffer receives the output.
    asset_root : Path, optional
        Directory that image paths are checked against. Missing images are
        reported but still emitted.

    Raises
    ------
    UnsupportedNodeError
        If any kind of :data:`~typst_pages.nodes.Node` lacks a handler.
    """

    def __init__(
        self,
        resolver: LabelResolver,
        context: Context,
        *,
        asset_root: Path | None = None,
    ) -> None:
        self.resolver = resolver
        self.context = context
        self.asset_root = asset_root
        self.lists = ListRenderer(self.render, context)
        self._in_docstring = False
        self._handlers = self.handlers()
        missing = [kind.__name__ for kind in typ.get_args(Node) if kind not in self._handlers]
        if missing:
            msg = f"No Typst handler for node kinds: {', '.join(sorted(missing))}"
            raise UnsupportedNodeError(msg)

    def handlers(self) -> dict[type, Handler]:
        """Return the node-kind to handler table."""
        return {
            Document: self._document,
            Heading: self._heading,
            Paragraph: self._paragraph,
            List: self._list,
            ListItem: self._list_item,
            BlockQuote: self._block_quote,
            Admonition: self._admonition,
            CodeBlock: self._code_block,
            InlineCode: self._inline_code,
            Table: self._table,
            TableRow: self._table_row,
            TableCell: self._table_cell,
            Image: self._image,
            DisplayMath: self._display_math,
            InlineMath: self._inline_math,
            Link: self._link,
            ResolvedPageLink: self._page_link,
            FootnoteDefinition: self._footnote_definition,
            FootnoteReference: self._footnote_reference,
            RawPassthrough: self._raw,
            RichContentBlock: self._rich_content,
            IndexBlock: self._index,
            ContentsBlock: self._contents,
            Text: self._text,
            Strong: self._strong,
            Emph: self._emph,
            LineBreak: self._line_break,
            SoftBreak: self._soft_break,
            ThematicBreak: self._thematic_break,
        }

    # -- entry points -----------------------------------------------------

    def render(self, node: Node) -> None:
        """Render one node (and its subtree) into the context buffer."""
        handler = self._handlers.get(type(node))
        if handler is None:
            msg = f"{type(node).__name__} not implemented: {node!r}"
            raise UnsupportedNodeError(msg)
        handler(node)

    def render_children(self, children: typ.Iterable[Node]) -> None:
        for child in children:
            self.render(child)

    def render_toplevel(self, children: typ.Iterable[Node]) -> None:
        """Render page-level blocks separated by blank lines.

        Structural kinds (headings, index, contents, documentation, raw
        markup) are written compactly.
        """
        ctx = self.context
        for child in children:
            spaced = not isinstance(child, STRUCTURAL_NODES)
            if spaced:
                ctx.writeln()
            self.render(child)
            if spaced:
                ctx.writeln()

    def render_page_body(self, tree: Document) -> None:
        self.render_toplevel(tree.children)

    def render_fragment(self, children: typ.Iterable[Node]) -> str:
        """Render ``children`` into a detached string without touching the buffer."""
        ctx = self.context
        saved = ctx.out
        ctx.out = type(saved)()
        try:
            self.render_children(children)
            return ctx.getvalue()
        finally:
            ctx.out = saved

    # -- block nodes ------------------------------------------------------

    def _document(self, node: Document) -> None:
        self.render_toplevel(node.children)

    def _heading(self, node: Heading) -> None:
        ctx = self.context
        level = min(ctx.heading_depth + node.level - 1, len(DOCUMENT_STRUCTURE))
        level = max(level, 1)
        ctx.write(f"#heading(level: {level}, [")
        with ctx.header():
            self.render_children(node.children)
        if self._in_docstring:
            ctx.writeln("])")
            return
        label_id = self.resolver.label_id(ctx.current_page, heading_label(node))
        ctx.writeln(f']) #label("{label_id}")')
        ctx.writeln()

    def _paragraph(self, node: Paragraph) -> None:
        self.render_children(node.children)
        if self.context.in_block:
            self.context.writeln()
        else:
            self.context.writeln("\n")

    def _block_quote(self, node: BlockQuote) -> None:
        ctx = self.context
        ctx.writeln("#quote[")
        with ctx.block():
            self.render_children(node.children)
        ctx.writeln("]")

    def _admonition(self, node: Admonition) -> None:
        ctx = self.context
        kind = node.category if node.category in ADMONITION_TYPES else "default"
        ctx.writeln(f'#admonition(type: "{kind}", title: "{escape_string(node.title)}")[')
        with ctx.block():
            self.render_children(node.children)
        ctx.writeln("]")

    def _list(self, node: List) -> None:
        self.lists.render(node)

    def _list_item(self, node: ListItem) -> None:
        with self.context.block():
            self.render_children(node.children)

    def _code_block(self, node: CodeBlock) -> None:
        ctx = self.context
        if node.lang.strip() == NATIVE_MATH_INFO:
            ctx.writeln()
            ctx.writeln("$")
            ctx.writeln(node.code)
            ctx.writeln("$")
            ctx.writeln()
            return
        language = normalize_language(node.lang)
        ctx.writeln()
        ctx.writeln(
            f'#raw("{escape_string(node.code)}", block: true, lang: "{language}")'
        )

    def _display_math(self, node: DisplayMath) -> None:
        ctx = self.context
        ctx.writeln()
        ctx.writeln(f'#mitex("{escape_string(node.source)}")')
        ctx.writeln()

    def _thematic_break(self, _node: ThematicBreak) -> None:
        self.context.writeln("#line(length: 100%)")

    def _table(self, node: Table) -> None:
        ctx = self.context
        columns = len(node.spec)
        alignments = ",".join(align or "left" for align in node.spec)
        ctx.writeln("#align(center)[")
        ctx.writeln("#table(")
        ctx.writeln("columns: (", "1fr," * columns, "),")
        ctx.writeln(f"align: (x, y) => ({alignments},).at(x),")
        with ctx.block():
            self.render_children(node.rows)
        ctx.writeln(")]")

    def _table_row(self, node: TableRow) -> None:
        self.render_children(node.cells)
        self.context.writeln()

    def _table_cell(self, node: TableCell) -> None:
        ctx = self.context
        ctx.write(" [")
        self.render_children(node.children)
        ctx.write("],")

    def _raw(self, node: RawPassthrough) -> None:
        if node.target_name in RAW_TARGETS:
            self.context.writeln("\n", node.text, "\n")

    def _footnote_definition(self, _node: FootnoteDefinition) -> None:
        # Definitions are rendered at their reference sites.
        return None

    def _rich_content(self, node: RichContentBlock) -> None:
        ctx = self.context
        label_id = self.resolver.label_id(node.page_path or ctx.current_page, node.binding_name)
        ctx.write(
            f'#raw("{escape_string(node.binding_name)}", block: false)',
            f' #label("{label_id}")',
        )
        category = f" -- {node.category}." if node.category else ""
        ctx.writeln(category, "\n")
        ctx.writeln("#grid(columns: (2em, 1fr), [], [")
        previous = self._in_docstring
        self._in_docstring = True
        try:
            for body in node.bodies:
                ctx.writeln()
                self.render_children(body.tree.children)
                ctx.writeln()
                if body.source_url:
                    link = SOURCE_LINK.format(url=escape_string(body.source_url))
                    ctx.writeln("\n", link, "\n")
        finally:
            self._in_docstring = previous
        ctx.writeln("])")

    def _index(self, node: IndexBlock) -> None:
        ctx = self.context
        if not node.entries:
            ctx.writeln()
            return
        ctx.writeln("\n")
        for entry in node.entries:
            label_id = self.resolver.label_id(entry.page_path, entry.label)
            ctx.writeln(
                f'- #link(label("{label_id}"))',
                f'[#raw("{escape_string(entry.binding_name)}", block: false)]',
            )
        ctx.writeln("\n")

    def _contents(self, node: ContentsBlock) -> None:
        ctx = self.context
        if not node.entries:
            ctx.writeln()
            return
        depth = 1
        for entry in node.entries:
            level = entry.level - node.min_depth + 1
            if level < 1:
                continue
            # Skipped levels get empty bullets to hold their place.
            for missing in range(depth + 1, level):
                ctx.writeln("  " * (missing - 1), "-")
            depth = level
            label_id = self.resolver.label_id(entry.page_path, entry.label)
            ctx.write("  " * (level - 1), f'- #link(label("{label_id}"))[')
            self.render_children(entry.children)
            ctx.writeln("]")

    # -- inline nodes -----------------------------------------------------

    def _text(self, node: Text) -> None:
        self.context.write(escape_content(node.text))

    def _strong(self, node: Strong) -> None:
        self.context.write("#strong([")
        self.render_children(node.children)
        self.context.write("])")

    def _emph(self, node: Emph) -> None:
        self.context.write("#emph([")
        self.render_children(node.children)
        self.context.write("])")

    def _inline_code(self, node: InlineCode) -> None:
        self.context.write(f' #raw("{escape_string(node.code)}", block: false) ')

    def _inline_math(self, node: InlineMath) -> None:
        self.context.write(f'#mi("{escape_string(node.source)}")')

    def _line_break(self, _node: LineBreak) -> None:
        self.context.writeln("#linebreak()")

    def _soft_break(self, _node: SoftBreak) -> None:
        self.context.write("#linebreak(weak: true)")

    def _image(self, node: Image) -> None:
        ctx = self.context
        ctx.writeln("#align(center)[")
        ctx.writeln("#figure(")
        ctx.writeln("image(")
        url = self._image_path(node)
        ctx.writeln(f'"{escape_string(url)}", width: 100%, fit: "contain"),')
        ctx.writeln("caption: [")
        with ctx.block():
            self.render_children(node.children)
        ctx.writeln("])]")

    def _image_path(self, node: Image) -> str:
        destination = node.destination.replace("\\", "/")
        if node.is_local:
            return destination
        if is_absolute_url(destination):
            log.warning(
                "images with absolute URLs are not supported in Typst output in %s: %s",
                self.context.current_page,
                destination,
            )
            return destination
        if destination.startswith("/"):
            path = posixpath.normpath(destination.lstrip("/"))
        else:
            page_dir = posixpath.dirname(self.context.current_page.replace("\\", "/"))
            path = posixpath.normpath(posixpath.join(page_dir, destination))
        if self.asset_root is not None and not (self.asset_root / path).is_file():
            log.warning("image %s referenced in %s not found", path, self.context.current_page)
        return path

    def _footnote_reference(self, node: FootnoteReference) -> None:
        ctx = self.context
        definition = ctx.footnote_definitions.get(node.id)
        if definition is None:
            log.warning(
                "footnote definition not found for [^%s] in %s", node.id, ctx.current_page
            )
            ctx.write(f"#footnote[Missing footnote: {escape_content(node.id)}]")
            return
        ctx.write("#footnote[")
        with ctx.block():
            children = definition.children
            if len(children) == 1 and isinstance(children[0], Paragraph):
                self.render_children(children[0].children)
            else:
                self.render_children(children)
        ctx.write("]")

    def _page_link(self, node: ResolvedPageLink) -> None:
        ctx = self.context
        label_id = self.resolver.resolve(node.target_page, node.fragment)
        ctx.write(f'#link(label("{label_id}"))[')
        self.render_children(node.children)
        ctx.write("]")

    def _link(self, node: Link) -> None:
        ctx = self.context
        if ctx.in_header:
            self.render_children(node.children)
            return
        destination = node.destination
        external = is_absolute_url(destination)
        if not external and ".md#" in destination:
            page, fragment = destination.split(".md#", 1)
            label_id = self.resolver.resolve(f"{page}.md", fragment)
            ctx.write(f'#link(label("{label_id}"))')
        elif not external and destination.startswith("#"):
            label_id = self.resolver.resolve(ctx.current_page, destination.lstrip("#"))
            ctx.write(f'#link(label("{label_id}"))')
        else:
            ctx.write(f'#link("{escape_string(destination)}")')
        ctx.write("[")
        self.render_children(node.children)
        ctx.write("]")


__all__ = [
    "ADMONITION_TYPES",
    "TypstTreeRenderer",
    "UnsupportedNodeError",
    "is_absolute_url",
    "normalize_language",
]
