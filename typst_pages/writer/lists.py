"""Nested list rendering for the Typst writer."""

from __future__ import annotations

import typing as typ

from typst_pages.nodes import List

if typ.TYPE_CHECKING:
    from typst_pages.nodes import Node

    from .context import Context

ORDERED_MARKER = "+"
BULLET_MARKER = "-"
INDENT_UNIT = "  "


class ListRenderer:
    """Render ordered and bullet lists of any depth.

    Item bodies are rendered in block context so a paragraph inside an item
    ends with a single newline. A list nested inside an item is rendered one
    indentation unit deeper before the item's remaining children continue.
    """

    def __init__(self, render: typ.Callable[[Node], None], context: Context) -> None:
        self._render = render
        self._ctx = context

    def render(self, node: List, depth: int = 0) -> None:
        ctx = self._ctx
        marker = ORDERED_MARKER if node.ordered else BULLET_MARKER
        indent = INDENT_UNIT * depth
        if depth == 0:
            ctx.writeln()
        for item in node.items:
            ctx.write(indent, marker, " ")
            with ctx.block():
                for position, child in enumerate(item.children):
                    if isinstance(child, List):
                        ctx.writeln()
                        self.render(child, depth + 1)
                        continue
                    if position > 0:
                        ctx.write(indent, INDENT_UNIT)
                    self._render(child)
            if not item.children:
                ctx.writeln()
        ctx.writeln()


__all__ = ["BULLET_MARKER", "INDENT_UNIT", "ORDERED_MARKER", "ListRenderer"]
