"""Pre-pass gathering footnote definitions before a page is rendered.

Footnote references may precede their definitions, so the whole page tree is
scanned first. Rich content blocks keep their documentation trees outside
``children``; those embedded trees are scanned as well.
"""

from __future__ import annotations

import typing as typ

from typst_pages.nodes import FootnoteDefinition, RichContentBlock, children_of

if typ.TYPE_CHECKING:
    from typst_pages.nodes import Node


def collect_footnotes(
    tree: Node, definitions: dict[str, FootnoteDefinition] | None = None
) -> dict[str, FootnoteDefinition]:
    """Return footnote definitions found anywhere below ``tree``, keyed by id.

    Parameters
    ----------
    tree : Node
        Page root (or any subtree) to scan.
    definitions : dict[str, FootnoteDefinition], optional
        Table to fill in place; a new one is created when omitted.

    Returns
    -------
    dict[str, FootnoteDefinition]
        The filled table. A later definition with the same id replaces an
        earlier one.
    """
    found = {} if definitions is None else definitions
    stack: list[Node] = [tree]
    while stack:
        node = stack.pop()
        if isinstance(node, FootnoteDefinition):
            found[node.id] = node
        if isinstance(node, RichContentBlock):
            stack.extend(reversed(node.embedded_trees))
        stack.extend(reversed(children_of(node)))
    return found


__all__ = ["collect_footnotes"]
