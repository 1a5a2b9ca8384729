"""Character escaping for generated Typst markup.

Two independent tables are used depending on where text lands:

* :func:`escape_content` for free-running prose, where every markup-significant
  character gets a backslash prefix.
* :func:`escape_string` for payloads placed inside ``"..."`` string arguments
  of generated calls such as ``#raw("...")`` or ``#label("...")``. Only the
  backslash and the double quote are escaped there.

Example
-------
>>> escape_content("a_b #c")
'a\\\\_b \\\\#c'
>>> escape_string('say "hi"')
'say \\\\"hi\\\\"'
"""

from __future__ import annotations

CONTENT_SPECIAL_CHARS = "@#*_\\$/`<>"

_CONTENT_TABLE = {ord(ch): f"\\{ch}" for ch in CONTENT_SPECIAL_CHARS}


def escape_content(text: str) -> str:
    """Escape ``text`` for use as Typst markup content."""
    return text.translate(_CONTENT_TABLE)


def escape_string(text: str) -> str:
    """Escape ``text`` for use inside a Typst string literal.

    The backslash is replaced before the quote so the backslash inserted in
    front of a quote is not escaped a second time.
    """
    return text.replace("\\", "\\\\").replace('"', '\\"')


__all__ = ["CONTENT_SPECIAL_CHARS", "escape_content", "escape_string"]
