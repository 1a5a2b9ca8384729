"""Render document trees and raw pages into one Typst source file."""

from .context import Context
from .document import (
    RawPageNotFoundError,
    TypstDocumentWriter,
    default_preamble_template,
    render_document,
    render_preamble,
)
from .escape import escape_content, escape_string
from .footnotes import collect_footnotes
from .labels import LabelResolver, RenderState, UnresolvedReferenceError, build_render_state
from .lists import ListRenderer
from .models import Anchor, Page
from .preprocessor import DirectivePreprocessor
from .renderer import TypstTreeRenderer, UnsupportedNodeError

__all__ = [
    "Anchor",
    "Context",
    "DirectivePreprocessor",
    "LabelResolver",
    "ListRenderer",
    "Page",
    "RawPageNotFoundError",
    "RenderState",
    "TypstDocumentWriter",
    "TypstTreeRenderer",
    "UnresolvedReferenceError",
    "UnsupportedNodeError",
    "build_render_state",
    "collect_footnotes",
    "default_preamble_template",
    "escape_content",
    "escape_string",
    "render_document",
    "render_preamble",
]
