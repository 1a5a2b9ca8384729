"""Render documentation pages into Typst and compile them to PDF.

This package exposes the CLI entry points used by the ``typst-pages``
console script together with the builder they drive.

Exports
-------
- ``app``: Cyclopts application entry for subcommands.
- ``main``: Convenience function that invokes the Cyclopts app.
- ``TypstBuilder``: Programmatic access to a full build.

Examples
--------
>>> from typst_pages import main
>>> main()  # doctest: +SKIP
>>> from typst_pages import app
>>> app.name[0]
'typst-pages'
"""

from __future__ import annotations

from .builder import BuildResult, TypstBuilder
from .cli import app, main

__all__ = ["BuildResult", "TypstBuilder", "app", "main"]
