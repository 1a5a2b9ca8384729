"""Load and validate the YAML configuration of a typst-pages build.

This subpackage parses the project's ``typst-pages.yaml`` file, flattens the
nested page list, validates the compilation backend, and produces typed
dataclasses (:class:`BuildConfig`, :class:`CompilationSettings`,
:class:`PageEntry`) that the builder consumes. The primary entry point is
:func:`load_build_config`.

Examples
--------
>>> from pathlib import Path
>>> from typst_pages.config import load_build_config
>>> config = load_build_config(Path("docs/typst-pages.yaml"))  # doctest: +SKIP
>>> config.pages[0].path  # doctest: +SKIP
'index.md'
"""

from .helpers import artifact_prefix, flatten_pages
from .loader import load_build_config
from .models import Backend, BuildConfig, BuildConfigError, CompilationSettings, PageEntry

__all__ = [
    "Backend",
    "BuildConfig",
    "BuildConfigError",
    "CompilationSettings",
    "PageEntry",
    "artifact_prefix",
    "flatten_pages",
    "load_build_config",
]
