"""Load build configuration YAML into typed dataclasses."""

from __future__ import annotations

import os
import typing as typ
from pathlib import Path

from ruamel.yaml import YAML

from typst_pages._constants import VERSION_ENV_VAR

from .helpers import _optional_path, _optional_str, flatten_pages
from .models import BuildConfig, BuildConfigError, CompilationSettings


def load_build_config(path: Path) -> BuildConfig:
    """Load the YAML file describing a Typst documentation build.

    Relative directories in the file are resolved against the directory that
    contains it.

    Parameters
    ----------
    path : Path
        Filesystem path to the configuration file (for example,
        ``typst-pages.yaml``).

    Returns
    -------
    BuildConfig
        Parsed configuration with a flattened page list and validated
        compilation settings.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist at ``path``.
    TypeError
        If the top-level YAML structure is not a mapping.
    BuildConfigError
        If ``sitename`` or ``pages`` is missing, a page entry is malformed, or
        the compile backend is unknown.
    YAMLError
        If the YAML content cannot be parsed by the underlying loader.

    Examples
    --------
    >>> from pathlib import Path
    >>> config = load_build_config(Path("typst-pages.yaml"))  # doctest: +SKIP
    >>> config.compile.backend  # doctest: +SKIP
    <Backend.BUNDLED: 'bundled'>
    """
    if not path.exists():
        msg = f"Configuration file '{path}' not found."
        raise FileNotFoundError(msg)

    loader = YAML(typ="safe")
    loader.version = (1, 2)
    with path.open("r", encoding="utf-8") as handle:
        loaded = loader.load(handle) or {}
    if not isinstance(loaded, dict):
        msg = "Top-level YAML structure must be a mapping."
        raise TypeError(msg)
    raw: dict[str, typ.Any] = dict(loaded)
    root = path.resolve().parent

    sitename = _optional_str(raw.get("sitename"))
    if sitename is None:
        msg = "Configuration is missing 'sitename'."
        raise BuildConfigError(msg)

    pages_raw = raw.get("pages") or []
    if not isinstance(pages_raw, list) or not pages_raw:
        msg = "No pages defined in build configuration."
        raise BuildConfigError(msg)

    version = _optional_str(raw.get("version")) or os.environ.get(VERSION_ENV_VAR, "")
    authors = raw.get("authors") or ""
    if isinstance(authors, list):
        authors = ", ".join(str(author) for author in authors)

    return BuildConfig(
        sitename=sitename,
        pages=flatten_pages(pages_raw),
        source_dir=root / str(raw.get("source_dir", "src")),
        build_dir=root / str(raw.get("build_dir", "build")),
        authors=str(authors),
        version=version,
        compile=CompilationSettings.from_mapping(raw.get("compile"), version=version),
        debug_dir=_optional_path(raw.get("debug_dir"), root),
        source_url=_optional_str(raw.get("source_url")),
        strict_links=bool(raw.get("strict_links", False)),
        project_root=root,
    )


__all__ = ["load_build_config"]
