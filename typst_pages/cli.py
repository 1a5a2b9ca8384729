"""Cyclopts CLI entrypoint for building Typst documentation.

The ``typst-pages`` console script renders the pages listed in a YAML build
configuration into one Typst document and compiles it to PDF. The
``preprocess`` command expands the comment directives of a single raw
``.typ`` file, which is handy while writing one.

Examples
--------
Build with the default configuration file:

>>> from typst_pages.cli import main
>>> main()  # doctest: +SKIP

Only emit the Typst source into a custom directory:

>>> from typst_pages.cli import app
>>> app.run(
...     ["build", "--backend", "none", "--output-dir", "dist"]
... )  # doctest: +SKIP
"""

from __future__ import annotations

import dataclasses as dc
import logging
import typing as typ
from pathlib import Path

import cyclopts
from cyclopts import App, Parameter

from .builder import TypstBuilder
from .collaborators import PythonDocLookup, SandboxEvaluator
from .config import Backend, load_build_config
from .writer import Context, DirectivePreprocessor, LabelResolver, TypstTreeRenderer

DEFAULT_CONFIG = Path("typst-pages.yaml")
LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

app = App(name="typst-pages", config=cyclopts.config.Env("TYPST_PAGES_", command=False))  # type: ignore[unknown-argument]


def _format_path(path: Path) -> str:
    """Return a cwd-relative path when possible, otherwise the absolute path."""
    if path.is_absolute():
        try:
            return str(path.relative_to(Path.cwd()))
        except ValueError:  # pragma: no cover - fallback for different roots
            return str(path)
    return str(path)


def _configure_logging(*, verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


@app.command(help="Render the configured pages to Typst and compile them.")
def build(
    *,
    config: typ.Annotated[
        Path, Parameter(help="Path to the build config", env_var="TYPST_PAGES_CONFIG")
    ] = DEFAULT_CONFIG,
    backend: typ.Annotated[
        str | None,
        Parameter(help="Override the compile backend (bundled, system, none)"),
    ] = None,
    output_dir: typ.Annotated[
        Path | None,
        Parameter(help="Override the build directory", env_var="TYPST_PAGES_OUTPUT_DIR"),
    ] = None,
    verbose: typ.Annotated[bool, Parameter(help="Enable debug logging")] = False,
) -> None:
    """Build the document described by ``config``.

    Parameters
    ----------
    config : Path, optional
        Path to the ``typst-pages.yaml`` configuration file (overridable via
        ``TYPST_PAGES_CONFIG``).
    backend : str or None, optional
        Compile backend overriding the configured one.
    output_dir : Path or None, optional
        Directory receiving the PDF (or the Typst sources for ``none``).
    verbose : bool, optional
        Log at debug level and let the compiler print to the terminal.

    Raises
    ------
    BuildConfigError
        If the configuration or the ``backend`` override is invalid.
    CompilationError
        If the Typst compiler fails.
    """
    _configure_logging(verbose=verbose)
    build_config = load_build_config(config)
    if backend is not None:
        settings = dc.replace(build_config.compile, backend=Backend.parse(backend))
        build_config = dc.replace(build_config, compile=settings)
    if output_dir is not None:
        build_config = dc.replace(build_config, build_dir=output_dir)
    result = TypstBuilder(build_config, verbose=verbose).run()
    for path in (result.artifact, result.source):
        if path is not None:
            print(f"wrote {_format_path(path)}")


@app.command(help="Expand @typst directives in one raw Typst file.")
def preprocess(
    source: typ.Annotated[Path, Parameter(help="Raw .typ file to expand")],
    *,
    output: typ.Annotated[
        Path | None, Parameter(help="Write here instead of standard output")
    ] = None,
    verbose: typ.Annotated[bool, Parameter(help="Enable debug logging")] = False,
) -> None:
    """Run the directive preprocessor on ``source``."""
    _configure_logging(verbose=verbose)
    renderer = TypstTreeRenderer(LabelResolver.from_pages([]), Context())
    preprocessor = DirectivePreprocessor(
        renderer, lookup=PythonDocLookup(), evaluator=SandboxEvaluator()
    )
    if output is None:
        print(preprocessor.process(source.read_text(encoding="utf-8"), source.name), end="")
        return
    preprocessor.process_file(source, output, source.name)
    print(f"wrote {_format_path(output)}")


def main() -> None:
    """Invoke the Cyclopts application that powers the `typst-pages` command."""
    app()


if __name__ == "__main__":  # pragma: no cover - manual invocation helper
    main()
