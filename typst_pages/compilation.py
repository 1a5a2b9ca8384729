"""Turn generated Typst source into a PDF.

Three interchangeable compilers implement :class:`Compiler`:

* :class:`BundledCompiler` calls the ``typst`` Python package in-process.
* :class:`SystemCompiler` runs a ``typst`` executable found on ``PATH`` (or
  configured explicitly).
* :class:`NoOpCompiler` leaves the source untouched and produces nothing.

:func:`get_compiler` picks one from :class:`CompilationSettings`;
:func:`compile_typ` runs it, preserves the working directory when it fails,
and hands the PDF to :class:`PostProcessor` when optimisation is enabled.

Examples
--------
>>> from typst_pages.config import Backend, CompilationSettings
>>> settings = CompilationSettings(backend=Backend.SYSTEM, extra_font_dirs=("fonts",))
>>> build_compile_command("typst", Path("book.typ"), settings)
['typst', 'compile', '--font-path', 'fonts', 'book.typ']
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
import time
import typing as typ
from pathlib import Path

from ._constants import COMPILER_STDERR, COMPILER_STDOUT
from .config import Backend

if typ.TYPE_CHECKING:
    from .config import CompilationSettings

log = logging.getLogger(__name__)

PDF_SUFFIX = ".pdf"
_MEGABYTE = 1024 * 1024


class CompilationError(RuntimeError):
    """Raised when the Typst compiler fails; the working directory is preserved."""

    def __init__(self, message: str, preserved: Path | None = None) -> None:
        super().__init__(message)
        self.preserved = preserved


class Compiler(typ.Protocol):
    """Compile ``source`` and return the produced artifact, if any."""

    name: str

    def compile(self, source: Path, settings: CompilationSettings) -> Path | None: ...


def build_compile_command(
    executable: str, source: Path, settings: CompilationSettings
) -> list[str]:
    """Return the ``typst compile`` argument vector for ``source``."""
    command = [executable, "compile"]
    for font_dir in settings.extra_font_dirs:
        command += ["--font-path", font_dir]
    if not settings.allow_external_fonts:
        command.append("--ignore-system-fonts")
    command.append(source.name)
    return command


class BundledCompiler:
    """Compile with the ``typst`` package, without an external executable."""

    name = "bundled"

    def compile(self, source: Path, settings: CompilationSettings) -> Path:
        import typst

        output = source.with_suffix(PDF_SUFFIX)
        log.info("compiling Typst to PDF (bundled)")
        started = time.perf_counter()
        typst.compile(
            str(source),
            output=str(output),
            root=str(source.parent),
            font_paths=list(settings.extra_font_dirs),
            ignore_system_fonts=not settings.allow_external_fonts,
        )
        log.info("Typst compilation completed in %.2fs", time.perf_counter() - started)
        return output


class SystemCompiler:
    """Compile by running a ``typst`` executable in the source directory.

    Compiler output goes to ``typst-pages.stdout``/``typst-pages.stderr``
    beside the source unless ``verbose`` is set, so it survives in the
    preserved directory after a failure.
    """

    name = "system"

    def __init__(self, executable: str | None = None, *, verbose: bool = False) -> None:
        self.executable = executable
        self.verbose = verbose

    def compile(self, source: Path, settings: CompilationSettings) -> Path:
        executable = self.executable or shutil.which("typst")
        if not executable:
            msg = "typst command not found"
            raise CompilationError(msg)
        command = build_compile_command(executable, source, settings)
        log.info("compiling Typst to PDF (system)")
        log.debug("running %s", " ".join(command))
        started = time.perf_counter()
        if self.verbose:
            subprocess.run(command, check=True, cwd=source.parent)  # noqa: S603
        else:
            workdir = source.parent
            with (
                (workdir / COMPILER_STDOUT).open("w", encoding="utf-8") as stdout,
                (workdir / COMPILER_STDERR).open("w", encoding="utf-8") as stderr,
            ):
                subprocess.run(  # noqa: S603
                    command, check=True, cwd=workdir, stdout=stdout, stderr=stderr, text=True
                )
        log.info("Typst compilation completed in %.2fs", time.perf_counter() - started)
        return source.with_suffix(PDF_SUFFIX)


class NoOpCompiler:
    """Skip compilation; only the Typst source is kept."""

    name = "none"

    def compile(self, source: Path, settings: CompilationSettings) -> None:  # noqa: ARG002
        log.info("skipping compilation (backend=none) for %s", source.name)


def get_compiler(settings: CompilationSettings, *, verbose: bool = False) -> Compiler:
    """Return the compiler selected by ``settings.backend``."""
    match settings.backend:
        case Backend.BUNDLED:
            return BundledCompiler()
        case Backend.SYSTEM:
            return SystemCompiler(settings.typst_path, verbose=verbose)
        case Backend.NONE:
            return NoOpCompiler()
    msg = f"Unhandled backend {settings.backend!r}"  # pragma: no cover - enum is closed
    raise AssertionError(msg)


class PostProcessor:
    """Shrink a compiled PDF in place with ``pdfcpu optimize``.

    Failures are logged and reported as ``False``; the unoptimised file is
    left where it was.
    """

    def __init__(self, executable: str | None = None, *, verbose: bool = False) -> None:
        self.executable = executable
        self.verbose = verbose

    def optimize(self, pdf: Path) -> bool:
        executable = self.executable or shutil.which("pdfcpu")
        if not executable:
            log.warning("PDF optimisation skipped: pdfcpu not found")
            return False
        try:
            size_before = pdf.stat().st_size
            log.info("optimizing PDF with pdfcpu (%.2f MB)", size_before / _MEGABYTE)
            started = time.perf_counter()
            subprocess.run(  # noqa: S603
                [executable, "optimize", str(pdf)],
                check=True,
                capture_output=not self.verbose,
            )
            size_after = pdf.stat().st_size
        except (OSError, subprocess.CalledProcessError) as exc:
            log.warning("PDF optimization failed, using unoptimized version: %s", exc)
            return False
        reduction = (1 - size_after / size_before) * 100 if size_before else 0.0
        log.info(
            "PDF optimization completed: %.2f MB, %.1f%% smaller in %.2fs",
            size_after / _MEGABYTE,
            reduction,
            time.perf_counter() - started,
        )
        return True


def preserve_workdir(workdir: Path) -> Path:
    """Copy ``workdir`` to a new temporary directory that is not cleaned up."""
    destination = Path(tempfile.mkdtemp(prefix="typst-pages-failed-"))
    shutil.copytree(workdir, destination, dirs_exist_ok=True)
    return destination


def compile_typ(
    source: Path,
    settings: CompilationSettings,
    *,
    compiler: Compiler | None = None,
    post_processor: PostProcessor | None = None,
) -> Path | None:
    """Compile ``source`` and optionally optimise the produced PDF.

    Parameters
    ----------
    source : Path
        Generated ``.typ`` file; its directory is the compiler's root.
    settings : CompilationSettings
        Backend and compiler options.
    compiler : Compiler, optional
        Override the compiler chosen from ``settings``.
    post_processor : PostProcessor, optional
        Override the default ``pdfcpu`` optimiser.

    Returns
    -------
    Path or None
        The PDF, or ``None`` for the no-op backend.

    Raises
    ------
    CompilationError
        If the compiler fails. The working directory is copied to a
        temporary location first; the path is on ``preserved``.
    """
    active = compiler or get_compiler(settings)
    try:
        artifact = active.compile(source, settings)
    except Exception as exc:
        preserved = preserve_workdir(source.parent)
        log.error(
            "compilation failed; logs and partial output can be found in %s", preserved
        )
        msg = f"Compiling {source.name} with the {active.name} backend failed: {exc}"
        raise CompilationError(msg, preserved=preserved) from exc
    if (
        artifact is not None
        and settings.optimize_output
        and settings.backend is not Backend.NONE
        and artifact.is_file()
    ):
        (post_processor or PostProcessor()).optimize(artifact)
    return artifact


__all__ = [
    "BundledCompiler",
    "CompilationError",
    "Compiler",
    "NoOpCompiler",
    "PostProcessor",
    "SystemCompiler",
    "build_compile_command",
    "compile_typ",
    "get_compiler",
    "preserve_workdir",
]
