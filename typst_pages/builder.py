"""Run a complete Typst documentation build.

:class:`TypstBuilder` ties the pieces together for one configuration:

1. copy the source directory into a scoped temporary working directory;
2. load the page list (Markdown parsed, ``.typ`` kept raw, empty paths as
   section titles) and expand documentation, contents, and index fences;
3. write the assembled ``.typ`` document and preprocess the raw pages in
   place;
4. compile it, optionally optimise the PDF, and publish the result into the
   build directory.

Examples
--------
>>> from pathlib import Path
>>> from typst_pages.config import load_build_config
>>> config = load_build_config(Path("docs/typst-pages.yaml"))  # doctest: +SKIP
>>> TypstBuilder(config).run().artifact  # doctest: +SKIP
PosixPath('docs/build/MyProject-1.2.0.pdf')
"""

from __future__ import annotations

import dataclasses as dc
import importlib.resources
import logging
import os
import shutil
import tempfile
import time
import typing as typ
from pathlib import Path

from ._constants import CUSTOM_STYLE_PATH, DEBUG_ENV_VAR, STYLE_ASSET
from .blocks import expand_docs, expand_listings
from .collaborators import PythonDocLookup, SandboxEvaluator
from .compilation import PostProcessor, compile_typ, get_compiler
from .config import Backend, artifact_prefix
from .markdown_parser import build_markdown_parser, parse_markdown
from .writer import (
    Context,
    DirectivePreprocessor,
    LabelResolver,
    Page,
    TypstDocumentWriter,
    TypstTreeRenderer,
    default_preamble_template,
    render_preamble,
)

if typ.TYPE_CHECKING:
    from .collaborators import DocumentationLookup, Evaluator
    from .compilation import Compiler
    from .config import BuildConfig

log = logging.getLogger(__name__)


@dc.dataclass(frozen=True, slots=True)
class BuildResult:
    """Files published by a build.

    Attributes
    ----------
    source : Path or None
        Published ``.typ`` document; only kept for the ``none`` backend.
    artifact : Path or None
        Published PDF; ``None`` for the ``none`` backend.
    processed : tuple[str, ...]
        Raw pages expanded by the directive preprocessor, relative to the
        source directory.
    """

    source: Path | None
    artifact: Path | None
    processed: tuple[str, ...] = ()


class TypstBuilder:
    """Build one configured document.

    Parameters
    ----------
    config : BuildConfig
        Loaded build configuration.
    template : str, optional
        Jinja2 preamble template; the packaged one is used when omitted.
    lookup : DocumentationLookup, optional
        Documentation source for ``@docs`` fences and ``@typst-docs``
        directives. Defaults to :class:`PythonDocLookup`.
    evaluator : Evaluator, optional
        Runs ``@typst-example`` blocks. Defaults to :class:`SandboxEvaluator`.
    compiler : Compiler, optional
        Override the compiler selected by ``config.compile``.
    post_processor : PostProcessor, optional
        Override the PDF optimiser.
    verbose : bool, optional
        Let external tools write to the terminal.
    """

    def __init__(
        self,
        config: BuildConfig,
        *,
        template: str | None = None,
        lookup: DocumentationLookup | None = None,
        evaluator: Evaluator | None = None,
        compiler: Compiler | None = None,
        post_processor: PostProcessor | None = None,
        verbose: bool = False,
    ) -> None:
        self.config = config
        self.template = template if template is not None else default_preamble_template()
        self.lookup = lookup or PythonDocLookup(source_url=config.source_url)
        self.evaluator = evaluator or SandboxEvaluator()
        self.compiler = compiler or get_compiler(config.compile, verbose=verbose)
        self.post_processor = post_processor or PostProcessor(verbose=verbose)

    @property
    def stem(self) -> str:
        return artifact_prefix(self.config.sitename, self.config.version)

    def run(self) -> BuildResult:
        """Build the document and publish it into ``config.build_dir``.

        Raises
        ------
        FileNotFoundError
            If the source directory or a listed Markdown page is missing.
        RawPageNotFoundError
            If a listed ``.typ`` page is missing.
        CompilationError
            If the compiler fails.
        """
        source_dir = self.config.source_dir
        if not source_dir.is_dir():
            msg = f"Source directory '{source_dir}' not found."
            raise FileNotFoundError(msg)
        with tempfile.TemporaryDirectory(prefix="typst-pages-") as tmp:
            workdir = Path(tmp) / "build"
            shutil.copytree(source_dir, workdir)
            log.info("converting %d pages to Typst", len(self.config.pages))
            started = time.perf_counter()
            pages = self.load_pages(workdir)
            source, renderer = self.write_source(pages, workdir)
            processed = self.preprocess_raw_pages(pages, workdir, renderer)
            self._copy_style(workdir)
            log.info("Typst conversion completed in %.2fs", time.perf_counter() - started)
            try:
                artifact = compile_typ(
                    source,
                    self.config.compile,
                    compiler=self.compiler,
                    post_processor=self.post_processor,
                )
            finally:
                self._debug_copy(workdir)
            return self._publish(workdir, source, artifact, processed)

    def load_pages(self, root: Path) -> list[Page]:
        """Read every page of the page list below ``root``."""
        parser = build_markdown_parser()
        pages: list[Page] = []
        for entry in self.config.pages:
            page = Page(path=entry.path, title=entry.title, nesting_depth=entry.depth)
            if page.path and not page.is_raw:
                path = root / entry.path
                if not path.is_file():
                    msg = f"Page '{entry.path}' not found in '{self.config.source_dir}'."
                    raise FileNotFoundError(msg)
                tree = parse_markdown(
                    path.read_text(encoding="utf-8"), page_path=entry.path, parser=parser
                )
                page = dc.replace(page, tree=expand_docs(tree, entry.path, self.lookup))
            pages.append(page)
        return [
            dc.replace(page, tree=expand_listings(page.tree, pages))
            if page.tree is not None
            else page
            for page in pages
        ]

    def write_source(self, pages: list[Page], root: Path) -> tuple[Path, TypstTreeRenderer]:
        """Write the assembled document into ``root`` and return its path."""
        config = self.config
        resolver = LabelResolver.from_pages(pages, strict=config.strict_links)
        renderer = TypstTreeRenderer(resolver, Context(), asset_root=root)
        custom = root / CUSTOM_STYLE_PATH
        preamble = render_preamble(
            self.template,
            sitename=config.sitename,
            version=config.version,
            authors=config.authors,
            custom_style=custom.read_text(encoding="utf-8") if custom.is_file() else None,
        )
        text = TypstDocumentWriter(renderer, source_root=root).write(pages, preamble)
        source = root / f"{self.stem}.typ"
        source.write_text(text, encoding="utf-8")
        return source, renderer

    def preprocess_raw_pages(
        self, pages: list[Page], root: Path, renderer: TypstTreeRenderer
    ) -> tuple[str, ...]:
        """Expand directives of every raw page in place."""
        preprocessor = DirectivePreprocessor(
            renderer, lookup=self.lookup, evaluator=self.evaluator
        )
        processed: list[str] = []
        for page in pages:
            if not page.is_raw:
                continue
            path = root / page.path
            preprocessor.process_file(path, path, page.path)
            processed.append(page.path)
        return tuple(processed)

    @staticmethod
    def _copy_style(root: Path) -> None:
        asset = importlib.resources.files("typst_pages") / "assets" / STYLE_ASSET
        (root / STYLE_ASSET).write_text(asset.read_text(encoding="utf-8"), encoding="utf-8")

    def _debug_copy(self, workdir: Path) -> None:
        destination = self.config.debug_dir
        if destination is None and DEBUG_ENV_VAR in os.environ:
            value = os.environ[DEBUG_ENV_VAR]
            destination = (
                self.config.project_root / value
                if value
                else Path(tempfile.mkdtemp(prefix="typst-pages-"))
            )
        if destination is None:
            return
        shutil.copytree(workdir, destination, dirs_exist_ok=True)
        log.info("Typst sources copied for debugging to %s", destination)

    def _publish(
        self,
        workdir: Path,
        source: Path,
        artifact: Path | None,
        processed: tuple[str, ...],
    ) -> BuildResult:
        build_dir = self.config.build_dir
        build_dir.mkdir(parents=True, exist_ok=True)
        if self.config.compile.backend is Backend.NONE or artifact is None:
            shutil.copytree(workdir, build_dir, dirs_exist_ok=True)
            return BuildResult(source=build_dir / source.name, artifact=None, processed=processed)
        published = build_dir / artifact.name
        shutil.copy2(artifact, published)
        return BuildResult(source=None, artifact=published, processed=processed)


__all__ = ["BuildResult", "TypstBuilder"]
