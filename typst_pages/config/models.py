"""Typed dataclasses describing a typst-pages build configuration."""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ
from pathlib import Path


class BuildConfigError(ValueError):
    """Raised when the build configuration is invalid or incomplete."""


class Backend(enum.StrEnum):
    """How the generated Typst source is turned into a PDF."""

    BUNDLED = "bundled"
    SYSTEM = "system"
    NONE = "none"

    @classmethod
    def parse(cls, value: object) -> Backend:
        """Return the backend named by ``value``.

        Raises
        ------
        BuildConfigError
            If ``value`` names no known backend.
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        try:
            return cls(text)
        except ValueError as exc:
            known = ", ".join(member.value for member in cls)
            msg = f"Unknown compile backend '{value}'. Expected one of: {known}"
            raise BuildConfigError(msg) from exc


@dc.dataclass(frozen=True, slots=True)
class CompilationSettings:
    """Compiler choice and options, validated when constructed.

    Attributes
    ----------
    backend : Backend
        Compiler strategy.
    typst_path : str or None
        Explicit ``typst`` executable for the system backend.
    artifact_version : str
        Version string used in the artifact name.
    optimize_output : bool
        Run the PDF optimiser after compiling.
    allow_external_fonts : bool
        Let the compiler discover system fonts.
    extra_font_dirs : tuple[str, ...]
        Additional font directories passed to the compiler.
    """

    backend: Backend = Backend.BUNDLED
    typst_path: str | None = None
    artifact_version: str = ""
    optimize_output: bool = True
    allow_external_fonts: bool = True
    extra_font_dirs: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "backend", Backend.parse(self.backend))

    @classmethod
    def from_mapping(
        cls, payload: typ.Mapping[str, typ.Any] | None, *, version: str = ""
    ) -> CompilationSettings:
        """Build settings from the ``compile`` section of the YAML file."""
        data = payload or {}
        fonts = data.get("font_paths") or []
        if isinstance(fonts, str):
            fonts = [fonts]
        typst_path = data.get("typst")
        return cls(
            backend=Backend.parse(data.get("backend", Backend.BUNDLED)),
            typst_path=str(typst_path) if typst_path else None,
            artifact_version=version,
            optimize_output=bool(data.get("optimize_output", True)),
            allow_external_fonts=bool(data.get("use_system_fonts", True)),
            extra_font_dirs=tuple(str(font) for font in fonts),
        )


@dc.dataclass(frozen=True, slots=True)
class PageEntry:
    """One flattened entry of the page list.

    ``path`` is empty for a section title without a body; ``depth`` starts
    at 1 for top-level entries.
    """

    title: str
    path: str
    depth: int = 1


@dc.dataclass(slots=True)
class BuildConfig:
    """A fully resolved build definition sourced from YAML config.

    ``project_root`` is the directory holding the configuration file; relative
    paths given outside the file, such as ``TYPST_PAGES_DEBUG``, resolve
    against it.
    """

    sitename: str
    pages: list[PageEntry]
    source_dir: Path = Path("src")
    build_dir: Path = Path("build")
    authors: str = ""
    version: str = ""
    compile: CompilationSettings = dc.field(default_factory=CompilationSettings)
    debug_dir: Path | None = None
    source_url: str | None = None
    strict_links: bool = False
    project_root: Path = dc.field(default_factory=Path)


__all__ = [
    "Backend",
    "BuildConfig",
    "BuildConfigError",
    "CompilationSettings",
    "PageEntry",
]
