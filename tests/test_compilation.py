from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

from typst_pages import compilation
from typst_pages.config import Backend, BuildConfigError, CompilationSettings


def _source(tmp_path: Path) -> Path:
    workdir = tmp_path / "work"
    workdir.mkdir()
    source = workdir / "book.typ"
    source.write_text("= Book\n", encoding="utf-8")
    return source


def test_compile_command_includes_font_options() -> None:
    settings = CompilationSettings(
        backend=Backend.SYSTEM,
        allow_external_fonts=False,
        extra_font_dirs=("fonts", "more"),
    )
    command = compilation.build_compile_command("typst", Path("/w/book.typ"), settings)
    assert command == [
        "typst",
        "compile",
        "--font-path",
        "fonts",
        "--font-path",
        "more",
        "--ignore-system-fonts",
        "book.typ",
    ]


@pytest.mark.parametrize(
    ("backend", "kind"),
    [
        ("bundled", compilation.BundledCompiler),
        ("SYSTEM", compilation.SystemCompiler),
        (" none ", compilation.NoOpCompiler),
    ],
)
def test_get_compiler_selects_backend(backend: str, kind: type) -> None:
    settings = CompilationSettings(backend=backend)  # type: ignore[arg-type]
    assert isinstance(compilation.get_compiler(settings), kind)


def test_unknown_backend_is_rejected() -> None:
    with pytest.raises(BuildConfigError, match="Unknown compile backend 'latex'"):
        CompilationSettings(backend="latex")  # type: ignore[arg-type]


def test_noop_backend_runs_nothing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def fail_run(*_args: object, **_kwargs: object) -> None:
        pytest.fail("no process should be started")

    monkeypatch.setattr(compilation.subprocess, "run", fail_run)
    source = _source(tmp_path)
    settings = CompilationSettings(backend=Backend.NONE, optimize_output=True)
    assert compilation.compile_typ(source, settings) is None
    assert not source.with_suffix(".pdf").exists()


def test_system_compiler_runs_typst_in_source_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls: list[tuple[list[str], dict[str, object]]] = []

    def fake_run(cmd: list[str], **kwargs: object) -> SimpleNamespace:
        calls.append((cmd, kwargs))
        Path(str(kwargs["cwd"]), "book.pdf").write_bytes(b"%PDF-1.7")
        return SimpleNamespace(returncode=0)

    monkeypatch.setattr(compilation.shutil, "which", lambda _name: "/usr/bin/typst")
    monkeypatch.setattr(compilation.subprocess, "run", fake_run)
    source = _source(tmp_path)
    settings = CompilationSettings(backend=Backend.SYSTEM, optimize_output=False)

    artifact = compilation.compile_typ(source, settings)

    assert artifact == source.with_suffix(".pdf")
    assert artifact.read_bytes() == b"%PDF-1.7"
    cmd, kwargs = calls[0]
    assert cmd == ["/usr/bin/typst", "compile", "book.typ"]
    assert kwargs["cwd"] == source.parent
    assert kwargs["check"] is True
    assert (source.parent / "typst-pages.stdout").exists()
    assert (source.parent / "typst-pages.stderr").exists()


def test_system_compiler_uses_configured_executable(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    seen: list[str] = []

    def fake_run(cmd: list[str], **_kwargs: object) -> SimpleNamespace:
        seen.append(cmd[0])
        return SimpleNamespace(returncode=0)

    monkeypatch.setattr(compilation.subprocess, "run", fake_run)
    settings = CompilationSettings(backend=Backend.SYSTEM, typst_path="/opt/typst")
    compilation.get_compiler(settings, verbose=True).compile(_source(tmp_path), settings)
    assert seen == ["/opt/typst"]


def test_missing_typst_preserves_workdir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    kept = tmp_path / "kept"

    def fake_mkdtemp(prefix: str) -> str:
        assert prefix == "typst-pages-failed-"
        kept.mkdir()
        return str(kept)

    monkeypatch.setattr(compilation.shutil, "which", lambda _name: None)
    monkeypatch.setattr(compilation.tempfile, "mkdtemp", fake_mkdtemp)
    source = _source(tmp_path)

    with pytest.raises(compilation.CompilationError, match="typst command not found") as info:
        compilation.compile_typ(source, CompilationSettings(backend=Backend.SYSTEM))

    assert info.value.preserved == kept
    assert (kept / "book.typ").read_text(encoding="utf-8") == "= Book\n"


def test_failed_process_is_wrapped(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(cmd: list[str], **_kwargs: object) -> None:
        raise subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr(compilation.subprocess, "run", fake_run)
    monkeypatch.setattr(compilation.tempfile, "mkdtemp", lambda prefix: str(tmp_path / prefix))
    settings = CompilationSettings(backend=Backend.SYSTEM, typst_path="typst")

    with pytest.raises(compilation.CompilationError, match="system backend failed") as info:
        compilation.compile_typ(_source(tmp_path), settings)

    assert isinstance(info.value.__cause__, subprocess.CalledProcessError)


def test_bundled_compiler_calls_typst_package(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls: list[dict[str, object]] = []

    def fake_compile(source: str, **kwargs: object) -> None:
        calls.append({"source": source, **kwargs})

    monkeypatch.setitem(sys.modules, "typst", SimpleNamespace(compile=fake_compile))
    source = _source(tmp_path)
    settings = CompilationSettings(extra_font_dirs=("fonts",))

    artifact = compilation.BundledCompiler().compile(source, settings)

    assert artifact == source.with_suffix(".pdf")
    assert calls == [
        {
            "source": str(source),
            "output": str(source.with_suffix(".pdf")),
            "root": str(source.parent),
            "font_paths": ["fonts"],
            "ignore_system_fonts": False,
        }
    ]


class FakeCompiler:
    name = "fake"

    def compile(self, source: Path, settings: CompilationSettings) -> Path:  # noqa: ARG002
        pdf = source.with_suffix(".pdf")
        pdf.write_bytes(b"%PDF")
        return pdf


class RecordingPostProcessor:
    def __init__(self) -> None:
        self.optimized: list[Path] = []

    def optimize(self, pdf: Path) -> bool:
        self.optimized.append(pdf)
        return True


@pytest.mark.parametrize("optimize", [True, False])
def test_optimisation_follows_settings(tmp_path: Path, optimize: bool) -> None:
    post = RecordingPostProcessor()
    settings = CompilationSettings(backend=Backend.SYSTEM, optimize_output=optimize)
    artifact = compilation.compile_typ(
        _source(tmp_path),
        settings,
        compiler=FakeCompiler(),
        post_processor=post,  # type: ignore[arg-type]
    )
    assert post.optimized == ([artifact] if optimize else [])


def test_optimisation_is_on_by_default(tmp_path: Path) -> None:
    post = RecordingPostProcessor()
    settings = CompilationSettings(backend=Backend.SYSTEM)
    artifact = compilation.compile_typ(
        _source(tmp_path),
        settings,
        compiler=FakeCompiler(),
        post_processor=post,  # type: ignore[arg-type]
    )
    assert post.optimized == [artifact]


def test_post_processor_shrinks_pdf(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    pdf = tmp_path / "book.pdf"
    pdf.write_bytes(b"x" * 1000)

    def fake_run(cmd: list[str], **_kwargs: object) -> SimpleNamespace:
        assert cmd == ["pdfcpu", "optimize", str(pdf)]
        pdf.write_bytes(b"x" * 400)
        return SimpleNamespace(returncode=0)

    monkeypatch.setattr(compilation.subprocess, "run", fake_run)
    assert compilation.PostProcessor("pdfcpu").optimize(pdf) is True
    assert pdf.stat().st_size == 400


def test_post_processor_failure_keeps_pdf(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    pdf = tmp_path / "book.pdf"
    pdf.write_bytes(b"x" * 10)

    def fake_run(cmd: list[str], **_kwargs: object) -> None:
        raise subprocess.CalledProcessError(2, cmd)

    monkeypatch.setattr(compilation.subprocess, "run", fake_run)
    assert compilation.PostProcessor("pdfcpu").optimize(pdf) is False
    assert pdf.read_bytes() == b"x" * 10


def test_post_processor_without_pdfcpu(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(compilation.shutil, "which", lambda _name: None)
    assert compilation.PostProcessor().optimize(tmp_path / "book.pdf") is False
