"""Shared pytest fixtures for transbuild tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from transbuild.core.compiler import CompilerOptions, DiagnosticSink, SourceRecord
from transbuild.core.diagnostics import Diagnostic
from transbuild.core.errors import MissingRuntimeError
from transbuild.core.markers import AnnotationStore
from transbuild.core.workspace import Project

DEFAULT_MANIFEST = """
[project]
name = "demo"
source_path = ["src"]

[compiler]
command = ["fake-transpiler"]
"""


# =============================================================================
# Fake compiler
# =============================================================================


class FakeCompiler:
    """Writes one .ts/.js pair per source and reports scripted diagnostics."""

    def __init__(self, factory: FakeCompilerFactory, options: CompilerOptions) -> None:
        self.factory = factory
        self.options = options
        self.watch_mode = False
        self.watch_resets = 0
        self._watched: dict[Path, SourceRecord] = {}

    def compile(self, files: list[Path], sink: DiagnosticSink) -> None:
        self.factory.batches.append(list(files))
        if self.factory.fail_with is not None:
            raise self.factory.fail_with

        records = []
        for file in files:
            record = self.options.source_record(file)
            for output in record.outputs:
                output.parent.mkdir(parents=True, exist_ok=True)
                output.write_text(f"// generated from {file.name}\n")
            records.append(record)
            for diagnostic in self.factory.diagnostics.get(file.name, []):
                sink.report(diagnostic)
        if self.watch_mode:
            self._watched.update({r.source_file: r for r in records})
        sink.on_completed(records)

    def set_watch_mode(self, enabled: bool) -> None:
        self.watch_mode = enabled

    def reset_watch_mode(self) -> None:
        self.watch_resets += 1

    def get_watched_file(self, file: Path) -> SourceRecord | None:
        return self._watched.get(file)


class FakeCompilerFactory:
    """
    Records every compiler it creates and every batch they compile.

    Attributes:
        missing_runtime: Make ``create`` fail as if the transpiler were absent
        fail_with: Exception raised by every ``compile`` call
        diagnostics: Source file name -> diagnostics reported when it compiles
    """

    def __init__(self) -> None:
        self.created: list[FakeCompiler] = []
        self.batches: list[list[Path]] = []
        self.missing_runtime = False
        self.fail_with: Exception | None = None
        self.diagnostics: dict[str, list[Diagnostic]] = {}

    def create(self, options: CompilerOptions) -> FakeCompiler:
        if self.missing_runtime:
            raise MissingRuntimeError("transpiler executable not found: fake-transpiler")
        compiler = FakeCompiler(self, options)
        self.created.append(compiler)
        return compiler

    @property
    def compiled(self) -> list[Path]:
        """Every file compiled so far, in order."""
        return [f for batch in self.batches for f in batch]


# =============================================================================
# Fixtures
# =============================================================================


def _write_source(root: Path, relative: str, content: str = "") -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content or f"class {path.stem} {{}}\n")
    return path.resolve()


@pytest.fixture
def write_source() -> Callable[[Path, str, str], Path]:
    """Create a source file below a root and return its resolved path."""
    return _write_source


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[..., Project]:
    """Factory creating a project from manifest text in a fresh directory."""

    def _make(manifest: str = DEFAULT_MANIFEST, name: str = "project") -> Project:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        (root / "transbuild.toml").write_text(manifest)
        return Project.load(root)

    return _make


@pytest.fixture
def project(make_project: Callable[..., Project]) -> Project:
    """A project with the default manifest and an existing src/ folder."""
    p = make_project()
    (p.root / "src").mkdir()
    return p


@pytest.fixture
def annotations() -> AnnotationStore:
    return AnnotationStore()


@pytest.fixture
def factory() -> FakeCompilerFactory:
    return FakeCompilerFactory()
