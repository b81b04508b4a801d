"""Tests for CLI commands."""

import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

from transbuild.cli import app
from transbuild.core.state import get_state_file_path

FAKE_TRANSPILER = """
import sys
from pathlib import Path

out = Path(sys.argv[1])
for name in sys.argv[2:]:
    src = Path(name)
    out.mkdir(parents=True, exist_ok=True)
    (out / (src.stem + ".ts")).write_text("// " + src.name)
    if "BROKEN" in src.read_text():
        print(f"{src}:1:1: error: cannot transpile {src.name}")
"""


@pytest.fixture
def cli_runner():
    """Return a CLI test runner."""
    return CliRunner()


def _write_project(root: Path, command: str) -> Path:
    (root / "src" / "pkg").mkdir(parents=True)
    (root / "src" / "pkg" / "A.java").write_text("package pkg;\nclass A {}\n")
    manifest = root / "transbuild.toml"
    manifest.write_text(
        f"""
[project]
name = "demo"
source_path = ["src"]

[compiler]
command = {command}
"""
    )
    return manifest


@pytest.fixture
def test_project(tmp_path: Path) -> Path:
    """Create a project whose transpiler is a small Python script."""
    script = tmp_path / "fake_transpiler.py"
    script.write_text(FAKE_TRANSPILER)
    root = tmp_path / "demo"
    root.mkdir()
    _write_project(root, f"['{sys.executable}', '{script}', '{{ts_output_dir}}', '{{files}}']")
    return root


def _invoke(cli_runner: CliRunner, project: Path, *args: str):
    command, *rest = args
    return cli_runner.invoke(app, [command, "--manifest", str(project / "transbuild.toml"), *rest])


@pytest.mark.slow
def test_first_build_is_full_and_saves_state(cli_runner: CliRunner, test_project: Path) -> None:
    result = _invoke(cli_runner, test_project, "build")

    assert result.exit_code == 0, result.output
    assert "[default] full build: 1 file(s), 0 error(s)" in result.output
    assert (test_project / "tsout" / "A.ts").exists()
    assert get_state_file_path(test_project).exists()


@pytest.mark.slow
def test_second_build_without_changes_does_nothing(cli_runner: CliRunner, test_project: Path) -> None:
    _invoke(cli_runner, test_project, "build")

    result = _invoke(cli_runner, test_project, "build")

    assert result.exit_code == 0
    assert "No changes detected" in result.output


@pytest.mark.slow
def test_changed_file_triggers_incremental_build(cli_runner: CliRunner, test_project: Path) -> None:
    _invoke(cli_runner, test_project, "build")
    (test_project / "src" / "pkg" / "B.java").write_text("package pkg;\nclass B {}\n")

    result = _invoke(cli_runner, test_project, "build")

    assert result.exit_code == 0, result.output
    assert "1 change(s) since last build" in result.output
    assert "[default] incremental build: 1 file(s)" in result.output


@pytest.mark.slow
def test_errors_are_printed_in_vscode_format(cli_runner: CliRunner, test_project: Path) -> None:
    (test_project / "src" / "pkg" / "A.java").write_text("package pkg;\nclass A { BROKEN }\n")

    result = _invoke(cli_runner, test_project, "build", "--format", "vscode")

    assert result.exit_code == 1
    assert "src/pkg/A.java:1:1: error: cannot transpile A.java" in result.output
    assert not get_state_file_path(test_project).exists()


@pytest.mark.slow
def test_clean_removes_outputs_and_state(cli_runner: CliRunner, test_project: Path) -> None:
    _invoke(cli_runner, test_project, "build")

    result = _invoke(cli_runner, test_project, "clean")

    assert result.exit_code == 0
    assert "Cleaned demo" in result.output
    assert not (test_project / "tsout").exists()
    assert not get_state_file_path(test_project).exists()


@pytest.mark.slow
def test_rebuild_runs_full_build(cli_runner: CliRunner, test_project: Path) -> None:
    _invoke(cli_runner, test_project, "build")

    result = _invoke(cli_runner, test_project, "rebuild")

    assert result.exit_code == 0, result.output
    assert "[default] full build: 1 file(s)" in result.output
    assert get_state_file_path(test_project).exists()


def test_status_shows_profiles(cli_runner: CliRunner, test_project: Path) -> None:
    result = _invoke(cli_runner, test_project, "status")

    assert result.exit_code == 0
    assert "Profiles of demo" in result.output
    assert "default" in result.output
    assert "full build" in result.output


def test_missing_transpiler_is_reported(cli_runner: CliRunner, tmp_path: Path) -> None:
    _write_project(tmp_path, '["no-such-transpiler-xyz", "{files}"]')

    result = _invoke(cli_runner, tmp_path, "build", "--format", "vscode")

    assert result.exit_code == 1
    assert "transbuild.toml:1:1: error: transpiler executable not found: no-such-transpiler-xyz" in result.output


def test_unknown_profile_is_rejected(cli_runner: CliRunner, test_project: Path) -> None:
    result = _invoke(cli_runner, test_project, "build", "--profile", "nope")

    assert result.exit_code == 1
    assert "unknown profile" in result.output


def test_missing_manifest(cli_runner: CliRunner, tmp_path: Path) -> None:
    result = _invoke(cli_runner, tmp_path, "build")

    assert result.exit_code == 1
    assert "No transbuild.toml" in result.output


def test_version(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert "transbuild" in result.output
