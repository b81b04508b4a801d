"""Tests for output cleaning."""

from pathlib import Path

from transbuild.core.janitor import clean_outputs, clean_project, delete_quietly, purge_output_dir
from transbuild.core.markers import Severity
from transbuild.core.workspace import processed_library_entry


def _touch(path: Path, text: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def test_purge_deletes_only_matching_extensions(tmp_path: Path) -> None:
    out = tmp_path / "js"
    _touch(out / "pkg" / "A.js")
    _touch(out / "pkg" / "A.js.map")
    keep = _touch(out / "index.html")

    deleted = purge_output_dir(out, (".js", ".js.map"))

    assert deleted == 2
    assert keep.exists()
    assert not (out / "pkg" / "A.js").exists()


def test_purge_removes_tree_left_without_files(tmp_path: Path) -> None:
    out = tmp_path / "tsout"
    _touch(out / "a" / "b" / "A.ts")

    purge_output_dir(out, (".ts",))

    assert not out.exists()


def test_purge_of_missing_directory_is_a_no_op(tmp_path: Path) -> None:
    assert purge_output_dir(tmp_path / "nope", (".ts",)) == 0


def test_delete_quietly_reports_missing_files(tmp_path: Path) -> None:
    assert delete_quietly(tmp_path / "missing") is False
    assert delete_quietly(_touch(tmp_path / "present")) is True


def test_clean_outputs_removes_annotations_and_outputs(project, annotations) -> None:
    profile = project.manifest.profile("default")
    ts = _touch(project.root / "tsout" / "A.ts")
    js = _touch(project.root / "js" / "A.js")
    annotations.create(project.root / "src" / "A.java", "problem", Severity.ERROR, source="default")
    annotations.create(project.root, "project problem", Severity.ERROR)

    clean_outputs(project, profile, annotations)

    assert not ts.exists() and not js.exists()
    assert len(annotations) == 0


def test_clean_outputs_for_one_profile_keeps_other_annotations(project, annotations) -> None:
    profile = project.manifest.profile("default")
    a = project.root / "src" / "A.java"
    annotations.create(a, "mine", Severity.ERROR, source="default")
    annotations.create(a, "theirs", Severity.ERROR, source="tools")

    clean_outputs(project, profile, annotations, source="default")

    assert [x.message for x in annotations.for_resource(a)] == ["theirs"]


def test_clean_is_idempotent_without_outputs(project, annotations) -> None:
    profile = project.manifest.profile("default")

    clean_outputs(project, profile, annotations)
    clean_outputs(project, profile, annotations)

    assert not (project.root / "tsout").exists()


def test_clean_project_resets_working_dir_and_build_path(project, annotations) -> None:
    stale = _touch(project.working_dir / "state.json", "{}")
    refreshed: list[Path] = []
    project.add_refresh_listener(refreshed.append)

    clean_project(project, annotations)
    clean_project(project, annotations)

    assert not stale.exists()
    assert project.raw_classpath() == [processed_library_entry()]
    assert (project.root / processed_library_entry().path).is_dir()
    assert project.root in refreshed


def test_clean_project_drops_library_entry_when_disabled(make_project, annotations) -> None:
    project = make_project('[project]\nname = "off"\nbuild_enabled = false\n')
    project.set_raw_classpath([processed_library_entry()])

    clean_project(project, annotations)

    assert project.raw_classpath() == []
