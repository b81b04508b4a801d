"""Tests for transbuild.toml loading."""

from pathlib import Path

import pytest

from transbuild.core.errors import ManifestError
from transbuild.core.manifest import (
    DEFAULT_PROFILE,
    ModuleKind,
    Profile,
    load_manifest,
    parse_manifest,
    split_dirs,
)


def test_split_dirs_accepts_lists_and_separated_strings() -> None:
    assert split_dirs(None) == ()
    assert split_dirs("") == ()
    assert split_dirs("src, gen;extra") == ("src", "gen", "extra")
    assert split_dirs(["src", " ", "gen"]) == ("src", "gen")


def test_missing_profiles_table_yields_default_profile() -> None:
    manifest = parse_manifest({"project": {"name": "demo"}})

    assert manifest.name == "demo"
    assert manifest.profile_names == [DEFAULT_PROFILE]
    assert manifest.profiles[0] == Profile()


def test_profile_options_are_parsed() -> None:
    manifest = parse_manifest(
        {
            "project": {"name": "demo", "source_suffix": "java", "source_path": "src;gen"},
            "compiler": {"command": "jsweet --verbose", "timeout": 30},
            "profiles": {
                "web": {
                    "source_dirs": "src/main,src/web",
                    "include_filter": "app/.*",
                    "exclude_filter": " ",
                    "module_kind": "commonjs",
                    "bundle": True,
                    "bundles_dir": "bundles",
                    "no_js": True,
                    "watch_mode": True,
                    "classpath": ["lib/extra.jar"],
                },
            },
        }
    )

    assert manifest.source_suffix == ".java"
    assert manifest.source_path == ["src", "gen"]
    assert manifest.compiler.command == ["jsweet", "--verbose"]
    assert manifest.compiler.timeout == 30

    web = manifest.profile("web")
    assert web.source_dirs == ("src/main", "src/web")
    assert web.include_filter == "app/.*"
    assert web.exclude_filter is None
    assert web.module_kind == ModuleKind.COMMONJS
    assert web.bundle and web.no_js and web.watch_mode
    assert web.bundles_dir == "bundles"
    assert web.classpath == ("lib/extra.jar",)
    assert web.ts_output_dir == "tsout"


def test_unknown_profile_raises_key_error() -> None:
    with pytest.raises(KeyError):
        parse_manifest({}).profile("nope")


def test_unknown_module_kind_is_rejected() -> None:
    with pytest.raises(ManifestError, match="unknown module_kind"):
        parse_manifest({"profiles": {"default": {"module_kind": "esm-next"}}})


def test_profile_must_be_a_table() -> None:
    with pytest.raises(ManifestError, match="must be a table"):
        parse_manifest({"profiles": {"default": "src"}})


def test_invalid_toml_reports_manifest_location(tmp_path: Path) -> None:
    path = tmp_path / "transbuild.toml"
    path.write_text("[project\nname = ")

    with pytest.raises(ManifestError) as exc_info:
        load_manifest(path)

    assert exc_info.value.context is not None
    assert exc_info.value.context.file == path
    assert "invalid TOML" in exc_info.value.message
