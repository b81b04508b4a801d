import re
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import make_manifest_error

MANIFEST_NAME = "transbuild.toml"
DEFAULT_PROFILE = "default"


class ModuleKind(str, Enum):
    """Module system targeted by the generated code."""

    NONE = "none"
    COMMONJS = "commonjs"
    AMD = "amd"
    SYSTEM = "system"
    UMD = "umd"
    ES2015 = "es2015"


@dataclass(frozen=True)
class Profile:
    """
    A named set of build options.

    Each profile of a project is built independently and gets its own
    build context. Paths are relative to the project root unless absolute.
    """

    name: str = DEFAULT_PROFILE
    source_dirs: tuple[str, ...] = ()
    include_filter: str | None = None
    exclude_filter: str | None = None
    ts_output_dir: str = "tsout"
    js_output_dir: str = "js"
    lib_js_output_dir: str = "js/lib"
    module_kind: ModuleKind = ModuleKind.NONE
    declarations: bool = False
    declarations_dir: str | None = None
    bundle: bool = False
    bundles_dir: str | None = None
    no_js: bool = False
    debug: bool = False
    watch_mode: bool = False
    classpath: tuple[str, ...] = ()


@dataclass
class CompilerConfig:
    """How to invoke the external transpiler."""

    command: list[str] = field(default_factory=list)
    timeout: float | None = None


@dataclass
class ProjectManifest:
    """
    Project manifest loaded from transbuild.toml.

    Contains project metadata, the inferred source path, the compiler
    command and the build profiles.
    """

    name: str
    source_suffix: str = ".java"
    build_enabled: bool = True
    source_path: list[str] = field(default_factory=list)
    libraries: list[str] = field(default_factory=list)
    compiler: CompilerConfig = field(default_factory=CompilerConfig)
    profiles: list[Profile] = field(default_factory=lambda: [Profile()])

    def profile(self, name: str) -> Profile:
        for profile in self.profiles:
            if profile.name == name:
                return profile
        raise KeyError(name)

    @property
    def profile_names(self) -> list[str]:
        return [p.name for p in self.profiles]


def split_dirs(value: str | list[str] | tuple[str, ...] | None) -> tuple[str, ...]:
    """Accept either a list or a ``,``/``;`` separated string of directories."""
    if not value:
        return ()
    if isinstance(value, str):
        parts = re.split(r"[,;]", value)
    else:
        parts = list(value)
    return tuple(p.strip() for p in parts if p and p.strip())


def _blank_to_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def parse_profile(name: str, data: dict[str, Any], path: Path | None = None) -> Profile:
    if not isinstance(data, dict):
        raise make_manifest_error(f"profile '{name}' must be a table", path)

    module_value = _blank_to_none(data.get("module_kind"))
    try:
        module_kind = ModuleKind(module_value) if module_value else ModuleKind.NONE
    except ValueError:
        allowed = ", ".join(k.value for k in ModuleKind)
        raise make_manifest_error(
            f"profile '{name}': unknown module_kind '{module_value}' (expected one of {allowed})",
            path,
        ) from None

    return Profile(
        name=name,
        source_dirs=split_dirs(data.get("source_dirs")),
        include_filter=_blank_to_none(data.get("include_filter")),
        exclude_filter=_blank_to_none(data.get("exclude_filter")),
        ts_output_dir=data.get("ts_output_dir", "tsout"),
        js_output_dir=data.get("js_output_dir", "js"),
        lib_js_output_dir=data.get("lib_js_output_dir", "js/lib"),
        module_kind=module_kind,
        declarations=bool(data.get("declarations", False)),
        declarations_dir=_blank_to_none(data.get("declarations_dir")),
        bundle=bool(data.get("bundle", False)),
        bundles_dir=_blank_to_none(data.get("bundles_dir")),
        no_js=bool(data.get("no_js", False)),
        debug=bool(data.get("debug", False)),
        watch_mode=bool(data.get("watch_mode", False)),
        classpath=split_dirs(data.get("classpath")),
    )


def parse_manifest(data: dict[str, Any], path: Path | None = None) -> ProjectManifest:
    project = data.get("project", {})
    compiler_data = data.get("compiler", {})
    profiles_data = data.get("profiles", {})

    if not isinstance(profiles_data, dict):
        raise make_manifest_error("[profiles] must be a table of named profiles", path)

    profiles = [parse_profile(name, values, path) for name, values in profiles_data.items()]
    if not profiles:
        profiles = [Profile()]

    command = compiler_data.get("command", [])
    if isinstance(command, str):
        command = command.split()

    suffix = project.get("source_suffix", ".java")
    if not suffix.startswith("."):
        suffix = f".{suffix}"

    return ProjectManifest(
        name=project.get("name", "unnamed"),
        source_suffix=suffix,
        build_enabled=project.get("build_enabled", True),
        source_path=list(split_dirs(project.get("source_path"))),
        libraries=list(project.get("libraries", [])),
        compiler=CompilerConfig(command=list(command), timeout=compiler_data.get("timeout")),
        profiles=profiles,
    )


def load_manifest(path: Path) -> ProjectManifest:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise make_manifest_error(f"invalid TOML: {e}", path) from e
    except OSError as e:
        raise make_manifest_error(f"cannot read manifest: {e}", path) from e
    return parse_manifest(data, path)
