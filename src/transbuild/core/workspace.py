"""
On-disk projects and the workspace that groups them.

A project is a directory holding a transbuild.toml manifest. It exposes the
pieces of the host environment the builder consumes: source path entries,
a classpath-like dependency list, member lookup, and refresh notification.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass
from pathlib import Path

from .errors import ManifestError
from .manifest import MANIFEST_NAME, ProjectManifest, load_manifest

logger = logging.getLogger(__name__)

TMP_WORKING_DIR_NAME = ".transbuild"
PROCESSED_LIBS_DIR_NAME = "libs/processed"
PROCESSED_LIBS_SOURCES_DIR_NAME = "libs/src"
BUILDPATH_FILE = ".buildpath"

RefreshListener = Callable[[Path], None]


@dataclass(frozen=True)
class ClasspathEntry:
    """One entry of the project's dependency list."""

    kind: str
    path: str
    source_path: str | None = None


def processed_library_entry() -> ClasspathEntry:
    """The entry pointing at libraries pre-processed by the transpiler."""
    return ClasspathEntry(
        kind="lib",
        path=f"{TMP_WORKING_DIR_NAME}/{PROCESSED_LIBS_DIR_NAME}",
        source_path=f"{TMP_WORKING_DIR_NAME}/{PROCESSED_LIBS_SOURCES_DIR_NAME}",
    )


class Project:
    """A buildable project rooted at a directory."""

    def __init__(self, root: Path, manifest: ProjectManifest, workspace: Workspace | None = None) -> None:
        self.root = root.resolve()
        self.manifest = manifest
        self.workspace = workspace
        self.is_open = True
        self._refresh_listeners: list[RefreshListener] = []

    @classmethod
    def load(cls, root: Path | str, manifest_path: Path | str | None = None) -> Project:
        root = Path(root).resolve()
        path = Path(manifest_path).resolve() if manifest_path else root / MANIFEST_NAME
        if not path.exists():
            raise ManifestError(f"No {MANIFEST_NAME} found at {path}")
        return cls(path.parent if manifest_path else root, load_manifest(path))

    @property
    def name(self) -> str:
        return self.manifest.name

    @property
    def build_enabled(self) -> bool:
        return self.manifest.build_enabled

    @property
    def working_dir(self) -> Path:
        return self.root / TMP_WORKING_DIR_NAME

    def location(self, relative: str | Path) -> Path:
        """Resolve a project-relative or absolute path."""
        path = Path(relative)
        return path if path.is_absolute() else self.root / path

    def source_path_entries(self) -> list[Path]:
        """Source folders declared for the project, independent of profiles."""
        return [self.location(entry) for entry in self.manifest.source_path]

    def find_member(self, relative: str | Path) -> Path | None:
        """Return the existing file or folder at a project-relative path."""
        path = Path(relative)
        if path.is_absolute():
            return None
        candidate = (self.root / path).resolve()
        if not candidate.is_relative_to(self.root) or not candidate.exists():
            return None
        return candidate

    # -------------------------------------------------------------------------
    # Classpath
    # -------------------------------------------------------------------------

    @property
    def buildpath_file(self) -> Path:
        return self.root / BUILDPATH_FILE

    def raw_classpath(self) -> list[ClasspathEntry]:
        if not self.buildpath_file.exists():
            return []
        data = json.loads(self.buildpath_file.read_text(encoding="utf-8"))
        return [ClasspathEntry(**entry) for entry in data]

    def set_raw_classpath(self, entries: list[ClasspathEntry]) -> None:
        self.buildpath_file.write_text(
            json.dumps([asdict(e) for e in entries], indent=2), encoding="utf-8"
        )

    def resolved_classpath(self) -> list[Path]:
        """Libraries from the manifest followed by the raw classpath, as paths."""
        entries = list(self.manifest.libraries) + [e.path for e in self.raw_classpath()]
        return [self.resolve_path(entry) for entry in entries]

    def resolve_path(self, entry: str) -> Path:
        path = Path(entry)
        if not path.is_absolute():
            return self.root / path
        if path.exists() or self.workspace is None:
            return path
        # Absolute entries may be workspace-rooted
        return self.workspace.root / entry.lstrip("/")

    # -------------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------------

    def add_refresh_listener(self, listener: RefreshListener) -> None:
        self._refresh_listeners.append(listener)

    def refresh(self, path: Path | None = None) -> None:
        """Tell listeners a subtree changed on disk."""
        target = path or self.root
        logger.debug(f"refreshing {target}")
        for listener in list(self._refresh_listeners):
            listener(target)

    def close(self) -> None:
        self.is_open = False

    def __repr__(self) -> str:
        return f"Project({self.name!r}, {self.root})"


def sync_processed_library_entry(project: Project) -> bool:
    """
    Add or remove the processed-library classpath entry.

    The entry is present iff the project takes part in builds. The call is
    idempotent.

    Returns:
        True if the classpath was modified
    """
    entry = processed_library_entry()
    classpath = project.raw_classpath()
    if project.build_enabled:
        processed = project.root / entry.path
        if not processed.exists():
            processed.mkdir(parents=True)
            project.refresh()
        if entry not in classpath:
            logger.info(f"adding {entry.path} to build path")
            project.set_raw_classpath([entry, *classpath])
            return True
    elif entry in classpath:
        logger.info(f"removing {entry.path} from build path")
        classpath.remove(entry)
        project.set_raw_classpath(classpath)
        return True
    return False


class Workspace:
    """A set of projects sharing one build rule."""

    def __init__(self, root: Path | str, projects: list[Project] | None = None) -> None:
        self.root = Path(root).resolve()
        self.projects: list[Project] = []
        self._build_rule = threading.Lock()
        for project in projects or []:
            self.add(project)

    def add(self, project: Project) -> Project:
        project.workspace = self
        self.projects.append(project)
        return project

    @classmethod
    def discover(cls, root: Path | str) -> Workspace:
        """Load every direct child directory (and the root) holding a manifest."""
        workspace = cls(root)
        candidates = [workspace.root, *sorted(p for p in workspace.root.iterdir() if p.is_dir())]
        for directory in candidates:
            if (directory / MANIFEST_NAME).exists():
                workspace.add(Project.load(directory))
        return workspace

    def build_rule(self) -> threading.Lock:
        """The mutual-exclusion token every build or clean job must hold."""
        return self._build_rule
