"""
Source snapshot for command-line incremental builds.

Tracks:
- Timestamp of the last successful build
- SHA-256 hashes of the source files that build saw

Diffing the snapshot against the files discovered now yields the change
events an incremental build consumes.
"""

import hashlib
import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .changes import ChangeEvent
from .errors import StateError
from .workspace import TMP_WORKING_DIR_NAME, Project

STATE_FILE_NAME = "state.json"


@dataclass
class BuildState:
    """
    Represents the state of a previous build.

    Used to derive change events for the next one.
    """

    timestamp: str  # ISO format datetime
    source_hashes: dict[str, str] = field(default_factory=dict)  # {relative_path: sha256_hash}

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return asdict(self)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "BuildState":
        """Create BuildState from dict."""
        return BuildState(**data)


def compute_file_hash(file_path: Path) -> str:
    """
    Compute SHA256 hash of a file.

    Raises:
        StateError: If file cannot be read
    """
    try:
        sha256 = hashlib.sha256()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(8192), b""):
                sha256.update(chunk)
        return sha256.hexdigest()
    except OSError as e:
        raise StateError(f"Failed to hash file {file_path}: {e}") from e


def _key(file: Path, root: Path) -> str:
    try:
        return file.relative_to(root).as_posix()
    except ValueError:
        # File outside project root, use absolute path
        return str(file)


def compute_source_hashes(files: list[Path], root: Path) -> dict[str, str]:
    """Map each file's project-relative path to its hash."""
    return {_key(f, root): compute_file_hash(f) for f in files}


def get_state_file_path(project_root: Path) -> Path:
    return project_root / TMP_WORKING_DIR_NAME / STATE_FILE_NAME


def load_state(project_root: Path) -> BuildState | None:
    """
    Load previous build state.

    Returns:
        BuildState if exists, None otherwise

    Raises:
        StateError: If state file is corrupted
    """
    state_file = get_state_file_path(project_root)
    if not state_file.exists():
        return None

    try:
        with open(state_file, encoding="utf-8") as f:
            data = json.load(f)
        return BuildState.from_dict(data)
    except (OSError, ValueError, TypeError) as e:
        raise StateError(f"Failed to load build state: {e}") from e


def save_state(project: Project, files: list[Path]) -> BuildState:
    """
    Save the snapshot after a build.

    Raises:
        StateError: If state cannot be saved
    """
    state_file = get_state_file_path(project.root)
    state = BuildState(
        timestamp=datetime.now(UTC).isoformat(),
        source_hashes=compute_source_hashes(files, project.root),
    )
    try:
        state_file.parent.mkdir(parents=True, exist_ok=True)
        with open(state_file, "w", encoding="utf-8") as f:
            json.dump(state.to_dict(), f, indent=2)
    except OSError as e:
        raise StateError(f"Failed to save build state: {e}") from e
    return state


def clear_state(project_root: Path) -> None:
    """Clear build state (force full rebuild next time)."""
    state_file = get_state_file_path(project_root)
    if state_file.exists():
        state_file.unlink()


def detect_changes(project: Project, files: list[Path], state: BuildState) -> list[ChangeEvent]:
    """
    Compare the current source files against a snapshot.

    Events are ordered: removed, then added, then changed, each sorted by path.
    """
    current = compute_source_hashes(files, project.root)
    previous = state.source_hashes

    def path(key: str) -> Path:
        return project.location(key)

    events = [ChangeEvent.removed(path(k)) for k in sorted(set(previous) - set(current))]
    events += [ChangeEvent.added(path(k)) for k in sorted(set(current) - set(previous))]
    events += [
        ChangeEvent.changed(path(k))
        for k in sorted(set(current) & set(previous))
        if current[k] != previous[k]
    ]
    return events


__all__ = [
    "BuildState",
    "compute_file_hash",
    "compute_source_hashes",
    "get_state_file_path",
    "load_state",
    "save_state",
    "clear_state",
    "detect_changes",
]
