"""
Removal of generated artifacts.

Cleaning is best effort: a file that cannot be deleted is logged and left
behind, and a missing output directory is not an error.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from .manifest import Profile
from .markers import AnnotationStore
from .workspace import Project, sync_processed_library_entry

logger = logging.getLogger(__name__)

TS_EXTENSIONS = (".ts",)
JS_EXTENSIONS = (".js", ".js.map")


def delete_quietly(path: Path) -> bool:
    """Delete a file or directory tree, logging instead of raising."""
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
        else:
            return False
        return True
    except OSError as e:
        logger.warning(f"could not delete {path}: {e}")
        return False


def has_file(directory: Path) -> bool:
    """True if any regular file exists anywhere below ``directory``."""
    if not directory.is_dir():
        return False
    return any(p.is_file() for p in directory.rglob("*"))


def collect_files(directory: Path, extensions: tuple[str, ...]) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.rglob("*") if p.is_file() and p.name.endswith(extensions))


def purge_output_dir(directory: Path, extensions: tuple[str, ...]) -> int:
    """
    Delete generated files from an output tree.

    The tree itself is deleted once it no longer holds any file.

    Returns:
        Number of files deleted
    """
    if not directory.exists():
        return 0
    deleted = sum(1 for f in collect_files(directory, extensions) if delete_quietly(f))
    if not has_file(directory):
        delete_quietly(directory)
    logger.debug(f"deleted {deleted} file(s) from {directory}")
    return deleted


def clean_outputs(
    project: Project, profile: Profile, annotations: AnnotationStore, source: str | None = None
) -> None:
    """
    Delete the project's annotations and the profile's generated files.

    With ``source`` set only the annotations raised by that profile go, so a
    profile cleaning up mid-build leaves the others' diagnostics in place.
    """
    annotations.delete(project.root, recursive=True, source=source)
    purge_output_dir(project.location(profile.ts_output_dir), TS_EXTENSIONS)
    purge_output_dir(project.location(profile.js_output_dir), JS_EXTENSIONS)
    project.refresh()


def clean_project(project: Project, annotations: AnnotationStore) -> None:
    """
    Clean every profile of a project.

    Also deletes the reserved working directory and re-synchronises the
    processed-library classpath entry.
    """
    logger.info(f"cleaning {project.name}")
    delete_quietly(project.working_dir)
    sync_processed_library_entry(project)
    for profile in project.manifest.profiles:
        clean_outputs(project, profile, annotations)
