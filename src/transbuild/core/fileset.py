import logging
from pathlib import Path

from .filters import SourceFilter
from .manifest import Profile
from .workspace import TMP_WORKING_DIR_NAME, Project

logger = logging.getLogger(__name__)


def resolve_source_roots(project: Project, profile: Profile) -> list[Path]:
    """
    Source roots for a profile.

    Uses the profile's ``source_dirs`` when it names any, otherwise the
    project's source path. Roots that do not exist are logged and skipped.
    """
    configured = bool(profile.source_dirs)
    candidates = (
        [project.location(name) for name in profile.source_dirs]
        if configured
        else project.source_path_entries()
    )

    roots: list[Path] = []
    for candidate in candidates:
        root = candidate.resolve()
        if not root.is_dir():
            logger.warning(f"skipping source folder {candidate}: not a directory")
            continue
        if root not in roots:
            roots.append(root)

    logger.info(f"source dirs ({'profile' if configured else 'project'}): {[str(r) for r in roots]}")
    return roots


class SourceSelector:
    """Decides whether a single path is a source file of a profile."""

    def __init__(self, project: Project, profile: Profile) -> None:
        self.project = project
        self.profile = profile
        self.roots = resolve_source_roots(project, profile)
        self.filter = SourceFilter.for_profile(profile)

    @property
    def suffix(self) -> str:
        return self.project.manifest.source_suffix

    def is_source(self, path: Path) -> bool:
        path = path.resolve()
        if not path.name.endswith(self.suffix) or not path.is_relative_to(self.project.root):
            return False
        relative = path.relative_to(self.project.root)
        if relative.parts and relative.parts[0] == TMP_WORKING_DIR_NAME:
            return False
        if not self.roots:
            return self.filter(relative)
        for root in self.roots:
            if path.is_relative_to(root):
                return self.filter(path.relative_to(root))
        return False

    def search_roots(self) -> list[Path]:
        return self.roots or [self.project.root]

    def discover(self) -> list[Path]:
        """Sorted, de-duplicated absolute paths of every matching source file."""
        files: set[Path] = set()
        for root in self.search_roots():
            for p in root.rglob(f"*{self.suffix}"):
                if p.is_file() and self.is_source(p):
                    files.add(p.resolve())
        return sorted(files)


def discover_source_files(project: Project, profile: Profile) -> list[Path]:
    """Every source file a full build of ``profile`` compiles."""
    return SourceSelector(project, profile).discover()


def discover_project_sources(project: Project) -> list[Path]:
    """Union of the source files of every profile of a project."""
    found: set[Path] = set()
    for profile in project.manifest.profiles:
        found.update(discover_source_files(project, profile))
    return sorted(found)
