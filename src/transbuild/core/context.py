"""
Per-profile build state.

A BuildContext holds everything one profile of one project remembers
between builds: which source files were compiled (and into what), and the
compiler handle. Contexts are owned by a ContextRegistry held by the
builder; nothing else mutates them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .compiler import Compiler, SourceRecord
from .manifest import Profile
from .workspace import Project

logger = logging.getLogger(__name__)


@dataclass
class BuildContext:
    """
    Mutable state of one (project, profile) pair.

    Attributes:
        project: Project being built
        profile: Profile the context belongs to
        watch_mode: Whether the compiler is kept in persistent watch mode
        source_records: Compiled source file -> generated artifacts
        compiler: Compiler handle, None until first created
    """

    project: Project
    profile: Profile
    watch_mode: bool = False
    source_records: dict[Path, SourceRecord] = field(default_factory=dict)
    compiler: Compiler | None = None

    @property
    def profile_name(self) -> str:
        return self.profile.name

    def reset_registry(self) -> None:
        self.source_records.clear()

    def record(self, files: list[Path]) -> None:
        """Register files about to be compiled with their derived artifacts."""
        if self.compiler is None:
            return
        for file in files:
            self.source_records[file] = self.compiler.options.source_record(file)

    def forget(self, file: Path) -> SourceRecord | None:
        """Drop a file from the registry, returning what it produced."""
        return self.source_records.pop(file, None)

    def lookup_artifacts(self, file: Path) -> SourceRecord | None:
        """Where the artifacts of a removed file are, per watch compiler or registry."""
        if self.watch_mode and self.compiler is not None:
            record = self.compiler.get_watched_file(file)
            self.compiler.reset_watch_mode()
            self.source_records.pop(file, None)
            return record
        return self.forget(file)

    def reset_watch(self) -> None:
        if self.watch_mode and self.compiler is not None:
            self.compiler.reset_watch_mode()

    def dispose(self) -> None:
        """Release the compiler handle."""
        if self.compiler is not None and self.watch_mode:
            logger.info("stopping watch mode")
            self.compiler.set_watch_mode(False)
        self.compiler = None
        self.source_records.clear()


class ContextRegistry:
    """Lazily created build contexts, one per (project root, profile name)."""

    def __init__(self) -> None:
        self._contexts: dict[tuple[Path, str], BuildContext] = {}

    def get(self, project: Project, profile: Profile) -> BuildContext:
        key = (project.root, profile.name)
        context = self._contexts.get(key)
        if context is None or context.profile != profile:
            if context is not None:
                # Profile options changed since the last build
                context.dispose()
            context = BuildContext(project=project, profile=profile, watch_mode=profile.watch_mode)
            self._contexts[key] = context
        return context

    def peek(self, project: Project, profile_name: str) -> BuildContext | None:
        return self._contexts.get((project.root, profile_name))

    def discard(self, project: Project) -> None:
        """Destroy every context of a project (on close or explicit reset)."""
        for key in [k for k in self._contexts if k[0] == project.root]:
            self._contexts.pop(key).dispose()

    def __iter__(self):
        return iter(list(self._contexts.values()))

    def __len__(self) -> int:
        return len(self._contexts)
