"""
Change detection for incremental builds.

Turns the file events collected since the last build into the set of files
to recompile, or decides that only a full rebuild is safe.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from .compiler import SourceRecord
from .context import BuildContext
from .fileset import SourceSelector
from .janitor import delete_quietly
from .markers import AnnotationStore
from .source_model import SourceModel

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"


class ChangeEvent(BaseModel):
    """One file touched since the last build."""

    kind: ChangeKind
    path: Path

    model_config = ConfigDict(frozen=True)

    @classmethod
    def added(cls, path: Path) -> ChangeEvent:
        return cls(kind=ChangeKind.ADDED, path=path)

    @classmethod
    def removed(cls, path: Path) -> ChangeEvent:
        return cls(kind=ChangeKind.REMOVED, path=path)

    @classmethod
    def changed(cls, path: Path) -> ChangeEvent:
        return cls(kind=ChangeKind.CHANGED, path=path)


@dataclass(frozen=True)
class FullRebuildRequired:
    """The change set cannot be handled incrementally."""

    removed: tuple[Path, ...] = ()


@dataclass(frozen=True)
class IncrementalFileSet:
    """Files to recompile, in first-seen order, and files whose artifacts were purged."""

    files: tuple[Path, ...] = ()
    purged: tuple[Path, ...] = ()

    def is_empty(self) -> bool:
        return not self.files


ChangeResolution = FullRebuildRequired | IncrementalFileSet


class ChangeSetResolver:
    """
    Computes what an incremental build must compile.

    Any removal forces a full rebuild: stale artifacts of related types
    could otherwise survive. The removed files' own annotations and
    artifacts are purged right away.

    Added and changed sources are expanded through the type hierarchy: every
    file declaring a supertype or subtype of a type declared in a touched
    file is recompiled as well.
    """

    def __init__(
        self,
        context: BuildContext,
        selector: SourceSelector,
        source_model: SourceModel | None,
        annotations: AnnotationStore,
    ) -> None:
        self.context = context
        self.selector = selector
        self.source_model = source_model
        self.annotations = annotations

    def resolve(self, events: Iterable[ChangeEvent]) -> ChangeResolution:
        events = list(events)

        if any(e.kind in (ChangeKind.ADDED, ChangeKind.REMOVED) for e in events):
            # A watching compiler's dependency graph is stale after structural changes
            self.context.reset_watch()

        removed = tuple(e.path.resolve() for e in events if e.kind == ChangeKind.REMOVED)
        if removed:
            for path in removed:
                self.purge(path)
            logger.info(f"{len(removed)} file(s) removed, full rebuild required")
            return FullRebuildRequired(removed=removed)

        self._refresh_model()
        files: list[Path] = []
        for event in events:
            path = event.path.resolve()
            if not self.selector.is_source(path):
                logger.debug(f"ignoring {event.kind.value} {path}: not a source of {self.context.profile_name}")
                continue
            self._grab_hierarchy(path, files)

        return IncrementalFileSet(files=tuple(dict.fromkeys(files)))

    def purge(self, path: Path) -> SourceRecord | None:
        """Clear annotations of a removed file and delete what it generated."""
        self.annotations.delete(path)
        record = self.context.lookup_artifacts(path)
        if record is not None:
            for output in record.outputs:
                delete_quietly(output)
        return record

    def _refresh_model(self) -> None:
        # Once per change set; the fan-out queries read the refreshed graph
        if self.source_model is None:
            return
        try:
            self.source_model.refresh()
        except Exception as e:
            logger.error(f"cannot refresh source model: {e}", exc_info=True)

    def _grab_hierarchy(self, path: Path, files: list[Path]) -> None:
        if path in files:
            return
        files.append(path)
        if self.source_model is None:
            return
        try:
            for declared in self.source_model.types_declared_in(path):
                for related in self.source_model.hierarchy_closure(declared):
                    declaring = self.source_model.file_declaring(related)
                    if declaring is None:
                        continue
                    declaring = declaring.resolve()
                    if declaring not in files and self.selector.is_source(declaring):
                        files.append(declaring)
        except Exception as e:
            logger.error(f"cannot resolve type hierarchy of {path}: {e}", exc_info=True)
