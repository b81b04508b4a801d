"""
Problem annotations produced by builds.

Annotations are attached either to a source file (optionally with a line
and character range) or to the project root when no file applies. Each
annotation remembers the profile whose build created it, so that one
profile's build never clears another profile's problems.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

PROBLEM_MARKER = "transbuild.problem"


class Severity(str, Enum):
    """Severity of a problem."""

    ERROR = "error"
    WARNING = "warning"


class Annotation(BaseModel):
    """
    An addressable problem marker.

    Attributes:
        resource: Absolute path of the annotated file, or the project root
        message: Problem description
        severity: Error or warning
        line: 1-indexed line, when known
        char_start: Start character offset in the file, when known
        char_end: End character offset in the file, when known
        source: Name of the profile whose build produced it
        marker_type: Kind of marker; builds only touch their own kind
    """

    resource: Path
    message: str
    severity: Severity
    line: int | None = None
    char_start: int | None = None
    char_end: int | None = None
    source: str | None = None
    marker_type: str = PROBLEM_MARKER

    model_config = ConfigDict(frozen=True)

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR


def _non_negative(value: int | None) -> int | None:
    return value if value is not None and value >= 0 else None


class AnnotationStore:
    """In-memory marker sink keyed by resource path."""

    def __init__(self) -> None:
        self._markers: dict[Path, list[Annotation]] = {}

    def create(
        self,
        resource: Path,
        message: str,
        severity: Severity,
        line: int | None = None,
        char_start: int | None = None,
        char_end: int | None = None,
        source: str | None = None,
        marker_type: str = PROBLEM_MARKER,
    ) -> Annotation:
        annotation = Annotation(
            resource=resource,
            message=message,
            severity=severity,
            line=_non_negative(line),
            char_start=_non_negative(char_start),
            char_end=_non_negative(char_end),
            source=source,
            marker_type=marker_type,
        )
        self._markers.setdefault(resource, []).append(annotation)
        return annotation

    def delete(
        self,
        resource: Path,
        recursive: bool = False,
        source: str | None = None,
        marker_type: str = PROBLEM_MARKER,
    ) -> int:
        """
        Delete annotations of ``marker_type`` on a resource.

        Args:
            resource: File or directory the annotations are attached to
            recursive: Also delete annotations of every resource below it
            source: Only delete annotations of this profile; None means all
            marker_type: Only annotations of this kind are removed

        Returns:
            Number of annotations removed
        """

        def doomed(a: Annotation) -> bool:
            return a.marker_type == marker_type and (source is None or a.source == source)

        removed = 0
        for key in list(self._markers):
            if key == resource or (recursive and key.is_relative_to(resource)):
                kept = [a for a in self._markers[key] if not doomed(a)]
                removed += len(self._markers[key]) - len(kept)
                if kept:
                    self._markers[key] = kept
                else:
                    del self._markers[key]
        return removed

    def for_resource(self, resource: Path) -> list[Annotation]:
        return list(self._markers.get(resource, []))

    def all(self) -> list[Annotation]:
        return [a for key in sorted(self._markers) for a in self._markers[key]]

    def errors(self) -> list[Annotation]:
        return [a for a in self.all() if a.is_error]

    def __len__(self) -> int:
        return sum(len(v) for v in self._markers.values())
