"""
Compiler diagnostics and their routing onto annotations.

A diagnostic either carries a position inside a source file or does not.
The router turns each one into an annotation on the matching project file,
or on the project itself when the file cannot be resolved.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from .markers import Annotation, AnnotationStore, Severity
from .workspace import Project

logger = logging.getLogger(__name__)


class ProblemKind(str, Enum):
    """What produced a diagnostic."""

    TRANSPILER = "transpiler"
    # Errors in the original source language, reported by that language's own tooling
    INTERNAL_SOURCE_ERROR = "internal_source_error"
    RUNTIME_NOT_FOUND = "runtime_not_found"
    BUILD_FAILED = "build_failed"


class Positioned(BaseModel):
    """A location inside a source file."""

    kind: Literal["positioned"] = "positioned"
    file: Path
    line: int
    start_offset: int = -1
    end_offset: int = -1

    model_config = ConfigDict(frozen=True)


class Unpositioned(BaseModel):
    """No usable location."""

    kind: Literal["unpositioned"] = "unpositioned"

    model_config = ConfigDict(frozen=True)


Position = Annotated[Positioned | Unpositioned, Field(discriminator="kind")]


class Diagnostic(BaseModel):
    """A problem reported by the compiler (or by the builder itself)."""

    message: str
    severity: Severity = Severity.ERROR
    problem: ProblemKind = ProblemKind.TRANSPILER
    position: Position = Field(default_factory=Unpositioned)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def at(
        cls,
        file: Path,
        line: int,
        message: str,
        severity: Severity = Severity.ERROR,
        start_offset: int = -1,
        end_offset: int = -1,
    ) -> Diagnostic:
        return cls(
            message=message,
            severity=severity,
            position=Positioned(file=file, line=line, start_offset=start_offset, end_offset=end_offset),
        )

    @classmethod
    def runtime_not_found(cls, message: str) -> Diagnostic:
        return cls(message=message, problem=ProblemKind.RUNTIME_NOT_FOUND)


class DiagnosticRouter:
    """Maps diagnostics of one project onto annotations."""

    def __init__(self, project: Project, annotations: AnnotationStore, source: str | None = None) -> None:
        self.project = project
        self.annotations = annotations
        self.source = source

    def resolve_file(self, file: Path) -> Path | None:
        """
        Find the project file a diagnostic refers to.

        An absolute path is matched against the project root first; the path
        is then tried as a project-relative path.
        """
        candidates: list[Path] = []
        if file.is_absolute():
            for absolute in (file.resolve(), file):
                if absolute.is_relative_to(self.project.root):
                    candidates.append(absolute.relative_to(self.project.root))
        else:
            candidates.append(file)

        for relative in candidates:
            member = self.project.find_member(relative)
            if member is not None and member.is_file():
                return member
        logger.debug(f"{file} does not resolve to a file of {self.project.name}")
        return None

    def route(self, diagnostic: Diagnostic) -> Annotation | None:
        if diagnostic.problem == ProblemKind.INTERNAL_SOURCE_ERROR:
            return None

        position = diagnostic.position
        if isinstance(position, Positioned):
            resource = self.resolve_file(position.file)
            if resource is not None:
                return self.annotations.create(
                    resource,
                    diagnostic.message,
                    diagnostic.severity,
                    line=position.line,
                    char_start=position.start_offset,
                    char_end=position.end_offset,
                    source=self.source,
                )
        return self.annotations.create(
            self.project.root, diagnostic.message, diagnostic.severity, source=self.source
        )
