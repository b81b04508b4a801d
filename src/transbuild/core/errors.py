"""
Error types for transbuild configuration, compiler and build failures.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class TranspileBuildError(Exception):
    """Base exception for all transbuild errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message


class ManifestError(TranspileBuildError):
    """
    Raised when transbuild.toml cannot be read or interpreted.

    Examples:
    - Invalid TOML syntax
    - Unknown module kind
    - Profile table that is not a table
    """

    pass


class MissingRuntimeError(TranspileBuildError):
    """
    Raised when the compiler cannot be created because something it needs
    at runtime is not installed.

    Examples:
    - Transpiler executable not on PATH
    - No compiler command configured
    """

    pass


class CompilerError(TranspileBuildError):
    """Raised when a compiler invocation fails in an unexpected way."""

    pass


class StateError(TranspileBuildError):
    """Raised when the source snapshot cannot be read or written."""

    pass


class BuildCanceled(TranspileBuildError):
    """Raised when a job notices its progress monitor was canceled."""

    def __init__(self, message: str = "build canceled"):
        super().__init__(message)


@dataclass
class ErrorContext:
    """
    Source location attached to an error.

    Attributes:
        file: Path to the source file
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        profile: Optional profile the error belongs to
    """

    file: Path
    line: int
    column: int
    profile: str | None = None

    def format(self) -> str:
        """
        Format as a human-readable location.

        Returns:
            Formatted string like: "src/A.java:10:5 (profile default)"
        """
        location = f"{self.file}:{self.line}:{self.column}"
        if self.profile:
            location += f" (profile {self.profile})"
        return location


def make_manifest_error(message: str, file: Path | None = None, line: int | None = None) -> ManifestError:
    """
    Helper to create a ManifestError with optional location.

    Args:
        message: Error description
        file: Optional manifest path
        line: Optional line number

    Returns:
        ManifestError with context if a file was given
    """
    if file is not None:
        return ManifestError(message, ErrorContext(file=file, line=line or 1, column=1))
    return ManifestError(message)
