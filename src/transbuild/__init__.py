"""
transbuild - incremental build orchestration for source-to-source compilers.

Decides what must be (re)compiled after a set of file changes, keeps
per-profile build state, and turns compiler diagnostics into problem
annotations.
"""

from __future__ import annotations

from ._version import get_version
from .core.errors import (
    BuildCanceled,
    CompilerError,
    ManifestError,
    MissingRuntimeError,
    TranspileBuildError,
)

__version__ = get_version()

__all__ = [
    "__version__",
    "TranspileBuildError",
    "ManifestError",
    "MissingRuntimeError",
    "CompilerError",
    "BuildCanceled",
]
