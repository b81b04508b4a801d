"""Core transbuild functionality: discovery, change resolution, build orchestration, cleaning."""

from .changes import ChangeEvent, ChangeKind, ChangeSetResolver, FullRebuildRequired, IncrementalFileSet
from .compiler import (
    Compiler,
    CompilerFactory,
    CompilerOptions,
    SourceRecord,
    SubprocessCompiler,
    SubprocessCompilerFactory,
)
from .context import BuildContext, ContextRegistry
from .diagnostics import Diagnostic, DiagnosticRouter, Positioned, ProblemKind, Unpositioned
from .errors import (
    BuildCanceled,
    CompilerError,
    ErrorContext,
    ManifestError,
    MissingRuntimeError,
    StateError,
    TranspileBuildError,
)
from .fileset import SourceSelector, discover_project_sources, discover_source_files
from .filters import SourceFilter, is_included
from .janitor import clean_outputs, clean_project
from .manifest import ModuleKind, Profile, ProjectManifest, load_manifest
from .markers import Annotation, AnnotationStore, Severity
from .orchestrator import BuildKind, BuildPhase, BuildResult, ProjectBuilder
from .progress import ProgressMonitor
from .scheduler import JobOutcome, JobScheduler, JobStatus
from .source_model import DeclarationIndex, SourceModel
from .state import BuildState, clear_state, detect_changes, load_state, save_state
from .workspace import Project, Workspace

__all__ = [
    "TranspileBuildError",
    "ManifestError",
    "MissingRuntimeError",
    "CompilerError",
    "StateError",
    "BuildCanceled",
    "ErrorContext",
    "ModuleKind",
    "Profile",
    "ProjectManifest",
    "load_manifest",
    "Project",
    "Workspace",
    "is_included",
    "SourceFilter",
    "SourceSelector",
    "discover_source_files",
    "discover_project_sources",
    "ChangeKind",
    "ChangeEvent",
    "ChangeSetResolver",
    "FullRebuildRequired",
    "IncrementalFileSet",
    "BuildContext",
    "ContextRegistry",
    "Compiler",
    "CompilerFactory",
    "CompilerOptions",
    "SourceRecord",
    "SubprocessCompiler",
    "SubprocessCompilerFactory",
    "SourceModel",
    "DeclarationIndex",
    "Diagnostic",
    "DiagnosticRouter",
    "Positioned",
    "Unpositioned",
    "ProblemKind",
    "Annotation",
    "AnnotationStore",
    "Severity",
    "BuildKind",
    "BuildPhase",
    "BuildResult",
    "ProjectBuilder",
    "ProgressMonitor",
    "JobScheduler",
    "JobStatus",
    "JobOutcome",
    "clean_outputs",
    "clean_project",
    "BuildState",
    "load_state",
    "save_state",
    "clear_state",
    "detect_changes",
]
