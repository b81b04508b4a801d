"""
Background build jobs.

Every job runs on a worker thread and holds the workspace build rule for
its whole duration, so at most one build, clean or rebuild runs per
workspace at a time. Callers fire and forget; the returned Future exists
for the command line and tests.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .changes import ChangeEvent
from .compiler import CompilerFactory, SubprocessCompilerFactory
from .diagnostics import Diagnostic, DiagnosticRouter, ProblemKind
from .errors import BuildCanceled
from .fileset import discover_project_sources
from .janitor import clean_project
from .markers import AnnotationStore
from .orchestrator import BuildKind, BuildResult, ProjectBuilder
from .progress import ProgressMonitor
from .source_model import DeclarationIndex, SourceModel
from .workspace import Project, Workspace

logger = logging.getLogger(__name__)

SourceModelFactory = Callable[[Project], SourceModel | None]


class JobStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    CANCELED = "canceled"


@dataclass
class JobOutcome:
    """What a finished job reports back."""

    name: str
    status: JobStatus
    results: dict[str, list[BuildResult]] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == JobStatus.OK


def project_source_model(project: Project) -> SourceModel:
    """A declaration index over the sources of every profile of a project."""
    return DeclarationIndex(lambda: discover_project_sources(project))


def default_compiler_factory(project: Project) -> CompilerFactory:
    return SubprocessCompilerFactory(project.manifest.compiler)


class JobScheduler:
    """
    Runs build, clean and rebuild jobs for the projects of one workspace.

    A ProjectBuilder is kept per project so that build contexts survive
    between jobs.
    """

    def __init__(
        self,
        workspace: Workspace,
        compiler_factory: Callable[[Project], CompilerFactory] = default_compiler_factory,
        annotations: AnnotationStore | None = None,
        source_model_factory: SourceModelFactory = project_source_model,
        max_workers: int = 2,
    ) -> None:
        self.workspace = workspace
        self.compiler_factory = compiler_factory
        self.annotations = annotations if annotations is not None else AnnotationStore()
        self.source_model_factory = source_model_factory
        self._builders: dict[Path, ProjectBuilder] = {}
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="transbuild-job")

    def builder(self, project: Project) -> ProjectBuilder:
        builder = self._builders.get(project.root)
        if builder is None:
            builder = ProjectBuilder(
                project,
                self.compiler_factory(project),
                annotations=self.annotations,
                source_model=self.source_model_factory(project),
            )
            self._builders[project.root] = builder
        return builder

    def buildable(self, projects: Iterable[Project] | None = None) -> list[Project]:
        """Open, build-enabled projects, in workspace order by default."""
        candidates = self.workspace.projects if projects is None else list(projects)
        return [p for p in candidates if p.is_open and p.build_enabled]

    # -------------------------------------------------------------------------
    # Job execution
    # -------------------------------------------------------------------------

    def _submit(
        self,
        name: str,
        projects: list[Project],
        work: Callable[[Project, ProgressMonitor], list[BuildResult] | None],
        monitor: ProgressMonitor | None,
    ) -> Future[JobOutcome]:
        monitor = monitor or ProgressMonitor()
        return self._executor.submit(self._run, name, projects, work, monitor)

    def _run(
        self,
        name: str,
        projects: list[Project],
        work: Callable[[Project, ProgressMonitor], list[BuildResult] | None],
        monitor: ProgressMonitor,
    ) -> JobOutcome:
        outcome = JobOutcome(name=name, status=JobStatus.OK)
        with self.workspace.build_rule():
            logger.info(f"job '{name}' started for {[p.name for p in projects]}")
            current: Project | None = None
            try:
                for project in projects:
                    current = project
                    monitor.check_canceled()
                    results = work(project, monitor)
                    if results is not None:
                        outcome.results[project.name] = results
                        if not all(r.ok for r in results):
                            outcome.status = JobStatus.FAILED
            except BuildCanceled as e:
                logger.info(f"job '{name}' canceled: {e.message}")
                outcome.status = JobStatus.CANCELED
                outcome.error = e.message
            except Exception as e:
                logger.error(f"job '{name}' failed: {e}", exc_info=True)
                outcome.status = JobStatus.FAILED
                outcome.error = str(e)
                if current is not None:
                    DiagnosticRouter(current, self.annotations).route(
                        Diagnostic(message=f"{name} failed: {e}", problem=ProblemKind.BUILD_FAILED)
                    )
            logger.info(f"job '{name}' finished: {outcome.status.value}")
        return outcome

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    def schedule_build(
        self,
        project: Project,
        kind: BuildKind = BuildKind.AUTO,
        events: Iterable[ChangeEvent] | None = None,
        profiles: Iterable[str] | None = None,
        monitor: ProgressMonitor | None = None,
    ) -> Future[JobOutcome]:
        events = list(events) if events is not None else None
        profiles = list(profiles) if profiles is not None else None

        def work(p: Project, m: ProgressMonitor) -> list[BuildResult]:
            return self.builder(p).build(kind, events=events, monitor=m, profiles=profiles)

        return self._submit(f"build {project.name}", [project], work, monitor)

    def _clean(self, project: Project, monitor: ProgressMonitor) -> None:
        builder = self.builder(project)
        builder.reset()
        clean_project(project, self.annotations)

    def _rebuild(self, project: Project, monitor: ProgressMonitor) -> list[BuildResult]:
        self._clean(project, monitor)
        monitor.check_canceled()
        return self.builder(project).build(BuildKind.FULL, monitor=monitor)

    def schedule_clean(self, project: Project, monitor: ProgressMonitor | None = None) -> Future[JobOutcome]:
        return self._submit(f"clean {project.name}", [project], self._clean, monitor)

    def schedule_rebuild(self, project: Project, monitor: ProgressMonitor | None = None) -> Future[JobOutcome]:
        return self._submit(f"rebuild {project.name}", self.buildable([project]), self._rebuild, monitor)

    def clean_workspace(self, monitor: ProgressMonitor | None = None) -> Future[JobOutcome]:
        return self._submit("clean workspace", self.buildable(), self._clean, monitor)

    def rebuild_workspace(self, monitor: ProgressMonitor | None = None) -> Future[JobOutcome]:
        return self._submit("rebuild workspace", self.buildable(), self._rebuild, monitor)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        for builder in self._builders.values():
            builder.contexts.discard(builder.project)
        self._builders.clear()

    def __enter__(self) -> JobScheduler:
        return self

    def __exit__(self, *exc: object) -> None:
        self.shutdown()
