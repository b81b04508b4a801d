"""
Build orchestrator.

Decides, per profile, whether a build runs as a full build or an
incremental one, drives discovery and change resolution, and invokes the
compiler. States::

    IDLE -> FULL_BUILD -> IDLE
    IDLE -> INCREMENTAL_BUILD -> IDLE
    INCREMENTAL_BUILD -> FULL_BUILD   (when a full rebuild is required)

Each profile is isolated: a profile whose compiler cannot be created, or
whose compile invocation blows up, is reported through a project annotation
and the remaining profiles still build.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .changes import ChangeEvent, ChangeSetResolver, FullRebuildRequired
from .compiler import CompilerFactory, CompilerOptions, SourceRecord
from .context import BuildContext, ContextRegistry
from .diagnostics import Diagnostic, DiagnosticRouter, ProblemKind
from .errors import BuildCanceled, MissingRuntimeError
from .fileset import SourceSelector
from .janitor import clean_outputs
from .markers import AnnotationStore, Severity
from .progress import ProgressMonitor
from .source_model import SourceModel
from .workspace import Project

logger = logging.getLogger(__name__)

RUNTIME_JAR_SUFFIX = "lib/rt.jar"


class BuildKind(str, Enum):
    """What the caller asks for."""

    FULL = "full"
    INCREMENTAL = "incremental"
    # Incremental when change events are supplied, full otherwise
    AUTO = "auto"


class BuildPhase(str, Enum):
    IDLE = "idle"
    FULL_BUILD = "full_build"
    INCREMENTAL_BUILD = "incremental_build"


@dataclass
class BuildResult:
    """Outcome of building one profile."""

    profile: str
    phase: BuildPhase
    files: list[Path] = field(default_factory=list)
    ok: bool = True
    errors: int = 0
    warnings: int = 0

    @property
    def succeeded(self) -> bool:
        return self.ok and self.errors == 0


# =============================================================================
# Diagnostic sink
# =============================================================================


def refresh_outputs_async(project: Project, output_dirs: Iterable[str]) -> threading.Thread | None:
    """
    Refresh output directories on a detached thread.

    The thread is never joined; it may still be running when the next build
    starts.
    """
    targets: list[Path] = []
    for directory in output_dirs:
        member = project.find_member(directory)
        if member is not None and member not in targets:
            targets.append(member)
    if not targets:
        return None

    def run() -> None:
        for target in targets:
            try:
                project.refresh(target)
            except Exception as e:
                logger.error(f"error while refreshing {target}: {e}", exc_info=True)

    thread = threading.Thread(target=run, name=f"refresh-{project.name}", daemon=True)
    thread.start()
    return thread


class BuildReporter:
    """Routes one compile invocation's diagnostics and refreshes afterwards."""

    def __init__(self, context: BuildContext, router: DiagnosticRouter, full_pass: bool) -> None:
        self.context = context
        self.router = router
        self.full_pass = full_pass
        self.errors = 0
        self.warnings = 0
        self.refresh_thread: threading.Thread | None = None

    def report(self, diagnostic: Diagnostic) -> None:
        annotation = self.router.route(diagnostic)
        if annotation is None:
            return
        if annotation.severity == Severity.ERROR:
            self.errors += 1
        else:
            self.warnings += 1

    def on_completed(self, records: list[SourceRecord]) -> None:
        project = self.context.project
        if self.full_pass:
            logger.info("refreshing project (full)")
            project.refresh()
        else:
            # TODO: refresh only the artifacts listed in records
            logger.info("refreshing output directories (incremental)")
            profile = self.context.profile
            self.refresh_thread = refresh_outputs_async(project, [profile.ts_output_dir, profile.js_output_dir])


# =============================================================================
# Builder
# =============================================================================


def detect_runtime_home(classpath: Iterable[Path]) -> Path | None:
    """A ``<home>/lib/rt.jar`` entry on the classpath identifies the runtime home."""
    for entry in classpath:
        if entry.as_posix().endswith(RUNTIME_JAR_SUFFIX):
            return entry.parent.parent
    return None


class ProjectBuilder:
    """
    Builds every profile of one project.

    The builder owns the project's build contexts; they are created lazily
    on first build and destroyed by ``close``.
    """

    def __init__(
        self,
        project: Project,
        compiler_factory: CompilerFactory,
        annotations: AnnotationStore | None = None,
        source_model: SourceModel | None = None,
        contexts: ContextRegistry | None = None,
    ) -> None:
        self.project = project
        self.compiler_factory = compiler_factory
        self.annotations = annotations if annotations is not None else AnnotationStore()
        self.source_model = source_model
        self.contexts = contexts if contexts is not None else ContextRegistry()
        self.phase = BuildPhase.IDLE

    def _enter(self, phase: BuildPhase, context: BuildContext) -> None:
        logger.info(f"{self.project.name} [{context.profile_name}]: {self.phase.value} -> {phase.value}")
        self.phase = phase

    def _router(self, context: BuildContext) -> DiagnosticRouter:
        return DiagnosticRouter(self.project, self.annotations, source=context.profile_name)

    def context_for(self, profile_name: str) -> BuildContext:
        return self.contexts.get(self.project, self.project.manifest.profile(profile_name))

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def build(
        self,
        kind: BuildKind = BuildKind.AUTO,
        events: Iterable[ChangeEvent] | None = None,
        monitor: ProgressMonitor | None = None,
        profiles: Iterable[str] | None = None,
    ) -> list[BuildResult]:
        monitor = monitor or ProgressMonitor()
        events = list(events) if events is not None else None
        wanted = set(profiles) if profiles is not None else None
        incremental = kind == BuildKind.INCREMENTAL or (kind == BuildKind.AUTO and events is not None)

        results: list[BuildResult] = []
        for profile in self.project.manifest.profiles:
            if wanted is not None and profile.name not in wanted:
                continue
            monitor.check_canceled()
            monitor.begin(f"building {self.project.name} [{profile.name}]")
            context = self.contexts.get(self.project, profile)
            try:
                if incremental and events is not None:
                    results.append(self.incremental_build(context, events, monitor))
                else:
                    results.append(self.full_build(context, monitor))
            except BuildCanceled:
                raise
            except Exception as e:
                logger.error(f"build of profile {profile.name} failed: {e}", exc_info=True)
                self._router(context).route(
                    Diagnostic(message=f"build failed: {e}", problem=ProblemKind.BUILD_FAILED)
                )
                results.append(BuildResult(profile=profile.name, phase=self.phase, ok=False, errors=1))
            finally:
                self.phase = BuildPhase.IDLE
        return results

    # -------------------------------------------------------------------------
    # Full build
    # -------------------------------------------------------------------------

    def full_build(self, context: BuildContext, monitor: ProgressMonitor | None = None) -> BuildResult:
        monitor = monitor or ProgressMonitor()
        self._enter(BuildPhase.FULL_BUILD, context)
        self.annotations.delete(self.project.root, recursive=True, source=context.profile_name)

        selector = SourceSelector(self.project, context.profile)
        files = selector.discover()
        context.reset_registry()

        result = BuildResult(profile=context.profile_name, phase=BuildPhase.FULL_BUILD, files=files)
        if not self.create_compiler(context, selector):
            result.ok = False
            result.errors = 1
            return result
        self.compile(context, files, full_pass=True, result=result, monitor=monitor)
        return result

    # -------------------------------------------------------------------------
    # Incremental build
    # -------------------------------------------------------------------------

    def incremental_build(
        self,
        context: BuildContext,
        events: Iterable[ChangeEvent],
        monitor: ProgressMonitor | None = None,
    ) -> BuildResult:
        monitor = monitor or ProgressMonitor()
        if self.source_model is None:
            logger.info("no source model available, running a full build instead")
            return self.full_build(context, monitor)

        self._enter(BuildPhase.INCREMENTAL_BUILD, context)
        selector = SourceSelector(self.project, context.profile)
        resolver = ChangeSetResolver(context, selector, self.source_model, self.annotations)
        resolution = resolver.resolve(events)

        if isinstance(resolution, FullRebuildRequired):
            clean_outputs(self.project, context.profile, self.annotations, source=context.profile_name)
            return self.full_build(context, monitor)

        files = list(resolution.files)
        for file in files:
            self.annotations.delete(file, source=context.profile_name)
        self.annotations.delete(self.project.root, source=context.profile_name)

        result = BuildResult(profile=context.profile_name, phase=BuildPhase.INCREMENTAL_BUILD, files=files)
        if context.compiler is None and not self.create_compiler(context, selector):
            result.ok = False
            result.errors = 1
            return result
        self.compile(context, files, full_pass=False, result=result, monitor=monitor)
        return result

    # -------------------------------------------------------------------------
    # Compiler handling
    # -------------------------------------------------------------------------

    def resolve_options(self, context: BuildContext, selector: SourceSelector) -> CompilerOptions:
        project, profile = self.project, context.profile
        classpath = project.resolved_classpath() + [project.location(c) for c in profile.classpath]
        logger.info(f"compiling with classpath: {[str(p) for p in classpath]}")

        js_output_dir = project.location(profile.js_output_dir)
        if profile.bundle and profile.bundles_dir:
            js_output_dir = project.location(profile.bundles_dir)

        return CompilerOptions(
            project_root=project.root,
            working_dir=project.working_dir,
            ts_output_dir=project.location(profile.ts_output_dir),
            js_output_dir=js_output_dir,
            lib_js_output_dir=project.location(profile.lib_js_output_dir),
            source_roots=selector.search_roots(),
            classpath=classpath,
            module_kind=profile.module_kind,
            generate_js=not profile.no_js,
            preserve_line_numbers=profile.debug,
            bundle=profile.bundle,
            declarations=profile.declarations,
            declarations_dir=project.location(profile.declarations_dir) if profile.declarations_dir else None,
            runtime_home=detect_runtime_home(classpath),
            watch_mode=context.watch_mode,
        )

    def create_compiler(self, context: BuildContext, selector: SourceSelector) -> bool:
        """
        (Re)create the context's compiler handle.

        Returns:
            False if the compiler runtime is missing; a project annotation
            explains why.
        """
        if context.watch_mode and context.compiler is not None:
            logger.info("stopping watch mode")
            context.compiler.set_watch_mode(False)

        options = self.resolve_options(context, selector)
        try:
            context.compiler = self.compiler_factory.create(options)
        except MissingRuntimeError as e:
            context.compiler = None
            logger.error(f"cannot create compiler for profile {context.profile_name}: {e.message}")
            self._router(context).route(Diagnostic.runtime_not_found(e.message))
            return False

        if context.watch_mode:
            context.compiler.set_watch_mode(True)
        logger.info(f"created compiler: {context.compiler!r}")
        return True

    def compile(
        self,
        context: BuildContext,
        files: list[Path],
        full_pass: bool,
        result: BuildResult,
        monitor: ProgressMonitor | None = None,
    ) -> None:
        if context.compiler is None or not files:
            return
        if monitor is not None:
            monitor.check_canceled()

        logger.info(f"compiling {len(files)} file(s): {[str(f) for f in files]}")
        context.record(files)
        reporter = BuildReporter(context, self._router(context), full_pass)
        try:
            context.compiler.compile(files, reporter)
        except MissingRuntimeError as e:
            reporter.report(Diagnostic.runtime_not_found(e.message))
            result.ok = False
        except Exception as e:
            logger.error(f"cannot compile: {e}", exc_info=True)
            reporter.report(Diagnostic(message=f"compilation failed: {e}", problem=ProblemKind.BUILD_FAILED))
            result.ok = False
        result.errors += reporter.errors
        result.warnings += reporter.warnings

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Forget all build state; the next build starts from scratch."""
        self.contexts.discard(self.project)

    def close(self) -> None:
        self.contexts.discard(self.project)
        self.project.close()
