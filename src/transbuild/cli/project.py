"""
Project commands for transbuild CLI.

- build: Incremental (or full) build of every profile
- clean: Delete generated files and build state
- rebuild: Clean, then full build
- status: Show profiles, sources and pending changes
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from transbuild.core.changes import ChangeEvent
from transbuild.core.compiler import line_start_offsets
from transbuild.core.errors import StateError, TranspileBuildError
from transbuild.core.fileset import SourceSelector, discover_project_sources, discover_source_files
from transbuild.core.manifest import MANIFEST_NAME
from transbuild.core.markers import Annotation, AnnotationStore
from transbuild.core.orchestrator import BuildKind, BuildResult
from transbuild.core.scheduler import JobOutcome, JobScheduler
from transbuild.core.state import BuildState, clear_state, detect_changes, load_state, save_state
from transbuild.core.workspace import Project, Workspace

console = Console()


# =============================================================================
# Helper Functions
# =============================================================================


def _load_project(manifest: str) -> Project:
    manifest_path = Path(manifest).resolve()
    try:
        return Project.load(manifest_path.parent, manifest_path)
    except TranspileBuildError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


def _load_state_or_none(project: Project) -> BuildState | None:
    try:
        return load_state(project.root)
    except StateError as e:
        typer.echo(f"Ignoring unreadable build state: {e.message}", err=True)
        return None


def _check_profiles(project: Project, profiles: list[str] | None) -> None:
    unknown = [p for p in profiles or [] if p not in project.manifest.profile_names]
    if unknown:
        available = ", ".join(project.manifest.profile_names)
        typer.echo(f"Error: unknown profile(s) {', '.join(unknown)} (available: {available})", err=True)
        raise typer.Exit(code=1)


def _column(annotation: Annotation) -> int:
    if annotation.char_start is None or annotation.line is None:
        return 1
    offsets = line_start_offsets(annotation.resource)
    if offsets is None or annotation.line > len(offsets):
        return 1
    return max(annotation.char_start - offsets[annotation.line - 1] + 1, 1)


def _print_vscode_diagnostics(annotations: AnnotationStore, project: Project) -> None:
    """
    Print annotations in VS Code format: file:line:col: severity: message

    Project-level annotations are reported against the manifest.
    """
    for annotation in annotations.all():
        if annotation.resource == project.root:
            location = f"{MANIFEST_NAME}:1:1"
        else:
            try:
                rel_path = annotation.resource.relative_to(project.root)
            except ValueError:
                rel_path = annotation.resource
            location = f"{rel_path.as_posix()}:{annotation.line or 1}:{_column(annotation)}"
        typer.echo(f"{location}: {annotation.severity.value}: {annotation.message}", err=True)


def _print_human_diagnostics(annotations: AnnotationStore, project: Project) -> None:
    for annotation in annotations.all():
        style = "red" if annotation.is_error else "yellow"
        where = project.name if annotation.resource == project.root else str(annotation.resource)
        if annotation.line:
            where += f":{annotation.line}"
        console.print(
            f"[{style}]{annotation.severity.value.upper()}[/{style}] {escape(where)}: {escape(annotation.message)}"
        )


def _print_results(results: list[BuildResult]) -> None:
    for result in results:
        mode = result.phase.value.replace("_", " ")
        typer.echo(
            f"[{result.profile}] {mode}: {len(result.files)} file(s), "
            f"{result.errors} error(s), {result.warnings} warning(s)"
        )


def _report(outcome: JobOutcome, annotations: AnnotationStore, project: Project, format: str) -> bool:
    """Print the job's results; returns True if the job succeeded without errors."""
    for results in outcome.results.values():
        _print_results(results)
    if format == "vscode":
        _print_vscode_diagnostics(annotations, project)
    else:
        _print_human_diagnostics(annotations, project)
    if outcome.error:
        typer.echo(f"Error: {outcome.error}", err=True)
    return outcome.ok and not annotations.errors()


def _plan_build(project: Project, files: list[Path], full: bool) -> tuple[BuildKind, list[ChangeEvent] | None]:
    """Full build when forced or when no previous state exists; otherwise the changes since."""
    if full:
        return BuildKind.FULL, None
    state = _load_state_or_none(project)
    if state is None:
        return BuildKind.FULL, None
    return BuildKind.AUTO, detect_changes(project, files, state)


# =============================================================================
# Commands
# =============================================================================


def build_command(
    manifest: str = typer.Option(MANIFEST_NAME, "--manifest", "-m", help="Path to transbuild.toml"),
    full: bool = typer.Option(False, "--full", help="Force a full build (ignore previous state)"),
    profile: list[str] | None = typer.Option(
        None, "--profile", "-p", help="Build only this profile (repeatable)"
    ),
    format: str = typer.Option("human", "--format", "-f", help="Output format: 'human' or 'vscode'"),
) -> None:
    """
    Build the project.

    Only files changed since the last build (and the files related to them
    through their type hierarchy) are compiled, unless --full is given or no
    previous build state exists.
    """
    project = _load_project(manifest)
    if not project.build_enabled:
        typer.echo(f"Builds are disabled for {project.name} (build_enabled = false)")
        return
    _check_profiles(project, profile)

    files = discover_project_sources(project)
    kind, events = _plan_build(project, files, full)
    if events is not None and not events:
        typer.echo("No changes detected since last build.")
        return
    if events:
        typer.echo(f"{len(events)} change(s) since last build")

    annotations = AnnotationStore()
    with JobScheduler(Workspace(project.root, [project]), annotations=annotations) as scheduler:
        outcome = scheduler.schedule_build(project, kind, events=events, profiles=profile).result()

    ok = _report(outcome, annotations, project, format)
    try:
        if not ok:
            # Failed files must be recompiled next time
            clear_state(project.root)
        elif not profile:
            save_state(project, files)
    except (StateError, OSError) as e:
        typer.echo(f"Warning: could not update build state: {e}", err=True)

    if not ok:
        raise typer.Exit(code=1)


def clean_command(
    manifest: str = typer.Option(MANIFEST_NAME, "--manifest", "-m", help="Path to transbuild.toml"),
) -> None:
    """Delete generated files, problem annotations and build state."""
    project = _load_project(manifest)
    annotations = AnnotationStore()
    with JobScheduler(Workspace(project.root, [project]), annotations=annotations) as scheduler:
        outcome = scheduler.schedule_clean(project).result()
    if not outcome.ok:
        typer.echo(f"Error: {outcome.error}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Cleaned {project.name}")


def rebuild_command(
    manifest: str = typer.Option(MANIFEST_NAME, "--manifest", "-m", help="Path to transbuild.toml"),
    format: str = typer.Option("human", "--format", "-f", help="Output format: 'human' or 'vscode'"),
) -> None:
    """Clean the project, then build every profile from scratch."""
    project = _load_project(manifest)
    if not project.build_enabled:
        typer.echo(f"Builds are disabled for {project.name} (build_enabled = false)")
        return

    annotations = AnnotationStore()
    with JobScheduler(Workspace(project.root, [project]), annotations=annotations) as scheduler:
        outcome = scheduler.schedule_rebuild(project).result()

    if _report(outcome, annotations, project, format):
        try:
            save_state(project, discover_project_sources(project))
        except StateError as e:
            typer.echo(f"Warning: could not update build state: {e}", err=True)
    else:
        raise typer.Exit(code=1)


def status_command(
    manifest: str = typer.Option(MANIFEST_NAME, "--manifest", "-m", help="Path to transbuild.toml"),
) -> None:
    """Show the project's profiles and what the next build would do."""
    project = _load_project(manifest)

    table = Table(title=f"Profiles of {project.name}")
    table.add_column("Profile", style="cyan")
    table.add_column("Source roots")
    table.add_column("Files", justify="right")
    table.add_column("Outputs")
    table.add_column("Module")
    table.add_column("Watch")

    for p in project.manifest.profiles:
        selector = SourceSelector(project, p)
        roots = ", ".join(
            r.relative_to(project.root).as_posix() if r.is_relative_to(project.root) else str(r)
            for r in selector.search_roots()
        )
        table.add_row(
            p.name,
            roots,
            str(len(discover_source_files(project, p))),
            f"{p.ts_output_dir} / {p.js_output_dir}" if not p.no_js else p.ts_output_dir,
            p.module_kind.value,
            "yes" if p.watch_mode else "no",
        )
    console.print(table)

    if not project.build_enabled:
        console.print("[yellow]Builds are disabled for this project[/yellow]")
        return

    state = _load_state_or_none(project)
    if state is None:
        console.print("No previous build state: the next build is a full build.")
        return

    events = detect_changes(project, discover_project_sources(project), state)
    console.print(f"Last build: [green]{state.timestamp}[/green]")
    if not events:
        console.print("No changes detected since last build.")
        return
    console.print(f"{len(events)} change(s) since last build:")
    for event in events:
        try:
            shown = event.path.relative_to(project.root).as_posix()
        except ValueError:
            shown = str(event.path)
        console.print(f"  {event.kind.value:<8} {escape(shown)}")
