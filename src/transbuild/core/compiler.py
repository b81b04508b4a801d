"""
Compiler boundary.

The transpiler is consumed as a black box: it is created from resolved
options, handed batches of source files, and reports diagnostics through a
sink. One implementation is provided:

- SubprocessCompiler: runs the command configured in transbuild.toml and
  parses ``file:line:col: severity: message`` lines from its output
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from .diagnostics import Diagnostic, Positioned, ProblemKind, Unpositioned
from .errors import CompilerError, MissingRuntimeError
from .manifest import CompilerConfig, ModuleKind
from .markers import Severity

logger = logging.getLogger(__name__)


# =============================================================================
# Records and options
# =============================================================================


@dataclass(frozen=True)
class SourceRecord:
    """A compiled source file and the artifacts generated from it."""

    source_file: Path
    ts_file: Path | None = None
    js_file: Path | None = None
    js_map_file: Path | None = None

    @property
    def outputs(self) -> list[Path]:
        return [p for p in (self.ts_file, self.js_file, self.js_map_file) if p is not None]


@dataclass
class CompilerOptions:
    """Everything a compiler needs to know about one profile build."""

    project_root: Path
    working_dir: Path
    ts_output_dir: Path
    js_output_dir: Path
    lib_js_output_dir: Path
    source_roots: list[Path] = field(default_factory=list)
    classpath: list[Path] = field(default_factory=list)
    module_kind: ModuleKind = ModuleKind.NONE
    generate_js: bool = True
    preserve_line_numbers: bool = False
    bundle: bool = False
    declarations: bool = False
    declarations_dir: Path | None = None
    runtime_home: Path | None = None
    watch_mode: bool = False

    def source_record(self, source: Path) -> SourceRecord:
        """Derive artifact paths from the file's position under its source root."""
        relative = Path(source.name)
        for root in self.source_roots:
            if source.is_relative_to(root):
                relative = source.relative_to(root)
                break
        js_file = self.js_output_dir / relative.with_suffix(".js")
        return SourceRecord(
            source_file=source,
            ts_file=self.ts_output_dir / relative.with_suffix(".ts"),
            js_file=js_file if self.generate_js else None,
            js_map_file=js_file.with_name(js_file.name + ".map") if self.generate_js else None,
        )


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class DiagnosticSink(Protocol):
    """Receives the results of one compile invocation."""

    def report(self, diagnostic: Diagnostic) -> None:
        ...

    def on_completed(self, records: list[SourceRecord]) -> None:
        ...


@runtime_checkable
class Compiler(Protocol):
    """A live compiler handle."""

    options: CompilerOptions

    def compile(self, files: list[Path], sink: DiagnosticSink) -> None:
        ...

    def set_watch_mode(self, enabled: bool) -> None:
        ...

    def reset_watch_mode(self) -> None:
        ...

    def get_watched_file(self, file: Path) -> SourceRecord | None:
        ...


class CompilerFactory(Protocol):
    """Creates compiler handles; raises MissingRuntimeError when it cannot."""

    def create(self, options: CompilerOptions) -> Compiler:
        ...


# =============================================================================
# Subprocess compiler
# =============================================================================

_LOCATED_RE = re.compile(
    r"^(?P<file>.+?):(?P<line>\d+):(?:(?P<col>\d+)(?:-(?P<end>\d+))?:)?\s*"
    r"(?P<severity>error|warning):\s*(?P<message>.*)$",
    re.IGNORECASE,
)
_BARE_RE = re.compile(r"^(?P<severity>error|warning):\s*(?P<message>.*)$", re.IGNORECASE)


def line_start_offsets(file: Path) -> list[int] | None:
    """Character offset of the first character of each line, or None if unreadable."""
    try:
        text = file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    offsets = [0]
    for i, ch in enumerate(text):
        if ch == "\n":
            offsets.append(i + 1)
    return offsets


def parse_diagnostic_line(line: str, cwd: Path) -> Diagnostic | None:
    """
    Parse one line of compiler output.

    Columns are 1-indexed and converted to file character offsets when the
    file can be read.
    """
    line = line.rstrip()
    if match := _LOCATED_RE.match(line):
        severity = Severity(match.group("severity").lower())
        file = Path(match.group("file"))
        if not file.is_absolute():
            file = cwd / file
        line_no = int(match.group("line"))
        start = end = -1
        col = match.group("col")
        if col is not None:
            offsets = line_start_offsets(file)
            if offsets is not None and 0 < line_no <= len(offsets):
                start = offsets[line_no - 1] + int(col) - 1
                end_col = match.group("end")
                end = offsets[line_no - 1] + int(end_col) - 1 if end_col else start + 1
        return Diagnostic(
            message=match.group("message"),
            severity=severity,
            position=Positioned(file=file, line=line_no, start_offset=start, end_offset=end),
        )
    if match := _BARE_RE.match(line):
        return Diagnostic(
            message=match.group("message"),
            severity=Severity(match.group("severity").lower()),
            position=Unpositioned(),
        )
    return None


class SubprocessCompiler:
    """Invokes an external transpiler command once per batch of files."""

    def __init__(self, options: CompilerOptions, command: list[str], timeout: float | None = None) -> None:
        self.options = options
        self.command = command
        self.timeout = timeout
        self.watch_mode = False
        self._watched: dict[Path, SourceRecord] = {}

    def _placeholders(self) -> dict[str, str]:
        o = self.options
        return {
            "project_root": str(o.project_root),
            "working_dir": str(o.working_dir),
            "ts_output_dir": str(o.ts_output_dir),
            "js_output_dir": str(o.js_output_dir),
            "lib_js_output_dir": str(o.lib_js_output_dir),
            "module_kind": o.module_kind.value,
            "classpath": os.pathsep.join(str(p) for p in o.classpath),
            "declarations_dir": str(o.declarations_dir or o.ts_output_dir),
            "runtime_home": str(o.runtime_home or ""),
        }

    def build_argv(self, files: list[Path]) -> list[str]:
        values = self._placeholders()
        argv: list[str] = []
        for token in self.command:
            if token == "{files}":
                argv.extend(str(f) for f in files)
            else:
                argv.append(token.format(**values))
        if "{files}" not in self.command:
            argv.extend(str(f) for f in files)
        return argv

    def compile(self, files: list[Path], sink: DiagnosticSink) -> None:
        argv = self.build_argv(files)
        logger.debug(f"running {argv}")
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                cwd=self.options.project_root,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise MissingRuntimeError(f"transpiler executable not found: {argv[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise CompilerError(f"transpiler timed out after {self.timeout}s") from e

        reported = 0
        for line in (result.stdout + "\n" + result.stderr).splitlines():
            diagnostic = parse_diagnostic_line(line, self.options.project_root)
            if diagnostic is not None:
                sink.report(diagnostic)
                reported += 1

        if result.returncode != 0 and reported == 0:
            tail = (result.stderr or result.stdout).strip().splitlines()[-1:] or [""]
            sink.report(
                Diagnostic(
                    message=f"transpiler exited with status {result.returncode}: {tail[0]}",
                    problem=ProblemKind.BUILD_FAILED,
                )
            )

        records = [self.options.source_record(f) for f in files]
        if self.watch_mode:
            self._watched.update({r.source_file: r for r in records})
        sink.on_completed(records)

    def set_watch_mode(self, enabled: bool) -> None:
        self.watch_mode = enabled
        if not enabled:
            self._watched.clear()

    def reset_watch_mode(self) -> None:
        logger.info("resetting watch mode")
        self._watched.clear()

    def get_watched_file(self, file: Path) -> SourceRecord | None:
        return self._watched.get(file)

    def __repr__(self) -> str:
        return f"SubprocessCompiler({self.command!r})"


class SubprocessCompilerFactory:
    """Creates SubprocessCompiler handles from the manifest's [compiler] table."""

    def __init__(self, config: CompilerConfig) -> None:
        self.config = config

    def create(self, options: CompilerOptions) -> SubprocessCompiler:
        if not self.config.command:
            raise MissingRuntimeError("no transpiler command configured ([compiler] command)")
        executable = self.config.command[0]
        if shutil.which(executable) is None and not Path(executable).is_file():
            raise MissingRuntimeError(f"transpiler executable not found: {executable}")
        return SubprocessCompiler(options, list(self.config.command), self.config.timeout)
