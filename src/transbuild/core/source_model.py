"""
Source model boundary.

The builder only needs three read-only queries against the type graph of
the sources: which types a file declares, which types are related to a type
by inheritance, and which file declares a type. It refreshes the model once
before each round of queries.

DeclarationIndex answers them for Java-like sources by scanning
``class|interface|enum|record`` declarations and their ``extends`` and
``implements`` clauses. ``refresh`` re-scans the files whose modification
time changed; queries read the graph built by the last refresh.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class SourceModel(Protocol):
    def refresh(self) -> None:
        """Bring the model up to date with the sources before a round of queries."""
        ...

    def types_declared_in(self, file: Path) -> set[str]:
        ...

    def hierarchy_closure(self, type_name: str) -> set[str]:
        """The type, its supertypes and its subtypes, transitively."""
        ...

    def file_declaring(self, type_name: str) -> Path | None:
        ...


_COMMENT_RE = re.compile(r"//[^\n]*|/\*.*?\*/", re.DOTALL)
_STRING_RE = re.compile(r'"(?:\\.|[^"\\\n])*"')
_PACKAGE_RE = re.compile(r"^\s*package\s+([\w.]+)\s*;", re.MULTILINE)
_IMPORT_RE = re.compile(r"^\s*import\s+(?!static)([\w.]+)\s*;", re.MULTILINE)
_DECL_RE = re.compile(
    r"\b(?:class|interface|enum|record)\s+(?P<name>[A-Za-z_]\w*)(?P<header>[^{;]*)\{"
)
_GENERICS_RE = re.compile(r"<[^<>]*>")


@dataclass
class FileDeclarations:
    """What one source file declares."""

    package: str
    imports: dict[str, str]
    # declared type -> raw supertype references
    types: dict[str, list[str]] = field(default_factory=dict)
    stamp: tuple[int, int] = (0, 0)


def _strip_generics(text: str) -> str:
    previous = None
    while previous != text:
        previous = text
        text = _GENERICS_RE.sub("", text)
    return text


def _supertype_refs(header: str) -> list[str]:
    header = _strip_generics(header)
    # record components come first in parentheses
    header = re.sub(r"\([^)]*\)", " ", header)
    refs: list[str] = []
    for keyword in ("extends", "implements"):
        match = re.search(rf"\b{keyword}\b(.*?)(?=\bextends\b|\bimplements\b|\bpermits\b|$)", header, re.DOTALL)
        if match:
            refs.extend(r.strip() for r in match.group(1).split(",") if r.strip())
    return [r.split()[-1] for r in refs]


def scan_declarations(text: str) -> FileDeclarations:
    """Extract package, imports and type declarations from source text."""
    text = _STRING_RE.sub('""', _COMMENT_RE.sub(" ", text))
    package_match = _PACKAGE_RE.search(text)
    package = package_match.group(1) if package_match else ""
    imports = {name.rsplit(".", 1)[-1]: name for name in _IMPORT_RE.findall(text)}
    declarations = FileDeclarations(package=package, imports=imports)
    for match in _DECL_RE.finditer(text):
        name = match.group("name")
        qualified = f"{package}.{name}" if package else name
        declarations.types[qualified] = _supertype_refs(match.group("header"))
    return declarations


class DeclarationIndex:
    """A SourceModel built from the current contents of a set of files."""

    def __init__(self, files: Callable[[], Iterable[Path]]) -> None:
        self._files_provider = files
        self._files: dict[Path, FileDeclarations] = {}
        self._declaring: dict[str, Path] = {}
        self._supers: dict[str, set[str]] = {}
        self._subs: dict[str, set[str]] = {}
        self._synced = False

    @classmethod
    def of(cls, files: Iterable[Path]) -> DeclarationIndex:
        fixed = list(files)
        return cls(lambda: fixed)

    # -------------------------------------------------------------------------
    # Index maintenance
    # -------------------------------------------------------------------------

    def refresh(self) -> None:
        current = {f.resolve() for f in self._files_provider()}
        dirty = False
        for gone in set(self._files) - current:
            del self._files[gone]
            dirty = True
        for file in current:
            try:
                stat = file.stat()
            except OSError:
                if self._files.pop(file, None) is not None:
                    dirty = True
                continue
            known = self._files.get(file)
            stamp = (stat.st_mtime_ns, stat.st_size)
            if known is not None and known.stamp == stamp:
                continue
            try:
                declarations = scan_declarations(file.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"cannot scan {file}: {e}")
                continue
            declarations.stamp = stamp
            self._files[file] = declarations
            dirty = True
        if dirty:
            self._rebuild_graph()
        self._synced = True

    def _ensure_synced(self) -> None:
        if not self._synced:
            self.refresh()

    def _resolve_ref(self, ref: str, owner: FileDeclarations) -> str | None:
        if ref in self._declaring:
            return ref
        head, _, rest = ref.partition(".")
        if head in owner.imports:
            candidate = owner.imports[head] + (f".{rest}" if rest else "")
            if candidate in self._declaring:
                return candidate
        same_package = f"{owner.package}.{ref}" if owner.package else ref
        if same_package in self._declaring:
            return same_package
        simple = ref.rsplit(".", 1)[-1]
        for name in self._declaring:
            if name.rsplit(".", 1)[-1] == simple:
                return name
        return None

    def _rebuild_graph(self) -> None:
        self._declaring = {}
        for file in sorted(self._files):
            for type_name in self._files[file].types:
                self._declaring.setdefault(type_name, file)
        self._supers = {name: set() for name in self._declaring}
        self._subs = {name: set() for name in self._declaring}
        for declarations in self._files.values():
            for type_name, refs in declarations.types.items():
                for ref in refs:
                    target = self._resolve_ref(ref, declarations)
                    if target is None or target == type_name:
                        continue
                    self._supers[type_name].add(target)
                    self._subs[target].add(type_name)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def types_declared_in(self, file: Path) -> set[str]:
        self._ensure_synced()
        declarations = self._files.get(file.resolve())
        return set(declarations.types) if declarations else set()

    def hierarchy_closure(self, type_name: str) -> set[str]:
        self._ensure_synced()
        closure = {type_name}
        for edges in (self._supers, self._subs):
            queue = deque([type_name])
            seen = {type_name}
            while queue:
                current = queue.popleft()
                for related in edges.get(current, ()):
                    if related not in seen:
                        seen.add(related)
                        queue.append(related)
            closure |= seen
        return closure

    def file_declaring(self, type_name: str) -> Path | None:
        self._ensure_synced()
        return self._declaring.get(type_name)
