"""Recursive module processing.

Walks the dependency set, fetching and rewriting each module, and follows
secondary entry points discovered during rewriting. Each identity triple is
processed at most once per run. A module's artifacts are finalized only after
every entry point it references has been finalized, so the environment's
import list is ordered children-first.
"""

from __future__ import annotations

import logging
import threading
import warnings
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from pathlib import PurePath

from .entry_points import EntryPointRegistry
from .errors import NormalizationCollisionError
from .errors import UnresolvedReferenceWarning
from .fetcher import ModuleFetcher
from .identifiers import ModuleIdentity
from .identifiers import PackageVersionIdentifier
from .identifiers import normalize_name
from .references import rewrite_module

logger = logging.getLogger(__name__)


class ModuleState(str, Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    REWRITING = "rewriting"
    WRITTEN = "written"


@dataclass
class ModuleRecord:
    """A module scheduled during a run, and what became of it."""

    identity: ModuleIdentity
    source_text: str = ""
    rewritten_text: str = ""
    unresolved_references: list[str] = field(default_factory=list)
    state: ModuleState = ModuleState.PENDING

    @property
    def logical_name(self) -> str:
        return self.identity.logical_name

    @property
    def original_name(self) -> str:
        return self.identity.original_name

    @property
    def version(self) -> str:
        return self.identity.version

    @property
    def relative_path(self) -> str | None:
        return self.identity.relative_path


@dataclass(frozen=True)
class UnresolvedReport:
    """CDN paths that survived rewriting in one module."""

    logical_name: str
    references: tuple[str, ...]

    def __str__(self) -> str:
        return f"{self.logical_name}: {', '.join(self.references)}"


@dataclass(frozen=True)
class BuildResult:
    """Read-only view of a finished run, consumed by the script assembler."""

    root_name: str
    table_name: str
    records: tuple[ModuleRecord, ...]
    load_instructions: tuple[str, ...]
    create_statements: tuple[str, ...]
    drop_statements: tuple[str, ...]
    env_imports: tuple[str, ...]
    unresolved: tuple[UnresolvedReport, ...]

    @property
    def env_name(self) -> str:
        return f"{self.root_name}_env"


class BuildContext:
    """Append-only artifact collections owned by a single run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._visited: set[tuple[str, str, str | None]] = set()
        self.records: list[ModuleRecord] = []
        self.load_instructions: list[str] = []
        self.create_statements: list[str] = []
        self.drop_statements: list[str] = []
        self.env_imports: list[str] = []
        self.unresolved: list[UnresolvedReport] = []

    def claim(self, identity: ModuleIdentity) -> bool:
        """Mark ``identity`` as scheduled. False if it already was."""
        with self._lock:
            if identity.key in self._visited:
                return False
            self._visited.add(identity.key)
            return True

    def is_claimed(self, identity: ModuleIdentity) -> bool:
        with self._lock:
            return identity.key in self._visited

    def add_module(self, record: ModuleRecord, load: str, create: str, drop: str, env_import: str) -> None:
        with self._lock:
            self.records.append(record)
            self.load_instructions.append(load)
            self.create_statements.append(create)
            self.drop_statements.append(drop)
            self.env_imports.append(env_import)
            if record.unresolved_references:
                self.unresolved.append(UnresolvedReport(record.logical_name, tuple(record.unresolved_references)))

    def add_statements(self, create: str, drop: str) -> None:
        with self._lock:
            self.create_statements.append(create)
            self.drop_statements.append(drop)


def load_instruction(js_path: PurePath, record: ModuleRecord) -> str:
    return f'loadModule("{js_path.as_posix()}", "{record.logical_name}", "{record.version}");\n'


def create_module_statement(record: ModuleRecord, table_name: str) -> str:
    name = record.logical_name
    version = record.version
    return (
        f"create or replace mle module {name}\n"
        f"language javascript\n"
        f"version '{version}'\n"
        f"using blob(select module_content from {table_name} "
        f"where module_name = '{name}' and module_version = '{version}')\n"
        f"/\n\n"
    )


def drop_module_statement(record: ModuleRecord) -> str:
    return f"drop mle module {record.logical_name};\n"


def env_import_entry(record: ModuleRecord) -> str:
    return f"'{record.logical_name}' module {record.logical_name}"


def create_env_statement(env_name: str, env_imports: Sequence[str]) -> str:
    imports = ",\n".join(env_imports)
    return f"create or replace mle env {env_name}\nimports (\n{imports}\n);\n\n"


def drop_env_statement(env_name: str) -> str:
    return f"drop mle env {env_name};\n"


def check_logical_names(dependency_set: Sequence[PackageVersionIdentifier], registry: EntryPointRegistry) -> None:
    """Ensure every module that can be published in this run has its own name.

    Raises:
        NormalizationCollisionError: An entry point reuses a dependency's
            module name or another entry point's name
    """
    owners = {dep.normalized_name: str(dep) for dep in dependency_set}
    for dep in dependency_set:
        for override in registry.lookup(dep.original_name):
            owner = f"{dep}/{override.relative_path}"
            previous = owners.setdefault(override.logical_name, owner)
            if previous != owner:
                raise NormalizationCollisionError(override.logical_name, previous, owner)


@dataclass
class _Frame:
    record: ModuleRecord
    pending: list[ModuleIdentity]


class ModuleProcessor:
    """Fetches, rewrites and records every module of one run."""

    def __init__(
        self,
        fetcher: ModuleFetcher,
        registry: EntryPointRegistry,
        table_name: str,
        js_dir: PurePath,
    ):
        """Initialize the processor.

        Args:
            fetcher: Source of raw module text
            registry: Secondary entry-point lookup
            table_name: Staging table the create statements select from
            js_dir: Directory the assembler writes module files to; load
                instructions refer to files inside it
        """
        self.fetcher = fetcher
        self.registry = registry
        self.table_name = table_name
        self.js_dir = js_dir
        self.context = BuildContext()
        self._dependency_set: list[PackageVersionIdentifier] = []

    def run(self, root_name: str, dependency_set: Sequence[PackageVersionIdentifier]) -> BuildResult:
        """Process every dependency in list order and build the environment.

        Raises:
            FetchError: A module could not be retrieved; nothing is returned
            NormalizationCollisionError: Two modules would share a name
        """
        self._dependency_set = list(dependency_set)
        check_logical_names(self._dependency_set, self.registry)

        for ident in self._dependency_set:
            logger.info(f"Processing {ident}")
            self.process_module(ModuleIdentity.primary(ident))

        env_name = f"{normalize_name(root_name)}_env"
        self.context.add_statements(
            create_env_statement(env_name, self.context.env_imports),
            drop_env_statement(env_name),
        )

        if self.context.unresolved:
            summary = "\n".join(str(report) for report in self.context.unresolved)
            logger.warning(f"Not all module references were rewritten. Please review\n{summary}")

        return BuildResult(
            root_name=normalize_name(root_name),
            table_name=self.table_name,
            records=tuple(self.context.records),
            load_instructions=tuple(self.context.load_instructions),
            create_statements=tuple(self.context.create_statements),
            drop_statements=tuple(self.context.drop_statements),
            env_imports=tuple(self.context.env_imports),
            unresolved=tuple(self.context.unresolved),
        )

    def process_module(self, identity: ModuleIdentity) -> None:
        """Process ``identity`` and, depth-first, every entry point it references.

        Identities already claimed in this run are skipped.
        """
        if not self.context.claim(identity):
            logger.debug(f"Already processed {identity}")
            return

        stack = [self._open(identity)]
        while stack:
            frame = stack[-1]
            child = None
            while frame.pending and child is None:
                candidate = frame.pending.pop(0)
                if self.context.claim(candidate):
                    child = candidate
            if child is not None:
                stack.append(self._open(child))
                continue

            stack.pop()
            self._finalize(frame.record)

    def _open(self, identity: ModuleIdentity) -> _Frame:
        record = ModuleRecord(identity=identity)

        record.state = ModuleState.FETCHING
        record.source_text = self.fetcher.fetch(identity)

        record.state = ModuleState.REWRITING
        result = rewrite_module(identity, record.source_text, self._dependency_set, self.registry)
        record.rewritten_text = result.text
        record.unresolved_references = result.unresolved

        return _Frame(record=record, pending=list(result.obligations))

    def _finalize(self, record: ModuleRecord) -> None:
        js_path = self.js_dir / f"{record.logical_name}.js"
        self.context.add_module(
            record,
            load=load_instruction(js_path, record),
            create=create_module_statement(record, self.table_name),
            drop=drop_module_statement(record),
            env_import=env_import_entry(record),
        )
        record.state = ModuleState.WRITTEN

        if record.unresolved_references:
            warnings.warn(
                f"{record.logical_name} still references {', '.join(record.unresolved_references)}",
                UnresolvedReferenceWarning,
                stacklevel=2,
            )
