"""End-to-end build: list, normalize, process, assemble."""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .assembler import ScriptAssembler
from .assembler import WrittenScripts
from .assembler import new_staging_table_name
from .entry_points import EntryPointRegistry
from .enumerator import DependencyEnumerator
from .fetcher import CdnModuleFetcher
from .fetcher import ModuleFetcher
from .identifiers import build_dependency_set
from .identifiers import normalize_name
from .logging_setup import forced_info
from .logging_setup import init_json_logging
from .processor import BuildResult
from .processor import ModuleProcessor
from .settings import LoaderSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildOutcome:
    result: BuildResult
    scripts: WrittenScripts


def prepare_output_dir(package_name: str, output_dir: Path | None) -> Path:
    """Use ``output_dir`` if given, otherwise a fresh temporary directory."""
    if output_dir is None:
        return Path(tempfile.mkdtemp(prefix=f"{normalize_name(package_name)}-"))
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def build_package(
    package_name: str,
    settings: LoaderSettings,
    *,
    output_dir: Path | None = None,
    enumerator: DependencyEnumerator | None = None,
    fetcher: ModuleFetcher | None = None,
    registry: EntryPointRegistry | None = None,
) -> BuildOutcome:
    """Produce install/remove scripts for ``package_name`` and its dependencies.

    Collaborators default to the ones described by ``settings``; tests pass
    their own.

    Raises:
        MleLoaderError: Listing, parsing or fetching failed. No scripts are
            written in that case.
    """
    target_dir = prepare_output_dir(package_name, output_dir or settings.output_dir)
    init_json_logging(target_dir)
    logger.info(f"Building {package_name} into {target_dir}")

    enumerator = enumerator or DependencyEnumerator(settings.lister_command)
    packages = enumerator.list_dependencies(package_name)
    forced_info(logger, f"Found dependency list: {', '.join(packages)}")
    dependency_set = build_dependency_set(packages)

    registry = registry or settings.build_registry()
    table_name = new_staging_table_name()
    logger.info(f'Table to load modules to "{table_name}"')

    assembler = ScriptAssembler(target_dir)
    owns_fetcher = fetcher is None
    if fetcher is None:
        fetcher = CdnModuleFetcher(
            base_url=settings.cdn_base_url,
            timeout=settings.request_timeout,
            retries=settings.fetch_retries,
            backoff=settings.retry_backoff,
        )
    try:
        processor = ModuleProcessor(fetcher, registry, table_name, assembler.js_dir)
        result = processor.run(package_name, dependency_set)
    finally:
        if owns_fetcher:
            fetcher.close()

    scripts = assembler.write(result)
    forced_info(logger, f"Run {scripts.install_script} to compile MLE objects to the database.")
    return BuildOutcome(result=result, scripts=scripts)
