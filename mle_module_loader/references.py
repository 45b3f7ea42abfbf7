"""Cross-module reference rewriting.

Bundles served by the CDN import their dependencies through absolute CDN
paths such as ``/npm/entities@4.5.0/+esm``. MLE modules import each other by
module name, so every such path is replaced by the logical name the
referenced module is published under. Paths to secondary entry points
(``/npm/entities@4.5.0/lib/decode.js/+esm``) are replaced by the override's
logical name and reported back as obligations so the caller can load that
entry point too.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field

from .entry_points import ESM_SUFFIX
from .entry_points import EntryPointRegistry
from .identifiers import ModuleIdentity
from .identifiers import PackageVersionIdentifier

logger = logging.getLogger(__name__)

# Matches any CDN module path, resolved or not.
MODULE_SPECIFIER_RE = re.compile(r"/npm/.+?/\+esm")


def reference_pattern(original_name: str, version: str, relative_path: str | None = None) -> str:
    """The literal text a bundle uses to import ``original_name@version``."""
    base = f"/npm/{original_name}@{version}"
    if relative_path:
        return f"{base}/{relative_path}{ESM_SUFFIX}"
    return f"{base}{ESM_SUFFIX}"


def find_unresolved(text: str) -> list[str]:
    """Distinct CDN module paths remaining in ``text``, in order of appearance."""
    return list(dict.fromkeys(match.group(0) for match in MODULE_SPECIFIER_RE.finditer(text)))


@dataclass
class RewriteResult:
    """Outcome of rewriting one module's source."""

    text: str
    obligations: list[ModuleIdentity] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return not self.unresolved


def rewrite_module(
    target: ModuleIdentity,
    source_text: str,
    dependency_set: Sequence[PackageVersionIdentifier],
    registry: EntryPointRegistry,
) -> RewriteResult:
    """Replace CDN import paths in ``source_text`` with logical module names.

    Args:
        target: Identity of the module being rewritten
        source_text: Raw bundle text as served by the CDN
        dependency_set: Every package in the run
        registry: Secondary entry-point lookup

    Returns:
        RewriteResult with the rewritten text, the secondary entry points the
        text referenced (one per identity triple), and any CDN paths left over.
    """
    text = source_text
    obligations: dict[tuple[str, str, str | None], ModuleIdentity] = {}

    for dep in dependency_set:
        primary = ModuleIdentity.primary(dep)
        if primary.key != target.key:
            text = text.replace(reference_pattern(dep.original_name, dep.version), dep.normalized_name)

        # Override paths are a different literal, so check them even when the
        # plain reference was absent.
        for override in registry.lookup(dep.original_name):
            secondary = ModuleIdentity(
                original_name=dep.original_name,
                version=dep.version,
                logical_name=override.logical_name,
                relative_path=override.relative_path,
            )
            if secondary.key == target.key:
                continue

            before = text
            text = text.replace(
                reference_pattern(dep.original_name, dep.version, override.relative_path),
                override.logical_name,
            )
            if text != before and secondary.key not in obligations:
                logger.info(f"{target.logical_name} references entry point {secondary} as {override.logical_name}")
                obligations[secondary.key] = secondary

    unresolved = find_unresolved(text)
    if unresolved:
        logger.debug(f"{target.logical_name}: {len(unresolved)} unresolved reference(s)")

    return RewriteResult(text=text, obligations=list(obligations.values()), unresolved=unresolved)
