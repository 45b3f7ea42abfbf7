"""Resolve, fetch and rewrite npm packages into a closed set of Oracle MLE modules."""

from .entry_points import DEFAULT_ENTRY_POINTS
from .entry_points import EntryPointOverride
from .entry_points import EntryPointRegistry
from .entry_points import StaticEntryPointRegistry
from .errors import DependencyListError
from .errors import FetchError
from .errors import MalformedIdentifierError
from .errors import MleLoaderError
from .errors import NormalizationCollisionError
from .errors import SettingsError
from .errors import UnresolvedReferenceWarning
from .identifiers import ModuleIdentity
from .identifiers import PackageVersionIdentifier
from .identifiers import build_dependency_set
from .identifiers import normalize_name
from .identifiers import parse_identifier
from .processor import BuildResult
from .processor import ModuleProcessor
from .processor import ModuleRecord
from .references import RewriteResult
from .references import rewrite_module

__all__ = [
    "DEFAULT_ENTRY_POINTS",
    "BuildResult",
    "DependencyListError",
    "EntryPointOverride",
    "EntryPointRegistry",
    "FetchError",
    "MalformedIdentifierError",
    "MleLoaderError",
    "ModuleIdentity",
    "ModuleProcessor",
    "ModuleRecord",
    "NormalizationCollisionError",
    "PackageVersionIdentifier",
    "RewriteResult",
    "SettingsError",
    "StaticEntryPointRegistry",
    "UnresolvedReferenceWarning",
    "build_dependency_set",
    "normalize_name",
    "parse_identifier",
    "rewrite_module",
]
