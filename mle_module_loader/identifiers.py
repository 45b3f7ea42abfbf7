"""Package identifier parsing and normalization.

The lister reports dependencies as ``name@version`` tokens. MLE module names
must be valid database identifiers, so every package also carries a
normalized name in which non-alphanumeric characters become ``_``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from .errors import MalformedIdentifierError
from .errors import NormalizationCollisionError

logger = logging.getLogger(__name__)

_NON_IDENTIFIER_CHARS = re.compile(r"[^A-Za-z0-9]")


def normalize_name(name: str) -> str:
    """Replace every non-alphanumeric character in ``name`` with ``_``."""
    return _NON_IDENTIFIER_CHARS.sub("_", name)


@dataclass(frozen=True)
class PackageVersionIdentifier:
    """A single dependency as reported by the lister."""

    original_name: str
    normalized_name: str
    version: str

    def __str__(self) -> str:
        return f"{self.original_name}@{self.version}"

    @property
    def key(self) -> tuple[str, str]:
        return (self.original_name, self.version)


@dataclass(frozen=True)
class ModuleIdentity:
    """A processable module unit.

    ``relative_path`` is None for a package's default bundle entry point.
    Two identities denote the same module when their ``key`` is equal;
    ``logical_name`` is the MLE module name the unit is published under.
    """

    original_name: str
    version: str
    logical_name: str
    relative_path: str | None = None

    @classmethod
    def primary(cls, ident: PackageVersionIdentifier) -> ModuleIdentity:
        return cls(
            original_name=ident.original_name,
            version=ident.version,
            logical_name=ident.normalized_name,
        )

    @property
    def key(self) -> tuple[str, str, str | None]:
        return (self.original_name, self.version, self.relative_path)

    @property
    def is_secondary(self) -> bool:
        return self.relative_path is not None

    def __str__(self) -> str:
        base = f"{self.original_name}@{self.version}"
        if self.relative_path:
            return f"{base}/{self.relative_path}"
        return base


def parse_identifier(token: str) -> PackageVersionIdentifier:
    """Split a ``name@version`` token into a PackageVersionIdentifier.

    The split happens on the last ``@``. Scoped names are not handled
    specially.

    Raises:
        MalformedIdentifierError: No version segment, or an empty name.
    """
    token = token.strip()
    name, sep, version = token.rpartition("@")
    if not sep:
        raise MalformedIdentifierError(token)
    if not version:
        raise MalformedIdentifierError(token, "empty version")
    if not name:
        raise MalformedIdentifierError(token, "empty package name")

    return PackageVersionIdentifier(
        original_name=name,
        normalized_name=normalize_name(name),
        version=version,
    )


def build_dependency_set(tokens: Iterable[str]) -> list[PackageVersionIdentifier]:
    """Parse lister tokens into an ordered, de-duplicated dependency set.

    Duplicate ``name@version`` entries keep their first position. Every
    package is published under its normalized name, so two different
    original names that normalize to the same identifier, or one package
    listed at two versions, raise NormalizationCollisionError.
    """
    seen: set[tuple[str, str]] = set()
    owners: dict[str, str] = {}
    result: list[PackageVersionIdentifier] = []

    for token in tokens:
        ident = parse_identifier(token)
        if ident.key in seen:
            logger.debug(f"Skipping duplicate dependency {ident}")
            continue

        owner = owners.setdefault(ident.normalized_name, ident.original_name)
        if owner != ident.original_name:
            raise NormalizationCollisionError(ident.normalized_name, owner, ident.original_name)

        other = next((d for d in result if d.original_name == ident.original_name), None)
        if other is not None:
            raise NormalizationCollisionError(ident.normalized_name, str(other), str(ident))

        seen.add(ident.key)
        result.append(ident)

    return result
