"""Secondary entry-point registry.

Most packages expose a single bundle entry point, but some consumers import
an alternate path inside a dependency (for example ``entities/lib/decode.js``).
Each such path is loaded as its own MLE module under a designated logical
name. The registry maps an original package name to those overrides.
"""

from __future__ import annotations

from collections.abc import Iterable
from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any
from typing import Protocol

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

from .identifiers import normalize_name

ESM_SUFFIX = "/+esm"


def normalize_relative_path(path: str) -> str:
    """Canonical form of an entry-point path.

    ``/lib/decode.js/+esm`` and ``lib/decode.js`` denote the same entry point;
    both normalize to ``lib/decode.js``.
    """
    path = path.strip()
    if path.endswith(ESM_SUFFIX):
        path = path[: -len(ESM_SUFFIX)]
    return path.strip("/")


class EntryPointOverride(BaseModel):
    """An alternate entry point within a package."""

    model_config = ConfigDict(frozen=True)

    relative_path: str = Field(description="Path after name@version, e.g. lib/decode.js")
    logical_name: str = Field(description="MLE module name the entry point is published as")

    @field_validator("relative_path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        normalized = normalize_relative_path(value)
        if not normalized:
            raise ValueError("relative_path must not be empty")
        return normalized

    @field_validator("logical_name")
    @classmethod
    def _check_logical_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("logical_name must not be empty")
        if normalize_name(value) != value:
            raise ValueError(f"logical_name '{value}' is not a valid module name; use '{normalize_name(value)}'")
        return value


class EntryPointRegistry(Protocol):
    """Lookup capability for secondary entry points."""

    def lookup(self, original_name: str) -> Sequence[EntryPointOverride]: ...


DEFAULT_ENTRY_POINTS: dict[str, list[EntryPointOverride]] = {
    "entities": [
        EntryPointOverride(relative_path="/lib/decode.js/+esm", logical_name="entities_decode"),
    ],
}


class StaticEntryPointRegistry:
    """Registry backed by an in-memory mapping."""

    def __init__(self, overrides: Mapping[str, Iterable[EntryPointOverride]] | None = None):
        self._overrides: dict[str, tuple[EntryPointOverride, ...]] = {}
        for name, entries in (overrides or {}).items():
            self._overrides[name] = tuple(entries)

    @classmethod
    def default(cls) -> StaticEntryPointRegistry:
        return cls(DEFAULT_ENTRY_POINTS)

    @classmethod
    def from_config(cls, data: Mapping[str, Iterable[Mapping[str, Any]]]) -> StaticEntryPointRegistry:
        """Build a registry from settings data (name -> list of dicts)."""
        return cls({name: [EntryPointOverride.model_validate(item) for item in items] for name, items in data.items()})

    def lookup(self, original_name: str) -> Sequence[EntryPointOverride]:
        return self._overrides.get(original_name, ())

    def names(self) -> list[str]:
        return sorted(self._overrides)

    def merged(self, extra: StaticEntryPointRegistry) -> StaticEntryPointRegistry:
        """Layer ``extra`` on top of this registry.

        An override in ``extra`` replaces one here with the same relative path.
        """
        combined: dict[str, list[EntryPointOverride]] = {name: list(entries) for name, entries in self._overrides.items()}
        for name in extra.names():
            current = combined.setdefault(name, [])
            for override in extra.lookup(name):
                current[:] = [o for o in current if o.relative_path != override.relative_path]
                current.append(override)
        return StaticEntryPointRegistry(combined)

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._overrides.values())

    def __repr__(self) -> str:
        return f"StaticEntryPointRegistry({self.names()})"
