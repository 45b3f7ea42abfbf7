"""Exception types raised by the module loader.

Everything fatal to a run derives from ``MleLoaderError`` so the CLI can
report it uniformly. Unresolved references are not fatal and are surfaced
as ``UnresolvedReferenceWarning`` instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .identifiers import ModuleIdentity


class MleLoaderError(Exception):
    """Base class for errors that abort a loader run."""


class MalformedIdentifierError(MleLoaderError):
    """Raised when a dependency token has no parseable ``name@version`` shape."""

    def __init__(self, token: str, reason: str = "missing version segment"):
        self.token = token
        self.reason = reason
        super().__init__(f"Malformed package identifier '{token}': {reason}")


class NormalizationCollisionError(MleLoaderError):
    """Raised when two modules would be published under the same MLE module name."""

    def __init__(self, normalized_name: str, first: str, second: str):
        self.normalized_name = normalized_name
        self.first = first
        self.second = second
        super().__init__(
            f"'{first}' and '{second}' both map to module name '{normalized_name}'"
        )


class DependencyListError(MleLoaderError):
    """Raised when the dependency lister fails or prints unparsable output."""


class FetchError(MleLoaderError):
    """Raised when a module's source cannot be retrieved from the CDN."""

    def __init__(self, identity: ModuleIdentity, url: str, cause: BaseException | None = None):
        self.identity = identity
        self.url = url
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to fetch {identity.logical_name} from {url}{detail}")


class SettingsError(MleLoaderError):
    """Raised when settings files cannot be read or fail validation."""


class UnresolvedReferenceWarning(UserWarning):
    """A rewritten module still references a module outside the loaded set."""
