"""Dependency listing via npm-remote-ls.

The lister is run as a subprocess because its command-line flags (excluding
development and optional dependencies, flattening the tree) are not all
available through its programmatic API.
"""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Sequence

from .errors import DependencyListError

logger = logging.getLogger(__name__)

DEFAULT_LISTER_COMMAND = ("npx", "--yes", "npm-remote-ls")
LISTER_FLAGS = ("--development", "false", "--flatten", "--optional", "false")


def parse_lister_output(output: str) -> list[str]:
    """Parse the lister's printed array into ``name@version`` strings.

    The lister prints a JS array literal quoted with single quotes, which is
    not valid JSON until the quotes are swapped.

    Raises:
        DependencyListError: Output is not a list of strings
    """
    try:
        data = json.loads(output.replace("'", '"'))
    except json.JSONDecodeError as e:
        raise DependencyListError(f"Could not parse dependency list: {e}") from e

    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        raise DependencyListError(f"Dependency list is not a list of strings: {output[:200]!r}")
    return data


class DependencyEnumerator:
    """Lists the transitive non-development dependencies of a package."""

    def __init__(self, command: Sequence[str] = DEFAULT_LISTER_COMMAND):
        self.command = tuple(command)

    def build_command(self, package_name: str) -> list[str]:
        return [*self.command, package_name, *LISTER_FLAGS]

    def list_dependencies(self, package_name: str) -> list[str]:
        """Return ``name@version`` for the package and everything it depends on.

        Raises:
            DependencyListError: The lister is missing, failed, or printed garbage
        """
        cmd = self.build_command(package_name)
        logger.info(f"Command to be run: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, check=True, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise DependencyListError(f"Dependency lister not found: {cmd[0]}") from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise DependencyListError(f"Dependency lister exited with status {e.returncode}: {stderr}") from e

        packages = parse_lister_output(result.stdout)
        logger.debug(f"Lister returned {len(packages)} entries for {package_name}")
        return packages
