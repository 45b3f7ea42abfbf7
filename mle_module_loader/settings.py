"""Settings management for mle-module-loader.

Scope-aware YAML settings. Scope priority (most specific wins):

1. an explicit ``--config`` file
2. local (.mle-loader/settings.local.yaml) - gitignored, machine-specific
3. project (.mle-loader/settings.yaml) - committed, team-shared
4. global (~/.mle-loader/settings.yaml) - user defaults

Example settings.yaml::

    cdn_base_url: https://cdn.jsdelivr.net
    fetch_retries: 3
    entry_points:
      entities:
        - relative_path: lib/decode.js
          logical_name: entities_decode
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from typing import Literal

import yaml
from pydantic import BaseModel
from pydantic import Field
from pydantic import ValidationError

from .entry_points import EntryPointOverride
from .entry_points import StaticEntryPointRegistry
from .entry_points import normalize_relative_path
from .enumerator import DEFAULT_LISTER_COMMAND
from .errors import SettingsError
from .fetcher import DEFAULT_CDN_URL

logger = logging.getLogger(__name__)

Scope = Literal["local", "project", "global"]

SETTINGS_DIR_NAME = ".mle-loader"
ENV_CDN_URL = "MLE_LOADER_CDN_URL"
ENV_LOG_LEVEL = "MLE_LOADER_LOG_LEVEL"


class LoaderSettings(BaseModel):
    """Validated, merged settings for one run."""

    cdn_base_url: str = DEFAULT_CDN_URL
    lister_command: list[str] = Field(default_factory=lambda: list(DEFAULT_LISTER_COMMAND))
    request_timeout: float = Field(default=30.0, gt=0)
    fetch_retries: int = Field(default=2, ge=0)
    retry_backoff: float = Field(default=0.5, ge=0)
    output_dir: Path | None = None
    log_level: str = "WARNING"
    entry_points: dict[str, list[EntryPointOverride]] = Field(default_factory=dict)

    def build_registry(self) -> StaticEntryPointRegistry:
        """Built-in entry points with the configured ones layered on top."""
        return StaticEntryPointRegistry.default().merged(StaticEntryPointRegistry(self.entry_points))


@dataclass
class SettingsPaths:
    """Standard paths for settings files."""

    global_settings: Path
    project_settings: Path
    local_settings: Path

    @classmethod
    def default(cls) -> SettingsPaths:
        return cls(
            global_settings=Path.home() / SETTINGS_DIR_NAME / "settings.yaml",
            project_settings=Path.cwd() / SETTINGS_DIR_NAME / "settings.yaml",
            local_settings=Path.cwd() / SETTINGS_DIR_NAME / "settings.local.yaml",
        )


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise SettingsError(f"Could not read settings file {path}: {e}") from e
    if not isinstance(content, dict):
        raise SettingsError(f"Settings file {path} must contain a mapping")
    return content


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dicts, overlay wins."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def merge_entry_points(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Layer one scope's ``entry_points`` over another's.

    Entries for the same package are combined; an overlay entry replaces a
    base entry with the same relative path.
    """
    result = {package: list(entries) for package, entries in base.items()}
    for package, entries in overlay.items():
        if not isinstance(entries, list) or not isinstance(result.get(package), list):
            result[package] = entries
            continue
        paths = {_entry_path(e) for e in entries}
        result[package] = [e for e in result[package] if _entry_path(e) not in paths] + list(entries)
    return result


def _entry_path(entry: Any) -> Any:
    if isinstance(entry, dict) and isinstance(entry.get("relative_path"), str):
        return normalize_relative_path(entry["relative_path"])
    return id(entry)


def _merge_scope(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    result = deep_merge(base, overlay)
    if isinstance(base.get("entry_points"), dict) and isinstance(overlay.get("entry_points"), dict):
        result["entry_points"] = merge_entry_points(base["entry_points"], overlay["entry_points"])
    return result


class AppSettings:
    """Settings manager with scope-aware merging.

    Usage:
        settings = AppSettings().load()
        registry = settings.build_registry()
    """

    def __init__(self, paths: SettingsPaths | None = None) -> None:
        self.paths = paths or SettingsPaths.default()

    def get_merged_settings(self, config_file: Path | None = None) -> dict[str, Any]:
        """Load and merge settings from all scopes, then ``config_file``.

        Entry points are layered per package and relative path rather than
        replaced wholesale, so a project scope can add to the global ones.
        """
        result: dict[str, Any] = {}
        for path in [self.paths.global_settings, self.paths.project_settings, self.paths.local_settings]:
            if path.exists():
                logger.debug(f"Loading settings from {path}")
                result = _merge_scope(result, _read_yaml(path))

        if config_file is not None:
            if not config_file.exists():
                raise SettingsError(f"Config file not found: {config_file}")
            result = _merge_scope(result, _read_yaml(config_file))

        if cdn_url := os.environ.get(ENV_CDN_URL):
            result["cdn_base_url"] = cdn_url
        if log_level := os.environ.get(ENV_LOG_LEVEL):
            result["log_level"] = log_level.upper()

        return result

    def load(self, config_file: Path | None = None) -> LoaderSettings:
        """Merged settings, validated.

        Raises:
            SettingsError: A file is unreadable or a value is invalid
        """
        data = self.get_merged_settings(config_file)
        try:
            return LoaderSettings.model_validate(data)
        except ValidationError as e:
            raise SettingsError(f"Invalid settings: {e}") from e

    # ----- Entry point overrides -----

    def add_entry_point(self, package: str, override: EntryPointOverride, scope: Scope = "project") -> Path:
        """Persist an entry point override; replaces one with the same path."""
        settings = self._read_scope(scope)
        entry_points = settings.setdefault("entry_points", {})
        entries = [
            e for e in entry_points.get(package, []) if normalize_relative_path(e.get("relative_path", "")) != override.relative_path
        ]
        entries.append(override.model_dump())
        entry_points[package] = entries
        self._write_scope(scope, settings)
        return self._get_scope_path(scope)

    def remove_entry_point(self, package: str, relative_path: str, scope: Scope = "project") -> bool:
        """Remove an override from ``scope``. False if it was not there."""
        settings = self._read_scope(scope)
        entry_points = settings.get("entry_points", {})
        entries = entry_points.get(package, [])
        target = normalize_relative_path(relative_path)
        remaining = [e for e in entries if normalize_relative_path(e.get("relative_path", "")) != target]
        if len(remaining) == len(entries):
            return False

        if remaining:
            entry_points[package] = remaining
        else:
            del entry_points[package]
        if not entry_points:
            settings.pop("entry_points", None)
        self._write_scope(scope, settings)
        return True

    # ----- Scope utilities -----

    def _get_scope_path(self, scope: Scope) -> Path:
        return {
            "local": self.paths.local_settings,
            "project": self.paths.project_settings,
            "global": self.paths.global_settings,
        }[scope]

    def _read_scope(self, scope: Scope) -> dict[str, Any]:
        path = self._get_scope_path(scope)
        if not path.exists():
            return {}
        return _read_yaml(path)

    def _write_scope(self, scope: Scope, settings: dict[str, Any]) -> None:
        path = self._get_scope_path(scope)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(settings, f, default_flow_style=False)
