"""Shared fixtures for mle-module-loader tests."""

from pathlib import Path

import pytest

from mle_module_loader.errors import FetchError
from mle_module_loader.identifiers import ModuleIdentity
from mle_module_loader.identifiers import build_dependency_set
from mle_module_loader.settings import SettingsPaths


class FakeFetcher:
    """In-memory module source keyed by (name, version, relative_path)."""

    def __init__(self, sources: dict[tuple[str, str, str | None], str]):
        self.sources = sources
        self.calls: list[tuple[str, str, str | None]] = []

    def fetch(self, identity: ModuleIdentity) -> str:
        self.calls.append(identity.key)
        if identity.key not in self.sources:
            raise FetchError(identity, f"https://cdn.test/npm/{identity}")
        return self.sources[identity.key]


class FakeEnumerator:
    def __init__(self, packages: list[str]):
        self.packages = packages
        self.requested: list[str] = []

    def list_dependencies(self, package_name: str) -> list[str]:
        self.requested.append(package_name)
        return list(self.packages)


@pytest.fixture
def make_fetcher():
    return FakeFetcher


@pytest.fixture
def make_enumerator():
    return FakeEnumerator


@pytest.fixture
def deps():
    """Build a dependency set from name@version tokens."""

    def _deps(*tokens: str):
        return build_dependency_set(tokens)

    return _deps


@pytest.fixture
def settings_paths(tmp_path: Path) -> SettingsPaths:
    return SettingsPaths(
        global_settings=tmp_path / "home" / ".mle-loader" / "settings.yaml",
        project_settings=tmp_path / "project" / ".mle-loader" / "settings.yaml",
        local_settings=tmp_path / "project" / ".mle-loader" / "settings.local.yaml",
    )


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch) -> Path:
    """Point HOME and the working directory at empty temp directories."""
    home = tmp_path / "home"
    project = tmp_path / "project"
    home.mkdir()
    project.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("MLE_LOADER_CDN_URL", raising=False)
    monkeypatch.delenv("MLE_LOADER_LOG_LEVEL", raising=False)
    monkeypatch.chdir(project)
    return project
