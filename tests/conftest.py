"""Shared fakes for install engine tests."""

import asyncio
import json
from pathlib import Path

import pytest
from bower_install import FetchError
from bower_install import FetchResult
from bower_install import HookResult
from bower_install import InstallConfig
from bower_install import PackageManifest
from bower_install import semver


class FakeRegistry:
    """In-memory registry fetcher: package name -> {version: dependencies}.

    Records every fetched signature so tests can assert on deduplication.
    """

    def __init__(self, work_dir: Path, packages: dict[str, dict[str, dict[str, str]]]):
        self.work_dir = work_dir
        self.packages = packages
        self.calls: list[str] = []
        self.proxies: list[str | None] = []
        self.failures: dict[str, Exception] = {}

    async def fetch(self, endpoint, proxy=None):
        self.calls.append(endpoint.signature)
        self.proxies.append(proxy)
        await asyncio.sleep(0)

        if endpoint.source in self.failures:
            raise self.failures[endpoint.source]

        versions = self.packages.get(endpoint.source)
        if versions is None:
            raise FetchError(f"Package {endpoint.source} not found", status=404)

        release = semver.max_satisfying(list(versions), [endpoint.target])
        if release is None:
            raise FetchError(f"No version of {endpoint.source} matches {endpoint.target}")

        content = self.work_dir / f"{endpoint.source}-{release}"
        content.mkdir(parents=True, exist_ok=True)
        data = {"name": endpoint.source, "version": release, "dependencies": versions[release]}
        (content / "bower.json").write_text(json.dumps(data, indent=2))
        (content / "version.txt").write_text(release)

        return FetchResult(
            content_dir=content,
            manifest=PackageManifest.model_validate(data),
            release=release,
            available_versions=tuple(versions),
        )


class RecordingHookRunner:
    """Hook runner that records commands instead of spawning processes."""

    def __init__(self, stdout: str = "", returncode: int = 0, on_run=None):
        self.commands: list[str] = []
        self.stdout = stdout
        self.returncode = returncode
        self.on_run = on_run

    async def run(self, command: str, cwd: Path) -> HookResult:
        self.commands.append(command)
        if self.on_run is not None:
            self.on_run(command)
        return HookResult(returncode=self.returncode, stdout=self.stdout, stderr="boom" if self.returncode else "")


class MemoryManifestStore:
    def __init__(self):
        self.written = []

    def write(self, manifest) -> None:
        self.written.append(manifest)


@pytest.fixture
def registry(tmp_path):
    """Factory for a FakeRegistry serving the given packages."""

    def make(packages: dict[str, dict[str, dict[str, str]]]) -> FakeRegistry:
        return FakeRegistry(tmp_path / "fetched", packages)

    return make


@pytest.fixture
def project_dir(tmp_path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def config(project_dir) -> InstallConfig:
    return InstallConfig(cwd=project_dir)


@pytest.fixture
def hook_runner() -> RecordingHookRunner:
    return RecordingHookRunner()


@pytest.fixture
def manifest_store() -> MemoryManifestStore:
    return MemoryManifestStore()
