"""Protocols for the engine's external collaborators.

The engine does not know HOW to clone, download, extract or spawn; apps provide
implementations of these interfaces.

Example implementations:
- Fetcher: git checkout, tarball download through a proxy, registry alias lookup,
  local copy (see ``sources.FileSystemFetcher``)
- HookRunner: shell subprocess (see ``hooks.SubprocessHookRunner``)
- ManifestStore: JSON file writer for bower.json
"""

from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Protocol
from typing import runtime_checkable

from .endpoints import Endpoint
from .schema import PackageManifest
from .schema import ProjectManifest


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a successful fetch."""

    content_dir: Path
    manifest: PackageManifest | None = None
    release: str | None = None
    resolution: dict = field(default_factory=dict)
    available_versions: tuple[str, ...] = ()
    archive: bool = False


@dataclass(frozen=True)
class HookResult:
    """Outcome of a lifecycle script run."""

    returncode: int
    stdout: str = ""
    stderr: str = ""


@runtime_checkable
class EndpointFetcherProtocol(Protocol):
    """Fetch package content for an endpoint."""

    async def fetch(self, endpoint: Endpoint, proxy: str | None = None) -> FetchResult:
        """Fetch endpoint content into a local directory.

        Args:
            endpoint: Endpoint to fetch (source already canonical)
            proxy: HTTP proxy to use for remote sources, if configured

        Returns:
            FetchResult with the content directory and discovered metadata

        Raises:
            FetchError: On transport or status failure
        """
        ...


@runtime_checkable
class HookRunnerProtocol(Protocol):
    """Run a lifecycle script command."""

    async def run(self, command: str, cwd: Path) -> HookResult:
        ...


@runtime_checkable
class ManifestStoreProtocol(Protocol):
    """Persist an updated project manifest."""

    def write(self, manifest: ProjectManifest) -> None:
        ...
