"""Filesystem fetcher - local directories and local archives.

Git, HTTP and registry sources need their own fetchers; apps provide them through
EndpointFetcherProtocol. This one covers what can be read from disk directly.
"""

import asyncio
import logging
import tarfile
import tempfile
import zipfile
from pathlib import Path

from . import semver
from .endpoints import Endpoint
from .endpoints import is_local_source
from .exceptions import FetchError
from .protocols import FetchResult
from .schema import PackageManifest
from .utils import copy_tree
from .utils import single_top_level_dir

logger = logging.getLogger(__name__)

MANIFEST_NAMES = ("bower.json", "component.json")
TAR_SUFFIXES = (".tar", ".tar.gz", ".tgz", ".tar.bz2")


def read_manifest(content_dir: Path) -> PackageManifest | None:
    """Read the package manifest from a content directory, if there is one."""
    for name in MANIFEST_NAMES:
        path = content_dir / name
        if path.is_file():
            try:
                return PackageManifest.from_file(path)
            except ValueError as e:
                logger.debug(f"Ignoring invalid {path}: {e}")
    return None


class FileSystemFetcher:
    """
    Fetch endpoints whose source is a local directory or archive.

    Content is copied (or extracted) into a fresh directory under ``work_dir`` so
    the install never touches the original.

    Args:
        work_dir: Directory for fetched copies (a temporary one if omitted)
    """

    def __init__(self, work_dir: Path | None = None):
        self.work_dir = work_dir or Path(tempfile.mkdtemp(prefix="bower-fetch-"))

    async def fetch(self, endpoint: Endpoint, proxy: str | None = None) -> FetchResult:
        if not is_local_source(endpoint.source):
            raise FetchError(
                f"{endpoint.source} is not a local source",
                context={"endpoint": endpoint.signature},
            )
        return await asyncio.to_thread(self._fetch, endpoint)

    def _fetch(self, endpoint: Endpoint) -> FetchResult:
        source = Path(endpoint.source)
        if not source.exists():
            raise FetchError(f"{source} does not exist", context={"endpoint": endpoint.signature})

        self.work_dir.mkdir(parents=True, exist_ok=True)
        dest = Path(tempfile.mkdtemp(prefix="pkg-", dir=self.work_dir))
        archive = False

        if source.is_dir():
            content = dest / "content"
            copy_tree(source, content)
        elif source.name.endswith(TAR_SUFFIXES) or source.suffix == ".zip":
            content = dest / "content"
            content.mkdir()
            self._extract(source, content)
            archive = True
        else:
            raise FetchError(f"{source} is neither a directory nor an archive", context={"endpoint": endpoint.signature})

        root = single_top_level_dir(content) if archive else None
        manifest = read_manifest(root or content)
        release = manifest.version if manifest else None

        if endpoint.target not in ("*", release) and not semver.satisfies(release, endpoint.target):
            raise FetchError(
                f"File system sources can't resolve target {endpoint.target} ({source})",
                context={"endpoint": endpoint.signature, "release": release},
            )

        logger.debug(f"Fetched {source} into {content}")
        return FetchResult(
            content_dir=content,
            manifest=manifest,
            release=release,
            resolution={"type": "archive" if archive else "directory"},
            archive=archive,
        )

    def _extract(self, archive: Path, dest: Path) -> None:
        try:
            if archive.suffix == ".zip":
                with zipfile.ZipFile(archive) as zf:
                    zf.extractall(dest)
            else:
                with tarfile.open(archive) as tf:
                    tf.extractall(dest, filter="data")
        except (tarfile.TarError, zipfile.BadZipFile) as e:
            raise FetchError(f"Failed to extract {archive}: {e}", context={"archive": str(archive)}) from e
