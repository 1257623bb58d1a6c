"""Lock file management.

Persists the exact releases of a successful resolution so later installs can
skip re-resolution and detect drift between bower.json and what was locked.

Lock format (JSON):
{
  "dependencies": {
    "jquery": {
      "endpoint": {"name": "jquery", "source": "jquery", "target": "~2.1.0"},
      "_release": "2.1.4",
      "dependencies": {}
    }
  }
}

Each entry's ``endpoint.target`` is what its parent declared at write time; the
entry's ``_release`` must keep satisfying it.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from . import semver
from .endpoints import Endpoint
from .endpoints import from_dependency
from .exceptions import BowerError
from .graph import ResolutionGraph
from .graph import ResolutionNode

logger = logging.getLogger(__name__)


@dataclass
class LockEntry:
    """Entry in the lock file (recursive)."""

    endpoint: Endpoint
    release: str
    dependencies: dict[str, "LockEntry"] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "endpoint": self.endpoint.model_dump(),
            "_release": self.release,
            "dependencies": {name: entry.to_dict() for name, entry in sorted(self.dependencies.items())},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LockEntry":
        """Create from dictionary."""
        return cls(
            endpoint=Endpoint.model_validate(data["endpoint"]),
            release=data["_release"],
            dependencies={name: cls.from_dict(entry) for name, entry in data.get("dependencies", {}).items()},
        )


@dataclass
class LockFile:
    """Snapshot of a resolution: top-level entries by name."""

    dependencies: dict[str, LockEntry] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"dependencies": {name: entry.to_dict() for name, entry in sorted(self.dependencies.items())}}

    @classmethod
    def from_dict(cls, data: dict) -> "LockFile":
        return cls(dependencies={name: LockEntry.from_dict(e) for name, e in data.get("dependencies", {}).items()})

    def carry_over(self, previous: "LockFile | None", names) -> None:
        """Copy entries for ``names`` from a previous lock where this one has none."""
        if previous is None:
            return
        for name in names:
            entry = previous.dependencies.get(name)
            if entry is not None and name not in self.dependencies:
                self.dependencies[name] = entry

    def dumps(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n"

    @classmethod
    def from_graph(
        cls,
        graph: ResolutionGraph,
        declared: dict[str, Endpoint],
        cwd: Path | None = None,
        overrides: dict[str, str] | None = None,
    ) -> "LockFile":
        """
        Serialize the final graph.

        Args:
            graph: Final resolution graph
            declared: Root-declared endpoints by name; only these become top-level entries
            cwd: Directory relative path sources in package manifests resolve against
            overrides: Targets that settled a conflict, by name; recorded for children
                whose release the parent declaration no longer covers

        Returns:
            LockFile with nested entries following graph edges
        """
        overrides = overrides or {}

        def build(node: ResolutionNode, endpoint: Endpoint, path: tuple[int, ...]) -> LockEntry:
            entry = LockEntry(endpoint=endpoint, release=node.release)
            for child in graph.children(node):
                if child.id in path:
                    continue
                value = node.manifest.dependencies.get(child.name, child.endpoint.target)
                child_endpoint = from_dependency(child.name, value, cwd=cwd)
                if child.name in overrides and not semver.satisfies(child.release, child_endpoint.target):
                    target = overrides[child.name]
                    if not semver.satisfies(child.release, target):
                        target = child.release
                    child_endpoint = child_endpoint.with_target(target)
                entry.dependencies[child.name] = build(child, child_endpoint, (*path, node.id))
            return entry

        lock = cls()
        for name, endpoint in sorted(declared.items()):
            node = graph.get(name)
            if node is not None:
                lock.dependencies[name] = build(node, endpoint, ())
        return lock


class BowerLock:
    """
    Lock file reader/writer (with injected lock path).

    Writes are atomic: the new content goes to a temporary file in the same
    directory which then replaces the lock, so a failed install never leaves a
    half-written lock behind.
    """

    def __init__(self, lock_path: Path):
        """Initialize with app-provided lock path.

        Example:
            >>> lock = BowerLock(lock_path=Path("bower.lock"))
        """
        self.lock_path = lock_path

    def exists(self) -> bool:
        return self.lock_path.is_file()

    def load(self) -> LockFile | None:
        """Load lock file if it exists.

        Raises:
            BowerError: If the lock file exists but cannot be parsed
        """
        if not self.exists():
            return None

        try:
            with open(self.lock_path) as f:
                lockfile = LockFile.from_dict(json.load(f))
        except (ValueError, KeyError, TypeError) as e:
            raise BowerError(
                f"Failed to read lock file {self.lock_path}: {e}",
                context={"lock_path": str(self.lock_path)},
                code="EMALFORMED",
            ) from e

        logger.debug(f"Loaded {len(lockfile.dependencies)} entries from lock file")
        return lockfile

    def write(self, lockfile: LockFile) -> bool:
        """Persist the lock file.

        Returns:
            True if the file content changed
        """
        content = lockfile.dumps()
        if self.exists() and self.lock_path.read_text() == content:
            logger.debug("Lock file unchanged")
            return False

        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".bower.lock.", dir=self.lock_path.parent)
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            os.replace(tmp_name, self.lock_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"Saved lock file with {len(lockfile.dependencies)} entries")
        return True
