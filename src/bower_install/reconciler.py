"""Lock reconciliation - decide per dependency whether the lock can be reused.

Rules:
- production install without a lock file fails before any resolution
- no lock file otherwise: everything resolves fresh
- a name in both bower.json and the lock is reused with its whole subtree when the
  locked release still satisfies the declared target, and is a tamper error when
  it does not
- names given explicitly on the command line bypass the lock
- names missing from the lock resolve fresh (production: fail); names only in the
  lock are dropped
"""

import logging

from . import semver
from .endpoints import Endpoint
from .exceptions import MissingLockError
from .exceptions import TamperError
from .lock import LockEntry
from .lock import LockFile

logger = logging.getLogger(__name__)


class LockReconciler:
    """
    Compare a prior lock file against the current manifest.

    Args:
        lockfile: Loaded lock file, or None if there is none
        production: Require the lock and use it strictly
        explicit: Names requested explicitly; resolved fresh regardless of the lock
    """

    def __init__(self, lockfile: LockFile | None, production: bool = False, explicit: set[str] | None = None):
        self.lockfile = lockfile
        self.production = production
        self.explicit = set(explicit or ())

    def check_presence(self) -> None:
        """Fail fast when production mode has no lock to install from.

        Raises:
            MissingLockError: If production mode and no lock file exists
        """
        if self.lockfile is None and self.production:
            raise MissingLockError(
                "A lock file is required when installing in production mode (bower.lock not found)",
                context={"production": True},
            )

    def plan(self, declared: dict[str, Endpoint]) -> dict[str, LockEntry]:
        """
        Decide reuse for every root-declared dependency.

        Args:
            declared: Endpoints declared by the root manifest, by name

        Returns:
            Lock entries to reuse, by name; every other name resolves fresh

        Raises:
            MissingLockError: Production mode and lock missing or incomplete
            TamperError: A locked release no longer satisfies its declared target
        """
        self.check_presence()
        if self.lockfile is None:
            return {}

        reuse: dict[str, LockEntry] = {}
        for name, endpoint in declared.items():
            if name in self.explicit:
                logger.debug(f"{name} requested explicitly, bypassing lock")
                continue

            entry = self.lockfile.dependencies.get(name)
            if entry is None:
                if self.production:
                    raise MissingLockError(
                        f"{name} is declared in bower.json but missing from the lock file",
                        context={"name": name, "target": endpoint.target},
                    )
                logger.debug(f"{name} not locked, resolving fresh")
                continue

            self.verify(name, entry, endpoint)
            reuse[name] = entry

        dropped = sorted(set(self.lockfile.dependencies) - set(declared))
        if dropped:
            logger.debug(f"Dropping lock entries no longer declared: {', '.join(dropped)}")
        return reuse

    def verify(self, name: str, entry: LockEntry, endpoint: Endpoint) -> None:
        """Check a locked entry (and its subtree) against the declared endpoint.

        Raises:
            TamperError: On source mismatch or a release outside its declared target
        """
        if entry.endpoint.source != endpoint.source:
            raise TamperError(
                f"{name} is locked to source {entry.endpoint.source} but bower.json declares {endpoint.source}",
                context={"name": name, "locked_source": entry.endpoint.source, "declared_source": endpoint.source},
            )
        self._check_release(name, entry.release, endpoint.target)
        self._verify_nested(name, entry, (name,))

    def _verify_nested(self, name: str, entry: LockEntry, path: tuple[str, ...]) -> None:
        for child_name, child in entry.dependencies.items():
            if child_name in path:
                continue
            self._check_release(child_name, child.release, child.endpoint.target, parent=name)
            self._verify_nested(child_name, child, (*path, child_name))

    def _check_release(self, name: str, release: str, target: str, parent: str | None = None) -> None:
        if semver.satisfies(release, target):
            return
        where = f"required by {parent}" if parent else "declared in bower.json"
        raise TamperError(
            f"{name} is locked to {release} which does not satisfy {target} {where}",
            context={"name": name, "release": release, "target": target, "parent": parent},
        )
