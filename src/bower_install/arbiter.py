"""Conflict arbitration - one accepted node per package name.

Components are installed flat, so every requester of a name has to live with the
same release. Selection is a pure function of the candidates and the requests
seen so far:

1. the root's own target (direct dependency or positional endpoint) must hold
2. a ``resolutions`` pin from the root manifest must hold
3. satisfy as many requesters as possible
4. prefer the highest release

With ``force_latest`` rule 3 is dropped. A candidate replaces the accepted one
only when it scores strictly higher, so arbitration is idempotent and monotonic.
"""

import logging
from dataclasses import dataclass
from dataclasses import field

from . import semver
from .exceptions import ConflictError
from .graph import ResolutionNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Request:
    """One requester asking for a package name at a target."""

    requester: str
    target: str
    requester_id: int | None = None

    @property
    def is_root(self) -> bool:
        return self.requester_id is None


@dataclass
class ConflictGroup:
    """All requests and candidate nodes for one package name."""

    name: str
    requests: list[Request] = field(default_factory=list)
    candidates: list[ResolutionNode] = field(default_factory=list)
    accepted: ResolutionNode | None = None
    attempted: set[str] = field(default_factory=set)

    def available(self) -> list[str]:
        """Releases known for this name: fetched candidates plus advertised versions."""
        releases = {node.release for node in self.candidates}
        for node in self.candidates:
            releases.update(node.available_versions)
        return sorted(releases, key=semver.sort_key)


@dataclass(frozen=True)
class ConflictRecord:
    """A conflict settled by override rather than by agreement."""

    name: str
    accepted: str
    reason: str
    requests: tuple[Request, ...]
    target: str = "*"


class ConflictArbiter:
    """
    Select the accepted node per package name among competing requesters.

    Args:
        root_targets: Targets the root explicitly declares, by name
        resolutions: Root manifest ``resolutions`` pins, by name
        force_latest: Always prefer the latest candidate over the most compatible one
    """

    def __init__(
        self,
        root_targets: dict[str, str] | None = None,
        resolutions: dict[str, str] | None = None,
        force_latest: bool = False,
    ):
        self.root_targets = dict(root_targets or {})
        self.resolutions = dict(resolutions or {})
        self.force_latest = force_latest
        self.groups: dict[str, ConflictGroup] = {}
        self.conflicts: list[ConflictRecord] = []

    def group(self, name: str) -> ConflictGroup:
        if name not in self.groups:
            self.groups[name] = ConflictGroup(name=name)
        return self.groups[name]

    def request(self, name: str, requester: str, target: str, requester_id: int | None = None) -> Request:
        request = Request(requester=requester, target=target, requester_id=requester_id)
        group = self.group(name)
        if request not in group.requests:
            group.requests.append(request)
        return request

    def propose(self, name: str, node: ResolutionNode) -> bool:
        """Add a candidate and reselect.

        Returns:
            True if the accepted node for ``name`` changed
        """
        group = self.group(name)
        if node not in group.candidates:
            group.candidates.append(node)
        group.attempted.add(node.release)
        return self._reselect(group, group.requests)

    def accepted(self, name: str) -> ResolutionNode | None:
        group = self.groups.get(name)
        return group.accepted if group else None

    def score(self, node: ResolutionNode, requests: list[Request]) -> tuple:
        name = node.name
        root_ok = name not in self.root_targets or semver.satisfies(node.release, self.root_targets[name])
        pinned_ok = name not in self.resolutions or semver.satisfies(node.release, self.resolutions[name])
        satisfied = sum(1 for r in requests if semver.satisfies(node.release, r.target))
        if self.force_latest:
            satisfied = 0
        return (root_ok, pinned_ok, satisfied, semver.sort_key(node.release))

    def _reselect(self, group: ConflictGroup, requests: list[Request]) -> bool:
        best = max(group.candidates, key=lambda n: self.score(n, requests))
        current = group.accepted
        if current is None or self.score(best, requests) > self.score(current, requests):
            group.accepted = best
            if current is not None:
                logger.debug(f"{group.name}: {current.release} superseded by {best.release}")
            return True
        return False

    def missing_release(self, name: str, requests: list[Request] | None = None) -> str | None:
        """Advertised release satisfying every target when no fetched candidate does.

        Returns:
            Release to fetch, or None if a candidate already satisfies all targets
            or nothing advertised does
        """
        group = self.group(name)
        targets = [r.target for r in (group.requests if requests is None else requests)]
        if any(semver.satisfies_all(node.release, targets) for node in group.candidates):
            return None
        release = semver.max_satisfying(group.available(), targets)
        if release is None or release in group.attempted:
            return None
        group.attempted.add(release)
        return release

    def finalize(self, name: str, requests: list[Request]) -> ResolutionNode:
        """Settle ``name`` against the requests that are still live.

        Raises:
            ConflictError: If no candidate satisfies every live request and neither
                the root, a resolution pin nor force_latest settles it
        """
        group = self.group(name)
        group.accepted = max(group.candidates, key=lambda n: self.score(n, requests))
        accepted = group.accepted

        unsatisfied = [r for r in requests if not semver.satisfies(accepted.release, r.target)]
        if not unsatisfied:
            return accepted

        if name in self.root_targets:
            reason, target = "root", self.root_targets[name]
        elif name in self.resolutions:
            reason, target = "resolution", self.resolutions[name]
        elif self.force_latest:
            reason, target = "force-latest", accepted.release
        else:
            details = "; ".join(f"{r.requester} requires {name}#{r.target}" for r in requests)
            raise ConflictError(
                f"Unable to find a suitable version for {name}: {details} "
                f"(available: {', '.join(group.available()) or 'none'})",
                context={
                    "name": name,
                    "requests": [(r.requester, r.target) for r in requests],
                    "available": group.available(),
                },
            )

        record = ConflictRecord(
            name=name,
            accepted=accepted.release,
            reason=reason,
            requests=tuple(requests),
            target=target,
        )
        self.conflicts.append(record)
        logger.warning(f"Conflict on {name} settled by {reason}: using {accepted.release}")
        return accepted
