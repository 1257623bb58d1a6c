"""Resolution graph builder - expand the dependency tree level by level.

Work items are ``(requester, name, endpoint)`` triples seeded from the root
manifest. Each level is fetched concurrently (deduplicated through the fetch
cache), then registered in submission order so the outcome does not depend on
which fetch finished first. Registering a node proposes it to the arbiter and
queues its own dependencies. Locked entries become nodes without any fetch.
"""

import logging
from dataclasses import dataclass
from dataclasses import field

from . import semver
from .arbiter import ConflictArbiter
from .arbiter import Request
from .cache import FetchCache
from .endpoints import Endpoint
from .endpoints import from_dependency
from .endpoints import guess_name
from .endpoints import to_dependency
from .events import EventChannel
from .exceptions import CycleError
from .graph import ROOT
from .graph import NodeArena
from .graph import ResolutionGraph
from .graph import ResolutionNode
from .lock import LockEntry
from .schema import InstallConfig
from .schema import PackageManifest
from .utils import run_all

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkItem:
    """Pending request for one dependency."""

    requester: str
    endpoint: Endpoint
    requester_id: int | None = None
    path: tuple[str, ...] = ()
    locked: LockEntry | None = None
    counts_as_request: bool = True

    @property
    def root(self) -> bool:
        return self.requester_id is None and self.counts_as_request


@dataclass
class ResolutionContext:
    """State scoped to a single install invocation, shared by every component."""

    config: InstallConfig
    cache: FetchCache
    arbiter: ConflictArbiter
    events: EventChannel = field(default_factory=EventChannel)
    arena: NodeArena = field(default_factory=NodeArena)

    @property
    def ignored(self) -> set[str]:
        return set(self.config.ignored_dependencies)


class ResolutionGraphBuilder:
    """
    Build the final DAG of resolution nodes.

    Example:
        >>> builder = ResolutionGraphBuilder(context)
        >>> graph = await builder.build(root_items)
        >>> graph.get("jquery").release
        '2.1.4'
    """

    def __init__(self, context: ResolutionContext):
        self.context = context
        self.root_names: list[str] = []
        self.root_endpoints: dict[str, str] = {}
        self._nodes: dict[str, ResolutionNode] = {}
        self._expanded: set[int] = set()

    async def build(self, items: list[WorkItem]) -> ResolutionGraph:
        """
        Resolve every queued item until the queue is empty, then settle conflicts.

        Args:
            items: Root work items (manifest dependencies, positional endpoints)

        Returns:
            Final acyclic resolution graph

        Raises:
            FetchError: If any fetch fails
            ConflictError: If a package name cannot be settled
            CycleError: If a package requires itself through its dependencies
        """
        queue = [item for item in items if not self._is_ignored(item)]
        level = 0

        while queue:
            level += 1
            logger.debug(f"Resolving level {level}: {len(queue)} items")
            nodes = await run_all((self._resolve(item) for item in queue), limit=self.context.config.concurrency)

            next_queue: list[WorkItem] = []
            for item, node in zip(queue, nodes):
                next_queue.extend(self._register(item, node))
            queue = next_queue

            if not queue:
                queue = self._refetch_items()

        return self._finalize()

    def _is_ignored(self, item: WorkItem) -> bool:
        name = item.endpoint.name
        if name and name in self.context.ignored:
            logger.debug(f"Skipping ignored dependency {name} (requested by {item.requester})")
            return True
        return False

    async def _resolve(self, item: WorkItem) -> ResolutionNode:
        if item.locked is not None:
            return self._locked_node(item)

        result = await self.context.cache.fetch(item.endpoint)

        manifest = result.manifest or PackageManifest()
        name = item.endpoint.name or manifest.name or guess_name(item.endpoint.source)

        # Names sharing one fetched endpoint (aliases) still get a node each
        key = f"{name}@{item.endpoint.signature}"
        if key in self._nodes:
            return self._nodes[key]

        release = result.release or manifest.version
        if not release:
            release = item.endpoint.target

        node = self.context.arena.create(
            name=name,
            endpoint=item.endpoint.with_name(name),
            manifest=manifest,
            release=release,
            content_dir=result.content_dir,
            resolution=dict(result.resolution),
            available_versions=tuple(result.available_versions),
            archive=result.archive,
        )
        self._nodes[key] = node
        return node

    def _locked_node(self, item: WorkItem) -> ResolutionNode:
        entry = item.locked
        name = item.endpoint.name or entry.endpoint.name or guess_name(entry.endpoint.source)
        key = f"lock:{name}#{entry.release}"
        if key in self._nodes:
            return self._nodes[key]

        manifest = PackageManifest(
            name=name,
            version=entry.release if semver.is_version(entry.release) else None,
            dependencies={child: to_dependency(e.endpoint.with_name(child)) for child, e in entry.dependencies.items()},
        )
        node = self.context.arena.create(
            name=name,
            endpoint=entry.endpoint.with_name(name),
            manifest=manifest,
            release=entry.release,
            locked=True,
        )
        self._nodes[key] = node
        return node

    def _register(self, item: WorkItem, node: ResolutionNode) -> list[WorkItem]:
        """Record a resolved item and return the work items for its dependencies."""
        arbiter = self.context.arbiter
        name = node.name

        if name in self.context.ignored:
            logger.debug(f"Skipping ignored dependency {name}")
            return []

        if name in item.path:
            raise CycleError([*item.path, name])

        if item.root:
            arbiter.root_targets.setdefault(name, item.endpoint.target)
            self.root_endpoints[item.endpoint.signature] = name
            if name not in self.root_names:
                self.root_names.append(name)

        if item.counts_as_request:
            arbiter.request(name, item.requester, item.endpoint.target, item.requester_id)
        if arbiter.propose(name, node):
            logger.debug(f"Accepted {name}#{node.release}")

        if node.id in self._expanded:
            return []
        self._expanded.add(node.id)

        children = []
        for dep_name, value in node.manifest.dependencies.items():
            if dep_name in self.context.ignored:
                logger.debug(f"Skipping ignored dependency {dep_name} (requested by {name})")
                continue

            locked = item.locked.dependencies.get(dep_name) if item.locked is not None else None
            if locked is not None:
                endpoint = locked.endpoint.with_name(dep_name)
            else:
                endpoint = from_dependency(dep_name, value, cwd=self.context.config.cwd)

            children.append(
                WorkItem(
                    requester=name,
                    endpoint=endpoint,
                    requester_id=node.id,
                    path=(*item.path, name),
                    locked=locked,
                )
            )
        return children

    def _refetch_items(self) -> list[WorkItem]:
        """Items for advertised releases that settle a group no fetched node settles."""
        items = []
        for name, group in self.context.arbiter.groups.items():
            if not group.candidates:
                continue
            release = self.context.arbiter.missing_release(name)
            if release is None:
                continue

            base = next((n for n in group.candidates if not n.locked), group.candidates[0])
            logger.debug(f"Fetching {name}#{release} to satisfy every requester")
            items.append(
                WorkItem(
                    requester=ROOT,
                    endpoint=base.endpoint.with_target(release),
                    counts_as_request=False,
                )
            )
        return items

    def _live_requests(self, name: str, reachable: set[int]) -> list[Request]:
        group = self.context.arbiter.group(name)
        return [r for r in group.requests if r.is_root or r.requester_id in reachable]

    def _walk(self, selected: dict[str, ResolutionNode]) -> tuple[list[str], set[int]]:
        """Names reachable from the root through the selected nodes, breadth first."""
        order: list[str] = []
        reachable: set[int] = set()
        frontier = [name for name in self.root_names if name in selected]

        while frontier:
            next_frontier = []
            for name in frontier:
                if name in order:
                    continue
                order.append(name)
                node = selected[name]
                reachable.add(node.id)
                for dep_name in node.manifest.dependencies:
                    if dep_name in selected and dep_name not in order:
                        next_frontier.append(dep_name)
            frontier = next_frontier
        return order, reachable

    def _finalize(self) -> ResolutionGraph:
        """Settle every reachable name against its live requests and build the DAG."""
        arbiter = self.context.arbiter
        selected = {name: g.accepted for name, g in arbiter.groups.items() if g.accepted is not None}

        # Requests from nodes that lost arbitration no longer count; iterate to a fixed point
        for _ in range(len(selected) + 1):
            order, reachable = self._walk(selected)
            changed = False
            for name in order:
                requests = self._live_requests(name, reachable)
                best = max(arbiter.group(name).candidates, key=lambda n: arbiter.score(n, requests))
                if best is not selected[name]:
                    selected[name] = best
                    changed = True
            if not changed:
                break

        order, reachable = self._walk(selected)
        graph = ResolutionGraph()
        for name in order:
            requests = self._live_requests(name, reachable)
            node = arbiter.finalize(name, requests)
            node.requesters = [(r.requester, r.target) for r in requests]
            graph.add(node, root=name in self.root_names)

        for record in arbiter.conflicts:
            self.context.events.emit(
                "conflict",
                "conflict",
                f"Unable to satisfy every requester of {record.name}, using {record.accepted} ({record.reason} wins)",
                name=record.name,
                accepted=record.accepted,
                reason=record.reason,
                requests=[(r.requester, r.target) for r in record.requests],
            )

        for node in list(graph.nodes.values()):
            for dep_name in node.manifest.dependencies:
                child = graph.get(dep_name)
                if child is not None:
                    graph.link(node, child)

        graph.check_acyclic()
        logger.info(f"Resolved {len(graph.nodes)} packages")
        return graph
