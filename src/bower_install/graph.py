"""Resolution graph - an arena of nodes indexed by stable ids.

Parent to child edges are stored as id references, so a node shared by several
parents is stored once. The final graph must be acyclic.
"""

import itertools
import logging
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from .endpoints import Endpoint
from .exceptions import CycleError
from .schema import PackageManifest

logger = logging.getLogger(__name__)

ROOT = "<root>"


@dataclass(eq=False)
class ResolutionNode:
    """A package pinned to one concrete release."""

    id: int
    name: str
    endpoint: Endpoint
    manifest: PackageManifest
    release: str
    content_dir: Path | None = None
    resolution: dict = field(default_factory=dict)
    available_versions: tuple[str, ...] = ()
    archive: bool = False
    locked: bool = False
    requesters: list[tuple[str, str]] = field(default_factory=list)

    @property
    def version(self) -> str | None:
        return self.manifest.version

    def __repr__(self) -> str:
        return f"ResolutionNode({self.id}, {self.name}#{self.release})"


class NodeArena:
    """Allocates node ids; every node built during one install lives here."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.nodes: dict[int, ResolutionNode] = {}

    def create(self, **fields) -> ResolutionNode:
        node = ResolutionNode(id=next(self._ids), **fields)
        self.nodes[node.id] = node
        return node


class ResolutionGraph:
    """Final DAG: one accepted node per package name plus id edges."""

    def __init__(self):
        self.nodes: dict[int, ResolutionNode] = {}
        self.edges: dict[int, list[int]] = {}
        self.roots: list[int] = []
        self._by_name: dict[str, int] = {}

    def add(self, node: ResolutionNode, root: bool = False) -> None:
        self.nodes[node.id] = node
        self.edges.setdefault(node.id, [])
        self._by_name[node.name] = node.id
        if root and node.id not in self.roots:
            self.roots.append(node.id)

    def link(self, parent: ResolutionNode, child: ResolutionNode) -> None:
        children = self.edges.setdefault(parent.id, [])
        if child.id not in children:
            children.append(child.id)

    def get(self, name: str) -> ResolutionNode | None:
        node_id = self._by_name.get(name)
        return self.nodes.get(node_id) if node_id is not None else None

    def children(self, node: ResolutionNode) -> list[ResolutionNode]:
        return [self.nodes[child_id] for child_id in self.edges.get(node.id, [])]

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def flatten(self) -> dict[str, ResolutionNode]:
        """Accepted nodes keyed by name, in name order."""
        return {name: self.nodes[self._by_name[name]] for name in self.names()}

    def check_acyclic(self) -> None:
        """Walk the graph with a visited set; raise CycleError on a back edge."""
        done: set[int] = set()

        def visit(node_id: int, path: list[int]) -> None:
            if node_id in path:
                start = path.index(node_id)
                raise CycleError([self.nodes[i].name for i in path[start:]] + [self.nodes[node_id].name])
            if node_id in done:
                return
            path.append(node_id)
            for child_id in self.edges.get(node_id, []):
                visit(child_id, path)
            path.pop()
            done.add(node_id)

        for node_id in self.roots:
            visit(node_id, [])
        logger.debug(f"Graph of {len(self.nodes)} nodes is acyclic")
