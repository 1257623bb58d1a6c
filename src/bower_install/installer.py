"""Install executor - turn the final graph into component directories.

Each accepted package lands in ``<components_dir>/<name>``: the fetched content
copied verbatim plus a ``.bower.json`` file recording what was installed. The
executor decides per package whether to write, skip (already installed at the
same release) or preserve (a directory this tool did not create), and runs the
lifecycle hooks around the writes.
"""

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from pathlib import Path

from .cache import FetchCache
from .events import EventChannel
from .exceptions import FilesystemError
from .graph import ResolutionGraph
from .graph import ResolutionNode
from .hooks import HookOrchestrator
from .utils import copy_tree
from .utils import ensure_directory
from .utils import filesystem_error
from .utils import remove_path
from .utils import replace_directory
from .utils import run_all
from .utils import single_top_level_dir

logger = logging.getLogger(__name__)

META_FILE = ".bower.json"
FOREIGN_MARKERS = (".git", ".hg", ".svn")


class Operation(str, Enum):
    WRITE = "write"
    SKIP = "skip"
    PRESERVE = "preserve"


@dataclass(frozen=True)
class PlannedOperation:
    kind: Operation
    name: str
    node: ResolutionNode


@dataclass
class InstallPlan:
    """Operations derived from comparing the graph with the components directory."""

    operations: list[PlannedOperation] = field(default_factory=list)
    extraneous: list[str] = field(default_factory=list)

    def names(self, kind: Operation) -> list[str]:
        return [op.name for op in self.operations if op.kind is kind]

    @property
    def writes(self) -> list[PlannedOperation]:
        return [op for op in self.operations if op.kind is Operation.WRITE]

    @property
    def is_noop(self) -> bool:
        return not self.writes


def read_component_meta(component_dir: Path) -> dict | None:
    """Read the ``.bower.json`` written by a previous install, if any."""
    meta_path = component_dir / META_FILE
    if not meta_path.is_file():
        return None
    try:
        with open(meta_path) as f:
            data = json.load(f)
    except ValueError as e:
        logger.debug(f"Unreadable {meta_path}: {e}")
        return None
    return data if isinstance(data, dict) else None


def is_foreign(component_dir: Path) -> bool:
    """Check whether an existing directory is managed by something else.

    A symlink (linked package) or a VCS checkout without ``.bower.json`` was not
    created by an install and must not be overwritten.
    """
    if component_dir.is_symlink():
        return True
    if not component_dir.is_dir() or (component_dir / META_FILE).exists():
        return False
    return any((component_dir / marker).exists() for marker in FOREIGN_MARKERS)


def component_meta(node: ResolutionNode, direct: bool) -> dict:
    """Build the ``.bower.json`` content for an installed node."""
    meta = node.manifest.to_dict()
    meta.setdefault("name", node.name)
    meta.update(
        {
            "_release": node.release,
            "_resolution": node.resolution,
            "_source": node.endpoint.source,
            "_target": node.endpoint.target,
            "_originalSource": node.endpoint.source,
        }
    )
    if direct:
        meta["_direct"] = True
    return meta


class InstallExecutor:
    """
    Plan and apply filesystem operations for a resolution graph.

    Args:
        components_dir: Directory holding one subdirectory per package (app policy)
        hooks: Lifecycle hook orchestrator
        events: Channel for user-facing events
        concurrency: Maximum concurrent writes
    """

    def __init__(
        self,
        components_dir: Path,
        hooks: HookOrchestrator,
        events: EventChannel,
        concurrency: int = 8,
    ):
        self.components_dir = components_dir
        self.hooks = hooks
        self.events = events
        self.concurrency = concurrency

    def plan(self, graph: ResolutionGraph) -> InstallPlan:
        """Compare the graph with what is on disk."""
        plan = InstallPlan()
        flat = graph.flatten()

        for name, node in flat.items():
            target = self.components_dir / name
            if is_foreign(target):
                kind = Operation.PRESERVE
                logger.warning(f"{target} was not installed by bower, leaving it untouched")
                self.events.emit("warn", "skipped", f"{name} was not installed by bower, leaving it untouched", name=name)
            elif self._is_current(target, node):
                kind = Operation.SKIP
            else:
                kind = Operation.WRITE
            plan.operations.append(PlannedOperation(kind=kind, name=name, node=node))

        if self.components_dir.is_dir():
            for child in sorted(self.components_dir.iterdir()):
                if child.name.startswith(".") or child.name in flat:
                    continue
                if read_component_meta(child) is not None:
                    plan.extraneous.append(child.name)
                    self.events.emit("warn", "extraneous", f"{child.name} is installed but not required", name=child.name)

        logger.debug(
            f"Install plan: {len(plan.writes)} to write, {len(plan.names(Operation.SKIP))} unchanged, "
            f"{len(plan.names(Operation.PRESERVE))} preserved"
        )
        return plan

    def _is_current(self, target: Path, node: ResolutionNode) -> bool:
        meta = read_component_meta(target)
        if meta is None:
            return False
        return meta.get("_release") == node.release and meta.get("_source") == node.endpoint.source

    async def materialize(self, plan: InstallPlan, cache: FetchCache) -> None:
        """Fetch content for locked nodes that have to be written.

        Locked nodes are not re-resolved; they are fetched at their pinned release.
        """

        async def fetch(node: ResolutionNode) -> None:
            result = await cache.fetch(node.endpoint.with_target(node.release))
            node.content_dir = result.content_dir
            node.archive = result.archive
            node.resolution = dict(result.resolution)

        missing = [op.node for op in plan.writes if op.node.content_dir is None]
        if missing:
            logger.debug(f"Fetching {len(missing)} locked packages at their pinned releases")
            await run_all((fetch(node) for node in missing), limit=self.concurrency)

    async def execute(
        self,
        plan: InstallPlan,
        graph: ResolutionGraph,
        after_write: Callable[[], None] | None = None,
    ) -> list[str]:
        """
        Apply the plan: preinstall hook, writes, ``after_write``, postinstall hook.

        Hooks are skipped entirely when nothing has to be written.

        Args:
            plan: Plan from ``plan()``
            graph: Graph the plan was made from
            after_write: Called after all writes and before postinstall (manifest save, lock write)

        Returns:
            Names of the packages written

        Raises:
            HookError: If a hook fails
            FilesystemError: If a component directory cannot be written
        """
        names = [op.name for op in plan.writes]

        if names:
            await self.hooks.run("preinstall", names)

            direct = {graph.nodes[node_id].name for node_id in graph.roots}
            await run_all(
                (asyncio.to_thread(self._write, op.node, op.name in direct) for op in plan.writes),
                limit=self.concurrency,
            )
            for op in plan.writes:
                self.events.emit("action", "install", f"{op.name}#{op.node.release}", name=op.name)

        if after_write is not None:
            after_write()

        if names:
            await self.hooks.run("postinstall", names)
        return names

    def _write(self, node: ResolutionNode, direct: bool) -> None:
        ensure_directory(self.components_dir)
        target = self.components_dir / node.name
        staging = self.components_dir / f".{node.name}.staging-{node.id}"

        content = node.content_dir
        if content is None:
            raise FilesystemError(f"No content fetched for {node.name}", context={"name": node.name}, code="ENOENT")
        if node.archive:
            # Archives wrapping everything in one folder are unwrapped one level only
            content = single_top_level_dir(content) or content

        try:
            if staging.exists() or staging.is_symlink():
                remove_path(staging)
            copy_tree(content, staging)
            with open(staging / META_FILE, "w") as f:
                json.dump(component_meta(node, direct), f, indent=2)
            replace_directory(staging, target)
        except OSError as e:
            if staging.exists():
                remove_path(staging)
            raise filesystem_error(e, target) from e

        logger.debug(f"Wrote {node.name}#{node.release} to {target}")

