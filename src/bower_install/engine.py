"""Install orchestration.

Process:
1. Validate the components directory and the lock (production requires one)
2. Decide lock reuse per root dependency (tamper check happens here, before any fetch)
3. Build the resolution graph (fetches run concurrently, deduplicated)
4. Plan filesystem operations and fetch pinned content for locked packages
5. preinstall hook, write components, save bower.json, write the lock, postinstall hook

Every stage either completes or aborts the whole install with a single error.
The lock and bower.json are only written once resolution and all component
writes have finished.
"""

import logging
from dataclasses import dataclass
from dataclasses import field

from . import semver
from .arbiter import ConflictArbiter
from .arbiter import ConflictRecord
from .cache import FetchCache
from .endpoints import Endpoint
from .endpoints import decompose
from .endpoints import from_dependency
from .endpoints import normalize_target
from .endpoints import to_dependency
from .events import EventChannel
from .graph import ROOT
from .graph import ResolutionGraph
from .graph import ResolutionNode
from .hooks import HookOrchestrator
from .hooks import SubprocessHookRunner
from .installer import InstallExecutor
from .installer import Operation
from .lock import BowerLock
from .lock import LockFile
from .protocols import EndpointFetcherProtocol
from .protocols import HookRunnerProtocol
from .protocols import ManifestStoreProtocol
from .reconciler import LockReconciler
from .resolver import ResolutionContext
from .resolver import ResolutionGraphBuilder
from .resolver import WorkItem
from .schema import InstallConfig
from .schema import InstallOptions
from .schema import ProjectManifest
from .utils import check_directory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedPackage:
    """Summary of one installed package."""

    name: str
    release: str
    source: str
    target: str
    version: str | None = None


@dataclass
class InstallResult:
    """Outcome of a successful install."""

    packages: dict[str, ResolvedPackage]
    manifest: ProjectManifest
    graph: ResolutionGraph
    written: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    preserved: list[str] = field(default_factory=list)
    extraneous: list[str] = field(default_factory=list)
    conflicts: list[ConflictRecord] = field(default_factory=list)
    lock_changed: bool = False
    fetch_count: int = 0


def parse_endpoints(specifiers: list[str], config: InstallConfig) -> list[Endpoint]:
    """Decompose positional specifiers; registry names double as package names."""
    endpoints = []
    for specifier in specifiers:
        endpoint = decompose(specifier, cwd=config.cwd)
        if endpoint.name is None and endpoint.is_registry:
            endpoint = endpoint.with_name(endpoint.source)
        endpoints.append(endpoint)
    return endpoints


def saved_value(endpoint: Endpoint, node: ResolutionNode, exact: bool) -> str:
    """Value recorded in bower.json for a saved package.

    Exact saves pin the resolved version; a wildcard request saves ``^version``;
    otherwise the requested target is kept.
    """
    version = node.version if semver.is_version(node.version) else None
    if exact and version:
        target = version
    elif normalize_target(endpoint.target) == "*" and version:
        target = f"^{version}"
    else:
        target = endpoint.target
    return to_dependency(Endpoint(name=node.name, source=endpoint.source, target=target))


def declared_endpoints(manifest: ProjectManifest, config: InstallConfig, production: bool) -> dict[str, Endpoint]:
    ignored = set(config.ignored_dependencies)
    return {
        name: from_dependency(name, value, cwd=config.cwd)
        for name, value in manifest.declared(production).items()
        if name not in ignored
    }


async def install(
    manifest: ProjectManifest,
    config: InstallConfig,
    fetcher: EndpointFetcherProtocol,
    endpoints: list[str] | None = None,
    options: InstallOptions | None = None,
    hook_runner: HookRunnerProtocol | None = None,
    manifest_store: ManifestStoreProtocol | None = None,
    events: EventChannel | None = None,
) -> InstallResult:
    """
    Install the project's dependencies (and any positional endpoints).

    Args:
        manifest: Parsed root bower.json
        config: Settings (components directory, proxy, ignored dependencies, scripts)
        fetcher: Endpoint fetcher (apps decide how sources are fetched)
        endpoints: Positional package specifiers (``name``, ``name#target``, URL, path)
        options: Install flags (force-latest, production, save, save-dev, save-exact)
        hook_runner: Process runner for lifecycle scripts (subprocess shell by default)
        manifest_store: Receives the updated bower.json when a save flag is active
        events: Event channel the presentation layer listens on

    Returns:
        InstallResult with per-package releases and the filesystem operations applied

    Raises:
        MissingLockError: Production install without a (complete) lock file
        TamperError: A locked release no longer satisfies bower.json
        ConflictError: Irreconcilable version requests
        FetchError: An endpoint could not be fetched
        CycleError: A package requires itself
        FilesystemError: The components directory is unusable
        HookError: A lifecycle script failed

    Example:
        >>> result = await install(
        ...     manifest=ProjectManifest.from_file(Path("bower.json")),
        ...     config=InstallConfig.from_file(Path(".bowerrc")),
        ...     fetcher=FileSystemFetcher(),
        ... )
        >>> print(result.written)
    """
    options = options or InstallOptions()
    events = events or EventChannel()
    hook_runner = hook_runner or SubprocessHookRunner()

    check_directory(config.components_dir)

    lock = BowerLock(config.lock_path)
    ignored = set(config.ignored_dependencies)
    positional = [e for e in parse_endpoints(endpoints or [], config) if e.name not in ignored]
    explicit = {e.name for e in positional if e.name}

    reconciler = LockReconciler(lock.load(), production=options.production, explicit=explicit)
    reconciler.check_presence()

    declared = declared_endpoints(manifest, config, options.production)
    reuse = reconciler.plan(declared)

    items = [
        WorkItem(requester=ROOT, endpoint=endpoint, locked=reuse.get(name))
        for name, endpoint in declared.items()
        if name not in explicit
    ]
    items.extend(WorkItem(requester=ROOT, endpoint=endpoint) for endpoint in positional)

    root_targets = {name: e.target for name, e in declared.items()}
    root_targets.update({e.name: e.target for e in positional if e.name})
    arbiter = ConflictArbiter(
        root_targets=root_targets,
        resolutions=manifest.resolutions,
        force_latest=options.force_latest,
    )
    cache = FetchCache(fetcher, proxy=config.proxy)
    context = ResolutionContext(config=config, cache=cache, arbiter=arbiter, events=events)
    hooks = HookOrchestrator(
        scripts={"preinstall": config.scripts.preinstall, "postinstall": config.scripts.postinstall},
        runner=hook_runner,
        events=events,
        cwd=config.cwd,
    )
    executor = InstallExecutor(config.components_dir, hooks=hooks, events=events, concurrency=config.concurrency)

    try:
        builder = ResolutionGraphBuilder(context)
        graph = await builder.build(items)
        plan = executor.plan(graph)
        await executor.materialize(plan, cache)
    except BaseException:
        await cache.cancel()
        raise

    updated = manifest
    if options.save or options.save_dev:
        for endpoint in positional:
            name = endpoint.name or builder.root_endpoints.get(endpoint.signature)
            node = graph.get(name) if name else None
            if node is None:
                continue
            updated = updated.with_saved(node.name, saved_value(endpoint, node, options.save_exact), dev=options.save_dev)

    lockfile = LockFile.from_graph(
        graph,
        declared_lock_endpoints(updated, config, options, positional, builder),
        cwd=config.cwd,
        overrides={record.name: record.target for record in arbiter.conflicts},
    )
    if options.production:
        # devDependencies are not installed in production but stay locked
        lockfile.carry_over(reconciler.lockfile, updated.dev_dependencies)
    lock_changed = False

    def persist() -> None:
        nonlocal lock_changed
        if updated != manifest and manifest_store is not None:
            manifest_store.write(updated)
            logger.info("Saved bower.json")
        lock_changed = lock.write(lockfile)

    written = await executor.execute(plan, graph, after_write=persist)

    packages = {
        name: ResolvedPackage(
            name=name,
            release=node.release,
            source=node.endpoint.source,
            target=node.endpoint.target,
            version=node.version,
        )
        for name, node in graph.flatten().items()
    }
    logger.info(f"Installed {len(written)} packages ({len(packages)} resolved)")
    return InstallResult(
        packages=packages,
        manifest=updated,
        graph=graph,
        written=written,
        skipped=plan.names(Operation.SKIP),
        preserved=plan.names(Operation.PRESERVE),
        extraneous=list(plan.extraneous),
        conflicts=list(arbiter.conflicts),
        lock_changed=lock_changed,
        fetch_count=cache.fetch_count,
    )


def declared_lock_endpoints(
    manifest: ProjectManifest,
    config: InstallConfig,
    options: InstallOptions,
    positional: list[Endpoint],
    builder: ResolutionGraphBuilder,
) -> dict[str, Endpoint]:
    """Top-level lock entries: whatever bower.json declares after saving.

    A positional endpoint overriding a declared name is recorded as requested.
    """
    declared = declared_endpoints(manifest, config, options.production)
    for endpoint in positional:
        name = endpoint.name or builder.root_endpoints.get(endpoint.signature)
        if name in declared and not (options.save or options.save_dev):
            declared[name] = endpoint.with_name(name)
    return declared
