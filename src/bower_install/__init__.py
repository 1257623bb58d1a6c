"""bower-install - Dependency resolution, lock reconciliation and install execution.

The engine is mechanism only: apps inject how endpoints are fetched, how hooks
are spawned, where bower.json is written and how events are displayed.
"""

from .arbiter import ConflictArbiter
from .cache import FetchCache
from .endpoints import Endpoint
from .endpoints import compose
from .endpoints import decompose
from .engine import InstallResult
from .engine import ResolvedPackage
from .engine import install
from .events import EventChannel
from .events import LogEvent
from .exceptions import BowerError
from .exceptions import ConflictError
from .exceptions import CycleError
from .exceptions import FetchError
from .exceptions import FilesystemError
from .exceptions import HookError
from .exceptions import MissingLockError
from .exceptions import TamperError
from .graph import ResolutionGraph
from .graph import ResolutionNode
from .hooks import SubprocessHookRunner
from .installer import InstallExecutor
from .installer import InstallPlan
from .lock import BowerLock
from .lock import LockEntry
from .lock import LockFile
from .protocols import EndpointFetcherProtocol
from .protocols import FetchResult
from .protocols import HookResult
from .protocols import HookRunnerProtocol
from .protocols import ManifestStoreProtocol
from .reconciler import LockReconciler
from .resolver import ResolutionGraphBuilder
from .schema import InstallConfig
from .schema import InstallOptions
from .schema import PackageManifest
from .schema import ProjectManifest
from .sources import FileSystemFetcher

__all__ = [
    # Install
    "install",
    "InstallResult",
    "ResolvedPackage",
    # Endpoints and metadata
    "Endpoint",
    "compose",
    "decompose",
    "PackageManifest",
    "ProjectManifest",
    "InstallConfig",
    "InstallOptions",
    # Resolution
    "ConflictArbiter",
    "FetchCache",
    "ResolutionGraph",
    "ResolutionGraphBuilder",
    "ResolutionNode",
    # Lock file
    "BowerLock",
    "LockEntry",
    "LockFile",
    "LockReconciler",
    # Execution
    "InstallExecutor",
    "InstallPlan",
    "SubprocessHookRunner",
    "FileSystemFetcher",
    # Collaborator protocols
    "EndpointFetcherProtocol",
    "FetchResult",
    "HookResult",
    "HookRunnerProtocol",
    "ManifestStoreProtocol",
    # Events
    "EventChannel",
    "LogEvent",
    # Exceptions
    "BowerError",
    "ConflictError",
    "CycleError",
    "FetchError",
    "FilesystemError",
    "HookError",
    "MissingLockError",
    "TamperError",
]

__version__ = "0.1.0"
