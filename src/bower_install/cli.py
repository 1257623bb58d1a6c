"""Command-line entry point: ``bower-install [options] [<endpoint> ...]``.

App-layer policy lives here: reading bower.json and .bowerrc from the working
directory, fetching local sources, spawning hooks through the shell and printing
events.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .engine import install
from .events import EventChannel
from .events import LogEvent
from .exceptions import BowerError
from .hooks import SubprocessHookRunner
from .schema import InstallConfig
from .schema import InstallOptions
from .schema import ProjectManifest
from .sources import FileSystemFetcher

logger = logging.getLogger(__name__)


class JsonManifestStore:
    """Write bower.json back to disk."""

    def __init__(self, manifest_path: Path):
        self.manifest_path = manifest_path

    def write(self, manifest: ProjectManifest) -> None:
        with open(self.manifest_path, "w") as f:
            json.dump(manifest.to_dict(), f, indent=2)
            f.write("\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bower-install",
        description="Install the packages declared in bower.json (or the given endpoints)",
    )
    parser.add_argument("endpoints", nargs="*", help="Package endpoints: name, name#target, URL or path")
    parser.add_argument(
        "-F",
        "--force-latest",
        dest="force_latest",
        action="store_true",
        help="Force latest version on conflict",
    )
    parser.add_argument(
        "-p",
        "--production",
        action="store_true",
        help="Do not install devDependencies and require the lock file",
    )
    parser.add_argument(
        "-S",
        "--save",
        action="store_true",
        help="Save installed packages into the project's bower.json dependencies",
    )
    parser.add_argument(
        "-D",
        "--save-dev",
        dest="save_dev",
        action="store_true",
        help="Save installed packages into the project's bower.json devDependencies",
    )
    parser.add_argument(
        "-E",
        "--save-exact",
        dest="save_exact",
        action="store_true",
        help="Configure installed packages with an exact version rather than semver",
    )
    parser.add_argument(
        "--loglevel",
        dest="log_level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set the logging level",
    )
    return parser


def read_options(argv: list[str]) -> tuple[list[str], InstallOptions]:
    """Parse install arguments into positional endpoints and options.

    Example:
        >>> read_options(["jquery", "-S", "--save-exact"])
        (['jquery'], InstallOptions(force_latest=False, production=False, save=True, save_dev=False, save_exact=True))
    """
    args = build_parser().parse_args(argv)
    options = InstallOptions(
        force_latest=args.force_latest,
        production=args.production,
        save=args.save,
        save_dev=args.save_dev,
        save_exact=args.save_exact,
    )
    return list(args.endpoints), options


def _print_event(event: LogEvent) -> None:
    stream = sys.stderr if event.level in ("warn", "conflict") else sys.stdout
    print(f"bower {event.id:<12} {event.message.rstrip()}", file=stream)


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    endpoints, options = read_options(argv)
    cwd = Path.cwd()
    manifest_path = cwd / "bower.json"

    try:
        manifest = ProjectManifest.from_file(manifest_path) if manifest_path.exists() else ProjectManifest()
        config = InstallConfig.from_file(cwd / ".bowerrc")
    except (OSError, ValueError) as e:
        print(f"bower error: {e}", file=sys.stderr)
        return 1

    events = EventChannel()
    events.subscribe(_print_event)

    try:
        asyncio.run(
            install(
                manifest=manifest,
                config=config,
                fetcher=FileSystemFetcher(),
                endpoints=endpoints,
                options=options,
                hook_runner=SubprocessHookRunner(),
                manifest_store=JsonManifestStore(manifest_path),
                events=events,
            )
        )
    except BowerError as e:
        print(f"bower {e.code} {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
