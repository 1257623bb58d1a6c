"""Shared helpers: bounded concurrent execution and filesystem operations."""

import asyncio
import errno
import logging
import os
import shutil
from collections.abc import Awaitable
from collections.abc import Iterable
from pathlib import Path
from typing import TypeVar

from .exceptions import FilesystemError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_all(coros: Iterable[Awaitable[T]], limit: int = 8) -> list[T]:
    """
    Run awaitables concurrently (at most ``limit`` at a time), failing fast.

    The first failure cancels everything still running or waiting and is raised
    alone; results are returned in submission order.
    """
    semaphore = asyncio.Semaphore(limit)

    async def guarded(coro: Awaitable[T]) -> T:
        async with semaphore:
            return await coro

    tasks = [asyncio.ensure_future(guarded(coro)) for coro in coros]
    if not tasks:
        return []

    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        for task in tasks:
            if task.done() and not task.cancelled() and task.exception() is not None:
                raise task.exception()
        return [task.result() for task in tasks]
    finally:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


def filesystem_error(e: OSError, path: Path) -> FilesystemError:
    """Wrap an OSError, keeping the OS error code (``ENOTDIR``, ``EACCES``...)."""
    code = errno.errorcode.get(e.errno, "EFS") if e.errno else "EFS"
    return FilesystemError(
        f"{path}: {e.strerror or e}",
        context={"path": str(path), "errno": e.errno},
        code=code,
    )


def ensure_directory(path: Path) -> None:
    """Create ``path`` as a directory.

    Raises:
        FilesystemError: With code ``ENOTDIR`` if it (or a parent) exists as a file
    """
    check_directory(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise filesystem_error(e, path) from e


def remove_path(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)


def copy_tree(source: Path, destination: Path) -> None:
    """Copy ``source`` verbatim (symlinks kept as links, nothing merged)."""
    shutil.copytree(source, destination, symlinks=True)


def single_top_level_dir(path: Path) -> Path | None:
    """Return the only entry of ``path`` when it is a directory, else None."""
    entries = [p for p in path.iterdir()]
    if len(entries) == 1 and entries[0].is_dir() and not entries[0].is_symlink():
        return entries[0]
    return None


def replace_directory(staging: Path, target: Path) -> None:
    """Swap a fully prepared staging directory into place."""
    if target.exists() or target.is_symlink():
        remove_path(target)
    os.replace(staging, target)


def check_directory(path: Path) -> None:
    """Fail early when ``path`` exists but cannot hold components.

    Raises:
        FilesystemError: With code ``ENOTDIR`` if ``path`` exists as a non-directory
    """
    if path.exists() and not path.is_dir():
        raise FilesystemError(
            f"{path} exists and is not a directory",
            context={"path": str(path), "errno": errno.ENOTDIR},
            code="ENOTDIR",
        )
