"""Lifecycle hooks - when scripts run and what they receive.

``scripts.preinstall`` runs once before any component is written and
``scripts.postinstall`` once after writes, manifest save and lock write. The
``%`` placeholder is replaced by the space-separated names of the packages being
installed. Script stdout is published as an ``action`` event.
"""

import asyncio
import logging
from pathlib import Path

from .events import EventChannel
from .exceptions import HookError
from .protocols import HookResult
from .protocols import HookRunnerProtocol

logger = logging.getLogger(__name__)

PLACEHOLDER = "%"


def substitute(template: str, names: list[str]) -> str:
    """Replace the placeholder with the package names.

    Example:
        >>> substitute("echo % >> installed.txt", ["jquery", "angular"])
        'echo jquery angular >> installed.txt'
    """
    return template.replace(PLACEHOLDER, " ".join(names))


class SubprocessHookRunner:
    """Run hook commands through the system shell."""

    async def run(self, command: str, cwd: Path) -> HookResult:
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        return HookResult(
            returncode=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )


class HookOrchestrator:
    """
    Run configured lifecycle scripts and forward their output.

    Args:
        scripts: Mapping of hook name to command template
        runner: Process runner (apps inject how commands are spawned)
        events: Channel receiving hook output
        cwd: Directory scripts run in
    """

    def __init__(self, scripts: dict[str, str | None], runner: HookRunnerProtocol, events: EventChannel, cwd: Path):
        self.scripts = scripts
        self.runner = runner
        self.events = events
        self.cwd = cwd

    async def run(self, hook: str, names: list[str]) -> HookResult | None:
        """
        Run one hook for the given package names.

        Returns:
            HookResult, or None if the hook is not configured or nothing was installed

        Raises:
            HookError: If the script exits with a nonzero status
        """
        template = self.scripts.get(hook)
        if not template or not names:
            return None

        command = substitute(template, names)
        logger.debug(f"Running {hook} hook: {command}")
        result = await self.runner.run(command, self.cwd)

        if result.stdout:
            self.events.emit("action", hook, result.stdout, names=list(names))

        if result.returncode != 0:
            raise HookError(
                f"{hook} hook exited with code {result.returncode}: {result.stderr.strip() or command}",
                returncode=result.returncode,
                stderr=result.stderr,
                context={"hook": hook, "command": command},
            )
        return result
