"""Tests for lifecycle hooks."""

import sys
from pathlib import Path

import pytest
from bower_install import EventChannel
from bower_install import HookError
from bower_install import SubprocessHookRunner
from bower_install.hooks import HookOrchestrator
from bower_install.hooks import substitute


def test_substitute_joins_names():
    assert substitute("echo % > installed.txt", ["jquery", "angular"]) == "echo jquery angular > installed.txt"
    assert substitute("true", ["jquery"]) == "true"


@pytest.mark.asyncio
async def test_unconfigured_hook_does_nothing(tmp_path, hook_runner):
    hooks = HookOrchestrator({"preinstall": None}, runner=hook_runner, events=EventChannel(), cwd=tmp_path)

    assert await hooks.run("preinstall", ["jquery"]) is None
    assert await hooks.run("postinstall", ["jquery"]) is None
    assert hook_runner.commands == []


@pytest.mark.asyncio
async def test_hook_skipped_without_names(tmp_path, hook_runner):
    hooks = HookOrchestrator({"preinstall": "echo %"}, runner=hook_runner, events=EventChannel(), cwd=tmp_path)

    assert await hooks.run("preinstall", []) is None
    assert hook_runner.commands == []


@pytest.mark.asyncio
async def test_stdout_is_published_as_action(tmp_path, hook_runner):
    hook_runner.stdout = "foobar"
    events = EventChannel()
    hooks = HookOrchestrator({"preinstall": "echo %"}, runner=hook_runner, events=events, cwd=tmp_path)

    await hooks.run("preinstall", ["jquery"])

    actions = events.of_level("action")
    assert [(e.id, e.message) for e in actions] == [("preinstall", "foobar")]
    assert actions[0].data["names"] == ["jquery"]


@pytest.mark.asyncio
async def test_failing_hook_raises(tmp_path, hook_runner):
    hook_runner.returncode = 2
    hooks = HookOrchestrator({"postinstall": "false"}, runner=hook_runner, events=EventChannel(), cwd=tmp_path)

    with pytest.raises(HookError, match="postinstall hook exited with code 2") as exc_info:
        await hooks.run("postinstall", ["jquery"])

    assert exc_info.value.code == "EHOOK"
    assert exc_info.value.returncode == 2
    assert exc_info.value.stderr == "boom"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_subprocess_runner_runs_in_cwd(tmp_path):
    command = f'"{sys.executable}" -c "import os, sys; print(os.getcwd()); sys.exit(3)"'

    result = await SubprocessHookRunner().run(command, tmp_path)

    assert result.returncode == 3
    assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()
