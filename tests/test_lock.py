"""Tests for BowerLock with injected lock path."""

import json
import tempfile
from pathlib import Path

import pytest
from bower_install import BowerError
from bower_install import BowerLock
from bower_install import Endpoint
from bower_install import LockEntry
from bower_install import LockFile


def sample_lockfile() -> LockFile:
    child = LockEntry(endpoint=Endpoint(name="package2", source="package2", target="~1.0.0"), release="1.0.1")
    return LockFile(
        dependencies={
            "package": LockEntry(
                endpoint=Endpoint(name="package", source="package", target="~0.1.0"),
                release="0.1.1",
                dependencies={"package2": child},
            )
        }
    )


def test_lock_with_injected_path():
    """Test lock uses injected path (not hardcoded)."""
    with tempfile.TemporaryDirectory() as tmpdir:
        lock_path = Path(tmpdir) / "custom.lock"

        lock = BowerLock(lock_path=lock_path)

        assert lock.lock_path == lock_path
        assert not lock.exists()
        assert lock.load() is None


def test_lock_persistence():
    """Test that the lock file round-trips across instances."""
    with tempfile.TemporaryDirectory() as tmpdir:
        lock_path = Path(tmpdir) / "bower.lock"

        assert BowerLock(lock_path).write(sample_lockfile())

        loaded = BowerLock(lock_path).load()
        assert loaded == sample_lockfile()
        assert loaded.dependencies["package"].dependencies["package2"].release == "1.0.1"


def test_lock_format():
    with tempfile.TemporaryDirectory() as tmpdir:
        lock_path = Path(tmpdir) / "bower.lock"
        BowerLock(lock_path).write(sample_lockfile())

        data = json.loads(lock_path.read_text())

        entry = data["dependencies"]["package"]
        assert entry["_release"] == "0.1.1"
        assert entry["endpoint"] == {"name": "package", "source": "package", "target": "~0.1.0"}
        assert entry["dependencies"]["package2"]["_release"] == "1.0.1"


def test_unchanged_lock_is_not_rewritten():
    with tempfile.TemporaryDirectory() as tmpdir:
        lock_path = Path(tmpdir) / "bower.lock"
        lock = BowerLock(lock_path)

        assert lock.write(sample_lockfile())
        mtime = lock_path.stat().st_mtime_ns

        assert not lock.write(sample_lockfile())
        assert lock_path.stat().st_mtime_ns == mtime


def test_write_leaves_no_temporary_files():
    with tempfile.TemporaryDirectory() as tmpdir:
        lock = BowerLock(Path(tmpdir) / "bower.lock")

        lock.write(sample_lockfile())
        lock.write(LockFile())

        assert sorted(p.name for p in Path(tmpdir).iterdir()) == ["bower.lock"]
        assert json.loads(lock.lock_path.read_text()) == {"dependencies": {}}


def test_corrupt_lock_raises():
    with tempfile.TemporaryDirectory() as tmpdir:
        lock_path = Path(tmpdir) / "bower.lock"
        lock_path.write_text("{not json")

        with pytest.raises(BowerError, match="Failed to read lock file") as exc_info:
            BowerLock(lock_path).load()

        assert exc_info.value.code == "EMALFORMED"


def test_carry_over_keeps_entries_missing_from_new_lock():
    previous = sample_lockfile()
    previous.dependencies["qunit"] = LockEntry(
        endpoint=Endpoint(name="qunit", source="qunit", target="^1.0.0"),
        release="1.2.0",
    )
    current = LockFile(
        dependencies={
            "package": LockEntry(endpoint=Endpoint(name="package", source="package", target="~0.1.0"), release="0.1.2")
        }
    )

    current.carry_over(previous, ["package", "qunit", "missing"])

    assert sorted(current.dependencies) == ["package", "qunit"]
    assert current.dependencies["package"].release == "0.1.2"
    assert current.dependencies["qunit"].release == "1.2.0"


def test_carry_over_without_previous_lock():
    current = sample_lockfile()
    current.carry_over(None, ["qunit"])
    assert current == sample_lockfile()
