"""Tests for lock reuse decisions."""

import pytest
from bower_install import Endpoint
from bower_install import LockEntry
from bower_install import LockFile
from bower_install import LockReconciler
from bower_install import MissingLockError
from bower_install import TamperError


@pytest.fixture
def lockfile():
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


def declared(**targets):
    return {name: Endpoint(name=name, source=name, target=target) for name, target in targets.items()}


def test_reuses_satisfied_entries(lockfile):
    reuse = LockReconciler(lockfile).plan(declared(package="~0.1.0"))

    assert reuse == {"package": lockfile.dependencies["package"]}


def test_changed_but_still_satisfied_target_reuses(lockfile):
    reuse = LockReconciler(lockfile).plan(declared(package="^0.1.0"))

    assert "package" in reuse


def test_unsatisfied_release_is_tampering(lockfile):
    with pytest.raises(TamperError, match="package is locked to 0.1.1") as exc_info:
        LockReconciler(lockfile).plan(declared(package="~0.2.0"))

    assert exc_info.value.code == "ETAMPER"
    assert exc_info.value.context["target"] == "~0.2.0"


def test_source_mismatch_is_tampering(lockfile):
    endpoints = {"package": Endpoint(name="package", source="/tmp/package", target="~0.1.0")}

    with pytest.raises(TamperError, match="locked to source"):
        LockReconciler(lockfile).plan(endpoints)


def test_nested_tampering_is_detected(lockfile):
    lockfile.dependencies["package"].dependencies["package2"].release = "2.0.0"

    with pytest.raises(TamperError, match="required by package"):
        LockReconciler(lockfile).plan(declared(package="~0.1.0"))


def test_explicit_names_bypass_lock(lockfile):
    reuse = LockReconciler(lockfile, explicit={"package"}).plan(declared(package="~0.2.0"))

    assert reuse == {}


def test_new_names_resolve_fresh(lockfile):
    reuse = LockReconciler(lockfile).plan(declared(package="~0.1.0", jquery="~2.1.0"))

    assert list(reuse) == ["package"]


def test_production_without_lock_fails():
    reconciler = LockReconciler(None, production=True)

    with pytest.raises(MissingLockError) as exc_info:
        reconciler.check_presence()

    assert exc_info.value.code == "ENOLOCK"


def test_production_with_incomplete_lock_fails(lockfile):
    with pytest.raises(MissingLockError, match="jquery is declared"):
        LockReconciler(lockfile, production=True).plan(declared(package="~0.1.0", jquery="~2.1.0"))


def test_no_lock_resolves_everything_fresh():
    assert LockReconciler(None).plan(declared(package="~0.1.0")) == {}
