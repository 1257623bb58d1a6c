"""Tests for per-name conflict arbitration."""

import pytest
from bower_install import ConflictArbiter
from bower_install import ConflictError
from bower_install import Endpoint
from bower_install import PackageManifest
from bower_install.graph import NodeArena


@pytest.fixture
def arena():
    return NodeArena()


def make_node(arena, name, release, available=()):
    return arena.create(
        name=name,
        endpoint=Endpoint(name=name, source=name, target=release),
        manifest=PackageManifest(name=name, version=release),
        release=release,
        available_versions=tuple(available),
    )


def test_prefers_release_satisfying_most_requesters(arena):
    arbiter = ConflictArbiter()
    arbiter.request("x", "a", "~1.2.0", requester_id=1)
    arbiter.request("x", "b", "^1.0.0", requester_id=2)

    arbiter.propose("x", make_node(arena, "x", "1.9.0"))
    arbiter.propose("x", make_node(arena, "x", "1.2.9"))

    assert arbiter.accepted("x").release == "1.2.9"


def test_prefers_highest_among_equally_compatible(arena):
    arbiter = ConflictArbiter()
    arbiter.request("x", "a", "^1.0.0", requester_id=1)

    arbiter.propose("x", make_node(arena, "x", "1.1.0"))
    arbiter.propose("x", make_node(arena, "x", "1.4.0"))

    assert arbiter.accepted("x").release == "1.4.0"


def test_reselect_is_idempotent(arena):
    arbiter = ConflictArbiter()
    arbiter.request("x", "a", "^1.0.0", requester_id=1)
    node = make_node(arena, "x", "1.4.0")

    assert arbiter.propose("x", node)
    assert not arbiter.propose("x", node)
    assert arbiter.accepted("x") is node


def test_root_target_wins_and_is_recorded(arena):
    arbiter = ConflictArbiter(root_targets={"x": "1.2.0"})
    requests = [
        arbiter.request("x", "<root>", "1.2.0"),
        arbiter.request("x", "b", "^2.0.0", requester_id=2),
    ]
    arbiter.propose("x", make_node(arena, "x", "2.1.0"))
    arbiter.propose("x", make_node(arena, "x", "1.2.0"))

    node = arbiter.finalize("x", requests)

    assert node.release == "1.2.0"
    assert len(arbiter.conflicts) == 1
    assert arbiter.conflicts[0].reason == "root"


def test_resolution_pin_settles_conflict(arena):
    arbiter = ConflictArbiter(resolutions={"x": "^2.0.0"})
    requests = [
        arbiter.request("x", "a", "^1.0.0", requester_id=1),
        arbiter.request("x", "b", "^2.0.0", requester_id=2),
    ]
    arbiter.propose("x", make_node(arena, "x", "1.5.0"))
    arbiter.propose("x", make_node(arena, "x", "2.1.0"))

    assert arbiter.finalize("x", requests).release == "2.1.0"
    assert arbiter.conflicts[0].reason == "resolution"


def test_force_latest_picks_highest(arena):
    arbiter = ConflictArbiter(force_latest=True)
    requests = [
        arbiter.request("x", "a", "^1.0.0", requester_id=1),
        arbiter.request("x", "b", "^1.0.0", requester_id=2),
        arbiter.request("x", "c", "^2.0.0", requester_id=3),
    ]
    arbiter.propose("x", make_node(arena, "x", "1.5.0"))
    arbiter.propose("x", make_node(arena, "x", "2.1.0"))

    assert arbiter.finalize("x", requests).release == "2.1.0"
    assert arbiter.conflicts[0].reason == "force-latest"


def test_unresolvable_conflict_raises(arena):
    arbiter = ConflictArbiter()
    requests = [
        arbiter.request("x", "a", "^1.0.0", requester_id=1),
        arbiter.request("x", "b", "^2.0.0", requester_id=2),
    ]
    arbiter.propose("x", make_node(arena, "x", "1.5.0"))
    arbiter.propose("x", make_node(arena, "x", "2.1.0"))

    with pytest.raises(ConflictError, match="Unable to find a suitable version for x") as exc_info:
        arbiter.finalize("x", requests)

    assert exc_info.value.code == "ECONFLICT"
    assert ("a", "^1.0.0") in exc_info.value.context["requests"]
    assert exc_info.value.context["available"] == ["1.5.0", "2.1.0"]


def test_missing_release_uses_advertised_versions(arena):
    arbiter = ConflictArbiter()
    arbiter.request("x", "a", "1.3.0 || 2.0.0", requester_id=1)
    arbiter.request("x", "b", "<2.0.0", requester_id=2)
    available = ["1.0.0", "1.3.0", "1.4.0", "2.0.0"]
    arbiter.propose("x", make_node(arena, "x", "2.0.0", available))
    arbiter.propose("x", make_node(arena, "x", "1.4.0", available))

    assert arbiter.missing_release("x") == "1.3.0"
    # Each release is attempted once
    assert arbiter.missing_release("x") is None
