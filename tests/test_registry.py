from realtime.registry import Participant, SessionRegistry


def test_join_makes_participant_visible():
    registry = SessionRegistry()
    registry.upsert_on_join("p1", "alice", {"x": 0})

    assert list(registry.snapshot()) == [Participant("p1", "alice", {"x": 0})]
    assert "p1" in registry
    assert len(registry) == 1


def test_last_join_wins():
    registry = SessionRegistry()
    registry.upsert_on_join("p1", "alice", {"x": 0}, connection_id="c1")
    registry.upsert_on_join("p1", "alicia", {"x": 9}, connection_id="c2")

    assert registry.get("p1") == Participant("p1", "alicia", {"x": 9})
    assert len(registry) == 1
    assert list(registry.snapshot(exclude_connection_id="c1")) == [Participant("p1", "alicia", {"x": 9})]
    assert list(registry.snapshot(exclude_connection_id="c2")) == []


def test_update_replaces_state_and_keeps_username():
    registry = SessionRegistry()
    registry.upsert_on_join("p1", "alice", {"x": 0})

    assert registry.update_state("p1", {"x": 5}) is True
    assert registry.get("p1") == Participant("p1", "alice", {"x": 5})


def test_update_for_unknown_id_is_a_noop():
    registry = SessionRegistry()

    assert registry.update_state("ghost", {"x": 1}) is False
    assert "ghost" not in registry
    assert list(registry.snapshot()) == []


def test_last_update_wins():
    registry = SessionRegistry()
    registry.upsert_on_join("p1", "alice", {"x": 0})
    registry.update_state("p1", {"x": 1})
    registry.update_state("p1", {"x": 2})

    assert [p.state for p in registry.snapshot()] == [{"x": 2}]


def test_remove_is_idempotent():
    registry = SessionRegistry()
    registry.upsert_on_join("p1", "alice", {})

    assert registry.remove("p1") is True
    assert registry.remove("p1") is False
    assert registry.get("p1") is None


def test_snapshot_keeps_insertion_order_and_restarts():
    registry = SessionRegistry()
    for pid, name in (("p1", "alice"), ("p2", "bob"), ("p3", "carol")):
        registry.upsert_on_join(pid, name, {})

    assert [p.id for p in registry.snapshot()] == ["p1", "p2", "p3"]

    registry.remove("p2")
    registry.upsert_on_join("p4", "dave", {})
    assert [p.id for p in registry.snapshot()] == ["p1", "p3", "p4"]


def test_snapshot_is_lazy():
    registry = SessionRegistry()
    registry.upsert_on_join("p1", "alice", {})

    snapshot = registry.snapshot()
    assert next(snapshot) == Participant("p1", "alice", {})


def test_snapshot_skips_entries_of_excluded_connection():
    registry = SessionRegistry()
    registry.upsert_on_join("p1", "alice", {}, connection_id="c1")
    registry.upsert_on_join("p2", "bob", {}, connection_id="c2")

    assert [p.id for p in registry.snapshot(exclude_connection_id="c2")] == ["p1"]
