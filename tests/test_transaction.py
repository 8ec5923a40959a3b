"""Tests for transaction scopes and deferred notifications."""
import pytest

from statetree import in_transaction, on_snapshot, run_in_transaction, transaction
from statetree.transaction import schedule_after_transaction


def test_outside_transaction_runs_immediately():
    calls = []
    schedule_after_transaction("k", lambda: calls.append(1))
    assert calls == [1]


def test_deferred_until_outermost_scope_exits():
    """Nested scopes only flush when the outermost one exits."""
    calls = []
    with transaction():
        with transaction():
            schedule_after_transaction("k", lambda: calls.append("k"))
            assert in_transaction()
        assert calls == []
    assert calls == ["k"]
    assert not in_transaction()


def test_same_key_runs_once_in_first_position():
    calls = []
    with transaction():
        schedule_after_transaction("a", lambda: calls.append("a1"))
        schedule_after_transaction("b", lambda: calls.append("b"))
        schedule_after_transaction("a", lambda: calls.append("a2"))
    assert calls == ["a1", "b"]


def test_flushes_on_exception():
    """Notifications for work done before a failure still run."""
    calls = []
    with pytest.raises(RuntimeError):
        with transaction():
            schedule_after_transaction("k", lambda: calls.append("k"))
            raise RuntimeError("boom")
    assert calls == ["k"]
    assert not in_transaction()


def test_callbacks_scheduled_during_flush_are_drained():
    calls = []

    def first():
        calls.append("first")
        schedule_after_transaction("second", lambda: calls.append("second"))

    with transaction():
        schedule_after_transaction("first", first)
    assert calls == ["first", "second"]


def test_run_in_transaction_returns_result():
    assert run_in_transaction(lambda a, b=0: in_transaction() and a + b, 1, b=2) == 3


def test_failing_callback_does_not_drop_the_rest():
    """Every deferred callback runs; the first failure is raised afterwards."""
    calls = []

    def fail(message):
        def callback():
            calls.append(message)
            raise RuntimeError(message)
        return callback

    with pytest.raises(RuntimeError, match="first"):
        with transaction():
            schedule_after_transaction("a", fail("first"))
            schedule_after_transaction("b", fail("second"))
            schedule_after_transaction("c", lambda: calls.append("c"))
    assert calls == ["first", "second", "c"]
    assert not in_transaction()


def test_failing_snapshot_listener_does_not_starve_others(store):
    snapshots = []

    def broken(snapshot):
        raise RuntimeError("listener failed")

    on_snapshot(store.todos[0], broken)
    on_snapshot(store, snapshots.append)
    with pytest.raises(RuntimeError, match="listener failed"):
        with transaction():
            store.todos[0].title = "x"
    assert len(snapshots) == 1
    assert snapshots[0]["todos"][0]["title"] == "x"
