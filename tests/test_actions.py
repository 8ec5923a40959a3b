"""Tests for actions and the action middleware chain."""
import pytest

from statetree import (
    ActionCall,
    StateError,
    apply_action,
    apply_actions,
    create_factory,
    get_snapshot,
    on_action,
    on_snapshot,
    snapshot_after_actions,
)
from statetree.action import is_running_action


class TestActions:
    """Actions are methods that run inside a transaction."""

    def test_action_mutates(self, store):
        store.todos[0].toggle()
        assert store.todos[0].done is True

    def test_action_with_arguments_and_result(self):
        Counter = create_factory("Counter", {
            "count": 0,
            "add": lambda self, amount: setattr(self, "count", self.count + amount) or self.count,
        })
        counter = Counter()
        assert counter.add(5) == 5
        assert counter.count == 5

    def test_action_batches_snapshot_notifications(self, store):
        snapshots = []
        on_snapshot(store, snapshots.append)
        store.add_and_toggle("c")
        assert len(snapshots) == 1
        assert snapshots[0]["todos"][2] == {"title": "c", "done": True}

    def test_running_action_flag(self):
        seen = []
        Probe = create_factory("Probe", {
            "run": lambda self: seen.append(is_running_action()),
        })
        Probe().run()
        assert seen == [True]
        assert not is_running_action()

    def test_apply_action(self, store):
        apply_action(store, {"name": "add_todo", "args": ["c"]})
        apply_action(store, ActionCall("toggle", "/todos/2"))
        assert get_snapshot(store)["todos"][2] == {"title": "c", "done": True}

    def test_apply_unknown_action_fails(self, store):
        with pytest.raises(StateError, match="has no action 'explode'"):
            apply_action(store, {"name": "explode"})

    def test_apply_action_on_array_fails(self, store):
        with pytest.raises(StateError):
            apply_action(store, {"name": "append", "path": "/todos", "args": [{}]})

    def test_apply_actions_runs_in_one_transaction(self, store):
        snapshots = []
        on_snapshot(store, snapshots.append)
        apply_actions(store, [
            {"name": "add_todo", "args": ["c"]},
            {"name": "toggle", "path": "/todos/0"},
        ])
        assert len(snapshots) == 1

    def test_snapshot_after_actions(self, store_factory):
        result = snapshot_after_actions(
            store_factory,
            {"todos": []},
            {"name": "add_todo", "args": ["a"]},
            {"name": "toggle", "path": "/todos/0"},
        )
        assert result == {"todos": [{"title": "a", "done": True}], "tags": {}}


class TestMiddleware:
    """Root actions pass the middleware chain."""

    def test_middleware_sees_call_relative_to_its_node(self, store):
        calls = []

        def record(action, next):
            calls.append(action.to_dict())
            return next()

        on_action(store, record)
        store.todos[1].set_title("renamed")
        assert calls == [{"name": "set_title", "path": "/todos/1", "args": ["renamed"]}]
        assert store.todos[1].title == "renamed"

    def test_middleware_order_is_own_node_then_ancestors(self, store):
        order = []

        def make(label):
            def middleware(action, next):
                order.append((label, action.path))
                return next()
            return middleware

        on_action(store, make("store-1"))
        on_action(store.todos[0], make("todo"))
        on_action(store, make("store-2"))
        store.todos[0].toggle()
        assert order == [("todo", ""), ("store-1", "/todos/0"), ("store-2", "/todos/0")]

    def test_middleware_can_prevent_action(self, store):
        on_action(store, lambda action, next: "blocked")
        result = apply_action(store, {"name": "add_todo", "args": ["c"]})
        assert result == "blocked"
        assert len(store.todos) == 2
        assert store.todos[0].toggle() == "blocked"
        assert store.todos[0].done is False

    def test_return_value_passes_through_chain(self):
        Counter = create_factory("Counter", {"value": 7, "get": lambda self: self.value})
        counter = Counter()
        on_action(counter, lambda action, next: next() * 2)
        assert counter.get() == 14

    def test_nested_actions_bypass_middleware(self, store):
        names = []

        def record(action, next):
            names.append(action.name)
            return next()

        on_action(store, record)
        store.add_and_toggle("c")
        store.clear_done()
        assert names == ["add_and_toggle", "clear_done"]
        assert [todo.title for todo in store.todos] == ["a"]

    def test_disposed_middleware_is_skipped(self, store):
        dispose = on_action(store, lambda action, next: "blocked")
        dispose()
        store.add_todo("c")
        assert len(store.todos) == 3


class TestActionCall:
    def test_from_dict_defaults(self):
        call = ActionCall.from_dict({"name": "go"})
        assert call == ActionCall("go", "", ())

    def test_args_become_tuple(self):
        assert ActionCall("go", args=[1, 2]).args == (1, 2)

    def test_requires_name(self):
        with pytest.raises(StateError):
            ActionCall.from_dict({"path": "/a"})
