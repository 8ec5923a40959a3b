"""Pytest configuration and shared fixtures."""
import importlib

import pytest

from statetree import create_factory, reset_app_state, reset_config, types

# the package re-exports a transaction() function under the submodule name
action_module = importlib.import_module("statetree.action")
transaction_module = importlib.import_module("statetree.transaction")


def _toggle(self):
    self.done = not self.done


def _set_title(self, title):
    self.title = title


def _add_todo(self, title):
    self.todos.append({"title": title})


def _add_and_toggle(self, title):
    self.add_todo(title)
    self.todos[-1].toggle()


def _clear_done(self):
    for todo in [todo for todo in self.todos if todo.done]:
        self.todos.remove(todo)


Todo = create_factory("Todo", {
    "title": "",
    "done": False,
    "toggle": _toggle,
    "set_title": _set_title,
})

Store = create_factory("Store", {
    "todos": types.array(Todo),
    "tags": types.map(types.primitive),
    "add_todo": _add_todo,
    "add_and_toggle": _add_and_toggle,
    "clear_done": _clear_done,
    "open_count": property(lambda self: len([todo for todo in self.todos if not todo.done])),
})


@pytest.fixture(autouse=True)
def reset_statetree_globals():
    """Restore process-wide config, app state and scope counters after each test."""
    yield
    reset_config()
    reset_app_state()
    transaction_module._depth = 0
    transaction_module._flushing = False
    transaction_module._pending.clear()
    action_module._action_depth = 0


@pytest.fixture
def todo_factory():
    """Todo factory: title, done, toggle(), set_title()."""
    return Todo


@pytest.fixture
def store_factory():
    """Store factory: todos array, tags map, actions and an open_count view."""
    return Store


@pytest.fixture
def store():
    """A store with two todos, the second one done."""
    return Store({
        "todos": [{"title": "a"}, {"title": "b", "done": True}],
        "tags": {"urgent": 1},
    })
