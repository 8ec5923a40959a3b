"""
Todo list state tree.

Shows factories, actions, views, middleware, patch recording and replay.
Run with: python examples/todos.py
"""

import logging

from statetree import (
    apply_patches,
    create_factory,
    get_snapshot,
    on_action,
    on_snapshot,
    record_patches,
    types,
)

logger = logging.getLogger(__name__)


def toggle(self):
    self.done = not self.done


def add_todo(self, title):
    self.todos.append({"title": title})


def remaining(self):
    return len([todo for todo in self.todos if not todo.done])


Todo = create_factory("Todo", {
    "title": "",
    "done": False,
    "toggle": toggle,
})

TodoStore = create_factory("TodoStore", {
    "todos": types.array(Todo),
    "filter": types.with_default(types.primitive, "all"),
    "add_todo": add_todo,
    "remaining": property(remaining),
})


def log_actions(action, next):
    logger.info(f"action {action.name} at '{action.path}' with {list(action.args)}")
    return next()


def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    store = TodoStore({"todos": [{"title": "Get coffee"}]})
    initial = get_snapshot(store)

    on_action(store, log_actions)
    on_snapshot(store, lambda snapshot: logger.info(f"snapshot {dict(snapshot)}"))
    recorder = record_patches(store)

    store.add_todo("Learn state trees")
    store.todos[0].toggle()
    logger.info(f"{store.remaining} todo(s) remaining")
    recorder.stop()

    for patch in recorder.patches:
        logger.info(f"patch {patch.to_dict()}")

    replica = TodoStore(initial)
    apply_patches(replica, recorder.patches)
    assert get_snapshot(replica) == get_snapshot(store)
    logger.info("replica is in sync")


if __name__ == "__main__":
    main()
