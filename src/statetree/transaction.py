"""
Transaction scope for batched notifications.

Mutations and actions run inside a transaction. Notifications that should be
batched (snapshot listeners) are scheduled with schedule_after_transaction()
and run once when the outermost transaction exits. Nested transactions only
increase the depth counter.

Not thread-safe: the engine assumes a single logical call stack.
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Generator, Hashable, Optional

logger = logging.getLogger(__name__)

_depth: int = 0
_flushing: bool = False
# Insertion-ordered; one pending callback per key
_pending: Dict[Hashable, Callable[[], None]] = {}


def in_transaction() -> bool:
    """True while at least one transaction scope is open."""
    return _depth > 0


def schedule_after_transaction(key: Hashable, callback: Callable[[], None]) -> None:
    """Run callback when the outermost transaction ends.

    Scheduling the same key twice within one transaction keeps the first
    position and runs the callback once. Outside any transaction the callback
    runs immediately.
    """
    if _depth == 0 and not _flushing:
        callback()
        return
    if key not in _pending:
        _pending[key] = callback


def _flush() -> None:
    """Run every pending callback, then re-raise the first failure."""
    global _flushing
    if _flushing:
        return
    _flushing = True
    first_error: Optional[BaseException] = None
    try:
        while _pending:
            batch = list(_pending.values())
            _pending.clear()
            logger.debug(f"Flushing {len(batch)} deferred notification(s)")
            for callback in batch:
                try:
                    callback()
                except Exception as error:
                    logger.error(f"Deferred notification failed: {error}")
                    if first_error is None:
                        first_error = error
    finally:
        _flushing = False
    if first_error is not None:
        raise first_error


@contextmanager
def transaction() -> Generator[None, None, None]:
    """Open a (possibly nested) transaction scope.

    Deferred notifications are flushed when the outermost scope exits, also
    when it exits with an exception: mutations applied before the failure
    still notify their listeners.

    Example:
        with transaction():
            store.todos.append({"title": "a"})
            store.todos.append({"title": "b"})
        # snapshot listeners of store fire once here
    """
    global _depth
    _depth += 1
    try:
        yield
    finally:
        _depth -= 1
        if _depth == 0:
            _flush()


def run_in_transaction(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Call fn inside a transaction and return its result."""
    with transaction():
        return fn(*args, **kwargs)
