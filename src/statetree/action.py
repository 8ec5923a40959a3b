"""
Named actions and the action middleware chain.

An action is a method declared on an object factory. Invoking it outside of
any running action makes it a root action: the call is described by an
ActionCall and threaded through the middlewares registered on the node and
its ancestors. Actions invoked while another action runs execute directly.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generator, List, Mapping, Sequence, Tuple, Union, TYPE_CHECKING

from statetree.errors import StateError
from statetree.transaction import transaction

if TYPE_CHECKING:
    from statetree.node import Node

logger = logging.getLogger(__name__)

# (action, next) -> Any
Middleware = Callable[['ActionCall', Callable[[], Any]], Any]

_action_depth: int = 0


@dataclass(frozen=True)
class ActionCall:
    """Description of a named invocation on a node or one of its descendants.

    path is relative to the node the call is applied to (or, when handed to a
    middleware, relative to the node the middleware is registered on).
    """
    name: str
    path: str = ""
    args: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.args, tuple):
            object.__setattr__(self, 'args', tuple(self.args))

    def to_dict(self) -> Dict[str, Any]:
        """Export to the JSON wire shape."""
        return {'name': self.name, 'path': self.path, 'args': list(self.args)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ActionCall':
        """Import from the JSON wire shape; path and args are optional."""
        if 'name' not in data:
            raise StateError(f"Action call requires a 'name', got: {dict(data)!r}")
        return cls(name=data['name'], path=data.get('path') or "", args=tuple(data.get('args') or ()))

    @classmethod
    def coerce(cls, call: Union['ActionCall', Mapping[str, Any]]) -> 'ActionCall':
        """Accept either an ActionCall or its dict form."""
        if isinstance(call, ActionCall):
            return call
        return cls.from_dict(call)


def is_running_action() -> bool:
    """True while an action body is executing."""
    return _action_depth > 0


@contextmanager
def action_frame() -> Generator[None, None, None]:
    """Mark the enclosed code as running inside an action."""
    global _action_depth
    _action_depth += 1
    try:
        yield
    finally:
        _action_depth -= 1


def _collect_middlewares(node: 'Node') -> List[Tuple['Node', Middleware]]:
    # invoking node first, then each ancestor; registration order within a node
    handlers: List[Tuple['Node', Middleware]] = []
    current = node
    while current is not None:
        for middleware in list(current.middlewares):
            handlers.append((current, middleware))
        current = current.parent
    return handlers


def run_middleware_chain(node: 'Node', name: str, args: Sequence[Any], execute: Callable[[], Any]) -> Any:
    """Run a root action through the middleware chain.

    Each middleware receives (action, next). Calling next() proceeds to the
    following middleware, the last next() runs the action itself. Not calling
    next() prevents the action from running; the middleware's return value
    then becomes the result of the call.
    """
    handlers = _collect_middlewares(node)
    args = tuple(args)

    def invoke(index: int) -> Any:
        if index == len(handlers):
            return execute()
        owner, middleware = handlers[index]
        call = ActionCall(name=name, path=owner.relative_path_to(node), args=args)
        return middleware(call, lambda: invoke(index + 1))

    logger.debug(f"Root action '{name}' on '{node.path}' through {len(handlers)} middleware(s)")
    return invoke(0)


def invoke_action(node: 'Node', name: str, fn: Callable[..., Any], args: Sequence[Any]) -> Any:
    """Invoke action fn bound to node's value.

    Root actions pass the middleware chain; nested actions run directly.
    Either way the body runs inside a transaction and an action frame.
    """
    def execute() -> Any:
        with transaction(), action_frame():
            return fn(node.target, *args)

    if is_running_action():
        return execute()
    return run_middleware_chain(node, name, args, execute)
