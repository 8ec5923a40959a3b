"""
Top-level API: thin functions that look up a value's Node and delegate.

All functions accept live tree values (object instances, arrays, maps) and
raise StateError for anything else.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

from statetree.action import ActionCall, Middleware
from statetree.json_patch import JsonPatch
from statetree.node import Disposer, Node, get_node
from statetree.object_factory import ObjectFactory
from statetree.transaction import transaction
from statetree.type_system import TypeDescriptor

logger = logging.getLogger(__name__)

PatchLike = Union[JsonPatch, Mapping[str, Any]]
ActionLike = Union[ActionCall, Mapping[str, Any]]


# ========== LISTENERS ==========

def on_action(target: Any, middleware: Middleware) -> Disposer:
    """Register middleware for root actions invoked on target or its descendants.

    The middleware receives (action, next). action is an ActionCall whose path
    is relative to target; next() runs the remaining chain and the action
    itself. Not calling next() prevents the action from running.

    Example:
        def log_actions(action, next):
            print(action.to_dict())
            return next()

        dispose = on_action(store, log_actions)

    Returns:
        Disposer that removes the middleware.
    """
    return get_node(target).on_action(middleware)


def on_patch(target: Any, callback: Callable[[JsonPatch], None]) -> Disposer:
    """Call callback with every patch applied to target or its descendants.

    Patches are delivered immediately, with paths relative to target.
    """
    return get_node(target).on_patch(callback)


def on_snapshot(target: Any, callback: Callable[[Any], None]) -> Disposer:
    """Call callback with target's new snapshot at the end of each transaction that changed it."""
    return get_node(target).on_snapshot(callback)


# ========== PATCHES / ACTIONS / SNAPSHOTS ==========

def apply_patch(target: Any, patch: PatchLike) -> None:
    get_node(target).apply_patch(patch)


def apply_patches(target: Any, patches: Iterable[PatchLike]) -> None:
    """Apply patches in order inside a single transaction."""
    node = get_node(target)
    with transaction():
        for patch in patches:
            node.apply_patch(patch)


def apply_action(target: Any, action: ActionLike) -> Any:
    """Invoke a named action; all middlewares run. Returns the chain's result."""
    return get_node(target).apply_action(action)


def apply_actions(target: Any, actions: Iterable[ActionLike]) -> None:
    """Apply actions in order inside a single transaction."""
    node = get_node(target)
    with transaction():
        for action in actions:
            node.apply_action(action)


def apply_snapshot(target: Any, snapshot: Any) -> None:
    """Reconcile target with snapshot. Patch and snapshot listeners fire as usual."""
    get_node(target).apply_snapshot(snapshot)


def get_snapshot(target: Any) -> Any:
    """Immutable snapshot of target, structurally shared with earlier snapshots."""
    return get_node(target).snapshot


# ========== RECORDERS ==========

@dataclass
class PatchRecorder:
    """Patches emitted by a subject since recording started."""
    patches: List[JsonPatch] = field(default_factory=list)
    _disposer: Optional[Disposer] = field(default=None, repr=False)

    def stop(self) -> None:
        if self._disposer is not None:
            self._disposer()
            self._disposer = None

    def replay(self, target: Any) -> None:
        apply_patches(target, self.patches)


@dataclass
class ActionRecorder:
    """Root actions invoked on a subject since recording started."""
    actions: List[ActionCall] = field(default_factory=list)
    _disposer: Optional[Disposer] = field(default=None, repr=False)

    def stop(self) -> None:
        if self._disposer is not None:
            self._disposer()
            self._disposer = None

    def replay(self, target: Any) -> None:
        apply_actions(target, self.actions)


def record_patches(subject: Any) -> PatchRecorder:
    """Start recording patches of subject. Call stop() to end recording."""
    recorder = PatchRecorder()
    recorder._disposer = on_patch(subject, recorder.patches.append)
    return recorder


def record_actions(subject: Any) -> ActionRecorder:
    """Start recording root actions of subject. Recorded actions still run."""
    recorder = ActionRecorder()

    def record(action: ActionCall, next: Callable[[], Any]) -> Any:
        recorder.actions.append(action)
        return next()

    recorder._disposer = on_action(subject, record)
    return recorder


# ========== TREE NAVIGATION ==========

def _strict_parent(node: Node) -> Optional[Node]:
    parent = node.parent
    while parent is not None and not isinstance(parent.factory, ObjectFactory):
        parent = parent.parent
    return parent


def has_parent(target: Any, strict: bool = False) -> bool:
    return get_parent(target, strict) is not None


def get_parent(target: Any, strict: bool = False) -> Any:
    """Parent container of target, or None for roots.

    With strict=True arrays and maps are skipped and the nearest enclosing
    object instance is returned.
    """
    node = get_node(target)
    parent = _strict_parent(node) if strict else node.parent
    return parent.target if parent is not None else None


def get_root(target: Any) -> Any:
    return get_node(target).root.target


def get_path(target: Any) -> str:
    """Escaped JSON pointer of target from its root ("" for the root)."""
    return get_node(target).path


def get_path_parts(target: Any) -> List[str]:
    return get_node(target).path_parts


def is_root(target: Any) -> bool:
    return get_node(target).is_root


def resolve(target: Any, path: str) -> Any:
    """Resolve an escaped path relative to target.

    Raises:
        PathResolutionError: If a segment cannot be resolved.
    """
    return get_node(target).resolve(path)


def try_resolve(target: Any, path: str) -> Any:
    """Like resolve(), but returns None when the path does not resolve."""
    return get_node(target).resolve(path, fail=False)


def get_from_environment(target: Any, key: str) -> Any:
    """Value for key in target's (inherited) environment, or None."""
    return get_node(target).get_from_environment(key)


def get_type(target: Any) -> TypeDescriptor:
    """The type (factory) that created target."""
    return get_node(target).factory


# ========== LIFECYCLE ==========

def clone(source: Any, environment: Any = None) -> Any:
    """New, independent value created from source's snapshot.

    The clone uses environment if given, otherwise source's environment.
    """
    node = get_node(source)
    return node.factory.create(node.snapshot, environment if environment is not None else node.environment)


def detach(target: Any) -> Any:
    """Remove target from its parent; it becomes the root of its own tree.

    Array and map entries are removed. An object property is reset to its
    type's default value; StateError if the type has none.

    Returns:
        target
    """
    get_node(target).detach()
    return target


def snapshot_after_actions(factory: TypeDescriptor, initial_snapshot: Any, *actions: ActionLike) -> Any:
    """Create an instance, apply actions in one transaction and return the resulting snapshot."""
    instance = factory.create(initial_snapshot)
    apply_actions(instance, actions)
    return get_snapshot(instance)
