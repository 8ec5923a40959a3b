"""
Node: the runtime wrapper around one live tree value.

Every object, array and map instance in a state tree is backed by exactly one
Node. The Node owns the value's identity, its position in the tree (parent
back-reference and subpath), its environment, the memoized snapshot and the
listener registries for patches, actions and snapshots.

Container-specific behaviour (how to serialize, how to apply a patch to a
key, how to remove a child) lives on the node's factory; the Node only
provides the generic machinery.

Ownership:
- A parent owns its children through the container storage of its value.
- A child holds a back-reference to its parent which is cleared on release.
- A node has at most one parent; attaching an attached node is an error.
"""

import logging
import uuid
from collections.abc import Mapping
from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

from statetree.action import ActionCall, Middleware, invoke_action
from statetree.errors import PathResolutionError, StateError
from statetree.json_patch import JsonPatch, join_json_path, split_json_path, unescape_path_segment
from statetree.transaction import schedule_after_transaction, transaction

logger = logging.getLogger(__name__)

Disposer = Callable[[], None]

_NOT_FOUND = object()


class NodeBacked:
    """Marker base for live values owned by a Node (objects, arrays, maps)."""
    __slots__ = ()


def is_state_tree_node(value: Any) -> bool:
    """True if value is a live tree value backed by a Node."""
    return isinstance(value, NodeBacked)


def get_node(value: Any) -> 'Node':
    """Return the Node backing a live tree value.

    Raises:
        StateError: If value is not a live tree value.
    """
    if not isinstance(value, NodeBacked):
        raise StateError(f"Value {value!r} is not a state tree node")
    return value._node


def snapshot_of(value: Any) -> Any:
    """Snapshot of a live value, or the value itself for primitives."""
    if isinstance(value, NodeBacked):
        return value._node.snapshot
    return value


def _register(registry: List[Callable], callback: Callable) -> Disposer:
    registry.append(callback)

    def dispose() -> None:
        if callback in registry:
            registry.remove(callback)

    return dispose


class Node:
    """Tree node for a single live value.

    Attributes:
        id: Unique identity (uuid4 hex)
        factory: The type that created the value; implements the container protocol
        target: The live value (ObjectInstance, ObservableArray, ObservableMap)
        patch_listeners: Callbacks receiving each JsonPatch, un-batched
        middlewares: Action middlewares, in registration order
        snapshot_listeners: Callbacks receiving the latest snapshot once per transaction
    """

    def __init__(self, factory: Any, target: Any, environment: Any = None):
        self.id = uuid.uuid4().hex
        self.factory = factory
        self.target = target
        self._own_environment = environment
        # inherited environment kept while the node is a detached root
        self._detached_environment: Any = None
        self._parent: Optional['Node'] = None
        self._subpath: str = ""
        self._snapshot: Any = None
        self._snapshot_valid = False
        self.patch_listeners: List[Callable[[JsonPatch], None]] = []
        self.middlewares: List[Middleware] = []
        self.snapshot_listeners: List[Callable[[Any], None]] = []

    def __repr__(self) -> str:
        return f"<Node {self.factory.name} at '{self.path}'>"

    # ========== TREE POSITION ==========

    @property
    def parent(self) -> Optional['Node']:
        return self._parent

    @property
    def subpath(self) -> str:
        return self._subpath

    @property
    def is_root(self) -> bool:
        return self._parent is None

    @property
    def root(self) -> 'Node':
        node = self
        while node._parent is not None:
            node = node._parent
        return node

    @property
    def path_parts(self) -> List[str]:
        """Unescaped segments from the root to this node."""
        parts = []
        node = self
        while node._parent is not None:
            parts.append(node._subpath)
            node = node._parent
        parts.reverse()
        return parts

    @property
    def path(self) -> str:
        """Escaped JSON pointer from the root to this node ("" for the root)."""
        return join_json_path(self.path_parts)

    def relative_path_to(self, descendant: 'Node') -> str:
        """Escaped path from this node down to descendant."""
        parts = []
        node = descendant
        while node is not self:
            if node is None:
                raise StateError(f"'{descendant.path}' is not a descendant of '{self.path}'")
            parts.append(node._subpath)
            node = node._parent
        parts.reverse()
        return join_json_path(parts)

    def attach(self, parent: 'Node', subpath: str) -> None:
        """Link this node under parent at subpath.

        Raises:
            StateError: If the node already has a parent, or parent is this
                        node or one of its descendants.
        """
        if self._parent is not None:
            raise StateError(
                f"Cannot add '{self.factory.name}' at '{parent.path}/{subpath}': "
                f"it is already part of a tree at '{self.path}'. Detach or clone it first."
            )
        ancestor: Optional[Node] = parent
        while ancestor is not None:
            if ancestor is self:
                raise StateError(f"Cannot add '{self.factory.name}' as a descendant of itself")
            ancestor = ancestor._parent
        self._parent = parent
        self._subpath = subpath
        self._detached_environment = None
        logger.debug(f"Attached {self.factory.name} at '{self.path}'")

    def release(self) -> None:
        """Clear the parent link; the node becomes the root of its own tree.

        The inherited environment is kept until the node is attached again.
        """
        if self._parent is None:
            return
        old_path = self.path
        if self._own_environment is None:
            self._detached_environment = self._parent.environment
        self._parent = None
        self._subpath = ""
        logger.debug(f"Released {self.factory.name} from '{old_path}'")

    def set_parent(self, parent: Optional['Node'], subpath: str = "") -> None:
        """Attach under parent at subpath, or release when parent is None."""
        if parent is None:
            self.release()
        else:
            self.attach(parent, subpath)

    def set_subpath(self, subpath: str) -> None:
        """Update the key under the current parent (array re-indexing)."""
        self._subpath = subpath

    def detach(self) -> None:
        """Remove this node from its parent container; no-op for roots."""
        if self._parent is None:
            return
        parent = self._parent
        parent.factory.detach_child(parent, self._subpath)

    # ========== ENVIRONMENT ==========

    @property
    def environment(self) -> Any:
        """Own environment, else the parent's."""
        node: Optional[Node] = self
        while node is not None:
            if node._own_environment is not None:
                return node._own_environment
            if node._parent is None:
                return node._detached_environment
            node = node._parent
        return None

    def get_from_environment(self, key: str) -> Any:
        """Look up key in the environment (mapping key or attribute); None if absent."""
        environment = self.environment
        if environment is None:
            return None
        if isinstance(environment, Mapping):
            return environment.get(key)
        return getattr(environment, key, None)

    # ========== SNAPSHOTS ==========

    @property
    def snapshot(self) -> Any:
        """Memoized immutable snapshot; unchanged children are reused by reference."""
        if not self._snapshot_valid:
            self._snapshot = self.factory.serialize(self)
            self._snapshot_valid = True
        return self._snapshot

    def invalidate(self) -> None:
        """Drop cached snapshots of this node and all ancestors.

        Ancestors with snapshot listeners get a notification scheduled for the
        end of the current transaction.
        """
        node: Optional[Node] = self
        while node is not None:
            node._snapshot_valid = False
            if node.snapshot_listeners:
                schedule_after_transaction(('snapshot', node.id), node._notify_snapshot)
            node = node._parent

    def _notify_snapshot(self) -> None:
        if not self.snapshot_listeners:
            return
        snapshot = self.snapshot
        for listener in list(self.snapshot_listeners):
            listener(snapshot)

    def apply_snapshot(self, snapshot: Any) -> None:
        """Reconcile the live value with snapshot; emits patches as usual."""
        with transaction():
            self.factory.apply_snapshot(self, snapshot)

    # ========== PATCHES ==========

    def emit_patch(self, op: str, parts: Iterable[str], value: Any = None) -> None:
        """Deliver a patch to this node's listeners, then bubble it to the parent."""
        parts = list(parts)
        patch = JsonPatch(op=op, path=join_json_path(parts), value=value)
        for listener in list(self.patch_listeners):
            listener(patch)
        if self._parent is not None:
            self._parent.emit_patch(op, [self._subpath] + parts, value)

    def notify_mutation(self, op: str, key: str, value: Any = None) -> None:
        """Record a mutation of this node's own key: invalidate, then emit one patch."""
        self.invalidate()
        logger.debug(f"Patch {op} '{join_json_path(self.path_parts + [key])}'")
        self.emit_patch(op, [key], value)

    def apply_patch(self, patch: Union[JsonPatch, Mapping]) -> None:
        """Apply one add/replace/remove patch relative to this node.

        Raises:
            PathResolutionError: If the container addressed by the path does not exist.
            StateError: If the operation is not possible on the addressed key.
        """
        patch = JsonPatch.coerce(patch)
        parts = patch.path_parts
        logger.debug(f"Applying patch {patch.op} '{patch.path}' on '{self.path}'")
        with transaction():
            if not parts:
                if patch.op != "replace":
                    raise StateError(f"Patch '{patch.op}' cannot target the node itself, only 'replace' can")
                self.factory.apply_snapshot(self, patch.value)
                return
            container = self.resolve_node(parts[:-1])
            container.factory.apply_patch_locally(container, parts[-1], patch)

    def on_patch(self, callback: Callable[[JsonPatch], None]) -> Disposer:
        return _register(self.patch_listeners, callback)

    def on_snapshot(self, callback: Callable[[Any], None]) -> Disposer:
        return _register(self.snapshot_listeners, callback)

    # ========== ACTIONS ==========

    def on_action(self, middleware: Middleware) -> Disposer:
        return _register(self.middlewares, middleware)

    def call_action(self, name: str, fn: Callable[..., Any], args: Tuple[Any, ...]) -> Any:
        return invoke_action(self, name, fn, args)

    def apply_action(self, call: Union[ActionCall, Mapping]) -> Any:
        """Invoke a named action on this node or the descendant at call.path.

        Raises:
            StateError: If the addressed value declares no such action.
        """
        call = ActionCall.coerce(call)
        node = self.resolve_node(self._split_path(call.path))
        if node.factory.get_action(call.name) is None:
            raise StateError(f"'{node.factory.name}' at '{node.path}' has no action '{call.name}'")
        return getattr(node.target, call.name)(*call.args)

    # ========== RESOLUTION ==========

    @staticmethod
    def _split_path(path: str) -> List[str]:
        if path.startswith("/"):
            return split_json_path(path)
        if path == "":
            return []
        return [unescape_path_segment(part) for part in path.split("/")]

    def _walk(self, parts: List[str]) -> Tuple[Any, Optional[str]]:
        """Walk segments; returns (value, failing_segment)."""
        node: Optional[Node] = self
        value: Any = self.target
        for segment in parts:
            if node is None:
                # previous segment resolved to a primitive
                return _NOT_FOUND, segment
            if segment == ".":
                continue
            if segment == "..":
                node = node._parent
                if node is None:
                    return _NOT_FOUND, segment
                value = node.target
                continue
            found, value = node.factory.get_child_value(node, segment)
            if not found:
                return _NOT_FOUND, segment
            node = value._node if isinstance(value, NodeBacked) else None
        return value, None

    def resolve(self, path: str, fail: bool = True) -> Any:
        """Resolve an escaped path relative to this node.

        Segments: '.' is this node, '..' the parent, anything else a child key.
        Both absolute pointers ('/a/0') and relative paths ('../a') are accepted.

        Returns:
            The live value or primitive at path. With fail=False, None when
            the path does not resolve.

        Raises:
            PathResolutionError: If fail is True and a segment cannot be resolved.
        """
        parts = self._split_path(path)
        value, segment = self._walk(parts)
        if value is _NOT_FOUND:
            if fail:
                raise PathResolutionError(
                    f"Could not resolve '{segment}' in path '{path}' from '{self.path}'",
                    path=path,
                    segment=segment,
                )
            return None
        return value

    def resolve_node(self, parts: List[str]) -> 'Node':
        """Resolve unescaped segments to a Node (never a primitive)."""
        path = join_json_path(parts)
        value, segment = self._walk(parts)
        if value is _NOT_FOUND:
            raise PathResolutionError(
                f"Could not resolve '{segment}' in path '{path}' from '{self.path}'",
                path=path,
                segment=segment,
            )
        if not isinstance(value, NodeBacked):
            raise PathResolutionError(f"Path '{path}' does not point to a container", path=path)
        return value._node
