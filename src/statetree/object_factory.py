"""
Object factories: named object shapes with properties, actions and views.

create_factory() infers the shape from a dict of defaults:

    Todo = create_factory("Todo", {
        "title": "",                          # primitive with default ""
        "done": False,
        "toggle": lambda self: ...,           # action
        "label": property(lambda self: ...),  # view
    })
    todo = Todo({"title": "write docs"})

Each factory generates its own ObjectInstance subclass. Properties are
descriptors that route writes through the factory so every write is validated
and turned into exactly one 'replace' patch.
"""

import functools
import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional, Tuple

from statetree.errors import StateError
from statetree.json_patch import JsonPatch
from statetree.node import Node, NodeBacked, get_node, is_state_tree_node, snapshot_of
from statetree.snapshot import make_snapshot_dict, to_json_text
from statetree.transaction import transaction
from statetree.type_system import (
    MISSING, PRIMITIVE, ComplexType, TypeDescriptor, ValidationIssue, WithDefault,
    child_path, same_primitive,
)

logger = logging.getLogger(__name__)

DEFAULT_FACTORY_NAME = "unnamed-object-factory"


class ObjectInstance(NodeBacked):
    """Base class of the live values produced by object factories."""

    __slots__ = ('_node', '_values', '__weakref__')

    def __repr__(self) -> str:
        return f"{self._node.factory.name}({to_json_text(self._node.snapshot)})"


class _PropertyAccessor:
    """Data descriptor for one declared property."""

    def __init__(self, name: str):
        self.name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return instance._values[self.name]

    def __set__(self, instance, value):
        instance._node.factory.set_property(instance._node, self.name, value)

    def __delete__(self, instance):
        raise StateError(f"Property '{self.name}' cannot be deleted; use detach() on a child value instead")


def _make_action_method(name: str, fn: Callable[..., Any]) -> Callable[..., Any]:
    @functools.wraps(fn)
    def action(self, *args):
        return self._node.call_action(name, fn, args)
    action.__name__ = name
    return action


class ObjectFactory(ComplexType):
    """Type of object values: an ordered mapping of property name to type.

    Attributes:
        properties: Declared properties in declaration order
        actions: Action functions, called as fn(instance, *args)
        views: Read-only computed properties, excluded from snapshots
        instance_class: Generated ObjectInstance subclass
    """

    def __init__(
        self,
        name: str,
        properties: Dict[str, TypeDescriptor],
        actions: Optional[Dict[str, Callable[..., Any]]] = None,
        views: Optional[Dict[str, property]] = None,
    ):
        super().__init__(name)
        self.properties: Dict[str, TypeDescriptor] = dict(properties)
        self.actions: Dict[str, Callable[..., Any]] = dict(actions or {})
        self.views: Dict[str, property] = dict(views or {})

        namespace: Dict[str, Any] = {'__slots__': ()}
        for key in self.properties:
            namespace[key] = _PropertyAccessor(key)
        for key, fn in self.actions.items():
            namespace[key] = _make_action_method(key, fn)
        namespace.update(self.views)
        self.instance_class = type(name, (ObjectInstance,), namespace)

    def describe(self) -> str:
        if not self.properties:
            return "{}"
        body = "; ".join(f"{key}: {prop_type.describe()}" for key, prop_type in self.properties.items())
        return f"{{ {body} }}"

    def default_snapshot(self) -> Any:
        if all(prop_type.has_default for prop_type in self.properties.values()):
            return make_snapshot_dict(())
        return MISSING

    def validate(self, value: Any, path: str = ""):
        if is_state_tree_node(value):
            if get_node(value).factory is self:
                return []
            value = snapshot_of(value)
        if not isinstance(value, Mapping):
            return [ValidationIssue(path, value, f"Value {to_json_text(value)} is not an object")]
        issues = []
        for key in value:
            if key not in self.properties:
                issues.append(ValidationIssue(child_path(path, key), value[key], f"Unknown property '{key}'"))
        for key, prop_type in self.properties.items():
            if key in value:
                issues.extend(prop_type.validate(value[key], child_path(path, key)))
            elif not prop_type.has_default:
                issues.append(ValidationIssue(child_path(path, key), None, f"Missing required property '{key}'"))
        return issues

    def create(self, snapshot: Any = None, environment: Any = None) -> Any:
        return super().create({} if snapshot is None else snapshot, environment)

    # ========== INSTANCE STORAGE ==========

    def create_target(self) -> ObjectInstance:
        target = object.__new__(self.instance_class)
        target._values = {}
        return target

    def initialize(self, node: Node, snapshot: Any) -> None:
        values = node.target._values
        for key, prop_type in self.properties.items():
            raw = snapshot[key] if key in snapshot else prop_type.default_snapshot()
            values[key] = self.instantiate_child(node, key, prop_type, raw)

    def serialize(self, node: Node) -> Any:
        values = node.target._values
        return make_snapshot_dict((key, snapshot_of(values[key])) for key in self.properties)

    def _store(self, node: Node, key: str, child: Any) -> None:
        # child is already attached; release the value it replaces
        values = node.target._values
        previous = values.get(key)
        if is_state_tree_node(previous) and previous is not child:
            get_node(previous).release()
        values[key] = child
        node.notify_mutation("replace", key, snapshot_of(child))

    def set_property(self, node: Node, key: str, value: Any) -> None:
        """Validate value and write it to property key, emitting one 'replace' patch."""
        prop_type = self.properties[key]
        if same_primitive(node.target._values[key], value):
            return
        with transaction():
            child = self.adopt(node, key, prop_type, value)
            self._store(node, key, child)

    # ========== CONTAINER PROTOCOL ==========

    def get_child_value(self, node: Node, key: str) -> Tuple[bool, Any]:
        if key in self.properties:
            return True, node.target._values[key]
        return False, None

    def apply_patch_locally(self, node: Node, key: str, patch: JsonPatch) -> None:
        if key not in self.properties:
            raise StateError(f"'{self.name}' at '{node.path}' has no property '{key}'")
        if patch.op == "remove":
            raise StateError(f"Cannot remove property '{key}' of '{self.name}'; object properties cannot be removed")
        self.set_property(node, key, patch.value)

    def apply_snapshot(self, node: Node, snapshot: Any) -> None:
        snapshot = snapshot_of(snapshot)
        self.assert_valid(snapshot)
        values = node.target._values
        with transaction():
            for key, prop_type in self.properties.items():
                raw = snapshot[key] if key in snapshot else prop_type.default_snapshot()
                if self.reconcile_child(values[key], raw, prop_type):
                    continue
                self.set_property(node, key, raw)

    def detach_child(self, node: Node, key: str) -> None:
        prop_type = self.properties[key]
        default = prop_type.default_snapshot()
        if default is MISSING:
            raise StateError(
                f"Cannot detach '{key}' from '{self.name}' at '{node.path}': "
                f"type {prop_type.name} has no default value to put in its place"
            )
        with transaction():
            child = self.instantiate_child(node, key, prop_type, default)
            self._store(node, key, child)

    def get_action(self, name: str) -> Optional[Callable[..., Any]]:
        return self.actions.get(name)


def create_factory(name: Any = None, properties: Optional[Mapping[str, Any]] = None) -> ObjectFactory:
    """Create an object factory from a name and a dict of property defaults.

    Args:
        name: Display name; may be omitted (create_factory({...}))
        properties: key -> default. A type descriptor declares a typed
            property, a primitive declares a primitive property with that
            default, a function declares an action and a property object
            declares a computed view.

    Raises:
        ValueError: If a key is not a string or starts with '_'
        TypeError: If a default cannot be turned into a property type
    """
    if properties is None and isinstance(name, Mapping):
        name, properties = None, name
    name = name or DEFAULT_FACTORY_NAME
    props: Dict[str, TypeDescriptor] = {}
    actions: Dict[str, Callable[..., Any]] = {}
    views: Dict[str, property] = {}

    for key, value in (properties or {}).items():
        if not isinstance(key, str) or key.startswith("_"):
            raise ValueError(f"Invalid property name {key!r} in factory '{name}'")
        if isinstance(value, TypeDescriptor):
            props[key] = value
        elif isinstance(value, property):
            views[key] = value
        elif callable(value):
            actions[key] = value
        elif value is None or isinstance(value, (bool, int, float, str)):
            props[key] = WithDefault(PRIMITIVE, value)
        else:
            raise TypeError(
                f"Cannot infer a type for property '{key}' of '{name}' from {value!r}; "
                f"use types.array(), types.map() or a nested factory"
            )

    logger.debug(f"Created factory '{name}' with properties {list(props)}, actions {list(actions)}")
    return ObjectFactory(name, props, actions, views)
