"""
Type descriptors: validation and instantiation of snapshots.

Every descriptor can
1. validate an arbitrary value, returning a list of ValidationIssue with
   field paths (empty list = valid), and
2. instantiate a live value (or return the primitive) from a valid snapshot.

Descriptors are callable factories: `Todo(snapshot, environment)`.
`Todo.is_(value)` and `isinstance(value, Todo)` agree with validation.

Variants defined here: Primitive, NullType, WithDefault, Union and the
ComplexType base shared by objects, arrays and maps.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from statetree.errors import AmbiguousUnionError, StateError, ValidationError
from statetree.json_patch import JsonPatch, escape_path_segment
from statetree.node import Node, get_node, is_state_tree_node, snapshot_of
from statetree.snapshot import freeze, to_json_text

logger = logging.getLogger(__name__)


class _Missing:
    """Sentinel for 'no default value'."""

    def __repr__(self):
        return "MISSING"

    def __bool__(self):
        return False


MISSING = _Missing()


@dataclass(frozen=True)
class ValidationIssue:
    """One problem found while validating a value against a type."""
    path: str
    value: Any
    message: str

    def __str__(self) -> str:
        return f"{self.path or '/'}: {self.message}"


def child_path(path: str, key: Any) -> str:
    """Append one escaped segment to a pointer."""
    return f"{path}/{escape_path_segment(str(key))}"


def same_primitive(old: Any, new: Any) -> bool:
    """True if writing new over old would not change the tree."""
    if is_state_tree_node(old) or is_state_tree_node(new):
        return old is new
    return type(old) is type(new) and old == new


class TypeDescriptor:
    """Base class of all type descriptors.

    Subclasses implement validate(), describe() and instantiate().
    """

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    def validate(self, value: Any, path: str = "") -> List[ValidationIssue]:
        raise NotImplementedError

    def describe(self) -> str:
        """Shape signature, e.g. '{ name: primitive; done: primitive }[]'."""
        raise NotImplementedError

    def instantiate(self, value: Any, environment: Any = None) -> Any:
        """Turn an already validated value into a live value (or primitive)."""
        raise NotImplementedError

    def default_snapshot(self) -> Any:
        return MISSING

    @property
    def has_default(self) -> bool:
        return self.default_snapshot() is not MISSING

    def is_(self, value: Any) -> bool:
        """True if value (snapshot or live value) is assignable to this type."""
        return not self.validate(value)

    def __instancecheck__(self, instance: Any) -> bool:
        return self.is_(instance)

    def assert_valid(self, value: Any, label: str = "Snapshot") -> None:
        """Raise ValidationError if value is not assignable to this type."""
        issues = self.validate(value)
        if issues:
            rendered = to_json_text(snapshot_of(value))
            raise ValidationError(
                f'{label} {rendered} is not assignable to type {self.name}. Expected "{self.describe()}"'
                + "".join(f"\n  {issue}" for issue in issues),
                value=value,
                type_name=self.name,
                signature=self.describe(),
                issues=issues,
            )

    def create(self, snapshot: Any = None, environment: Any = None) -> Any:
        """Validate snapshot and instantiate it."""
        self.assert_valid(snapshot)
        return self.instantiate(snapshot, environment)

    def __call__(self, snapshot: Any = None, environment: Any = None) -> Any:
        return self.create(snapshot, environment)


class Primitive(TypeDescriptor):
    """Any JSON primitive: None, bool, int, float, str."""

    def __init__(self):
        super().__init__("primitive")

    def validate(self, value: Any, path: str = "") -> List[ValidationIssue]:
        if value is None or isinstance(value, (bool, int, float, str)):
            return []
        return [ValidationIssue(path, value, f"Value {to_json_text(snapshot_of(value))} is not a primitive")]

    def describe(self) -> str:
        return "primitive"

    def instantiate(self, value: Any, environment: Any = None) -> Any:
        return value


class NullType(TypeDescriptor):
    """Only None."""

    def __init__(self):
        super().__init__("null")

    def validate(self, value: Any, path: str = "") -> List[ValidationIssue]:
        if value is None:
            return []
        return [ValidationIssue(path, value, f"Value {to_json_text(snapshot_of(value))} is not null")]

    def describe(self) -> str:
        return "null"

    def default_snapshot(self) -> Any:
        return None

    def instantiate(self, value: Any, environment: Any = None) -> Any:
        return value


PRIMITIVE = Primitive()
NULL = NullType()


class WithDefault(TypeDescriptor):
    """A type whose missing values are substituted with a default snapshot.

    The default is validated when the descriptor is defined.
    """

    def __init__(self, type_: TypeDescriptor, default: Any):
        super().__init__(type_.name)
        if is_state_tree_node(default):
            raise StateError(f"Default value for type {type_.name} must be a snapshot, not a live value")
        issues = type_.validate(default)
        if issues:
            raise ValidationError(
                f'Default value {to_json_text(default)} is not assignable to type {type_.name}. '
                f'Expected "{type_.describe()}"',
                value=default,
                type_name=type_.name,
                signature=type_.describe(),
                issues=issues,
            )
        self.type = type_
        self.default = freeze(default)

    def validate(self, value: Any, path: str = "") -> List[ValidationIssue]:
        return self.type.validate(value, path)

    def is_(self, value: Any) -> bool:
        return self.type.is_(value)

    def describe(self) -> str:
        return self.type.describe()

    def default_snapshot(self) -> Any:
        return self.default

    def create(self, snapshot: Any = None, environment: Any = None) -> Any:
        return self.type.create(self.default if snapshot is None else snapshot, environment)

    def instantiate(self, value: Any, environment: Any = None) -> Any:
        return self.type.instantiate(value, environment)


class Union(TypeDescriptor):
    """One of several variant types.

    With a dispatcher, dispatcher(snapshot) selects the variant. Without one,
    the variant is the single variant that accepts the snapshot: its keys must
    be declared properties, missing keys must have defaults and every value
    must type-check (the value check decides between variants whose key sets
    both fit). Zero or several accepting variants raise AmbiguousUnionError.
    """

    def __init__(
        self,
        variants: Sequence[TypeDescriptor],
        dispatcher: Optional[Callable[[Any], TypeDescriptor]] = None,
    ):
        variants = tuple(variants)
        if not variants:
            raise TypeError("A union requires at least one variant type")
        for variant in variants:
            if not isinstance(variant, TypeDescriptor):
                raise TypeError(f"Union variants must be types, got {variant!r}")
        super().__init__(" | ".join(variant.name for variant in variants))
        self.variants: Tuple[TypeDescriptor, ...] = variants
        self.dispatcher = dispatcher

    def describe(self) -> str:
        return " | ".join(variant.describe() for variant in self.variants)

    def resolve_variant(self, value: Any) -> TypeDescriptor:
        """Pick the variant for value (snapshot or live value).

        Raises:
            AmbiguousUnionError: No dispatcher and not exactly one variant accepts value.
        """
        snapshot = snapshot_of(value)
        if self.dispatcher is not None:
            variant = self.dispatcher(snapshot)
            if not isinstance(variant, TypeDescriptor):
                raise StateError(f"Dispatcher of union {self.name} returned {variant!r}, expected a type")
            return variant
        if is_state_tree_node(value):
            factory = get_node(value).factory
            for variant in self.variants:
                if variant is factory:
                    return variant
        candidates = [variant for variant in self.variants if variant.is_(value)]
        if len(candidates) == 1:
            return candidates[0]
        named = candidates or list(self.variants)
        raise AmbiguousUnionError(
            f"Ambiguous snapshot {to_json_text(snapshot)} for union "
            f"{' | '.join(variant.name for variant in named)}. "
            f"Please provide a dispatch in the union declaration.",
            snapshot=snapshot,
            candidates=named,
        )

    def validate(self, value: Any, path: str = "") -> List[ValidationIssue]:
        try:
            variant = self.resolve_variant(value)
        except AmbiguousUnionError as error:
            return [ValidationIssue(path, value, error.raw_message)]
        return variant.validate(value, path)

    def is_(self, value: Any) -> bool:
        if self.dispatcher is None and is_state_tree_node(value):
            return any(variant.is_(value) for variant in self.variants)
        return not self.validate(value)

    def create(self, snapshot: Any = None, environment: Any = None) -> Any:
        if is_state_tree_node(snapshot):
            snapshot = snapshot_of(snapshot)
        variant = self.resolve_variant(snapshot)
        return variant.create(snapshot, environment)

    def instantiate(self, value: Any, environment: Any = None) -> Any:
        if is_state_tree_node(value):
            return value
        return self.resolve_variant(value).instantiate(value, environment)


class ComplexType(TypeDescriptor):
    """Base for types whose values are Node-backed containers.

    Container protocol used by Node:
        serialize(node)                         -> snapshot
        get_child_value(node, key)              -> (found, value)
        apply_patch_locally(node, key, patch)
        apply_snapshot(node, snapshot)
        detach_child(node, key)
        get_action(name)                        -> function or None
    """

    def create_target(self) -> Any:
        raise NotImplementedError

    def initialize(self, node: Node, snapshot: Any) -> None:
        """Fill a fresh target's storage from a validated snapshot."""
        raise NotImplementedError

    def create(self, snapshot: Any = None, environment: Any = None) -> Any:
        if is_state_tree_node(snapshot):
            snapshot = snapshot_of(snapshot)
        if snapshot is None:
            snapshot = self.default_snapshot()
        self.assert_valid(snapshot)
        return self.instantiate(snapshot, environment)

    def instantiate(self, value: Any, environment: Any = None) -> Any:
        if is_state_tree_node(value):
            return value
        target = self.create_target()
        node = Node(self, target, environment)
        target._node = node
        self.initialize(node, value)
        return target

    def instantiate_child(self, node: Node, key: str, child_type: TypeDescriptor, value: Any) -> Any:
        """Instantiate a validated value and link it under node at key."""
        child = child_type.instantiate(value)
        if is_state_tree_node(child):
            get_node(child).attach(node, key)
        return child

    def adopt(self, node: Node, key: str, child_type: TypeDescriptor, value: Any) -> Any:
        """Validate value against child_type, then instantiate and link it.

        Nothing in the tree changes if validation or attaching fails.
        """
        child_type.assert_valid(value, label="Value")
        return self.instantiate_child(node, key, child_type, value)

    def reconcile_child(self, current: Any, value: Any, child_type: TypeDescriptor) -> bool:
        """Apply value in place to the live child current, if it fits.

        A union slot only reconciles when it resolves value to the variant
        current was created from. Returns False when the child has to be
        replaced instead.
        """
        if not is_state_tree_node(current) or is_state_tree_node(value):
            return False
        child_node = get_node(current)
        while isinstance(child_type, WithDefault):
            child_type = child_type.type
        if isinstance(child_type, Union) and child_type.resolve_variant(value) is not child_node.factory:
            return False
        if not child_node.factory.is_(value):
            return False
        child_node.factory.apply_snapshot(child_node, value)
        return True

    def serialize(self, node: Node) -> Any:
        raise NotImplementedError

    def get_child_value(self, node: Node, key: str) -> Tuple[bool, Any]:
        raise NotImplementedError

    def apply_patch_locally(self, node: Node, key: str, patch: JsonPatch) -> None:
        raise NotImplementedError

    def apply_snapshot(self, node: Node, snapshot: Any) -> None:
        raise NotImplementedError

    def detach_child(self, node: Node, key: str) -> None:
        raise NotImplementedError

    def get_action(self, name: str) -> Optional[Callable[..., Any]]:
        return None
