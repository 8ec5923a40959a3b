"""
Array and map containers.

ObservableArray behaves like a list and ObservableMap like a dict, but every
mutation goes through the owning type, which validates the value, links
children into the tree and emits exactly one patch:

    array[i] = v          replace /i
    array.insert(i, v)    add /i      (append: add /<len>)
    del array[i]          remove /i
    mapping[k] = v        add /k (new key) or replace /k
    del mapping[k]        remove /k

Array children are re-indexed after inserts and removals so their paths stay
correct.
"""

import logging
import re
from collections.abc import Mapping, MutableMapping, MutableSequence
from typing import Any, Iterator, List, Tuple

from statetree.errors import StateError
from statetree.json_patch import JsonPatch
from statetree.node import Node, NodeBacked, get_node, is_state_tree_node, snapshot_of
from statetree.snapshot import make_snapshot_dict, make_snapshot_list, to_json_text
from statetree.transaction import transaction
from statetree.type_system import ComplexType, TypeDescriptor, ValidationIssue, child_path, same_primitive

logger = logging.getLogger(__name__)

# JSON pointer array index: no sign, no leading zeros, ASCII digits only
_INDEX_PATTERN = re.compile(r"0|[1-9][0-9]*")


def _release(value: Any) -> None:
    if is_state_tree_node(value):
        get_node(value).release()


# ========== ARRAYS ==========


class ObservableArray(NodeBacked, MutableSequence):
    """Live list value of an ArrayType."""

    __slots__ = ('_node', '_items', '__weakref__')

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._items))

    def __getitem__(self, index):
        # slices return a plain list of the live items
        return self._items[index]

    def _normalize(self, index: int) -> int:
        if index < 0:
            index += len(self._items)
        if not 0 <= index < len(self._items):
            raise IndexError("array index out of range")
        return index

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            raise TypeError("Slice assignment is not supported on state tree arrays")
        self._node.factory.set_item(self._node, self._normalize(index), value)

    def __delitem__(self, index) -> None:
        if isinstance(index, slice):
            indices = sorted(range(*index.indices(len(self._items))), reverse=True)
            with transaction():
                for position in indices:
                    self._node.factory.remove_item(self._node, position)
            return
        self._node.factory.remove_item(self._node, self._normalize(index))

    def insert(self, index: int, value: Any) -> None:
        size = len(self._items)
        if index < 0:
            index = max(0, size + index)
        self._node.factory.insert_item(self._node, min(index, size), value)

    def extend(self, values) -> None:
        values = list(values)
        item_type = self._node.factory.item_type
        for value in values:
            item_type.assert_valid(value, label="Value")
        with transaction():
            for value in values:
                self.append(value)

    def reverse(self) -> None:
        # children must be released before they can be re-attached
        with transaction():
            values = [self.pop() for _ in range(len(self._items))]
            self.extend(values)

    def __repr__(self) -> str:
        return f"{self._node.factory.name}({to_json_text(self._node.snapshot)})"


class ArrayType(ComplexType):
    """Type of array values whose items all have type item_type."""

    def __init__(self, item_type: TypeDescriptor):
        if not isinstance(item_type, TypeDescriptor):
            raise TypeError(f"Array item type must be a type, got {item_type!r}")
        super().__init__(f"{item_type.name}[]")
        self.item_type = item_type

    def describe(self) -> str:
        return f"{self.item_type.describe()}[]"

    def default_snapshot(self) -> Any:
        return make_snapshot_list(())

    def validate(self, value: Any, path: str = "") -> List[ValidationIssue]:
        if is_state_tree_node(value):
            if get_node(value).factory is self:
                return []
            value = snapshot_of(value)
        if not isinstance(value, (list, tuple)):
            return [ValidationIssue(path, value, f"Value {to_json_text(value)} is not an array")]
        issues = []
        for index, item in enumerate(value):
            issues.extend(self.item_type.validate(item, child_path(path, index)))
        return issues

    def create_target(self) -> ObservableArray:
        target = object.__new__(ObservableArray)
        target._items = []
        return target

    def initialize(self, node: Node, snapshot: Any) -> None:
        items = node.target._items
        for index, raw in enumerate(snapshot):
            items.append(self.instantiate_child(node, str(index), self.item_type, raw))

    def serialize(self, node: Node) -> Any:
        return make_snapshot_list(snapshot_of(item) for item in node.target._items)

    def _reindex(self, node: Node, start: int) -> None:
        items = node.target._items
        for index in range(start, len(items)):
            if is_state_tree_node(items[index]):
                get_node(items[index]).set_subpath(str(index))

    # ========== MUTATIONS ==========

    def insert_item(self, node: Node, index: int, value: Any) -> None:
        items = node.target._items
        with transaction():
            child = self.adopt(node, str(index), self.item_type, value)
            items.insert(index, child)
            self._reindex(node, index + 1)
            node.notify_mutation("add", str(index), snapshot_of(child))

    def set_item(self, node: Node, index: int, value: Any) -> None:
        items = node.target._items
        if same_primitive(items[index], value):
            return
        with transaction():
            child = self.adopt(node, str(index), self.item_type, value)
            previous = items[index]
            if previous is not child:
                _release(previous)
            items[index] = child
            node.notify_mutation("replace", str(index), snapshot_of(child))

    def remove_item(self, node: Node, index: int) -> None:
        items = node.target._items
        with transaction():
            removed = items.pop(index)
            _release(removed)
            self._reindex(node, index)
            node.notify_mutation("remove", str(index))

    # ========== CONTAINER PROTOCOL ==========

    @staticmethod
    def _parse_index(node: Node, key: str) -> int:
        if not _INDEX_PATTERN.fullmatch(key):
            raise StateError(f"Expected an array index at '{node.path}', got '{key}'")
        return int(key)

    def get_child_value(self, node: Node, key: str) -> Tuple[bool, Any]:
        items = node.target._items
        if _INDEX_PATTERN.fullmatch(key) and int(key) < len(items):
            return True, items[int(key)]
        return False, None

    def apply_patch_locally(self, node: Node, key: str, patch: JsonPatch) -> None:
        size = len(node.target._items)
        if patch.op == "add":
            index = size if key == "-" else self._parse_index(node, key)
            if index > size:
                raise StateError(f"Cannot add at index {index} of '{node.path}': array has {size} item(s)")
            self.insert_item(node, index, patch.value)
            return
        index = self._parse_index(node, key)
        if index >= size:
            raise StateError(f"Cannot {patch.op} index {index} of '{node.path}': array has {size} item(s)")
        if patch.op == "replace":
            self.set_item(node, index, patch.value)
        else:
            self.remove_item(node, index)

    def apply_snapshot(self, node: Node, snapshot: Any) -> None:
        snapshot = snapshot_of(snapshot)
        self.assert_valid(snapshot)
        items = node.target._items
        with transaction():
            for index, raw in enumerate(snapshot):
                if index >= len(items):
                    self.insert_item(node, index, raw)
                elif not self.reconcile_child(items[index], raw, self.item_type):
                    self.set_item(node, index, raw)
            while len(items) > len(snapshot):
                self.remove_item(node, len(items) - 1)

    def detach_child(self, node: Node, key: str) -> None:
        self.remove_item(node, int(key))


# ========== MAPS ==========


class ObservableMap(NodeBacked, MutableMapping):
    """Live dict value of a MapType. Keys are strings."""

    __slots__ = ('_node', '_items', '__weakref__')

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def __contains__(self, key) -> bool:
        return key in self._items

    def __getitem__(self, key: str) -> Any:
        return self._items[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if not isinstance(key, str):
            raise TypeError(f"Map keys must be strings, got {key!r}")
        self._node.factory.set_entry(self._node, key, value)

    def __delitem__(self, key: str) -> None:
        if key not in self._items:
            raise KeyError(key)
        self._node.factory.delete_entry(self._node, key)

    def __repr__(self) -> str:
        return f"{self._node.factory.name}({to_json_text(self._node.snapshot)})"


class MapType(ComplexType):
    """Type of string-keyed maps whose values all have type value_type."""

    def __init__(self, value_type: TypeDescriptor):
        if not isinstance(value_type, TypeDescriptor):
            raise TypeError(f"Map value type must be a type, got {value_type!r}")
        super().__init__(f"map<{value_type.name}>")
        self.value_type = value_type

    def describe(self) -> str:
        return f"{{ [key: string]: {self.value_type.describe()} }}"

    def default_snapshot(self) -> Any:
        return make_snapshot_dict(())

    def validate(self, value: Any, path: str = "") -> List[ValidationIssue]:
        if is_state_tree_node(value):
            if get_node(value).factory is self:
                return []
            value = snapshot_of(value)
        if not isinstance(value, Mapping):
            return [ValidationIssue(path, value, f"Value {to_json_text(value)} is not a map")]
        issues = []
        for key, item in value.items():
            if not isinstance(key, str):
                issues.append(ValidationIssue(path, value, f"Map key {key!r} is not a string"))
                continue
            issues.extend(self.value_type.validate(item, child_path(path, key)))
        return issues

    def create_target(self) -> ObservableMap:
        target = object.__new__(ObservableMap)
        target._items = {}
        return target

    def initialize(self, node: Node, snapshot: Any) -> None:
        items = node.target._items
        for key, raw in snapshot.items():
            items[key] = self.instantiate_child(node, key, self.value_type, raw)

    def serialize(self, node: Node) -> Any:
        return make_snapshot_dict((key, snapshot_of(item)) for key, item in node.target._items.items())

    # ========== MUTATIONS ==========

    def set_entry(self, node: Node, key: str, value: Any) -> None:
        items = node.target._items
        exists = key in items
        if exists and same_primitive(items[key], value):
            return
        with transaction():
            child = self.adopt(node, key, self.value_type, value)
            if exists and items[key] is not child:
                _release(items[key])
            items[key] = child
            node.notify_mutation("replace" if exists else "add", key, snapshot_of(child))

    def delete_entry(self, node: Node, key: str) -> None:
        items = node.target._items
        with transaction():
            _release(items.pop(key))
            node.notify_mutation("remove", key)

    # ========== CONTAINER PROTOCOL ==========

    def get_child_value(self, node: Node, key: str) -> Tuple[bool, Any]:
        items = node.target._items
        if key in items:
            return True, items[key]
        return False, None

    def apply_patch_locally(self, node: Node, key: str, patch: JsonPatch) -> None:
        if patch.op != "add" and key not in node.target._items:
            raise StateError(f"Cannot {patch.op} missing key '{key}' of '{node.path}'")
        if patch.op == "remove":
            self.delete_entry(node, key)
        else:
            self.set_entry(node, key, patch.value)

    def apply_snapshot(self, node: Node, snapshot: Any) -> None:
        snapshot = snapshot_of(snapshot)
        self.assert_valid(snapshot)
        items = node.target._items
        with transaction():
            for key in [key for key in items if key not in snapshot]:
                self.delete_entry(node, key)
            for key, raw in snapshot.items():
                if key in items and self.reconcile_child(items[key], raw, self.value_type):
                    continue
                self.set_entry(node, key, raw)

    def detach_child(self, node: Node, key: str) -> None:
        self.delete_entry(node, key)
