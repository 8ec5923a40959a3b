"""
The `types` namespace: constructors for type descriptors.

    from statetree import types

    Todo = create_factory("Todo", {"title": "", "tags": types.array(types.primitive)})
    Shape = types.union(Box, Square)
    Shape = types.union(lambda snapshot: Box if "height" in snapshot else Square, Box, Square)
    Due = types.maybe(types.primitive)
"""

from typing import Any, Callable, Union as _UnionHint

from statetree.collection_containers import ArrayType, MapType
from statetree.type_system import NULL, PRIMITIVE, TypeDescriptor, Union, WithDefault

primitive = PRIMITIVE
null = NULL


def array(item_type: TypeDescriptor) -> ArrayType:
    """Array of item_type; defaults to []."""
    return ArrayType(item_type)


def map(value_type: TypeDescriptor) -> MapType:
    """String-keyed map of value_type; defaults to {}."""
    return MapType(value_type)


def union(*args: _UnionHint[TypeDescriptor, Callable[[Any], TypeDescriptor]]) -> Union:
    """Union of variant types, optionally preceded by a dispatcher.

    union(A, B) resolves snapshots structurally, union(dispatch, A, B) calls
    dispatch(snapshot) to select the variant.
    """
    dispatcher = None
    if args and callable(args[0]) and not isinstance(args[0], TypeDescriptor):
        dispatcher, args = args[0], args[1:]
    return Union(args, dispatcher)


def with_default(type_: TypeDescriptor, default: Any) -> WithDefault:
    """type_ with a default snapshot, validated immediately."""
    return WithDefault(type_, default)


def maybe(type_: TypeDescriptor) -> WithDefault:
    """type_ or None, defaulting to None."""
    def dispatch(snapshot):
        return NULL if snapshot is None else type_
    return WithDefault(Union((type_, NULL), dispatch), None)
