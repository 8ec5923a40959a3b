"""
Immutable snapshot containers.

Snapshots must stay JSON-compatible and compare equal to plain dicts and
lists, so the frozen containers subclass dict/list and only block mutation.
"""

import json
from typing import Any, Iterable, Tuple

from statetree.config import get_config


def _readonly(self, *args, **kwargs):
    raise TypeError(f"{type(self).__name__} is immutable; snapshots cannot be modified")


class FrozenDict(dict):
    """Read-only dict used for object and map snapshots."""

    __slots__ = ()

    __setitem__ = _readonly
    __delitem__ = _readonly
    __ior__ = _readonly
    clear = _readonly
    pop = _readonly
    popitem = _readonly
    setdefault = _readonly
    update = _readonly

    def __hash__(self):
        return hash(tuple(self.items()))

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (FrozenDict, (dict(self),))

    def __repr__(self):
        return f"FrozenDict({dict.__repr__(self)})"


class FrozenList(list):
    """Read-only list used for array snapshots."""

    __slots__ = ()

    __setitem__ = _readonly
    __delitem__ = _readonly
    __iadd__ = _readonly
    __imul__ = _readonly
    append = _readonly
    clear = _readonly
    extend = _readonly
    insert = _readonly
    pop = _readonly
    remove = _readonly
    reverse = _readonly
    sort = _readonly

    def __hash__(self):
        return hash(tuple(self))

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (FrozenList, (list(self),))

    def __repr__(self):
        return f"FrozenList({list.__repr__(self)})"


def make_snapshot_dict(items: Iterable[Tuple[str, Any]]) -> dict:
    """Build an object/map snapshot honouring config.freeze_snapshots."""
    if get_config().freeze_snapshots:
        return FrozenDict(items)
    return dict(items)


def make_snapshot_list(items: Iterable[Any]) -> list:
    """Build an array snapshot honouring config.freeze_snapshots."""
    if get_config().freeze_snapshots:
        return FrozenList(items)
    return list(items)


def freeze(value: Any) -> Any:
    """Deep-freeze plain JSON data (used for patch values and defaults)."""
    if isinstance(value, (FrozenDict, FrozenList)):
        return value
    if isinstance(value, dict):
        return make_snapshot_dict((k, freeze(v)) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return make_snapshot_list(freeze(v) for v in value)
    return value


def to_json_text(value: Any) -> str:
    """Compact JSON rendering used in error messages."""
    try:
        return json.dumps(value, separators=(",", ":"), default=repr)
    except ValueError:
        # circular structures
        return repr(value)
