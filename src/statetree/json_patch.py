"""
JSON Pointer path codec and the JSON patch record.

Paths follow RFC 6901: a path is "" (the node itself) or a sequence of
"/"-prefixed segments. Within a segment "~" is written "~0" and "/" is
written "~1", so split_json_path(join_json_path(parts)) == parts for any
list of strings.

Patches follow the add/replace/remove subset of RFC 6902.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Union

from statetree.errors import PathResolutionError, StateError

PATCH_OPS = ("add", "replace", "remove")


def escape_path_segment(segment: str) -> str:
    """Escape a single path segment (~ -> ~0, / -> ~1)."""
    return segment.replace("~", "~0").replace("/", "~1")


def unescape_path_segment(segment: str) -> str:
    """Inverse of escape_path_segment (~1 -> /, ~0 -> ~)."""
    return segment.replace("~1", "/").replace("~0", "~")


def join_json_path(parts: Iterable[Union[str, int]]) -> str:
    """Join unescaped segments into a pointer string.

    "" refers to the node itself, while "/" refers to a property with an empty name.
    """
    parts = [escape_path_segment(str(part)) for part in parts]
    if not parts:
        return ""
    return "/" + "/".join(parts)


def split_json_path(path: str) -> List[str]:
    """Split a pointer string into unescaped segments.

    Raises:
        PathResolutionError: If a non-empty path does not start with '/'.
    """
    if path == "":
        return []
    if not path.startswith("/"):
        raise PathResolutionError(f"Expected path to start with '/', got: '{path}'", path=path)
    return [unescape_path_segment(part) for part in path[1:].split("/")]


@dataclass(frozen=True)
class JsonPatch:
    """A single add/replace/remove operation.

    value is a snapshot (plain JSON-compatible data) and is ignored for 'remove'.
    """
    op: str
    path: str
    value: Any = None

    def __post_init__(self):
        if self.op not in PATCH_OPS:
            raise StateError(f"Unsupported patch operation '{self.op}', expected one of {', '.join(PATCH_OPS)}")

    @property
    def path_parts(self) -> List[str]:
        return split_json_path(self.path)

    def to_dict(self) -> Dict[str, Any]:
        """Export to the JSON wire shape."""
        data = {'op': self.op, 'path': self.path}
        if self.op != "remove":
            data['value'] = self.value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'JsonPatch':
        """Import from the JSON wire shape."""
        if 'op' not in data or 'path' not in data:
            raise StateError(f"Patch requires 'op' and 'path', got: {dict(data)!r}")
        return cls(op=data['op'], path=data['path'], value=data.get('value'))

    @classmethod
    def coerce(cls, patch: Union['JsonPatch', Mapping[str, Any]]) -> 'JsonPatch':
        """Accept either a JsonPatch or its dict form."""
        if isinstance(patch, JsonPatch):
            return patch
        return cls.from_dict(patch)
