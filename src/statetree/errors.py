"""
Exception taxonomy for statetree.

    StateTreeError
        ValidationError         snapshot does not match a type
            AmbiguousUnionError union snapshot matches zero or several variants
        PathResolutionError     path segment cannot be resolved
        StateError              structural invariant violated

Every message is prefixed with config.error_prefix.
"""

from typing import Any, List, Optional, Sequence, TYPE_CHECKING

from statetree.config import get_config

if TYPE_CHECKING:
    from statetree.type_system import ValidationIssue


def _prefixed(message: str) -> str:
    prefix = get_config().error_prefix
    return f"{prefix} {message}" if prefix else message


class StateTreeError(Exception):
    """Base class for all errors raised by statetree."""

    def __init__(self, message: str):
        self.raw_message = message
        super().__init__(_prefixed(message))


class ValidationError(StateTreeError):
    """A value is not assignable to a type.

    Attributes:
        value: The offending value (snapshot or live value)
        type_name: Name of the expected type
        signature: Rendered shape signature of the expected type
        issues: Structured list of field-level problems
    """

    def __init__(
        self,
        message: str,
        value: Any = None,
        type_name: Optional[str] = None,
        signature: Optional[str] = None,
        issues: Sequence['ValidationIssue'] = (),
    ):
        super().__init__(message)
        self.value = value
        self.type_name = type_name
        self.signature = signature
        self.issues: List['ValidationIssue'] = list(issues)


class AmbiguousUnionError(ValidationError):
    """A union snapshot matched zero or more than one variant and no dispatcher was given."""

    def __init__(self, message: str, snapshot: Any, candidates: Sequence[Any]):
        super().__init__(message, value=snapshot)
        self.snapshot = snapshot
        self.candidates = list(candidates)


class PathResolutionError(StateTreeError):
    """A path segment could not be resolved."""

    def __init__(self, message: str, path: str = "", segment: Optional[str] = None):
        super().__init__(message)
        self.path = path
        self.segment = segment


class StateError(StateTreeError):
    """A structural invariant of the tree would be violated."""
