"""
Framework configuration for statetree.

Holds the small set of process-wide switches the engine consults. The active
configuration is a frozen dataclass; use set_config() to derive a new one.
"""

from dataclasses import dataclass, fields, replace
from typing import Any


@dataclass(frozen=True)
class StateTreeConfig:
    """Process-wide engine settings.

    error_prefix: Prepended to every error message raised by the package.
    freeze_snapshots: If True (default), snapshots are read-only dict/list
                      subclasses. If False, plain dicts and lists are produced.
    """
    error_prefix: str = "[statetree]"
    freeze_snapshots: bool = True


_DEFAULT_CONFIG = StateTreeConfig()
_current_config: StateTreeConfig = _DEFAULT_CONFIG


def get_config() -> StateTreeConfig:
    """Get the active configuration."""
    return _current_config


def set_config(**changes: Any) -> StateTreeConfig:
    """Replace selected settings and return the new active configuration.

    Raises:
        TypeError: If an unknown setting name is passed.
    """
    global _current_config
    known = {f.name for f in fields(StateTreeConfig)}
    unknown = set(changes) - known
    if unknown:
        raise TypeError(f"Unknown statetree setting(s): {', '.join(sorted(unknown))}")
    _current_config = replace(_current_config, **changes)
    return _current_config


def reset_config() -> None:
    """Restore the default configuration. Mainly for tests."""
    global _current_config
    _current_config = _DEFAULT_CONFIG
