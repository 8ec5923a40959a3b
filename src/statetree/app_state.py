"""
Process-wide app-state slot.

Holds at most one shared state tree for the whole process:

    initialize_app_state(Store, {"todos": []})
    store = get_app_state()
    reset_app_state()

Initializing twice without a reset, or reading before initializing, raises
StateError. Applications that need several trees should create their own
AppStateSlot instances and pass them around.
"""

import logging
from typing import Any

from statetree.errors import StateError
from statetree.type_system import TypeDescriptor

logger = logging.getLogger(__name__)

# Marks an empty slot; None is a valid state value
_UNSET = object()


class AppStateSlot:
    """A holder for one lazily created state tree.

    initialize() is not re-entrant: a factory or action that tries to
    initialize the same slot while it is being initialized gets a StateError.
    """

    def __init__(self, name: str = "app state"):
        self.name = name
        self._value: Any = _UNSET
        self._initializing = False

    @property
    def is_initialized(self) -> bool:
        return self._value is not _UNSET

    def initialize(self, factory: TypeDescriptor, snapshot: Any = None, environment: Any = None) -> Any:
        """Create the state from factory and store it.

        Returns:
            The created value.

        Raises:
            StateError: If the slot already holds a value or is being initialized.
        """
        if self._value is not _UNSET or self._initializing:
            raise StateError(f"Global {self.name} was already initialized, use 'reset_app_state' to reset it")
        self._initializing = True
        try:
            value = factory.create(snapshot, environment)
        finally:
            self._initializing = False
        self._value = value
        logger.info(f"Initialized {self.name} with {factory.name}")
        return value

    def get(self) -> Any:
        if self._value is _UNSET:
            raise StateError(
                f"Global {self.name} has not been initialized, use 'initialize_app_state' for globally shared state"
            )
        return self._value

    def reset(self) -> None:
        if self._value is not _UNSET:
            logger.info(f"Reset {self.name}")
        self._value = _UNSET


# Process-wide slot behind the module-level functions
_app_state = AppStateSlot()


def initialize_app_state(factory: TypeDescriptor, snapshot: Any = None, environment: Any = None) -> Any:
    """Create the process-wide state from factory. StateError if already initialized."""
    return _app_state.initialize(factory, snapshot, environment)


def get_app_state() -> Any:
    """The process-wide state. StateError if not initialized."""
    return _app_state.get()


def reset_app_state() -> None:
    _app_state.reset()
