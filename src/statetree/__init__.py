"""
Typed, observable state trees.

Application state is modeled as a tree of typed nodes. Every node is
addressable by a JSON pointer, produces an immutable, structurally shared
snapshot of itself and can be changed directly or through JSON patches and
named actions, all of which are observable, replayable and recordable.

Quick Start:
    >>> from statetree import create_factory, types, get_snapshot, on_patch
    >>> Todo = create_factory("Todo", {
    ...     "title": "",
    ...     "done": False,
    ...     "toggle": lambda self: setattr(self, "done", not self.done),
    ... })
    >>> Store = create_factory("Store", {"todos": types.array(Todo)})
    >>> store = Store({"todos": [{"title": "write docs"}]})
    >>> dispose = on_patch(store, lambda patch: print(patch.to_dict()))
    >>> store.todos[0].toggle()
    {'op': 'replace', 'path': '/todos/0/done', 'value': True}
    >>> get_snapshot(store)["todos"][0]["done"]
    True

Architecture:
    TypeSystem (type_system, object_factory, collection_containers, types)
        validates snapshots and instantiates live values
    Node engine (node, action, transaction)
        paths, snapshots, patch emission, middleware, batched notifications
    Protocols (json_patch, snapshot)
        path escaping, patch records, frozen snapshot containers
    API (top_level_api, app_state)
        thin functions over Node, recorders, the process-wide slot

Modules:
    - config: Process-wide switches (error prefix, snapshot freezing)
    - errors: Exception taxonomy
    - json_patch: JSON pointer codec and JsonPatch record
    - snapshot: FrozenDict/FrozenList
    - transaction: Transaction scope and deferred notifications
    - action: ActionCall record and middleware chain
    - node: Node engine
    - type_system: Type descriptors, unions, defaults
    - object_factory: Object factories and create_factory()
    - collection_containers: Arrays and maps
    - types: The types namespace
    - top_level_api: get_snapshot(), apply_patch(), on_action(), ...
    - app_state: Process-wide app-state slot
"""

# Configuration
from statetree.config import StateTreeConfig, get_config, set_config, reset_config

# Errors
from statetree.errors import (
    StateTreeError,
    ValidationError,
    AmbiguousUnionError,
    PathResolutionError,
    StateError,
)

# Protocols
from statetree.json_patch import (
    JsonPatch,
    escape_path_segment,
    unescape_path_segment,
    join_json_path,
    split_json_path,
)
from statetree.snapshot import FrozenDict, FrozenList
from statetree.transaction import transaction, run_in_transaction, in_transaction
from statetree.action import ActionCall

# Node engine
from statetree.node import Node, get_node, is_state_tree_node

# Type system
from statetree.type_system import TypeDescriptor, ValidationIssue, WithDefault, Union, MISSING
from statetree.object_factory import ObjectFactory, ObjectInstance, create_factory
from statetree.collection_containers import ArrayType, MapType, ObservableArray, ObservableMap
from statetree import types

# API
from statetree.top_level_api import (
    on_action,
    on_patch,
    on_snapshot,
    apply_patch,
    apply_patches,
    apply_action,
    apply_actions,
    apply_snapshot,
    get_snapshot,
    has_parent,
    get_parent,
    get_root,
    get_path,
    get_path_parts,
    is_root,
    resolve,
    try_resolve,
    get_from_environment,
    get_type,
    clone,
    detach,
    record_patches,
    record_actions,
    PatchRecorder,
    ActionRecorder,
    snapshot_after_actions,
)
from statetree.app_state import AppStateSlot, initialize_app_state, get_app_state, reset_app_state

__all__ = [
    # Configuration
    'StateTreeConfig',
    'get_config',
    'set_config',
    'reset_config',
    # Errors
    'StateTreeError',
    'ValidationError',
    'AmbiguousUnionError',
    'PathResolutionError',
    'StateError',
    # Protocols
    'JsonPatch',
    'escape_path_segment',
    'unescape_path_segment',
    'join_json_path',
    'split_json_path',
    'FrozenDict',
    'FrozenList',
    'transaction',
    'run_in_transaction',
    'in_transaction',
    'ActionCall',
    # Node engine
    'Node',
    'get_node',
    'is_state_tree_node',
    # Type system
    'TypeDescriptor',
    'ValidationIssue',
    'WithDefault',
    'Union',
    'MISSING',
    'ObjectFactory',
    'ObjectInstance',
    'create_factory',
    'ArrayType',
    'MapType',
    'ObservableArray',
    'ObservableMap',
    'types',
    # API
    'on_action',
    'on_patch',
    'on_snapshot',
    'apply_patch',
    'apply_patches',
    'apply_action',
    'apply_actions',
    'apply_snapshot',
    'get_snapshot',
    'has_parent',
    'get_parent',
    'get_root',
    'get_path',
    'get_path_parts',
    'is_root',
    'resolve',
    'try_resolve',
    'get_from_environment',
    'get_type',
    'clone',
    'detach',
    'record_patches',
    'record_actions',
    'PatchRecorder',
    'ActionRecorder',
    'snapshot_after_actions',
    # App state
    'AppStateSlot',
    'initialize_app_state',
    'get_app_state',
    'reset_app_state',
]

__version__ = '0.1.0'
__description__ = 'Typed, observable state trees with snapshots, JSON patches and action middleware'
