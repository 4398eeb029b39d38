"""
Storage Services Package

Provides the abstract key-value interface, its implementations,
and the snapshot layer that maps application state onto it.
"""

from cashflow.services.storage.interface import (
    KeyValueStore,
    PersistenceCorruption,
    StorageError,
)
from cashflow.services.storage.key_value import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)
from cashflow.services.storage.snapshot import SnapshotStore

__all__ = [
    # Interfaces
    "KeyValueStore",
    # Exceptions
    "PersistenceCorruption",
    "StorageError",
    # Implementations
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "SnapshotStore",
]
