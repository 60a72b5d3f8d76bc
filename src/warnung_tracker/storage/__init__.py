"""Storage layer - persistent key-value stores for seen warnings."""

from warnung_tracker.storage.repos import (
    FileKeyValueStore,
    InMemoryKeyValueStore,
    KeyValueStore,
    SqlKeyValueStore,
    StoreError,
    StoreInitError,
    StoreReadError,
    StoreWriteError,
    open_store,
)

__all__ = [
    "FileKeyValueStore",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SqlKeyValueStore",
    "StoreError",
    "StoreInitError",
    "StoreReadError",
    "StoreWriteError",
    "open_store",
]
