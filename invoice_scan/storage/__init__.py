"""
Storage Module for Invoice Scan Core.

JSON key-value storage shared by the sealed record store and the
audit log.
"""

from .key_value_store import (
    KeyValueStore,
    InMemoryKeyValueStore,
    SqliteKeyValueStore,
    create_key_value_store,
)

__all__ = [
    'KeyValueStore',
    'InMemoryKeyValueStore',
    'SqliteKeyValueStore',
    'create_key_value_store',
]
