"""
Persistent storage layer for squirt.

Provides:
- KeyValueStore: byte values under string keys, memory and SQLite backends
- GraphCache: write-through persistence of the quad store
"""

from squirt.storage.cache import CACHE_KEY, GraphCache
from squirt.storage.kv import KeyValueStore, MemoryKeyValueStore, SQLiteKeyValueStore, build_kv_store

__all__ = [
    "CACHE_KEY",
    "GraphCache",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "build_kv_store",
]
