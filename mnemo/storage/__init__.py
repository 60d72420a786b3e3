"""mnemo.storage -- Key-value persistence and the tool-output cache."""

from mnemo.storage.kv import (
    FileKVStore,
    KVStore,
    MemoryKVStore,
    SQLiteKVStore,
    key_from_name,
    safe_key,
)
from mnemo.storage.tool_cache import CachedToolOutput, ToolOutputCache

__all__ = [
    "KVStore",
    "FileKVStore",
    "MemoryKVStore",
    "SQLiteKVStore",
    "safe_key",
    "key_from_name",
    "CachedToolOutput",
    "ToolOutputCache",
]
