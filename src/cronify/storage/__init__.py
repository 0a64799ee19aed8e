"""Package provides job stores for Cronify."""

from cronify._internal.storage.abc import Storage
from cronify._internal.storage.memory import MemoryStorage
from cronify._internal.storage.sqlite import SQLiteStorage

__all__ = (
    "MemoryStorage",
    "SQLiteStorage",
    "Storage",
)
