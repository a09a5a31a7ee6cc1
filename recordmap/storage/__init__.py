"""
Storage Module.

The adapter contract every backend implements, plus an in-memory
reference adapter.
"""

from .adapter import RawRecord, StorageAdapter
from .memory import MemoryStorage

__all__ = [
    "RawRecord",
    "StorageAdapter",
    "MemoryStorage",
]
