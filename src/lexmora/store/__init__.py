# Storage layer
from .base import WordBackend
from .memory import InMemoryWordBackend
from .sqlite import SCHEMA_VERSION, SQLiteWordBackend
from .words import WordStore

__all__ = [
    "WordBackend",
    "InMemoryWordBackend",
    "SQLiteWordBackend",
    "SCHEMA_VERSION",
    "WordStore",
]
