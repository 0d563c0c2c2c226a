"""
Hub Services

- repository.py - Durable storage (SQLite or Supabase)
- cache.py - In-process TTL cache of the latest configuration
- store.py - Version-authoritative configuration store
- registry.py - Relay registration and token authentication
"""

from .cache import ConfigCache
from .registry import RelayRegistry
from .repository import (
    ConfigRepository,
    SQLiteRepository,
    SupabaseRepository,
    build_repository,
)
from .store import ConfigStore

__all__ = [
    "ConfigCache",
    "ConfigRepository",
    "ConfigStore",
    "RelayRegistry",
    "SQLiteRepository",
    "SupabaseRepository",
    "build_repository",
]
