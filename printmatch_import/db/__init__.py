"""Store protocol with PostgreSQL and in-memory implementations."""

from .memory import InMemoryStore
from .store import (
    PersistenceTimeoutError,
    PostgresStore,
    Store,
    StoreError,
    StoreUnavailableError,
    build_dsn,
)

__all__ = [
    "InMemoryStore",
    "PersistenceTimeoutError",
    "PostgresStore",
    "Store",
    "StoreError",
    "StoreUnavailableError",
    "build_dsn",
]
