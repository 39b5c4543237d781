"""
Repository implementations.

- postgres/: production (psycopg 3 + pool, raw SQL).
- in_memory/: tests / local dev.
"""

from .in_memory import (
    InMemoryCollectionStore,
    InMemoryMachineDirectory,
    InMemoryUnitOfWork,
)
from .postgres import (
    PostgresCollectionQueryRepository,
    PostgresMachineDirectory,
    PostgresUnitOfWork,
)

__all__ = [
    "InMemoryCollectionStore",
    "InMemoryMachineDirectory",
    "InMemoryUnitOfWork",
    "PostgresCollectionQueryRepository",
    "PostgresMachineDirectory",
    "PostgresUnitOfWork",
]
