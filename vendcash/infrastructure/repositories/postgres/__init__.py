"""
PostgreSQL implementations (raw SQL over psycopg 3 + psycopg_pool).
"""

from .collection_queries import PostgresCollectionQueryRepository
from .machine_directory import PostgresMachineDirectory
from .unit_of_work import (
    PostgresCollectionHistoryRepository,
    PostgresCollectionWriteRepository,
    PostgresUnitOfWork,
)

__all__ = [
    "PostgresCollectionHistoryRepository",
    "PostgresCollectionQueryRepository",
    "PostgresCollectionWriteRepository",
    "PostgresMachineDirectory",
    "PostgresUnitOfWork",
]
