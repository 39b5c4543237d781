"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/collection_queries.py
============================================================
Class: PostgresCollectionQueryRepository

Responsibilities:
  - Lecturas fuera de transacciones de escritura (conexión corta del pool).
  - Pendientes, historial, listado paginado, búsqueda de duplicados.
  - Orden determinístico (desempate por id) para APIs/tests.

Collaborators:
  - psycopg_pool.ConnectionPool (pool de conexiones)
  - crosscutting.exceptions.DatabaseError (contrato de errores infra)
============================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from psycopg_pool import ConnectionPool

from ....crosscutting.exceptions import DatabaseError
from ....crosscutting.logger import logger
from ....domain.entities import (
    Collection,
    CollectionFilter,
    CollectionHistoryEntry,
    CollectionStatus,
)
from .rows import (
    COLLECTION_COLUMNS,
    HISTORY_COLUMNS,
    MACHINE_COLUMNS,
    SORT_COLUMNS,
    filter_clause,
    row_to_collection,
    row_to_history,
    where_sql,
)

_FROM_WITH_MACHINE = """
    FROM collections c
    LEFT JOIN machines m ON m.id = c.machine_id
"""


class PostgresCollectionQueryRepository:
    """Repositorio PostgreSQL de solo lectura para collections."""

    def __init__(self, pool: ConnectionPool | None = None):
        self._pool = pool

    def _get_pool(self) -> ConnectionPool:
        if self._pool is not None:
            return self._pool

        from ...db.pool import get_pool

        return get_pool()

    # ------------------------------------------------------------
    # Helpers internos (errores/logging consistentes)
    # ------------------------------------------------------------
    def _fetchall(
        self,
        *,
        query: str,
        params: Iterable[object],
        error_message: str,
        extra: dict[str, object],
    ) -> list[tuple]:
        try:
            pool = self._get_pool()
            with pool.connection() as conn:
                return conn.execute(query, tuple(params)).fetchall()
        except Exception as exc:
            logger.exception(error_message, extra={**extra, "error": str(exc)})
            raise DatabaseError(f"{error_message}: {exc}") from exc

    def _fetchone(self, **kwargs) -> Optional[tuple]:
        rows = self._fetchall(**kwargs)
        return rows[0] if rows else None

    # ------------------------------------------------------------
    # Lecturas
    # ------------------------------------------------------------
    def get_collection(self, collection_id: UUID) -> Optional[Collection]:
        row = self._fetchone(
            query=f"SELECT {COLLECTION_COLUMNS}, {MACHINE_COLUMNS} {_FROM_WITH_MACHINE} WHERE c.id = %s",
            params=(collection_id,),
            error_message="PostgresCollectionQueryRepository: Failed to get collection",
            extra={"collection_id": str(collection_id)},
        )
        return row_to_collection(row) if row else None

    def list_pending(self) -> List[Collection]:
        rows = self._fetchall(
            query=(
                f"SELECT {COLLECTION_COLUMNS}, {MACHINE_COLUMNS} {_FROM_WITH_MACHINE} "
                "WHERE c.status = %s ORDER BY c.collected_at DESC, c.id DESC"
            ),
            params=(CollectionStatus.COLLECTED.value,),
            error_message="PostgresCollectionQueryRepository: Failed to list pending",
            extra={},
        )
        return [row_to_collection(row) for row in rows]

    def list_collections(
        self,
        filters: CollectionFilter,
        *,
        sort_by: str,
        descending: bool,
        offset: int,
        limit: int,
    ) -> Tuple[List[Collection], int]:
        conditions, params = filter_clause(filters)
        where = where_sql(conditions)

        # Whitelist: sort_by nunca llega crudo al SQL.
        column = SORT_COLUMNS.get(sort_by, SORT_COLUMNS["collected_at"])
        direction = "DESC NULLS LAST" if descending else "ASC NULLS LAST"

        extra = {"sort_by": sort_by, "offset": offset, "limit": limit}
        count_row = self._fetchone(
            query=f"SELECT COUNT(*) FROM collections c {where}",
            params=params,
            error_message="PostgresCollectionQueryRepository: Failed to count collections",
            extra=extra,
        )
        rows = self._fetchall(
            query=(
                f"SELECT {COLLECTION_COLUMNS}, {MACHINE_COLUMNS} {_FROM_WITH_MACHINE} "
                f"{where} ORDER BY {column} {direction}, c.id ASC LIMIT %s OFFSET %s"
            ),
            params=[*params, limit, offset],
            error_message="PostgresCollectionQueryRepository: Failed to list collections",
            extra=extra,
        )
        total = int(count_row[0]) if count_row else 0
        return [row_to_collection(row) for row in rows], total

    def list_history(self, collection_id: UUID) -> List[CollectionHistoryEntry]:
        rows = self._fetchall(
            query=(
                f"SELECT {HISTORY_COLUMNS} FROM collection_history "
                "WHERE collection_id = %s ORDER BY created_at DESC, id DESC"
            ),
            params=(collection_id,),
            error_message="PostgresCollectionQueryRepository: Failed to list history",
            extra={"collection_id": str(collection_id)},
        )
        return [row_to_history(row) for row in rows]

    def find_active_in_window(
        self, machine_id: UUID, start: datetime, end: datetime
    ) -> Optional[Collection]:
        row = self._fetchone(
            query=(
                f"SELECT {COLLECTION_COLUMNS} FROM collections c "
                "WHERE c.machine_id = %s AND c.status <> %s "
                "AND c.collected_at BETWEEN %s AND %s "
                "ORDER BY c.collected_at ASC, c.id ASC LIMIT 1"
            ),
            params=(machine_id, CollectionStatus.CANCELLED.value, start, end),
            error_message="PostgresCollectionQueryRepository: Failed to check duplicate",
            extra={"machine_id": str(machine_id)},
        )
        return row_to_collection(row) if row else None

    def list_by_operator(
        self,
        operator_id: UUID,
        *,
        collected_from: Optional[datetime] = None,
        collected_to: Optional[datetime] = None,
    ) -> List[Collection]:
        conditions, params = filter_clause(
            CollectionFilter(
                operator_id=operator_id,
                collected_from=collected_from,
                collected_to=collected_to,
            )
        )
        rows = self._fetchall(
            query=(
                f"SELECT {COLLECTION_COLUMNS}, {MACHINE_COLUMNS} {_FROM_WITH_MACHINE} "
                f"{where_sql(conditions)} ORDER BY c.collected_at DESC, c.id DESC"
            ),
            params=params,
            error_message="PostgresCollectionQueryRepository: Failed to list by operator",
            extra={"operator_id": str(operator_id)},
        )
        return [row_to_collection(row) for row in rows]

    def count_by_machine(self, machine_id: UUID) -> int:
        row = self._fetchone(
            query="SELECT COUNT(*) FROM collections WHERE machine_id = %s",
            params=(machine_id,),
            error_message="PostgresCollectionQueryRepository: Failed to count by machine",
            extra={"machine_id": str(machine_id)},
        )
        return int(row[0]) if row else 0
