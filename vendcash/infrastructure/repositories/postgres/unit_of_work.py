"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/unit_of_work.py
============================================================
Classes:
  - PostgresUnitOfWork (Transaction Coordinator)
  - PostgresCollectionWriteRepository
  - PostgresCollectionHistoryRepository

Responsibilities:
  - Abrir una transacción sobre una conexión del pool y atar a ella los
    repositorios de escritura.
  - Acotar esperas de lock con SET LOCAL lock_timeout.
  - Lock de fila pesimista (SELECT ... FOR UPDATE) sobre la fila sola, y
    recarga con LEFT JOIN una vez tomado el lock (Postgres no permite
    FOR UPDATE sobre el lado nullable de un outer join).
  - Savepoints para ítems de operaciones bulk.
  - Commit explícito; salir sin commit = rollback. La conexión SIEMPRE
    vuelve al pool.

Collaborators:
  - psycopg (errores tipados, Json)
  - infrastructure.db.pool.get_pool
  - crosscutting.exceptions (DatabaseError / ConcurrencyConflictError)

Constraints:
  - collection_history: solo INSERT. El DELETE de purge habilita el flag
    transaccional vendcash.allow_history_purge que el trigger exige.
============================================================
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

import psycopg
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from ....crosscutting.exceptions import ConcurrencyConflictError, DatabaseError
from ....crosscutting.logger import logger
from ....domain.entities import (
    Collection,
    CollectionFilter,
    CollectionHistoryEntry,
    CollectionRemoval,
    CollectionStatus,
)
from .rows import (
    COLLECTION_COLUMNS,
    HISTORY_COLUMNS,
    MACHINE_COLUMNS,
    filter_clause,
    row_to_collection,
    row_to_history,
)

HISTORY_PURGE_FLAG = "vendcash.allow_history_purge"


class _TransactionalRepository:
    """Base: ejecuta sobre la conexión de la UoW y traduce errores."""

    def __init__(self, conn) -> None:
        self._conn = conn

    def _execute(
        self,
        query: str,
        params: tuple = (),
        *,
        error_message: str,
        extra: dict[str, object],
    ):
        try:
            return self._conn.execute(query, params)
        except psycopg.errors.LockNotAvailable as exc:
            logger.warning(
                "Timeout esperando lock",
                extra={**extra, "error": str(exc)},
            )
            raise ConcurrencyConflictError(
                "Timed out waiting for a lock", original_error=exc
            ) from exc
        except psycopg.Error as exc:
            logger.exception(error_message, extra={**extra, "error": str(exc)})
            raise DatabaseError(
                f"{error_message}: {exc}", original_error=exc
            ) from exc


class PostgresCollectionWriteRepository(_TransactionalRepository):
    _SQL_LOCK = f"SELECT {COLLECTION_COLUMNS} FROM collections c WHERE c.id = %s FOR UPDATE"
    _SQL_WITH_RELATIONS = f"""
        SELECT {COLLECTION_COLUMNS}, {MACHINE_COLUMNS}
        FROM collections c
        LEFT JOIN machines m ON m.id = c.machine_id
        WHERE c.id = %s
    """
    _SQL_ACTIVE_IN_WINDOW = f"""
        SELECT {COLLECTION_COLUMNS}
        FROM collections c
        WHERE c.machine_id = %s
          AND c.status <> 'cancelled'
          AND c.collected_at BETWEEN %s AND %s
        ORDER BY c.collected_at ASC, c.id ASC
        LIMIT 1
    """
    _SQL_INSERT = """
        INSERT INTO collections (
            id, machine_id, operator_id, manager_id, collected_at, received_at,
            amount, status, source, notes, latitude, longitude,
            distance_from_machine, created_at, updated_at
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
    """
    _SQL_UPDATE = """
        UPDATE collections
        SET manager_id = %s,
            received_at = %s,
            amount = %s,
            status = %s,
            notes = %s,
            updated_at = %s
        WHERE id = %s
    """
    _SQL_DELETE = "DELETE FROM collections WHERE id = %s"

    def lock_for_update(self, collection_id) -> Optional[Collection]:
        row = self._execute(
            self._SQL_LOCK,
            (collection_id,),
            error_message="Failed to lock collection",
            extra={"collection_id": str(collection_id)},
        ).fetchone()
        return row_to_collection(row) if row else None

    def get_with_relations(self, collection_id) -> Optional[Collection]:
        row = self._execute(
            self._SQL_WITH_RELATIONS,
            (collection_id,),
            error_message="Failed to load collection",
            extra={"collection_id": str(collection_id)},
        ).fetchone()
        return row_to_collection(row) if row else None

    def find_active_in_window(self, machine_id, start, end) -> Optional[Collection]:
        row = self._execute(
            self._SQL_ACTIVE_IN_WINDOW,
            (machine_id, start, end),
            error_message="Failed to check duplicate collection",
            extra={"machine_id": str(machine_id)},
        ).fetchone()
        return row_to_collection(row) if row else None

    def find_active_ids(self, filters: CollectionFilter) -> List:
        conditions, params = filter_clause(filters)
        conditions.insert(0, "c.status <> %s")
        params.insert(0, CollectionStatus.CANCELLED.value)
        query = (
            "SELECT c.id FROM collections c WHERE "
            + " AND ".join(conditions)
            + " ORDER BY c.collected_at ASC, c.id ASC"
        )
        rows = self._execute(
            query,
            tuple(params),
            error_message="Failed to resolve collections by filter",
            extra={"conditions": len(conditions)},
        ).fetchall()
        return [row[0] for row in rows]

    def add(self, collection: Collection) -> None:
        self._execute(
            self._SQL_INSERT,
            (
                collection.id,
                collection.machine_id,
                collection.operator_id,
                collection.manager_id,
                collection.collected_at,
                collection.received_at,
                collection.amount,
                collection.status.value,
                collection.source.value,
                collection.notes,
                collection.latitude,
                collection.longitude,
                collection.distance_from_machine,
                collection.created_at,
                collection.updated_at,
            ),
            error_message="Failed to insert collection",
            extra={"collection_id": str(collection.id)},
        )

    def update(self, collection: Collection) -> None:
        self._execute(
            self._SQL_UPDATE,
            (
                collection.manager_id,
                collection.received_at,
                collection.amount,
                collection.status.value,
                collection.notes,
                collection.updated_at,
                collection.id,
            ),
            error_message="Failed to update collection",
            extra={"collection_id": str(collection.id)},
        )

    def delete(self, collection_id) -> None:
        self._execute(
            self._SQL_DELETE,
            (collection_id,),
            error_message="Failed to delete collection",
            extra={"collection_id": str(collection_id)},
        )


class PostgresCollectionHistoryRepository(_TransactionalRepository):
    _SQL_INSERT = f"""
        INSERT INTO collection_history ({HISTORY_COLUMNS})
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
    """
    _SQL_LIST = f"""
        SELECT {HISTORY_COLUMNS}
        FROM collection_history
        WHERE collection_id = %s
        ORDER BY created_at DESC, id DESC
    """
    _SQL_ENABLE_PURGE = "SELECT set_config(%s, 'on', true)"
    _SQL_DISABLE_PURGE = "SELECT set_config(%s, 'off', true)"
    _SQL_PURGE = "DELETE FROM collection_history WHERE collection_id = %s"
    _SQL_INSERT_REMOVAL = """
        INSERT INTO collection_removals (
            id, collection_id, removed_by_id, field_name, new_value, reason,
            snapshot, purged_history_count, created_at
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
    """

    def append(self, entry: CollectionHistoryEntry) -> None:
        self._execute(
            self._SQL_INSERT,
            (
                entry.id,
                entry.collection_id,
                entry.changed_by_id,
                entry.field_name,
                entry.old_value,
                entry.new_value,
                entry.reason,
                entry.created_at,
            ),
            error_message="Failed to append collection history",
            extra={
                "collection_id": str(entry.collection_id),
                "field_name": entry.field_name,
            },
        )

    def list_for_collection(self, collection_id) -> List[CollectionHistoryEntry]:
        rows = self._execute(
            self._SQL_LIST,
            (collection_id,),
            error_message="Failed to list collection history",
            extra={"collection_id": str(collection_id)},
        ).fetchall()
        return [row_to_history(row) for row in rows]

    def purge_for_collection(self, collection_id) -> int:
        extra = {"collection_id": str(collection_id)}
        self._execute(
            self._SQL_ENABLE_PURGE,
            (HISTORY_PURGE_FLAG,),
            error_message="Failed to enable history purge",
            extra=extra,
        )
        cursor = self._execute(
            self._SQL_PURGE,
            (collection_id,),
            error_message="Failed to purge collection history",
            extra=extra,
        )
        self._execute(
            self._SQL_DISABLE_PURGE,
            (HISTORY_PURGE_FLAG,),
            error_message="Failed to disable history purge",
            extra=extra,
        )
        return cursor.rowcount

    def record_removal(self, removal: CollectionRemoval) -> None:
        self._execute(
            self._SQL_INSERT_REMOVAL,
            (
                removal.id,
                removal.collection_id,
                removal.removed_by_id,
                removal.field_name,
                removal.new_value,
                removal.reason,
                Json(removal.snapshot),
                removal.purged_history_count,
                removal.created_at,
            ),
            error_message="Failed to record collection removal",
            extra={"collection_id": str(removal.collection_id)},
        )


class PostgresUnitOfWork:
    """
    Una transacción + repositorios atados a ella.

    Uso:
        with uow_factory() as uow:
            row = uow.collections.lock_for_update(id)
            ...
            uow.commit()
    """

    def __init__(
        self, pool: ConnectionPool | None = None, *, lock_timeout_ms: int = 5000
    ) -> None:
        self._pool = pool
        self._lock_timeout_ms = int(lock_timeout_ms)
        self._conn_ctx: Any = None
        self._conn: Any = None
        self._committed = False

    def _get_pool(self) -> ConnectionPool:
        if self._pool is not None:
            return self._pool

        from ...db.pool import get_pool

        return get_pool()

    def __enter__(self) -> "PostgresUnitOfWork":
        self._conn_ctx = self._get_pool().connection()
        self._conn = self._conn_ctx.__enter__()
        self._committed = False

        self.collections = PostgresCollectionWriteRepository(self._conn)
        self.history = PostgresCollectionHistoryRepository(self._conn)

        if self._lock_timeout_ms > 0:
            try:
                # SET no acepta parámetros; el valor es un int validado.
                self._conn.execute(
                    f"SET LOCAL lock_timeout = '{self._lock_timeout_ms}ms'"
                )
            except psycopg.Error as exc:
                self._conn_ctx.__exit__(type(exc), exc, exc.__traceback__)
                raise DatabaseError(
                    "Failed to start unit of work", original_error=exc
                ) from exc
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if not self._committed:
                self._conn.rollback()
        finally:
            self._conn_ctx.__exit__(exc_type, exc, tb)
            self._conn = None
            self._conn_ctx = None
        return False

    def lock_machine(self, machine_id) -> None:
        self.collections._execute(
            "SELECT pg_advisory_xact_lock(hashtextextended(%s, 0))",
            (f"collections:machine:{machine_id}",),
            error_message="Failed to lock machine for create",
            extra={"machine_id": str(machine_id)},
        )

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        # Con una transacción ya abierta, psycopg emite SAVEPOINT / ROLLBACK TO.
        with self._conn.transaction():
            yield

    def commit(self) -> None:
        try:
            self._conn.commit()
        except psycopg.Error as exc:
            logger.exception(
                "Commit de unidad de trabajo falló", extra={"error": str(exc)}
            )
            raise DatabaseError(
                f"Failed to commit unit of work: {exc}", original_error=exc
            ) from exc
        self._committed = True
