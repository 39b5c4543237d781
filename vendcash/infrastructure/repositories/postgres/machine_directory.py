"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/machine_directory.py
============================================================
Class: PostgresMachineDirectory

Responsibilities:
  - Vista de solo lectura del registro de máquinas (tabla machines).
  - Resolución en batch por ids / códigos (= ANY(%s)) para bulk create.

Collaborators:
  - psycopg_pool.ConnectionPool
  - crosscutting.exceptions.DatabaseError
============================================================
"""

from __future__ import annotations

from typing import Dict, List, Optional
from uuid import UUID

from psycopg_pool import ConnectionPool

from ....crosscutting.exceptions import DatabaseError
from ....crosscutting.logger import logger
from ....domain.entities import Machine
from .rows import MACHINE_COLUMNS, row_to_machine


class PostgresMachineDirectory:
    _SQL_BY_ID = f"SELECT {MACHINE_COLUMNS} FROM machines m WHERE m.id = %s"
    _SQL_BY_IDS = f"SELECT {MACHINE_COLUMNS} FROM machines m WHERE m.id = ANY(%s)"
    _SQL_BY_CODES = f"SELECT {MACHINE_COLUMNS} FROM machines m WHERE m.code = ANY(%s)"

    def __init__(self, pool: ConnectionPool | None = None):
        self._pool = pool

    def _get_pool(self) -> ConnectionPool:
        if self._pool is not None:
            return self._pool

        from ...db.pool import get_pool

        return get_pool()

    def _fetchall(self, query: str, params: tuple, *, error_message: str) -> list[tuple]:
        try:
            with self._get_pool().connection() as conn:
                return conn.execute(query, params).fetchall()
        except Exception as exc:
            logger.exception(error_message, extra={"error": str(exc)})
            raise DatabaseError(f"{error_message}: {exc}") from exc

    def get_machine(self, machine_id: UUID) -> Optional[Machine]:
        rows = self._fetchall(
            self._SQL_BY_ID,
            (machine_id,),
            error_message="PostgresMachineDirectory: Failed to get machine",
        )
        return row_to_machine(rows[0]) if rows else None

    def get_machines_by_ids(self, machine_ids: List[UUID]) -> Dict[UUID, Machine]:
        if not machine_ids:
            return {}
        rows = self._fetchall(
            self._SQL_BY_IDS,
            (list(machine_ids),),
            error_message="PostgresMachineDirectory: Failed to resolve machine ids",
        )
        machines = [row_to_machine(row) for row in rows]
        return {machine.id: machine for machine in machines if machine}

    def get_machines_by_codes(self, codes: List[str]) -> Dict[str, Machine]:
        if not codes:
            return {}
        rows = self._fetchall(
            self._SQL_BY_CODES,
            (list(codes),),
            error_message="PostgresMachineDirectory: Failed to resolve machine codes",
        )
        machines = [row_to_machine(row) for row in rows]
        return {machine.code: machine for machine in machines if machine}
