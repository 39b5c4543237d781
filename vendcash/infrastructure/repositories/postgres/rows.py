"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/rows.py
============================================================
Module: Row mapping + filtros SQL compartidos

Responsibilities:
  - Columnas canónicas de collections / machines / collection_history.
  - Mapear tuplas de psycopg a entidades del dominio.
  - Construir cláusulas WHERE parametrizadas desde CollectionFilter.

Constraints:
  - Queries SIEMPRE parametrizadas: los valores viajan en params,
    nunca interpolados.
============================================================
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple

from ....domain.entities import (
    Collection,
    CollectionFilter,
    CollectionHistoryEntry,
    CollectionSource,
    CollectionStatus,
    Machine,
)

COLLECTION_COLUMNS = """
    c.id, c.machine_id, c.operator_id, c.manager_id, c.collected_at,
    c.received_at, c.amount, c.status, c.source, c.notes, c.latitude,
    c.longitude, c.distance_from_machine, c.created_at, c.updated_at
"""

MACHINE_COLUMNS = "m.id, m.code, m.name, m.latitude, m.longitude, m.is_active"

HISTORY_COLUMNS = """
    id, collection_id, changed_by_id, field_name, old_value, new_value,
    reason, created_at
"""

_COLLECTION_WIDTH = 15

SORT_COLUMNS = {
    "collected_at": "c.collected_at",
    "amount": "c.amount",
    "status": "c.status",
    "received_at": "c.received_at",
    "created_at": "c.created_at",
}


def _float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


def row_to_machine(row: Sequence[Any]) -> Optional[Machine]:
    if row is None or row[0] is None:
        return None
    return Machine(
        id=row[0],
        code=row[1],
        name=row[2] or "",
        latitude=_float(row[3]),
        longitude=_float(row[4]),
        is_active=bool(row[5]),
    )


def row_to_collection(row: Sequence[Any]) -> Collection:
    """
    Mapea las columnas de COLLECTION_COLUMNS; si la fila trae además las
    columnas de MACHINE_COLUMNS (LEFT JOIN), adjunta la máquina.
    """
    collection = Collection(
        id=row[0],
        machine_id=row[1],
        operator_id=row[2],
        manager_id=row[3],
        collected_at=row[4],
        received_at=row[5],
        amount=row[6],
        status=CollectionStatus(row[7]),
        source=CollectionSource(row[8]),
        notes=row[9],
        latitude=_float(row[10]),
        longitude=_float(row[11]),
        distance_from_machine=_float(row[12]),
        created_at=row[13],
        updated_at=row[14],
    )
    if len(row) > _COLLECTION_WIDTH:
        collection.machine = row_to_machine(row[_COLLECTION_WIDTH:])
    return collection


def row_to_history(row: Sequence[Any]) -> CollectionHistoryEntry:
    return CollectionHistoryEntry(
        id=row[0],
        collection_id=row[1],
        changed_by_id=row[2],
        field_name=row[3],
        old_value=row[4],
        new_value=row[5],
        reason=row[6],
        created_at=row[7],
    )


def filter_clause(filters: CollectionFilter) -> Tuple[List[str], List[object]]:
    """Condiciones (AND) + params para un CollectionFilter."""
    conditions: List[str] = []
    params: List[object] = []

    if filters.status is not None:
        conditions.append("c.status = %s")
        params.append(filters.status.value)
    if filters.machine_id is not None:
        conditions.append("c.machine_id = %s")
        params.append(filters.machine_id)
    if filters.operator_id is not None:
        conditions.append("c.operator_id = %s")
        params.append(filters.operator_id)
    if filters.source is not None:
        conditions.append("c.source = %s")
        params.append(filters.source.value)
    if filters.collected_from is not None:
        conditions.append("c.collected_at >= %s")
        params.append(filters.collected_from)
    if filters.collected_to is not None:
        conditions.append("c.collected_at <= %s")
        params.append(filters.collected_to)

    return conditions, params


def where_sql(conditions: List[str]) -> str:
    return f"WHERE {' AND '.join(conditions)}" if conditions else ""
