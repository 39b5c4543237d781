"""
===============================================================================
USE CASE: Receive Collection
===============================================================================

Business Goal:
    El manager registra el monto contado y la cobranza pasa de COLLECTED a
    RECEIVED. Es la operación más expuesta a concurrencia (dos managers
    conciliando el mismo retiro), por eso sigue el protocolo de lock completo.

-------------------------------------------------------------------------------
CRC CARD
-------------------------------------------------------------------------------
Class:
    ReceiveCollectionUseCase

Responsibilities:
    - Validar monto (>= 1 y <= máximo configurado).
    - Lock exclusivo de la fila, validar estado, recargar con relaciones.
    - Setear manager/amount/received_at/status y auditar (status + amount).
    - Commit y recién después invalidar caches.

Collaborators:
    - UnitOfWorkFactory
    - domain.collection_policy.can_receive
    - ReportCacheInvalidator

-------------------------------------------------------------------------------
FLOW (protocolo de lock)
-------------------------------------------------------------------------------
1) Abrir UoW.
2) lock_for_update(id): solo la fila, sin joins.
3) Validar estado sobre la fila bloqueada. Falla -> error (rollback).
4) get_with_relations(id) con el lock ya tomado.
5) Mutar + auditar + commit.
6) Fuera de la transacción: invalidar caches.

Si dos receives compiten, el segundo espera el lock, ve RECEIVED y devuelve
INVALID_STATE.
===============================================================================
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from ....crosscutting.logger import logger
from ....crosscutting.metrics import record_collection_operation
from ....domain.collection_policy import can_receive, format_audit_value
from ....domain.entities import CollectionHistoryEntry, CollectionStatus
from ....domain.repositories import UnitOfWorkFactory
from ...report_cache import ReportCacheInvalidator
from .collection_results import (
    CollectionError,
    CollectionErrorCode,
    CollectionResult,
    not_found,
)
from .collection_validation import parse_amount, validate_notes

_OPERATION = "receive"
RECEIVE_STATUS_REASON = "Collection received by manager"
RECEIVE_AMOUNT_REASON = "Initial amount set on receive"
MIN_RECEIVE_AMOUNT = 1


class ReceiveCollectionUseCase:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        cache_invalidator: ReportCacheInvalidator,
        max_amount: int,
    ) -> None:
        self._uow_factory = uow_factory
        self._cache = cache_invalidator
        self._max_amount = max_amount

    def execute(
        self,
        collection_id: UUID,
        *,
        manager_id: UUID,
        amount,
        notes: Optional[str] = None,
    ) -> CollectionResult:
        parsed, error = parse_amount(
            amount, minimum=MIN_RECEIVE_AMOUNT, maximum=self._max_amount
        )
        error = error or validate_notes(notes)
        if error:
            return self._fail(error)

        with self._uow_factory() as uow:
            locked = uow.collections.lock_for_update(collection_id)
            if locked is None:
                return self._fail(not_found())

            if not can_receive(locked.status):
                return self._fail(
                    CollectionError(
                        code=CollectionErrorCode.INVALID_STATE,
                        message=(
                            "Cannot receive collection with status "
                            f"{locked.status.value}"
                        ),
                    )
                )

            collection = uow.collections.get_with_relations(collection_id) or locked
            previous_status = collection.status

            collection.manager_id = manager_id
            collection.amount = parsed
            collection.received_at = datetime.now(timezone.utc)
            collection.status = CollectionStatus.RECEIVED
            if notes:
                collection.notes = notes
            collection.touch()
            uow.collections.update(collection)

            uow.history.append(
                CollectionHistoryEntry(
                    collection_id=collection.id,
                    changed_by_id=manager_id,
                    field_name="status",
                    old_value=format_audit_value(previous_status),
                    new_value=format_audit_value(CollectionStatus.RECEIVED),
                    reason=RECEIVE_STATUS_REASON,
                )
            )
            uow.history.append(
                CollectionHistoryEntry(
                    collection_id=collection.id,
                    changed_by_id=manager_id,
                    field_name="amount",
                    old_value=None,
                    new_value=format_audit_value(parsed),
                    reason=RECEIVE_AMOUNT_REASON,
                )
            )
            uow.commit()

        record_collection_operation(_OPERATION, "ok")
        logger.info(
            "Cobranza recibida",
            extra={
                "collection_id": str(collection_id),
                "manager_id": str(manager_id),
                "amount": str(parsed),
            },
        )
        self._cache.invalidate(reason=_OPERATION)
        return CollectionResult(collection=collection)

    @staticmethod
    def _fail(error: CollectionError) -> CollectionResult:
        record_collection_operation(_OPERATION, error.code.value)
        return CollectionResult(error=error)
