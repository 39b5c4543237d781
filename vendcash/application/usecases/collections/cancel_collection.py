"""
===============================================================================
USE CASE: Cancel Collection
===============================================================================

Business Goal:
    Anular una cobranza (COLLECTED o RECEIVED). CANCELLED es terminal, y
    cancelar dos veces NO es idempotente: la segunda vez falla con
    ALREADY_CANCELLED.

Notes:
    - cancel_in_unit_of_work() encapsula el paso "lock -> validar -> recargar ->
      mutar -> auditar" y lo reutiliza BulkCancel por cada id.
===============================================================================
"""

from __future__ import annotations

from typing import Optional, Union
from uuid import UUID

from ....crosscutting.logger import logger
from ....crosscutting.metrics import record_collection_operation
from ....domain.collection_policy import can_cancel, format_audit_value
from ....domain.entities import Collection, CollectionHistoryEntry, CollectionStatus
from ....domain.repositories import CollectionUnitOfWork, UnitOfWorkFactory
from ...report_cache import ReportCacheInvalidator
from .collection_results import (
    CollectionError,
    CollectionErrorCode,
    CollectionResult,
    not_found,
)
from .collection_validation import validate_reason

_OPERATION = "cancel"
DEFAULT_CANCEL_REASON = "Cancelled by user"


def cancel_in_unit_of_work(
    uow: CollectionUnitOfWork,
    collection_id: UUID,
    *,
    user_id: UUID,
    reason: str,
) -> Union[Collection, CollectionError]:
    """Cancela dentro de una UoW ya abierta; no hace commit."""
    locked = uow.collections.lock_for_update(collection_id)
    if locked is None:
        return not_found()

    if not can_cancel(locked.status):
        return CollectionError(
            code=CollectionErrorCode.ALREADY_CANCELLED,
            message="Already cancelled",
        )

    collection = uow.collections.get_with_relations(collection_id) or locked
    previous_status = collection.status

    collection.status = CollectionStatus.CANCELLED
    collection.touch()
    uow.collections.update(collection)
    uow.history.append(
        CollectionHistoryEntry(
            collection_id=collection.id,
            changed_by_id=user_id,
            field_name="status",
            old_value=format_audit_value(previous_status),
            new_value=format_audit_value(CollectionStatus.CANCELLED),
            reason=reason,
        )
    )
    return collection


class CancelCollectionUseCase:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        cache_invalidator: ReportCacheInvalidator,
    ) -> None:
        self._uow_factory = uow_factory
        self._cache = cache_invalidator

    def execute(
        self,
        collection_id: UUID,
        *,
        user_id: UUID,
        reason: Optional[str] = None,
    ) -> CollectionResult:
        error = validate_reason(reason, required=False)
        if error:
            return self._fail(error)
        effective_reason = (reason or "").strip() or DEFAULT_CANCEL_REASON

        with self._uow_factory() as uow:
            outcome = cancel_in_unit_of_work(
                uow, collection_id, user_id=user_id, reason=effective_reason
            )
            if isinstance(outcome, CollectionError):
                return self._fail(outcome)
            uow.commit()

        record_collection_operation(_OPERATION, "ok")
        logger.info(
            "Cobranza cancelada",
            extra={
                "collection_id": str(collection_id),
                "user_id": str(user_id),
                "reason": effective_reason,
            },
        )
        self._cache.invalidate(reason=_OPERATION)
        return CollectionResult(collection=outcome)

    @staticmethod
    def _fail(error: CollectionError) -> CollectionResult:
        record_collection_operation(_OPERATION, error.code.value)
        return CollectionResult(error=error)
