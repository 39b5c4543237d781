"""
===============================================================================
USE CASE: Edit Collection
===============================================================================

Business Goal:
    Corregir el monto (y opcionalmente las notas) de una cobranza ya recibida,
    dejando rastro auditable con un motivo obligatorio.

Business Rules:
    R1) Solo RECEIVED se edita; COLLECTED o CANCELLED -> INVALID_STATE.
    R2) reason es obligatorio (texto libre, no vacío).
    R3) Una entrada de auditoría por campo que efectivamente cambió: editar con
        el mismo monto no deja rastro.
===============================================================================
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from ....crosscutting.logger import logger
from ....crosscutting.metrics import record_collection_operation
from ....domain.collection_policy import can_edit, format_audit_value
from ....domain.entities import CollectionHistoryEntry
from ....domain.repositories import UnitOfWorkFactory
from ...report_cache import ReportCacheInvalidator
from .collection_results import (
    CollectionError,
    CollectionErrorCode,
    CollectionResult,
    not_found,
)
from .collection_validation import parse_amount, validate_notes, validate_reason

_OPERATION = "edit"


class EditCollectionUseCase:
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
        user_id: UUID,
        amount,
        reason: str,
        notes: Optional[str] = None,
    ) -> CollectionResult:
        parsed, error = parse_amount(amount, minimum=0, maximum=self._max_amount)
        error = error or validate_reason(reason, required=True)
        error = error or validate_notes(notes)
        if error:
            return self._fail(error)

        changes = 0
        with self._uow_factory() as uow:
            locked = uow.collections.lock_for_update(collection_id)
            if locked is None:
                return self._fail(not_found())

            if not can_edit(locked.status):
                return self._fail(
                    CollectionError(
                        code=CollectionErrorCode.INVALID_STATE,
                        message=(
                            "Only received collections can be edited "
                            f"(current status: {locked.status.value})"
                        ),
                    )
                )

            collection = uow.collections.get_with_relations(collection_id) or locked

            if collection.amount != parsed:
                uow.history.append(
                    CollectionHistoryEntry(
                        collection_id=collection.id,
                        changed_by_id=user_id,
                        field_name="amount",
                        old_value=format_audit_value(collection.amount),
                        new_value=format_audit_value(parsed),
                        reason=reason,
                    )
                )
                collection.amount = parsed
                changes += 1

            if notes is not None and notes != collection.notes:
                uow.history.append(
                    CollectionHistoryEntry(
                        collection_id=collection.id,
                        changed_by_id=user_id,
                        field_name="notes",
                        old_value=collection.notes,
                        new_value=notes,
                        reason=reason,
                    )
                )
                collection.notes = notes
                changes += 1

            if changes:
                collection.touch()
                uow.collections.update(collection)
                uow.commit()

        record_collection_operation(_OPERATION, "ok" if changes else "noop")
        if not changes:
            return CollectionResult(collection=collection)

        logger.info(
            "Cobranza editada",
            extra={
                "collection_id": str(collection_id),
                "user_id": str(user_id),
                "fields_changed": changes,
            },
        )
        self._cache.invalidate(reason=_OPERATION)
        return CollectionResult(collection=collection)

    @staticmethod
    def _fail(error: CollectionError) -> CollectionResult:
        record_collection_operation(_OPERATION, error.code.value)
        return CollectionResult(error=error)
