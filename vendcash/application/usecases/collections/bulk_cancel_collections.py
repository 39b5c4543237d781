"""
===============================================================================
USE CASE: Bulk Cancel Collections
===============================================================================

Business Goal:
    Anular muchas cobranzas en una sola transacción, por lista explícita de
    ids o por filtros, con contabilidad de éxito/falla por id.

Business Rules:
    R1) Modo ids: 1..max ids (configurable, default 500).
    R2) Modo filtros: al menos un criterio; se valida ANTES de tocar filas para
        no cancelar accidentalmente todo el dataset.
    R3) Modo filtros resuelve primero los ids no cancelados que matchean.
    R4) Cada id se bloquea y cancela dentro de su savepoint, misma regla que
        Cancel: "Collection not found" / "Already cancelled" / error inesperado
        quedan como {id, error} y el resto sigue.
    R5) Un lock timeout aborta el lote completo (falla de infraestructura).
    R6) Invalidación de cache solo si cancelled > 0.
===============================================================================
"""

from __future__ import annotations

from typing import List, Optional, Sequence
from uuid import UUID

from ....crosscutting.exceptions import ConcurrencyConflictError
from ....crosscutting.logger import logger
from ....crosscutting.metrics import record_bulk_items, record_collection_operation
from ....domain.repositories import UnitOfWorkFactory
from ...report_cache import ReportCacheInvalidator
from .cancel_collection import cancel_in_unit_of_work
from .collection_filters import CollectionSearchFilters
from .collection_results import (
    BulkCancelItemError,
    BulkCancelResult,
    CollectionError,
    validation_error,
)
from .collection_validation import validate_reason

_OPERATION = "bulk_cancel"
DEFAULT_BULK_CANCEL_REASON = "Bulk cancellation"
MISSING_FILTER_MESSAGE = (
    "At least one filter must be specified when using use_filters"
)


class BulkCancelCollectionsUseCase:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        cache_invalidator: ReportCacheInvalidator,
        max_items: int,
        utc_offset_hours: int,
    ) -> None:
        self._uow_factory = uow_factory
        self._cache = cache_invalidator
        self._max_items = max_items
        self._utc_offset_hours = utc_offset_hours

    def execute(
        self,
        *,
        user_id: UUID,
        ids: Optional[Sequence[UUID]] = None,
        filters: Optional[CollectionSearchFilters] = None,
        use_filters: bool = False,
        reason: Optional[str] = None,
    ) -> BulkCancelResult:
        error = validate_reason(reason, required=False)
        error = error or self._validate_selection(ids, filters, use_filters)
        if error:
            record_collection_operation(_OPERATION, error.code.value)
            return BulkCancelResult(error=error)

        effective_reason = (reason or "").strip() or DEFAULT_BULK_CANCEL_REASON
        result = BulkCancelResult()

        with self._uow_factory() as uow:
            if use_filters:
                target_ids: List[UUID] = uow.collections.find_active_ids(
                    filters.to_query(self._utc_offset_hours)
                )
            else:
                target_ids = list(dict.fromkeys(ids))
            result.total = len(target_ids)

            for collection_id in target_ids:
                try:
                    with uow.savepoint():
                        outcome = cancel_in_unit_of_work(
                            uow,
                            collection_id,
                            user_id=user_id,
                            reason=effective_reason,
                        )
                except ConcurrencyConflictError:
                    raise
                except Exception as exc:
                    logger.exception(
                        "Error inesperado cancelando ítem del lote",
                        extra={"collection_id": str(collection_id)},
                    )
                    result.errors.append(BulkCancelItemError(collection_id, str(exc)))
                    continue

                if isinstance(outcome, CollectionError):
                    result.errors.append(
                        BulkCancelItemError(collection_id, outcome.message)
                    )
                    continue
                result.cancelled += 1

            if result.cancelled:
                uow.commit()

        result.failed = len(result.errors)

        record_collection_operation(_OPERATION, "ok")
        record_bulk_items(
            _OPERATION, succeeded=result.cancelled, failed=result.failed
        )
        logger.info(
            "Bulk cancel finalizado",
            extra={
                "user_id": str(user_id),
                "use_filters": use_filters,
                "total": result.total,
                "cancelled": result.cancelled,
                "failed": result.failed,
            },
        )

        if result.cancelled > 0:
            self._cache.invalidate(reason=_OPERATION)
        return result

    def _validate_selection(
        self,
        ids: Optional[Sequence[UUID]],
        filters: Optional[CollectionSearchFilters],
        use_filters: bool,
    ) -> Optional[CollectionError]:
        if use_filters:
            if filters is None or not filters.has_criteria():
                return validation_error(MISSING_FILTER_MESSAGE)
            return None

        if not ids:
            return validation_error("ids are required when use_filters is false")
        if len(ids) > self._max_items:
            return validation_error(
                f"Maximum {self._max_items} ids per bulk cancel"
            )
        return None
