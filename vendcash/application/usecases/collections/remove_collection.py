"""
===============================================================================
USE CASE: Remove Collection (baja administrativa)
===============================================================================

Business Goal:
    Borrar físicamente una cobranza cargada por error, dejando documentada la
    baja aunque el registro y su historial desaparezcan.

Business Rules:
    R1) Operación privilegiada (el caller ya validó el rol).
    R2) En una sola transacción:
          - lock de la fila
          - entrada final de auditoría en el log de bajas (campo "deleted",
            motivo "Deleted by admin", snapshot del registro)
          - purga del historial propio
          - delete del registro
    R3) El log de bajas no tiene FK hacia collections, así que la entrada que
        describe la baja sobrevive a la purga.
===============================================================================
"""

from __future__ import annotations

from uuid import UUID

from ....crosscutting.logger import logger
from ....crosscutting.metrics import record_collection_operation
from ....domain.entities import CollectionRemoval, collection_snapshot
from ....domain.repositories import UnitOfWorkFactory
from ...report_cache import ReportCacheInvalidator
from .collection_results import RemoveCollectionResult, not_found

_OPERATION = "remove"
REMOVE_REASON = "Deleted by admin"


class RemoveCollectionUseCase:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        cache_invalidator: ReportCacheInvalidator,
    ) -> None:
        self._uow_factory = uow_factory
        self._cache = cache_invalidator

    def execute(self, collection_id: UUID, *, user_id: UUID) -> RemoveCollectionResult:
        with self._uow_factory() as uow:
            locked = uow.collections.lock_for_update(collection_id)
            if locked is None:
                record_collection_operation(_OPERATION, "NOT_FOUND")
                return RemoveCollectionResult(success=False, error=not_found())

            snapshot = collection_snapshot(locked)
            history_count = len(uow.history.list_for_collection(collection_id))

            uow.history.record_removal(
                CollectionRemoval(
                    collection_id=collection_id,
                    removed_by_id=user_id,
                    snapshot=snapshot,
                    purged_history_count=history_count,
                    reason=REMOVE_REASON,
                )
            )
            uow.history.purge_for_collection(collection_id)
            uow.collections.delete(collection_id)
            uow.commit()

        record_collection_operation(_OPERATION, "ok")
        logger.warning(
            "Cobranza eliminada por administrador",
            extra={
                "collection_id": str(collection_id),
                "user_id": str(user_id),
                "purged_history_count": history_count,
                "snapshot": snapshot,
            },
        )
        self._cache.invalidate(reason=_OPERATION)
        return RemoveCollectionResult(success=True)
