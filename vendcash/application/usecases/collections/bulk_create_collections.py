"""
===============================================================================
USE CASE: Bulk Create Collections (importación histórica)
===============================================================================

Business Goal:
    Cargar en lote cobranzas históricas (carga manual o planilla), aceptando
    fallas parciales: un ítem inválido no aborta el lote.

-------------------------------------------------------------------------------
CRC CARD
-------------------------------------------------------------------------------
Class:
    BulkCreateCollectionsUseCase

Responsibilities:
    - Validar tamaño del lote (1..max configurado).
    - Deduplicar ids/códigos de máquina y resolverlos en batch (2 queries).
    - Construir cada cobranza: RECEIVED si trae monto (el creador actúa como
      manager), COLLECTED si no.
    - Insertar cada ítem dentro de un savepoint; la falla de un ítem se
      registra como {index, error} y el lote sigue.
    - Commit único. Si el commit falla, se revierte TODO y la excepción se
      propaga (falla de infraestructura, no de ítem).

Collaborators:
    - UnitOfWorkFactory, MachineDirectory, ReportCacheInvalidator
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID, uuid4

from ....crosscutting.exceptions import ConcurrencyConflictError, DatabaseError
from ....crosscutting.logger import logger
from ....crosscutting.metrics import record_bulk_items, record_collection_operation
from ....domain.business_time import ensure_utc
from ....domain.entities import Collection, CollectionSource, CollectionStatus, Machine
from ....domain.repositories import MachineDirectory, UnitOfWorkFactory
from ...report_cache import ReportCacheInvalidator
from .collection_results import (
    BulkCreateItemError,
    BulkCreateResult,
    validation_error,
)
from .collection_validation import parse_amount, validate_notes

_OPERATION = "bulk_create"
MACHINE_NOT_FOUND = "Machine not found"


@dataclass
class BulkCreateItem:
    """Un ítem del lote: la máquina se referencia por id o por código."""

    collected_at: datetime
    machine_id: Optional[UUID] = None
    machine_code: Optional[str] = None
    amount: Any = None
    notes: Optional[str] = None


class BulkCreateCollectionsUseCase:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        machines: MachineDirectory,
        cache_invalidator: ReportCacheInvalidator,
        max_items: int,
        max_amount: int,
    ) -> None:
        self._uow_factory = uow_factory
        self._machines = machines
        self._cache = cache_invalidator
        self._max_items = max_items
        self._max_amount = max_amount

    def execute(
        self,
        items: Sequence[BulkCreateItem],
        *,
        operator_id: UUID,
        source: CollectionSource = CollectionSource.MANUAL_HISTORY,
    ) -> BulkCreateResult:
        if not items:
            record_collection_operation(_OPERATION, "VALIDATION_ERROR")
            return BulkCreateResult(error=validation_error("At least one item is required"))
        if len(items) > self._max_items:
            record_collection_operation(_OPERATION, "VALIDATION_ERROR")
            return BulkCreateResult(
                error=validation_error(
                    f"Maximum {self._max_items} items per bulk create"
                )
            )

        by_id, by_code = self._resolve_machines(items)
        now = datetime.now(timezone.utc)
        result = BulkCreateResult()

        with self._uow_factory() as uow:
            for index, item in enumerate(items):
                machine = self._machine_for(item, by_id, by_code)
                if machine is None:
                    result.errors.append(BulkCreateItemError(index, MACHINE_NOT_FOUND))
                    continue

                collection, message = self._build(item, machine, operator_id, source, now)
                if collection is None:
                    result.errors.append(BulkCreateItemError(index, message))
                    continue

                try:
                    with uow.savepoint():
                        uow.collections.add(collection)
                except ConcurrencyConflictError:
                    raise
                except DatabaseError as exc:
                    logger.warning(
                        "Ítem de bulk create rechazado por la base",
                        extra={"index": index, "error": exc.message},
                    )
                    result.errors.append(BulkCreateItemError(index, exc.message))
                    continue

                collection.machine = machine
                result.collections.append(collection)

            if result.collections:
                uow.commit()

        result.created = len(result.collections)
        result.failed = len(result.errors)

        record_collection_operation(_OPERATION, "ok")
        record_bulk_items(_OPERATION, succeeded=result.created, failed=result.failed)
        logger.info(
            "Bulk create finalizado",
            extra={
                "operator_id": str(operator_id),
                "source": source.value,
                "created_count": result.created,
                "failed_count": result.failed,
            },
        )

        if result.created > 0:
            self._cache.invalidate(reason=_OPERATION)
        return result

    def _resolve_machines(
        self, items: Sequence[BulkCreateItem]
    ) -> tuple[Dict[UUID, Machine], Dict[str, Machine]]:
        machine_ids = list(
            dict.fromkeys(item.machine_id for item in items if item.machine_id)
        )
        codes = list(
            dict.fromkeys(
                item.machine_code.strip()
                for item in items
                if not item.machine_id
                and item.machine_code
                and item.machine_code.strip()
            )
        )

        by_id = self._machines.get_machines_by_ids(machine_ids) if machine_ids else {}
        by_code = self._machines.get_machines_by_codes(codes) if codes else {}
        return by_id, by_code

    @staticmethod
    def _machine_for(
        item: BulkCreateItem,
        by_id: Dict[UUID, Machine],
        by_code: Dict[str, Machine],
    ) -> Optional[Machine]:
        if item.machine_id:
            return by_id.get(item.machine_id)
        if item.machine_code and item.machine_code.strip():
            return by_code.get(item.machine_code.strip())
        return None

    def _build(
        self,
        item: BulkCreateItem,
        machine: Machine,
        operator_id: UUID,
        source: CollectionSource,
        now: datetime,
    ) -> tuple[Optional[Collection], str]:
        notes_error = validate_notes(item.notes)
        if notes_error:
            return None, notes_error.message

        collection = Collection(
            id=uuid4(),
            machine_id=machine.id,
            operator_id=operator_id,
            collected_at=ensure_utc(item.collected_at),
            status=CollectionStatus.COLLECTED,
            source=source,
            notes=item.notes,
        )

        if item.amount is not None:
            amount, error = parse_amount(
                item.amount, minimum=0, maximum=self._max_amount
            )
            if error:
                return None, error.message
            collection.amount = amount
            collection.status = CollectionStatus.RECEIVED
            collection.manager_id = operator_id
            collection.received_at = now

        return collection, ""
