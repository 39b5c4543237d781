"""
===============================================================================
USE CASE: Create Collection
===============================================================================

Name:
    Create Collection Use Case

Business Goal:
    Registrar el retiro de efectivo de una máquina por parte de un operador,
    evitando procesar dos veces el mismo retiro físico.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    CreateCollectionUseCase

Responsibilities:
    - Validar inputs (coordenadas, notas) y existencia de la máquina.
    - Estimar distancia a la máquina (advertencia si supera 50 m, no bloquea).
    - Detectar duplicados en la ventana configurada (salvo skip explícito).
    - Persistir la cobranza en estado COLLECTED.
    - Tras el commit: invalidar caches y encolar el aviso a managers.

Collaborators:
    - UnitOfWorkFactory / CollectionUnitOfWork
    - MachineDirectory
    - DuplicateDetector
    - ReportCacheInvalidator
    - CollectionNotifier (opcional, best-effort)

-------------------------------------------------------------------------------
FLOW
-------------------------------------------------------------------------------
1) Validar coordenadas/notas. Falla -> VALIDATION_ERROR.
2) Resolver máquina. No existe -> NOT_FOUND.
3) Calcular distancia si hay coordenadas en ambos lados.
4) Abrir UoW, tomar lock por máquina (serializa creates concurrentes).
5) Buscar duplicado (si no se saltea). Existe -> DUPLICATE_DETECTED (rollback).
6) Insertar, commit.
7) Invalidar cache + notificar (fallas logueadas, nunca propagadas).
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from ....crosscutting.logger import logger
from ....crosscutting.metrics import (
    record_collection_operation,
    record_distance_warning,
    record_duplicate_detected,
)
from ....domain.business_time import ensure_utc
from ....domain.entities import Collection, CollectionSource, CollectionStatus, Machine
from ....domain.geo import exceeds_warning_threshold, haversine_distance
from ....domain.repositories import MachineDirectory, UnitOfWorkFactory
from ....domain.services import CollectionNotifier
from ...duplicate_detector import DuplicateDetector
from ...report_cache import ReportCacheInvalidator
from .collection_results import (
    CollectionError,
    CollectionErrorCode,
    CollectionResult,
    not_found,
)
from .collection_validation import validate_coordinates, validate_notes

_OPERATION = "create"


@dataclass
class CreateCollectionInput:
    machine_id: UUID
    operator_id: UUID
    collected_at: datetime
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    notes: Optional[str] = None
    source: CollectionSource = CollectionSource.REALTIME
    skip_duplicate_check: bool = False


class CreateCollectionUseCase:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        machines: MachineDirectory,
        duplicate_detector: DuplicateDetector,
        cache_invalidator: ReportCacheInvalidator,
        notifier: CollectionNotifier | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._machines = machines
        self._duplicates = duplicate_detector
        self._cache = cache_invalidator
        self._notifier = notifier

    def execute(self, input_data: CreateCollectionInput) -> CollectionResult:
        error = validate_coordinates(input_data.latitude, input_data.longitude)
        error = error or validate_notes(input_data.notes)
        if error:
            return self._fail(error)

        machine = self._machines.get_machine(input_data.machine_id)
        if machine is None:
            return self._fail(not_found("Machine not found"))

        distance = self._estimate_distance(input_data, machine)
        collected_at = ensure_utc(input_data.collected_at)

        with self._uow_factory() as uow:
            uow.lock_machine(machine.id)

            if not input_data.skip_duplicate_check:
                existing = self._duplicates.find_duplicate(
                    uow.collections, machine.id, collected_at
                )
                if existing is not None:
                    record_duplicate_detected()
                    logger.info(
                        "Cobranza duplicada rechazada",
                        extra={
                            "machine_id": str(machine.id),
                            "existing_id": str(existing.id),
                            "window_minutes": self._duplicates.window_minutes,
                        },
                    )
                    return self._fail(
                        CollectionError(
                            code=CollectionErrorCode.DUPLICATE_DETECTED,
                            message=(
                                "A collection for this machine already exists "
                                "within the duplicate window"
                            ),
                            existing_id=existing.id,
                        )
                    )

            collection = Collection(
                id=uuid4(),
                machine_id=machine.id,
                operator_id=input_data.operator_id,
                collected_at=collected_at,
                status=CollectionStatus.COLLECTED,
                source=input_data.source,
                notes=input_data.notes,
                latitude=input_data.latitude,
                longitude=input_data.longitude,
                distance_from_machine=distance,
            )
            uow.collections.add(collection)
            uow.commit()

        collection.machine = machine
        record_collection_operation(_OPERATION, "ok")
        logger.info(
            "Cobranza registrada",
            extra={
                "collection_id": str(collection.id),
                "machine_id": str(machine.id),
                "source": collection.source.value,
                "skip_duplicate_check": input_data.skip_duplicate_check,
            },
        )

        self._cache.invalidate(reason=_OPERATION)
        self._notify(collection)
        return CollectionResult(collection=collection)

    def _estimate_distance(
        self, input_data: CreateCollectionInput, machine: Machine
    ) -> Optional[float]:
        if input_data.latitude is None or input_data.longitude is None:
            return None
        if not machine.has_coordinates:
            return None

        distance = haversine_distance(
            input_data.latitude,
            input_data.longitude,
            machine.latitude,
            machine.longitude,
        )
        if exceeds_warning_threshold(distance):
            record_distance_warning()
            logger.warning(
                "Cobranza registrada lejos de la máquina",
                extra={
                    "machine_id": str(machine.id),
                    "machine_code": machine.code,
                    "distance_meters": distance,
                },
            )
        return distance

    def _notify(self, collection: Collection) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify_new_collection(
                collection.id, distance_meters=collection.distance_from_machine
            )
        except Exception as exc:
            logger.warning(
                "No se pudo notificar la nueva cobranza",
                extra={"collection_id": str(collection.id), "error": str(exc)},
            )

    @staticmethod
    def _fail(error: CollectionError) -> CollectionResult:
        record_collection_operation(_OPERATION, error.code.value)
        return CollectionResult(error=error)
