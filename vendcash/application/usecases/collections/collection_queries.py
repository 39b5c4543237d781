"""
===============================================================================
QUERIES: Collection read-side use cases
===============================================================================

Responsibilities:
    - Pendientes de conciliar (status=collected).
    - Historial de auditoría de una cobranza.
    - Chequeo de duplicado standalone (mismo predicado que Create).
    - Listado paginado con filtros y orden por whitelist.
    - Lectura por id, por operador (día de negocio) y conteo por máquina.

Collaborators:
    - CollectionQueryRepository (lecturas sin transacción de escritura)
    - DuplicateDetector
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from ....domain.business_time import day_end_utc, day_start_utc
from ....domain.entities import Collection, CollectionPage
from ....domain.repositories import CollectionQueryRepository
from ...duplicate_detector import DuplicateDetector
from .collection_filters import CollectionSearchFilters
from .collection_results import (
    CollectionHistoryResult,
    CollectionListResult,
    CollectionPageResult,
    CollectionResult,
    not_found,
    validation_error,
)

SORTABLE_FIELDS = frozenset(
    {"collected_at", "amount", "status", "received_at", "created_at"}
)
DEFAULT_SORT_FIELD = "collected_at"
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100


@dataclass(frozen=True)
class ListCollectionsQuery:
    filters: CollectionSearchFilters = field(default_factory=CollectionSearchFilters)
    sort_by: str = DEFAULT_SORT_FIELD
    sort_order: str = "DESC"
    page: int = 1
    limit: int = DEFAULT_PAGE_LIMIT


class ListPendingCollectionsUseCase:
    def __init__(self, repository: CollectionQueryRepository) -> None:
        self._repository = repository

    def execute(self) -> CollectionListResult:
        return CollectionListResult(collections=self._repository.list_pending())


class GetCollectionHistoryUseCase:
    def __init__(self, repository: CollectionQueryRepository) -> None:
        self._repository = repository

    def execute(self, collection_id: UUID) -> CollectionHistoryResult:
        if self._repository.get_collection(collection_id) is None:
            return CollectionHistoryResult(error=not_found())
        return CollectionHistoryResult(
            entries=self._repository.list_history(collection_id)
        )


class CheckDuplicateUseCase:
    def __init__(
        self, repository: CollectionQueryRepository, detector: DuplicateDetector
    ) -> None:
        self._repository = repository
        self._detector = detector

    def execute(self, machine_id: UUID, collected_at: datetime) -> Optional[Collection]:
        return self._detector.find_duplicate(self._repository, machine_id, collected_at)


class GetCollectionUseCase:
    def __init__(self, repository: CollectionQueryRepository) -> None:
        self._repository = repository

    def execute(self, collection_id: UUID) -> CollectionResult:
        collection = self._repository.get_collection(collection_id)
        if collection is None:
            return CollectionResult(error=not_found())
        return CollectionResult(collection=collection)


class ListCollectionsUseCase:
    """
    Listado paginado.

    sort_by fuera de la whitelist cae al default (collected_at); page/limit
    fuera de rango son VALIDATION_ERROR.
    """

    def __init__(
        self, repository: CollectionQueryRepository, *, utc_offset_hours: int
    ) -> None:
        self._repository = repository
        self._utc_offset_hours = utc_offset_hours

    def execute(self, query: ListCollectionsQuery) -> CollectionPageResult:
        if query.page < 1:
            return CollectionPageResult(error=validation_error("page must be >= 1"))
        if query.limit < 1 or query.limit > MAX_PAGE_LIMIT:
            return CollectionPageResult(
                error=validation_error(f"limit must be between 1 and {MAX_PAGE_LIMIT}")
            )

        sort_by = query.sort_by if query.sort_by in SORTABLE_FIELDS else DEFAULT_SORT_FIELD
        descending = (query.sort_order or "DESC").upper() != "ASC"

        items, total = self._repository.list_collections(
            query.filters.to_query(self._utc_offset_hours),
            sort_by=sort_by,
            descending=descending,
            offset=(query.page - 1) * query.limit,
            limit=query.limit,
        )
        return CollectionPageResult(
            page=CollectionPage(
                items=items, total=total, page=query.page, limit=query.limit
            )
        )


class ListOperatorCollectionsUseCase:
    def __init__(
        self, repository: CollectionQueryRepository, *, utc_offset_hours: int
    ) -> None:
        self._repository = repository
        self._utc_offset_hours = utc_offset_hours

    def execute(
        self, operator_id: UUID, *, day: Optional[date] = None
    ) -> CollectionListResult:
        if day is None:
            return CollectionListResult(
                collections=self._repository.list_by_operator(operator_id)
            )
        return CollectionListResult(
            collections=self._repository.list_by_operator(
                operator_id,
                collected_from=day_start_utc(day, self._utc_offset_hours),
                collected_to=day_end_utc(day, self._utc_offset_hours),
            )
        )


class CountMachineCollectionsUseCase:
    def __init__(self, repository: CollectionQueryRepository) -> None:
        self._repository = repository

    def execute(self, machine_id: UUID) -> int:
        return self._repository.count_by_machine(machine_id)
