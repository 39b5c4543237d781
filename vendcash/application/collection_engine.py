"""
===============================================================================
TARJETA CRC — application/collection_engine.py (Lifecycle Engine facade)
===============================================================================

Responsabilidades:
  - Exponer la superficie de operaciones del ciclo de vida de cobranzas en un
    único punto (create, receive, edit, cancel, bulk_*, remove, consultas).
  - Setear el contexto de logging (actor + operación) por llamada.
  - Delegar en los casos de uso; no contiene reglas de negocio propias.

Colaboradores:
  - application.usecases.collections.* (inyectados explícitamente)
  - context (actor_id_var / operation_var)
  - container.get_collection_engine (composición)
===============================================================================
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterator, Optional, Sequence
from uuid import UUID

from ..context import actor_id_var, operation_var
from ..domain.entities import Collection, CollectionSource
from .usecases.collections import (
    BulkCancelCollectionsUseCase,
    BulkCancelResult,
    BulkCreateCollectionsUseCase,
    BulkCreateItem,
    BulkCreateResult,
    CancelCollectionUseCase,
    CheckDuplicateUseCase,
    CollectionHistoryResult,
    CollectionListResult,
    CollectionPageResult,
    CollectionResult,
    CollectionSearchFilters,
    CountMachineCollectionsUseCase,
    CreateCollectionInput,
    CreateCollectionUseCase,
    EditCollectionUseCase,
    GetCollectionHistoryUseCase,
    GetCollectionUseCase,
    ListCollectionsQuery,
    ListCollectionsUseCase,
    ListOperatorCollectionsUseCase,
    ListPendingCollectionsUseCase,
    ReceiveCollectionUseCase,
    RemoveCollectionResult,
    RemoveCollectionUseCase,
)


@contextmanager
def _operation_context(operation: str, actor_id: UUID | None = None) -> Iterator[None]:
    op_token = operation_var.set(operation)
    actor_token = actor_id_var.set(str(actor_id) if actor_id else "")
    try:
        yield
    finally:
        operation_var.reset(op_token)
        actor_id_var.reset(actor_token)


@dataclass
class CollectionLifecycleEngine:
    create_uc: CreateCollectionUseCase
    receive_uc: ReceiveCollectionUseCase
    edit_uc: EditCollectionUseCase
    cancel_uc: CancelCollectionUseCase
    bulk_create_uc: BulkCreateCollectionsUseCase
    bulk_cancel_uc: BulkCancelCollectionsUseCase
    remove_uc: RemoveCollectionUseCase
    pending_uc: ListPendingCollectionsUseCase
    history_uc: GetCollectionHistoryUseCase
    duplicate_uc: CheckDuplicateUseCase
    list_uc: ListCollectionsUseCase
    get_uc: GetCollectionUseCase
    operator_uc: ListOperatorCollectionsUseCase
    count_uc: CountMachineCollectionsUseCase

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create(self, input_data: CreateCollectionInput) -> CollectionResult:
        with _operation_context("create", input_data.operator_id):
            return self.create_uc.execute(input_data)

    def bulk_create(
        self,
        items: Sequence[BulkCreateItem],
        *,
        operator_id: UUID,
        source: CollectionSource = CollectionSource.MANUAL_HISTORY,
    ) -> BulkCreateResult:
        with _operation_context("bulk_create", operator_id):
            return self.bulk_create_uc.execute(
                items, operator_id=operator_id, source=source
            )

    def receive(
        self,
        collection_id: UUID,
        *,
        manager_id: UUID,
        amount,
        notes: Optional[str] = None,
    ) -> CollectionResult:
        with _operation_context("receive", manager_id):
            return self.receive_uc.execute(
                collection_id, manager_id=manager_id, amount=amount, notes=notes
            )

    def edit(
        self,
        collection_id: UUID,
        *,
        user_id: UUID,
        amount,
        reason: str,
        notes: Optional[str] = None,
    ) -> CollectionResult:
        with _operation_context("edit", user_id):
            return self.edit_uc.execute(
                collection_id, user_id=user_id, amount=amount, reason=reason, notes=notes
            )

    def cancel(
        self, collection_id: UUID, *, user_id: UUID, reason: Optional[str] = None
    ) -> CollectionResult:
        with _operation_context("cancel", user_id):
            return self.cancel_uc.execute(collection_id, user_id=user_id, reason=reason)

    def bulk_cancel(
        self,
        *,
        user_id: UUID,
        ids: Optional[Sequence[UUID]] = None,
        filters: Optional[CollectionSearchFilters] = None,
        use_filters: bool = False,
        reason: Optional[str] = None,
    ) -> BulkCancelResult:
        with _operation_context("bulk_cancel", user_id):
            return self.bulk_cancel_uc.execute(
                user_id=user_id,
                ids=ids,
                filters=filters,
                use_filters=use_filters,
                reason=reason,
            )

    def remove(self, collection_id: UUID, *, user_id: UUID) -> RemoveCollectionResult:
        with _operation_context("remove", user_id):
            return self.remove_uc.execute(collection_id, user_id=user_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_pending(self) -> CollectionListResult:
        return self.pending_uc.execute()

    def get_history(self, collection_id: UUID) -> CollectionHistoryResult:
        return self.history_uc.execute(collection_id)

    def check_duplicate(
        self, machine_id: UUID, collected_at: datetime
    ) -> Optional[Collection]:
        return self.duplicate_uc.execute(machine_id, collected_at)

    def find_all(self, query: ListCollectionsQuery) -> CollectionPageResult:
        return self.list_uc.execute(query)

    def find_by_id(self, collection_id: UUID) -> CollectionResult:
        return self.get_uc.execute(collection_id)

    def find_by_operator(
        self, operator_id: UUID, *, day: Optional[date] = None
    ) -> CollectionListResult:
        return self.operator_uc.execute(operator_id, day=day)

    def count_by_machine(self, machine_id: UUID) -> int:
        return self.count_uc.execute(machine_id)
