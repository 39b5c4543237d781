"""
CRC — domain/repositories.py

Name
- Domain Repository Interfaces (Protocols)

Responsibilities
- Define persistence contracts for the collections engine (ports).
- Keep application/domain independent from infrastructure (PostgreSQL, in-memory).
- Make the unit of work explicit: a transaction plus the repositories bound to it.

Collaborators
- domain.entities: Collection, CollectionHistoryEntry, CollectionRemoval, Machine
- infrastructure.repositories: postgres / in_memory implementations

Constraints
- Pure interfaces only: no side effects, no infrastructure imports, no SQL.
- History is append-only: there is no update method, and purge is only
  reachable from the administrative remove flow.

Notes
- typing.Protocol for structural subtyping ("duck typing").
- Transaction-bound repositories live inside a CollectionUnitOfWork; read-only
  queries go through CollectionQueryRepository (own short connection).
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, ContextManager, Dict, List, Optional, Protocol, Tuple
from uuid import UUID

from .entities import (
    Collection,
    CollectionFilter,
    CollectionHistoryEntry,
    CollectionRemoval,
    Machine,
)


class ActiveCollectionFinder(Protocol):
    """R: Minimal read capability used by the duplicate detector."""

    def find_active_in_window(
        self, machine_id: UUID, start: datetime, end: datetime
    ) -> Optional[Collection]:
        """
        R: First non-cancelled collection for machine_id with
        start <= collected_at <= end, or None.
        """
        ...


class CollectionWriteRepository(ActiveCollectionFinder, Protocol):
    """
    R: Collection persistence bound to an open transaction.

    Locking protocol:
      - lock_for_update() reads ONLY the bare row (SELECT ... FOR UPDATE).
      - get_with_relations() re-reads with joined data once the lock is held.
    """

    def lock_for_update(self, collection_id: UUID) -> Optional[Collection]:
        """R: Acquire an exclusive row lock and return the bare row (or None)."""
        ...

    def get_with_relations(self, collection_id: UUID) -> Optional[Collection]:
        """R: Re-read the row with its machine attached."""
        ...

    def find_active_ids(self, filters: CollectionFilter) -> List[UUID]:
        """R: Ids of non-cancelled collections matching filters."""
        ...

    def add(self, collection: Collection) -> None:
        """R: Insert a new collection."""
        ...

    def update(self, collection: Collection) -> None:
        """R: Persist mutable fields of an existing collection."""
        ...

    def delete(self, collection_id: UUID) -> None:
        """R: Hard delete (administrative remove only)."""
        ...


class CollectionHistoryRepository(Protocol):
    """R: Append-only audit log bound to an open transaction."""

    def append(self, entry: CollectionHistoryEntry) -> None:
        """R: Append one audit entry."""
        ...

    def list_for_collection(self, collection_id: UUID) -> List[CollectionHistoryEntry]:
        """R: Entries of one collection, newest first."""
        ...

    def purge_for_collection(self, collection_id: UUID) -> int:
        """
        R: Delete the history of a collection being removed.

        Notes:
            - Only the administrative remove flow calls this.
            - Returns the number of deleted entries.
        """
        ...

    def record_removal(self, removal: CollectionRemoval) -> None:
        """R: Append the final deletion entry to the removal log."""
        ...


class CollectionUnitOfWork(Protocol):
    """
    R: One transaction plus the repositories bound to it.

    Contract:
      - Used as a context manager; leaving the block without commit() rolls back.
      - Any exception inside the block rolls back and propagates.
      - The underlying connection/locks are always released on exit.
    """

    collections: CollectionWriteRepository
    history: CollectionHistoryRepository

    def __enter__(self) -> "CollectionUnitOfWork": ...

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]: ...

    def lock_machine(self, machine_id: UUID) -> None:
        """R: Serialize creates for one machine until the transaction ends."""
        ...

    def savepoint(self) -> ContextManager[None]:
        """R: Nested rollback point; an exception inside undoes only the block."""
        ...

    def commit(self) -> None:
        """R: Commit; failures raise DatabaseError after rollback."""
        ...


UnitOfWorkFactory = Callable[[], CollectionUnitOfWork]


class CollectionQueryRepository(ActiveCollectionFinder, Protocol):
    """R: Read-only queries outside of any mutation transaction."""

    def get_collection(self, collection_id: UUID) -> Optional[Collection]:
        """R: Collection with its machine attached, or None."""
        ...

    def list_pending(self) -> List[Collection]:
        """R: status=collected, newest collected_at first."""
        ...

    def list_collections(
        self,
        filters: CollectionFilter,
        *,
        sort_by: str,
        descending: bool,
        offset: int,
        limit: int,
    ) -> Tuple[List[Collection], int]:
        """R: Page of collections and the total count for filters."""
        ...

    def list_history(self, collection_id: UUID) -> List[CollectionHistoryEntry]:
        """R: Audit entries newest first."""
        ...

    def list_by_operator(
        self,
        operator_id: UUID,
        *,
        collected_from: Optional[datetime] = None,
        collected_to: Optional[datetime] = None,
    ) -> List[Collection]:
        """R: Collections registered by an operator, newest first."""
        ...

    def count_by_machine(self, machine_id: UUID) -> int:
        """R: Number of collections (any status) for a machine."""
        ...


class MachineDirectory(Protocol):
    """
    R: Read-only view of the external machine registry.

    Batch methods exist so bulk flows resolve every reference with two queries
    instead of one per item.
    """

    def get_machine(self, machine_id: UUID) -> Optional[Machine]:
        ...

    def get_machines_by_ids(self, machine_ids: List[UUID]) -> Dict[UUID, Machine]:
        ...

    def get_machines_by_codes(self, codes: List[str]) -> Dict[str, Machine]:
        ...
