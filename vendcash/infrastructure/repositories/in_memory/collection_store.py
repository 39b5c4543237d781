"""
============================================================
TARJETA CRC — infrastructure/repositories/in_memory/collection_store.py
============================================================
Classes:
  - InMemoryCollectionStore (las "tablas" + locks)
  - InMemoryUnitOfWork (transacción con escrituras diferidas)

Responsibilities:
  - Almacenar collections / history / removals / machines en memoria
    (tests / local dev). NOT FOR PRODUCTION.
  - Emular el protocolo de locking de Postgres:
      - lock de fila exclusivo (FOR UPDATE) con timeout
      - lock por máquina para creates (advisory xact lock)
  - Emular transacciones: las escrituras quedan en staging hasta commit();
    salir sin commit las descarta. Savepoints restauran el staging.
  - Mantener ordering determinístico alineado con Postgres.

Collaborators:
  - domain.entities (Collection, CollectionHistoryEntry, CollectionRemoval)
  - crosscutting.exceptions.ConcurrencyConflictError (timeout de lock)

Constraints / Notes:
  - Thread-safe: las tablas se leen/escriben bajo _data_lock; los locks de
    fila/máquina se toman por UoW y se liberan SIEMPRE en __exit__.
  - Copias defensivas: nunca se entrega la instancia almacenada.
============================================================
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple
from uuid import UUID

from ....crosscutting.exceptions import ConcurrencyConflictError
from ....crosscutting.logger import logger
from ....domain.entities import (
    Collection,
    CollectionFilter,
    CollectionHistoryEntry,
    CollectionRemoval,
    CollectionStatus,
    Machine,
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _matches(collection: Collection, filters: CollectionFilter) -> bool:
    """R: Mismo predicado que rows.filter_clause (límites inclusivos)."""
    if filters.status is not None and collection.status != filters.status:
        return False
    if filters.machine_id is not None and collection.machine_id != filters.machine_id:
        return False
    if filters.operator_id is not None and collection.operator_id != filters.operator_id:
        return False
    if filters.source is not None and collection.source != filters.source:
        return False
    if filters.collected_from is not None and collection.collected_at < filters.collected_from:
        return False
    if filters.collected_to is not None and collection.collected_at > filters.collected_to:
        return False
    return True


def _first_active_in_window(
    items: Iterable[Collection], machine_id: UUID, start: datetime, end: datetime
) -> Optional[Collection]:
    candidates = [
        c
        for c in items
        if c.machine_id == machine_id
        and c.status != CollectionStatus.CANCELLED
        and start <= c.collected_at <= end
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda c: (c.collected_at, str(c.id)))


def _newest_first(items: Iterable[Collection]) -> List[Collection]:
    return sorted(items, key=lambda c: (c.collected_at, str(c.id)), reverse=True)


class InMemoryCollectionStore:
    """
    Almacenamiento compartido por todas las UoW de un proceso.

    Modelo mental:
    - _rows / _history / _removals / _machines son las "tablas".
    - _row_locks / _machine_locks emulan los locks de Postgres.
    """

    def __init__(self, *, lock_timeout_seconds: float = 5.0) -> None:
        self.lock_timeout_seconds = float(lock_timeout_seconds)
        self._data_lock = Lock()
        self._locks_guard = Lock()
        self._rows: Dict[UUID, Collection] = {}
        self._history: Dict[UUID, List[CollectionHistoryEntry]] = {}
        self._removals: List[CollectionRemoval] = []
        self._machines: Dict[UUID, Machine] = {}
        self._row_locks: Dict[UUID, Lock] = {}
        self._machine_locks: Dict[UUID, Lock] = {}

    # =========================================================
    # Seeding (tests / local dev)
    # =========================================================
    def add_machine(self, machine: Machine) -> Machine:
        with self._data_lock:
            self._machines[machine.id] = machine
        return machine

    def insert(self, collection: Collection) -> Collection:
        """R: Inserta un registro ya confirmado (sin pasar por una UoW)."""
        with self._data_lock:
            self._rows[collection.id] = replace(collection, machine=None)
        return collection

    def unit_of_work(self) -> "InMemoryUnitOfWork":
        return InMemoryUnitOfWork(self)

    # =========================================================
    # Locks
    # =========================================================
    def _lock_for(self, registry: Dict[UUID, Lock], key: UUID) -> Lock:
        with self._locks_guard:
            lock = registry.get(key)
            if lock is None:
                lock = Lock()
                registry[key] = lock
            return lock

    def _acquire(self, registry: Dict[UUID, Lock], key: UUID, kind: str) -> Lock:
        lock = self._lock_for(registry, key)
        if not lock.acquire(timeout=self.lock_timeout_seconds):
            logger.warning(
                "Timeout esperando lock",
                extra={"lock_kind": kind, "key": str(key)},
            )
            raise ConcurrencyConflictError("Timed out waiting for a lock")
        return lock

    def acquire_row_lock(self, collection_id: UUID) -> Lock:
        return self._acquire(self._row_locks, collection_id, "row")

    def acquire_machine_lock(self, machine_id: UUID) -> Lock:
        return self._acquire(self._machine_locks, machine_id, "machine")

    # =========================================================
    # Lecturas confirmadas (helpers internos)
    # =========================================================
    def _with_machine(self, collection: Collection) -> Collection:
        return replace(collection, machine=self._machines.get(collection.machine_id))

    def committed_row(self, collection_id: UUID) -> Optional[Collection]:
        with self._data_lock:
            row = self._rows.get(collection_id)
            return replace(row) if row else None

    def committed_rows(self) -> List[Collection]:
        with self._data_lock:
            return [replace(row) for row in self._rows.values()]

    def committed_history(self, collection_id: UUID) -> List[CollectionHistoryEntry]:
        with self._data_lock:
            return list(self._history.get(collection_id, []))

    def removals(self) -> List[CollectionRemoval]:
        with self._data_lock:
            return list(self._removals)

    def machine(self, machine_id: UUID) -> Optional[Machine]:
        with self._data_lock:
            return self._machines.get(machine_id)

    def machines(self) -> List[Machine]:
        with self._data_lock:
            return list(self._machines.values())

    # =========================================================
    # Commit
    # =========================================================
    def apply(self, changes: "_StagedChanges") -> None:
        """R: Aplica atómicamente las escrituras de una UoW."""
        with self._data_lock:
            for collection_id in changes.purged:
                self._history.pop(collection_id, None)
            for collection_id in changes.deleted:
                self._rows.pop(collection_id, None)
            for collection_id, row in changes.upserts.items():
                self._rows[collection_id] = replace(row, machine=None)
            for entry in changes.history:
                self._history.setdefault(entry.collection_id, []).append(entry)
            self._removals.extend(changes.removals)

    # =========================================================
    # CollectionQueryRepository
    # =========================================================
    def get_collection(self, collection_id: UUID) -> Optional[Collection]:
        with self._data_lock:
            row = self._rows.get(collection_id)
            return self._with_machine(row) if row else None

    def list_pending(self) -> List[Collection]:
        with self._data_lock:
            pending = [
                self._with_machine(c)
                for c in self._rows.values()
                if c.status == CollectionStatus.COLLECTED
            ]
        return _newest_first(pending)

    def list_collections(
        self,
        filters: CollectionFilter,
        *,
        sort_by: str,
        descending: bool,
        offset: int,
        limit: int,
    ) -> Tuple[List[Collection], int]:
        with self._data_lock:
            matched = [
                self._with_machine(c) for c in self._rows.values() if _matches(c, filters)
            ]

        # Emula "NULLS LAST" en ambas direcciones con dos pasadas estables.
        present = [c for c in matched if getattr(c, sort_by, None) is not None]
        missing = [c for c in matched if getattr(c, sort_by, None) is None]
        present.sort(key=lambda c: str(c.id))
        present.sort(key=lambda c: getattr(c, sort_by), reverse=descending)
        missing.sort(key=lambda c: str(c.id))
        ordered = present + missing
        return ordered[offset : offset + limit], len(matched)

    def list_history(self, collection_id: UUID) -> List[CollectionHistoryEntry]:
        entries = self.committed_history(collection_id)
        return sorted(entries, key=lambda e: (e.created_at, str(e.id)), reverse=True)

    def find_active_in_window(
        self, machine_id: UUID, start: datetime, end: datetime
    ) -> Optional[Collection]:
        found = _first_active_in_window(self.committed_rows(), machine_id, start, end)
        return replace(found) if found else None

    def list_by_operator(
        self,
        operator_id: UUID,
        *,
        collected_from: Optional[datetime] = None,
        collected_to: Optional[datetime] = None,
    ) -> List[Collection]:
        filters = CollectionFilter(
            operator_id=operator_id,
            collected_from=collected_from,
            collected_to=collected_to,
        )
        with self._data_lock:
            matched = [
                self._with_machine(c) for c in self._rows.values() if _matches(c, filters)
            ]
        return _newest_first(matched)

    def count_by_machine(self, machine_id: UUID) -> int:
        with self._data_lock:
            return sum(1 for c in self._rows.values() if c.machine_id == machine_id)


@dataclass
class _StagedChanges:
    upserts: Dict[UUID, Collection] = field(default_factory=dict)
    deleted: Set[UUID] = field(default_factory=set)
    history: List[CollectionHistoryEntry] = field(default_factory=list)
    purged: Set[UUID] = field(default_factory=set)
    removals: List[CollectionRemoval] = field(default_factory=list)

    def copy(self) -> "_StagedChanges":
        return _StagedChanges(
            upserts={k: replace(v) for k, v in self.upserts.items()},
            deleted=set(self.deleted),
            history=list(self.history),
            purged=set(self.purged),
            removals=list(self.removals),
        )


class _InMemoryCollectionWriter:
    """CollectionWriteRepository sobre el staging de una UoW."""

    def __init__(self, uow: "InMemoryUnitOfWork") -> None:
        self._uow = uow

    def _visible(self) -> List[Collection]:
        return self._uow._visible_rows()

    def lock_for_update(self, collection_id: UUID) -> Optional[Collection]:
        self._uow._hold_row(collection_id)
        row = self._uow._visible_row(collection_id)
        return replace(row, machine=None) if row else None

    def get_with_relations(self, collection_id: UUID) -> Optional[Collection]:
        row = self._uow._visible_row(collection_id)
        if row is None:
            return None
        return replace(row, machine=self._uow._store.machine(row.machine_id))

    def find_active_in_window(
        self, machine_id: UUID, start: datetime, end: datetime
    ) -> Optional[Collection]:
        found = _first_active_in_window(self._visible(), machine_id, start, end)
        return replace(found) if found else None

    def find_active_ids(self, filters: CollectionFilter) -> List[UUID]:
        matched = [
            c
            for c in self._visible()
            if c.status != CollectionStatus.CANCELLED and _matches(c, filters)
        ]
        matched.sort(key=lambda c: (c.collected_at, str(c.id)))
        return [c.id for c in matched]

    def add(self, collection: Collection) -> None:
        staged = self._uow._changes
        staged.deleted.discard(collection.id)
        staged.upserts[collection.id] = replace(collection, machine=None)

    def update(self, collection: Collection) -> None:
        self._uow._changes.upserts[collection.id] = replace(collection, machine=None)

    def delete(self, collection_id: UUID) -> None:
        staged = self._uow._changes
        staged.upserts.pop(collection_id, None)
        staged.deleted.add(collection_id)


class _InMemoryHistoryWriter:
    """CollectionHistoryRepository sobre el staging de una UoW."""

    def __init__(self, uow: "InMemoryUnitOfWork") -> None:
        self._uow = uow

    def append(self, entry: CollectionHistoryEntry) -> None:
        self._uow._changes.history.append(entry)

    def list_for_collection(self, collection_id: UUID) -> List[CollectionHistoryEntry]:
        staged = self._uow._changes
        entries: List[CollectionHistoryEntry] = []
        if collection_id not in staged.purged:
            entries.extend(self._uow._store.committed_history(collection_id))
        entries.extend(e for e in staged.history if e.collection_id == collection_id)
        return sorted(entries, key=lambda e: (e.created_at, str(e.id)), reverse=True)

    def purge_for_collection(self, collection_id: UUID) -> int:
        count = len(self.list_for_collection(collection_id))
        staged = self._uow._changes
        staged.purged.add(collection_id)
        staged.history = [e for e in staged.history if e.collection_id != collection_id]
        return count

    def record_removal(self, removal: CollectionRemoval) -> None:
        self._uow._changes.removals.append(removal)


class InMemoryUnitOfWork:
    """
    Transacción in-memory.

    Lecturas = tablas confirmadas + staging propio. Los locks tomados se
    mantienen hasta el final del bloque (como en Postgres).
    """

    def __init__(self, store: InMemoryCollectionStore) -> None:
        self._store = store
        self._changes = _StagedChanges()
        self._held: Dict[Tuple[str, UUID], Lock] = {}
        self._committed = False
        self.collections = _InMemoryCollectionWriter(self)
        self.history = _InMemoryHistoryWriter(self)

    def __enter__(self) -> "InMemoryUnitOfWork":
        self._changes = _StagedChanges()
        self._committed = False
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._changes = _StagedChanges()
        for lock in self._held.values():
            lock.release()
        self._held.clear()
        return False

    # ------------------------------------------------------------
    # Locks (reentrantes dentro de la misma UoW)
    # ------------------------------------------------------------
    def _hold_row(self, collection_id: UUID) -> None:
        key = ("row", collection_id)
        if key not in self._held:
            self._held[key] = self._store.acquire_row_lock(collection_id)

    def lock_machine(self, machine_id: UUID) -> None:
        key = ("machine", machine_id)
        if key not in self._held:
            self._held[key] = self._store.acquire_machine_lock(machine_id)

    # ------------------------------------------------------------
    # Vista (confirmado + staging)
    # ------------------------------------------------------------
    def _visible_row(self, collection_id: UUID) -> Optional[Collection]:
        staged = self._changes
        if collection_id in staged.deleted:
            return None
        if collection_id in staged.upserts:
            return replace(staged.upserts[collection_id])
        return self._store.committed_row(collection_id)

    def _visible_rows(self) -> List[Collection]:
        staged = self._changes
        rows = {
            c.id: c
            for c in self._store.committed_rows()
            if c.id not in staged.deleted
        }
        for collection_id, row in staged.upserts.items():
            rows[collection_id] = replace(row)
        return list(rows.values())

    # ------------------------------------------------------------
    # Transacción
    # ------------------------------------------------------------
    @contextmanager
    def savepoint(self) -> Iterator[None]:
        checkpoint = self._changes.copy()
        try:
            yield
        except BaseException:
            self._changes = checkpoint
            raise

    def commit(self) -> None:
        self._store.apply(self._changes)
        self._changes = _StagedChanges()
        self._committed = True
