"""
In-memory MachineDirectory backed by an InMemoryCollectionStore.

Machines are seeded with store.add_machine(); lookups are read-only.
"""

from __future__ import annotations

from typing import Dict, List, Optional
from uuid import UUID

from ....domain.entities import Machine
from .collection_store import InMemoryCollectionStore


class InMemoryMachineDirectory:
    def __init__(self, store: InMemoryCollectionStore) -> None:
        self._store = store

    def get_machine(self, machine_id: UUID) -> Optional[Machine]:
        return self._store.machine(machine_id)

    def get_machines_by_ids(self, machine_ids: List[UUID]) -> Dict[UUID, Machine]:
        wanted = set(machine_ids)
        return {m.id: m for m in self._store.machines() if m.id in wanted}

    def get_machines_by_codes(self, codes: List[str]) -> Dict[str, Machine]:
        wanted = set(codes)
        return {m.code: m for m in self._store.machines() if m.code in wanted}
