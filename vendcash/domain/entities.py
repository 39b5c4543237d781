"""
===============================================================================
TARJETA CRC — domain/entities.py
===============================================================================

Módulo:
    Entidades del Dominio (Collection, CollectionHistoryEntry, Machine, ...)

Responsabilidades:
    - Definir estructuras centrales del negocio (sin infraestructura).
    - Brindar helpers mínimos para mantener invariantes simples.
    - Mantener tipos claros para casos de uso y repositorios.

Colaboradores:
    - domain.repositories: persisten/recuperan estas entidades.
    - domain.collection_policy: decide transiciones de estado.
    - application/usecases/collections: construyen/consumen estas entidades.

Principios:
    - Datos planos: la persistencia vive en repositorios explícitos, nunca en
      métodos de la entidad.
    - Sin dependencias a DB/Redis/RQ.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4


def _utcnow() -> datetime:
    """Fecha/hora UTC (helper interno)."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class CollectionStatus(str, Enum):
    """Estados del ciclo de vida de una cobranza."""

    COLLECTED = "collected"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class CollectionSource(str, Enum):
    """Procedencia del registro (inmutable tras la creación)."""

    REALTIME = "realtime"
    MANUAL_HISTORY = "manual_history"
    EXCEL_IMPORT = "excel_import"


# ---------------------------------------------------------------------------
# Machine (referencia de solo lectura)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Machine:
    """
    Máquina expendedora tal como la ve el engine.

    El registro de máquinas es externo: acá solo importa identidad,
    código legible y coordenadas para estimar distancia.
    """

    id: UUID
    code: str
    name: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_active: bool = True

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@dataclass
class Collection:
    """
    Un ciclo de retiro/conciliación de efectivo para una máquina.

    Invariantes:
      - status=COLLECTED => amount is None
      - status=RECEIVED  => amount, manager_id, received_at presentes
      - CANCELLED es terminal
    """

    id: UUID
    machine_id: UUID
    operator_id: UUID
    collected_at: datetime
    status: CollectionStatus = CollectionStatus.COLLECTED
    source: CollectionSource = CollectionSource.REALTIME
    manager_id: Optional[UUID] = None
    received_at: Optional[datetime] = None
    amount: Optional[Decimal] = None
    notes: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance_from_machine: Optional[float] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    # Relación de lectura: solo se completa al recargar "con relaciones".
    machine: Optional[Machine] = None

    @property
    def is_cancelled(self) -> bool:
        return self.status == CollectionStatus.CANCELLED

    @property
    def is_pending(self) -> bool:
        return self.status == CollectionStatus.COLLECTED

    def touch(self) -> None:
        self.updated_at = _utcnow()


@dataclass(frozen=True)
class CollectionHistoryEntry:
    """
    Entrada de auditoría: un campo cambiado por una operación.

    Inmutable una vez escrita (append-only).
    """

    collection_id: UUID
    changed_by_id: UUID
    field_name: str
    old_value: Optional[str]
    new_value: Optional[str]
    reason: Optional[str] = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class CollectionRemoval:
    """
    Registro final de una baja administrativa.

    Sobrevive al registro borrado (no tiene FK) y guarda un snapshot para
    que la baja quede documentada aunque el historial se purgue.
    """

    collection_id: UUID
    removed_by_id: UUID
    snapshot: Dict[str, Any]
    purged_history_count: int = 0
    field_name: str = "deleted"
    new_value: str = "deleted"
    reason: str = "Deleted by admin"
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Consultas
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CollectionFilter:
    """
    Criterios de búsqueda ya normalizados a UTC.

    `collected_from`/`collected_to` son límites inclusivos.
    """

    status: Optional[CollectionStatus] = None
    machine_id: Optional[UUID] = None
    operator_id: Optional[UUID] = None
    source: Optional[CollectionSource] = None
    collected_from: Optional[datetime] = None
    collected_to: Optional[datetime] = None

    def has_criteria(self) -> bool:
        return any(
            value is not None
            for value in (
                self.status,
                self.machine_id,
                self.operator_id,
                self.source,
                self.collected_from,
                self.collected_to,
            )
        )


@dataclass
class CollectionPage:
    """Página de resultados + total para paginación."""

    items: list[Collection]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit


def collection_snapshot(collection: Collection) -> Dict[str, Any]:
    """Snapshot serializable (strings) de una cobranza para logs/bajas."""
    return {
        "id": str(collection.id),
        "machine_id": str(collection.machine_id),
        "operator_id": str(collection.operator_id),
        "manager_id": str(collection.manager_id) if collection.manager_id else None,
        "status": collection.status.value,
        "source": collection.source.value,
        "amount": str(collection.amount) if collection.amount is not None else None,
        "collected_at": collection.collected_at.isoformat(),
        "received_at": (
            collection.received_at.isoformat() if collection.received_at else None
        ),
        "notes": collection.notes,
    }
