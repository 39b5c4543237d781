"""
===============================================================================
COLLECTION USE CASE RESULTS (Shared Result / Error Models)
===============================================================================

Name:
    Collection Use Case Results

Business Goal:
    Proveer modelos compartidos de resultados y errores para los casos de uso
    del ciclo de vida de cobranzas, con un contrato estable para:
      - validaciones
      - recursos no encontrados
      - transiciones de estado inválidas
      - duplicados detectados

Why (Context / Intención):
    - Los use cases devuelven resultados tipados en lugar de lanzar excepciones
      de negocio; las fallas de infraestructura (commit, lock timeout) sí se
      propagan como excepciones (crosscutting.exceptions).
    - Las operaciones bulk acumulan errores por ítem como datos, nunca los
      lanzan, para que el resto del lote siga.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Component:
    collection_results models (module)

Responsibilities:
    - CollectionErrorCode: set acotado de categorías de error.
    - CollectionError: code + message (+ existing_id para duplicados).
    - CollectionResult / BulkCreateResult / BulkCancelResult / RemoveCollectionResult.

Collaborators:
    - domain.entities.Collection
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List
from uuid import UUID

from ....domain.entities import Collection, CollectionHistoryEntry, CollectionPage


class CollectionErrorCode(str, Enum):
    """
    Códigos de error de negocio.

      - VALIDATION_ERROR: inputs inválidos (montos fuera de rango, lote vacío).
      - NOT_FOUND: cobranza o máquina inexistente.
      - INVALID_STATE: la operación no es válida desde el estado actual.
      - ALREADY_CANCELLED: cancelación repetida.
      - DUPLICATE_DETECTED: existe una cobranza en la ventana de duplicados.
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    DUPLICATE_DETECTED = "DUPLICATE_DETECTED"


@dataclass(frozen=True)
class CollectionError:
    """
    Error de caso de uso.

    existing_id solo se completa con DUPLICATE_DETECTED, para que el caller
    pueda resolver el conflicto contra el registro existente.
    """

    code: CollectionErrorCode
    message: str
    existing_id: UUID | None = None


@dataclass
class CollectionResult:
    """
    Resultado para casos de uso que retornan una única cobranza.

    Contrato:
      - error is None => collection presente
      - error != None => collection None
    """

    collection: Collection | None = None
    error: CollectionError | None = None


@dataclass
class CollectionListResult:
    collections: List[Collection] = field(default_factory=list)
    error: CollectionError | None = None


@dataclass
class CollectionPageResult:
    page: CollectionPage | None = None
    error: CollectionError | None = None


@dataclass
class CollectionHistoryResult:
    entries: List[CollectionHistoryEntry] = field(default_factory=list)
    error: CollectionError | None = None


@dataclass(frozen=True)
class BulkCreateItemError:
    index: int
    error: str


@dataclass
class BulkCreateResult:
    """
    Resultado de BulkCreate.

    created/failed cuentan ítems; collections trae solo los creados.
    error se usa únicamente para rechazos del lote completo (validación).
    """

    created: int = 0
    failed: int = 0
    errors: List[BulkCreateItemError] = field(default_factory=list)
    collections: List[Collection] = field(default_factory=list)
    error: CollectionError | None = None


@dataclass(frozen=True)
class BulkCancelItemError:
    id: UUID
    error: str


@dataclass
class BulkCancelResult:
    cancelled: int = 0
    failed: int = 0
    errors: List[BulkCancelItemError] = field(default_factory=list)
    total: int = 0
    error: CollectionError | None = None


@dataclass
class RemoveCollectionResult:
    success: bool
    error: CollectionError | None = None


def not_found(message: str = "Collection not found") -> CollectionError:
    return CollectionError(code=CollectionErrorCode.NOT_FOUND, message=message)


def validation_error(message: str) -> CollectionError:
    return CollectionError(code=CollectionErrorCode.VALIDATION_ERROR, message=message)
