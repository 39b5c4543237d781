"""
===============================================================================
TARJETA CRC — domain/__init__.py
===============================================================================

Módulo:
    Exportaciones de la Capa de Dominio

Responsabilidades:
    - Centralizar exports para imports limpios en application/infrastructure.
    - Mantener estable el "surface area" del dominio.

Reglas:
    - Solo re-exporta contratos/entidades del dominio.
    - No importar infraestructura aquí.
===============================================================================
"""

from .entities import (
    Collection,
    CollectionFilter,
    CollectionHistoryEntry,
    CollectionPage,
    CollectionRemoval,
    CollectionSource,
    CollectionStatus,
    Machine,
)
from .repositories import (
    CollectionHistoryRepository,
    CollectionQueryRepository,
    CollectionUnitOfWork,
    CollectionWriteRepository,
    MachineDirectory,
    UnitOfWorkFactory,
)
from .services import CollectionNotifier, ReportCache

__all__ = [
    "Collection",
    "CollectionFilter",
    "CollectionHistoryEntry",
    "CollectionHistoryRepository",
    "CollectionNotifier",
    "CollectionPage",
    "CollectionQueryRepository",
    "CollectionRemoval",
    "CollectionSource",
    "CollectionStatus",
    "CollectionUnitOfWork",
    "CollectionWriteRepository",
    "Machine",
    "MachineDirectory",
    "ReportCache",
    "UnitOfWorkFactory",
]
