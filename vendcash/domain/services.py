"""
===============================================================================
TARJETA CRC — domain/services.py
===============================================================================

Módulo:
    Puertos de Servicios Externos (Protocols)

Responsabilidades:
    - Contrato del cache de reportes (solo invalidación por claves).
    - Contrato del notificador de managers (encolado asíncrono).

Colaboradores:
    - infrastructure/cache.py: backends Redis / in-memory.
    - infrastructure/queue/rq_queue.py: notificador RQ.
    - application: consume estos puertos.

Reglas:
    - SOLO interfaces: nada de implementación.
===============================================================================
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol
from uuid import UUID


class ReportCache(Protocol):
    """Cache de agregados de reportes (el engine solo invalida)."""

    def delete_keys(self, keys: Iterable[str]) -> int:
        """Elimina claves; devuelve cuántas existían."""
        ...


class CollectionNotifier(Protocol):
    """Aviso asíncrono a managers de que hay una cobranza nueva."""

    def notify_new_collection(
        self, collection_id: UUID, *, distance_meters: Optional[float] = None
    ) -> str:
        """Encola la notificación; devuelve el id del job."""
        ...
