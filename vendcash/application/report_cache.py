"""
===============================================================================
TARJETA CRC — application/report_cache.py (Cache Invalidation Notifier)
===============================================================================

Responsabilidades:
  - Conocer el set fijo de claves de agregados de reportes.
  - Invalidarlas después de un commit exitoso que cambió datos.
  - Ser best-effort: una falla del cache se loguea y NO se propaga.

Colaboradores:
  - domain.services.ReportCache (Redis / in-memory)
  - crosscutting.logger / crosscutting.metrics

Reglas:
  - Solo se llama después del commit (los casos de uso garantizan el orden).
  - Nunca convierte una mutación exitosa en fallida.
===============================================================================
"""

from __future__ import annotations

from typing import Tuple

from ..crosscutting.logger import logger
from ..crosscutting.metrics import record_cache_invalidation_failure
from ..domain.services import ReportCache

REPORT_CACHE_KEYS: Tuple[str, ...] = (
    "report:summary",
    "report:by-machine",
    "report:by-date",
    "report:by-operator",
    "report:today-summary",
)


class ReportCacheInvalidator:
    def __init__(self, cache: ReportCache, keys: Tuple[str, ...] = REPORT_CACHE_KEYS):
        self._cache = cache
        self._keys = tuple(keys)

    @property
    def keys(self) -> Tuple[str, ...]:
        return self._keys

    def invalidate(self, *, reason: str) -> None:
        try:
            removed = self._cache.delete_keys(self._keys)
        except Exception as exc:
            record_cache_invalidation_failure()
            logger.warning(
                "No se pudo invalidar cache de reportes",
                extra={"reason": reason, "error": str(exc)},
            )
            return

        logger.debug(
            "Cache de reportes invalidado",
            extra={"reason": reason, "keys_removed": removed},
        )
