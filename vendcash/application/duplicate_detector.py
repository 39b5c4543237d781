"""
===============================================================================
TARJETA CRC — application/duplicate_detector.py
===============================================================================

Responsabilidades:
  - Calcular la ventana simétrica [t - w, t + w] alrededor de collected_at.
  - Buscar una cobranza no cancelada de la misma máquina dentro de la ventana.

Colaboradores:
  - domain.repositories.ActiveCollectionFinder (UoW o repositorio de lectura)
  - crosscutting.config (DUPLICATE_CHECK_MINUTES, nivel proceso)

Notas:
  - La ventana se fija al construir el detector, no por llamada.
  - Create lo usa dentro de su unidad de trabajo; check_duplicate lo usa
    con el repositorio de lectura. Mismo predicado en ambos caminos.
===============================================================================
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Tuple
from uuid import UUID

from ..domain.business_time import ensure_utc
from ..domain.entities import Collection
from ..domain.repositories import ActiveCollectionFinder

DEFAULT_DUPLICATE_WINDOW_MINUTES = 30


class DuplicateDetector:
    def __init__(self, window_minutes: int = DEFAULT_DUPLICATE_WINDOW_MINUTES):
        if window_minutes <= 0:
            raise ValueError("window_minutes must be > 0")
        self._window = timedelta(minutes=window_minutes)

    @property
    def window_minutes(self) -> int:
        return int(self._window.total_seconds() // 60)

    def window(self, collected_at: datetime) -> Tuple[datetime, datetime]:
        center = ensure_utc(collected_at)
        return center - self._window, center + self._window

    def find_duplicate(
        self,
        finder: ActiveCollectionFinder,
        machine_id: UUID,
        collected_at: datetime,
    ) -> Optional[Collection]:
        start, end = self.window(collected_at)
        return finder.find_active_in_window(machine_id, start, end)
