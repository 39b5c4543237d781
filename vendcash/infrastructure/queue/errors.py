"""
Errores del adaptador RQ de notificaciones.

El enqueue es best-effort: CreateCollectionUseCase loguea estos errores y
la recaudación queda creada igual.
"""

from __future__ import annotations

from ...crosscutting.exceptions import VendCashError


class QueueError(VendCashError):
    error_code = "QUEUE_ERROR"


class QueueConfigurationError(QueueError):
    """Nombre de cola vacío, reintentos negativos o job path no importable."""

    error_code = "QUEUE_CONFIGURATION_ERROR"


class QueueEnqueueError(QueueError):
    """Redis rechazó o no respondió al enqueue."""

    error_code = "QUEUE_ENQUEUE_ERROR"
