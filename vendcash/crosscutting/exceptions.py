"""
===============================================================================
MÓDULO: Excepciones de infraestructura del engine
===============================================================================

Dos familias de errores conviven en vendcash:

  - Errores de negocio (NOT_FOUND, INVALID_STATE, DUPLICATE_DETECTED, ...):
    NO son excepciones. Los casos de uso los devuelven como CollectionError
    dentro del resultado y la unidad de trabajo no se confirma.
  - Fallas de infraestructura (DB caída, lock_timeout, webhook, Redis):
    se lanzan como VendCashError y abortan la operación completa.

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  VendCashError + subclases

Responsabilidades:
  - error_code estable por tipo de falla.
  - error_id único para cruzar la excepción con su línea de log.

Colaboradores:
  - infrastructure/repositories/* (envuelven psycopg / timeouts de lock)
  - infrastructure/notifications, infrastructure/queue
  - crosscutting/logger.py (agrega error_id / error_code al log)
===============================================================================
"""

from __future__ import annotations

from uuid import uuid4


class VendCashError(Exception):
    error_code: str = "VENDCASH_ERROR"

    def __init__(
        self,
        message: str,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.error_id = error_id or str(uuid4())
        self.original_error = original_error
        super().__init__(message)


class DatabaseError(VendCashError):
    """Conexión, query o commit fallidos; la transacción se revierte."""

    error_code: str = "DATABASE_ERROR"


class ConcurrencyConflictError(DatabaseError):
    """
    Otro actor tiene tomada la fila (o la máquina) más allá del lock_timeout.

    Nada se escribió: el caller puede reintentar la operación entera.
    """

    error_code: str = "CONCURRENCY_CONFLICT"


class NotificationError(VendCashError):
    """El webhook de managers no aceptó el aviso."""

    error_code: str = "NOTIFICATION_ERROR"
