"""
===============================================================================
CRC CARD — infrastructure/db/errors.py
===============================================================================

Componente:
  Errores de conectividad PostgreSQL

Responsabilidades:
  - Distinguir fallas de wiring (pool sin abrir, abierto dos veces) de
    fallas de red/servidor al pedir una conexión.
  - Heredar de DatabaseError para que el engine los trate como
    errores de infraestructura (se propagan, no son CollectionError).
===============================================================================
"""

from ...crosscutting.exceptions import DatabaseError


class DatabasePoolError(DatabaseError):
    error_code = "DATABASE_POOL_ERROR"


class PoolAlreadyInitializedError(DatabasePoolError):
    error_code = "DATABASE_POOL_ALREADY_INITIALIZED"


class PoolNotInitializedError(DatabasePoolError):
    error_code = "DATABASE_POOL_NOT_INITIALIZED"


class DatabaseConnectionError(DatabasePoolError):
    """El servidor no respondió o rechazó la conexión al adquirirla."""

    error_code = "DATABASE_CONNECTION_ERROR"
