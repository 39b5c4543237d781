"""
===============================================================================
CRC CARD — infrastructure/db/pool.py
===============================================================================

Componente:
  Pool de conexiones PostgreSQL del proceso (API o worker)

Responsabilidades:
  - Abrir un único ConnectionPool por proceso y entregarlo instrumentado.
  - Dejar cada conexión nueva en un estado conocido:
      * TimeZone = UTC (collected_at se compara siempre en UTC; el día de
        negocio se calcula en Python).
      * statement_timeout como techo global.
  - Cerrar el pool al apagar el proceso.

Colaboradores:
  - psycopg_pool.ConnectionPool
  - infrastructure/db/instrumentation.InstrumentedConnectionPool
  - crosscutting/config.Settings (tamaños, timeouts, application_name)

Notas:
  - lock_timeout no vive acá: cada unidad de trabajo lo fija con SET LOCAL.
===============================================================================
"""

from __future__ import annotations

import threading
from functools import partial
from typing import Optional

from psycopg_pool import ConnectionPool

from ...crosscutting.logger import logger, mask_url
from .errors import PoolAlreadyInitializedError, PoolNotInitializedError
from .instrumentation import InstrumentedConnectionPool

_pool: Optional[InstrumentedConnectionPool] = None
_pool_lock = threading.Lock()


def _configure_connection(conn, *, statement_timeout_ms: int) -> None:
    conn.execute("SET TIME ZONE 'UTC'")
    if statement_timeout_ms > 0:
        conn.execute(f"SET statement_timeout = {int(statement_timeout_ms)}")
    conn.commit()


def init_pool(
    database_url: str,
    min_size: int,
    max_size: int,
    *,
    statement_timeout_ms: int = 30000,
    slow_query_seconds: float = 0.25,
    healthcheck: bool = True,
    application_name: str = "vendcash",
) -> InstrumentedConnectionPool:
    """Abre el pool del proceso. Llamarlo dos veces es un error de wiring."""
    global _pool

    with _pool_lock:
        if _pool is not None:
            raise PoolAlreadyInitializedError("Database pool already initialized")

        raw_pool = ConnectionPool(
            conninfo=database_url,
            min_size=min_size,
            max_size=max_size,
            kwargs={"application_name": application_name},
            configure=partial(
                _configure_connection, statement_timeout_ms=statement_timeout_ms
            ),
            name="vendcash-collections",
            open=True,
        )
        _pool = InstrumentedConnectionPool(
            raw_pool, slow_query_seconds=slow_query_seconds, healthcheck=healthcheck
        )

        logger.info(
            "Database pool ready",
            extra={
                "database_url": mask_url(database_url),
                "min_size": min_size,
                "max_size": max_size,
            },
        )
        return _pool


def init_pool_from_settings(settings) -> InstrumentedConnectionPool:
    return init_pool(
        settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        statement_timeout_ms=settings.db_statement_timeout_ms,
        slow_query_seconds=settings.db_slow_query_seconds,
        healthcheck=settings.db_healthcheck_on_acquire,
        application_name=settings.db_application_name,
    )


def get_pool() -> InstrumentedConnectionPool:
    if _pool is None:
        raise PoolNotInitializedError(
            "Database pool not initialized; call init_pool() at startup"
        )
    return _pool


def close_pool() -> None:
    """Idempotente: el singleton queda vacío aunque close() falle."""
    global _pool

    with _pool_lock:
        if _pool is None:
            return
        pool, _pool = _pool, None
        pool.close()
        logger.info("Database pool closed")


def reset_pool() -> None:
    """Para tests: descarta el pool sin propagar errores de cierre."""
    global _pool

    with _pool_lock:
        pool, _pool = _pool, None
    if pool is not None:
        try:
            pool.close()
        except Exception as exc:
            logger.debug("Ignoring pool close error on reset", extra={"error": str(exc)})
