"""
===============================================================================
CRC CARD — infrastructure/db/instrumentation.py
===============================================================================

Clases:
  - TimedConnection (Proxy sobre psycopg.Connection)
  - InstrumentedConnectionPool (Proxy sobre psycopg_pool.ConnectionPool)

Responsabilidades:
  - Medir cada conn.execute(...) por tipo de statement.
  - Separar las esperas de lock (advisory lock por máquina, FOR UPDATE) del
    resto: una espera larga ahí indica contención entre operadores, no una
    query lenta.
  - Validar la conexión al adquirirla (SELECT 1) y tipar el fallo como
    DatabaseConnectionError.

Colaboradores:
  - crosscutting.metrics.observe_db_query_duration
  - infrastructure/repositories/postgres/* (usan `with pool.connection()`)
===============================================================================
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from ...crosscutting.logger import logger
from ...crosscutting.metrics import observe_db_query_duration
from .errors import DatabaseConnectionError

LOCK_KIND = "LOCK"
_LOCK_MARKERS = ("PG_ADVISORY_XACT_LOCK", "FOR UPDATE")


def _statement_kind(sql: Any) -> str:
    """SELECT / INSERT / UPDATE / ... o LOCK para statements que esperan locks."""
    text = str(sql).strip().upper()
    if not text:
        return "UNKNOWN"
    if any(marker in text for marker in _LOCK_MARKERS):
        return LOCK_KIND
    return text.split(None, 1)[0]


class TimedConnection:
    """
    Conexión que cronometra execute() y delega todo lo demás.

    `statements` cuenta lo ejecutado durante el préstamo; sirve para detectar
    unidades de trabajo que crecen sin control (bulk sin límite).
    """

    def __init__(self, inner_conn, *, slow_query_seconds: float) -> None:
        self._conn = inner_conn
        self._slow_query_seconds = slow_query_seconds
        self.statements = 0

    def execute(self, sql, *args, **kwargs):
        started = time.perf_counter()
        try:
            return self._conn.execute(sql, *args, **kwargs)
        finally:
            elapsed = time.perf_counter() - started
            self.statements += 1
            kind = _statement_kind(sql)
            observe_db_query_duration(kind, elapsed)
            if elapsed >= self._slow_query_seconds:
                logger.warning(
                    "Long lock wait" if kind == LOCK_KIND else "Slow query",
                    extra={"kind": kind, "seconds": round(elapsed, 4)},
                )

    def __getattr__(self, item: str):
        return getattr(self._conn, item)


class InstrumentedConnectionPool:
    """`with pool.connection() as conn:` entrega un TimedConnection validado."""

    def __init__(
        self,
        inner_pool,
        *,
        slow_query_seconds: float = 0.25,
        healthcheck: bool = True,
    ) -> None:
        self._pool = inner_pool
        self._slow_query_seconds = slow_query_seconds
        self._healthcheck = healthcheck

    def _checkout(self, inner_ctx) -> TimedConnection:
        try:
            conn = inner_ctx.__enter__()
        except Exception as exc:
            raise DatabaseConnectionError(
                "Could not acquire a database connection", original_error=exc
            ) from exc

        if self._healthcheck:
            try:
                conn.execute("SELECT 1")
                conn.rollback()
            except Exception as exc:
                # Devuelve la conexión al pool (psycopg_pool la descarta si está rota).
                inner_ctx.__exit__(type(exc), exc, exc.__traceback__)
                raise DatabaseConnectionError(
                    "Database connection failed its health check", original_error=exc
                ) from exc
        return TimedConnection(conn, slow_query_seconds=self._slow_query_seconds)

    @contextmanager
    def connection(self, *args, **kwargs) -> Iterator[TimedConnection]:
        inner_ctx = self._pool.connection(*args, **kwargs)
        conn = self._checkout(inner_ctx)
        try:
            yield conn
        except BaseException as exc:
            if not inner_ctx.__exit__(type(exc), exc, exc.__traceback__):
                raise
        else:
            inner_ctx.__exit__(None, None, None)
        finally:
            logger.debug("DB connection released", extra={"statements": conn.statements})

    def __getattr__(self, item: str):
        return getattr(self._pool, item)
