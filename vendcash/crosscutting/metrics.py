"""
===============================================================================
ARCHIVO: crosscutting/metrics.py
===============================================================================

CRC CARD (Módulo)
-------------------------------------------------------------------------------
Nombre:
    Métricas (Prometheus) del engine de cobranzas

Responsabilidades:
    - Definir métricas Prometheus en un registry propio.
    - Proveer funciones pequeñas y estables para registrar eventos/duraciones.
    - Cuidar cardinalidad (NO collection_id, NO machine_id, NO SQL completo).
    - Exponer el registry por HTTP en procesos sin API (worker).

Colaboradores:
    - application/usecases/collections: outcomes por operación e ítems bulk.
    - infrastructure/db/instrumentation: duración de queries.
    - application/report_cache: fallas de invalidación.
    - worker/jobs: jobs de notificación procesados.
===============================================================================
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    start_http_server,
)

_registry = CollectorRegistry()

_collection_operations_total = Counter(
    "vendcash_collection_operations_total",
    "Operaciones del engine de cobranzas por resultado",
    ["operation", "outcome"],
    registry=_registry,
)

_bulk_items_total = Counter(
    "vendcash_bulk_items_total",
    "Ítems procesados en operaciones bulk",
    ["operation", "outcome"],
    registry=_registry,
)

_duplicates_detected_total = Counter(
    "vendcash_duplicates_detected_total",
    "Cobranzas rechazadas por duplicado",
    registry=_registry,
)

_distance_warnings_total = Counter(
    "vendcash_distance_warnings_total",
    "Cobranzas registradas lejos de la máquina",
    registry=_registry,
)

_cache_invalidation_failures_total = Counter(
    "vendcash_cache_invalidation_failures_total",
    "Fallas al invalidar caches de reportes",
    registry=_registry,
)

_db_query_duration = Histogram(
    "vendcash_db_query_duration_seconds",
    "Duración de queries DB (segundos)",
    ["kind"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
    registry=_registry,
)

_worker_processed_total = Counter(
    "vendcash_worker_processed_total",
    "Jobs de notificación procesados por el worker",
    ["status"],
    registry=_registry,
)

_worker_duration = Histogram(
    "vendcash_worker_duration_seconds",
    "Duración de jobs del worker (segundos)",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=_registry,
)


def record_collection_operation(operation: str, outcome: str) -> None:
    """Cuenta una operación del engine (`outcome`: ok o código de error)."""
    _collection_operations_total.labels(operation=operation, outcome=outcome).inc()


def record_bulk_items(operation: str, *, succeeded: int, failed: int) -> None:
    if succeeded:
        _bulk_items_total.labels(operation=operation, outcome="ok").inc(succeeded)
    if failed:
        _bulk_items_total.labels(operation=operation, outcome="failed").inc(failed)


def record_duplicate_detected() -> None:
    _duplicates_detected_total.inc()


def record_distance_warning() -> None:
    _distance_warnings_total.inc()


def record_cache_invalidation_failure() -> None:
    _cache_invalidation_failures_total.inc()


def observe_db_query_duration(kind: str, seconds: float) -> None:
    """Observa duración de una query DB.

    Reglas:
      - `kind` debe ser baja cardinalidad (SELECT/INSERT/UPDATE/...).
      - NO incluir SQL completo.
    """
    _db_query_duration.labels(kind=(kind or "UNKNOWN").upper()).observe(seconds)


def record_worker_processed(status: str) -> None:
    _worker_processed_total.labels(status=status).inc()


def observe_worker_duration(duration_seconds: float) -> None:
    _worker_duration.observe(duration_seconds)


def start_metrics_server(port: int) -> None:
    """Expone el registry en http://0.0.0.0:<port>/metrics (hilo daemon)."""
    start_http_server(port, registry=_registry)


def render_metrics() -> bytes:
    return generate_latest(_registry)
