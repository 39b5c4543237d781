"""
============================================================
TARJETA CRC — infrastructure/cache.py
============================================================
Module: Report Cache (Backends + Factory)

Responsibilities:
  - Implementar el puerto domain.services.ReportCache (delete_keys).
  - Backends:
      - Redis si REDIS_URL está disponible (y el ping funciona)
      - In-memory caso contrario
  - Exponer un singleton por proceso (get/reset) para el container.

Collaborators:
  - application.report_cache.ReportCacheInvalidator (único consumidor)
  - Redis vía redis-py
  - threading.Lock para thread-safety en backend in-memory

Policy / Design Notes:
  - Los backends PROPAGAN errores: el invalidador decide (loguea + métrica).
  - La degradación a memoria ocurre solo al construir (ping inicial).
  - Las claves viajan tal cual ("report:summary", ...); el módulo de
    reportes que las escribe vive fuera de este paquete.
============================================================
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from threading import Lock
from typing import Any, Dict, Iterable, Optional

from ..crosscutting.logger import logger


# ============================================================
# Abstracción de backend
# ============================================================
class ReportCacheBackend(ABC):
    """Contrato mínimo de un backend de cache de reportes."""

    name: str = "abstract"

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: int = 300) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete_keys(self, keys: Iterable[str]) -> int:
        """Elimina claves; devuelve cuántas existían."""
        raise NotImplementedError


# ============================================================
# In-memory backend
# ============================================================
class InMemoryReportCache(ReportCacheBackend):
    """
    Cache en memoria (dev/tests).

    Nota:
      - NO comparte estado entre procesos; el TTL se ignora porque las
        claves se invalidan explícitamente en cada mutación.
    """

    name = "memory"

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str, ttl_seconds: int = 300) -> None:
        with self._lock:
            self._data[key] = value

    def delete_keys(self, keys: Iterable[str]) -> int:
        with self._lock:
            return sum(1 for key in list(keys) if self._data.pop(key, None) is not None)


# ============================================================
# Redis backend
# ============================================================
class RedisReportCache(ReportCacheBackend):
    """Cache Redis compartido entre procesos API/worker."""

    name = "redis"

    def __init__(self, *, redis_url: str = "", client: Any = None) -> None:
        if client is None:
            if not redis_url:
                raise ValueError("redis_url is required")
            import redis

            client = redis.Redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        self._client = client

    def ping(self) -> bool:
        return bool(self._client.ping())

    def get(self, key: str) -> Optional[str]:
        return self._client.get(key)

    def set(self, key: str, value: str, ttl_seconds: int = 300) -> None:
        self._client.setex(key, int(ttl_seconds), value)

    def delete_keys(self, keys: Iterable[str]) -> int:
        keys = list(keys)
        if not keys:
            return 0
        return int(self._client.delete(*keys))


# ============================================================
# Factory
# ============================================================
def create_report_cache(*, backend: str = "", redis_url: str = "") -> ReportCacheBackend:
    """
    Selección:
      - backend="memory" => fuerza in-memory
      - backend="redis"  => redis (si REDIS_URL responde), si no memory
      - default          => redis si está disponible, si no memory
    """
    forced = (backend or "").strip().lower()
    redis_url = (redis_url or "").strip()

    if forced == "memory" or not redis_url:
        return InMemoryReportCache()

    try:
        cache = RedisReportCache(redis_url=redis_url)
        cache.ping()
        return cache
    except Exception as exc:
        logger.warning(
            "Redis no disponible para cache de reportes; usando memoria",
            extra={"forced": forced or "auto", "error": str(exc)},
        )
        return InMemoryReportCache()


# ============================================================
# Singleton por proceso
# ============================================================
_report_cache: Optional[ReportCacheBackend] = None
_report_cache_lock = Lock()


def get_report_cache() -> ReportCacheBackend:
    global _report_cache
    if _report_cache is None:
        with _report_cache_lock:
            if _report_cache is None:
                from ..crosscutting.config import get_settings

                settings = get_settings()
                _report_cache = create_report_cache(
                    backend=settings.report_cache_backend,
                    redis_url=settings.redis_url,
                )
                logger.info(
                    "Cache de reportes inicializado",
                    extra={"backend": _report_cache.name},
                )
    return _report_cache


def reset_report_cache() -> None:
    """Reset del singleton (tests)."""
    global _report_cache
    with _report_cache_lock:
        _report_cache = None
