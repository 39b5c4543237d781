"""
===============================================================================
ARCHIVO: infrastructure/queue/rq_queue.py
===============================================================================

CRC CARD (Class)
-------------------------------------------------------------------------------
Clase:
    RQCollectionNotifier (Adapter)

Responsabilidades:
    - Implementar el puerto `CollectionNotifier` usando RQ.
    - Encolar el aviso "nueva cobranza" para managers (el worker lo entrega).
    - Validar configuración (nombre de cola + job path importable) fail-fast.

Colaboradores:
    - domain.services.CollectionNotifier
    - job_paths.NOTIFY_NEW_COLLECTION_JOB_PATH
    - errors.QueueConfigurationError / QueueEnqueueError
    - crosscutting.logger

Patrones:
    - Adapter: traduce el puerto del dominio a RQ.
    - Fail-Fast: un job path roto explota al construir, no en el worker.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from rq import Queue, Retry

from ...context import request_id_var
from ...crosscutting.logger import logger
from .errors import QueueConfigurationError, QueueEnqueueError
from .job_paths import (
    NOTIFICATIONS_QUEUE_NAME,
    NOTIFY_NEW_COLLECTION_JOB_PATH,
    is_importable_job,
)


@dataclass(frozen=True)
class RQQueueConfig:
    """Configuración del adaptador RQ.

    queue_name:
        Nombre de la cola en Redis.
    retry_max_attempts:
        Reintentos automáticos si el job falla (0 = sin retry).
    job_timeout_seconds:
        Timeout de ejecución del job en el worker.
    result_ttl_seconds:
        Vida del resultado en Redis.
    """

    queue_name: str = NOTIFICATIONS_QUEUE_NAME
    retry_max_attempts: int = 3
    job_timeout_seconds: int = 60
    result_ttl_seconds: int = 0


class RQCollectionNotifier:
    """Adapter RQ para avisos a managers."""

    def __init__(
        self, *, redis: Any, config: RQQueueConfig, queue: Any = None
    ) -> None:
        """
        `redis` se inyecta desde el container para compartir conexión;
        `queue` permite inyectar un doble en tests.
        """
        self._config = _validate_config(config)

        if not is_importable_job(NOTIFY_NEW_COLLECTION_JOB_PATH):
            raise QueueConfigurationError(
                "Job path no importable para RQ: "
                f"{NOTIFY_NEW_COLLECTION_JOB_PATH}. "
                "Revisar `infrastructure/queue/job_paths.py` y `vendcash/worker/jobs.py`."
            )

        self._queue = queue or Queue(name=self._config.queue_name, connection=redis)
        self._retry = (
            Retry(max=self._config.retry_max_attempts)
            if self._config.retry_max_attempts > 0
            else None
        )

        logger.info(
            "RQ inicializada",
            extra={
                "queue": self._config.queue_name,
                "retry_max_attempts": self._config.retry_max_attempts,
            },
        )

    def notify_new_collection(
        self, collection_id: UUID, *, distance_meters: Optional[float] = None
    ) -> str:
        """
        Encola el aviso.

        Serialización: solo primitivos (UUID como texto) para no depender de
        pickling de entidades.
        """
        try:
            job = self._queue.enqueue(
                NOTIFY_NEW_COLLECTION_JOB_PATH,
                args=(str(collection_id),),
                kwargs={
                    "distance_meters": distance_meters,
                    "request_id": request_id_var.get() or None,
                },
                retry=self._retry,
                job_timeout=self._config.job_timeout_seconds,
                result_ttl=self._config.result_ttl_seconds,
                description=f"notify_new_collection:{collection_id}",
            )
        except Exception as exc:
            logger.exception(
                "Error al encolar aviso de cobranza",
                extra={
                    "collection_id": str(collection_id),
                    "queue": self._config.queue_name,
                },
            )
            raise QueueEnqueueError(
                "No se pudo encolar el aviso de nueva cobranza",
                original_error=exc,
            ) from exc

        job_id = str(getattr(job, "id", "") or "")
        logger.info(
            "Aviso de cobranza encolado",
            extra={
                "collection_id": str(collection_id),
                "job_id": job_id,
                "queue": self._config.queue_name,
            },
        )
        return job_id


def _validate_config(config: RQQueueConfig) -> RQQueueConfig:
    queue_name = (config.queue_name or "").strip() or NOTIFICATIONS_QUEUE_NAME
    retry_max_attempts = int(config.retry_max_attempts)
    job_timeout_seconds = int(config.job_timeout_seconds)
    result_ttl_seconds = int(config.result_ttl_seconds)

    if retry_max_attempts < 0:
        raise QueueConfigurationError("retry_max_attempts no puede ser negativo")
    if job_timeout_seconds <= 0:
        raise QueueConfigurationError("job_timeout_seconds debe ser > 0")
    if result_ttl_seconds < 0:
        raise QueueConfigurationError("result_ttl_seconds no puede ser negativo")

    return RQQueueConfig(
        queue_name=queue_name,
        retry_max_attempts=retry_max_attempts,
        job_timeout_seconds=job_timeout_seconds,
        result_ttl_seconds=result_ttl_seconds,
    )
