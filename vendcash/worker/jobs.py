"""
===============================================================================
TARJETA CRC — worker/jobs.py (Jobs RQ: avisos a managers)
===============================================================================

Responsabilidades:
  - Definir el entrypoint del job "nueva cobranza" ejecutado por RQ.
  - Validar inputs (UUID) fail-fast.
  - Recargar la cobranza (puede haber sido cancelada/eliminada entre el
    enqueue y la ejecución) y entregar el aviso por webhook.
  - Emitir logs/métricas con contexto y limpiarlo al finalizar.

Colaboradores:
  - container.get_collection_query_repository / get_manager_webhook_client
  - infrastructure.notifications.build_new_collection_payload
  - crosscutting.metrics (record_worker_processed, observe_worker_duration)
  - context (request_id_var, operation_var, clear_context)
===============================================================================
"""

from __future__ import annotations

import time
from typing import Optional
from uuid import UUID

from rq import get_current_job

from ..container import get_collection_query_repository, get_manager_webhook_client
from ..context import clear_context, operation_var, request_id_var
from ..crosscutting.logger import logger
from ..crosscutting.metrics import observe_worker_duration, record_worker_processed
from ..infrastructure.notifications import build_new_collection_payload


def _parse_uuid(value: str, *, job_id: str | None) -> UUID | None:
    try:
        return UUID(value)
    except (TypeError, ValueError):
        logger.error(
            "Job inválido: UUID malformado",
            extra={"field": "collection_id", "value": value, "job_id": job_id},
        )
        return None


def notify_new_collection_job(
    collection_id: str,
    *,
    distance_meters: Optional[float] = None,
    request_id: Optional[str] = None,
) -> str:
    """
    Job RQ: avisa a managers que hay una cobranza pendiente de recepción.

    Devuelve el status final (SENT / SKIPPED / DISABLED / INVALID).
    Excepciones de entrega se relanzan para que RQ aplique sus reintentos.
    """
    job = get_current_job()
    job_id = getattr(job, "id", None)

    request_id_var.set(request_id or job_id or collection_id)
    operation_var.set("notify_new_collection")

    start = time.perf_counter()
    status = "UNKNOWN"

    try:
        collection_uuid = _parse_uuid(collection_id, job_id=job_id)
        if collection_uuid is None:
            status = "INVALID"
            return status

        client = get_manager_webhook_client()
        if client is None:
            status = "DISABLED"
            logger.info(
                "Webhook de managers no configurado; aviso descartado",
                extra={"collection_id": collection_id},
            )
            return status

        collection = get_collection_query_repository().get_collection(collection_uuid)
        if collection is None or not collection.is_pending:
            status = "SKIPPED"
            logger.info(
                "Cobranza ya no pendiente; aviso descartado",
                extra={"collection_id": collection_id},
            )
            return status

        client.send(
            build_new_collection_payload(collection, distance_meters=distance_meters)
        )
        status = "SENT"
        return status

    except Exception as exc:
        status = "FAILED"
        logger.exception(
            "Worker job falló con excepción",
            extra={"job_id": job_id, "collection_id": collection_id, "error": str(exc)},
        )
        raise

    finally:
        duration = time.perf_counter() - start
        record_worker_processed(status)
        observe_worker_duration(duration)
        logger.info(
            "Worker job finalizado",
            extra={
                "job_id": job_id,
                "collection_id": collection_id,
                "status": status,
                "duration_seconds": round(duration, 3),
            },
        )
        clear_context()


__all__ = ["notify_new_collection_job"]
