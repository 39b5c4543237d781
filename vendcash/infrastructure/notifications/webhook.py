"""
============================================================
TARJETA CRC — infrastructure/notifications/webhook.py
============================================================
Class: ManagerWebhookClient

Responsibilities:
  - Entregar el aviso "nueva cobranza" a managers vía POST JSON.
  - Reintentar fallas transitorias (tenacity) y propagar el resto como
    NotificationError.

Collaborators:
  - httpx.Client (HTTP síncrono; el worker RQ es síncrono)
  - notifications.retry.create_retry_decorator
  - crosscutting.exceptions.NotificationError

Notes:
  - El payload solo lleva primitivos serializables (ids como texto).
============================================================
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ...crosscutting.exceptions import NotificationError
from ...crosscutting.logger import logger
from ...domain.entities import Collection
from .retry import create_retry_decorator


def build_new_collection_payload(
    collection: Collection, *, distance_meters: Optional[float] = None
) -> Dict[str, Any]:
    machine = collection.machine
    return {
        "event": "collection.created",
        "collection_id": str(collection.id),
        "machine_id": str(collection.machine_id),
        "machine_code": machine.code if machine else None,
        "machine_name": machine.name if machine else None,
        "operator_id": str(collection.operator_id),
        "collected_at": collection.collected_at.isoformat(),
        "source": collection.source.value,
        "distance_meters": (
            distance_meters
            if distance_meters is not None
            else collection.distance_from_machine
        ),
    }


class ManagerWebhookClient:
    def __init__(
        self,
        *,
        url: str,
        timeout_seconds: float = 5.0,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        if not url:
            raise ValueError("url is required")
        self._url = url
        self._client = client or httpx.Client(timeout=timeout_seconds)
        self._post = create_retry_decorator(
            max_attempts=max_attempts, base_delay=base_delay
        )(self._post_once)

    def _post_once(self, payload: Dict[str, Any]) -> int:
        response = self._client.post(self._url, json=payload)
        response.raise_for_status()
        return response.status_code

    def send(self, payload: Dict[str, Any]) -> int:
        """POST del payload; devuelve el status HTTP final."""
        try:
            status_code = self._post(payload)
        except httpx.HTTPError as exc:
            logger.error(
                "Webhook de managers falló",
                extra={"event": payload.get("event"), "error": str(exc)},
            )
            raise NotificationError(
                "Manager webhook delivery failed", original_error=exc
            ) from exc

        logger.info(
            "Webhook de managers entregado",
            extra={"event": payload.get("event"), "status_code": status_code},
        )
        return status_code

    def close(self) -> None:
        self._client.close()
