"""vendcash.infrastructure.notifications.retry

Name: Retry policy for outbound manager notifications

Qué es
------
Política de resiliencia para el webhook de managers:
  - Clasificación de errores: **transient** (reintentar) vs **permanent** (fail-fast)
  - Decorator de `tenacity` con **exponential backoff + jitter**
  - Log estructurado de cada reintento

CRC (Component Card)
--------------------
Responsibilities:
  - Decidir qué errores de httpx son reintentables
  - Construir el decorator estándar con settings (attempts/delays)
Collaborators:
  - tenacity (motor de retry)
  - httpx (tipos de error)
  - crosscutting.config.get_settings / crosscutting.logger
Constraints:
  - Reintentar SOLO 408/429/5xx, timeouts y errores de transporte
  - 4xx restantes se propagan al primer intento
"""

from __future__ import annotations

from typing import Callable, TypeVar

import httpx
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ...crosscutting.config import get_settings
from ...crosscutting.logger import logger

T = TypeVar("T")

# R: Códigos HTTP que indican fallas transitorias del receptor.
TRANSIENT_HTTP_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})


def is_transient_error(exception: BaseException) -> bool:
    """R: True si vale la pena reintentar la llamada."""
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code in TRANSIENT_HTTP_CODES
    if isinstance(exception, httpx.TransportError):
        # Timeouts, connection refused/reset, DNS.
        return True
    return isinstance(exception, (TimeoutError, ConnectionError))


def _log_retry(retry_state: RetryCallState) -> None:
    fn_name = getattr(retry_state.fn, "__name__", "unknown")
    wait_time = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None

    logger.warning(
        "Retrying manager notification",
        extra={
            "function": fn_name,
            "attempt": retry_state.attempt_number,
            "wait_seconds": round(float(wait_time), 2),
            "error": str(exc) if exc else None,
            "error_type": type(exc).__name__ if exc else None,
        },
    )


def create_retry_decorator(
    max_attempts: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """R: Decorator tenacity; None en un parámetro = valor de Settings."""
    settings = get_settings()

    _max_attempts = settings.retry_max_attempts if max_attempts is None else max_attempts
    _base_delay = (
        settings.retry_base_delay_seconds if base_delay is None else float(base_delay)
    )
    _max_delay = (
        settings.retry_max_delay_seconds if max_delay is None else float(max_delay)
    )

    if _max_attempts <= 0:
        raise ValueError("max_attempts must be > 0")
    if _base_delay < 0:
        raise ValueError("base_delay must be >= 0")
    if _max_delay <= 0:
        raise ValueError("max_delay must be > 0")

    return retry(
        stop=stop_after_attempt(_max_attempts),
        wait=wait_exponential_jitter(initial=_base_delay, max=_max_delay),
        retry=retry_if_exception(is_transient_error),
        before_sleep=_log_retry,
        reraise=True,
    )
