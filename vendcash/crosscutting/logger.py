"""
===============================================================================
MÓDULO: Logger estructurado (JSON) del motor de recaudaciones
===============================================================================

Objetivo
--------
Cada línea de log tiene que poder responder, sin abrir la base:
  - qué operación corría (operation / request_id / actor_id),
  - sobre qué recaudación o máquina (campos *_id),
  - con qué montos (Decimal normalizado a 2 decimales).

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  CollectionLogFormatter + setup_logger()

Responsabilidades:
  - Serializar LogRecord a JSON compacto (una línea por evento).
  - Mezclar el contexto de operación (vendcash/context.py).
  - Normalizar valores del dominio: UUID, Decimal, datetime.
  - Enmascarar credenciales en URLs y recortar texto libre del operador
    (notes / reason) para no inflar los logs.
  - Adjuntar error_id / error_code cuando la excepción es un VendCashError.

Colaboradores:
  - vendcash/context.py (ContextVars)
  - crosscutting/config.py (LOG_LEVEL / LOG_JSON)
===============================================================================
"""

from __future__ import annotations

import json
import logging
import re
import sys
import traceback
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import ValidationError

# Atributos propios de logging.LogRecord; el resto son "extra" del caller.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}

_SECRET_KEYS = ("password", "secret", "token", "authorization", "api_key")
_FREE_TEXT_KEYS = {"notes", "reason", "new_notes"}
_FREE_TEXT_LIMIT = 200
_URL_CREDENTIALS = re.compile(r"(?P<scheme>[a-z][a-z0-9+.-]*://)(?P<user>[^:/@]*):[^@/]*@")


def mask_url(url: str) -> str:
    """postgresql://app:secret@db/x -> postgresql://app:***@db/x"""
    return _URL_CREDENTIALS.sub(r"\g<scheme>\g<user>:***@", url)


def _normalize(key: str, value: Any, depth: int = 0) -> Any:
    lowered = key.lower()
    if any(marker in lowered for marker in _SECRET_KEYS):
        return "***"
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, str):
        if lowered.endswith("url"):
            return mask_url(value)
        if lowered in _FREE_TEXT_KEYS and len(value) > _FREE_TEXT_LIMIT:
            return value[:_FREE_TEXT_LIMIT] + "…"
        return value
    if depth >= 3:
        return repr(value)
    if isinstance(value, dict):
        return {str(k): _normalize(str(k), v, depth + 1) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_normalize(key, v, depth + 1) for v in value]
    return value


class CollectionLogFormatter(logging.Formatter):
    """LogRecord -> JSON de una línea con contexto y extras normalizados."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "src": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        from ..context import get_context_dict

        payload.update(get_context_dict())

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            payload[key] = _normalize(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            error: dict[str, Any] = {
                "type": type(exc).__name__,
                "message": str(exc),
                "stacktrace": "".join(traceback.format_exception(*record.exc_info)),
            }
            for attr in ("error_id", "error_code"):
                if getattr(exc, attr, None):
                    error[attr] = getattr(exc, attr)
            payload["exception"] = error

        return json.dumps(payload, ensure_ascii=False, default=str)


def _logging_preferences() -> tuple[str, bool]:
    # Sin DATABASE_URL (tooling, alembic offline) se usan los defaults.
    try:
        from .config import get_settings

        settings = get_settings()
    except ValidationError:
        return "INFO", True
    return (settings.log_level or "INFO").upper(), settings.log_json


def setup_logger(name: str = "vendcash") -> logging.Logger:
    """
    Configura el logger del paquete una sola vez por proceso.

    Los loggers hijos (vendcash.worker, ...) propagan a este handler.
    """
    log = logging.getLogger(name)
    level, use_json = _logging_preferences()
    log.setLevel(getattr(logging, level, logging.INFO))

    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            CollectionLogFormatter()
            if use_json
            else logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
        log.addHandler(handler)
        log.propagate = False

    return log


logger = setup_logger()
