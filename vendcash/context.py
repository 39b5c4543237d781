"""
===============================================================================
TARJETA CRC — vendcash/context.py (Contexto por operación / job)
===============================================================================

Responsabilidades:
  - Mantener contexto "request-scoped" usando ContextVars (async-safe).
  - Correlacionar logs de una misma operación sin pasar parámetros por todo el stack.
  - Proveer helpers mínimos: set_*(), get_context_dict(), clear_context().

Colaboradores:
  - vendcash.crosscutting.logger: enriquece logs leyendo get_context_dict().
  - vendcash.application.collection_engine: setea actor/operación por llamada.
  - vendcash.worker.jobs: setea request_id por job y limpia contexto al finalizar.

Restricciones:
  - Solo tipos primitivos (str) para serialización segura.
  - Defaults vacíos ("") para evitar None y simplificar JSON.
===============================================================================
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Final

# Identificador de request o job (idealmente UUID o ID estable).
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Actor que ejecuta la operación (operador, manager, admin).
actor_id_var: ContextVar[str] = ContextVar("actor_id", default="")

# Operación del engine en curso (create, receive, bulk_cancel, ...).
operation_var: ContextVar[str] = ContextVar("operation", default="")

_CTX_REQUEST_ID: Final[str] = "request_id"
_CTX_ACTOR_ID: Final[str] = "actor_id"
_CTX_OPERATION: Final[str] = "operation"


def set_request_context(
    *, request_id: str = "", actor_id: str = "", operation: str = ""
) -> None:
    """
    Setea el contexto mínimo de la operación.

    Regla:
      - Strings vacíos significan "no disponible".
    """
    request_id_var.set(request_id or "")
    actor_id_var.set(actor_id or "")
    operation_var.set(operation or "")


def get_context_dict() -> dict[str, str]:
    """
    Devuelve el contexto actual como dict, omitiendo claves vacías.
    """
    ctx: dict[str, str] = {}

    if val := request_id_var.get():
        ctx[_CTX_REQUEST_ID] = val
    if val := actor_id_var.get():
        ctx[_CTX_ACTOR_ID] = val
    if val := operation_var.get():
        ctx[_CTX_OPERATION] = val

    return ctx


def clear_context() -> None:
    """
    Limpia el contexto al final de la operación/job.

    Importante:
      - Evita "filtración de contexto" entre jobs del mismo worker.
    """
    request_id_var.set("")
    actor_id_var.set("")
    operation_var.set("")
