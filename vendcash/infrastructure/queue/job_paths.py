"""
===============================================================================
SUBSISTEMA: Infraestructura / Queue
===============================================================================

Rutas importables de jobs y nombres de colas.

Responsabilidades:
    - Centralizar strings que cruzan el proceso API -> worker.
    - Verificar (fail-fast) que el worker podrá importar el job.

Notas:
    - Si se mueve un job, se actualiza acá; RQCollectionNotifier lo valida
      al construirse.
===============================================================================
"""

from __future__ import annotations

from functools import lru_cache
from importlib import import_module

NOTIFICATIONS_QUEUE_NAME: str = "notifications"

NOTIFY_NEW_COLLECTION_JOB_PATH: str = "vendcash.worker.jobs.notify_new_collection_job"


@lru_cache(maxsize=32)
def is_importable_job(dotted_path: str) -> bool:
    """True si "paquete.modulo.funcion" se puede importar y es callable."""
    module_name, _, attr_name = (dotted_path or "").rpartition(".")
    if not module_name or not attr_name:
        return False
    try:
        module = import_module(module_name)
    except ModuleNotFoundError:
        return False
    return callable(getattr(module, attr_name, None))
