"""
===============================================================================
TARJETA CRC — worker/worker.py (proceso `vendcash-worker`)
===============================================================================

Responsabilidades:
  - Consumir la cola de notificaciones y entregar los avisos de nuevas
    recaudaciones al webhook de managers.
  - Abrir Redis y el pool de BD antes del primer job (el job relee la
    recaudación para no avisar sobre una ya recibida o cancelada).
  - Negarse a arrancar si falta Redis: sin cola no hay nada que consumir.
  - Exponer /metrics si METRICS_PORT está configurado.

Colaboradores:
  - crosscutting.config.get_settings
  - infrastructure.db.pool.init_pool_from_settings / close_pool
  - redis.Redis + rq.Worker
  - worker.jobs.notify_new_collection_job (lo importa RQ por job path)
===============================================================================
"""

from __future__ import annotations

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue, Worker

from ..crosscutting.config import get_settings
from ..crosscutting.logger import logger, mask_url
from ..crosscutting.metrics import start_metrics_server
from ..infrastructure.db.pool import close_pool, init_pool_from_settings


def _connect_redis(redis_url: str) -> Redis:
    conn = Redis.from_url(redis_url, socket_connect_timeout=2, socket_timeout=5)
    try:
        conn.ping()
    except RedisError as exc:
        logger.error(
            "Redis unreachable, worker not started",
            extra={"redis_url": mask_url(redis_url), "error": str(exc)},
        )
        raise SystemExit(1) from exc
    return conn


def main() -> None:
    settings = get_settings()

    if not settings.redis_url.strip():
        raise SystemExit("REDIS_URL is required to run vendcash-worker")
    if not settings.manager_webhook_url:
        # Los jobs terminan como DISABLED; la cola se drena igual.
        logger.warning("MANAGER_WEBHOOK_URL not set; notifications will be dropped")

    redis_conn = _connect_redis(settings.redis_url.strip())
    init_pool_from_settings(settings)
    if settings.metrics_port:
        start_metrics_server(settings.metrics_port)

    queue_name = settings.notifications_queue_name or "notifications"
    try:
        logger.info("vendcash-worker listening", extra={"queue": queue_name})
        Worker(
            [Queue(name=queue_name, connection=redis_conn)], connection=redis_conn
        ).work(with_scheduler=True)
    except KeyboardInterrupt:
        logger.info("vendcash-worker interrupted")
    finally:
        close_pool()
        redis_conn.close()


if __name__ == "__main__":
    main()
