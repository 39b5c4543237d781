"""
===============================================================================
TARJETA CRC — vendcash/container.py (Composition Root / DI manual)
===============================================================================

Responsabilidades:
  - Componer dependencias (unit of work, repositorios, cache, cola) siguiendo DIP.
  - Exponer factories para el caller (servicio HTTP externo) y para el worker.
  - Mantener singletons con caching (lru_cache) para recursos pesados.
  - Centralizar decisiones runtime basadas en Settings.

Colaboradores:
  - vendcash.crosscutting.config.get_settings
  - vendcash.domain.repositories.* / domain.services.* (puertos)
  - vendcash.infrastructure.* (implementaciones)
  - vendcash.application (casos de uso + engine)

Notas:
  - Este archivo NO contiene lógica de negocio.
  - APP_ENV=test => adapters in-memory (sin Postgres/Redis).
===============================================================================
"""

from __future__ import annotations

from functools import lru_cache

from redis import Redis

from .application import (
    CollectionLifecycleEngine,
    DuplicateDetector,
    ReportCacheInvalidator,
)
from .application.usecases.collections import (
    BulkCancelCollectionsUseCase,
    BulkCreateCollectionsUseCase,
    CancelCollectionUseCase,
    CheckDuplicateUseCase,
    CountMachineCollectionsUseCase,
    CreateCollectionUseCase,
    EditCollectionUseCase,
    GetCollectionHistoryUseCase,
    GetCollectionUseCase,
    ListCollectionsUseCase,
    ListOperatorCollectionsUseCase,
    ListPendingCollectionsUseCase,
    ReceiveCollectionUseCase,
    RemoveCollectionUseCase,
)
from .crosscutting.config import Settings, get_settings
from .domain.repositories import (
    CollectionQueryRepository,
    MachineDirectory,
    UnitOfWorkFactory,
)
from .domain.services import CollectionNotifier, ReportCache
from .infrastructure.cache import get_report_cache
from .infrastructure.db.pool import close_pool, init_pool_from_settings
from .infrastructure.notifications import ManagerWebhookClient
from .infrastructure.queue import RQCollectionNotifier, RQQueueConfig
from .infrastructure.repositories import (
    InMemoryCollectionStore,
    InMemoryMachineDirectory,
    PostgresCollectionQueryRepository,
    PostgresMachineDirectory,
    PostgresUnitOfWork,
)

# =============================================================================
# Helpers internos
# =============================================================================


def _is_test_env() -> bool:
    return get_settings().is_test()


# =============================================================================
# Persistencia (singletons)
# =============================================================================


@lru_cache(maxsize=1)
def get_in_memory_store() -> InMemoryCollectionStore:
    """Store in-memory compartido (solo APP_ENV=test)."""
    settings = get_settings()
    return InMemoryCollectionStore(
        lock_timeout_seconds=settings.db_lock_timeout_ms / 1000.0
    )


@lru_cache(maxsize=1)
def get_unit_of_work_factory() -> UnitOfWorkFactory:
    """Factory de UoW: in-memory en test; Postgres en runtime."""
    if _is_test_env():
        return get_in_memory_store().unit_of_work

    lock_timeout_ms = get_settings().db_lock_timeout_ms

    def factory() -> PostgresUnitOfWork:
        return PostgresUnitOfWork(lock_timeout_ms=lock_timeout_ms)

    return factory


@lru_cache(maxsize=1)
def get_collection_query_repository() -> CollectionQueryRepository:
    if _is_test_env():
        return get_in_memory_store()
    return PostgresCollectionQueryRepository()


@lru_cache(maxsize=1)
def get_machine_directory() -> MachineDirectory:
    if _is_test_env():
        return InMemoryMachineDirectory(get_in_memory_store())
    return PostgresMachineDirectory()


# =============================================================================
# Servicios externos
# =============================================================================


@lru_cache(maxsize=1)
def get_redis_connection() -> Redis | None:
    settings = get_settings()
    if not settings.redis_url.strip():
        return None
    return Redis.from_url(
        settings.redis_url,
        socket_connect_timeout=2,
        socket_timeout=5,
        health_check_interval=30,
    )


@lru_cache(maxsize=1)
def get_collection_notifier() -> CollectionNotifier | None:
    """Aviso a managers vía RQ si Redis está configurado (nunca en test)."""
    if _is_test_env():
        return None
    redis_conn = get_redis_connection()
    if redis_conn is None:
        return None

    settings = get_settings()
    config = RQQueueConfig(
        queue_name=settings.notifications_queue_name,
        retry_max_attempts=settings.notifications_retry_max_attempts,
    )
    return RQCollectionNotifier(redis=redis_conn, config=config)


@lru_cache(maxsize=1)
def get_manager_webhook_client() -> ManagerWebhookClient | None:
    settings = get_settings()
    if not settings.manager_webhook_url.strip():
        return None
    return ManagerWebhookClient(
        url=settings.manager_webhook_url,
        timeout_seconds=settings.manager_webhook_timeout_seconds,
    )


# =============================================================================
# Engine
# =============================================================================


def build_collection_engine(
    *,
    settings: Settings,
    uow_factory: UnitOfWorkFactory,
    queries: CollectionQueryRepository,
    machines: MachineDirectory,
    cache: ReportCache,
    notifier: CollectionNotifier | None = None,
) -> CollectionLifecycleEngine:
    """Arma el engine con dependencias explícitas (también usado en tests)."""
    detector = DuplicateDetector(window_minutes=settings.duplicate_check_minutes)
    invalidator = ReportCacheInvalidator(cache)
    max_amount = settings.max_collection_amount
    offset = settings.business_utc_offset_hours

    return CollectionLifecycleEngine(
        create_uc=CreateCollectionUseCase(
            uow_factory=uow_factory,
            machines=machines,
            duplicate_detector=detector,
            cache_invalidator=invalidator,
            notifier=notifier,
        ),
        receive_uc=ReceiveCollectionUseCase(
            uow_factory=uow_factory,
            cache_invalidator=invalidator,
            max_amount=max_amount,
        ),
        edit_uc=EditCollectionUseCase(
            uow_factory=uow_factory,
            cache_invalidator=invalidator,
            max_amount=max_amount,
        ),
        cancel_uc=CancelCollectionUseCase(
            uow_factory=uow_factory, cache_invalidator=invalidator
        ),
        bulk_create_uc=BulkCreateCollectionsUseCase(
            uow_factory=uow_factory,
            machines=machines,
            cache_invalidator=invalidator,
            max_items=settings.max_bulk_create_items,
            max_amount=max_amount,
        ),
        bulk_cancel_uc=BulkCancelCollectionsUseCase(
            uow_factory=uow_factory,
            cache_invalidator=invalidator,
            max_items=settings.max_bulk_cancel_items,
            utc_offset_hours=offset,
        ),
        remove_uc=RemoveCollectionUseCase(
            uow_factory=uow_factory, cache_invalidator=invalidator
        ),
        pending_uc=ListPendingCollectionsUseCase(queries),
        history_uc=GetCollectionHistoryUseCase(queries),
        duplicate_uc=CheckDuplicateUseCase(queries, detector),
        list_uc=ListCollectionsUseCase(queries, utc_offset_hours=offset),
        get_uc=GetCollectionUseCase(queries),
        operator_uc=ListOperatorCollectionsUseCase(queries, utc_offset_hours=offset),
        count_uc=CountMachineCollectionsUseCase(queries),
    )


@lru_cache(maxsize=1)
def get_collection_engine() -> CollectionLifecycleEngine:
    return build_collection_engine(
        settings=get_settings(),
        uow_factory=get_unit_of_work_factory(),
        queries=get_collection_query_repository(),
        machines=get_machine_directory(),
        cache=get_report_cache(),
        notifier=get_collection_notifier(),
    )


def reset_container() -> None:
    """Limpia singletons (tests)."""
    for factory in (
        get_in_memory_store,
        get_unit_of_work_factory,
        get_collection_query_repository,
        get_machine_directory,
        get_redis_connection,
        get_collection_notifier,
        get_manager_webhook_client,
        get_collection_engine,
    ):
        factory.cache_clear()


# =============================================================================
# Ciclo de vida del proceso
# =============================================================================


def startup() -> CollectionLifecycleEngine:
    """
    Abre el pool de BD (fuera de test) y devuelve el engine listo.

    El caller (servicio HTTP, script de importación) lo invoca una vez al
    arrancar; el worker abre su propio pool en worker.main().
    """
    if not _is_test_env():
        init_pool_from_settings(get_settings())
    return get_collection_engine()


def shutdown() -> None:
    if not _is_test_env():
        close_pool()
    reset_container()
