"""
============================================================
TARJETA CRC — alembic/env.py
============================================================
Responsibilities:
  - Correr las migraciones del esquema de recaudaciones (machines,
    collections, collection_history, collection_removals + triggers).
  - Resolver la URL: sqlalchemy.url de la config (tests de integración la
    setean) o DATABASE_URL, siempre con el driver psycopg 3.

Collaborators:
  - Alembic (context, config)
  - SQLAlchemy (create_engine, sólo como transporte de Alembic)

Policy:
  - Sin ORM (target_metadata = None): el esquema se escribe a mano en
    versions/ y los repositorios usan SQL crudo con psycopg.
  - Una transacción por migración: si falla la de triggers, el esquema
    base queda aplicado y versionado.
============================================================
"""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

_DRIVER_PREFIXES = ("postgresql://", "postgres://")


def database_url() -> str:
    url = config.get_main_option("sqlalchemy.url") or os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run vendcash migrations")
    for prefix in _DRIVER_PREFIXES:
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


_MIGRATION_OPTIONS = dict(
    target_metadata=None,
    transaction_per_migration=True,
)

if context.is_offline_mode():
    context.configure(
        url=database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_MIGRATION_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    engine = create_engine(database_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, **_MIGRATION_OPTIONS)
        with context.begin_transaction():
            context.run_migrations()
