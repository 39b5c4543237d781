"""
Name: PostgreSQL Collections Integration Tests

Responsibilities:
  - Run the lifecycle engine against real PostgreSQL repositories
  - Verify audit triggers (append-only history and removal log)
  - Verify lock timeouts surface as ConcurrencyConflictError

Notes:
  - Requires running PostgreSQL instance
  - Mark with @pytest.mark.integration

Setup:
  RUN_INTEGRATION=1 DATABASE_URL=postgresql://... pytest tests/integration
"""

import os

import pytest

# Skip BEFORE importing vendcash.* to avoid triggering env validation during collection
if os.getenv("RUN_INTEGRATION") != "1":
    pytest.skip(
        "Set RUN_INTEGRATION=1 to run integration tests", allow_module_level=True
    )

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import psycopg

from vendcash.application.usecases.collections import (
    CollectionErrorCode,
    CollectionSearchFilters,
    CreateCollectionInput,
)
from vendcash.container import build_collection_engine
from vendcash.crosscutting.config import get_settings
from vendcash.crosscutting.exceptions import ConcurrencyConflictError
from vendcash.domain.entities import CollectionStatus
from vendcash.infrastructure.cache import InMemoryReportCache
from vendcash.infrastructure.repositories.postgres import (
    PostgresCollectionQueryRepository,
    PostgresMachineDirectory,
    PostgresUnitOfWork,
)

pytestmark = pytest.mark.integration

DATABASE_URL = os.environ["DATABASE_URL"]
T0 = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def _insert_machine(code: str) -> UUID:
    machine_id = uuid4()
    with psycopg.connect(DATABASE_URL, autocommit=True) as conn:
        conn.execute(
            """
            INSERT INTO machines (id, code, name, latitude, longitude)
            VALUES (%s, %s, %s, %s, %s)
            """,
            (machine_id, code, "Integration", 41.311081, 69.240562),
        )
    return machine_id


@pytest.fixture
def engine():
    return build_collection_engine(
        settings=get_settings(),
        uow_factory=lambda: PostgresUnitOfWork(lock_timeout_ms=300),
        queries=PostgresCollectionQueryRepository(),
        machines=PostgresMachineDirectory(),
        cache=InMemoryReportCache(),
    )


@pytest.fixture
def machine_id() -> UUID:
    return _insert_machine(f"IT-{uuid4().hex[:12]}")


def _create(engine, machine_id, *, collected_at=T0):
    result = engine.create(
        CreateCollectionInput(
            machine_id=machine_id,
            operator_id=uuid4(),
            collected_at=collected_at,
            latitude=41.3115,
            longitude=69.2405,
        )
    )
    assert result.error is None
    return result.collection


def test_full_lifecycle_and_removal(engine, machine_id):
    created = _create(engine, machine_id)
    assert created.machine.id == machine_id
    assert created.distance_from_machine is not None

    manager_id = uuid4()
    received = engine.receive(created.id, manager_id=manager_id, amount="1500")
    assert received.collection.amount == Decimal("1500.00")

    edited = engine.edit(created.id, user_id=manager_id, amount=1400, reason="Recount")
    assert edited.error is None

    history = engine.get_history(created.id).entries
    assert sorted(e.field_name for e in history) == ["amount", "amount", "status"]

    removed = engine.remove(created.id, user_id=uuid4())
    assert removed.success

    assert engine.find_by_id(created.id).error.code == CollectionErrorCode.NOT_FOUND
    with psycopg.connect(DATABASE_URL) as conn:
        history_rows = conn.execute(
            "SELECT count(*) FROM collection_history WHERE collection_id = %s",
            (created.id,),
        ).fetchone()[0]
        removal = conn.execute(
            """
            SELECT field_name, new_value, reason, purged_history_count, snapshot
            FROM collection_removals WHERE collection_id = %s
            """,
            (created.id,),
        ).fetchone()

    assert history_rows == 0
    assert removal[:4] == ("deleted", "deleted", "Deleted by admin", 3)
    assert removal[4]["amount"] == "1400.00"


def test_duplicate_detection(engine, machine_id):
    first = _create(engine, machine_id)

    result = engine.create(
        CreateCollectionInput(
            machine_id=machine_id,
            operator_id=uuid4(),
            collected_at=T0 + timedelta(minutes=20),
        )
    )

    assert result.error.code == CollectionErrorCode.DUPLICATE_DETECTED
    assert result.error.existing_id == first.id
    assert engine.check_duplicate(machine_id, T0 - timedelta(minutes=30)).id == first.id


def test_history_is_append_only(engine, machine_id):
    created = _create(engine, machine_id)
    engine.cancel(created.id, user_id=uuid4())

    with psycopg.connect(DATABASE_URL, autocommit=True) as conn:
        with pytest.raises(psycopg.Error):
            conn.execute(
                "UPDATE collection_history SET reason = 'x' WHERE collection_id = %s",
                (created.id,),
            )
        with pytest.raises(psycopg.Error):
            conn.execute(
                "DELETE FROM collection_history WHERE collection_id = %s",
                (created.id,),
            )


def test_cancelled_is_terminal_in_database(engine, machine_id):
    created = _create(engine, machine_id)
    engine.cancel(created.id, user_id=uuid4())

    with psycopg.connect(DATABASE_URL, autocommit=True) as conn:
        with pytest.raises(psycopg.Error):
            conn.execute(
                "UPDATE collections SET status = 'collected' WHERE id = %s",
                (created.id,),
            )


def test_removal_log_is_append_only(engine, machine_id):
    created = _create(engine, machine_id)
    engine.remove(created.id, user_id=uuid4())

    with psycopg.connect(DATABASE_URL, autocommit=True) as conn:
        with pytest.raises(psycopg.Error):
            conn.execute(
                "DELETE FROM collection_removals WHERE collection_id = %s",
                (created.id,),
            )


def test_row_lock_timeout_raises_conflict(engine, machine_id):
    created = _create(engine, machine_id)

    with psycopg.connect(DATABASE_URL) as holder:
        holder.execute("SELECT id FROM collections WHERE id = %s FOR UPDATE", (created.id,))
        with pytest.raises(ConcurrencyConflictError):
            engine.receive(created.id, manager_id=uuid4(), amount=10)
        holder.rollback()

    row = engine.find_by_id(created.id).collection
    assert row.status == CollectionStatus.COLLECTED


def test_bulk_cancel_by_filters(engine, machine_id):
    first = _create(engine, machine_id, collected_at=T0)
    second = _create(engine, machine_id, collected_at=T0 + timedelta(hours=2))

    result = engine.bulk_cancel(
        user_id=uuid4(),
        filters=CollectionSearchFilters(machine_id=machine_id),
        use_filters=True,
    )

    assert (result.total, result.cancelled, result.failed) == (2, 2, 0)
    for collection in (first, second):
        found = engine.find_by_id(collection.id).collection
        assert found.status == CollectionStatus.CANCELLED


def test_amount_ceiling_follows_configured_maximum(machine_id):
    raised = get_settings().model_copy(update={"max_collection_amount": 5_000_000_000})
    engine = build_collection_engine(
        settings=raised,
        uow_factory=lambda: PostgresUnitOfWork(lock_timeout_ms=300),
        queries=PostgresCollectionQueryRepository(),
        machines=PostgresMachineDirectory(),
        cache=InMemoryReportCache(),
    )
    created = _create(engine, machine_id)

    result = engine.receive(created.id, manager_id=uuid4(), amount=2_000_000_000)

    assert result.error is None
    assert engine.find_by_id(created.id).collection.amount == Decimal("2000000000.00")
