"""
Name: PostgreSQL Repository Tests (offline)

Responsibilities:
  - Validate unit of work transaction handling over a mocked connection
  - Validate psycopg error translation (lock timeout vs generic failure)
  - Validate row mapping and the sort whitelist of the query repository

Notes:
  - No real database: the pool/connection are MagicMocks
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import psycopg
import pytest

from vendcash.crosscutting.exceptions import ConcurrencyConflictError, DatabaseError
from vendcash.domain.entities import CollectionFilter, CollectionStatus
from vendcash.infrastructure.repositories.postgres import (
    PostgresCollectionQueryRepository,
    PostgresUnitOfWork,
)
from vendcash.infrastructure.repositories.postgres.rows import (
    filter_clause,
    row_to_collection,
)

pytestmark = pytest.mark.unit

NOW = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def _pool_with(conn) -> MagicMock:
    pool = MagicMock()
    pool.connection.return_value.__enter__.return_value = conn
    pool.connection.return_value.__exit__.return_value = False
    return pool


def _collection_row(collection_id=None, *, with_machine=False):
    row = (
        collection_id or uuid4(),
        uuid4(),
        uuid4(),
        None,
        NOW,
        None,
        None,
        "collected",
        "realtime",
        "note",
        Decimal("41.31108100"),
        Decimal("69.24056200"),
        Decimal("12.50"),
        NOW,
        NOW,
    )
    if with_machine:
        row += (uuid4(), "VM-001", "Lobby", None, None, True)
    return row


class TestUnitOfWork:
    def test_enter_sets_lock_timeout_and_exit_rolls_back(self):
        conn = MagicMock()
        uow = PostgresUnitOfWork(_pool_with(conn), lock_timeout_ms=1500)

        with uow:
            pass

        conn.execute.assert_any_call("SET LOCAL lock_timeout = '1500ms'")
        conn.rollback.assert_called_once()

    def test_commit_skips_rollback(self):
        conn = MagicMock()
        with PostgresUnitOfWork(_pool_with(conn)) as uow:
            uow.commit()

        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()

    def test_lock_not_available_maps_to_conflict(self):
        conn = MagicMock()
        conn.execute.side_effect = [
            MagicMock(),
            psycopg.errors.LockNotAvailable("canceling statement due to lock timeout"),
        ]

        with pytest.raises(ConcurrencyConflictError):
            with PostgresUnitOfWork(_pool_with(conn)) as uow:
                uow.collections.lock_for_update(uuid4())

        conn.rollback.assert_called_once()

    def test_generic_error_maps_to_database_error(self):
        conn = MagicMock()
        conn.execute.side_effect = [MagicMock(), psycopg.OperationalError("boom")]

        with pytest.raises(DatabaseError) as exc_info:
            with PostgresUnitOfWork(_pool_with(conn)) as uow:
                uow.history.list_for_collection(uuid4())

        assert not isinstance(exc_info.value, ConcurrencyConflictError)
        assert "Failed to list collection history" in exc_info.value.message

    def test_commit_failure_raises_database_error(self):
        conn = MagicMock()
        conn.commit.side_effect = psycopg.OperationalError("connection lost")

        with pytest.raises(DatabaseError):
            with PostgresUnitOfWork(_pool_with(conn)) as uow:
                uow.commit()

        conn.rollback.assert_called_once()

    def test_lock_machine_uses_advisory_xact_lock(self):
        conn = MagicMock()
        machine_id = uuid4()

        with PostgresUnitOfWork(_pool_with(conn), lock_timeout_ms=0) as uow:
            uow.lock_machine(machine_id)

        sql, params = conn.execute.call_args.args
        assert "pg_advisory_xact_lock" in sql
        assert params == (f"collections:machine:{machine_id}",)

    def test_purge_toggles_transaction_flag(self):
        conn = MagicMock()
        purge_cursor = MagicMock(rowcount=3)
        conn.execute.side_effect = [MagicMock(), purge_cursor, MagicMock()]

        with PostgresUnitOfWork(_pool_with(conn), lock_timeout_ms=0) as uow:
            purged = uow.history.purge_for_collection(uuid4())

        statements = [call.args[0] for call in conn.execute.call_args_list]
        assert purged == 3
        assert "'on'" in statements[0]
        assert statements[1].startswith("DELETE FROM collection_history")
        assert "'off'" in statements[2]


class TestRowMapping:
    def test_row_to_collection_without_machine(self):
        row = _collection_row()

        collection = row_to_collection(row)

        assert collection.status == CollectionStatus.COLLECTED
        assert collection.latitude == pytest.approx(41.311081)
        assert collection.distance_from_machine == 12.5
        assert collection.machine is None

    def test_row_to_collection_with_machine(self):
        collection = row_to_collection(_collection_row(with_machine=True))

        assert collection.machine.code == "VM-001"
        assert collection.machine.has_coordinates is False

    def test_filter_clause_inclusive_bounds(self):
        conditions, params = filter_clause(
            CollectionFilter(
                status=CollectionStatus.RECEIVED,
                collected_from=NOW,
                collected_to=NOW,
            )
        )

        assert conditions == [
            "c.status = %s",
            "c.collected_at >= %s",
            "c.collected_at <= %s",
        ]
        assert params == ["received", NOW, NOW]


class TestQueryRepository:
    def test_unknown_sort_column_falls_back_to_collected_at(self):
        conn = MagicMock()
        conn.execute.return_value.fetchall.side_effect = [[(0,)], []]
        repo = PostgresCollectionQueryRepository(pool=_pool_with(conn))

        items, total = repo.list_collections(
            CollectionFilter(),
            sort_by="id; DROP TABLE collections",
            descending=False,
            offset=0,
            limit=20,
        )

        list_sql = conn.execute.call_args_list[1].args[0]
        assert (items, total) == ([], 0)
        assert "ORDER BY c.collected_at ASC NULLS LAST, c.id ASC" in list_sql
        assert "DROP" not in list_sql

    def test_errors_are_wrapped(self):
        conn = MagicMock()
        conn.execute.side_effect = RuntimeError("socket closed")
        repo = PostgresCollectionQueryRepository(pool=_pool_with(conn))

        with pytest.raises(DatabaseError, match="Failed to count by machine"):
            repo.count_by_machine(uuid4())

    def test_get_collection_attaches_machine(self):
        collection_id = uuid4()
        conn = MagicMock()
        conn.execute.return_value.fetchall.return_value = [
            _collection_row(collection_id, with_machine=True)
        ]
        repo = PostgresCollectionQueryRepository(pool=_pool_with(conn))

        found = repo.get_collection(collection_id)

        assert found.id == collection_id
        assert found.machine.name == "Lobby"
