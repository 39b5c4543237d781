"""
Name: Bulk Create / Bulk Cancel Use Case Tests

Responsibilities:
  - Validate per-item accounting and batch-level validation
  - Validate filter mode for bulk cancel (business day bounds)
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from vendcash.application.usecases.collections import (
    BulkCreateItem,
    CollectionErrorCode,
    CollectionSearchFilters,
)
from vendcash.application.usecases.collections.bulk_cancel_collections import (
    MISSING_FILTER_MESSAGE,
)
from vendcash.container import build_collection_engine
from vendcash.crosscutting.exceptions import DatabaseError
from vendcash.domain.entities import CollectionSource, CollectionStatus
from vendcash.infrastructure.repositories.in_memory import InMemoryMachineDirectory
from vendcash.infrastructure.repositories.in_memory.collection_store import (
    _InMemoryCollectionWriter,
    _InMemoryHistoryWriter,
)

pytestmark = pytest.mark.unit

T0 = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def small_engine(settings, store, report_cache):
    limited = settings.model_copy(
        update={"max_bulk_create_items": 2, "max_bulk_cancel_items": 2}
    )
    return build_collection_engine(
        settings=limited,
        uow_factory=store.unit_of_work,
        queries=store,
        machines=InMemoryMachineDirectory(store),
        cache=report_cache,
    )


# =============================================================================
# Bulk create
# =============================================================================


def test_bulk_create_mixes_pending_and_received(
    engine, store, machine, other_machine, operator_id, report_cache
):
    result = engine.bulk_create(
        [
            BulkCreateItem(collected_at=T0, machine_id=machine.id),
            BulkCreateItem(
                collected_at=T0 + timedelta(days=1),
                machine_code="VM-002",
                amount="250.75",
            ),
        ],
        operator_id=operator_id,
    )

    assert (result.created, result.failed, result.errors) == (2, 0, [])
    pending, received = result.collections
    assert pending.status == CollectionStatus.COLLECTED
    assert pending.amount is None
    assert pending.source == CollectionSource.MANUAL_HISTORY
    assert received.status == CollectionStatus.RECEIVED
    assert received.amount == Decimal("250.75")
    assert received.manager_id == operator_id
    assert received.received_at is not None
    assert received.machine == other_machine
    assert len(store.committed_rows()) == 2
    assert len(report_cache.calls) == 1


def test_bulk_create_skips_duplicate_check(engine, store, machine, operator_id):
    items = [BulkCreateItem(collected_at=T0, machine_id=machine.id) for _ in range(3)]

    result = engine.bulk_create(items, operator_id=operator_id)

    assert result.created == 3
    assert store.count_by_machine(machine.id) == 3


def test_bulk_create_reports_failures_by_index(engine, store, machine, operator_id):
    result = engine.bulk_create(
        [
            BulkCreateItem(collected_at=T0, machine_code="NOPE"),
            BulkCreateItem(collected_at=T0, machine_id=machine.id),
            BulkCreateItem(collected_at=T0, machine_id=machine.id, amount=-5),
            BulkCreateItem(collected_at=T0),
        ],
        operator_id=operator_id,
        source=CollectionSource.EXCEL_IMPORT,
    )

    assert result.created == 1
    assert result.failed == 3
    assert [e.index for e in result.errors] == [0, 2, 3]
    assert result.errors[0].error == "Machine not found"
    assert result.errors[1].error.startswith("Amount must be between")
    assert result.errors[2].error == "Machine not found"
    assert result.collections[0].source == CollectionSource.EXCEL_IMPORT
    assert len(store.committed_rows()) == 1


def test_bulk_create_huge_amount_fails_only_that_item(engine, store, machine, operator_id):
    result = engine.bulk_create(
        [
            BulkCreateItem(collected_at=T0, machine_id=machine.id, amount="10.00"),
            BulkCreateItem(collected_at=T0, machine_id=machine.id, amount="1e30"),
        ],
        operator_id=operator_id,
    )

    assert (result.created, result.failed) == (1, 1)
    assert result.errors[0].index == 1
    assert result.errors[0].error.startswith("Amount must be between")
    assert len(store.committed_rows()) == 1


def test_bulk_create_database_error_discards_only_that_item(
    engine, store, machine, operator_id, monkeypatch
):
    original_add = _InMemoryCollectionWriter.add

    def _add(self, collection):
        original_add(self, collection)
        if collection.notes == "rejected":
            raise DatabaseError("check constraint violated")

    monkeypatch.setattr(_InMemoryCollectionWriter, "add", _add)

    result = engine.bulk_create(
        [
            BulkCreateItem(collected_at=T0, machine_id=machine.id, notes="first"),
            BulkCreateItem(collected_at=T0, machine_id=machine.id, notes="rejected"),
            BulkCreateItem(collected_at=T0, machine_id=machine.id, notes="third"),
        ],
        operator_id=operator_id,
    )

    assert (result.created, result.failed) == (2, 1)
    assert result.errors[0].index == 1
    assert result.errors[0].error == "check constraint violated"
    assert sorted(c.notes for c in store.committed_rows()) == ["first", "third"]


def test_bulk_create_commit_failure_propagates_without_side_effects(
    engine, store, machine, operator_id, report_cache, monkeypatch
):
    def _fail(_changes):
        raise DatabaseError("commit failed")

    monkeypatch.setattr(store, "apply", _fail)

    with pytest.raises(DatabaseError):
        engine.bulk_create(
            [
                BulkCreateItem(collected_at=T0, machine_id=machine.id),
                BulkCreateItem(collected_at=T0, machine_id=machine.id, amount=5),
            ],
            operator_id=operator_id,
        )

    monkeypatch.undo()
    assert store.committed_rows() == []
    assert report_cache.calls == []


def test_bulk_create_all_failed_does_not_commit(engine, store, operator_id, report_cache):
    result = engine.bulk_create(
        [BulkCreateItem(collected_at=T0, machine_id=uuid4())], operator_id=operator_id
    )

    assert (result.created, result.failed) == (0, 1)
    assert store.committed_rows() == []
    assert report_cache.calls == []


def test_bulk_create_rejects_empty_batch(engine, operator_id):
    result = engine.bulk_create([], operator_id=operator_id)

    assert result.error.code == CollectionErrorCode.VALIDATION_ERROR
    assert result.error.message == "At least one item is required"


def test_bulk_create_rejects_oversized_batch(small_engine, machine, operator_id):
    items = [BulkCreateItem(collected_at=T0, machine_id=machine.id) for _ in range(3)]

    result = small_engine.bulk_create(items, operator_id=operator_id)

    assert result.error.message == "Maximum 2 items per bulk create"
    assert result.created == 0


# =============================================================================
# Bulk cancel: ids mode
# =============================================================================


def test_bulk_cancel_by_ids(engine, store, machine, make_collection, report_cache):
    pending = make_collection(machine)
    received = make_collection(
        machine, status=CollectionStatus.RECEIVED, amount=Decimal("9.00")
    )
    cancelled = make_collection(machine, status=CollectionStatus.CANCELLED)
    missing = uuid4()

    result = engine.bulk_cancel(
        user_id=uuid4(), ids=[pending.id, received.id, cancelled.id, missing]
    )

    assert result.total == 4
    assert result.cancelled == 2
    assert result.failed == 2
    errors = {e.id: e.error for e in result.errors}
    assert errors == {cancelled.id: "Already cancelled", missing: "Collection not found"}
    assert store.committed_row(pending.id).status == CollectionStatus.CANCELLED
    assert store.committed_row(received.id).status == CollectionStatus.CANCELLED
    assert store.committed_history(pending.id)[0].reason == "Bulk cancellation"
    assert len(report_cache.calls) == 1


def test_bulk_cancel_deduplicates_ids(engine, machine, make_collection):
    collection = make_collection(machine)

    result = engine.bulk_cancel(
        user_id=uuid4(), ids=[collection.id, collection.id], reason="dup"
    )

    assert (result.total, result.cancelled, result.failed) == (1, 1, 0)


def test_bulk_cancel_unexpected_item_error_rolls_back_only_that_item(
    engine, store, machine, make_collection, monkeypatch
):
    first = make_collection(machine)
    broken = make_collection(machine)
    last = make_collection(machine)
    original_append = _InMemoryHistoryWriter.append

    def _append(self, entry):
        if entry.collection_id == broken.id:
            raise RuntimeError("history write failed")
        original_append(self, entry)

    monkeypatch.setattr(_InMemoryHistoryWriter, "append", _append)

    result = engine.bulk_cancel(user_id=uuid4(), ids=[first.id, broken.id, last.id])

    assert (result.total, result.cancelled, result.failed) == (3, 2, 1)
    assert [(e.id, e.error) for e in result.errors] == [
        (broken.id, "history write failed")
    ]
    assert store.committed_row(first.id).status == CollectionStatus.CANCELLED
    assert store.committed_row(last.id).status == CollectionStatus.CANCELLED
    assert store.committed_row(broken.id).status == CollectionStatus.COLLECTED
    assert store.committed_history(broken.id) == []


def test_bulk_cancel_nothing_cancelled_skips_cache(engine, report_cache):
    result = engine.bulk_cancel(user_id=uuid4(), ids=[uuid4()])

    assert result.cancelled == 0
    assert report_cache.calls == []


def test_bulk_cancel_requires_ids(engine):
    result = engine.bulk_cancel(user_id=uuid4(), ids=[])
    assert result.error.message == "ids are required when use_filters is false"


def test_bulk_cancel_limits_ids(small_engine):
    result = small_engine.bulk_cancel(user_id=uuid4(), ids=[uuid4() for _ in range(3)])
    assert result.error.message == "Maximum 2 ids per bulk cancel"


# =============================================================================
# Bulk cancel: filters mode
# =============================================================================


@pytest.mark.parametrize("filters", [None, CollectionSearchFilters()])
def test_bulk_cancel_filters_require_criteria(engine, store, machine, make_collection, filters):
    collection = make_collection(machine)

    result = engine.bulk_cancel(user_id=uuid4(), filters=filters, use_filters=True)

    assert result.error.code == CollectionErrorCode.VALIDATION_ERROR
    assert result.error.message == MISSING_FILTER_MESSAGE
    assert store.committed_row(collection.id).status == CollectionStatus.COLLECTED


def test_bulk_cancel_by_machine_filter(engine, store, machine, other_machine, make_collection):
    first = make_collection(machine)
    second = make_collection(machine, status=CollectionStatus.RECEIVED, amount=Decimal("1.00"))
    already = make_collection(machine, status=CollectionStatus.CANCELLED)
    untouched = make_collection(other_machine)

    result = engine.bulk_cancel(
        user_id=uuid4(),
        filters=CollectionSearchFilters(machine_id=machine.id),
        use_filters=True,
    )

    assert (result.total, result.cancelled, result.failed) == (2, 2, 0)
    assert store.committed_row(first.id).status == CollectionStatus.CANCELLED
    assert store.committed_row(second.id).status == CollectionStatus.CANCELLED
    assert store.committed_history(already.id) == []
    assert store.committed_row(untouched.id).status == CollectionStatus.COLLECTED


def test_bulk_cancel_date_filter_uses_business_day(engine, store, machine, make_collection):
    # Business day 2024-05-01 (+5) spans 2024-04-30T19:00Z .. 2024-05-01T18:59:59.999Z
    inside_early = make_collection(
        machine, collected_at=datetime(2024, 4, 30, 19, 0, tzinfo=timezone.utc)
    )
    inside_late = make_collection(
        machine, collected_at=datetime(2024, 5, 1, 18, 59, tzinfo=timezone.utc)
    )
    before = make_collection(
        machine, collected_at=datetime(2024, 4, 30, 18, 59, tzinfo=timezone.utc)
    )
    after = make_collection(
        machine, collected_at=datetime(2024, 5, 1, 19, 0, tzinfo=timezone.utc)
    )

    result = engine.bulk_cancel(
        user_id=uuid4(),
        filters=CollectionSearchFilters(
            date_from=date(2024, 5, 1), date_to=date(2024, 5, 1)
        ),
        use_filters=True,
    )

    assert result.cancelled == 2
    assert store.committed_row(inside_early.id).status == CollectionStatus.CANCELLED
    assert store.committed_row(inside_late.id).status == CollectionStatus.CANCELLED
    assert store.committed_row(before.id).status == CollectionStatus.COLLECTED
    assert store.committed_row(after.id).status == CollectionStatus.COLLECTED
