"""
Name: Remove Collection Use Case Tests

Responsibilities:
  - Validate the removal log entry written before the purge
  - Validate history purge and record deletion
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from vendcash.application.usecases.collections import CollectionErrorCode
from vendcash.domain.entities import CollectionStatus

pytestmark = pytest.mark.unit


def test_remove_logs_removal_then_purges(
    engine, store, machine, make_collection, manager_id, report_cache
):
    collection = make_collection(machine, notes="to be removed")
    engine.receive(collection.id, manager_id=manager_id, amount=40)
    admin_id = uuid4()

    result = engine.remove(collection.id, user_id=admin_id)

    assert result.success is True
    assert result.error is None
    assert store.committed_row(collection.id) is None
    assert store.committed_history(collection.id) == []

    (removal,) = store.removals()
    assert removal.collection_id == collection.id
    assert removal.removed_by_id == admin_id
    assert removal.field_name == "deleted"
    assert removal.new_value == "deleted"
    assert removal.reason == "Deleted by admin"
    assert removal.purged_history_count == 2
    assert removal.snapshot["status"] == "received"
    assert removal.snapshot["amount"] == "40.00"
    assert removal.snapshot["notes"] == "to be removed"
    assert len(report_cache.calls) == 2


def test_remove_works_from_any_state(engine, store, machine, make_collection):
    cancelled = make_collection(machine, status=CollectionStatus.CANCELLED)
    received = make_collection(
        machine, status=CollectionStatus.RECEIVED, amount=Decimal("1.00")
    )

    assert engine.remove(cancelled.id, user_id=uuid4()).success
    assert engine.remove(received.id, user_id=uuid4()).success
    assert store.committed_rows() == []
    assert {r.purged_history_count for r in store.removals()} == {0}


def test_remove_unknown_collection(engine, store, report_cache):
    result = engine.remove(uuid4(), user_id=uuid4())

    assert result.success is False
    assert result.error.code == CollectionErrorCode.NOT_FOUND
    assert store.removals() == []
    assert report_cache.calls == []


def test_removed_collection_has_no_history_result(engine, machine, make_collection):
    collection = make_collection(machine)
    engine.remove(collection.id, user_id=uuid4())

    assert engine.get_history(collection.id).error.code == CollectionErrorCode.NOT_FOUND
    assert engine.find_by_id(collection.id).error.code == CollectionErrorCode.NOT_FOUND
