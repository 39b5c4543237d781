"""
Name: Receive / Edit / Cancel Use Case Tests

Responsibilities:
  - Validate state transitions and their audit entries
  - Validate cache invalidation happens only after real changes
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from vendcash.application.usecases.collections import CollectionErrorCode
from vendcash.application.usecases.collections.receive_collection import (
    RECEIVE_AMOUNT_REASON,
    RECEIVE_STATUS_REASON,
)
from vendcash.domain.entities import CollectionStatus

pytestmark = pytest.mark.unit


def _fields(entries):
    return sorted(entry.field_name for entry in entries)


# =============================================================================
# Receive
# =============================================================================


def test_receive_sets_amount_manager_and_audit(
    engine, store, machine, make_collection, manager_id, report_cache
):
    collection = make_collection(machine)

    result = engine.receive(collection.id, manager_id=manager_id, amount="1500.5")

    assert result.error is None
    received = result.collection
    assert received.status == CollectionStatus.RECEIVED
    assert received.amount == Decimal("1500.50")
    assert received.manager_id == manager_id
    assert received.received_at is not None
    assert received.machine == machine

    history = store.committed_history(collection.id)
    by_field = {entry.field_name: entry for entry in history}
    assert _fields(history) == ["amount", "status"]
    assert by_field["status"].old_value == "collected"
    assert by_field["status"].new_value == "received"
    assert by_field["status"].reason == RECEIVE_STATUS_REASON
    assert by_field["amount"].old_value is None
    assert by_field["amount"].new_value == "1500.50"
    assert by_field["amount"].reason == RECEIVE_AMOUNT_REASON
    assert all(entry.changed_by_id == manager_id for entry in history)
    assert len(report_cache.calls) == 1


def test_receive_keeps_notes_unless_given(engine, machine, make_collection, manager_id):
    kept = make_collection(machine, notes="bag 7")
    replaced = make_collection(machine, notes="bag 8")

    assert engine.receive(kept.id, manager_id=manager_id, amount=10).collection.notes == "bag 7"
    assert (
        engine.receive(
            replaced.id, manager_id=manager_id, amount=10, notes="counted twice"
        ).collection.notes
        == "counted twice"
    )


def test_receive_with_empty_notes_keeps_existing(engine, machine, make_collection, manager_id):
    collection = make_collection(machine, notes="bag 9")

    result = engine.receive(collection.id, manager_id=manager_id, amount=10, notes="")

    assert result.collection.notes == "bag 9"


@pytest.mark.parametrize("status", [CollectionStatus.RECEIVED, CollectionStatus.CANCELLED])
def test_receive_rejects_non_pending(engine, store, machine, make_collection, manager_id, status):
    collection = make_collection(machine, status=status, amount=Decimal("5.00"))

    result = engine.receive(collection.id, manager_id=manager_id, amount=100)

    assert result.error.code == CollectionErrorCode.INVALID_STATE
    assert result.error.message == f"Cannot receive collection with status {status.value}"
    assert store.committed_history(collection.id) == []


@pytest.mark.parametrize("amount", [0, "0.50", -1, 1_000_000_001, "abc", None])
def test_receive_rejects_invalid_amount(engine, machine, make_collection, manager_id, amount):
    collection = make_collection(machine)

    result = engine.receive(collection.id, manager_id=manager_id, amount=amount)

    assert result.error.code == CollectionErrorCode.VALIDATION_ERROR


@pytest.mark.parametrize("amount", [10**30, "1e30", Decimal("9" * 40)])
def test_receive_rejects_huge_amount_as_validation_error(
    engine, store, machine, make_collection, manager_id, amount
):
    collection = make_collection(machine)

    result = engine.receive(collection.id, manager_id=manager_id, amount=amount)

    assert result.error.code == CollectionErrorCode.VALIDATION_ERROR
    assert result.error.message.startswith("Amount must be between")
    assert store.committed_row(collection.id).status == CollectionStatus.COLLECTED


def test_edit_rejects_huge_amount_as_validation_error(engine, machine, make_collection):
    collection = make_collection(
        machine, status=CollectionStatus.RECEIVED, amount=Decimal("1.00")
    )

    result = engine.edit(collection.id, user_id=uuid4(), amount="1e30", reason="typo")

    assert result.error.code == CollectionErrorCode.VALIDATION_ERROR


def test_receive_accepts_bounds(engine, machine, make_collection, manager_id):
    low = make_collection(machine)
    high = make_collection(machine)

    assert engine.receive(low.id, manager_id=manager_id, amount=1).error is None
    assert engine.receive(high.id, manager_id=manager_id, amount=1_000_000_000).error is None


def test_receive_unknown_collection(engine, manager_id, report_cache):
    result = engine.receive(uuid4(), manager_id=manager_id, amount=100)

    assert result.error.code == CollectionErrorCode.NOT_FOUND
    assert report_cache.calls == []


# =============================================================================
# Edit
# =============================================================================


def test_edit_changes_amount_with_reason(engine, store, machine, make_collection, manager_id):
    collection = make_collection(
        machine, status=CollectionStatus.RECEIVED, amount=Decimal("100.00")
    )
    editor = uuid4()

    result = engine.edit(collection.id, user_id=editor, amount=120, reason="Recount")

    assert result.error is None
    assert result.collection.amount == Decimal("120.00")
    history = store.committed_history(collection.id)
    assert len(history) == 1
    entry = history[0]
    assert (entry.field_name, entry.old_value, entry.new_value) == (
        "amount",
        "100.00",
        "120.00",
    )
    assert entry.reason == "Recount"
    assert entry.changed_by_id == editor


def test_edit_allows_zero_amount(engine, machine, make_collection):
    collection = make_collection(
        machine, status=CollectionStatus.RECEIVED, amount=Decimal("10.00")
    )
    result = engine.edit(collection.id, user_id=uuid4(), amount=0, reason="Empty box")
    assert result.collection.amount == Decimal("0.00")


def test_edit_with_same_amount_is_noop(engine, store, machine, make_collection, report_cache):
    collection = make_collection(
        machine, status=CollectionStatus.RECEIVED, amount=Decimal("100.00")
    )

    result = engine.edit(collection.id, user_id=uuid4(), amount="100", reason="Check")

    assert result.error is None
    assert store.committed_history(collection.id) == []
    assert report_cache.calls == []


def test_edit_records_notes_change(engine, store, machine, make_collection):
    collection = make_collection(
        machine, status=CollectionStatus.RECEIVED, amount=Decimal("100.00"), notes="a"
    )

    engine.edit(collection.id, user_id=uuid4(), amount=100, reason="Fix", notes="b")

    history = store.committed_history(collection.id)
    assert _fields(history) == ["notes"]
    assert (history[0].old_value, history[0].new_value) == ("a", "b")
    assert store.committed_row(collection.id).notes == "b"


@pytest.mark.parametrize("reason", ["", "   ", None])
def test_edit_requires_reason(engine, machine, make_collection, reason):
    collection = make_collection(
        machine, status=CollectionStatus.RECEIVED, amount=Decimal("1.00")
    )

    result = engine.edit(collection.id, user_id=uuid4(), amount=2, reason=reason)

    assert result.error.code == CollectionErrorCode.VALIDATION_ERROR
    assert result.error.message == "Reason is required"


@pytest.mark.parametrize("status", [CollectionStatus.COLLECTED, CollectionStatus.CANCELLED])
def test_edit_requires_received(engine, machine, make_collection, status):
    collection = make_collection(machine, status=status)

    result = engine.edit(collection.id, user_id=uuid4(), amount=2, reason="x")

    assert result.error.code == CollectionErrorCode.INVALID_STATE


# =============================================================================
# Cancel
# =============================================================================


@pytest.mark.parametrize("status", [CollectionStatus.COLLECTED, CollectionStatus.RECEIVED])
def test_cancel_from_active_states(engine, store, machine, make_collection, status):
    amount = Decimal("3.00") if status == CollectionStatus.RECEIVED else None
    collection = make_collection(machine, status=status, amount=amount)
    user_id = uuid4()

    result = engine.cancel(collection.id, user_id=user_id, reason="Wrong machine")

    assert result.error is None
    assert store.committed_row(collection.id).status == CollectionStatus.CANCELLED
    history = store.committed_history(collection.id)
    assert len(history) == 1
    assert history[0].old_value == status.value
    assert history[0].new_value == "cancelled"
    assert history[0].reason == "Wrong machine"


def test_cancel_uses_default_reason(engine, store, machine, make_collection):
    collection = make_collection(machine)

    engine.cancel(collection.id, user_id=uuid4())

    assert store.committed_history(collection.id)[0].reason == "Cancelled by user"


def test_cancel_twice_fails(engine, store, machine, make_collection, report_cache):
    collection = make_collection(machine)
    engine.cancel(collection.id, user_id=uuid4())

    second = engine.cancel(collection.id, user_id=uuid4())

    assert second.error.code == CollectionErrorCode.ALREADY_CANCELLED
    assert len(store.committed_history(collection.id)) == 1
    assert len(report_cache.calls) == 1


def test_cancelled_is_terminal(engine, machine, make_collection, manager_id):
    collection = make_collection(machine)
    engine.cancel(collection.id, user_id=uuid4())

    assert (
        engine.receive(collection.id, manager_id=manager_id, amount=5).error.code
        == CollectionErrorCode.INVALID_STATE
    )
    assert (
        engine.edit(collection.id, user_id=uuid4(), amount=5, reason="x").error.code
        == CollectionErrorCode.INVALID_STATE
    )


def test_cancel_unknown_collection(engine):
    result = engine.cancel(uuid4(), user_id=uuid4())
    assert result.error.code == CollectionErrorCode.NOT_FOUND
