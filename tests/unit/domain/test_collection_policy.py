"""
Name: Collection Policy Tests

Responsibilities:
  - Validate the state machine and amount normalization rules
"""

from decimal import Decimal

import pytest

from vendcash.domain.collection_policy import (
    amount_in_bounds,
    can_cancel,
    can_edit,
    can_receive,
    can_transition,
    format_audit_value,
    normalize_amount,
)
from vendcash.domain.entities import CollectionStatus

pytestmark = pytest.mark.unit

COLLECTED = CollectionStatus.COLLECTED
RECEIVED = CollectionStatus.RECEIVED
CANCELLED = CollectionStatus.CANCELLED


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        (COLLECTED, RECEIVED, True),
        (COLLECTED, CANCELLED, True),
        (RECEIVED, CANCELLED, True),
        (RECEIVED, COLLECTED, False),
        (CANCELLED, COLLECTED, False),
        (CANCELLED, RECEIVED, False),
        (CANCELLED, CANCELLED, False),
    ],
)
def test_transitions(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_operation_guards():
    assert can_receive(COLLECTED)
    assert not can_receive(RECEIVED)
    assert can_edit(RECEIVED)
    assert not can_edit(COLLECTED)
    assert not can_edit(CANCELLED)
    assert can_cancel(COLLECTED) and can_cancel(RECEIVED)
    assert not can_cancel(CANCELLED)


def test_normalize_amount_quantizes_to_cents():
    assert normalize_amount(150000) == Decimal("150000.00")
    assert normalize_amount("12.345") == Decimal("12.35")
    assert normalize_amount(0.1) == Decimal("0.10")


def test_normalize_amount_keeps_magnitudes_beyond_precision():
    assert normalize_amount(10**30) == Decimal(10**30)
    assert normalize_amount("1e30") == Decimal("1e30")


@pytest.mark.parametrize("value", [None, True, "abc", float("nan"), float("inf"), []])
def test_normalize_amount_rejects_non_numbers(value):
    assert normalize_amount(value) is None


def test_amount_bounds_are_inclusive():
    assert amount_in_bounds(Decimal("1"), minimum=1, maximum=10)
    assert amount_in_bounds(Decimal("10"), minimum=1, maximum=10)
    assert not amount_in_bounds(Decimal("0.99"), minimum=1, maximum=10)


def test_format_audit_value():
    assert format_audit_value(None) is None
    assert format_audit_value(RECEIVED) == "received"
    assert format_audit_value(Decimal("5")) == "5.00"
