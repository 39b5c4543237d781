"""
Name: Collection Input Validation

Responsibilities:
  - Validate amounts, notes and coordinates before opening a transaction.
  - Return CollectionError values (never raise) so use cases stay linear.

Collaborators:
  - domain.collection_policy (normalize_amount / amount_in_bounds)
  - collection_results (CollectionError)
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional, Tuple

from ....domain.collection_policy import amount_in_bounds, normalize_amount
from .collection_results import CollectionError, validation_error

MAX_NOTES_CHARS = 1000
MAX_REASON_CHARS = 1000


def parse_amount(
    value, *, minimum: int, maximum: int
) -> Tuple[Optional[Decimal], Optional[CollectionError]]:
    amount = normalize_amount(value)
    if amount is None:
        return None, validation_error("Amount must be a number")
    if not amount_in_bounds(amount, minimum=minimum, maximum=maximum):
        return None, validation_error(
            f"Amount must be between {minimum} and {maximum}"
        )
    return amount, None


def validate_notes(notes: Optional[str]) -> Optional[CollectionError]:
    if notes is not None and len(notes) > MAX_NOTES_CHARS:
        return validation_error(f"Notes must be at most {MAX_NOTES_CHARS} characters")
    return None


def validate_reason(reason: Optional[str], *, required: bool) -> Optional[CollectionError]:
    if reason is None or not reason.strip():
        if required:
            return validation_error("Reason is required")
        return None
    if len(reason) > MAX_REASON_CHARS:
        return validation_error(
            f"Reason must be at most {MAX_REASON_CHARS} characters"
        )
    return None


def validate_coordinates(
    latitude: Optional[float], longitude: Optional[float]
) -> Optional[CollectionError]:
    if latitude is not None and not -90 <= latitude <= 90:
        return validation_error("Latitude must be between -90 and 90")
    if longitude is not None and not -180 <= longitude <= 180:
        return validation_error("Longitude must be between -180 and 180")
    return None
