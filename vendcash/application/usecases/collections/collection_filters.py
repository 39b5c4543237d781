"""
Name: Collection Search Filters

Responsibilities:
  - Represent caller-facing filters (business calendar days, not UTC instants).
  - Translate them into a domain CollectionFilter with UTC bounds.

Collaborators:
  - domain.business_time (day_start_utc / day_end_utc)
  - bulk_cancel_collections, collection_queries
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional
from uuid import UUID

from ....domain.business_time import day_end_utc, day_start_utc
from ....domain.entities import CollectionFilter, CollectionSource, CollectionStatus


@dataclass(frozen=True)
class CollectionSearchFilters:
    status: Optional[CollectionStatus] = None
    machine_id: Optional[UUID] = None
    operator_id: Optional[UUID] = None
    source: Optional[CollectionSource] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def has_criteria(self) -> bool:
        return any(
            value is not None
            for value in (
                self.status,
                self.machine_id,
                self.operator_id,
                self.source,
                self.date_from,
                self.date_to,
            )
        )

    def to_query(self, utc_offset_hours: int) -> CollectionFilter:
        return CollectionFilter(
            status=self.status,
            machine_id=self.machine_id,
            operator_id=self.operator_id,
            source=self.source,
            collected_from=(
                day_start_utc(self.date_from, utc_offset_hours)
                if self.date_from
                else None
            ),
            collected_to=(
                day_end_utc(self.date_to, utc_offset_hours) if self.date_to else None
            ),
        )
