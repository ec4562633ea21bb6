"""
app/services/sales_aggregation_service.py

Deterministic aggregation engine for the analytics views.

Every method is a pure function of an in-memory record sequence: no
database access, no clock reads, no mutation of the input. The caller loads
the owner's records once and passes them in.

Views
-----
sum_by_city / sum_by_business   group-sum of quantity, first-seen key order
monthly_series                  YYYY-MM buckets, ascending, undated excluded
top_salespeople                 group-sum by salesperson, descending, top N
kpis                            count, total, rounded mean, distinct cities
source_files                    per-upload record count and latest date
"""

from __future__ import annotations

import datetime as dt
import logging
import math
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from app.domain.sales import CanonicalSalesRecord

logger = logging.getLogger(__name__)

UNSPECIFIED_LABEL = "Sin especificar"
NO_SALESPERSON_LABEL = "Sin vendedor"
NO_DATE_LABEL = "Sin fecha"
NO_SOURCE_FILE_LABEL = "Sin archivo"

DEFAULT_TOP_N = 10

_MONTH_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})")


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GroupTotal:
    """One labelled bucket of summed quantity."""

    label: str
    value: float


@dataclass(frozen=True)
class MonthlyPoint:
    """Summed quantity for one ``YYYY-MM`` month."""

    month: str
    value: float


@dataclass(frozen=True)
class SalesKPIs:
    """
    Scalar headline figures.

    ``mean_quantity`` is rounded half-up to the nearest integer and is 0
    for an empty collection.
    """

    record_count: int
    total_quantity: float
    mean_quantity: int
    distinct_cities: int
    distinct_businesses: int


@dataclass(frozen=True)
class SourceFileSummary:
    """Provenance of one upload: how many records it left and their latest date."""

    source_file: str
    record_count: int
    latest_date: dt.date | None


@dataclass(frozen=True)
class AnalyticsSnapshot:
    """All derived views for one record collection."""

    kpis: SalesKPIs
    by_city: list[GroupTotal] = field(default_factory=list)
    by_business: list[GroupTotal] = field(default_factory=list)
    monthly: list[MonthlyPoint] = field(default_factory=list)
    top_salespeople: list[GroupTotal] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def month_key(value: Any) -> str:
    """
    Return ``YYYY-MM`` for a date-like value, or NO_DATE_LABEL.

    Strings are matched on their literal prefix before any parsing so a
    ``2024-01-31T23:00:00-06:00`` timestamp stays in January.
    """

    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc)
        return f"{value.year:04d}-{value.month:02d}"
    if isinstance(value, dt.date):
        return f"{value.year:04d}-{value.month:02d}"
    if value is None:
        return NO_DATE_LABEL

    text = str(value).strip()
    match = _MONTH_PREFIX_RE.match(text)
    if match:
        return f"{match.group(1)}-{match.group(2)}"
    try:
        parsed = dt.datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return NO_DATE_LABEL
    return month_key(parsed)


def ranked(totals: Sequence[GroupTotal]) -> list[GroupTotal]:
    """Descending by value; ties keep their encounter order."""
    return sorted(totals, key=lambda item: item.value, reverse=True)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class SalesAggregationService:
    """
    Stateless analytics calculator over CanonicalSalesRecord sequences.
    """

    def group_sum(
        self,
        records: Sequence[CanonicalSalesRecord],
        key: Callable[[CanonicalSalesRecord], str],
        *,
        empty_label: str = UNSPECIFIED_LABEL,
    ) -> list[GroupTotal]:
        """
        Sum quantity per key; empty keys fall into *empty_label*.
        """

        buckets: dict[str, float] = {}
        for record in records:
            label = key(record) or empty_label
            buckets[label] = buckets.get(label, 0.0) + (record.quantity or 0.0)
        return [GroupTotal(label=label, value=value) for label, value in buckets.items()]

    def sum_by_city(self, records: Sequence[CanonicalSalesRecord]) -> list[GroupTotal]:
        return self.group_sum(records, lambda record: record.city)

    def sum_by_business(self, records: Sequence[CanonicalSalesRecord]) -> list[GroupTotal]:
        return self.group_sum(records, lambda record: record.business_type)

    def monthly_series(self, records: Sequence[CanonicalSalesRecord]) -> list[MonthlyPoint]:
        """
        Month buckets sorted ascending. The undated bucket is not plotted.
        """

        buckets: dict[str, float] = {}
        for record in records:
            key = month_key(record.date)
            buckets[key] = buckets.get(key, 0.0) + (record.quantity or 0.0)

        undated = buckets.pop(NO_DATE_LABEL, None)
        if undated is not None:
            logger.debug("Monthly series dropped undated bucket total=%s", undated)
        return [MonthlyPoint(month=month, value=buckets[month]) for month in sorted(buckets)]

    def top_salespeople(
        self,
        records: Sequence[CanonicalSalesRecord],
        *,
        limit: int = DEFAULT_TOP_N,
    ) -> list[GroupTotal]:
        totals = self.group_sum(
            records,
            lambda record: record.salesperson_name,
            empty_label=NO_SALESPERSON_LABEL,
        )
        return ranked(totals)[: max(0, limit)]

    def kpis(self, records: Sequence[CanonicalSalesRecord]) -> SalesKPIs:
        count = len(records)
        total = sum((record.quantity or 0.0) for record in records)
        return SalesKPIs(
            record_count=count,
            total_quantity=total,
            mean_quantity=_round_half_up(total / count) if count else 0,
            distinct_cities=len({record.city for record in records if record.city}),
            distinct_businesses=len({record.business_type for record in records if record.business_type}),
        )

    def source_files(self, records: Sequence[CanonicalSalesRecord]) -> list[SourceFileSummary]:
        """
        One entry per upload file, most recently dated first.
        """

        counts: dict[str, int] = {}
        latest: dict[str, dt.date | None] = {}
        for record in records:
            name = record.source_file or NO_SOURCE_FILE_LABEL
            counts[name] = counts.get(name, 0) + 1
            current = latest.get(name)
            if current is None or (record.date is not None and record.date > current):
                latest[name] = record.date

        summaries = [
            SourceFileSummary(source_file=name, record_count=count, latest_date=latest.get(name))
            for name, count in counts.items()
        ]
        return sorted(
            summaries,
            key=lambda item: item.latest_date or dt.date.min,
            reverse=True,
        )

    def distinct_values(
        self,
        records: Sequence[CanonicalSalesRecord],
        key: Callable[[CanonicalSalesRecord], str],
    ) -> list[str]:
        """Sorted non-empty distinct values, for filter dropdowns."""
        return sorted({value for value in (key(record) for record in records) if value})

    def snapshot(
        self,
        records: Sequence[CanonicalSalesRecord],
        *,
        top_n: int = DEFAULT_TOP_N,
    ) -> AnalyticsSnapshot:
        """
        Build every analytics view for one record collection.
        """

        return AnalyticsSnapshot(
            kpis=self.kpis(records),
            by_city=self.sum_by_city(records),
            by_business=self.sum_by_business(records),
            monthly=self.monthly_series(records),
            top_salespeople=self.top_salespeople(records, limit=top_n),
        )
