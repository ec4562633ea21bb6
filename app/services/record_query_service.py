"""
app/services/record_query_service.py

Filter / sort / paginate engine for the records table.

Operates purely on an in-memory record sequence. Applying the same
FilterSpec, SortSpec, and PageRequest twice to the same input yields the
same PageResult.
"""

from __future__ import annotations

import datetime as dt
import math
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Literal

from app.domain.sales import CanonicalSalesRecord

SortDirection = Literal["asc", "desc"]

SORT_FIELDS: tuple[str, ...] = (
    "salesperson_name",
    "city",
    "business_type",
    "presentation",
    "quantity",
    "date",
    "source_file",
)
PAGE_SIZES: tuple[int, ...] = (5, 10, 20, 50)
DEFAULT_PAGE_SIZE = 10

_SEARCH_FIELDS: tuple[str, ...] = ("salesperson_name", "city", "business_type", "presentation")


# ---------------------------------------------------------------------------
# Specifications
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FilterSpec:
    """
    Conjunctive record filter. ``None`` or empty criteria always pass.
    """

    city: str | None = None
    business: str | None = None
    quantity_min: float | None = None
    quantity_max: float | None = None
    source_file: str | None = None
    search_text: str | None = None

    def matches(self, record: CanonicalSalesRecord) -> bool:
        if self.city and record.city != self.city:
            return False
        if self.business and record.business_type != self.business:
            return False

        quantity = record.quantity or 0.0
        if self.quantity_min is not None and quantity < self.quantity_min:
            return False
        if self.quantity_max is not None and quantity > self.quantity_max:
            return False

        if self.source_file and record.source_file != self.source_file:
            return False

        needle = (self.search_text or "").strip().lower()
        if needle:
            haystack = (str(getattr(record, name) or "").lower() for name in _SEARCH_FIELDS)
            if not any(needle in value for value in haystack):
                return False
        return True


@dataclass(frozen=True)
class SortSpec:
    field: str = "date"
    direction: SortDirection = "desc"

    def __post_init__(self) -> None:
        if self.field not in SORT_FIELDS:
            raise ValueError(f"Unknown sort field {self.field!r}. Valid: {list(SORT_FIELDS)}")
        if self.direction not in ("asc", "desc"):
            raise ValueError(f"Unknown sort direction {self.direction!r}.")


def toggle_sort(current: SortSpec, field_name: str) -> SortSpec:
    """
    Re-selecting the active field flips direction; a new field starts ascending.
    """

    if current.field == field_name:
        return SortSpec(field=field_name, direction="desc" if current.direction == "asc" else "asc")
    return SortSpec(field=field_name, direction="asc")


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page_size <= 0:
            raise ValueError("page_size must be positive.")


@dataclass(frozen=True)
class PageResult:
    """
    One page of sorted, filtered records plus pagination bookkeeping.
    """

    items: list[CanonicalSalesRecord]
    total: int
    page: int
    page_size: int
    total_pages: int

    @property
    def start_index(self) -> int:
        """1-based index of the first item on the page, 0 when empty."""
        return (self.page - 1) * self.page_size + 1 if self.items else 0

    @property
    def end_index(self) -> int:
        return (self.page - 1) * self.page_size + len(self.items)


def total_pages_for(total: int, page_size: int) -> int:
    return max(1, math.ceil(total / page_size))


def clamp_page(page: int, *, total: int, page_size: int) -> int:
    return min(max(1, page), total_pages_for(total, page_size))


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _sort_key(record: CanonicalSalesRecord, field_name: str) -> Any:
    value = getattr(record, field_name)
    if field_name == "date":
        if value is None:
            return 0.0
        moment = dt.datetime(value.year, value.month, value.day, tzinfo=dt.timezone.utc)
        return moment.timestamp()
    if field_name == "quantity":
        return float(value or 0.0)
    return str(value or "").lower()


class RecordQueryService:
    """
    Stateless filter / sort / paginate pipeline.
    """

    def filter_records(
        self,
        records: Sequence[CanonicalSalesRecord],
        filters: FilterSpec,
    ) -> list[CanonicalSalesRecord]:
        return [record for record in records if filters.matches(record)]

    def sort_records(
        self,
        records: Sequence[CanonicalSalesRecord],
        sort: SortSpec,
    ) -> list[CanonicalSalesRecord]:
        return sorted(
            records,
            key=lambda record: _sort_key(record, sort.field),
            reverse=sort.direction == "desc",
        )

    def paginate(
        self,
        records: Sequence[CanonicalSalesRecord],
        request: PageRequest,
    ) -> PageResult:
        total = len(records)
        pages = total_pages_for(total, request.page_size)
        page = clamp_page(request.page, total=total, page_size=request.page_size)
        start = (page - 1) * request.page_size
        return PageResult(
            items=list(records[start : start + request.page_size]),
            total=total,
            page=page,
            page_size=request.page_size,
            total_pages=pages,
        )

    def query(
        self,
        records: Sequence[CanonicalSalesRecord],
        *,
        filters: FilterSpec | None = None,
        sort: SortSpec | None = None,
        page: PageRequest | None = None,
    ) -> PageResult:
        """
        Filter, then sort, then slice one page.
        """

        matched = self.filter_records(records, filters or FilterSpec())
        ordered = self.sort_records(matched, sort or SortSpec())
        return self.paginate(ordered, page or PageRequest())


# ---------------------------------------------------------------------------
# Table view state
# ---------------------------------------------------------------------------


@dataclass
class TableViewState:
    """
    Mutable view state of the records table.

    Any filter or page-size change returns to page 1; sorting keeps the page.
    """

    filters: FilterSpec = field(default_factory=FilterSpec)
    sort: SortSpec = field(default_factory=SortSpec)
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def set_filters(self, filters: FilterSpec) -> None:
        if filters != self.filters:
            self.filters = filters
            self.page = 1

    def update_filters(self, **changes: Any) -> None:
        self.set_filters(replace(self.filters, **changes))

    def set_page_size(self, page_size: int) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive.")
        if page_size != self.page_size:
            self.page_size = page_size
            self.page = 1

    def select_sort(self, field_name: str) -> None:
        self.sort = toggle_sort(self.sort, field_name)

    def go_to_page(self, page: int) -> None:
        self.page = max(1, page)

    def reset_page(self) -> None:
        self.page = 1

    def page_request(self) -> PageRequest:
        return PageRequest(page=self.page, page_size=self.page_size)
