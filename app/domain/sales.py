"""
app/domain/sales.py

Domain models shared by ingestion, aggregation, querying, and export.
"""

from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass

CANONICAL_HEADERS: tuple[str, ...] = (
    "Vendedor-usuario",
    "Ciudad",
    "Negocio",
    "Presentacion",
    "Venta",
    "Fecha",
)


@dataclass(frozen=True)
class SalesRecordInput:
    """
    One normalized spreadsheet row, prepared for persistence.
    """

    salesperson_name: str
    city: str
    business_type: str
    presentation: str
    quantity: float
    date: dt.date


@dataclass(frozen=True)
class CanonicalSalesRecord:
    """
    A sales record as loaded back from the store for one owner.

    ``id`` is None only for records that were never persisted.
    """

    salesperson_name: str
    city: str
    business_type: str
    presentation: str
    quantity: float
    date: dt.date
    owner_id: uuid.UUID | None = None
    source_file: str | None = None
    id: uuid.UUID | None = None

    def as_row(self) -> tuple[str, str, str, str, float, dt.date]:
        """Values in CANONICAL_HEADERS order."""
        return (
            self.salesperson_name,
            self.city,
            self.business_type,
            self.presentation,
            self.quantity,
            self.date,
        )


@dataclass(frozen=True)
class IngestionSummary:
    """
    End-of-run ingestion summary.
    """

    rows_processed: int
    source_file: str
    record_ids: tuple[uuid.UUID, ...] = ()
