"""
app/repositories/sales_record_repository.py

Owner-scoped persistence for sales records.

Every read and delete carries the owner id in its WHERE clause; there is no
unscoped accessor.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from app.domain.sales import CanonicalSalesRecord, SalesRecordInput
from db.models.sales_record import SalesRecord

_DEFAULT_BATCH_SIZE = 1000


class SalesRecordRepository:
    """
    Repository for sales record reads, bulk inserts, and deletes.

    The caller owns the transaction: nothing here commits.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def list_by_owner(self, owner_id: uuid.UUID) -> list[CanonicalSalesRecord]:
        """
        Return every record of *owner_id*, newest date first.
        """

        stmt = (
            select(SalesRecord)
            .where(SalesRecord.owner_id == owner_id)
            .order_by(SalesRecord.date.desc(), SalesRecord.created_at.desc())
        )
        return [to_domain(row) for row in self._session.scalars(stmt)]

    def bulk_insert(
        self,
        rows: Sequence[SalesRecordInput],
        *,
        owner_id: uuid.UUID,
        source_file: str | None,
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> list[uuid.UUID]:
        """
        Insert *rows* in submission order and return the assigned ids.
        """

        if not rows:
            return []

        payloads: list[dict[str, Any]] = [
            {
                "id": uuid.uuid4(),
                "owner_id": owner_id,
                "salesperson_name": row.salesperson_name,
                "city": row.city,
                "business_type": row.business_type,
                "presentation": row.presentation,
                "quantity": row.quantity,
                "date": row.date,
                "source_file": source_file,
            }
            for row in rows
        ]

        size = max(1, batch_size)
        inserted: list[uuid.UUID] = []
        for start in range(0, len(payloads), size):
            chunk = payloads[start : start + size]
            stmt = insert(SalesRecord).values(chunk).returning(SalesRecord.id)
            inserted.extend(self._session.scalars(stmt).all())
        return inserted

    def delete_by_id(self, *, owner_id: uuid.UUID, record_id: uuid.UUID) -> int:
        """
        Delete one record of *owner_id*. Returns the number of rows removed.
        """

        stmt = delete(SalesRecord).where(
            SalesRecord.owner_id == owner_id,
            SalesRecord.id == record_id,
        )
        return self._session.execute(stmt).rowcount or 0

    def delete_by_ids(self, *, owner_id: uuid.UUID, record_ids: Iterable[uuid.UUID]) -> int:
        """
        Delete a set of records of *owner_id*. Ids owned by others are ignored.
        """

        ids = list(dict.fromkeys(record_ids))
        if not ids:
            return 0
        stmt = delete(SalesRecord).where(
            SalesRecord.owner_id == owner_id,
            SalesRecord.id.in_(ids),
        )
        return self._session.execute(stmt).rowcount or 0


def to_domain(row: SalesRecord) -> CanonicalSalesRecord:
    return CanonicalSalesRecord(
        id=row.id,
        owner_id=row.owner_id,
        salesperson_name=row.salesperson_name or "",
        city=row.city or "",
        business_type=row.business_type or "",
        presentation=row.presentation or "",
        quantity=float(row.quantity or 0.0),
        date=row.date,
        source_file=row.source_file,
    )
