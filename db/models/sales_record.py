"""
db/models/sales_record.py

One persisted sales row, owned by exactly one user account.
"""

from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import Date, DateTime, Float, ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class SalesRecord(Base):
    __tablename__ = "sales_records"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("user_accounts.id", ondelete="CASCADE"),
        nullable=False,
        comment="Account that uploaded the row; the only read/delete scope",
    )
    salesperson_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    business_type: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    presentation: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    quantity: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        comment="Units sold; finite and non-negative",
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    source_file: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Original upload file name",
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_sales_records_owner_id", "owner_id"),
        Index("ix_sales_records_owner_date", "owner_id", "date"),
        Index("ix_sales_records_source_file", "source_file"),
    )
