"""
tests/conftest.py

Shared fixtures: an in-memory SQLite store with the ORM schema, a seeded
account, and an AppContext wired against that store.
"""

from __future__ import annotations

import datetime as dt
import io
import uuid
from collections.abc import Callable, Iterator, Sequence
from typing import Any

import pytest
from openpyxl import Workbook
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401 registers all ORM models on Base.metadata
from app.config import AuthSettings, DashboardSettings, IngestionSettings
from app.context import AppContext, build_app_context
from app.domain.sales import CANONICAL_HEADERS, CanonicalSalesRecord
from db.base import Base
from db.models.user_account import UserAccount
from db.session import build_session_factory

TEST_SECRET_KEY = "test-secret-key-with-at-least-32-characters"


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker:
    return build_session_factory(engine)


@pytest.fixture()
def db_session(session_factory: sessionmaker) -> Iterator[Session]:
    with session_factory() as session:
        yield session


def _create_account(session_factory: sessionmaker, email: str) -> uuid.UUID:
    account_id = uuid.uuid4()
    with session_factory() as session:
        session.add(UserAccount(id=account_id, email=email, display_name="", password_hash="unused"))
        session.commit()
    return account_id


@pytest.fixture()
def owner_id(session_factory: sessionmaker) -> uuid.UUID:
    return _create_account(session_factory, "owner@example.com")


@pytest.fixture()
def other_owner_id(session_factory: sessionmaker) -> uuid.UUID:
    return _create_account(session_factory, "other@example.com")


@pytest.fixture()
def app_context(session_factory: sessionmaker) -> AppContext:
    return build_app_context(
        session_factory=session_factory,
        auth_settings=AuthSettings(secret_key=TEST_SECRET_KEY, min_password_length=6),
        ingestion_settings=IngestionSettings(max_rows=1000, log_rows=True),
        dashboard_settings=DashboardSettings(),
    )


@pytest.fixture()
def make_workbook() -> Callable[..., bytes]:
    """Factory returning .xlsx bytes for a header row plus data rows."""

    def _make(rows: Sequence[Sequence[Any]], headers: Sequence[Any] = CANONICAL_HEADERS) -> bytes:
        workbook = Workbook()
        sheet = workbook.active
        sheet.append(list(headers))
        for row in rows:
            sheet.append(list(row))
        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    return _make


def make_record(
    *,
    salesperson_name: str = "Ana",
    city: str = "La Ceiba",
    business_type: str = "Tienda",
    presentation: str = "500g",
    quantity: float = 1.0,
    date: dt.date = dt.date(2024, 1, 15),
    source_file: str | None = "ventas.xlsx",
    id: uuid.UUID | None = None,
) -> CanonicalSalesRecord:
    return CanonicalSalesRecord(
        salesperson_name=salesperson_name,
        city=city,
        business_type=business_type,
        presentation=presentation,
        quantity=quantity,
        date=date,
        source_file=source_file,
        id=id,
    )


@pytest.fixture()
def record_factory() -> Callable[..., CanonicalSalesRecord]:
    return make_record
