"""
db/session.py

Engine and session factory for the sales store.

The API and the Streamlit client share one lazily created PostgreSQL engine
per process. Tests build their own engine and pass it to
``build_session_factory``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.config import resolve_database_url


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, "").strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class EngineOptions:
    """
    Connection pool options, read from SQL_ECHO and DB_POOL_*.
    """

    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_recycle: int = 1800

    @classmethod
    def from_env(cls) -> EngineOptions:
        return cls(
            echo=_env_flag("SQL_ECHO"),
            pool_size=_env_int("DB_POOL_SIZE", cls.pool_size),
            max_overflow=_env_int("DB_MAX_OVERFLOW", cls.max_overflow),
            pool_recycle=_env_int("DB_POOL_RECYCLE", cls.pool_recycle),
        )


def create_db_engine(
    database_url: str | None = None,
    options: EngineOptions | None = None,
) -> Engine:
    """
    PostgreSQL engine with pre-ping enabled.

    Raises RuntimeError for any other dialect.
    """

    url = database_url or resolve_database_url()
    if not url.startswith("postgresql"):
        raise RuntimeError("The sales store requires a PostgreSQL database URL.")

    opts = options or EngineOptions.from_env()
    return create_engine(
        url,
        echo=opts.echo,
        pool_pre_ping=True,
        pool_size=opts.pool_size,
        max_overflow=opts.max_overflow,
        pool_recycle=opts.pool_recycle,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    """Sessions that never autoflush and keep loaded attributes after commit."""
    return sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        expire_on_commit=False,
    )


_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())
    return _session_factory
