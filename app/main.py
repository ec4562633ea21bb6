"""
app/main.py

FastAPI entrypoint for the sales dashboard API.

Startup order: environment validation, logging, then (in the lifespan) a
database probe, the schema check and the application context.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

logger = logging.getLogger(__name__)

_ALLOWED_PAGE_SIZES = {"5", "10", "20", "50"}


def _validate_env() -> None:
    """
    Fail fast on missing or invalid settings.

    Every problem is collected first so one restart fixes them all. The API
    only serves PostgreSQL; SQLite URLs are reserved for tests.
    """

    from db.config import load_env_files

    load_env_files()
    errors: list[str] = []

    database_url = next(
        (
            value
            for value in (
                os.getenv("DATABASE_URL", "").strip(),
                os.getenv("CLOUD_DATABASE_URL", "").strip(),
                os.getenv("LOCAL_DATABASE_URL", "").strip(),
            )
            if value
        ),
        "",
    )
    if not database_url:
        errors.append("No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL or LOCAL_DATABASE_URL.")
    elif database_url.startswith("sqlite"):
        errors.append("SQLite database URLs are not permitted for the API.")

    secret_key = os.getenv("AUTH_SECRET_KEY", "").strip()
    if len(secret_key) < 32:
        errors.append("AUTH_SECRET_KEY must be set to at least 32 characters.")

    page_size = os.getenv("DASHBOARD_PAGE_SIZE", "").strip()
    if page_size and page_size not in _ALLOWED_PAGE_SIZES:
        errors.append(f"DASHBOARD_PAGE_SIZE={page_size!r} must be one of 5, 10, 20, 50.")

    if errors:
        raise RuntimeError("Invalid configuration:\n" + "\n".join(f"  - {error}" for error in errors))


def _configure_logging() -> None:
    level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _probe_database() -> None:
    """SELECT 1 through the shared session factory."""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    from db.session import get_session_factory

    try:
        with get_session_factory()() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise RuntimeError("Sales store is unreachable.") from exc


def _require_tables() -> None:
    """
    Every ORM table must already exist; nothing is created here.
    """

    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401 registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    existing = set(sa_inspect(get_engine()).get_table_names())
    missing = sorted(set(Base.metadata.tables) - existing)
    if missing:
        logger.critical("Missing tables=%s; run scripts/init_db.py and restart", missing)
        raise RuntimeError(f"Missing tables: {', '.join(missing)}. Run scripts/init_db.py and restart.")


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    from app.context import build_app_context

    _probe_database()
    _require_tables()
    application.state.context = build_app_context()
    logger.info("Sales API ready")
    yield


def create_app() -> FastAPI:
    _validate_env()
    _configure_logging()

    from app.api.routers import analytics_router, auth_router, export_router, records_router

    application = FastAPI(title="Frijolitos Sales API", version="1.0.0", lifespan=_lifespan)
    for router in (auth_router, records_router, analytics_router, export_router):
        application.include_router(router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
