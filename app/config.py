"""
app/config.py

Environment-driven settings for ingestion, auth and the dashboard.

Each settings object is read once per process; tests construct their own
instances instead of touching the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

_DEFAULT_PAGE_SIZES: tuple[int, ...] = (5, 10, 20, 50)
_TRUTHY = {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    load_env_files()


def _env(name: str) -> str | None:
    """Stripped value of *name*; unset and blank both read as None."""
    _load_env_once()
    value = (os.getenv(name) or "").strip()
    return value or None


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    return default if value is None else value.lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class IngestionSettings:
    """
    Runtime settings for workbook ingestion.
    """

    max_rows: int = 50_000
    log_rows: bool = False


@dataclass(frozen=True)
class AuthSettings:
    """
    Token signing and session lifetime settings.
    """

    secret_key: str | None = None
    algorithm: str = "HS256"
    token_ttl_minutes: int = 60 * 12
    min_password_length: int = 6


@dataclass(frozen=True)
class DashboardSettings:
    """
    Presentation defaults shared by the API and the Streamlit dashboard.
    """

    brand: str = "frijolitos"
    title: str = "Frijolitos Costeños"
    default_page_size: int = 10
    page_sizes: tuple[int, ...] = _DEFAULT_PAGE_SIZES
    report_top_n: int = 10


@lru_cache(maxsize=1)
def get_ingestion_settings() -> IngestionSettings:
    """
    Return cached ingestion settings from environment variables.
    """

    return IngestionSettings(
        max_rows=max(1, _env_int("INGEST_MAX_ROWS", 50_000)),
        log_rows=_env_bool("INGEST_LOG_ROWS", False),
    )


@lru_cache(maxsize=1)
def get_auth_settings() -> AuthSettings:
    """
    Return cached auth settings. The secret key is validated at API startup.
    """

    return AuthSettings(
        secret_key=_env("AUTH_SECRET_KEY"),
        algorithm=_env("AUTH_ALGORITHM") or "HS256",
        token_ttl_minutes=max(1, _env_int("AUTH_TOKEN_TTL_MINUTES", 60 * 12)),
        min_password_length=max(1, _env_int("AUTH_MIN_PASSWORD_LENGTH", 6)),
    )


@lru_cache(maxsize=1)
def get_dashboard_settings() -> DashboardSettings:
    """
    Return cached dashboard presentation settings.
    """

    default_page_size = _env_int("DASHBOARD_PAGE_SIZE", 10)
    if default_page_size not in _DEFAULT_PAGE_SIZES:
        default_page_size = 10

    return DashboardSettings(
        brand=_env("DASHBOARD_BRAND") or "frijolitos",
        title=_env("DASHBOARD_TITLE") or "Frijolitos Costeños",
        default_page_size=default_page_size,
        report_top_n=max(1, _env_int("REPORT_TOP_N", 10)),
    )
