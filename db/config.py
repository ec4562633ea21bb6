"""
db/config.py

Environment file loading and database URL resolution.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_FILES: tuple[str, ...] = (".env", ".env.local")
CLOUD_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})
_URL_ENV_NAMES: tuple[str, ...] = ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, value = line.split("=", 1)
    key = key.strip()
    if not key:
        return None
    return key, value.strip().strip('"').strip("'")


def load_env_files(root: Path = PROJECT_ROOT, filenames: Sequence[str] = ENV_FILES) -> list[Path]:
    """
    Load KEY=VALUE pairs from the project env files that exist.

    Variables already in the process environment win. Returns the files read.
    """

    loaded: list[Path] = []
    for filename in filenames:
        env_path = root / filename
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw_line)
            if parsed is not None and parsed[0] not in os.environ:
                os.environ[parsed[0]] = parsed[1]
        loaded.append(env_path)
    return loaded


def normalize_postgres_url(url: str) -> str:
    """
    Rewrite ``postgres://`` and bare ``postgresql://`` URLs to the psycopg 3 driver.
    """

    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def resolve_database_url() -> str:
    """
    Resolve the store URL from the environment.

    Priority:
    1) DATABASE_URL
    2) CLOUD_DATABASE_URL when ENVIRONMENT is cloud-like
    3) LOCAL_DATABASE_URL
    """

    load_env_files()

    direct_url = (os.getenv("DATABASE_URL") or "").strip()
    if direct_url:
        return normalize_postgres_url(direct_url)

    environment = os.getenv("ENVIRONMENT", "local").strip().lower()
    cloud_url = (os.getenv("CLOUD_DATABASE_URL") or "").strip()
    if environment in CLOUD_ENVIRONMENTS and cloud_url:
        return normalize_postgres_url(cloud_url)

    local_url = (os.getenv("LOCAL_DATABASE_URL") or "").strip()
    if local_url:
        return normalize_postgres_url(local_url)

    raise RuntimeError(
        "No database URL configured. Set one of: " + ", ".join(_URL_ENV_NAMES) + "."
    )
