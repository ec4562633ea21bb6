"""
Create the sales dashboard tables on an empty database.

Existing tables are left untouched; this is not a migration tool.

Usage:
    python scripts/init_db.py
"""

from __future__ import annotations

import logging

from sqlalchemy import inspect

import db.models  # noqa: F401 registers all ORM models on Base.metadata
from db.base import Base
from db.session import get_engine

logger = logging.getLogger("init_db")


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    engine = get_engine()
    existing = set(inspect(engine).get_table_names())
    Base.metadata.create_all(engine)
    created = sorted(set(Base.metadata.tables) - existing)

    if created:
        logger.info("Created tables: %s", ", ".join(created))
    else:
        logger.info("All tables already exist; nothing to do")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
