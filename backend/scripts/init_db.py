#!/usr/bin/env python3
"""Create (or rebuild) the marketplace schema and reporting views.

For managed environments prefer `alembic upgrade head`; this script is for
local databases and throwaway SQLite files.

Examples:
  python backend/scripts/init_db.py
  python backend/scripts/init_db.py --drop --database-url sqlite+aiosqlite:///./coopmarket.db
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Add backend/ to path when run as a script.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import structlog

from core.config import get_settings
from db import views  # noqa: F401  registers view DDL on the metadata
from db.models import Base
from db.session import build_engine

logger = structlog.get_logger()


async def init_db(database_url: str, drop: bool = False) -> None:
    engine = build_engine(database_url)
    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
            logger.info("schema.dropped")
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    logger.info("schema.created", tables=len(Base.metadata.tables), views=len(views.VIEWS))


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the marketplace schema")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables and views first")
    args = parser.parse_args()

    asyncio.run(init_db(args.database_url or get_settings().database_url, drop=args.drop))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
