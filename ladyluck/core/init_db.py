# ladyluck/core/init_db.py
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from ladyluck.core.db import Base, engine

# registers tables on Base.metadata
from ladyluck.models import lady_luck_state, wallet  # noqa: F401

logger = logging.getLogger(__name__)

# One global lock id for schema bootstrap (any int64 is fine)
BOOTSTRAP_LOCK_ID = 924173


async def ensure_schema(bind: AsyncEngine | None = None) -> None:
    """
    Creates missing tables (idempotent, existing tables are left alone).

    On PostgreSQL the bootstrap runs under pg_advisory_xact_lock so several
    instances starting at once do not race on CREATE TABLE.
    """
    bind = bind or engine

    async with bind.begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.exec_driver_sql(f"SELECT pg_advisory_xact_lock({BOOTSTRAP_LOCK_ID});")
        await conn.run_sync(Base.metadata.create_all)

    logger.info("schema ready (%s)", bind.dialect.name)
