"""Create tables for a fresh database."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from revtrail.core.logging import logger
from revtrail.db.session import get_engine
from revtrail.models import Base


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    """Create every revtrail table that does not exist yet."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Initialized {len(Base.metadata.tables)} tables")
