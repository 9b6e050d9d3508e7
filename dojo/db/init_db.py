"""Create the fee engine tables. Run with `python -m dojo.db.init_db`."""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

import dojo.core.models  # noqa: F401  registers every table on Base.metadata
from dojo.core.logging_config import configure_logging
from dojo.db.session import Base, engine

logger = logging.getLogger(__name__)


async def create_schema(target: AsyncEngine) -> None:
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema ready: %s", ", ".join(sorted(Base.metadata.tables)))


async def main() -> None:
    configure_logging()
    try:
        await create_schema(engine)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
