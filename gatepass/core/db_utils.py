import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def safe_rollback(db: AsyncSession) -> bool:
    """Roll back the session's transaction.

    A failed rollback leaves the server-side transaction (and any row locks it
    holds) in an unknown state, so the connection is invalidated instead of
    being returned to the pool.
    """
    try:
        await db.rollback()
        return True
    except Exception:
        logger.critical("CRITICAL: Failed to rollback transaction", exc_info=True)
        try:
            await db.invalidate()
        except Exception:
            logger.exception("Failed to invalidate connection after rollback failure")
        return False


@asynccontextmanager
async def db_transaction(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """Commit on success, roll back on any exception raised inside the block."""
    try:
        yield db
        await db.commit()
    except BaseException:
        await safe_rollback(db)
        raise
