"""Commit/rollback wrapper shared by the SQL repositories."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from survey_agent.errors import PersistenceFailure
from survey_agent.telemetry import get_logger
from survey_agent.telemetry.events import PERSISTENCE_FAILURE

log = get_logger(__name__)


@asynccontextmanager
async def committing(db: AsyncSession, operation: str) -> AsyncIterator[AsyncSession]:
    """Run writes and commit them, or roll back and raise PersistenceFailure.

    Args:
        db: Database session.
        operation: Short name used in the log event and error text.
    """
    try:
        yield db
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        log.error(PERSISTENCE_FAILURE, operation=operation, error=str(e), exc_info=True)
        raise PersistenceFailure(f"{operation} failed") from e


@asynccontextmanager
async def reading(operation: str) -> AsyncIterator[None]:
    """Translate read errors into PersistenceFailure."""
    try:
        yield
    except SQLAlchemyError as e:
        log.error(PERSISTENCE_FAILURE, operation=operation, error=str(e), exc_info=True)
        raise PersistenceFailure(f"{operation} failed") from e
