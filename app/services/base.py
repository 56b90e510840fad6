"""
Shared helpers for services that talk to the conversation store.

SQLAlchemy errors never leave the service layer: the session is rolled back,
the failure is logged, and a StorageError is raised in its place.
"""

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import StorageError

logger = logging.getLogger(__name__)


async def commit_or_raise(db: AsyncSession, operation: str) -> None:
    """Commit the current transaction or roll it back and raise StorageError."""
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Database error while trying to {operation}: {e}")
        raise StorageError(f"Failed to {operation}", original_error=e) from e


async def execute_or_raise(db: AsyncSession, statement: Any, operation: str):
    """Execute a statement, converting store failures into StorageError."""
    try:
        return await db.execute(statement)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Database error while trying to {operation}: {e}")
        raise StorageError(f"Failed to {operation}", original_error=e) from e


async def flush_or_raise(db: AsyncSession, operation: str) -> None:
    """Flush pending changes without committing, converting store failures into StorageError."""
    try:
        await db.flush()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Database error while trying to {operation}: {e}")
        raise StorageError(f"Failed to {operation}", original_error=e) from e


async def refresh_or_raise(db: AsyncSession, instance: Any, operation: str) -> None:
    """Reload a committed row, converting store failures into StorageError."""
    try:
        await db.refresh(instance)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Database error while trying to {operation}: {e}")
        raise StorageError(f"Failed to {operation}", original_error=e) from e
