"""Base repository pattern implementation for database operations.

This module provides a generic repository base class that implements
creation, counting and the bulk conditional statements the notification
repositories and sweeps rely on, for SQLAlchemy models using async patterns.

Bulk operations take SQLAlchemy column expressions rather than keyword
filters so callers can express ranges (``created_at < cutoff``) and
compound predicates without leaving the repository.
"""

from collections.abc import Mapping
from typing import Any

from loguru import logger
from sqlalchemy import ColumnElement, func, select
from sqlalchemy import delete as sql_delete
from sqlalchemy import update as sql_update
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.base import BaseModel


class BaseRepository[T: BaseModel]:
    """Base repository class providing shared write and count operations.

    Args:
        session: The async SQLAlchemy session to use for operations.
        model_class: The SQLAlchemy model class this repository manages.

    Example:
        class InvoiceRepository(BaseRepository[Invoice]):
            def __init__(self, session: AsyncSession) -> None:
                super().__init__(session, Invoice)
    """

    def __init__(self, session: AsyncSession, model_class: type[T]) -> None:
        self.session = session
        self.model_class = model_class

    @property
    def _name(self) -> str:
        return self.model_class.__name__

    async def create(self, obj: T) -> T:
        """Create a new model instance in the database.

        Args:
            obj: The model instance to create.

        Returns:
            T: The created model instance with populated ID and timestamps.
        """
        self.session.add(obj)
        await self.session.flush()

        # Refresh to get server-generated values (timestamps)
        await self.session.refresh(obj)

        logger.info("Created {} instance with ID: {}", self._name, obj.id)
        return obj

    async def delete_many(self, *conditions: ColumnElement[bool]) -> int:
        """Delete every row matching all ``conditions``.

        Returns:
            int: Number of rows deleted.
        """
        stmt = sql_delete(self.model_class).where(*conditions)
        result: Any = await self.session.execute(stmt)
        deleted = int(result.rowcount or 0)

        logger.debug("Deleted {} {} rows", deleted, self._name)
        return deleted

    async def update_many(
        self, values: Mapping[str, object], *conditions: ColumnElement[bool]
    ) -> int:
        """Apply ``values`` to every row matching all ``conditions``.

        The statement is a single conditional UPDATE, so a row changed by a
        concurrent transaction in between no longer matches and is skipped.

        Returns:
            int: Number of rows updated.
        """
        stmt = (
            sql_update(self.model_class)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result: Any = await self.session.execute(stmt)
        updated = int(result.rowcount or 0)

        logger.debug(
            "Updated {} {} rows - fields: {}", updated, self._name, list(values)
        )
        return updated

    async def count(self, *conditions: ColumnElement[bool]) -> int:
        """Count instances matching all ``conditions`` (all rows if none)."""
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await self.session.execute(stmt)
        return result.scalar() or 0
