"""FastAPI dependency injection for database session management.

Key features:
- **Automatic cleanup**: Sessions are properly closed after each request
- **Transaction management**: Auto-commit on success, rollback on error
- **Type safety**: Annotated type for clear dependency declaration

Repository dependencies for the notification endpoints are built on top of
``DatabaseSession`` in ``src.api.dependencies``.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.session import get_async_session


async def get_db() -> AsyncGenerator[AsyncSession]:
    """Provide a database session for FastAPI dependency injection.

    Yields:
        AsyncGenerator[AsyncSession]: A session committed when the request
            handler returns and rolled back if it raises.

    Example:
        @router.get("/notifications")
        async def list_notifications(db: DatabaseSession): ...
    """
    async with get_async_session() as session:
        yield session


# Type alias for cleaner dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
