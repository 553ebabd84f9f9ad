"""Database infrastructure with async PostgreSQL and repository pattern.

Core components:
- **base**: Declarative base, common model fields and the owner mixin
- **session**: Async engine and session management
- **repository**: Generic repository with CRUD and bulk conditional operations
- **dependencies**: FastAPI dependency injection helpers

All database operations are async-first, using PostgreSQL through the
asyncpg driver.
"""

from src.infrastructure.database.base import Base, BaseModel, UserOwnedMixin
from src.infrastructure.database.dependencies import DatabaseSession, get_db
from src.infrastructure.database.repository import BaseRepository
from src.infrastructure.database.session import (
    check_database_connection,
    close_database,
    create_database_engine,
    get_async_session,
    get_engine,
    get_session_factory,
)

__all__ = [
    "Base",
    "BaseModel",
    "BaseRepository",
    "DatabaseSession",
    "UserOwnedMixin",
    "check_database_connection",
    "close_database",
    "create_database_engine",
    "get_async_session",
    "get_db",
    "get_engine",
    "get_session_factory",
]
