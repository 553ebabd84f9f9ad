"""SQLAlchemy declarative base and common model fields.

Key components:
- **Naming conventions**: Standardized constraint names
- **Base class**: Configured declarative base with metadata
- **BaseModel**: Abstract model with id and timestamps
- **UserOwnedMixin**: Owner column for per-user records

The BaseModel provides:
- **Opaque string ID**: UUID4 text identifiers, generated client-side so a
  record's id is known before the INSERT is flushed
- **Timezone-aware timestamps**: UTC timestamps for global systems
- **Automatic updates**: updated_at field updates on modifications

Every record the notification subsystem reads or writes belongs to exactly
one user of the external authentication provider, identified by
``user_id``.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, MetaData, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.infrastructure.constants import ID_LENGTH, NAMING_CONVENTION, USER_ID_LENGTH


def generate_id() -> str:
    """Return a new random record identifier."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """SQLAlchemy declarative base with naming conventions."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class BaseModel(Base):
    """Abstract base model with common fields for all database models.

    This model provides:
    - Random string ID
    - Automatic created_at timestamp
    - Automatic updated_at timestamp (updates on modification)
    """

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        primary_key=True,
        default=generate_id,
        doc="Primary key, a random UUID4 string",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        doc="Timestamp when the record was created (UTC)",
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        doc="Timestamp when the record was last updated (UTC)",
    )

    def __repr__(self) -> str:
        """Return a string representation of the model instance.

        Returns:
            str: A string showing the model class name and ID
        """
        return f"<{self.__class__.__name__}(id={self.id})>"


class UserOwnedMixin:
    """Adds the owning user's identifier to a model."""

    user_id: Mapped[str] = mapped_column(
        String(USER_ID_LENGTH),
        index=True,
        nullable=False,
        doc="Identifier issued by the authentication provider",
    )
