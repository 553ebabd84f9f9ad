"""Invoice and customer tables as seen by the notification subsystem."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import DateTime, Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.constants import ID_LENGTH, SHORT_TEXT_LENGTH
from src.infrastructure.database.base import BaseModel, UserOwnedMixin


class InvoiceStatus(StrEnum):
    """Lifecycle states of an invoice."""

    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class Customer(UserOwnedMixin, BaseModel):
    """A customer invoices are issued to."""

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String(SHORT_TEXT_LENGTH), nullable=False)
    email: Mapped[str | None] = mapped_column(String(SHORT_TEXT_LENGTH))


class Invoice(UserOwnedMixin, BaseModel):
    """An invoice with the fields the sweeps and messages need.

    The customer is loaded eagerly with the invoice; every notification
    about an invoice names its customer.
    """

    __tablename__ = "invoices"

    invoice_number: Mapped[str] = mapped_column(String(64), nullable=False)
    customer_id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
    )
    due_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(InvoiceStatus, native_enum=False, length=16),
        default=InvoiceStatus.DRAFT,
        nullable=False,
        index=True,
    )
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    customer: Mapped[Customer] = relationship(lazy="joined")

    @property
    def customer_name(self) -> str | None:
        """Name of the invoiced customer, if loaded."""
        return self.customer.name if self.customer is not None else None
