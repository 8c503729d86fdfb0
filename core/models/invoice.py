"""Invoice domain models.

Money is Decimal end to end. The engine rounds the four monetary totals to two
places; line item amounts keep full precision. On the JSON boundary amounts
are rendered as numbers.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field, PlainSerializer, field_validator

from utils.timezone import assume_utc

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
Percent = Annotated[
    Decimal,
    # Stored as NUMERIC(7, 4)
    Field(ge=0, le=100, decimal_places=4),
    PlainSerializer(float, return_type=float, when_used="json"),
]


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class InvoiceTemplate(str, Enum):
    """PDF layout variant."""

    DEFAULT = "default"
    MODERN = "modern"
    MINIMAL = "minimal"
    PROFESSIONAL = "professional"


class LineItemInput(BaseModel):
    """A line item as submitted. Any `amount` sent along is ignored."""

    description: str = Field(..., min_length=1, max_length=200)
    quantity: Money = Field(..., gt=0)
    rate: Money = Field(..., ge=0)
    amount: Money | None = None

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Item description is required")
        return value


class LineItem(BaseModel):
    """A stored line item. `amount` is always quantity * rate."""

    description: str
    quantity: Money
    rate: Money
    amount: Money


class InvoiceTotals(BaseModel):
    """Derived totals of an invoice. Rates are carried through unchecked."""

    subtotal: Money
    tax_rate: Money
    tax_amount: Money
    discount_rate: Money
    discount_amount: Money
    total: Money


def _normalize_date(value: datetime | None) -> datetime | None:
    return assume_utc(value) if value is not None else None


class InvoiceCreate(BaseModel):
    """Data required to create an invoice."""

    customer_id: UUID
    items: list[LineItemInput] = Field(..., min_length=1)
    due_date: datetime
    tax_rate: Percent = Decimal("0")
    discount_rate: Percent = Decimal("0")
    currency: str | None = Field(None, pattern="^[A-Za-z]{3}$")
    notes: str | None = Field(None, max_length=1000)
    terms: str | None = Field(None, max_length=1000)
    template: InvoiceTemplate = InvoiceTemplate.DEFAULT

    @field_validator("due_date")
    @classmethod
    def utc_due_date(cls, value: datetime) -> datetime:
        return _normalize_date(value)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: str | None) -> str | None:
        return value.upper() if value else value


class InvoiceUpdate(BaseModel):
    """
    Data that can be updated on an invoice. All fields optional.

    `paid_date` distinguishes "not sent" from "sent as null": an explicit null
    clears the paid marker. Clearing the paid marker of a paid invoice needs
    `revert_status`, the status the invoice falls back to.
    """

    customer_id: UUID | None = None
    items: list[LineItemInput] | None = Field(None, min_length=1)
    due_date: datetime | None = None
    tax_rate: Percent | None = None
    discount_rate: Percent | None = None
    currency: str | None = Field(None, pattern="^[A-Za-z]{3}$")
    notes: str | None = Field(None, max_length=1000)
    terms: str | None = Field(None, max_length=1000)
    template: InvoiceTemplate | None = None
    status: InvoiceStatus | None = None
    paid_date: datetime | None = None
    revert_status: InvoiceStatus | None = None

    @field_validator("due_date", "paid_date")
    @classmethod
    def utc_dates(cls, value: datetime | None) -> datetime | None:
        return _normalize_date(value)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: str | None) -> str | None:
        return value.upper() if value else value

    @field_validator("revert_status")
    @classmethod
    def revert_status_not_paid(cls, value: InvoiceStatus | None) -> InvoiceStatus | None:
        if value == InvoiceStatus.PAID:
            raise ValueError("revert_status cannot be 'paid'")
        return value

    @property
    def clears_paid_date(self) -> bool:
        """True if the caller explicitly sent paid_date = null."""
        return "paid_date" in self.model_fields_set and self.paid_date is None


class CustomerSummary(BaseModel):
    """Customer fields attached to invoices in responses."""

    id: UUID
    name: str
    email: str
    company: str | None = None


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: UUID
    user_id: UUID
    customer_id: UUID
    invoice_number: str
    status: InvoiceStatus
    items: list[LineItem]
    subtotal: Money
    tax_rate: Percent
    tax_amount: Money
    discount_rate: Percent
    discount_amount: Money
    total: Money
    currency: str
    issue_date: datetime
    due_date: datetime
    paid_date: datetime | None = None
    notes: str | None = None
    terms: str | None = None
    template: InvoiceTemplate = InvoiceTemplate.DEFAULT
    created_at: datetime
    updated_at: datetime
    customer: CustomerSummary | None = None

    model_config = {"from_attributes": True}


class InvoiceFilter(BaseModel):
    """List filter and page selection."""

    status: InvoiceStatus | None = None
    search: str | None = Field(None, max_length=200)
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Pagination(BaseModel):
    """Page position returned alongside a list."""

    current: int
    pages: int
    total: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        pages = -(-total // limit)  # ceil
        return cls(
            current=page,
            pages=pages,
            total=total,
            has_next=page < pages,
            has_prev=page > 1,
        )


class InvoiceSummary(BaseModel):
    """Per-status counts and revenue over all of an owner's invoices."""

    total: int = 0
    draft: int = 0
    sent: int = 0
    paid: int = 0
    overdue: int = 0
    cancelled: int = 0
    total_revenue: Money = Decimal("0")
    paid_revenue: Money = Decimal("0")


class InvoicePage(BaseModel):
    """Result of listing invoices."""

    invoices: list[Invoice]
    pagination: Pagination
    summary: InvoiceSummary
