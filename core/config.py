"""Invoicing configuration."""

from pydantic import BaseModel, Field


class InvoiceConfig(BaseModel):
    """
    Invoicing configuration.

    Plan limits are checked against the owner invoice counter, which is
    separate from invoice numbering.
    """

    number_prefix: str = Field(
        default="INV",
        description="Leading literal of invoice numbers",
        pattern="^[A-Z]{2,8}$",
    )
    number_attempts: int = Field(
        default=3,
        description="How many numbers to try when a concurrent insert takes ours",
        ge=1,
        le=10,
    )
    free_plan_max_invoices: int = Field(
        default=5,
        description="Invoice limit for the free plan",
        ge=1,
    )
    default_currency: str = Field(
        default="USD",
        description="Currency used when a create request names none",
        pattern="^[A-Z]{3}$",
    )
    default_page_size: int = Field(
        default=10,
        description="Invoices per page when the request names no limit",
        ge=1,
        le=100,
    )
