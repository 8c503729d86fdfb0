"""Core domain models."""

from core.models.customer import Address, Customer, CustomerCreate, CustomerUpdate
from core.models.invoice import (
    CustomerSummary,
    Invoice,
    InvoiceCreate,
    InvoiceFilter,
    InvoicePage,
    InvoiceStatus,
    InvoiceSummary,
    InvoiceTemplate,
    InvoiceTotals,
    InvoiceUpdate,
    LineItem,
    LineItemInput,
    Pagination,
)

__all__ = [
    # Customer
    "Address", "Customer", "CustomerCreate", "CustomerUpdate",
    # Invoice
    "CustomerSummary", "Invoice", "InvoiceCreate", "InvoiceFilter", "InvoicePage",
    "InvoiceStatus", "InvoiceSummary", "InvoiceTemplate", "InvoiceTotals",
    "InvoiceUpdate", "LineItem", "LineItemInput", "Pagination",
]
