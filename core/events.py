"""
Domain events for invoicing.

Immutable records of what happened to an invoice. The invoice service
publishes them after the write has committed; handlers (owner counters,
customer notification) react without the service knowing who listens.

Events carry the full invoice so handlers never re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class InvoicerEvent:
    """Base class for all domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


@dataclass(frozen=True)
class InvoiceEvent(InvoicerEvent):
    """Events related to invoice lifecycle."""
    invoice: Any = None  # Invoice; Any avoids importing models here

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceEvent":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoiceCreated(InvoiceEvent):
    """Invoice was created or duplicated."""


@dataclass(frozen=True)
class InvoiceSent(InvoiceEvent):
    """Invoice moved to sent."""


@dataclass(frozen=True)
class InvoicePaid(InvoiceEvent):
    """Invoice moved to paid.

    Extension point for payment integrations; no handler is registered by
    default.
    """


@dataclass(frozen=True)
class InvoiceDeleted(InvoiceEvent):
    """Invoice was hard deleted. Carries the state at deletion."""
