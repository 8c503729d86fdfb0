"""
Handlers keeping the owner invoice counter in step.

The counter only feeds the free-plan quota. It counts live invoices: created
and duplicated invoices add one, deleted invoices give one back.
"""

import logging
from typing import Callable

from core.events import InvoiceCreated, InvoiceDeleted

logger = logging.getLogger(__name__)


def handle_invoice_created(auth_db) -> Callable:
    """
    Factory that returns an InvoiceCreated handler.

    Args:
        auth_db: AuthDatabase instance

    Returns:
        Handler callable that increments the owner's invoice count
    """

    def handler(event: InvoiceCreated):
        auth_db.increment_invoice_count(event.invoice.user_id)

    return handler


def handle_invoice_deleted(auth_db) -> Callable:
    """
    Factory that returns an InvoiceDeleted handler.

    Args:
        auth_db: AuthDatabase instance

    Returns:
        Handler callable that decrements the owner's invoice count
    """

    def handler(event: InvoiceDeleted):
        auth_db.decrement_invoice_count(event.invoice.user_id)

    return handler
