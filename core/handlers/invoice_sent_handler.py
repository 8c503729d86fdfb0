"""
Handler for InvoiceSent events.

Emails the customer that an invoice is waiting for them.
"""

import logging
from typing import Callable

from core.events import InvoiceSent
from core.pdf import format_date, format_money

logger = logging.getLogger(__name__)


def handle_invoice_sent(email_client, app_name: str = "Invoicer") -> Callable:
    """
    Factory that returns an InvoiceSent handler.

    Args:
        email_client: EmailGatewayClient instance
        app_name: Product name used in the email signature

    Returns:
        Handler callable that notifies the invoice's customer
    """

    def handler(event: InvoiceSent):
        invoice = event.invoice
        if invoice.customer is None:
            logger.warning("Invoice %s has no customer attached; not emailing", invoice.id)
            return

        body = (
            f"Hello {invoice.customer.name},\n\n"
            f"Invoice {invoice.invoice_number} for "
            f"{format_money(invoice.total, invoice.currency)} "
            f"is due on {format_date(invoice.due_date)}.\n\n"
            f"-- {app_name}"
        )

        email_client.send_email(
            to=invoice.customer.email,
            subject=f"Invoice {invoice.invoice_number}",
            body=body,
            sender="billing",
        )

    return handler
