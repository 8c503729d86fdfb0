"""Typed exceptions for invoicing failures.

The HTTP layer maps each of these to a status code (see api/errors.py).
Anything not derived from InvoicerError propagates as a server failure.
"""


class InvoicerError(Exception):
    """Base class for domain errors."""


class ValidationError(InvoicerError):
    """Input has the wrong shape for the operation (bad item, rate, date or status)."""


class NotFoundError(InvoicerError):
    """
    Entity does not exist or is not owned by the caller.

    The two cases are deliberately indistinguishable to the caller.
    """

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} {entity_id} not found")


class UniquenessConflict(InvoicerError):
    """
    Insert collided with a unique index.

    For invoice numbers the caller regenerates the number and retries.
    """

    def __init__(self, message: str, constraint: str | None = None):
        self.constraint = constraint
        super().__init__(message)


class DataIntegrityError(InvoicerError):
    """Persisted data is in a shape the engine refuses to guess around."""


class QuotaExceededError(InvoicerError):
    """Owner reached the invoice limit of their plan."""

    def __init__(self, current_count: int, max_invoices: int, plan: str):
        self.current_count = current_count
        self.max_invoices = max_invoices
        self.plan = plan
        super().__init__(
            "Invoice limit reached. Upgrade to Pro for unlimited invoices."
        )


class CustomerInUseError(InvoicerError):
    """Customer still has invoices and cannot be deleted."""

    def __init__(self, customer_id, invoice_count: int):
        self.customer_id = customer_id
        self.invoice_count = invoice_count
        super().__init__(
            f"Customer {customer_id} has {invoice_count} invoice(s); delete them first"
        )
