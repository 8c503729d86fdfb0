"""Propagate the authenticated owner through the call stack using contextvars.

Every invoice and customer belongs to one user (the owner). The auth
middleware sets the owner for the duration of a request; services read it
instead of taking an owner argument on every call.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from uuid import UUID

_current_user_id: ContextVar[UUID | None] = ContextVar("current_user_id", default=None)


def get_current_user_id() -> UUID:
    """
    Get the owner of the current request.

    Raises RuntimeError if no user context is set. Reaching owner-scoped code
    without an authenticated request is a bug, not a case to default.
    """
    user_id = _current_user_id.get()
    if user_id is None:
        raise RuntimeError(
            "No user context set. Owner-scoped code was called outside of "
            "an authenticated request."
        )
    return user_id


def set_current_user_id(user_id: UUID) -> None:
    """Set the owner. Called by the auth middleware after validating the token."""
    _current_user_id.set(user_id)


def clear_current_user_id() -> None:
    """Clear the owner. The middleware calls this in a finally block."""
    _current_user_id.set(None)


@contextmanager
def user_context(user_id: UUID):
    """
    Temporarily act as `user_id`, restoring the previous owner afterwards.

    Used by tests and by maintenance scripts that walk every owner's invoices.

    Example:
        with user_context(owner_id):
            invoice_service.list_invoices(InvoiceFilter())
    """
    previous = _current_user_id.get()
    set_current_user_id(user_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_user_id()
        else:
            set_current_user_id(previous)
