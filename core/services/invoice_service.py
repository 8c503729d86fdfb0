"""
Invoice service.

Orchestrates the invoice engine (numbering, totals, status rules) over the
repositories. Every operation is scoped to the owner in the current user
context. Writes are audited and announced on the event bus afterwards.
"""

import logging
from uuid import UUID, uuid4

from auth.database import AuthDatabase
from auth.types import User
from core.audit import AuditLogger, AuditAction, compute_changes
from core.config import InvoiceConfig
from core.event_bus import EventBus
from core.events import InvoiceCreated, InvoiceDeleted, InvoicePaid, InvoiceSent
from core.exceptions import NotFoundError, QuotaExceededError, UniquenessConflict, ValidationError
from core.lifecycle import LifecycleState, StatusChange, resolve_status
from core.models import (
    Customer,
    CustomerSummary,
    Invoice,
    InvoiceCreate,
    InvoiceFilter,
    InvoicePage,
    InvoiceStatus,
    InvoiceSummary,
    InvoiceUpdate,
    Pagination,
)
from core.numbering import next_invoice_number
from core.pdf import render_invoice_pdf
from core.repositories import CustomerRepository, InvoiceRepository
from core.totals import compute_totals, normalize_items
from utils.timezone import Clock, now_utc
from utils.user_context import get_current_user_id

logger = logging.getLogger(__name__)

# Statuses an invoice can be sent from
_SENDABLE = {InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.OVERDUE}


def _summary_of(customer: Customer | None) -> CustomerSummary | None:
    if customer is None:
        return None
    return CustomerSummary(
        id=customer.id,
        name=customer.name,
        email=customer.email,
        company=customer.company,
    )


class InvoiceService:
    """Service for invoice operations."""

    def __init__(
        self,
        invoices: InvoiceRepository,
        customers: CustomerRepository,
        accounts: AuthDatabase,
        audit: AuditLogger,
        event_bus: EventBus,
        config: InvoiceConfig | None = None,
        clock: Clock = now_utc,
    ):
        self.invoices = invoices
        self.customers = customers
        self.accounts = accounts
        self.audit = audit
        self.event_bus = event_bus
        self.config = config or InvoiceConfig()
        self.clock = clock

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _owner(self, owner_id: UUID) -> User:
        owner = self.accounts.get_user_by_id(owner_id)
        if owner is None:
            raise NotFoundError("user", owner_id)
        return owner

    def _check_quota(self, owner_id: UUID) -> None:
        """
        Raises:
            QuotaExceededError: If the owner's plan allows no more invoices.
        """
        owner = self._owner(owner_id)
        if not owner.can_create_invoice:
            raise QuotaExceededError(owner.invoice_count, owner.max_invoices, owner.plan.value)

    def _customer(self, owner_id: UUID, customer_id: UUID) -> Customer:
        customer = self.customers.get_by_id(owner_id, customer_id)
        if customer is None:
            raise NotFoundError("customer", customer_id)
        return customer

    def _with_customer(self, invoice: Invoice, customer: Customer | None) -> Invoice:
        return invoice.model_copy(update={"customer": _summary_of(customer)})

    def _insert_numbered(self, owner_id: UUID, fields: dict) -> Invoice:
        """
        Insert a new invoice under a freshly generated number.

        A concurrent insert can take the proposed number first; the unique
        index rejects ours and a new number is generated.

        Raises:
            UniquenessConflict: If every attempt collided.
        """
        attempts = self.config.number_attempts

        for attempt in range(1, attempts + 1):
            now = self.clock()
            number = next_invoice_number(
                owner_id,
                now,
                self.invoices.find_latest_number_with_prefix,
                self.config.number_prefix,
            )
            candidate = Invoice(
                id=uuid4(),
                user_id=owner_id,
                invoice_number=number,
                issue_date=now,
                created_at=now,
                updated_at=now,
                **fields,
            )
            try:
                return self.invoices.insert(candidate)
            except UniquenessConflict:
                if attempt == attempts:
                    raise
                logger.warning(
                    "Invoice number %s taken, retrying (%d/%d)", number, attempt, attempts
                )

    def _publish_status_events(self, before: InvoiceStatus | None, after: Invoice) -> None:
        if after.status == InvoiceStatus.PAID and before != InvoiceStatus.PAID:
            self.event_bus.publish(InvoicePaid.create(invoice=after))

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def create(self, data: InvoiceCreate) -> Invoice:
        """
        Create a draft invoice.

        Args:
            data: Invoice creation data

        Returns:
            Created invoice with its customer attached

        Raises:
            QuotaExceededError: If the owner's plan limit is reached
            NotFoundError: If the customer doesn't belong to the owner
        """
        owner_id = get_current_user_id()
        self._check_quota(owner_id)
        customer = self._customer(owner_id, data.customer_id)

        items = normalize_items(data.items)
        totals = compute_totals(items, data.tax_rate, data.discount_rate)

        invoice = self._insert_numbered(owner_id, {
            "customer_id": customer.id,
            "status": InvoiceStatus.DRAFT,
            "items": items,
            **totals.model_dump(),
            "currency": data.currency or self.config.default_currency,
            "due_date": data.due_date,
            "notes": data.notes,
            "terms": data.terms,
            "template": data.template,
        })

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice.id,
            action=AuditAction.CREATE,
            changes={"created": invoice.model_dump(mode="json")},
            user_id=owner_id,
        )
        logger.info("Created invoice %s (%s)", invoice.invoice_number, invoice.id)

        invoice = self._with_customer(invoice, customer)
        self.event_bus.publish(InvoiceCreated.create(invoice=invoice))
        return invoice

    def get_by_id(self, invoice_id: UUID) -> Invoice:
        """
        Get one of the owner's invoices with its customer attached.

        Raises:
            NotFoundError: If missing or owned by someone else
        """
        owner_id = get_current_user_id()
        invoice = self.invoices.get_by_id(owner_id, invoice_id)
        if invoice is None:
            raise NotFoundError("invoice", invoice_id)

        return self._with_customer(invoice, self.customers.get_by_id(owner_id, invoice.customer_id))

    def list_invoices(self, invoice_filter: InvoiceFilter) -> InvoicePage:
        """
        One page of the owner's invoices plus a summary over all of them.

        The summary ignores the filter: it always covers every invoice.
        """
        owner_id = get_current_user_id()

        invoices, total = self.invoices.list_invoices(owner_id, invoice_filter)
        customers = self.customers.get_many(owner_id, list({i.customer_id for i in invoices}))

        summary = InvoiceSummary()
        for status_total in self.invoices.aggregate_by_status(owner_id):
            summary.total += status_total.count
            setattr(summary, status_total.status.value, status_total.count)
            summary.total_revenue += status_total.total_amount
            if status_total.status == InvoiceStatus.PAID:
                summary.paid_revenue += status_total.total_amount

        return InvoicePage(
            invoices=[self._with_customer(i, customers.get(i.customer_id)) for i in invoices],
            pagination=Pagination.build(invoice_filter.page, invoice_filter.limit, total),
            summary=summary,
        )

    def update(self, invoice_id: UUID, data: InvoiceUpdate) -> Invoice:
        """
        Update an invoice and re-derive its totals and status.

        Args:
            invoice_id: Invoice UUID
            data: Fields to change; see InvoiceUpdate for paid_date semantics

        Returns:
            Updated invoice

        Raises:
            NotFoundError: If the invoice or a new customer doesn't exist
            ValidationError: If a paid invoice loses its paid date without
                revert_status
        """
        owner_id = get_current_user_id()
        current = self.invoices.get_by_id(owner_id, invoice_id)
        if current is None:
            raise NotFoundError("invoice", invoice_id)

        customer_id = data.customer_id or current.customer_id
        customer = self._customer(owner_id, customer_id)

        items = normalize_items(data.items) if data.items is not None else current.items
        tax_rate = data.tax_rate if data.tax_rate is not None else current.tax_rate
        discount_rate = data.discount_rate if data.discount_rate is not None else current.discount_rate
        totals = compute_totals(items, tax_rate, discount_rate)

        now = self.clock()
        due_date = data.due_date or current.due_date
        transition = resolve_status(
            LifecycleState(status=current.status, due_date=due_date, paid_date=current.paid_date),
            StatusChange(
                requested_status=data.status,
                paid_date=data.paid_date,
                clears_paid_date=data.clears_paid_date,
                revert_status=data.revert_status,
            ),
            now,
        )

        # notes and terms may be cleared; currency and template only replaced
        changes = {
            field: value
            for field, value in data.model_dump(
                exclude_unset=True,
                exclude={"items", "tax_rate", "discount_rate", "status", "paid_date", "revert_status"},
            ).items()
            if value is not None or field in ("notes", "terms")
        }
        changes.update({
            "customer_id": customer_id,
            "items": items,
            **totals.model_dump(),
            "due_date": due_date,
            "status": transition.state.status,
            "paid_date": transition.state.paid_date,
            "updated_at": now,
        })

        updated = self.invoices.update(current.model_copy(update=changes))

        diff = compute_changes(current.model_dump(mode="json"), updated.model_dump(mode="json"))
        if diff:
            self.audit.log_change(
                entity_type="invoice",
                entity_id=invoice_id,
                action=AuditAction.UPDATE,
                changes=diff,
                user_id=owner_id,
            )

        updated = self._with_customer(updated, customer)
        self._publish_status_events(current.status, updated)
        return updated

    def send(self, invoice_id: UUID) -> Invoice:
        """
        Move an invoice to sent and notify the customer.

        An invoice already past due lands in overdue instead.

        Raises:
            NotFoundError: If invoice not found
            ValidationError: If the invoice is paid or cancelled
        """
        owner_id = get_current_user_id()
        current = self.invoices.get_by_id(owner_id, invoice_id)
        if current is None:
            raise NotFoundError("invoice", invoice_id)

        if current.status not in _SENDABLE:
            raise ValidationError(f"Cannot send a {current.status.value} invoice")

        now = self.clock()
        transition = resolve_status(
            LifecycleState(status=current.status, due_date=current.due_date, paid_date=current.paid_date),
            StatusChange(requested_status=InvoiceStatus.SENT),
            now,
        )

        updated = self.invoices.update(current.model_copy(update={
            "status": transition.state.status,
            "paid_date": transition.state.paid_date,
            "updated_at": now,
        }))

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes={"status": {"old": current.status.value, "new": updated.status.value}},
            user_id=owner_id,
        )

        updated = self._with_customer(updated, self.customers.get_by_id(owner_id, updated.customer_id))
        self.event_bus.publish(InvoiceSent.create(invoice=updated))
        return updated

    def delete(self, invoice_id: UUID) -> None:
        """
        Permanently delete an invoice.

        Its number is not reused for a later invoice unless it was the
        month's highest.

        Raises:
            NotFoundError: If invoice not found
        """
        owner_id = get_current_user_id()
        deleted = self.invoices.delete(owner_id, invoice_id)
        if deleted is None:
            raise NotFoundError("invoice", invoice_id)

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.DELETE,
            changes={"deleted": deleted.model_dump(mode="json")},
            user_id=owner_id,
        )
        logger.info("Deleted invoice %s (%s)", deleted.invoice_number, invoice_id)

        self.event_bus.publish(InvoiceDeleted.create(invoice=deleted))

    def duplicate(self, invoice_id: UUID) -> Invoice:
        """
        Copy an invoice into a new draft.

        The copy gets a new number and issue date and no paid date; items,
        rates, due date and texts are carried over.

        Raises:
            NotFoundError: If invoice not found
            QuotaExceededError: If the owner's plan limit is reached
        """
        owner_id = get_current_user_id()
        source = self.invoices.get_by_id(owner_id, invoice_id)
        if source is None:
            raise NotFoundError("invoice", invoice_id)

        self._check_quota(owner_id)

        items = normalize_items(source.items)
        totals = compute_totals(items, source.tax_rate, source.discount_rate)

        copy = self._insert_numbered(owner_id, {
            "customer_id": source.customer_id,
            "status": InvoiceStatus.DRAFT,
            "items": items,
            **totals.model_dump(),
            "currency": source.currency,
            "due_date": source.due_date,
            "paid_date": None,
            "notes": source.notes,
            "terms": source.terms,
            "template": source.template,
        })

        self.audit.log_change(
            entity_type="invoice",
            entity_id=copy.id,
            action=AuditAction.CREATE,
            changes={"created": copy.model_dump(mode="json"), "duplicated_from": str(source.id)},
            user_id=owner_id,
        )
        logger.info("Duplicated invoice %s as %s", source.invoice_number, copy.invoice_number)

        copy = self._with_customer(copy, self.customers.get_by_id(owner_id, copy.customer_id))
        self.event_bus.publish(InvoiceCreated.create(invoice=copy))
        return copy

    def render_pdf(self, invoice_id: UUID) -> tuple[str, bytes]:
        """
        Render an invoice as PDF.

        Returns:
            (filename, pdf bytes), filename being invoice-<number>.pdf

        Raises:
            NotFoundError: If invoice not found
        """
        owner_id = get_current_user_id()
        invoice = self.invoices.get_by_id(owner_id, invoice_id)
        if invoice is None:
            raise NotFoundError("invoice", invoice_id)

        customer = self._customer(owner_id, invoice.customer_id)
        owner = self._owner(owner_id)

        content = render_invoice_pdf(invoice, owner, customer)
        return f"invoice-{invoice.invoice_number}.pdf", content
