"""
Customer service for CRUD operations.

Customers are the bill-to parties of invoices. All operations are scoped to
the owner in the current user context. Email is unique per owner.
"""

import logging
from uuid import UUID, uuid4

from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import CustomerInUseError, NotFoundError
from core.models import Customer, CustomerCreate, CustomerUpdate
from core.repositories import CustomerRepository, InvoiceRepository
from utils.timezone import Clock, now_utc
from utils.user_context import get_current_user_id

logger = logging.getLogger(__name__)


class CustomerService:
    """Service for customer operations."""

    def __init__(
        self,
        customers: CustomerRepository,
        invoices: InvoiceRepository,
        audit: AuditLogger,
        clock: Clock = now_utc,
    ):
        self.customers = customers
        self.invoices = invoices
        self.audit = audit
        self.clock = clock

    def create(self, data: CustomerCreate) -> Customer:
        """
        Create a new customer.

        Raises:
            UniquenessConflict: If the owner already has a customer with this email
        """
        owner_id = get_current_user_id()
        now = self.clock()

        customer = self.customers.insert(Customer(
            id=uuid4(),
            user_id=owner_id,
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        ))

        self.audit.log_change(
            entity_type="customer",
            entity_id=customer.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)},
            user_id=owner_id,
        )
        logger.info("Created customer %s", customer.id)

        return customer

    def get_by_id(self, customer_id: UUID) -> Customer:
        """
        Raises:
            NotFoundError: If missing or owned by someone else
        """
        customer = self.customers.get_by_id(get_current_user_id(), customer_id)
        if customer is None:
            raise NotFoundError("customer", customer_id)
        return customer

    def list_all(self, search: str | None = None) -> list[Customer]:
        """Owner's customers, newest first."""
        return self.customers.list_customers(get_current_user_id(), search)

    def update(self, customer_id: UUID, data: CustomerUpdate) -> Customer:
        """
        Update customer fields.

        Args:
            customer_id: Customer UUID
            data: Fields to update (only fields sent are changed)

        Raises:
            NotFoundError: If customer not found
            UniquenessConflict: If the new email belongs to another customer
        """
        current = self.get_by_id(customer_id)

        changes = data.model_dump(exclude_unset=True)
        # name, email and address can be replaced but not cleared
        for field in ("name", "email", "address"):
            if field in changes and changes[field] is None:
                logger.warning("Ignoring null %s on customer %s", field, customer_id)
                del changes[field]

        if not changes:
            return current

        if "address" in changes:
            changes["address"] = data.address
        changes["updated_at"] = self.clock()

        updated = self.customers.update(current.model_copy(update=changes))

        diff = compute_changes(current.model_dump(mode="json"), updated.model_dump(mode="json"))
        if diff:
            self.audit.log_change(
                entity_type="customer",
                entity_id=customer_id,
                action=AuditAction.UPDATE,
                changes=diff,
                user_id=current.user_id,
            )

        return updated

    def delete(self, customer_id: UUID) -> None:
        """
        Permanently delete a customer.

        Raises:
            NotFoundError: If customer not found
            CustomerInUseError: If invoices still bill this customer
        """
        current = self.get_by_id(customer_id)

        invoice_count = self.invoices.count_for_customer(current.user_id, customer_id)
        if invoice_count:
            raise CustomerInUseError(customer_id, invoice_count)

        self.customers.delete(current.user_id, customer_id)

        self.audit.log_change(
            entity_type="customer",
            entity_id=customer_id,
            action=AuditAction.DELETE,
            changes={"deleted": current.model_dump(mode="json")},
            user_id=current.user_id,
        )
        logger.info("Deleted customer %s", customer_id)
