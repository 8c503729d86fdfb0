"""Shared test fixtures for the invoicer test suite."""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock
from uuid import UUID, uuid4

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env")

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from auth.database import AuthDatabase
from auth.types import Plan, User
from core.audit import AuditLogger
from core.event_bus import EventBus
from core.exceptions import NotFoundError, UniquenessConflict
from core.models import Address, Customer, Invoice, InvoiceFilter, InvoiceStatus
from core.repositories import CustomerRepository, InvoiceRepository, StatusTotal
from utils.timezone import fixed_clock
from utils.user_context import user_context, clear_current_user_id


# =============================================================================
# TEST USER CONSTANTS
# =============================================================================

# Primary test user - use for single-user tests
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_USER_EMAIL = "owner@acme-billing.com"

# Secondary test user - use for isolation tests
TEST_USER_B_ID = UUID("00000000-0000-0000-0000-000000000002")
TEST_USER_B_EMAIL = "other-owner@acme-billing.com"

# Pinned "now" for everything time dependent
NOW = datetime(2025, 9, 15, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# IN-MEMORY REPOSITORIES
# =============================================================================


class InMemoryCustomerRepository(CustomerRepository):
    """Dict-backed CustomerRepository with the same uniqueness rule as the table."""

    def __init__(self):
        self.rows: dict[UUID, Customer] = {}

    def _email_taken(self, customer: Customer) -> bool:
        return any(
            c.user_id == customer.user_id and c.email == customer.email and c.id != customer.id
            for c in self.rows.values()
        )

    def insert(self, customer: Customer) -> Customer:
        if self._email_taken(customer):
            raise UniquenessConflict("email taken", constraint="customers_user_email_key")
        self.rows[customer.id] = customer
        return customer

    def update(self, customer: Customer) -> Customer:
        if customer.id not in self.rows:
            raise NotFoundError("customer", customer.id)
        if self._email_taken(customer):
            raise UniquenessConflict("email taken", constraint="customers_user_email_key")
        self.rows[customer.id] = customer
        return customer

    def get_by_id(self, owner_id, customer_id):
        customer = self.rows.get(customer_id)
        if customer is None or customer.user_id != owner_id:
            return None
        return customer

    def get_many(self, owner_id, customer_ids):
        found = (self.get_by_id(owner_id, i) for i in customer_ids)
        return {c.id: c for c in found if c is not None}

    def list_customers(self, owner_id, search=None):
        customers = [c for c in self.rows.values() if c.user_id == owner_id]
        if search:
            needle = search.lower()
            customers = [
                c for c in customers
                if needle in c.name.lower()
                or needle in c.email.lower()
                or needle in (c.company or "").lower()
            ]
        return sorted(customers, key=lambda c: c.created_at, reverse=True)

    def delete(self, owner_id, customer_id):
        if self.get_by_id(owner_id, customer_id) is None:
            return False
        del self.rows[customer_id]
        return True


class InMemoryInvoiceRepository(InvoiceRepository):
    """Dict-backed InvoiceRepository enforcing (user_id, invoice_number) uniqueness."""

    def __init__(self):
        self.rows: dict[UUID, Invoice] = {}

    def find_latest_number_with_prefix(self, owner_id, prefix):
        numbers = [
            i.invoice_number for i in self.rows.values()
            if i.user_id == owner_id and i.invoice_number.startswith(prefix + "-")
        ]
        return max(numbers, default=None)

    def insert(self, invoice: Invoice) -> Invoice:
        if any(
            i.user_id == invoice.user_id and i.invoice_number == invoice.invoice_number
            for i in self.rows.values()
        ):
            raise UniquenessConflict("number taken", constraint="invoices_user_number_key")
        self.rows[invoice.id] = invoice.model_copy(update={"customer": None})
        return self.rows[invoice.id]

    def update(self, invoice: Invoice) -> Invoice:
        if invoice.id not in self.rows:
            raise NotFoundError("invoice", invoice.id)
        self.rows[invoice.id] = invoice.model_copy(update={"customer": None})
        return self.rows[invoice.id]

    def get_by_id(self, owner_id, invoice_id):
        invoice = self.rows.get(invoice_id)
        if invoice is None or invoice.user_id != owner_id:
            return None
        return invoice

    def list_invoices(self, owner_id, invoice_filter: InvoiceFilter):
        invoices = [i for i in self.rows.values() if i.user_id == owner_id]
        if invoice_filter.status is not None:
            invoices = [i for i in invoices if i.status == invoice_filter.status]
        if invoice_filter.search:
            needle = invoice_filter.search.lower()
            invoices = [
                i for i in invoices
                if needle in i.invoice_number.lower() or needle in (i.notes or "").lower()
            ]
        invoices.sort(key=lambda i: i.created_at, reverse=True)
        start = invoice_filter.offset
        return invoices[start:start + invoice_filter.limit], len(invoices)

    def delete(self, owner_id, invoice_id):
        invoice = self.get_by_id(owner_id, invoice_id)
        if invoice is not None:
            del self.rows[invoice_id]
        return invoice

    def aggregate_by_status(self, owner_id):
        totals: dict[InvoiceStatus, StatusTotal] = {}
        for invoice in self.rows.values():
            if invoice.user_id != owner_id:
                continue
            previous = totals.get(invoice.status, StatusTotal(invoice.status, 0, Decimal("0")))
            totals[invoice.status] = StatusTotal(
                invoice.status, previous.count + 1, previous.total_amount + invoice.total
            )
        return list(totals.values())

    def count_for_customer(self, owner_id, customer_id):
        return sum(
            1 for i in self.rows.values()
            if i.user_id == owner_id and i.customer_id == customer_id
        )


# =============================================================================
# USER CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_user_context():
    """Ensure clean user context before and after each test."""
    clear_current_user_id()
    yield
    clear_current_user_id()


@pytest.fixture
def test_user_id() -> UUID:
    """The primary test user's ID."""
    return TEST_USER_ID


@pytest.fixture
def test_user_b_id() -> UUID:
    """The secondary test user's ID (for isolation tests)."""
    return TEST_USER_B_ID


@pytest.fixture
def as_test_user(test_user_id):
    """Sets primary test user context for the duration of the test."""
    with user_context(test_user_id):
        yield test_user_id


@pytest.fixture
def as_test_user_b(test_user_b_id):
    """Sets secondary test user context for the duration of the test."""
    with user_context(test_user_b_id):
        yield test_user_b_id


# =============================================================================
# ACCOUNT FIXTURES
# =============================================================================


def make_user(user_id: UUID = TEST_USER_ID, email: str = TEST_USER_EMAIL, **overrides) -> User:
    fields = {
        "id": user_id,
        "email": email,
        "name": "Acme Billing",
        "plan": Plan.FREE,
        "invoice_count": 0,
        "max_invoices": 5,
        "created_at": NOW,
    }
    fields.update(overrides)
    return User(**fields)


@pytest.fixture
def owner() -> User:
    """Primary test user on the free plan with no invoices yet."""
    return make_user()


@pytest.fixture
def accounts(owner):
    """AuthDatabase mock that knows the primary and secondary test users."""
    users = {owner.id: owner, TEST_USER_B_ID: make_user(TEST_USER_B_ID, TEST_USER_B_EMAIL)}
    mock = Mock(spec=AuthDatabase)
    mock.get_user_by_id.side_effect = users.get
    return mock


# =============================================================================
# ENGINE FIXTURES
# =============================================================================


@pytest.fixture
def clock():
    return fixed_clock(NOW)


@pytest.fixture
def customer_repo():
    return InMemoryCustomerRepository()


@pytest.fixture
def invoice_repo():
    return InMemoryInvoiceRepository()


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def event_bus():
    return Mock(spec=EventBus)


@pytest.fixture
def stored_customer(customer_repo, test_user_id) -> Customer:
    """A customer owned by the primary test user."""
    return customer_repo.insert(Customer(
        id=uuid4(),
        user_id=test_user_id,
        name="Jane Client",
        email="jane@client-co.com",
        company="Client Co",
        address=Address(street="1 Main St", city="Springfield", zip_code="12345", country="US"),
        created_at=NOW,
        updated_at=NOW,
    ))


@pytest.fixture
def user_factory():
    """Builds Users with test defaults; keyword arguments override fields."""
    return make_user


def make_invoice(customer: Customer, /, **overrides) -> Invoice:
    fields = {
        "id": uuid4(),
        "user_id": customer.user_id,
        "customer_id": customer.id,
        "invoice_number": "INV-2025-09-0001",
        "status": InvoiceStatus.DRAFT,
        "items": [{"description": "Consulting", "quantity": "10", "rate": "150", "amount": "1500"}],
        "subtotal": Decimal("1500.00"),
        "tax_rate": Decimal("10"),
        "tax_amount": Decimal("150.00"),
        "discount_rate": Decimal("0"),
        "discount_amount": Decimal("0.00"),
        "total": Decimal("1650.00"),
        "currency": "USD",
        "issue_date": NOW,
        "due_date": NOW + timedelta(days=30),
        "created_at": NOW,
        "updated_at": NOW,
    }
    fields.update(overrides)
    return Invoice(**fields)


@pytest.fixture
def invoice_factory(stored_customer):
    """Builds Invoices billed to stored_customer; keyword arguments override fields."""
    def build(**overrides):
        return make_invoice(stored_customer, **overrides)
    return build
