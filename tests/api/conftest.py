"""API test fixtures - authenticated TestClient over in-memory services."""

from datetime import timedelta
from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from auth.service import AuthService
from auth.session import SessionManager
from auth.types import Session
from core.services.customer_service import CustomerService
from core.services.invoice_service import InvoiceService
from utils.timezone import now_utc


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def invoice_service(invoice_repo, customer_repo, accounts, audit, event_bus, clock):
    return InvoiceService(invoice_repo, customer_repo, accounts, audit, event_bus, clock=clock)


@pytest.fixture
def customer_service(customer_repo, invoice_repo, audit, clock):
    return CustomerService(customer_repo, invoice_repo, audit, clock=clock)


@pytest.fixture
def auth_service():
    return Mock(spec=AuthService)


# =============================================================================
# AUTH FIXTURES
# =============================================================================


@pytest.fixture
def mock_session_manager(test_user_id):
    now = now_utc()
    mock = Mock(spec=SessionManager)
    mock.validate_session.return_value = Session(
        token="test-token",
        user_id=test_user_id,
        created_at=now,
        expires_at=now + timedelta(hours=24),
        last_activity_at=now,
    )
    return mock


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def health_checks():
    return {}


@pytest.fixture
def app(invoice_service, customer_service, auth_service, mock_session_manager, health_checks):
    """Full app with auth middleware, error handlers and every router."""
    return create_app(
        invoice_service=invoice_service,
        customer_service=customer_service,
        auth_service=auth_service,
        session_manager=mock_session_manager,
        health_checks=health_checks,
    )


@pytest.fixture
def client(app):
    """Authenticated test client."""
    c = TestClient(app, raise_server_exceptions=False)
    c.headers["Authorization"] = "Bearer test-token"
    return c


@pytest.fixture
def unauthed_client(app):
    """Unauthenticated test client (no bearer token)."""
    return TestClient(app, raise_server_exceptions=False)
