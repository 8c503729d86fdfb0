"""Auth test fixtures - in-memory Valkey, mocked database and email."""

import json
from unittest.mock import Mock

import pytest

from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.session import SessionManager
from clients.email_client import EmailGatewayClient
from clients.valkey_client import ValkeyClient


class InMemoryValkey:
    """Dict-backed stand-in for ValkeyClient. TTLs are recorded, never expired."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    def ping(self) -> bool:
        return True

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value, expire_seconds=None):
        self.values[key] = value
        if expire_seconds is not None:
            self.ttls[key] = expire_seconds
        else:
            self.ttls.pop(key, None)

    def delete(self, key):
        self.ttls.pop(key, None)
        return self.values.pop(key, None) is not None

    def ttl(self, key):
        if key not in self.values:
            return -2
        return self.ttls.get(key, -1)

    def incr_window(self, key, window_seconds):
        count = int(self.values.get(key, "0")) + 1
        self.values[key] = str(count)
        self.ttls[key] = window_seconds
        return count

    def set_json(self, key, value, expire_seconds=None):
        self.set(key, json.dumps(value), expire_seconds)

    def get_json(self, key):
        value = self.get(key)
        return None if value is None else json.loads(value)


@pytest.fixture
def valkey():
    return InMemoryValkey()


@pytest.fixture
def config():
    """Test config with a tight rate limit."""
    return AuthConfig(
        magic_link_expiry_minutes=5,
        session_expiry_hours=1,
        rate_limit_attempts=3,
        rate_limit_window_minutes=5,
        enumeration_limit=2,
        app_base_url="https://app.acme-billing.com",
    )


@pytest.fixture
def session_manager(valkey, config):
    return SessionManager(valkey, config)


@pytest.fixture
def email_limiter(valkey, config):
    return RateLimiter.for_magic_links(valkey, config)


@pytest.fixture
def enumeration_limiter(valkey, config):
    return RateLimiter.for_enumeration(valkey, config)


@pytest.fixture
def auth_db():
    mock = Mock(spec=AuthDatabase)
    mock.get_user_by_email.return_value = None
    mock.get_magic_link_token.return_value = None
    mock.cleanup_expired_tokens.return_value = 0
    return mock


@pytest.fixture
def security_logger():
    return Mock(spec=SecurityLogger)


@pytest.fixture
def mock_email_client():
    """Mock email client - no actual emails sent in tests."""
    mock = Mock(spec=EmailGatewayClient)
    mock.send_magic_link.return_value = None
    return mock


@pytest.fixture
def auth_service(config, auth_db, session_manager, email_limiter, enumeration_limiter,
                 mock_email_client, security_logger):
    return AuthService(
        config=config,
        auth_db=auth_db,
        session_manager=session_manager,
        email_limiter=email_limiter,
        enumeration_limiter=enumeration_limiter,
        email_client=mock_email_client,
        security_logger=security_logger,
    )


@pytest.fixture
def strict_valkey():
    """Strict ValkeyClient mock for call-level assertions."""
    return Mock(spec=ValkeyClient)
