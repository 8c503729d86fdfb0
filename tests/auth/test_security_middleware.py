"""Tests for AuthMiddleware - bearer session validation and owner context."""

from datetime import timedelta
from unittest.mock import Mock
from uuid import uuid4

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from starlette.requests import Request as StarletteRequest

from auth.exceptions import SessionExpiredError
from auth.security_middleware import AuthMiddleware, bearer_token
from auth.session import SessionManager
from auth.types import Session
from utils.timezone import now_utc
from utils.user_context import get_current_user_id


@pytest.fixture
def mock_session_manager():
    """Mock SessionManager."""
    return Mock(spec=SessionManager)


@pytest.fixture
def session_for(mock_session_manager):
    """Make the session manager accept any token for user_id."""
    def _accept(user_id):
        now = now_utc()
        mock_session_manager.validate_session.return_value = Session(
            token="valid",
            user_id=user_id,
            created_at=now,
            expires_at=now + timedelta(hours=1),
            last_activity_at=now,
        )
    return _accept


@pytest.fixture
def app_with_middleware(mock_session_manager):
    """FastAPI app with auth middleware."""
    app = FastAPI()

    app.add_middleware(
        AuthMiddleware,
        session_manager=mock_session_manager,
    )

    @app.get("/api/invoices")
    async def protected_route(request: Request):
        return {
            "user_id": str(request.state.user_id),
            "context_user_id": str(get_current_user_id()),
        }

    @app.post("/auth/signup")
    async def public_signup():
        return {"public": True}

    @app.get("/auth/verify")
    async def public_verify():
        return {"public": True}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/healthcheck")
    async def lookalike():
        return {"public": False}

    return app


@pytest.fixture
def client(app_with_middleware):
    return TestClient(app_with_middleware)


def request_with(headers: dict) -> StarletteRequest:
    raw = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    return StarletteRequest({"type": "http", "headers": raw})


class TestBearerToken:
    """Token extraction from the Authorization header."""

    def test_reads_bearer(self):
        assert bearer_token(request_with({"Authorization": "Bearer abc"})) == "abc"

    def test_scheme_case_insensitive(self):
        assert bearer_token(request_with({"Authorization": "bearer abc"})) == "abc"

    @pytest.mark.parametrize("header", ["", "Basic abc", "Bearer", "Bearer   "])
    def test_malformed(self, header):
        assert bearer_token(request_with({"Authorization": header})) is None

    def test_absent(self):
        assert bearer_token(request_with({})) is None


class TestPublicPaths:
    """Public paths skip authentication."""

    @pytest.mark.parametrize("method,path", [
        ("post", "/auth/signup"),
        ("get", "/auth/verify"),
        ("get", "/health"),
    ])
    def test_no_token_needed(self, client, mock_session_manager, method, path):
        response = getattr(client, method)(path)

        assert response.status_code == 200
        mock_session_manager.validate_session.assert_not_called()

    def test_prefix_lookalike_is_protected(self, client):
        """/healthcheck is not /health."""
        assert client.get("/healthcheck").status_code == 401


class TestProtectedPaths:
    """Protected paths need a live session."""

    def test_missing_token(self, client):
        response = client.get("/api/invoices")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "NOT_AUTHENTICATED"

    def test_expired_session(self, client, mock_session_manager):
        mock_session_manager.validate_session.side_effect = SessionExpiredError("gone")

        response = client.get("/api/invoices", headers={"Authorization": "Bearer old"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "SESSION_EXPIRED"

    def test_sets_owner(self, client, mock_session_manager, session_for):
        user_id = uuid4()
        session_for(user_id)

        response = client.get("/api/invoices", headers={"Authorization": "Bearer valid"})

        assert response.json() == {"user_id": str(user_id), "context_user_id": str(user_id)}
        mock_session_manager.validate_session.assert_called_once_with("valid")

    def test_context_cleared_after_request(self, client, session_for):
        session_for(uuid4())

        client.get("/api/invoices", headers={"Authorization": "Bearer valid"})

        with pytest.raises(RuntimeError):
            get_current_user_id()
