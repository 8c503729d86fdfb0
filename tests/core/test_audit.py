"""Tests for the audit trail."""

import pytest
from unittest.mock import Mock
from uuid import uuid4

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient


@pytest.fixture
def postgres():
    return Mock(spec=PostgresClient)


class TestAuditAction:
    """Tests for AuditAction enum."""

    def test_has_create_update_delete(self):
        """AuditAction has required values."""
        from core.audit import AuditAction

        assert AuditAction.CREATE.value == "create"
        assert AuditAction.UPDATE.value == "update"
        assert AuditAction.DELETE.value == "delete"


class TestComputeChanges:
    """Tests for compute_changes utility function."""

    def test_detects_changed_fields(self):
        """Different values for same key detected."""
        from core.audit import compute_changes

        old = {"total": 100.0, "notes": "Net 30"}
        new = {"total": 120.0, "notes": "Net 30"}

        changes = compute_changes(old, new)

        assert changes == {"total": {"old": 100.0, "new": 120.0}}

    def test_detects_added_fields(self):
        """New fields in 'new' dict detected."""
        from core.audit import compute_changes

        changes = compute_changes({"status": "sent"}, {"status": "sent", "paid_date": "2025-09-15"})

        assert changes["paid_date"] == {"old": None, "new": "2025-09-15"}

    def test_detects_removed_fields(self):
        """Fields in 'old' but not 'new' detected."""
        from core.audit import compute_changes

        changes = compute_changes({"status": "paid", "paid_date": "2025-09-15"}, {"status": "paid"})

        assert changes["paid_date"] == {"old": "2025-09-15", "new": None}

    def test_excludes_updated_at_by_default(self):
        """updated_at not reported as change."""
        from core.audit import compute_changes

        old = {"status": "draft", "updated_at": "2025-09-01T00:00:00Z"}
        new = {"status": "draft", "updated_at": "2025-09-15T00:00:00Z"}

        assert compute_changes(old, new) == {}

    def test_custom_exclude_fields(self):
        """Can exclude additional fields."""
        from core.audit import compute_changes

        old = {"status": "draft", "customer": {"name": "A"}}
        new = {"status": "sent", "customer": {"name": "B"}}

        changes = compute_changes(old, new, exclude_fields={"updated_at", "customer"})

        assert list(changes) == ["status"]


class TestAuditLogger:
    """Tests for AuditLogger against a mocked PostgresClient."""

    def test_log_change_inserts_row(self, postgres, test_user_id):
        """Writes one audit_log row with the action value and JSON changes."""
        from core.audit import AuditLogger, AuditAction

        entity_id = uuid4()
        AuditLogger(postgres).log_change(
            entity_type="invoice",
            entity_id=entity_id,
            action=AuditAction.CREATE,
            changes={"created": {"invoice_number": "INV-2025-09-0001"}},
            user_id=test_user_id,
        )

        query, params = postgres.execute.call_args.args
        assert "INSERT INTO audit_log" in query
        assert params[1] == test_user_id
        assert params[2] == "invoice"
        assert params[3] == entity_id
        assert params[4] == "create"
        assert isinstance(params[5], Json)
        assert params[5].adapted == {"created": {"invoice_number": "INV-2025-09-0001"}}

    def test_log_change_uses_context_user(self, postgres, as_test_user, test_user_id):
        """Defaults to current user context."""
        from core.audit import AuditLogger, AuditAction

        AuditLogger(postgres).log_change("customer", uuid4(), AuditAction.DELETE, {"deleted": {}})

        params = postgres.execute.call_args.args[1]
        assert params[1] == test_user_id

    def test_log_change_explicit_user_overrides(self, postgres, as_test_user, test_user_b_id):
        """Explicit user_id overrides context."""
        from core.audit import AuditLogger, AuditAction

        AuditLogger(postgres).log_change(
            "customer", uuid4(), AuditAction.UPDATE, {"name": {"old": "A", "new": "B"}},
            user_id=test_user_b_id,
        )

        params = postgres.execute.call_args.args[1]
        assert params[1] == test_user_b_id

    def test_log_change_without_user_raises(self, postgres):
        """No context and no explicit user is a bug."""
        from core.audit import AuditLogger, AuditAction

        with pytest.raises(RuntimeError):
            AuditLogger(postgres).log_change("invoice", uuid4(), AuditAction.CREATE, {})

        postgres.execute.assert_not_called()
