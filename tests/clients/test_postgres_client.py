"""Tests for PostgresClient - pooled psycopg2 access returning dict rows."""

from unittest.mock import MagicMock
from uuid import UUID

import psycopg2.extras
import psycopg2.pool
import pytest

from clients.postgres_client import PostgresClient, escape_like

DATABASE_URL = "postgresql://invoicer@localhost/invoicer_test"


@pytest.fixture
def pool(monkeypatch):
    """Mocked ThreadedConnectionPool handing out one mocked connection."""
    pool = MagicMock()
    monkeypatch.setattr(psycopg2.pool, "ThreadedConnectionPool", MagicMock(return_value=pool))
    monkeypatch.setattr(psycopg2.extras, "register_default_jsonb", MagicMock())
    monkeypatch.setattr(psycopg2.extras, "register_uuid", MagicMock())
    yield pool
    PostgresClient._connection_pools.clear()


@pytest.fixture
def conn(pool):
    return pool.getconn.return_value


@pytest.fixture
def cursor(conn):
    return conn.cursor.return_value.__enter__.return_value


@pytest.fixture
def db(pool):
    return PostgresClient(DATABASE_URL)


class TestPool:
    """Connection pool handling."""

    def test_pool_shared_per_url(self, db, pool):
        other = PostgresClient(DATABASE_URL)

        assert PostgresClient._connection_pools[DATABASE_URL] is pool
        assert psycopg2.pool.ThreadedConnectionPool.call_count == 1
        assert other._connection_pools is db._connection_pools

    def test_connection_returned_after_use(self, db, pool, cursor):
        cursor.description = None

        db.execute("UPDATE invoices SET notes = ''")

        pool.putconn.assert_called_once_with(pool.getconn.return_value)

    def test_rollback_on_error(self, db, conn, cursor):
        cursor.execute.side_effect = psycopg2.Error("boom")

        with pytest.raises(psycopg2.Error):
            db.execute("SELECT 1")

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()

    def test_close_drops_pool(self, db, pool):
        db.close()

        pool.closeall.assert_called_once()
        assert DATABASE_URL not in PostgresClient._connection_pools


class TestExecuteMethods:
    """Query execution methods."""

    def test_execute_returns_list_of_dicts(self, db, cursor):
        cursor.description = [("num",)]
        cursor.fetchall.return_value = [{"num": 1}, {"num": 2}]

        assert db.execute("SELECT num FROM t") == [{"num": 1}, {"num": 2}]

    def test_execute_without_result_set(self, db, cursor, conn):
        """Statements without RETURNING give [] and still commit."""
        cursor.description = None

        assert db.execute("DELETE FROM t") == []
        conn.commit.assert_called_once()

    def test_execute_single(self, db, cursor):
        cursor.description = [("answer",)]
        cursor.fetchall.return_value = [{"answer": 42}]

        assert db.execute_single("SELECT 42 AS answer") == {"answer": 42}

    def test_execute_single_no_rows(self, db, cursor):
        cursor.description = [("answer",)]
        cursor.fetchall.return_value = []

        assert db.execute_single("SELECT 1 WHERE false") is None

    def test_execute_scalar(self, db, cursor):
        cursor.fetchone.return_value = ("INV-2025-09-0001",)

        assert db.execute_scalar("SELECT invoice_number FROM invoices LIMIT 1") == "INV-2025-09-0001"

    def test_execute_scalar_no_rows(self, db, cursor):
        cursor.fetchone.return_value = None

        assert db.execute_scalar("SELECT 1 WHERE false") is None


class TestParamConversion:
    """UUID parameters are sent as strings."""

    def test_uuids_converted(self, db, cursor):
        cursor.description = None
        owner = UUID("00000000-0000-0000-0000-000000000001")

        db.execute("SELECT 1 WHERE user_id = %s AND id = ANY(%s)", (owner, [owner]))

        params = cursor.execute.call_args.args[1]
        assert params == (str(owner), [str(owner)])

    def test_dict_params(self, db, cursor):
        cursor.description = None
        owner = UUID("00000000-0000-0000-0000-000000000001")

        db.execute("SELECT 1 WHERE user_id = %(owner)s", {"owner": owner})

        assert cursor.execute.call_args.args[1] == {"owner": str(owner)}

    def test_none_params(self, db, cursor):
        cursor.description = None

        db.execute("SELECT 1")

        assert cursor.execute.call_args.args[1] is None


class TestEscapeLike:
    """LIKE wildcards are escaped."""

    @pytest.mark.parametrize("text,expected", [
        ("acme", "acme"),
        ("100%", "100\\%"),
        ("a_b", "a\\_b"),
        ("c:\\dir", "c:\\\\dir"),
    ])
    def test_escape(self, text, expected):
        assert escape_like(text) == expected
