"""Database operations for accounts and login tokens.

Tables: users, magic_link_tokens. These are read during authentication,
before any owner context exists.
"""

from uuid import UUID

import psycopg2.errors

from clients.postgres_client import PostgresClient
from auth.exceptions import UserAlreadyExistsError
from auth.types import User, MagicLinkToken, Plan
from utils.timezone import now_utc

_USER_COLUMNS = "id, email, name, plan, invoice_count, max_invoices, is_active, created_at, last_login_at"


def max_invoices_for(plan: Plan, free_plan_limit: int) -> int | None:
    """Invoice cap of a plan. None means unlimited."""
    return free_plan_limit if plan == Plan.FREE else None


class AuthDatabase:
    """Database operations for users and magic link tokens."""

    def __init__(self, postgres: PostgresClient, free_plan_limit: int = 5):
        self._db = postgres
        self._free_plan_limit = free_plan_limit

    def get_user_by_email(self, email: str) -> User | None:
        """Find user by email (case-insensitive)."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = lower(%s)",
            (email,),
        )
        return User.model_validate(row) if row else None

    def get_user_by_id(self, user_id: UUID) -> User | None:
        """Find user by ID."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (user_id,),
        )
        return User.model_validate(row) if row else None

    def create_user(self, email: str, name: str, plan: Plan = Plan.FREE) -> User:
        """Create new user with email (lowercased) on the given plan."""
        rows = self._db.execute_returning(
            f"""INSERT INTO users (email, name, plan, max_invoices)
                VALUES (lower(%s), %s, %s, %s)
                RETURNING {_USER_COLUMNS}""",
            (email, name.strip(), plan.value, max_invoices_for(plan, self._free_plan_limit)),
        )
        return User.model_validate(rows[0])

    def update_profile(self, user_id: UUID, name: str | None = None, email: str | None = None) -> User | None:
        """Change name and/or email (lowercased). Returns None if the user is gone.

        Raises:
            UserAlreadyExistsError: If another account already uses the email.
        """
        assignments = []
        params = []
        if name is not None:
            assignments.append("name = %s")
            params.append(name.strip())
        if email is not None:
            assignments.append("email = lower(%s)")
            params.append(email)
        if not assignments:
            return self.get_user_by_id(user_id)

        try:
            rows = self._db.execute_returning(
                f"""UPDATE users SET {', '.join(assignments)}
                    WHERE id = %s
                    RETURNING {_USER_COLUMNS}""",
                (*params, user_id),
            )
        except psycopg2.errors.UniqueViolation as e:
            raise UserAlreadyExistsError(f"Account for {email} already exists") from e
        return User.model_validate(rows[0]) if rows else None

    def increment_invoice_count(self, user_id: UUID) -> None:
        """Count one more invoice against the owner's plan."""
        self._db.execute_returning(
            "UPDATE users SET invoice_count = invoice_count + 1 WHERE id = %s RETURNING id",
            (user_id,),
        )

    def decrement_invoice_count(self, user_id: UUID) -> None:
        """Give back one invoice. Never goes below zero."""
        self._db.execute_returning(
            """UPDATE users SET invoice_count = GREATEST(invoice_count - 1, 0)
               WHERE id = %s RETURNING id""",
            (user_id,),
        )

    def update_last_login(self, user_id: UUID) -> None:
        """Update last_login_at to current time."""
        self._db.execute_returning(
            "UPDATE users SET last_login_at = %s WHERE id = %s RETURNING id",
            (now_utc(), user_id),
        )

    def store_magic_link_token(self, token: MagicLinkToken) -> None:
        """Store magic link token for verification."""
        self._db.execute_returning(
            """INSERT INTO magic_link_tokens (token, user_id, email, created_at, expires_at, used)
               VALUES (%s, %s, %s, %s, %s, %s)
               RETURNING token""",
            (
                token.token,
                token.user_id,
                token.email,
                token.created_at,
                token.expires_at,
                token.used,
            ),
        )

    def get_magic_link_token(self, token: str) -> MagicLinkToken | None:
        """Retrieve magic link token by token string."""
        row = self._db.execute_single(
            """SELECT token, user_id, email, created_at, expires_at, used
               FROM magic_link_tokens
               WHERE token = %s""",
            (token,),
        )
        return MagicLinkToken.model_validate(row) if row else None

    def mark_token_used(self, token: str) -> None:
        """Mark token as used and set used_at timestamp."""
        self._db.execute_returning(
            """UPDATE magic_link_tokens
               SET used = true, used_at = %s
               WHERE token = %s
               RETURNING token""",
            (now_utc(), token),
        )

    def cleanup_expired_tokens(self) -> int:
        """Delete expired tokens. Returns count deleted."""
        rows = self._db.execute(
            """DELETE FROM magic_link_tokens
               WHERE expires_at < %s
               RETURNING token""",
            (now_utc(),),
        )
        return len(rows)
