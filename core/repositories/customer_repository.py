"""Customer persistence. Email is unique per owner."""

import logging
from abc import ABC, abstractmethod
from uuid import UUID

import psycopg2.errors
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient, escape_like
from core.exceptions import NotFoundError, UniquenessConflict
from core.models import Customer

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id", "user_id", "name", "email", "phone", "company", "tax_id", "notes",
    "address", "created_at", "updated_at",
)
_UPDATABLE_COLUMNS = tuple(c for c in _COLUMNS if c not in {"id", "user_id", "created_at"})


class CustomerRepository(ABC):
    """Contract for customer persistence. All lookups are per owner."""

    @abstractmethod
    def insert(self, customer: Customer) -> Customer:
        """
        Persist a new customer.

        Raises:
            UniquenessConflict: If the owner already has a customer with this email.
        """

    @abstractmethod
    def update(self, customer: Customer) -> Customer:
        """
        Overwrite the stored customer.

        Raises:
            UniquenessConflict: If the new email belongs to another customer.
        """

    @abstractmethod
    def get_by_id(self, owner_id: UUID, customer_id: UUID) -> Customer | None:
        """Customer if it exists and belongs to the owner."""

    @abstractmethod
    def get_many(self, owner_id: UUID, customer_ids: list[UUID]) -> dict[UUID, Customer]:
        """Owner's customers among `customer_ids`, keyed by id."""

    @abstractmethod
    def list_customers(self, owner_id: UUID, search: str | None = None) -> list[Customer]:
        """Owner's customers, newest first, optionally filtered on name/email/company."""

    @abstractmethod
    def delete(self, owner_id: UUID, customer_id: UUID) -> bool:
        """Hard delete. True if a row was removed."""


def _row_params(customer: Customer, columns: tuple[str, ...]) -> list:
    data = customer.model_dump(mode="python")
    return [
        Json(data["address"]) if column == "address" else data[column]
        for column in columns
    ]


def _email_conflict(customer: Customer, error: psycopg2.errors.UniqueViolation) -> UniquenessConflict:
    return UniquenessConflict(
        f"Customer with email {customer.email} already exists",
        constraint=error.diag.constraint_name,
    )


class PostgresCustomerRepository(CustomerRepository):
    """CustomerRepository over the `customers` table."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def insert(self, customer: Customer) -> Customer:
        placeholders = ", ".join(["%s"] * len(_COLUMNS))
        try:
            row = self.postgres.execute_returning(
                f"""
                INSERT INTO customers ({', '.join(_COLUMNS)})
                VALUES ({placeholders})
                RETURNING *
                """,
                tuple(_row_params(customer, _COLUMNS))
            )[0]
        except psycopg2.errors.UniqueViolation as e:
            raise _email_conflict(customer, e) from e

        return Customer.model_validate(row)

    def update(self, customer: Customer) -> Customer:
        set_clause = ", ".join(f"{column} = %s" for column in _UPDATABLE_COLUMNS)
        params = _row_params(customer, _UPDATABLE_COLUMNS) + [customer.id, customer.user_id]

        try:
            rows = self.postgres.execute_returning(
                f"""
                UPDATE customers
                SET {set_clause}
                WHERE id = %s AND user_id = %s
                RETURNING *
                """,
                tuple(params)
            )
        except psycopg2.errors.UniqueViolation as e:
            raise _email_conflict(customer, e) from e

        if not rows:
            raise NotFoundError("customer", customer.id)

        return Customer.model_validate(rows[0])

    def get_by_id(self, owner_id: UUID, customer_id: UUID) -> Customer | None:
        row = self.postgres.execute_single(
            "SELECT * FROM customers WHERE id = %s AND user_id = %s",
            (customer_id, owner_id)
        )
        if row is None:
            return None

        return Customer.model_validate(row)

    def get_many(self, owner_id: UUID, customer_ids: list[UUID]) -> dict[UUID, Customer]:
        if not customer_ids:
            return {}

        rows = self.postgres.execute(
            "SELECT * FROM customers WHERE user_id = %s AND id = ANY(%s::uuid[])",
            (owner_id, list(customer_ids))
        )
        customers = [Customer.model_validate(row) for row in rows]
        return {c.id: c for c in customers}

    def list_customers(self, owner_id: UUID, search: str | None = None) -> list[Customer]:
        query = "SELECT * FROM customers WHERE user_id = %s"
        params: list = [owner_id]

        if search:
            pattern = f"%{escape_like(search)}%"
            query += " AND (name ILIKE %s OR email ILIKE %s OR company ILIKE %s)"
            params.extend([pattern, pattern, pattern])

        query += " ORDER BY created_at DESC"

        rows = self.postgres.execute(query, tuple(params))
        return [Customer.model_validate(row) for row in rows]

    def delete(self, owner_id: UUID, customer_id: UUID) -> bool:
        rows = self.postgres.execute_returning(
            "DELETE FROM customers WHERE id = %s AND user_id = %s RETURNING id",
            (customer_id, owner_id)
        )
        return bool(rows)
