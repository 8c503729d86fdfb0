"""
Invoice persistence.

InvoiceRepository is the contract the invoice service and the number
generator consume. PostgresInvoiceRepository stores each invoice as one row;
line items live in a JSONB column so the row keeps the invoice's document
shape. Every query is scoped by user_id.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

import psycopg2.errors
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient, escape_like
from core.exceptions import NotFoundError, UniquenessConflict
from core.models import Invoice, InvoiceFilter, InvoiceStatus

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id", "user_id", "customer_id", "invoice_number", "status", "items",
    "subtotal", "tax_rate", "tax_amount", "discount_rate", "discount_amount", "total",
    "currency", "issue_date", "due_date", "paid_date", "notes", "terms", "template",
    "created_at", "updated_at",
)

# Columns an update may write; id, user_id, invoice_number and created_at are fixed.
_UPDATABLE_COLUMNS = tuple(
    c for c in _COLUMNS if c not in {"id", "user_id", "invoice_number", "created_at"}
)


@dataclass(frozen=True)
class StatusTotal:
    """Invoice count and summed totals for one status."""

    status: InvoiceStatus
    count: int
    total_amount: Decimal


class InvoiceRepository(ABC):
    """Contract for invoice persistence. All lookups are per owner."""

    @abstractmethod
    def find_latest_number_with_prefix(self, owner_id: UUID, prefix: str) -> str | None:
        """Owner's greatest invoice number starting with `prefix`, or None."""

    @abstractmethod
    def insert(self, invoice: Invoice) -> Invoice:
        """
        Persist a new invoice.

        Raises:
            UniquenessConflict: If the owner already has this invoice number.
        """

    @abstractmethod
    def update(self, invoice: Invoice) -> Invoice:
        """Overwrite the stored invoice with the same id and owner."""

    @abstractmethod
    def get_by_id(self, owner_id: UUID, invoice_id: UUID) -> Invoice | None:
        """Invoice if it exists and belongs to the owner."""

    @abstractmethod
    def list_invoices(self, owner_id: UUID, invoice_filter: InvoiceFilter) -> tuple[list[Invoice], int]:
        """One page of matching invoices, newest first, and the match count."""

    @abstractmethod
    def delete(self, owner_id: UUID, invoice_id: UUID) -> Invoice | None:
        """Hard delete. Returns the deleted invoice, None if not found."""

    @abstractmethod
    def aggregate_by_status(self, owner_id: UUID) -> list[StatusTotal]:
        """Counts and summed totals per status over all the owner's invoices."""

    @abstractmethod
    def count_for_customer(self, owner_id: UUID, customer_id: UUID) -> int:
        """Number of the owner's invoices billed to the customer."""


def _items_document(invoice: Invoice) -> Json:
    """Line items as JSON with Decimals kept as exact strings."""
    return Json(
        [
            {
                "description": item.description,
                "quantity": str(item.quantity),
                "rate": str(item.rate),
                "amount": str(item.amount),
            }
            for item in invoice.items
        ]
    )


def _row_params(invoice: Invoice, columns: tuple[str, ...]) -> list:
    data = invoice.model_dump(mode="python", exclude={"customer"})
    params = []
    for column in columns:
        if column == "items":
            params.append(_items_document(invoice))
        elif column in ("status", "template"):
            params.append(data[column].value)
        else:
            params.append(data[column])
    return params


class PostgresInvoiceRepository(InvoiceRepository):
    """InvoiceRepository over the `invoices` table."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def find_latest_number_with_prefix(self, owner_id: UUID, prefix: str) -> str | None:
        # The prefix is fixed-width so the text sort is numeric
        pattern = escape_like(prefix) + "%"
        return self.postgres.execute_scalar(
            """
            SELECT invoice_number FROM invoices
            WHERE user_id = %s AND invoice_number LIKE %s
            ORDER BY invoice_number DESC
            LIMIT 1
            """,
            (owner_id, pattern)
        )

    def insert(self, invoice: Invoice) -> Invoice:
        placeholders = ", ".join(["%s"] * len(_COLUMNS))
        try:
            row = self.postgres.execute_returning(
                f"""
                INSERT INTO invoices ({', '.join(_COLUMNS)})
                VALUES ({placeholders})
                RETURNING *
                """,
                tuple(_row_params(invoice, _COLUMNS))
            )[0]
        except psycopg2.errors.UniqueViolation as e:
            raise UniquenessConflict(
                f"Invoice number {invoice.invoice_number} already exists",
                constraint=e.diag.constraint_name,
            ) from e

        return Invoice.model_validate(row)

    def update(self, invoice: Invoice) -> Invoice:
        set_clause = ", ".join(f"{column} = %s" for column in _UPDATABLE_COLUMNS)
        params = _row_params(invoice, _UPDATABLE_COLUMNS) + [invoice.id, invoice.user_id]

        rows = self.postgres.execute_returning(
            f"""
            UPDATE invoices
            SET {set_clause}
            WHERE id = %s AND user_id = %s
            RETURNING *
            """,
            tuple(params)
        )
        if not rows:
            raise NotFoundError("invoice", invoice.id)

        return Invoice.model_validate(rows[0])

    def get_by_id(self, owner_id: UUID, invoice_id: UUID) -> Invoice | None:
        row = self.postgres.execute_single(
            "SELECT * FROM invoices WHERE id = %s AND user_id = %s",
            (invoice_id, owner_id)
        )
        if row is None:
            return None

        return Invoice.model_validate(row)

    def _where(self, owner_id: UUID, invoice_filter: InvoiceFilter) -> tuple[str, list]:
        conditions = ["user_id = %s"]
        params: list = [owner_id]

        if invoice_filter.status is not None:
            conditions.append("status = %s")
            params.append(invoice_filter.status.value)

        if invoice_filter.search:
            pattern = f"%{escape_like(invoice_filter.search)}%"
            conditions.append("(invoice_number ILIKE %s OR notes ILIKE %s)")
            params.extend([pattern, pattern])

        return " AND ".join(conditions), params

    def list_invoices(self, owner_id: UUID, invoice_filter: InvoiceFilter) -> tuple[list[Invoice], int]:
        where, params = self._where(owner_id, invoice_filter)

        total = self.postgres.execute_scalar(
            f"SELECT COUNT(*) FROM invoices WHERE {where}",
            tuple(params)
        )

        rows = self.postgres.execute(
            f"""
            SELECT * FROM invoices
            WHERE {where}
            ORDER BY created_at DESC
            LIMIT %s OFFSET %s
            """,
            tuple(params + [invoice_filter.limit, invoice_filter.offset])
        )

        return [Invoice.model_validate(row) for row in rows], int(total or 0)

    def delete(self, owner_id: UUID, invoice_id: UUID) -> Invoice | None:
        rows = self.postgres.execute_returning(
            "DELETE FROM invoices WHERE id = %s AND user_id = %s RETURNING *",
            (invoice_id, owner_id)
        )
        if not rows:
            return None

        return Invoice.model_validate(rows[0])

    def aggregate_by_status(self, owner_id: UUID) -> list[StatusTotal]:
        rows = self.postgres.execute(
            """
            SELECT status, COUNT(*) AS count, COALESCE(SUM(total), 0) AS total_amount
            FROM invoices
            WHERE user_id = %s
            GROUP BY status
            """,
            (owner_id,)
        )

        return [
            StatusTotal(
                status=InvoiceStatus(row["status"]),
                count=int(row["count"]),
                total_amount=Decimal(row["total_amount"]),
            )
            for row in rows
        ]

    def count_for_customer(self, owner_id: UUID, customer_id: UUID) -> int:
        count = self.postgres.execute_scalar(
            "SELECT COUNT(*) FROM invoices WHERE user_id = %s AND customer_id = %s",
            (owner_id, customer_id)
        )
        return int(count or 0)
