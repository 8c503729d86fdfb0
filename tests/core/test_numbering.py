"""Tests for invoice number generation."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from core.exceptions import DataIntegrityError
from core.numbering import (
    format_number,
    month_prefix,
    next_invoice_number,
    parse_sequence,
)

SEPT = datetime(2025, 9, 15, 12, 0, tzinfo=timezone.utc)


class FakeNumbers:
    """Latest-number lookup over a plain dict of issued numbers."""

    def __init__(self):
        self.issued: dict = {}

    def __call__(self, owner_id, prefix):
        numbers = [n for n in self.issued.get(owner_id, []) if n.startswith(prefix + "-")]
        return max(numbers, default=None)

    def issue(self, owner_id, now):
        number = next_invoice_number(owner_id, now, self)
        self.issued.setdefault(owner_id, []).append(number)
        return number


class TestMonthPrefix:
    """Tests for month_prefix."""

    def test_zero_padded_month(self):
        """Month is two digits."""
        assert month_prefix(SEPT) == "INV-2025-09"

    def test_uses_utc_month(self):
        """A late evening in UTC-5 on Sept 30 is already October in UTC."""
        local = datetime(2025, 9, 30, 21, 0, tzinfo=timezone(timedelta(hours=-5)))

        assert month_prefix(local) == "INV-2025-10"

    def test_custom_literal(self):
        """Literal can be configured."""
        assert month_prefix(SEPT, "BILL") == "BILL-2025-09"


class TestParseSequence:
    """Tests for parse_sequence."""

    def test_parses_trailing_sequence(self):
        """Sequence is the trailing four digits."""
        assert parse_sequence("INV-2025-09-0042", "INV-2025-09") == 42

    @pytest.mark.parametrize("number", [
        "INV-2025-09-42",
        "INV-2025-09-00042",
        "INV-2025-09-abcd",
        "garbage",
        "INV-2025-08-0001",
    ])
    def test_malformed_raises(self, number):
        """Anything but PREFIX-NNNN under the expected prefix is refused."""
        with pytest.raises(DataIntegrityError):
            parse_sequence(number, "INV-2025-09")


class TestNextInvoiceNumber:
    """Tests for next_invoice_number."""

    def test_first_number_of_month(self):
        """No previous number starts the sequence at 1."""
        number = next_invoice_number(uuid4(), SEPT, lambda owner, prefix: None)

        assert number == "INV-2025-09-0001"

    def test_sequential_numbers(self):
        """Each number is one above the previous."""
        numbers = FakeNumbers()
        owner = uuid4()

        assert numbers.issue(owner, SEPT) == "INV-2025-09-0001"
        assert numbers.issue(owner, SEPT) == "INV-2025-09-0002"
        assert numbers.issue(owner, SEPT) == "INV-2025-09-0003"

    def test_resets_each_month(self):
        """A new month starts again at 1."""
        numbers = FakeNumbers()
        owner = uuid4()
        numbers.issue(owner, SEPT)
        numbers.issue(owner, SEPT)

        assert numbers.issue(owner, datetime(2025, 10, 1, tzinfo=timezone.utc)) == "INV-2025-10-0001"

    def test_scoped_per_owner(self):
        """Owners have independent sequences."""
        numbers = FakeNumbers()
        owner_a, owner_b = uuid4(), uuid4()
        numbers.issue(owner_a, SEPT)
        numbers.issue(owner_a, SEPT)

        assert numbers.issue(owner_b, SEPT) == "INV-2025-09-0001"

    def test_lookup_receives_owner_and_prefix(self):
        """Lookup is called with the owner and the month prefix."""
        calls = []
        owner = uuid4()

        def lookup(owner_id, prefix):
            calls.append((owner_id, prefix))
            return "INV-2025-09-0009"

        assert next_invoice_number(owner, SEPT, lookup) == "INV-2025-09-0010"
        assert calls == [(owner, "INV-2025-09")]

    def test_gap_after_deletion_not_filled(self):
        """Only the highest number matters."""
        number = next_invoice_number(uuid4(), SEPT, lambda o, p: "INV-2025-09-0007")

        assert number == "INV-2025-09-0008"

    def test_malformed_latest_raises(self):
        """Malformed latest number never restarts at 1."""
        with pytest.raises(DataIntegrityError):
            next_invoice_number(uuid4(), SEPT, lambda o, p: "INV-2025-09-XYZ")

    def test_exhausted_month_raises(self):
        """Sequence 9999 is the last of the month."""
        with pytest.raises(DataIntegrityError, match="exhausted"):
            next_invoice_number(uuid4(), SEPT, lambda o, p: "INV-2025-09-9999")

    def test_last_sequence_available(self):
        """9998 is followed by 9999."""
        number = next_invoice_number(uuid4(), SEPT, lambda o, p: "INV-2025-09-9998")

        assert number == "INV-2025-09-9999"


class TestFormatNumber:
    """Tests for format_number."""

    def test_pads_to_four_digits(self):
        assert format_number("INV-2025-09", 7) == "INV-2025-09-0007"
