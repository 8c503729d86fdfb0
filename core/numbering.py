"""
Invoice number generation.

Format: INV-YYYY-MM-NNNN, one sequence per owner per calendar month (UTC).
The next number is derived from the highest persisted number with the same
prefix, so there is no counter to keep in sync. Because prefix and sequence
are fixed width, the highest number is also the lexicographically greatest.

Two concurrent creations can propose the same number. Nothing here locks;
the unique index on (user_id, invoice_number) rejects the loser and the
caller asks for a fresh number.
"""

import logging
import re
from datetime import datetime
from typing import Callable
from uuid import UUID

from core.exceptions import DataIntegrityError
from utils.timezone import to_utc

logger = logging.getLogger(__name__)

NUMBER_PREFIX = "INV"
SEQUENCE_WIDTH = 4
MAX_SEQUENCE = 10 ** SEQUENCE_WIDTH - 1

_NUMBER_PATTERN = re.compile(r"^(?P<prefix>[A-Z]+-\d{4}-\d{2})-(?P<sequence>\d{%d})$" % SEQUENCE_WIDTH)

# (owner_id, prefix) -> highest invoice number with that prefix, or None
LatestNumberLookup = Callable[[UUID, str], str | None]


def month_prefix(now: datetime, literal: str = NUMBER_PREFIX) -> str:
    """Prefix shared by every number issued in the month of `now`."""
    now = to_utc(now)
    return f"{literal}-{now.year:04d}-{now.month:02d}"


def parse_sequence(invoice_number: str, prefix: str) -> int:
    """
    Sequence part of `invoice_number`.

    Raises:
        DataIntegrityError: If the number is not PREFIX-YYYY-MM-NNNN or does
            not belong to `prefix`. Restarting at 1 would reissue numbers.
    """
    match = _NUMBER_PATTERN.match(invoice_number)
    if match is None or match.group("prefix") != prefix:
        raise DataIntegrityError(
            f"Malformed invoice number '{invoice_number}' under prefix '{prefix}'"
        )
    return int(match.group("sequence"))


def format_number(prefix: str, sequence: int) -> str:
    return f"{prefix}-{sequence:0{SEQUENCE_WIDTH}d}"


def next_invoice_number(
    owner_id: UUID,
    now: datetime,
    lookup: LatestNumberLookup,
    literal: str = NUMBER_PREFIX,
) -> str:
    """
    Propose the next invoice number for an owner.

    Args:
        owner_id: Owner the number is scoped to
        now: Current time; selects the year-month scope
        lookup: Returns the owner's highest number with a given prefix
        literal: Leading literal of the number

    Returns:
        e.g. "INV-2025-09-0001" for the owner's first invoice of September 2025

    Raises:
        DataIntegrityError: If the latest number is malformed or the month's
            sequence is exhausted.
    """
    prefix = month_prefix(now, literal)
    latest = lookup(owner_id, prefix)

    if latest is None:
        sequence = 1
    else:
        sequence = parse_sequence(latest, prefix) + 1

    if sequence > MAX_SEQUENCE:
        raise DataIntegrityError(
            f"Invoice sequence for {prefix} is exhausted ({MAX_SEQUENCE} numbers issued)"
        )

    number = format_number(prefix, sequence)
    logger.debug("Proposed invoice number %s (latest=%s)", number, latest)
    return number
