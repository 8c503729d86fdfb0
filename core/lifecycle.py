"""
Invoice status lifecycle.

    draft -> sent -> paid | overdue | cancelled
    sent  -> overdue            (automatic, once the due date has passed)
    draft | sent | overdue -> paid | cancelled   (explicit)

Status is not free-form: it is recomputed on every save from the requested
status, the paid date, the due date and the clock. Step 0 feeds the rules;
at most one of rules 1-3 fires, the first that matches:

    0. requested status: "paid" stamps paid_date if unset, anything else
       clears paid_date. An explicit paid_date from the same update then
       overrides.
    1. paid_date set, status not paid      -> paid
    2. paid_date unset, status paid        -> caller-supplied revert status
    3. due_date passed, sent, not paid     -> overdue

The rules win over whatever status the caller asked for. Overdue is never
reached in the same save that reverted a paid invoice.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from core.exceptions import ValidationError
from core.models import InvoiceStatus

logger = logging.getLogger(__name__)


class StatusRule(Enum):
    """Which rule decided the resulting status."""

    PAID_DATE_SET = "paid_date_set"
    PAID_DATE_CLEARED = "paid_date_cleared"
    PAST_DUE = "past_due"


@dataclass(frozen=True)
class LifecycleState:
    """The fields the status rules read and write."""

    status: InvoiceStatus
    due_date: datetime
    paid_date: datetime | None = None


@dataclass(frozen=True)
class StatusChange:
    """
    What an update asks for.

    `clears_paid_date` is an explicit null for paid_date, as opposed to
    paid_date simply not being part of the update.
    """

    requested_status: InvoiceStatus | None = None
    paid_date: datetime | None = None
    clears_paid_date: bool = False
    revert_status: InvoiceStatus | None = None


@dataclass(frozen=True)
class Transition:
    """Outcome of evaluating the rules."""

    state: LifecycleState
    rule: StatusRule | None = None


def request_status(state: LifecycleState, requested: InvoiceStatus, now: datetime) -> LifecycleState:
    """Apply an explicitly requested status and keep paid_date in step with it."""
    if requested == InvoiceStatus.PAID:
        return replace(state, status=requested, paid_date=state.paid_date or now)
    return replace(state, status=requested, paid_date=None)


def apply_status_rules(
    state: LifecycleState,
    now: datetime,
    revert_status: InvoiceStatus | None = None,
) -> Transition:
    """
    Evaluate rules 1-3 against `state`.

    Args:
        state: Status, due date and paid date about to be saved
        now: Current time
        revert_status: Status to fall back to when a paid invoice loses its
            paid date

    Raises:
        ValidationError: If a paid invoice loses its paid date and no
            revert status was supplied.
    """
    if state.paid_date is not None and state.status != InvoiceStatus.PAID:
        return Transition(replace(state, status=InvoiceStatus.PAID), StatusRule.PAID_DATE_SET)

    if state.paid_date is None and state.status == InvoiceStatus.PAID:
        if revert_status is None or revert_status == InvoiceStatus.PAID:
            raise ValidationError(
                "Clearing the paid date of a paid invoice requires revert_status"
            )
        return Transition(replace(state, status=revert_status), StatusRule.PAID_DATE_CLEARED)

    if (
        state.due_date < now
        and state.status == InvoiceStatus.SENT
        and state.paid_date is None
    ):
        return Transition(replace(state, status=InvoiceStatus.OVERDUE), StatusRule.PAST_DUE)

    return Transition(state)


def resolve_status(current: LifecycleState, change: StatusChange, now: datetime) -> Transition:
    """
    Work out the status and paid date an update ends up with.

    Step 0 (requested status, then explicit paid date) followed by the rules.
    """
    state = current

    if change.requested_status is not None:
        state = request_status(state, change.requested_status, now)

    if change.paid_date is not None:
        state = replace(state, paid_date=change.paid_date)
    elif change.clears_paid_date:
        state = replace(state, paid_date=None)

    transition = apply_status_rules(state, now, change.revert_status)

    if transition.rule is not None:
        logger.info(
            "Status rule %s moved invoice from %s to %s",
            transition.rule.value,
            state.status.value,
            transition.state.status.value,
        )

    return transition
