"""Derivation of order totals and financial status.

Everything in this module is a pure function of an :class:`Order` snapshot and
an explicit reference time. Nothing here reads the clock, performs I/O or
mutates its input, so the same snapshot and ``now`` always produce the same
:class:`ReconciliationResult`.

The financial status is chosen by :data:`STATUS_RULES`, an ordered table in
which the first matching rule wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Callable, Iterable, Sequence, Tuple

from .domain import (
    CreditNote,
    CreditNoteStatus,
    FinancialStatus,
    Order,
    Payment,
    PreconditionViolation,
)

ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    """Derived monetary figures and the financial status of one order."""

    total_order_value: Decimal
    total_paid_amount: Decimal
    unadjusted_credit_total: Decimal
    pending_amount: Decimal
    delivered_value: Decimal
    financial_status: FinancialStatus
    has_pending_credit_notes: bool = False

    @property
    def is_overpaid(self) -> bool:
        return self.pending_amount < 0


@dataclass(frozen=True, slots=True)
class _StatusInputs:
    pending_amount: Decimal
    advance_amount: Decimal
    total_paid_amount: Decimal
    has_pending_credit_notes: bool
    overdue: bool


StatusRule = Tuple[FinancialStatus, Callable[[_StatusInputs], bool]]

STATUS_RULES: Sequence[StatusRule] = (
    (FinancialStatus.FULLY_PAID, lambda s: s.pending_amount <= 0),
    (FinancialStatus.ADVANCE_RECEIVED, lambda s: s.advance_amount > 0),
    (FinancialStatus.PARTIALLY_PAID, lambda s: s.total_paid_amount > 0),
    (FinancialStatus.CREDIT_NOTE_PENDING, lambda s: s.has_pending_credit_notes),
    (FinancialStatus.OVERDUE, lambda s: s.overdue),
)


def is_overdue(delivery_date: date, credit_period: int, now: datetime) -> bool:
    """Return True when ``now`` lies beyond the credit period after delivery.

    Orders without credit terms (``credit_period == 0``) are never overdue.
    The deadline starts at midnight of the delivery date, in ``now``'s timezone.
    """

    if credit_period <= 0:
        return False
    deadline = datetime.combine(delivery_date, time.min, tzinfo=now.tzinfo) + timedelta(
        days=credit_period
    )
    return now > deadline


def total_order_value(order: Order) -> Decimal:
    return order.quantity_ordered * order.selling_price + order.delivery_cost


def delivered_value(order: Order) -> Decimal:
    return order.quantity_delivered * order.selling_price


def advance_amount(order: Order) -> Decimal:
    if order.advance_payment is None:
        return ZERO
    return order.advance_payment.amount


def total_paid_amount(order: Order) -> Decimal:
    return advance_amount(order) + sum(_payment_amounts(order.payments), ZERO)


def unadjusted_credit_total(order: Order) -> Decimal:
    return sum(
        (note.amount for note in _checked_notes(order.credit_notes)
         if note.status is not CreditNoteStatus.ADJUSTED),
        ZERO,
    )


def has_pending_credit_notes(order: Order) -> bool:
    return any(
        note.status is CreditNoteStatus.PENDING
        for note in _checked_notes(order.credit_notes)
    )


def select_status(inputs: _StatusInputs) -> FinancialStatus:
    for status, matches in STATUS_RULES:
        if matches(inputs):
            return status
    return FinancialStatus.PENDING


def reconcile(order: Order, now: datetime) -> ReconciliationResult:
    """Compute the derived totals and financial status of ``order`` at ``now``."""

    order_value = total_order_value(order)
    paid = total_paid_amount(order)
    credits = unadjusted_credit_total(order)
    pending = order_value - paid - credits
    pending_notes = has_pending_credit_notes(order)
    inputs = _StatusInputs(
        pending_amount=pending,
        advance_amount=advance_amount(order),
        total_paid_amount=paid,
        has_pending_credit_notes=pending_notes,
        overdue=is_overdue(order.delivery_date, order.payment_terms.credit_period, now),
    )
    return ReconciliationResult(
        total_order_value=order_value,
        total_paid_amount=paid,
        unadjusted_credit_total=credits,
        pending_amount=pending,
        delivered_value=delivered_value(order),
        financial_status=select_status(inputs),
        has_pending_credit_notes=pending_notes,
    )


def _payment_amounts(payments: Iterable[Payment]) -> Iterable[Decimal]:
    for payment in payments:
        if not isinstance(payment.amount, Decimal):
            raise PreconditionViolation(
                f"Payment amount {payment.amount!r} is not a Decimal"
            )
        yield payment.amount


def _checked_notes(notes: Iterable[CreditNote]) -> Iterable[CreditNote]:
    for note in notes:
        if not isinstance(note.status, CreditNoteStatus):
            raise PreconditionViolation(
                f"Credit note {note.id!r} has unknown status {note.status!r}"
            )
        yield note


__all__ = [
    "ReconciliationResult",
    "STATUS_RULES",
    "is_overdue",
    "total_order_value",
    "delivered_value",
    "total_paid_amount",
    "unadjusted_credit_total",
    "has_pending_credit_notes",
    "reconcile",
]
