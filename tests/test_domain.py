from __future__ import annotations

import dataclasses
from decimal import Decimal

import pytest

from conftest import TODAY
from order_ledger.domain import (
    AdvancePayment,
    CreditNote,
    CreditNoteReason,
    CreditNoteStatus,
    FinancialStatus,
    OrderStatus,
    Payment,
    PaymentMode,
    PaymentTerms,
    ValidationError,
    to_money,
)


@pytest.mark.parametrize(
    "overrides, field",
    [
        (dict(quantity_ordered=0), "quantity_ordered"),
        (dict(quantity_ordered=-3), "quantity_ordered"),
        (dict(quantity_ordered=2.5), "quantity_ordered"),
        (dict(selling_price=Decimal("-1")), "selling_price"),
        (dict(delivery_cost=Decimal("-0.01")), "delivery_cost"),
        (dict(customer_id=""), "customer_id"),
        (dict(product_id=""), "product_id"),
        (dict(delivery_date=None), "delivery_date"),
        (dict(quantity_delivered=101), "quantity_delivered"),
        (dict(selling_price="abc"), "selling_price"),
    ],
)
def test_order_rejects_invalid_construction(make_order, overrides, field):
    with pytest.raises(ValidationError) as excinfo:
        make_order(**overrides)
    assert excinfo.value.field == field


def test_order_normalizes_money_and_defaults(make_order):
    order = make_order(selling_price=0.1, delivery_cost="2.50")

    assert order.selling_price == Decimal("0.1")
    assert order.delivery_cost == Decimal("2.50")
    assert order.status is OrderStatus.IN_PROGRESS
    assert order.remaining_quantity == 100
    assert order.payments == []
    assert order.credit_notes == []


def test_zero_selling_price_is_allowed(make_order):
    assert make_order(selling_price=0).selling_price == Decimal("0")


def test_validation_error_is_a_value_error():
    with pytest.raises(ValueError):
        to_money(True, "amount")


@pytest.mark.parametrize(
    "amount, mode",
    [(0, PaymentMode.UPI), (-10, PaymentMode.UPI), ("ten", PaymentMode.UPI), (10, "Bitcoin")],
)
def test_payment_requires_positive_amount_and_known_mode(amount, mode):
    with pytest.raises(ValidationError):
        Payment(amount=amount, date=TODAY, mode=mode)


def test_payment_requires_date():
    with pytest.raises(ValidationError) as excinfo:
        Payment(amount=10, date=None, mode=PaymentMode.CASH)
    assert excinfo.value.field == "payment.date"


def test_payment_coerces_mode_and_amount():
    entry = Payment(amount="12.50", date=TODAY, mode="RTGS")

    assert entry.amount == Decimal("12.50")
    assert entry.mode is PaymentMode.RTGS


def test_payments_are_immutable():
    entry = Payment(amount=10, date=TODAY, mode=PaymentMode.CASH)

    with pytest.raises(dataclasses.FrozenInstanceError):
        entry.amount = Decimal("20")


def test_advance_payment_mode_is_optional_but_checked():
    assert AdvancePayment(amount=100).mode is None
    assert AdvancePayment(amount=100, mode="Cheque").mode is PaymentMode.CHEQUE
    with pytest.raises(ValidationError):
        AdvancePayment(amount=100, mode="Barter")
    with pytest.raises(ValidationError):
        AdvancePayment(amount=0)


def test_advance_payment_can_only_be_set_once(make_order):
    order = make_order()
    order.set_advance_payment(AdvancePayment(amount=100))

    with pytest.raises(ValidationError):
        order.set_advance_payment(AdvancePayment(amount=200))
    assert order.advance_payment.amount == Decimal("100")


def test_credit_note_reason_is_validated():
    assert CreditNote(amount=5, reason="Rate Difference").reason is CreditNoteReason.RATE_DIFFERENCE
    with pytest.raises(ValidationError):
        CreditNote(amount=5, reason="Goodwill")
    with pytest.raises(ValidationError):
        CreditNote(amount=0, reason=CreditNoteReason.RETURN)


def test_appended_credit_note_always_starts_pending(make_order):
    order = make_order()

    stored = order.add_credit_note(
        CreditNote(amount=50, reason=CreditNoteReason.RETURN, status=CreditNoteStatus.REFUNDED)
    )

    assert stored.status is CreditNoteStatus.PENDING
    assert order.credit_notes == [stored]


def test_credit_note_transition_keeps_amount_and_reason(make_order):
    order = make_order()
    note = order.add_credit_note(CreditNote(amount=50, reason=CreditNoteReason.QUALITY_ISSUE))

    adjusted = order.transition_credit_note(
        note.id, CreditNoteStatus.ADJUSTED, adjustment_order_id="order-2"
    )

    assert adjusted.id == note.id
    assert adjusted.amount == note.amount
    assert adjusted.reason is note.reason
    assert adjusted.status is CreditNoteStatus.ADJUSTED
    assert adjusted.adjustment_order_id == "order-2"
    assert order.credit_notes == [adjusted]


@pytest.mark.parametrize(
    "first, second",
    [
        (CreditNoteStatus.ADJUSTED, CreditNoteStatus.REFUNDED),
        (CreditNoteStatus.REFUNDED, CreditNoteStatus.ADJUSTED),
        (CreditNoteStatus.REFUNDED, CreditNoteStatus.REFUNDED),
    ],
)
def test_terminal_credit_notes_cannot_transition(first, second):
    note = CreditNote(amount=10, reason=CreditNoteReason.RETURN).transition(first)

    with pytest.raises(ValidationError):
        note.transition(second)


def test_credit_note_cannot_return_to_pending():
    with pytest.raises(ValidationError):
        CreditNote(amount=10, reason=CreditNoteReason.RETURN).transition(CreditNoteStatus.PENDING)


def test_unknown_credit_note_lookup_is_rejected(make_order):
    with pytest.raises(ValidationError) as excinfo:
        make_order().transition_credit_note("missing", CreditNoteStatus.ADJUSTED)
    assert excinfo.value.field == "credit_note_id"


@pytest.mark.parametrize(
    "terms",
    [dict(credit_period=-1), dict(advance_percentage=150), dict(advance_percentage=-5)],
)
def test_payment_terms_are_validated(terms):
    with pytest.raises(ValidationError):
        PaymentTerms(**terms)


@pytest.mark.parametrize("credit_period", ["30", 7.5, False])
def test_payment_terms_credit_period_must_be_integer_days(credit_period):
    with pytest.raises(ValidationError) as excinfo:
        PaymentTerms(credit_period=credit_period)
    assert excinfo.value.field == "payment_terms.credit_period"


def test_financial_status_cannot_be_set_on_construction(make_order):
    with pytest.raises(TypeError):
        make_order(financial_status=FinancialStatus.FULLY_PAID)
    assert make_order().financial_status is FinancialStatus.PENDING
