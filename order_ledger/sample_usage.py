"""Demonstration script for the order ledger."""

from __future__ import annotations

from datetime import date, timedelta
from pprint import pprint

from . import CreditNoteReason, OrderLedgerService, PaymentMode, PaymentTerms
from .logging_config import setup_logging
from .services import DeliveryPayment


def main() -> None:
    setup_logging()
    ledger = OrderLedgerService()

    order = ledger.create_order(
        customer_id="CUST-ACME",
        product_id="PROD-HDPE-PIPE-25",
        quantity_ordered=100,
        selling_price=50,
        delivery_cost=200,
        delivery_date=date.today() + timedelta(days=10),
        payment_terms=PaymentTerms(credit_period=30),
    )
    print(f"Order {order.id}: {order.financial_status.value}")

    ledger.record_advance_payment(
        order.id, 1000, mode=PaymentMode.UPI, transaction_id="UPI-20240611-01"
    )
    print("After advance:", ledger.get_order(order.id).financial_status.value)

    ledger.record_delivery(
        order.id, 60, payment=DeliveryPayment(amount=2000, mode=PaymentMode.NEFT)
    )
    _, note = ledger.issue_credit_note(
        order.id, 200, CreditNoteReason.QUALITY_ISSUE, notes="Ovality out of tolerance"
    )
    ledger.record_delivery(order.id, 40)
    ledger.record_payment(order.id, 2000, mode=PaymentMode.RTGS)

    financials = ledger.financials(order.id)
    print("\nFinancials")
    print(f"   Order value:   {financials.total_order_value}")
    print(f"   Paid:          {financials.total_paid_amount}")
    print(f"   Open credits:  {financials.unadjusted_credit_total}")
    print(f"   Pending:       {financials.pending_amount}")
    print(f"   Status:        {financials.financial_status.value}")

    ledger.refund_credit_note(order.id, note.id)

    print("\nLedger summary")
    pprint(ledger.ledger_summary())
    print("\nDelivery backlog")
    pprint(ledger.delivery_backlog())


if __name__ == "__main__":  # pragma: no cover - manual execution
    main()
