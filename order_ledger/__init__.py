"""Order financial ledger for a manufacturing operations backend.

This package provides the order aggregate, the pure reconciliation that
derives an order's totals and financial status, an in-memory versioned
repository, and a service layer that reconciles every mutation before it is
committed.
"""

from .domain import (
    AdvancePayment,
    CreditNote,
    CreditNoteReason,
    CreditNoteStatus,
    FinancialStatus,
    Invoice,
    InvoiceType,
    Order,
    OrderStatus,
    Payment,
    PaymentMode,
    PaymentTerms,
    PreconditionViolation,
    ValidationError,
)
from .reconciliation import ReconciliationResult, is_overdue, reconcile
from .services import OrderLedgerService

__all__ = [
    "AdvancePayment",
    "CreditNote",
    "CreditNoteReason",
    "CreditNoteStatus",
    "FinancialStatus",
    "Invoice",
    "InvoiceType",
    "Order",
    "OrderStatus",
    "Payment",
    "PaymentMode",
    "PaymentTerms",
    "PreconditionViolation",
    "ValidationError",
    "ReconciliationResult",
    "is_overdue",
    "reconcile",
    "OrderLedgerService",
]
