"""Request and response models for the JSON API."""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..domain import (
    ConsumptionStatus,
    CreditNoteReason,
    CreditNoteStatus,
    FinancialStatus,
    InvoiceType,
    Order,
    OrderStatus,
    PaymentMode,
)
from ..reconciliation import ReconciliationResult
from ..services import DeliveryBacklog, LedgerSummary


# =============================================================================
# REQUESTS
# =============================================================================

class PaymentTermsIn(BaseModel):
    credit_period: int = Field(0, ge=0)
    advance_required: bool = False
    advance_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)


class AdvancePaymentIn(BaseModel):
    amount: Decimal = Field(..., gt=0)
    date: Optional[dt.date] = None
    transaction_id: str = ""
    mode: Optional[PaymentMode] = None


class OrderCreate(BaseModel):
    customer_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    quantity_ordered: int = Field(..., gt=0)
    selling_price: Decimal = Field(..., ge=0)
    delivery_cost: Decimal = Field(Decimal("0"), ge=0)
    delivery_date: dt.date
    order_date: Optional[dt.date] = None
    payment_terms: Optional[PaymentTermsIn] = None
    advance_payment: Optional[AdvancePaymentIn] = None


class PaymentIn(BaseModel):
    amount: Decimal = Field(..., gt=0)
    mode: PaymentMode
    date: Optional[dt.date] = None
    transaction_id: str = ""
    notes: str = ""


class CreditNoteIn(BaseModel):
    amount: Decimal = Field(..., gt=0)
    reason: CreditNoteReason
    adjustment_order_id: Optional[str] = None
    date: Optional[dt.date] = None
    notes: str = ""


class CreditNoteAdjustIn(BaseModel):
    adjustment_order_id: Optional[str] = None


class DeliveryPaymentIn(BaseModel):
    amount: Decimal = Field(..., gt=0)
    mode: PaymentMode
    transaction_id: str = ""


class DeliveryIn(BaseModel):
    quantity: int = Field(..., gt=0)
    payment: Optional[DeliveryPaymentIn] = None


class BulkDeliveryItem(BaseModel):
    order_id: str
    quantity: int = Field(..., gt=0)
    payment: Optional[DeliveryPaymentIn] = None


class BulkDeliveryIn(BaseModel):
    updates: List[BulkDeliveryItem]


class RescheduleIn(BaseModel):
    delivery_date: dt.date


class CancelIn(BaseModel):
    partial: bool = False


class RawMaterialConsumptionIn(BaseModel):
    status: ConsumptionStatus
    consumed_quantity: float = Field(..., ge=0)


# =============================================================================
# RESPONSES
# =============================================================================

class AdvancePaymentOut(BaseModel):
    amount: Decimal
    date: Optional[dt.date] = None
    transaction_id: str = ""
    mode: Optional[PaymentMode] = None


class PaymentOut(BaseModel):
    amount: Decimal
    date: dt.date
    mode: PaymentMode
    transaction_id: str = ""
    notes: str = ""


class CreditNoteOut(BaseModel):
    id: str
    amount: Decimal
    reason: CreditNoteReason
    adjustment_order_id: Optional[str] = None
    date: dt.date
    status: CreditNoteStatus
    notes: str = ""


class InvoiceOut(BaseModel):
    invoice_number: str
    type: InvoiceType
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    tax: Decimal
    delivery_cost: Decimal
    total_amount: Decimal
    issue_date: dt.date
    due_date: dt.date


class PaymentTermsOut(BaseModel):
    credit_period: int
    advance_required: bool
    advance_percentage: Decimal


class RawMaterialConsumptionOut(BaseModel):
    status: ConsumptionStatus
    consumed_quantity: float
    locked: bool


class FinancialsOut(BaseModel):
    total_order_value: Decimal
    total_paid_amount: Decimal
    unadjusted_credit_total: Decimal
    pending_amount: Decimal
    delivered_value: Decimal
    financial_status: FinancialStatus
    has_pending_credit_notes: bool

    @classmethod
    def from_result(cls, result: ReconciliationResult) -> "FinancialsOut":
        return cls.model_validate(asdict(result))


class OrderOut(BaseModel):
    id: str
    customer_id: str
    product_id: str
    quantity_ordered: int
    quantity_delivered: int
    remaining_quantity: int
    selling_price: Decimal
    delivery_cost: Decimal
    order_date: dt.date
    delivery_date: dt.date
    order_completion_date: Optional[dt.date] = None
    status: OrderStatus
    advance_payment: Optional[AdvancePaymentOut] = None
    payments: List[PaymentOut]
    credit_notes: List[CreditNoteOut]
    invoices: List[InvoiceOut]
    raw_material_consumption: RawMaterialConsumptionOut
    payment_terms: PaymentTermsOut
    financial_status: FinancialStatus
    version: int
    financials: FinancialsOut

    @classmethod
    def from_domain(cls, order: Order, result: ReconciliationResult) -> "OrderOut":
        data = asdict(order)
        data.pop("created_at")
        data["remaining_quantity"] = order.remaining_quantity
        data["financial_status"] = result.financial_status
        data["financials"] = asdict(result)
        return cls.model_validate(data)


class LedgerSummaryOut(BaseModel):
    order_count: int
    total_order_value: Decimal
    total_paid_amount: Decimal
    receivables: Decimal
    overpaid: Decimal
    by_financial_status: Dict[FinancialStatus, int]
    orders_with_pending_credit_notes: int

    @classmethod
    def from_summary(cls, summary: LedgerSummary) -> "LedgerSummaryOut":
        return cls.model_validate(asdict(summary))


class DeliveryBacklogOut(BaseModel):
    in_progress_orders: int
    remaining_value: Decimal
    delayed_orders: int
    on_time_orders: int

    @classmethod
    def from_backlog(cls, backlog: DeliveryBacklog) -> "DeliveryBacklogOut":
        return cls.model_validate(asdict(backlog))
