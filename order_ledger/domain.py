"""Core data structures for order financial tracking."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import List, Optional, Type, TypeVar, Union
from uuid import uuid4

MoneyInput = Union[Decimal, int, float, str]

E = TypeVar("E", bound=Enum)


class ValidationError(ValueError):
    """Raised when a mutation receives structurally invalid input."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class PreconditionViolation(RuntimeError):
    """A malformed aggregate reached the reconciliation step."""


class OrderStatus(str, Enum):
    """Fulfilment lifecycle of an order."""

    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    PARTIALLY_CANCELLED = "Partially Cancelled"
    FULLY_CANCELLED = "Fully Cancelled"

    @property
    def is_cancelled(self) -> bool:
        return self in {OrderStatus.PARTIALLY_CANCELLED, OrderStatus.FULLY_CANCELLED}


class FinancialStatus(str, Enum):
    """Derived classification of an order's payment position."""

    PENDING = "Pending"
    ADVANCE_RECEIVED = "Advance Received"
    PARTIALLY_PAID = "Partially Paid"
    FULLY_PAID = "Fully Paid"
    OVERDUE = "Overdue"
    CREDIT_NOTE_PENDING = "Credit Note Pending"


class PaymentMode(str, Enum):
    UPI = "UPI"
    NEFT = "NEFT"
    RTGS = "RTGS"
    CASH = "Cash"
    CHEQUE = "Cheque"


class CreditNoteReason(str, Enum):
    CANCELLATION = "Cancellation"
    RETURN = "Return"
    RATE_DIFFERENCE = "Rate Difference"
    QUALITY_ISSUE = "Quality Issue"


class CreditNoteStatus(str, Enum):
    """Lifecycle of a single credit note. Adjusted and Refunded are terminal."""

    PENDING = "Pending"
    ADJUSTED = "Adjusted"
    REFUNDED = "Refunded"


class InvoiceType(str, Enum):
    PARTIAL = "Partial"
    FINAL = "Final"


class ConsumptionStatus(str, Enum):
    NOT_STARTED = "Not Started"
    PARTIALLY_CONSUMED = "Partially Consumed"
    FULLY_CONSUMED = "Fully Consumed"


def to_money(value: MoneyInput, field_name: str) -> Decimal:
    """Normalize a monetary input to ``Decimal``."""

    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be numeric", field_name)
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(f"{field_name} must be numeric", field_name) from exc
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a finite number", field_name)
    return amount


def coerce_enum(enum_type: Type[E], value: object, field_name: str) -> E:
    """Resolve ``value`` to a member of ``enum_type`` by value."""

    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValidationError(
            f"{field_name} must be one of: {allowed} (got {value!r})", field_name
        ) from exc


def _require_positive(amount: Decimal, field_name: str) -> None:
    if amount <= 0:
        raise ValidationError(f"{field_name} must be greater than zero", field_name)


@dataclass(frozen=True, slots=True)
class AdvancePayment:
    """Single up-front payment received before delivery."""

    amount: Decimal
    date: Optional[date] = None
    transaction_id: str = ""
    mode: Optional[PaymentMode] = None

    def __post_init__(self) -> None:
        amount = to_money(self.amount, "advance_payment.amount")
        _require_positive(amount, "advance_payment.amount")
        object.__setattr__(self, "amount", amount)
        if self.mode is not None:
            object.__setattr__(
                self, "mode", coerce_enum(PaymentMode, self.mode, "advance_payment.mode")
            )


@dataclass(frozen=True, slots=True)
class Payment:
    """An incremental payment. Immutable once appended to an order."""

    amount: Decimal
    date: date
    mode: PaymentMode
    transaction_id: str = ""
    notes: str = ""

    def __post_init__(self) -> None:
        amount = to_money(self.amount, "payment.amount")
        _require_positive(amount, "payment.amount")
        object.__setattr__(self, "amount", amount)
        if self.date is None:
            raise ValidationError("payment.date is required", "payment.date")
        object.__setattr__(self, "mode", coerce_enum(PaymentMode, self.mode, "payment.mode"))


@dataclass(frozen=True, slots=True)
class CreditNote:
    """Downward adjustment of what the customer owes."""

    amount: Decimal
    reason: CreditNoteReason
    id: str = field(default_factory=lambda: str(uuid4()))
    adjustment_order_id: Optional[str] = None
    date: date = field(default_factory=date.today)
    status: CreditNoteStatus = CreditNoteStatus.PENDING
    notes: str = ""

    def __post_init__(self) -> None:
        amount = to_money(self.amount, "credit_note.amount")
        _require_positive(amount, "credit_note.amount")
        object.__setattr__(self, "amount", amount)
        object.__setattr__(
            self, "reason", coerce_enum(CreditNoteReason, self.reason, "credit_note.reason")
        )
        object.__setattr__(
            self, "status", coerce_enum(CreditNoteStatus, self.status, "credit_note.status")
        )

    def transition(
        self, status: CreditNoteStatus, *, adjustment_order_id: Optional[str] = None
    ) -> "CreditNote":
        """Return a copy moved out of Pending; amount and reason never change."""

        if self.status is not CreditNoteStatus.PENDING:
            raise ValidationError(
                f"Credit note {self.id!r} is already {self.status.value}",
                "credit_note.status",
            )
        if status is CreditNoteStatus.PENDING:
            raise ValidationError("A credit note cannot move back to Pending", "credit_note.status")
        return replace(
            self,
            status=status,
            adjustment_order_id=adjustment_order_id or self.adjustment_order_id,
        )


@dataclass(frozen=True, slots=True)
class Invoice:
    """Bill raised for one delivery.

    Tax applies to the delivered goods only. The order's delivery cost is
    charged once, on the final invoice.
    """

    invoice_number: str
    type: InvoiceType
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    tax: Decimal
    delivery_cost: Decimal
    total_amount: Decimal
    issue_date: date
    due_date: date


@dataclass(slots=True)
class PaymentTerms:
    credit_period: int = 0
    advance_required: bool = False
    advance_percentage: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if isinstance(self.credit_period, bool) or not isinstance(self.credit_period, int):
            raise ValidationError(
                "payment_terms.credit_period must be a whole number of days",
                "payment_terms.credit_period",
            )
        if self.credit_period < 0:
            raise ValidationError(
                "payment_terms.credit_period cannot be negative", "payment_terms.credit_period"
            )
        percentage = to_money(self.advance_percentage, "payment_terms.advance_percentage")
        if percentage < 0 or percentage > 100:
            raise ValidationError(
                "payment_terms.advance_percentage must be between 0 and 100",
                "payment_terms.advance_percentage",
            )
        self.advance_percentage = percentage


@dataclass(slots=True)
class RawMaterialConsumption:
    """Material usage bookkeeping; not part of financial reconciliation."""

    status: ConsumptionStatus = ConsumptionStatus.NOT_STARTED
    consumed_quantity: float = 0.0
    locked: bool = False


@dataclass(slots=True)
class Order:
    """A customer purchase commitment together with its payment history."""

    id: str
    customer_id: str
    product_id: str
    quantity_ordered: int
    selling_price: Decimal
    delivery_date: date
    delivery_cost: Decimal = Decimal("0")
    quantity_delivered: int = 0
    order_date: date = field(default_factory=date.today)
    order_completion_date: Optional[date] = None
    status: OrderStatus = OrderStatus.IN_PROGRESS
    advance_payment: Optional[AdvancePayment] = None
    payments: List[Payment] = field(default_factory=list)
    credit_notes: List[CreditNote] = field(default_factory=list)
    invoices: List[Invoice] = field(default_factory=list)
    raw_material_consumption: RawMaterialConsumption = field(
        default_factory=RawMaterialConsumption
    )
    payment_terms: PaymentTerms = field(default_factory=PaymentTerms)
    # Written by the service from each reconciliation result.
    financial_status: FinancialStatus = field(default=FinancialStatus.PENDING, init=False)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 0

    def __post_init__(self) -> None:
        if not self.customer_id:
            raise ValidationError("customer_id is required", "customer_id")
        if not self.product_id:
            raise ValidationError("product_id is required", "product_id")
        if self.delivery_date is None:
            raise ValidationError("delivery_date is required", "delivery_date")
        if isinstance(self.quantity_ordered, bool) or not isinstance(self.quantity_ordered, int):
            raise ValidationError("quantity_ordered must be an integer", "quantity_ordered")
        if self.quantity_ordered <= 0:
            raise ValidationError("quantity_ordered must be greater than zero", "quantity_ordered")
        if not 0 <= self.quantity_delivered <= self.quantity_ordered:
            raise ValidationError(
                "quantity_delivered must be between 0 and quantity_ordered",
                "quantity_delivered",
            )
        self.selling_price = to_money(self.selling_price, "selling_price")
        if self.selling_price < 0:
            raise ValidationError("selling_price cannot be negative", "selling_price")
        self.delivery_cost = to_money(self.delivery_cost, "delivery_cost")
        if self.delivery_cost < 0:
            raise ValidationError("delivery_cost cannot be negative", "delivery_cost")

    @property
    def remaining_quantity(self) -> int:
        return self.quantity_ordered - self.quantity_delivered

    @property
    def is_open(self) -> bool:
        return self.status is OrderStatus.IN_PROGRESS

    def set_advance_payment(self, advance: AdvancePayment) -> None:
        if self.advance_payment is not None:
            raise ValidationError(
                f"Order {self.id!r} already has an advance payment", "advance_payment"
            )
        self.advance_payment = advance

    def add_payment(self, payment: Payment) -> None:
        self.payments.append(payment)

    def add_invoice(self, invoice: Invoice) -> None:
        self.invoices.append(invoice)

    def add_credit_note(self, note: CreditNote) -> CreditNote:
        if note.status is not CreditNoteStatus.PENDING:
            note = replace(note, status=CreditNoteStatus.PENDING)
        self.credit_notes.append(note)
        return note

    def find_credit_note(self, credit_note_id: str) -> int:
        for index, note in enumerate(self.credit_notes):
            if note.id == credit_note_id:
                return index
        raise ValidationError(
            f"Credit note {credit_note_id!r} not found on order {self.id!r}", "credit_note_id"
        )

    def transition_credit_note(
        self,
        credit_note_id: str,
        status: CreditNoteStatus,
        *,
        adjustment_order_id: Optional[str] = None,
    ) -> CreditNote:
        index = self.find_credit_note(credit_note_id)
        updated = self.credit_notes[index].transition(
            status, adjustment_order_id=adjustment_order_id
        )
        self.credit_notes[index] = updated
        return updated


__all__ = [
    "ValidationError",
    "PreconditionViolation",
    "OrderStatus",
    "FinancialStatus",
    "PaymentMode",
    "CreditNoteReason",
    "CreditNoteStatus",
    "InvoiceType",
    "ConsumptionStatus",
    "MoneyInput",
    "to_money",
    "coerce_enum",
    "AdvancePayment",
    "Payment",
    "CreditNote",
    "Invoice",
    "PaymentTerms",
    "RawMaterialConsumption",
    "Order",
]
