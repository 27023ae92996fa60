"""Service layer exposing order ledger use-cases to clients."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple, TypeVar
from uuid import uuid4

from .domain import (
    AdvancePayment,
    ConsumptionStatus,
    CreditNote,
    CreditNoteReason,
    CreditNoteStatus,
    FinancialStatus,
    Invoice,
    InvoiceType,
    MoneyInput,
    Order,
    OrderStatus,
    Payment,
    PaymentMode,
    PaymentTerms,
    ValidationError,
    coerce_enum,
)
from .reconciliation import ReconciliationResult, reconcile
from .repository import ConcurrencyConflictError, InMemoryRepository, RecordNotFoundError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
R = TypeVar("R")

FINAL_DELIVERY_NOTE = "Final payment on delivery"
PARTIAL_DELIVERY_NOTE = "Partial payment"

GST_RATE = Decimal("0.18")
INVOICE_DUE_DAYS = 30


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_delivery_invoice(order: Order, quantity: int, *, final: bool, today: date) -> Invoice:
    """Invoice ``quantity`` delivered units of ``order`` at its selling price."""

    subtotal = quantity * order.selling_price
    tax = subtotal * GST_RATE
    delivery_cost = order.delivery_cost if final else Decimal("0")
    return Invoice(
        invoice_number=f"INV-{today:%Y%m%d}-{uuid4().hex[:6].upper()}",
        type=InvoiceType.FINAL if final else InvoiceType.PARTIAL,
        quantity=quantity,
        unit_price=order.selling_price,
        subtotal=subtotal,
        tax=tax,
        delivery_cost=delivery_cost,
        total_amount=subtotal + tax + delivery_cost,
        issue_date=today,
        due_date=today + timedelta(days=INVOICE_DUE_DAYS),
    )


@dataclass(slots=True)
class DeliveryPayment:
    """Payment collected together with a delivery."""

    amount: MoneyInput
    mode: PaymentMode
    transaction_id: str = ""


@dataclass(slots=True)
class DeliveryUpdate:
    """One entry of a bulk delivery run."""

    order_id: str
    quantity: int
    payment: Optional[DeliveryPayment] = None


@dataclass(slots=True)
class LedgerSummary:
    """Receivables overview across all orders."""

    order_count: int = 0
    total_order_value: Decimal = Decimal("0")
    total_paid_amount: Decimal = Decimal("0")
    receivables: Decimal = Decimal("0")
    overpaid: Decimal = Decimal("0")
    by_financial_status: Dict[FinancialStatus, int] = field(
        default_factory=lambda: {status: 0 for status in FinancialStatus}
    )
    orders_with_pending_credit_notes: int = 0


@dataclass(slots=True)
class DeliveryBacklog:
    """Open delivery commitments of in-progress orders."""

    in_progress_orders: int = 0
    remaining_value: Decimal = Decimal("0")
    delayed_orders: int = 0
    on_time_orders: int = 0


class OrderLedgerService:
    """Facade for order mutations and ledger queries.

    Every mutation follows the same sequence: take a snapshot from the
    repository, apply the change, reconcile, and commit against the snapshot's
    version. Rejected input never reaches the repository.
    """

    def __init__(
        self,
        order_repo: Optional[InMemoryRepository[Order]] = None,
        *,
        clock: Optional[Clock] = None,
    ) -> None:
        self.orders = order_repo if order_repo is not None else InMemoryRepository()
        self._clock = clock or utc_now

    def now(self) -> datetime:
        return self._clock()

    def _today(self) -> date:
        return self._clock().date()

    # ------------------------------------------------------------------
    # Commit pipeline
    # ------------------------------------------------------------------
    def _mutate(
        self, order_id: str, action: str, mutator: Callable[[Order], R]
    ) -> Tuple[Order, R]:
        order = self.orders.get(order_id)
        expected_version = order.version
        try:
            outcome = mutator(order)
        except ValidationError as exc:
            logger.warning("Rejected %s on order %s: %s", action, order_id, exc)
            raise
        result = reconcile(order, self.now())
        order.financial_status = result.financial_status
        try:
            self.orders.replace(order.id, order, expected_version=expected_version)
        except ConcurrencyConflictError:
            logger.warning("Conflicting write during %s on order %s", action, order_id)
            raise
        logger.info(
            "%s committed for order %s (financial status: %s, pending: %s)",
            action,
            order_id,
            result.financial_status.value,
            result.pending_amount,
        )
        return order, outcome

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------
    def create_order(
        self,
        customer_id: str,
        product_id: str,
        quantity_ordered: int,
        selling_price: MoneyInput,
        delivery_date: date,
        *,
        delivery_cost: MoneyInput = 0,
        order_date: Optional[date] = None,
        payment_terms: Optional[PaymentTerms] = None,
        advance_payment: Optional[AdvancePayment] = None,
    ) -> Order:
        if advance_payment is not None and advance_payment.date is None:
            advance_payment = replace(advance_payment, date=self._today())
        try:
            order = Order(
                id=str(uuid4()),
                customer_id=customer_id,
                product_id=product_id,
                quantity_ordered=quantity_ordered,
                selling_price=selling_price,
                delivery_date=delivery_date,
                delivery_cost=delivery_cost,
                order_date=order_date or self._today(),
                payment_terms=payment_terms or PaymentTerms(),
                advance_payment=advance_payment,
            )
        except ValidationError as exc:
            logger.warning("Rejected order for customer %s: %s", customer_id, exc)
            raise
        order.financial_status = reconcile(order, self.now()).financial_status
        self.orders.add(order.id, order)
        logger.info(
            "Created order %s for customer %s (%d units)",
            order.id,
            customer_id,
            quantity_ordered,
        )
        return order

    def get_order(self, order_id: str) -> Order:
        return self.orders.get(order_id)

    def list_orders(
        self,
        *,
        status: Optional[OrderStatus] = None,
        financial_status: Optional[FinancialStatus] = None,
    ) -> List[Order]:
        """List orders, filtering on the financial status as of now."""

        now = self.now()
        orders = [
            order
            for order in self.orders
            if (status is None or order.status is status)
            and (
                financial_status is None
                or reconcile(order, now).financial_status is financial_status
            )
        ]
        orders.sort(key=lambda order: (order.delivery_date, order.created_at))
        return orders

    def financials(self, order_id: str) -> ReconciliationResult:
        """Reconcile the stored order against the current time."""

        return reconcile(self.orders.get(order_id), self.now())

    def reschedule_delivery(self, order_id: str, delivery_date: date) -> Order:
        def apply(order: Order) -> None:
            if delivery_date is None:
                raise ValidationError("delivery_date is required", "delivery_date")
            order.delivery_date = delivery_date

        order, _ = self._mutate(order_id, "reschedule delivery", apply)
        return order

    def update_payment_terms(
        self,
        order_id: str,
        *,
        credit_period: int,
        advance_required: bool = False,
        advance_percentage: MoneyInput = 0,
    ) -> Order:
        def apply(order: Order) -> None:
            order.payment_terms = PaymentTerms(
                credit_period=credit_period,
                advance_required=advance_required,
                advance_percentage=advance_percentage,
            )

        order, _ = self._mutate(order_id, "update payment terms", apply)
        return order

    def complete_order(self, order_id: str) -> Order:
        today = self._today()

        def apply(order: Order) -> None:
            if not order.is_open:
                raise ValidationError(
                    f"Order {order.id!r} is {order.status.value} and cannot be completed",
                    "status",
                )
            order.quantity_delivered = order.quantity_ordered
            order.status = OrderStatus.COMPLETED
            order.order_completion_date = today

        order, _ = self._mutate(order_id, "complete order", apply)
        return order

    def cancel_order(self, order_id: str, *, partial: bool = False) -> Order:
        target = OrderStatus.PARTIALLY_CANCELLED if partial else OrderStatus.FULLY_CANCELLED

        def apply(order: Order) -> None:
            if not order.is_open:
                raise ValidationError(
                    f"Order {order.id!r} is {order.status.value} and cannot be cancelled",
                    "status",
                )
            order.status = target

        order, _ = self._mutate(order_id, "cancel order", apply)
        return order

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------
    def record_advance_payment(
        self,
        order_id: str,
        amount: MoneyInput,
        *,
        mode: Optional[PaymentMode] = None,
        date: Optional[date] = None,
        transaction_id: str = "",
    ) -> Order:
        received_on = date or self._today()

        def apply(order: Order) -> None:
            order.set_advance_payment(
                AdvancePayment(
                    amount=amount,
                    date=received_on,
                    transaction_id=transaction_id,
                    mode=mode,
                )
            )

        order, _ = self._mutate(order_id, "advance payment", apply)
        return order

    def record_payment(
        self,
        order_id: str,
        amount: MoneyInput,
        *,
        mode: PaymentMode,
        date: Optional[date] = None,
        transaction_id: str = "",
        notes: str = "",
    ) -> Order:
        received_on = date or self._today()

        def apply(order: Order) -> None:
            order.add_payment(
                Payment(
                    amount=amount,
                    date=received_on,
                    mode=mode,
                    transaction_id=transaction_id,
                    notes=notes,
                )
            )

        order, _ = self._mutate(order_id, "payment", apply)
        return order

    # ------------------------------------------------------------------
    # Credit notes
    # ------------------------------------------------------------------
    def issue_credit_note(
        self,
        order_id: str,
        amount: MoneyInput,
        reason: CreditNoteReason,
        *,
        adjustment_order_id: Optional[str] = None,
        date: Optional[date] = None,
        notes: str = "",
    ) -> Tuple[Order, CreditNote]:
        issued_on = date or self._today()

        def apply(order: Order) -> CreditNote:
            return order.add_credit_note(
                CreditNote(
                    amount=amount,
                    reason=reason,
                    adjustment_order_id=adjustment_order_id,
                    date=issued_on,
                    notes=notes,
                )
            )

        return self._mutate(order_id, "credit note", apply)

    def adjust_credit_note(
        self,
        order_id: str,
        credit_note_id: str,
        *,
        adjustment_order_id: Optional[str] = None,
    ) -> Order:
        if adjustment_order_id is not None and adjustment_order_id not in self.orders:
            raise RecordNotFoundError(f"Order {adjustment_order_id!r} does not exist")

        def apply(order: Order) -> CreditNote:
            return order.transition_credit_note(
                credit_note_id,
                CreditNoteStatus.ADJUSTED,
                adjustment_order_id=adjustment_order_id,
            )

        order, _ = self._mutate(order_id, "adjust credit note", apply)
        return order

    def refund_credit_note(self, order_id: str, credit_note_id: str) -> Order:
        def apply(order: Order) -> CreditNote:
            return order.transition_credit_note(credit_note_id, CreditNoteStatus.REFUNDED)

        order, _ = self._mutate(order_id, "refund credit note", apply)
        return order

    # ------------------------------------------------------------------
    # Deliveries
    # ------------------------------------------------------------------
    def record_delivery(
        self,
        order_id: str,
        quantity: int,
        *,
        payment: Optional[DeliveryPayment] = None,
    ) -> Order:
        today = self._today()

        def apply(order: Order) -> None:
            if not order.is_open:
                raise ValidationError(
                    f"Order {order.id!r} is {order.status.value} and accepts no deliveries",
                    "status",
                )
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise ValidationError("Delivered quantity must be a positive integer", "quantity")
            if quantity > order.remaining_quantity:
                raise ValidationError(
                    f"Cannot deliver {quantity} units, only {order.remaining_quantity} remaining",
                    "quantity",
                )
            completes = quantity == order.remaining_quantity
            collected = None
            if payment is not None:
                collected = Payment(
                    amount=payment.amount,
                    date=today,
                    mode=payment.mode,
                    transaction_id=payment.transaction_id,
                    notes=FINAL_DELIVERY_NOTE if completes else PARTIAL_DELIVERY_NOTE,
                )
            invoice = build_delivery_invoice(order, quantity, final=completes, today=today)
            order.quantity_delivered += quantity
            order.add_invoice(invoice)
            if completes:
                order.status = OrderStatus.COMPLETED
                order.order_completion_date = today
            if collected is not None:
                order.add_payment(collected)

        order, _ = self._mutate(order_id, "delivery", apply)
        return order

    def bulk_record_deliveries(self, updates: Iterable[DeliveryUpdate]) -> List[Order]:
        """Apply deliveries order by order; unknown order ids are skipped."""

        updated: List[Order] = []
        for update in updates:
            if update.order_id not in self.orders:
                logger.info("Skipping delivery for unknown order %s", update.order_id)
                continue
            updated.append(
                self.record_delivery(update.order_id, update.quantity, payment=update.payment)
            )
        return updated

    # ------------------------------------------------------------------
    # Raw material consumption
    # ------------------------------------------------------------------
    def update_raw_material_consumption(
        self,
        order_id: str,
        status: ConsumptionStatus,
        consumed_quantity: float,
    ) -> Order:
        def apply(order: Order) -> None:
            consumption = order.raw_material_consumption
            if consumption.locked:
                raise ValidationError(
                    f"Raw material consumption of order {order.id!r} is locked",
                    "raw_material_consumption",
                )
            if isinstance(consumed_quantity, bool) or not isinstance(
                consumed_quantity, (int, float)
            ):
                raise ValidationError(
                    "consumed_quantity must be a number", "consumed_quantity"
                )
            if consumed_quantity < 0:
                raise ValidationError(
                    "consumed_quantity cannot be negative", "consumed_quantity"
                )
            consumption.status = coerce_enum(
                ConsumptionStatus, status, "raw_material_consumption.status"
            )
            consumption.consumed_quantity = float(consumed_quantity)

        order, _ = self._mutate(order_id, "raw material consumption", apply)
        return order

    def lock_raw_material_consumption(self, order_id: str) -> Order:
        def apply(order: Order) -> None:
            order.raw_material_consumption.locked = True

        order, _ = self._mutate(order_id, "lock raw material consumption", apply)
        return order

    # ------------------------------------------------------------------
    # Ledger views
    # ------------------------------------------------------------------
    def refresh_financial_statuses(self) -> int:
        """Re-reconcile every order; returns how many statuses changed.

        Time-dependent statuses such as Overdue only change when an order is
        reconciled again, so this is meant to run periodically.
        """

        now = self.now()
        changed = 0
        for order in self.orders:
            if reconcile(order, now).financial_status is order.financial_status:
                continue
            self._mutate(order.id, "status refresh", lambda _order: None)
            changed += 1
        if changed:
            logger.info("Financial status refresh updated %d orders", changed)
        return changed

    def ledger_summary(self) -> LedgerSummary:
        now = self.now()
        summary = LedgerSummary()
        for order in self.orders:
            result = reconcile(order, now)
            summary.order_count += 1
            summary.total_order_value += result.total_order_value
            summary.total_paid_amount += result.total_paid_amount
            if result.pending_amount > 0:
                summary.receivables += result.pending_amount
            else:
                summary.overpaid -= result.pending_amount
            summary.by_financial_status[result.financial_status] += 1
            if result.has_pending_credit_notes:
                summary.orders_with_pending_credit_notes += 1
        return summary

    def delivery_backlog(self) -> DeliveryBacklog:
        today = self._today()
        backlog = DeliveryBacklog()
        for order in self.orders:
            if not order.is_open:
                continue
            backlog.in_progress_orders += 1
            backlog.remaining_value += order.remaining_quantity * order.selling_price
            if order.delivery_date < today:
                backlog.delayed_orders += 1
            else:
                backlog.on_time_orders += 1
        return backlog


__all__ = [
    "OrderLedgerService",
    "DeliveryPayment",
    "DeliveryUpdate",
    "LedgerSummary",
    "DeliveryBacklog",
    "build_delivery_invoice",
    "utc_now",
]
