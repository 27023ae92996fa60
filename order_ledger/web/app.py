"""FastAPI-based JSON interface for the order ledger."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..config import Settings, get_settings
from ..domain import (
    AdvancePayment,
    CreditNoteReason,
    FinancialStatus,
    Order,
    OrderStatus,
    PaymentMode,
    PaymentTerms,
    ValidationError,
)
from ..logging_config import setup_logging
from ..reconciliation import reconcile
from ..repository import ConcurrencyConflictError, DuplicateRecordError, RecordNotFoundError
from ..services import DeliveryPayment, DeliveryUpdate, OrderLedgerService
from .schemas import (
    AdvancePaymentIn,
    BulkDeliveryIn,
    CancelIn,
    CreditNoteAdjustIn,
    CreditNoteIn,
    DeliveryBacklogOut,
    DeliveryIn,
    DeliveryPaymentIn,
    FinancialsOut,
    LedgerSummaryOut,
    OrderCreate,
    OrderOut,
    PaymentIn,
    PaymentTermsIn,
    RawMaterialConsumptionIn,
    RescheduleIn,
)

logger = logging.getLogger(__name__)


def _order_out(service: OrderLedgerService, order: Order) -> OrderOut:
    return OrderOut.from_domain(order, reconcile(order, service.now()))


def _delivery_payment(payload: Optional[DeliveryPaymentIn]) -> Optional[DeliveryPayment]:
    if payload is None:
        return None
    return DeliveryPayment(
        amount=payload.amount, mode=payload.mode, transaction_id=payload.transaction_id
    )


def _payment_terms(payload: Optional[PaymentTermsIn]) -> Optional[PaymentTerms]:
    if payload is None:
        return None
    return PaymentTerms(
        credit_period=payload.credit_period,
        advance_required=payload.advance_required,
        advance_percentage=payload.advance_percentage,
    )


def _advance_payment(payload: Optional[AdvancePaymentIn]) -> Optional[AdvancePayment]:
    if payload is None:
        return None
    return AdvancePayment(
        amount=payload.amount,
        date=payload.date,
        transaction_id=payload.transaction_id,
        mode=payload.mode,
    )


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[OrderLedgerService] = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)
    service = service or OrderLedgerService()
    if settings.SEED_DEMO_DATA:
        ensure_demo_data(service)

    app = FastAPI(title=settings.APP_TITLE, debug=settings.DEBUG)
    app.state.ledger_service = service

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc), "field": exc.field, "error_code": "VALIDATION_ERROR"},
        )

    @app.exception_handler(RecordNotFoundError)
    async def not_found_handler(request: Request, exc: RecordNotFoundError):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": str(exc), "error_code": "RESOURCE_NOT_FOUND"},
        )

    @app.exception_handler(DuplicateRecordError)
    @app.exception_handler(ConcurrencyConflictError)
    async def conflict_handler(request: Request, exc: Exception):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": str(exc), "error_code": "RESOURCE_CONFLICT"},
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------
    @app.post("/orders", status_code=status.HTTP_201_CREATED, response_model=OrderOut)
    async def create_order(payload: OrderCreate, request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        order = service.create_order(
            customer_id=payload.customer_id,
            product_id=payload.product_id,
            quantity_ordered=payload.quantity_ordered,
            selling_price=payload.selling_price,
            delivery_date=payload.delivery_date,
            delivery_cost=payload.delivery_cost,
            order_date=payload.order_date,
            payment_terms=_payment_terms(payload.payment_terms),
            advance_payment=_advance_payment(payload.advance_payment),
        )
        return _order_out(service, order)

    @app.get("/orders", response_model=List[OrderOut])
    async def list_orders(
        request: Request,
        status: Optional[OrderStatus] = None,
        financial_status: Optional[FinancialStatus] = None,
    ):
        service: OrderLedgerService = request.app.state.ledger_service
        orders = service.list_orders(status=status, financial_status=financial_status)
        return [_order_out(service, order) for order in orders]

    @app.get("/orders/backlog", response_model=DeliveryBacklogOut)
    async def delivery_backlog(request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        return DeliveryBacklogOut.from_backlog(service.delivery_backlog())

    @app.post("/orders/bulk-deliveries", response_model=List[OrderOut])
    async def bulk_deliveries(payload: BulkDeliveryIn, request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        updates = [
            DeliveryUpdate(
                order_id=item.order_id,
                quantity=item.quantity,
                payment=_delivery_payment(item.payment),
            )
            for item in payload.updates
        ]
        orders = service.bulk_record_deliveries(updates)
        return [_order_out(service, order) for order in orders]

    @app.get("/orders/{order_id}", response_model=OrderOut)
    async def get_order(order_id: str, request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        return _order_out(service, service.get_order(order_id))

    @app.get("/orders/{order_id}/financials", response_model=FinancialsOut)
    async def order_financials(order_id: str, request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        return FinancialsOut.from_result(service.financials(order_id))

    @app.put("/orders/{order_id}/delivery-date", response_model=OrderOut)
    async def reschedule_delivery(order_id: str, payload: RescheduleIn, request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        order = service.reschedule_delivery(order_id, payload.delivery_date)
        return _order_out(service, order)

    @app.put("/orders/{order_id}/payment-terms", response_model=OrderOut)
    async def update_payment_terms(order_id: str, payload: PaymentTermsIn, request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        order = service.update_payment_terms(
            order_id,
            credit_period=payload.credit_period,
            advance_required=payload.advance_required,
            advance_percentage=payload.advance_percentage,
        )
        return _order_out(service, order)

    @app.post("/orders/{order_id}/complete", response_model=OrderOut)
    async def complete_order(order_id: str, request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        return _order_out(service, service.complete_order(order_id))

    @app.post("/orders/{order_id}/cancel", response_model=OrderOut)
    async def cancel_order(order_id: str, request: Request, payload: Optional[CancelIn] = None):
        service: OrderLedgerService = request.app.state.ledger_service
        partial = payload.partial if payload is not None else False
        return _order_out(service, service.cancel_order(order_id, partial=partial))

    # ------------------------------------------------------------------
    # Payments and credit notes
    # ------------------------------------------------------------------
    @app.post("/orders/{order_id}/advance-payment", response_model=OrderOut)
    async def record_advance_payment(order_id: str, payload: AdvancePaymentIn, request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        order = service.record_advance_payment(
            order_id,
            payload.amount,
            mode=payload.mode,
            date=payload.date,
            transaction_id=payload.transaction_id,
        )
        return _order_out(service, order)

    @app.post("/orders/{order_id}/payments", response_model=OrderOut)
    async def record_payment(order_id: str, payload: PaymentIn, request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        order = service.record_payment(
            order_id,
            payload.amount,
            mode=payload.mode,
            date=payload.date,
            transaction_id=payload.transaction_id,
            notes=payload.notes,
        )
        return _order_out(service, order)

    @app.post(
        "/orders/{order_id}/credit-notes",
        status_code=status.HTTP_201_CREATED,
        response_model=OrderOut,
    )
    async def issue_credit_note(order_id: str, payload: CreditNoteIn, request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        order, _ = service.issue_credit_note(
            order_id,
            payload.amount,
            payload.reason,
            adjustment_order_id=payload.adjustment_order_id,
            date=payload.date,
            notes=payload.notes,
        )
        return _order_out(service, order)

    @app.post("/orders/{order_id}/credit-notes/{credit_note_id}/adjust", response_model=OrderOut)
    async def adjust_credit_note(
        order_id: str,
        credit_note_id: str,
        request: Request,
        payload: Optional[CreditNoteAdjustIn] = None,
    ):
        service: OrderLedgerService = request.app.state.ledger_service
        order = service.adjust_credit_note(
            order_id,
            credit_note_id,
            adjustment_order_id=payload.adjustment_order_id if payload else None,
        )
        return _order_out(service, order)

    @app.post("/orders/{order_id}/credit-notes/{credit_note_id}/refund", response_model=OrderOut)
    async def refund_credit_note(order_id: str, credit_note_id: str, request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        return _order_out(service, service.refund_credit_note(order_id, credit_note_id))

    # ------------------------------------------------------------------
    # Deliveries and material consumption
    # ------------------------------------------------------------------
    @app.post("/orders/{order_id}/deliveries", response_model=OrderOut)
    async def record_delivery(order_id: str, payload: DeliveryIn, request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        order = service.record_delivery(
            order_id, payload.quantity, payment=_delivery_payment(payload.payment)
        )
        return _order_out(service, order)

    @app.put("/orders/{order_id}/raw-material-consumption", response_model=OrderOut)
    async def update_consumption(
        order_id: str, payload: RawMaterialConsumptionIn, request: Request
    ):
        service: OrderLedgerService = request.app.state.ledger_service
        order = service.update_raw_material_consumption(
            order_id, payload.status, payload.consumed_quantity
        )
        return _order_out(service, order)

    @app.post("/orders/{order_id}/raw-material-consumption/lock", response_model=OrderOut)
    async def lock_consumption(order_id: str, request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        return _order_out(service, service.lock_raw_material_consumption(order_id))

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------
    @app.get("/ledger/summary", response_model=LedgerSummaryOut)
    async def ledger_summary(request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        return LedgerSummaryOut.from_summary(service.ledger_summary())

    @app.post("/ledger/refresh")
    async def refresh_ledger(request: Request):
        service: OrderLedgerService = request.app.state.ledger_service
        return {"updated": service.refresh_financial_statuses()}

    return app


def ensure_demo_data(service: OrderLedgerService) -> None:
    if len(service.orders):
        return
    today = service.now().date()

    paid = service.create_order(
        customer_id="CUST-001",
        product_id="PROD-PIPE-20",
        quantity_ordered=100,
        selling_price=50,
        delivery_cost=200,
        delivery_date=today + timedelta(days=7),
        advance_payment=AdvancePayment(amount=1000, date=today, mode=PaymentMode.NEFT),
    )
    service.record_payment(paid.id, 4200, mode=PaymentMode.RTGS, transaction_id="RTGS-0001")

    partial = service.create_order(
        customer_id="CUST-002",
        product_id="PROD-PIPE-32",
        quantity_ordered=250,
        selling_price=72,
        delivery_date=today + timedelta(days=14),
    )
    service.record_delivery(
        partial.id, 100, payment=DeliveryPayment(amount=7200, mode=PaymentMode.UPI)
    )
    service.issue_credit_note(
        partial.id, 360, CreditNoteReason.QUALITY_ISSUE, notes="Surface defects on 5 units"
    )

    service.create_order(
        customer_id="CUST-003",
        product_id="PROD-FITTING-15",
        quantity_ordered=400,
        selling_price=12,
        delivery_cost=150,
        delivery_date=today - timedelta(days=40),
        payment_terms=PaymentTerms(credit_period=30),
    )
    logger.info("Seeded %d demo orders", len(service.orders))


__all__ = ["create_app", "ensure_demo_data"]
