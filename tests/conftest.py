from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from order_ledger.domain import Order
from order_ledger.services import OrderLedgerService

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


class FixedClock:
    """Controllable time source for the service."""

    def __init__(self, current: datetime) -> None:
        self.current = current

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture()
def service(clock: FixedClock) -> OrderLedgerService:
    return OrderLedgerService(clock=clock)


@pytest.fixture()
def make_order():
    """Build a 100 x 50 + 200 order (total value 5200) with overrides."""

    def factory(**overrides) -> Order:
        values = dict(
            id="order-1",
            customer_id="cust-1",
            product_id="prod-1",
            quantity_ordered=100,
            selling_price=Decimal("50"),
            delivery_cost=Decimal("200"),
            delivery_date=TODAY,
        )
        values.update(overrides)
        return Order(**values)

    return factory


@pytest.fixture()
def create_order(service: OrderLedgerService):
    """Create the 5200-valued order through the service."""

    def factory(**overrides) -> Order:
        values = dict(
            customer_id="cust-1",
            product_id="prod-1",
            quantity_ordered=100,
            selling_price=50,
            delivery_cost=200,
            delivery_date=TODAY,
        )
        values.update(overrides)
        return service.create_order(**values)

    return factory
