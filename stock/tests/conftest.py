from datetime import date
from decimal import Decimal

import pytest

from stock.models import Ingredient, PurchaseOrder, StockLot, Supplier


@pytest.fixture
def supplier(db):
    return Supplier.objects.create(name="Ortofrutta Rossi", email="ordini@rossi.it")


@pytest.fixture
def flour(db):
    return Ingredient.objects.create(name="Flour 00", category="dry", unit="kg", cost_per_unit=Decimal("0.9000"))


@pytest.fixture
def eggs(db):
    return Ingredient.objects.create(name="Eggs", category="dairy", unit="pcs", cost_per_unit=Decimal("0.3500"))


@pytest.fixture
def guanciale(db):
    return Ingredient.objects.create(name="Guanciale", category="meat", unit="kg", cost_per_unit=Decimal("18.0000"))


@pytest.fixture
def order_items(flour, eggs):
    return [
        {"ingredient_id": flour.id, "quantity": "10", "unit": "kg", "unit_price": "2.00"},
        {"ingredient_id": eggs.id, "quantity": "5", "unit": "pcs", "unit_price": "4.00"},
    ]


@pytest.fixture
def make_order(supplier):
    """Insert an order row directly, bypassing the service."""
    def _make(order_number="ORD-202501-001", status=PurchaseOrder.Status.DRAFT, **kwargs):
        kwargs.setdefault("order_date", date(2025, 1, 10))
        return PurchaseOrder.objects.create(
            order_number=order_number, supplier=supplier, status=status, **kwargs
        )
    return _make


@pytest.fixture
def make_lot(flour):
    def _make(**kwargs):
        kwargs.setdefault("available_quantity", Decimal("20"))
        kwargs.setdefault("min_threshold", Decimal("10"))
        kwargs.setdefault("cost_per_unit", Decimal("0.90"))
        return StockLot.objects.create(ingredient=flour, unit="kg", **kwargs)
    return _make
