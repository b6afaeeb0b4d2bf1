from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from stock.models import PurchaseOrder, PurchaseOrderItem
from stock.services import (
    ConflictError, NotFoundError, PurchaseOrderService, ValidationError,
)
from stock.services.sequence_service import format_order_number, period_for

pytestmark = pytest.mark.django_db

S = PurchaseOrder.Status


@pytest.fixture
def created(supplier, order_items):
    return PurchaseOrderService.create(
        supplier_id=supplier.id,
        order_date="2025-01-10",
        items=order_items,
        discount_amount="5.00",
        shipping_cost="3.00",
    )


@pytest.fixture
def po(created):
    return PurchaseOrder.objects.get(id=created["id"])


def move_to(po, *statuses):
    for status in statuses:
        PurchaseOrderService.transition_status(po.id, status)
    po.refresh_from_db()
    return po


def test_create_computes_totals(created):
    assert created["subtotal"] == "40.00"
    assert created["tax_amount"] == "7.70"
    assert created["total"] == "45.70"

    po = PurchaseOrder.objects.get(id=created["id"])
    assert po.status == S.DRAFT
    assert po.discount_amount == Decimal("5.00")
    assert po.shipping_cost == Decimal("3.00")
    assert po.total == (po.subtotal - po.discount_amount) + po.tax_amount + po.shipping_cost


def test_create_allocates_number_for_current_month(created):
    period = period_for(timezone.localdate())

    assert created["order_number"] == format_order_number("ORD", period, 1)


def test_two_creations_get_distinct_numbers(supplier, order_items):
    first = PurchaseOrderService.create(supplier_id=supplier.id, order_date="2025-01-10", items=order_items)
    second = PurchaseOrderService.create(supplier_id=supplier.id, order_date="2025-01-10", items=order_items)

    assert first["order_number"].endswith("-001")
    assert second["order_number"].endswith("-002")


def test_item_total_price_is_never_trusted(supplier, flour):
    result = PurchaseOrderService.create(
        supplier_id=supplier.id,
        order_date=date(2025, 1, 10),
        items=[{"ingredient_id": flour.id, "quantity": "3", "unit_price": "1.25", "total_price": "1000"}],
    )

    item = PurchaseOrderItem.objects.get(purchase_order_id=result["id"])
    assert item.total_price == Decimal("3.75")
    assert result["subtotal"] == "3.75"


@pytest.mark.parametrize("overrides,field", [
    ({"supplier_id": None}, "supplier_id"),
    ({"order_date": None}, "order_date"),
    ({"order_date": "10/01/2025"}, "order_date"),
    ({"items": []}, "items"),
    ({"discount_amount": "-1"}, "discount_amount"),
])
def test_create_validation(supplier, order_items, overrides, field):
    kwargs = {"supplier_id": supplier.id, "order_date": "2025-01-10", "items": order_items}
    kwargs.update(overrides)

    with pytest.raises(ValidationError) as exc:
        PurchaseOrderService.create(**kwargs)

    assert exc.value.field == field
    assert PurchaseOrder.objects.count() == 0


def test_unknown_supplier_rolls_back(order_items):
    with pytest.raises(NotFoundError):
        PurchaseOrderService.create(supplier_id=999, order_date="2025-01-10", items=order_items)

    assert PurchaseOrder.objects.count() == 0


def test_unknown_ingredient_rolls_back_order_and_number(supplier, order_items):
    bad = order_items + [{"ingredient_id": 999, "quantity": "1", "unit_price": "1"}]

    with pytest.raises(NotFoundError):
        PurchaseOrderService.create(supplier_id=supplier.id, order_date="2025-01-10", items=bad)

    assert PurchaseOrder.objects.count() == 0
    assert PurchaseOrderItem.objects.count() == 0

    # The number consumed by the failed attempt was rolled back with it
    retry = PurchaseOrderService.create(supplier_id=supplier.id, order_date="2025-01-10", items=order_items)
    assert retry["order_number"].endswith("-001")


def test_update_items_recomputes_totals(po, flour):
    PurchaseOrderService.update(
        po.id, items=[{"ingredient_id": flour.id, "quantity": "20", "unit_price": "2.00"}]
    )

    po.refresh_from_db()
    assert po.items.count() == 1
    assert po.subtotal == Decimal("40.00")
    assert po.tax_amount == Decimal("7.70")
    assert po.total == Decimal("45.70")


def test_update_without_items_preserves_totals(po):
    PurchaseOrderService.update(po.id, notes="Deliver before 10am")

    po.refresh_from_db()
    assert po.notes == "Deliver before 10am"
    assert po.total == Decimal("45.70")


def test_update_discount_recomputes_from_stored_items(po):
    PurchaseOrderService.update(po.id, discount_amount="0")

    po.refresh_from_db()
    assert po.subtotal == Decimal("40.00")
    assert po.tax_amount == Decimal("8.80")
    assert po.total == Decimal("51.80")


def test_update_status_goes_through_the_state_machine(po):
    with pytest.raises(ConflictError):
        PurchaseOrderService.update(po.id, status="paid")

    PurchaseOrderService.update(po.id, status="sent")
    po.refresh_from_db()
    assert po.status == S.SENT


@pytest.mark.parametrize("fields,field", [
    ({"invoice_number": "INV-9"}, "invoice_number"),
    ({"actual_delivery_date": "2025-01-14"}, "actual_delivery_date"),
])
def test_transition_fields_need_a_status(po, fields, field):
    with pytest.raises(ValidationError) as exc:
        PurchaseOrderService.update(po.id, **fields)

    assert exc.value.field == field
    po.refresh_from_db()
    assert po.invoice_number is None
    assert po.actual_delivery_date is None


def test_invoice_number_set_by_resending_current_status(po):
    move_to(po, "sent", "confirmed", "delivered", "invoiced")

    PurchaseOrderService.update(po.id, status="invoiced", invoice_number="INV-9")

    po.refresh_from_db()
    assert po.status == S.INVOICED
    assert po.invoice_number == "INV-9"


def test_items_locked_after_delivery(po, flour):
    move_to(po, "sent", "confirmed", "delivered")

    with pytest.raises(ConflictError):
        PurchaseOrderService.update(
            po.id, items=[{"ingredient_id": flour.id, "quantity": "1", "unit_price": "1"}]
        )

    po.refresh_from_db()
    assert po.items.count() == 2
    assert po.total == Decimal("45.70")


def test_full_lifecycle(po):
    result = PurchaseOrderService.transition_status(po.id, "sent")
    assert result["previous_status"] == "draft"

    move_to(po, "confirmed")
    PurchaseOrderService.transition_status(po.id, "delivered", actual_delivery_date="2025-01-14")
    PurchaseOrderService.transition_status(po.id, "invoiced", invoice_number="FT-88")
    PurchaseOrderService.transition_status(po.id, "paid")

    po.refresh_from_db()
    assert po.status == S.PAID
    assert po.actual_delivery_date == date(2025, 1, 14)
    assert po.invoice_number == "FT-88"


@pytest.mark.parametrize("path", [
    ("sent", "confirmed", "delivered"),
    ("sent", "confirmed", "delivered", "invoiced"),
    ("sent", "confirmed", "delivered", "invoiced", "paid"),
])
def test_cancelling_locked_orders_conflicts(po, path):
    move_to(po, *path)

    with pytest.raises(ConflictError):
        PurchaseOrderService.transition_status(po.id, "cancelled")

    po.refresh_from_db()
    assert po.status == path[-1]


def test_cancel_open_order(po):
    move_to(po, "sent", "cancelled")

    assert po.status == S.CANCELLED
    with pytest.raises(ConflictError):
        PurchaseOrderService.transition_status(po.id, "sent")


def test_delete_paid_order_is_rejected(po):
    move_to(po, "sent", "confirmed", "delivered", "invoiced", "paid")

    with pytest.raises(ConflictError):
        PurchaseOrderService.delete(po.id)

    assert PurchaseOrder.objects.filter(id=po.id).exists()
    assert PurchaseOrderItem.objects.filter(purchase_order_id=po.id).count() == 2


@pytest.mark.parametrize("path", [(), ("sent",), ("sent", "confirmed"), ("cancelled",)])
def test_delete_open_or_cancelled_order(po, path):
    move_to(po, *path)

    PurchaseOrderService.delete(po.id)

    assert PurchaseOrder.objects.count() == 0
    assert PurchaseOrderItem.objects.count() == 0


def test_delete_missing_order():
    with pytest.raises(NotFoundError):
        PurchaseOrderService.delete(4242)


def test_record_receipt(po):
    move_to(po, "sent", "confirmed")
    first, second = po.items.order_by("id")

    PurchaseOrderService.record_receipt(po.id, {first.id: "4"})
    result = PurchaseOrderService.record_receipt(po.id, {str(first.id): "6", second.id: "5"})

    assert result["fully_received"] is True
    first.refresh_from_db()
    assert first.received_quantity == Decimal("10")


def test_receipt_cannot_exceed_ordered_quantity(po):
    move_to(po, "sent", "confirmed")
    first, second = po.items.order_by("id")

    with pytest.raises(ConflictError):
        PurchaseOrderService.record_receipt(po.id, {second.id: "2", first.id: "10.5"})

    second.refresh_from_db()
    assert second.received_quantity == Decimal("0")


def test_receipt_on_draft_is_rejected(po):
    item = po.items.first()

    with pytest.raises(ConflictError):
        PurchaseOrderService.record_receipt(po.id, {item.id: "1"})


def test_list_filters(supplier, order_items, created):
    PurchaseOrderService.create(supplier_id=supplier.id, order_date="2025-02-10", items=order_items)
    move_to(PurchaseOrder.objects.get(id=created["id"]), "sent")

    assert len(PurchaseOrderService.list()["orders"]) == 2
    assert len(PurchaseOrderService.list(status="sent")["orders"]) == 1
    assert len(PurchaseOrderService.list(date_from="2025-02-01")["orders"]) == 1
    assert len(PurchaseOrderService.list(search="Rossi")["orders"]) == 2

    with pytest.raises(ValidationError):
        PurchaseOrderService.list(status="shipped")


def test_stats(po, supplier, order_items):
    yesterday = timezone.localdate() - timedelta(days=1)
    PurchaseOrderService.create(
        supplier_id=supplier.id, order_date="2025-01-01", items=order_items,
        expected_delivery_date=yesterday,
    )
    move_to(po, "sent", "confirmed", "delivered")

    stats = PurchaseOrderService.get_stats()["stats"]

    assert stats["total_orders"] == 2
    assert stats["by_status"]["delivered"] == 1
    assert stats["by_status"]["draft"] == 1
    assert stats["delivered_value"] == "45.70"
    assert stats["total_value"] == "94.50"
    assert stats["overdue_orders"] == 1
