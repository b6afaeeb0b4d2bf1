import logging
from typing import Dict, Any, List
from decimal import Decimal
from datetime import date
from django.db.models import Count, Q, Sum
from django.utils import timezone

from stock.models import Ingredient, PurchaseOrder, PurchaseOrderItem, Supplier
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, ConflictError,
    to_decimal, to_int, to_date, round_decimal, round_money
)
from stock.services.order_totals import calculate_order_totals, clean_adjustment, line_total
from stock.services.purchase_lifecycle import (
    apply_transition, check_deletable, check_items_editable, parse_status
)
from stock.services.sequence_service import SequenceService
from stock.services.unit_of_work import atomic_operation, unit_of_work

logger = logging.getLogger(__name__)

Status = PurchaseOrder.Status

TEXT_FIELDS = ("payment_method", "payment_terms", "delivery_address", "notes")
DATE_FIELDS = ("order_date", "expected_delivery_date")


class PurchaseOrderItemService:

    @classmethod
    def serialize(cls, item: PurchaseOrderItem) -> Dict[str, Any]:
        return {
            "id": item.id,
            "ingredient_id": item.ingredient_id,
            "ingredient_name": item.ingredient.name,
            "quantity": str(item.quantity),
            "unit": item.unit,
            "unit_price": str(item.unit_price),
            "total_price": str(item.total_price),
            "received_quantity": str(item.received_quantity),
            "pending_quantity": str(item.quantity - item.received_quantity),
            "notes": item.notes,
        }

    @classmethod
    def clean_items(cls, items: List[Dict]) -> List[Dict]:
        if not items:
            raise ValidationError("A purchase order needs at least one item", "items")
        if not isinstance(items, (list, tuple)):
            raise ValidationError("items must be a list", "items")

        cleaned = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise ValidationError(f"Item {index + 1} must be an object", "items")

            ingredient_id = to_int(item.get("ingredient_id"), "ingredient_id")
            if ingredient_id is None:
                raise ValidationError(f"Item {index + 1} is missing ingredient_id", "ingredient_id")

            quantity = round_decimal(to_decimal(item.get("quantity"), "quantity"))
            if quantity <= 0:
                raise ValidationError(f"Item {index + 1}: quantity must be positive", "quantity")

            unit_price = round_decimal(to_decimal(item.get("unit_price"), "unit_price"))
            if unit_price < 0:
                raise ValidationError(f"Item {index + 1}: unit_price cannot be negative", "unit_price")

            # total_price is never taken from the caller
            cleaned.append({
                "ingredient_id": ingredient_id,
                "quantity": quantity,
                "unit": item.get("unit") or "g",
                "unit_price": unit_price,
                "notes": item.get("notes") or "",
            })
        return cleaned

    @classmethod
    def write_items(cls, order: PurchaseOrder, items: List[Dict]) -> List[PurchaseOrderItem]:
        ids = {item["ingredient_id"] for item in items}
        catalog = Ingredient.objects.in_bulk(ids)
        missing = sorted(ids - set(catalog))
        if missing:
            raise NotFoundError("Ingredient", ", ".join(str(i) for i in missing))

        return PurchaseOrderItem.objects.bulk_create([
            PurchaseOrderItem(
                purchase_order=order,
                ingredient=catalog[item["ingredient_id"]],
                quantity=item["quantity"],
                unit=item["unit"],
                unit_price=item["unit_price"],
                total_price=line_total(item["quantity"], item["unit_price"]),
                notes=item["notes"],
            )
            for item in items
        ])


class PurchaseOrderService(BaseService):

    model = PurchaseOrder
    create_fields = (
        "supplier_id", "order_date", "items", "discount_amount", "shipping_cost",
        *TEXT_FIELDS, "expected_delivery_date",
    )

    @classmethod
    def serialize(cls, po: PurchaseOrder, include_items: bool = True) -> Dict[str, Any]:
        data = {
            "id": po.id,
            "uuid": str(po.uuid),
            "order_number": po.order_number,

            "supplier_id": po.supplier_id,
            "supplier": {
                "id": po.supplier.id,
                "name": po.supplier.name,
                "email": po.supplier.email,
                "phone": po.supplier.phone,
            },

            "status": po.status,
            "status_display": po.get_status_display(),

            "order_date": po.order_date.isoformat(),
            "expected_delivery_date": po.expected_delivery_date.isoformat() if po.expected_delivery_date else None,
            "actual_delivery_date": po.actual_delivery_date.isoformat() if po.actual_delivery_date else None,

            "subtotal": str(po.subtotal),
            "discount_amount": str(po.discount_amount),
            "tax_amount": str(po.tax_amount),
            "shipping_cost": str(po.shipping_cost),
            "total": str(po.total),

            "payment_method": po.payment_method,
            "payment_terms": po.payment_terms,
            "invoice_number": po.invoice_number,
            "delivery_address": po.delivery_address,
            "notes": po.notes,
            "created_at": po.created_at.isoformat(),
            "updated_at": po.updated_at.isoformat(),
        }

        if include_items:
            data["items"] = [
                PurchaseOrderItemService.serialize(item)
                for item in po.items.select_related("ingredient")
            ]
            data["item_count"] = len(data["items"])

        return data

    @classmethod
    def serialize_brief(cls, po: PurchaseOrder) -> Dict[str, Any]:
        return {
            "id": po.id,
            "order_number": po.order_number,
            "supplier_name": po.supplier.name,
            "status": po.status,
            "status_display": po.get_status_display(),
            "order_date": po.order_date.isoformat(),
            "expected_delivery_date": po.expected_delivery_date.isoformat() if po.expected_delivery_date else None,
            "invoice_number": po.invoice_number,
            "total": str(po.total),
            "item_count": getattr(po, "item_count", None),
        }

    @classmethod
    def _persist_totals(cls, po: PurchaseOrder, items, discount_amount, shipping_cost) -> List[str]:
        totals = calculate_order_totals(items, discount_amount, shipping_cost)
        for name, value in totals.as_dict().items():
            setattr(po, name, value)
        return list(totals.as_dict())

    # ==================== READ ====================

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             search: str = None,
             supplier_id: int = None,
             status: str = None,
             date_from: date = None,
             date_to: date = None) -> Dict[str, Any]:
        queryset = cls.model.objects.select_related("supplier").annotate(item_count=Count("items"))

        if search:
            queryset = queryset.filter(
                Q(order_number__icontains=search) |
                Q(supplier__name__icontains=search) |
                Q(invoice_number__icontains=search)
            )

        if supplier_id:
            queryset = queryset.filter(supplier_id=supplier_id)

        if status:
            queryset = queryset.filter(status=parse_status(status))

        if date_from:
            queryset = queryset.filter(order_date__gte=to_date(date_from, "date_from"))

        if date_to:
            queryset = queryset.filter(order_date__lte=to_date(date_to, "date_to"))

        queryset = queryset.order_by("-order_date", "-created_at")

        orders, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "orders": [cls.serialize_brief(po) for po in orders],
            "pagination": pagination,
            "statuses": [{"value": c[0], "label": c[1]} for c in PurchaseOrder.Status.choices],
        })

    @classmethod
    def get(cls, po_id: int) -> Dict[str, Any]:
        po = cls.model.objects.select_related("supplier").filter(id=po_id).first()

        if not po:
            raise NotFoundError("Purchase order", po_id)

        return success_response({"order": cls.serialize(po)})

    @classmethod
    def get_stats(cls, today: date = None) -> Dict[str, Any]:
        today = today or timezone.localdate()
        open_statuses = [Status.DRAFT, Status.SENT, Status.CONFIRMED]

        stats = cls.model.objects.aggregate(
            total_orders=Count("id"),
            total_value=Sum("total", filter=~Q(status=Status.CANCELLED)),
            delivered_value=Sum("total", filter=Q(status__in=[Status.DELIVERED, Status.INVOICED, Status.PAID])),
            overdue_orders=Count("id", filter=Q(
                expected_delivery_date__lt=today, status__in=open_statuses
            )),
        )
        by_status = {
            row["status"]: row["count"]
            for row in cls.model.objects.values("status").annotate(count=Count("id"))
        }

        return success_response({
            "stats": {
                "total_orders": stats["total_orders"],
                "by_status": {value: by_status.get(value, 0) for value in Status.values},
                "total_value": str(round_money(stats["total_value"] or Decimal("0"))),
                "delivered_value": str(round_money(stats["delivered_value"] or Decimal("0"))),
                "overdue_orders": stats["overdue_orders"],
            }
        })

    # ==================== WRITE ====================

    @classmethod
    def create(cls,
               supplier_id: int,
               order_date: date,
               items: List[Dict],
               discount_amount: Decimal = Decimal("0"),
               shipping_cost: Decimal = Decimal("0"),
               expected_delivery_date: date = None,
               payment_method: str = None,
               payment_terms: str = None,
               delivery_address: str = None,
               notes: str = None) -> Dict[str, Any]:
        supplier_id = to_int(supplier_id, "supplier_id")
        if supplier_id is None:
            raise ValidationError("supplier_id is required", "supplier_id")
        order_date = to_date(order_date, "order_date")
        if order_date is None:
            raise ValidationError("order_date is required", "order_date")
        expected_delivery_date = to_date(expected_delivery_date, "expected_delivery_date")
        cleaned_items = PurchaseOrderItemService.clean_items(items)
        # Fails fast on bad adjustments before any row is written
        calculate_order_totals(cleaned_items, discount_amount, shipping_cost)

        with unit_of_work("purchase_order.create"):
            supplier = Supplier.objects.filter(id=supplier_id).first()
            if not supplier:
                raise NotFoundError("Supplier", supplier_id)

            po = cls.model.objects.create(
                order_number=SequenceService.next_order_number(),
                supplier=supplier,
                order_date=order_date,
                expected_delivery_date=expected_delivery_date,
                payment_method=payment_method or "",
                payment_terms=payment_terms or "",
                delivery_address=delivery_address or "",
                notes=notes or "",
            )
            PurchaseOrderItemService.write_items(po, cleaned_items)
            update_fields = cls._persist_totals(po, cleaned_items, discount_amount, shipping_cost)
            po.save(update_fields=[*update_fields, "updated_at"])
            # Read back before commit so a failed read also rolls the order back
            order = cls.serialize(po)

        logger.info("Purchase order %s created for supplier %s, total %s", po.order_number, supplier.id, po.total)

        return success_response({
            "id": po.id,
            "order_number": po.order_number,
            "subtotal": str(po.subtotal),
            "tax_amount": str(po.tax_amount),
            "total": str(po.total),
            "order": order,
        }, f"Purchase order {po.order_number} created")

    @classmethod
    def update(cls,
               po_id: int,
               items: List[Dict] = None,
               discount_amount: Decimal = None,
               shipping_cost: Decimal = None,
               status: str = None,
               actual_delivery_date: date = None,
               invoice_number: str = None,
               **kwargs) -> Dict[str, Any]:
        unknown = set(kwargs) - set(TEXT_FIELDS) - set(DATE_FIELDS) - {"supplier_id"}
        if unknown:
            raise ValidationError(f"Unknown purchase order fields: {', '.join(sorted(unknown))}")

        cleaned_items = PurchaseOrderItemService.clean_items(items) if items is not None else None
        if discount_amount is not None:
            discount_amount = clean_adjustment(discount_amount, "discount_amount")
        if shipping_cost is not None:
            shipping_cost = clean_adjustment(shipping_cost, "shipping_cost")
        if status is not None:
            parse_status(status)
        elif actual_delivery_date is not None or invoice_number is not None:
            # Both are side effects of a transition; resend the current status to set them
            field = "actual_delivery_date" if actual_delivery_date is not None else "invoice_number"
            raise ValidationError(f"{field} can only be set together with a status", field)
        actual_delivery_date = to_date(actual_delivery_date, "actual_delivery_date")
        for name in DATE_FIELDS:
            if name in kwargs:
                kwargs[name] = to_date(kwargs[name], name)
        if "order_date" in kwargs and kwargs["order_date"] is None:
            raise ValidationError("order_date cannot be empty", "order_date")

        with unit_of_work("purchase_order.update"):
            po = cls.lock_or_404(po_id, "Purchase order")
            update_fields = ["updated_at"]

            if status is not None:
                update_fields += apply_transition(
                    po, status,
                    actual_delivery_date=actual_delivery_date,
                    invoice_number=invoice_number,
                )

            if "supplier_id" in kwargs:
                supplier_id = to_int(kwargs.pop("supplier_id"), "supplier_id")
                supplier = Supplier.objects.filter(id=supplier_id).first()
                if not supplier:
                    raise NotFoundError("Supplier", supplier_id)
                po.supplier = supplier
                update_fields.append("supplier")

            for name, value in kwargs.items():
                setattr(po, name, value if name in DATE_FIELDS else (value or ""))
                update_fields.append(name)

            discount = po.discount_amount if discount_amount is None else discount_amount
            shipping = po.shipping_cost if shipping_cost is None else shipping_cost

            if cleaned_items is not None:
                check_items_editable(po.status)
                po.items.all().delete()
                PurchaseOrderItemService.write_items(po, cleaned_items)
                update_fields += cls._persist_totals(po, cleaned_items, discount, shipping)
            elif discount_amount is not None or shipping_cost is not None:
                check_items_editable(po.status)
                update_fields += cls._persist_totals(po, po.items.all(), discount, shipping)

            po.save(update_fields=list(dict.fromkeys(update_fields)))

        return success_response({
            "order": cls.serialize(po),
        }, f"Purchase order {po.order_number} updated")

    @classmethod
    def transition_status(cls,
                          po_id: int,
                          new_status: str,
                          actual_delivery_date: date = None,
                          invoice_number: str = None) -> Dict[str, Any]:
        if not new_status:
            raise ValidationError("status is required", "status")
        parse_status(new_status)
        actual_delivery_date = to_date(actual_delivery_date, "actual_delivery_date")

        with unit_of_work("purchase_order.transition"):
            po = cls.lock_or_404(po_id, "Purchase order")
            previous = po.status
            changed = apply_transition(
                po, new_status,
                actual_delivery_date=actual_delivery_date,
                invoice_number=invoice_number,
            )
            if changed:
                po.save(update_fields=[*changed, "updated_at"])

        return success_response({
            "id": po.id,
            "order_number": po.order_number,
            "previous_status": previous,
            "status": po.status,
            "actual_delivery_date": po.actual_delivery_date.isoformat() if po.actual_delivery_date else None,
            "invoice_number": po.invoice_number,
        }, f"Purchase order {po.order_number} is {po.get_status_display().lower()}")

    @classmethod
    @atomic_operation("purchase_order.delete")
    def delete(cls, po_id: int) -> Dict[str, Any]:
        po = cls.lock_or_404(po_id, "Purchase order")
        check_deletable(po.status)
        order_number = po.order_number
        po.delete()

        logger.info("Purchase order %s deleted", order_number)
        return success_response(message=f"Purchase order {order_number} deleted")

    @classmethod
    def record_receipt(cls, po_id: int, received: Dict[Any, Any]) -> Dict[str, Any]:
        """
        Add received quantities to order lines: {item_id: quantity}.
        A line can never be received beyond its ordered quantity.
        """
        if not received or not isinstance(received, dict):
            raise ValidationError("received must map item ids to quantities", "received")

        increments = {}
        for item_id, quantity in received.items():
            item_id = to_int(item_id, "item_id")
            quantity = round_decimal(to_decimal(quantity, "quantity"))
            if quantity <= 0:
                raise ValidationError(f"Received quantity for item {item_id} must be positive", "quantity")
            increments[item_id] = quantity

        with unit_of_work("purchase_order.record_receipt"):
            po = cls.lock_or_404(po_id, "Purchase order")
            if parse_status(po.status) in (Status.DRAFT, Status.CANCELLED):
                raise ConflictError(
                    f"Cannot receive goods on a {po.get_status_display().lower()} purchase order",
                    "receive_not_allowed",
                )

            lines = {item.id: item for item in po.items.select_for_update().filter(id__in=increments)}
            missing = sorted(set(increments) - set(lines))
            if missing:
                raise NotFoundError("Purchase order item", ", ".join(str(i) for i in missing))

            for item_id, quantity in increments.items():
                item = lines[item_id]
                new_total = item.received_quantity + quantity
                if new_total > item.quantity:
                    raise ConflictError(
                        f"Item {item_id}: receiving {quantity} would exceed the ordered {item.quantity} "
                        f"({item.received_quantity} already received)",
                        "over_receipt",
                    )
                item.received_quantity = new_total
                item.save(update_fields=["received_quantity"])

        logger.info("Recorded receipt of %d lines on purchase order %s", len(increments), po.order_number)
        po_items = list(po.items.select_related("ingredient"))
        return success_response({
            "items": [PurchaseOrderItemService.serialize(item) for item in po_items],
            "fully_received": all(item.received_quantity >= item.quantity for item in po_items),
        }, "Receipt recorded")
