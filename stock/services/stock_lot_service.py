import logging
from typing import Dict, Any, Optional, List
from decimal import Decimal
from datetime import date
from django.db.models import Q
from django.utils import timezone

from stock.models import Ingredient, StockLot, StockSettings
from stock.services.base_service import (
    BaseService, success_response,
    ValidationError, NotFoundError, ConflictError, InsufficientStockError,
    to_decimal, to_int, to_date, round_decimal, round_money
)
from stock.services.stock_status import (
    StockStatus, STATUS_PRIORITY, classify_stock_lot, days_to_expiry
)
from stock.services.unit_of_work import atomic_operation, unit_of_work

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "batch_code", "unit", "reserved_quantity", "min_threshold", "max_threshold",
    "expiry_date", "cost_per_unit", "supplier_name", "location", "purchase_date", "notes",
)
QUANTITY_FIELDS = ("reserved_quantity", "min_threshold", "max_threshold", "cost_per_unit")
DATE_FIELDS = ("expiry_date", "purchase_date")


class StockLotService(BaseService):
    model = StockLot
    receive_fields = (
        "ingredient_id", "quantity", "unit", "batch_code", "min_threshold", "max_threshold",
        "expiry_date", "cost_per_unit", "supplier_name", "location", "purchase_date", "notes",
    )

    # ==================== SERIALIZATION ====================

    @classmethod
    def serialize(cls, lot: StockLot, today: date = None, window: int = None) -> Dict[str, Any]:
        today = today or timezone.localdate()
        status = classify_stock_lot(lot, today=today, expiring_within_days=window)
        return {
            "id": lot.id,
            "uuid": str(lot.uuid),
            "ingredient_id": lot.ingredient_id,
            "ingredient_name": lot.ingredient.name,
            "category": lot.ingredient.category,
            "batch_code": lot.batch_code,
            "unit": lot.unit,
            "available_quantity": str(lot.available_quantity),
            "reserved_quantity": str(lot.reserved_quantity),
            "min_threshold": str(lot.min_threshold),
            "max_threshold": str(lot.max_threshold) if lot.max_threshold is not None else None,
            "expiry_date": lot.expiry_date.isoformat() if lot.expiry_date else None,
            "days_to_expiry": days_to_expiry(lot.expiry_date, today),
            "cost_per_unit": str(lot.cost_per_unit),
            "total_value": str(round_money(lot.total_value)),
            "supplier_name": lot.supplier_name,
            "location": lot.location,
            "purchase_date": lot.purchase_date.isoformat() if lot.purchase_date else None,
            "notes": lot.notes,
            "stock_status": status.value,
            "stock_status_display": status.label,
            "created_at": lot.created_at.isoformat(),
            "updated_at": lot.updated_at.isoformat(),
        }

    @classmethod
    def _clean(cls, fields: Dict[str, Any]) -> Dict[str, Any]:
        cleaned = {}
        for name, value in fields.items():
            if name in QUANTITY_FIELDS:
                if value is None and name == "max_threshold":
                    cleaned[name] = None
                    continue
                value = round_decimal(to_decimal(value, name))
                if value < 0:
                    raise ValidationError(f"{name} cannot be negative", name)
            elif name in DATE_FIELDS:
                value = to_date(value, name)
            else:
                value = value or ""
            cleaned[name] = value
        return cleaned

    @classmethod
    def _check_thresholds(cls, min_threshold: Decimal, max_threshold: Optional[Decimal]) -> None:
        if max_threshold is not None and max_threshold < min_threshold:
            raise ValidationError("max_threshold cannot be lower than min_threshold", "max_threshold")

    # ==================== READ ====================

    @classmethod
    def _evaluate(cls, lots: List[StockLot]) -> List[Dict[str, Any]]:
        today = timezone.localdate()
        window = StockSettings.load().expiry_alert_days
        rows = [cls.serialize(lot, today, window) for lot in lots]
        rows.sort(key=lambda r: (
            STATUS_PRIORITY[StockStatus(r["stock_status"])],
            r["expiry_date"] is None,
            r["expiry_date"] or "",
        ))
        return rows

    @classmethod
    def _summary(cls, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        summary = {status.value: 0 for status in StockStatus}
        total_value = Decimal("0")
        for row in rows:
            summary[row["stock_status"]] += 1
            total_value += Decimal(row["total_value"])
        summary["total"] = len(rows)
        summary["total_value"] = str(round_money(total_value))
        return summary

    @classmethod
    def list(cls,
             search: str = None,
             ingredient_id: int = None,
             status: str = None,
             location: str = None) -> Dict[str, Any]:
        if status and status not in StockStatus.values:
            raise ValidationError(f"Invalid stock status. Valid: {list(StockStatus.values)}", "status")

        queryset = cls.model.objects.select_related("ingredient")

        if search:
            queryset = queryset.filter(
                Q(ingredient__name__icontains=search) |
                Q(batch_code__icontains=search) |
                Q(supplier_name__icontains=search)
            )

        if ingredient_id:
            queryset = queryset.filter(ingredient_id=ingredient_id)

        if location:
            queryset = queryset.filter(location=location)

        rows = cls._evaluate(list(queryset))
        summary = cls._summary(rows)

        # Status is derived, so it can only be filtered after classification
        if status:
            rows = [r for r in rows if r["stock_status"] == status]

        return success_response({
            "lots": rows,
            "count": len(rows),
            "summary": summary,
            "statuses": [{"value": c[0], "label": c[1]} for c in StockStatus.choices],
        })

    @classmethod
    def get(cls, lot_id: int) -> Dict[str, Any]:
        lot = cls.model.objects.select_related("ingredient").filter(id=lot_id).first()
        if not lot:
            raise NotFoundError("Stock lot", lot_id)
        return success_response({"lot": cls.serialize(lot)})

    @classmethod
    def get_alerts(cls) -> Dict[str, Any]:
        rows = cls._evaluate(list(cls.model.objects.select_related("ingredient")))
        alerts = [r for r in rows if r["stock_status"] != StockStatus.OK]
        return success_response({
            "alerts": alerts,
            "count": len(alerts),
            "summary": cls._summary(rows),
        })

    # ==================== WRITE ====================

    @classmethod
    def receive(cls,
                ingredient_id: int,
                quantity: Decimal,
                unit: str = None,
                batch_code: str = "",
                min_threshold: Decimal = Decimal("0"),
                max_threshold: Decimal = None,
                expiry_date: date = None,
                cost_per_unit: Decimal = None,
                supplier_name: str = "",
                location: str = "",
                purchase_date: date = None,
                notes: str = "") -> Dict[str, Any]:
        ingredient_id = to_int(ingredient_id, "ingredient_id")
        if ingredient_id is None:
            raise ValidationError("ingredient_id is required", "ingredient_id")
        quantity = round_decimal(to_decimal(quantity, "quantity"))
        if quantity <= 0:
            raise ValidationError("quantity must be positive", "quantity")

        fields = cls._clean({
            "batch_code": batch_code,
            "min_threshold": min_threshold if min_threshold is not None else Decimal("0"),
            "max_threshold": max_threshold,
            "expiry_date": expiry_date,
            "supplier_name": supplier_name,
            "location": location,
            "purchase_date": purchase_date,
            "notes": notes,
        })
        cls._check_thresholds(fields["min_threshold"], fields["max_threshold"])
        if cost_per_unit is not None:
            fields.update(cls._clean({"cost_per_unit": cost_per_unit}))

        with unit_of_work("stock_lot.receive"):
            ingredient = Ingredient.objects.filter(id=ingredient_id).first()
            if not ingredient:
                raise NotFoundError("Ingredient", ingredient_id)

            fields.setdefault("cost_per_unit", ingredient.cost_per_unit)
            lot = cls.model.objects.create(
                ingredient=ingredient,
                unit=unit or ingredient.unit,
                available_quantity=quantity,
                purchase_date=fields.pop("purchase_date") or timezone.localdate(),
                **fields,
            )

        logger.info("Received %s %s of %s into lot %s", quantity, lot.unit, ingredient.name, lot.id)
        return success_response({
            "id": lot.id,
            "lot": cls.serialize(lot),
        }, f"Received {quantity} {lot.unit} of {ingredient.name}")

    @classmethod
    def consume(cls, lot_id: int, quantity: Decimal) -> Dict[str, Any]:
        quantity = round_decimal(to_decimal(quantity, "quantity"))
        if quantity <= 0:
            raise ValidationError("quantity must be positive", "quantity")

        with unit_of_work("stock_lot.consume"):
            lot = cls.lock_or_404(lot_id, "Stock lot")

            if quantity > lot.available_quantity:
                raise InsufficientStockError(
                    f"lot {lot.batch_code or lot.id}", quantity, lot.available_quantity
                )

            lot.available_quantity -= quantity
            lot.save(update_fields=["available_quantity", "updated_at"])

        status = classify_stock_lot(lot)
        if status != StockStatus.OK:
            logger.warning("Stock lot %s is %s after consumption", lot.id, status.value)

        return success_response({
            "consumed": str(quantity),
            "remaining": str(lot.available_quantity),
            "stock_status": status.value,
        }, f"Consumed {quantity} from lot")

    @classmethod
    def update(cls, lot_id: int, **kwargs) -> Dict[str, Any]:
        unknown = set(kwargs) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown stock lot fields: {', '.join(sorted(unknown))}")
        fields = cls._clean(kwargs)

        with unit_of_work("stock_lot.update"):
            lot = cls.lock_or_404(lot_id, "Stock lot")
            for name, value in fields.items():
                setattr(lot, name, value)
            cls._check_thresholds(lot.min_threshold, lot.max_threshold)
            lot.save(update_fields=[*fields, "updated_at"])

        return success_response({"lot": cls.serialize(lot)}, "Stock lot updated")

    @classmethod
    @atomic_operation("stock_lot.delete")
    def delete(cls, lot_id: int) -> Dict[str, Any]:
        lot = cls.lock_or_404(lot_id, "Stock lot")
        if lot.available_quantity > 0:
            raise ConflictError(
                f"Stock lot {lot_id} still holds {lot.available_quantity} {lot.unit}",
                "lot_not_empty",
            )
        lot.delete()

        logger.info("Stock lot %s deleted", lot_id)
        return success_response(message="Stock lot deleted")
