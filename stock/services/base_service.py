from typing import Dict, Any, Optional, List, Tuple
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime
from django.db.models import Model


MONEY_PLACES = 2


class ServiceError(Exception):
    def __init__(self, message: str, code: str = "ERROR", details: Dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(ServiceError):
    def __init__(self, message: str, field: str = None, details: Dict = None):
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


class NotFoundError(ServiceError):
    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            "NOT_FOUND",
            {"resource": resource, "identifier": str(identifier)}
        )


class ConflictError(ServiceError):
    """The operation is forbidden by the current state of the data."""

    def __init__(self, message: str, rule: str = None, details: Dict = None):
        super().__init__(message, "CONFLICT", {"rule": rule, **(details or {})})
        self.rule = rule


class InsufficientStockError(ConflictError):
    def __init__(self, item_name: str, required: Decimal, available: Decimal):
        super().__init__(
            f"Insufficient stock for {item_name}: required {required}, available {available}",
            "insufficient_stock",
            {"item": item_name, "required": str(required), "available": str(available)}
        )


class PersistenceError(ServiceError):
    """The store failed to read or write. Nothing from the unit of work was committed."""

    def __init__(self, message: str, operation: str = None):
        super().__init__(message, "PERSISTENCE_ERROR", {"operation": operation})
        self.operation = operation


def success_response(data: Any = None, message: str = "Success") -> Dict:
    response = {"success": True, "message": message}
    if data is not None:
        if isinstance(data, dict):
            response.update(data)
        else:
            response["data"] = data
    return response


def paginate_queryset(queryset, page: int = 1, per_page: int = 20) -> Tuple[List, Dict]:
    page = max(1, page)
    per_page = min(max(1, per_page), 100)

    total = queryset.count()
    total_pages = (total + per_page - 1) // per_page

    offset = (page - 1) * per_page
    items = list(queryset[offset:offset + per_page])

    return items, {
        "page": page,
        "per_page": per_page,
        "total_items": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1
    }


def to_decimal(value: Any, field: str = None, default: Decimal = None) -> Decimal:
    """
    Parse a caller-supplied number. Floats go through str() so 0.1 stays 0.1.
    Missing values give `default`; garbage raises ValidationError.
    """
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field or 'value'} is required", field)
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field or 'value'} must be a number", field)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field or 'value'} must be a number", field)
    if not result.is_finite():
        raise ValidationError(f"{field or 'value'} must be a finite number", field)
    return result


def round_decimal(value: Decimal, places: int = 4) -> Decimal:
    if value is None:
        return Decimal("0")
    quantize_str = "0." + "0" * places
    return value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)


def round_money(value: Decimal) -> Decimal:
    return round_decimal(value, MONEY_PLACES)


def to_int(value: Any, field: str, default: int = None) -> Optional[int]:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", field)


def to_date(value: Any, field: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)", field)


class BaseService:
    model = None

    @classmethod
    def get_by_id(cls, id: int) -> Optional[Model]:
        try:
            return cls.model.objects.get(id=id)
        except cls.model.DoesNotExist:
            return None

    @classmethod
    def get_or_404(cls, id: int, resource: str = None) -> Model:
        obj = cls.get_by_id(id)
        if not obj:
            raise NotFoundError(resource or cls.model.__name__, id)
        return obj

    @classmethod
    def lock_or_404(cls, id: int, resource: str = None) -> Model:
        """Fetch the row with SELECT ... FOR UPDATE. Must run inside a transaction."""
        obj = cls.model.objects.select_for_update().filter(id=id).first()
        if not obj:
            raise NotFoundError(resource or cls.model.__name__, id)
        return obj

    @classmethod
    def exists(cls, id: int) -> bool:
        return cls.model.objects.filter(id=id).exists()
