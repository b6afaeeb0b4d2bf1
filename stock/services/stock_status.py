"""
Stock lot status, derived at read time and never stored.

Rules, first match wins:
    expired       expiry_date before today
    out_of_stock  available <= 0
    critical      available <= min_threshold * CRITICAL_FRACTION
    expiring      expiry_date within the lookahead window (today included)
    low           available <= min_threshold
    overstock     max_threshold set and available > max_threshold
    ok            otherwise
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from django.db import models
from django.utils import timezone

from stock.models import StockSettings
from .base_service import to_decimal

CRITICAL_FRACTION = Decimal("0.5")
DEFAULT_EXPIRY_WINDOW_DAYS = 7


class StockStatus(models.TextChoices):
    EXPIRED = "expired", "Expired"
    OUT_OF_STOCK = "out_of_stock", "Out of stock"
    CRITICAL = "critical", "Critical"
    EXPIRING = "expiring", "Expiring soon"
    LOW = "low", "Low"
    OVERSTOCK = "overstock", "Overstock"
    OK = "ok", "OK"


# Declaration order is the priority order.
STATUS_PRIORITY = {status: rank for rank, status in enumerate(StockStatus)}


def _as_date(today: Any) -> date:
    if today is None:
        return timezone.localdate()
    if isinstance(today, datetime):
        return timezone.localtime(today).date() if timezone.is_aware(today) else today.date()
    return today


def days_to_expiry(expiry_date: Optional[date], today: Any = None) -> Optional[int]:
    if expiry_date is None:
        return None
    return (expiry_date - _as_date(today)).days


def classify_stock(available_quantity,
                   min_threshold,
                   max_threshold=None,
                   expiry_date: Optional[date] = None,
                   today: Any = None,
                   expiring_within_days: int = DEFAULT_EXPIRY_WINDOW_DAYS) -> StockStatus:
    today = _as_date(today)
    available = to_decimal(available_quantity, "available_quantity", Decimal("0"))
    minimum = to_decimal(min_threshold, "min_threshold", Decimal("0"))

    if expiry_date is not None and expiry_date < today:
        return StockStatus.EXPIRED
    if available <= 0:
        return StockStatus.OUT_OF_STOCK
    if available <= minimum * CRITICAL_FRACTION:
        return StockStatus.CRITICAL
    if expiry_date is not None and expiry_date <= today + timedelta(days=expiring_within_days):
        return StockStatus.EXPIRING
    if available <= minimum:
        return StockStatus.LOW
    if max_threshold is not None and available > to_decimal(max_threshold, "max_threshold"):
        return StockStatus.OVERSTOCK
    return StockStatus.OK


def classify_stock_lot(lot, today: Any = None, expiring_within_days: int = None) -> StockStatus:
    if expiring_within_days is None:
        expiring_within_days = StockSettings.load().expiry_alert_days

    return classify_stock(
        lot.available_quantity,
        lot.min_threshold,
        max_threshold=lot.max_threshold,
        expiry_date=lot.expiry_date,
        today=today,
        expiring_within_days=expiring_within_days,
    )
