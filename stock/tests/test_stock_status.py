from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from stock.services import (
    CRITICAL_FRACTION, DEFAULT_EXPIRY_WINDOW_DAYS, StockStatus,
    classify_stock, classify_stock_lot, days_to_expiry,
)

TODAY = date(2025, 3, 10)


def classify(available, minimum=10, maximum=None, expiry=None, window=DEFAULT_EXPIRY_WINDOW_DAYS):
    return classify_stock(
        Decimal(str(available)), Decimal(str(minimum)),
        max_threshold=maximum, expiry_date=expiry, today=TODAY, expiring_within_days=window,
    )


def test_named_constants():
    assert CRITICAL_FRACTION == Decimal("0.5")
    assert DEFAULT_EXPIRY_WINDOW_DAYS == 7


@pytest.mark.parametrize("available,expected", [
    (10, StockStatus.LOW),
    (5, StockStatus.CRITICAL),
    (0, StockStatus.OUT_OF_STOCK),
    (-2, StockStatus.OUT_OF_STOCK),
    ("5.01", StockStatus.LOW),
    ("10.01", StockStatus.OK),
])
def test_quantity_boundaries(available, expected):
    assert classify(available) == expected


def test_expired_wins_regardless_of_quantity():
    yesterday = TODAY - timedelta(days=1)

    assert classify(1000, expiry=yesterday) == StockStatus.EXPIRED
    assert classify(0, expiry=yesterday) == StockStatus.EXPIRED


def test_expiring_today_is_not_expired():
    assert classify(50, expiry=TODAY) == StockStatus.EXPIRING


@pytest.mark.parametrize("days,expected", [
    (7, StockStatus.EXPIRING),
    (8, StockStatus.OK),
])
def test_expiry_window_edge(days, expected):
    assert classify(50, expiry=TODAY + timedelta(days=days)) == expected


def test_window_is_configurable():
    assert classify(50, expiry=TODAY + timedelta(days=10), window=14) == StockStatus.EXPIRING
    assert classify(50, expiry=TODAY + timedelta(days=3), window=2) == StockStatus.OK


def test_priority_critical_before_expiring_before_low():
    soon = TODAY + timedelta(days=2)

    assert classify(4, expiry=soon) == StockStatus.CRITICAL
    assert classify(8, expiry=soon) == StockStatus.EXPIRING
    assert classify(0, expiry=soon) == StockStatus.OUT_OF_STOCK


def test_overstock_only_when_max_is_set():
    assert classify(101, maximum=Decimal("100")) == StockStatus.OVERSTOCK
    assert classify(100, maximum=Decimal("100")) == StockStatus.OK
    assert classify(10_000) == StockStatus.OK


def test_zero_minimum_never_low():
    assert classify("0.001", minimum=0) == StockStatus.OK


def test_today_may_be_an_aware_datetime():
    now = datetime(2025, 3, 10, 12, 0, tzinfo=dt_timezone.utc)

    status = classify_stock(50, 10, expiry_date=date(2025, 3, 9), today=now)

    assert status == StockStatus.EXPIRED


def test_classify_stock_lot_reads_fields():
    lot = SimpleNamespace(
        available_quantity=Decimal("3"), min_threshold=Decimal("10"),
        max_threshold=None, expiry_date=None,
    )

    assert classify_stock_lot(lot, today=TODAY, expiring_within_days=7) == StockStatus.CRITICAL


@pytest.mark.django_db
def test_classify_stock_lot_uses_configured_window():
    from stock.models import StockSettings

    settings_row = StockSettings.load()
    settings_row.expiry_alert_days = 30
    settings_row.save()
    lot = SimpleNamespace(
        available_quantity=Decimal("50"), min_threshold=Decimal("10"),
        max_threshold=None, expiry_date=TODAY + timedelta(days=20),
    )

    assert classify_stock_lot(lot, today=TODAY) == StockStatus.EXPIRING


def test_days_to_expiry():
    assert days_to_expiry(None, TODAY) is None
    assert days_to_expiry(TODAY + timedelta(days=3), TODAY) == 3
    assert days_to_expiry(TODAY - timedelta(days=1), TODAY) == -1
