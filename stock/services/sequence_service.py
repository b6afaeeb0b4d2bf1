"""
Purchase-order numbering: ORD-YYYYMM-NNN, restarting at 001 every month.

The counter lives in OrderSequence, one row per (prefix, month), and is
incremented under SELECT ... FOR UPDATE. Two creations in the same month
therefore serialize on that row and can never receive the same number.
Call next_order_number() inside the unit of work that inserts the order so
the increment rolls back together with the insert.
"""

import logging
import re
from datetime import date, datetime
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from stock.models import OrderSequence, PurchaseOrder

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 3

_NUMBER_RE = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<period>\d{6})-(?P<seq>\d+)$")


def order_number_prefix() -> str:
    return getattr(settings, "PURCHASE_ORDER_NUMBER_PREFIX", "ORD")


def period_for(day) -> str:
    if isinstance(day, datetime):
        day = timezone.localtime(day).date() if timezone.is_aware(day) else day.date()
    return f"{day.year:04d}{day.month:02d}"


def format_order_number(prefix: str, period: str, value: int) -> str:
    return f"{prefix}-{period}-{value:0{SEQUENCE_WIDTH}d}"


def parse_sequence(order_number: str) -> Optional[int]:
    match = _NUMBER_RE.match(order_number or "")
    if not match:
        return None
    return int(match.group("seq"))


class SequenceService:

    @classmethod
    def _highest_existing(cls, prefix: str, period: str) -> int:
        # Zero-padded suffixes sort lexicographically until they pass 999,
        # so compare numerically over the month's rows.
        numbers = PurchaseOrder.objects.filter(
            order_number__startswith=f"{prefix}-{period}-"
        ).values_list("order_number", flat=True)
        return max((parse_sequence(n) or 0 for n in numbers), default=0)

    @classmethod
    def _locked_counter(cls, prefix: str, period: str) -> OrderSequence:
        counter = OrderSequence.objects.select_for_update().filter(
            prefix=prefix, period=period
        ).first()
        if counter:
            return counter

        seed = cls._highest_existing(prefix, period)
        try:
            with transaction.atomic():
                OrderSequence.objects.create(prefix=prefix, period=period, last_value=seed)
            if seed:
                logger.info("Order sequence %s-%s seeded at %d from existing orders", prefix, period, seed)
        except IntegrityError:
            # Another transaction created the row first; fall through and lock it.
            logger.debug("Order sequence %s-%s created concurrently", prefix, period)

        return OrderSequence.objects.select_for_update().get(prefix=prefix, period=period)

    @classmethod
    def next_order_number(cls, today: date = None) -> str:
        if not transaction.get_connection().in_atomic_block:
            raise RuntimeError("Order numbers must be allocated inside a transaction")

        prefix = order_number_prefix()
        period = period_for(today or timezone.localdate())

        counter = cls._locked_counter(prefix, period)
        counter.last_value += 1
        counter.save(update_fields=["last_value", "updated_at"])

        number = format_order_number(prefix, period, counter.last_value)
        logger.info("Allocated order number %s", number)
        return number

