import threading

import pytest
from django.db import connection
from django.utils import timezone

from stock.models import OrderSequence, PurchaseOrder
from stock.services import PersistenceError, PurchaseOrderService
from stock.services.sequence_service import (
    format_order_number, order_number_prefix, parse_sequence, period_for,
)

WORKERS = 8


def create_in_threads(supplier, items, workers=WORKERS):
    """Fire `workers` creations at once. Returns (order numbers, exceptions)."""
    barrier = threading.Barrier(workers)
    numbers, errors = [], []

    def worker():
        try:
            barrier.wait(timeout=10)
            result = PurchaseOrderService.create(
                supplier_id=supplier.id, order_date="2025-01-10", items=items,
            )
            numbers.append(result["order_number"])
        except Exception as e:
            errors.append(e)
        finally:
            connection.close()

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return numbers, errors


@pytest.mark.django_db(transaction=True)
def test_concurrent_creations_never_share_a_number(supplier, order_items):
    period = period_for(timezone.localdate())
    assert not OrderSequence.objects.exists()

    numbers, errors = create_in_threads(supplier, order_items)

    assert len(numbers) + len(errors) == WORKERS
    # Losers of the race fail as a whole, never with a duplicate number
    assert all(isinstance(e, PersistenceError) for e in errors), errors

    committed = list(PurchaseOrder.objects.values_list("order_number", flat=True))
    assert sorted(committed) == sorted(numbers)
    assert len(set(committed)) == len(committed)

    # Failed attempts rolled their increment back, so the sequence has no gaps
    sequences = sorted(parse_sequence(n) for n in committed)
    assert sequences == list(range(1, len(committed) + 1))

    follow_up = PurchaseOrderService.create(
        supplier_id=supplier.id, order_date="2025-01-10", items=order_items,
    )
    assert follow_up["order_number"] == format_order_number(
        order_number_prefix(), period, len(committed) + 1
    )
    assert OrderSequence.objects.filter(period=period).count() == 1
