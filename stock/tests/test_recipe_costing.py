from decimal import Decimal
from types import SimpleNamespace

from stock.services import line_cost, rollup_cost


def test_rollup_of_two_lines():
    lines = [
        {"quantity": "2", "cost_per_unit": "1.50"},
        {"quantity": "1", "cost_per_unit": "3.00"},
    ]

    assert rollup_cost(lines) == Decimal("6.00")


def test_rollup_rounds_half_up_at_the_end():
    lines = [
        {"quantity": "0.125", "cost_per_unit": "0.1"},
        {"quantity": "0.2", "cost_per_unit": "0.1"},
    ]

    # 0.0125 + 0.02 = 0.0325 -> 0.03
    assert rollup_cost(lines) == Decimal("0.03")
    assert rollup_cost([{"quantity": "1", "cost_per_unit": "0.005"}]) == Decimal("0.01")


def test_rollup_accepts_objects():
    lines = [SimpleNamespace(quantity=Decimal("1.5"), cost_per_unit=Decimal("2.0000"))]

    assert rollup_cost(lines) == Decimal("3.00")


def test_rollup_of_nothing_is_zero():
    assert rollup_cost([]) == Decimal("0.00")


def test_floats_do_not_drift():
    assert line_cost(0.1, 3) == Decimal("0.3")
