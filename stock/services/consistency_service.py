"""
Drift detection for stored aggregates.

Recipe.total_cost, PurchaseOrderItem.total_price and the purchase-order
totals are derived values written by the services. A direct SQL edit can
leave them stale; check_* recomputes them from the detail rows and
repair() writes back the recomputed values.
"""

import logging
from typing import Dict, Any, List
from decimal import Decimal

from django.db.models import Prefetch

from stock.models import PurchaseOrder, PurchaseOrderItem, Recipe
from stock.services.base_service import ValidationError, success_response
from stock.services.order_totals import calculate_order_totals, line_total
from stock.services.recipe_costing import rollup_cost
from stock.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

ORDER_TOTAL_FIELDS = ("subtotal", "tax_amount", "total")


def _drift(kind: str, obj_id: int, label: str, field: str, stored: Decimal, expected: Decimal) -> Dict[str, Any]:
    return {
        "kind": kind,
        "id": obj_id,
        "label": label,
        "field": field,
        "stored": str(stored),
        "expected": str(expected),
    }


class ConsistencyService:

    @classmethod
    def check_recipes(cls) -> List[Dict[str, Any]]:
        findings = []
        for recipe in Recipe.objects.prefetch_related("ingredients"):
            lines = list(recipe.ingredients.all())
            expected = rollup_cost(lines)
            if expected != recipe.total_cost:
                findings.append(_drift("recipe", recipe.id, recipe.name, "total_cost", recipe.total_cost, expected))
        return findings

    @classmethod
    def check_purchase_orders(cls) -> List[Dict[str, Any]]:
        findings = []
        orders = PurchaseOrder.objects.prefetch_related(
            Prefetch("items", queryset=PurchaseOrderItem.objects.order_by("id"))
        )
        for po in orders:
            items = list(po.items.all())
            for item in items:
                expected = line_total(item.quantity, item.unit_price)
                if expected != item.total_price:
                    findings.append(_drift(
                        "purchase_order_item", item.id, po.order_number, "total_price",
                        item.total_price, expected,
                    ))

            try:
                totals = calculate_order_totals(items, po.discount_amount, po.shipping_cost)
            except ValidationError as e:
                findings.append(_drift(
                    "purchase_order", po.id, po.order_number, e.field, getattr(po, e.field), e.message,
                ))
                continue
            for field in ORDER_TOTAL_FIELDS:
                stored = getattr(po, field)
                expected = getattr(totals, field)
                if expected != stored:
                    findings.append(_drift("purchase_order", po.id, po.order_number, field, stored, expected))
        return findings

    @classmethod
    def check(cls) -> Dict[str, Any]:
        findings = cls.check_recipes() + cls.check_purchase_orders()
        for finding in findings:
            logger.warning(
                "Drift on %s %s (%s).%s: stored %s, expected %s",
                finding["kind"], finding["id"], finding["label"], finding["field"],
                finding["stored"], finding["expected"],
            )
        return success_response({
            "findings": findings,
            "count": len(findings),
            "consistent": not findings,
        })

    @classmethod
    def repair(cls) -> Dict[str, Any]:
        """Rewrite every drifted aggregate from its detail rows in one transaction."""
        repaired = 0

        with unit_of_work("consistency.repair"):
            for recipe in Recipe.objects.select_for_update():
                expected = rollup_cost(recipe.ingredients.all())
                if expected != recipe.total_cost:
                    recipe.total_cost = expected
                    recipe.save(update_fields=["total_cost", "updated_at"])
                    repaired += 1

            for po in PurchaseOrder.objects.select_for_update():
                items = list(po.items.order_by("id"))
                for item in items:
                    expected = line_total(item.quantity, item.unit_price)
                    if expected != item.total_price:
                        item.total_price = expected
                        item.save(update_fields=["total_price"])
                        repaired += 1

                try:
                    totals = calculate_order_totals(items, po.discount_amount, po.shipping_cost)
                except ValidationError as e:
                    logger.warning("Cannot repair purchase order %s: %s", po.order_number, e.message)
                    continue
                changed = [f for f in ORDER_TOTAL_FIELDS if getattr(po, f) != getattr(totals, f)]
                if changed:
                    for field in changed:
                        setattr(po, field, getattr(totals, field))
                    po.save(update_fields=[*changed, "updated_at"])
                    repaired += 1

        if repaired:
            logger.info("Repaired %d drifted aggregates", repaired)
        return success_response({"repaired": repaired}, f"Repaired {repaired} rows")
