"""
Purchase-order status machine.

    draft -> sent -> confirmed -> delivered -> invoiced -> paid
    draft, sent, confirmed -> cancelled

Delivered, invoiced and paid orders can be neither cancelled nor deleted.
apply_transition() is the only place that writes PurchaseOrder.status.
"""

import logging
from datetime import date
from typing import List, Optional

from stock.models import PurchaseOrder
from .base_service import ConflictError, ValidationError

logger = logging.getLogger(__name__)

Status = PurchaseOrder.Status

ALLOWED_TRANSITIONS = {
    Status.DRAFT: frozenset({Status.SENT, Status.CANCELLED}),
    Status.SENT: frozenset({Status.CONFIRMED, Status.CANCELLED}),
    Status.CONFIRMED: frozenset({Status.DELIVERED, Status.CANCELLED}),
    Status.DELIVERED: frozenset({Status.INVOICED}),
    Status.INVOICED: frozenset({Status.PAID}),
    Status.PAID: frozenset(),
    Status.CANCELLED: frozenset(),
}

LOCKED_STATUSES = frozenset({Status.DELIVERED, Status.INVOICED, Status.PAID})
EDITABLE_STATUSES = frozenset({Status.DRAFT, Status.SENT, Status.CONFIRMED})


def parse_status(value) -> Status:
    try:
        return Status(value)
    except ValueError:
        raise ValidationError(
            f"Unknown purchase order status: {value}",
            "status",
            {"allowed": list(Status.values)},
        )


def allowed_targets(current) -> List[str]:
    return sorted(s.value for s in ALLOWED_TRANSITIONS[parse_status(current)])


def check_transition(current, target) -> Status:
    current = parse_status(current)
    target = parse_status(target)

    if current == target:
        return target

    if target == Status.CANCELLED and current in LOCKED_STATUSES:
        raise ConflictError(
            f"Cannot cancel a {current.label.lower()} purchase order",
            "cancel_locked_order",
        )

    if target not in ALLOWED_TRANSITIONS[current]:
        raise ConflictError(
            f"Cannot move purchase order from {current} to {target}",
            "invalid_transition",
            {"from": current.value, "to": target.value,
             "allowed": allowed_targets(current)},
        )
    return target


def check_deletable(status) -> None:
    status = parse_status(status)
    if status in LOCKED_STATUSES:
        raise ConflictError(
            f"Cannot delete a {status.label.lower()} purchase order",
            "delete_locked_order",
        )


def check_items_editable(status) -> None:
    status = parse_status(status)
    if status not in EDITABLE_STATUSES:
        raise ConflictError(
            f"Items of a {status.label.lower()} purchase order cannot be changed",
            "items_locked",
        )


def apply_transition(order: PurchaseOrder,
                     target,
                     actual_delivery_date: Optional[date] = None,
                     invoice_number: Optional[str] = None) -> List[str]:
    """
    Validate and apply a status change to the in-memory order.
    Returns the names of the fields that changed; the caller saves them.
    """
    previous = order.status
    target = check_transition(previous, target)
    changed = []

    if order.status != target:
        order.status = target
        changed.append("status")

    if target == Status.DELIVERED and actual_delivery_date is not None:
        order.actual_delivery_date = actual_delivery_date
        changed.append("actual_delivery_date")

    if target == Status.INVOICED:
        if invoice_number:
            order.invoice_number = invoice_number
            changed.append("invoice_number")
        elif not order.invoice_number:
            logger.warning("Purchase order %s invoiced without an invoice number", order.order_number)

    if "status" in changed:
        logger.info("Purchase order %s: %s -> %s", order.order_number, previous, target)
    return changed
