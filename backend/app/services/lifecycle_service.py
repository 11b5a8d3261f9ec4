# Overview: Service-layer operations for the order lifecycle; status state machine and warehouse membership.

"""
Order Lifecycle Service

================================================================================
PURPOSE: Enforce the order status machine and the warehouse-membership flag
================================================================================

STATE MACHINE:
    Added -> Ready -> Shipped -> Fulfilled -> Returned
    Added | Ready | Shipped -> Cancelled

    Cancelled and Returned are terminal.
    Fulfilled may only move to Returned.

RULES (NON-NEGOTIABLE):
1. Illegal transitions raise InvalidTransition and leave the row untouched
2. Entering Ready stamps ready_at once; ready_at is never cleared
3. Ready -> Ready is an idempotent no-op
4. Every write is one conditional UPDATE keyed on the status we read, so
   two concurrent writers cannot both apply

WAREHOUSE:
    on_warehouse is independent of status. Using an order from the warehouse
    flips it True -> False exactly once; a retry reports NotOnWarehouse
    instead of consuming stock twice. Returning orders to stock is a separate
    operation keyed by shipment number, with a read-only check to preview it.

================================================================================
"""

from __future__ import annotations

import logging
import re

from sqlalchemy import func

from ..extensions import db
from ..errors import InvalidTransition, NotFound, NotOnWarehouse, ValidationError
from ..models import Order
from ..models.orders import (
    ORDER_STATUSES,
    ORDER_STATUS_ADDED,
    ORDER_STATUS_READY,
    ORDER_STATUS_SHIPPED,
    ORDER_STATUS_FULFILLED,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_RETURNED,
)
from ..permissions import Actor, check_permission, ensure_owns
from .order_repository import OrderRepository, orders as default_orders
from app.time_utils import utcnow


logger = logging.getLogger(__name__)


VALID_TRANSITIONS = frozenset({
    (ORDER_STATUS_ADDED, ORDER_STATUS_READY),
    (ORDER_STATUS_READY, ORDER_STATUS_SHIPPED),
    (ORDER_STATUS_SHIPPED, ORDER_STATUS_FULFILLED),
    (ORDER_STATUS_ADDED, ORDER_STATUS_CANCELLED),
    (ORDER_STATUS_READY, ORDER_STATUS_CANCELLED),
    (ORDER_STATUS_SHIPPED, ORDER_STATUS_CANCELLED),
    (ORDER_STATUS_FULFILLED, ORDER_STATUS_RETURNED),
})

_SHIPMENT_SPLIT = re.compile(r"[\s,]+")


def validate_status(status: str) -> None:
    """
    Validate that a status value is one of the allowed states.

    Raises:
        ValidationError: If status is not in ORDER_STATUSES
    """
    if status not in ORDER_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(ORDER_STATUSES)}",
            field="status",
        )


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Check if a state transition is valid according to the lifecycle rules.

    Same-state moves are not transitions; Ready -> Ready is handled by the
    caller as a no-op.
    """
    validate_status(from_status)
    validate_status(to_status)
    return (from_status, to_status) in VALID_TRANSITIONS


def transition_status(
    order_id: int,
    target_status: str,
    *,
    actor: Actor,
    repository: OrderRepository = default_orders,
) -> Order:
    """
    Move an order to target_status.

    Returns:
        The updated order (or the unchanged order for a repeated Ready)

    Raises:
        ValidationError: target_status is not a known status
        Forbidden: actor may not transition, or a seller touching another seller's order
        NotFound: order does not exist
        InvalidTransition: the move is not in VALID_TRANSITIONS

    Safe to retry: a lost race is re-evaluated against the stored status.
    """
    check_permission(actor, "TRANSITION_ORDER_STATUS")
    validate_status(target_status)

    order = repository.get(order_id)
    if order is None:
        raise NotFound(f"Order {order_id} not found", order_id=order_id)
    ensure_owns(actor, order.seller)

    current = order.status
    if current == target_status == ORDER_STATUS_READY:
        return order

    if not can_transition(current, target_status):
        raise InvalidTransition(current, target_status, order_id=order_id)

    now = utcnow()
    values = {"status": target_status, "updated_at": now}
    if target_status == ORDER_STATUS_READY:
        values["ready_at"] = func.coalesce(Order.ready_at, now)

    if not repository.compare_and_set(order_id, expected={"status": current}, values=values):
        # Another writer moved the order between our read and our write.
        db.session.rollback()
        latest = repository.get(order_id)
        if latest is None:
            raise NotFound(f"Order {order_id} not found", order_id=order_id)
        logger.info(
            "Status race on order %s: read %s, now %s, requested %s",
            order_id, current, latest.status, target_status,
        )
        if latest.status == target_status == ORDER_STATUS_READY:
            return latest
        raise InvalidTransition(latest.status, target_status, order_id=order_id)

    db.session.commit()
    return repository.get(order_id)


def use_from_warehouse(
    order_id: int,
    *,
    actor: Actor,
    repository: OrderRepository = default_orders,
) -> Order:
    """
    Take a finished item out of stock (on_warehouse True -> False).

    Status is not touched. Exactly one of any number of concurrent calls for
    the same order succeeds; the rest raise NotOnWarehouse.

    Raises:
        Forbidden: actor is not a Printer
        NotFound: order does not exist
        NotOnWarehouse: order exists but is not (or no longer) in stock
    """
    check_permission(actor, "USE_FROM_WAREHOUSE")

    # The conditional write goes first: no read lock is held while waiting
    # for a competing writer.
    swapped = repository.compare_and_set(
        order_id,
        expected={"on_warehouse": True},
        values={"on_warehouse": False, "updated_at": utcnow()},
    )
    if not swapped:
        db.session.rollback()
        order = repository.get(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found", order_id=order_id)
        logger.info("Order %s already taken from warehouse", order_id)
        raise NotOnWarehouse(
            f"Order {order_id} is not on the warehouse",
            order_id=order_id,
            shipment_number=order.shipment_number,
        )

    db.session.commit()
    return repository.get(order_id)


def parse_shipment_numbers(raw) -> list[str]:
    """
    Accept a list of numbers or free text separated by spaces, commas or newlines.
    Order of first appearance is kept; duplicates are dropped.
    """
    if isinstance(raw, str):
        parts = _SHIPMENT_SPLIT.split(raw)
    elif isinstance(raw, (list, tuple)):
        parts = [str(p) for p in raw if p is not None]
    else:
        raise ValidationError("shipment_numbers must be a string or a list", field="shipment_numbers")

    seen: dict[str, None] = {}
    for part in parts:
        number = part.strip()
        if number:
            seen.setdefault(number, None)
    return list(seen)


def check_warehouse(
    shipment_numbers,
    *,
    actor: Actor,
    repository: OrderRepository = default_orders,
) -> dict:
    """
    Look up orders by shipment number without changing them.

    Lets the printer see what AddToWarehouse would match before committing.

    Returns:
        {"found": [Order, ...], "not_found": [...], "requested": n}

    Raises:
        Forbidden: actor is not a Printer
        ValidationError: no shipment numbers given
    """
    check_permission(actor, "CHECK_WAREHOUSE")

    numbers = parse_shipment_numbers(shipment_numbers)
    if not numbers:
        raise ValidationError("No shipment numbers given", field="shipment_numbers")

    matched = repository.find_by_shipment_numbers(numbers)
    found_numbers = {o.shipment_number for o in matched}
    return {
        "found": matched,
        "not_found": [n for n in numbers if n not in found_numbers],
        "requested": len(numbers),
    }


def add_to_warehouse(
    shipment_numbers,
    *,
    actor: Actor,
    repository: OrderRepository = default_orders,
) -> dict:
    """
    Put returned items back into stock by shipment number.

    Each matching order not already in stock gets on_warehouse=True through
    its own conditional update; status is left as it is.

    Returns:
        {"added": [...], "already_on_warehouse": [...], "not_found": [...], "requested": n}

    Raises:
        Forbidden: actor is not a Printer
        ValidationError: no shipment numbers given
        NotFound: none of the numbers match an order
    """
    check_permission(actor, "ADD_TO_WAREHOUSE")

    numbers = parse_shipment_numbers(shipment_numbers)
    if not numbers:
        raise ValidationError("No shipment numbers given", field="shipment_numbers")

    matched = repository.find_by_shipment_numbers(numbers)
    if not matched:
        raise NotFound(
            "No orders match the given shipment numbers",
            not_found=numbers,
            requested=len(numbers),
        )

    found_numbers = {o.shipment_number for o in matched}
    targets = [(o.id, o.shipment_number) for o in matched]
    now = utcnow()

    added: list[dict] = []
    already: list[dict] = []
    for order_id, shipment_number in targets:
        entry = {"order_id": order_id, "shipment_number": shipment_number}
        if repository.compare_and_set(
            order_id,
            expected={"on_warehouse": False},
            values={"on_warehouse": True, "updated_at": now},
        ):
            added.append(entry)
        else:
            already.append(entry)

    db.session.commit()

    logger.info("Added %d orders to warehouse (%d already there)", len(added), len(already))
    return {
        "added": added,
        "already_on_warehouse": already,
        "not_found": [n for n in numbers if n not in found_numbers],
        "requested": len(numbers),
    }


def list_warehouse(
    *,
    actor: Actor,
    product_type: str | None = None,
    size: str | None = None,
    limit: int = 500,
    repository: OrderRepository = default_orders,
) -> list[Order]:
    """Orders currently in stock, newest change first."""
    check_permission(actor, "VIEW_WAREHOUSE")
    return repository.find_by_warehouse_flag(
        True, product_type=product_type, size=size, limit=limit
    )
