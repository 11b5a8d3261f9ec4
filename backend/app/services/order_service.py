# Overview: Service-layer operations for orders; creation, reads and non-lifecycle edits.

"""
Order Service

WHY: Intake and read paths for custom-print orders. Status and warehouse
membership are never written here; see lifecycle_service.

FIELD POLICIES:
- Sellers create orders for themselves; seller is taken from the actor
- Administrators may create for any seller and may set cost_cents
- cost_cents is only ever shown to administrators
- Bulk listings leave out photos
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import Conflict, NotFound, ValidationError
from ..models import Order
from ..models.orders import ORDER_STATUS_ADDED
from ..permissions import Actor, Role, check_permission, ensure_owns, seller_scope
from ..validation import ModelValidationPolicy, enforce_rules_order, validate_payload
from .lifecycle_service import validate_status
from .order_repository import OrderRepository, orders as default_orders
from app.time_utils import utcnow


logger = logging.getLogger(__name__)


_SELLER_CREATE_FIELDS = {
    "order_number", "shipment_number", "product_type", "size", "price_cents", "photos", "comment",
}

CREATE_POLICIES = {
    Role.SELLER: ModelValidationPolicy(
        writable_fields=_SELLER_CREATE_FIELDS,
        required_on_create={"order_number", "product_type", "size", "price_cents"},
    ),
    Role.ADMINISTRATOR: ModelValidationPolicy(
        writable_fields=_SELLER_CREATE_FIELDS | {"seller", "cost_cents"},
        required_on_create={"order_number", "product_type", "size", "price_cents", "seller"},
    ),
}

EDIT_POLICIES = {
    Role.SELLER: ModelValidationPolicy(writable_fields={"shipment_number", "comment", "photos"}),
    Role.ADMINISTRATOR: ModelValidationPolicy(
        writable_fields={
            "shipment_number", "comment", "photos", "price_cents", "cost_cents", "product_type", "size",
        },
    ),
}


def serialize_order(order: Order, actor: Actor, *, include_photos: bool = True) -> dict:
    """Order payload as the actor may see it."""
    return order.to_dict(include_photos=include_photos, include_cost=actor.is_admin)


def create_order(
    payload: dict,
    *,
    actor: Actor,
    repository: OrderRepository = default_orders,
) -> Order:
    """
    Create an order in status Added, off the warehouse.

    Raises:
        Forbidden: actor may not create orders
        ValidationError: payload fails field or business rules
        Conflict: order_number already exists
    """
    check_permission(actor, "CREATE_ORDER")

    patch = validate_payload(
        model=Order,
        payload=payload,
        policy=CREATE_POLICIES[actor.role],
        partial=False,
    )
    enforce_rules_order(patch)

    if actor.is_seller:
        patch["seller"] = actor.username

    if not patch.get("shipment_number"):
        patch["shipment_number"] = None

    if repository.find_by_order_numbers([patch["order_number"]]):
        raise Conflict(
            f"Order number '{patch['order_number']}' already exists",
            order_number=patch["order_number"],
        )

    now = utcnow()
    order = Order(
        order_date=now,
        updated_at=now,
        status=ORDER_STATUS_ADDED,
        on_warehouse=False,
        printer_checked=False,
        photos=patch.pop("photos", []),
        **patch,
    )

    try:
        repository.add(order)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict(
            f"Order number '{patch['order_number']}' already exists",
            order_number=patch["order_number"],
        )

    logger.info("Order %s (%s) created for seller %s", order.id, order.order_number, order.seller)
    return order


def get_order(
    order_id: int,
    *,
    actor: Actor,
    repository: OrderRepository = default_orders,
) -> Order:
    check_permission(actor, "VIEW_ORDERS")
    order = repository.get(order_id)
    if order is None:
        raise NotFound(f"Order {order_id} not found", order_id=order_id)
    ensure_owns(actor, order.seller)
    return order


def list_orders(
    *,
    actor: Actor,
    status: str | None = None,
    limit: int = 200,
    repository: OrderRepository = default_orders,
) -> list[Order]:
    """Newest orders first; sellers only see their own."""
    check_permission(actor, "VIEW_ORDERS")
    if status is not None:
        validate_status(status)
    return repository.list(seller=seller_scope(actor), status=status, limit=limit)


def update_order_details(
    order_id: int,
    payload: dict,
    *,
    actor: Actor,
    repository: OrderRepository = default_orders,
) -> Order:
    """
    Edit descriptive fields of an order.

    Lifecycle fields (status, on_warehouse, ready_at), ownership and the
    order date are not writable here.

    Raises:
        Forbidden, NotFound, ValidationError
        Conflict: the order changed since it was read (optimistic version check)
    """
    check_permission(actor, "EDIT_ORDER")

    order = repository.get(order_id)
    if order is None:
        raise NotFound(f"Order {order_id} not found", order_id=order_id)
    ensure_owns(actor, order.seller)

    patch = validate_payload(
        model=Order,
        payload=payload,
        policy=EDIT_POLICIES[actor.role],
        partial=True,
    )
    if not patch:
        raise ValidationError("No fields to update")
    enforce_rules_order(patch)

    if "shipment_number" in patch and not patch["shipment_number"]:
        patch["shipment_number"] = None

    for key, value in patch.items():
        setattr(order, key, value)
    order.updated_at = utcnow()

    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise Conflict(f"Order {order_id} was modified concurrently", order_id=order_id)

    return order


def mark_printer_checked(
    order_id: int,
    checked: bool,
    *,
    actor: Actor,
    repository: OrderRepository = default_orders,
) -> Order:
    """Printer acknowledgement flag; bumps the mutation timestamp for sync."""
    check_permission(actor, "PRINTER_CHECK")
    if not isinstance(checked, bool):
        raise ValidationError("checked must be a boolean", field="checked")

    if not repository.compare_and_set(
        order_id,
        expected={},
        values={"printer_checked": checked, "updated_at": utcnow()},
    ):
        db.session.rollback()
        raise NotFound(f"Order {order_id} not found", order_id=order_id)

    db.session.commit()
    return repository.get(order_id)
