# Overview: Service-layer operations for seller payouts; snapshot aggregation and payout status machine.

"""
Payout Reconciliation Service

WHY: Settle a seller's finished orders as one financial record.

DESIGN PRINCIPLES:
- Snapshot, not a view: each included order is copied into a PayoutLine with
  its product type and price as they were at build time
- Money is integer minor units; the average check is rounded half-up with
  Decimal, never binary floating point
- Missing order numbers reject the whole payout (NotFound lists them); a
  partial payout is never written
- An order is paid at most once: building a payout claims each order with
  one conditional UPDATE on orders.payout_id, and cancelling releases it
- Administrators may pay orders in any status; sellers only Ready, Shipped
  or Fulfilled ones
- Orders are read without locks; a concurrent order edit may or may not be
  reflected in the snapshot, which is acceptable staleness

STATUS MACHINE:
    pending -> processing -> completed
    pending | processing -> cancelled
    completed and cancelled are terminal
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import update

from ..extensions import db
from ..errors import Conflict, InvalidTransition, NotFound, ValidationError
from ..models import Order, Payout, PayoutLine
from ..models.orders import ORDER_STATUS_READY, ORDER_STATUS_SHIPPED, ORDER_STATUS_FULFILLED
from ..models.payouts import (
    PAYOUT_STATUSES,
    PAYOUT_STATUS_PENDING,
    PAYOUT_STATUS_PROCESSING,
    PAYOUT_STATUS_COMPLETED,
    PAYOUT_STATUS_CANCELLED,
)
from ..permissions import Actor, check_permission, ensure_owns, seller_scope
from .order_repository import OrderRepository, orders as default_orders
from app.time_utils import utcnow


logger = logging.getLogger(__name__)


PAYABLE_ORDER_STATUSES = frozenset({ORDER_STATUS_READY, ORDER_STATUS_SHIPPED, ORDER_STATUS_FULFILLED})

VALID_PAYOUT_TRANSITIONS = frozenset({
    (PAYOUT_STATUS_PENDING, PAYOUT_STATUS_PROCESSING),
    (PAYOUT_STATUS_PROCESSING, PAYOUT_STATUS_COMPLETED),
    (PAYOUT_STATUS_PENDING, PAYOUT_STATUS_CANCELLED),
    (PAYOUT_STATUS_PROCESSING, PAYOUT_STATUS_CANCELLED),
})


# =============================================================================
# AGGREGATION
# =============================================================================

def average_check_cents(amount_cents: int, order_count: int) -> int:
    """amount / count rounded half-up to a whole minor unit; 0 for no orders."""
    if order_count == 0:
        return 0
    avg = (Decimal(amount_cents) / Decimal(order_count)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(avg)


def aggregate_orders(orders: list[Order]) -> dict:
    """
    Totals for a list of orders.

    Returns:
        {"amount_cents", "order_count", "average_check_cents",
         "product_type_stats": {type: {"count", "amount_cents"}}}
    """
    amount = 0
    stats: dict[str, dict[str, int]] = {}
    for order in orders:
        amount += order.price_cents
        bucket = stats.setdefault(order.product_type, {"count": 0, "amount_cents": 0})
        bucket["count"] += 1
        bucket["amount_cents"] += order.price_cents

    return {
        "amount_cents": amount,
        "order_count": len(orders),
        "average_check_cents": average_check_cents(amount, len(orders)),
        "product_type_stats": stats,
    }


def normalize_order_numbers(order_numbers) -> list[str]:
    """Strip, drop blanks and duplicates, keep first-seen order."""
    if not isinstance(order_numbers, (list, tuple)):
        raise ValidationError("order_numbers must be a list", field="order_numbers")
    seen: dict[str, None] = {}
    for raw in order_numbers:
        if raw is None:
            continue
        number = str(raw).strip()
        if number:
            seen.setdefault(number, None)
    if not seen:
        raise ValidationError("At least one order number is required", field="order_numbers")
    return list(seen)


def _eligibility_error(ordered: list[Order], seller: str, *, actor: Actor) -> ValidationError | None:
    """First rule the orders break, or None when every order may be paid."""
    foreign = [o.order_number for o in ordered if o.seller != seller]
    if foreign:
        return ValidationError(
            f"Orders do not belong to seller '{seller}': {', '.join(foreign)}",
            code="FOREIGN_ORDERS",
            order_numbers=foreign,
        )

    # Administrators settle orders in any status; sellers only finished ones.
    if actor.is_seller:
        unpayable = [o.order_number for o in ordered if o.status not in PAYABLE_ORDER_STATUSES]
        if unpayable:
            return ValidationError(
                f"Orders are not payable in their current status: {', '.join(unpayable)}",
                code="UNPAYABLE_ORDERS",
                order_numbers=unpayable,
            )

    paid = [o.order_number for o in ordered if o.payout_id is not None]
    if paid:
        return ValidationError(
            f"Orders are already included in a payout: {', '.join(paid)}",
            code="ALREADY_PAID",
            order_numbers=paid,
        )
    return None


def build_payout(
    seller: str,
    order_numbers,
    *,
    actor: Actor,
    comment: str | None = None,
    repository: OrderRepository = default_orders,
) -> Payout:
    """
    Aggregate a seller's orders into a pending payout.

    Every included order is claimed with one conditional UPDATE
    (payout_id IS NULL); if fewer rows match than were requested another
    payout claimed them first and nothing is written.

    Raises:
        Forbidden: actor may not build payouts, or a seller building for someone else
        ValidationError: bad input, foreign orders, orders already paid, or
            (sellers only) orders not yet Ready/Shipped/Fulfilled
        NotFound: any order number does not exist (nothing is written)
        Conflict: the orders changed in a way that no longer matches any rule
    """
    check_permission(actor, "BUILD_PAYOUT")

    seller = seller.strip() if isinstance(seller, str) else ""
    if not seller:
        raise ValidationError("seller is required", field="seller")
    ensure_owns(actor, seller)

    numbers = normalize_order_numbers(order_numbers)

    found = {o.order_number: o for o in repository.find_by_order_numbers(numbers)}
    missing = [n for n in numbers if n not in found]
    if missing:
        raise NotFound(
            f"Orders not found: {', '.join(missing)}",
            code="ORDERS_NOT_FOUND",
            missing=missing,
        )

    ordered = [found[n] for n in numbers]
    error = _eligibility_error(ordered, seller, actor=actor)
    if error is not None:
        raise error

    totals = aggregate_orders(ordered)
    now = utcnow()

    payout = Payout(
        date=now,
        updated_at=now,
        seller=seller,
        status=PAYOUT_STATUS_PENDING,
        comment=(comment or None),
        **totals,
    )
    for order in ordered:
        payout.lines.append(PayoutLine(
            order_id=order.id,
            order_number=order.order_number,
            product_type=order.product_type,
            price_cents=order.price_cents,
        ))

    db.session.add(payout)
    db.session.flush()

    claimed = repository.claim_for_payout(
        numbers,
        payout.id,
        seller=seller,
        statuses=PAYABLE_ORDER_STATUSES if actor.is_seller else None,
        values={"updated_at": now},
    )
    if claimed != len(numbers):
        db.session.rollback()
        logger.info("Payout for %s lost the claim on %s", seller, ", ".join(numbers))
        latest = repository.find_by_order_numbers(numbers)
        error = _eligibility_error(latest, seller, actor=actor)
        if error is not None:
            raise error
        raise Conflict("Orders changed while the payout was being built", order_numbers=numbers)

    db.session.commit()

    logger.info(
        "Payout %s built for %s: %d orders, %d total",
        payout.id, seller, payout.order_count, payout.amount_cents,
    )
    return payout


# =============================================================================
# STATUS
# =============================================================================

def can_transition_payout(from_status: str, to_status: str) -> bool:
    return (from_status, to_status) in VALID_PAYOUT_TRANSITIONS


def update_payout_status(
    payout_id: int,
    new_status: str,
    *,
    actor: Actor,
    repository: OrderRepository = default_orders,
) -> Payout:
    """
    Move a payout through its status machine. Administrators only.

    The write is conditional on the status we read, so two administrators
    racing on the same payout cannot both apply a move. The administrator
    making the move is recorded as processed_by. Cancelling releases the
    payout's orders so they can be paid again.

    Raises:
        Forbidden, NotFound
        ValidationError: unknown status
        InvalidTransition: move not allowed from the current status
    """
    check_permission(actor, "UPDATE_PAYOUT_STATUS")

    if new_status not in PAYOUT_STATUSES:
        raise ValidationError(
            f"Invalid status '{new_status}'. Must be one of: {', '.join(PAYOUT_STATUSES)}",
            field="status",
        )

    payout = db.session.get(Payout, payout_id)
    if payout is None:
        raise NotFound(f"Payout {payout_id} not found", payout_id=payout_id)

    current = payout.status
    if not can_transition_payout(current, new_status):
        raise InvalidTransition(current, new_status, entity="payout", payout_id=payout_id)

    now = utcnow()
    result = db.session.execute(
        update(Payout)
        .where(Payout.id == payout_id, Payout.status == current)
        .values(
            status=new_status,
            processed_by=actor.username,
            updated_at=now,
            version_id=Payout.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        latest = db.session.get(Payout, payout_id)
        logger.info(
            "Status race on payout %s: read %s, now %s, requested %s",
            payout_id, current, latest.status, new_status,
        )
        raise InvalidTransition(latest.status, new_status, entity="payout", payout_id=payout_id)

    if new_status == PAYOUT_STATUS_CANCELLED:
        released = repository.release_payout(payout_id, values={"updated_at": now})
        logger.info("Payout %s cancelled, %d orders released", payout_id, released)

    db.session.commit()
    logger.info("Payout %s: %s -> %s by %s", payout_id, current, new_status, actor.username)
    return db.session.get(Payout, payout_id)


# =============================================================================
# QUERIES
# =============================================================================

def get_payout(payout_id: int, *, actor: Actor) -> Payout:
    check_permission(actor, "VIEW_PAYOUTS")
    payout = db.session.get(Payout, payout_id)
    if payout is None:
        raise NotFound(f"Payout {payout_id} not found", payout_id=payout_id)
    ensure_owns(actor, payout.seller)
    return payout


def list_payouts(*, actor: Actor, status: str | None = None, limit: int = 1000) -> list[Payout]:
    """Newest first; sellers only see payouts made out to them."""
    check_permission(actor, "VIEW_PAYOUTS")
    q = db.session.query(Payout)
    seller = seller_scope(actor)
    if seller is not None:
        q = q.filter(Payout.seller == seller)
    if status is not None:
        if status not in PAYOUT_STATUSES:
            raise ValidationError(f"Invalid status '{status}'", field="status")
        q = q.filter(Payout.status == status)
    return q.order_by(Payout.date.desc(), Payout.id.desc()).limit(limit).all()
