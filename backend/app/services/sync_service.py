# Overview: Change-sync (delta pull) for order clients.

"""
Order Change Sync

PROTOCOL (pull, stateless):
    client -> get_changes(last_sync)  -> {orders, server_timestamp}
    client stores server_timestamp and sends it as last_sync next time

GUARANTEES:
- Filter is inclusive: updated_at >= last_sync
- server_timestamp is taken before the query runs and pulled back by
  SYNC_OVERLAP_SECONDS, so a write that was in flight during this call is
  returned again on the next call. Clients dedup by order id.
- Sellers only receive their own orders; Printer and Administrator receive all
- Results are newest-first by updated_at, ties broken by id (stable)

The server keeps no per-client cursor; any instance can answer any poll.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..errors import BadRequest
from ..models import Order
from ..permissions import Actor, check_permission, seller_scope
from .order_repository import OrderRepository, orders as default_orders
from app.time_utils import as_utc_naive, parse_iso_datetime, utcnow


@dataclass(frozen=True)
class ChangeSet:
    orders: list[Order]
    server_timestamp: datetime


def parse_since(raw) -> datetime:
    """
    Parse the client's last_sync cursor.

    Raises:
        BadRequest: missing, blank or not ISO-8601
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise BadRequest("lastSync is required", field="lastSync")
    if isinstance(raw, datetime):
        return as_utc_naive(raw)
    if not isinstance(raw, str):
        raise BadRequest("lastSync must be an ISO-8601 timestamp", field="lastSync")
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise BadRequest("lastSync must be an ISO-8601 timestamp", field="lastSync", value=raw)


def get_changes(
    since,
    *,
    actor: Actor,
    repository: OrderRepository = default_orders,
) -> ChangeSet:
    """
    Every order the actor may see whose updated_at >= since.

    Args:
        since: ISO-8601 string or datetime (UTC)
        actor: caller; sellers are scoped to their own orders

    Raises:
        BadRequest: since missing or unparsable
    """
    check_permission(actor, "GET_CHANGES")
    since_dt = parse_since(since)

    overlap = timedelta(seconds=current_app.config.get("SYNC_OVERLAP_SECONDS", 0))

    snapshot = utcnow()

    seller = seller_scope(actor)
    if seller is not None:
        changed = repository.find_by_seller_since(seller, since_dt)
    else:
        changed = repository.find_since(since_dt)

    return ChangeSet(orders=changed, server_timestamp=snapshot - overlap)
