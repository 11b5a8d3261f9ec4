# Overview: Flask API routes for orders, their lifecycle and change sync.

# backend/app/routes/orders.py
"""
Order API routes

Reads and writes go through order_service / lifecycle_service with the
caller's Actor. Status moves and change polling are idempotent and retried
on transient storage errors; creation and edits are not.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..errors import ValidationError, error_response
from ..services import lifecycle_service, order_service, sync_service
from ..services.concurrency import run_with_retry
from app.time_utils import to_utc_z


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _limit_arg(default: int, maximum: int) -> int:
    limit = request.args.get("limit", default=default, type=int)
    return max(1, min(limit, maximum))


@orders_bp.post("")
@require_auth
def create_order_route():
    try:
        order = order_service.create_order(request.get_json(silent=True), actor=g.actor)
        return jsonify({"order": order_service.serialize_order(order, g.actor)}), 201
    except Exception as e:
        return error_response(e, "create order")


@orders_bp.get("")
@require_auth
def list_orders_route():
    """List orders newest first. Photos are left out of bulk listings."""
    try:
        orders = order_service.list_orders(
            actor=g.actor,
            status=request.args.get("status"),
            limit=_limit_arg(200, 1000),
        )
        return jsonify({
            "orders": [order_service.serialize_order(o, g.actor, include_photos=False) for o in orders],
        }), 200
    except Exception as e:
        return error_response(e, "list orders")


@orders_bp.get("/changes")
@require_auth
def get_changes_route():
    """
    Delta sync.

    Query: lastSync=<ISO-8601 UTC>
    Returns: {"changes": [...], "timestamp": "<next lastSync>"}
    """
    try:
        last_sync = request.args.get("lastSync")
        change_set = run_with_retry(lambda: sync_service.get_changes(last_sync, actor=g.actor))
        return jsonify({
            "changes": [
                order_service.serialize_order(o, g.actor, include_photos=False)
                for o in change_set.orders
            ],
            "timestamp": to_utc_z(change_set.server_timestamp),
        }), 200
    except Exception as e:
        return error_response(e, "get order changes")


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id, actor=g.actor)
        return jsonify({"order": order_service.serialize_order(order, g.actor)}), 200
    except Exception as e:
        return error_response(e, "get order")


@orders_bp.patch("/<int:order_id>")
@require_auth
def update_order_route(order_id: int):
    try:
        order = order_service.update_order_details(order_id, request.get_json(silent=True), actor=g.actor)
        return jsonify({"order": order_service.serialize_order(order, g.actor)}), 200
    except Exception as e:
        return error_response(e, "update order")


@orders_bp.post("/<int:order_id>/status")
@require_auth
def transition_status_route(order_id: int):
    """
    Move an order through its lifecycle.

    Body: {"status": "Ready"}
    """
    try:
        data = request.get_json(silent=True) or {}
        target = data.get("status")
        if not target:
            raise ValidationError("status is required", field="status")

        order = run_with_retry(
            lambda: lifecycle_service.transition_status(order_id, target, actor=g.actor)
        )
        return jsonify({"order": order_service.serialize_order(order, g.actor)}), 200
    except Exception as e:
        return error_response(e, "transition order status")


@orders_bp.post("/<int:order_id>/printer-check")
@require_auth
def printer_check_route(order_id: int):
    """Body: {"checked": true}"""
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.mark_printer_checked(order_id, data.get("checked", True), actor=g.actor)
        return jsonify({"order": order_service.serialize_order(order, g.actor)}), 200
    except Exception as e:
        return error_response(e, "mark printer check")
