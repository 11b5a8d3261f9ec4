# Overview: Flask API routes for warehouse stock of finished items.

# backend/app/routes/warehouse.py
from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..errors import ValidationError, error_response
from ..services import lifecycle_service, order_service
from ..services.concurrency import run_with_retry


warehouse_bp = Blueprint("warehouse", __name__, url_prefix="/api/warehouse")


@warehouse_bp.get("/orders")
@require_auth
def list_warehouse_route():
    """Items in stock. Query: product_type, size, limit."""
    try:
        limit = max(1, min(request.args.get("limit", default=500, type=int), 1000))
        orders = lifecycle_service.list_warehouse(
            actor=g.actor,
            product_type=request.args.get("product_type"),
            size=request.args.get("size"),
            limit=limit,
        )
        return jsonify({
            "orders": [order_service.serialize_order(o, g.actor) for o in orders],
        }), 200
    except Exception as e:
        return error_response(e, "list warehouse")


@warehouse_bp.post("/add")
@require_auth
def add_to_warehouse_route():
    """
    Put returned items back into stock.

    Body: {"shipment_numbers": "TRK1, TRK2\nTRK3"} or {"shipment_numbers": ["TRK1", ...]}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = lifecycle_service.add_to_warehouse(data.get("shipment_numbers"), actor=g.actor)
        return jsonify(result), 200
    except Exception as e:
        return error_response(e, "add orders to warehouse")


@warehouse_bp.post("/use")
@require_auth
def use_from_warehouse_route():
    """
    Take one item out of stock.

    Body: {"order_id": 123}
    Safe to retry: a repeat after success answers NOT_ON_WAREHOUSE.
    """
    try:
        data = request.get_json(silent=True) or {}
        order_id = data.get("order_id")
        if not isinstance(order_id, int) or isinstance(order_id, bool):
            raise ValidationError("order_id must be an integer", field="order_id")

        order = run_with_retry(lambda: lifecycle_service.use_from_warehouse(order_id, actor=g.actor))
        return jsonify({"order": order_service.serialize_order(order, g.actor)}), 200
    except Exception as e:
        return error_response(e, "use order from warehouse")


@warehouse_bp.post("/check")
@require_auth
def check_warehouse_route():
    """
    Preview which shipment numbers match an order. Nothing is changed.

    Body: {"shipment_numbers": "TRK1, TRK2\nTRK3"} or {"shipment_numbers": ["TRK1", ...]}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = lifecycle_service.check_warehouse(data.get("shipment_numbers"), actor=g.actor)
        found = [order_service.serialize_order(o, g.actor) for o in result["found"]]
        return jsonify({
            "found": found,
            "found_count": len(found),
            "not_found": result["not_found"],
            "not_found_count": len(result["not_found"]),
            "requested": result["requested"],
        }), 200
    except Exception as e:
        return error_response(e, "check warehouse")
