# Overview: Flask API routes for seller payouts.

# backend/app/routes/payouts.py
from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..errors import ValidationError, error_response
from ..services import payout_service


payouts_bp = Blueprint("payouts", __name__, url_prefix="/api/payouts")


@payouts_bp.post("")
@require_auth
def build_payout_route():
    """
    Build a pending payout.

    Body: {"seller": "anna", "order_numbers": ["A-1", "A-2"], "comment": "..."}
    Sellers may omit seller; it defaults to themselves.
    """
    try:
        data = request.get_json(silent=True) or {}
        seller = data.get("seller") or (g.actor.username if g.actor.is_seller else None)
        payout = payout_service.build_payout(
            seller,
            data.get("order_numbers"),
            actor=g.actor,
            comment=data.get("comment"),
        )
        return jsonify({"payout": payout.to_dict()}), 201
    except Exception as e:
        return error_response(e, "build payout")


@payouts_bp.get("")
@require_auth
def list_payouts_route():
    try:
        limit = max(1, min(request.args.get("limit", default=1000, type=int), 1000))
        payouts = payout_service.list_payouts(
            actor=g.actor,
            status=request.args.get("status"),
            limit=limit,
        )
        return jsonify({"payouts": [p.to_dict(include_lines=False) for p in payouts]}), 200
    except Exception as e:
        return error_response(e, "list payouts")


@payouts_bp.get("/<int:payout_id>")
@require_auth
def get_payout_route(payout_id: int):
    try:
        payout = payout_service.get_payout(payout_id, actor=g.actor)
        return jsonify({"payout": payout.to_dict()}), 200
    except Exception as e:
        return error_response(e, "get payout")


@payouts_bp.patch("/<int:payout_id>")
@require_auth
def update_payout_status_route(payout_id: int):
    """Body: {"status": "processing"}"""
    try:
        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if not status:
            raise ValidationError("status is required", field="status")
        payout = payout_service.update_payout_status(payout_id, status, actor=g.actor)
        return jsonify({"payout": payout.to_dict()}), 200
    except Exception as e:
        return error_response(e, "update payout status")
