# Overview: Flask API routes for the debt ledger.

# backend/app/routes/debts.py
"""
Debt ledger API routes (Administrator only).

Payments are NOT retried on storage errors: a repeated payment would be
applied twice.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..errors import error_response
from ..services import debt_service


debts_bp = Blueprint("debts", __name__, url_prefix="/api/debts")


@debts_bp.get("")
@require_auth
def list_debts_route():
    try:
        debts = debt_service.get_debts(actor=g.actor)
        return jsonify({"debts": [d.to_dict() for d in debts]}), 200
    except Exception as e:
        return error_response(e, "list debts")


@debts_bp.post("")
@require_auth
def open_debt_route():
    """Body: {"person_name": "...", "base_amount_cents": 50000}"""
    try:
        data = request.get_json(silent=True) or {}
        debt = debt_service.open_debt(
            data.get("person_name"),
            data.get("base_amount_cents"),
            actor=g.actor,
        )
        return jsonify({"debt": debt.to_dict()}), 201
    except Exception as e:
        return error_response(e, "open debt")


@debts_bp.post("/payments")
@require_auth
def record_payment_route():
    """
    Body: {"person_name": "...", "amount_cents": 20000,
           "base_amount_cents": 50000 (only to open a new debt), "comment": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        debt = debt_service.record_payment(
            data.get("person_name"),
            data.get("amount_cents"),
            actor=g.actor,
            base_amount_cents=data.get("base_amount_cents"),
            comment=data.get("comment"),
        )
        return jsonify({"debt": debt.to_dict()}), 200
    except Exception as e:
        return error_response(e, "record debt payment")


@debts_bp.get("/payments")
@require_auth
def list_payments_route():
    try:
        limit = max(1, min(request.args.get("limit", default=500, type=int), 1000))
        payments = debt_service.get_payments(
            actor=g.actor,
            person_name=request.args.get("person_name"),
            limit=limit,
        )
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200
    except Exception as e:
        return error_response(e, "list debt payments")
