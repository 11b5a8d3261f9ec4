# Overview: Flask API routes for business expenses.

# backend/app/routes/expenses.py
from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..errors import error_response
from ..services import expense_service


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
def list_expenses_route():
    try:
        limit = max(1, min(request.args.get("limit", default=500, type=int), 1000))
        expenses = expense_service.list_expenses(
            actor=g.actor,
            category=request.args.get("category"),
            limit=limit,
        )
        return jsonify({"expenses": [e.to_dict() for e in expenses]}), 200
    except Exception as e:
        return error_response(e, "list expenses")


@expenses_bp.post("")
@require_auth
def record_expense_route():
    """Body: {"amount_cents": 150000, "category": "Аренда", "responsible": "...", "date": "...", "comment": "..."}"""
    try:
        expense = expense_service.record_expense(request.get_json(silent=True), actor=g.actor)
        return jsonify({"expense": expense.to_dict()}), 201
    except Exception as e:
        return error_response(e, "record expense")
