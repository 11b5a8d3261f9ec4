# Overview: Service-layer operations for business expenses.

from __future__ import annotations

import logging

from ..extensions import db
from ..errors import ValidationError
from ..models import Expense
from ..models.debts import EXPENSE_CATEGORIES
from ..permissions import Actor, check_permission
from ..validation import ModelValidationPolicy, enforce_rules_expense, validate_payload
from app.time_utils import utcnow


logger = logging.getLogger(__name__)


EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"date", "amount_cents", "category", "responsible", "comment"},
    required_on_create={"amount_cents", "category"},
)


def record_expense(payload: dict, *, actor: Actor) -> Expense:
    """
    Append an expense. Expenses are never edited or removed.

    date defaults to now; responsible defaults to the recording administrator.

    Raises:
        Forbidden, ValidationError, InvalidAmount
    """
    check_permission(actor, "RECORD_EXPENSE")

    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    enforce_rules_expense(patch)

    now = utcnow()
    if not patch.get("date"):
        patch["date"] = now
    if not patch.get("responsible"):
        patch["responsible"] = actor.username

    expense = Expense(created_at=now, **patch)
    db.session.add(expense)
    db.session.commit()

    logger.info("Expense %s recorded: %d (%s)", expense.id, expense.amount_cents, expense.category)
    return expense


def list_expenses(*, actor: Actor, category: str | None = None, limit: int = 500) -> list[Expense]:
    check_permission(actor, "VIEW_EXPENSES")
    q = db.session.query(Expense)
    if category is not None:
        if category not in EXPENSE_CATEGORIES:
            raise ValidationError(f"Invalid category '{category}'", field="category")
        q = q.filter(Expense.category == category)
    return q.order_by(Expense.date.desc(), Expense.id.desc()).limit(limit).all()
