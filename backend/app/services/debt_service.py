# Overview: Service-layer operations for the debt ledger; running balances reduced by recorded payments.

"""
Debt Ledger Service

WHY: Track what each person still owes and every payment made against it.

INVARIANTS:
- current_amount_cents only moves through record_payment, and every move
  appends a DebtPayment row in the same transaction
- 0 <= current_amount_cents <= base_amount_cents
- A payment larger than the remaining balance is rejected (Overpayment with
  the remaining balance), never clamped

CONCURRENCY:
    The decrement is one conditional UPDATE:
        SET current = current - :amount WHERE id = :id AND current >= :amount
    Two concurrent payments serialize in the database; the loser sees the
    post-update balance and gets Overpayment instead of silently
    overwriting the winner's result.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import Conflict, InvalidAmount, NotFound, Overpayment, ValidationError
from ..models import Debt, DebtPayment
from ..permissions import Actor, check_permission
from ..validation import MAX_AMOUNT_CENTS
from app.time_utils import utcnow


logger = logging.getLogger(__name__)


def _normalize_name(person_name) -> str:
    name = person_name.strip() if isinstance(person_name, str) else ""
    if not name:
        raise ValidationError("person_name is required", field="person_name")
    if len(name) > 120:
        raise ValidationError("person_name exceeds max length 120", field="person_name")
    return name


def _check_positive_amount(value, field: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise InvalidAmount(f"{field} must be a positive integer in minor units", field=field, value=value)
    if value > MAX_AMOUNT_CENTS:
        raise InvalidAmount(f"{field} cannot exceed {MAX_AMOUNT_CENTS}", field=field, value=value)
    return value


def _find_debt(person_name: str) -> Debt | None:
    return db.session.query(Debt).filter(Debt.person_name == person_name).first()


def _insert_debt(person_name: str, base_amount_cents: int) -> Debt:
    now = utcnow()
    debt = Debt(
        person_name=person_name,
        base_amount_cents=base_amount_cents,
        current_amount_cents=base_amount_cents,
        created_at=now,
        updated_at=now,
    )
    db.session.add(debt)
    db.session.flush()
    return debt


def open_debt(person_name: str, base_amount_cents: int, *, actor: Actor) -> Debt:
    """
    Create a debt for a person.

    Raises:
        Forbidden, ValidationError, InvalidAmount
        Conflict: the person already has a debt
    """
    check_permission(actor, "OPEN_DEBT")
    name = _normalize_name(person_name)
    base = _check_positive_amount(base_amount_cents, "base_amount_cents")

    if _find_debt(name) is not None:
        raise Conflict(f"Debt for '{name}' already exists", person_name=name)

    try:
        debt = _insert_debt(name, base)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict(f"Debt for '{name}' already exists", person_name=name)

    logger.info("Debt opened for %s: %d", name, base)
    return debt


def record_payment(
    person_name: str,
    amount_cents: int,
    *,
    actor: Actor,
    base_amount_cents: int | None = None,
    comment: str | None = None,
) -> Debt:
    """
    Apply a payment to a person's debt.

    If the person has no debt yet and base_amount_cents is given, the debt is
    created with that base inside the same transaction; a payment that then
    fails leaves no debt behind.

    Returns:
        The debt with its new balance

    Raises:
        Forbidden, ValidationError
        InvalidAmount: amount (or base) is not a positive integer
        NotFound: no debt for the person and no base_amount_cents given
        Overpayment: amount exceeds the remaining balance (balance unchanged)

    NOT safe to retry blindly: a retried call is a second payment.
    """
    check_permission(actor, "RECORD_DEBT_PAYMENT")
    name = _normalize_name(person_name)
    amount = _check_positive_amount(amount_cents, "amount_cents")

    opened_base = None
    debt = _find_debt(name)
    if debt is None:
        if base_amount_cents is None:
            raise NotFound(f"No debt for '{name}'", person_name=name)
        opened_base = _check_positive_amount(base_amount_cents, "base_amount_cents")
        try:
            debt = _insert_debt(name, opened_base)
        except IntegrityError:
            # Someone else opened it first; pay against theirs.
            db.session.rollback()
            opened_base = None
            debt = _find_debt(name)
    debt_id = debt.id

    result = db.session.execute(
        update(Debt)
        .where(Debt.id == debt_id, Debt.current_amount_cents >= amount)
        .values(
            current_amount_cents=Debt.current_amount_cents - amount,
            updated_at=utcnow(),
            version_id=Debt.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        latest = db.session.get(Debt, debt_id)
        remaining = latest.current_amount_cents if latest is not None else (opened_base or 0)
        logger.info("Rejected payment of %d for %s: %d remaining", amount, name, remaining)
        raise Overpayment(person_name=name, remaining_cents=remaining, requested_cents=amount)

    remaining = db.session.execute(
        select(Debt.current_amount_cents).where(Debt.id == debt_id)
    ).scalar_one()

    db.session.add(DebtPayment(
        debt_id=debt_id,
        amount_cents=amount,
        remaining_cents=remaining,
        payment_date=utcnow(),
        comment=comment or None,
        processed_by=actor.username,
    ))
    db.session.commit()

    logger.info("Payment of %d recorded for %s: %d remaining", amount, name, remaining)
    debt = db.session.get(Debt, debt_id)
    db.session.refresh(debt)
    return debt


def get_debts(*, actor: Actor) -> list[Debt]:
    check_permission(actor, "VIEW_DEBTS")
    return db.session.query(Debt).order_by(Debt.person_name).all()


def get_payments(*, actor: Actor, person_name: str | None = None, limit: int = 500) -> list[DebtPayment]:
    """Payment history, newest first, optionally for one person."""
    check_permission(actor, "VIEW_DEBTS")
    q = db.session.query(DebtPayment)
    if person_name is not None:
        name = _normalize_name(person_name)
        q = q.join(Debt, Debt.id == DebtPayment.debt_id).filter(Debt.person_name == name)
    return q.order_by(DebtPayment.payment_date.desc(), DebtPayment.id.desc()).limit(limit).all()
