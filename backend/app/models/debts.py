from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


EXPENSE_CATEGORIES = (
    "Аренда",
    "Зарплата",
    "Расходники",
    "Маркетинг",
    "Налоги",
    "Ткань",
    "Курьер",
    "Расходники швейки",
    "Другое",
)


class Debt(db.Model):
    """
    Running balance owed by one person.

    INVARIANTS:
    - current_amount_cents changes only through DebtPayment rows
    - 0 <= current_amount_cents <= base_amount_cents
    """
    __tablename__ = "debts"
    __table_args__ = (
        db.UniqueConstraint("person_name", name="uq_debts_person_name"),
        db.CheckConstraint("current_amount_cents >= 0", name="ck_debts_current_non_negative"),
        db.CheckConstraint("current_amount_cents <= base_amount_cents", name="ck_debts_current_le_base"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    person_name = db.Column(db.String(120), nullable=False)
    base_amount_cents = db.Column(db.Integer, nullable=False)
    current_amount_cents = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "person_name": self.person_name,
            "base_amount_cents": self.base_amount_cents,
            "current_amount_cents": self.current_amount_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class DebtPayment(db.Model):
    """
    Append-only log of payments against a debt.

    remaining_cents is the balance right after this payment was applied.
    """
    __tablename__ = "debt_payments"
    __table_args__ = (
        db.Index("ix_debt_payments_debt_date", "debt_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    debt_id = db.Column(db.Integer, db.ForeignKey("debts.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    remaining_cents = db.Column(db.Integer, nullable=False)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)
    comment = db.Column(db.Text, nullable=True)
    processed_by = db.Column(db.String(64), nullable=False)

    debt = db.relationship("Debt", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "debt_id": self.debt_id,
            "person_name": self.debt.person_name if self.debt else None,
            "amount_cents": self.amount_cents,
            "remaining_cents": self.remaining_cents,
            "payment_date": to_utc_z(self.payment_date),
            "comment": self.comment,
            "processed_by": self.processed_by,
        }


class Expense(db.Model):
    """Internal business expense."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_category_date", "category", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(32), nullable=False)
    responsible = db.Column(db.String(64), nullable=False)
    comment = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_utc_z(self.date),
            "amount_cents": self.amount_cents,
            "category": self.category,
            "responsible": self.responsible,
            "comment": self.comment,
            "created_at": to_utc_z(self.created_at),
        }
