from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


PAYOUT_STATUS_PENDING = "pending"
PAYOUT_STATUS_PROCESSING = "processing"
PAYOUT_STATUS_COMPLETED = "completed"
PAYOUT_STATUS_CANCELLED = "cancelled"

PAYOUT_STATUSES = (
    PAYOUT_STATUS_PENDING,
    PAYOUT_STATUS_PROCESSING,
    PAYOUT_STATUS_COMPLETED,
    PAYOUT_STATUS_CANCELLED,
)


class Payout(db.Model):
    """
    Seller payout aggregated from a snapshot of orders.

    WHY: Totals and product-type statistics are frozen at build time. Later
    edits to the referenced orders never alter a payout; after creation only
    status (and who processed it) changes.
    """
    __tablename__ = "payouts"
    __table_args__ = (
        db.Index("ix_payouts_seller_date", "seller", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False)
    seller = db.Column(db.String(64), nullable=False)

    amount_cents = db.Column(db.Integer, nullable=False)
    order_count = db.Column(db.Integer, nullable=False)
    average_check_cents = db.Column(db.Integer, nullable=False)

    # {product_type: {"count": int, "amount_cents": int}}
    product_type_stats = db.Column(db.JSON, nullable=False, default=dict)

    status = db.Column(db.String(16), nullable=False, default=PAYOUT_STATUS_PENDING, index=True)
    # Set by the administrator who moves the payout on; empty while pending
    processed_by = db.Column(db.String(64), nullable=True)
    comment = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "PayoutLine",
        backref="payout",
        lazy=True,
        order_by="PayoutLine.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def order_numbers(self) -> list[str]:
        return [line.order_number for line in self.lines]

    def to_dict(self, *, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "date": to_utc_z(self.date),
            "seller": self.seller,
            "amount_cents": self.amount_cents,
            "order_numbers": self.order_numbers,
            "order_count": self.order_count,
            "average_check_cents": self.average_check_cents,
            "product_type_stats": self.product_type_stats,
            "status": self.status,
            "processed_by": self.processed_by,
            "comment": self.comment,
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class PayoutLine(db.Model):
    """One order as it looked when the payout was built."""
    __tablename__ = "payout_lines"
    __table_args__ = (
        db.UniqueConstraint("payout_id", "order_number", name="uq_payout_lines_payout_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payout_id = db.Column(db.Integer, db.ForeignKey("payouts.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    order_number = db.Column(db.String(64), nullable=False, index=True)
    product_type = db.Column(db.String(16), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payout_id": self.payout_id,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "product_type": self.product_type,
            "price_cents": self.price_cents,
        }
