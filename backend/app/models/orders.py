from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


# Lifecycle statuses
ORDER_STATUS_ADDED = "Added"
ORDER_STATUS_READY = "Ready"
ORDER_STATUS_SHIPPED = "Shipped"
ORDER_STATUS_FULFILLED = "Fulfilled"
ORDER_STATUS_CANCELLED = "Cancelled"
ORDER_STATUS_RETURNED = "Returned"

ORDER_STATUSES = (
    ORDER_STATUS_ADDED,
    ORDER_STATUS_READY,
    ORDER_STATUS_SHIPPED,
    ORDER_STATUS_FULFILLED,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_RETURNED,
)

# Print categories
PRODUCT_TYPES = ("фб", "фч", "хч", "хб", "хс", "шч", "лб", "лч", "другое")

SIZES = ("S", "M", "L", "XL")

MAX_PHOTOS = 3


class Order(db.Model):
    """
    Custom-print production order.

    WHY: The authoritative record for an order's identity, lifecycle status and
    warehouse membership. Orders are never deleted; Cancelled and Returned are
    terminal statuses.

    MUTATION TIMESTAMP: updated_at moves on every write (creation included) and
    is what change-sync clients filter on.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_seller_updated", "seller", "updated_at"),
        db.Index("ix_orders_on_warehouse", "on_warehouse"),
        db.Index("ix_orders_updated_at", "updated_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    # Human-facing identifiers
    order_number = db.Column(db.String(64), nullable=False)
    shipment_number = db.Column(db.String(64), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_ADDED)
    product_type = db.Column(db.String(16), nullable=False)
    size = db.Column(db.String(4), nullable=False)

    seller = db.Column(db.String(64), nullable=False)

    # Money in minor units; cost is visible to administrators only
    price_cents = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=True)

    # Ordered image references, excluded from bulk payloads
    photos = db.Column(db.JSON, nullable=False, default=list)
    comment = db.Column(db.Text, nullable=True)

    ready_at = db.Column(db.DateTime(timezone=True), nullable=True)
    on_warehouse = db.Column(db.Boolean, nullable=False, default=False)
    printer_checked = db.Column(db.Boolean, nullable=False, default=False)

    # Active (non-cancelled) payout this order is paid through; claimed atomically
    payout_id = db.Column(db.Integer, db.ForeignKey("payouts.id"), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status!r}>"

    def to_dict(self, *, include_photos: bool = True, include_cost: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_date": to_utc_z(self.order_date),
            "updated_at": to_utc_z(self.updated_at),
            "order_number": self.order_number,
            "shipment_number": self.shipment_number,
            "status": self.status,
            "product_type": self.product_type,
            "size": self.size,
            "seller": self.seller,
            "price_cents": self.price_cents,
            "comment": self.comment,
            "ready_at": to_utc_z(self.ready_at),
            "on_warehouse": self.on_warehouse,
            "printer_checked": self.printer_checked,
            "payout_id": self.payout_id,
            "version_id": self.version_id,
        }
        if include_cost:
            data["cost_cents"] = self.cost_cents
        if include_photos:
            data["photos"] = list(self.photos or [])
        return data
