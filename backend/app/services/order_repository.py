# Overview: Storage boundary for orders; the lifecycle and sync services depend only on this interface.

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Protocol

from sqlalchemy import update

from ..extensions import db
from ..models import Order


class OrderRepository(Protocol):
    """Typed queries the core needs from an order store."""

    def get(self, order_id: int) -> Order | None: ...

    def add(self, order: Order) -> Order: ...

    def list(self, *, seller: str | None = None, status: str | None = None, limit: int = 200) -> list[Order]: ...

    def find_since(self, since: datetime) -> list[Order]: ...

    def find_by_seller_since(self, seller: str, since: datetime) -> list[Order]: ...

    def find_by_warehouse_flag(
        self,
        on_warehouse: bool,
        *,
        product_type: str | None = None,
        size: str | None = None,
        limit: int = 500,
    ) -> list[Order]: ...

    def find_by_order_numbers(self, order_numbers: Iterable[str]) -> list[Order]: ...

    def find_by_shipment_numbers(self, shipment_numbers: Iterable[str]) -> list[Order]: ...

    def compare_and_set(self, order_id: int, *, expected: dict[str, Any], values: dict[str, Any]) -> bool: ...

    def claim_for_payout(
        self,
        order_numbers: Iterable[str],
        payout_id: int,
        *,
        seller: str,
        statuses: Iterable[str] | None = None,
        values: dict[str, Any] | None = None,
    ) -> int: ...

    def release_payout(self, payout_id: int, *, values: dict[str, Any] | None = None) -> int: ...


class SqlAlchemyOrderRepository:
    """
    OrderRepository over the Flask-SQLAlchemy session.

    compare_and_set issues a single conditional UPDATE; the database decides
    which of several concurrent writers wins, so it holds across processes.
    Callers own the transaction (commit/rollback).
    """

    def get(self, order_id: int) -> Order | None:
        return db.session.get(Order, order_id)

    def add(self, order: Order) -> Order:
        db.session.add(order)
        db.session.flush()
        return order

    def list(self, *, seller: str | None = None, status: str | None = None, limit: int = 200) -> list[Order]:
        q = db.session.query(Order)
        if seller is not None:
            q = q.filter(Order.seller == seller)
        if status is not None:
            q = q.filter(Order.status == status)
        return q.order_by(Order.order_date.desc(), Order.id.desc()).limit(limit).all()

    def find_since(self, since: datetime) -> list[Order]:
        return (
            db.session.query(Order)
            .filter(Order.updated_at >= since)
            .order_by(Order.updated_at.desc(), Order.id.desc())
            .all()
        )

    def find_by_seller_since(self, seller: str, since: datetime) -> list[Order]:
        return (
            db.session.query(Order)
            .filter(Order.seller == seller, Order.updated_at >= since)
            .order_by(Order.updated_at.desc(), Order.id.desc())
            .all()
        )

    def find_by_warehouse_flag(
        self,
        on_warehouse: bool,
        *,
        product_type: str | None = None,
        size: str | None = None,
        limit: int = 500,
    ) -> list[Order]:
        q = db.session.query(Order).filter(Order.on_warehouse == on_warehouse)
        if product_type is not None:
            q = q.filter(Order.product_type == product_type)
        if size is not None:
            q = q.filter(Order.size == size)
        return q.order_by(Order.updated_at.desc(), Order.id.desc()).limit(limit).all()

    def find_by_order_numbers(self, order_numbers: Iterable[str]) -> list[Order]:
        numbers = list(order_numbers)
        if not numbers:
            return []
        return db.session.query(Order).filter(Order.order_number.in_(numbers)).all()

    def find_by_shipment_numbers(self, shipment_numbers: Iterable[str]) -> list[Order]:
        numbers = list(shipment_numbers)
        if not numbers:
            return []
        return (
            db.session.query(Order)
            .filter(Order.shipment_number.in_(numbers))
            .order_by(Order.id)
            .all()
        )

    def compare_and_set(self, order_id: int, *, expected: dict[str, Any], values: dict[str, Any]) -> bool:
        """
        UPDATE orders SET <values>, version_id = version_id + 1
        WHERE id = :order_id AND <column = expected value>...

        Returns True when exactly one row matched. The in-session instance is
        expired so the next attribute access reloads the stored row.
        """
        conditions = [Order.id == order_id]
        conditions.extend(getattr(Order, column) == value for column, value in expected.items())

        stmt = (
            update(Order)
            .where(*conditions)
            .values(**values, version_id=Order.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)

        cached = db.session.identity_map.get(db.session.identity_key(Order, order_id))
        if cached is not None:
            db.session.expire(cached)

        return result.rowcount == 1

    def claim_for_payout(
        self,
        order_numbers: Iterable[str],
        payout_id: int,
        *,
        seller: str,
        statuses: Iterable[str] | None = None,
        values: dict[str, Any] | None = None,
    ) -> int:
        """
        UPDATE orders SET payout_id = :payout_id, version_id = version_id + 1
        WHERE order_number IN (...) AND seller = :seller AND payout_id IS NULL
        [AND status IN (...)]

        Returns the number of rows claimed. The caller compares it with the
        number requested; a shortfall means another payout got there first.
        """
        conditions = [
            Order.order_number.in_(list(order_numbers)),
            Order.seller == seller,
            Order.payout_id.is_(None),
        ]
        if statuses is not None:
            conditions.append(Order.status.in_(list(statuses)))

        stmt = (
            update(Order)
            .where(*conditions)
            .values(**(values or {}), payout_id=payout_id, version_id=Order.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        return db.session.execute(stmt).rowcount

    def release_payout(self, payout_id: int, *, values: dict[str, Any] | None = None) -> int:
        """Clear the claim a payout holds on its orders. Returns rows released."""
        stmt = (
            update(Order)
            .where(Order.payout_id == payout_id)
            .values(**(values or {}), payout_id=None, version_id=Order.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        return db.session.execute(stmt).rowcount


orders = SqlAlchemyOrderRepository()
