"""
Order lifecycle tests.

Verifies:
- Only listed status moves are applied; rejected moves leave the row untouched
- ready_at is stamped once
- Cancelled and Returned are terminal
- Role and ownership checks
- Lost races: a status move or a detail edit that loses to another writer
"""

import threading
from datetime import timedelta

import pytest
from sqlalchemy import update

from app.errors import Conflict, Forbidden, InvalidTransition, NotFound, ValidationError
from app.extensions import db
from app.models import Order
from app.permissions import Actor, Role
from app.services import lifecycle_service, order_service
from app.services.lifecycle_service import can_transition
from app.services.order_repository import SqlAlchemyOrderRepository
from app.time_utils import utcnow

from conftest import build_order


class WriterBeforeUpdate(SqlAlchemyOrderRepository):
    """Commits a competing write to the order just before our conditional update."""

    def __init__(self, **competing):
        self.competing = competing

    def compare_and_set(self, order_id, *, expected, values):
        db.session.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(**self.competing, version_id=Order.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return super().compare_and_set(order_id, expected=expected, values=values)


class WriterAfterRead(SqlAlchemyOrderRepository):
    """Bumps the stored version right after the order is read."""

    def get(self, order_id):
        order = super().get(order_id)
        db.session.connection().execute(
            update(Order)
            .where(Order.id == order_id)
            .values(version_id=Order.version_id + 1)
        )
        return order


class TestStateMachine:

    @pytest.mark.parametrize(
        "current,target",
        [
            ("Added", "Ready"),
            ("Ready", "Shipped"),
            ("Shipped", "Fulfilled"),
            ("Fulfilled", "Returned"),
            ("Added", "Cancelled"),
            ("Ready", "Cancelled"),
            ("Shipped", "Cancelled"),
        ],
    )
    def test_allowed_moves(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize("target", ["Added", "Ready", "Shipped", "Cancelled"])
    def test_fulfilled_only_moves_to_returned(self, db_session, make_order, admin, target):
        order = make_order(status="Fulfilled")
        version = order.version_id

        with pytest.raises(InvalidTransition) as exc:
            lifecycle_service.transition_status(order.id, target, actor=admin)

        assert exc.value.current == "Fulfilled"
        assert exc.value.requested == target
        stored = db.session.get(Order, order.id)
        assert stored.status == "Fulfilled"
        assert stored.version_id == version

    @pytest.mark.parametrize("terminal", ["Cancelled", "Returned"])
    @pytest.mark.parametrize("target", ["Added", "Ready", "Shipped", "Fulfilled", "Cancelled", "Returned"])
    def test_terminal_statuses(self, db_session, make_order, admin, terminal, target):
        order = make_order(status=terminal)
        with pytest.raises(InvalidTransition):
            lifecycle_service.transition_status(order.id, target, actor=admin)
        assert db.session.get(Order, order.id).status == terminal

    def test_skipping_a_step_is_rejected(self, db_session, make_order, admin):
        order = make_order(status="Added")
        with pytest.raises(InvalidTransition):
            lifecycle_service.transition_status(order.id, "Shipped", actor=admin)

    def test_unknown_status(self, db_session, make_order, admin):
        order = make_order()
        with pytest.raises(ValidationError):
            lifecycle_service.transition_status(order.id, "Lost", actor=admin)


class TestReadyStamp:

    def test_ready_sets_ready_at_and_bumps_updated_at(self, db_session, make_order, seller):
        order = make_order(status="Added")
        before = order.updated_at

        updated = lifecycle_service.transition_status(order.id, "Ready", actor=seller)

        assert updated.status == "Ready"
        assert updated.ready_at is not None
        assert updated.updated_at >= before

    def test_ready_twice_is_a_noop(self, db_session, make_order, printer):
        order = make_order(status="Added")

        first = lifecycle_service.transition_status(order.id, "Ready", actor=printer)
        ready_at = first.ready_at
        version = first.version_id

        second = lifecycle_service.transition_status(order.id, "Ready", actor=printer)

        assert second.ready_at == ready_at
        assert second.version_id == version

    def test_ready_at_survives_later_moves(self, db_session, make_order, admin):
        order = make_order(status="Added")
        ready_at = lifecycle_service.transition_status(order.id, "Ready", actor=admin).ready_at
        shipped = lifecycle_service.transition_status(order.id, "Shipped", actor=admin)
        assert shipped.ready_at == ready_at


class TestAccess:

    def test_missing_order(self, db_session, admin):
        with pytest.raises(NotFound):
            lifecycle_service.transition_status(999, "Ready", actor=admin)

    def test_seller_cannot_move_foreign_order(self, db_session, make_order, other_seller):
        order = make_order(seller="anna")
        with pytest.raises(Forbidden):
            lifecycle_service.transition_status(order.id, "Ready", actor=other_seller)
        assert db.session.get(Order, order.id).status == "Added"

    def test_no_actor(self, db_session, make_order):
        order = make_order()
        with pytest.raises(Forbidden):
            lifecycle_service.transition_status(order.id, "Ready", actor=None)


class TestLostRaces:

    def test_lost_race_to_shipped_reports_stored_status(self, db_session, make_order, admin):
        order = make_order(status="Ready")
        racing = WriterBeforeUpdate(status="Shipped")

        with pytest.raises(InvalidTransition) as exc:
            lifecycle_service.transition_status(order.id, "Shipped", actor=admin, repository=racing)

        assert exc.value.current == "Shipped"
        stored = db.session.get(Order, order.id)
        assert stored.status == "Shipped"
        assert stored.version_id == 2

    def test_lost_race_to_ready_keeps_first_stamp(self, db_session, make_order, printer):
        order = make_order(status="Added")
        stamped = utcnow() - timedelta(minutes=5)
        racing = WriterBeforeUpdate(status="Ready", ready_at=stamped)

        result = lifecycle_service.transition_status(order.id, "Ready", actor=printer, repository=racing)

        assert result.status == "Ready"
        assert result.ready_at == stamped
        assert result.version_id == 2

    def test_edit_after_concurrent_write_is_conflict(self, db_session, make_order, admin):
        order = make_order(comment="before")

        with pytest.raises(Conflict):
            order_service.update_order_details(
                order.id, {"comment": "after"}, actor=admin, repository=WriterAfterRead(),
            )

        assert db.session.get(Order, order.id).comment == "before"


class TestConcurrentTransitions:
    """Real threads against a file-backed database."""

    def _race(self, file_app, order_id, target, count=2):
        printer = Actor(role=Role.PRINTER, username="pavel")
        barrier = threading.Barrier(count)
        outcomes = []
        lock = threading.Lock()

        def worker():
            with file_app.app_context():
                barrier.wait()
                try:
                    order = lifecycle_service.transition_status(order_id, target, actor=printer)
                    result = ("ok", order.ready_at)
                except InvalidTransition as exc:
                    result = ("invalid_transition", exc.current)
                with lock:
                    outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)
        return outcomes

    def _seed(self, file_app, **overrides):
        with file_app.app_context():
            order = build_order(**overrides)
            db.session.add(order)
            db.session.commit()
            return order.id

    def test_exactly_one_ships(self, file_app):
        order_id = self._seed(file_app, status="Ready")

        outcomes = self._race(file_app, order_id, "Shipped")

        assert sorted(kind for kind, _ in outcomes) == ["invalid_transition", "ok"]
        assert ("invalid_transition", "Shipped") in outcomes
        with file_app.app_context():
            stored = db.session.get(Order, order_id)
            assert stored.status == "Shipped"
            assert stored.version_id == 2

    def test_concurrent_ready_stamps_once(self, file_app):
        order_id = self._seed(file_app, status="Added")

        outcomes = self._race(file_app, order_id, "Ready")

        assert [kind for kind, _ in outcomes] == ["ok", "ok"]
        with file_app.app_context():
            stored = db.session.get(Order, order_id)
            assert stored.version_id == 2
            assert {ready_at for _, ready_at in outcomes} == {stored.ready_at}
