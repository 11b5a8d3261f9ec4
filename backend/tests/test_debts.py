"""
Debt ledger and expense tests.

Verifies:
- Payments reduce the balance and are logged with the remaining amount
- Overpayment is rejected with the balance untouched
- Amount validation
- Concurrent payments never drive the balance below zero
"""

import threading

import pytest

from app.errors import Conflict, Forbidden, InvalidAmount, NotFound, Overpayment, ValidationError
from app.extensions import db
from app.models import Debt, DebtPayment, Expense
from app.permissions import Actor, Role
from app.services import debt_service, expense_service


class TestPayments:

    def test_payment_then_overpayment(self, db_session, admin):
        debt_service.open_debt("Тимофей", 50000, actor=admin)

        debt = debt_service.record_payment("Тимофей", 20000, actor=admin)
        assert debt.current_amount_cents == 30000

        with pytest.raises(Overpayment) as exc:
            debt_service.record_payment("Тимофей", 40000, actor=admin)

        assert exc.value.remaining_cents == 30000
        stored = db.session.query(Debt).filter_by(person_name="Тимофей").one()
        assert stored.current_amount_cents == 30000
        assert db.session.query(DebtPayment).count() == 1

    def test_paying_off_exactly(self, db_session, admin):
        debt_service.open_debt("Оля", 1000, actor=admin)
        assert debt_service.record_payment("Оля", 1000, actor=admin).current_amount_cents == 0
        with pytest.raises(Overpayment):
            debt_service.record_payment("Оля", 1, actor=admin)

    def test_payment_log(self, db_session, admin):
        debt_service.open_debt("Тимофей", 50000, actor=admin)
        debt_service.record_payment("Тимофей", 20000, actor=admin, comment="наличные")
        debt_service.record_payment("Тимофей", 5000, actor=admin)

        payments = debt_service.get_payments(actor=admin, person_name="Тимофей")

        assert [(p.amount_cents, p.remaining_cents) for p in payments] == [(5000, 25000), (20000, 30000)]
        assert payments[1].comment == "наличные"
        assert payments[0].processed_by == "root"

    @pytest.mark.parametrize("amount", [0, -100, 12.5, "100", True, None])
    def test_invalid_amount(self, db_session, admin, amount):
        debt_service.open_debt("Тимофей", 50000, actor=admin)
        with pytest.raises(InvalidAmount):
            debt_service.record_payment("Тимофей", amount, actor=admin)

    def test_unknown_person(self, db_session, admin):
        with pytest.raises(NotFound):
            debt_service.record_payment("Никто", 100, actor=admin)

    def test_first_payment_opens_debt_with_base(self, db_session, admin):
        debt = debt_service.record_payment("Вера", 300, actor=admin, base_amount_cents=1000)
        assert debt.base_amount_cents == 1000
        assert debt.current_amount_cents == 700

    def test_failed_first_payment_leaves_no_debt(self, db_session, admin):
        with pytest.raises(Overpayment):
            debt_service.record_payment("Вера", 3000, actor=admin, base_amount_cents=1000)
        assert db.session.query(Debt).count() == 0

    def test_duplicate_open(self, db_session, admin):
        debt_service.open_debt("Тимофей", 100, actor=admin)
        with pytest.raises(Conflict):
            debt_service.open_debt("Тимофей", 200, actor=admin)

    def test_blank_name(self, db_session, admin):
        with pytest.raises(ValidationError):
            debt_service.open_debt("  ", 100, actor=admin)

    @pytest.mark.parametrize("actor_name", ["seller", "printer"])
    def test_admin_only(self, request, db_session, admin, actor_name):
        debt_service.open_debt("Тимофей", 100, actor=admin)
        with pytest.raises(Forbidden):
            debt_service.record_payment("Тимофей", 10, actor=request.getfixturevalue(actor_name))


class TestConcurrentPayments:
    """Real threads against a file-backed database."""

    def test_balance_never_goes_negative(self, file_app):
        admin = Actor(role=Role.ADMINISTRATOR, username="root")
        with file_app.app_context():
            debt_service.open_debt("Тимофей", 50000, actor=admin)

        barrier = threading.Barrier(3)
        outcomes = []
        lock = threading.Lock()

        def worker():
            with file_app.app_context():
                barrier.wait()
                try:
                    debt_service.record_payment("Тимофей", 20000, actor=admin)
                    result = "ok"
                except Overpayment:
                    result = "overpayment"
                with lock:
                    outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(outcomes) == ["ok", "ok", "overpayment"]
        with file_app.app_context():
            debt = db.session.query(Debt).filter_by(person_name="Тимофей").one()
            assert debt.current_amount_cents == 10000
            remaining = sorted(p.remaining_cents for p in db.session.query(DebtPayment).all())
            assert remaining == [10000, 30000]


class TestExpenses:

    def test_record_and_list(self, db_session, admin):
        expense = expense_service.record_expense(
            {"amount_cents": 150000, "category": "Аренда", "comment": "октябрь"},
            actor=admin,
        )
        assert expense.responsible == "root"
        assert expense.date is not None

        expense_service.record_expense({"amount_cents": 500, "category": "Курьер"}, actor=admin)

        assert [e.category for e in expense_service.list_expenses(actor=admin, category="Аренда")] == ["Аренда"]
        assert len(expense_service.list_expenses(actor=admin)) == 2

    def test_unknown_category(self, db_session, admin):
        with pytest.raises(ValidationError):
            expense_service.record_expense({"amount_cents": 100, "category": "Кофе"}, actor=admin)

    def test_expenses_do_not_touch_debts(self, db_session, admin):
        debt_service.open_debt("Тимофей", 1000, actor=admin)
        expense_service.record_expense({"amount_cents": 999, "category": "Другое"}, actor=admin)
        assert db.session.query(Debt).one().current_amount_cents == 1000
        assert db.session.query(Expense).count() == 1

    def test_admin_only(self, db_session, seller):
        with pytest.raises(Forbidden):
            expense_service.record_expense({"amount_cents": 100, "category": "Другое"}, actor=seller)
