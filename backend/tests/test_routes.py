"""
HTTP surface tests.

Verifies:
- Unauthenticated requests return 401
- Login / logout / me
- Domain errors map to their status codes with a stable error code
- Change-sync response shape
"""

import pytest

from app.extensions import db
from app.models import Order

from conftest import TEST_PASSWORD, auth_headers, get_auth_token


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/orders"),
            ("POST", "/api/orders"),
            ("GET", "/api/orders/changes?lastSync=2024-01-01T00:00:00Z"),
            ("POST", "/api/orders/1/status"),
            ("GET", "/api/warehouse/orders"),
            ("POST", "/api/warehouse/use"),
            ("POST", "/api/warehouse/check"),
            ("GET", "/api/payouts"),
            ("GET", "/api/debts"),
            ("POST", "/api/debts/payments"),
            ("GET", "/api/expenses"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/orders", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401


class TestAuth:

    def test_login_me_logout(self, client, users):
        token = get_auth_token(client, "anna", TEST_PASSWORD)
        assert token

        me = client.get("/api/auth/me", headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json["user"]["role"] == "Seller"

        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_wrong_password(self, client, users):
        resp = client.post("/api/auth/login", json={"username": "anna", "password": "nope-nope"})
        assert resp.status_code == 401

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"


class TestOrders:

    def test_seller_creates_order_for_self(self, client, headers_for):
        resp = client.post(
            "/api/orders",
            json={
                "order_number": "A-100",
                "product_type": "хч",
                "size": "L",
                "price_cents": 2500,
                "photos": ["p/1.jpg"],
            },
            headers=headers_for("seller"),
        )
        assert resp.status_code == 201
        order = resp.json["order"]
        assert order["seller"] == "anna"
        assert order["status"] == "Added"
        assert order["on_warehouse"] is False
        assert "cost_cents" not in order

    def test_validation_error(self, client, headers_for):
        resp = client.post(
            "/api/orders",
            json={"order_number": "A-1", "product_type": "кружка", "size": "L", "price_cents": 100},
            headers=headers_for("seller"),
        )
        assert resp.status_code == 400
        assert resp.json["code"] == "VALIDATION_ERROR"

    def test_float_money_rejected(self, client, headers_for):
        resp = client.post(
            "/api/orders",
            json={"order_number": "A-1", "product_type": "фб", "size": "L", "price_cents": 10.5},
            headers=headers_for("seller"),
        )
        assert resp.status_code == 400

    def test_duplicate_order_number(self, client, make_order, headers_for):
        make_order(order_number="A-1")
        resp = client.post(
            "/api/orders",
            json={"order_number": "A-1", "product_type": "фб", "size": "L", "price_cents": 100},
            headers=headers_for("seller"),
        )
        assert resp.status_code == 409
        assert resp.json["code"] == "CONFLICT"

    def test_too_many_photos(self, client, headers_for):
        resp = client.post(
            "/api/orders",
            json={
                "order_number": "A-1", "product_type": "фб", "size": "L", "price_cents": 100,
                "photos": ["1", "2", "3", "4"],
            },
            headers=headers_for("seller"),
        )
        assert resp.status_code == 400

    def test_invalid_transition_is_409(self, client, make_order, headers_for):
        order = make_order(status="Fulfilled")
        resp = client.post(
            f"/api/orders/{order.id}/status",
            json={"status": "Shipped"},
            headers=headers_for("admin"),
        )
        assert resp.status_code == 409
        assert resp.json["code"] == "INVALID_TRANSITION"
        assert resp.json["data"]["current"] == "Fulfilled"

    def test_foreign_order_is_403(self, client, make_order, headers_for):
        order = make_order(seller="anna")
        resp = client.get(f"/api/orders/{order.id}", headers=headers_for("other_seller"))
        assert resp.status_code == 403

    def test_missing_order_is_404(self, client, headers_for):
        resp = client.get("/api/orders/999", headers=headers_for("admin"))
        assert resp.status_code == 404

    def test_cost_only_for_admin(self, client, make_order, headers_for):
        order = make_order(cost_cents=400)
        admin_view = client.get(f"/api/orders/{order.id}", headers=headers_for("admin")).json["order"]
        seller_view = client.get(f"/api/orders/{order.id}", headers=headers_for("seller")).json["order"]
        assert admin_view["cost_cents"] == 400
        assert "cost_cents" not in seller_view

    def test_list_leaves_out_photos(self, client, make_order, headers_for):
        make_order(photos=["p/1.jpg"])
        orders = client.get("/api/orders", headers=headers_for("seller")).json["orders"]
        assert len(orders) == 1
        assert "photos" not in orders[0]

    def test_seller_cannot_patch_price(self, client, make_order, headers_for):
        order = make_order()
        resp = client.patch(
            f"/api/orders/{order.id}",
            json={"price_cents": 1},
            headers=headers_for("seller"),
        )
        assert resp.status_code == 400
        assert db.session.get(Order, order.id).price_cents == 1000

    def test_seller_patches_shipment_number(self, client, make_order, headers_for):
        order = make_order()
        resp = client.patch(
            f"/api/orders/{order.id}",
            json={"shipment_number": "TRK-9"},
            headers=headers_for("seller"),
        )
        assert resp.status_code == 200
        assert resp.json["order"]["shipment_number"] == "TRK-9"

    def test_printer_check(self, client, make_order, headers_for):
        order = make_order()
        resp = client.post(
            f"/api/orders/{order.id}/printer-check",
            json={"checked": True},
            headers=headers_for("printer"),
        )
        assert resp.status_code == 200
        assert resp.json["order"]["printer_checked"] is True

        resp = client.post(
            f"/api/orders/{order.id}/printer-check",
            json={"checked": True},
            headers=headers_for("seller"),
        )
        assert resp.status_code == 403


class TestChanges:

    def test_shape_and_scoping(self, client, make_order, headers_for):
        mine = make_order(seller="anna", photos=["p/1.jpg"])
        make_order(seller="boris")

        resp = client.get(
            "/api/orders/changes",
            query_string={"lastSync": "2000-01-01T00:00:00Z"},
            headers=headers_for("seller"),
        )

        assert resp.status_code == 200
        assert [o["id"] for o in resp.json["changes"]] == [mine.id]
        assert "photos" not in resp.json["changes"][0]
        assert resp.json["timestamp"].endswith("Z")

    @pytest.mark.parametrize("query", [{}, {"lastSync": "soon"}])
    def test_bad_cursor_is_400(self, client, headers_for, query):
        resp = client.get("/api/orders/changes", query_string=query, headers=headers_for("seller"))
        assert resp.status_code == 400
        assert resp.json["code"] == "BAD_REQUEST"


class TestWarehouseAndLedger:

    def test_use_twice(self, client, make_order, headers_for):
        order = make_order(on_warehouse=True)
        headers = headers_for("printer")

        first = client.post("/api/warehouse/use", json={"order_id": order.id}, headers=headers)
        second = client.post("/api/warehouse/use", json={"order_id": order.id}, headers=headers)

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json["code"] == "NOT_ON_WAREHOUSE"

    def test_payout_flow(self, client, make_order, headers_for):
        make_order(order_number="A-1", status="Fulfilled", price_cents=1000, product_type="фб")
        make_order(order_number="A-2", status="Ready", price_cents=500, product_type="хч")

        built = client.post(
            "/api/payouts",
            json={"order_numbers": ["A-1", "A-2"]},
            headers=headers_for("seller"),
        )
        assert built.status_code == 201
        payout = built.json["payout"]
        assert payout["amount_cents"] == 1500
        assert payout["average_check_cents"] == 750
        assert len(payout["lines"]) == 2

        denied = client.patch(
            f"/api/payouts/{payout['id']}",
            json={"status": "processing"},
            headers=headers_for("seller"),
        )
        assert denied.status_code == 403

        moved = client.patch(
            f"/api/payouts/{payout['id']}",
            json={"status": "processing"},
            headers=headers_for("admin"),
        )
        assert moved.status_code == 200
        assert moved.json["payout"]["status"] == "processing"

    def test_warehouse_check_preview(self, client, make_order, headers_for):
        order = make_order(shipment_number="TRK1", status="Returned")

        resp = client.post(
            "/api/warehouse/check",
            json={"shipment_numbers": "TRK1, TRK2"},
            headers=headers_for("printer"),
        )

        assert resp.status_code == 200
        assert [o["id"] for o in resp.json["found"]] == [order.id]
        assert resp.json["found_count"] == 1
        assert resp.json["not_found"] == ["TRK2"]
        assert resp.json["not_found_count"] == 1
        assert resp.json["requested"] == 2
        assert resp.json["found"][0]["on_warehouse"] is False

    def test_warehouse_check_is_printer_only(self, client, headers_for):
        resp = client.post(
            "/api/warehouse/check",
            json={"shipment_numbers": "TRK1"},
            headers=headers_for("seller"),
        )
        assert resp.status_code == 403

    def test_admin_payout_for_new_orders(self, client, make_order, headers_for):
        make_order(order_number="P-1", price_cents=1000, product_type="фб")
        make_order(order_number="P-2", price_cents=500, product_type="хч")

        resp = client.post(
            "/api/payouts",
            json={"seller": "anna", "order_numbers": ["P-1", "P-2"]},
            headers=headers_for("admin"),
        )

        assert resp.status_code == 201
        payout = resp.json["payout"]
        assert payout["amount_cents"] == 1500
        assert payout["order_count"] == 2
        assert payout["average_check_cents"] == 750
        assert payout["processed_by"] is None
        assert payout["product_type_stats"] == {
            "фб": {"count": 1, "amount_cents": 1000},
            "хч": {"count": 1, "amount_cents": 500},
        }

    def test_payout_with_missing_order_is_404(self, client, headers_for):
        resp = client.post(
            "/api/payouts",
            json={"seller": "anna", "order_numbers": ["GHOST"]},
            headers=headers_for("admin"),
        )
        assert resp.status_code == 404
        assert resp.json["data"]["missing"] == ["GHOST"]

    def test_overpayment_is_409(self, client, headers_for):
        headers = headers_for("admin")
        assert client.post(
            "/api/debts", json={"person_name": "Тимофей", "base_amount_cents": 50000}, headers=headers
        ).status_code == 201

        paid = client.post(
            "/api/debts/payments", json={"person_name": "Тимофей", "amount_cents": 20000}, headers=headers
        )
        assert paid.status_code == 200
        assert paid.json["debt"]["current_amount_cents"] == 30000

        over = client.post(
            "/api/debts/payments", json={"person_name": "Тимофей", "amount_cents": 40000}, headers=headers
        )
        assert over.status_code == 409
        assert over.json["code"] == "OVERPAYMENT"
        assert over.json["data"]["remaining_cents"] == 30000

    def test_invalid_amount_is_400(self, client, headers_for):
        headers = headers_for("admin")
        client.post("/api/debts", json={"person_name": "Тимофей", "base_amount_cents": 100}, headers=headers)
        resp = client.post(
            "/api/debts/payments", json={"person_name": "Тимофей", "amount_cents": -5}, headers=headers
        )
        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_AMOUNT"

    def test_debts_are_admin_only(self, client, headers_for):
        assert client.get("/api/debts", headers=headers_for("seller")).status_code == 403
        assert client.get("/api/expenses", headers=headers_for("printer")).status_code == 403
