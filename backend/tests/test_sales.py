"""
Sale creation workflow tests.

Covers:
- Totals, stock decrements and price snapshots
- Insufficient stock leaves everything untouched
- Validation of the item list
- Invoice number format and ordering
- Listing with inclusive date filters and detail view
"""

import re
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import update

from shopkeep.extensions import db
from shopkeep.models import InvoiceSequence, Product, Sale, SaleItem
from shopkeep.services import sales_service


INVOICE_RE = re.compile(r"^INV-\d{6}$")


def _post_sale(client, headers, items, **extra):
    return client.post("/api/sales", json={"items": items, **extra}, headers=headers)


class TestCreateSale:

    def test_happy_path(self, client, db_session, user_headers, regular_user, make_product):
        a = make_product(name="A", price="12.50", stock=5)
        b = make_product(name="B", price="3.00", stock=2)

        resp = _post_sale(client, user_headers, [
            {"product_id": a.id, "quantity": 3},
            {"product_id": b.id, "quantity": 2},
        ])
        assert resp.status_code == 201
        sale = resp.get_json()

        assert sale["total_amount"] == 3 * 12.5 + 2 * 3.0
        assert sale["customer_name"] == "Cash Customer"
        assert sale["user"] == {"id": regular_user.id, "username": regular_user.username}
        assert INVOICE_RE.match(sale["invoice_number"])
        assert [(i["product_id"], i["quantity_sold"], i["price_per_unit_at_sale"]) for i in sale["items"]] == [
            (a.id, 3, 12.5),
            (b.id, 2, 3.0),
        ]

        db_session.refresh(a)
        db_session.refresh(b)
        assert a.stock_quantity == 2
        assert b.stock_quantity == 0

    def test_customer_name_kept(self, client, user_headers, make_product):
        product = make_product(stock=1)
        resp = _post_sale(client, user_headers, [{"product_id": product.id, "quantity": 1}],
                          customer_name="  Jane Doe ")
        assert resp.status_code == 201
        assert resp.get_json()["customer_name"] == "Jane Doe"

    def test_insufficient_stock_changes_nothing(self, client, db_session, user_headers, make_product):
        a = make_product(name="A", stock=5)
        b = make_product(name="B", stock=2)

        resp = _post_sale(client, user_headers, [
            {"product_id": a.id, "quantity": 1},
            {"product_id": b.id, "quantity": 3},
        ])
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == "Insufficient stock for product: B"
        assert body["available"] == 2
        assert body["requested"] == 3
        assert body["product_id"] == b.id

        db_session.refresh(a)
        db_session.refresh(b)
        assert a.stock_quantity == 5
        assert b.stock_quantity == 2
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.query(InvoiceSequence).count() == 0

    def test_repeated_product_counts_cumulatively(self, client, db_session, user_headers, make_product):
        product = make_product(stock=4)
        resp = _post_sale(client, user_headers, [
            {"product_id": product.id, "quantity": 3},
            {"product_id": product.id, "quantity": 2},
        ])
        assert resp.status_code == 400
        assert resp.get_json()["requested"] == 5

        db_session.refresh(product)
        assert product.stock_quantity == 4

    def test_exact_stock_sells_out(self, client, db_session, user_headers, make_product):
        product = make_product(stock=2)
        resp = _post_sale(client, user_headers, [{"product_id": product.id, "quantity": 2}])
        assert resp.status_code == 201
        db_session.refresh(product)
        assert product.stock_quantity == 0

    def test_unknown_product(self, client, db_session, user_headers, make_product):
        product = make_product(stock=3)
        resp = _post_sale(client, user_headers, [
            {"product_id": product.id, "quantity": 1},
            {"product_id": 99999, "quantity": 1},
        ])
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Product not found: 99999"
        db_session.refresh(product)
        assert product.stock_quantity == 3

    @pytest.mark.parametrize(
        "items",
        [
            None,
            [],
            "not-a-list",
            [{"product_id": 1}],
            [{"quantity": 1}],
            [{"product_id": 1, "quantity": 0}],
            [{"product_id": 1, "quantity": -3}],
            [{"product_id": 1, "quantity": 1.5}],
            [{"product_id": "abc", "quantity": 1}],
            ["oops"],
        ],
    )
    def test_malformed_items(self, client, user_headers, items):
        resp = client.post("/api/sales", json={"items": items}, headers=user_headers)
        assert resp.status_code == 400

    def test_price_snapshot_survives_price_change(self, client, db_session, admin_headers, user_headers, make_product):
        product = make_product(price="10.00", stock=10)
        sale = _post_sale(client, user_headers, [{"product_id": product.id, "quantity": 2}]).get_json()

        client.put(f"/api/products/{product.id}", json={"price": 99}, headers=admin_headers)

        detail = client.get(f"/api/sales/{sale['id']}", headers=user_headers).get_json()
        assert detail["total_amount"] == 20.0
        assert detail["items"][0]["price_per_unit_at_sale"] == 10.0
        assert detail["items"][0]["product"]["price"] == 99.0

    def test_total_matches_items(self, app, db_session, regular_user, make_product):
        a = make_product(price="0.10", stock=100)
        b = make_product(price="2.35", stock=100)
        sale = sales_service.create_sale(
            items=[{"product_id": a.id, "quantity": 7}, {"product_id": b.id, "quantity": 3}],
            customer_name=None,
            user_id=regular_user.id,
        )
        items = db_session.query(SaleItem).filter_by(sale_id=sale.id).all()
        assert sale.total_amount == sum(i.price_per_unit_at_sale * i.quantity_sold for i in items)
        assert sale.total_amount == Decimal("7.75")


class TestInvoiceNumbers:

    def test_sequential(self, client, user_headers, make_product):
        product = make_product(stock=10)
        numbers = [
            _post_sale(client, user_headers, [{"product_id": product.id, "quantity": 1}]).get_json()["invoice_number"]
            for _ in range(3)
        ]
        assert numbers == ["INV-000001", "INV-000002", "INV-000003"]

    def test_failed_sale_does_not_consume_number(self, client, user_headers, make_product):
        product = make_product(stock=1)
        assert _post_sale(client, user_headers, [{"product_id": product.id, "quantity": 5}]).status_code == 400
        resp = _post_sale(client, user_headers, [{"product_id": product.id, "quantity": 1}])
        assert resp.get_json()["invoice_number"] == "INV-000001"

    def test_continues_after_existing_sales(self, client, user_headers, make_product, make_sale):
        make_sale(datetime(2026, 1, 1), total="5.00", invoice_number="INV-000041")
        make_sale(datetime(2026, 1, 2), total="5.00", invoice_number="INV-000009")
        product = make_product(stock=1)
        resp = _post_sale(client, user_headers, [{"product_id": product.id, "quantity": 1}])
        assert resp.get_json()["invoice_number"] == "INV-000042"


class TestListAndDetail:

    def test_list_newest_first_with_limit(self, client, user_headers, make_sale):
        make_sale(datetime(2026, 3, 1, 9), total="1.00")
        make_sale(datetime(2026, 3, 3, 9), total="3.00")
        make_sale(datetime(2026, 3, 2, 9), total="2.00")

        all_sales = client.get("/api/sales", headers=user_headers).get_json()
        assert [s["total_amount"] for s in all_sales] == [3.0, 2.0, 1.0]

        limited = client.get("/api/sales?limit=2", headers=user_headers).get_json()
        assert [s["total_amount"] for s in limited] == [3.0, 2.0]

    def test_date_filter_is_inclusive(self, client, user_headers, make_sale):
        make_sale(datetime(2026, 3, 1, 0, 0), total="1.00")
        make_sale(datetime(2026, 3, 2, 23, 59, 59), total="2.00")
        make_sale(datetime(2026, 3, 3, 0, 0), total="3.00")

        resp = client.get("/api/sales?startDate=2026-03-01&endDate=2026-03-02", headers=user_headers)
        assert resp.status_code == 200
        assert sorted(s["total_amount"] for s in resp.get_json()) == [1.0, 2.0]

        only_start = client.get("/api/sales?startDate=2026-03-02", headers=user_headers).get_json()
        assert sorted(s["total_amount"] for s in only_start) == [2.0, 3.0]

    def test_bad_filters(self, client, user_headers):
        assert client.get("/api/sales?startDate=yesterday", headers=user_headers).status_code == 400
        assert client.get("/api/sales?limit=0", headers=user_headers).status_code == 400
        assert client.get(
            "/api/sales?startDate=2026-03-05&endDate=2026-03-01", headers=user_headers
        ).status_code == 400

    def test_detail(self, client, user_headers, make_product, make_sale):
        product = make_product(name="Kettle", price="25.00")
        sale = make_sale(datetime(2026, 4, 1), lines=[(product, 2)])
        resp = client.get(f"/api/sales/{sale.id}", headers=user_headers)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["total_amount"] == 50.0
        assert data["items"][0]["product"]["name"] == "Kettle"
        assert data["items"][0]["line_total"] == 50.0

    def test_detail_missing(self, client, user_headers):
        resp = client.get("/api/sales/4040", headers=user_headers)
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Sale not found"}

    def test_detail_keeps_deleted_product_reference(self, client, admin_headers, user_headers, make_product, make_sale, db_session):
        product = make_product(name="Retired")
        sale = make_sale(datetime(2026, 4, 1), lines=[(product, 1)])
        client.delete(f"/api/products/{product.id}", headers=admin_headers)

        data = client.get(f"/api/sales/{sale.id}", headers=user_headers).get_json()
        assert data["items"][0]["product"]["name"] == "Retired"
        assert db_session.get(Product, product.id) is not None


class TestMalformedSaleRequests:

    @pytest.mark.parametrize("body", [[{"product_id": 1, "quantity": 1}], "items", 7])
    def test_non_object_body(self, client, user_headers, body):
        resp = client.post("/api/sales", json=body, headers=user_headers)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid JSON payload"}

    @pytest.mark.parametrize(
        "item",
        [
            {"product_id": 10 ** 30, "quantity": 1},
            {"product_id": str(10 ** 30), "quantity": 1},
            {"product_id": 1, "quantity": 10 ** 30},
        ],
    )
    def test_out_of_range_integers(self, client, user_headers, item):
        resp = client.post("/api/sales", json={"items": [item]}, headers=user_headers)
        assert resp.status_code == 400
        assert "out of range" in resp.get_json()["error"]

    def test_huge_sale_id_is_not_found(self, client, user_headers):
        resp = client.get("/api/sales/99999999999999999999999", headers=user_headers)
        assert resp.status_code == 404

    def test_huge_limit(self, client, user_headers):
        resp = client.get(f"/api/sales?limit={10 ** 30}", headers=user_headers)
        assert resp.status_code == 400


class TestCompetingWriters:

    def test_stock_taken_between_check_and_decrement(self, client, db_session, user_headers, make_product, monkeypatch):
        kettle = make_product(name="Kettle", stock=3)
        kettle_id = kettle.id
        original_decrement = sales_service._decrement_stock

        def decrement_after_rival_sale(product, quantity):
            # Another checkout empties the shelf after validation passed
            db.session.execute(
                update(Product).where(Product.id == product.id).values(stock_quantity=0)
            )
            original_decrement(product, quantity)

        monkeypatch.setattr(sales_service, "_decrement_stock", decrement_after_rival_sale)

        resp = _post_sale(client, user_headers, [{"product_id": kettle_id, "quantity": 2}])
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == "Insufficient stock for product: Kettle"
        assert body["available"] == 0
        assert body["requested"] == 2

        db_session.expire_all()
        assert db_session.get(Product, kettle_id).stock_quantity == 3
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.query(InvoiceSequence).count() == 0

    def test_second_line_failure_restores_first_line(self, client, db_session, user_headers, make_product, monkeypatch):
        a = make_product(name="A", stock=5)
        b = make_product(name="B", stock=5)
        a_id, b_id = a.id, b.id
        original_decrement = sales_service._decrement_stock

        def rival_empties_b(product, quantity):
            if product.id == b_id:
                db.session.execute(
                    update(Product).where(Product.id == b_id).values(stock_quantity=1)
                )
            original_decrement(product, quantity)

        monkeypatch.setattr(sales_service, "_decrement_stock", rival_empties_b)

        resp = _post_sale(client, user_headers, [
            {"product_id": a_id, "quantity": 4},
            {"product_id": b_id, "quantity": 2},
        ])
        assert resp.status_code == 400
        assert resp.get_json()["available"] == 1

        db_session.expire_all()
        assert db_session.get(Product, a_id).stock_quantity == 5
        assert db_session.get(Product, b_id).stock_quantity == 5
        assert db_session.query(Sale).count() == 0
