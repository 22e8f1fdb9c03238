"""
HTTP surface tests.

Verifies the JSON contracts of the adjust, typed stock, order, outbound and
catalog endpoints, operator identity handling and the error envelope.
"""

import pytest

from scanstock.models import InventoryLog, Order


# =============================================================================
# OPERATOR IDENTITY (401)
# =============================================================================


class TestOperatorRequired:

    @pytest.mark.parametrize(
        "method,path,body",
        [
            ("POST", "/api/inventory/adjust", {"product_id": 1, "quantity_change": 1, "reason": "restock"}),
            ("PUT", "/api/products/1/stock", {"type": "add", "quantity": 1}),
        ],
    )
    def test_requires_operator(self, client, method, path, body):
        resp = getattr(client, method.lower())(path, json=body)
        assert resp.status_code == 401
        assert resp.get_json()["success"] is False

    def test_operator_from_body(self, client, db_session, make_product):
        product = make_product(stock=5)

        resp = client.post("/api/inventory/adjust", json={
            "product_id": product.id,
            "quantity_change": 1,
            "reason": "return",
            "operator_id": "body-op",
        })

        assert resp.status_code == 200
        assert db_session.query(InventoryLog).one().operator_id == "body-op"


# =============================================================================
# ADJUSTMENTS
# =============================================================================


class TestAdjustEndpoint:

    def test_signed_adjustment(self, client, db_session, make_product, operator_headers):
        product = make_product(stock=10, available_stock=10)

        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "quantity_change": 5, "reason": "restock", "scope": "both"},
            headers=operator_headers,
        )

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["success"] is True
        assert data["new_stock"] == 15
        assert data["new_available_stock"] == 15
        assert data["log_id"] == db_session.query(InventoryLog).one().id

    def test_by_barcode_defaults_to_available_only(self, client, make_product, operator_headers):
        make_product("5012345678900", stock=10, available_stock=2)

        resp = client.post(
            "/api/inventory/adjust",
            json={"barcode": "5012345678900", "quantity_change": -2, "reason": "sale"},
            headers=operator_headers,
        )

        assert resp.status_code == 200
        assert (resp.get_json()["new_stock"], resp.get_json()["new_available_stock"]) == (10, 0)

    def test_insufficient_available_is_409(self, client, make_product, operator_headers):
        product = make_product(stock=10, available_stock=1)

        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "quantity_change": -2, "reason": "sale"},
            headers=operator_headers,
        )

        assert resp.status_code == 409
        body = resp.get_json()
        assert body["kind"] == "insufficient_available_stock"
        assert body["details"]["available_stock"] == 1

    @pytest.mark.parametrize(
        "body,status",
        [
            ({"quantity_change": 1, "reason": "restock"}, 400),
            ({"product_id": 1, "quantity_change": 0, "reason": "restock"}, 400),
            ({"product_id": 1, "quantity_change": 1, "reason": "gift"}, 400),
            ({"product_id": 999, "quantity_change": 1, "reason": "restock"}, 404),
        ],
    )
    def test_rejections(self, client, db_session, operator_headers, body, status):
        resp = client.post("/api/inventory/adjust", json=body, headers=operator_headers)
        assert resp.status_code == status
        assert db_session.query(InventoryLog).count() == 0

    def test_history(self, client, make_product, operator_headers):
        product = make_product(stock=10)
        client.put(f"/api/products/{product.id}/stock", json={"type": "subtract", "quantity": 3}, headers=operator_headers)

        resp = client.get(f"/api/inventory/adjust?product_id={product.id}")

        logs = resp.get_json()["logs"]
        assert len(logs) == 1
        assert logs[0]["reason"] == "adjustment"
        assert logs[0]["product"]["barcode"] == product.barcode


class TestTypedStockEndpoint:

    def test_set_both(self, client, make_product, operator_headers):
        product = make_product(stock=10, available_stock=10)

        resp = client.put(
            f"/api/products/{product.id}/stock",
            json={"type": "set", "quantity": 5, "scope": "both", "reason": "adjustment"},
            headers=operator_headers,
        )

        assert resp.status_code == 200
        data = resp.get_json()
        assert (data["old_stock"], data["new_stock"]) == (10, 5)
        assert data["product"]["available_stock"] == 5

    def test_unknown_type(self, client, make_product, operator_headers):
        product = make_product(stock=10)

        resp = client.put(
            f"/api/products/{product.id}/stock",
            json={"type": "double", "quantity": 5},
            headers=operator_headers,
        )

        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation_error"


# =============================================================================
# ORDERS
# =============================================================================


class TestOrdersEndpoint:

    def _cart(self, quantity=2, **extra):
        body = {
            "items": [{"barcode": "111", "name": "Milk", "price": 1.25, "quantity": quantity}],
            "totalAmount": 2.5 if quantity == 2 else 1.25 * quantity,
            "discountAmount": 0,
        }
        body.update(extra)
        return body

    def test_fulfill(self, client, db_session, make_product, operator_headers):
        make_product("111", stock=5)

        resp = client.post("/api/orders", json=self._cart(recordOutbound=True), headers=operator_headers)

        assert resp.status_code == 201
        data = resp.get_json()
        assert data["order_number"].startswith("ORD")
        assert data["items"][0]["subtotal"] == "2.50"
        assert data["created_at"].endswith("Z")
        assert data["order"]["operator_id"] == "op-1"

        detail = client.get(f"/api/orders/{data['order_id']}").get_json()["order"]
        assert detail["final_amount"] == "2.50"
        assert len(detail["items"]) == 1

        stats = client.get("/api/outbound/stats").get_json()
        assert stats["total_quantity"] == 2

    def test_insufficient_stock_creates_nothing(self, client, db_session, make_product):
        make_product("111", stock=3)

        resp = client.post("/api/orders", json=self._cart(quantity=5))

        assert resp.status_code == 409
        assert resp.get_json()["kind"] == "insufficient_stock"
        assert db_session.query(Order).count() == 0

    def test_idempotent_resubmission(self, client, db_session, make_product):
        make_product("111", stock=5)

        first = client.post("/api/orders", json=self._cart(idempotencyKey="k-1")).get_json()
        second = client.post("/api/orders", json=self._cart(idempotencyKey="k-1")).get_json()

        assert first["order_id"] == second["order_id"]
        assert db_session.query(Order).count() == 1

    def test_status_and_delete(self, client, make_product):
        make_product("111", stock=5)
        order_id = client.post("/api/orders", json=self._cart()).get_json()["order_id"]

        assert client.delete(f"/api/orders/{order_id}").status_code == 409

        resp = client.put(f"/api/orders/{order_id}/status", json={"status": "cancelled"})
        assert resp.get_json()["order"]["status"] == "cancelled"

        assert client.put(f"/api/orders/{order_id}/status", json={"status": "refunded"}).status_code == 409
        assert client.delete(f"/api/orders/{order_id}").status_code == 200
        assert client.get(f"/api/orders/{order_id}").status_code == 404

    def test_list(self, client, make_product):
        make_product("111", stock=10)
        for _ in range(3):
            client.post("/api/orders", json=self._cart())

        data = client.get("/api/orders?page=1&per_page=2").get_json()

        assert data["count"] == 2
        assert data["pagination"]["total"] == 3


# =============================================================================
# OUTBOUND / CATALOG
# =============================================================================


class TestOutboundEndpoint:

    def test_record_unknown_barcode(self, client):
        resp = client.post("/api/outbound", json={"barcode": "ghost"})

        assert resp.status_code == 201
        assert resp.get_json()["record"]["product_id"] is None

    def test_history_and_popular(self, client, make_product):
        product = make_product("111", name="Milk")
        client.post("/api/outbound", json={"barcode": "111", "productId": product.id, "quantity": 2})
        client.post("/api/outbound", json={"barcode": "111"})

        history = client.get("/api/outbound/barcode/111").get_json()
        assert history["count"] == 2

        popular = client.get("/api/outbound/popular?limit=1").get_json()["items"]
        assert popular[0]["barcode"] == "111"
        assert popular[0]["total_quantity"] == 3

    def test_product_id_for_other_barcode_rejected(self, client, make_product):
        product = make_product("AAA")

        resp = client.post("/api/outbound", json={"barcode": "ZZZ", "productId": product.id})

        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation_error"
        assert client.get("/api/outbound/barcode/ZZZ").get_json()["count"] == 0


class TestProductsEndpoint:

    def test_create_lookup_update_delete(self, client, db_session, operator_headers):
        resp = client.post(
            "/api/products",
            json={"barcode": "111", "name": "Milk", "price": "1.99", "stock": 4},
            headers=operator_headers,
        )
        assert resp.status_code == 201
        product = resp.get_json()["product"]
        assert product["price"] == "1.99"
        assert product["stock"] == 4
        assert db_session.query(InventoryLog).one().operator_id == "op-1"

        found = client.get("/api/products/barcode/111").get_json()["product"]
        assert found["id"] == product["id"]

        resp = client.put(f"/api/products/{product['id']}", json={"name": "Milk 1L"})
        assert resp.get_json()["product"]["name"] == "Milk 1L"

        assert client.delete(f"/api/products/{product['id']}").status_code == 200
        assert client.get("/api/products/barcode/111").status_code == 404

    def test_update_cannot_touch_counters(self, client, make_product):
        product = make_product(stock=4)

        for field in ("stock", "available_stock"):
            resp = client.put(f"/api/products/{product.id}", json={field: 100})
            assert resp.status_code == 400
            assert resp.get_json()["kind"] == "validation_error"

        resp = client.put(f"/api/products/{product.id}", json={"stock": 100})
        assert resp.get_json()["error"] == "stock cannot be changed through product update"

    def test_duplicate_barcode_409(self, client, make_product):
        make_product("111")

        resp = client.post("/api/products", json={"barcode": "111", "name": "Again", "price": 1})

        assert resp.status_code == 409
        assert resp.get_json()["kind"] == "conflict"

    def test_unknown_route_is_json_404(self, client):
        resp = client.get("/api/nope")
        assert resp.status_code == 404
        assert resp.get_json()["kind"] == "not_found"


def test_health(client, make_product):
    make_product(stock=1)

    resp = client.get("/health")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["details"]["products"] == 1
