"""Purchase order and replenishment API tests."""

from conftest import levels


def _create_po(client, headers, product_id, quantity=10, **extra):
    body = {
        "supplier_name": "Corner Wholesale",
        "items": [{"product_id": product_id, "quantity": quantity, "unit_cost_cents": 250}],
    }
    body.update(extra)
    return client.post("/api/purchase-orders", json=body, headers=headers)


class TestPurchaseOrderEndpoints:

    def test_partial_and_full_receipt(self, client, operator_headers, make_product):
        product = make_product("PAPI-1")
        po = _create_po(client, operator_headers, product.id).json
        assert po["status"] == "ORDERED"

        resp = client.post(
            f"/api/purchase-orders/{po['id']}/receive",
            json={"items": [{"product_id": product.id, "quantity": 4}]},
            headers=operator_headers,
        )
        assert resp.status_code == 200
        assert resp.json["status"] == "PARTIALLY_RECEIVED"
        assert resp.json["items"][0]["remaining_quantity"] == 6

        resp = client.post(
            f"/api/purchase-orders/{po['id']}/receive",
            json={"items": [{"product_id": product.id, "quantity": 6}]},
            headers=operator_headers,
        )
        assert resp.status_code == 200
        assert resp.json["status"] == "RECEIVED"
        assert len(resp.json["receipts"]) == 2
        assert levels(product.id) == (10, 0)

    def test_over_receipt_is_422(self, client, operator_headers, make_product):
        product = make_product("PAPI-2")
        po = _create_po(client, operator_headers, product.id, quantity=3).json

        resp = client.post(
            f"/api/purchase-orders/{po['id']}/receive",
            json={"items": [{"product_id": product.id, "quantity": 4}]},
            headers=operator_headers,
        )

        assert resp.status_code == 422
        assert resp.json["details"] == {"sku": "PAPI-2", "remaining": 3, "requested": 4}
        assert levels(product.id) == (0, 0)

    def test_cancel_then_receive_is_409(self, client, operator_headers, make_product):
        product = make_product("PAPI-3")
        po = _create_po(client, operator_headers, product.id).json

        resp = client.post(f"/api/purchase-orders/{po['id']}/cancel", headers=operator_headers)
        assert resp.status_code == 200
        assert resp.json["status"] == "CANCELLED"

        resp = client.post(
            f"/api/purchase-orders/{po['id']}/receive",
            json={"items": [{"product_id": product.id, "quantity": 1}]},
            headers=operator_headers,
        )
        assert resp.status_code == 409

    def test_receive_replay_credits_stock_once(self, client, operator_headers, make_product):
        product = make_product("PAPI-4")
        po = _create_po(client, operator_headers, product.id).json
        headers = {**operator_headers, "Idempotency-Key": "grn-77"}
        body = {"items": [{"product_id": product.id, "quantity": 4}]}

        first = client.post(f"/api/purchase-orders/{po['id']}/receive", json=body, headers=headers)
        second = client.post(f"/api/purchase-orders/{po['id']}/receive", json=body, headers=headers)

        assert first.status_code == second.status_code == 200
        assert second.headers.get("Idempotent-Replayed") == "true"
        assert levels(product.id) == (4, 0)

    def test_oversized_quantity_is_400(self, client, operator_headers, make_product):
        product = make_product("PAPI-6")

        resp = _create_po(client, operator_headers, product.id, quantity=2**63)

        assert resp.status_code == 400
        assert resp.json["details"]["field"] == "items[0].quantity"
        assert client.get("/api/purchase-orders", headers=operator_headers).json["count"] == 0

    def test_oversized_receipt_quantity_is_400(self, client, operator_headers, make_product):
        product = make_product("PAPI-7")
        po = _create_po(client, operator_headers, product.id).json

        resp = client.post(
            f"/api/purchase-orders/{po['id']}/receive",
            json={"items": [{"product_id": product.id, "quantity": 2**63}]},
            headers=operator_headers,
        )

        assert resp.status_code == 400
        assert levels(product.id) == (0, 0)

    def test_list_hides_receipts(self, client, viewer_headers, operator_headers, make_product):
        product = make_product("PAPI-5")
        _create_po(client, operator_headers, product.id)

        resp = client.get("/api/purchase-orders", headers=viewer_headers)

        assert resp.status_code == 200
        assert resp.json["count"] == 1
        assert "receipts" not in resp.json["items"][0]


class TestSuggestionsEndpoint:

    def test_suggestions_use_reorder_quantity_without_contract(self, client, viewer_headers, make_product):
        make_product("SUG-1", available=5, reorder_point=10, reorder_quantity=20)
        make_product("SUG-2", available=50, reorder_point=10, reorder_quantity=20)

        resp = client.get("/api/purchase-orders/suggestions", headers=viewer_headers)

        assert resp.status_code == 200
        assert resp.json["count"] == 1
        item = resp.json["items"][0]
        assert item["sku"] == "SUG-1"
        assert item["shortage"] == 5
        assert item["suggested_quantity"] == 20

    def test_suggestions_follow_contract_and_can_seed_a_purchase_order(
        self, client, operator_headers, make_product, make_supplier
    ):
        product = make_product("SUG-3", available=1, reorder_point=5, reorder_quantity=100)
        supplier = make_supplier("NUTS")
        client.put(
            f"/api/products/{product.id}/suppliers/{supplier.id}",
            json={"unit_cost_cents": 80, "moq": 6, "lot_size": 4, "is_primary": True},
            headers=operator_headers,
        )

        item = client.get("/api/purchase-orders/suggestions", headers=operator_headers).json["items"][0]
        assert item["suggested_quantity"] == 8
        assert item["supplier_id"] == supplier.id

        resp = client.post(
            "/api/purchase-orders",
            json={
                "supplier_id": item["supplier_id"],
                "items": [{"product_id": item["product_id"], "quantity": item["suggested_quantity"]}],
            },
            headers=operator_headers,
        )
        assert resp.status_code == 201
        assert resp.json["items"][0]["unit_cost_cents"] == 80
        assert resp.json["total_cost_cents"] == 640
