"""
Replenishment planner tests.

Verifies:
- shortage = max(0, reorder_point - available)
- Contract quantities honour MOQ and lot size
- Without a primary contract the flat reorder quantity is used
- suggest() only reads
"""

import pytest

from conftest import levels
from flowstock.extensions import db
from flowstock.models import AuditLog, Product
from flowstock.services import order_service, replenishment_service, supplier_service
from flowstock.services.replenishment_service import round_up_to_lot, suggested_quantity


class Contract:
    def __init__(self, moq, lot_size):
        self.moq = moq
        self.lot_size = lot_size


class TestQuantityRules:

    @pytest.mark.parametrize(
        "quantity,lot_size,expected",
        [(1, 1, 1), (7, 6, 12), (12, 6, 12), (13, 6, 18), (5, 10, 10)],
    )
    def test_round_up_to_lot(self, quantity, lot_size, expected):
        assert round_up_to_lot(quantity, lot_size) == expected

    def test_no_contract_uses_reorder_quantity(self):
        assert suggested_quantity(5, 20, None) == 20

    def test_no_contract_and_no_reorder_quantity_falls_back_to_shortage(self):
        assert suggested_quantity(5, 0, None) == 5

    def test_contract_rounds_shortage_to_lot(self):
        assert suggested_quantity(7, 100, Contract(moq=1, lot_size=6)) == 12

    def test_contract_moq_wins_over_small_shortage(self):
        assert suggested_quantity(3, 0, Contract(moq=10, lot_size=4)) == 12

    def test_no_shortage_suggests_nothing(self):
        assert suggested_quantity(0, 20, Contract(moq=10, lot_size=4)) == 0


class TestSuggest:

    def test_below_reorder_point_without_contract(self, make_product):
        product = make_product("RP-1", available=5, reorder_point=10, reorder_quantity=20)

        suggestions = replenishment_service.suggest()

        assert len(suggestions) == 1
        s = suggestions[0]
        assert s.product_id == product.id
        assert s.shortage == 5
        assert s.suggested_quantity == 20
        assert s.supplier_id is None

    def test_at_or_above_reorder_point_is_not_suggested(self, make_product):
        make_product("RP-2", available=10, reorder_point=10, reorder_quantity=20)
        make_product("RP-3", available=50, reorder_point=10, reorder_quantity=20)

        assert replenishment_service.suggest() == []

    def test_primary_contract_shapes_quantity(self, make_product, make_supplier):
        product = make_product("RP-4", available=3, reorder_point=10, reorder_quantity=100)
        supplier = make_supplier("BOLT")
        supplier_service.upsert_product_supplier(
            product.id, supplier.id, unit_cost_cents=120, moq=8, lot_size=5, lead_time_days=4, is_primary=True,
        )

        [s] = replenishment_service.suggest()

        assert s.shortage == 7
        assert s.suggested_quantity == 10
        assert s.supplier_code == "BOLT"
        assert s.unit_cost_cents == 120
        assert s.lead_time_days == 4

    def test_non_primary_contract_is_ignored(self, make_product, make_supplier):
        product = make_product("RP-5", available=0, reorder_point=4, reorder_quantity=9)
        supplier = make_supplier("BOLT")
        supplier_service.upsert_product_supplier(product.id, supplier.id, unit_cost_cents=120, moq=50, is_primary=False)

        [s] = replenishment_service.suggest()

        assert s.suggested_quantity == 9
        assert s.supplier_id is None

    def test_inactive_primary_supplier_means_no_contract(self, make_product, make_supplier):
        product = make_product("RP-6", available=0, reorder_point=4, reorder_quantity=9)
        supplier = make_supplier("BOLT")
        supplier_service.upsert_product_supplier(product.id, supplier.id, unit_cost_cents=120, moq=50, is_primary=True)
        supplier_service.update_supplier(supplier.id, {"is_active": False})

        [s] = replenishment_service.suggest()

        assert s.suggested_quantity == 9
        assert s.supplier_id is None

    def test_ordering_largest_shortage_first(self, make_product):
        make_product("RP-B", available=8, reorder_point=10, reorder_quantity=5)
        make_product("RP-A", available=0, reorder_point=10, reorder_quantity=5)
        make_product("RP-C", available=2, reorder_point=4, reorder_quantity=5)
        make_product("RP-D", available=0, reorder_point=2, reorder_quantity=5)

        skus = [s.sku for s in replenishment_service.suggest()]

        assert skus == ["RP-A", "RP-D", "RP-C", "RP-B"]

    def test_reserved_stock_does_not_count_as_available(self, make_product):
        product = make_product("RP-R", available=10, reorder_point=10, reorder_quantity=30)
        order_service.create_order(customer_name="Acme", items=[{"product_id": product.id, "quantity": 6}])

        [s] = replenishment_service.suggest()

        assert s.available_quantity == 4
        assert s.reserved_quantity == 6
        assert s.shortage == 6

    def test_suggest_is_read_only(self, make_product):
        product = make_product("RP-P", available=5, reorder_point=10, reorder_quantity=20)
        audit_rows = db.session.query(AuditLog).count()

        first = [s.to_dict() for s in replenishment_service.suggest()]
        second = [s.to_dict() for s in replenishment_service.suggest()]

        assert first == second
        assert levels(product.id) == (5, 0)
        assert db.session.query(AuditLog).count() == audit_rows
        assert db.session.query(Product).count() == 1
        assert not db.session.dirty
        assert not db.session.new
