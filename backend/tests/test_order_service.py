"""
Sales order service tests.

Verifies:
- Creating an order reserves every line, or nothing at all
- confirm consumes reservations, cancel releases them
- Terminal states reject further transitions
- Audit entries follow each change, and a failing audit write never breaks it
"""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from conftest import levels
from flowstock.errors import InsufficientStock, InvalidTransition, NotFound, ValidationError
from flowstock.extensions import db
from flowstock.models import AuditLog, OrderStatus, SalesOrder
from flowstock.services import audit_service, order_service


class TestCreateOrder:

    def test_reserve_then_cancel_restores_stock(self, make_product):
        product = make_product("SKU-A", available=5)

        order = order_service.create_order(
            customer_name="Acme",
            items=[{"product_id": product.id, "quantity": 3}],
        )
        assert order.status == OrderStatus.RESERVED.value
        assert levels(product.id) == (2, 3)

        order_service.cancel_order(order.id)
        assert levels(product.id) == (5, 0)

    def test_all_or_nothing_when_a_later_line_fails(self, make_product):
        first = make_product("SKU-B1", available=10)
        second = make_product("SKU-B2", available=1)

        with pytest.raises(InsufficientStock) as exc_info:
            order_service.create_order(
                customer_name="Acme",
                items=[
                    {"product_id": first.id, "quantity": 4},
                    {"product_id": second.id, "quantity": 2},
                ],
            )

        assert exc_info.value.sku == "SKU-B2"
        assert levels(first.id) == (10, 0)
        assert levels(second.id) == (1, 0)
        assert db.session.query(SalesOrder).count() == 0

    def test_same_product_on_two_lines_reserves_the_sum(self, make_product):
        product = make_product("SKU-C", available=5)

        order_service.create_order(
            customer_name="Acme",
            items=[
                {"product_id": product.id, "quantity": 2},
                {"product_id": product.id, "quantity": 2},
            ],
        )

        assert levels(product.id) == (1, 4)

    def test_line_prices_are_captured(self, make_product):
        product = make_product("SKU-D", available=5, unit_price_cents=1250)

        order = order_service.create_order(
            customer_name="Acme",
            items=[{"product_id": product.id, "quantity": 2}],
        )

        assert order.items[0].unit_price_cents == 1250
        assert order.total_cents == 2500
        assert order.total_quantity == 2

    def test_order_numbers_are_sequential(self, make_product):
        product = make_product("SKU-E", available=10)

        numbers = [
            order_service.create_order(
                customer_name="Acme",
                items=[{"product_id": product.id, "quantity": 1}],
            ).order_number
            for _ in range(3)
        ]

        assert numbers == ["SO-000001", "SO-000002", "SO-000003"]

    def test_failed_order_does_not_consume_a_number(self, make_product):
        product = make_product("SKU-F", available=1)

        with pytest.raises(InsufficientStock):
            order_service.create_order(customer_name="Acme", items=[{"product_id": product.id, "quantity": 2}])
        order = order_service.create_order(customer_name="Acme", items=[{"product_id": product.id, "quantity": 1}])

        assert order.order_number == "SO-000001"

    @pytest.mark.parametrize(
        "customer_name,items",
        [
            ("", [{"product_id": 1, "quantity": 1}]),
            ("Acme", []),
            ("Acme", None),
            ("Acme", [{"product_id": 1, "quantity": 0}]),
            ("Acme", [{"product_id": 1, "quantity": -2}]),
            ("Acme", [{"product_id": "1", "quantity": 1}]),
            ("Acme", ["not-an-object"]),
        ],
    )
    def test_rejects_invalid_input(self, db_session, customer_name, items):
        with pytest.raises(ValidationError):
            order_service.create_order(customer_name=customer_name, items=items)

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFound):
            order_service.create_order(customer_name="Acme", items=[{"product_id": 424242, "quantity": 1}])


class TestTransitions:

    @pytest.fixture
    def reserved_order(self, make_product):
        product = make_product("SKU-T", available=5)
        order = order_service.create_order(
            customer_name="Acme",
            items=[{"product_id": product.id, "quantity": 3}],
        )
        return order, product

    def test_confirm_consumes_reservation(self, reserved_order):
        order, product = reserved_order

        confirmed = order_service.confirm_order(order.id)

        assert confirmed.status == OrderStatus.CONFIRMED.value
        assert confirmed.confirmed_at is not None
        assert levels(product.id) == (2, 0)

    def test_cancel_releases_reservation(self, reserved_order):
        order, product = reserved_order

        cancelled = order_service.cancel_order(order.id)

        assert cancelled.status == OrderStatus.CANCELLED.value
        assert cancelled.cancelled_at is not None
        assert levels(product.id) == (5, 0)

    def test_cannot_cancel_confirmed_order(self, reserved_order):
        order, product = reserved_order
        order_service.confirm_order(order.id)

        with pytest.raises(InvalidTransition) as exc_info:
            order_service.cancel_order(order.id)

        assert exc_info.value.details == {
            "entity": "Sales order",
            "current_status": "CONFIRMED",
            "target_status": "CANCELLED",
        }
        assert levels(product.id) == (2, 0)

    def test_cannot_confirm_cancelled_order(self, reserved_order):
        order, product = reserved_order
        order_service.cancel_order(order.id)

        with pytest.raises(InvalidTransition):
            order_service.confirm_order(order.id)
        assert levels(product.id) == (5, 0)

    def test_cancel_twice_releases_once(self, reserved_order):
        order, product = reserved_order
        order_service.cancel_order(order.id)

        with pytest.raises(InvalidTransition):
            order_service.cancel_order(order.id)
        assert levels(product.id) == (5, 0)

    def test_unknown_order(self, db_session):
        with pytest.raises(NotFound):
            order_service.confirm_order(31337)

    def test_list_filters_by_status(self, reserved_order, make_product):
        order, _ = reserved_order
        other = make_product("SKU-U", available=1)
        second = order_service.create_order(customer_name="Beta", items=[{"product_id": other.id, "quantity": 1}])
        order_service.confirm_order(second.id)

        rows, total = order_service.list_orders(status="reserved")

        assert total == 1
        assert [row.id for row in rows] == [order.id]

    def test_list_rejects_unknown_status(self, db_session):
        with pytest.raises(ValidationError):
            order_service.list_orders(status="SHIPPED")


class TestOrderAudit:

    def test_each_change_is_recorded(self, make_product):
        product = make_product("SKU-AU", available=5)
        order = order_service.create_order(customer_name="Acme", items=[{"product_id": product.id, "quantity": 1}])
        order_service.confirm_order(order.id)

        actions = [
            row.action for row in
            db.session.query(AuditLog).filter_by(target_type="SALES_ORDER", target_id=str(order.id))
            .order_by(AuditLog.id.asc())
        ]
        assert actions == [audit_service.ORDER_CREATE, audit_service.ORDER_CONFIRM]

    def test_audit_failure_does_not_undo_the_order(self, make_product, monkeypatch):
        product = make_product("SKU-AF", available=5)

        def broken_audit_log(**kwargs):
            raise SQLAlchemyError("audit store unavailable")

        monkeypatch.setattr(audit_service, "AuditLog", broken_audit_log)

        order = order_service.create_order(customer_name="Acme", items=[{"product_id": product.id, "quantity": 2}])

        assert db.session.get(SalesOrder, order.id).status == OrderStatus.RESERVED.value
        assert levels(product.id) == (3, 2)
