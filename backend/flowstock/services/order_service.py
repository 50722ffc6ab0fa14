# Overview: Service-layer operations for sales orders; reservation-backed create / confirm / cancel.

"""
Sales Order Service

LIFECYCLE:
- create_order: reserves every line, order starts RESERVED
- confirm_order: RESERVED -> CONFIRMED, consumes the reservations
- cancel_order: RESERVED -> CANCELLED, releases the reservations

All-or-nothing creation: lines are reserved one after another inside a single
transaction. If any line cannot be reserved the transaction is rolled back,
which undoes every reservation already made for earlier lines, and the
InsufficientStock error names the failing SKU.

Audit entries are written after the commit (see audit_service.record).
"""

from __future__ import annotations

import logging

from ..errors import InvalidTransition, NotFound, ValidationError
from ..extensions import db
from ..models import OrderStatus, Product, SalesOrder, SalesOrderItem
from ..time_utils import utcnow
from ..validation import MAX_INTEGER
from . import audit_service, stock_ledger
from .audit_service import Actor, SYSTEM_ACTOR
from .concurrency import lock_for_update, run_with_retry
from .document_service import SALES_ORDER, next_document_number

logger = logging.getLogger(__name__)

MAX_CUSTOMER_NAME_LENGTH = 150

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.RESERVED: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def ensure_transition(current: str, target: OrderStatus) -> None:
    allowed = ORDER_TRANSITIONS.get(OrderStatus(current), frozenset())
    if target not in allowed:
        raise InvalidTransition("Sales order", current, target.value)


def _positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer", {"field": field, "value": value})
    if value > MAX_INTEGER:
        raise ValidationError(f"{field} must be at most {MAX_INTEGER}", {"field": field, "value": value})
    return value


def _validate_items(items) -> list[tuple[Product, int]]:
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")

    resolved = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object", {"index": index})
        product_id = _positive_int(item.get("product_id"), f"items[{index}].product_id")
        quantity = _positive_int(item.get("quantity"), f"items[{index}].quantity")
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found", {"product_id": product_id})
        resolved.append((product, quantity))
    return resolved


def create_order(
    *,
    customer_name: str,
    items: list[dict],
    actor: Actor | None = None,
) -> SalesOrder:
    """
    Create a RESERVED order, reserving stock for every line.

    items: [{"product_id": int, "quantity": int}, ...]
    """
    actor = actor or SYSTEM_ACTOR
    customer_name = (customer_name or "").strip() if isinstance(customer_name, str) else ""
    if not customer_name:
        raise ValidationError("customer_name is required")
    if len(customer_name) > MAX_CUSTOMER_NAME_LENGTH:
        raise ValidationError(f"customer_name must be at most {MAX_CUSTOMER_NAME_LENGTH} characters")

    def _op() -> SalesOrder:
        lines = _validate_items(items)

        for product, quantity in lines:
            stock_ledger.reserve(product.id, quantity)

        type_, prefix = SALES_ORDER
        order = SalesOrder(
            order_number=next_document_number(document_type=type_, prefix=prefix),
            customer_name=customer_name,
            status=OrderStatus.RESERVED.value,
            created_by=actor.username,
        )
        for product, quantity in lines:
            order.items.append(SalesOrderItem(
                product_id=product.id,
                quantity=quantity,
                unit_price_cents=product.unit_price_cents,
            ))
        db.session.add(order)
        db.session.commit()
        return order

    order = run_with_retry(_op)
    logger.info("Sales order %s created with %d line(s)", order.order_number, len(order.items))

    audit_service.record(
        audit_service.ORDER_CREATE,
        target_type="SALES_ORDER",
        target_id=order.id,
        detail=f"order_number={order.order_number}, customer={order.customer_name}, total_cents={order.total_cents}",
        actor=actor,
    )
    return order


def _load_for_update(order_id: int) -> SalesOrder:
    order = lock_for_update(db.session.query(SalesOrder).filter_by(id=order_id)).first()
    if order is None:
        raise NotFound("Sales order not found", {"order_id": order_id})
    return order


def confirm_order(order_id: int, *, actor: Actor | None = None) -> SalesOrder:
    """RESERVED -> CONFIRMED: consume each line's reservation. Available is untouched."""
    actor = actor or SYSTEM_ACTOR

    def _op() -> SalesOrder:
        order = _load_for_update(order_id)
        ensure_transition(order.status, OrderStatus.CONFIRMED)

        for item in order.items:
            stock_ledger.consume_reservation(item.product_id, item.quantity)

        now = utcnow()
        order.status = OrderStatus.CONFIRMED.value
        order.confirmed_at = now
        order.updated_at = now
        db.session.commit()
        return order

    order = run_with_retry(_op)
    logger.info("Sales order %s confirmed", order.order_number)

    audit_service.record(
        audit_service.ORDER_CONFIRM,
        target_type="SALES_ORDER",
        target_id=order.id,
        detail=f"order_number={order.order_number}",
        actor=actor,
    )
    return order


def cancel_order(order_id: int, *, actor: Actor | None = None) -> SalesOrder:
    """RESERVED -> CANCELLED: release each line's reservation back to available."""
    actor = actor or SYSTEM_ACTOR

    def _op() -> SalesOrder:
        order = _load_for_update(order_id)
        ensure_transition(order.status, OrderStatus.CANCELLED)

        for item in order.items:
            stock_ledger.release(item.product_id, item.quantity)

        now = utcnow()
        order.status = OrderStatus.CANCELLED.value
        order.cancelled_at = now
        order.updated_at = now
        db.session.commit()
        return order

    order = run_with_retry(_op)
    logger.info("Sales order %s cancelled", order.order_number)

    audit_service.record(
        audit_service.ORDER_CANCEL,
        target_type="SALES_ORDER",
        target_id=order.id,
        detail=f"order_number={order.order_number}",
        actor=actor,
    )
    return order


def get_order(order_id: int) -> SalesOrder:
    order = db.session.get(SalesOrder, order_id)
    if order is None:
        raise NotFound("Sales order not found", {"order_id": order_id})
    return order


def list_orders(*, status: str | None = None, limit: int = 100, offset: int = 0) -> tuple[list[SalesOrder], int]:
    query = db.session.query(SalesOrder)
    if status:
        try:
            query = query.filter(SalesOrder.status == OrderStatus(status.strip().upper()).value)
        except ValueError:
            raise ValidationError(f"Unknown status: {status}") from None
    total = query.count()
    rows = query.order_by(SalesOrder.id.desc()).offset(max(0, offset)).limit(min(max(1, limit), 500)).all()
    return rows, total
