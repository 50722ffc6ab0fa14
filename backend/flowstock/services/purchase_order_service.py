# Overview: Service-layer operations for purchase orders; creation, partial/full receipts and cancellation.

"""
Purchase Order Service

LIFECYCLE:
- ORDERED             -> PARTIALLY_RECEIVED | RECEIVED | CANCELLED
- PARTIALLY_RECEIVED  -> PARTIALLY_RECEIVED | RECEIVED | CANCELLED
- RECEIVED, CANCELLED are terminal

RECEIVING:
- Every submitted line is validated before anything is applied. A line that
  exceeds its remaining quantity raises OverReceipt and nothing changes.
- Line received quantities, the stock credit and the immutable receipt record
  are committed together in one transaction.
- Status is recomputed from the lines after each receipt.

Cancelling keeps whatever stock was already received.
"""

from __future__ import annotations

import logging

from ..errors import (
    BusinessRuleError,
    InvalidTransition,
    NotFound,
    OverReceipt,
    ValidationError,
)
from ..extensions import db
from ..models import (
    Product,
    ProductSupplier,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderReceipt,
    PurchaseOrderReceiptItem,
    PurchaseOrderStatus,
    Supplier,
)
from ..time_utils import utcnow
from ..validation import MAX_INTEGER
from . import audit_service, stock_ledger
from .audit_service import Actor, SYSTEM_ACTOR
from .concurrency import lock_for_update, run_with_retry
from .document_service import PURCHASE_ORDER, next_document_number

logger = logging.getLogger(__name__)

MAX_SUPPLIER_NAME_LENGTH = 150

PURCHASE_ORDER_TRANSITIONS: dict[PurchaseOrderStatus, frozenset[PurchaseOrderStatus]] = {
    PurchaseOrderStatus.ORDERED: frozenset({
        PurchaseOrderStatus.PARTIALLY_RECEIVED,
        PurchaseOrderStatus.RECEIVED,
        PurchaseOrderStatus.CANCELLED,
    }),
    PurchaseOrderStatus.PARTIALLY_RECEIVED: frozenset({
        PurchaseOrderStatus.PARTIALLY_RECEIVED,
        PurchaseOrderStatus.RECEIVED,
        PurchaseOrderStatus.CANCELLED,
    }),
    PurchaseOrderStatus.RECEIVED: frozenset(),
    PurchaseOrderStatus.CANCELLED: frozenset(),
}


def ensure_transition(current: str, target: PurchaseOrderStatus) -> None:
    allowed = PURCHASE_ORDER_TRANSITIONS.get(PurchaseOrderStatus(current), frozenset())
    if target not in allowed:
        raise InvalidTransition("Purchase order", current, target.value)


def derive_status(items: list[PurchaseOrderItem]) -> PurchaseOrderStatus:
    if all(item.remaining_quantity == 0 for item in items):
        return PurchaseOrderStatus.RECEIVED
    if any(item.received_quantity > 0 for item in items):
        return PurchaseOrderStatus.PARTIALLY_RECEIVED
    return PurchaseOrderStatus.ORDERED


def _positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer", {"field": field, "value": value})
    if value > MAX_INTEGER:
        raise ValidationError(f"{field} must be at most {MAX_INTEGER}", {"field": field, "value": value})
    return value


def _resolve_supplier(supplier_id, supplier_name) -> tuple[Supplier | None, str]:
    if supplier_id is not None:
        supplier_id = _positive_int(supplier_id, "supplier_id")
        supplier = db.session.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFound("Supplier not found", {"supplier_id": supplier_id})
        if not supplier.is_active:
            raise BusinessRuleError("Supplier is inactive", {"supplier_id": supplier_id})
        return supplier, supplier.name

    name = supplier_name.strip() if isinstance(supplier_name, str) else ""
    if not name:
        raise ValidationError("supplier_id or supplier_name is required")
    if len(name) > MAX_SUPPLIER_NAME_LENGTH:
        raise ValidationError(f"supplier_name must be at most {MAX_SUPPLIER_NAME_LENGTH} characters")
    return None, name


def _contract_cost(product_id: int, supplier: Supplier | None) -> int | None:
    if supplier is None:
        return None
    contract = (
        db.session.query(ProductSupplier)
        .filter_by(product_id=product_id, supplier_id=supplier.id)
        .first()
    )
    return contract.unit_cost_cents if contract else None


def _validate_order_items(items, supplier: Supplier | None) -> list[tuple[Product, int, int]]:
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")

    seen: set[int] = set()
    resolved = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object", {"index": index})
        product_id = _positive_int(item.get("product_id"), f"items[{index}].product_id")
        quantity = _positive_int(item.get("quantity"), f"items[{index}].quantity")
        if product_id in seen:
            raise ValidationError("Duplicate product in purchase order", {"product_id": product_id})
        seen.add(product_id)

        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found", {"product_id": product_id})

        unit_cost = item.get("unit_cost_cents")
        if unit_cost is None:
            unit_cost = _contract_cost(product_id, supplier)
            if unit_cost is None:
                raise ValidationError(
                    f"items[{index}].unit_cost_cents is required",
                    {"product_id": product_id},
                )
        unit_cost = _positive_int(unit_cost, f"items[{index}].unit_cost_cents")
        resolved.append((product, quantity, unit_cost))
    return resolved


def create_purchase_order(
    *,
    items: list[dict],
    supplier_id: int | None = None,
    supplier_name: str | None = None,
    note: str | None = None,
    actor: Actor | None = None,
) -> PurchaseOrder:
    """
    Create an ORDERED purchase order.

    items: [{"product_id": int, "quantity": int, "unit_cost_cents": int?}, ...]
    unit_cost_cents falls back to the product's contract cost with the supplier.
    """
    actor = actor or SYSTEM_ACTOR

    def _op() -> PurchaseOrder:
        supplier, resolved_name = _resolve_supplier(supplier_id, supplier_name)
        lines = _validate_order_items(items, supplier)

        type_, prefix = PURCHASE_ORDER
        po = PurchaseOrder(
            order_number=next_document_number(document_type=type_, prefix=prefix),
            supplier_id=supplier.id if supplier else None,
            supplier_name=resolved_name,
            note=(note or "").strip() or None,
            status=PurchaseOrderStatus.ORDERED.value,
            created_by=actor.username,
        )
        for product, quantity, unit_cost in lines:
            po.items.append(PurchaseOrderItem(
                product_id=product.id,
                quantity=quantity,
                received_quantity=0,
                unit_cost_cents=unit_cost,
            ))
        db.session.add(po)
        db.session.commit()
        return po

    po = run_with_retry(_op)
    logger.info("Purchase order %s created for %s", po.order_number, po.supplier_name)

    audit_service.record(
        audit_service.PURCHASE_ORDER_CREATE,
        target_type="PURCHASE_ORDER",
        target_id=po.id,
        detail=f"order_number={po.order_number}, supplier={po.supplier_name}, total_cost_cents={po.total_cost_cents}",
        actor=actor,
    )
    return po


def _load_for_update(purchase_order_id: int) -> PurchaseOrder:
    po = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=purchase_order_id)).first()
    if po is None:
        raise NotFound("Purchase order not found", {"purchase_order_id": purchase_order_id})
    return po


def _validate_receipt_items(po: PurchaseOrder, items) -> list[tuple[PurchaseOrderItem, int]]:
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")

    seen: set[int] = set()
    planned = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object", {"index": index})
        product_id = _positive_int(item.get("product_id"), f"items[{index}].product_id")
        quantity = _positive_int(item.get("quantity"), f"items[{index}].quantity")
        if product_id in seen:
            raise ValidationError("Duplicate product in receipt", {"product_id": product_id})
        seen.add(product_id)

        line = po.item_for_product(product_id)
        if line is None:
            raise ValidationError(
                "Product is not part of this purchase order",
                {"product_id": product_id, "order_number": po.order_number},
            )
        if quantity > line.remaining_quantity:
            raise OverReceipt(line.product.sku, line.remaining_quantity, quantity)
        planned.append((line, quantity))
    return planned


def receive(
    purchase_order_id: int,
    *,
    items: list[dict],
    actor: Actor | None = None,
) -> PurchaseOrder:
    """
    Record a (possibly partial) goods receipt.

    items: [{"product_id": int, "quantity": int}, ...]
    """
    actor = actor or SYSTEM_ACTOR

    def _op() -> tuple[PurchaseOrder, PurchaseOrderReceipt]:
        po = _load_for_update(purchase_order_id)
        if PurchaseOrderStatus(po.status) not in (
            PurchaseOrderStatus.ORDERED,
            PurchaseOrderStatus.PARTIALLY_RECEIVED,
        ):
            raise InvalidTransition("Purchase order", po.status, "RECEIVE")

        planned = _validate_receipt_items(po, items)

        now = utcnow()
        receipt = PurchaseOrderReceipt(received_by=actor.username, received_at=now)
        for line, quantity in planned:
            line.received_quantity += quantity
            stock_ledger.receive(line.product_id, quantity)
            receipt.items.append(PurchaseOrderReceiptItem(product_id=line.product_id, quantity=quantity))
        po.receipts.append(receipt)

        new_status = derive_status(po.items)
        ensure_transition(po.status, new_status)
        po.status = new_status.value
        po.updated_at = now
        if new_status is PurchaseOrderStatus.RECEIVED:
            po.received_at = now

        db.session.commit()
        return po, receipt

    po, receipt = run_with_retry(_op)
    logger.info("Purchase order %s received (%s)", po.order_number, po.status)

    audit_service.record(
        audit_service.PURCHASE_ORDER_RECEIVE,
        target_type="PURCHASE_ORDER",
        target_id=po.id,
        detail=(
            f"order_number={po.order_number}, receipt_id={receipt.id}, status={po.status}, "
            + ", ".join(f"{i.product.sku}+{i.quantity}" for i in receipt.items)
        ),
        actor=actor,
    )
    return po


def cancel(purchase_order_id: int, *, actor: Actor | None = None) -> PurchaseOrder:
    """Cancel an open purchase order. Received stock stays on hand."""
    actor = actor or SYSTEM_ACTOR

    def _op() -> PurchaseOrder:
        po = _load_for_update(purchase_order_id)
        ensure_transition(po.status, PurchaseOrderStatus.CANCELLED)
        now = utcnow()
        po.status = PurchaseOrderStatus.CANCELLED.value
        po.cancelled_at = now
        po.updated_at = now
        db.session.commit()
        return po

    po = run_with_retry(_op)
    logger.info("Purchase order %s cancelled", po.order_number)

    audit_service.record(
        audit_service.PURCHASE_ORDER_CANCEL,
        target_type="PURCHASE_ORDER",
        target_id=po.id,
        detail=f"order_number={po.order_number}",
        actor=actor,
    )
    return po


def get_purchase_order(purchase_order_id: int) -> PurchaseOrder:
    po = db.session.get(PurchaseOrder, purchase_order_id)
    if po is None:
        raise NotFound("Purchase order not found", {"purchase_order_id": purchase_order_id})
    return po


def list_purchase_orders(
    *,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[PurchaseOrder], int]:
    query = db.session.query(PurchaseOrder)
    if status:
        try:
            query = query.filter(PurchaseOrder.status == PurchaseOrderStatus(status.strip().upper()).value)
        except ValueError:
            raise ValidationError(f"Unknown status: {status}") from None
    total = query.count()
    rows = query.order_by(PurchaseOrder.id.desc()).offset(max(0, offset)).limit(min(max(1, limit), 500)).all()
    return rows, total
