# Overview: Per-product stock ledger: available vs reserved quantities and the atomic moves between them.

"""
Stock Ledger

INVARIANTS:
- available_quantity >= 0 and reserved_quantity >= 0 for every product, always.
- Every mutation is a single conditional UPDATE whose WHERE clause carries the
  guard (e.g. available_quantity >= qty). The check and the write happen in one
  statement, so two concurrent reservations can never both pass the check.
- rowcount 0 means the guard failed (or the row is missing); the reason is
  then read back to build the error.

TRANSACTIONS:
- Functions here never commit. The calling service owns the transaction, so a
  multi-line order reserves every line or, on rollback, none of them.

MOVES:
- reserve:             available -= q, reserved += q
- release:             available += q, reserved -= q
- consume_reservation: reserved -= q
- receive / add_stock: available += q
"""

from __future__ import annotations

import logging

from sqlalchemy import update

from ..errors import InsufficientStock, InvariantViolation, NotFound, ValidationError
from ..extensions import db
from ..models import Inventory, Product
from ..validation import MAX_INTEGER

logger = logging.getLogger(__name__)


def _require_positive(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer", {"quantity": quantity})
    if quantity > MAX_INTEGER:
        raise ValidationError(f"quantity must be at most {MAX_INTEGER}", {"quantity": quantity})
    return quantity


def _sku(product_id: int) -> str:
    sku = db.session.query(Product.sku).filter_by(id=product_id).scalar()
    return sku or f"#{product_id}"


def get_entry(product_id: int) -> Inventory:
    entry = db.session.get(Inventory, product_id)
    if entry is None:
        raise NotFound("Product not found", {"product_id": product_id})
    return entry


def levels(product_id: int) -> tuple[int, int]:
    """Current (available, reserved) as stored, bypassing the identity map."""
    row = (
        db.session.query(Inventory.available_quantity, Inventory.reserved_quantity)
        .filter(Inventory.product_id == product_id)
        .first()
    )
    if row is None:
        raise NotFound("Product not found", {"product_id": product_id})
    return row[0], row[1]


def _apply(product_id: int, guard, **values) -> bool:
    stmt = update(Inventory).where(Inventory.product_id == product_id)
    if guard is not None:
        stmt = stmt.where(guard)
    result = db.session.execute(stmt.values(**values))
    return bool(result.rowcount)


def reserve(product_id: int, quantity: int) -> None:
    """Move quantity from available to reserved, or raise InsufficientStock."""
    quantity = _require_positive(quantity)
    ok = _apply(
        product_id,
        Inventory.available_quantity >= quantity,
        available_quantity=Inventory.available_quantity - quantity,
        reserved_quantity=Inventory.reserved_quantity + quantity,
    )
    if not ok:
        available, _ = levels(product_id)
        raise InsufficientStock(_sku(product_id), available, quantity)


def release(product_id: int, quantity: int) -> None:
    """Return reserved quantity to available (order cancelled)."""
    quantity = _require_positive(quantity)
    ok = _apply(
        product_id,
        Inventory.reserved_quantity >= quantity,
        available_quantity=Inventory.available_quantity + quantity,
        reserved_quantity=Inventory.reserved_quantity - quantity,
    )
    if not ok:
        _, reserved = levels(product_id)
        raise InvariantViolation(
            "Release exceeds reserved quantity",
            {"sku": _sku(product_id), "reserved": reserved, "requested": quantity},
        )


def consume_reservation(product_id: int, quantity: int) -> None:
    """Drop reserved quantity for good (order confirmed and shipped)."""
    quantity = _require_positive(quantity)
    ok = _apply(
        product_id,
        Inventory.reserved_quantity >= quantity,
        reserved_quantity=Inventory.reserved_quantity - quantity,
    )
    if not ok:
        _, reserved = levels(product_id)
        raise InvariantViolation(
            "Consume exceeds reserved quantity",
            {"sku": _sku(product_id), "reserved": reserved, "requested": quantity},
        )


def receive(product_id: int, quantity: int) -> None:
    """Credit available stock (goods received)."""
    quantity = _require_positive(quantity)
    if not _apply(product_id, None, available_quantity=Inventory.available_quantity + quantity):
        raise NotFound("Product not found", {"product_id": product_id})


def add_stock(product_id: int, quantity: int) -> tuple[int, int]:
    """
    Manual stock-in outside any purchase order.

    Returns (available_before, available_after) for the audit trail.
    """
    quantity = _require_positive(quantity)
    receive(product_id, quantity)
    after, _ = levels(product_id)
    logger.info("Stock added product_id=%s quantity=%s available=%s", product_id, quantity, after)
    return after - quantity, after
