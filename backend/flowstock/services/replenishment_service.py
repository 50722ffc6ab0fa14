# Overview: Read-only replenishment planner; turns stock levels and supplier contracts into reorder suggestions.

"""
Replenishment Planner

For every product:
    shortage = max(0, reorder_point - available)

Products with shortage 0 are not suggested. Otherwise:
- With a primary contract from an active supplier:
      suggested = smallest multiple of lot_size that is >= max(shortage, moq)
- Without one, the product's reorder_quantity is used as is (no lot
  rounding). A product with reorder_quantity 0 falls back to the shortage.

suggest() only reads; calling it any number of times changes nothing.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from ..extensions import db
from ..models import Inventory, Product, ProductSupplier, Supplier


@dataclass(frozen=True)
class Suggestion:
    product_id: int
    sku: str
    name: str
    available_quantity: int
    reserved_quantity: int
    reorder_point: int
    reorder_quantity: int
    shortage: int
    suggested_quantity: int
    supplier_id: int | None
    supplier_code: str | None
    supplier_name: str | None
    unit_cost_cents: int | None
    lead_time_days: int | None
    moq: int | None
    lot_size: int | None

    def to_dict(self) -> dict:
        return asdict(self)


def round_up_to_lot(quantity: int, lot_size: int) -> int:
    lot_size = max(1, lot_size)
    return -(-quantity // lot_size) * lot_size


def suggested_quantity(shortage: int, reorder_quantity: int, contract: ProductSupplier | None) -> int:
    if shortage <= 0:
        return 0
    if contract is not None:
        return round_up_to_lot(max(shortage, contract.moq), contract.lot_size)
    return reorder_quantity if reorder_quantity > 0 else shortage


def _primary_contracts() -> dict[int, ProductSupplier]:
    rows = (
        db.session.query(ProductSupplier)
        .join(Supplier, Supplier.id == ProductSupplier.supplier_id)
        .filter(ProductSupplier.is_primary.is_(True), Supplier.is_active.is_(True))
        .all()
    )
    return {row.product_id: row for row in rows}


def suggest() -> list[Suggestion]:
    """Reorder suggestions, largest shortage first, then lowest available, then SKU."""
    contracts = _primary_contracts()
    rows = (
        db.session.query(Product, Inventory)
        .join(Inventory, Inventory.product_id == Product.id)
        .all()
    )

    suggestions = []
    for product, inventory in rows:
        shortage = max(0, product.reorder_point - inventory.available_quantity)
        if shortage == 0:
            continue

        contract = contracts.get(product.id)
        supplier = contract.supplier if contract else None
        suggestions.append(Suggestion(
            product_id=product.id,
            sku=product.sku,
            name=product.name,
            available_quantity=inventory.available_quantity,
            reserved_quantity=inventory.reserved_quantity,
            reorder_point=product.reorder_point,
            reorder_quantity=product.reorder_quantity,
            shortage=shortage,
            suggested_quantity=suggested_quantity(shortage, product.reorder_quantity, contract),
            supplier_id=supplier.id if supplier else None,
            supplier_code=supplier.code if supplier else None,
            supplier_name=supplier.name if supplier else None,
            unit_cost_cents=contract.unit_cost_cents if contract else None,
            lead_time_days=contract.lead_time_days if contract else None,
            moq=contract.moq if contract else None,
            lot_size=contract.lot_size if contract else None,
        ))

    suggestions.sort(key=lambda s: (-s.shortage, s.available_quantity, s.sku))
    return suggestions
