# backend/flowstock/services/product_service.py
"""
Product catalog: categories, products and manual stock-in.

Every product owns exactly one Inventory row, created together with it at
0 available / 0 reserved. SKUs are normalized to uppercase before the
uniqueness check, so "ab-1" and "AB-1" collide.
"""
from __future__ import annotations

import re

from sqlalchemy import func

from ..errors import BusinessRuleError, NotFound, ValidationError
from ..extensions import db
from ..models import Inventory, Product, ProductCategory
from ..validation import MAX_INTEGER
from . import audit_service, stock_ledger
from .audit_service import Actor
from .concurrency import run_with_retry

SKU_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9-]{1,63}$")
CATEGORY_CODE_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9_-]{0,63}$")

PRODUCT_MUTABLE_FIELDS = {
    "name", "description", "unit_price_cents", "reorder_point", "reorder_quantity", "category_id",
}


def normalize_sku(raw) -> str:
    sku = raw.strip().upper() if isinstance(raw, str) else ""
    if not SKU_PATTERN.match(sku):
        raise ValidationError(
            "sku must be 2-64 characters of A-Z, 0-9 or '-', starting with a letter or digit",
            {"sku": raw},
        )
    return sku


def _non_negative_int(value, field: str, default: int | None = None) -> int:
    if value is None and default is not None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", {"field": field, "value": value})
    if value > MAX_INTEGER:
        raise ValidationError(f"{field} must be at most {MAX_INTEGER}", {"field": field, "value": value})
    # Negative reorder settings are normalized to 0
    return max(0, value)


def _required_text(value, field: str, max_length: int) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(f"{field} is required")
    if len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text


def _price(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0 or value > MAX_INTEGER:
        raise ValidationError("unit_price_cents must be a non-negative integer", {"value": value})
    return value


def _category_or_none(category_id):
    if category_id is None:
        return None
    if isinstance(category_id, bool) or not isinstance(category_id, int) or not 0 < category_id <= MAX_INTEGER:
        raise ValidationError("category_id must be a positive integer", {"category_id": category_id})
    category = db.session.get(ProductCategory, category_id)
    if category is None:
        raise NotFound("Category not found", {"category_id": category_id})
    return category


# =============================================================================
# Categories
# =============================================================================

def create_category(*, code: str, name: str, parent_id: int | None = None, actor: Actor | None = None) -> ProductCategory:
    code = code.strip().upper() if isinstance(code, str) else ""
    if not CATEGORY_CODE_PATTERN.match(code):
        raise ValidationError("code must be 1-64 characters of A-Z, 0-9, '_' or '-'", {"code": code})
    name = _required_text(name, "name", 120)

    def _op() -> ProductCategory:
        _category_or_none(parent_id)
        if db.session.query(ProductCategory.id).filter_by(code=code).first():
            raise BusinessRuleError("Category code already exists", {"code": code})
        category = ProductCategory(code=code, name=name, parent_id=parent_id)
        db.session.add(category)
        db.session.commit()
        return category

    category = run_with_retry(_op)
    audit_service.record(
        audit_service.CATEGORY_CREATE,
        target_type="CATEGORY",
        target_id=category.id,
        detail=f"code={category.code}",
        actor=actor,
    )
    return category


def list_categories() -> list[ProductCategory]:
    return db.session.query(ProductCategory).order_by(ProductCategory.name.asc(), ProductCategory.id.asc()).all()


def descendant_category_ids(category_id: int) -> set[int]:
    """category_id plus every category below it."""
    parents: dict[int | None, list[int]] = {}
    for cid, parent in db.session.query(ProductCategory.id, ProductCategory.parent_id).all():
        parents.setdefault(parent, []).append(cid)

    found = {category_id}
    frontier = [category_id]
    while frontier:
        current = frontier.pop()
        for child in parents.get(current, []):
            if child not in found:
                found.add(child)
                frontier.append(child)
    return found


# =============================================================================
# Products
# =============================================================================

def create_product(
    *,
    sku: str,
    name: str,
    description: str | None = None,
    unit_price_cents: int = 0,
    reorder_point: int | None = None,
    reorder_quantity: int | None = None,
    category_id: int | None = None,
    actor: Actor | None = None,
) -> Product:
    sku = normalize_sku(sku)
    name = _required_text(name, "name", 255)
    unit_price_cents = _price(unit_price_cents)
    reorder_point = _non_negative_int(reorder_point, "reorder_point", default=0)
    reorder_quantity = _non_negative_int(reorder_quantity, "reorder_quantity", default=0)

    def _op() -> Product:
        _category_or_none(category_id)
        if db.session.query(Product.id).filter(func.upper(Product.sku) == sku).first():
            raise BusinessRuleError("SKU already exists", {"sku": sku})

        product = Product(
            sku=sku,
            name=name,
            description=(description or "").strip() or None,
            unit_price_cents=unit_price_cents,
            reorder_point=reorder_point,
            reorder_quantity=reorder_quantity,
            category_id=category_id,
        )
        product.inventory = Inventory(available_quantity=0, reserved_quantity=0)
        db.session.add(product)
        db.session.commit()
        return product

    product = run_with_retry(_op)
    audit_service.record(
        audit_service.PRODUCT_CREATE,
        target_type="PRODUCT",
        target_id=product.id,
        detail=f"sku={product.sku}, name={product.name}",
        actor=actor,
    )
    return product


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found", {"product_id": product_id})
    return product


def update_product(product_id: int, patch: dict, *, actor: Actor | None = None) -> Product:
    """Apply a partial update. SKU is immutable once created."""
    if "sku" in patch:
        raise ValidationError("sku cannot be changed")

    def _op() -> Product:
        product = get_product(product_id)
        for key, value in patch.items():
            if key not in PRODUCT_MUTABLE_FIELDS:
                continue
            if key == "name":
                value = _required_text(value, "name", 255)
            elif key == "unit_price_cents":
                value = _price(value)
            elif key in ("reorder_point", "reorder_quantity"):
                value = _non_negative_int(value, key)
            elif key == "category_id":
                _category_or_none(value)
            elif key == "description":
                value = (value or "").strip() or None
            setattr(product, key, value)
        db.session.commit()
        return product

    product = run_with_retry(_op)
    changed = sorted(k for k in patch if k in PRODUCT_MUTABLE_FIELDS)
    audit_service.record(
        audit_service.PRODUCT_UPDATE,
        target_type="PRODUCT",
        target_id=product.id,
        detail=f"sku={product.sku}, fields={','.join(changed)}",
        actor=actor,
    )
    return product


def list_products(
    *,
    q: str | None = None,
    category_id: int | None = None,
    low_stock_only: bool = False,
    page: int = 0,
    size: int = 50,
) -> dict:
    page = max(0, page)
    size = min(max(1, size), 200)

    query = db.session.query(Product).join(Inventory, Inventory.product_id == Product.id)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(db.or_(Product.sku.ilike(like), Product.name.ilike(like)))
    if category_id is not None:
        query = query.filter(Product.category_id.in_(descendant_category_ids(category_id)))
    if low_stock_only:
        query = query.filter(Inventory.available_quantity <= Product.reorder_point)

    total = query.count()
    rows = query.order_by(Product.sku.asc()).offset(page * size).limit(size).all()
    return {
        "items": [p.to_dict() for p in rows],
        "page": page,
        "size": size,
        "total": total,
    }


def add_stock(product_id: int, quantity: int, *, note: str | None = None, actor: Actor | None = None) -> Product:
    """Manual stock-in (opening balance, found stock...)."""
    def _op():
        product = get_product(product_id)
        before, after = stock_ledger.add_stock(product.id, quantity)
        db.session.commit()
        return product, before, after

    product, before, after = run_with_retry(_op)
    detail = f"sku={product.sku}, quantity={quantity}, available {before} -> {after}"
    if note:
        detail += f", note={note.strip()}"
    audit_service.record(
        audit_service.STOCK_ADD,
        target_type="PRODUCT",
        target_id=product.id,
        detail=detail,
        actor=actor,
    )
    return product
