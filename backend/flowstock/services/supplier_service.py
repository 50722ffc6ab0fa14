# Overview: Service-layer operations for suppliers and product supply contracts.

from __future__ import annotations

import re

from ..errors import BusinessRuleError, NotFound, ValidationError
from ..extensions import db
from ..models import Product, ProductSupplier, Supplier
from ..validation import MAX_INTEGER
from . import audit_service
from .audit_service import Actor
from .concurrency import run_with_retry

SUPPLIER_CODE_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9_-]{1,63}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

SUPPLIER_MUTABLE_FIELDS = {"name", "contact_name", "email", "phone", "note", "is_active"}


def _optional_text(value, field: str, max_length: int) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    text = value.strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text or None


def _email(value) -> str | None:
    email = _optional_text(value, "email", 255)
    if email and not EMAIL_PATTERN.match(email):
        raise ValidationError("email is not valid", {"email": email})
    return email


def _name(value) -> str:
    name = _optional_text(value, "name", 150)
    if not name:
        raise ValidationError("name is required")
    return name


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFound("Supplier not found", {"supplier_id": supplier_id})
    return supplier


def list_suppliers(*, q: str | None = None, active_only: bool = False) -> list[Supplier]:
    """Active suppliers first, then by name."""
    query = db.session.query(Supplier)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(db.or_(Supplier.code.ilike(like), Supplier.name.ilike(like)))
    if active_only:
        query = query.filter(Supplier.is_active.is_(True))
    return query.order_by(Supplier.is_active.desc(), Supplier.name.asc(), Supplier.id.asc()).all()


def create_supplier(
    *,
    code: str,
    name: str,
    contact_name: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    note: str | None = None,
    actor: Actor | None = None,
) -> Supplier:
    code = code.strip().upper() if isinstance(code, str) else ""
    if not SUPPLIER_CODE_PATTERN.match(code):
        raise ValidationError("code must be 2-64 characters of A-Z, 0-9, '_' or '-'", {"code": code})

    supplier = Supplier(
        code=code,
        name=_name(name),
        contact_name=_optional_text(contact_name, "contact_name", 120),
        email=_email(email),
        phone=_optional_text(phone, "phone", 64),
        note=_optional_text(note, "note", 2000),
        is_active=True,
    )

    def _op() -> Supplier:
        if db.session.query(Supplier.id).filter_by(code=code).first():
            raise BusinessRuleError("Supplier code already exists", {"code": code})
        db.session.add(supplier)
        db.session.commit()
        return supplier

    supplier = run_with_retry(_op)
    audit_service.record(
        audit_service.SUPPLIER_CREATE,
        target_type="SUPPLIER",
        target_id=supplier.id,
        detail=f"code={supplier.code}, name={supplier.name}",
        actor=actor,
    )
    return supplier


def update_supplier(supplier_id: int, patch: dict, *, actor: Actor | None = None) -> Supplier:
    if "code" in patch:
        raise ValidationError("code cannot be changed")

    def _op() -> Supplier:
        supplier = get_supplier(supplier_id)
        for key, value in patch.items():
            if key not in SUPPLIER_MUTABLE_FIELDS:
                continue
            if key == "name":
                value = _name(value)
            elif key == "email":
                value = _email(value)
            elif key == "is_active":
                if not isinstance(value, bool):
                    raise ValidationError("is_active must be a boolean")
            else:
                value = _optional_text(value, key, 2000 if key == "note" else 120)
            setattr(supplier, key, value)
        db.session.commit()
        return supplier

    supplier = run_with_retry(_op)
    audit_service.record(
        audit_service.SUPPLIER_UPDATE,
        target_type="SUPPLIER",
        target_id=supplier.id,
        detail=f"code={supplier.code}, fields={','.join(sorted(k for k in patch if k in SUPPLIER_MUTABLE_FIELDS))}",
        actor=actor,
    )
    return supplier


# =============================================================================
# Product supply contracts
# =============================================================================

def list_product_suppliers(product_id: int) -> list[ProductSupplier]:
    if db.session.get(Product, product_id) is None:
        raise NotFound("Product not found", {"product_id": product_id})
    return (
        db.session.query(ProductSupplier)
        .filter_by(product_id=product_id)
        .order_by(ProductSupplier.is_primary.desc(), ProductSupplier.unit_cost_cents.asc(), ProductSupplier.id.asc())
        .all()
    )


def _int_at_least(value, field: str, minimum: int, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum or value > MAX_INTEGER:
        raise ValidationError(f"{field} must be an integer >= {minimum}", {"field": field, "value": value})
    return value


def upsert_product_supplier(
    product_id: int,
    supplier_id: int,
    *,
    unit_cost_cents: int,
    lead_time_days: int | None = None,
    moq: int | None = None,
    lot_size: int | None = None,
    is_primary: bool = False,
    actor: Actor | None = None,
) -> ProductSupplier:
    """
    Create or replace the contract between a product and a supplier.

    Marking a contract primary demotes every other contract of the product.
    """
    if isinstance(unit_cost_cents, bool) or not isinstance(unit_cost_cents, int) or not 0 < unit_cost_cents <= MAX_INTEGER:
        raise ValidationError("unit_cost_cents must be a positive integer", {"value": unit_cost_cents})
    lead_time_days = _int_at_least(lead_time_days, "lead_time_days", 0, 0)
    moq = _int_at_least(moq, "moq", 1, 1)
    lot_size = _int_at_least(lot_size, "lot_size", 1, 1)
    is_primary = bool(is_primary)

    def _op() -> ProductSupplier:
        if db.session.get(Product, product_id) is None:
            raise NotFound("Product not found", {"product_id": product_id})
        supplier = get_supplier(supplier_id)
        if not supplier.is_active:
            raise BusinessRuleError("Supplier is inactive", {"supplier_id": supplier_id})

        if is_primary:
            (
                db.session.query(ProductSupplier)
                .filter(
                    ProductSupplier.product_id == product_id,
                    ProductSupplier.supplier_id != supplier_id,
                    ProductSupplier.is_primary.is_(True),
                )
                .update({ProductSupplier.is_primary: False}, synchronize_session="fetch")
            )

        contract = (
            db.session.query(ProductSupplier)
            .filter_by(product_id=product_id, supplier_id=supplier_id)
            .first()
        )
        if contract is None:
            contract = ProductSupplier(product_id=product_id, supplier_id=supplier_id)
            db.session.add(contract)

        contract.unit_cost_cents = unit_cost_cents
        contract.lead_time_days = lead_time_days
        contract.moq = moq
        contract.lot_size = lot_size
        contract.is_primary = is_primary
        db.session.commit()
        return contract

    contract = run_with_retry(_op)
    audit_service.record(
        audit_service.PRODUCT_SUPPLIER_UPSERT,
        target_type="PRODUCT",
        target_id=product_id,
        detail=(
            f"supplier_id={supplier_id}, unit_cost_cents={unit_cost_cents}, moq={moq}, "
            f"lot_size={lot_size}, lead_time_days={lead_time_days}, primary={is_primary}"
        ),
        actor=actor,
    )
    return contract


def remove_product_supplier(product_id: int, supplier_id: int, *, actor: Actor | None = None) -> None:
    def _op() -> None:
        contract = (
            db.session.query(ProductSupplier)
            .filter_by(product_id=product_id, supplier_id=supplier_id)
            .first()
        )
        if contract is None:
            raise NotFound("Supply contract not found", {"product_id": product_id, "supplier_id": supplier_id})
        db.session.delete(contract)
        db.session.commit()

    run_with_retry(_op)
    audit_service.record(
        audit_service.PRODUCT_SUPPLIER_UNLINK,
        target_type="PRODUCT",
        target_id=product_id,
        detail=f"supplier_id={supplier_id}",
        actor=actor,
    )
