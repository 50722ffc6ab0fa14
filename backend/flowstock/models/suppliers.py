from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Supplier(db.Model):
    """Vendor that purchase orders are placed with."""
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_suppliers_code"),
        db.Index("ix_suppliers_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(150), nullable=False)
    contact_name = db.Column(db.String(120), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    note = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "note": self.note,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductSupplier(db.Model):
    """
    Supply contract between a product and a supplier.

    moq / lot_size shape replenishment quantities: a suggestion is at least the
    MOQ and always a whole number of lots. At most one contract per product is
    primary; the replenishment planner only looks at the primary one.
    """
    __tablename__ = "product_suppliers"
    __table_args__ = (
        db.UniqueConstraint("product_id", "supplier_id", name="uq_product_suppliers_pair"),
        db.CheckConstraint("lead_time_days >= 0", name="ck_product_suppliers_lead_time"),
        db.CheckConstraint("moq >= 1", name="ck_product_suppliers_moq"),
        db.CheckConstraint("lot_size >= 1", name="ck_product_suppliers_lot_size"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    lead_time_days = db.Column(db.Integer, nullable=False, default=0)
    moq = db.Column(db.Integer, nullable=False, default=1)
    lot_size = db.Column(db.Integer, nullable=False, default=1)
    is_primary = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    product = db.relationship("Product", backref=db.backref("supplier_contracts", lazy=True))
    supplier = db.relationship("Supplier", backref=db.backref("product_contracts", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "supplier_id": self.supplier_id,
            "supplier_code": self.supplier.code if self.supplier else None,
            "supplier_name": self.supplier.name if self.supplier else None,
            "supplier_active": self.supplier.is_active if self.supplier else None,
            "unit_cost_cents": self.unit_cost_cents,
            "lead_time_days": self.lead_time_days,
            "moq": self.moq,
            "lot_size": self.lot_size,
            "is_primary": self.is_primary,
            "updated_at": to_utc_z(self.updated_at),
        }
