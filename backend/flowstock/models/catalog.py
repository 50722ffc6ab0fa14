from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class ProductCategory(db.Model):
    """
    Product grouping used for browsing and filtering.

    Categories form a shallow tree through parent_id. Filtering products by a
    category includes every descendant category.
    """
    __tablename__ = "product_categories"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_product_categories_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("product_categories.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, server_default=db.func.now())

    parent = db.relationship("ProductCategory", remote_side=[id], backref=db.backref("children", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "parent_id": self.parent_id,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data.

    SKU is stored uppercase and is unique across the catalog. Reorder point and
    reorder quantity drive replenishment suggestions; price is held in cents.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.CheckConstraint("reorder_point >= 0", name="ck_products_reorder_point"),
        db.CheckConstraint("reorder_quantity >= 0", name="ck_products_reorder_quantity"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)

    reorder_point = db.Column(db.Integer, nullable=False, default=0)
    reorder_quantity = db.Column(db.Integer, nullable=False, default=0)

    category_id = db.Column(db.Integer, db.ForeignKey("product_categories.id"), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    category = db.relationship("ProductCategory", backref=db.backref("products", lazy=True))
    inventory = db.relationship("Inventory", uselist=False, back_populates="product")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        inv = self.inventory
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "unit_price_cents": self.unit_price_cents,
            "reorder_point": self.reorder_point,
            "reorder_quantity": self.reorder_quantity,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "available_quantity": inv.available_quantity if inv else 0,
            "reserved_quantity": inv.reserved_quantity if inv else 0,
            "low_stock": (inv.available_quantity if inv else 0) <= self.reorder_point,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Inventory(db.Model):
    """
    Stock ledger entry: one row per product.

    available_quantity can be promised to new orders; reserved_quantity is held
    by RESERVED sales orders. Both columns are only changed through the
    conditional UPDATEs in services.stock_ledger, never by assigning attributes.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.CheckConstraint("available_quantity >= 0", name="ck_inventory_available_non_negative"),
        db.CheckConstraint("reserved_quantity >= 0", name="ck_inventory_reserved_non_negative"),
    )

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), primary_key=True)
    available_quantity = db.Column(db.Integer, nullable=False, default=0)
    reserved_quantity = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    product = db.relationship("Product", back_populates="inventory")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "available_quantity": self.available_quantity,
            "reserved_quantity": self.reserved_quantity,
            "updated_at": to_utc_z(self.updated_at),
        }
