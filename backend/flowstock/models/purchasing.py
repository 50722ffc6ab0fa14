from __future__ import annotations

import enum

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class PurchaseOrderStatus(str, enum.Enum):
    ORDERED = "ORDERED"
    PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"


class PurchaseOrder(db.Model):
    """
    Order placed with a supplier.

    LIFECYCLE: ORDERED -> PARTIALLY_RECEIVED -> RECEIVED, or -> CANCELLED
    from either open state. Status after a receipt is derived from the lines:
    every remaining quantity 0 means RECEIVED.

    supplier_name is always filled: copied from the supplier when supplier_id
    is set, otherwise the free-text name given at creation.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_purchase_orders_number"),
        db.Index("ix_purchase_orders_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    supplier_name = db.Column(db.String(150), nullable=False)
    note = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(32), nullable=False, default=PurchaseOrderStatus.ORDERED.value)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )
    received_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier")
    items = db.relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        order_by="PurchaseOrderItem.id",
        cascade="all, delete-orphan",
    )
    receipts = db.relationship(
        "PurchaseOrderReceipt",
        back_populates="purchase_order",
        order_by="PurchaseOrderReceipt.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def total_cost_cents(self) -> int:
        return sum(item.quantity * item.unit_cost_cents for item in self.items)

    def item_for_product(self, product_id: int):
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def to_dict(self, include_receipts: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "note": self.note,
            "status": self.status,
            "total_cost_cents": self.total_cost_cents,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "received_at": to_utc_z(self.received_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "items": [item.to_dict() for item in self.items],
        }
        if include_receipts:
            data["receipts"] = [receipt.to_dict() for receipt in self.receipts]
        return data


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        db.UniqueConstraint("purchase_order_id", "product_id", name="uq_purchase_order_items_product"),
        db.CheckConstraint("quantity > 0", name="ck_purchase_order_items_quantity"),
        db.CheckConstraint(
            "received_quantity >= 0 AND received_quantity <= quantity",
            name="ck_purchase_order_items_received",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    received_quantity = db.Column(db.Integer, nullable=False, default=0)
    unit_cost_cents = db.Column(db.Integer, nullable=False)

    purchase_order = db.relationship("PurchaseOrder", back_populates="items")
    product = db.relationship("Product")

    @property
    def remaining_quantity(self) -> int:
        return self.quantity - self.received_quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "sku": self.product.sku if self.product else None,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "received_quantity": self.received_quantity,
            "remaining_quantity": self.remaining_quantity,
            "unit_cost_cents": self.unit_cost_cents,
        }


class PurchaseOrderReceipt(db.Model):
    """
    One goods receipt against a purchase order.

    Immutable once written: holds exactly the lines submitted in that receipt.
    """
    __tablename__ = "purchase_order_receipts"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    received_by = db.Column(db.String(64), nullable=False)
    received_at = db.Column(db.DateTime, nullable=False)

    purchase_order = db.relationship("PurchaseOrder", back_populates="receipts")
    items = db.relationship(
        "PurchaseOrderReceiptItem",
        back_populates="receipt",
        order_by="PurchaseOrderReceiptItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "received_by": self.received_by,
            "received_at": to_utc_z(self.received_at),
            "items": [item.to_dict() for item in self.items],
        }


class PurchaseOrderReceiptItem(db.Model):
    __tablename__ = "purchase_order_receipt_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_order_receipt_items_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    receipt_id = db.Column(db.Integer, db.ForeignKey("purchase_order_receipts.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    receipt = db.relationship("PurchaseOrderReceipt", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "sku": self.product.sku if self.product else None,
            "quantity": self.quantity,
        }
