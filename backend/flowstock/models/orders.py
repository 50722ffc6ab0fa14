from __future__ import annotations

import enum

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class OrderStatus(str, enum.Enum):
    RESERVED = "RESERVED"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class SalesOrder(db.Model):
    """
    Customer order.

    LIFECYCLE: RESERVED -> CONFIRMED | CANCELLED
    - RESERVED: every line holds a stock reservation
    - CONFIRMED: reservations consumed (stock has shipped)
    - CANCELLED: reservations released back to available
    """
    __tablename__ = "sales_orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_sales_orders_number"),
        db.Index("ix_sales_orders_status", "status"),
        db.Index("ix_sales_orders_confirmed_at", "confirmed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False)
    customer_name = db.Column(db.String(150), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=OrderStatus.RESERVED.value)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )
    confirmed_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "SalesOrderItem",
        back_populates="order",
        order_by="SalesOrderItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def total_cents(self) -> int:
        return sum(item.line_total_cents for item in self.items)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "status": self.status,
            "total_cents": self.total_cents,
            "total_quantity": self.total_quantity,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "confirmed_at": to_utc_z(self.confirmed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "items": [item.to_dict() for item in self.items],
        }


class SalesOrderItem(db.Model):
    __tablename__ = "sales_order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sales_order_items_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    # Snapshot of the product price when the order was placed
    unit_price_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship("SalesOrder", back_populates="items")
    product = db.relationship("Product")

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "sku": self.product.sku if self.product else None,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
