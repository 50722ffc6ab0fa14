# Overview: Service-layer operations for sales reporting over confirmed orders.

from __future__ import annotations

import csv
import io
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from ..errors import ValidationError
from ..extensions import db
from ..models import OrderStatus, Product, SalesOrder, SalesOrderItem
from ..time_utils import bucket_start, to_utc_z, utcnow

GROUP_BY_OPTIONS = ("DAY", "WEEK", "MONTH")
DEFAULT_LINE_LIMIT = 200
MAX_LINE_LIMIT = 2000
DEFAULT_EXPORT_LIMIT = 2000
MAX_EXPORT_LIMIT = 5000
DEFAULT_RANGE_DAYS = 30


def _resolve_range(date_from: datetime | None, date_to: datetime | None) -> tuple[datetime, datetime]:
    date_to = date_to or utcnow()
    date_from = date_from or (date_to - timedelta(days=DEFAULT_RANGE_DAYS))
    if date_from > date_to:
        raise ValidationError("from must not be after to")
    return date_from, date_to


def _confirmed_lines(date_from: datetime, date_to: datetime):
    return (
        db.session.query(SalesOrderItem, SalesOrder, Product)
        .join(SalesOrder, SalesOrder.id == SalesOrderItem.order_id)
        .join(Product, Product.id == SalesOrderItem.product_id)
        .filter(
            SalesOrder.status == OrderStatus.CONFIRMED.value,
            SalesOrder.confirmed_at >= date_from,
            SalesOrder.confirmed_at <= date_to,
        )
        .order_by(SalesOrder.confirmed_at.desc(), SalesOrderItem.id.desc())
    )


def _line_dict(item: SalesOrderItem, order: SalesOrder, product: Product) -> dict:
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "sold_at": to_utc_z(order.confirmed_at),
        "product_id": product.id,
        "sku": product.sku,
        "product_name": product.name,
        "quantity": item.quantity,
        "unit_price_cents": item.unit_price_cents,
        "line_total_cents": item.line_total_cents,
    }


def average_cents(total_cents: int, count: int) -> int:
    if count == 0:
        return 0
    return int((Decimal(total_cents) / Decimal(count)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_sales_report(
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    group_by: str = "DAY",
    line_limit: int = DEFAULT_LINE_LIMIT,
) -> dict:
    """
    Totals, trend buckets and recent lines for orders confirmed in [from, to].

    Buckets are UTC calendar days, ISO weeks starting Monday, or months.
    """
    group_by = (group_by or "DAY").strip().upper()
    if group_by not in GROUP_BY_OPTIONS:
        raise ValidationError(f"group_by must be one of: {', '.join(GROUP_BY_OPTIONS)}")
    line_limit = min(max(1, line_limit), MAX_LINE_LIMIT)
    date_from, date_to = _resolve_range(date_from, date_to)

    rows = _confirmed_lines(date_from, date_to).all()

    order_ids: set[int] = set()
    total_cents = 0
    total_quantity = 0
    buckets: dict = {}
    for item, order, _product in rows:
        order_ids.add(order.id)
        total_cents += item.line_total_cents
        total_quantity += item.quantity

        key = bucket_start(order.confirmed_at, group_by)
        bucket = buckets.setdefault(key, {"amount_cents": 0, "orders": set(), "quantity": 0})
        bucket["amount_cents"] += item.line_total_cents
        bucket["orders"].add(order.id)
        bucket["quantity"] += item.quantity

    trend = [
        {
            "period_start": key.isoformat(),
            "amount_cents": value["amount_cents"],
            "order_count": len(value["orders"]),
            "item_quantity": value["quantity"],
        }
        for key, value in sorted(buckets.items())
    ]

    return {
        "from": to_utc_z(date_from),
        "to": to_utc_z(date_to),
        "group_by": group_by,
        "summary": {
            "total_amount_cents": total_cents,
            "order_count": len(order_ids),
            "item_quantity": total_quantity,
            "average_order_amount_cents": average_cents(total_cents, len(order_ids)),
        },
        "trend": trend,
        "lines": [_line_dict(*row) for row in rows[:line_limit]],
        "lines_truncated": len(rows) > line_limit,
    }


def export_lines_csv(
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int = DEFAULT_EXPORT_LIMIT,
) -> str:
    limit = min(max(1, limit), MAX_EXPORT_LIMIT)
    date_from, date_to = _resolve_range(date_from, date_to)
    rows = _confirmed_lines(date_from, date_to).limit(limit).all()

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow([
        "sold_at", "order_number", "customer_name", "sku", "product_name",
        "quantity", "unit_price_cents", "line_total_cents",
    ])
    for row in rows:
        line = _line_dict(*row)
        writer.writerow([
            line["sold_at"], line["order_number"], line["customer_name"], line["sku"],
            line["product_name"], line["quantity"], line["unit_price_cents"], line["line_total_cents"],
        ])
    return buffer.getvalue()
