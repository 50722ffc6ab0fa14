# Overview: Flask API routes for sales orders; parses input and returns JSON responses.

"""
Sales Order routes

SECURITY: All routes require authentication.
- Reads: any role
- Create / confirm / cancel: OPERATOR or ADMIN, replay-safe via Idempotency-Key
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_actor, idempotent, require_auth, require_role
from ..errors import FlowStockError, error_response
from ..models import Role
from ..services import order_service
from ..validation import int_arg

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
@require_auth
def list_orders_route():
    try:
        orders, total = order_service.list_orders(
            status=request.args.get("status"),
            limit=int_arg("limit", 100),
            offset=int_arg("offset", 0),
        )
        return jsonify({"items": [o.to_dict() for o in orders], "count": total})
    except FlowStockError as e:
        return error_response(e)


@orders_bp.post("")
@require_auth
@require_role(Role.OPERATOR)
@idempotent
def create_order_route():
    """
    Create an order and reserve its stock.

    Request body:
    {
        "customer_name": "Acme Ltd",
        "items": [{"product_id": 1, "quantity": 3}, ...]
    }

    409 with details.sku when a line cannot be reserved; nothing is reserved then.
    """
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.create_order(
            customer_name=data.get("customer_name"),
            items=data.get("items"),
            actor=current_actor(),
        )
        return jsonify(order.to_dict()), 201
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sales order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        return jsonify(order_service.get_order(order_id).to_dict())
    except FlowStockError as e:
        return error_response(e)


@orders_bp.post("/<int:order_id>/confirm")
@require_auth
@require_role(Role.OPERATOR)
@idempotent
def confirm_order_route(order_id: int):
    try:
        order = order_service.confirm_order(order_id, actor=current_actor())
        return jsonify(order.to_dict())
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to confirm sales order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
@require_role(Role.OPERATOR)
@idempotent
def cancel_order_route(order_id: int):
    try:
        order = order_service.cancel_order(order_id, actor=current_actor())
        return jsonify(order.to_dict())
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel sales order")
        return jsonify({"error": "Internal server error"}), 500
