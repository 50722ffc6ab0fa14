# Overview: Flask API routes for purchase orders, receipts and replenishment suggestions.

"""
Purchase Order routes

SECURITY: All routes require authentication.
- Reads and suggestions: any role
- Create / receive / cancel: OPERATOR or ADMIN, replay-safe via Idempotency-Key
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_actor, idempotent, require_auth, require_role
from ..errors import FlowStockError, error_response
from ..models import Role
from ..services import purchase_order_service, replenishment_service
from ..validation import int_arg

purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


@purchase_orders_bp.get("")
@require_auth
def list_purchase_orders_route():
    try:
        rows, total = purchase_order_service.list_purchase_orders(
            status=request.args.get("status"),
            limit=int_arg("limit", 100),
            offset=int_arg("offset", 0),
        )
        return jsonify({"items": [po.to_dict(include_receipts=False) for po in rows], "count": total})
    except FlowStockError as e:
        return error_response(e)


@purchase_orders_bp.get("/suggestions")
@require_auth
def suggestions_route():
    """Reorder suggestions for products below their reorder point. Read only."""
    try:
        suggestions = replenishment_service.suggest()
        return jsonify({"items": [s.to_dict() for s in suggestions], "count": len(suggestions)})
    except Exception:
        current_app.logger.exception("Failed to compute replenishment suggestions")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("")
@require_auth
@require_role(Role.OPERATOR)
@idempotent
def create_purchase_order_route():
    """
    Request body:
    {
        "supplier_id": 1,              // or "supplier_name": "Free text Ltd"
        "note": "...",
        "items": [{"product_id": 1, "quantity": 10, "unit_cost_cents": 450}, ...]
    }
    unit_cost_cents may be omitted when the product has a contract with the supplier.
    """
    data = request.get_json(silent=True) or {}
    try:
        po = purchase_order_service.create_purchase_order(
            supplier_id=data.get("supplier_id"),
            supplier_name=data.get("supplier_name"),
            note=data.get("note"),
            items=data.get("items"),
            actor=current_actor(),
        )
        return jsonify(po.to_dict()), 201
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.get("/<int:purchase_order_id>")
@require_auth
def get_purchase_order_route(purchase_order_id: int):
    try:
        return jsonify(purchase_order_service.get_purchase_order(purchase_order_id).to_dict())
    except FlowStockError as e:
        return error_response(e)


@purchase_orders_bp.post("/<int:purchase_order_id>/receive")
@require_auth
@require_role(Role.OPERATOR)
@idempotent
def receive_purchase_order_route(purchase_order_id: int):
    """
    Request body: {"items": [{"product_id": 1, "quantity": 4}, ...]}

    422 when any line exceeds its remaining quantity; nothing is received then.
    """
    data = request.get_json(silent=True) or {}
    try:
        po = purchase_order_service.receive(
            purchase_order_id,
            items=data.get("items"),
            actor=current_actor(),
        )
        return jsonify(po.to_dict())
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to receive purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:purchase_order_id>/cancel")
@require_auth
@require_role(Role.OPERATOR)
@idempotent
def cancel_purchase_order_route(purchase_order_id: int):
    try:
        po = purchase_order_service.cancel(purchase_order_id, actor=current_actor())
        return jsonify(po.to_dict())
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel purchase order")
        return jsonify({"error": "Internal server error"}), 500
