# Overview: Flask API routes for the product catalog, categories and stock-in.

"""
Catalog routes

SECURITY: All routes require authentication.
- Reads: any role
- Writes: OPERATOR or ADMIN
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_actor, idempotent, require_auth, require_role
from ..errors import FlowStockError, error_response
from ..models import Role
from ..services import product_service, stock_ledger
from ..validation import bool_arg, int_arg

products_bp = Blueprint("products", __name__, url_prefix="/api")


@products_bp.get("/categories")
@require_auth
def list_categories_route():
    categories = product_service.list_categories()
    return jsonify({"items": [c.to_dict() for c in categories]})


@products_bp.post("/categories")
@require_auth
@require_role(Role.OPERATOR)
def create_category_route():
    data = request.get_json(silent=True) or {}
    try:
        category = product_service.create_category(
            code=data.get("code"),
            name=data.get("name"),
            parent_id=data.get("parent_id"),
            actor=current_actor(),
        )
        return jsonify(category.to_dict()), 201
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/products")
@require_auth
def list_products_route():
    """
    Query parameters:
    - q: matches SKU or name
    - category_id: includes sub-categories
    - low_stock: only products with available <= reorder point
    - page (zero based), size (max 200)
    """
    try:
        result = product_service.list_products(
            q=request.args.get("q"),
            category_id=int_arg("category_id", None),
            low_stock_only=bool_arg("low_stock"),
            page=int_arg("page", 0),
            size=int_arg("size", 50),
        )
        return jsonify(result)
    except FlowStockError as e:
        return error_response(e)


@products_bp.post("/products")
@require_auth
@require_role(Role.OPERATOR)
@idempotent
def create_product_route():
    """
    Request body:
    {
        "sku": "ABC-001",          // required, normalized to uppercase
        "name": "...",             // required
        "description": "...",
        "unit_price_cents": 1299,
        "reorder_point": 10,
        "reorder_quantity": 20,
        "category_id": 1
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        product = product_service.create_product(
            sku=data.get("sku"),
            name=data.get("name"),
            description=data.get("description"),
            unit_price_cents=data.get("unit_price_cents", 0),
            reorder_point=data.get("reorder_point"),
            reorder_quantity=data.get("reorder_quantity"),
            category_id=data.get("category_id"),
            actor=current_actor(),
        )
        return jsonify(product.to_dict()), 201
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/products/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return jsonify(product_service.get_product(product_id).to_dict())
    except FlowStockError as e:
        return error_response(e)


@products_bp.put("/products/<int:product_id>")
@require_auth
@require_role(Role.OPERATOR)
def update_product_route(product_id: int):
    data = request.get_json(silent=True) or {}
    try:
        product = product_service.update_product(product_id, data, actor=current_actor())
        return jsonify(product.to_dict())
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/products/<int:product_id>/stock")
@require_auth
def get_stock_route(product_id: int):
    try:
        return jsonify(stock_ledger.get_entry(product_id).to_dict())
    except FlowStockError as e:
        return error_response(e)


@products_bp.post("/products/<int:product_id>/stock")
@require_auth
@require_role(Role.OPERATOR)
@idempotent
def add_stock_route(product_id: int):
    """Request body: {"quantity": 5, "note": "opening balance"?}"""
    data = request.get_json(silent=True) or {}
    try:
        product = product_service.add_stock(
            product_id,
            data.get("quantity"),
            note=data.get("note"),
            actor=current_actor(),
        )
        return jsonify(product.to_dict())
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add stock")
        return jsonify({"error": "Internal server error"}), 500
