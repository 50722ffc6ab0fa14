# Overview: Flask API routes for suppliers and product supply contracts.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_actor, require_auth, require_role
from ..errors import FlowStockError, error_response
from ..models import Role
from ..services import supplier_service
from ..validation import bool_arg

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api")


@suppliers_bp.get("/suppliers")
@require_auth
def list_suppliers_route():
    suppliers = supplier_service.list_suppliers(
        q=request.args.get("q"),
        active_only=bool_arg("active_only"),
    )
    return jsonify({"items": [s.to_dict() for s in suppliers]})


@suppliers_bp.post("/suppliers")
@require_auth
@require_role(Role.OPERATOR)
def create_supplier_route():
    data = request.get_json(silent=True) or {}
    try:
        supplier = supplier_service.create_supplier(
            code=data.get("code"),
            name=data.get("name"),
            contact_name=data.get("contact_name"),
            email=data.get("email"),
            phone=data.get("phone"),
            note=data.get("note"),
            actor=current_actor(),
        )
        return jsonify(supplier.to_dict()), 201
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/suppliers/<int:supplier_id>")
@require_auth
def get_supplier_route(supplier_id: int):
    try:
        return jsonify(supplier_service.get_supplier(supplier_id).to_dict())
    except FlowStockError as e:
        return error_response(e)


@suppliers_bp.put("/suppliers/<int:supplier_id>")
@require_auth
@require_role(Role.OPERATOR)
def update_supplier_route(supplier_id: int):
    data = request.get_json(silent=True) or {}
    try:
        supplier = supplier_service.update_supplier(supplier_id, data, actor=current_actor())
        return jsonify(supplier.to_dict())
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/products/<int:product_id>/suppliers")
@require_auth
def list_product_suppliers_route(product_id: int):
    try:
        contracts = supplier_service.list_product_suppliers(product_id)
        return jsonify({"items": [c.to_dict() for c in contracts]})
    except FlowStockError as e:
        return error_response(e)


@suppliers_bp.put("/products/<int:product_id>/suppliers/<int:supplier_id>")
@require_auth
@require_role(Role.OPERATOR)
def upsert_product_supplier_route(product_id: int, supplier_id: int):
    """
    Request body:
    {
        "unit_cost_cents": 450,   // required, > 0
        "lead_time_days": 3,      // default 0
        "moq": 12,                // default 1
        "lot_size": 6,            // default 1
        "is_primary": true        // default false
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        contract = supplier_service.upsert_product_supplier(
            product_id,
            supplier_id,
            unit_cost_cents=data.get("unit_cost_cents"),
            lead_time_days=data.get("lead_time_days"),
            moq=data.get("moq"),
            lot_size=data.get("lot_size"),
            is_primary=bool(data.get("is_primary", False)),
            actor=current_actor(),
        )
        return jsonify(contract.to_dict())
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to save supply contract")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.delete("/products/<int:product_id>/suppliers/<int:supplier_id>")
@require_auth
@require_role(Role.OPERATOR)
def remove_product_supplier_route(product_id: int, supplier_id: int):
    try:
        supplier_service.remove_product_supplier(product_id, supplier_id, actor=current_actor())
        return jsonify({"message": "Supply contract removed"})
    except FlowStockError as e:
        return error_response(e)
