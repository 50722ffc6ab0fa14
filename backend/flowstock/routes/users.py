# Overview: Flask API routes for user administration (ADMIN only).

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_actor, require_auth, require_role
from ..errors import FlowStockError, error_response
from ..extensions import db
from ..models import Role, User
from ..services import auth_service

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role(Role.ADMIN)
def list_users_route():
    users = db.session.query(User).order_by(User.username.asc()).all()
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)})


@users_bp.post("")
@require_auth
@require_role(Role.ADMIN)
def create_user_route():
    """
    Request body: {"username", "password", "role": ADMIN|OPERATOR|VIEWER, "email"?}
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            username=data.get("username"),
            password=data.get("password"),
            role=data.get("role") or Role.VIEWER.value,
            email=data.get("email"),
            actor=current_actor(),
        )
        return jsonify(user.to_dict()), 201
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500
