# Overview: Flask API routes for the audit trail (ADMIN only).

from flask import Blueprint, Response, current_app, jsonify, request

from ..decorators import current_actor, require_auth, require_role
from ..errors import FlowStockError, error_response
from ..models import Role
from ..services import audit_service
from ..validation import date_arg, int_arg

audit_logs_bp = Blueprint("audit_logs", __name__, url_prefix="/api/audit-logs")


def _filters() -> dict:
    return {
        "action": request.args.get("action"),
        "actor": request.args.get("actor"),
        "date_from": date_arg("from"),
        "date_to": date_arg("to"),
    }


@audit_logs_bp.get("")
@require_auth
@require_role(Role.ADMIN)
def list_audit_logs_route():
    """
    Query parameters: page (zero based), size (1..200), action, actor (partial,
    case-insensitive), from, to.
    """
    try:
        return jsonify(audit_service.list_logs(page=int_arg("page", 0), size=int_arg("size", 50), **_filters()))
    except FlowStockError as e:
        return error_response(e)


@audit_logs_bp.get("/export.csv")
@require_auth
@require_role(Role.ADMIN)
def export_audit_logs_route():
    try:
        rows = audit_service.export_logs(limit=int_arg("limit", 1000), **_filters())
    except FlowStockError as e:
        return error_response(e)
    return Response(
        audit_service.to_csv(rows),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=audit-logs.csv"},
    )


@audit_logs_bp.post("/cleanup")
@require_auth
@require_role(Role.ADMIN)
def cleanup_audit_logs_route():
    """Request body: {"retention_days": 90}; defaults to AUDIT_LOG_RETENTION_DAYS."""
    data = request.get_json(silent=True) or {}
    retention_days = data.get("retention_days", current_app.config.get("AUDIT_LOG_RETENTION_DAYS"))
    if isinstance(retention_days, bool) or not isinstance(retention_days, int):
        return jsonify({"error": "retention_days must be an integer"}), 400
    try:
        result = audit_service.cleanup(retention_days, trigger="MANUAL", actor=current_actor())
        return jsonify(result)
    except Exception:
        current_app.logger.exception("Failed to clean up audit logs")
        return jsonify({"error": "Internal server error"}), 500
