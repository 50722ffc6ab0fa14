# Overview: Flask API routes for sales reporting over confirmed orders.

from flask import Blueprint, Response, current_app, jsonify, request

from ..decorators import require_auth
from ..errors import FlowStockError, error_response
from ..services import sales_report_service
from ..validation import date_arg, int_arg

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("/report")
@require_auth
def sales_report_route():
    """
    Query parameters:
    - from, to: ISO-8601 (default: last 30 days)
    - group_by: DAY | WEEK | MONTH (default DAY)
    - line_limit: default 200, max 2000
    """
    try:
        report = sales_report_service.get_sales_report(
            date_from=date_arg("from"),
            date_to=date_arg("to"),
            group_by=request.args.get("group_by", "DAY"),
            line_limit=int_arg("line_limit", sales_report_service.DEFAULT_LINE_LIMIT),
        )
        return jsonify(report)
    except FlowStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/export.csv")
@require_auth
def sales_export_route():
    try:
        body = sales_report_service.export_lines_csv(
            date_from=date_arg("from"),
            date_to=date_arg("to"),
            limit=int_arg("limit", sales_report_service.DEFAULT_EXPORT_LIMIT),
        )
    except FlowStockError as e:
        return error_response(e)
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=sales.csv"},
    )
