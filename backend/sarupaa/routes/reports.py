# Overview: Flask API routes for read-only reports; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api")


@reports_bp.get("/reports")
@require_auth
def period_report_route():
    """
    Sales, purchase, inventory and expense summary.

    Query params:
    - from: ISO date (default: first day of the current month)
    - to: ISO date, inclusive (default: now)
    """
    try:
        report = reporting_service.period_report(
            start=request.args.get("from") or None,
            end=request.args.get("to") or None,
        )
    except ValueError:
        return jsonify({"error": "from and to must be ISO-8601 dates"}), 400
    except Exception:
        current_app.logger.exception("Failed to build report")
        return jsonify({"error": "Failed to fetch reports"}), 500
    return jsonify(report), 200


@reports_bp.get("/dashboard")
@require_auth
def dashboard_route():
    return jsonify(reporting_service.dashboard()), 200


@reports_bp.get("/tax/stats")
@require_auth
def tax_stats_route():
    return jsonify(reporting_service.tax_stats()), 200
