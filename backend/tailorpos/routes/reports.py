# backend/tailorpos/routes/reports.py
"""Profit reporting from daily aggregates."""

from flask import Blueprint, jsonify, request

from ..decorators import api_errors, require_auth, require_role
from ..services import reporting_service

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/summary")
@require_auth
@require_role("manager")
@api_errors
def report_summary_route():
    """
    Either ?start=YYYY-MM-DD&end=YYYY-MM-DD (inclusive) or
    ?period=today|week|month|year|all.
    """
    period = request.args.get("period")
    if period:
        result = reporting_service.report_for_period(period)
    else:
        result = reporting_service.report(request.args.get("start"), request.args.get("end"))
    return jsonify(result), 200
