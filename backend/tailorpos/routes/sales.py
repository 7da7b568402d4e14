# backend/tailorpos/routes/sales.py
"""Sales ledger: newest-first listing, detail and service-order status."""

from flask import Blueprint, jsonify, request

from ..decorators import api_errors, current_username, require_auth, require_role
from ..services import sales_service
from ..services.sales_service import SalesFilters
from ..validation import ValidationError

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
@api_errors
def list_sales_route():
    """
    Query params: branch_id, kind, status, phone, start, end (YYYY-MM-DD,
    inclusive), cursor, page_size.
    """
    filters = SalesFilters(
        branch_id=request.args.get("branch_id", type=int),
        kind=request.args.get("kind"),
        status=request.args.get("status"),
        customer_phone=request.args.get("phone"),
        start=request.args.get("start"),
        end=request.args.get("end"),
    )
    page = sales_service.list_sales(
        filters,
        cursor=request.args.get("cursor"),
        page_size=request.args.get("page_size"),
    )
    return jsonify(page.to_dict()), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
@api_errors
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    return jsonify({"sale": sale.to_dict(include_lines=True)}), 200


@sales_bp.post("/<int:sale_id>/status")
@require_auth
@require_role("manager", "cashier", "tailor")
@api_errors
def update_status_route(sale_id: int):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        raise ValidationError("status required")
    expected_version = data.get("version_id")
    if expected_version is not None and (isinstance(expected_version, bool) or not isinstance(expected_version, int)):
        raise ValidationError("version_id must be an integer")
    sale = sales_service.update_sale_status(
        sale_id, status, operator=current_username(), expected_version=expected_version
    )
    return jsonify({"sale": sale.to_dict()}), 200
