# backend/tailorpos/routes/customers.py
"""
Customer directory. Customers are addressed by phone; any spelling of the
number is accepted and normalized.
"""

import io

from flask import Blueprint, jsonify, request

from ..decorators import api_errors, require_auth, require_role
from ..services import customer_service, sales_service
from ..services.customer_service import CustomerFilters
from ..validation import ValidationError

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@api_errors
def list_customers_route():
    filters = CustomerFilters(
        search=request.args.get("search"),
        sort_field=request.args.get("sort") or "created_at",
        sort_dir=request.args.get("direction") or "desc",
    )
    page = customer_service.list_customers(
        filters,
        cursor=request.args.get("cursor"),
        page_size=request.args.get("page_size"),
    )
    return jsonify(page.to_dict()), 200


@customers_bp.post("")
@require_auth
@require_role("manager", "cashier", "tailor")
@api_errors
def create_customer_route():
    data = request.get_json(silent=True) or {}
    customer = customer_service.create_customer(data.get("name"), data.get("phone"))
    return jsonify({"customer": customer.to_dict()}), 201


@customers_bp.get("/stats")
@require_auth
@api_errors
def customer_stats_route():
    return jsonify(customer_service.customer_stats()), 200


@customers_bp.post("/import")
@require_auth
@require_role("manager")
@api_errors
def import_customers_route():
    """
    Accepts either a multipart CSV upload (field "file") or JSON
    {"rows": [[...], ...]} in the spreadsheet layout (header row, then
    repeated [id, name, phone] blocks).
    """
    upload = request.files.get("file")
    if upload is not None:
        stream = io.TextIOWrapper(upload.stream, encoding="utf-8-sig")
        result = customer_service.import_customers_csv(stream)
    else:
        data = request.get_json(silent=True) or {}
        rows = data.get("rows")
        if not isinstance(rows, list):
            raise ValidationError("Provide a CSV file or a rows list")
        result = customer_service.import_customers(rows)
    return jsonify(result), 200


@customers_bp.get("/<phone>")
@require_auth
@api_errors
def get_customer_route(phone: str):
    return jsonify({"customer": customer_service.get_customer(phone).to_dict()}), 200


@customers_bp.patch("/<phone>")
@require_auth
@require_role("manager", "cashier", "tailor")
@api_errors
def update_customer_route(phone: str):
    data = request.get_json(silent=True) or {}
    if set(data) - {"name"}:
        raise ValidationError("Only name can be changed")
    customer = customer_service.update_customer(phone, data.get("name"))
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.delete("/<phone>")
@require_auth
@require_role("manager")
@api_errors
def delete_customer_route(phone: str):
    customer_service.delete_customer(phone)
    return jsonify({"ok": True}), 200


@customers_bp.get("/<phone>/orders")
@require_auth
@api_errors
def customer_orders_route(phone: str):
    limit = request.args.get("limit", default=50, type=int)
    sales = sales_service.customer_orders(phone, limit=limit)
    return jsonify({"items": [s.to_dict(include_lines=True) for s in sales], "count": len(sales)}), 200
