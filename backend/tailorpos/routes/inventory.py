# backend/tailorpos/routes/inventory.py
"""
Inventory API: cursor-paginated listing, maintenance, scanner lookup,
summary and cross-branch transfer.

Query params for GET /api/inventory:
- branch_id, type (raw|finished|all), search, sort, direction (asc|desc),
  low_stock (1|true), cursor, page_size
"""

from flask import Blueprint, jsonify, request

from ..decorators import api_errors, require_auth, require_role
from ..models import InventoryItem
from ..services import inventory_service, transfer_service
from ..services.inventory_query_service import InventoryFilters, list_inventory
from ..services.inventory_service import INVENTORY_POLICY
from ..validation import ValidationError, enforce_rules_inventory_item, validate_payload

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _truthy(value) -> bool:
    return str(value or "").lower() in ("1", "true", "yes")


@inventory_bp.get("")
@require_auth
@api_errors
def list_inventory_route():
    filters = InventoryFilters(
        branch_id=request.args.get("branch_id", type=int),
        item_type=request.args.get("type"),
        search=request.args.get("search"),
        sort_field=request.args.get("sort") or "created_at",
        sort_dir=request.args.get("direction") or "desc",
        low_stock_only=_truthy(request.args.get("low_stock")),
    )
    page = list_inventory(
        filters,
        cursor=request.args.get("cursor"),
        page_size=request.args.get("page_size"),
    )
    return jsonify(page.to_dict()), 200


@inventory_bp.post("")
@require_auth
@require_role("manager", "inventory")
@api_errors
def create_item_route():
    patch = validate_payload(
        model=InventoryItem,
        payload=request.get_json(silent=True),
        policy=INVENTORY_POLICY,
        partial=False,
    )
    enforce_rules_inventory_item(patch)
    item = inventory_service.create_item(patch)
    return jsonify({"item": item.to_dict()}), 201


@inventory_bp.get("/summary")
@require_auth
@api_errors
def inventory_summary_route():
    branch_id = request.args.get("branch_id", type=int)
    return jsonify(inventory_service.inventory_summary(branch_id)), 200


@inventory_bp.get("/barcode/<code>")
@require_auth
@api_errors
def lookup_barcode_route(code: str):
    branch_id = request.args.get("branch_id", type=int)
    item = inventory_service.lookup_by_barcode(code, branch_id=branch_id)
    return jsonify({"item": item.to_dict()}), 200


@inventory_bp.get("/<int:item_id>")
@require_auth
@api_errors
def get_item_route(item_id: int):
    return jsonify({"item": inventory_service.get_item(item_id).to_dict()}), 200


@inventory_bp.patch("/<int:item_id>")
@require_auth
@require_role("manager", "inventory")
@api_errors
def update_item_route(item_id: int):
    payload = dict(request.get_json(silent=True) or {})
    expected_version = payload.pop("version_id", None)
    if expected_version is not None and (isinstance(expected_version, bool) or not isinstance(expected_version, int)):
        raise ValidationError("version_id must be an integer")
    patch = validate_payload(model=InventoryItem, payload=payload, policy=INVENTORY_POLICY, partial=True)
    item = inventory_service.update_item(item_id, patch, expected_version=expected_version)
    return jsonify({"item": item.to_dict()}), 200


@inventory_bp.delete("/<int:item_id>")
@require_auth
@require_role("manager", "inventory")
@api_errors
def delete_item_route(item_id: int):
    inventory_service.delete_item(item_id)
    return jsonify({"ok": True}), 200


@inventory_bp.post("/<int:item_id>/transfer")
@require_auth
@require_role("manager", "inventory")
@api_errors
def transfer_item_route(item_id: int):
    data = request.get_json(silent=True) or {}
    to_branch_id = data.get("to_branch_id")
    qty = data.get("qty")
    if to_branch_id is None or qty is None:
        raise ValidationError("to_branch_id and qty required")
    if isinstance(to_branch_id, bool) or not isinstance(to_branch_id, int):
        raise ValidationError("to_branch_id must be an integer")
    result = transfer_service.transfer_item(item_id, to_branch_id, qty)
    return jsonify(result.to_dict()), 200
