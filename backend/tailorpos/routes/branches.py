# backend/tailorpos/routes/branches.py
"""Branch (store / warehouse) management."""

from flask import Blueprint, jsonify, request

from ..decorators import api_errors, require_auth, require_role
from ..models import Branch
from ..services import branch_service
from ..validation import ModelValidationPolicy, validate_payload

BRANCH_POLICY = ModelValidationPolicy(
    writable_fields={"name", "location", "type"},
    required_on_create={"name"},
)

branches_bp = Blueprint("branches", __name__, url_prefix="/api/branches")


@branches_bp.get("")
@require_auth
@api_errors
def list_branches_route():
    branches = branch_service.list_branches()
    return jsonify({"items": [b.to_dict() for b in branches], "count": len(branches)}), 200


@branches_bp.post("")
@require_auth
@require_role("manager")
@api_errors
def create_branch_route():
    patch = validate_payload(model=Branch, payload=request.get_json(silent=True), policy=BRANCH_POLICY, partial=False)
    branch = branch_service.create_branch(
        name=patch["name"],
        location=patch.get("location"),
        type=patch.get("type") or "store",
    )
    return jsonify({"branch": branch.to_dict()}), 201


@branches_bp.get("/<int:branch_id>")
@require_auth
@api_errors
def get_branch_route(branch_id: int):
    return jsonify({"branch": branch_service.get_branch(branch_id).to_dict()}), 200


@branches_bp.patch("/<int:branch_id>")
@require_auth
@require_role("manager")
@api_errors
def update_branch_route(branch_id: int):
    patch = validate_payload(model=Branch, payload=request.get_json(silent=True), policy=BRANCH_POLICY, partial=True)
    branch = branch_service.update_branch(branch_id, patch)
    return jsonify({"branch": branch.to_dict()}), 200


@branches_bp.delete("/<int:branch_id>")
@require_auth
@require_role("manager")
@api_errors
def delete_branch_route(branch_id: int):
    branch_service.delete_branch(branch_id)
    return jsonify({"ok": True}), 200
