# backend/tailorpos/routes/users.py
"""Operator account management (admin only)."""

from flask import Blueprint, jsonify, request

from ..decorators import api_errors, require_auth, require_role
from ..services import auth_service

users_bp = Blueprint("users", __name__, url_prefix="/api/users")

USER_PATCH_FIELDS = {"full_name", "role", "branch_id", "password"}


@users_bp.get("")
@require_auth
@require_role("admin")
@api_errors
def list_users_route():
    include_inactive = request.args.get("include_inactive") in ("1", "true")
    users = auth_service.list_users(include_inactive=include_inactive)
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200


@users_bp.post("")
@require_auth
@require_role("admin")
@api_errors
def create_user_route():
    data = request.get_json(silent=True) or {}
    user = auth_service.create_user(
        username=data.get("username"),
        password=data.get("password"),
        role=data.get("role") or "cashier",
        full_name=data.get("full_name"),
        branch_id=data.get("branch_id"),
    )
    return jsonify({"user": user.to_dict()}), 201


@users_bp.patch("/<int:user_id>")
@require_auth
@require_role("admin")
@api_errors
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}
    unknown = set(data) - USER_PATCH_FIELDS
    if unknown:
        return jsonify({"error": f"Field not allowed: {', '.join(sorted(unknown))}"}), 400
    user = auth_service.update_user(user_id, data)
    return jsonify({"user": user.to_dict()}), 200


@users_bp.delete("/<int:user_id>")
@require_auth
@require_role("admin")
@api_errors
def deactivate_user_route(user_id: int):
    user = auth_service.deactivate_user(user_id)
    return jsonify({"user": user.to_dict()}), 200
