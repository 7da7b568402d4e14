# backend/tailorpos/routes/services.py
"""Service catalog (tailoring, repair, dry cleaning) used by service checkout."""

from flask import Blueprint, jsonify, request

from ..decorators import api_errors, require_auth, require_role
from ..models import Service
from ..services import catalog_service
from ..validation import ModelValidationPolicy, validate_payload

SERVICE_POLICY = ModelValidationPolicy(
    writable_fields={"type", "name", "price_cents"},
    required_on_create={"type", "name", "price_cents"},
)

services_bp = Blueprint("services", __name__, url_prefix="/api/services")


@services_bp.get("")
@require_auth
@api_errors
def list_services_route():
    page = catalog_service.list_services(
        service_type=request.args.get("type"),
        cursor=request.args.get("cursor"),
        page_size=request.args.get("page_size"),
    )
    return jsonify(page.to_dict()), 200


@services_bp.post("")
@require_auth
@require_role("manager")
@api_errors
def create_service_route():
    patch = validate_payload(model=Service, payload=request.get_json(silent=True), policy=SERVICE_POLICY, partial=False)
    service = catalog_service.create_service(patch["type"], patch["name"], patch["price_cents"])
    return jsonify({"service": service.to_dict()}), 201


@services_bp.get("/<int:service_id>")
@require_auth
@api_errors
def get_service_route(service_id: int):
    return jsonify({"service": catalog_service.get_service(service_id).to_dict()}), 200


@services_bp.patch("/<int:service_id>")
@require_auth
@require_role("manager")
@api_errors
def update_service_route(service_id: int):
    patch = validate_payload(model=Service, payload=request.get_json(silent=True), policy=SERVICE_POLICY, partial=True)
    service = catalog_service.update_service(service_id, patch)
    return jsonify({"service": service.to_dict()}), 200


@services_bp.delete("/<int:service_id>")
@require_auth
@require_role("manager")
@api_errors
def delete_service_route(service_id: int):
    catalog_service.delete_service(service_id)
    return jsonify({"ok": True}), 200
