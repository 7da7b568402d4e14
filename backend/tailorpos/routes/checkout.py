# backend/tailorpos/routes/checkout.py
"""
Checkout API.

POST /api/checkout commits atomically or not at all. A failure response
always means nothing was changed; 409 / 503 responses may be retried with
the same client_token without risk of charging twice.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import api_errors, current_username, require_auth, require_role
from ..services import checkout_service
from ..services.checkout_service import CheckoutRequest

checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


def _default_branch(req: CheckoutRequest) -> None:
    # Operators pinned to a branch ring up sales there unless the cart names one
    if req.branch_id is None:
        req.branch_id = g.current_user.branch_id


@checkout_bp.post("/preview")
@require_auth
@require_role("manager", "cashier", "tailor")
@api_errors
def preview_checkout_route():
    req = CheckoutRequest.from_dict(request.get_json(silent=True) or {}, operator=current_username())
    _default_branch(req)
    return jsonify(checkout_service.preview_checkout(req)), 200


@checkout_bp.post("")
@require_auth
@require_role("manager", "cashier", "tailor")
@api_errors
def checkout_route():
    req = CheckoutRequest.from_dict(request.get_json(silent=True) or {}, operator=current_username())
    _default_branch(req)
    result = checkout_service.checkout(req)
    return jsonify(result.to_dict()), 200 if result.replayed else 201
