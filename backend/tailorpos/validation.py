# Overview: Error taxonomy shared by services and routes, and JSON payload validation against model columns.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Integer, String, Text


# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

ITEM_TYPES = ("raw", "finished")
BRANCH_TYPES = ("store", "warehouse")
SERVICE_TYPES = ("tailoring", "repair", "dry_clean")


class ValidationError(ValueError):
    """400-level input problem: a precondition failed before any write."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(LookupError):
    """404-level: a referenced record does not exist."""


class ConflictError(Exception):
    """
    409-level: the transaction lost a race with a concurrent writer.

    The whole unit of work must be re-validated and retried; nothing from the
    failed attempt was applied.
    """


class TransientIOError(Exception):
    """503-level: the database stayed unavailable after bounded retries."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which JSON keys a client may send for a model.

    writable_fields is the allowlist for POST and PATCH bodies;
    required_on_create must all be present on POST.
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def _as_int(key: str, value: Any) -> int:
    # bool is an int subclass; floats and "1e3" / "2.0" strings are refused
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
    raise ValidationError(f"{key} must be an integer")


def _as_text(key: str, value: Any, column) -> str:
    text = str(value).strip()
    if not text and not column.nullable:
        raise ValidationError(f"{key} cannot be blank")
    limit = getattr(column.type, "length", None)
    if limit and len(text) > limit:
        raise ValidationError(f"{key} exceeds max length {limit}")
    return text


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Clean a POST (partial=False) or PATCH (partial=True) body.

    Keys outside the policy allowlist or the model's columns are rejected,
    integer and string columns are coerced and checked against nullability
    and String length. Returns the cleaned patch dict.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(policy.required_on_create - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key, value in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        column = columns.get(key)
        if column is None:
            raise ValidationError(f"Unknown field: {key}")

        if value is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        elif isinstance(column.type, Integer):
            patch[key] = _as_int(key, value)
        elif isinstance(column.type, (String, Text)):
            patch[key] = _as_text(key, value, column)
        else:
            patch[key] = value
    return patch


def _check_price(key: str, value) -> None:
    if value is None:
        return
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if value < 0:
        raise ValidationError(f"{key} must be >= 0")
    if value > MAX_PRICE_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS}")


def enforce_rules_inventory_item(patch: dict, *, item_type: str | None = None) -> None:
    """
    Business rules for inventory items not captured by column metadata.

    item_type is the effective type after the patch (for partial updates the
    caller passes the stored type when the patch does not change it).
    """
    effective_type = patch.get("type", item_type)
    if effective_type is not None and effective_type not in ITEM_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(ITEM_TYPES)}")

    for key in ("quantity", "min_quantity"):
        if key in patch and patch[key] is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")

    _check_price("cost_cents", patch.get("cost_cents"))
    _check_price("selling_price_cents", patch.get("selling_price_cents"))

    if effective_type == "raw" and patch.get("selling_price_cents") is not None:
        raise ValidationError("selling_price_cents is only allowed for finished items")


def enforce_rules_branch(patch: dict) -> None:
    if "type" in patch and patch["type"] not in BRANCH_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(BRANCH_TYPES)}")


def enforce_rules_service(patch: dict) -> None:
    if "type" in patch and patch["type"] not in SERVICE_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(SERVICE_TYPES)}")
    _check_price("price_cents", patch.get("price_cents"))
