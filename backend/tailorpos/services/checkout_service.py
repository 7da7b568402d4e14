# Overview: The checkout workflow: validate a cart and commit stock, customer, sale and daily stats atomically.
"""
Checkout invariants (authoritative)

One checkout is one database transaction:
  1. guarded stock decrement for every consumed item (goods or materials)
  2. customer increment-upsert (skipped for walk-in sales)
  3. order id allocation (service orders)
  4. sale + lines + consumed materials insert
  5. daily stats merge-increment
Either all five land or none do.

Validation runs inside the same unit and is repeated on every retry. It is a
fast, friendly precondition check only: the guarded decrement is what keeps
stock from going negative when two operators race for the last units.

Attempt states: IDLE -> VALIDATING -> COMMITTING -> COMMITTED | FAILED.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Branch,
    Customer,
    InventoryItem,
    Sale,
    SaleLine,
    SaleLineMaterial,
    Service,
    SALE_KIND_GOODS,
    SALE_KIND_SERVICE_ORDER,
)
from ..phone_utils import is_valid_phone, normalize_phone
from ..time_utils import business_today, utcnow
from ..validation import ConflictError, ValidationError
from .concurrency import run_with_retry
from .customer_service import record_purchase
from .inventory_service import guarded_decrement
from .reporting_service import record_daily_sale
from .sales_service import STATUS_COMPLETED, STATUS_RECEIVED
from .sequence_service import SCOPE_ORDER, allocate_code

WALK_IN_NAME = "Walk-in customer"
WALK_IN_PHONE = "Walk-in"

SALE_KINDS = (SALE_KIND_GOODS, SALE_KIND_SERVICE_ORDER)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}$")


class CheckoutState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    COMMITTING = "committing"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class MaterialUse:
    material_id: int
    qty_per_unit: int


@dataclass
class CartLine:
    ref_id: int  # inventory item id (goods) or service id (service orders)
    qty: int
    unit_price_cents: int | None = None
    materials: list[MaterialUse] = field(default_factory=list)


@dataclass
class CustomerRef:
    phone: str
    name: str | None = None
    is_new: bool = False


@dataclass
class CheckoutRequest:
    kind: str
    lines: list[CartLine]
    customer: CustomerRef | None = None
    branch_id: int | None = None
    operator: str | None = None
    amount_paid_cents: int | None = None
    delivery_date: str | None = None
    delivery_time: str | None = None
    notes: str | None = None
    client_token: str | None = None

    @classmethod
    def from_dict(cls, payload: dict, operator: str | None = None) -> "CheckoutRequest":
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")

        raw_lines = payload.get("lines", payload.get("items"))
        if not isinstance(raw_lines, list):
            raise ValidationError("lines must be a list")

        lines = []
        for idx, raw in enumerate(raw_lines):
            if not isinstance(raw, dict):
                raise ValidationError("Each line must be an object", details={"line": idx})
            materials = []
            for m in raw.get("materials") or []:
                if not isinstance(m, dict):
                    raise ValidationError("Each material must be an object", details={"line": idx})
                materials.append(MaterialUse(
                    material_id=_require_int(m.get("material_id"), "material_id", idx),
                    qty_per_unit=_require_int(m.get("qty_per_unit"), "qty_per_unit", idx),
                ))
            price = raw.get("unit_price_cents")
            lines.append(CartLine(
                ref_id=_require_int(raw.get("ref_id"), "ref_id", idx),
                qty=_require_int(raw.get("qty"), "qty", idx),
                unit_price_cents=None if price is None else _require_int(price, "unit_price_cents", idx),
                materials=materials,
            ))

        customer = None
        raw_customer = payload.get("customer")
        if isinstance(raw_customer, dict) and str(raw_customer.get("phone") or "").strip():
            customer = CustomerRef(
                phone=str(raw_customer.get("phone")),
                name=raw_customer.get("name"),
                is_new=bool(raw_customer.get("is_new", False)),
            )

        branch_id = payload.get("branch_id")
        paid = payload.get("amount_paid_cents")
        return cls(
            kind=payload.get("kind") or SALE_KIND_GOODS,
            lines=lines,
            customer=customer,
            branch_id=None if branch_id is None else _require_int(branch_id, "branch_id"),
            operator=operator,
            amount_paid_cents=None if paid is None else _require_int(paid, "amount_paid_cents"),
            delivery_date=payload.get("delivery_date") or None,
            delivery_time=payload.get("delivery_time") or None,
            notes=payload.get("notes") or None,
            client_token=payload.get("client_token") or None,
        )


@dataclass
class CheckoutResult:
    sale: Sale
    state: CheckoutState = CheckoutState.COMMITTED
    attempts: int = 1
    replayed: bool = False
    touched_item_ids: list[int] = field(default_factory=list)
    customer_phone: str | None = None
    customer_created: bool = False

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(include_lines=True),
            "state": self.state.value,
            "attempts": self.attempts,
            "replayed": self.replayed,
            "touched_item_ids": self.touched_item_ids,
            "customer_phone": self.customer_phone,
            "customer_created": self.customer_created,
        }


def _require_int(value, name: str, line: int | None = None) -> int:
    details = {"field": name}
    if line is not None:
        details["line"] = line
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{name} must be an integer", details=details)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{name} must be an integer", details=details)


@dataclass
class _PlannedMaterial:
    item: InventoryItem
    qty_per_unit: int
    total_qty: int


@dataclass
class _PlannedLine:
    item_type: str  # product, service
    ref_id: int
    name: str
    unit_price_cents: int
    qty: int
    materials: list[_PlannedMaterial] = field(default_factory=list)

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.qty


@dataclass
class _CheckoutPlan:
    kind: str
    branch: Branch
    lines: list[_PlannedLine]
    demand: dict[int, int]
    total_cents: int
    cost_cents: int
    paid_cents: int
    customer_phone: str | None
    customer_name: str
    customer_on_file: bool

    @property
    def walk_in(self) -> bool:
        return self.customer_phone is None


def _validate(request: CheckoutRequest) -> _CheckoutPlan:
    """Read and check everything the commit depends on. Performs no writes."""
    if request.kind not in SALE_KINDS:
        raise ValidationError(f"kind must be one of: {', '.join(SALE_KINDS)}")
    if not request.lines:
        raise ValidationError("Cart is empty")

    if request.branch_id is None:
        raise ValidationError("branch_id is required")
    branch = db.session.get(Branch, request.branch_id)
    if branch is None:
        raise ValidationError("Branch not found", details={"branch_id": request.branch_id})

    planned: list[_PlannedLine] = []
    demand: dict[int, int] = {}
    stock_items: dict[int, InventoryItem] = {}
    cost = 0

    for idx, line in enumerate(request.lines):
        if line.qty <= 0:
            raise ValidationError("qty must be > 0", details={"line": idx, "ref_id": line.ref_id})
        if line.unit_price_cents is not None and line.unit_price_cents < 0:
            raise ValidationError("unit_price_cents must be >= 0", details={"line": idx})

        if request.kind == SALE_KIND_GOODS:
            if line.materials:
                raise ValidationError("Goods lines cannot declare materials", details={"line": idx})
            item = db.session.get(InventoryItem, line.ref_id)
            if item is None:
                raise ValidationError("Item not found", details={"line": idx, "ref_id": line.ref_id})
            if item.type != "finished":
                raise ValidationError(f"{item.name} is not a sellable item", details={"line": idx, "ref_id": item.id})
            if item.branch_id is not None and item.branch_id != branch.id:
                raise ValidationError(f"{item.name} belongs to another branch", details={"line": idx, "ref_id": item.id})
            price = line.unit_price_cents if line.unit_price_cents is not None else item.selling_price_cents
            if price is None:
                raise ValidationError(f"{item.name} has no price", details={"line": idx, "ref_id": item.id})

            stock_items[item.id] = item
            demand[item.id] = demand.get(item.id, 0) + line.qty
            cost += item.cost_cents * line.qty
            planned.append(_PlannedLine("product", item.id, item.name, price, line.qty))
            continue

        service = db.session.get(Service, line.ref_id)
        if service is None:
            raise ValidationError("Service not found", details={"line": idx, "ref_id": line.ref_id})
        price = line.unit_price_cents if line.unit_price_cents is not None else service.price_cents
        planned_line = _PlannedLine("service", service.id, service.name, price, line.qty)

        for use in line.materials:
            if use.qty_per_unit <= 0:
                raise ValidationError("qty_per_unit must be > 0", details={"line": idx, "material_id": use.material_id})
            mat = db.session.get(InventoryItem, use.material_id)
            if mat is None:
                raise ValidationError("Material not found", details={"line": idx, "material_id": use.material_id})
            if mat.type != "raw":
                raise ValidationError(f"{mat.name} is not a raw material", details={"line": idx, "material_id": mat.id})
            if mat.branch_id != branch.id:
                raise ValidationError(f"{mat.name} belongs to another branch", details={"line": idx, "material_id": mat.id})

            consumed = line.qty * use.qty_per_unit
            stock_items[mat.id] = mat
            demand[mat.id] = demand.get(mat.id, 0) + consumed
            cost += mat.cost_cents * consumed
            planned_line.materials.append(_PlannedMaterial(mat, use.qty_per_unit, consumed))
        planned.append(planned_line)

    insufficient = []
    for item_id, qty in demand.items():
        item = stock_items[item_id]
        if item.quantity < qty:
            insufficient.append({
                "item_id": item_id,
                "name": item.name,
                "requested_quantity": qty,
                "on_hand": item.quantity,
            })
    if insufficient:
        names = ", ".join(row["name"] for row in insufficient)
        raise ValidationError(f"Insufficient stock: {names}", details={"items": insufficient})

    total = sum(pl.line_total_cents for pl in planned)

    paid = total if request.amount_paid_cents is None else request.amount_paid_cents
    if paid < 0 or paid > total:
        raise ValidationError("amount_paid_cents must be between 0 and the order total", details={"total_amount_cents": total})

    if request.delivery_date and not _DATE_RE.match(request.delivery_date):
        raise ValidationError("delivery_date must be YYYY-MM-DD")
    if request.delivery_time and not _TIME_RE.match(request.delivery_time):
        raise ValidationError("delivery_time must be HH:MM")

    customer_phone = None
    customer_name = WALK_IN_NAME
    on_file = False
    if request.customer is not None:
        customer_phone = normalize_phone(request.customer.phone)
        if not is_valid_phone(customer_phone):
            raise ValidationError("Invalid phone number", details={"phone": request.customer.phone})
        existing = db.session.get(Customer, customer_phone)
        if existing is not None:
            # The stored record decides; is_new from the client is only a hint
            on_file = True
            customer_name = existing.name
        else:
            customer_name = (request.customer.name or "").strip()
            if not customer_name:
                raise ValidationError("Name is required for a new customer", details={"phone": customer_phone})

    return _CheckoutPlan(
        kind=request.kind,
        branch=branch,
        lines=planned,
        demand=demand,
        total_cents=total,
        cost_cents=cost,
        paid_cents=paid,
        customer_phone=customer_phone,
        customer_name=customer_name,
        customer_on_file=on_file,
    )


def preview_checkout(request: CheckoutRequest) -> dict:
    """
    Run validation only and report what a checkout would charge.

    This is a hint for the register screen; checkout() validates again
    inside its own transaction.
    """
    try:
        plan = _validate(request)
    finally:
        db.session.rollback()
    return {
        "kind": plan.kind,
        "total_amount_cents": plan.total_cents,
        "total_cost_cents": plan.cost_cents,
        "amount_paid_cents": plan.paid_cents,
        "remaining_amount_cents": plan.total_cents - plan.paid_cents,
        "customer": {
            "name": plan.customer_name,
            "phone": plan.customer_phone or WALK_IN_PHONE,
            "is_new": not plan.walk_in and not plan.customer_on_file,
        },
        "lines": [
            {
                "item_type": pl.item_type,
                "ref_id": pl.ref_id,
                "name": pl.name,
                "unit_price_cents": pl.unit_price_cents,
                "qty": pl.qty,
                "line_total_cents": pl.line_total_cents,
            }
            for pl in plan.lines
        ],
    }


def _find_replay(client_token: str | None) -> Sale | None:
    if not client_token:
        return None
    return db.session.query(Sale).filter_by(client_token=client_token).first()


def checkout(request: CheckoutRequest) -> CheckoutResult:
    """
    Validate and commit one checkout as a single transaction.

    Retried as a whole on ConflictError / StaleDataError / OperationalError;
    ValidationError and NotFoundError abort immediately. A request whose
    client_token already committed returns that sale without writing again.
    """
    attempts = 0
    log = current_app.logger

    def _op() -> CheckoutResult:
        nonlocal attempts
        attempts += 1
        state = CheckoutState.IDLE

        def _to(new_state: CheckoutState) -> CheckoutState:
            log.debug("checkout attempt %s: %s -> %s", attempts, state.value, new_state.value)
            return new_state

        try:
            replay = _find_replay(request.client_token)
            if replay is not None:
                log.info("Checkout token %s already committed as sale %s", request.client_token, replay.id)
                return CheckoutResult(sale=replay, attempts=attempts, replayed=True)

            state = _to(CheckoutState.VALIDATING)
            plan = _validate(request)

            state = _to(CheckoutState.COMMITTING)
            now = utcnow()
            day = business_today()

            # Fixed order keeps concurrent checkouts from deadlocking on row locks
            for item_id in sorted(plan.demand):
                guarded_decrement(item_id, plan.demand[item_id])

            customer_created = False
            if not plan.walk_in:
                customer_created = record_purchase(
                    plan.customer_phone, plan.customer_name, plan.total_cents, at=now
                )

            order_id = None
            if plan.kind == SALE_KIND_SERVICE_ORDER:
                order_id = allocate_code(SCOPE_ORDER, day)

            sale = Sale(
                kind=plan.kind,
                order_id=order_id,
                customer_name=plan.customer_name,
                customer_phone=plan.customer_phone or WALK_IN_PHONE,
                total_amount_cents=plan.total_cents,
                total_cost_cents=plan.cost_cents,
                amount_paid_cents=plan.paid_cents,
                remaining_amount_cents=plan.total_cents - plan.paid_cents,
                status=STATUS_RECEIVED if plan.kind == SALE_KIND_SERVICE_ORDER else STATUS_COMPLETED,
                branch_id=plan.branch.id,
                branch_name=plan.branch.name,
                user=request.operator,
                delivery_date=request.delivery_date,
                delivery_time=request.delivery_time,
                notes=request.notes,
                client_token=request.client_token,
                created_at=now,
            )
            db.session.add(sale)
            for pl in plan.lines:
                line = SaleLine(
                    item_type=pl.item_type,
                    ref_id=pl.ref_id,
                    name=pl.name,
                    unit_price_cents=pl.unit_price_cents,
                    qty=pl.qty,
                    line_total_cents=pl.line_total_cents,
                )
                sale.lines.append(line)
                for pm in pl.materials:
                    line.materials.append(SaleLineMaterial(
                        material_id=pm.item.id,
                        name=pm.item.name,
                        unit=pm.item.unit,
                        qty_per_unit=pm.qty_per_unit,
                        total_qty=pm.total_qty,
                        unit_cost_cents=pm.item.cost_cents,
                    ))

            record_daily_sale(day, plan.total_cents, plan.cost_cents)

            try:
                db.session.commit()
            except IntegrityError as exc:
                # Most likely the same client_token committing from a parallel request
                raise ConflictError("Checkout collided with a concurrent write") from exc

            state = _to(CheckoutState.COMMITTED)
            return CheckoutResult(
                sale=sale,
                state=state,
                attempts=attempts,
                touched_item_ids=sorted(plan.demand),
                customer_phone=plan.customer_phone,
                customer_created=customer_created,
            )
        except Exception as exc:
            _to(CheckoutState.FAILED)
            log.debug("checkout attempt %s failed: %s", attempts, exc)
            raise

    result = run_with_retry(_op)
    if not result.replayed:
        log.info(
            "Sale %s committed (%s, total=%s, cost=%s, attempts=%s)",
            result.sale.id, result.sale.kind, result.sale.total_amount_cents,
            result.sale.total_cost_cents, result.attempts,
        )
    return result
