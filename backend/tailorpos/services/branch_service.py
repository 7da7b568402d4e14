from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Branch, InventoryItem, User
from ..validation import ConflictError, NotFoundError, ValidationError, enforce_rules_branch
from .concurrency import lock_for_update, run_with_retry

BRANCH_MUTABLE_FIELDS = {"name", "location", "type"}


def _name_taken(name: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(Branch.id).filter(Branch.name == name)
    if exclude_id is not None:
        q = q.filter(Branch.id != exclude_id)
    return q.first() is not None


def create_branch(name: str, location: str | None = None, type: str = "store") -> Branch:
    def _op():
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Branch name is required")
        enforce_rules_branch({"type": type})
        if _name_taken(clean_name):
            raise ValidationError(f"Branch '{clean_name}' already exists")

        branch = Branch(name=clean_name, location=location, type=type)
        db.session.add(branch)
        try:
            db.session.commit()
        except IntegrityError as exc:
            raise ConflictError(f"Branch '{clean_name}' was created concurrently") from exc
        return branch

    return run_with_retry(_op)


def get_branch(branch_id: int) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError("Branch not found")
    return branch


def list_branches() -> list[Branch]:
    return db.session.query(Branch).order_by(Branch.name.asc()).all()


def update_branch(branch_id: int, patch: dict) -> Branch:
    """
    Rename / relocate a branch.

    The denormalized branch_name on inventory items is rewritten in the same
    transaction; sales keep the name they were recorded with.
    """
    def _op():
        branch = lock_for_update(db.session.query(Branch).filter_by(id=branch_id)).first()
        if branch is None:
            raise NotFoundError("Branch not found")

        enforce_rules_branch(patch)
        if "name" in patch:
            new_name = (patch["name"] or "").strip()
            if not new_name:
                raise ValidationError("Branch name is required")
            if _name_taken(new_name, exclude_id=branch.id):
                raise ValidationError(f"Branch '{new_name}' already exists")
            if new_name != branch.name:
                db.session.query(InventoryItem).filter(InventoryItem.branch_id == branch.id).update(
                    {InventoryItem.branch_name: new_name, InventoryItem.version_id: InventoryItem.version_id + 1},
                    synchronize_session=False,
                )
            branch.name = new_name

        for k, v in patch.items():
            if k in BRANCH_MUTABLE_FIELDS and k != "name":
                setattr(branch, k, v)

        db.session.commit()
        return branch

    return run_with_retry(_op)


def delete_branch(branch_id: int) -> None:
    def _op():
        branch = db.session.get(Branch, branch_id)
        if branch is None:
            raise NotFoundError("Branch not found")
        in_use = db.session.query(InventoryItem.id).filter(InventoryItem.branch_id == branch_id).first()
        if in_use is not None:
            raise ValidationError(
                "Branch still holds inventory; transfer or delete its items first",
                details={"branch_id": branch_id},
            )
        # Operators pinned to the branch fall back to "any branch"
        db.session.query(User).filter(User.branch_id == branch_id).update(
            {User.branch_id: None}, synchronize_session=False
        )
        db.session.delete(branch)
        db.session.commit()

    run_with_retry(_op)
