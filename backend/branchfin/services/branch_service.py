# Overview: Branch directory: create, rename, list, archive and hard delete.

"""
Branch Directory

DESIGN PRINCIPLES:
- No two active (non-archived) branches share a name; checked before the
  write and backed by a partial unique index
- Removal is archive by default. Hard delete is allowed only for a branch
  with no financial history
- Both removal modes cascade (manager assignments removed, staff_branch_id
  cleared) inside one transaction; a failing step rolls back everything
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Branch, ChangeRequest, FinancialLog, FinancialRecord, ManagerBranchAssignment, Profile
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    WorkflowError,
    optional_text,
    require_text,
)
from .concurrency import lock_for_update, run_with_retry
from branchfin.time_utils import utcnow


REMOVAL_WORKFLOW = "Branch removal"


def _name_taken(name: str, *, exclude_id: int | None = None) -> bool:
    query = db.session.query(Branch.id).filter(
        Branch.name == name,
        Branch.archived.is_(False),
    )
    if exclude_id is not None:
        query = query.filter(Branch.id != exclude_id)
    return query.first() is not None


def get_branch(branch_id: int, *, include_archived: bool = False) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if not branch or (branch.archived and not include_archived):
        raise NotFoundError("Branch not found")
    return branch


def list_branches(*, include_archived: bool = False) -> list[Branch]:
    query = db.session.query(Branch)
    if not include_archived:
        query = query.filter(Branch.archived.is_(False))
    return query.order_by(Branch.name.asc()).all()


def create_branch(name, address=None) -> Branch:
    """
    Raises:
        ValidationError: blank name
        ConflictError: an active branch already uses the name
    """
    name = require_text("name", name, max_length=120)
    address = optional_text("address", address)

    if _name_taken(name):
        raise ConflictError("A branch with this name already exists")

    branch = Branch(name=name, address=address, archived=False, created_at=utcnow())
    db.session.add(branch)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A branch with this name already exists")

    current_app.logger.info("Branch %s created: %s", branch.id, branch.name)
    return branch


def update_branch(branch_id: int, data: dict) -> Branch:
    """Rename and/or change the address of an active branch."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    def _op():
        branch = lock_for_update(
            db.session.query(Branch).filter_by(id=branch_id, archived=False)
        ).first()
        if not branch:
            raise NotFoundError("Branch not found")

        if "name" in data:
            name = require_text("name", data["name"], max_length=120)
            if name != branch.name and _name_taken(name, exclude_id=branch.id):
                raise ConflictError("A branch with this name already exists")
            branch.name = name
        if "address" in data:
            branch.address = optional_text("address", data["address"])

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("A branch with this name already exists")
        return branch

    return run_with_retry(_op)


def has_financial_history(branch_id: int) -> bool:
    for model in (FinancialRecord, ChangeRequest, FinancialLog):
        if db.session.query(model.id).filter(model.branch_id == branch_id).first():
            return True
    return False


def remove_branch(branch_id: int, *, hard: bool = False) -> dict:
    """
    Archive (default) or delete a branch, cascading its assignments.

    Steps, all in one transaction:
    1. remove manager assignments for the branch
    2. clear staff_branch_id on profiles staffed there (role is kept)
    3. archive the branch, or delete it when hard=True

    Raises:
        NotFoundError: unknown branch (or already archived, for archive)
        ConflictError: hard delete of a branch with financial history
        WorkflowError: a step failed; nothing was changed
    """
    branch = db.session.get(Branch, branch_id)
    if not branch or (branch.archived and not hard):
        raise NotFoundError("Branch not found")

    if hard and has_financial_history(branch_id):
        raise ConflictError("Branch has financial history; archive it instead")

    step = "remove manager assignments"
    try:
        managers_removed = (
            db.session.query(ManagerBranchAssignment)
            .filter(ManagerBranchAssignment.branch_id == branch_id)
            .delete(synchronize_session=False)
        )

        step = "clear staff assignments"
        staff_cleared = (
            db.session.query(Profile)
            .filter(Profile.staff_branch_id == branch_id)
            .update({"staff_branch_id": None}, synchronize_session=False)
        )

        if hard:
            step = "delete branch"
            deleted = (
                db.session.query(Branch)
                .filter(Branch.id == branch_id)
                .delete(synchronize_session=False)
            )
            if deleted != 1:
                raise RuntimeError(f"Expected to delete 1 branch row, matched {deleted}")
        else:
            step = "archive branch"
            branch.archived = True
            branch.archived_at = utcnow()
            db.session.flush()

        step = "commit"
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("%s failed at step %s (branch %s)", REMOVAL_WORKFLOW, step, branch_id)
        raise WorkflowError(REMOVAL_WORKFLOW, step) from exc

    if hard and branch in db.session:
        db.session.expunge(branch)

    mode = "deleted" if hard else "archived"
    current_app.logger.info(
        "Branch %s %s: %s manager assignment(s) removed, %s staff cleared",
        branch_id, mode, managers_removed, staff_cleared,
    )
    return {
        "branch_id": branch_id,
        "mode": mode,
        "managers_unassigned": managers_removed,
        "staff_unassigned": staff_cleared,
    }
