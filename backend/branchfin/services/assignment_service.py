# Overview: Manager and staff assignments to branches, and admin role changes.

"""
Branch Assignments

- Managers: many-to-many through ManagerBranchAssignment; a duplicate pair
  is a conflict ("already assigned"), never a silent no-op
- Staff: a single staff_branch_id on the profile; assigning promotes a
  pending 'user' to 'branch_staff'
- Role changes clear the assignments the new role no longer uses
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Branch, ManagerBranchAssignment, Profile
from ..permissions import BRANCH_STAFF, MANAGER, USER, validate_role
from ..validation import ConflictError, NotFoundError, ValidationError
from . import policy_service
from branchfin.time_utils import utcnow


ALREADY_ASSIGNED = "Manager is already assigned to this branch"


def _active_branch(branch_id: int) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if not branch or branch.archived:
        raise NotFoundError("Branch not found")
    return branch


def _profile(profile_id) -> Profile:
    if isinstance(profile_id, bool) or not isinstance(profile_id, int):
        raise ValidationError("profile_id must be an integer")
    profile = db.session.get(Profile, profile_id)
    if not profile:
        raise NotFoundError("Profile not found")
    return profile


def list_branch_managers(branch_id: int) -> list[dict]:
    _active_branch(branch_id)
    rows = (
        db.session.query(Profile, ManagerBranchAssignment)
        .join(ManagerBranchAssignment, ManagerBranchAssignment.manager_id == Profile.id)
        .filter(ManagerBranchAssignment.branch_id == branch_id)
        .order_by(Profile.email.asc())
        .all()
    )
    results = []
    for profile, assignment in rows:
        item = profile.to_dict()
        item["assignment"] = assignment.to_dict()
        results.append(item)
    return results


def assign_manager(actor: Profile, branch_id: int, manager_id) -> ManagerBranchAssignment:
    """
    Raises:
        NotFoundError: branch or profile missing
        ValidationError: profile is not a manager
        ConflictError: pair already assigned
    """
    _active_branch(branch_id)
    manager = _profile(manager_id)
    if manager.role != MANAGER:
        raise ValidationError("Profile must have the manager role")

    exists = (
        db.session.query(ManagerBranchAssignment.id)
        .filter_by(manager_id=manager.id, branch_id=branch_id)
        .first()
    )
    if exists:
        raise ConflictError(ALREADY_ASSIGNED)

    assignment = ManagerBranchAssignment(
        manager_id=manager.id,
        branch_id=branch_id,
        assigned_by_id=actor.id,
        assigned_at=utcnow(),
    )
    db.session.add(assignment)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(ALREADY_ASSIGNED)

    current_app.logger.info("Manager %s assigned to branch %s by profile=%s", manager.id, branch_id, actor.id)
    return assignment


def unassign_manager(actor: Profile, branch_id: int, manager_id: int) -> None:
    removed = (
        db.session.query(ManagerBranchAssignment)
        .filter_by(manager_id=manager_id, branch_id=branch_id)
        .delete(synchronize_session=False)
    )
    if removed != 1:
        db.session.rollback()
        raise NotFoundError("Manager is not assigned to this branch")
    db.session.commit()
    current_app.logger.info("Manager %s unassigned from branch %s by profile=%s", manager_id, branch_id, actor.id)


def list_branch_staff(branch_id: int) -> list[Profile]:
    return (
        db.session.query(Profile)
        .filter(Profile.staff_branch_id == branch_id)
        .order_by(Profile.email.asc())
        .all()
    )


def assign_staff(
    actor: Profile,
    branch_id: int,
    profile_id,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> Profile:
    """
    Make a profile staff of branch_id.

    Eligible: role 'user', or 'branch_staff' with no branch yet. The write is
    a conditional UPDATE so a concurrent assignment elsewhere cannot be
    overwritten.

    Raises:
        AccessDeniedError / NotFoundError: branch outside scope or missing
        ConflictError: already staff here or at another branch
        ValidationError: role not eligible
    """
    policy_service.require_branch_access(
        actor,
        branch_id,
        resource=f"/api/branch/{branch_id}/staff",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    target = _profile(profile_id)

    if target.staff_branch_id == branch_id:
        raise ConflictError("Profile is already assigned to this branch")
    if target.staff_branch_id is not None:
        raise ConflictError("Profile is already assigned to another branch")
    if target.role not in (USER, BRANCH_STAFF):
        raise ValidationError("Only profiles with role 'user' or unassigned 'branch_staff' can be made staff")

    matched = (
        db.session.query(Profile)
        .filter(
            Profile.id == target.id,
            Profile.staff_branch_id.is_(None),
            Profile.role.in_((USER, BRANCH_STAFF)),
        )
        .update(
            {"role": BRANCH_STAFF, "staff_branch_id": branch_id},
            synchronize_session=False,
        )
    )
    if matched != 1:
        db.session.rollback()
        raise ConflictError("Profile assignment changed concurrently, retry")
    db.session.commit()

    current_app.logger.info("Profile %s assigned as staff of branch %s by profile=%s", target.id, branch_id, actor.id)
    return db.session.get(Profile, target.id)


def unassign_staff(
    actor: Profile,
    branch_id: int,
    profile_id: int,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> Profile:
    """Clear staff_branch_id; the role stays branch_staff (unassigned)."""
    policy_service.require_branch_access(
        actor,
        branch_id,
        resource=f"/api/branch/{branch_id}/staff",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    target = _profile(profile_id)
    if target.staff_branch_id != branch_id:
        raise NotFoundError("Profile is not staff of this branch")

    target.staff_branch_id = None
    db.session.commit()

    current_app.logger.info("Profile %s unassigned from branch %s by profile=%s", target.id, branch_id, actor.id)
    return target


def change_role(
    actor: Profile | None,
    profile_id: int,
    role,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> Profile:
    """
    Set a profile's role.

    Leaving 'manager' deletes its manager assignments; leaving 'branch_staff'
    clears staff_branch_id. actor is None for CLI invocations.
    """
    if not isinstance(role, str) or not validate_role(role):
        raise ValidationError("role must be one of: admin, manager, branch_staff, user")

    target = _profile(profile_id)
    previous = target.role
    if previous == role:
        return target

    if previous == MANAGER:
        db.session.query(ManagerBranchAssignment).filter(
            ManagerBranchAssignment.manager_id == target.id
        ).delete(synchronize_session=False)
    if previous == BRANCH_STAFF:
        target.staff_branch_id = None

    target.role = role
    db.session.commit()

    policy_service.log_security_event(
        profile_id=actor.id if actor else None,
        event_type="ROLE_CHANGED",
        success=True,
        resource=f"/api/admin/profiles/{target.id}/role",
        action=role,
        reason=f"Profile {target.id}: {previous} -> {role}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    current_app.logger.info("Profile %s role changed %s -> %s by profile=%s", target.id, previous, role, actor.id if actor else "cli")
    return target
