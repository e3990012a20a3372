# Overview: The single role policy: capability checks, branch scope, page gateway and write window.

"""
Role Policy

WHY: Every entry point (API route, page gateway, CLI) asks this module.
Nothing else re-implements role checks.

DESIGN PRINCIPLES:
- Fail closed: unknown roles have no capabilities, unknown paths are denied
- Scope is re-derived from the assignment tables on every call, never cached
- Denials are logged to security_events; grants are not
"""

from __future__ import annotations

from datetime import date, timedelta

from ..extensions import db
from ..models import Branch, ManagerBranchAssignment, Profile, SecurityEvent
from ..permissions import (
    ADMIN,
    MANAGER,
    BRANCH_STAFF,
    USER,
    ACCESS_PENDING_PATH,
    PUBLIC_PATHS,
    MANAGER_DENIED_PREFIXES,
    STAFF_ALLOWED_PREFIXES,
    capabilities_for_role,
)
from ..validation import AccessDeniedError, NotFoundError
from branchfin.time_utils import utcnow


WRITE_DIRECT = "direct"
WRITE_CHANGE_REQUEST = "change_request"


def log_security_event(
    profile_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    branch_id: int | None = None,
) -> SecurityEvent:
    """
    Append a security event.

    event_type examples:
    - CAPABILITY_DENIED
    - BRANCH_ACCESS_DENIED
    - LOGIN_FAILED
    - LOGIN_SUCCESS
    - PASSWORD_CHANGED
    - ROLE_CHANGED
    """
    event = SecurityEvent(
        profile_id=profile_id,
        branch_id=branch_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def get_capabilities(profile: Profile) -> frozenset[str]:
    if not profile or not profile.is_active:
        return frozenset()
    return capabilities_for_role(profile.role)


def has_capability(profile: Profile, capability: str) -> bool:
    return capability in get_capabilities(profile)


def require_capability(
    profile: Profile,
    capability: str,
    *,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """Raise AccessDeniedError (and log it) unless the profile's role grants capability."""
    if has_capability(profile, capability):
        return

    log_security_event(
        profile_id=profile.id if profile else None,
        event_type="CAPABILITY_DENIED",
        success=False,
        resource=resource,
        action=capability,
        reason=f"Role {profile.role if profile else None!r} lacks {capability}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise AccessDeniedError(f"Permission denied: {capability}")


def page_access(role: str | None, path: str) -> tuple[bool, str | None]:
    """
    Gateway decision for a UI path.

    Returns (allowed, redirect_path). redirect_path is None when allowed.
    """
    path = path or "/"
    if role == ADMIN:
        return True, None
    if role == MANAGER:
        if any(_under(path, prefix) for prefix in MANAGER_DENIED_PREFIXES):
            return False, ACCESS_PENDING_PATH
        return True, None
    if role == BRANCH_STAFF:
        if any(_under(path, prefix) for prefix in STAFF_ALLOWED_PREFIXES):
            return True, None
        return False, ACCESS_PENDING_PATH
    if path in PUBLIC_PATHS:
        return True, None
    return False, ACCESS_PENDING_PATH


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def get_manager_branch_ids(manager_id: int) -> set[int]:
    """Non-archived branches the manager is assigned to."""
    rows = (
        db.session.query(ManagerBranchAssignment.branch_id)
        .join(Branch, Branch.id == ManagerBranchAssignment.branch_id)
        .filter(
            ManagerBranchAssignment.manager_id == manager_id,
            Branch.archived.is_(False),
        )
        .all()
    )
    return {row[0] for row in rows}


def get_accessible_branch_ids(profile: Profile) -> set[int]:
    """
    Accessible branch set.

    - admin: every non-archived branch
    - manager: assigned non-archived branches
    - branch_staff: staff_branch_id if set and not archived
    - user / inactive: empty
    """
    if not profile or not profile.is_active:
        return set()

    if profile.role == ADMIN:
        rows = db.session.query(Branch.id).filter(Branch.archived.is_(False)).all()
        return {row[0] for row in rows}

    if profile.role == MANAGER:
        return get_manager_branch_ids(profile.id)

    if profile.role == BRANCH_STAFF and profile.staff_branch_id is not None:
        branch = db.session.get(Branch, profile.staff_branch_id)
        if branch and not branch.archived:
            return {branch.id}

    return set()


def list_accessible_branches(profile: Profile) -> list[Branch]:
    branch_ids = get_accessible_branch_ids(profile)
    if not branch_ids:
        return []
    return (
        db.session.query(Branch)
        .filter(Branch.id.in_(branch_ids))
        .order_by(Branch.name.asc())
        .all()
    )


def can_access_branch(profile: Profile, branch_id: int | None) -> bool:
    if branch_id is None:
        return False
    return branch_id in get_accessible_branch_ids(profile)


def require_branch_access(
    profile: Profile,
    branch_id: int,
    *,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> Branch:
    """
    Resolve a branch the caller may act on.

    Admins get 404 for a missing or archived branch. Everyone else gets 403
    for any branch outside their accessible set, whether or not it exists.
    """
    if profile and profile.is_active and profile.role == ADMIN:
        branch = db.session.get(Branch, branch_id)
        if not branch or branch.archived:
            raise NotFoundError("Branch not found")
        return branch

    if not can_access_branch(profile, branch_id):
        log_security_event(
            profile_id=profile.id if profile else None,
            event_type="BRANCH_ACCESS_DENIED",
            success=False,
            resource=resource,
            reason=f"Branch {branch_id} outside accessible set",
            ip_address=ip_address,
            user_agent=user_agent,
            branch_id=branch_id,
        )
        raise AccessDeniedError("You do not have access to this branch")

    return db.session.get(Branch, branch_id)


def financial_write_mode(
    profile: Profile,
    branch_id: int,
    record_date: date,
    *,
    record_exists: bool,
    today: date,
) -> str:
    """
    How a financial write for (branch, date) may proceed.

    - admin: direct for any branch
    - manager: direct within assigned branches
    - branch_staff, own branch: direct for today, and for yesterday only
      while no record exists; anything else goes through a change request
    - everyone else: AccessDeniedError

    Callers reject future dates before asking.
    """
    if not has_capability(profile, "WRITE_FINANCIALS"):
        raise AccessDeniedError("Permission denied: WRITE_FINANCIALS")

    if profile.role == ADMIN:
        return WRITE_DIRECT

    if not can_access_branch(profile, branch_id):
        raise AccessDeniedError("You do not have access to this branch")

    if profile.role == MANAGER:
        return WRITE_DIRECT

    if profile.role == BRANCH_STAFF:
        if record_date == today:
            return WRITE_DIRECT
        if record_date == today - timedelta(days=1) and not record_exists:
            return WRITE_DIRECT
        return WRITE_CHANGE_REQUEST

    raise AccessDeniedError("Permission denied: WRITE_FINANCIALS")


def can_decide_change_request(profile: Profile, branch_id: int) -> bool:
    """
    Approver check, evaluated at decision time.

    admin: any request; manager: only while currently assigned to the branch.
    """
    if not has_capability(profile, "APPROVE_CHANGE_REQUESTS"):
        return False
    if profile.role == ADMIN:
        return True
    if profile.role == MANAGER:
        return branch_id in get_manager_branch_ids(profile.id)
    return False


def is_pending_role(profile: Profile) -> bool:
    return profile.role == USER
