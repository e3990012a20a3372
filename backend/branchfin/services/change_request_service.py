# Overview: Change-request workflow: submit, approve, reject, cancel and listings.

"""
Change-Request Workflow

WHY: A submitter outside their direct write window proposes an edit; an
approver decides. Approval applies the edit to the financial record and
appends an audit entry in the same transaction.

STATE MACHINE:
    pending -> approved | rejected | cancelled   (all terminal)

DESIGN PRINCIPLES:
- Every transition is a conditional UPDATE ... WHERE status = 'pending';
  a rowcount other than 1 is a conflict, never a silent success
- Approver scope is evaluated at decision time from the live assignments
- Approval is one unit of work: transition, upsert, log, commit. A failing
  step rolls everything back and raises WorkflowError naming that step
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Branch, ChangeRequest, Profile
from ..permissions import ADMIN, MANAGER
from ..validation import (
    AccessDeniedError,
    ConflictError,
    FinancialInput,
    NotFoundError,
    ValidationError,
    WorkflowError,
    financial_input_from_snapshot,
    optional_text,
)
from . import audit_service, financial_service, policy_service
from branchfin.time_utils import business_today, utcnow


PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
CANCELLED = "cancelled"

STATUSES = (PENDING, APPROVED, REJECTED, CANCELLED)

APPROVAL_WORKFLOW = "Change request approval"


def submit_change_request(
    actor: Profile,
    branch_id: int,
    data: FinancialInput,
    *,
    today: date | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> ChangeRequest:
    """
    Open a pending change request for (branch_id, data.date).

    old_data snapshots the current record, or stays null when none exists.

    Raises:
        AccessDeniedError: caller cannot submit for this branch
        ValidationError: future date
        ConflictError: caller may write this date directly
    """
    today = today or business_today()
    resource = f"/api/branch/{branch_id}"

    policy_service.require_capability(
        actor,
        "SUBMIT_CHANGE_REQUESTS",
        resource=resource,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    policy_service.require_branch_access(
        actor,
        branch_id,
        resource=resource,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    if data.date > today:
        raise ValidationError("Financial data cannot be recorded for a future date")

    existing = financial_service.get_record(branch_id, data.date)
    mode = policy_service.financial_write_mode(
        actor,
        branch_id,
        data.date,
        record_exists=existing is not None,
        today=today,
    )
    if mode == policy_service.WRITE_DIRECT:
        raise ConflictError("This date can be written directly; no change request is needed")

    change_request = ChangeRequest(
        requester_id=actor.id,
        branch_id=branch_id,
        requested_date=data.date,
        old_data=existing.snapshot() if existing else None,
        new_data=data.snapshot(),
        status=PENDING,
        created_at=utcnow(),
    )
    db.session.add(change_request)
    db.session.commit()

    current_app.logger.info(
        "Change request %s submitted: branch=%s date=%s by profile=%s",
        change_request.id, branch_id, data.date.isoformat(), actor.id,
    )
    return change_request


def get_change_request(request_id: int) -> ChangeRequest:
    change_request = db.session.get(ChangeRequest, request_id)
    if not change_request:
        raise NotFoundError("Change request not found")
    return change_request


def _transition(request_id: int, status: str, actor: Profile, note: str | None) -> None:
    """Move a pending request to status; exactly one row must match."""
    matched = (
        db.session.query(ChangeRequest)
        .filter(ChangeRequest.id == request_id, ChangeRequest.status == PENDING)
        .update(
            {
                "status": status,
                "decided_by_id": actor.id,
                "decided_at": utcnow(),
                "decision_note": note,
            },
            synchronize_session=False,
        )
    )
    if matched != 1:
        raise ConflictError("Change request is no longer pending")


def _require_decider(
    actor: Profile,
    change_request: ChangeRequest,
    *,
    action: str,
    ip_address: str | None,
    user_agent: str | None,
) -> None:
    if policy_service.can_decide_change_request(actor, change_request.branch_id):
        return

    policy_service.log_security_event(
        profile_id=actor.id,
        event_type="CHANGE_REQUEST_DENIED",
        success=False,
        resource=f"/api/change-requests/{change_request.id}/{action}",
        action=action,
        reason=f"Not an approver for branch {change_request.branch_id}",
        ip_address=ip_address,
        user_agent=user_agent,
        branch_id=change_request.branch_id,
    )
    raise AccessDeniedError("You are not allowed to decide this change request")


def _require_pending(change_request: ChangeRequest) -> None:
    if change_request.status != PENDING:
        raise ConflictError(f"Change request is already {change_request.status}")


def approve_change_request(
    actor: Profile,
    request_id: int,
    *,
    note=None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> ChangeRequest:
    """
    Approve a pending request and apply new_data to (branch, requested_date).

    Raises:
        NotFoundError: unknown request id
        AccessDeniedError: caller cannot decide for this branch
        ConflictError: request not pending, or its branch is archived
        WorkflowError: a step of the approval failed (nothing was written)
    """
    change_request = get_change_request(request_id)
    _require_decider(actor, change_request, action="approve", ip_address=ip_address, user_agent=user_agent)
    _require_pending(change_request)
    note = optional_text("note", note, max_length=1000)

    branch = db.session.get(Branch, change_request.branch_id)
    if branch is None or branch.archived:
        raise ConflictError("Branch is archived; the change request can only be rejected")

    snapshot = dict(change_request.new_data or {})
    snapshot["date"] = change_request.requested_date.isoformat()

    step = "validate"
    try:
        data = financial_input_from_snapshot(snapshot)

        step = "transition"
        _transition(request_id, APPROVED, actor, note)

        step = "apply"
        financial_service.upsert_record(change_request.branch_id, data)

        step = "log"
        audit_service.append_financial_log(
            branch_id=change_request.branch_id,
            profile_id=actor.id,
            action=audit_service.FINANCIAL_CHANGE_APPROVED,
            data=data.snapshot(),
            change_request_id=request_id,
        )

        step = "commit"
        db.session.commit()
    except ConflictError:
        db.session.rollback()
        raise
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("%s failed at step %s (request %s)", APPROVAL_WORKFLOW, step, request_id)
        raise WorkflowError(APPROVAL_WORKFLOW, step) from exc

    current_app.logger.info("Change request %s approved by profile=%s", request_id, actor.id)
    return get_change_request(request_id)


def reject_change_request(
    actor: Profile,
    request_id: int,
    *,
    note=None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> ChangeRequest:
    """Reject a pending request. The financial record is left untouched."""
    change_request = get_change_request(request_id)
    _require_decider(actor, change_request, action="reject", ip_address=ip_address, user_agent=user_agent)
    _require_pending(change_request)
    note = optional_text("note", note, max_length=1000)

    try:
        _transition(request_id, REJECTED, actor, note)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Change request %s rejected by profile=%s", request_id, actor.id)
    return get_change_request(request_id)


def cancel_change_request(
    actor: Profile,
    request_id: int,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> ChangeRequest:
    """Submitter withdraws their own pending request."""
    change_request = get_change_request(request_id)

    if change_request.requester_id != actor.id:
        policy_service.log_security_event(
            profile_id=actor.id,
            event_type="CHANGE_REQUEST_DENIED",
            success=False,
            resource=f"/api/change-requests/{request_id}/cancel",
            action="cancel",
            reason="Only the submitter may cancel",
            ip_address=ip_address,
            user_agent=user_agent,
            branch_id=change_request.branch_id,
        )
        raise AccessDeniedError("Only the submitter can cancel this change request")

    _require_pending(change_request)

    try:
        _transition(request_id, CANCELLED, actor, None)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Change request %s cancelled by submitter", request_id)
    return get_change_request(request_id)


def _joined_query():
    return (
        db.session.query(ChangeRequest, Branch.name, Profile.email)
        .join(Branch, Branch.id == ChangeRequest.branch_id)
        .join(Profile, Profile.id == ChangeRequest.requester_id)
    )


def _serialize(rows) -> list[dict]:
    results = []
    for change_request, branch_name, requester_email in rows:
        item = change_request.to_dict()
        item["branch_name"] = branch_name
        item["requester_email"] = requester_email
        results.append(item)
    return results


def _parse_status(status: str | None) -> str | None:
    """None or 'all' means no filter."""
    if status is None or status == "all":
        return None
    if status not in STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(STATUSES)}, all")
    return status


def list_change_requests(actor: Profile, *, status: str | None = PENDING) -> list[dict]:
    """
    Requests the caller may decide, newest first.

    admin: every branch, archived included. manager: currently assigned
    branches. Anyone else: nothing.
    """
    status = _parse_status(status)

    if actor.role == ADMIN:
        query = _joined_query()
    elif actor.role == MANAGER:
        branch_ids = policy_service.get_manager_branch_ids(actor.id)
        if not branch_ids:
            return []
        query = _joined_query().filter(ChangeRequest.branch_id.in_(branch_ids))
    else:
        return []

    if status:
        query = query.filter(ChangeRequest.status == status)

    return _serialize(
        query.order_by(ChangeRequest.created_at.desc(), ChangeRequest.id.desc()).all()
    )


def list_own_change_requests(actor: Profile, *, status: str | None = None) -> list[dict]:
    status = _parse_status(status)
    query = _joined_query().filter(ChangeRequest.requester_id == actor.id)
    if status:
        query = query.filter(ChangeRequest.status == status)
    return _serialize(
        query.order_by(ChangeRequest.created_at.desc(), ChangeRequest.id.desc()).all()
    )


def pending_count(actor: Profile) -> int:
    """Pending requests the caller could decide; 0 for non-approvers."""
    if not policy_service.has_capability(actor, "APPROVE_CHANGE_REQUESTS"):
        return 0

    query = db.session.query(db.func.count(ChangeRequest.id)).filter(ChangeRequest.status == PENDING)

    if actor.role == MANAGER:
        branch_ids = policy_service.get_manager_branch_ids(actor.id)
        if not branch_ids:
            return 0
        query = query.filter(ChangeRequest.branch_id.in_(branch_ids))
    elif actor.role != ADMIN:
        return 0

    return query.scalar() or 0
