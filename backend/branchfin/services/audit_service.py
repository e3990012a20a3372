# Overview: Append-only financial audit log and its scoped, joined listing.

"""
Audit Log

WHY: Every committed financial mutation must be attributable after the fact.

DESIGN PRINCIPLES:
- Append-only: entries are inserted here and never updated or deleted
- append_financial_log flushes but never commits; the caller's unit of work
  decides whether the entry survives
- Listings are one joined query (branch name, actor email), newest first
"""

from __future__ import annotations

from ..extensions import db
from ..models import Branch, FinancialLog, Profile
from ..permissions import ADMIN
from . import policy_service
from branchfin.time_utils import utcnow


FINANCIAL_DATA_ADDED = "FINANCIAL_DATA_ADDED"
FINANCIAL_DATA_UPDATED = "FINANCIAL_DATA_UPDATED"
FINANCIAL_CHANGE_APPROVED = "FINANCIAL_CHANGE_APPROVED"

ACTIONS = (FINANCIAL_DATA_ADDED, FINANCIAL_DATA_UPDATED, FINANCIAL_CHANGE_APPROVED)

DEFAULT_LIMIT = 100
MAX_LIMIT = 500


def append_financial_log(
    *,
    branch_id: int,
    profile_id: int | None,
    action: str,
    data: dict,
    change_request_id: int | None = None,
) -> FinancialLog:
    """Add a log entry to the current transaction (flush, no commit)."""
    if action not in ACTIONS:
        raise ValueError(f"Unknown financial log action: {action}")

    entry = FinancialLog(
        branch_id=branch_id,
        profile_id=profile_id,
        action=action,
        data=data,
        change_request_id=change_request_id,
        created_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_financial_logs(
    actor: Profile,
    *,
    branch_id: int | None = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> list[dict]:
    """
    Log entries visible to actor, newest first.

    admin sees every branch (archived included); other callers see only
    their accessible branches. branch_id narrows further and must already
    have been authorized by the caller.
    """
    limit = max(1, min(int(limit), MAX_LIMIT))
    offset = max(0, int(offset))

    query = (
        db.session.query(FinancialLog, Branch.name, Profile.email)
        .join(Branch, Branch.id == FinancialLog.branch_id)
        .outerjoin(Profile, Profile.id == FinancialLog.profile_id)
    )

    if actor.role != ADMIN:
        accessible = policy_service.get_accessible_branch_ids(actor)
        if not accessible:
            return []
        query = query.filter(FinancialLog.branch_id.in_(accessible))

    if branch_id is not None:
        query = query.filter(FinancialLog.branch_id == branch_id)

    rows = (
        query.order_by(FinancialLog.created_at.desc(), FinancialLog.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )

    results = []
    for entry, branch_name, email in rows:
        item = entry.to_dict()
        item["branch_name"] = branch_name
        item["profile_email"] = email
        results.append(item)
    return results
