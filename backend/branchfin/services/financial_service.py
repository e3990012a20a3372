# Overview: Financial record store: per-(branch, date) reads and the atomic upsert.

"""
Financial Record Service

WHY: One record per (branch, date). The database enforces that with a
unique constraint and writers use INSERT ... ON CONFLICT DO NOTHING, so two
concurrent first submissions can never produce duplicates and only one of
them is tagged as the insert.

DESIGN PRINCIPLES:
- upsert_record never commits; callers own the transaction so the record
  and its audit entry land together
- submit_financials asks policy_service how a write may proceed and either
  writes directly or opens a change request
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import FinancialRecord, Profile
from ..validation import ConflictError, FinancialInput, ValidationError, validate_financial_payload
from . import audit_service, policy_service
from .concurrency import dialect_name, lock_for_update
from branchfin.time_utils import business_today, utcnow


OUTCOME_ADDED = "added"
OUTCOME_UPDATED = "updated"
OUTCOME_CHANGE_REQUEST = "change_request"

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def get_record(branch_id: int, record_date: date) -> FinancialRecord | None:
    return (
        db.session.query(FinancialRecord)
        .filter_by(branch_id=branch_id, date=record_date)
        .first()
    )


def list_records(
    branch_id: int,
    *,
    start: date | None = None,
    end: date | None = None,
) -> list[FinancialRecord]:
    """Records of one branch, newest date first, optionally bounded."""
    if start and end and end < start:
        raise ValidationError("to must be on or after from")

    query = db.session.query(FinancialRecord).filter(FinancialRecord.branch_id == branch_id)
    if start:
        query = query.filter(FinancialRecord.date >= start)
    if end:
        query = query.filter(FinancialRecord.date <= end)
    return query.order_by(FinancialRecord.date.desc()).all()


def upsert_record(branch_id: int, data: FinancialInput) -> tuple[FinancialRecord, bool]:
    """
    Insert or update the record for (branch_id, data.date).

    Returns (record, created). On SQLite and PostgreSQL the insert is
    INSERT ... ON CONFLICT DO NOTHING RETURNING id: only the writer whose
    row landed sees created=True, a concurrent loser falls through to the
    update. Other backends lock the existing row and rely on the unique
    constraint to reject a concurrent duplicate insert.
    """
    insert = _UPSERT_DIALECTS.get(dialect_name())
    if insert is not None:
        now = utcnow()
        stmt = (
            insert(FinancialRecord.__table__)
            .values(
                branch_id=branch_id,
                date=data.date,
                earnings=data.earnings,
                expenses=data.expenses,
                summary=data.summary,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["branch_id", "date"])
            .returning(FinancialRecord.__table__.c.id)
        )
        created = db.session.execute(stmt).first() is not None
        if not created:
            db.session.query(FinancialRecord).filter_by(branch_id=branch_id, date=data.date).update(
                {
                    "earnings": data.earnings,
                    "expenses": data.expenses,
                    "summary": data.summary,
                    "updated_at": now,
                },
                synchronize_session=False,
            )
    else:
        created = _locked_upsert(branch_id, data)

    record = (
        db.session.query(FinancialRecord)
        .filter_by(branch_id=branch_id, date=data.date)
        .populate_existing()
        .one()
    )
    return record, created


def _locked_upsert(branch_id: int, data: FinancialInput) -> bool:
    record = lock_for_update(
        db.session.query(FinancialRecord).filter_by(branch_id=branch_id, date=data.date)
    ).first()

    if record:
        record.earnings = data.earnings
        record.expenses = data.expenses
        record.summary = data.summary
        record.updated_at = utcnow()
        db.session.flush()
        return False

    nested = db.session.begin_nested()
    try:
        db.session.add(FinancialRecord(
            branch_id=branch_id,
            date=data.date,
            earnings=data.earnings,
            expenses=data.expenses,
            summary=data.summary,
        ))
        db.session.flush()
    except IntegrityError:
        nested.rollback()
        raise ConflictError("Financial record for this date was written concurrently, retry")
    nested.commit()
    return True


def write_direct(actor: Profile, branch_id: int, data: FinancialInput) -> tuple[str, FinancialRecord]:
    """Upsert plus its audit entry, committed as one unit."""
    try:
        record, created = upsert_record(branch_id, data)
        audit_service.append_financial_log(
            branch_id=branch_id,
            profile_id=actor.id,
            action=audit_service.FINANCIAL_DATA_ADDED if created else audit_service.FINANCIAL_DATA_UPDATED,
            data=data.snapshot(),
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    outcome = OUTCOME_ADDED if created else OUTCOME_UPDATED
    current_app.logger.info(
        "Financial record %s: branch=%s date=%s by profile=%s",
        outcome, branch_id, data.date.isoformat(), actor.id,
    )
    return outcome, record


def submit_financials(
    actor: Profile,
    branch_id: int,
    payload,
    *,
    today: date | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
):
    """
    Record a day's figures for a branch.

    Returns (outcome, obj):
    - ("added", FinancialRecord) / ("updated", FinancialRecord) for a direct write
    - ("change_request", ChangeRequest) when the caller is outside the write window

    Raises:
        AccessDeniedError: branch outside scope, or no way to write at all
        NotFoundError: admin targeting a missing or archived branch
        ValidationError: bad payload or a future date
    """
    from . import change_request_service

    today = today or business_today()

    policy_service.require_branch_access(
        actor,
        branch_id,
        resource=f"/api/branch/{branch_id}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    data = validate_financial_payload(payload, today=today)

    existing = get_record(branch_id, data.date)
    mode = policy_service.financial_write_mode(
        actor,
        branch_id,
        data.date,
        record_exists=existing is not None,
        today=today,
    )

    if mode == policy_service.WRITE_DIRECT:
        return write_direct(actor, branch_id, data)

    request_row = change_request_service.submit_change_request(
        actor,
        branch_id,
        data,
        today=today,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return OUTCOME_CHANGE_REQUEST, request_row
