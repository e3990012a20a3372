# Overview: Read-only dashboard rollups over the caller's accessible branches.

"""
Dashboard Aggregator

Input: the caller, a date range [from, to] and an optional single branch.
Output: totals, net profit, transaction count, one series point per day of
the range (zeros for days without records), active branches today and the
raw per-record breakdown.

SECURITY: a branch filter outside the caller's accessible set is a 403,
never a narrowed or substituted result. An empty accessible set is not an
error; it yields a zero-valued payload.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal

from ..extensions import db
from ..models import Branch, FinancialRecord, Profile
from ..validation import ValidationError, parse_date_field
from . import policy_service
from branchfin.time_utils import business_today


# Longest range a single request may cover (two years of daily points)
MAX_RANGE_DAYS = 731

ZERO = Decimal("0")


def parse_range(start_raw, end_raw) -> tuple[date, date]:
    start = parse_date_field("from", start_raw)
    end = parse_date_field("to", end_raw, required=False) or start
    if end < start:
        raise ValidationError("to must be on or after from")
    if (end - start).days + 1 > MAX_RANGE_DAYS:
        raise ValidationError(f"Date range cannot exceed {MAX_RANGE_DAYS} days")
    return start, end


def parse_branch_filter(raw) -> int | None:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError("branch must be an integer id")


def day_range(start: date, end: date) -> list[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def build_series(records, start: date, end: date) -> list[dict]:
    """One point per day in [start, end]; days without records are zero."""
    earnings_by_day = defaultdict(lambda: ZERO)
    expenses_by_day = defaultdict(lambda: ZERO)
    for record in records:
        earnings_by_day[record.date] += Decimal(record.earnings)
        expenses_by_day[record.date] += Decimal(record.expenses)

    series = []
    for day in day_range(start, end):
        earnings = earnings_by_day[day]
        expenses = expenses_by_day[day]
        series.append({
            "date": day.isoformat(),
            "earnings": float(earnings),
            "expenses": float(expenses),
            "net": float(earnings - expenses),
        })
    return series


def get_dashboard(
    actor: Profile,
    *,
    start_raw,
    end_raw=None,
    branch_raw=None,
    today: date | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> dict:
    """
    Raises:
        ValidationError: missing/malformed dates, to < from, bad branch id
        AccessDeniedError: branch filter outside the accessible set
        NotFoundError: admin filtering on a missing or archived branch
    """
    today = today or business_today()
    start, end = parse_range(start_raw, end_raw)
    branch_id = parse_branch_filter(branch_raw)

    if branch_id is not None:
        policy_service.require_branch_access(
            actor,
            branch_id,
            resource="/api/dashboard-data",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        selected = {branch_id}
    else:
        selected = policy_service.get_accessible_branch_ids(actor)

    available = [
        {"id": branch.id, "name": branch.name}
        for branch in policy_service.list_accessible_branches(actor)
    ]

    rows = []
    active_today = 0
    if selected:
        rows = (
            db.session.query(FinancialRecord, Branch.name)
            .join(Branch, Branch.id == FinancialRecord.branch_id)
            .filter(
                FinancialRecord.branch_id.in_(selected),
                FinancialRecord.date >= start,
                FinancialRecord.date <= end,
            )
            .order_by(FinancialRecord.date.asc(), Branch.name.asc())
            .all()
        )
        active_today = (
            db.session.query(db.func.count(db.distinct(FinancialRecord.branch_id)))
            .filter(
                FinancialRecord.branch_id.in_(selected),
                FinancialRecord.date == today,
            )
            .scalar()
        ) or 0

    records = [record for record, _ in rows]
    total_earnings = sum((Decimal(r.earnings) for r in records), ZERO)
    total_expenses = sum((Decimal(r.expenses) for r in records), ZERO)

    breakdown = []
    for record, branch_name in rows:
        item = record.to_dict()
        item["branch_name"] = branch_name
        breakdown.append(item)

    return {
        "role": actor.role,
        "from": start.isoformat(),
        "to": end.isoformat(),
        "available_branches": available,
        "selected_branch_id": branch_id,
        "total_earnings": float(total_earnings),
        "total_expenses": float(total_expenses),
        "net_profit": float(total_earnings - total_expenses),
        "transaction_count": len(records),
        "series": build_series(records, start, end),
        "active_branches_today": active_today,
        "data_entry_today": bool(selected) and active_today == len(selected),
        "daily_breakdown": breakdown,
    }
