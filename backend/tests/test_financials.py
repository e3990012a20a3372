"""
Financial record store tests.

Verifies:
- Payload validation (amounts, summary, date format, future dates)
- Upsert: one row per (branch, date), updated in place on resubmission
- Audit entries for direct writes
- Outcome routing: direct write vs change request
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import false
from sqlalchemy.exc import IntegrityError

from branchfin.models import ChangeRequest, FinancialLog, FinancialRecord
from branchfin.services import financial_service
from branchfin.time_utils import business_today
from branchfin.validation import (
    AccessDeniedError,
    ConflictError,
    FinancialInput,
    NotFoundError,
    ValidationError,
    parse_amount,
    validate_financial_payload,
)

from conftest import auth_headers


TODAY = date(2024, 5, 10)


def payload(day: date, earnings=500, expenses=200, summary="ok") -> dict:
    return {"date": day.isoformat(), "earnings": earnings, "expenses": expenses, "summary": summary}


class TestValidation:

    def test_valid_payload(self):
        data = validate_financial_payload(payload(TODAY, "500.5", 0), today=TODAY)
        assert data == FinancialInput(TODAY, Decimal("500.50"), Decimal("0.00"), "ok")

    @pytest.mark.parametrize("value", [None, "", "abc", -1, True, float("nan"), float("inf"), 1e30, "1e27", 10**30, "1000000000000.00"])
    def test_bad_amounts_rejected(self, value):
        with pytest.raises(ValidationError):
            parse_amount("earnings", value)

    @pytest.mark.parametrize("summary", [None, "", "   "])
    def test_summary_required(self, summary):
        with pytest.raises(ValidationError):
            validate_financial_payload(payload(TODAY, summary=summary), today=TODAY)

    @pytest.mark.parametrize("raw", ["2024/05/10", "10-05-2024", "2024-5-1", "2024-02-30", 20240510, "2024-W18-3", "2024-123", " 2024-05-1"])
    def test_bad_dates_rejected(self, raw):
        with pytest.raises(ValidationError):
            validate_financial_payload({"date": raw, "earnings": 1, "expenses": 1, "summary": "x"}, today=TODAY)

    def test_future_date_rejected(self):
        with pytest.raises(ValidationError, match="future"):
            validate_financial_payload(payload(TODAY + timedelta(days=1)), today=TODAY)

    def test_non_dict_rejected(self):
        with pytest.raises(ValidationError):
            validate_financial_payload(["not", "a", "dict"], today=TODAY)


class TestUpsert:

    def test_insert_then_update_in_place(self, db_session, branch_a):
        first = FinancialInput(TODAY, Decimal("500.00"), Decimal("200.00"), "ok")
        record, created = financial_service.upsert_record(branch_a.id, first)
        db_session.commit()
        assert created is True

        second = FinancialInput(TODAY, Decimal("650.00"), Decimal("210.00"), "revised")
        again, created_again = financial_service.upsert_record(branch_a.id, second)
        db_session.commit()

        assert created_again is False
        assert again.id == record.id
        assert db_session.query(FinancialRecord).filter_by(branch_id=branch_a.id).count() == 1
        assert again.earnings == Decimal("650.00")
        assert again.summary == "revised"

    def test_same_date_other_branch_is_separate(self, db_session, branch_a, branch_b):
        data = FinancialInput(TODAY, Decimal("1.00"), Decimal("1.00"), "x")
        financial_service.upsert_record(branch_a.id, data)
        financial_service.upsert_record(branch_b.id, data)
        db_session.commit()
        assert db_session.query(FinancialRecord).count() == 2

    def test_storage_rejects_duplicate_branch_date(self, db_session, branch_a, make_record):
        make_record(branch_a, TODAY)
        db_session.add(FinancialRecord(
            branch_id=branch_a.id,
            date=TODAY,
            earnings=Decimal("1.00"),
            expenses=Decimal("1.00"),
            summary="dup",
        ))
        with pytest.raises(IntegrityError):
            db_session.flush()
        db_session.rollback()
        assert db_session.query(FinancialRecord).filter_by(branch_id=branch_a.id).count() == 1


class TestLockedUpsert:
    """Backends without ON CONFLICT: row lock, savepoint insert."""

    @pytest.fixture(autouse=True)
    def other_dialect(self, monkeypatch):
        monkeypatch.setattr(financial_service, "dialect_name", lambda: "other")

    def test_insert_then_update_in_place(self, db_session, branch_a):
        record, created = financial_service.upsert_record(
            branch_a.id, FinancialInput(TODAY, Decimal("10.00"), Decimal("1.00"), "first")
        )
        db_session.commit()
        assert created is True

        again, created_again = financial_service.upsert_record(
            branch_a.id, FinancialInput(TODAY, Decimal("20.00"), Decimal("2.00"), "second")
        )
        db_session.commit()

        assert created_again is False
        assert again.id == record.id
        assert again.earnings == Decimal("20.00")
        assert again.summary == "second"
        assert db_session.query(FinancialRecord).count() == 1

    def test_lost_insert_race_is_conflict(self, db_session, monkeypatch, branch_a, make_record):
        make_record(branch_a, TODAY, summary="winner")
        # The lock read misses the row, as if the other writer committed after it
        monkeypatch.setattr(financial_service, "lock_for_update", lambda query: query.filter(false()))

        with pytest.raises(ConflictError):
            financial_service.upsert_record(
                branch_a.id, FinancialInput(TODAY, Decimal("5.00"), Decimal("5.00"), "loser")
            )

        db_session.rollback()
        records = db_session.query(FinancialRecord).filter_by(branch_id=branch_a.id).all()
        assert [r.summary for r in records] == ["winner"]

    def test_direct_write_tags_follow_locked_path(self, db_session, staff, branch_a):
        financial_service.submit_financials(staff, branch_a.id, payload(TODAY), today=TODAY)
        financial_service.submit_financials(staff, branch_a.id, payload(TODAY, earnings=900), today=TODAY)
        actions = [log.action for log in db_session.query(FinancialLog).order_by(FinancialLog.id)]
        assert actions == ["FINANCIAL_DATA_ADDED", "FINANCIAL_DATA_UPDATED"]


class TestSubmitFinancials:

    def test_staff_today_adds_then_updates(self, db_session, staff, branch_a):
        outcome, record = financial_service.submit_financials(staff, branch_a.id, payload(TODAY), today=TODAY)
        assert outcome == financial_service.OUTCOME_ADDED

        outcome, updated = financial_service.submit_financials(
            staff, branch_a.id, payload(TODAY, earnings=800), today=TODAY
        )
        assert outcome == financial_service.OUTCOME_UPDATED
        assert updated.id == record.id

        actions = [log.action for log in db_session.query(FinancialLog).order_by(FinancialLog.id)]
        assert actions == ["FINANCIAL_DATA_ADDED", "FINANCIAL_DATA_UPDATED"]
        assert db_session.query(FinancialLog).order_by(FinancialLog.id.desc()).first().data["earnings"] == 800.0

    def test_staff_yesterday_with_record_opens_change_request(self, db_session, staff, branch_a, make_record):
        yesterday = TODAY - timedelta(days=1)
        make_record(branch_a, yesterday)

        outcome, change_request = financial_service.submit_financials(
            staff, branch_a.id, payload(yesterday, earnings=999), today=TODAY
        )

        assert outcome == financial_service.OUTCOME_CHANGE_REQUEST
        assert change_request.status == "pending"
        assert change_request.old_data["earnings"] == 100.0
        assert change_request.new_data["earnings"] == 999.0
        # Record untouched until approval
        assert db_session.query(FinancialRecord).one().earnings == Decimal("100.00")
        assert db_session.query(FinancialLog).count() == 0

    def test_staff_old_empty_date_snapshots_nothing(self, staff, branch_a):
        outcome, change_request = financial_service.submit_financials(
            staff, branch_a.id, payload(TODAY - timedelta(days=5)), today=TODAY
        )
        assert outcome == financial_service.OUTCOME_CHANGE_REQUEST
        assert change_request.old_data is None

    def test_manager_writes_old_dates_directly(self, manager, branch_a):
        outcome, _ = financial_service.submit_financials(
            manager, branch_a.id, payload(TODAY - timedelta(days=40)), today=TODAY
        )
        assert outcome == financial_service.OUTCOME_ADDED

    def test_manager_outside_assignment_denied(self, db_session, manager, branch_b):
        with pytest.raises(AccessDeniedError):
            financial_service.submit_financials(manager, branch_b.id, payload(TODAY), today=TODAY)
        assert db_session.query(FinancialRecord).count() == 0

    def test_admin_missing_branch_is_not_found(self, admin):
        with pytest.raises(NotFoundError):
            financial_service.submit_financials(admin, 424242, payload(TODAY), today=TODAY)

    def test_future_date_never_writes(self, db_session, admin, branch_a):
        with pytest.raises(ValidationError):
            financial_service.submit_financials(admin, branch_a.id, payload(TODAY + timedelta(days=1)), today=TODAY)
        assert db_session.query(FinancialRecord).count() == 0
        assert db_session.query(ChangeRequest).count() == 0


class TestBranchRecordRoutes:

    def test_submit_then_read_back(self, client, staff_headers, branch_a):
        today = business_today()
        resp = client.post(f"/api/branch/{branch_a.id}", json=payload(today), headers=staff_headers)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["status"] == "added"
        assert body["existing_record_id"] == body["record"]["id"]

        resp = client.post(f"/api/branch/{branch_a.id}", json=payload(today, earnings=600), headers=staff_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "updated"

        resp = client.get(f"/api/branch/{branch_a.id}", headers=staff_headers)
        assert resp.status_code == 200
        records = resp.get_json()["records"]
        assert len(records) == 1
        assert records[0]["earnings"] == 600.0
        assert records[0]["expenses"] == 200.0
        assert records[0]["date"] == today.isoformat()

    def test_outside_window_returns_accepted(self, client, staff_headers, branch_a):
        old = business_today() - timedelta(days=3)
        resp = client.post(f"/api/branch/{branch_a.id}", json=payload(old), headers=staff_headers)
        assert resp.status_code == 202
        assert resp.get_json()["change_request"]["status"] == "pending"

    def test_validation_error_is_400(self, client, staff_headers, branch_a):
        resp = client.post(
            f"/api/branch/{branch_a.id}",
            json={"date": business_today().isoformat(), "earnings": -5, "expenses": 1, "summary": "x"},
            headers=staff_headers,
        )
        assert resp.status_code == 400
        assert "earnings" in resp.get_json()["error"]

    def test_staff_cannot_read_other_branch(self, client, staff_headers, branch_b):
        resp = client.get(f"/api/branch/{branch_b.id}", headers=staff_headers)
        assert resp.status_code == 403

    def test_admin_missing_branch_404(self, client, admin_headers):
        resp = client.post("/api/branch/999999", json=payload(business_today()), headers=admin_headers)
        assert resp.status_code == 404

    def test_pending_user_forbidden(self, client, pending_headers, branch_a):
        resp = client.post(f"/api/branch/{branch_a.id}", json=payload(business_today()), headers=pending_headers)
        assert resp.status_code == 403

    def test_date_filter(self, client, admin_headers, branch_a, make_record):
        today = business_today()
        make_record(branch_a, today)
        make_record(branch_a, today - timedelta(days=10))
        start = (today - timedelta(days=2)).isoformat()
        resp = client.get(f"/api/branch/{branch_a.id}?from={start}", headers=admin_headers)
        assert resp.status_code == 200
        assert [r["date"] for r in resp.get_json()["records"]] == [today.isoformat()]

    def test_manager_sees_new_record_immediately(self, client, admin, manager_headers, branch_a):
        today = business_today()
        client.post(f"/api/branch/{branch_a.id}", json=payload(today), headers=auth_headers(admin))
        resp = client.get(f"/api/branch/{branch_a.id}", headers=manager_headers)
        assert len(resp.get_json()["records"]) == 1

    @pytest.mark.parametrize("field,value", [
        ("earnings", 1e30),
        ("expenses", "1e27"),
        ("date", "2024-W18-3"),
    ])
    def test_out_of_range_values_are_400(self, client, db_session, admin_headers, branch_a, field, value):
        body = payload(business_today())
        body[field] = value
        resp = client.post(f"/api/branch/{branch_a.id}", json=body, headers=admin_headers)
        assert resp.status_code == 400
        assert field in resp.get_json()["error"]
        assert db_session.query(FinancialRecord).count() == 0
