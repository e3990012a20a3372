from __future__ import annotations

from ..extensions import db
from branchfin.time_utils import to_utc_z, to_iso_date


class FinancialRecord(db.Model):
    """
    Earnings/expenses/summary for one branch on one date.

    At most one row per (branch_id, date); writers go through the atomic
    upsert in financial_service rather than read-then-insert.
    """
    __tablename__ = "branch_financials"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "date", name="uq_branch_financials_branch_date"),
        db.Index("ix_branch_financials_date", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)

    earnings = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    expenses = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    summary = db.Column(db.Text, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    branch = db.relationship("Branch", backref=db.backref("financial_records", lazy=True))

    def snapshot(self) -> dict:
        """Values as stored in change-request and log payloads."""
        return {
            "date": to_iso_date(self.date),
            "earnings": float(self.earnings),
            "expenses": float(self.expenses),
            "summary": self.summary,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "date": to_iso_date(self.date),
            "earnings": float(self.earnings),
            "expenses": float(self.expenses),
            "summary": self.summary,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ChangeRequest(db.Model):
    """
    Proposed edit to a FinancialRecord by a submitter without direct write access.

    DESIGN:
    - status: pending -> approved | rejected | cancelled (all terminal)
    - old_data snapshots the record at submission time (null if none existed)
    - new_data holds the proposed values; applied only on approval
    - transitions are guarded on status = 'pending' in the UPDATE itself
    """
    __tablename__ = "financial_change_requests"
    __table_args__ = (
        db.Index("ix_financial_change_requests_status", "status"),
        db.Index("ix_financial_change_requests_branch_status", "branch_id", "status"),
        db.Index("ix_financial_change_requests_requester", "requester_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    requester_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)
    requested_date = db.Column(db.Date, nullable=False)

    old_data = db.Column(db.JSON, nullable=True)
    new_data = db.Column(db.JSON, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    decided_by_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decision_note = db.Column(db.Text, nullable=True)

    requester = db.relationship("Profile", foreign_keys=[requester_id])
    decided_by = db.relationship("Profile", foreign_keys=[decided_by_id])
    branch = db.relationship("Branch", backref=db.backref("change_requests", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requester_id": self.requester_id,
            "branch_id": self.branch_id,
            "requested_date": to_iso_date(self.requested_date),
            "old_data": self.old_data,
            "new_data": self.new_data,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "decided_by_id": self.decided_by_id,
            "decided_at": to_utc_z(self.decided_at) if self.decided_at else None,
            "decision_note": self.decision_note,
        }


class FinancialLog(db.Model):
    """
    Append-only audit entry for a committed financial mutation.

    IMMUTABLE: rows are inserted by audit_service and never updated or deleted.
    """
    __tablename__ = "financial_logs"
    __table_args__ = (
        db.Index("ix_financial_logs_branch_created", "branch_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)
    profile_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)
    action = db.Column(db.String(64), nullable=False, index=True)
    data = db.Column(db.JSON, nullable=False)
    change_request_id = db.Column(db.Integer, db.ForeignKey("financial_change_requests.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "profile_id": self.profile_id,
            "action": self.action,
            "data": self.data,
            "change_request_id": self.change_request_id,
            "created_at": to_utc_z(self.created_at),
        }
