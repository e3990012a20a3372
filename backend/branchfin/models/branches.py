from __future__ import annotations

from ..extensions import db
from branchfin.time_utils import to_utc_z


class Branch(db.Model):
    """
    A physical/organizational unit whose daily financials are tracked.

    Branches are archived rather than deleted once they carry financial
    history. Active (non-archived) names are unique; an archived branch
    frees its name for reuse.
    """
    __tablename__ = "branches"
    __table_args__ = (
        db.Index(
            "uq_branches_active_name",
            "name",
            unique=True,
            sqlite_where=db.text("archived = 0"),
            postgresql_where=db.text("NOT archived"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.Text, nullable=True)

    archived = db.Column(db.Boolean, nullable=False, default=False, index=True)
    archived_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Branch id={self.id} name={self.name!r} archived={self.archived}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "archived": self.archived,
            "archived_at": to_utc_z(self.archived_at) if self.archived_at else None,
            "created_at": to_utc_z(self.created_at),
        }
