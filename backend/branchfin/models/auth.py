from __future__ import annotations

from ..extensions import db
from branchfin.time_utils import to_utc_z


class Profile(db.Model):
    """
    One profile per authenticated identity.

    role is one of admin, manager, branch_staff, user (see permissions.ROLES).
    staff_branch_id is only meaningful while role == branch_staff; manager
    scope lives in ManagerBranchAssignment.

    WHY: Every financial mutation must be attributable. No shared logins.
    """
    __tablename__ = "profiles"
    __table_args__ = (
        db.Index("ix_profiles_role", "role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    role = db.Column(db.String(32), nullable=False, default="user")
    staff_branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    staff_branch = db.relationship("Branch", backref=db.backref("staff", lazy=True))

    def __repr__(self) -> str:
        return f"<Profile id={self.id} email={self.email!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "role": self.role,
            "staff_branch_id": self.staff_branch_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class ManagerBranchAssignment(db.Model):
    """
    Many-to-many join between managers and the branches they oversee.

    A (manager, branch) pair appears at most once; a second insert is a
    conflict, never a silent no-op.
    """
    __tablename__ = "manager_branch_assignments"
    __table_args__ = (
        db.UniqueConstraint("manager_id", "branch_id", name="uq_manager_branch_assignments"),
        db.Index("ix_manager_branch_assignments_manager", "manager_id"),
        db.Index("ix_manager_branch_assignments_branch", "branch_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    manager_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)
    assigned_by_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    manager = db.relationship("Profile", foreign_keys=[manager_id], backref=db.backref("manager_assignments", lazy=True))
    branch = db.relationship("Branch", backref=db.backref("manager_assignments", lazy=True))
    assigned_by = db.relationship("Profile", foreign_keys=[assigned_by_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "manager_id": self.manager_id,
            "branch_id": self.branch_id,
            "assigned_by_id": self.assigned_by_id,
            "assigned_at": to_utc_z(self.assigned_at),
        }


class SessionToken(db.Model):
    """
    Opaque bearer session tokens.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - 24-hour absolute timeout
    - 2-hour idle timeout
    - Revocable on logout, password change or deactivation
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_profile_active", "profile_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    profile_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    profile = db.relationship("Profile", backref=db.backref("session_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "profile_id": self.profile_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
