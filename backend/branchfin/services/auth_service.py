# Overview: Service-layer operations for identity; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every financial mutation must be attributable. Uses bcrypt for password
hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters with upper, lower, digit and special char
- Session tokens managed separately (see session_service.py)
- Self sign-up lands in role 'user' until an admin grants a role
"""

import bcrypt
import re
from flask import current_app, has_app_context

from ..extensions import db
from ..models import Profile
from ..permissions import USER, validate_role
from ..validation import (
    AuthenticationError,
    ConflictError,
    ValidationError,
    optional_text,
    require_text,
)
from branchfin.time_utils import utcnow


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email) -> str:
    email = require_text("email", email, max_length=255).lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("email is not a valid address")
    return email


def create_profile(
    *,
    email: str,
    password: str,
    first_name: str | None = None,
    last_name: str | None = None,
    role: str = USER,
) -> Profile:
    """
    Create a profile with a bcrypt password hash.

    Raises:
        ValidationError: bad email, weak password, unknown role
        ConflictError: email already registered
    """
    email = normalize_email(email)
    if not validate_role(role):
        raise ValidationError(f"Unknown role: {role}")

    if db.session.query(Profile).filter_by(email=email).first():
        raise ConflictError("An account with this email already exists")

    profile = Profile(
        email=email,
        password_hash=hash_password(password),
        first_name=optional_text("first_name", first_name, max_length=100),
        last_name=optional_text("last_name", last_name, max_length=100),
        role=role,
    )

    db.session.add(profile)
    db.session.commit()
    return profile


def authenticate(email: str, password: str) -> Profile | None:
    """
    Authenticate by email and password.

    Returns the Profile if credentials are valid and the profile is active,
    None otherwise. Updates last_login_at on success.
    """
    if not email or not password:
        return None

    profile = db.session.query(Profile).filter(
        Profile.email == str(email).strip().lower(),
        Profile.is_active.is_(True),
    ).first()

    if not profile:
        return None

    if verify_password(password, profile.password_hash):
        profile.last_login_at = utcnow()
        db.session.commit()
        return profile

    return None


def change_password(profile: Profile, *, current_password: str, new_password: str) -> Profile:
    """
    Verify the current password, then store the new one.

    Raises:
        ValidationError: missing fields or weak new password
        AuthenticationError: current password is wrong
    """
    if not current_password or not new_password:
        raise ValidationError("current_password and new_password are required")

    if not verify_password(current_password, profile.password_hash):
        raise AuthenticationError("Current password is incorrect")

    profile.password_hash = hash_password(new_password)
    db.session.commit()
    return profile


def update_own_profile(profile: Profile, data: dict) -> Profile:
    """Self-service update of name and phone. Other fields are not writable here."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    allowed = {"first_name", "last_name", "phone"}
    unknown = set(data) - allowed
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    if "first_name" in data:
        profile.first_name = optional_text("first_name", data["first_name"], max_length=100)
    if "last_name" in data:
        profile.last_name = optional_text("last_name", data["last_name"], max_length=100)
    if "phone" in data:
        profile.phone = optional_text("phone", data["phone"], max_length=32)

    db.session.commit()
    return profile


def list_profiles() -> list[Profile]:
    return db.session.query(Profile).order_by(Profile.email.asc()).all()
