# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/branchfin/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Password strength validation on sign-up and password change
- Session management with token-based auth
- Self sign-up lands in role 'user' (authorization pending)
- Failed and successful logins recorded in security_events
"""

from flask import Blueprint, request, jsonify, current_app, g, redirect

from ..services import auth_service
from ..services import session_service
from ..services import policy_service
from ..validation import ServiceError, json_object
from ..decorators import require_auth, bearer_token, client_context


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
logout_bp = Blueprint("logout", __name__)


def _session_payload(profile, session, token) -> dict:
    return {
        "profile": profile.to_dict(),
        "capabilities": sorted(policy_service.get_capabilities(profile)),
        "token": token,
        "session": session.to_dict(),
    }


@auth_bp.post("/signup")
def signup_route():
    """
    Self sign-up.

    Creates a profile with role 'user'; an admin grants a real role later.
    """
    try:
        data = json_object(request.get_json(silent=True))
        profile = auth_service.create_profile(
            email=data.get("email"),
            password=data.get("password"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
        )
        session, token = session_service.create_session(
            profile_id=profile.id,
            **client_context(),
        )
        payload = _session_payload(profile, session, token)
        payload["message"] = "Sign-up successful; authorization pending"
        return jsonify(payload), 201

    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to sign up profile")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email and password and create a session token.

    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = json_object(request.get_json(silent=True))
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        ctx = client_context()
        profile = auth_service.authenticate(email, password)

        if not profile:
            policy_service.log_security_event(
                profile_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                reason="Invalid credentials",
                **ctx,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        policy_service.log_security_event(
            profile_id=profile.id,
            event_type="LOGIN_SUCCESS",
            success=True,
            resource=request.path,
            **ctx,
        )

        session, token = session_service.create_session(profile_id=profile.id, **ctx)
        payload = _session_payload(profile, session, token)
        payload["message"] = "Login successful"
        return jsonify(payload), 200

    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to login profile")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session token."""
    try:
        session_service.revoke_session(bearer_token(), reason="User logout")
        return jsonify({"message": "Logout successful"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout")
        return jsonify({"error": "Internal server error"}), 500


@logout_bp.post("/logout")
def logout_redirect_route():
    """
    End the session (if any) and send the browser to the login page.

    Never fails: an unknown or missing token still redirects.
    """
    token = bearer_token()
    if token:
        try:
            session_service.revoke_session(token, reason="User logout")
        except Exception:
            current_app.logger.exception("Failed to revoke session during logout redirect")
    return redirect(current_app.config.get("LOGIN_REDIRECT_PATH", "/login"), code=302)


@auth_bp.post("/validate")
@require_auth
def validate_route():
    """Current profile, capabilities and accessible branches for the session."""
    profile = g.current_profile
    branches = policy_service.list_accessible_branches(profile)
    return jsonify({
        "valid": True,
        "profile": profile.to_dict(),
        "capabilities": sorted(policy_service.get_capabilities(profile)),
        "accessible_branches": [{"id": b.id, "name": b.name} for b in branches],
        "authorization_pending": policy_service.is_pending_role(profile),
    }), 200


@auth_bp.get("/profile")
@require_auth
def get_profile_route():
    return jsonify({"profile": g.current_profile.to_dict()}), 200


@auth_bp.patch("/profile")
@require_auth
def update_profile_route():
    """Update own first_name, last_name and phone."""
    try:
        profile = auth_service.update_own_profile(g.current_profile, request.get_json(silent=True))
        return jsonify({"profile": profile.to_dict()}), 200
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """
    Verify the current password, store the new one, revoke other sessions.

    Returns:
        200: Password changed
        400: Missing fields or weak new password
        401: Current password incorrect
    """
    try:
        data = json_object(request.get_json(silent=True))
        profile = g.current_profile

        auth_service.change_password(
            profile,
            current_password=data.get("current_password"),
            new_password=data.get("new_password"),
        )
        revoked = session_service.revoke_all_profile_sessions(
            profile.id,
            reason="Password changed",
            keep_session_id=g.session_context.session.id,
        )
        policy_service.log_security_event(
            profile_id=profile.id,
            event_type="PASSWORD_CHANGED",
            success=True,
            resource=request.path,
            **client_context(),
        )
        return jsonify({"message": "Password changed", "sessions_revoked": revoked}), 200

    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/page-access")
@require_auth
def page_access_route():
    """Gateway decision for a UI path (?path=/admin/roles)."""
    path = request.args.get("path") or "/"
    allowed, redirect_to = policy_service.page_access(g.current_profile.role, path)
    return jsonify({"path": path, "allowed": allowed, "redirect": redirect_to}), 200
