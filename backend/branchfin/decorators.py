# Overview: Request and capability decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, policy_service
from .validation import AccessDeniedError
from .permissions import validate_capability_code


def _is_authenticated() -> bool:
    return hasattr(g, 'current_profile') and hasattr(g, 'session_context')


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def client_context() -> dict:
    """ip_address / user_agent keyword arguments for service calls."""
    return {
        "ip_address": request.remote_addr,
        "user_agent": request.headers.get("User-Agent"),
    }


def require_auth(f):
    """
    Require a valid bearer session.

    Sets the following Flask g attributes:
    - g.current_profile: the authenticated Profile (role read live)
    - g.session_context: the full SessionContext object

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - Profile deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_profile = context.profile
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: str):
    """
    Require a role capability. Denials are written to security_events.
    """
    if not validate_capability_code(capability):
        raise ValueError(f"Unknown capability: {capability}")

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            try:
                policy_service.require_capability(
                    g.current_profile,
                    capability,
                    resource=request.path,
                    **client_context(),
                )
            except AccessDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_capability": capability,
                    "message": str(e)
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_any_capability(*capabilities):
    """Require at least one of the listed capabilities."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            profile = g.current_profile
            granted = policy_service.get_capabilities(profile)
            if not any(code in granted for code in capabilities):
                policy_service.log_security_event(
                    profile_id=profile.id,
                    event_type="CAPABILITY_DENIED",
                    success=False,
                    resource=request.path,
                    action=f"ANY_OF:{','.join(capabilities)}",
                    reason=f"Missing any of: {', '.join(capabilities)}",
                    **client_context(),
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_capabilities": list(capabilities),
                    "message": f"Requires any of: {', '.join(capabilities)}"
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
