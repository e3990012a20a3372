# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/branchfin/routes/admin.py
"""
Admin routes for profile and role management.

All endpoints require authentication and MANAGE_ROLES.
Also exposes the role table for the roles screen.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..services import assignment_service, auth_service
from ..validation import ServiceError, json_object
from ..decorators import require_auth, require_capability, client_context
from ..permissions import (
    ROLES,
    CapabilityCategory,
    capabilities_for_role,
    get_capabilities_by_category,
    get_capability_definition,
)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/profiles")
@require_auth
@require_capability("MANAGE_ROLES")
def list_profiles():
    """
    List all profiles.

    Query params:
    - role: only profiles with this role
    """
    role = request.args.get("role")
    profiles = auth_service.list_profiles()
    if role:
        profiles = [profile for profile in profiles if profile.role == role]
    result = [profile.to_dict() for profile in profiles]
    return jsonify({"profiles": result, "count": len(result)})


@admin_bp.patch("/profiles/<int:profile_id>/role")
@require_auth
@require_capability("MANAGE_ROLES")
def change_role(profile_id: int):
    """
    Change a profile's role.

    Request body:
    {
        "role": "admin" | "manager" | "branch_staff" | "user"
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        profile = assignment_service.change_role(
            g.current_profile,
            profile_id,
            data.get("role"),
            **client_context(),
        )
        return jsonify({"profile": profile.to_dict()}), 200
    except ServiceError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to change role")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/roles")
@require_auth
@require_capability("MANAGE_ROLES")
def list_roles():
    """
    The static role table with each role's capabilities, grouped by category.
    """
    categories = [
        CapabilityCategory.BRANCHES,
        CapabilityCategory.FINANCIALS,
        CapabilityCategory.APPROVALS,
        CapabilityCategory.REPORTING,
        CapabilityCategory.USERS,
    ]
    roles = []
    for role in ROLES:
        granted = capabilities_for_role(role)
        grouped = {}
        for category in categories:
            codes = [cap[0] for cap in get_capabilities_by_category(category) if cap[0] in granted]
            if codes:
                grouped[category] = [get_capability_definition(code) for code in codes]
        roles.append({"role": role, "capabilities": grouped})
    return jsonify({"roles": roles}), 200
