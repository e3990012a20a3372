# Overview: Flask API routes for branches, their financial records and assignments.

from flask import Blueprint, jsonify, request, g, current_app

from ..extensions import db
from ..decorators import require_auth, require_capability, require_any_capability, client_context
from ..services import (
    assignment_service,
    branch_service,
    financial_service,
    policy_service,
)
from ..validation import ServiceError, json_object, parse_date_field


branches_bp = Blueprint("branches", __name__, url_prefix="/api/branch")


def _error(exc: ServiceError):
    db.session.rollback()
    return jsonify({"error": str(exc)}), exc.status_code


def _internal(message: str):
    db.session.rollback()
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500


@branches_bp.get("")
@require_auth
@require_capability("VIEW_BRANCHES")
def list_branches():
    """Branches in the caller's accessible set."""
    branches = policy_service.list_accessible_branches(g.current_profile)
    return jsonify({"branches": [branch.to_dict() for branch in branches]}), 200


@branches_bp.post("")
@require_auth
@require_capability("MANAGE_BRANCHES")
def create_branch():
    """
    Create a branch.

    Returns:
        201: Branch created
        400: Missing name
        409: An active branch already uses the name
    """
    try:
        data = json_object(request.get_json(silent=True))
        branch = branch_service.create_branch(data.get("name"), data.get("address"))
        return jsonify(branch.to_dict()), 201
    except ServiceError as exc:
        return _error(exc)
    except Exception:
        return _internal("Failed to create branch")


@branches_bp.get("/<int:branch_id>")
@require_auth
@require_capability("VIEW_FINANCIALS")
def list_branch_records(branch_id: int):
    """Financial records of one branch (?from=YYYY-MM-DD&to=YYYY-MM-DD)."""
    try:
        branch = policy_service.require_branch_access(
            g.current_profile,
            branch_id,
            resource=request.path,
            **client_context(),
        )
        records = financial_service.list_records(
            branch_id,
            start=parse_date_field("from", request.args.get("from"), required=False),
            end=parse_date_field("to", request.args.get("to"), required=False),
        )
        return jsonify({
            "branch": branch.to_dict(),
            "records": [record.to_dict() for record in records],
        }), 200
    except ServiceError as exc:
        return _error(exc)
    except Exception:
        return _internal("Failed to list financial records")


@branches_bp.post("/<int:branch_id>")
@require_auth
@require_any_capability("WRITE_FINANCIALS", "SUBMIT_CHANGE_REQUESTS")
def submit_branch_record(branch_id: int):
    """
    Record earnings, expenses and summary for one date.

    Request body:
    {
        "date": "YYYY-MM-DD",
        "earnings": number,
        "expenses": number,
        "summary": str
    }

    Returns:
        201: Record added
        200: Record updated in place
        202: Outside the direct write window; change request opened
        400: Validation error
        403: Branch outside scope
        404: Branch missing (admin)
    """
    try:
        outcome, obj = financial_service.submit_financials(
            g.current_profile,
            branch_id,
            request.get_json(silent=True),
            **client_context(),
        )
    except ServiceError as exc:
        return _error(exc)
    except Exception:
        return _internal("Failed to record financial data")

    if outcome == financial_service.OUTCOME_CHANGE_REQUEST:
        return jsonify({"status": outcome, "change_request": obj.to_dict()}), 202

    status_code = 201 if outcome == financial_service.OUTCOME_ADDED else 200
    return jsonify({
        "status": outcome,
        "record": obj.to_dict(),
        "existing_record_id": obj.id,
    }), status_code


@branches_bp.patch("/<int:branch_id>")
@require_auth
@require_capability("MANAGE_BRANCHES")
def update_branch(branch_id: int):
    try:
        branch = branch_service.update_branch(branch_id, json_object(request.get_json(silent=True)))
        return jsonify(branch.to_dict()), 200
    except ServiceError as exc:
        return _error(exc)
    except Exception:
        return _internal("Failed to update branch")


@branches_bp.delete("/<int:branch_id>")
@require_auth
@require_capability("MANAGE_BRANCHES")
def remove_branch(branch_id: int):
    """Archive a branch, or delete it with ?hard=true. Assignments are cleared either way."""
    hard = request.args.get("hard", "false").lower() == "true"
    try:
        result = branch_service.remove_branch(branch_id, hard=hard)
        return jsonify(result), 200
    except ServiceError as exc:
        return _error(exc)
    except Exception:
        return _internal("Failed to remove branch")


# =============================================================================
# MANAGER ASSIGNMENTS
# =============================================================================

@branches_bp.get("/<int:branch_id>/managers")
@require_auth
@require_capability("ASSIGN_MANAGERS")
def list_managers(branch_id: int):
    try:
        return jsonify({"managers": assignment_service.list_branch_managers(branch_id)}), 200
    except ServiceError as exc:
        return _error(exc)


@branches_bp.post("/<int:branch_id>/managers")
@require_auth
@require_capability("ASSIGN_MANAGERS")
def assign_manager(branch_id: int):
    try:
        data = json_object(request.get_json(silent=True))
        assignment = assignment_service.assign_manager(
            g.current_profile,
            branch_id,
            data.get("profile_id"),
        )
        return jsonify(assignment.to_dict()), 201
    except ServiceError as exc:
        return _error(exc)
    except Exception:
        return _internal("Failed to assign manager")


@branches_bp.delete("/<int:branch_id>/managers/<int:profile_id>")
@require_auth
@require_capability("ASSIGN_MANAGERS")
def unassign_manager(branch_id: int, profile_id: int):
    try:
        assignment_service.unassign_manager(g.current_profile, branch_id, profile_id)
        return jsonify({"message": "Manager unassigned"}), 200
    except ServiceError as exc:
        return _error(exc)
    except Exception:
        return _internal("Failed to unassign manager")


# =============================================================================
# STAFF ASSIGNMENTS
# =============================================================================

@branches_bp.get("/<int:branch_id>/staff")
@require_auth
@require_capability("ASSIGN_STAFF")
def list_staff(branch_id: int):
    try:
        policy_service.require_branch_access(
            g.current_profile,
            branch_id,
            resource=request.path,
            **client_context(),
        )
        staff = assignment_service.list_branch_staff(branch_id)
        return jsonify({"staff": [profile.to_dict() for profile in staff]}), 200
    except ServiceError as exc:
        return _error(exc)


@branches_bp.post("/<int:branch_id>/staff")
@require_auth
@require_capability("ASSIGN_STAFF")
def assign_staff(branch_id: int):
    try:
        data = json_object(request.get_json(silent=True))
        profile = assignment_service.assign_staff(
            g.current_profile,
            branch_id,
            data.get("profile_id"),
            **client_context(),
        )
        return jsonify(profile.to_dict()), 200
    except ServiceError as exc:
        return _error(exc)
    except Exception:
        return _internal("Failed to assign staff")


@branches_bp.delete("/<int:branch_id>/staff/<int:profile_id>")
@require_auth
@require_capability("ASSIGN_STAFF")
def unassign_staff(branch_id: int, profile_id: int):
    try:
        profile = assignment_service.unassign_staff(
            g.current_profile,
            branch_id,
            profile_id,
            **client_context(),
        )
        return jsonify(profile.to_dict()), 200
    except ServiceError as exc:
        return _error(exc)
    except Exception:
        return _internal("Failed to unassign staff")
