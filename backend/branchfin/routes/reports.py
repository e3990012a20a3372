# Overview: Flask API routes for the dashboard rollups and the financial audit log.

from flask import Blueprint, jsonify, request, g, current_app

from ..decorators import require_auth, require_capability, client_context
from ..permissions import ADMIN
from ..services import audit_service, branch_service, dashboard_service, policy_service
from ..validation import ServiceError, ValidationError


reports_bp = Blueprint("reports", __name__, url_prefix="/api")


@reports_bp.get("/dashboard-data")
@require_auth
@require_capability("VIEW_DASHBOARD")
def dashboard_data():
    """
    Aggregated rollups for the caller's branches.

    Query params:
    - from: YYYY-MM-DD (required)
    - to: YYYY-MM-DD (defaults to from)
    - branch: branch id (optional; must be accessible)

    Returns:
        200: Rollups (zero-valued when nothing is accessible)
        400: Bad or missing date, to before from
        403: Branch outside the accessible set
    """
    try:
        payload = dashboard_service.get_dashboard(
            g.current_profile,
            start_raw=request.args.get("from"),
            end_raw=request.args.get("to"),
            branch_raw=request.args.get("branch"),
            **client_context(),
        )
        return jsonify(payload), 200
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to build dashboard data")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/financial-logs")
@require_auth
@require_capability("VIEW_FINANCIAL_LOGS")
def financial_logs():
    """
    Audit entries, newest first.

    Query params:
    - branch: branch id (optional; must be accessible)
    - limit: max rows (default 100, max 500)
    - offset: pagination offset
    """
    try:
        limit = request.args.get("limit", audit_service.DEFAULT_LIMIT, type=int)
        offset = request.args.get("offset", 0, type=int)

        branch_id = request.args.get("branch")
        if branch_id is not None:
            try:
                branch_id = int(branch_id)
            except ValueError:
                raise ValidationError("branch must be an integer id")
            if g.current_profile.role == ADMIN:
                # Archived branches keep their history visible to admins
                branch_service.get_branch(branch_id, include_archived=True)
            else:
                policy_service.require_branch_access(
                    g.current_profile,
                    branch_id,
                    resource=request.path,
                    **client_context(),
                )

        logs = audit_service.list_financial_logs(
            g.current_profile,
            branch_id=branch_id,
            limit=limit,
            offset=offset,
        )
        return jsonify({"logs": logs, "count": len(logs)}), 200
    except ServiceError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to list financial logs")
        return jsonify({"error": "Internal server error"}), 500
