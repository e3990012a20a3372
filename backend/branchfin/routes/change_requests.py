# Overview: Flask API routes for the change-request workflow and approvals badge.

from flask import Blueprint, jsonify, request, g, current_app

from ..extensions import db
from ..decorators import require_auth, require_capability, client_context
from ..services import change_request_service
from ..validation import ServiceError, json_object


change_requests_bp = Blueprint("change_requests", __name__, url_prefix="/api/change-requests")
approvals_bp = Blueprint("approvals", __name__, url_prefix="/api/approvals")


def _error(exc: ServiceError):
    db.session.rollback()
    return jsonify({"error": str(exc)}), exc.status_code


@change_requests_bp.get("")
@require_auth
@require_capability("APPROVE_CHANGE_REQUESTS")
def list_change_requests():
    """
    Requests the caller may decide, newest first.

    Query params:
    - status: pending (default), approved, rejected, cancelled or all
    """
    try:
        items = change_request_service.list_change_requests(
            g.current_profile,
            status=request.args.get("status", change_request_service.PENDING),
        )
        return jsonify({"change_requests": items, "count": len(items)}), 200
    except ServiceError as exc:
        return _error(exc)


@change_requests_bp.get("/mine")
@require_auth
def list_my_change_requests():
    try:
        items = change_request_service.list_own_change_requests(
            g.current_profile,
            status=request.args.get("status"),
        )
        return jsonify({"change_requests": items, "count": len(items)}), 200
    except ServiceError as exc:
        return _error(exc)


@change_requests_bp.post("/<int:request_id>/approve")
@require_auth
@require_capability("APPROVE_CHANGE_REQUESTS")
def approve_change_request(request_id: int):
    """
    Approve and apply a pending request.

    Returns:
        200: Approved; record upserted and audit entry written
        403: Not an approver for the request's branch
        404: Unknown request
        409: Request is not pending
        500: A workflow step failed (named in the error); nothing applied
    """
    try:
        data = json_object(request.get_json(silent=True))
        change_request = change_request_service.approve_change_request(
            g.current_profile,
            request_id,
            note=data.get("note"),
            **client_context(),
        )
        return jsonify(change_request.to_dict()), 200
    except ServiceError as exc:
        return _error(exc)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to approve change request")
        return jsonify({"error": "Internal server error"}), 500


@change_requests_bp.post("/<int:request_id>/reject")
@require_auth
@require_capability("APPROVE_CHANGE_REQUESTS")
def reject_change_request(request_id: int):
    try:
        data = json_object(request.get_json(silent=True))
        change_request = change_request_service.reject_change_request(
            g.current_profile,
            request_id,
            note=data.get("note"),
            **client_context(),
        )
        return jsonify(change_request.to_dict()), 200
    except ServiceError as exc:
        return _error(exc)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to reject change request")
        return jsonify({"error": "Internal server error"}), 500


@change_requests_bp.post("/<int:request_id>/cancel")
@require_auth
def cancel_change_request(request_id: int):
    try:
        change_request = change_request_service.cancel_change_request(
            g.current_profile,
            request_id,
            **client_context(),
        )
        return jsonify(change_request.to_dict()), 200
    except ServiceError as exc:
        return _error(exc)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel change request")
        return jsonify({"error": "Internal server error"}), 500


@approvals_bp.get("/pending-count")
@require_auth
def pending_count():
    """Pending requests the caller could decide (0 for non-approvers)."""
    try:
        return jsonify({"count": change_request_service.pending_count(g.current_profile)}), 200
    except Exception:
        current_app.logger.exception("Failed to count pending change requests")
        return jsonify({"error": "Internal server error"}), 500
