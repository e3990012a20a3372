# backend/branchfin/routes/system.py
"""
Liveness and deployment info.

/health pings the store; /version reports the API version and the business
timezone that defines "today".
"""

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db
from branchfin.time_utils import business_today, to_utc_z, utcnow

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


@system_bp.get("/health")
def health():
    """200 when the store answers, 503 otherwise."""
    try:
        db.session.execute(text("SELECT 1"))
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Store health check failed")
        return jsonify({"status": "unhealthy", "store": "unreachable"}), 503
    return jsonify({"status": "healthy", "store": "ok", "timestamp": to_utc_z(utcnow())}), 200


@system_bp.get("/version")
def version():
    return jsonify({
        "api_version": API_VERSION,
        "business_timezone": current_app.config.get("BUSINESS_TIMEZONE", "UTC"),
        "business_date": business_today().isoformat(),
    }), 200
