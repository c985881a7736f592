"""
Dashboard Metrics Blueprint.

Admin API endpoints for the dashboard and analytics pages.

Scoping: ``?assigned=1,2,3`` restricts every metric to those partners;
``?account_manager=<name>`` resolves the admin's assigned partners.
Without either, all partners are included (super admin view).
"""

from flask import Blueprint, jsonify, request

from partnerhub.blueprints import register_error_handlers
from partnerhub.models.audit import list_activity
from partnerhub.services import dashboard_service as svc
from partnerhub.services.partner_service import assigned_partner_ids
from partnerhub.utils.helpers import parse_id_list

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1")
register_error_handlers(dashboard_bp)


def _assignment():
    """Return (partner_ids | None, error_response | None)."""
    manager = (request.args.get("account_manager") or "").strip()
    if manager:
        # An admin with no assigned partners sees the unrestricted view
        return assigned_partner_ids(manager) or None, None
    try:
        ids = parse_id_list(request.args.get("assigned"))
    except ValueError:
        return None, (jsonify({"error": "assigned must be a comma-separated list of ids"}), 400)
    return ids or None, None


@dashboard_bp.route("/dashboard/metrics", methods=["GET"])
def dashboard_metrics():
    """Full dashboard metrics payload."""
    ids, err = _assignment()
    if err:
        return err
    return jsonify(svc.get_dashboard_metrics(ids)), 200


@dashboard_bp.route("/dashboard/engagement", methods=["GET"])
def partner_engagement():
    """Per-partner engagement table."""
    ids, err = _assignment()
    if err:
        return err
    return jsonify(svc.get_partner_engagement(ids)), 200


@dashboard_bp.route("/activity", methods=["GET"])
def activity_feed():
    """Newest-first activity log, optionally for one partner."""
    partner_id = request.args.get("partner_id", type=int)
    limit = min(request.args.get("limit", 50, type=int), 500)
    rows = list_activity(partner_ids=[partner_id] if partner_id else None, limit=limit)
    return jsonify([r.to_dict() for r in rows]), 200
