"""
Approval Request Blueprint.

Routes:
  POST   /approvals                       – admin uploads a file for approval
  GET    /approvals                       – list (?status=, ?recipient_id=)
  GET    /approvals/stats                 – counts per status + overdue
  GET    /approvals/<aid>                 – single request
  POST   /approvals/<aid>/respond         – recipient approves / rejects
  POST   /approvals/<aid>/comments        – add to the discussion thread

Layer contract:
    - Blueprint: parse input, call approval_service, return JSON.
    - All writes, validation rules and side effects live in the service.
"""

from flask import Blueprint, jsonify, request

from partnerhub.blueprints import register_error_handlers
from partnerhub.services import approval_service
from partnerhub.utils.helpers import parse_date

approval_bp = Blueprint("approval_bp", __name__, url_prefix="/api/v1")
register_error_handlers(approval_bp)


def _current_user():
    """Best-effort current user extraction (auth is handled upstream)."""
    return (
        request.headers.get("X-User", "")
        or request.headers.get("X-Forwarded-User", "")
        or "system"
    )


@approval_bp.route("/approvals", methods=["POST"])
def create_approval():
    """Body: { title, recipients: [..], deadline?, description?, file_url?, uploaded_by? }"""
    data = request.get_json(silent=True) or {}
    recipients = data.get("recipients")
    if recipients is not None and not isinstance(recipients, list):
        return jsonify({"error": "recipients must be an array"}), 400

    approval = approval_service.create_approval_request(
        title=data.get("title", ""),
        uploaded_by=data.get("uploaded_by") or _current_user(),
        recipients=[str(r) for r in (recipients or [])],
        deadline=data.get("deadline"),
        description=data.get("description", ""),
        file_url=data.get("file_url"),
    )
    return jsonify(approval), 201


@approval_bp.route("/approvals", methods=["GET"])
def list_approvals():
    approvals = approval_service.list_approvals(
        status=request.args.get("status") or None,
        recipient_id=request.args.get("recipient_id") or None,
    )
    return jsonify(approvals), 200


@approval_bp.route("/approvals/stats", methods=["GET"])
def approval_stats():
    today = request.args.get("today")
    if today and parse_date(today) is None:
        return jsonify({"error": "today must be YYYY-MM-DD"}), 400
    return jsonify(approval_service.get_approval_stats(parse_date(today))), 200


@approval_bp.route("/approvals/<int:aid>", methods=["GET"])
def get_approval(aid):
    return jsonify(approval_service.get_approval(aid)), 200


@approval_bp.route("/approvals/<int:aid>/respond", methods=["POST"])
def respond(aid):
    """Body: { recipient_id, response: "approved"|"rejected", comment?, version? }"""
    data = request.get_json(silent=True) or {}
    recipient_id = data.get("recipient_id")
    if not recipient_id:
        return jsonify({"error": "recipient_id is required"}), 400
    version = data.get("version")
    if version is not None and (isinstance(version, bool) or not isinstance(version, int)):
        return jsonify({"error": "version must be an integer"}), 400

    approval = approval_service.respond(
        aid,
        str(recipient_id),
        data.get("response", ""),
        comment=data.get("comment"),
        actor=data.get("actor") or request.headers.get("X-User") or None,
        expected_version=version,
    )
    return jsonify(approval), 200


@approval_bp.route("/approvals/<int:aid>/comments", methods=["POST"])
def add_comment(aid):
    """Body: { text, author? }"""
    data = request.get_json(silent=True) or {}
    approval = approval_service.add_comment(
        aid,
        data.get("author") or _current_user(),
        data.get("text", ""),
    )
    return jsonify(approval), 201
