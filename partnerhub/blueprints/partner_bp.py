"""
Partner Blueprint — partners, deliverables, submissions, nominations.

Routes:
  GET/POST /partners                                   – list / create partners
  PUT      /partners/<pid>/progress                    – set profile completion
  GET/POST /partners/<pid>/deliverables                – list / define deliverables
  GET/POST /deliverables/<did>/submissions             – version history / upload
  POST     /submissions/<sid>/review                   – approve / reject / revise
  GET/POST /partners/<pid>/nominations                 – list / submit nominations
  GET      /nominations                                – all nominations (?status=)
  PUT      /nominations/<nid>/status                   – admin status change
"""

from flask import Blueprint, jsonify, request

from partnerhub.blueprints import register_error_handlers
from partnerhub.services import partner_service, submission_service
from partnerhub.utils.helpers import parse_bool

partner_bp = Blueprint("partner", __name__, url_prefix="/api/v1")
register_error_handlers(partner_bp)


def _current_user():
    return request.headers.get("X-User", "") or "system"


# ── Partners ─────────────────────────────────────────────────────────────────


@partner_bp.route("/partners", methods=["GET"])
def list_partners():
    return jsonify(partner_service.list_partners(request.args.get("account_manager"))), 200


@partner_bp.route("/partners", methods=["POST"])
def create_partner():
    data = request.get_json(silent=True) or {}
    return jsonify(partner_service.create_partner(data)), 201


@partner_bp.route("/partners/<int:pid>/progress", methods=["PUT"])
def set_progress(pid):
    data = request.get_json(silent=True) or {}
    if "progress_percentage" not in data:
        return jsonify({"error": "progress_percentage is required"}), 400
    return jsonify(partner_service.set_progress(pid, data["progress_percentage"])), 200


# ── Deliverables & submissions ───────────────────────────────────────────────


@partner_bp.route("/partners/<int:pid>/deliverables", methods=["GET"])
def list_deliverables(pid):
    return jsonify(partner_service.list_deliverables(pid)), 200


@partner_bp.route("/partners/<int:pid>/deliverables", methods=["POST"])
def create_deliverable(pid):
    """Body: { title, due_date?, description?, is_required? }"""
    data = request.get_json(silent=True) or {}
    deliverable = submission_service.create_deliverable(
        pid,
        data.get("title", ""),
        due_date=data.get("due_date"),
        description=data.get("description", ""),
        is_required=parse_bool(data.get("is_required"), default=True),
        created_by=_current_user(),
    )
    return jsonify(deliverable), 201


@partner_bp.route("/deliverables/<int:did>/submissions", methods=["GET"])
def submission_history(did):
    history = submission_service.get_version_history(did)
    return jsonify({
        "deliverable_id": did,
        "status": history[0]["status"] if history else None,
        "versions": history,
    }), 200


@partner_bp.route("/deliverables/<int:did>/submissions", methods=["POST"])
def upload_submission(did):
    """Body: { kind: file|url|text, content }"""
    data = request.get_json(silent=True) or {}
    kind = data.get("kind", "file")
    submission = submission_service.submit(
        did, kind, data.get("content", ""), submitted_by=data.get("submitted_by") or _current_user(),
    )
    return jsonify(submission), 201


@partner_bp.route("/submissions/<int:sid>/review", methods=["POST"])
def review_submission(sid):
    """Body: { decision: approved|rejected|revision_required, comment? }"""
    data = request.get_json(silent=True) or {}
    decision = data.get("decision")
    if not decision:
        return jsonify({"error": "decision is required"}), 400
    submission = submission_service.review_submission(
        sid, decision, reviewer=data.get("reviewer") or _current_user(), comment=data.get("comment"),
    )
    return jsonify(submission), 200


# ── Nominations ──────────────────────────────────────────────────────────────


@partner_bp.route("/partners/<int:pid>/nominations", methods=["GET"])
def list_partner_nominations(pid):
    return jsonify(partner_service.list_nominations(partner_id=pid)), 200


@partner_bp.route("/partners/<int:pid>/nominations", methods=["POST"])
def create_nomination(pid):
    data = request.get_json(silent=True) or {}
    return jsonify(partner_service.create_nomination(pid, data)), 201


@partner_bp.route("/nominations", methods=["GET"])
def list_nominations():
    return jsonify(partner_service.list_nominations(status=request.args.get("status"))), 200


@partner_bp.route("/nominations/<int:nid>/status", methods=["PUT"])
def update_nomination_status(nid):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        return jsonify({"error": "status is required"}), 400
    return jsonify(partner_service.update_nomination_status(nid, status, actor=_current_user())), 200
