"""
Contract & Messaging Blueprint.

Routes:
  GET      /contracts                            – list (?partner_id=, ?status=)
  POST     /partners/<pid>/contracts             – create draft (send=true to send now)
  GET      /contracts/<cid>                      – detail
  POST     /contracts/<cid>/send                 – send / re-send for signature
  POST     /contracts/<cid>/sign                 – partner signs
  PUT      /contracts/<cid>/status               – admin review (under_review / rejected)
  POST     /contracts/<cid>/expire               – expire one contract
  POST     /contracts/expire-due                 – expire contracts past expires_on (?today=)
  GET/POST /contracts/<cid>/messages             – contract discussion
  GET/POST /partners/<pid>/messages              – partner <-> admin conversation
  POST     /partners/<pid>/messages/read         – mark the other side's messages read
  GET      /partners/<pid>/messages/unread-count – unread for a side (?reader_role=)
  GET      /messages/unread                      – partners with unread messages (admin inbox)
"""

from flask import Blueprint, jsonify, request

from partnerhub.blueprints import register_error_handlers
from partnerhub.services import contract_service, message_service
from partnerhub.utils.helpers import parse_bool, parse_date

contract_bp = Blueprint("contract", __name__, url_prefix="/api/v1")
register_error_handlers(contract_bp)


def _current_user():
    return request.headers.get("X-User", "") or "system"


# ── Contracts ────────────────────────────────────────────────────────────────


@contract_bp.route("/contracts", methods=["GET"])
def list_contracts():
    partner_id = request.args.get("partner_id", type=int)
    return jsonify(contract_service.list_contracts(partner_id, request.args.get("status"))), 200


@contract_bp.route("/partners/<int:pid>/contracts", methods=["POST"])
def create_contract(pid):
    """Body: { title, contract_type?, file_url?, expires_on?, notes?, send? }"""
    data = request.get_json(silent=True) or {}
    data["send"] = parse_bool(data.get("send"))
    return jsonify(contract_service.create_contract(pid, data, created_by=_current_user())), 201


@contract_bp.route("/contracts/<int:cid>", methods=["GET"])
def get_contract(cid):
    return jsonify(contract_service.get_contract(cid)), 200


@contract_bp.route("/contracts/<int:cid>/send", methods=["POST"])
def send_contract(cid):
    data = request.get_json(silent=True) or {}
    return jsonify(contract_service.send_contract(cid, actor=_current_user(), file_url=data.get("file_url"))), 200


@contract_bp.route("/contracts/<int:cid>/sign", methods=["POST"])
def sign_contract(cid):
    data = request.get_json(silent=True) or {}
    signed_by = data.get("signed_by") or request.headers.get("X-User", "")
    return jsonify(contract_service.sign_contract(cid, signed_by, data.get("file_url_signed"))), 200


@contract_bp.route("/contracts/<int:cid>/status", methods=["PUT"])
def update_contract_status(cid):
    data = request.get_json(silent=True) or {}
    if not data.get("status"):
        return jsonify({"error": "status is required"}), 400
    contract = contract_service.update_status(
        cid, data["status"], actor=_current_user(), notes=data.get("notes"),
    )
    return jsonify(contract), 200


@contract_bp.route("/contracts/<int:cid>/expire", methods=["POST"])
def expire_contract(cid):
    return jsonify(contract_service.expire_contract(cid, actor=_current_user())), 200


@contract_bp.route("/contracts/expire-due", methods=["POST"])
def expire_due():
    raw = request.args.get("today")
    today = parse_date(raw) if raw else None
    if raw and today is None:
        return jsonify({"error": "today must be YYYY-MM-DD"}), 400
    return jsonify({"expired": contract_service.expire_due_contracts(today)}), 200


@contract_bp.route("/contracts/<int:cid>/messages", methods=["GET"])
def list_contract_messages(cid):
    return jsonify(contract_service.list_contract_messages(cid)), 200


@contract_bp.route("/contracts/<int:cid>/messages", methods=["POST"])
def add_contract_message(cid):
    """Body: { message, sender_role: "admin"|"partner", sender?, attachment_url? }"""
    data = request.get_json(silent=True) or {}
    entry = contract_service.add_contract_message(
        cid,
        data.get("sender") or request.headers.get("X-User", ""),
        data.get("sender_role", ""),
        data.get("message", ""),
        attachment_url=data.get("attachment_url"),
    )
    return jsonify(entry), 201


# ── Partner messaging ────────────────────────────────────────────────────────


@contract_bp.route("/partners/<int:pid>/messages", methods=["GET"])
def get_thread(pid):
    return jsonify(message_service.get_thread(pid)), 200


@contract_bp.route("/partners/<int:pid>/messages", methods=["POST"])
def send_message(pid):
    """Body: { message, sender_role: "admin"|"partner", sender? }"""
    data = request.get_json(silent=True) or {}
    entry = message_service.send_message(
        pid,
        data.get("sender") or request.headers.get("X-User", ""),
        data.get("sender_role", ""),
        data.get("message", ""),
    )
    return jsonify(entry), 201


@contract_bp.route("/partners/<int:pid>/messages/read", methods=["POST"])
def mark_thread_read(pid):
    data = request.get_json(silent=True) or {}
    if not data.get("reader_role"):
        return jsonify({"error": "reader_role is required"}), 400
    return jsonify({"marked_read": message_service.mark_thread_read(pid, data["reader_role"])}), 200


@contract_bp.route("/partners/<int:pid>/messages/unread-count", methods=["GET"])
def thread_unread_count(pid):
    reader_role = request.args.get("reader_role", "")
    return jsonify({"unread_count": message_service.unread_count(pid, reader_role)}), 200


@contract_bp.route("/messages/unread", methods=["GET"])
def partners_with_unread():
    return jsonify(message_service.partners_with_unread()), 200
