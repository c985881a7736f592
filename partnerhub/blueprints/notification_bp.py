"""
Notification & Reminder Blueprint.

Routes:
  GET    /notifications                     – list for recipient (?recipient=, ?unread_only=true)
  GET    /notifications/unread-count        – badge counter
  POST   /notifications/<nid>/read          – mark one read (broadcasts per recipient)
  POST   /notifications/read-all            – mark all read for recipient
  GET    /reminders                         – list reminder configs (?reminder_type=)
  POST   /reminders                         – create config
  PUT    /reminders/<rid>                   – update config
  DELETE /reminders/<rid>                   – delete config
  POST   /reminders/run                     – send reminders due today (?today=YYYY-MM-DD)
"""

from flask import Blueprint, current_app, jsonify, request

from partnerhub.blueprints import paginate_query, register_error_handlers
from partnerhub.models.notification import Notification
from partnerhub.services import reminder_service
from partnerhub.services.notification import NotificationService
from partnerhub.utils.helpers import get_or_404, parse_bool, parse_date

notification_bp = Blueprint("notification", __name__, url_prefix="/api/v1")
register_error_handlers(notification_bp)


def _recipient():
    return request.args.get("recipient") or request.headers.get("X-User") or "all"


# ── Notifications ────────────────────────────────────────────────────────────


@notification_bp.route("/notifications", methods=["GET"])
def list_notifications():
    recipient = _recipient()
    q = NotificationService.inbox_query(recipient, unread_only=parse_bool(request.args.get("unread_only")))
    items, total = paginate_query(q, default_limit=current_app.config.get("NOTIFICATION_PAGE_SIZE", 50))
    return jsonify({
        "items": [n.to_dict(viewer=recipient) for n in items],
        "total": total,
        "unread_count": NotificationService.unread_count(recipient),
    }), 200


@notification_bp.route("/notifications/unread-count", methods=["GET"])
def unread_count():
    return jsonify({"unread_count": NotificationService.unread_count(_recipient())}), 200


@notification_bp.route("/notifications/<int:nid>/read", methods=["POST"])
def mark_read(nid):
    _, err = get_or_404(Notification, nid)
    if err:
        return err
    data = request.get_json(silent=True) or {}
    recipient = data.get("recipient") or _recipient()
    notif = NotificationService.mark_read(nid, recipient)
    return jsonify(notif.to_dict(viewer=recipient)), 200


@notification_bp.route("/notifications/read-all", methods=["POST"])
def mark_all_read():
    data = request.get_json(silent=True) or {}
    recipient = data.get("recipient") or _recipient()
    count = NotificationService.mark_all_read(recipient)
    return jsonify({"marked_read": count}), 200


# ── Reminder configs ─────────────────────────────────────────────────────────


@notification_bp.route("/reminders", methods=["GET"])
def list_reminders():
    return jsonify(reminder_service.list_configs(request.args.get("reminder_type"))), 200


@notification_bp.route("/reminders", methods=["POST"])
def create_reminder():
    data = request.get_json(silent=True) or {}
    created_by = request.headers.get("X-User") or "system"
    return jsonify(reminder_service.create_config(data, created_by=created_by)), 201


@notification_bp.route("/reminders/<int:rid>", methods=["PUT"])
def update_reminder(rid):
    data = request.get_json(silent=True) or {}
    return jsonify(reminder_service.update_config(rid, data)), 200


@notification_bp.route("/reminders/<int:rid>", methods=["DELETE"])
def delete_reminder(rid):
    reminder_service.delete_config(rid)
    return jsonify({"deleted": True}), 200


@notification_bp.route("/reminders/run", methods=["POST"])
def run_reminders():
    raw = request.args.get("today")
    today = parse_date(raw) if raw else None
    if raw and today is None:
        return jsonify({"error": "today must be YYYY-MM-DD"}), 400
    return jsonify({"sent": reminder_service.run_reminders(today)}), 200
