"""Small parsing / lookup helpers shared by blueprints and services.

get_or_404:     (obj, None) or (None, error_response) — no abort()
parse_date:     date | None, never raises
parse_id_list:  "?assigned=1,2,3" -> [1, 2, 3]
parse_bool:     "?unread_only=true" style flags
"""
from datetime import date, datetime

from flask import jsonify

from partnerhub.models import db

_TRUE = frozenset({"1", "true", "yes", "on"})


def get_or_404(model, pk, label=None):
    """Look up ``model`` by primary key for a blueprint.

        notif, err = get_or_404(Notification, nid)
        if err:
            return err
    """
    obj = db.session.get(model, pk)
    if obj is None:
        return None, (jsonify({"error": f"{label or model.__name__} not found"}), 404)
    return obj, None


def parse_date(value):
    """Coerce a deadline / due date to ``date``.

    Accepts date and datetime objects, ``YYYY-MM-DD`` and full ISO
    timestamps.  Empty or unparseable input gives None so callers decide
    whether that is a 400, a 422 or simply "no deadline".
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for parse in (date.fromisoformat, lambda s: datetime.fromisoformat(s).date()):
        try:
            return parse(text)
        except ValueError:
            continue
    return None


def parse_id_list(raw):
    """Comma-separated integer ids; a non-integer entry raises ValueError."""
    if not raw:
        return []
    return [int(part) for part in str(raw).split(",") if part.strip()]


def parse_bool(raw, default=False):
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in _TRUE
