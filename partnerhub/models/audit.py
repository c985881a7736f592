"""
PartnerHub — Activity log model.

Models:
    - ActivityLog: immutable, append-only record of notable actions
      (uploads, approval responses, status changes) for the audit
      timeline and the dashboard's recent-activity feed.
"""

import json
from datetime import UTC, datetime

from partnerhub.models import db

# ── Constants ────────────────────────────────────────────────────────────────

ACTIVITY_ENTITY_TYPES = {
    "approval_request", "submission", "deliverable",
    "nomination", "reminder", "partner",
    "contract", "message_thread",
}

ACTIVITY_ACTIONS = {
    # Approval requests
    "approval.create",
    "approval.respond",
    "approval.comment",
    # Deliverables / submissions
    "deliverable.create",
    "submission.upload",
    "submission.review",
    # Contracts
    "contract.create",
    "contract.send",
    "contract.status",
    "contract.sign",
    "contract.expire",
    "contract.comment",
    # Messaging
    "message.send",
    # Reminders
    "reminder.sent",
    # Generic
    "create",
    "update",
}


class ActivityLog(db.Model):
    """
    Immutable audit trail row.

    ``details_json`` carries the action payload, e.g.
    ``{"response": "rejected", "status": {"old": "pending", "new": "rejected"}}``.
    """

    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("idx_activity_entity", "entity_type", "entity_id"),
        db.Index("idx_activity_partner", "partner_id"),
        db.Index("idx_activity_ts", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(
        db.Integer,
        db.ForeignKey("partners.id", ondelete="SET NULL"),
        nullable=True,
    )

    entity_type = db.Column(db.String(30), nullable=False,
                            comment="approval_request | submission | deliverable | ...")
    entity_id = db.Column(db.String(36), nullable=False)

    action = db.Column(db.String(60), nullable=False,
                       comment="approval.respond | submission.review | ...")
    actor = db.Column(db.String(150), nullable=False, default="system")

    details_json = db.Column(db.Text, default="{}")

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    @property
    def details(self) -> dict:
        """Deserialise *details_json* to a Python dict."""
        try:
            return json.loads(self.details_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "partner_id": self.partner_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor": self.actor,
            "details": self.details,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ActivityLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer / reader ──────────────────────────────────────────────

def write_activity(
    *,
    entity_type: str,
    entity_id,
    action: str,
    actor: str = "system",
    partner_id: int | None = None,
    details: dict | None = None,
) -> ActivityLog:
    """
    Append a single activity row.  Uses ``flush`` so callers keep
    transaction control.

    Returns the (flushed) ActivityLog instance.

    Raises:
        ValueError: unknown entity_type or action (a programming error).
    """
    if entity_type not in ACTIVITY_ENTITY_TYPES:
        raise ValueError(f"Unknown activity entity_type {entity_type!r}")
    if action not in ACTIVITY_ACTIONS:
        raise ValueError(f"Unknown activity action {action!r}")
    log = ActivityLog(
        partner_id=partner_id,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor=actor or "system",
        details_json=json.dumps(details or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log


def list_activity(partner_ids=None, limit: int = 10) -> list[ActivityLog]:
    """Newest-first activity, optionally restricted to a set of partners."""
    q = ActivityLog.query
    if partner_ids is not None:
        q = q.filter(ActivityLog.partner_id.in_(list(partner_ids)))
    return q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
