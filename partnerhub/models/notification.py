"""
PartnerHub — in-app notifications.

One row per (recipient, event).  ``recipient`` is a partner contact,
an admin identifier, a ``partner:<id>`` fallback address, or ``"all"``
for a portal-wide broadcast that every inbox shows.

A personal row carries its own ``is_read`` flag.  A broadcast row is
shared, so who has read it is kept per recipient in ``NotificationRead``
and its own ``is_read`` column is never set.
"""

from datetime import datetime, timezone

from partnerhub.models import db

BROADCAST = "all"

# entity_type -> portal route prefix the front-end links to
_ENTITY_ROUTES = {
    "approval_request": "/approvals",
    "submission": "/submissions",
    "deliverable": "/deliverables",
    "nomination": "/nominations",
    "contract": "/contracts",
    "message_thread": "/messages",
}


class Notification(db.Model):
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("idx_notification_inbox", "recipient", "is_read"),
    )

    id = db.Column(db.Integer, primary_key=True)
    recipient = db.Column(db.String(150), nullable=False, default=BROADCAST)
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    category = db.Column(db.String(30), default="system", comment="approval | submission | reminder | ...")
    severity = db.Column(db.String(20), default="info")

    entity_type = db.Column(db.String(30), default="")
    entity_id = db.Column(db.Integer, nullable=True)

    is_read = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    reads = db.relationship(
        "NotificationRead", backref="notification",
        cascade="all, delete-orphan", lazy="select",
    )

    @property
    def is_broadcast(self):
        return self.recipient == BROADCAST

    @property
    def link(self):
        """Portal path of the entity this notification is about, if any."""
        route = _ENTITY_ROUTES.get(self.entity_type or "")
        if route is None or self.entity_id is None:
            return None
        return f"{route}/{self.entity_id}"

    def _read_by(self, viewer):
        for r in self.reads:
            if r.recipient == viewer:
                return r
        return None

    def read_state(self, viewer=None):
        """(is_read, read_at) as seen by ``viewer``."""
        if not self.is_broadcast:
            return self.is_read, self.read_at
        entry = self._read_by(viewer or BROADCAST)
        return (entry is not None, entry.read_at if entry else None)

    def mark_read(self, viewer=None, now=None):
        """Mark read for ``viewer``; returns True when something changed."""
        now = now or datetime.now(timezone.utc)
        if not self.is_broadcast:
            if self.is_read:
                return False
            self.is_read = True
            self.read_at = now
            return True
        viewer = viewer or BROADCAST
        if self._read_by(viewer) is not None:
            return False
        self.reads.append(NotificationRead(recipient=viewer, read_at=now))
        return True

    def to_dict(self, viewer=None):
        is_read, read_at = self.read_state(viewer)
        return {
            "id": self.id,
            "recipient": self.recipient,
            "title": self.title,
            "message": self.message,
            "category": self.category,
            "severity": self.severity,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "link": self.link,
            "is_read": is_read,
            "read_at": read_at.isoformat() if read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id} -> {self.recipient}: {self.title[:40]}>"


class NotificationRead(db.Model):
    """One recipient having read one broadcast notification."""

    __tablename__ = "notification_reads"
    __table_args__ = (
        db.UniqueConstraint("notification_id", "recipient", name="uq_notification_read"),
    )

    id = db.Column(db.Integer, primary_key=True)
    notification_id = db.Column(
        db.Integer, db.ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False,
    )
    recipient = db.Column(db.String(150), nullable=False)
    read_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
