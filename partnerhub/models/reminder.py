"""
PartnerHub — Reminder configuration model.

Admins configure which deadlines trigger reminder notifications and how
many days ahead (e.g. 7, 3 and 1 day before a deliverable is due).
"""

from datetime import datetime, timezone

from partnerhub.models import db

REMINDER_TYPES = {"deliverable_deadline", "approval_deadline"}


class ReminderConfig(db.Model):
    __tablename__ = "reminder_configs"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    reminder_type = db.Column(db.String(30), nullable=False, default="deliverable_deadline")
    days_before_deadline = db.Column(db.JSON, nullable=False, default=lambda: [7, 3, 1])
    notification_title = db.Column(db.String(300), default="")
    notification_message = db.Column(db.Text, default="")
    is_active = db.Column(db.Boolean, default=True)
    created_by = db.Column(db.String(150), default="system")

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "reminder_type": self.reminder_type,
            "days_before_deadline": list(self.days_before_deadline or []),
            "notification_title": self.notification_title,
            "notification_message": self.notification_message,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ReminderConfig {self.id}: {self.name} {self.days_before_deadline}>"
