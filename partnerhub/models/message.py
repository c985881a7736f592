"""
PartnerHub — Partner support messaging.

Each partner has a single conversation with the admin team.  A message's
``is_read`` tracks whether the other side has seen it.
"""

from datetime import datetime, timezone

from partnerhub.models import db


class PartnerMessage(db.Model):
    __tablename__ = "partner_messages"
    __table_args__ = (
        db.Index("idx_partner_message_thread", "partner_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(
        db.Integer, db.ForeignKey("partners.id", ondelete="CASCADE"), nullable=False,
    )
    sender = db.Column(db.String(150), nullable=False)
    sender_role = db.Column(db.String(10), nullable=False, comment="admin | partner")
    message = db.Column(db.Text, nullable=False)

    is_read = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "partner_id": self.partner_id,
            "sender": self.sender,
            "sender_role": self.sender_role,
            "message": self.message,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<PartnerMessage {self.id} partner={self.partner_id} from={self.sender_role}>"
