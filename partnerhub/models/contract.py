"""
PartnerHub — Partner contracts.

Models:
    - Contract: one agreement document sent to a partner for signature
    - ContractMessage: discussion thread entry on a contract

The partner's own ``contract_status`` summarises its most recent contract
(see contract_service.PARTNER_CONTRACT_STATUS).
"""

from datetime import datetime, timezone

from partnerhub.models import db

CONTRACT_TYPES = {"sponsorship", "exhibition", "media", "service", "other"}
CONTRACT_STATES = {"draft", "sent", "under_review", "signed", "rejected", "expired"}
SENDER_ROLES = {"admin", "partner"}


def _utcnow():
    return datetime.now(timezone.utc)


class Contract(db.Model):
    __tablename__ = "contracts"

    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(
        db.Integer, db.ForeignKey("partners.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    contract_type = db.Column(db.String(30), default="sponsorship")
    status = db.Column(db.String(20), nullable=False, default="draft",
                       comment="draft | sent | under_review | signed | rejected | expired")
    version = db.Column(db.Integer, nullable=False, default=1,
                        comment="Bumped each time a new document is sent")

    file_url_original = db.Column(db.String(500), nullable=True)
    file_url_signed = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.Text, default="")
    expires_on = db.Column(db.Date, nullable=True)

    created_by = db.Column(db.String(150), default="system")
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    signed_by = db.Column(db.String(150), nullable=True)
    signed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    messages = db.relationship(
        "ContractMessage", backref="contract", lazy="dynamic",
        cascade="all, delete-orphan", order_by="ContractMessage.id",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "partner_id": self.partner_id,
            "title": self.title,
            "contract_type": self.contract_type,
            "status": self.status,
            "version": self.version,
            "file_url_original": self.file_url_original,
            "file_url_signed": self.file_url_signed,
            "notes": self.notes,
            "expires_on": self.expires_on.isoformat() if self.expires_on else None,
            "created_by": self.created_by,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "signed_by": self.signed_by,
            "signed_at": self.signed_at.isoformat() if self.signed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Contract {self.id}: {self.title} [{self.status}]>"


class ContractMessage(db.Model):
    __tablename__ = "contract_messages"

    id = db.Column(db.Integer, primary_key=True)
    contract_id = db.Column(
        db.Integer, db.ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    sender = db.Column(db.String(150), nullable=False)
    sender_role = db.Column(db.String(10), nullable=False, default="partner", comment="admin | partner")
    message = db.Column(db.Text, nullable=False)
    attachment_url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "contract_id": self.contract_id,
            "sender": self.sender,
            "sender_role": self.sender_role,
            "message": self.message,
            "attachment_url": self.attachment_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
