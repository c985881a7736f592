"""
Partner Messaging Service.

One support conversation per partner between the partner's users and the
admin team.  ``sender_role`` decides which side a message belongs to; a
reader marks the other side's messages as read.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func

from partnerhub.core.exceptions import NotFoundError, ValidationError
from partnerhub.models import db
from partnerhub.models.audit import write_activity
from partnerhub.models.contract import SENDER_ROLES
from partnerhub.models.message import PartnerMessage
from partnerhub.models.partner import Partner
from partnerhub.services.notification import NotificationService

logger = logging.getLogger(__name__)


def _get_partner(partner_id: int) -> Partner:
    partner = db.session.get(Partner, partner_id)
    if partner is None:
        raise NotFoundError(resource="Partner", resource_id=partner_id)
    return partner


def _check_role(role: str, field: str) -> None:
    if role not in SENDER_ROLES:
        raise ValidationError(f"{field} must be one of {sorted(SENDER_ROLES)}", details={field: role})


def send_message(partner_id: int, sender: str, sender_role: str, message: str) -> dict:
    """Append one message to the partner's thread and notify the other side."""
    partner = _get_partner(partner_id)
    _check_role(sender_role, "sender_role")
    message = (message or "").strip()
    if not message:
        raise ValidationError("message is required", details={"message": "required"})
    sender = (sender or "").strip() or sender_role

    entry = PartnerMessage(partner_id=partner_id, sender=sender, sender_role=sender_role, message=message)
    db.session.add(entry)
    db.session.commit()
    logger.info("Partner message sent", extra={"partner_id": partner_id, "event_type": "message.send"})

    if sender_role == "admin":
        recipient = partner.contact_email or f"partner:{partner_id}"
        title = "New Message from Admin"
        body = f"You have a new message from {sender}."
    else:
        recipient = partner.account_manager or "admin"
        title = f"New message from {partner.name}"
        body = message[:200]
    try:
        write_activity(
            entity_type="message_thread", entity_id=partner_id, action="message.send",
            actor=sender, partner_id=partner_id, details={"sender_role": sender_role},
        )
        NotificationService.enqueue(
            recipient, title, body, category="message",
            entity_type="message_thread", entity_id=partner_id, commit=False,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.warning("Best-effort follow-up for message %s failed", entry.id, exc_info=True)
    return entry.to_dict()


def get_thread(partner_id: int) -> list[dict]:
    """The partner's conversation, oldest first."""
    _get_partner(partner_id)
    rows = (
        PartnerMessage.query.filter_by(partner_id=partner_id)
        .order_by(PartnerMessage.created_at, PartnerMessage.id)
        .all()
    )
    return [m.to_dict() for m in rows]


def _unread_from_other_side(partner_id: int, reader_role: str):
    return PartnerMessage.query.filter(
        PartnerMessage.partner_id == partner_id,
        PartnerMessage.sender_role != reader_role,
        PartnerMessage.is_read.is_(False),
    )


def unread_count(partner_id: int, reader_role: str) -> int:
    _get_partner(partner_id)
    _check_role(reader_role, "reader_role")
    return _unread_from_other_side(partner_id, reader_role).count()


def mark_thread_read(partner_id: int, reader_role: str) -> int:
    """Mark the other side's messages read; returns how many changed."""
    _get_partner(partner_id)
    _check_role(reader_role, "reader_role")
    count = _unread_from_other_side(partner_id, reader_role).update(
        {"is_read": True, "read_at": datetime.now(timezone.utc)}, synchronize_session="fetch",
    )
    db.session.commit()
    return count


def partners_with_unread() -> list[dict]:
    """Admin inbox: partners with unread partner messages, most unread first."""
    rows = (
        db.session.query(PartnerMessage.partner_id, func.count(PartnerMessage.id))
        .filter(PartnerMessage.sender_role == "partner", PartnerMessage.is_read.is_(False))
        .group_by(PartnerMessage.partner_id)
        .all()
    )
    result = [{"partner_id": pid, "unread": count} for pid, count in rows]
    result.sort(key=lambda r: (-r["unread"], r["partner_id"]))
    return result
