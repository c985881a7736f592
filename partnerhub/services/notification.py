"""
PartnerHub — Notification Service.

Approval, submission and reminder flows talk to notifications only
through ``NotificationService.enqueue(recipient, title, message, ...)``.
Pass ``commit=False`` to batch the insert into the caller's transaction
(the row is flushed so it gets an id).
"""

from datetime import datetime, timezone

from sqlalchemy import and_, or_, select

from partnerhub.models import db
from partnerhub.models.notification import BROADCAST, Notification, NotificationRead


def _finish(commit):
    if commit:
        db.session.commit()
    else:
        db.session.flush()


class NotificationService:
    """Stateless notification operations."""

    # ── Write ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, title, message="", category="system", severity="info",
               recipient=BROADCAST, entity_type="", entity_id=None, commit=True):
        notif = Notification(
            recipient=recipient,
            title=title,
            message=message,
            category=category,
            severity=severity,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.session.add(notif)
        _finish(commit)
        return notif

    @staticmethod
    def enqueue(recipient, title, message, **kwargs):
        """Queue one notification for ``recipient``; kwargs as for ``create``."""
        return NotificationService.create(recipient=recipient, title=title, message=message, **kwargs)

    @staticmethod
    def broadcast(*, title, recipients=None, commit=True, **fields):
        """One notification per recipient, or a single portal-wide one when ``recipients`` is empty."""
        notifs = [
            NotificationService.create(title=title, recipient=r, commit=False, **fields)
            for r in (recipients or [BROADCAST])
        ]
        _finish(commit)
        return notifs

    # ── Read ─────────────────────────────────────────────────────────────

    @staticmethod
    def inbox_query(recipient, unread_only=False):
        """Query for ``recipient``'s own notifications plus broadcasts, newest first.

        With ``unread_only`` a personal row counts by its own flag and a
        broadcast by whether ``recipient`` has a read entry for it.
        """
        q = Notification.query.filter(Notification.recipient.in_([recipient, BROADCAST]))
        if unread_only:
            read_by_me = select(NotificationRead.notification_id).where(
                NotificationRead.recipient == recipient
            )
            unread_broadcast = and_(
                Notification.recipient == BROADCAST, Notification.id.not_in(read_by_me),
            )
            if recipient == BROADCAST:
                q = q.filter(unread_broadcast)
            else:
                q = q.filter(or_(
                    and_(Notification.recipient == recipient, Notification.is_read.is_(False)),
                    unread_broadcast,
                ))
        return q.order_by(Notification.created_at.desc(), Notification.id.desc())

    @staticmethod
    def unread_count(recipient=BROADCAST):
        return NotificationService.inbox_query(recipient, unread_only=True).count()

    # ── Read tracking ────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id, recipient=BROADCAST):
        """Mark one notification read; a broadcast only for ``recipient``."""
        notif = db.session.get(Notification, notification_id)
        if notif is not None and notif.mark_read(recipient):
            db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(recipient=BROADCAST):
        """Mark ``recipient``'s whole inbox read; returns how many notifications changed."""
        now = datetime.now(timezone.utc)
        unread = NotificationService.inbox_query(recipient, unread_only=True).all()
        count = sum(1 for notif in unread if notif.mark_read(recipient, now=now))
        db.session.commit()
        return count
