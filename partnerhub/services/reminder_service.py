"""
Deadline Reminder Service.

Admins configure reminders ("7, 3 and 1 days before a deliverable is
due"); ``run_reminders`` turns the configs that match today into in-app
notifications.

Matching is a pure function (``select_due_reminders``) over already
fetched rows.  Delivery dedups per (config, entity, recipient, day) so
running the job twice on the same day sends nothing new.

Usage:
    from partnerhub.services.reminder_service import run_reminders
    sent = run_reminders()
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import date

from partnerhub.core.exceptions import NotFoundError, ValidationError
from partnerhub.models import db
from partnerhub.models.approval import TERMINAL_STATUSES, ApprovalRequest
from partnerhub.models.audit import ActivityLog, write_activity
from partnerhub.models.partner import Deliverable, Partner
from partnerhub.models.reminder import REMINDER_TYPES, ReminderConfig
from partnerhub.services.notification import NotificationService
from partnerhub.utils.helpers import parse_bool

logger = logging.getLogger(__name__)

_DEFAULT_TITLES = {
    "deliverable_deadline": "Deliverable due in {days} day(s): {title}",
    "approval_deadline": "Approval needed within {days} day(s): {title}",
}


@dataclass(frozen=True)
class DueReminder:
    """One reminder that should go out today."""
    config_id: int
    reminder_type: str
    entity_type: str
    entity_id: int
    entity_title: str
    days_left: int
    recipients: tuple[str, ...]


# ═════════════════════════════════════════════════════════════════════════════
# Matching (pure)
# ═════════════════════════════════════════════════════════════════════════════

def _days(config) -> set[int]:
    return {int(d) for d in (config.days_before_deadline or []) if int(d) > 0}


def select_due_reminders(configs, deliverables, approvals, today: date,
                         partner_recipients: dict | None = None) -> list[DueReminder]:
    """Reminders whose configured day offsets match exactly the days left today.

    Args:
        partner_recipients: partner_id -> notification recipient for deliverables.
                            Missing partners fall back to "partner:<id>".
    """
    partner_recipients = partner_recipients or {}
    due: list[DueReminder] = []
    for config in configs:
        if not config.is_active:
            continue
        offsets = _days(config)
        if config.reminder_type == "deliverable_deadline":
            for d in deliverables:
                if d.due_date is None:
                    continue
                days_left = (d.due_date - today).days
                if days_left in offsets:
                    recipient = partner_recipients.get(d.partner_id) or f"partner:{d.partner_id}"
                    due.append(DueReminder(
                        config.id, config.reminder_type, "deliverable", d.id, d.title,
                        days_left, (recipient,),
                    ))
        elif config.reminder_type == "approval_deadline":
            for a in approvals:
                if a.deadline is None or a.status in TERMINAL_STATUSES:
                    continue
                days_left = (a.deadline - today).days
                if days_left not in offsets:
                    continue
                waiting = tuple(
                    r["recipient_id"] for r in (a.partner_responses or [])
                    if r.get("response") == "pending"
                )
                if waiting:
                    due.append(DueReminder(
                        config.id, config.reminder_type, "approval_request", a.id, a.title,
                        days_left, waiting,
                    ))
    return due


# ═════════════════════════════════════════════════════════════════════════════
# Delivery
# ═════════════════════════════════════════════════════════════════════════════

def _dedup_key(reminder: DueReminder, recipient: str, today: date) -> str:
    raw = f"rem-{reminder.config_id}-{reminder.entity_type}-{reminder.entity_id}-{recipient}-{today.isoformat()}"
    return hashlib.md5(raw.encode()).hexdigest()[:16]


def _already_sent(dedup_key: str) -> bool:
    return ActivityLog.query.filter_by(
        entity_type="reminder", entity_id=dedup_key, action="reminder.sent",
    ).first() is not None


def _render(template: str, reminder: DueReminder) -> str:
    return template.replace("{days}", str(reminder.days_left)).replace("{title}", reminder.entity_title)


def run_reminders(today: date | None = None) -> int:
    """Send every reminder due today; returns the number of notifications created."""
    today = today or date.today()
    configs = ReminderConfig.query.filter_by(is_active=True).all()
    if not configs:
        return 0

    partner_recipients = {
        p.id: p.contact_email for p in Partner.query.all() if p.contact_email
    }
    due = select_due_reminders(
        configs,
        Deliverable.query.filter(Deliverable.due_date.isnot(None)).all(),
        ApprovalRequest.query.filter(ApprovalRequest.deadline.isnot(None)).all(),
        today,
        partner_recipients,
    )
    configs_by_id = {c.id: c for c in configs}

    sent = 0
    for reminder in due:
        config = configs_by_id[reminder.config_id]
        title = _render(config.notification_title or _DEFAULT_TITLES[reminder.reminder_type], reminder)
        message = _render(config.notification_message or "", reminder)
        for recipient in reminder.recipients:
            key = _dedup_key(reminder, recipient, today)
            if _already_sent(key):
                continue
            NotificationService.enqueue(
                recipient, title, message,
                category="reminder", severity="warning" if reminder.days_left <= 1 else "info",
                entity_type=reminder.entity_type, entity_id=reminder.entity_id, commit=False,
            )
            write_activity(
                entity_type="reminder", entity_id=key, action="reminder.sent",
                details={
                    "config_id": reminder.config_id,
                    "target": f"{reminder.entity_type}/{reminder.entity_id}",
                    "recipient": recipient,
                    "days_left": reminder.days_left,
                },
            )
            sent += 1
    db.session.commit()
    logger.info("Reminder run finished", extra={"sent": sent, "due": len(due)})
    return sent


# ═════════════════════════════════════════════════════════════════════════════
# Config CRUD
# ═════════════════════════════════════════════════════════════════════════════

def _normalise_days(raw) -> list[int]:
    if isinstance(raw, str):
        raw = [part for part in raw.split(",") if part.strip()]
    try:
        days = sorted({int(d) for d in (raw or [])}, reverse=True)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            "days_before_deadline must be a list of integers",
            details={"days_before_deadline": str(raw)},
        ) from exc
    if not days or any(d <= 0 for d in days):
        raise ValidationError(
            "days_before_deadline needs at least one positive day",
            details={"days_before_deadline": str(raw)},
        )
    return days


def _apply(config: ReminderConfig, data: dict) -> None:
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required", details={"name": "required"})
        config.name = name
    if "reminder_type" in data:
        if data["reminder_type"] not in REMINDER_TYPES:
            raise ValidationError(
                f"reminder_type must be one of {sorted(REMINDER_TYPES)}",
                details={"reminder_type": data["reminder_type"]},
            )
        config.reminder_type = data["reminder_type"]
    if "days_before_deadline" in data:
        config.days_before_deadline = _normalise_days(data["days_before_deadline"])
    for key in ("notification_title", "notification_message"):
        if key in data:
            setattr(config, key, data[key] or "")
    if "is_active" in data:
        config.is_active = parse_bool(data["is_active"])


def create_config(data: dict, created_by: str = "system") -> dict:
    config = ReminderConfig(created_by=created_by, days_before_deadline=[7, 3, 1])
    _apply(config, {"name": data.get("name", ""), **data})
    db.session.add(config)
    db.session.commit()
    return config.to_dict()


def update_config(config_id: int, data: dict) -> dict:
    config = db.session.get(ReminderConfig, config_id)
    if config is None:
        raise NotFoundError(resource="ReminderConfig", resource_id=config_id)
    _apply(config, data)
    db.session.commit()
    return config.to_dict()


def delete_config(config_id: int) -> None:
    config = db.session.get(ReminderConfig, config_id)
    if config is None:
        raise NotFoundError(resource="ReminderConfig", resource_id=config_id)
    db.session.delete(config)
    db.session.commit()


def list_configs(reminder_type: str | None = None) -> list[dict]:
    q = ReminderConfig.query
    if reminder_type:
        q = q.filter_by(reminder_type=reminder_type)
    return [c.to_dict() for c in q.order_by(ReminderConfig.id).all()]
