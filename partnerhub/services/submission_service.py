"""
Deliverable & Submission Service.

Partners upload versioned submissions (file, url or text) against the
deliverables admins define for them; admins review the latest version.

Business rules:
    - version = highest existing version for the deliverable + 1, so
      versions strictly increase; the unique (deliverable_id, version)
      constraint turns a concurrent duplicate into ConflictError.
    - The highest version is authoritative for the deliverable's status.
    - Only the latest version can be reviewed; a superseded one is a
      ConflictError.
    - Rejecting or requesting a revision needs a review comment.
    - Partner notification and activity logging after a review are best
      effort and never undo the review.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from partnerhub.core.exceptions import ConflictError, NotFoundError, ValidationError
from partnerhub.models import db
from partnerhub.models.audit import write_activity
from partnerhub.models.partner import (
    REVIEW_DECISIONS,
    SUBMISSION_KINDS,
    Deliverable,
    Partner,
    Submission,
)
from partnerhub.services.notification import NotificationService
from partnerhub.utils.helpers import parse_date

logger = logging.getLogger(__name__)

_PAYLOAD_FIELD = {"file": "file_url", "url": "url", "text": "text_content"}


def _get_deliverable(deliverable_id: int) -> Deliverable:
    deliverable = db.session.get(Deliverable, deliverable_id)
    if deliverable is None:
        raise NotFoundError(resource="Deliverable", resource_id=deliverable_id)
    return deliverable


def _log_and_notify(submission: Submission, actor: str, action: str, details: dict,
                    title: str | None = None, message: str = "", severity: str = "info") -> None:
    try:
        write_activity(
            entity_type="submission", entity_id=submission.id, action=action,
            actor=actor, partner_id=submission.partner_id, details=details,
        )
        if title:
            partner = db.session.get(Partner, submission.partner_id)
            recipient = (partner.contact_email if partner else None) or f"partner:{submission.partner_id}"
            NotificationService.enqueue(
                recipient, title, message,
                category="submission", severity=severity,
                entity_type="submission", entity_id=submission.id, commit=False,
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.warning("Best-effort follow-up for submission %s failed", submission.id, exc_info=True)


# ── Deliverables ──────────────────────────────────────────────────────────────


def create_deliverable(partner_id: int, title: str, due_date=None, description: str = "",
                       is_required: bool = True, created_by: str = "system") -> dict:
    if db.session.get(Partner, partner_id) is None:
        raise NotFoundError(resource="Partner", resource_id=partner_id)
    title = (title or "").strip()
    if not title:
        raise ValidationError("title is required", details={"title": "required"})
    due = parse_date(due_date) if due_date else None
    if due_date and due is None:
        raise ValidationError("due_date must be YYYY-MM-DD", details={"due_date": str(due_date)})

    deliverable = Deliverable(
        partner_id=partner_id,
        title=title,
        description=(description or "").strip(),
        due_date=due,
        is_required=bool(is_required),
        created_by=created_by or "system",
    )
    db.session.add(deliverable)
    db.session.flush()
    write_activity(
        entity_type="deliverable", entity_id=deliverable.id, action="deliverable.create",
        actor=deliverable.created_by, partner_id=partner_id, details={"title": title},
    )
    db.session.commit()
    return deliverable.to_dict()


# ── Submissions ───────────────────────────────────────────────────────────────


def next_version(deliverable_id: int) -> int:
    current = db.session.execute(
        select(func.max(Submission.version)).where(Submission.deliverable_id == deliverable_id)
    ).scalar()
    return (current or 0) + 1


def submit(deliverable_id: int, kind: str, payload: str, submitted_by: str = "") -> dict:
    """Create the next submission version for a deliverable."""
    deliverable = _get_deliverable(deliverable_id)
    if kind not in SUBMISSION_KINDS:
        raise ValidationError(
            f"kind must be one of {sorted(SUBMISSION_KINDS)}", details={"kind": kind},
        )
    payload = (payload or "").strip()
    if not payload:
        raise ValidationError("Submission content is required", details={"payload": "required"})

    version = next_version(deliverable_id)
    submission = Submission(
        deliverable_id=deliverable_id,
        partner_id=deliverable.partner_id,
        version=version,
        kind=kind,
        status="submitted",
        submitted_by=submitted_by or "",
        **{_PAYLOAD_FIELD[kind]: payload},
    )
    db.session.add(submission)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("Submission", "version", str(version)) from exc

    logger.info(
        "Submission uploaded",
        extra={"deliverable_id": deliverable_id, "version": version, "kind": kind},
    )
    _log_and_notify(
        submission, submitted_by or "partner", "submission.upload",
        {"version": version, "kind": kind},
    )
    return submission.to_dict()


def review_submission(submission_id: int, decision: str, reviewer: str, comment: str | None = None) -> dict:
    """Approve, reject or request a revision on the latest submission.

    Raises:
        NotFoundError, ValidationError,
        ConflictError: a newer version of the deliverable has been uploaded.
    """
    submission = db.session.get(Submission, submission_id)
    if submission is None:
        raise NotFoundError(resource="Submission", resource_id=submission_id)
    if decision not in REVIEW_DECISIONS:
        raise ValidationError(
            f"decision must be one of {sorted(REVIEW_DECISIONS)}", details={"decision": decision},
        )
    comment = (comment or "").strip() or None
    if decision != "approved" and not comment:
        raise ValidationError("A review comment is required", details={"comment": "required"})
    if next_version(submission.deliverable_id) - 1 != submission.version:
        raise ConflictError("Submission", "version", str(submission.version))

    old_status = submission.status
    submission.status = decision
    submission.reviewer = reviewer or "admin"
    submission.review_comment = comment
    submission.reviewed_at = datetime.now(timezone.utc)
    db.session.commit()

    title = submission.deliverable.title if submission.deliverable else f"Submission #{submission.id}"
    label = decision.replace("_", " ")
    _log_and_notify(
        submission, submission.reviewer, "submission.review",
        {"status": {"old": old_status, "new": decision}, "version": submission.version},
        title=f"Deliverable {label}: {title}",
        message=f"Version {submission.version} was {label}" + (f": {comment}" if comment else ""),
        severity="success" if decision == "approved" else "warning",
    )
    return submission.to_dict()


def get_version_history(deliverable_id: int) -> list[dict]:
    """All versions of a deliverable's submissions, newest first."""
    _get_deliverable(deliverable_id)
    rows = (
        Submission.query.filter_by(deliverable_id=deliverable_id)
        .order_by(Submission.version.desc())
        .all()
    )
    return [s.to_dict() for s in rows]


def latest_submission_status(deliverable_id: int) -> str | None:
    """Status of the highest version, or None when nothing was submitted yet."""
    _get_deliverable(deliverable_id)
    latest = (
        Submission.query.filter_by(deliverable_id=deliverable_id)
        .order_by(Submission.version.desc())
        .first()
    )
    return latest.status if latest else None
