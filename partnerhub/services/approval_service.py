"""
Approval Request Service.

Owns every read and write of ApprovalRequest rows.  Status reconciliation
itself is delegated to the pure approval_reconciliation engine; this
module wraps it with persistence, validation and fan-out.

Design decisions:
    - respond() is a read-modify-write on a freshly locked row
      (SELECT ... FOR UPDATE where the backend supports it) and the
      mapper's version_id counter catches any lost update that slips
      through.  A stale write surfaces as ConflictError (HTTP 409).
    - Rejecting requires a comment.  Enforced here so every client gets
      the same rule.
    - A recipient answers once.  A second answer from the same recipient
      is a ConflictError and leaves the stored decision untouched.
    - Notifying the uploader and appending the activity log happen after
      the response is committed.  Their failure is logged and never rolls
      the response back.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from partnerhub.core.exceptions import ConflictError, NotFoundError, ValidationError
from partnerhub.models import db
from partnerhub.models.approval import APPROVAL_STATUSES, TERMINAL_STATUSES, ApprovalRequest
from partnerhub.models.audit import write_activity
from partnerhub.services import approval_reconciliation as engine
from partnerhub.services.notification import NotificationService
from partnerhub.utils.helpers import parse_date

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────────


def _best_effort(label: str, fn, **context) -> bool:
    """Run a follow-up side effect in its own commit; log and swallow failures."""
    try:
        fn()
        db.session.commit()
        return True
    except Exception:
        db.session.rollback()
        logger.warning("Best-effort %s failed", label, exc_info=True, extra=context)
        return False


def _load_for_update(approval_id: int) -> ApprovalRequest:
    record = db.session.execute(
        select(ApprovalRequest)
        .where(ApprovalRequest.id == approval_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if record is None:
        raise NotFoundError(resource="ApprovalRequest", resource_id=approval_id)
    return record


def _commit_or_conflict(approval_id: int) -> None:
    try:
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        logger.warning("Concurrent update on approval request %s", approval_id)
        raise ConflictError("ApprovalRequest", "version", str(approval_id)) from exc


# ── Public API ─────────────────────────────────────────────────────────────────


def create_approval_request(
    *,
    title: str,
    uploaded_by: str,
    recipients: list,
    deadline=None,
    description: str = "",
    file_url: str | None = None,
) -> dict:
    """Create a request with every recipient pending and notify each recipient.

    Raises:
        ValidationError: missing title / uploader / recipients, duplicate
                         recipients or an unparseable deadline.
    """
    title = (title or "").strip()
    uploaded_by = (uploaded_by or "").strip()
    errors = {}
    if not title:
        errors["title"] = "title is required"
    if not uploaded_by:
        errors["uploaded_by"] = "uploaded_by is required"
    if not recipients:
        errors["recipients"] = "at least one recipient is required"
    deadline_value = parse_date(deadline) if deadline else None
    if deadline and deadline_value is None:
        errors["deadline"] = "deadline must be YYYY-MM-DD"
    if errors:
        raise ValidationError("; ".join(errors.values()), details=errors)

    try:
        snapshot = engine.new_snapshot(recipients)
    except engine.ApprovalContractError as exc:
        raise ValidationError(str(exc), details={"recipients": "must be unique"}) from exc

    record = ApprovalRequest(
        title=title,
        description=(description or "").strip(),
        file_url=file_url,
        deadline=deadline_value,
        uploaded_by=uploaded_by,
        assigned_recipients=list(snapshot.recipients),
        partner_responses=engine.responses_to_json(snapshot),
        comment_thread=[],
        status=snapshot.status,
    )
    db.session.add(record)
    db.session.commit()

    logger.info(
        "Approval request created",
        extra={"approval_id": record.id, "recipients": len(snapshot.recipients)},
    )

    due = f" before {deadline_value.isoformat()}" if deadline_value else ""
    _best_effort(
        "recipient notification",
        lambda: NotificationService.broadcast(
            title="New File for Review & Approval",
            message=f"{title}: Please review and respond{due}",
            category="approval",
            entity_type="approval_request",
            entity_id=record.id,
            recipients=list(snapshot.recipients),
            commit=False,
        ),
        approval_id=record.id,
    )
    _best_effort(
        "activity log",
        lambda: write_activity(
            entity_type="approval_request", entity_id=record.id,
            action="approval.create", actor=uploaded_by,
            details={"title": title, "recipients": list(snapshot.recipients)},
        ),
        approval_id=record.id,
    )
    return record.to_dict()


def respond(
    approval_id: int,
    recipient_id,
    response: str,
    comment: str | None = None,
    actor: str | None = None,
    expected_version: int | None = None,
) -> dict:
    """Record one recipient's decision and re-derive the request status.

    Args:
        recipient_id:     Must be one of the request's assigned recipients.
        response:         "approved" or "rejected".
        comment:          Required when rejecting.
        actor:            Display name for the notification / activity log.
        expected_version: Optional client-side version for optimistic locking.

    Returns:
        The fully reconciled request dict.

    Raises:
        NotFoundError, ValidationError, ConflictError
    """
    comment = (comment or "").strip() or None
    if response not in engine.DECISIONS:
        raise ValidationError(
            "response must be 'approved' or 'rejected'", details={"response": response},
        )
    if response == engine.REJECTED and not comment:
        raise ValidationError(
            "A comment is required when rejecting", details={"comment": "required"},
        )

    record = _load_for_update(approval_id)
    if expected_version is not None and expected_version != record.version_id:
        raise ConflictError("ApprovalRequest", "version", str(expected_version))

    old_status = record.status
    try:
        updated = engine.record_response(
            engine.snapshot_from_record(record), recipient_id, response, comment,
        )
    except engine.AlreadyRespondedError as exc:
        raise ConflictError("ApprovalRequest", "recipient_id", str(recipient_id)) from exc
    except engine.ApprovalContractError as exc:
        raise ValidationError(str(exc), details={"recipient_id": str(recipient_id)}) from exc

    record.partner_responses = engine.responses_to_json(updated)
    record.status = updated.status
    _commit_or_conflict(approval_id)

    logger.info(
        "Approval response recorded",
        extra={
            "approval_id": approval_id,
            "recipient_id": str(recipient_id),
            "response": response,
            "old_status": old_status,
            "new_status": updated.status,
        },
    )

    who = actor or str(recipient_id)
    suffix = f": {comment}" if comment else ""
    _best_effort(
        "uploader notification",
        lambda: NotificationService.enqueue(
            record.uploaded_by,
            f"Approval Response: {record.title}",
            f'{who} has {response} the file "{record.title}"{suffix}',
            category="approval",
            severity="success" if response == engine.APPROVED else "warning",
            entity_type="approval_request",
            entity_id=record.id,
            commit=False,
        ),
        approval_id=approval_id,
    )
    _best_effort(
        "activity log",
        lambda: write_activity(
            entity_type="approval_request", entity_id=approval_id,
            action="approval.respond", actor=who,
            details={
                "recipient_id": str(recipient_id),
                "response": response,
                "status": {"old": old_status, "new": updated.status},
            },
        ),
        approval_id=approval_id,
    )
    return record.to_dict()


def add_comment(approval_id: int, author: str, text: str) -> dict:
    """Append one entry to the request's discussion thread."""
    text = (text or "").strip()
    author = (author or "").strip()
    if not text:
        raise ValidationError("Comment text is required", details={"text": "required"})
    if not author:
        raise ValidationError("Comment author is required", details={"author": "required"})

    record = _load_for_update(approval_id)
    updated = engine.append_comment(engine.snapshot_from_record(record), author, text)
    record.comment_thread = engine.thread_to_json(updated)
    _commit_or_conflict(approval_id)

    _best_effort(
        "activity log",
        lambda: write_activity(
            entity_type="approval_request", entity_id=approval_id,
            action="approval.comment", actor=author,
        ),
        approval_id=approval_id,
    )
    return record.to_dict()


def get_approval(approval_id: int) -> dict:
    record = db.session.get(ApprovalRequest, approval_id)
    if record is None:
        raise NotFoundError(resource="ApprovalRequest", resource_id=approval_id)
    return record.to_dict()


def list_approvals(status: str | None = None, recipient_id=None) -> list[dict]:
    """Newest-first approval requests, optionally by status and/or assigned recipient."""
    if status and status not in APPROVAL_STATUSES:
        raise ValidationError(
            f"status must be one of {sorted(APPROVAL_STATUSES)}", details={"status": status},
        )
    q = ApprovalRequest.query
    if status:
        q = q.filter_by(status=status)
    records = q.order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc()).all()
    if recipient_id is not None:
        rid = str(recipient_id)
        records = [r for r in records if rid in (r.assigned_recipients or [])]
    return [r.to_dict() for r in records]


def is_overdue(record, today: date) -> bool:
    """Deadline passed while the request still awaits decisions."""
    return bool(record.deadline and record.deadline < today and record.status not in TERMINAL_STATUSES)


def get_approval_stats(today: date | None = None) -> dict:
    today = today or date.today()
    records = ApprovalRequest.query.all()
    stats = {"total": len(records), "overdue": 0}
    for status in sorted(APPROVAL_STATUSES):
        stats[status] = 0
    for r in records:
        stats[r.status] = stats.get(r.status, 0) + 1
        if is_overdue(r, today):
            stats["overdue"] += 1
    return stats
