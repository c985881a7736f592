"""
Approval Reconciliation Engine.

Given an approval request and one recipient's decision, produce the new
response set and the request's overall status.

Status rule, evaluated over the full updated response set every time:
    1. every response approved           -> approved
    2. any response rejected             -> rejected   (absorbing)
    3. some approved, the rest pending   -> partially_approved
    4. otherwise (nothing decided yet)   -> pending

A single rejection blocks the whole request no matter how many recipients
approved.  Recipients still pending may answer after a rejection so the
audit trail is complete, but the status stays ``rejected``.  Each recipient
answers once: a decided response is final, so ``approved`` and ``rejected``
are never left.

Snapshots are immutable: ``record_response`` and ``append_comment`` return
new objects and never touch their input.  Callers persisting the result
must read-modify-write on a fresh snapshot (see approval_service.respond).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
PARTIALLY_APPROVED = "partially_approved"

DECISIONS = frozenset({APPROVED, REJECTED})


class ApprovalContractError(ValueError):
    """Raised when record_response is called with an unassigned recipient or bad decision."""


class AlreadyRespondedError(ApprovalContractError):
    """The recipient has already approved or rejected this request."""


@dataclass(frozen=True)
class PartnerResponse:
    recipient_id: str
    response: str = PENDING
    comment: str | None = None
    responded_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "PartnerResponse":
        responded_at = data.get("responded_at")
        if isinstance(responded_at, str):
            responded_at = datetime.fromisoformat(responded_at)
        return cls(
            recipient_id=str(data["recipient_id"]),
            response=data.get("response") or PENDING,
            comment=data.get("comment"),
            responded_at=responded_at,
        )

    def to_dict(self) -> dict:
        return {
            "recipient_id": self.recipient_id,
            "response": self.response,
            "comment": self.comment,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
        }


@dataclass(frozen=True)
class ThreadComment:
    author: str
    text: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {"author": self.author, "text": self.text, "timestamp": self.timestamp.isoformat()}


@dataclass(frozen=True)
class ApprovalSnapshot:
    """Immutable view of an approval request's responses, thread and status."""
    responses: tuple[PartnerResponse, ...]
    status: str = PENDING
    comment_thread: tuple[Any, ...] = field(default_factory=tuple)

    @property
    def recipients(self) -> tuple[str, ...]:
        return tuple(r.recipient_id for r in self.responses)

    def response_for(self, recipient_id) -> PartnerResponse | None:
        recipient_id = str(recipient_id)
        for r in self.responses:
            if r.recipient_id == recipient_id:
                return r
        return None


# ═════════════════════════════════════════════════════════════════════════════
# Derivation
# ═════════════════════════════════════════════════════════════════════════════

def derive_status(responses) -> str:
    """Overall status from the full response set (see module docstring)."""
    values = [r.response if isinstance(r, PartnerResponse) else r.get("response", PENDING)
              for r in responses]
    if not values:
        return PENDING
    if all(v == APPROVED for v in values):
        return APPROVED
    if any(v == REJECTED for v in values):
        return REJECTED
    if any(v == APPROVED for v in values):
        return PARTIALLY_APPROVED
    return PENDING


def initial_responses(recipients) -> tuple[PartnerResponse, ...]:
    """All-pending response set for a new request; recipients must be unique."""
    ids = [str(r) for r in recipients]
    if len(set(ids)) != len(ids):
        raise ApprovalContractError("Duplicate recipients in approval request")
    return tuple(PartnerResponse(recipient_id=rid) for rid in ids)


def new_snapshot(recipients) -> ApprovalSnapshot:
    responses = initial_responses(recipients)
    return ApprovalSnapshot(responses=responses, status=derive_status(responses))


# ═════════════════════════════════════════════════════════════════════════════
# Transitions
# ═════════════════════════════════════════════════════════════════════════════

def record_response(
    request: ApprovalSnapshot,
    recipient_id,
    new_response: str,
    comment: str | None = None,
    now: datetime | None = None,
) -> ApprovalSnapshot:
    """Replace one recipient's response and re-derive the overall status.

    Raises:
        ApprovalContractError: recipient not assigned, or decision not approved/rejected.
        AlreadyRespondedError: the recipient's response is no longer pending.
    """
    if new_response not in DECISIONS:
        raise ApprovalContractError(
            f"Response must be one of {sorted(DECISIONS)}, got {new_response!r}"
        )
    recipient_id = str(recipient_id)
    current = request.response_for(recipient_id)
    if current is None:
        raise ApprovalContractError(f"Recipient {recipient_id!r} is not assigned to this request")
    if current.response != PENDING:
        raise AlreadyRespondedError(
            f"Recipient {recipient_id!r} has already responded ({current.response})"
        )

    responded_at = now or datetime.now(timezone.utc)
    updated = tuple(
        PartnerResponse(
            recipient_id=r.recipient_id,
            response=new_response,
            comment=comment,
            responded_at=responded_at,
        ) if r.recipient_id == recipient_id else r
        for r in request.responses
    )
    return replace(request, responses=updated, status=derive_status(updated))


def append_comment(
    request: ApprovalSnapshot,
    author: str,
    text: str,
    now: datetime | None = None,
) -> ApprovalSnapshot:
    entry = ThreadComment(author=author, text=text, timestamp=now or datetime.now(timezone.utc))
    return replace(request, comment_thread=tuple(request.comment_thread) + (entry,))


# ═════════════════════════════════════════════════════════════════════════════
# Persistence adapters
# ═════════════════════════════════════════════════════════════════════════════

def snapshot_from_record(record) -> ApprovalSnapshot:
    """Build a snapshot from an ApprovalRequest row (or a dict with the same keys)."""
    get = record.get if isinstance(record, dict) else lambda k, d=None: getattr(record, k, d)
    responses = tuple(PartnerResponse.from_dict(r) for r in (get("partner_responses") or []))
    return ApprovalSnapshot(
        responses=responses,
        status=get("status") or derive_status(responses),
        comment_thread=tuple(get("comment_thread") or []),
    )


def responses_to_json(snapshot: ApprovalSnapshot) -> list[dict]:
    return [r.to_dict() for r in snapshot.responses]


def thread_to_json(snapshot: ApprovalSnapshot) -> list[dict]:
    return [c.to_dict() if isinstance(c, ThreadComment) else dict(c) for c in snapshot.comment_thread]
