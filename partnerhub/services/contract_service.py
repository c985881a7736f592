"""
Contract Lifecycle Service.

Admins upload a contract for a partner, send it for signature and track it
until it is signed, rejected or expires.  Both sides discuss the document
in a per-contract message thread.

Lifecycle:
    draft ──send──> sent ──sign──> signed ──expire──> expired
                     │  ^
           review /  │  │ send (new version)
           reject    v  │
                under_review / rejected

Business rules:
    - Every change goes through CONTRACT_TRANSITIONS; anything else is a
      ValidationError.
    - Re-sending a contract that was already sent bumps ``version``.
    - A contract can only be sent once it has a document URL.
    - The partner's ``contract_status`` follows its most recent contract.
    - Notifications and the activity log are best effort after the commit.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import select

from partnerhub.core.exceptions import NotFoundError, ValidationError
from partnerhub.models import db
from partnerhub.models.audit import write_activity
from partnerhub.models.contract import (
    CONTRACT_STATES,
    CONTRACT_TYPES,
    SENDER_ROLES,
    Contract,
    ContractMessage,
)
from partnerhub.models.partner import Partner
from partnerhub.services.notification import NotificationService
from partnerhub.utils.helpers import parse_date

logger = logging.getLogger(__name__)

CONTRACT_TRANSITIONS = {
    "draft": {"sent"},
    "sent": {"under_review", "signed", "rejected", "expired"},
    "under_review": {"sent", "signed", "rejected", "expired"},
    "rejected": {"sent"},
    "signed": {"expired"},
    "expired": set(),
}

# Contract.status -> Partner.contract_status
PARTNER_CONTRACT_STATUS = {
    "draft": "pending",
    "sent": "sent",
    "under_review": "sent",
    "rejected": "pending",
    "signed": "signed",
    "expired": "expired",
}

EXPIRABLE_STATES = frozenset({"sent", "under_review", "signed"})


# ── Private helpers ────────────────────────────────────────────────────────────


def _load_for_update(contract_id: int) -> Contract:
    contract = db.session.execute(
        select(Contract)
        .where(Contract.id == contract_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if contract is None:
        raise NotFoundError(resource="Contract", resource_id=contract_id)
    return contract


def _check_transition(contract: Contract, new_status: str) -> None:
    if new_status not in CONTRACT_TRANSITIONS.get(contract.status, set()):
        raise ValidationError(
            f"Contract cannot move from {contract.status} to {new_status}",
            details={"status": {"current": contract.status, "requested": new_status}},
        )


def _sync_partner_status(contract: Contract) -> None:
    latest_id = db.session.execute(
        select(db.func.max(Contract.id)).where(Contract.partner_id == contract.partner_id)
    ).scalar()
    if latest_id == contract.id:
        partner = db.session.get(Partner, contract.partner_id)
        if partner is not None:
            partner.contract_status = PARTNER_CONTRACT_STATUS[contract.status]


def _partner_address(partner_id: int) -> str:
    partner = db.session.get(Partner, partner_id)
    return (partner.contact_email if partner else None) or f"partner:{partner_id}"


def _admin_address(contract: Contract) -> str:
    partner = db.session.get(Partner, contract.partner_id)
    return (partner.account_manager if partner else None) or contract.created_by or "admin"


def _follow_up(contract: Contract, actor: str, action: str, details: dict,
               recipient: str | None = None, title: str = "", message: str = "",
               severity: str = "info") -> None:
    try:
        write_activity(
            entity_type="contract", entity_id=contract.id, action=action,
            actor=actor, partner_id=contract.partner_id, details=details,
        )
        if recipient:
            NotificationService.enqueue(
                recipient, title, message,
                category="contract", severity=severity,
                entity_type="contract", entity_id=contract.id, commit=False,
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.warning("Best-effort follow-up for contract %s failed", contract.id, exc_info=True)


def _change_status(contract: Contract, new_status: str) -> str:
    _check_transition(contract, new_status)
    old = contract.status
    contract.status = new_status
    _sync_partner_status(contract)
    return old


# ── Create / read ──────────────────────────────────────────────────────────────


def create_contract(partner_id: int, data: dict, created_by: str = "system") -> dict:
    """Create a draft contract; ``data["send"]`` sends it straight away."""
    if db.session.get(Partner, partner_id) is None:
        raise NotFoundError(resource="Partner", resource_id=partner_id)

    title = (data.get("title") or "").strip()
    contract_type = data.get("contract_type") or "sponsorship"
    expires_on = parse_date(data.get("expires_on")) if data.get("expires_on") else None
    errors = {}
    if not title:
        errors["title"] = "title is required"
    if contract_type not in CONTRACT_TYPES:
        errors["contract_type"] = f"contract_type must be one of {sorted(CONTRACT_TYPES)}"
    if data.get("expires_on") and expires_on is None:
        errors["expires_on"] = "expires_on must be YYYY-MM-DD"
    if errors:
        raise ValidationError("; ".join(errors.values()), details=errors)

    contract = Contract(
        partner_id=partner_id,
        title=title,
        contract_type=contract_type,
        file_url_original=(data.get("file_url") or "").strip() or None,
        notes=(data.get("notes") or "").strip(),
        expires_on=expires_on,
        created_by=created_by or "system",
        status="draft",
    )
    db.session.add(contract)
    db.session.flush()
    _sync_partner_status(contract)
    db.session.commit()
    logger.info(
        "Contract created",
        extra={"contract_id": contract.id, "partner_id": partner_id, "event_type": "contract.create"},
    )
    _follow_up(contract, contract.created_by, "contract.create", {"title": title})

    if data.get("send"):
        return send_contract(contract.id, actor=contract.created_by)
    return contract.to_dict()


def get_contract(contract_id: int) -> dict:
    contract = db.session.get(Contract, contract_id)
    if contract is None:
        raise NotFoundError(resource="Contract", resource_id=contract_id)
    return contract.to_dict()


def list_contracts(partner_id: int | None = None, status: str | None = None) -> list[dict]:
    if status and status not in CONTRACT_STATES:
        raise ValidationError(f"status must be one of {sorted(CONTRACT_STATES)}", details={"status": status})
    q = Contract.query
    if partner_id:
        q = q.filter_by(partner_id=partner_id)
    if status:
        q = q.filter_by(status=status)
    return [c.to_dict() for c in q.order_by(Contract.created_at.desc(), Contract.id.desc()).all()]


# ── Lifecycle ──────────────────────────────────────────────────────────────────


def send_contract(contract_id: int, actor: str = "admin", file_url: str | None = None) -> dict:
    """Send (or re-send with a new document) a contract to the partner for signature."""
    contract = _load_for_update(contract_id)
    _check_transition(contract, "sent")
    file_url = (file_url or "").strip() or None
    if file_url:
        if contract.sent_at is not None:
            contract.version += 1
        contract.file_url_original = file_url
    if not contract.file_url_original:
        raise ValidationError("A contract document is required before sending",
                              details={"file_url": "required"})

    old = _change_status(contract, "sent")
    contract.sent_at = datetime.now(timezone.utc)
    db.session.commit()

    logger.info(
        "Contract sent",
        extra={"contract_id": contract.id, "partner_id": contract.partner_id, "old_status": old, "new_status": "sent"},
    )
    _follow_up(
        contract, actor, "contract.send",
        {"status": {"old": old, "new": "sent"}, "version": contract.version},
        recipient=_partner_address(contract.partner_id),
        title=f"Contract ready for signature: {contract.title}",
        message=f"Version {contract.version} of {contract.title} is ready for your review and signature.",
    )
    return contract.to_dict()


def sign_contract(contract_id: int, signed_by: str, file_url_signed: str | None = None) -> dict:
    signed_by = (signed_by or "").strip()
    if not signed_by:
        raise ValidationError("signed_by is required", details={"signed_by": "required"})

    contract = _load_for_update(contract_id)
    old = _change_status(contract, "signed")
    contract.signed_by = signed_by
    contract.signed_at = datetime.now(timezone.utc)
    contract.file_url_signed = (file_url_signed or "").strip() or None
    db.session.commit()

    logger.info(
        "Contract signed",
        extra={"contract_id": contract.id, "partner_id": contract.partner_id, "old_status": old, "new_status": "signed"},
    )
    _follow_up(
        contract, signed_by, "contract.sign",
        {"status": {"old": old, "new": "signed"}, "version": contract.version},
        recipient=_admin_address(contract),
        title=f"Contract signed: {contract.title}",
        message=f"{signed_by} signed version {contract.version} of {contract.title}.",
        severity="success",
    )
    return contract.to_dict()


def update_status(contract_id: int, status: str, actor: str = "admin", notes: str | None = None) -> dict:
    """Admin review step: move a sent contract to under_review or rejected."""
    if status not in {"under_review", "rejected"}:
        raise ValidationError(
            "status must be under_review or rejected; use send / sign / expire for the rest",
            details={"status": status},
        )
    contract = _load_for_update(contract_id)
    old = _change_status(contract, status)
    if notes and notes.strip():
        contract.notes = notes.strip()
    db.session.commit()

    _follow_up(
        contract, actor, "contract.status",
        {"status": {"old": old, "new": status}, "notes": contract.notes},
        recipient=_partner_address(contract.partner_id) if status == "rejected" else None,
        title=f"Contract returned: {contract.title}",
        message=contract.notes or "The contract needs changes before it can be signed.",
        severity="warning",
    )
    return contract.to_dict()


def expire_contract(contract_id: int, actor: str = "system") -> dict:
    contract = _load_for_update(contract_id)
    old = _change_status(contract, "expired")
    db.session.commit()
    _follow_up(contract, actor, "contract.expire", {"status": {"old": old, "new": "expired"}})
    return contract.to_dict()


def expire_due_contracts(today: date | None = None) -> int:
    """Expire every open or signed contract whose ``expires_on`` is before today."""
    today = today or date.today()
    due = (
        Contract.query
        .filter(Contract.expires_on.isnot(None), Contract.expires_on < today,
                Contract.status.in_(EXPIRABLE_STATES))
        .order_by(Contract.id)
        .all()
    )
    for contract in due:
        old = _change_status(contract, "expired")
        write_activity(
            entity_type="contract", entity_id=contract.id, action="contract.expire",
            actor="system", partner_id=contract.partner_id,
            details={"status": {"old": old, "new": "expired"}, "expires_on": contract.expires_on.isoformat()},
        )
    db.session.commit()
    if due:
        logger.info("Expired %d contracts", len(due), extra={"event_type": "contract.expire"})
    return len(due)


# ── Discussion ─────────────────────────────────────────────────────────────────


def add_contract_message(contract_id: int, sender: str, sender_role: str, message: str,
                         attachment_url: str | None = None) -> dict:
    contract = db.session.get(Contract, contract_id)
    if contract is None:
        raise NotFoundError(resource="Contract", resource_id=contract_id)
    sender = (sender or "").strip()
    message = (message or "").strip()
    errors = {}
    if not sender:
        errors["sender"] = "sender is required"
    if sender_role not in SENDER_ROLES:
        errors["sender_role"] = f"sender_role must be one of {sorted(SENDER_ROLES)}"
    if not message:
        errors["message"] = "message is required"
    if errors:
        raise ValidationError("; ".join(errors.values()), details=errors)

    entry = ContractMessage(
        contract_id=contract_id,
        sender=sender,
        sender_role=sender_role,
        message=message,
        attachment_url=(attachment_url or "").strip() or None,
    )
    db.session.add(entry)
    db.session.commit()

    other_side = _admin_address(contract) if sender_role == "partner" else _partner_address(contract.partner_id)
    _follow_up(
        contract, sender, "contract.comment", {"sender_role": sender_role},
        recipient=other_side,
        title=f"New comment on {contract.title}",
        message=f"{sender}: {message[:200]}",
    )
    return entry.to_dict()


def list_contract_messages(contract_id: int) -> list[dict]:
    contract = db.session.get(Contract, contract_id)
    if contract is None:
        raise NotFoundError(resource="Contract", resource_id=contract_id)
    return [m.to_dict() for m in contract.messages.all()]
