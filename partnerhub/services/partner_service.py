"""
Partner, Nomination & Progress Service.

Admin-side management of partner records plus the partner-side
nomination flow and profile-progress updates that feed the dashboard.
"""

from __future__ import annotations

import logging

from partnerhub.core.exceptions import NotFoundError, ValidationError
from partnerhub.models import db
from partnerhub.models.audit import write_activity
from partnerhub.models.partner import (
    CONTRACT_STATUSES,
    NOMINATION_STATUSES,
    NOMINATION_TYPES,
    PARTNER_TIERS,
    Deliverable,
    Nomination,
    Partner,
    PartnerProgress,
)

logger = logging.getLogger(__name__)


def _get_partner(partner_id: int) -> Partner:
    partner = db.session.get(Partner, partner_id)
    if partner is None:
        raise NotFoundError(resource="Partner", resource_id=partner_id)
    return partner


# ── Partners ─────────────────────────────────────────────────────────────────


def create_partner(data: dict) -> dict:
    name = (data.get("name") or "").strip()
    tier = data.get("tier") or "silver"
    contract_status = data.get("contract_status") or "pending"
    errors = {}
    if not name:
        errors["name"] = "name is required"
    if tier not in PARTNER_TIERS:
        errors["tier"] = f"tier must be one of {sorted(PARTNER_TIERS)}"
    if contract_status not in CONTRACT_STATUSES:
        errors["contract_status"] = f"contract_status must be one of {sorted(CONTRACT_STATUSES)}"
    if errors:
        raise ValidationError("; ".join(errors.values()), details=errors)

    partner = Partner(
        name=name,
        tier=tier,
        contract_status=contract_status,
        contact_email=(data.get("contact_email") or "").strip() or None,
        account_manager=(data.get("account_manager") or "").strip() or None,
    )
    db.session.add(partner)
    db.session.flush()
    db.session.add(PartnerProgress(partner_id=partner.id, progress_percentage=0))
    write_activity(
        entity_type="partner", entity_id=partner.id, action="create",
        actor=data.get("created_by") or "admin", partner_id=partner.id,
        details={"name": name, "tier": tier},
    )
    db.session.commit()
    logger.info("Partner created", extra={"event_type": "partner.create"})
    return partner.to_dict()


def list_partners(account_manager: str | None = None) -> list[dict]:
    q = Partner.query
    if account_manager:
        q = q.filter_by(account_manager=account_manager)
    return [p.to_dict() for p in q.order_by(Partner.name).all()]


def assigned_partner_ids(account_manager: str) -> list[int]:
    """Ids of the partners an admin manages; used to scope the dashboard."""
    return [p.id for p in Partner.query.filter_by(account_manager=account_manager).all()]


def list_deliverables(partner_id: int) -> list[dict]:
    _get_partner(partner_id)
    rows = (
        Deliverable.query.filter_by(partner_id=partner_id)
        .order_by(Deliverable.due_date.is_(None), Deliverable.due_date, Deliverable.id)
        .all()
    )
    return [d.to_dict() for d in rows]


# ── Progress ─────────────────────────────────────────────────────────────────


def set_progress(partner_id: int, percentage) -> dict:
    _get_partner(partner_id)
    try:
        value = int(percentage)
    except (TypeError, ValueError) as exc:
        raise ValidationError("progress_percentage must be an integer",
                              details={"progress_percentage": str(percentage)}) from exc
    if not 0 <= value <= 100:
        raise ValidationError("progress_percentage must be between 0 and 100",
                              details={"progress_percentage": value})

    progress = PartnerProgress.query.filter_by(partner_id=partner_id).first()
    if progress is None:
        progress = PartnerProgress(partner_id=partner_id)
        db.session.add(progress)
    progress.progress_percentage = value
    db.session.commit()
    return progress.to_dict()


# ── Nominations ──────────────────────────────────────────────────────────────


def create_nomination(partner_id: int, data: dict) -> dict:
    _get_partner(partner_id)
    nomination_type = data.get("nomination_type", "")
    nominee_name = (data.get("nominee_name") or "").strip()
    if nomination_type not in NOMINATION_TYPES:
        raise ValidationError(f"nomination_type must be one of {sorted(NOMINATION_TYPES)}",
                              details={"nomination_type": nomination_type})
    if not nominee_name:
        raise ValidationError("nominee_name is required", details={"nominee_name": "required"})

    nomination = Nomination(
        partner_id=partner_id,
        nomination_type=nomination_type,
        nominee_name=nominee_name,
        details=data.get("details") or "",
        status="submitted",
    )
    db.session.add(nomination)
    db.session.flush()
    write_activity(
        entity_type="nomination", entity_id=nomination.id, action="create",
        actor=data.get("submitted_by") or "partner", partner_id=partner_id,
        details={"type": nomination_type, "nominee": nominee_name},
    )
    db.session.commit()
    return nomination.to_dict()


def update_nomination_status(nomination_id: int, status: str, actor: str = "admin") -> dict:
    nomination = db.session.get(Nomination, nomination_id)
    if nomination is None:
        raise NotFoundError(resource="Nomination", resource_id=nomination_id)
    if (status or "").lower() not in NOMINATION_STATUSES:
        raise ValidationError(f"status must be one of {sorted(NOMINATION_STATUSES)}",
                              details={"status": status})
    old = nomination.status
    nomination.status = status.lower()
    write_activity(
        entity_type="nomination", entity_id=nomination.id, action="update",
        actor=actor, partner_id=nomination.partner_id,
        details={"status": {"old": old, "new": nomination.status}},
    )
    db.session.commit()
    return nomination.to_dict()


def list_nominations(partner_id: int | None = None, status: str | None = None) -> list[dict]:
    q = Nomination.query
    if partner_id:
        q = q.filter_by(partner_id=partner_id)
    if status:
        q = q.filter(db.func.lower(Nomination.status) == status.lower())
    return [n.to_dict() for n in q.order_by(Nomination.created_at.desc(), Nomination.id.desc()).all()]
