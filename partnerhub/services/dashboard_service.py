"""
Admin Dashboard Metrics Service.

Fetches the raw collections behind the admin dashboard and hands them to
the pure aggregation engine (progress_metrics):
  - partners, deliverables, submissions, nominations, partner progress
  - media file count
  - recent activity

Each collection is loaded independently.  Any error loading one of
them is logged and that slice degrades to empty (0 for the media count);
the rest of the dashboard still renders.

Admins with assigned partners only see those partners' data.  An empty
or missing assignment list means "no restriction" (super admin view).
"""

import logging
from datetime import datetime, timezone

from flask import current_app

from partnerhub.models import db
from partnerhub.models.audit import list_activity
from partnerhub.models.partner import (
    Deliverable,
    MediaFile,
    Nomination,
    Partner,
    PartnerProgress,
    Submission,
)
from partnerhub.services.progress_metrics import (
    DashboardInputs,
    compute_dashboard_metrics,
    partner_engagement,
)

logger = logging.getLogger(__name__)


# ── Collection fetchers ──────────────────────────────────────────────────────


def _scoped(query, column, partner_ids):
    if partner_ids:
        query = query.filter(column.in_(partner_ids))
    return query


def _fetch_partners(partner_ids):
    return _scoped(Partner.query, Partner.id, partner_ids).order_by(Partner.id).all()


def _fetch_deliverables(partner_ids):
    return _scoped(Deliverable.query, Deliverable.partner_id, partner_ids).all()


def _fetch_submissions(partner_ids):
    return _scoped(Submission.query, Submission.partner_id, partner_ids).all()


def _fetch_nominations(partner_ids):
    return _scoped(Nomination.query, Nomination.partner_id, partner_ids).all()


def _fetch_progress(partner_ids):
    return _scoped(PartnerProgress.query, PartnerProgress.partner_id, partner_ids).all()


def _fetch_media_count(partner_ids):
    return _scoped(MediaFile.query, MediaFile.partner_id, partner_ids).count()


def _fetch_recent_activity(partner_ids):
    limit = current_app.config.get("DASHBOARD_RECENT_ACTIVITY_LIMIT", 10)
    return list_activity(partner_ids=partner_ids or None, limit=limit)


def _safe_fetch(name, fetcher, partner_ids, fallback):
    """Run one fetcher; on any error log it and return ``fallback``."""
    try:
        return fetcher(partner_ids)
    except Exception as exc:
        db.session.rollback()
        logger.warning(
            "Dashboard collection %s unavailable, degrading to empty: %s", name, exc,
            exc_info=True,
            extra={"event_type": "dashboard.partial_data"},
        )
        return fallback


# ── Public API ───────────────────────────────────────────────────────────────


def load_dashboard_inputs(assigned_partner_ids=None) -> DashboardInputs:
    """Fetch one snapshot of every dashboard collection, scoped to the assignment."""
    ids = [int(i) for i in assigned_partner_ids] if assigned_partner_ids else None
    return DashboardInputs(
        partners=_safe_fetch("partners", _fetch_partners, ids, []),
        deliverables=_safe_fetch("deliverables", _fetch_deliverables, ids, []),
        submissions=_safe_fetch("submissions", _fetch_submissions, ids, []),
        nominations=_safe_fetch("nominations", _fetch_nominations, ids, []),
        progress=_safe_fetch("progress", _fetch_progress, ids, []),
        media_files_count=_safe_fetch("media_files", _fetch_media_count, ids, 0),
        recent_activity=_safe_fetch("recent_activity", _fetch_recent_activity, ids, []),
    )


def get_dashboard_metrics(assigned_partner_ids=None, now=None) -> dict:
    """Full admin dashboard payload, recomputed from a fresh snapshot on every call."""
    inputs = load_dashboard_inputs(assigned_partner_ids)
    metrics = compute_dashboard_metrics(inputs, now or datetime.now(timezone.utc))
    return metrics.to_dict()


def get_partner_engagement(assigned_partner_ids=None) -> list[dict]:
    """Per-partner engagement rows for the analytics page."""
    return partner_engagement(load_dashboard_inputs(assigned_partner_ids))
