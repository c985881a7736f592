"""
Partner Progress Aggregation Engine.

Turns already-fetched record collections into the admin dashboard metrics:
partner counts, deliverable / nomination stats, the profile-completion
distribution, the review funnel and deadline buckets.

Pure module: no database, no Flask, no clock.  ``now`` is always passed in,
and the caller re-invokes ``compute_dashboard_metrics`` on every new input
snapshot.  Scoping to an admin's assigned partners happens before the data
gets here (see dashboard_service.load_dashboard_inputs).

Rows may be plain dicts or objects with the same attribute names (ORM rows
work as-is).

Usage:
    from partnerhub.services.progress_metrics import DashboardInputs, compute_dashboard_metrics
    metrics = compute_dashboard_metrics(DashboardInputs(partners=..., ...), now=datetime.now(UTC))
    payload = metrics.to_dict()
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

# ═════════════════════════════════════════════════════════════════════════════
# Constants
# ═════════════════════════════════════════════════════════════════════════════

ACTIVE_PARTNER_THRESHOLD = 60

IN_REVIEW_STATUSES = frozenset({"submitted", "pending_review"})
NOMINATION_PENDING_STATUSES = frozenset({"submitted", "under_review", "pending"})

# (label, lower bound exclusive, upper bound inclusive); first bucket also takes 0
COMPLETION_BUCKETS = (
    ("0-20%", None, 20),
    ("21-40%", 20, 40),
    ("41-60%", 40, 60),
    ("61-80%", 60, 80),
    ("81-100%", 80, None),
)

DUE_THIS_WEEK_DAYS = 7


# ═════════════════════════════════════════════════════════════════════════════
# Data Classes
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DashboardInputs:
    """One snapshot of the collections the dashboard is computed from."""
    partners: Iterable[Any] | None = ()
    deliverables: Iterable[Any] | None = ()
    submissions: Iterable[Any] | None = ()
    nominations: Iterable[Any] | None = ()
    progress: Iterable[Any] | None = ()
    media_files_count: int | None = 0
    recent_activity: Iterable[Any] | None = ()


@dataclass
class DashboardMetrics:
    total_partners: int = 0
    active_partners: int = 0
    deliverables_stats: dict = field(default_factory=dict)
    nominations_stats: dict = field(default_factory=dict)
    completion_distribution: list[dict] = field(default_factory=list)
    workflow_funnel: dict = field(default_factory=dict)
    deadlines_overview: dict = field(default_factory=dict)
    media_files: int = 0
    recent_activity: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalPartners": self.total_partners,
            "activePartners": self.active_partners,
            "deliverablesStats": dict(self.deliverables_stats),
            "nominationsStats": dict(self.nominations_stats),
            "completionDistribution": [dict(b) for b in self.completion_distribution],
            "workflowFunnel": dict(self.workflow_funnel),
            "deadlinesOverview": dict(self.deadlines_overview),
            "mediaFiles": self.media_files,
            "recentActivity": [
                a.to_dict() if hasattr(a, "to_dict") else a for a in self.recent_activity
            ],
        }


# ═════════════════════════════════════════════════════════════════════════════
# Row access helpers
# ═════════════════════════════════════════════════════════════════════════════

def _field(row, name, default=None):
    if isinstance(row, dict):
        return row.get(name, default)
    return getattr(row, name, default)


def _rows(collection) -> list:
    return list(collection) if collection is not None else []


def _percentage(row) -> float | None:
    value = _field(row, "progress_percentage")
    if value is None:
        return None
    try:
        pct = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(pct) else pct


def _as_date(value, now: datetime) -> date | None:
    """Normalise a due date (date, datetime or ISO string) to a calendar date in now's zone."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            try:
                value = date.fromisoformat(value[:10])
            except ValueError:
                return None
    if isinstance(value, datetime):
        if value.tzinfo is not None and now.tzinfo is not None:
            value = value.astimezone(now.tzinfo)
        return value.date()
    if isinstance(value, date):
        return value
    return None


def _status(row) -> str:
    status = _field(row, "status")
    return str(status).lower() if status is not None else ""


# ═════════════════════════════════════════════════════════════════════════════
# Individual metrics
# ═════════════════════════════════════════════════════════════════════════════

def count_active_partners(progress) -> int:
    """Partners whose profile completion exceeds the active threshold."""
    return sum(1 for p in progress if (_percentage(p) or 0) > ACTIVE_PARTNER_THRESHOLD)


def submission_status_counts(submissions) -> dict:
    """Split submissions into in-review / approved / rejected counts."""
    counts = {"in_review": 0, "approved": 0, "rejected": 0}
    for s in submissions:
        status = _field(s, "status")
        if status in IN_REVIEW_STATUSES:
            counts["in_review"] += 1
        elif status == "approved":
            counts["approved"] += 1
        elif status == "rejected":
            counts["rejected"] += 1
    return counts


def nomination_stats(nominations) -> dict:
    total = pending = approved = 0
    for n in nominations:
        total += 1
        status = _status(n)
        if status in NOMINATION_PENDING_STATUSES:
            pending += 1
        elif status == "approved":
            approved += 1
    return {"total": total, "pending": pending, "approved": approved}


def completion_distribution(progress) -> list[dict]:
    """Five disjoint buckets; records with no percentage are left out."""
    counts = [0] * len(COMPLETION_BUCKETS)
    for p in progress:
        pct = _percentage(p)
        if pct is None:
            continue
        for idx, (_, lo, hi) in enumerate(COMPLETION_BUCKETS):
            if (lo is None or pct > lo) and (hi is None or pct <= hi):
                counts[idx] += 1
                break
    return [
        {"range": label, "count": counts[idx]}
        for idx, (label, _, _) in enumerate(COMPLETION_BUCKETS)
    ]


def deadline_bucket(due_date, now: datetime) -> str | None:
    """Return overdue / dueToday / dueThisWeek / dueLater, or None when undated."""
    due = _as_date(due_date, now)
    if due is None:
        return None
    days = (due - now.date()).days
    if days < 0:
        return "overdue"
    if days == 0:
        return "dueToday"
    if days <= DUE_THIS_WEEK_DAYS:
        return "dueThisWeek"
    return "dueLater"


def deadlines_overview(deliverables, now: datetime) -> dict:
    overview = {"overdue": 0, "dueToday": 0, "dueThisWeek": 0, "dueLater": 0}
    for d in deliverables:
        bucket = deadline_bucket(_field(d, "due_date"), now)
        if bucket:
            overview[bucket] += 1
    return overview


# ═════════════════════════════════════════════════════════════════════════════
# Aggregate
# ═════════════════════════════════════════════════════════════════════════════

def compute_dashboard_metrics(inputs: DashboardInputs, now: datetime) -> DashboardMetrics:
    """Compute every dashboard metric from one input snapshot.

    A collection passed as None counts as empty, so an unavailable slice
    reports zeros instead of failing the whole dashboard.
    """
    partners = _rows(inputs.partners)
    deliverables = _rows(inputs.deliverables)
    submissions = _rows(inputs.submissions)
    nominations = _rows(inputs.nominations)
    progress = _rows(inputs.progress)

    by_status = submission_status_counts(submissions)

    return DashboardMetrics(
        total_partners=len(partners),
        active_partners=count_active_partners(progress),
        deliverables_stats={
            "pending": by_status["in_review"],
            "approved": by_status["approved"],
            "rejected": by_status["rejected"],
            "total": len(deliverables),
        },
        nominations_stats=nomination_stats(nominations),
        completion_distribution=completion_distribution(progress),
        workflow_funnel={
            "uploaded": len(submissions),
            "inReview": by_status["in_review"],
            "approved": by_status["approved"],
            "rejected": by_status["rejected"],
        },
        deadlines_overview=deadlines_overview(deliverables, now),
        media_files=int(inputs.media_files_count or 0),
        recent_activity=_rows(inputs.recent_activity),
    )


def partner_engagement(inputs: DashboardInputs) -> list[dict]:
    """Per-partner engagement rows for the analytics table, highest progress first."""
    progress_by_partner = {
        _field(p, "partner_id"): _percentage(p) for p in _rows(inputs.progress)
    }
    submissions_by_partner: dict = {}
    approved_by_partner: dict = {}
    for s in _rows(inputs.submissions):
        pid = _field(s, "partner_id")
        submissions_by_partner[pid] = submissions_by_partner.get(pid, 0) + 1
        if _field(s, "status") == "approved":
            approved_by_partner[pid] = approved_by_partner.get(pid, 0) + 1
    nominations_by_partner: dict = {}
    for n in _rows(inputs.nominations):
        pid = _field(n, "partner_id")
        nominations_by_partner[pid] = nominations_by_partner.get(pid, 0) + 1

    rows = []
    for partner in _rows(inputs.partners):
        pid = _field(partner, "id")
        rows.append({
            "partner_id": pid,
            "name": _field(partner, "name"),
            "tier": _field(partner, "tier"),
            "progress": progress_by_partner.get(pid) or 0,
            "submissions": submissions_by_partner.get(pid, 0),
            "approved": approved_by_partner.get(pid, 0),
            "nominations": nominations_by_partner.get(pid, 0),
        })
    rows.sort(key=lambda r: (-r["progress"], str(r["name"] or "")))
    return rows
