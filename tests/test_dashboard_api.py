"""
Dashboard metrics API tests.

Tests cover:
  - Full metrics payload over real partner / deliverable / submission rows
  - Assignment scoping (?assigned= and ?account_manager=)
  - Per-collection degradation when one fetch fails
  - Engagement table and activity feed
"""

from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from partnerhub.models import db
from partnerhub.models.partner import MediaFile
from partnerhub.services import dashboard_service


# ── Fixtures ────────────────────────────────────────────────────────────

@pytest.fixture()
def portfolio(client, partner, second_partner):
    """Two partners with progress, deliverables, submissions and a nomination."""
    a, b = partner["id"], second_partner["id"]
    assert client.put(f"/api/v1/partners/{a}/progress", json={"progress_percentage": 75}).status_code == 200
    assert client.put(f"/api/v1/partners/{b}/progress", json={"progress_percentage": 10}).status_code == 200

    today = date.today()
    soon = client.post(f"/api/v1/partners/{a}/deliverables",
                       json={"title": "Logo pack", "due_date": (today + timedelta(days=3)).isoformat()})
    late = client.post(f"/api/v1/partners/{a}/deliverables",
                       json={"title": "Booth plan", "due_date": (today - timedelta(days=5)).isoformat()})
    undated = client.post(f"/api/v1/partners/{b}/deliverables", json={"title": "Bio"})
    assert soon.status_code == late.status_code == undated.status_code == 201

    res = client.post(f"/api/v1/deliverables/{soon.get_json()['id']}/submissions",
                      json={"kind": "url", "content": "https://cdn.test/logo.zip"})
    assert res.status_code == 201
    res = client.post(f"/api/v1/deliverables/{undated.get_json()['id']}/submissions",
                      json={"kind": "text", "content": "We build rockets."})
    assert res.status_code == 201
    res = client.post(f"/api/v1/submissions/{res.get_json()['id']}/review", json={"decision": "approved"})
    assert res.status_code == 200

    res = client.post(f"/api/v1/partners/{a}/nominations",
                      json={"nomination_type": "speaker", "nominee_name": "Dr. Ada"})
    assert res.status_code == 201

    db.session.add(MediaFile(partner_id=a, file_name="stage.jpg"))
    db.session.commit()
    return {"a": a, "b": b}


# ═════════════════════════════════════════════════════════════════════════
# METRICS
# ═════════════════════════════════════════════════════════════════════════

class TestDashboardMetrics:
    def test_empty_database(self, client):
        res = client.get("/api/v1/dashboard/metrics")
        assert res.status_code == 200
        data = res.get_json()
        assert data["totalPartners"] == 0
        assert data["deliverablesStats"]["total"] == 0
        assert sum(b["count"] for b in data["completionDistribution"]) == 0

    def test_full_payload(self, client, portfolio):
        data = client.get("/api/v1/dashboard/metrics").get_json()
        assert data["totalPartners"] == 2
        assert data["activePartners"] == 1
        assert data["deliverablesStats"] == {"pending": 1, "approved": 1, "rejected": 0, "total": 3}
        assert data["nominationsStats"] == {"total": 1, "pending": 1, "approved": 0}
        assert data["workflowFunnel"] == {"uploaded": 2, "inReview": 1, "approved": 1, "rejected": 0}
        assert data["deadlinesOverview"]["overdue"] == 1
        assert data["deadlinesOverview"]["dueThisWeek"] == 1
        assert sum(data["deadlinesOverview"].values()) == 2
        assert data["mediaFiles"] == 1
        buckets = {b["range"]: b["count"] for b in data["completionDistribution"]}
        assert buckets["0-20%"] == 1
        assert buckets["61-80%"] == 1

    def test_recent_activity_newest_first(self, client, portfolio):
        activity = client.get("/api/v1/dashboard/metrics").get_json()["recentActivity"]
        assert activity
        assert activity[0]["action"] == "create"
        assert activity[0]["entity_type"] == "nomination"
        ids = [a["id"] for a in activity]
        assert ids == sorted(ids, reverse=True)

    def test_recomputed_on_every_call(self, client, portfolio):
        before = client.get("/api/v1/dashboard/metrics").get_json()
        client.post("/api/v1/partners", json={"name": "Gamma Labs"})
        after = client.get("/api/v1/dashboard/metrics").get_json()
        assert after["totalPartners"] == before["totalPartners"] + 1


class TestAssignmentScoping:
    def test_assigned_ids_restrict_every_metric(self, client, portfolio):
        data = client.get(f"/api/v1/dashboard/metrics?assigned={portfolio['a']}").get_json()
        assert data["totalPartners"] == 1
        assert data["activePartners"] == 1
        assert data["deliverablesStats"] == {"pending": 1, "approved": 0, "rejected": 0, "total": 2}
        assert data["mediaFiles"] == 1
        assert all(a["partner_id"] == portfolio["a"] for a in data["recentActivity"])

    def test_account_manager_resolves_assignment(self, client, portfolio):
        data = client.get("/api/v1/dashboard/metrics?account_manager=bob").get_json()
        assert data["totalPartners"] == 1
        assert data["deliverablesStats"]["approved"] == 1
        assert data["mediaFiles"] == 0

    def test_manager_without_partners_sees_everything(self, client, portfolio):
        data = client.get("/api/v1/dashboard/metrics?account_manager=nobody").get_json()
        assert data["totalPartners"] == 2

    def test_empty_assignment_is_unrestricted(self, client, portfolio):
        data = client.get("/api/v1/dashboard/metrics?assigned=").get_json()
        assert data["totalPartners"] == 2

    def test_bad_assignment_is_400(self, client):
        res = client.get("/api/v1/dashboard/metrics?assigned=1,abc")
        assert res.status_code == 400


class TestDegradation:
    def test_failed_collection_reports_zero_rest_intact(self, client, portfolio, monkeypatch):
        def _boom(partner_ids):
            raise OperationalError("SELECT nominations", {}, Exception("connection lost"))

        monkeypatch.setattr(dashboard_service, "_fetch_nominations", _boom)
        res = client.get("/api/v1/dashboard/metrics")
        assert res.status_code == 200
        data = res.get_json()
        assert data["nominationsStats"] == {"total": 0, "pending": 0, "approved": 0}
        assert data["totalPartners"] == 2
        assert data["deliverablesStats"]["total"] == 3

    def test_failed_media_count_degrades_to_zero(self, client, portfolio, monkeypatch):
        def _boom(partner_ids):
            raise OperationalError("SELECT count", {}, Exception("timeout"))

        monkeypatch.setattr(dashboard_service, "_fetch_media_count", _boom)
        data = client.get("/api/v1/dashboard/metrics").get_json()
        assert data["mediaFiles"] == 0
        assert data["activePartners"] == 1

    def test_non_database_error_also_degrades(self, client, portfolio, monkeypatch):
        def _boom(partner_ids):
            raise RuntimeError("activity store unreachable")

        monkeypatch.setattr(dashboard_service, "_fetch_recent_activity", _boom)
        res = client.get("/api/v1/dashboard/metrics")
        assert res.status_code == 200
        data = res.get_json()
        assert data["recentActivity"] == []
        assert data["totalPartners"] == 2


# ═════════════════════════════════════════════════════════════════════════
# ENGAGEMENT & ACTIVITY
# ═════════════════════════════════════════════════════════════════════════

class TestEngagementAndActivity:
    def test_engagement_rows(self, client, portfolio):
        rows = client.get("/api/v1/dashboard/engagement").get_json()
        assert [r["partner_id"] for r in rows] == [portfolio["a"], portfolio["b"]]
        assert rows[0]["progress"] == 75
        assert rows[0]["submissions"] == 1
        assert rows[1]["approved"] == 1

    def test_engagement_scoped(self, client, portfolio):
        rows = client.get(f"/api/v1/dashboard/engagement?assigned={portfolio['b']}").get_json()
        assert len(rows) == 1
        assert rows[0]["name"] == "Beta Media"

    def test_activity_feed_for_partner(self, client, portfolio):
        res = client.get(f"/api/v1/activity?partner_id={portfolio['b']}")
        assert res.status_code == 200
        actions = {a["action"] for a in res.get_json()}
        assert {"deliverable.create", "submission.upload", "submission.review"} <= actions

    def test_health(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"
        assert "X-Request-Duration-Ms" in res.headers

    def test_request_id_echoed(self, client):
        res = client.get("/api/v1/dashboard/metrics", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"
