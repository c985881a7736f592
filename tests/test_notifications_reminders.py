"""
Notification & deadline reminder tests.

Tests cover:
  - Notification inbox, unread counter, mark read / read all
  - Broadcast read state kept per recipient
  - Reminder config CRUD + validation
  - Reminder matching (pure) for deliverable and approval deadlines
  - Reminder delivery + same-day dedup (API and CLI)
"""

from datetime import date
from types import SimpleNamespace

import pytest

from partnerhub.models.notification import Notification
from partnerhub.services.notification import NotificationService
from partnerhub.services.reminder_service import select_due_reminders

TODAY = date(2025, 1, 29)


def _config(**overrides):
    values = {
        "id": 1,
        "is_active": True,
        "reminder_type": "deliverable_deadline",
        "days_before_deadline": [7, 3, 1],
    }
    values.update(overrides)
    return SimpleNamespace(**values)


# ═════════════════════════════════════════════════════════════════════════
# NOTIFICATIONS
# ═════════════════════════════════════════════════════════════════════════

class TestNotificationInbox:
    def test_inbox_includes_broadcasts(self, client):
        NotificationService.create(title="Personal", recipient="P1")
        NotificationService.broadcast(title="Everyone")
        NotificationService.create(title="Someone else", recipient="P2")

        data = client.get("/api/v1/notifications?recipient=P1").get_json()
        assert data["total"] == 2
        assert {n["title"] for n in data["items"]} == {"Personal", "Everyone"}
        assert data["unread_count"] == 2

    def test_mark_read_and_unread_only(self, client):
        notif = NotificationService.create(title="Hello", recipient="P1")
        NotificationService.create(title="Again", recipient="P1")

        res = client.post(f"/api/v1/notifications/{notif.id}/read")
        assert res.status_code == 200
        assert res.get_json()["is_read"] is True

        unread = client.get("/api/v1/notifications?recipient=P1&unread_only=true").get_json()
        assert [n["title"] for n in unread["items"]] == ["Again"]
        count = client.get("/api/v1/notifications/unread-count?recipient=P1").get_json()
        assert count["unread_count"] == 1

    def test_read_all(self, client):
        NotificationService.broadcast(title="x", recipients=["P1", "P1", "P2"])
        res = client.post("/api/v1/notifications/read-all", json={"recipient": "P1"})
        assert res.get_json()["marked_read"] == 2
        assert NotificationService.unread_count("P2") == 1

    def test_broadcast_read_state_is_per_recipient(self, client):
        notif = NotificationService.broadcast(title="Portal maintenance tonight")[0]
        assert NotificationService.unread_count("alice") == 1
        assert NotificationService.unread_count("bob") == 1

        res = client.post("/api/v1/notifications/read-all", json={"recipient": "alice"})
        assert res.get_json()["marked_read"] == 1
        assert NotificationService.unread_count("alice") == 0
        assert NotificationService.unread_count("bob") == 1

        bob_inbox = client.get("/api/v1/notifications?recipient=bob").get_json()
        assert bob_inbox["items"][0]["is_read"] is False

        res = client.post(f"/api/v1/notifications/{notif.id}/read", json={"recipient": "bob"})
        assert res.get_json()["is_read"] is True
        assert NotificationService.unread_count("bob") == 0
        assert NotificationService.unread_count("carol") == 1

    def test_marking_broadcast_read_twice_counts_once(self, client):
        NotificationService.broadcast(title="Welcome")
        assert NotificationService.mark_all_read("alice") == 1
        assert NotificationService.mark_all_read("alice") == 0

    def test_mark_unknown_is_404(self, client):
        assert client.post("/api/v1/notifications/999/read").status_code == 404


# ═════════════════════════════════════════════════════════════════════════
# REMINDER CONFIG CRUD
# ═════════════════════════════════════════════════════════════════════════

class TestReminderConfigs:
    def test_create_defaults(self, client):
        res = client.post("/api/v1/reminders", json={"name": "Standard"}, headers={"X-User": "alice"})
        assert res.status_code == 201
        data = res.get_json()
        assert data["reminder_type"] == "deliverable_deadline"
        assert data["days_before_deadline"] == [7, 3, 1]
        assert data["is_active"] is True
        assert data["created_by"] == "alice"

    def test_days_normalised_from_string(self, client):
        data = client.post("/api/v1/reminders",
                           json={"name": "x", "days_before_deadline": "1, 14,3,3"}).get_json()
        assert data["days_before_deadline"] == [14, 3, 1]

    @pytest.mark.parametrize("payload", [
        {"name": ""},
        {"name": "x", "reminder_type": "birthday"},
        {"name": "x", "days_before_deadline": [0]},
        {"name": "x", "days_before_deadline": []},
        {"name": "x", "days_before_deadline": ["soon"]},
    ])
    def test_invalid_config_is_422(self, client, payload):
        assert client.post("/api/v1/reminders", json=payload).status_code == 422

    def test_update_list_delete(self, client):
        rid = client.post("/api/v1/reminders", json={"name": "A"}).get_json()["id"]
        client.post("/api/v1/reminders", json={"name": "B", "reminder_type": "approval_deadline"})

        res = client.put(f"/api/v1/reminders/{rid}", json={"is_active": False, "days_before_deadline": [2]})
        assert res.status_code == 200
        assert res.get_json()["is_active"] is False
        assert res.get_json()["days_before_deadline"] == [2]

        approval_only = client.get("/api/v1/reminders?reminder_type=approval_deadline").get_json()
        assert [c["name"] for c in approval_only] == ["B"]

        assert client.delete(f"/api/v1/reminders/{rid}").status_code == 200
        assert [c["name"] for c in client.get("/api/v1/reminders").get_json()] == ["B"]

    def test_is_active_accepts_string_flags(self, client):
        rid = client.post("/api/v1/reminders", json={"name": "A"}).get_json()["id"]
        res = client.put(f"/api/v1/reminders/{rid}", json={"is_active": "false"})
        assert res.get_json()["is_active"] is False

    def test_unknown_config_is_404(self, client):
        assert client.put("/api/v1/reminders/999", json={"name": "x"}).status_code == 404
        assert client.delete("/api/v1/reminders/999").status_code == 404


# ═════════════════════════════════════════════════════════════════════════
# MATCHING
# ═════════════════════════════════════════════════════════════════════════

class TestSelectDueReminders:
    def test_deliverable_matches_exact_offsets(self):
        deliverables = [
            SimpleNamespace(id=1, partner_id=10, title="Logo", due_date=date(2025, 2, 1)),   # 3 days
            SimpleNamespace(id=2, partner_id=10, title="Bio", due_date=date(2025, 1, 31)),   # 2 days
            SimpleNamespace(id=3, partner_id=11, title="Plan", due_date=None),
        ]
        due = select_due_reminders([_config()], deliverables, [], TODAY, {10: "ops@acme.test"})
        assert len(due) == 1
        assert due[0].entity_id == 1
        assert due[0].days_left == 3
        assert due[0].recipients == ("ops@acme.test",)

    def test_partner_without_contact_falls_back(self):
        deliverables = [SimpleNamespace(id=1, partner_id=5, title="Logo", due_date=date(2025, 1, 30))]
        due = select_due_reminders([_config()], deliverables, [], TODAY)
        assert due[0].recipients == ("partner:5",)

    def test_inactive_config_ignored(self):
        deliverables = [SimpleNamespace(id=1, partner_id=5, title="Logo", due_date=date(2025, 1, 30))]
        assert select_due_reminders([_config(is_active=False)], deliverables, [], TODAY) == []

    def test_approval_reminds_only_pending_recipients(self):
        approvals = [
            SimpleNamespace(
                id=7, title="Floor plan", deadline=date(2025, 1, 30), status="partially_approved",
                partner_responses=[
                    {"recipient_id": "P1", "response": "approved"},
                    {"recipient_id": "P2", "response": "pending"},
                ],
            ),
            SimpleNamespace(
                id=8, title="Done", deadline=date(2025, 1, 30), status="rejected",
                partner_responses=[{"recipient_id": "P3", "response": "pending"}],
            ),
        ]
        due = select_due_reminders([_config(reminder_type="approval_deadline")], [], approvals, TODAY)
        assert len(due) == 1
        assert due[0].entity_type == "approval_request"
        assert due[0].recipients == ("P2",)


# ═════════════════════════════════════════════════════════════════════════
# DELIVERY
# ═════════════════════════════════════════════════════════════════════════

class TestRunReminders:
    @pytest.fixture()
    def logo_due(self, client, partner):
        res = client.post(f"/api/v1/partners/{partner['id']}/deliverables",
                          json={"title": "Logo pack", "due_date": "2025-02-01"})
        assert res.status_code == 201
        return res.get_json()

    def test_sends_once_per_day(self, client, logo_due):
        client.post("/api/v1/reminders", json={"name": "3 days", "days_before_deadline": [3]})

        first = client.post("/api/v1/reminders/run?today=2025-01-29")
        assert first.status_code == 200
        assert first.get_json() == {"sent": 1}
        assert client.post("/api/v1/reminders/run?today=2025-01-29").get_json() == {"sent": 0}
        assert client.post("/api/v1/reminders/run?today=2025-01-30").get_json() == {"sent": 0}

        inbox = client.get("/api/v1/notifications?recipient=ops@acme.test").get_json()
        assert inbox["total"] == 1
        assert inbox["items"][0]["title"] == "Deliverable due in 3 day(s): Logo pack"
        assert inbox["items"][0]["category"] == "reminder"

    def test_custom_template(self, client, logo_due):
        client.post("/api/v1/reminders", json={
            "name": "custom",
            "days_before_deadline": [3],
            "notification_title": "{title}: {days} days left",
            "notification_message": "Upload {title} soon",
        })
        client.post("/api/v1/reminders/run?today=2025-01-29")
        notif = Notification.query.filter_by(recipient="ops@acme.test").one()
        assert notif.title == "Logo pack: 3 days left"
        assert notif.message == "Upload Logo pack soon"

    def test_approval_deadline_reminders(self, client):
        aid = client.post("/api/v1/approvals", json={
            "title": "Floor plan", "recipients": ["P1", "P2", "P3"],
            "uploaded_by": "admin", "deadline": "2025-01-30",
        }).get_json()["id"]
        client.post(f"/api/v1/approvals/{aid}/respond", json={"recipient_id": "P1", "response": "approved"})
        client.post("/api/v1/reminders", json={
            "name": "last call", "reminder_type": "approval_deadline", "days_before_deadline": [1],
        })

        assert client.post("/api/v1/reminders/run?today=2025-01-29").get_json() == {"sent": 2}
        reminded = {n.recipient for n in Notification.query.filter_by(category="reminder").all()}
        assert reminded == {"P2", "P3"}

    def test_no_configs_sends_nothing(self, client, logo_due):
        assert client.post("/api/v1/reminders/run?today=2025-01-29").get_json() == {"sent": 0}

    def test_bad_date_is_400(self, client):
        assert client.post("/api/v1/reminders/run?today=tomorrow").status_code == 400

    def test_cli_command(self, app, client, logo_due):
        client.post("/api/v1/reminders", json={"name": "3 days", "days_before_deadline": [3]})
        result = app.test_cli_runner().invoke(args=["send-reminders", "--today", "2025-01-29"])
        assert result.exit_code == 0
        assert Notification.query.filter_by(category="reminder").count() == 1
