"""
Contract lifecycle & partner messaging tests.

Tests cover:
  - Draft → sent → signed, partner contract_status kept in step
  - Review / reject / re-send with a version bump
  - Illegal transitions → 422
  - Expiry (single, by date, CLI)
  - Contract discussion notifications
  - Partner <-> admin conversation, unread tracking, admin inbox
"""

import pytest

from partnerhub.models.audit import ActivityLog
from partnerhub.models.notification import Notification


def _create(client, partner_id, **overrides):
    payload = {
        "title": "Gold sponsorship 2025",
        "contract_type": "sponsorship",
        "file_url": "https://files.test/contracts/gold-v1.pdf",
    }
    payload.update(overrides)
    return client.post(f"/api/v1/partners/{partner_id}/contracts", json=payload,
                       headers={"X-User": "alice"})


def _partner_status(client, partner_id):
    partners = client.get("/api/v1/partners").get_json()
    return next(p["contract_status"] for p in partners if p["id"] == partner_id)


@pytest.fixture()
def sent_contract(client, partner):
    res = _create(client, partner["id"], send=True)
    assert res.status_code == 201
    return res.get_json()


# ═════════════════════════════════════════════════════════════════════════
# LIFECYCLE
# ═════════════════════════════════════════════════════════════════════════

class TestContractLifecycle:
    def test_create_draft(self, client, partner):
        res = _create(client, partner["id"])
        assert res.status_code == 201
        data = res.get_json()
        assert data["status"] == "draft"
        assert data["version"] == 1
        assert data["created_by"] == "alice"
        assert data["sent_at"] is None
        assert _partner_status(client, partner["id"]) == "pending"
        assert ActivityLog.query.filter_by(action="contract.create").count() == 1

    def test_send_on_create_notifies_partner(self, client, partner, sent_contract):
        assert sent_contract["status"] == "sent"
        assert sent_contract["sent_at"] is not None
        assert _partner_status(client, partner["id"]) == "sent"

        inbox = client.get("/api/v1/notifications?recipient=ops@acme.test").get_json()
        assert inbox["total"] == 1
        assert inbox["items"][0]["title"] == "Contract ready for signature: Gold sponsorship 2025"
        assert inbox["items"][0]["link"] == f"/contracts/{sent_contract['id']}"
        assert ActivityLog.query.filter_by(action="contract.send").count() == 1

    def test_send_requires_document(self, client, partner):
        cid = _create(client, partner["id"], file_url="").get_json()["id"]
        res = client.post(f"/api/v1/contracts/{cid}/send", json={})
        assert res.status_code == 422
        assert res.get_json()["details"] == {"file_url": "required"}
        assert client.get(f"/api/v1/contracts/{cid}").get_json()["status"] == "draft"

    def test_sign(self, client, partner, sent_contract):
        res = client.post(f"/api/v1/contracts/{sent_contract['id']}/sign", json={
            "signed_by": "Jane Doe", "file_url_signed": "https://files.test/contracts/gold-signed.pdf",
        })
        assert res.status_code == 200
        data = res.get_json()
        assert data["status"] == "signed"
        assert data["signed_by"] == "Jane Doe"
        assert data["signed_at"] is not None
        assert _partner_status(client, partner["id"]) == "signed"

        notif = Notification.query.filter_by(recipient="alice", category="contract").one()
        assert notif.title == "Contract signed: Gold sponsorship 2025"

    def test_sign_requires_signer(self, client, sent_contract):
        res = client.post(f"/api/v1/contracts/{sent_contract['id']}/sign", json={})
        assert res.status_code == 422

    def test_reject_then_resend_bumps_version(self, client, partner, sent_contract):
        cid = sent_contract["id"]
        res = client.put(f"/api/v1/contracts/{cid}/status",
                         json={"status": "rejected", "notes": "Clause 4 needs the new fee"})
        assert res.status_code == 200
        assert res.get_json()["status"] == "rejected"
        assert _partner_status(client, partner["id"]) == "pending"

        res = client.post(f"/api/v1/contracts/{cid}/send",
                          json={"file_url": "https://files.test/contracts/gold-v2.pdf"})
        data = res.get_json()
        assert data["status"] == "sent"
        assert data["version"] == 2
        assert data["file_url_original"].endswith("gold-v2.pdf")

    def test_under_review_can_be_signed(self, client, sent_contract):
        cid = sent_contract["id"]
        client.put(f"/api/v1/contracts/{cid}/status", json={"status": "under_review"})
        res = client.post(f"/api/v1/contracts/{cid}/sign", json={"signed_by": "Jane Doe"})
        assert res.get_json()["status"] == "signed"

    def test_partner_status_follows_latest_contract(self, client, partner, sent_contract):
        client.post(f"/api/v1/contracts/{sent_contract['id']}/sign", json={"signed_by": "Jane"})
        _create(client, partner["id"], title="Side event addendum")
        assert _partner_status(client, partner["id"]) == "pending"


class TestContractTransitions:
    def test_cannot_sign_a_draft(self, client, partner):
        cid = _create(client, partner["id"]).get_json()["id"]
        res = client.post(f"/api/v1/contracts/{cid}/sign", json={"signed_by": "Jane"})
        assert res.status_code == 422
        assert res.get_json()["details"]["status"] == {"current": "draft", "requested": "signed"}

    def test_expired_is_final(self, client, sent_contract):
        cid = sent_contract["id"]
        assert client.post(f"/api/v1/contracts/{cid}/expire").get_json()["status"] == "expired"
        assert client.post(f"/api/v1/contracts/{cid}/expire").status_code == 422
        assert client.post(f"/api/v1/contracts/{cid}/send", json={}).status_code == 422

    @pytest.mark.parametrize("status", ["signed", "sent", "expired", "bogus"])
    def test_status_route_only_reviews(self, client, sent_contract, status):
        res = client.put(f"/api/v1/contracts/{sent_contract['id']}/status", json={"status": status})
        assert res.status_code == 422

    def test_missing_status_is_400(self, client, sent_contract):
        assert client.put(f"/api/v1/contracts/{sent_contract['id']}/status", json={}).status_code == 400

    def test_unknown_contract_is_404(self, client):
        assert client.get("/api/v1/contracts/999").status_code == 404
        assert client.post("/api/v1/contracts/999/sign", json={"signed_by": "x"}).status_code == 404

    @pytest.mark.parametrize("payload", [
        {"title": ""},
        {"contract_type": "loan"},
        {"expires_on": "end of year"},
    ])
    def test_invalid_contract_is_422(self, client, partner, payload):
        assert _create(client, partner["id"], **payload).status_code == 422

    def test_unknown_partner_is_404(self, client):
        assert _create(client, 999).status_code == 404


class TestContractListingAndExpiry:
    def test_list_filters(self, client, partner, second_partner, sent_contract):
        _create(client, second_partner["id"], title="Media kit")
        assert len(client.get("/api/v1/contracts").get_json()) == 2
        sent = client.get("/api/v1/contracts?status=sent").get_json()
        assert [c["id"] for c in sent] == [sent_contract["id"]]
        mine = client.get(f"/api/v1/contracts?partner_id={second_partner['id']}").get_json()
        assert [c["title"] for c in mine] == ["Media kit"]

    def test_bad_status_filter_is_422(self, client):
        assert client.get("/api/v1/contracts?status=lost").status_code == 422

    def test_expire_due(self, client, partner, second_partner):
        _create(client, partner["id"], expires_on="2025-01-31", send=True)
        _create(client, second_partner["id"], expires_on="2025-01-31")          # draft stays
        _create(client, second_partner["id"], expires_on="2025-03-01", send=True)

        res = client.post("/api/v1/contracts/expire-due?today=2025-02-01")
        assert res.get_json() == {"expired": 1}
        assert _partner_status(client, partner["id"]) == "expired"
        assert client.post("/api/v1/contracts/expire-due?today=2025-02-01").get_json() == {"expired": 0}

    def test_expire_due_bad_date_is_400(self, client):
        assert client.post("/api/v1/contracts/expire-due?today=soon").status_code == 400

    def test_cli_command(self, app, client, partner):
        cid = _create(client, partner["id"], expires_on="2025-01-31", send=True).get_json()["id"]
        result = app.test_cli_runner().invoke(args=["expire-contracts", "--today", "2025-02-01"])
        assert result.exit_code == 0
        assert client.get(f"/api/v1/contracts/{cid}").get_json()["status"] == "expired"


class TestContractDiscussion:
    def test_thread_and_notifications(self, client, partner, sent_contract):
        url = f"/api/v1/contracts/{sent_contract['id']}/messages"
        res = client.post(url, json={"sender": "Jane", "sender_role": "partner", "message": "Can we add a booth?"})
        assert res.status_code == 201
        client.post(url, json={"sender": "alice", "sender_role": "admin", "message": "Yes, see v2"})

        thread = client.get(url).get_json()
        assert [m["sender_role"] for m in thread] == ["partner", "admin"]

        to_admin = Notification.query.filter_by(recipient="alice", category="contract").one()
        assert to_admin.message.startswith("Jane: Can we add a booth?")
        to_partner = Notification.query.filter_by(recipient="ops@acme.test", title="New comment on Gold sponsorship 2025")
        assert to_partner.count() == 1

    @pytest.mark.parametrize("payload", [
        {"sender": "Jane", "sender_role": "partner", "message": "  "},
        {"sender": "Jane", "sender_role": "guest", "message": "hi"},
        {"sender_role": "partner", "message": "hi"},
    ])
    def test_invalid_message_is_422(self, client, sent_contract, payload):
        res = client.post(f"/api/v1/contracts/{sent_contract['id']}/messages", json=payload)
        assert res.status_code == 422


# ═════════════════════════════════════════════════════════════════════════
# PARTNER MESSAGING
# ═════════════════════════════════════════════════════════════════════════

class TestPartnerMessaging:
    def test_conversation_and_unread_tracking(self, client, partner, second_partner):
        url = f"/api/v1/partners/{partner['id']}/messages"
        client.post(url, json={"sender": "Jane", "sender_role": "partner", "message": "Where do we park?"})
        client.post(url, json={"sender": "Jane", "sender_role": "partner", "message": "Also, badges?"})
        client.post(f"/api/v1/partners/{second_partner['id']}/messages",
                    json={"sender": "Max", "sender_role": "partner", "message": "Hello"})

        inbox = client.get("/api/v1/messages/unread").get_json()
        assert inbox == [
            {"partner_id": partner["id"], "unread": 2},
            {"partner_id": second_partner["id"], "unread": 1},
        ]

        res = client.post(f"{url}/read", json={"reader_role": "admin"})
        assert res.get_json() == {"marked_read": 2}
        assert [p["partner_id"] for p in client.get("/api/v1/messages/unread").get_json()] == [second_partner["id"]]

        thread = client.get(url).get_json()
        assert [m["message"] for m in thread] == ["Where do we park?", "Also, badges?"]
        assert all(m["is_read"] for m in thread)

    def test_partner_message_notifies_account_manager(self, client, partner):
        client.post(f"/api/v1/partners/{partner['id']}/messages",
                    json={"sender": "Jane", "sender_role": "partner", "message": "Where do we park?"})
        notif = Notification.query.filter_by(recipient="alice", category="message").one()
        assert notif.title == "New message from Acme Events"
        assert notif.link == f"/messages/{partner['id']}"

    def test_admin_message_notifies_partner(self, client, partner):
        client.post(f"/api/v1/partners/{partner['id']}/messages",
                    json={"sender_role": "admin", "message": "Parking is in lot C"},
                    headers={"X-User": "alice"})
        notif = Notification.query.filter_by(recipient="ops@acme.test", category="message").one()
        assert notif.title == "New Message from Admin"
        assert "alice" in notif.message

    def test_reader_does_not_mark_own_messages(self, client, partner):
        url = f"/api/v1/partners/{partner['id']}/messages"
        client.post(url, json={"sender": "alice", "sender_role": "admin", "message": "Welcome"})
        assert client.post(f"{url}/read", json={"reader_role": "admin"}).get_json() == {"marked_read": 0}
        count_url = f"{url}/unread-count"
        assert client.get(f"{count_url}?reader_role=partner").get_json() == {"unread_count": 1}
        assert client.get(f"{count_url}?reader_role=admin").get_json() == {"unread_count": 0}
        assert client.post(f"{url}/read", json={"reader_role": "partner"}).get_json() == {"marked_read": 1}
        assert client.get(f"{count_url}?reader_role=partner").get_json() == {"unread_count": 0}
        assert client.get(f"{count_url}?reader_role=guest").status_code == 422

    @pytest.mark.parametrize("payload", [
        {"sender_role": "partner", "message": ""},
        {"sender_role": "bot", "message": "hi"},
    ])
    def test_invalid_message_is_422(self, client, partner, payload):
        assert client.post(f"/api/v1/partners/{partner['id']}/messages", json=payload).status_code == 422

    def test_missing_reader_role_is_400(self, client, partner):
        assert client.post(f"/api/v1/partners/{partner['id']}/messages/read", json={}).status_code == 400

    def test_unknown_partner_is_404(self, client):
        assert client.get("/api/v1/partners/999/messages").status_code == 404
