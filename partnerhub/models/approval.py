"""
PartnerHub — Approval Request model.

An admin uploads a file and distributes it to a set of partner recipients.
Each recipient's decision lives in the embedded ``partner_responses`` list;
the request-level ``status`` is a cached summary that is re-derived from
those responses on every write (see services/approval_reconciliation.py).

The JSON lists are replaced wholesale on each update, never mutated in
place, so SQLAlchemy change tracking sees every write.
"""

from datetime import datetime, timezone

from partnerhub.models import db

# ── Constants ────────────────────────────────────────────────────────────────

APPROVAL_STATUSES = {"pending", "partially_approved", "approved", "rejected"}
TERMINAL_STATUSES = {"approved", "rejected"}


class ApprovalRequest(db.Model):
    """
    Multi-recipient approval request.

    ``version_id`` is SQLAlchemy's optimistic-concurrency counter: a flush
    that updates a row whose version changed since it was read raises
    ``StaleDataError`` instead of silently overwriting another response.
    """

    __tablename__ = "approval_requests"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    file_url = db.Column(db.String(1000), nullable=True)
    deadline = db.Column(db.Date, nullable=True)
    uploaded_by = db.Column(db.String(150), nullable=False, comment="Admin who uploaded the file")

    assigned_recipients = db.Column(db.JSON, nullable=False, default=list)
    partner_responses = db.Column(
        db.JSON, nullable=False, default=list,
        comment="[{recipient_id, response, comment, responded_at}]",
    )
    comment_thread = db.Column(db.JSON, nullable=False, default=list,
                               comment="[{author, text, timestamp}]")

    status = db.Column(db.String(30), nullable=False, default="pending", index=True)
    version_id = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self):
        responses = self.partner_responses or []
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "file_url": self.file_url,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "uploaded_by": self.uploaded_by,
            "assigned_recipients": list(self.assigned_recipients or []),
            "partner_responses": list(responses),
            "comment_thread": list(self.comment_thread or []),
            "status": self.status,
            "approved_count": sum(1 for r in responses if r.get("response") == "approved"),
            "version": self.version_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<ApprovalRequest {self.id}: {self.title[:40]} {self.status}>"
