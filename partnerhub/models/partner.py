"""
PartnerHub — Partner domain models.

Models:
    - Partner: festival partner organisation (tier + contract status)
    - Deliverable: admin-defined artifact a partner must provide
    - Submission: versioned partner upload against a Deliverable
    - Nomination: speaker / startup / workshop / award nomination
    - PartnerProgress: profile completeness percentage, one per partner
    - MediaFile: media tracker entry (only counted on the dashboard)
"""

from datetime import datetime, timezone

from partnerhub.models import db

# ── Constants ────────────────────────────────────────────────────────────────

PARTNER_TIERS = {"platinum", "gold", "silver", "bronze", "strategic", "exhibitor"}
CONTRACT_STATUSES = {"pending", "sent", "signed", "expired"}

SUBMISSION_KINDS = {"file", "url", "text"}
REVIEW_DECISIONS = {"approved", "rejected", "revision_required"}

NOMINATION_TYPES = {"speaker", "startup", "workshop", "award"}
NOMINATION_STATUSES = {"submitted", "under_review", "approved", "rejected", "pending"}


def _utcnow():
    return datetime.now(timezone.utc)


class Partner(db.Model):
    """Partner organisation. Created by admins, read by admins and its own users."""

    __tablename__ = "partners"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    tier = db.Column(db.String(30), default="silver", comment="platinum | gold | silver | bronze | ...")
    contract_status = db.Column(db.String(20), default="pending", comment="pending | sent | signed | expired")
    contact_email = db.Column(db.String(255), nullable=True)
    account_manager = db.Column(db.String(150), nullable=True, index=True,
                                comment="Admin the partner is assigned to")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    deliverables = db.relationship(
        "Deliverable", backref="partner", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "tier": self.tier,
            "contract_status": self.contract_status,
            "contact_email": self.contact_email,
            "account_manager": self.account_manager,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Partner {self.id}: {self.name}>"


class Deliverable(db.Model):
    """Required artifact definition. Partners never mutate it directly."""

    __tablename__ = "deliverables"

    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(
        db.Integer, db.ForeignKey("partners.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    due_date = db.Column(db.Date, nullable=True)
    is_required = db.Column(db.Boolean, default=True)
    created_by = db.Column(db.String(150), default="system")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    submissions = db.relationship(
        "Submission", backref="deliverable", lazy="dynamic", cascade="all, delete-orphan",
        order_by="Submission.version",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "partner_id": self.partner_id,
            "title": self.title,
            "description": self.description,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "is_required": self.is_required,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Deliverable {self.id}: {self.title[:40]}>"


class Submission(db.Model):
    """
    One version of a partner's submission for a deliverable.

    ``version`` strictly increases per deliverable; the highest version
    carries the deliverable-level status.
    """

    __tablename__ = "submissions"
    __table_args__ = (
        db.UniqueConstraint("deliverable_id", "version", name="uq_submission_deliverable_version"),
    )

    id = db.Column(db.Integer, primary_key=True)
    deliverable_id = db.Column(
        db.Integer, db.ForeignKey("deliverables.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    partner_id = db.Column(
        db.Integer, db.ForeignKey("partners.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    version = db.Column(db.Integer, nullable=False, default=1)
    kind = db.Column(db.String(10), nullable=False, default="file", comment="file | url | text")
    file_url = db.Column(db.String(1000), nullable=True)
    url = db.Column(db.String(1000), nullable=True)
    text_content = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(30), nullable=False, default="submitted")

    submitted_by = db.Column(db.String(150), default="")
    reviewer = db.Column(db.String(150), nullable=True)
    review_comment = db.Column(db.Text, nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "deliverable_id": self.deliverable_id,
            "partner_id": self.partner_id,
            "version": self.version,
            "kind": self.kind,
            "file_url": self.file_url,
            "url": self.url,
            "text_content": self.text_content,
            "status": self.status,
            "submitted_by": self.submitted_by,
            "reviewer": self.reviewer,
            "review_comment": self.review_comment,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Submission {self.id}: deliverable={self.deliverable_id} v{self.version} {self.status}>"


class Nomination(db.Model):
    __tablename__ = "nominations"

    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(
        db.Integer, db.ForeignKey("partners.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    nomination_type = db.Column(db.String(20), nullable=False, comment="speaker | startup | workshop | award")
    nominee_name = db.Column(db.String(200), nullable=False)
    details = db.Column(db.Text, default="")
    status = db.Column(db.String(30), default="submitted")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "partner_id": self.partner_id,
            "nomination_type": self.nomination_type,
            "nominee_name": self.nominee_name,
            "details": self.details,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class PartnerProgress(db.Model):
    """Profile / registration completeness. NULL percentage means not computed yet."""

    __tablename__ = "partner_progress"

    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(
        db.Integer, db.ForeignKey("partners.id", ondelete="CASCADE"),
        nullable=False, unique=True, index=True,
    )
    progress_percentage = db.Column(db.Integer, nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "partner_id": self.partner_id,
            "progress_percentage": self.progress_percentage,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class MediaFile(db.Model):
    __tablename__ = "media_files"

    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(
        db.Integer, db.ForeignKey("partners.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    file_name = db.Column(db.String(300), nullable=False)
    file_url = db.Column(db.String(1000), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "partner_id": self.partner_id,
            "file_name": self.file_name,
            "file_url": self.file_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
