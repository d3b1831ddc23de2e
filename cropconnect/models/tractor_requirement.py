from cropconnect.extensions import db
from cropconnect.models.base import LocationMixin, PKType, TimestampMixin

REQUIREMENT_STATUSES = ("open", "accepted", "in_progress", "completed", "cancelled")
URGENCY_LEVELS = ("normal", "urgent", "very_urgent")


class TractorRequirement(LocationMixin, TimestampMixin, db.Model):
    __tablename__ = "tractor_requirements"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    farmer_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    work_type = db.Column(db.String(32), nullable=False, index=True)
    land_type = db.Column(db.String(16), nullable=False)
    land_size = db.Column(db.Numeric(8, 2), nullable=False)
    expected_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    duration = db.Column(db.String(40), nullable=False)
    max_budget = db.Column(db.Numeric(12, 2), nullable=False)
    urgency = db.Column(db.String(16), nullable=False, default="normal")
    notes = db.Column(db.String(500), nullable=True)

    status = db.Column(db.String(24), nullable=False, default="open", index=True)
    accepted_by_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    farmer = db.relationship("User", foreign_keys=[farmer_id])
    accepted_by = db.relationship("User", foreign_keys=[accepted_by_id])
    bids = db.relationship("Bid", back_populates="requirement", lazy="dynamic", cascade="all, delete-orphan")

    __table_args__ = (
        db.Index("ix_tractor_requirements_farmer_status", "farmer_id", "status"),
        db.CheckConstraint("land_size >= 0.1", name="ck_tractor_requirement_land_size"),
        db.CheckConstraint("max_budget >= 0", name="ck_tractor_requirement_budget"),
    )

    kind = "tractor"
