from cropconnect.extensions import db
from cropconnect.models.base import PKType, TimestampMixin

BID_STATUSES = ("pending", "accepted", "rejected", "cancelled")


class Bid(TimestampMixin, db.Model):
    __tablename__ = "bids"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    requirement_id = db.Column(
        PKType, db.ForeignKey("tractor_requirements.id", ondelete="CASCADE"), nullable=False, index=True
    )
    bidder_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    proposed_amount = db.Column(db.Numeric(12, 2), nullable=False)
    proposed_duration = db.Column(db.String(40), nullable=False)
    proposed_date = db.Column(db.DateTime(timezone=True), nullable=False)
    message = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="pending")

    requirement = db.relationship("TractorRequirement", back_populates="bids")
    bidder = db.relationship("User")

    __table_args__ = (
        db.UniqueConstraint("requirement_id", "bidder_id", name="uq_bid_requirement_bidder"),
        db.Index("ix_bids_requirement_status", "requirement_id", "status"),
        db.Index("ix_bids_bidder_status", "bidder_id", "status"),
        db.CheckConstraint("proposed_amount >= 0", name="ck_bid_amount_positive"),
    )
