from cropconnect.extensions import db
from cropconnect.models.base import LocationMixin, PKType, TimestampMixin

HIRE_REQUEST_TYPES = ("farmer_to_worker", "worker_to_farmer")
HIRE_REQUEST_STATUSES = ("pending", "accepted", "rejected", "cancelled")


class HireRequest(LocationMixin, TimestampMixin, db.Model):
    __tablename__ = "hire_requests"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    farmer_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    worker_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    worker_listing_id = db.Column(
        PKType, db.ForeignKey("worker_listings.id", ondelete="SET NULL"), nullable=True, index=True
    )
    requirement_id = db.Column(
        PKType, db.ForeignKey("worker_requirements.id", ondelete="CASCADE"), nullable=True, index=True
    )
    request_type = db.Column(db.String(24), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending")

    start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    duration = db.Column(db.String(40), nullable=False, default="1 day")
    work_description = db.Column(db.String(120), nullable=True)
    agreed_amount = db.Column(db.Numeric(10, 2), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    rejection_reason = db.Column(db.String(255), nullable=True)

    farmer = db.relationship("User", foreign_keys=[farmer_id])
    worker = db.relationship("User", foreign_keys=[worker_id])
    worker_listing = db.relationship("WorkerListing")
    requirement = db.relationship("WorkerRequirement")
    booking = db.relationship("Booking", back_populates="hire_request", uselist=False)

    __table_args__ = (
        db.Index("ix_hire_requests_farmer_status", "farmer_id", "status"),
        db.Index("ix_hire_requests_worker_status", "worker_id", "status"),
    )

    def receiver_id(self):
        """The party who has to accept or reject this request."""
        return self.worker_id if self.request_type == "farmer_to_worker" else self.farmer_id

    def sender_id(self):
        return self.farmer_id if self.request_type == "farmer_to_worker" else self.worker_id
