from cropconnect.extensions import db
from cropconnect.models.base import LocationMixin, PKType, TimestampMixin
from cropconnect.models.service_ref import ServiceRef

BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "refunded")


class Booking(LocationMixin, TimestampMixin, db.Model):
    __tablename__ = "bookings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    farmer_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    service_type = db.Column(db.String(12), nullable=False)
    service_id = db.Column(PKType, nullable=True)

    bid_id = db.Column(PKType, db.ForeignKey("bids.id", ondelete="SET NULL"), nullable=True, unique=True)
    tractor_requirement_id = db.Column(
        PKType, db.ForeignKey("tractor_requirements.id", ondelete="SET NULL"), nullable=True, index=True
    )
    worker_requirement_id = db.Column(
        PKType, db.ForeignKey("worker_requirements.id", ondelete="SET NULL"), nullable=True, index=True
    )
    hire_request_id = db.Column(
        PKType, db.ForeignKey("hire_requests.id", ondelete="SET NULL"), nullable=True, unique=True
    )

    booking_date = db.Column(db.DateTime(timezone=True), nullable=False)
    duration = db.Column(db.Integer, nullable=False, default=1)
    total_cost = db.Column(db.Numeric(12, 2), nullable=False)
    work_type = db.Column(db.String(120), nullable=True)
    land_size = db.Column(db.Numeric(8, 2), nullable=False, default=1)
    full_address = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="confirmed", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    farmer = db.relationship("User", foreign_keys=[farmer_id])
    provider = db.relationship("User", foreign_keys=[provider_id])
    bid = db.relationship("Bid")
    hire_request = db.relationship("HireRequest", back_populates="booking")
    transactions = db.relationship(
        "Transaction", back_populates="booking", lazy="dynamic", order_by="Transaction.created_at"
    )

    __table_args__ = (
        db.Index("ix_bookings_farmer_status", "farmer_id", "status"),
        db.Index("ix_bookings_provider_status", "provider_id", "status"),
        db.CheckConstraint("duration > 0", name="ck_booking_duration_positive"),
        db.CheckConstraint("total_cost >= 0", name="ck_booking_cost_positive"),
    )

    @property
    def service_ref(self):
        return ServiceRef(self.service_type, self.service_id)

    @service_ref.setter
    def service_ref(self, ref):
        self.service_type = ref.kind
        self.service_id = ref.id

    def is_party(self, user_id):
        return user_id in {self.farmer_id, self.provider_id}

    def counterparty_of(self, user_id):
        return self.provider_id if user_id == self.farmer_id else self.farmer_id
