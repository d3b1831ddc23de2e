from cropconnect.extensions import db
from cropconnect.models.base import PKType, TimestampMixin

RATING_TYPES = (
    "farmer_to_tractor_owner",
    "farmer_to_worker",
    "tractor_owner_to_farmer",
    "worker_to_farmer",
)


class Rating(TimestampMixin, db.Model):
    __tablename__ = "ratings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    rater_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    ratee_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rating_type = db.Column(db.String(32), nullable=False)
    score = db.Column(db.SmallInteger, nullable=False)
    review = db.Column(db.String(500), nullable=True)
    is_edited = db.Column(db.Boolean, nullable=False, default=False)

    booking = db.relationship("Booking")
    rater = db.relationship("User", foreign_keys=[rater_id])
    ratee = db.relationship("User", foreign_keys=[ratee_id])

    __table_args__ = (
        db.UniqueConstraint("booking_id", "rater_id", name="uq_rating_booking_rater"),
        db.CheckConstraint("score >= 1 AND score <= 5", name="ck_rating_score_range"),
    )
