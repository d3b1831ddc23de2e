from cropconnect.extensions import db
from cropconnect.models.base import PKType, TimestampMixin

NOTIFICATION_TYPES = (
    "new_requirement",
    "requirement_cancelled",
    "bid_placed",
    "bid_accepted",
    "bid_rejected",
    "bid_withdrawn",
    "application_received",
    "hire_request",
    "hire_accepted",
    "hire_rejected",
    "booking_confirmed",
    "booking_cancelled",
    "work_completed",
    "payment_received",
    "payment_sent",
    "payment_failed",
    "rating_received",
    "service_posted",
    "registration",
    "order_placed",
    "order_confirmed",
    "order_picked",
    "order_completed",
    "order_cancelled",
    "order_paid",
    "password_changed",
)


class Notification(TimestampMixin, db.Model):
    __tablename__ = "notifications"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    recipient_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False)
    title = db.Column(db.String(180), nullable=False)
    message = db.Column(db.Text, nullable=False)
    related_user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    # Requirement and service ids are not foreign keys: they point at either the
    # tractor or the worker table depending on the notification type.
    related_requirement_id = db.Column(PKType, nullable=True)
    related_booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    related_service_id = db.Column(PKType, nullable=True)
    is_read = db.Column(db.Boolean, nullable=False, default=False, index=True)
    data = db.Column(db.JSON, nullable=True)

    recipient = db.relationship("User", back_populates="notifications", foreign_keys=[recipient_id])

    __table_args__ = (
        db.Index("ix_notifications_recipient_read", "recipient_id", "is_read"),
    )
