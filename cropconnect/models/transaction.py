from cropconnect.extensions import db
from cropconnect.models.base import PKType, TimestampMixin

PAYMENT_METHODS = ("cash", "razorpay", "upi", "bank_transfer")
OFFLINE_METHODS = ("cash", "upi", "bank_transfer")
TRANSACTION_STATUSES = ("pending", "completed", "failed", "refunded")


class Transaction(TimestampMixin, db.Model):
    __tablename__ = "transactions"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    payer_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    payee_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    gateway_order_id = db.Column(db.String(64), nullable=True, unique=True)
    gateway_payment_id = db.Column(db.String(64), nullable=True)
    gateway_signature = db.Column(db.String(128), nullable=True)
    receipt_number = db.Column(db.String(32), nullable=True, unique=True, index=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    booking = db.relationship("Booking", back_populates="transactions")
    payer = db.relationship("User", foreign_keys=[payer_id])
    payee = db.relationship("User", foreign_keys=[payee_id])

    __table_args__ = (
        db.Index("ix_transactions_payer_status", "payer_id", "status"),
        db.Index("ix_transactions_payee_status", "payee_id", "status"),
        db.CheckConstraint("amount >= 0", name="ck_transaction_amount_positive"),
    )
