from cropconnect.extensions import db
from cropconnect.models.base import LocationMixin, PKType, TimestampMixin

ORDER_STATUSES = ("pending", "confirmed", "picked", "completed", "cancelled")
ORDER_PAYMENT_METHODS = ("razorpay", "pay_after_delivery")
ORDER_PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")


class Order(LocationMixin, TimestampMixin, db.Model):
    """A buyer's purchase of one seller's crops. Location columns hold the delivery address."""

    __tablename__ = "orders"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    buyer_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    seller_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(24), nullable=False, default="razorpay")
    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    full_address = db.Column(db.String(255), nullable=False)
    vehicle_details = db.Column(db.JSON, nullable=True)
    pickup_schedule = db.Column(db.JSON, nullable=True)

    gateway_order_id = db.Column(db.String(64), nullable=True, unique=True)
    gateway_payment_id = db.Column(db.String(64), nullable=True)
    gateway_signature = db.Column(db.String(128), nullable=True)

    picked_up_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_by_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    cancellation_reason = db.Column(db.String(255), nullable=True)

    buyer = db.relationship("User", foreign_keys=[buyer_id])
    seller = db.relationship("User", foreign_keys=[seller_id])
    items = db.relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )

    __table_args__ = (
        db.Index("ix_orders_buyer_status", "buyer_id", "status"),
        db.Index("ix_orders_seller_status", "seller_id", "status"),
        db.CheckConstraint("total_amount >= 0", name="ck_order_total_positive"),
    )

    def is_party(self, user_id):
        return user_id in {self.buyer_id, self.seller_id}

    def counterparty_of(self, user_id):
        return self.seller_id if user_id == self.buyer_id else self.buyer_id


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    order_id = db.Column(PKType, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    crop_id = db.Column(PKType, db.ForeignKey("crops.id", ondelete="SET NULL"), nullable=True, index=True)
    crop_name = db.Column(db.String(80), nullable=False)
    unit = db.Column(db.String(12), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    price_per_unit = db.Column(db.Numeric(10, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    order = db.relationship("Order", back_populates="items")
    crop = db.relationship("Crop")
