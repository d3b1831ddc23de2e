from cropconnect.extensions import db
from cropconnect.models.base import LocationMixin, PKType, TimestampMixin

CROP_UNITS = ("kg", "quintal", "ton")
CROP_STATUSES = ("available", "sold", "pending")


class Crop(LocationMixin, TimestampMixin, db.Model):
    """Produce a farmer has put up for sale."""

    __tablename__ = "crops"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    seller_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    crop_name = db.Column(db.String(80), nullable=False, index=True)
    variety = db.Column(db.String(80), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit = db.Column(db.String(12), nullable=False, default="quintal")
    price_per_unit = db.Column(db.Numeric(10, 2), nullable=False)
    harvest_date = db.Column(db.DateTime(timezone=True), nullable=True)
    description = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="available", index=True)

    seller = db.relationship("User", foreign_keys=[seller_id])

    __table_args__ = (
        db.Index("ix_crops_seller_status", "seller_id", "status"),
        db.CheckConstraint("quantity >= 0", name="ck_crop_quantity_positive"),
        db.CheckConstraint("price_per_unit >= 0", name="ck_crop_price_positive"),
    )

    @property
    def is_available(self):
        return self.status == "available" and self.quantity > 0
