from cropconnect.extensions import db
from cropconnect.models.base import LocationMixin, PKType, TimestampMixin

TRACTOR_WORK_TYPES = ("Plowing", "Harvesting", "Spraying", "Hauling", "Land Preparation")
LAND_TYPES = ("Dry", "Wet", "Hilly", "Plain")


class TractorListing(LocationMixin, TimestampMixin, db.Model):
    """A tractor a farmer can book directly, without posting a requirement."""

    __tablename__ = "tractor_listings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    owner_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    vehicle_number = db.Column(db.String(20), nullable=False, unique=True)
    brand = db.Column(db.String(80), nullable=False)
    model = db.Column(db.String(80), nullable=False)
    work_type = db.Column(db.String(32), nullable=False, index=True)
    land_type = db.Column(db.String(16), nullable=False)
    charge_per_acre = db.Column(db.Numeric(10, 2), nullable=False)
    contact_number = db.Column(db.String(10), nullable=False, default="")

    availability = db.Column(db.Boolean, nullable=False, default=True, index=True)
    is_booked = db.Column(db.Boolean, nullable=False, default=False)
    rating_avg = db.Column(db.Numeric(3, 2), nullable=False, default=0)
    rating_count = db.Column(db.Integer, nullable=False, default=0)

    owner = db.relationship("User", back_populates="tractor_listings")

    __table_args__ = (
        db.Index("ix_tractor_listings_owner_available", "owner_id", "availability"),
        db.CheckConstraint("charge_per_acre >= 0", name="ck_tractor_listing_charge_positive"),
    )

    kind = "tractor"

    @property
    def provider_id(self):
        return self.owner_id

    @property
    def unit_rate(self):
        return self.charge_per_acre

    @property
    def is_available(self):
        return bool(self.availability) and not self.is_booked

    def set_availability(self, available):
        self.availability = bool(available)
        self.is_booked = not available
