from cropconnect.extensions import db
from cropconnect.models.base import LocationMixin, PKType, TimestampMixin

WORKER_TYPES = ("Farm Labor", "Harvester", "Irrigator", "Sprayer", "General Helper")


class WorkerListing(LocationMixin, TimestampMixin, db.Model):
    __tablename__ = "worker_listings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    worker_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    worker_type = db.Column(db.String(32), nullable=False, index=True)
    experience_years = db.Column(db.Integer, nullable=False, default=0)
    charge_per_day = db.Column(db.Numeric(10, 2), nullable=False)
    working_hours = db.Column(db.Integer, nullable=False, default=8)
    skills = db.Column(db.Text, nullable=True)
    contact_number = db.Column(db.String(10), nullable=False, default="")

    availability = db.Column(db.Boolean, nullable=False, default=True, index=True)
    is_booked = db.Column(db.Boolean, nullable=False, default=False)
    rating_avg = db.Column(db.Numeric(3, 2), nullable=False, default=0)
    rating_count = db.Column(db.Integer, nullable=False, default=0)

    worker = db.relationship("User", back_populates="worker_listings")

    __table_args__ = (
        db.CheckConstraint("working_hours >= 1 AND working_hours <= 24", name="ck_worker_listing_hours_range"),
        db.CheckConstraint("charge_per_day >= 0", name="ck_worker_listing_charge_positive"),
    )

    kind = "worker"

    @property
    def provider_id(self):
        return self.worker_id

    @property
    def unit_rate(self):
        return self.charge_per_day

    @property
    def is_available(self):
        return bool(self.availability) and not self.is_booked

    def set_availability(self, available):
        self.availability = bool(available)
        self.is_booked = not available

    @property
    def skill_list(self):
        return [item.strip() for item in (self.skills or "").split(",") if item.strip()]
