from flask_login import UserMixin

from cropconnect.extensions import db
from cropconnect.models.base import LocationMixin, PKType, TimestampMixin

ROLES = ("farmer", "buyer", "tractor_owner", "worker", "admin")
GENDERS = ("male", "female", "other")


class User(UserMixin, LocationMixin, TimestampMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(10), nullable=False, index=True, default="")
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(24), nullable=False, index=True)
    gender = db.Column(db.String(12), nullable=True)
    is_active_user = db.Column(db.Boolean, nullable=False, default=True)
    last_login = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    reset_token_hash = db.Column(db.String(64), nullable=True, index=True)
    reset_token_expires = db.Column(db.DateTime(timezone=True), nullable=True)

    tractor_listings = db.relationship("TractorListing", back_populates="owner", lazy="dynamic")
    worker_listings = db.relationship("WorkerListing", back_populates="worker", lazy="dynamic")
    notifications = db.relationship(
        "Notification",
        back_populates="recipient",
        lazy="dynamic",
        foreign_keys="Notification.recipient_id",
    )

    @property
    def is_active(self):
        return bool(self.is_active_user)

    def public_dict(self):
        return {
            "id": self.id,
            "full_name": self.full_name,
            "phone": self.phone,
            "role": self.role,
            "district": self.district,
        }
