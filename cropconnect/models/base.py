from datetime import datetime, timezone

from cropconnect.extensions import db
from sqlalchemy import BigInteger, Integer


# Use BIGINT in PostgreSQL, but INTEGER in SQLite so autoincrement works.
PKType = BigInteger().with_variant(Integer, "sqlite")


def utcnow():
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class LocationMixin:
    village = db.Column(db.String(120), nullable=True)
    district = db.Column(db.String(120), nullable=True, index=True)
    state = db.Column(db.String(120), nullable=True)
    pincode = db.Column(db.String(6), nullable=True)

    def location_dict(self):
        return {
            "village": self.village,
            "district": self.district,
            "state": self.state,
            "pincode": self.pincode,
        }

    def apply_location(self, location):
        location = location or {}
        for key in ("village", "district", "state", "pincode"):
            value = location.get(key)
            if isinstance(value, str):
                value = value.strip()
            setattr(self, key, value or None)
