from cropconnect.extensions import db
from cropconnect.models.base import PKType, TimestampMixin

PRODUCT_CATEGORIES = ("Fertilizers", "Pesticides", "Seeds", "Tools", "Equipment", "Other")


class Product(TimestampMixin, db.Model):
    """Farm supplies in the admin-curated catalogue."""

    __tablename__ = "products"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    name = db.Column(db.String(120), nullable=False, index=True)
    category = db.Column(db.String(24), nullable=False, index=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    description = db.Column(db.String(1000), nullable=True)
    stock = db.Column(db.Integer, nullable=False, default=0)
    brand = db.Column(db.String(80), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_by_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (
        db.CheckConstraint("price >= 0", name="ck_product_price_positive"),
        db.CheckConstraint("stock >= 0", name="ck_product_stock_positive"),
    )
