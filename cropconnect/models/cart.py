from cropconnect.extensions import db
from cropconnect.models.base import PKType, TimestampMixin


class Cart(TimestampMixin, db.Model):
    __tablename__ = "carts"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)

    user = db.relationship("User")
    items = db.relationship(
        "CartItem", back_populates="cart", cascade="all, delete-orphan", order_by="CartItem.id"
    )

    def item_for(self, crop_id):
        return next((row for row in self.items if row.crop_id == crop_id), None)

    @property
    def total(self):
        return sum((row.line_total for row in self.items), 0)


class CartItem(db.Model):
    __tablename__ = "cart_items"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    cart_id = db.Column(PKType, db.ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    crop_id = db.Column(PKType, db.ForeignKey("crops.id", ondelete="CASCADE"), nullable=False)
    # Name, price and unit are copied from the crop when the item is added.
    name = db.Column(db.String(80), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False, default=1)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    unit = db.Column(db.String(12), nullable=False, default="quintal")

    cart = db.relationship("Cart", back_populates="items")
    crop = db.relationship("Crop")

    __table_args__ = (
        db.UniqueConstraint("cart_id", "crop_id", name="uq_cart_items_cart_crop"),
        db.CheckConstraint("quantity >= 1", name="ck_cart_item_quantity"),
    )

    @property
    def line_total(self):
        return self.price * self.quantity
