from cropconnect.errors import NotFound, ValidationError
from cropconnect.extensions import db
from cropconnect.models import Cart, CartItem, Crop
from cropconnect.services.parsing import parse_decimal, parse_int


class CartService:
    @staticmethod
    def get_or_create(user):
        cart = Cart.query.filter_by(user_id=user.id).first()
        if cart is None:
            cart = Cart(user_id=user.id)
            db.session.add(cart)
            db.session.commit()
        return cart

    @staticmethod
    def _existing(user):
        cart = Cart.query.filter_by(user_id=user.id).first()
        if cart is None:
            raise NotFound("Cart not found.")
        return cart

    @staticmethod
    def add(user, items):
        if not isinstance(items, list) or not items:
            raise ValidationError("Invalid items data.")
        cart = CartService.get_or_create(user)
        for entry in items:
            if not isinstance(entry, dict):
                continue
            crop_id = entry.get("crop_id") or entry.get("item_id")
            crop = db.session.get(Crop, int(crop_id)) if str(crop_id).isdigit() else None
            if crop is None:
                continue
            quantity = max(parse_decimal(entry.get("quantity") or 1, "Quantity"), 1)
            item = cart.item_for(crop.id)
            if item is not None:
                item.quantity += quantity
            else:
                cart.items.append(
                    CartItem(
                        crop_id=crop.id,
                        name=crop.crop_name,
                        quantity=quantity,
                        price=crop.price_per_unit,
                        unit=crop.unit,
                    )
                )
        db.session.commit()
        return cart

    @staticmethod
    def update_quantity(user, crop_id, quantity):
        crop_id = parse_int(crop_id, "Item id")
        quantity = parse_decimal(quantity, "Quantity")
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1.")
        cart = CartService._existing(user)
        item = cart.item_for(crop_id)
        if item is None:
            raise NotFound("Item not found in cart.")
        item.quantity = quantity
        db.session.commit()
        return cart

    @staticmethod
    def remove(user, crop_id):
        cart = CartService._existing(user)
        item = cart.item_for(crop_id)
        if item is not None:
            cart.items.remove(item)
            db.session.commit()
        return cart
