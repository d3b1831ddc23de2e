from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from cropconnect.routes.api.v1.serializers import cart_dict
from cropconnect.services import CartService

api_cart_bp = Blueprint("api_cart", __name__)


@api_cart_bp.get("")
@login_required
def get_cart():
    return jsonify({"success": True, "cart": cart_dict(CartService.get_or_create(current_user))})


@api_cart_bp.post("/add")
@login_required
def add_to_cart():
    payload = request.get_json(silent=True) or {}
    cart = CartService.add(current_user, payload.get("items"))
    return jsonify({"success": True, "message": "Item added to cart.", "cart": cart_dict(cart)})


@api_cart_bp.put("/update")
@login_required
def update_cart():
    payload = request.get_json(silent=True) or {}
    cart = CartService.update_quantity(current_user, payload.get("item_id"), payload.get("quantity"))
    return jsonify({"success": True, "message": "Cart updated.", "cart": cart_dict(cart)})


@api_cart_bp.delete("/remove/<int:item_id>")
@login_required
def remove_from_cart(item_id):
    cart = CartService.remove(current_user, item_id)
    return jsonify({"success": True, "message": "Item removed from cart.", "cart": cart_dict(cart)})
