from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from cropconnect.decorators import role_required
from cropconnect.extensions import cache, gateway
from cropconnect.routes.api.v1.serializers import order_dict
from cropconnect.services import OrderService

api_order_bp = Blueprint("api_order", __name__)


@api_order_bp.post("")
@login_required
@role_required("buyer", "farmer")
def checkout():
    orders = OrderService.checkout(current_user, request.get_json(silent=True) or {})
    cache.clear()
    return (
        jsonify(
            {
                "success": True,
                "message": "Order created successfully.",
                "orders": [order_dict(order) for order in orders],
                "key": gateway.key_id or None,
                "is_mock": gateway.is_mock,
            }
        ),
        201,
    )


@api_order_bp.get("/buyer")
@login_required
def buyer_orders():
    rows = OrderService.for_buyer(current_user.id)
    return jsonify({"success": True, "orders": [order_dict(row) for row in rows]})


@api_order_bp.get("/seller")
@login_required
@role_required("farmer")
def seller_orders():
    rows = OrderService.for_seller(current_user.id)
    return jsonify({"success": True, "orders": [order_dict(row) for row in rows]})


@api_order_bp.get("/<int:order_id>")
@login_required
def get_order(order_id):
    return jsonify({"success": True, "order": order_dict(OrderService.get_for_party(order_id, current_user))})


@api_order_bp.post("/<int:order_id>/verify-payment")
@login_required
def verify_order_payment(order_id):
    payload = request.get_json(silent=True) or {}
    order = OrderService.verify_payment(
        order_id,
        current_user,
        payload.get("razorpay_order_id"),
        payload.get("razorpay_payment_id"),
        payload.get("razorpay_signature"),
    )
    return jsonify({"success": True, "message": "Payment verified.", "order": order_dict(order)})


@api_order_bp.put("/<int:order_id>/confirm")
@login_required
@role_required("farmer")
def confirm_order(order_id):
    order = OrderService.confirm(order_id, current_user)
    return jsonify({"success": True, "message": "Order confirmed.", "order": order_dict(order)})


@api_order_bp.put("/<int:order_id>/picked")
@login_required
@role_required("farmer")
def mark_picked(order_id):
    order = OrderService.mark_picked(order_id, current_user)
    return jsonify({"success": True, "message": "Order marked as picked.", "order": order_dict(order)})


@api_order_bp.put("/<int:order_id>/complete")
@login_required
def complete_order(order_id):
    order = OrderService.complete(order_id, current_user)
    return jsonify({"success": True, "message": "Order completed successfully.", "order": order_dict(order)})


@api_order_bp.put("/<int:order_id>/cancel")
@login_required
def cancel_order(order_id):
    payload = request.get_json(silent=True) or {}
    order = OrderService.cancel(order_id, current_user, reason=payload.get("reason"))
    cache.clear()
    return jsonify({"success": True, "message": "Order cancelled successfully.", "order": order_dict(order)})


@api_order_bp.put("/<int:order_id>/status")
@login_required
def update_order_status(order_id):
    payload = request.get_json(silent=True) or {}
    order = OrderService.update_status(order_id, current_user, payload.get("status"), reason=payload.get("reason"))
    cache.clear()
    return jsonify({"success": True, "message": "Order status updated.", "order": order_dict(order)})
