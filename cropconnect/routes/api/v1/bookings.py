from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from cropconnect.decorators import role_required
from cropconnect.errors import ValidationError
from cropconnect.extensions import cache
from cropconnect.models import ServiceRef
from cropconnect.routes.api.v1.serializers import booking_dict, transaction_dict
from cropconnect.services import BookingService, PaymentService

api_booking_bp = Blueprint("api_booking", __name__)


@api_booking_bp.post("")
@login_required
@role_required("farmer")
def create_booking():
    payload = request.get_json(silent=True) or {}
    if not payload.get("service_id"):
        raise ValidationError("Service id is required.")
    ref = ServiceRef(payload.get("service_type"), payload.get("service_id"))
    booking = BookingService.create_direct(current_user, ref, payload)
    cache.clear()
    return jsonify({"success": True, "message": "Booking confirmed.", "booking": booking_dict(booking)}), 201


@api_booking_bp.get("/mine")
@login_required
def my_bookings():
    rows = BookingService.for_user(
        current_user,
        service_type=request.args.get("service_type"),
        status=request.args.get("status"),
    )
    return jsonify({"success": True, "bookings": [booking_dict(row) for row in rows]})


@api_booking_bp.get("/<int:booking_id>")
@login_required
def get_booking(booking_id):
    booking = BookingService.get_for_party(booking_id, current_user)
    return jsonify({"success": True, "booking": booking_dict(booking)})


@api_booking_bp.patch("/<int:booking_id>/status")
@login_required
def update_status(booking_id):
    payload = request.get_json(silent=True) or {}
    booking = BookingService.update_status(
        booking_id, current_user, payload.get("status"), reason=payload.get("reason")
    )
    cache.clear()
    return jsonify({"success": True, "booking": booking_dict(booking)})


@api_booking_bp.post("/<int:booking_id>/complete")
@login_required
def complete_booking(booking_id):
    booking = BookingService.mark_complete(booking_id, current_user)
    cache.clear()
    return jsonify({"success": True, "message": "Work marked as completed.", "booking": booking_dict(booking)})


@api_booking_bp.post("/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id):
    payload = request.get_json(silent=True) or {}
    booking = BookingService.cancel(booking_id, current_user, reason=payload.get("reason"))
    cache.clear()
    return jsonify({"success": True, "message": "Booking cancelled.", "booking": booking_dict(booking)})


@api_booking_bp.post("/<int:booking_id>/razorpay-order")
@login_required
@role_required("farmer")
def create_payment_order(booking_id):
    result = PaymentService.initiate(booking_id, current_user)
    return jsonify(
        {
            "success": True,
            "order": result["order"],
            "key": result["key"],
            "is_mock": result["is_mock"],
            "transaction": transaction_dict(result["transaction"]),
        }
    )


@api_booking_bp.post("/<int:booking_id>/verify-payment")
@login_required
@role_required("farmer")
def verify_payment(booking_id):
    payload = request.get_json(silent=True) or {}
    transaction, booking = PaymentService.verify(
        payload.get("razorpay_order_id"),
        payload.get("razorpay_payment_id"),
        payload.get("razorpay_signature"),
        current_user,
        booking_id=booking_id,
    )
    return jsonify(
        {
            "success": True,
            "message": "Payment verified.",
            "booking": booking_dict(booking),
            "transaction": transaction_dict(transaction),
        }
    )
