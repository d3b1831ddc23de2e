from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from cropconnect.routes.api.v1.serializers import rating_dict
from cropconnect.services import RatingService
from cropconnect.services.parsing import parse_int

api_rating_bp = Blueprint("api_rating", __name__)


@api_rating_bp.post("")
@login_required
def add_rating():
    payload = request.get_json(silent=True) or {}
    rating = RatingService.submit(
        current_user,
        parse_int(payload.get("booking_id"), "Booking id"),
        payload.get("score", payload.get("rating")),
        review=payload.get("review"),
    )
    return jsonify({"success": True, "message": "Thanks for your rating.", "rating": rating_dict(rating)}), 201


@api_rating_bp.get("/user/<int:user_id>")
def user_ratings(user_id):
    rows, summary = RatingService.for_user(user_id)
    return jsonify({"success": True, "ratings": [rating_dict(row) for row in rows], **summary})
