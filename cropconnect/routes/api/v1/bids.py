from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from cropconnect.decorators import role_required
from cropconnect.extensions import cache
from cropconnect.routes.api.v1.serializers import bid_dict, booking_dict, requirement_dict
from cropconnect.services import BidService
from cropconnect.services.parsing import parse_int

api_bid_bp = Blueprint("api_bid", __name__)


@api_bid_bp.post("")
@login_required
@role_required("tractor_owner")
def place_bid():
    payload = request.get_json(silent=True) or {}
    requirement_id = parse_int(payload.get("requirement_id"), "Requirement id")
    bid = BidService.place(requirement_id, current_user, payload)
    return jsonify({"success": True, "message": "Bid placed.", "bid": bid_dict(bid)}), 201


@api_bid_bp.get("/farmer")
@login_required
@role_required("farmer")
def farmer_bids():
    rows = BidService.for_farmer(current_user.id, status=request.args.get("status"))
    return jsonify(
        {
            "success": True,
            "bids": [dict(bid_dict(row), requirement=requirement_dict(row.requirement)) for row in rows],
        }
    )


@api_bid_bp.get("/mine")
@login_required
@role_required("tractor_owner")
def my_bids():
    rows = BidService.for_bidder(current_user.id, status=request.args.get("status"))
    return jsonify(
        {
            "success": True,
            "bids": [dict(bid_dict(row), requirement=requirement_dict(row.requirement)) for row in rows],
        }
    )


@api_bid_bp.get("/requirement/<int:requirement_id>")
@login_required
def requirement_bids(requirement_id):
    rows = BidService.for_requirement(requirement_id, current_user)
    return jsonify({"success": True, "bids": [bid_dict(row) for row in rows]})


@api_bid_bp.post("/<int:bid_id>/accept")
@login_required
@role_required("farmer")
def accept_bid(bid_id):
    bid, booking = BidService.accept(bid_id, current_user)
    cache.clear()
    return jsonify(
        {
            "success": True,
            "message": "Bid accepted and booking created.",
            "bid": bid_dict(bid),
            "booking": booking_dict(booking),
        }
    )


@api_bid_bp.post("/<int:bid_id>/reject")
@login_required
@role_required("farmer")
def reject_bid(bid_id):
    bid = BidService.reject(bid_id, current_user)
    return jsonify({"success": True, "message": "Bid rejected.", "bid": bid_dict(bid)})


@api_bid_bp.post("/<int:bid_id>/withdraw")
@login_required
@role_required("tractor_owner")
def withdraw_bid(bid_id):
    bid = BidService.withdraw(bid_id, current_user)
    return jsonify({"success": True, "message": "Bid withdrawn.", "bid": bid_dict(bid)})
