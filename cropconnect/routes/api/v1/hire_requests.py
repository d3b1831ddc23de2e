from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from cropconnect.decorators import role_required
from cropconnect.extensions import cache
from cropconnect.routes.api.v1.serializers import booking_dict, hire_request_dict
from cropconnect.services import HireService

api_hire_bp = Blueprint("api_hire", __name__)


@api_hire_bp.post("")
@login_required
@role_required("farmer")
def create_hire_request():
    payload = request.get_json(silent=True) or {}
    hire_request = HireService.create(current_user, payload)
    return (
        jsonify({"success": True, "message": "Hire request sent.", "hire_request": hire_request_dict(hire_request)}),
        201,
    )


@api_hire_bp.get("/mine")
@login_required
@role_required("farmer", "worker")
def my_hire_requests():
    rows = HireService.for_user(current_user, status=request.args.get("status"))
    return jsonify({"success": True, "hire_requests": [hire_request_dict(row) for row in rows]})


@api_hire_bp.post("/<int:request_id>/accept")
@login_required
@role_required("farmer", "worker")
def accept_hire_request(request_id):
    hire_request, booking = HireService.accept(request_id, current_user)
    cache.clear()
    return jsonify(
        {
            "success": True,
            "message": "Hire request accepted and booking created.",
            "hire_request": hire_request_dict(hire_request),
            "booking": booking_dict(booking),
        }
    )


@api_hire_bp.post("/<int:request_id>/reject")
@login_required
@role_required("farmer", "worker")
def reject_hire_request(request_id):
    payload = request.get_json(silent=True) or {}
    hire_request = HireService.reject(request_id, current_user, reason=payload.get("reason"))
    return jsonify({"success": True, "message": "Hire request declined.", "hire_request": hire_request_dict(hire_request)})
