from flask import Blueprint, abort, jsonify, request
from flask_login import current_user, login_required

from cropconnect.decorators import role_required
from cropconnect.extensions import cache
from cropconnect.routes.api.v1.serializers import (
    booking_dict,
    hire_request_dict,
    requirement_dict,
)
from cropconnect.services import RequirementService

# Registered twice under /api/v1, once per requirement kind (see routes.api.v1).
api_requirement_bp = Blueprint("api_requirement", __name__)


@api_requirement_bp.post("")
@login_required
@role_required("farmer")
def post_requirement(kind):
    payload = request.get_json(silent=True) or {}
    requirement, notified = RequirementService.post(kind, current_user, payload)
    return (
        jsonify(
            {
                "success": True,
                "message": f"Requirement posted. {notified} nearby providers notified.",
                "requirement": requirement_dict(requirement),
                "notified": notified,
            }
        ),
        201,
    )


@api_requirement_bp.get("")
@login_required
def list_requirements(kind):
    filters = {key: request.args.get(key) for key in request.args}
    rows = RequirementService.list_requirements(kind, filters, viewer=current_user)
    return jsonify(
        {
            "success": True,
            "count": len(rows),
            "requirements": [requirement_dict(row, viewer=current_user) for row in rows],
        }
    )


@api_requirement_bp.get("/mine")
@login_required
@role_required("farmer")
def my_requirements(kind):
    rows = RequirementService.mine(kind, current_user.id)
    return jsonify(
        {"success": True, "requirements": [requirement_dict(row, include_counts=True) for row in rows]}
    )


@api_requirement_bp.get("/<int:requirement_id>")
@login_required
def get_requirement(kind, requirement_id):
    requirement = RequirementService.get(kind, requirement_id)
    is_owner = requirement.farmer_id == current_user.id
    return jsonify(
        {
            "success": True,
            "requirement": requirement_dict(requirement, viewer=current_user, include_counts=is_owner),
        }
    )


@api_requirement_bp.put("/<int:requirement_id>")
@login_required
@role_required("farmer")
def update_requirement(kind, requirement_id):
    payload = request.get_json(silent=True) or {}
    requirement = RequirementService.update(kind, requirement_id, current_user, payload)
    return jsonify({"success": True, "message": "Requirement updated.", "requirement": requirement_dict(requirement)})


@api_requirement_bp.delete("/<int:requirement_id>")
@login_required
@role_required("farmer")
def delete_requirement(kind, requirement_id):
    RequirementService.withdraw(kind, requirement_id, current_user)
    return jsonify({"success": True, "message": "Requirement deleted."})


@api_requirement_bp.post("/<int:requirement_id>/cancel")
@login_required
@role_required("farmer")
def cancel_requirement(kind, requirement_id):
    requirement = RequirementService.cancel(kind, requirement_id, current_user)
    return jsonify({"success": True, "message": "Requirement cancelled.", "requirement": requirement_dict(requirement)})


@api_requirement_bp.post("/<int:requirement_id>/apply")
@login_required
@role_required("worker")
def apply_to_requirement(kind, requirement_id):
    if kind != "worker":
        abort(404)
    applicant, hire_request = RequirementService.apply(requirement_id, current_user)
    return (
        jsonify(
            {
                "success": True,
                "message": "Application sent to the farmer.",
                "applicant_id": applicant.id,
                "hire_request": hire_request_dict(hire_request),
            }
        ),
        201,
    )


@api_requirement_bp.post("/<int:requirement_id>/complete")
@login_required
@role_required("tractor_owner")
def complete_requirement(kind, requirement_id):
    if kind != "tractor":
        abort(404)
    requirement, booking = RequirementService.complete(requirement_id, current_user)
    cache.clear()
    return jsonify(
        {
            "success": True,
            "message": "Work marked as completed.",
            "requirement": requirement_dict(requirement),
            "booking": booking_dict(booking),
        }
    )
