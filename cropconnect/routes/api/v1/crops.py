from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from cropconnect.decorators import role_required
from cropconnect.extensions import cache
from cropconnect.routes.api.v1.serializers import crop_dict
from cropconnect.services import CropService

api_crop_bp = Blueprint("api_crop", __name__)


@api_crop_bp.get("")
@cache.cached(timeout=30, query_string=True)
def list_crops():
    page = request.args.get("page", default=1, type=int)
    per_page = request.args.get("per_page", default=12, type=int)
    filters = {
        "status": request.args.get("status"),
        "crop_name": request.args.get("crop_name"),
        "district": request.args.get("district"),
        "state": request.args.get("state"),
        "min_price": request.args.get("min_price"),
        "max_price": request.args.get("max_price"),
    }
    paginated = CropService.list_crops(filters, page=page, per_page=min(per_page, 50))
    return jsonify(
        {
            "success": True,
            "count": paginated.total,
            "crops": [crop_dict(row) for row in paginated.items],
            "meta": {
                "page": paginated.page,
                "pages": paginated.pages,
                "total": paginated.total,
                "has_next": paginated.has_next,
                "has_prev": paginated.has_prev,
            },
        }
    )


@api_crop_bp.post("")
@login_required
@role_required("farmer")
def create_crop():
    crop = CropService.create(current_user, request.get_json(silent=True) or {})
    cache.clear()
    return jsonify({"success": True, "message": "Crop listed successfully.", "crop": crop_dict(crop)}), 201


@api_crop_bp.get("/my-crops")
@login_required
@role_required("farmer")
def my_crops():
    rows = CropService.for_seller(current_user.id)
    return jsonify({"success": True, "count": len(rows), "crops": [crop_dict(crop, sold) for crop, sold in rows]})


@api_crop_bp.get("/<int:crop_id>")
def get_crop(crop_id):
    return jsonify({"success": True, "crop": crop_dict(CropService.get(crop_id))})


@api_crop_bp.put("/<int:crop_id>")
@login_required
@role_required("farmer")
def update_crop(crop_id):
    crop = CropService.update(crop_id, current_user, request.get_json(silent=True) or {})
    cache.clear()
    return jsonify({"success": True, "message": "Crop updated successfully.", "crop": crop_dict(crop)})


@api_crop_bp.delete("/<int:crop_id>")
@login_required
@role_required("farmer")
def delete_crop(crop_id):
    CropService.delete(crop_id, current_user)
    cache.clear()
    return jsonify({"success": True, "message": "Crop deleted successfully."})
