from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from cropconnect.decorators import role_required
from cropconnect.extensions import cache
from cropconnect.routes.api.v1.serializers import listing_dict
from cropconnect.services import ListingService
from cropconnect.services.parsing import parse_bool

api_service_bp = Blueprint("api_service", __name__)

KIND_PATHS = {"tractors": "tractor", "workers": "worker"}


def _kind(path_kind):
    return KIND_PATHS.get(path_kind, path_kind)


@api_service_bp.get("/<any(tractors, workers):path_kind>")
@cache.cached(timeout=30, query_string=True)
def list_services(path_kind):
    page = request.args.get("page", default=1, type=int)
    per_page = request.args.get("per_page", default=12, type=int)
    filters = {
        "district": request.args.get("district"),
        "state": request.args.get("state"),
        "work_type": request.args.get("work_type"),
        "land_type": request.args.get("land_type"),
        "worker_type": request.args.get("worker_type"),
        "only_available": parse_bool(request.args.get("available"), default=True),
    }
    paginated = ListingService.list_listings(_kind(path_kind), filters, page=page, per_page=min(per_page, 50))

    return jsonify(
        {
            "success": True,
            "items": [listing_dict(row) for row in paginated.items],
            "meta": {
                "page": paginated.page,
                "pages": paginated.pages,
                "total": paginated.total,
                "has_next": paginated.has_next,
                "has_prev": paginated.has_prev,
            },
        }
    )


@api_service_bp.get("/<any(tractors, workers):path_kind>/mine")
@login_required
@role_required("tractor_owner", "worker")
def my_services(path_kind):
    rows = ListingService.for_provider(_kind(path_kind), current_user.id)
    return jsonify({"success": True, "items": [listing_dict(row) for row in rows]})


@api_service_bp.get("/<any(tractors, workers):path_kind>/<int:listing_id>")
def get_service(path_kind, listing_id):
    listing = ListingService.get_listing(_kind(path_kind), listing_id)
    return jsonify({"success": True, "service": listing_dict(listing)})


@api_service_bp.post("/tractors")
@login_required
@role_required("tractor_owner")
def create_tractor_service():
    payload = request.get_json(silent=True) or {}
    listing = ListingService.create_tractor_listing(current_user, payload)
    cache.clear()
    return jsonify({"success": True, "message": "Tractor service listed.", "service": listing_dict(listing)}), 201


@api_service_bp.post("/workers")
@login_required
@role_required("worker")
def create_worker_service():
    payload = request.get_json(silent=True) or {}
    listing = ListingService.create_worker_listing(current_user, payload)
    cache.clear()
    return jsonify({"success": True, "message": "Worker service listed.", "service": listing_dict(listing)}), 201


@api_service_bp.patch("/<any(tractors, workers):path_kind>/<int:listing_id>/availability")
@login_required
@role_required("tractor_owner", "worker")
def toggle_availability(path_kind, listing_id):
    payload = request.get_json(silent=True) or {}
    listing = ListingService.toggle_availability(
        _kind(path_kind),
        listing_id,
        current_user.id,
        parse_bool(payload.get("availability"), default=True),
    )
    cache.clear()
    return jsonify({"success": True, "service": listing_dict(listing)})
