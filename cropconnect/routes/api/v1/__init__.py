from flask import Blueprint, jsonify

from cropconnect.extensions import csrf, db
from cropconnect.routes.api.v1.auth import api_auth_bp
from cropconnect.routes.api.v1.bids import api_bid_bp
from cropconnect.routes.api.v1.bookings import api_booking_bp
from cropconnect.routes.api.v1.cart import api_cart_bp
from cropconnect.routes.api.v1.crops import api_crop_bp
from cropconnect.routes.api.v1.hire_requests import api_hire_bp
from cropconnect.routes.api.v1.notifications import api_notification_bp
from cropconnect.routes.api.v1.orders import api_order_bp
from cropconnect.routes.api.v1.products import api_product_bp
from cropconnect.routes.api.v1.ratings import api_rating_bp
from cropconnect.routes.api.v1.requirements import api_requirement_bp
from cropconnect.routes.api.v1.services import api_service_bp
from cropconnect.routes.api.v1.transactions import api_transaction_bp

api_v1_bp = Blueprint("api_v1", __name__)
api_v1_bp.register_blueprint(api_auth_bp, url_prefix="/auth")
api_v1_bp.register_blueprint(api_service_bp, url_prefix="/services")
api_v1_bp.register_blueprint(
    api_requirement_bp,
    url_prefix="/tractor-requirements",
    name="tractor_requirements",
    url_defaults={"kind": "tractor"},
)
api_v1_bp.register_blueprint(
    api_requirement_bp,
    url_prefix="/worker-requirements",
    name="worker_requirements",
    url_defaults={"kind": "worker"},
)
api_v1_bp.register_blueprint(api_bid_bp, url_prefix="/bids")
api_v1_bp.register_blueprint(api_hire_bp, url_prefix="/hire-requests")
api_v1_bp.register_blueprint(api_booking_bp, url_prefix="/bookings")
api_v1_bp.register_blueprint(api_transaction_bp, url_prefix="/transactions")
api_v1_bp.register_blueprint(api_rating_bp, url_prefix="/ratings")
api_v1_bp.register_blueprint(api_notification_bp, url_prefix="/notifications")
api_v1_bp.register_blueprint(api_crop_bp, url_prefix="/crops")
api_v1_bp.register_blueprint(api_product_bp, url_prefix="/products")
api_v1_bp.register_blueprint(api_cart_bp, url_prefix="/cart")
api_v1_bp.register_blueprint(api_order_bp, url_prefix="/orders")


@api_v1_bp.get("/health")
def health():
    db.session.execute(db.text("SELECT 1"))
    return jsonify({"success": True, "status": "ok"})


csrf.exempt(api_v1_bp)
