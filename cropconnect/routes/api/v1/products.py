from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from cropconnect.decorators import role_required
from cropconnect.routes.api.v1.serializers import product_dict
from cropconnect.services import ProductService

api_product_bp = Blueprint("api_product", __name__)


@api_product_bp.get("")
def list_products():
    rows = ProductService.list_products(
        {
            "category": request.args.get("category"),
            "search": request.args.get("search"),
            "min_price": request.args.get("min_price"),
            "max_price": request.args.get("max_price"),
        }
    )
    return jsonify({"success": True, "count": len(rows), "products": [product_dict(row) for row in rows]})


@api_product_bp.get("/<int:product_id>")
def get_product(product_id):
    return jsonify({"success": True, "product": product_dict(ProductService.get(product_id))})


@api_product_bp.post("")
@login_required
@role_required("admin")
def create_product():
    product = ProductService.create(current_user, request.get_json(silent=True) or {})
    return jsonify({"success": True, "message": "Product created.", "product": product_dict(product)}), 201
