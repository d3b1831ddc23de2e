from sqlalchemy import or_

from cropconnect.errors import NotFound, ValidationError
from cropconnect.extensions import db
from cropconnect.models import Product
from cropconnect.models.product import PRODUCT_CATEGORIES
from cropconnect.services.parsing import clean_str, parse_choice, parse_decimal, parse_int


class ProductService:
    @staticmethod
    def create(actor, payload):
        name = clean_str(payload.get("name"))
        if not name:
            raise ValidationError("Product name is required.")
        description = clean_str(payload.get("description")) or None
        if description and len(description) > 1000:
            raise ValidationError("Description must be at most 1000 characters.")

        product = Product(
            name=name,
            category=parse_choice(payload.get("category"), "Category", PRODUCT_CATEGORIES),
            price=parse_decimal(payload.get("price"), "Price", minimum=0),
            description=description,
            stock=parse_int(payload.get("stock"), "Stock", minimum=0, default=0),
            brand=clean_str(payload.get("brand")) or None,
            created_by_id=actor.id,
        )
        db.session.add(product)
        db.session.commit()
        return product

    @staticmethod
    def list_products(filters=None):
        filters = filters or {}
        query = Product.query.filter(Product.is_active.is_(True))
        if filters.get("category"):
            query = query.filter(Product.category == filters["category"])
        search = clean_str(filters.get("search"))
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(Product.name.ilike(pattern), Product.description.ilike(pattern), Product.brand.ilike(pattern))
            )
        min_price = parse_decimal(filters.get("min_price"), "Minimum price", required=False)
        if min_price is not None:
            query = query.filter(Product.price >= min_price)
        max_price = parse_decimal(filters.get("max_price"), "Maximum price", required=False)
        if max_price is not None:
            query = query.filter(Product.price <= max_price)
        return query.order_by(Product.created_at.desc(), Product.id.desc()).all()

    @staticmethod
    def get(product_id):
        product = db.session.get(Product, product_id)
        if not product or not product.is_active:
            raise NotFound("Product not found.")
        return product
