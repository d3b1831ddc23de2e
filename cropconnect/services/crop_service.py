from decimal import Decimal

from sqlalchemy import func

from cropconnect.errors import Forbidden, InvalidState, NotFound, ValidationError
from cropconnect.extensions import db
from cropconnect.models import CartItem, Crop, Order, OrderItem
from cropconnect.models.crop import CROP_STATUSES, CROP_UNITS
from cropconnect.services.parsing import clean_str, parse_choice, parse_datetime, parse_decimal

OPEN_ORDER_STATUSES = ("pending", "confirmed", "picked")


class CropService:
    @staticmethod
    def _description(payload):
        description = clean_str(payload.get("description")) or None
        if description and len(description) > 500:
            raise ValidationError("Description must be at most 500 characters.")
        return description

    @staticmethod
    def create(seller, payload):
        crop_name = clean_str(payload.get("crop_name"))
        variety = clean_str(payload.get("variety"))
        if not crop_name or not variety:
            raise ValidationError("Crop name and variety are required.")
        location = payload.get("location") or payload
        if not clean_str(location.get("district")) or not clean_str(location.get("state")):
            raise ValidationError("District and state are required.")

        crop = Crop(
            seller_id=seller.id,
            crop_name=crop_name,
            variety=variety,
            quantity=parse_decimal(payload.get("quantity"), "Quantity", minimum="0.01"),
            unit=parse_choice(payload.get("unit"), "Unit", CROP_UNITS, default="quintal"),
            price_per_unit=parse_decimal(payload.get("price_per_unit"), "Price per unit", minimum=1),
            harvest_date=parse_datetime(payload.get("harvest_date"), "Harvest date", required=False),
            description=CropService._description(payload),
            status="available",
        )
        crop.apply_location(location)
        db.session.add(crop)
        db.session.commit()
        return crop

    @staticmethod
    def list_crops(filters=None, page=1, per_page=12):
        filters = filters or {}
        query = Crop.query.order_by(Crop.created_at.desc(), Crop.id.desc())
        if filters.get("status"):
            query = query.filter(Crop.status == filters["status"])
        crop_name = clean_str(filters.get("crop_name"))
        if crop_name:
            query = query.filter(Crop.crop_name.ilike(f"%{crop_name}%"))
        for column, key in ((Crop.district, "district"), (Crop.state, "state")):
            value = clean_str(filters.get(key))
            if value:
                query = query.filter(column.ilike(f"%{value}%"))
        min_price = parse_decimal(filters.get("min_price"), "Minimum price", required=False)
        if min_price is not None:
            query = query.filter(Crop.price_per_unit >= min_price)
        max_price = parse_decimal(filters.get("max_price"), "Maximum price", required=False)
        if max_price is not None:
            query = query.filter(Crop.price_per_unit <= max_price)
        return query.paginate(page=page, per_page=per_page, error_out=False)

    @staticmethod
    def get(crop_id):
        crop = db.session.get(Crop, crop_id)
        if not crop:
            raise NotFound("Crop not found.")
        return crop

    @staticmethod
    def _owned(crop_id, actor):
        crop = CropService.get(crop_id)
        if crop.seller_id != actor.id:
            raise Forbidden("You can only change your own crops.")
        return crop

    @staticmethod
    def for_seller(seller_id):
        """Seller's crops paired with the quantity sold through orders that were not cancelled."""
        crops = Crop.query.filter_by(seller_id=seller_id).order_by(Crop.created_at.desc(), Crop.id.desc()).all()
        sold = dict(
            db.session.query(OrderItem.crop_id, func.coalesce(func.sum(OrderItem.quantity), 0))
            .join(Order, Order.id == OrderItem.order_id)
            .filter(Order.seller_id == seller_id, Order.status != "cancelled", OrderItem.crop_id.isnot(None))
            .group_by(OrderItem.crop_id)
            .all()
        )
        return [(crop, Decimal(str(sold.get(crop.id, 0)))) for crop in crops]

    @staticmethod
    def update(crop_id, actor, payload):
        crop = CropService._owned(crop_id, actor)
        for field in ("crop_name", "variety"):
            if field in payload:
                value = clean_str(payload.get(field))
                if not value:
                    raise ValidationError(f"{field.replace('_', ' ').capitalize()} cannot be empty.")
                setattr(crop, field, value)
        if "quantity" in payload:
            crop.quantity = parse_decimal(payload.get("quantity"), "Quantity", minimum=0)
        if "price_per_unit" in payload:
            crop.price_per_unit = parse_decimal(payload.get("price_per_unit"), "Price per unit", minimum=1)
        if "unit" in payload:
            crop.unit = parse_choice(payload.get("unit"), "Unit", CROP_UNITS)
        if "harvest_date" in payload:
            crop.harvest_date = parse_datetime(payload.get("harvest_date"), "Harvest date", required=False)
        if "description" in payload:
            crop.description = CropService._description(payload)
        if "status" in payload:
            crop.status = parse_choice(payload.get("status"), "Status", CROP_STATUSES)
        if payload.get("location"):
            crop.apply_location(dict(crop.location_dict(), **payload["location"]))
        db.session.commit()
        return crop

    @staticmethod
    def delete(crop_id, actor):
        crop = CropService._owned(crop_id, actor)
        open_orders = (
            OrderItem.query.join(Order, Order.id == OrderItem.order_id)
            .filter(OrderItem.crop_id == crop.id, Order.status.in_(OPEN_ORDER_STATUSES))
            .count()
        )
        if open_orders:
            raise InvalidState("This crop has open orders and cannot be deleted.")
        OrderItem.query.filter_by(crop_id=crop.id).update({"crop_id": None})
        CartItem.query.filter_by(crop_id=crop.id).delete()
        db.session.delete(crop)
        db.session.commit()
