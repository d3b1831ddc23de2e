def _money(value):
    return float(value) if value is not None else None


def _iso(value):
    return value.isoformat() if value is not None else None


def user_dict(user):
    data = user.public_dict()
    data.update({"email": user.email, "gender": user.gender, "location": user.location_dict()})
    return data


def tractor_listing_dict(listing):
    return {
        "id": listing.id,
        "kind": "tractor",
        "owner": listing.owner.public_dict(),
        "vehicle_number": listing.vehicle_number,
        "brand": listing.brand,
        "model": listing.model,
        "work_type": listing.work_type,
        "land_type": listing.land_type,
        "charge_per_acre": _money(listing.charge_per_acre),
        "contact_number": listing.contact_number,
        "location": listing.location_dict(),
        "availability": listing.availability,
        "is_booked": listing.is_booked,
        "is_available": listing.is_available,
        "rating_avg": _money(listing.rating_avg),
        "rating_count": listing.rating_count,
    }


def worker_listing_dict(listing):
    return {
        "id": listing.id,
        "kind": "worker",
        "worker": listing.worker.public_dict(),
        "worker_type": listing.worker_type,
        "experience_years": listing.experience_years,
        "charge_per_day": _money(listing.charge_per_day),
        "working_hours": listing.working_hours,
        "skills": listing.skill_list,
        "contact_number": listing.contact_number,
        "location": listing.location_dict(),
        "availability": listing.availability,
        "is_booked": listing.is_booked,
        "is_available": listing.is_available,
        "rating_avg": _money(listing.rating_avg),
        "rating_count": listing.rating_count,
    }


def listing_dict(listing):
    if listing.kind == "tractor":
        return tractor_listing_dict(listing)
    return worker_listing_dict(listing)


def _requirement_common(requirement):
    return {
        "id": requirement.id,
        "kind": requirement.kind,
        "farmer": requirement.farmer.public_dict(),
        "work_type": requirement.work_type,
        "location": requirement.location_dict(),
        "notes": requirement.notes,
        "status": requirement.status,
        "accepted_by": requirement.accepted_by_id,
        "accepted_at": _iso(requirement.accepted_at),
        "completed_at": _iso(requirement.completed_at),
        "created_at": _iso(requirement.created_at),
    }


def requirement_dict(requirement, viewer=None, include_counts=False):
    data = _requirement_common(requirement)
    if requirement.kind == "tractor":
        data.update(
            {
                "land_type": requirement.land_type,
                "land_size": _money(requirement.land_size),
                "expected_date": _iso(requirement.expected_date),
                "duration": requirement.duration,
                "max_budget": _money(requirement.max_budget),
                "urgency": requirement.urgency,
            }
        )
        if include_counts:
            data["bid_count"] = requirement.bids.count()
    else:
        data.update(
            {
                "min_age": requirement.min_age,
                "max_age": requirement.max_age,
                "preferred_gender": requirement.preferred_gender,
                "min_experience": requirement.min_experience,
                "wages_offered": _money(requirement.wages_offered),
                "work_duration": requirement.work_duration,
                "food_provided": requirement.food_provided,
                "transportation_provided": requirement.transportation_provided,
                "start_date": _iso(requirement.start_date),
                "end_date": _iso(requirement.end_date),
                "full_address": requirement.full_address,
            }
        )
        if include_counts:
            data["applicant_count"] = len(requirement.applicants)
            data["applicants"] = [applicant_dict(row) for row in requirement.applicants]
        if viewer is not None and viewer.role == "worker":
            data["has_applied"] = requirement.applicant_for(viewer.id) is not None
    return data


def applicant_dict(applicant):
    return {
        "id": applicant.id,
        "worker": applicant.worker.public_dict(),
        "status": applicant.status,
        "applied_at": _iso(applicant.applied_at),
        "hire_request_id": applicant.hire_request_id,
    }


def bid_dict(bid):
    return {
        "id": bid.id,
        "requirement_id": bid.requirement_id,
        "bidder": bid.bidder.public_dict(),
        "proposed_amount": _money(bid.proposed_amount),
        "proposed_duration": bid.proposed_duration,
        "proposed_date": _iso(bid.proposed_date),
        "message": bid.message,
        "status": bid.status,
        "created_at": _iso(bid.created_at),
    }


def hire_request_dict(hire_request):
    return {
        "id": hire_request.id,
        "request_type": hire_request.request_type,
        "status": hire_request.status,
        "farmer": hire_request.farmer.public_dict(),
        "worker": hire_request.worker.public_dict(),
        "worker_listing_id": hire_request.worker_listing_id,
        "requirement_id": hire_request.requirement_id,
        "start_date": _iso(hire_request.start_date),
        "duration": hire_request.duration,
        "work_description": hire_request.work_description,
        "agreed_amount": _money(hire_request.agreed_amount),
        "location": hire_request.location_dict(),
        "notes": hire_request.notes,
        "rejection_reason": hire_request.rejection_reason,
        "booking_id": hire_request.booking.id if hire_request.booking else None,
        "created_at": _iso(hire_request.created_at),
    }


def booking_dict(booking):
    ref = booking.service_ref
    return {
        "id": booking.id,
        "farmer": booking.farmer.public_dict(),
        "provider": booking.provider.public_dict(),
        "service_type": ref.kind,
        "service_id": ref.id,
        "bid_id": booking.bid_id,
        "tractor_requirement_id": booking.tractor_requirement_id,
        "worker_requirement_id": booking.worker_requirement_id,
        "hire_request_id": booking.hire_request_id,
        "booking_date": _iso(booking.booking_date),
        "duration": booking.duration,
        "total_cost": _money(booking.total_cost),
        "work_type": booking.work_type,
        "land_size": _money(booking.land_size),
        "location": booking.location_dict(),
        "full_address": booking.full_address,
        "notes": booking.notes,
        "status": booking.status,
        "payment_status": booking.payment_status,
        "completed_at": _iso(booking.completed_at),
        "cancelled_at": _iso(booking.cancelled_at),
        "paid_at": _iso(booking.paid_at),
        "created_at": _iso(booking.created_at),
    }


def transaction_dict(transaction):
    return {
        "id": transaction.id,
        "booking_id": transaction.booking_id,
        "payer_id": transaction.payer_id,
        "payee_id": transaction.payee_id,
        "amount": _money(transaction.amount),
        "method": transaction.method,
        "status": transaction.status,
        "gateway_order_id": transaction.gateway_order_id,
        "gateway_payment_id": transaction.gateway_payment_id,
        "receipt_number": transaction.receipt_number,
        "completed_at": _iso(transaction.completed_at),
        "created_at": _iso(transaction.created_at),
    }


def rating_dict(rating):
    return {
        "id": rating.id,
        "booking_id": rating.booking_id,
        "rater": rating.rater.public_dict(),
        "ratee_id": rating.ratee_id,
        "rating_type": rating.rating_type,
        "score": rating.score,
        "review": rating.review,
        "is_edited": rating.is_edited,
        "created_at": _iso(rating.created_at),
    }


def notification_dict(notification):
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "related_user_id": notification.related_user_id,
        "related_requirement_id": notification.related_requirement_id,
        "related_booking_id": notification.related_booking_id,
        "related_service_id": notification.related_service_id,
        "data": notification.data,
        "is_read": notification.is_read,
        "created_at": _iso(notification.created_at),
    }


def crop_dict(crop, sold_quantity=None):
    data = {
        "id": crop.id,
        "seller": crop.seller.public_dict(),
        "crop_name": crop.crop_name,
        "variety": crop.variety,
        "quantity": _money(crop.quantity),
        "unit": crop.unit,
        "price_per_unit": _money(crop.price_per_unit),
        "location": crop.location_dict(),
        "harvest_date": _iso(crop.harvest_date),
        "description": crop.description,
        "status": crop.status,
        "created_at": _iso(crop.created_at),
    }
    if sold_quantity is not None:
        data["sold_quantity"] = _money(sold_quantity)
        data["remaining_quantity"] = _money(crop.quantity)
        data["initial_quantity"] = _money(crop.quantity + sold_quantity)
    return data


def product_dict(product):
    return {
        "id": product.id,
        "name": product.name,
        "category": product.category,
        "price": _money(product.price),
        "description": product.description,
        "stock": product.stock,
        "brand": product.brand,
        "created_at": _iso(product.created_at),
    }


def cart_dict(cart):
    return {
        "items": [
            {
                "id": item.id,
                "item_id": item.crop_id,
                "name": item.name,
                "quantity": _money(item.quantity),
                "price": _money(item.price),
                "unit": item.unit,
            }
            for item in cart.items
        ],
        "total": _money(cart.total),
    }


def order_dict(order):
    return {
        "id": order.id,
        "buyer": order.buyer.public_dict(),
        "seller": order.seller.public_dict(),
        "items": [
            {
                "crop_id": item.crop_id,
                "crop_name": item.crop_name,
                "unit": item.unit,
                "quantity": _money(item.quantity),
                "price_per_unit": _money(item.price_per_unit),
                "total": _money(item.total),
            }
            for item in order.items
        ],
        "total_amount": _money(order.total_amount),
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "status": order.status,
        "delivery_address": dict(order.location_dict(), full_address=order.full_address),
        "vehicle_details": order.vehicle_details,
        "pickup_schedule": order.pickup_schedule,
        "gateway_order_id": order.gateway_order_id,
        "cancellation_reason": order.cancellation_reason,
        "picked_up_at": _iso(order.picked_up_at),
        "completed_at": _iso(order.completed_at),
        "cancelled_at": _iso(order.cancelled_at),
        "created_at": _iso(order.created_at),
    }
