from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from cropconnect.errors import Conflict, Forbidden, NotFound, ValidationError
from cropconnect.extensions import db
from cropconnect.models import ServiceRef, TractorListing, WorkerListing
from cropconnect.models.tractor_listing import LAND_TYPES, TRACTOR_WORK_TYPES
from cropconnect.models.worker_listing import WORKER_TYPES
from cropconnect.services.notification_service import NotificationService
from cropconnect.services.parsing import clean_str, normalize_phone, parse_choice, parse_decimal, parse_int


class ListingService:
    @staticmethod
    def _require_location(payload):
        location = payload.get("location") or payload
        if not clean_str(location.get("district")) or not clean_str(location.get("state")):
            raise ValidationError("District and state are required.")
        return location

    @staticmethod
    def create_tractor_listing(owner, payload):
        vehicle_number = (clean_str(payload.get("vehicle_number")) or "").upper().replace(" ", "")
        brand = clean_str(payload.get("brand"))
        model = clean_str(payload.get("model"))
        if not vehicle_number or not brand or not model:
            raise ValidationError("Vehicle number, brand and model are required.")

        location = ListingService._require_location(payload)
        listing = TractorListing(
            owner_id=owner.id,
            vehicle_number=vehicle_number,
            brand=brand,
            model=model,
            work_type=parse_choice(payload.get("work_type"), "Work type", TRACTOR_WORK_TYPES),
            land_type=parse_choice(payload.get("land_type"), "Land type", LAND_TYPES),
            charge_per_acre=parse_decimal(payload.get("charge_per_acre"), "Charge per acre", minimum=1),
            contact_number=normalize_phone(payload.get("contact_number") or owner.phone),
        )
        listing.apply_location(location)

        if TractorListing.query.filter_by(vehicle_number=vehicle_number).first():
            raise Conflict("A tractor with this vehicle number is already listed.")
        try:
            db.session.add(listing)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise Conflict("A tractor with this vehicle number is already listed.") from exc

        NotificationService.emit(
            owner.id,
            "service_posted",
            "Tractor service listed",
            f"Your {listing.brand} {listing.model} ({listing.vehicle_number}) is now visible to farmers.",
            related_service_id=listing.id,
        )
        return listing

    @staticmethod
    def create_worker_listing(worker, payload):
        location = ListingService._require_location(payload)
        skills = payload.get("skills") or []
        if isinstance(skills, str):
            skills = skills.split(",")

        listing = WorkerListing(
            worker_id=worker.id,
            worker_type=parse_choice(payload.get("worker_type"), "Worker type", WORKER_TYPES),
            experience_years=parse_int(payload.get("experience_years"), "Experience", minimum=0, default=0),
            charge_per_day=parse_decimal(payload.get("charge_per_day"), "Charge per day", minimum=1),
            working_hours=parse_int(payload.get("working_hours"), "Working hours", minimum=1, maximum=24, default=8),
            skills=", ".join(item.strip() for item in skills if item and item.strip()) or None,
            contact_number=normalize_phone(payload.get("contact_number") or worker.phone),
        )
        listing.apply_location(location)
        db.session.add(listing)
        db.session.commit()

        NotificationService.emit(
            worker.id,
            "service_posted",
            "Worker service listed",
            f"Your {listing.worker_type} service is now visible to farmers.",
            related_service_id=listing.id,
        )
        return listing

    @staticmethod
    def list_listings(kind, filters=None, page=1, per_page=12):
        filters = filters or {}
        model = ServiceRef(kind).model
        owner_rel = TractorListing.owner if kind == "tractor" else WorkerListing.worker
        query = model.query.options(joinedload(owner_rel)).order_by(model.created_at.desc())

        if filters.get("only_available", True):
            query = query.filter(model.availability.is_(True), model.is_booked.is_(False))
        district = clean_str(filters.get("district"))
        if district:
            query = query.filter(model.district.ilike(f"%{district}%"))
        state = clean_str(filters.get("state"))
        if state:
            query = query.filter(model.state.ilike(f"%{state}%"))
        if kind == "tractor":
            if filters.get("work_type"):
                query = query.filter(TractorListing.work_type == filters["work_type"])
            if filters.get("land_type"):
                query = query.filter(TractorListing.land_type == filters["land_type"])
        elif filters.get("worker_type"):
            query = query.filter(WorkerListing.worker_type == filters["worker_type"])

        return query.paginate(page=page, per_page=per_page, error_out=False)

    @staticmethod
    def get_listing(kind, listing_id):
        listing = ServiceRef(kind, listing_id).resolve()
        if not listing:
            raise NotFound("Service not found.")
        return listing

    @staticmethod
    def for_provider(kind, provider_id):
        model = ServiceRef(kind).model
        owner_column = TractorListing.owner_id if kind == "tractor" else WorkerListing.worker_id
        return model.query.filter(owner_column == provider_id).order_by(model.created_at.desc()).all()

    @staticmethod
    def toggle_availability(kind, listing_id, actor_id, available):
        listing = ListingService.get_listing(kind, listing_id)
        if listing.provider_id != actor_id:
            raise Forbidden("You can only change availability of your own service.")
        # Owner toggle only controls the offline flag; is_booked belongs to the booking lifecycle.
        listing.availability = bool(available)
        db.session.commit()
        return listing
