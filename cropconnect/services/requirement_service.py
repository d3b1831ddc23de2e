from sqlalchemy.exc import IntegrityError

from cropconnect.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from cropconnect.extensions import db
from cropconnect.models import (
    Bid,
    Booking,
    HireRequest,
    TractorRequirement,
    User,
    WorkerApplicant,
    WorkerListing,
    WorkerRequirement,
)
from cropconnect.models.tractor_listing import LAND_TYPES, TRACTOR_WORK_TYPES
from cropconnect.models.tractor_requirement import REQUIREMENT_STATUSES, URGENCY_LEVELS
from cropconnect.models.worker_requirement import PREFERRED_GENDERS, WORKER_WORK_TYPES
from cropconnect.services.booking_service import BookingService
from cropconnect.services.notification_service import NotificationService
from cropconnect.services.parsing import (
    clean_str,
    parse_bool,
    parse_choice,
    parse_datetime,
    parse_decimal,
    parse_int,
)

REQUIREMENT_MODELS = {"tractor": TractorRequirement, "worker": WorkerRequirement}
CANDIDATE_ROLES = {"tractor": "tractor_owner", "worker": "worker"}


class RequirementService:
    @staticmethod
    def _model(kind):
        if kind not in REQUIREMENT_MODELS:
            raise ValidationError("Requirement type must be 'tractor' or 'worker'.")
        return REQUIREMENT_MODELS[kind]

    @staticmethod
    def _location(payload, existing=None):
        location = payload.get("location") or {
            key: payload.get(key) for key in ("village", "district", "state", "pincode")
        }
        merged = existing.location_dict() if existing is not None else {}
        merged.update({key: value for key, value in location.items() if value is not None})
        if not clean_str(merged.get("district")) or not clean_str(merged.get("state")):
            raise ValidationError("District and state are required.")
        return merged

    @staticmethod
    def _apply_tractor_fields(requirement, payload, partial=False):
        def given(key):
            return not partial or key in payload

        if given("work_type"):
            requirement.work_type = parse_choice(payload.get("work_type"), "Work type", TRACTOR_WORK_TYPES)
        if given("land_type"):
            requirement.land_type = parse_choice(payload.get("land_type"), "Land type", LAND_TYPES)
        if given("land_size"):
            requirement.land_size = parse_decimal(payload.get("land_size"), "Land size", minimum="0.1")
        if given("expected_date"):
            requirement.expected_date = parse_datetime(payload.get("expected_date"), "Expected date")
        if given("duration"):
            duration = clean_str(payload.get("duration"))
            if not duration:
                raise ValidationError("Duration is required.")
            requirement.duration = duration
        if given("max_budget"):
            requirement.max_budget = parse_decimal(payload.get("max_budget"), "Maximum budget", minimum=0)
        if given("urgency"):
            requirement.urgency = parse_choice(payload.get("urgency"), "Urgency", URGENCY_LEVELS, default="normal")
        if given("notes"):
            notes = clean_str(payload.get("notes")) or None
            if notes and len(notes) > 500:
                raise ValidationError("Notes must be at most 500 characters.")
            requirement.notes = notes

    @staticmethod
    def _apply_worker_fields(requirement, payload, partial=False):
        def given(key):
            return not partial or key in payload

        if given("work_type"):
            requirement.work_type = parse_choice(
                payload.get("work_type"), "Work type", WORKER_WORK_TYPES, default="Farm Labor"
            )
        if given("min_age"):
            requirement.min_age = parse_int(payload.get("min_age"), "Minimum age", minimum=18, maximum=80, default=18)
        if given("max_age"):
            requirement.max_age = parse_int(payload.get("max_age"), "Maximum age", minimum=18, maximum=80, default=65)
        if (requirement.min_age or 18) > (requirement.max_age or 65):
            raise ValidationError("Minimum age cannot be greater than maximum age.")
        if given("preferred_gender"):
            requirement.preferred_gender = parse_choice(
                (clean_str(payload.get("preferred_gender")) or "any").lower(),
                "Preferred gender",
                PREFERRED_GENDERS,
            )
        if given("min_experience"):
            requirement.min_experience = parse_int(
                payload.get("min_experience"), "Minimum experience", minimum=0, default=0
            )
        if given("wages_offered"):
            requirement.wages_offered = parse_decimal(payload.get("wages_offered"), "Wages offered", minimum=0)
        if given("work_duration"):
            work_duration = clean_str(payload.get("work_duration"))
            if not work_duration:
                raise ValidationError("Work duration is required.")
            requirement.work_duration = work_duration
        if given("food_provided"):
            requirement.food_provided = parse_bool(payload.get("food_provided"))
        if given("transportation_provided"):
            requirement.transportation_provided = parse_bool(payload.get("transportation_provided"))
        if given("start_date"):
            requirement.start_date = parse_datetime(payload.get("start_date"), "Start date")
        if given("end_date"):
            requirement.end_date = parse_datetime(payload.get("end_date"), "End date", required=False)
        if requirement.end_date and requirement.start_date and requirement.end_date < requirement.start_date:
            raise ValidationError("End date cannot be before the start date.")
        if given("full_address"):
            requirement.full_address = clean_str(payload.get("full_address")) or None
        if given("notes"):
            requirement.notes = clean_str(payload.get("notes")) or None

    @staticmethod
    def _matching_candidates(kind, requirement):
        query = db.session.query(User.id).filter(
            User.role == CANDIDATE_ROLES[kind],
            User.is_active_user.is_(True),
            User.id != requirement.farmer_id,
        )
        if requirement.district:
            query = query.filter(User.district.ilike(f"%{requirement.district}%"))
        if kind == "worker" and requirement.preferred_gender != "any":
            query = query.filter(User.gender == requirement.preferred_gender)
        return [user_id for (user_id,) in query.all()]

    @staticmethod
    def post(kind, farmer, payload):
        model = RequirementService._model(kind)
        requirement = model(farmer_id=farmer.id, status="open")
        if kind == "tractor":
            RequirementService._apply_tractor_fields(requirement, payload)
        else:
            RequirementService._apply_worker_fields(requirement, payload)
        requirement.apply_location(RequirementService._location(payload))
        db.session.add(requirement)
        db.session.commit()

        candidates = RequirementService._matching_candidates(kind, requirement)
        if kind == "tractor":
            message = (
                f"{requirement.work_type} needed on {requirement.land_size} acres in {requirement.district}. "
                f"Budget: Rs. {requirement.max_budget}."
            )
        else:
            message = (
                f"{requirement.work_type} work in {requirement.district} for {requirement.work_duration}. "
                f"Wages: Rs. {requirement.wages_offered}/day."
            )
        notified = NotificationService.emit_many(
            candidates,
            "new_requirement",
            f"New {kind} requirement near you",
            message,
            related_user_id=farmer.id,
            related_requirement_id=requirement.id,
            data={"requirement_type": kind},
        )
        return requirement, notified

    @staticmethod
    def list_requirements(kind, filters=None, viewer=None):
        model = RequirementService._model(kind)
        filters = filters or {}
        status = clean_str(filters.get("status")) or "open"
        if status not in REQUIREMENT_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(REQUIREMENT_STATUSES)}.")
        query = model.query.filter(model.status == status)

        if filters.get("work_type"):
            query = query.filter(model.work_type == filters["work_type"])
        district = clean_str(filters.get("district"))
        if district:
            query = query.filter(model.district.ilike(f"%{district}%"))
        state = clean_str(filters.get("state"))
        if state:
            query = query.filter(model.state.ilike(f"%{state}%"))

        if kind == "tractor":
            if filters.get("land_type"):
                query = query.filter(TractorRequirement.land_type == filters["land_type"])
            if filters.get("urgency"):
                query = query.filter(TractorRequirement.urgency == filters["urgency"])
        else:
            min_wage = parse_decimal(filters.get("min_wage"), "Minimum wage", required=False)
            if min_wage is not None:
                query = query.filter(WorkerRequirement.wages_offered >= min_wage)
            if viewer is not None and viewer.role == "worker":
                allowed = ["any"] + ([viewer.gender] if viewer.gender else [])
                query = query.filter(WorkerRequirement.preferred_gender.in_(allowed))

        return query.order_by(model.created_at.desc()).all()

    @staticmethod
    def get(kind, requirement_id):
        requirement = db.session.get(RequirementService._model(kind), requirement_id)
        if not requirement:
            raise NotFound("Requirement not found.")
        return requirement

    @staticmethod
    def mine(kind, farmer_id):
        model = RequirementService._model(kind)
        return model.query.filter_by(farmer_id=farmer_id).order_by(model.created_at.desc()).all()

    @staticmethod
    def _owned_open(kind, requirement_id, actor, action):
        requirement = RequirementService.get(kind, requirement_id)
        if requirement.farmer_id != actor.id:
            raise Forbidden(f"Only the farmer who posted this requirement can {action} it.")
        if requirement.status != "open":
            raise InvalidState(f"Requirement is {requirement.status}; only open requirements can be changed.")
        return requirement

    @staticmethod
    def update(kind, requirement_id, actor, payload):
        requirement = RequirementService._owned_open(kind, requirement_id, actor, "update")
        if kind == "tractor":
            RequirementService._apply_tractor_fields(requirement, payload, partial=True)
        else:
            RequirementService._apply_worker_fields(requirement, payload, partial=True)
        if "location" in payload:
            requirement.apply_location(RequirementService._location(payload, existing=requirement))
        db.session.commit()
        return requirement

    @staticmethod
    def withdraw(kind, requirement_id, actor):
        requirement = RequirementService._owned_open(kind, requirement_id, actor, "delete")
        if kind == "worker":
            HireRequest.query.filter_by(requirement_id=requirement.id).delete()
        db.session.delete(requirement)
        db.session.commit()

    @staticmethod
    def cancel(kind, requirement_id, actor):
        requirement = RequirementService._owned_open(kind, requirement_id, actor, "cancel")
        cancelled = RequirementService._model(kind).query.filter_by(id=requirement.id, status="open").update(
            {"status": "cancelled"}
        )
        if not cancelled:
            db.session.rollback()
            raise InvalidState("Only open requirements can be cancelled.")

        if kind == "tractor":
            affected = [bid.bidder_id for bid in requirement.bids.filter_by(status="pending").all()]
            Bid.query.filter_by(requirement_id=requirement.id, status="pending").update({"status": "cancelled"})
        else:
            affected = [row.worker_id for row in requirement.applicants if row.status == "pending"]
            WorkerApplicant.query.filter_by(requirement_id=requirement.id, status="pending").update(
                {"status": "rejected"}
            )
            HireRequest.query.filter_by(requirement_id=requirement.id, status="pending").update(
                {"status": "cancelled"}
            )
        db.session.commit()

        NotificationService.emit_many(
            affected,
            "requirement_cancelled",
            "Requirement cancelled",
            f"The {requirement.work_type} requirement in {requirement.district} was cancelled by the farmer.",
            related_user_id=actor.id,
            related_requirement_id=requirement.id,
        )
        return requirement

    @staticmethod
    def apply(requirement_id, worker):
        requirement = db.session.get(WorkerRequirement, requirement_id)
        if not requirement:
            raise NotFound("Requirement not found.")
        if requirement.status != "open":
            raise InvalidState("This requirement is no longer accepting applications.")
        if not requirement.accepts_gender(worker.gender):
            raise Forbidden("This requirement is not open to your profile.")
        if requirement.applicant_for(worker.id):
            raise Conflict("You have already applied to this requirement.")

        listing = (
            WorkerListing.query.filter_by(worker_id=worker.id)
            .order_by(WorkerListing.created_at.desc())
            .first()
        )
        hire_request = HireRequest(
            farmer_id=requirement.farmer_id,
            worker_id=worker.id,
            worker_listing_id=listing.id if listing else None,
            requirement_id=requirement.id,
            request_type="worker_to_farmer",
            status="pending",
            start_date=requirement.start_date,
            duration=requirement.work_duration,
            work_description=requirement.work_type,
            agreed_amount=requirement.wages_offered,
            notes=f"Application for requirement #{requirement.id}",
        )
        hire_request.apply_location(requirement.location_dict())
        try:
            db.session.add(hire_request)
            db.session.flush()
            applicant = WorkerApplicant(
                requirement_id=requirement.id,
                worker_id=worker.id,
                status="pending",
                hire_request_id=hire_request.id,
            )
            db.session.add(applicant)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise Conflict("You have already applied to this requirement.") from exc

        NotificationService.emit(
            requirement.farmer_id,
            "application_received",
            "New application",
            f"{worker.full_name} applied for your {requirement.work_type} requirement.",
            related_user_id=worker.id,
            related_requirement_id=requirement.id,
            data={"hire_request_id": hire_request.id},
        )
        return applicant, hire_request

    @staticmethod
    def complete(requirement_id, actor):
        requirement = RequirementService.get("tractor", requirement_id)
        if requirement.accepted_by_id != actor.id:
            raise Forbidden("Only the tractor owner who won this requirement can complete it.")
        if requirement.status != "accepted":
            raise InvalidState(f"Requirement is {requirement.status}, not accepted.")

        booking = Booking.query.filter_by(tractor_requirement_id=requirement.id).first()
        if not booking:
            raise NotFound("No booking exists for this requirement.")
        BookingService.mark_complete(booking.id, actor)
        return RequirementService.get("tractor", requirement_id), booking
