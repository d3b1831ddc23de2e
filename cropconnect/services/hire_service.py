from sqlalchemy import or_

from cropconnect.errors import Conflict, Forbidden, InvalidState, NotFound
from cropconnect.extensions import db
from cropconnect.models import Booking, HireRequest, ServiceRef, WorkerApplicant, WorkerListing, WorkerRequirement
from cropconnect.models.base import utcnow
from cropconnect.services.booking_service import BookingService
from cropconnect.services.notification_service import NotificationService
from cropconnect.services.parsing import (
    clean_str,
    duration_days,
    parse_datetime,
    parse_decimal,
    parse_int,
    whole_rupees,
)


class HireService:
    @staticmethod
    def get(request_id):
        hire_request = db.session.get(HireRequest, request_id)
        if not hire_request:
            raise NotFound("Hire request not found.")
        return hire_request

    @staticmethod
    def create(farmer, payload):
        listing_id = parse_int(payload.get("worker_listing_id") or payload.get("service_id"), "Worker service")
        listing = db.session.get(WorkerListing, listing_id)
        if not listing:
            raise NotFound("Worker service not found.")
        if not listing.is_available:
            raise InvalidState("This worker is not available right now.")

        duplicate = HireRequest.query.filter_by(
            farmer_id=farmer.id, worker_listing_id=listing.id, status="pending"
        ).first()
        if duplicate:
            raise Conflict("You already have a pending hire request for this worker.")

        hire_request = HireRequest(
            farmer_id=farmer.id,
            worker_id=listing.worker_id,
            worker_listing_id=listing.id,
            request_type="farmer_to_worker",
            status="pending",
            start_date=parse_datetime(payload.get("start_date"), "Start date"),
            duration=clean_str(payload.get("duration")) or "1 day",
            work_description=clean_str(payload.get("work_description")) or listing.worker_type,
            agreed_amount=parse_decimal(
                payload.get("agreed_amount") or listing.charge_per_day, "Agreed amount", minimum=0
            ),
            notes=clean_str(payload.get("notes")) or None,
        )
        hire_request.apply_location(payload.get("location") or farmer.location_dict())
        db.session.add(hire_request)
        db.session.commit()

        NotificationService.emit(
            listing.worker_id,
            "hire_request",
            "New hire request",
            f"{farmer.full_name} wants to hire you for {hire_request.work_description} "
            f"({hire_request.duration}) at Rs. {hire_request.agreed_amount}/day.",
            related_user_id=farmer.id,
            related_service_id=listing.id,
            data={"hire_request_id": hire_request.id},
        )
        return hire_request

    @staticmethod
    def for_user(user, status=None):
        query = HireRequest.query.filter(or_(HireRequest.farmer_id == user.id, HireRequest.worker_id == user.id))
        if status:
            query = query.filter(HireRequest.status == status)
        return query.order_by(HireRequest.created_at.desc()).all()

    @staticmethod
    def _pending_for_receiver(request_id, actor):
        hire_request = HireService.get(request_id)
        if hire_request.receiver_id() != actor.id:
            raise Forbidden("Only the receiving party can respond to this hire request.")
        if hire_request.status != "pending":
            raise InvalidState(f"Hire request has already been {hire_request.status}.")
        return hire_request

    @staticmethod
    def accept(request_id, actor):
        hire_request = HireService._pending_for_receiver(request_id, actor)
        now = utcnow()

        accepted = HireRequest.query.filter_by(id=hire_request.id, status="pending").update({"status": "accepted"})
        if not accepted:
            db.session.rollback()
            raise InvalidState("Hire request has already been processed.")

        requirement = hire_request.requirement
        passed_over = []
        if requirement is not None:
            claimed = WorkerRequirement.query.filter_by(id=requirement.id, status="open").update(
                {"status": "accepted", "accepted_by_id": hire_request.worker_id, "accepted_at": now}
            )
            if not claimed:
                db.session.rollback()
                raise InvalidState("This requirement has already been filled.")
            WorkerApplicant.query.filter_by(
                requirement_id=requirement.id, worker_id=hire_request.worker_id
            ).update({"status": "accepted"})
            passed_over = [
                row.worker_id
                for row in WorkerApplicant.query.filter_by(requirement_id=requirement.id, status="pending").all()
            ]
            WorkerApplicant.query.filter_by(requirement_id=requirement.id, status="pending").update(
                {"status": "rejected"}
            )
            HireRequest.query.filter_by(requirement_id=requirement.id, status="pending").update(
                {"status": "rejected", "rejection_reason": "Another worker was hired."}
            )

        ref = ServiceRef.worker(hire_request.worker_listing_id)
        if hire_request.request_type == "farmer_to_worker":
            if ref.id is None or not BookingService.claim_service(ref):
                db.session.rollback()
                raise InvalidState("This worker is not available right now.")
        elif ref.id is not None and not BookingService.claim_service(ref):
            # The worker's listing is held by another booking; this one runs without it.
            ref = ServiceRef.worker(None)

        days = duration_days(hire_request.duration)
        booking = Booking(
            farmer_id=hire_request.farmer_id,
            provider_id=hire_request.worker_id,
            hire_request_id=hire_request.id,
            worker_requirement_id=requirement.id if requirement is not None else None,
            booking_date=hire_request.start_date or (requirement.start_date if requirement else now),
            duration=days,
            total_cost=whole_rupees(hire_request.agreed_amount * days),
            work_type=hire_request.work_description,
            full_address=requirement.full_address if requirement is not None else None,
            notes=hire_request.notes,
            status="confirmed",
            payment_status="pending",
        )
        booking.service_ref = ref
        booking.apply_location(hire_request.location_dict())
        db.session.add(booking)
        db.session.commit()

        NotificationService.emit(
            hire_request.sender_id(),
            "hire_accepted",
            "Hire request accepted",
            f"{actor.full_name} accepted the hire request for {hire_request.work_description}. "
            f"Booking #{booking.id} is confirmed.",
            related_user_id=actor.id,
            related_booking_id=booking.id,
            related_requirement_id=hire_request.requirement_id,
        )
        if passed_over:
            NotificationService.emit_many(
                passed_over,
                "hire_rejected",
                "Application not selected",
                f"The farmer hired another worker for {requirement.work_type} in {requirement.district}.",
                related_requirement_id=requirement.id,
            )
        return hire_request, booking

    @staticmethod
    def reject(request_id, actor, reason=None):
        hire_request = HireService._pending_for_receiver(request_id, actor)
        reason = clean_str(reason) or None
        rejected = HireRequest.query.filter_by(id=hire_request.id, status="pending").update(
            {"status": "rejected", "rejection_reason": reason}
        )
        if not rejected:
            db.session.rollback()
            raise InvalidState("Hire request has already been processed.")
        if hire_request.requirement_id:
            WorkerApplicant.query.filter_by(hire_request_id=hire_request.id, status="pending").update(
                {"status": "rejected"}
            )
        db.session.commit()

        NotificationService.emit(
            hire_request.sender_id(),
            "hire_rejected",
            "Hire request declined",
            f"{actor.full_name} declined the hire request for {hire_request.work_description}."
            + (f" Reason: {reason}" if reason else ""),
            related_user_id=actor.id,
            related_requirement_id=hire_request.requirement_id,
        )
        return hire_request
