from sqlalchemy import or_

from cropconnect.errors import Forbidden, InvalidState, NotFound, ValidationError
from cropconnect.extensions import db
from cropconnect.models import Booking, ServiceRef, TractorRequirement, WorkerRequirement
from cropconnect.models.base import utcnow
from cropconnect.services.notification_service import NotificationService
from cropconnect.services.parsing import (
    clean_str,
    duration_days,
    parse_datetime,
    parse_decimal,
    parse_int,
    whole_rupees,
)

BOOKING_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


class BookingService:
    @staticmethod
    def _status_label(status):
        return (status or "").replace("_", " ").title()

    @staticmethod
    def quote(listing, land_size=1, days=1):
        if listing.kind == "tractor":
            total = listing.charge_per_acre * land_size
        else:
            total = listing.charge_per_day * days
        return whole_rupees(total)

    @staticmethod
    def claim_service(ref):
        """Flip an available listing to booked. Returns False if someone got there first."""
        model = ref.model
        claimed = model.query.filter_by(id=ref.id, availability=True, is_booked=False).update(
            {"availability": False, "is_booked": True}
        )
        return bool(claimed)

    @staticmethod
    def release_service(ref):
        if ref.id is None:
            return False
        released = ref.model.query.filter_by(id=ref.id, is_booked=True).update(
            {"availability": True, "is_booked": False}
        )
        return bool(released)

    @staticmethod
    def claim_first_available(refs):
        """Claim the first listing in ``refs`` that is still free, or return None."""
        for ref in refs:
            if BookingService.claim_service(ref):
                return ref
        return None

    @staticmethod
    def _release_service(booking):
        # A booking only carries a service_id for a listing it claimed itself.
        BookingService.release_service(booking.service_ref)

    @staticmethod
    def _settle_requirement(booking, status, now):
        updates = {"status": status}
        if status == "completed":
            updates["completed_at"] = now
        if booking.tractor_requirement_id:
            TractorRequirement.query.filter_by(id=booking.tractor_requirement_id, status="accepted").update(updates)
        if booking.worker_requirement_id:
            WorkerRequirement.query.filter_by(id=booking.worker_requirement_id, status="accepted").update(updates)

    @staticmethod
    def get(booking_id):
        booking = db.session.get(Booking, booking_id)
        if not booking:
            raise NotFound("Booking not found.")
        return booking

    @staticmethod
    def get_for_party(booking_id, actor):
        booking = BookingService.get(booking_id)
        if actor.role != "admin" and not booking.is_party(actor.id):
            raise Forbidden("You are not a party to this booking.")
        return booking

    @staticmethod
    def create_direct(farmer, ref, payload):
        listing = ref.resolve()
        if not listing:
            raise NotFound("Service not found.")
        if listing.provider_id == farmer.id:
            raise ValidationError("You cannot book your own service.")
        if not listing.is_available:
            raise InvalidState("This service is not available for booking.")

        booking_date = parse_datetime(payload.get("booking_date"), "Booking date")
        if ref.kind == "tractor":
            land_size = parse_decimal(payload.get("land_size") or 1, "Land size", minimum="0.1")
            days = parse_int(payload.get("duration"), "Duration", minimum=1, default=1)
        else:
            land_size = parse_decimal(payload.get("land_size") or 1, "Land size", minimum="0.1")
            days = duration_days(payload.get("duration") or 1)

        if not BookingService.claim_service(ref):
            db.session.rollback()
            raise InvalidState("This service is not available for booking.")

        booking = Booking(
            farmer_id=farmer.id,
            provider_id=listing.provider_id,
            booking_date=booking_date,
            duration=days,
            total_cost=BookingService.quote(listing, land_size=land_size, days=days),
            work_type=clean_str(payload.get("work_type"))
            or (listing.work_type if ref.kind == "tractor" else listing.worker_type),
            land_size=land_size,
            full_address=clean_str(payload.get("full_address")) or None,
            notes=clean_str(payload.get("notes")) or None,
            status="confirmed",
            payment_status="pending",
        )
        booking.service_ref = ref
        booking.apply_location(payload.get("location") or farmer.location_dict())
        db.session.add(booking)
        db.session.commit()

        NotificationService.emit(
            booking.provider_id,
            "booking_confirmed",
            "New booking",
            f"{farmer.full_name} booked your {ref.kind} service for {booking.booking_date:%d %b %Y}. "
            f"Total: Rs. {booking.total_cost}.",
            related_user_id=farmer.id,
            related_booking_id=booking.id,
            related_service_id=ref.id,
        )
        return booking

    @staticmethod
    def confirm(booking_id, actor):
        booking = BookingService.get(booking_id)
        if booking.provider_id != actor.id:
            raise Forbidden("Only the service provider can confirm this booking.")
        confirmed = Booking.query.filter_by(id=booking.id, status="pending").update({"status": "confirmed"})
        if not confirmed:
            db.session.rollback()
            raise InvalidState(f"Booking is already {BookingService._status_label(booking.status).lower()}.")
        db.session.commit()

        NotificationService.emit(
            booking.farmer_id,
            "booking_confirmed",
            "Booking confirmed",
            f"Your booking #{booking.id} was confirmed.",
            related_user_id=actor.id,
            related_booking_id=booking.id,
        )
        return booking

    @staticmethod
    def mark_complete(booking_id, actor):
        booking = BookingService.get(booking_id)
        if not booking.is_party(actor.id):
            raise Forbidden("Only the farmer or the provider can complete this booking.")
        if booking.status in {"completed", "cancelled"}:
            raise InvalidState(f"Booking is already {booking.status}.")
        if booking.status != "confirmed":
            raise InvalidState("Booking must be confirmed before it can be completed.")

        now = utcnow()
        completed = Booking.query.filter_by(id=booking.id, status="confirmed").update(
            {"status": "completed", "completed_at": now}
        )
        if not completed:
            db.session.rollback()
            raise InvalidState("Booking is already completed.")
        BookingService._release_service(booking)
        BookingService._settle_requirement(booking, "completed", now)
        db.session.commit()

        NotificationService.emit(
            booking.farmer_id,
            "work_completed",
            "Work completed",
            f"Booking #{booking.id} is complete. Rs. {booking.total_cost} is due to the provider.",
            related_user_id=booking.provider_id,
            related_booking_id=booking.id,
        )
        NotificationService.emit(
            booking.provider_id,
            "work_completed",
            "Work completed",
            f"Booking #{booking.id} was marked complete. Payment will follow.",
            related_user_id=booking.farmer_id,
            related_booking_id=booking.id,
        )
        return booking

    @staticmethod
    def cancel(booking_id, actor, reason=None):
        booking = BookingService.get(booking_id)
        if not booking.is_party(actor.id):
            raise Forbidden("Only the farmer or the provider can cancel this booking.")
        if booking.payment_status == "paid" or booking.status in {"completed", "cancelled"}:
            raise InvalidState("Completed or paid bookings cannot be cancelled.")

        now = utcnow()
        cancelled = Booking.query.filter_by(id=booking.id, status=booking.status, payment_status="pending").update(
            {"status": "cancelled", "cancelled_at": now}
        )
        if not cancelled:
            db.session.rollback()
            raise InvalidState("Completed or paid bookings cannot be cancelled.")
        BookingService._release_service(booking)
        BookingService._settle_requirement(booking, "cancelled", now)
        db.session.commit()

        reason = clean_str(reason)
        NotificationService.emit(
            booking.counterparty_of(actor.id),
            "booking_cancelled",
            "Booking cancelled",
            f"{actor.full_name} cancelled booking #{booking.id}." + (f" Reason: {reason}" if reason else ""),
            related_user_id=actor.id,
            related_booking_id=booking.id,
        )
        return booking

    @staticmethod
    def update_status(booking_id, actor, new_status, reason=None):
        booking = BookingService.get(booking_id)
        current = booking.status
        new_status = (new_status or "").strip().lower()
        if new_status not in BOOKING_TRANSITIONS.get(current, set()):
            raise InvalidState(f"Invalid status transition from {current} to {new_status or 'nothing'}.")

        if new_status == "confirmed":
            return BookingService.confirm(booking_id, actor)
        if new_status == "completed":
            return BookingService.mark_complete(booking_id, actor)
        return BookingService.cancel(booking_id, actor, reason=reason)

    @staticmethod
    def for_farmer(farmer_id, service_type=None):
        query = Booking.query.filter_by(farmer_id=farmer_id)
        if service_type:
            query = query.filter_by(service_type=ServiceRef(service_type).kind)
        return query.order_by(Booking.created_at.desc()).all()

    @staticmethod
    def for_provider(provider_id):
        return Booking.query.filter_by(provider_id=provider_id).order_by(Booking.created_at.desc()).all()

    @staticmethod
    def for_user(user, service_type=None, status=None):
        query = Booking.query.filter(or_(Booking.farmer_id == user.id, Booking.provider_id == user.id))
        if service_type:
            query = query.filter_by(service_type=ServiceRef(service_type).kind)
        if status:
            query = query.filter_by(status=status)
        return query.order_by(Booking.created_at.desc()).all()
