from sqlalchemy.exc import IntegrityError

from cropconnect.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from cropconnect.extensions import db
from cropconnect.models import Bid, Booking, ServiceRef, TractorListing, TractorRequirement
from cropconnect.models.base import utcnow
from cropconnect.services.booking_service import BookingService
from cropconnect.services.notification_service import NotificationService
from cropconnect.services.parsing import clean_str, duration_days, parse_datetime, parse_decimal


class BidService:
    @staticmethod
    def get(bid_id):
        bid = db.session.get(Bid, bid_id)
        if not bid:
            raise NotFound("Bid not found.")
        return bid

    @staticmethod
    def place(requirement_id, bidder, payload):
        requirement = db.session.get(TractorRequirement, requirement_id)
        if not requirement:
            raise NotFound("Requirement not found.")
        if requirement.farmer_id == bidder.id:
            raise Forbidden("You cannot bid on your own requirement.")
        if requirement.status != "open":
            raise InvalidState("This requirement is no longer accepting bids.")
        if Bid.query.filter_by(requirement_id=requirement.id, bidder_id=bidder.id).first():
            raise Conflict("You have already placed a bid on this requirement.")

        message = clean_str(payload.get("message")) or None
        if message and len(message) > 500:
            raise ValidationError("Message must be at most 500 characters.")
        bid = Bid(
            requirement_id=requirement.id,
            bidder_id=bidder.id,
            proposed_amount=parse_decimal(payload.get("proposed_amount"), "Proposed amount", minimum=0),
            proposed_duration=clean_str(payload.get("proposed_duration")) or requirement.duration,
            proposed_date=parse_datetime(payload.get("proposed_date"), "Proposed date", required=False)
            or requirement.expected_date,
            message=message,
            status="pending",
        )
        try:
            db.session.add(bid)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise Conflict("You have already placed a bid on this requirement.") from exc

        NotificationService.emit(
            requirement.farmer_id,
            "bid_placed",
            "New bid received",
            f"{bidder.full_name} bid Rs. {bid.proposed_amount} on your {requirement.work_type} requirement.",
            related_user_id=bidder.id,
            related_requirement_id=requirement.id,
            data={"bid_id": bid.id},
        )
        return bid

    @staticmethod
    def _pending_bid_for_farmer(bid_id, actor):
        bid = BidService.get(bid_id)
        requirement = bid.requirement
        if requirement.farmer_id != actor.id:
            raise Forbidden("Only the farmer who posted this requirement can act on its bids.")
        if bid.status != "pending":
            raise InvalidState(f"Bid has already been {bid.status}.")
        return bid, requirement

    @staticmethod
    def accept(bid_id, actor):
        bid, requirement = BidService._pending_bid_for_farmer(bid_id, actor)
        if requirement.status != "open":
            raise InvalidState("This requirement is no longer open.")

        now = utcnow()
        claimed = TractorRequirement.query.filter_by(id=requirement.id, status="open").update(
            {"status": "accepted", "accepted_by_id": bid.bidder_id, "accepted_at": now}
        )
        if not claimed:
            db.session.rollback()
            raise InvalidState("This requirement has already been accepted.")
        won = Bid.query.filter_by(id=bid.id, status="pending").update({"status": "accepted"})
        if not won:
            db.session.rollback()
            raise InvalidState("Bid has already been processed.")

        losers = [
            bidder_id
            for (bidder_id,) in db.session.query(Bid.bidder_id)
            .filter(Bid.requirement_id == requirement.id, Bid.status == "pending")
            .all()
        ]
        Bid.query.filter_by(requirement_id=requirement.id, status="pending").update({"status": "rejected"})

        free_listings = (
            TractorListing.query.filter_by(owner_id=bid.bidder_id, availability=True, is_booked=False)
            .order_by(TractorListing.created_at.asc(), TractorListing.id.asc())
            .all()
        )
        claimed_ref = BookingService.claim_first_available(ServiceRef.tractor(row.id) for row in free_listings)

        booking = Booking(
            farmer_id=requirement.farmer_id,
            provider_id=bid.bidder_id,
            service_type="tractor",
            service_id=claimed_ref.id if claimed_ref else None,
            bid_id=bid.id,
            tractor_requirement_id=requirement.id,
            booking_date=bid.proposed_date,
            duration=duration_days(bid.proposed_duration),
            total_cost=bid.proposed_amount,
            work_type=requirement.work_type,
            land_size=requirement.land_size,
            notes=bid.message,
            status="confirmed",
            payment_status="pending",
        )
        booking.apply_location(requirement.location_dict())
        db.session.add(booking)
        db.session.commit()

        NotificationService.emit(
            bid.bidder_id,
            "bid_accepted",
            "Bid accepted",
            f"Your bid of Rs. {bid.proposed_amount} for {requirement.work_type} in {requirement.district} "
            f"was accepted.",
            related_user_id=actor.id,
            related_requirement_id=requirement.id,
            related_booking_id=booking.id,
        )
        NotificationService.emit_many(
            losers,
            "bid_rejected",
            "Bid not selected",
            f"The farmer chose another bid for the {requirement.work_type} requirement in {requirement.district}.",
            related_user_id=actor.id,
            related_requirement_id=requirement.id,
        )
        return bid, booking

    @staticmethod
    def reject(bid_id, actor):
        bid, requirement = BidService._pending_bid_for_farmer(bid_id, actor)
        rejected = Bid.query.filter_by(id=bid.id, status="pending").update({"status": "rejected"})
        if not rejected:
            db.session.rollback()
            raise InvalidState("Bid has already been processed.")
        db.session.commit()

        NotificationService.emit(
            bid.bidder_id,
            "bid_rejected",
            "Bid rejected",
            f"Your bid for the {requirement.work_type} requirement in {requirement.district} was rejected.",
            related_user_id=actor.id,
            related_requirement_id=requirement.id,
        )
        return bid

    @staticmethod
    def withdraw(bid_id, actor):
        bid = BidService.get(bid_id)
        if bid.bidder_id != actor.id:
            raise Forbidden("You can only withdraw your own bids.")
        withdrawn = Bid.query.filter_by(id=bid.id, status="pending").update({"status": "cancelled"})
        if not withdrawn:
            db.session.rollback()
            raise InvalidState(f"Bid has already been {bid.status}.")
        db.session.commit()

        requirement = bid.requirement
        NotificationService.emit(
            requirement.farmer_id,
            "bid_withdrawn",
            "Bid withdrawn",
            f"{actor.full_name} withdrew their bid on your {requirement.work_type} requirement.",
            related_user_id=actor.id,
            related_requirement_id=requirement.id,
        )
        return bid

    @staticmethod
    def for_farmer(farmer_id, status=None):
        query = Bid.query.join(TractorRequirement, TractorRequirement.id == Bid.requirement_id).filter(
            TractorRequirement.farmer_id == farmer_id
        )
        if status:
            query = query.filter(Bid.status == status)
        return query.order_by(Bid.created_at.desc()).all()

    @staticmethod
    def for_bidder(bidder_id, status=None):
        query = Bid.query.filter_by(bidder_id=bidder_id)
        if status:
            query = query.filter_by(status=status)
        return query.order_by(Bid.created_at.desc()).all()

    @staticmethod
    def for_requirement(requirement_id, actor):
        requirement = db.session.get(TractorRequirement, requirement_id)
        if not requirement:
            raise NotFound("Requirement not found.")
        if requirement.farmer_id != actor.id and actor.role != "admin":
            raise Forbidden("Only the farmer who posted this requirement can see its bids.")
        return requirement.bids.order_by(Bid.proposed_amount.asc()).all()
