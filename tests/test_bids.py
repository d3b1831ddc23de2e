import pytest
from sqlalchemy import update

from cropconnect.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from cropconnect.extensions import db
from cropconnect.models import Bid, Booking, Notification, ServiceRef, TractorListing, TractorRequirement
from cropconnect.services import BidService, BookingService, RequirementService


def _types_for(user_id, notification_type):
    return Notification.query.filter_by(recipient_id=user_id, type=notification_type).count()


def test_nashik_plowing_scenario(farmer, make_user, tractor_payload):
    first = make_user("tractor_owner")
    second = make_user("tractor_owner")
    requirement, notified = RequirementService.post("tractor", farmer, tractor_payload())
    assert notified == 2

    bid_low = BidService.place(requirement.id, first, {"proposed_amount": 4000})
    bid_high = BidService.place(requirement.id, second, {"proposed_amount": 4500})

    accepted, booking = BidService.accept(bid_low.id, farmer)

    assert accepted.status == "accepted"
    assert db.session.get(Bid, bid_high.id).status == "rejected"
    assert db.session.get(TractorRequirement, requirement.id).status == "accepted"
    assert Booking.query.count() == 1
    assert booking.total_cost == 4000
    assert booking.status == "confirmed"
    assert booking.payment_status == "pending"
    assert booking.provider_id == first.id
    assert booking.bid_id == bid_low.id
    assert _types_for(first.id, "bid_accepted") == 1
    assert _types_for(second.id, "bid_rejected") == 1
    assert _types_for(farmer.id, "bid_placed") == 2


def test_bid_defaults_to_requirement_terms(farmer, owner, tractor_payload):
    requirement, _ = RequirementService.post("tractor", farmer, tractor_payload(duration="2 days"))
    bid = BidService.place(requirement.id, owner, {"proposed_amount": "3800.50"})
    assert bid.proposed_duration == "2 days"
    assert bid.proposed_date == requirement.expected_date


def test_duplicate_bid_is_rejected(farmer, owner, tractor_payload):
    requirement, _ = RequirementService.post("tractor", farmer, tractor_payload())
    BidService.place(requirement.id, owner, {"proposed_amount": 4000})
    with pytest.raises(Conflict):
        BidService.place(requirement.id, owner, {"proposed_amount": 3500})
    assert Bid.query.count() == 1


def test_missing_requirement(owner):
    with pytest.raises(NotFound):
        BidService.place(999, owner, {"proposed_amount": 100})


def test_no_bids_after_acceptance(farmer, owner, make_user, tractor_payload):
    late = make_user("tractor_owner")
    requirement, _ = RequirementService.post("tractor", farmer, tractor_payload())
    bid = BidService.place(requirement.id, owner, {"proposed_amount": 4000})
    BidService.accept(bid.id, farmer)

    with pytest.raises(InvalidState):
        BidService.place(requirement.id, late, {"proposed_amount": 3000})


def test_only_requirement_owner_can_accept(farmer, owner, make_user, tractor_payload):
    stranger = make_user("farmer")
    requirement, _ = RequirementService.post("tractor", farmer, tractor_payload())
    bid = BidService.place(requirement.id, owner, {"proposed_amount": 4000})
    with pytest.raises(Forbidden):
        BidService.accept(bid.id, stranger)


def test_second_accept_loses(farmer, make_user, tractor_payload):
    first = make_user("tractor_owner")
    second = make_user("tractor_owner")
    requirement, _ = RequirementService.post("tractor", farmer, tractor_payload())
    bid_a = BidService.place(requirement.id, first, {"proposed_amount": 4000})
    bid_b = BidService.place(requirement.id, second, {"proposed_amount": 4200})

    BidService.accept(bid_a.id, farmer)
    with pytest.raises(InvalidState):
        BidService.accept(bid_b.id, farmer)
    assert Booking.query.count() == 1


def test_concurrent_accept_is_decided_by_requirement_update(farmer, make_user, tractor_payload):
    first = make_user("tractor_owner")
    second = make_user("tractor_owner")
    requirement, _ = RequirementService.post("tractor", farmer, tractor_payload())
    BidService.place(requirement.id, first, {"proposed_amount": 4000})
    bid_b = BidService.place(requirement.id, second, {"proposed_amount": 4200})

    # Load both rows, then let another writer claim the requirement behind the session's back.
    assert requirement.status == "open"
    assert bid_b.status == "pending"
    db.session.execute(
        update(TractorRequirement)
        .where(TractorRequirement.id == requirement.id)
        .values(status="accepted")
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(InvalidState):
        BidService.accept(bid_b.id, farmer)
    assert Booking.query.count() == 0
    assert db.session.get(Bid, bid_b.id).status == "pending"


def test_reject_and_withdraw(farmer, make_user, tractor_payload):
    first = make_user("tractor_owner")
    second = make_user("tractor_owner")
    requirement, _ = RequirementService.post("tractor", farmer, tractor_payload())
    bid_a = BidService.place(requirement.id, first, {"proposed_amount": 4000})
    bid_b = BidService.place(requirement.id, second, {"proposed_amount": 4200})

    assert BidService.reject(bid_a.id, farmer).status == "rejected"
    with pytest.raises(InvalidState):
        BidService.reject(bid_a.id, farmer)

    with pytest.raises(Forbidden):
        BidService.withdraw(bid_b.id, first)
    assert BidService.withdraw(bid_b.id, second).status == "cancelled"
    assert _types_for(farmer.id, "bid_withdrawn") == 1
    assert db.session.get(TractorRequirement, requirement.id).status == "open"


def test_accept_marks_bidder_tractor_booked(farmer, owner, tractor_listing, tractor_payload):
    requirement, _ = RequirementService.post("tractor", farmer, tractor_payload())
    bid = BidService.place(requirement.id, owner, {"proposed_amount": 4000})
    _, booking = BidService.accept(bid.id, farmer)

    assert booking.service_type == "tractor"
    assert booking.service_id == tractor_listing.id
    assert tractor_listing.is_available is False


def test_bid_booking_does_not_take_a_listing_held_elsewhere(
    farmer, owner, make_user, tractor_listing, tractor_payload, future_date
):
    direct = BookingService.create_direct(
        farmer, ServiceRef.tractor(tractor_listing.id), {"booking_date": future_date()}
    )
    other_farmer = make_user("farmer")
    requirement, _ = RequirementService.post("tractor", other_farmer, tractor_payload())
    bid = BidService.place(requirement.id, owner, {"proposed_amount": 3000})
    _, bid_booking = BidService.accept(bid.id, other_farmer)

    assert bid_booking.service_id is None

    BookingService.cancel(bid_booking.id, other_farmer)
    listing = db.session.get(TractorListing, tractor_listing.id)
    assert listing.is_booked is True
    assert listing.is_available is False
    assert db.session.get(Booking, direct.id).status == "confirmed"

    with pytest.raises(InvalidState):
        BookingService.create_direct(
            make_user("farmer"), ServiceRef.tractor(tractor_listing.id), {"booking_date": future_date()}
        )
    assert Booking.query.filter_by(service_id=tractor_listing.id, status="confirmed").count() == 1


def test_bid_booking_claims_next_free_listing(
    farmer, owner, make_user, tractor_listing, tractor_payload, future_date
):
    spare = TractorListing(
        owner_id=owner.id,
        vehicle_number="MH15ZZ0001",
        brand="Sonalika",
        model="DI 745",
        work_type="Plowing",
        land_type="Dry",
        charge_per_acre=750,
        contact_number=owner.phone,
        district="Nashik",
        state="Maharashtra",
    )
    db.session.add(spare)
    db.session.commit()
    BookingService.create_direct(
        make_user("farmer"), ServiceRef.tractor(tractor_listing.id), {"booking_date": future_date()}
    )

    requirement, _ = RequirementService.post("tractor", farmer, tractor_payload())
    bid = BidService.place(requirement.id, owner, {"proposed_amount": 3000})
    _, booking = BidService.accept(bid.id, farmer)

    assert booking.service_id == spare.id
    BookingService.mark_complete(booking.id, farmer)
    assert db.session.get(TractorListing, spare.id).is_available is True
    assert db.session.get(TractorListing, tractor_listing.id).is_available is False


def test_bid_message_over_limit_is_rejected(farmer, owner, tractor_payload):
    requirement, _ = RequirementService.post("tractor", farmer, tractor_payload())
    with pytest.raises(ValidationError):
        BidService.place(requirement.id, owner, {"proposed_amount": 3000, "message": "x" * 501})
    assert Bid.query.count() == 0


def test_bid_api_flow(client, farmer, owner, auth_headers, tractor_payload):
    requirement, _ = RequirementService.post("tractor", farmer, tractor_payload())

    created = client.post(
        "/api/v1/bids",
        json={"requirement_id": requirement.id, "proposed_amount": 4000, "message": "Can start at 7am"},
        headers=auth_headers(owner),
    )
    assert created.status_code == 201
    bid_id = created.get_json()["bid"]["id"]

    duplicate = client.post(
        "/api/v1/bids",
        json={"requirement_id": requirement.id, "proposed_amount": 3900},
        headers=auth_headers(owner),
    )
    assert duplicate.status_code == 400
    assert duplicate.get_json()["success"] is False

    forbidden = client.post(f"/api/v1/bids/{bid_id}/accept", headers=auth_headers(owner))
    assert forbidden.status_code == 403

    accepted = client.post(f"/api/v1/bids/{bid_id}/accept", headers=auth_headers(farmer))
    body = accepted.get_json()
    assert accepted.status_code == 200
    assert body["bid"]["status"] == "accepted"
    assert body["booking"]["total_cost"] == 4000.0

    again = client.post(f"/api/v1/bids/{bid_id}/accept", headers=auth_headers(farmer))
    assert again.status_code == 400

    listing = client.get("/api/v1/bids/farmer", headers=auth_headers(farmer)).get_json()
    assert [row["status"] for row in listing["bids"]] == ["accepted"]
