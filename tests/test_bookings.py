import pytest

from cropconnect.errors import Forbidden, InvalidState, NotFound
from cropconnect.extensions import cache, db
from cropconnect.models import Booking, Notification, ServiceRef, TractorRequirement
from cropconnect.services import BidService, BookingService, PaymentService, RequirementService


def test_direct_tractor_booking_cost(farmer, tractor_listing, future_date):
    booking = BookingService.create_direct(
        farmer,
        ServiceRef.tractor(tractor_listing.id),
        {"booking_date": future_date(), "land_size": "2.5"},
    )
    assert booking.total_cost == 2000
    assert booking.status == "confirmed"
    assert booking.payment_status == "pending"
    assert booking.service_ref == ServiceRef.tractor(tractor_listing.id)
    assert tractor_listing.is_available is False
    assert Notification.query.filter_by(recipient_id=tractor_listing.owner_id, type="booking_confirmed").count() == 1


def test_direct_worker_booking_rounds_to_whole_rupees(farmer, worker_listing, future_date):
    worker_listing.charge_per_day = "333.50"
    db.session.commit()
    booking = BookingService.create_direct(
        farmer,
        ServiceRef.worker(worker_listing.id),
        {"booking_date": future_date(), "duration": "3 days"},
    )
    assert booking.duration == 3
    assert booking.total_cost == 1001


def test_booking_unavailable_service(farmer, make_user, tractor_listing, future_date):
    BookingService.create_direct(farmer, ServiceRef.tractor(tractor_listing.id), {"booking_date": future_date()})
    other = make_user("farmer")
    with pytest.raises(InvalidState):
        BookingService.create_direct(other, ServiceRef.tractor(tractor_listing.id), {"booking_date": future_date()})


def test_booking_missing_service(farmer, future_date):
    with pytest.raises(NotFound):
        BookingService.create_direct(farmer, ServiceRef.worker(404), {"booking_date": future_date()})


def test_mark_complete_twice(farmer, tractor_listing, future_date):
    booking = BookingService.create_direct(
        farmer, ServiceRef.tractor(tractor_listing.id), {"booking_date": future_date()}
    )
    BookingService.mark_complete(booking.id, farmer)
    assert booking.status == "completed"
    assert booking.completed_at is not None
    assert tractor_listing.is_available is True

    tractor_listing.availability = False
    db.session.commit()
    with pytest.raises(InvalidState):
        BookingService.mark_complete(booking.id, farmer)
    assert db.session.get(Booking, booking.id).status == "completed"
    # The failed second call must not flip availability again.
    assert tractor_listing.availability is False


def test_only_parties_can_complete(confirmed_booking, make_user):
    stranger = make_user("tractor_owner")
    with pytest.raises(Forbidden):
        BookingService.mark_complete(confirmed_booking.id, stranger)


def test_completing_bid_booking_completes_requirement(confirmed_booking, owner):
    BookingService.mark_complete(confirmed_booking.id, owner)
    requirement = db.session.get(TractorRequirement, confirmed_booking.tractor_requirement_id)
    assert requirement.status == "completed"
    assert requirement.completed_at is not None


def test_cancel_releases_service(farmer, tractor_listing, future_date):
    booking = BookingService.create_direct(
        farmer, ServiceRef.tractor(tractor_listing.id), {"booking_date": future_date()}
    )
    BookingService.cancel(booking.id, farmer, reason="Rain expected")
    assert booking.status == "cancelled"
    assert tractor_listing.is_available is True
    note = Notification.query.filter_by(recipient_id=tractor_listing.owner_id, type="booking_cancelled").one()
    assert "Rain expected" in note.message


def test_completed_or_paid_bookings_cannot_be_cancelled(completed_booking, farmer):
    with pytest.raises(InvalidState):
        BookingService.cancel(completed_booking.id, farmer)
    PaymentService.record_cash(completed_booking.id, farmer)
    with pytest.raises(InvalidState):
        BookingService.cancel(completed_booking.id, farmer)


def test_status_transition_table(confirmed_booking, farmer):
    with pytest.raises(InvalidState):
        BookingService.update_status(confirmed_booking.id, farmer, "pending")
    booking = BookingService.update_status(confirmed_booking.id, farmer, "completed")
    assert booking.status == "completed"
    with pytest.raises(InvalidState):
        BookingService.update_status(confirmed_booking.id, farmer, "cancelled")


def test_booking_api(client, farmer, owner, tractor_listing, auth_headers, future_date):
    created = client.post(
        "/api/v1/bookings",
        json={
            "service_type": "tractor",
            "service_id": tractor_listing.id,
            "booking_date": future_date(),
            "land_size": 3,
        },
        headers=auth_headers(farmer),
    )
    assert created.status_code == 201
    booking = created.get_json()["booking"]
    assert booking["total_cost"] == 2400.0

    missing = client.post(
        "/api/v1/bookings",
        json={"service_type": "tractor", "service_id": 9999, "booking_date": future_date()},
        headers=auth_headers(farmer),
    )
    assert missing.status_code == 404

    mine = client.get("/api/v1/bookings/mine", headers=auth_headers(owner)).get_json()
    assert [row["id"] for row in mine["bookings"]] == [booking["id"]]

    done = client.post(f"/api/v1/bookings/{booking['id']}/complete", headers=auth_headers(owner))
    assert done.status_code == 200
    assert done.get_json()["booking"]["status"] == "completed"

    again = client.post(f"/api/v1/bookings/{booking['id']}/complete", headers=auth_headers(owner))
    assert again.status_code == 400


def test_unauthenticated_requests_get_json_401(client):
    response = client.get("/api/v1/bookings/mine")
    assert response.status_code == 401
    assert response.get_json() == {"success": False, "message": "Unauthorized"}


def test_booking_changes_clear_cached_listings(
    client, monkeypatch, farmer, owner, tractor_listing, auth_headers, tractor_payload, future_date
):
    cleared = []
    monkeypatch.setattr(cache, "clear", lambda: cleared.append(True))

    requirement, _ = RequirementService.post("tractor", farmer, tractor_payload())
    bid = BidService.place(requirement.id, owner, {"proposed_amount": 1500})
    accepted = client.post(f"/api/v1/bids/{bid.id}/accept", headers=auth_headers(farmer))
    assert accepted.status_code == 200
    assert len(cleared) == 1

    booking_id = accepted.get_json()["booking"]["id"]
    cancelled = client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers(owner))
    assert cancelled.status_code == 200
    assert len(cleared) == 2

    direct = BookingService.create_direct(
        farmer, ServiceRef.tractor(tractor_listing.id), {"booking_date": future_date()}
    )
    done = client.post(f"/api/v1/bookings/{direct.id}/complete", headers=auth_headers(farmer))
    assert done.status_code == 200
    assert len(cleared) == 3
