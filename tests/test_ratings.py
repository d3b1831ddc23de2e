import pytest

from cropconnect.errors import Forbidden, InvalidState, ValidationError
from cropconnect.models import Notification, Rating, ServiceRef
from cropconnect.services import BookingService, RatingService


@pytest.fixture
def finished_listing_booking(farmer, tractor_listing, future_date):
    booking = BookingService.create_direct(
        farmer, ServiceRef.tractor(tractor_listing.id), {"booking_date": future_date(), "land_size": 2}
    )
    return BookingService.mark_complete(booking.id, farmer)


def test_rating_requires_completed_booking(confirmed_booking, farmer):
    with pytest.raises(InvalidState):
        RatingService.submit(farmer, confirmed_booking.id, 5)


def test_only_parties_rate(completed_booking, make_user):
    with pytest.raises(Forbidden):
        RatingService.submit(make_user("farmer"), completed_booking.id, 4)


def test_score_range(completed_booking, farmer):
    with pytest.raises(ValidationError):
        RatingService.submit(farmer, completed_booking.id, 6)
    with pytest.raises(ValidationError):
        RatingService.submit(farmer, completed_booking.id, "great")


def test_rating_refreshes_listing_aggregate(finished_listing_booking, farmer, owner, tractor_listing):
    rating = RatingService.submit(farmer, finished_listing_booking.id, 4, review="On time, neat furrows.")
    assert rating.rating_type == "farmer_to_tractor_owner"
    assert rating.ratee_id == owner.id
    assert tractor_listing.rating_count == 1
    assert float(tractor_listing.rating_avg) == 4.0
    assert Notification.query.filter_by(recipient_id=owner.id, type="rating_received").count() == 1

    edited = RatingService.submit(farmer, finished_listing_booking.id, 2)
    assert edited.id == rating.id
    assert edited.is_edited is True
    assert edited.review is None
    assert Rating.query.count() == 1
    assert tractor_listing.rating_count == 1
    assert float(tractor_listing.rating_avg) == 2.0


def test_provider_rates_farmer(finished_listing_booking, farmer, owner, tractor_listing):
    rating = RatingService.submit(owner, finished_listing_booking.id, 5)
    assert rating.rating_type == "tractor_owner_to_farmer"
    assert rating.ratee_id == farmer.id
    assert tractor_listing.rating_count == 0

    ratings, summary = RatingService.for_user(farmer.id)
    assert ratings == [rating]
    assert summary == {"average": 5.0, "count": 1}


def test_rating_api(client, completed_booking, farmer, owner, auth_headers):
    created = client.post(
        "/api/v1/ratings",
        json={"booking_id": completed_booking.id, "rating": 5, "review": "Good work"},
        headers=auth_headers(farmer),
    )
    assert created.status_code == 201
    assert created.get_json()["rating"]["rating_type"] == "farmer_to_tractor_owner"

    invalid = client.post(
        "/api/v1/ratings", json={"booking_id": "abc", "rating": 5}, headers=auth_headers(farmer)
    )
    assert invalid.status_code == 400

    summary = client.get(f"/api/v1/ratings/user/{owner.id}").get_json()
    assert summary["count"] == 1
    assert summary["average"] == 5.0
