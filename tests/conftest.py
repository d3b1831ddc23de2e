import itertools
from datetime import datetime, timedelta, timezone

import pytest
from flask import g
from flask.testing import FlaskClient

from cropconnect import create_app
from cropconnect.extensions import bcrypt, db
from cropconnect.models import TractorListing, User, WorkerListing
from cropconnect.services import AuthService, BidService, BookingService, RequirementService

_counter = itertools.count(1)


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    app.test_client_class = ApiClient
    return app.test_client()


class ApiClient(FlaskClient):
    """Test client that forgets the logged-in user between requests.

    Requests reuse the fixture's app context, so ``g`` (where Flask-Login
    caches the current user) would otherwise leak from one request to the next.
    """

    def open(self, *args, **kwargs):
        g.pop("_login_user", None)
        return super().open(*args, **kwargs)


@pytest.fixture
def make_user(app):
    def factory(role="farmer", district="Nashik", state="Maharashtra", gender=None, **overrides):
        n = next(_counter)
        user = User(
            full_name=overrides.pop("full_name", f"{role.title()} {n}"),
            email=overrides.pop("email", f"{role}{n}@example.com"),
            phone=overrides.pop("phone", f"98{n:08d}"[:10]),
            password_hash=bcrypt.generate_password_hash(overrides.pop("password", "secret123")).decode("utf-8"),
            role=role,
            gender=gender,
            district=district,
            state=state,
            **overrides,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return factory


@pytest.fixture
def auth_headers(app):
    def factory(user):
        return {"Authorization": f"Bearer {AuthService.issue_token(user)}"}

    return factory


@pytest.fixture
def farmer(make_user):
    return make_user("farmer", full_name="Ramesh Patil")


@pytest.fixture
def owner(make_user):
    return make_user("tractor_owner", full_name="Suresh Jadhav")


@pytest.fixture
def worker(make_user):
    return make_user("worker", gender="female", full_name="Lakshmi Pawar")


@pytest.fixture
def tractor_listing(owner):
    listing = TractorListing(
        owner_id=owner.id,
        vehicle_number=f"MH15AB{next(_counter):04d}",
        brand="Mahindra",
        model="575 DI",
        work_type="Plowing",
        land_type="Dry",
        charge_per_acre=800,
        contact_number=owner.phone,
        district="Nashik",
        state="Maharashtra",
    )
    db.session.add(listing)
    db.session.commit()
    return listing


@pytest.fixture
def worker_listing(worker):
    listing = WorkerListing(
        worker_id=worker.id,
        worker_type="Harvester",
        experience_years=4,
        charge_per_day=600,
        working_hours=8,
        contact_number=worker.phone,
        district="Nashik",
        state="Maharashtra",
    )
    db.session.add(listing)
    db.session.commit()
    return listing


def future(days=3):
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def tractor_requirement_payload(**overrides):
    payload = {
        "work_type": "Plowing",
        "land_type": "Dry",
        "land_size": 5,
        "expected_date": future(),
        "duration": "1 day",
        "max_budget": 5000,
        "urgency": "normal",
        "location": {"village": "Sinnar", "district": "Nashik", "state": "Maharashtra", "pincode": "422103"},
    }
    payload.update(overrides)
    return payload


def worker_requirement_payload(**overrides):
    payload = {
        "work_type": "Harvester",
        "preferred_gender": "any",
        "wages_offered": 500,
        "work_duration": "3 days",
        "start_date": future(),
        "location": {"village": "Sinnar", "district": "Nashik", "state": "Maharashtra"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def confirmed_booking(farmer, owner):
    """A tractor booking created by accepting a single bid."""
    requirement, _ = RequirementService.post("tractor", farmer, tractor_requirement_payload())
    bid = BidService.place(requirement.id, owner, {"proposed_amount": 1200})
    _, booking = BidService.accept(bid.id, farmer)
    return booking


@pytest.fixture
def completed_booking(confirmed_booking, farmer):
    return BookingService.mark_complete(confirmed_booking.id, farmer)


@pytest.fixture(name="tractor_payload")
def tractor_payload_fixture():
    return tractor_requirement_payload


@pytest.fixture(name="worker_payload")
def worker_payload_fixture():
    return worker_requirement_payload


@pytest.fixture(name="future_date")
def future_date_fixture():
    return future
