from datetime import datetime, timedelta, timezone
import hashlib
import re

import jwt
import pytest

from cropconnect.errors import AppError, Conflict, NotFound, ValidationError
from cropconnect.extensions import db, mail
from cropconnect.models import Notification, User
from cropconnect.services import AuthService


def registration(**overrides):
    payload = {
        "full_name": "Anita Shinde",
        "email": "Anita@Example.com",
        "password": "kharif2024",
        "role": "worker",
        "phone": "98765 43210",
        "gender": "Female",
        "location": {"village": "Ozar", "district": "Nashik", "state": "Maharashtra"},
    }
    payload.update(overrides)
    return payload


def test_register_normalizes_and_welcomes(app):
    user = AuthService.register_user(**registration())
    assert user.email == "anita@example.com"
    assert user.phone == "9876543210"
    assert user.gender == "female"
    assert user.district == "Nashik"
    assert user.password_hash != "kharif2024"
    assert Notification.query.filter_by(recipient_id=user.id, type="registration").count() == 1


def test_register_rejects_bad_input(app):
    with pytest.raises(ValidationError):
        AuthService.register_user(**registration(role="admin"))
    with pytest.raises(ValidationError):
        AuthService.register_user(**registration(password="123"))
    with pytest.raises(ValidationError):
        AuthService.register_user(**registration(phone="12345"))
    assert User.query.count() == 0


def test_duplicate_email_conflicts(app):
    AuthService.register_user(**registration())
    with pytest.raises(Conflict) as excinfo:
        AuthService.register_user(**registration(email="anita@example.com", phone="9123456780"))
    assert excinfo.value.status_code == 409


def test_authenticate(app):
    AuthService.register_user(**registration())
    user = AuthService.authenticate_user(" ANITA@example.com ", "kharif2024")
    assert user.last_login is not None
    with pytest.raises(AppError) as excinfo:
        AuthService.authenticate_user("anita@example.com", "wrong-password")
    assert excinfo.value.status_code == 401


def test_token_round_trip(app, farmer):
    token = AuthService.issue_token(farmer)
    assert jwt.decode(token, app.config["JWT_SECRET_KEY"], algorithms=["HS256"])["sub"] == str(farmer.id)
    assert AuthService.load_user_from_token(token) == farmer
    assert AuthService.load_user_from_token(token + "x") is None
    forged = jwt.encode({"sub": str(farmer.id)}, "some-other-secret", algorithm="HS256")
    assert AuthService.load_user_from_token(forged) is None


def test_register_and_login_api(client):
    created = client.post("/api/v1/auth/register", json=registration())
    assert created.status_code == 201
    body = created.get_json()
    assert body["user"]["role"] == "worker"
    assert body["token"]

    duplicate = client.post("/api/v1/auth/register", json=registration())
    assert duplicate.status_code == 409
    assert duplicate.get_json()["success"] is False

    logged_in = client.post("/api/v1/auth/login", json={"email": "anita@example.com", "password": "kharif2024"})
    assert logged_in.status_code == 200
    token = logged_in.get_json()["token"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.get_json()["user"]["email"] == "anita@example.com"

    wrong = client.post("/api/v1/auth/login", json={"email": "anita@example.com", "password": "nope"})
    assert wrong.status_code == 401


def test_bad_bearer_token_is_unauthorized(client):
    response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.get_json()["success"] is False


def _reset_token(message):
    return re.search(r"/reset-password/([0-9a-f]{64})", message.body).group(1)


def test_update_profile(app, farmer, make_user):
    other = make_user("buyer", email="taken@example.com")
    user = AuthService.update_profile(
        farmer,
        {
            "full_name": "Ramesh B. Patil",
            "phone": "91234 56789",
            "location": {"district": "Pune"},
            "password": "rabi2025",
        },
    )
    assert user.full_name == "Ramesh B. Patil"
    assert user.phone == "9123456789"
    assert user.district == "Pune"
    assert user.state == "Maharashtra"
    assert AuthService.authenticate_user(farmer.email, "rabi2025") == farmer

    with pytest.raises(Conflict) as excinfo:
        AuthService.update_profile(farmer, {"email": other.email.upper()})
    assert excinfo.value.status_code == 409
    with pytest.raises(ValidationError):
        AuthService.update_profile(farmer, {"password": "short"})


def test_forgot_and_reset_password(app, farmer):
    with mail.record_messages() as outbox:
        AuthService.forgot_password(farmer.email.upper())
    assert len(outbox) == 1
    assert outbox[0].recipients == [farmer.email]
    token = _reset_token(outbox[0])
    assert farmer.reset_token_hash == hashlib.sha256(token.encode()).hexdigest()
    assert token not in farmer.reset_token_hash

    with pytest.raises(ValidationError):
        AuthService.reset_password(token, "123")
    AuthService.reset_password(token, "new-secret")
    assert farmer.reset_token_hash is None
    assert AuthService.authenticate_user(farmer.email, "new-secret") == farmer
    assert Notification.query.filter_by(recipient_id=farmer.id, type="password_changed").count() == 1

    with pytest.raises(ValidationError):
        AuthService.reset_password(token, "another-secret")


def test_forgot_password_unknown_email(app):
    with pytest.raises(NotFound):
        AuthService.forgot_password("nobody@example.com")
    with pytest.raises(ValidationError):
        AuthService.forgot_password("  ")


def test_expired_reset_token(app, farmer):
    with mail.record_messages() as outbox:
        AuthService.forgot_password(farmer.email)
    farmer.reset_token_expires = datetime.now(timezone.utc) - timedelta(minutes=1)
    db.session.commit()
    with pytest.raises(ValidationError):
        AuthService.reset_password(_reset_token(outbox[0]), "new-secret")


def test_password_reset_api(client, farmer, auth_headers):
    with mail.record_messages() as outbox:
        sent = client.post("/api/v1/auth/forgot-password", json={"email": farmer.email})
    assert sent.status_code == 200
    assert client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"}).status_code == 404

    token = _reset_token(outbox[0])
    bad = client.post("/api/v1/auth/reset-password/not-a-token", json={"password": "new-secret"})
    assert bad.status_code == 400
    reset = client.post(f"/api/v1/auth/reset-password/{token}", json={"password": "new-secret"})
    assert reset.status_code == 200

    login = client.post("/api/v1/auth/login", json={"email": farmer.email, "password": "new-secret"})
    assert login.status_code == 200

    updated = client.put("/api/v1/auth/profile", json={"full_name": "R. Patil"}, headers=auth_headers(farmer))
    assert updated.status_code == 200
    assert updated.get_json()["user"]["full_name"] == "R. Patil"
