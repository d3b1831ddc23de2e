from datetime import datetime, timedelta, timezone
import hashlib
import secrets

import jwt
from flask import current_app
from flask_mail import Message
from sqlalchemy.exc import IntegrityError

from cropconnect.errors import AppError, Conflict, NotFound, ValidationError
from cropconnect.extensions import bcrypt, db, mail
from cropconnect.models import User
from cropconnect.models.user import GENDERS
from cropconnect.services.notification_service import NotificationService
from cropconnect.services.parsing import clean_str, normalize_phone

SELF_SERVICE_ROLES = ("farmer", "buyer", "tractor_owner", "worker")


class AuthService:
    @staticmethod
    def register_user(full_name, email, password, role, phone, gender=None, location=None):
        role = clean_str(role)
        if role not in SELF_SERVICE_ROLES:
            raise ValidationError("Invalid role.")

        normalized_email = (email or "").strip().lower()
        full_name = clean_str(full_name)
        if not full_name or not normalized_email or not password:
            raise ValidationError("Name, email, phone, and password are required.")
        if len(password) < 6:
            raise ValidationError("Password must be at least 6 characters.")
        normalized_phone = normalize_phone(phone)

        gender = (clean_str(gender) or "").lower() or None
        if gender is not None and gender not in GENDERS:
            raise ValidationError("Gender must be male, female or other.")

        if User.query.filter_by(email=normalized_email).first():
            raise Conflict("Email already registered.", 409)

        user = User(
            full_name=full_name,
            email=normalized_email,
            phone=normalized_phone,
            role=role,
            gender=gender,
            password_hash=bcrypt.generate_password_hash(password).decode("utf-8"),
        )
        user.apply_location(location)
        try:
            db.session.add(user)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise Conflict("Email already registered.", 409) from exc

        NotificationService.emit(
            user.id,
            "registration",
            "Welcome to Crop Connect",
            f"Hello {user.full_name}, your {role.replace('_', ' ')} account is ready.",
        )
        return user

    @staticmethod
    def authenticate_user(email, password):
        user = User.query.filter_by(email=(email or "").strip().lower()).first()
        if not user:
            raise AppError("Invalid credentials.", 401)

        try:
            is_valid = bcrypt.check_password_hash(user.password_hash, password or "")
        except ValueError:
            is_valid = False

        if not is_valid:
            raise AppError("Invalid credentials.", 401)
        if not user.is_active_user:
            raise AppError("User account is inactive.", 403)
        user.last_login = datetime.now(timezone.utc)
        db.session.commit()
        return user

    @staticmethod
    def issue_token(user):
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "role": user.role,
            "iat": now,
            "exp": now + timedelta(hours=current_app.config["JWT_EXPIRES_HOURS"]),
        }
        return jwt.encode(payload, current_app.config["JWT_SECRET_KEY"], algorithm="HS256")

    @staticmethod
    def load_user_from_token(token):
        try:
            payload = jwt.decode(token, current_app.config["JWT_SECRET_KEY"], algorithms=["HS256"])
            user_id = int(payload["sub"])
        except (jwt.InvalidTokenError, KeyError, ValueError) as exc:
            current_app.logger.info("Rejected bearer token: %s", exc)
            return None
        user = db.session.get(User, user_id)
        if not user or not user.is_active_user:
            return None
        return user

    @staticmethod
    def update_profile(user, payload):
        if "full_name" in payload:
            full_name = clean_str(payload.get("full_name"))
            if not full_name:
                raise ValidationError("Name cannot be empty.")
            user.full_name = full_name
        if payload.get("email"):
            email = payload["email"].strip().lower()
            if email != user.email and User.query.filter(User.email == email, User.id != user.id).first():
                raise Conflict("Email already registered.", 409)
            user.email = email
        if payload.get("phone"):
            user.phone = normalize_phone(payload["phone"])
        if "gender" in payload:
            gender = (clean_str(payload.get("gender")) or "").lower() or None
            if gender is not None and gender not in GENDERS:
                raise ValidationError("Gender must be male, female or other.")
            user.gender = gender
        if payload.get("location"):
            user.apply_location(dict(user.location_dict(), **payload["location"]))
        if payload.get("password"):
            user.password_hash = AuthService._hash_password(payload["password"])
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise Conflict("Email already registered.", 409) from exc
        return user

    @staticmethod
    def _hash_password(password):
        if len(password) < 6:
            raise ValidationError("Password must be at least 6 characters.")
        return bcrypt.generate_password_hash(password).decode("utf-8")

    @staticmethod
    def _token_digest(token):
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    @staticmethod
    def forgot_password(email):
        """Store a one-hour reset token for ``email`` and mail the reset link.

        Only the SHA-256 digest of the token is stored; the raw token exists in
        the e-mail alone.
        """
        email = (email or "").strip().lower()
        if not email:
            raise ValidationError("Please provide an email address.")
        user = User.query.filter_by(email=email).first()
        if not user:
            raise NotFound("No account found with that email address.")

        token = secrets.token_hex(32)
        minutes = current_app.config["PASSWORD_RESET_EXPIRES_MINUTES"]
        user.reset_token_hash = AuthService._token_digest(token)
        user.reset_token_expires = datetime.now(timezone.utc) + timedelta(minutes=minutes)
        db.session.commit()

        reset_url = f"{current_app.config['CLIENT_URL'].rstrip('/')}/reset-password/{token}"
        body = (
            f"Hello {user.full_name},\n\n"
            f"You requested to reset your Crop Connect password. Open this link to choose a new one:\n"
            f"{reset_url}\n\n"
            f"The link expires in {minutes} minutes. If you did not ask for this, ignore this e-mail."
        )
        try:
            mail.send(Message(subject="Crop Connect: Password reset request", recipients=[user.email], body=body))
        except Exception as exc:
            user.reset_token_hash = None
            user.reset_token_expires = None
            db.session.commit()
            current_app.logger.warning("Password reset e-mail to user %s failed: %s", user.id, exc)
            raise AppError("Error sending password reset email.", 500) from exc
        current_app.logger.info("Password reset requested for user %s", user.id)
        return user

    @staticmethod
    def reset_password(token, password):
        password = password or ""
        hashed = AuthService._token_digest(token or "")
        user = User.query.filter(
            User.reset_token_hash == hashed,
            User.reset_token_expires > datetime.now(timezone.utc),
        ).first()
        if not user:
            raise ValidationError("Invalid or expired reset token.")

        user.password_hash = AuthService._hash_password(password)
        user.reset_token_hash = None
        user.reset_token_expires = None
        db.session.commit()

        NotificationService.emit(
            user.id,
            "password_changed",
            "Password changed",
            "Your Crop Connect password was reset. If this was not you, contact support right away.",
        )
        return user
