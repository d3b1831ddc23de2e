from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from cropconnect.extensions import limiter
from cropconnect.routes.api.v1.serializers import user_dict
from cropconnect.services import AuthService

api_auth_bp = Blueprint("api_auth", __name__)


@api_auth_bp.post("/register")
@limiter.limit("10 per minute")
def api_register():
    payload = request.get_json(silent=True) or {}
    user = AuthService.register_user(
        full_name=payload.get("full_name", ""),
        email=payload.get("email", ""),
        password=payload.get("password", ""),
        role=payload.get("role", ""),
        phone=payload.get("phone", ""),
        gender=payload.get("gender"),
        location=payload.get("location"),
    )
    login_user(user)
    return (
        jsonify(
            {
                "success": True,
                "message": "Account created.",
                "user": user_dict(user),
                "token": AuthService.issue_token(user),
            }
        ),
        201,
    )


@api_auth_bp.post("/login")
@limiter.limit("10 per minute")
def api_login():
    payload = request.get_json(silent=True) or {}
    user = AuthService.authenticate_user(payload.get("email", ""), payload.get("password", ""))
    login_user(user)
    return jsonify({"success": True, "user": user_dict(user), "token": AuthService.issue_token(user)})


@api_auth_bp.post("/logout")
@login_required
def api_logout():
    logout_user()
    return jsonify({"success": True, "message": "Logged out."})


@api_auth_bp.get("/me")
@login_required
def api_me():
    return jsonify({"success": True, "user": user_dict(current_user)})


@api_auth_bp.put("/profile")
@login_required
def api_update_profile():
    user = AuthService.update_profile(current_user, request.get_json(silent=True) or {})
    return jsonify(
        {
            "success": True,
            "message": "Profile updated successfully.",
            "user": user_dict(user),
            "token": AuthService.issue_token(user),
        }
    )


@api_auth_bp.post("/forgot-password")
@limiter.limit("5 per minute")
def api_forgot_password():
    payload = request.get_json(silent=True) or {}
    AuthService.forgot_password(payload.get("email"))
    return jsonify({"success": True, "message": "Password reset link sent to your email."})


@api_auth_bp.post("/reset-password/<token>")
@limiter.limit("10 per minute")
def api_reset_password(token):
    payload = request.get_json(silent=True) or {}
    AuthService.reset_password(token, payload.get("password"))
    return jsonify(
        {"success": True, "message": "Password reset successful. You can now login with your new password."}
    )
