from flask import jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException


class AppError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400


class NotFound(AppError):
    status_code = 404


class Forbidden(AppError):
    status_code = 403


class InvalidState(AppError):
    status_code = 400


class Conflict(AppError):
    # Duplicate bids/applications are reported as 400 on the public API.
    status_code = 400


class VerificationFailed(AppError):
    status_code = 400


def error_response(message, status_code):
    return jsonify({"success": False, "message": message}), status_code


def register_error_handlers(app):
    from cropconnect.extensions import db

    @app.errorhandler(AppError)
    def handle_app_error(err):
        return error_response(err.message, err.status_code)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(_err):
        db.session.rollback()
        app.logger.warning("Database integrity error")
        return error_response("Conflict. Resource already exists.", 409)

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        messages = {
            400: "Bad request",
            401: "Unauthorized",
            403: "Forbidden",
            404: "Not found",
            405: "Method not allowed",
            429: "Too many requests",
        }
        return error_response(messages.get(err.code, err.name), err.code)

    @app.errorhandler(Exception)
    def server_error(err):
        db.session.rollback()
        app.logger.exception("Internal server error: %s", err)
        return error_response("Internal server error", 500)
