from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from cropconnect.routes.api.v1.serializers import notification_dict
from cropconnect.services import NotificationService
from cropconnect.services.parsing import parse_bool

api_notification_bp = Blueprint("api_notification", __name__)


@api_notification_bp.get("")
@login_required
def my_notifications():
    limit = min(request.args.get("limit", default=50, type=int), 100)
    items = NotificationService.list_for_user(
        current_user.id,
        unread_only=parse_bool(request.args.get("unread")),
        limit=limit,
    )
    return jsonify(
        {
            "success": True,
            "notifications": [notification_dict(n) for n in items],
            "unread_count": NotificationService.unread_count(current_user.id),
        }
    )


@api_notification_bp.get("/unread-count")
@login_required
def unread_count():
    return jsonify({"success": True, "unread_count": NotificationService.unread_count(current_user.id)})


@api_notification_bp.post("/<int:notification_id>/read")
@login_required
def mark_read(notification_id):
    notification = NotificationService.mark_read(notification_id, current_user.id)
    return jsonify({"success": True, "notification": notification_dict(notification)})


@api_notification_bp.post("/read-all")
@login_required
def mark_all_read():
    updated = NotificationService.mark_all_read(current_user.id)
    return jsonify({"success": True, "updated": updated})


@api_notification_bp.delete("/<int:notification_id>")
@login_required
def delete_notification(notification_id):
    NotificationService.delete(notification_id, current_user.id)
    return jsonify({"success": True, "message": "Notification deleted."})
