from flask import current_app
from flask_mail import Message

from cropconnect.errors import NotFound
from cropconnect.extensions import db, mail
from cropconnect.models import Notification, User
from cropconnect.models.notification import NOTIFICATION_TYPES


class NotificationService:
    """Persists in-app notifications after the primary write has committed.

    Every emit runs in its own commit. A failure here is logged and swallowed,
    so the state transition that triggered it is never undone.
    """

    @staticmethod
    def _build(recipient_id, notification_type, title, message, **refs):
        if notification_type not in NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type: {notification_type}")
        return Notification(
            recipient_id=recipient_id,
            type=notification_type,
            title=title,
            message=message,
            related_user_id=refs.get("related_user_id"),
            related_requirement_id=refs.get("related_requirement_id"),
            related_booking_id=refs.get("related_booking_id"),
            related_service_id=refs.get("related_service_id"),
            data=refs.get("data"),
        )

    @staticmethod
    def emit(recipient_id, notification_type, title, message, **refs):
        try:
            notification = NotificationService._build(recipient_id, notification_type, title, message, **refs)
            db.session.add(notification)
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            current_app.logger.warning(
                "Notification %s for user %s was not saved: %s", notification_type, recipient_id, exc
            )
            return None
        NotificationService._send_email([recipient_id], title, message)
        return notification

    @staticmethod
    def emit_many(recipient_ids, notification_type, title, message, **refs):
        recipients = list(dict.fromkeys(recipient_ids))
        limit = current_app.config.get("NOTIFICATION_FANOUT_LIMIT") or len(recipients)
        if len(recipients) > limit:
            current_app.logger.info(
                "Fan-out of %s capped at %s of %s recipients", notification_type, limit, len(recipients)
            )
            recipients = recipients[:limit]
        if not recipients:
            return 0
        try:
            for recipient_id in recipients:
                db.session.add(NotificationService._build(recipient_id, notification_type, title, message, **refs))
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            current_app.logger.warning("Fan-out of %s notifications failed: %s", notification_type, exc)
            return 0
        NotificationService._send_email(recipients, title, message)
        return len(recipients)

    @staticmethod
    def _send_email(recipient_ids, subject, body):
        if not current_app.config.get("MAIL_ENABLED"):
            return
        try:
            emails = [
                email
                for (email,) in db.session.query(User.email).filter(User.id.in_(recipient_ids)).all()
                if email
            ]
            if emails:
                with mail.connect() as conn:
                    for email in emails:
                        conn.send(Message(subject=f"Crop Connect: {subject}", recipients=[email], body=body))
        except Exception as exc:
            current_app.logger.warning("Notification e-mail '%s' was not sent: %s", subject, exc)

    @staticmethod
    def list_for_user(user_id, unread_only=False, limit=50):
        query = Notification.query.filter_by(recipient_id=user_id)
        if unread_only:
            query = query.filter_by(is_read=False)
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    @staticmethod
    def unread_count(user_id):
        return Notification.query.filter_by(recipient_id=user_id, is_read=False).count()

    @staticmethod
    def _owned(notification_id, user_id):
        notification = Notification.query.filter_by(id=notification_id, recipient_id=user_id).first()
        if not notification:
            raise NotFound("Notification not found.")
        return notification

    @staticmethod
    def mark_read(notification_id, user_id):
        notification = NotificationService._owned(notification_id, user_id)
        notification.is_read = True
        db.session.commit()
        return notification

    @staticmethod
    def mark_all_read(user_id):
        updated = Notification.query.filter_by(recipient_id=user_id, is_read=False).update({"is_read": True})
        db.session.commit()
        return updated

    @staticmethod
    def delete(notification_id, user_id):
        notification = NotificationService._owned(notification_id, user_id)
        db.session.delete(notification)
        db.session.commit()
