import secrets
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import func, or_

from cropconnect.errors import Forbidden, InvalidState, NotFound, ValidationError, VerificationFailed
from cropconnect.extensions import db, gateway
from cropconnect.models import Booking, Transaction
from cropconnect.models.base import utcnow
from cropconnect.models.transaction import OFFLINE_METHODS
from cropconnect.services.booking_service import BookingService
from cropconnect.services.notification_service import NotificationService
from cropconnect.services.parsing import clean_str, to_paise


class PaymentService:
    @staticmethod
    def _receipt_number(transaction_id):
        # The suffix is the transaction id, unique per row.
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        return f"CC-{today}-{transaction_id:04d}"

    @staticmethod
    def _booking_for_farmer(booking_id, actor):
        booking = BookingService.get(booking_id)
        if booking.farmer_id != actor.id:
            raise Forbidden("Only the farmer who booked this service can pay for it.")
        if booking.payment_status == "paid":
            raise InvalidState("This booking has already been paid.")
        if booking.status == "cancelled":
            raise InvalidState("Cancelled bookings cannot be paid.")
        return booking

    @staticmethod
    def _mark_paid(booking, now):
        paid = Booking.query.filter_by(id=booking.id, status="completed", payment_status="pending").update(
            {"payment_status": "paid", "paid_at": now}
        )
        if not paid:
            db.session.rollback()
            raise InvalidState("This booking has already been paid.")

    @staticmethod
    def _notify_settled(booking, transaction):
        NotificationService.emit(
            transaction.payee_id,
            "payment_received",
            "Payment received",
            f"Rs. {transaction.amount} received for booking #{booking.id} via "
            f"{transaction.method.replace('_', ' ')}. Receipt {transaction.receipt_number}.",
            related_user_id=transaction.payer_id,
            related_booking_id=booking.id,
            data={"transaction_id": transaction.id},
        )
        NotificationService.emit(
            transaction.payer_id,
            "payment_sent",
            "Payment successful",
            f"You paid Rs. {transaction.amount} for booking #{booking.id}. Receipt {transaction.receipt_number}.",
            related_user_id=transaction.payee_id,
            related_booking_id=booking.id,
            data={"transaction_id": transaction.id},
        )

    @staticmethod
    def record_cash(booking_id, actor, method="cash", notes=None):
        method = (clean_str(method) or "cash").lower()
        if method not in OFFLINE_METHODS:
            raise ValidationError(f"Payment method must be one of: {', '.join(OFFLINE_METHODS)}.")
        booking = PaymentService._booking_for_farmer(booking_id, actor)
        if booking.status != "completed":
            raise InvalidState("Payment can be recorded only after the work is completed.")

        now = utcnow()
        PaymentService._mark_paid(booking, now)
        transaction = Transaction(
            booking_id=booking.id,
            payer_id=booking.farmer_id,
            payee_id=booking.provider_id,
            amount=booking.total_cost,
            method=method,
            status="completed",
            completed_at=now,
            notes=clean_str(notes) or None,
        )
        db.session.add(transaction)
        db.session.flush()
        transaction.receipt_number = PaymentService._receipt_number(transaction.id)
        db.session.commit()

        PaymentService._notify_settled(booking, transaction)
        return transaction, booking

    @staticmethod
    def initiate(booking_id, actor):
        booking = PaymentService._booking_for_farmer(booking_id, actor)
        order = gateway.create_order(
            to_paise(booking.total_cost),
            receipt=f"booking_{booking.id}",
            notes={"booking_id": str(booking.id), "farmer_id": str(booking.farmer_id)},
        )
        transaction = Transaction(
            booking_id=booking.id,
            payer_id=booking.farmer_id,
            payee_id=booking.provider_id,
            amount=booking.total_cost,
            method="razorpay",
            status="pending",
            gateway_order_id=order["id"],
        )
        db.session.add(transaction)
        db.session.commit()
        current_app.logger.info("Payment order %s created for booking %s", order["id"], booking.id)
        return {
            "order": order,
            "key": gateway.key_id or None,
            "is_mock": gateway.is_mock_order(order["id"]),
            "transaction": transaction,
        }

    @staticmethod
    def verify(order_id, payment_id, signature, actor, booking_id=None):
        order_id = clean_str(order_id)
        if not order_id:
            raise ValidationError("Payment order id is required.")
        transaction = Transaction.query.filter_by(gateway_order_id=order_id).first()
        if not transaction or (booking_id is not None and transaction.booking_id != booking_id):
            raise NotFound("Payment order not found.")
        if transaction.payer_id != actor.id:
            raise Forbidden("Only the paying farmer can confirm this payment.")

        booking = transaction.booking
        if booking.payment_status == "paid":
            raise InvalidState("This booking has already been paid.")
        if transaction.status != "pending":
            raise InvalidState(f"This payment order is already {transaction.status}.")
        if booking.status != "completed":
            raise InvalidState("Payment can be confirmed only after the work is completed.")

        if gateway.is_mock_order(order_id):
            payment_id = clean_str(payment_id) or f"pay_mock_{secrets.token_hex(8)}"
        elif not gateway.verify_signature(order_id, payment_id, signature):
            transaction.status = "failed"
            transaction.gateway_payment_id = clean_str(payment_id) or None
            db.session.commit()
            current_app.logger.warning("Signature mismatch for payment order %s", order_id)
            NotificationService.emit(
                transaction.payer_id,
                "payment_failed",
                "Payment failed",
                f"We could not verify your payment for booking #{booking.id}. Please try again.",
                related_booking_id=booking.id,
            )
            raise VerificationFailed("Payment verification failed.")

        now = utcnow()
        PaymentService._mark_paid(booking, now)
        settled = Transaction.query.filter_by(id=transaction.id, status="pending").update(
            {
                "status": "completed",
                "gateway_payment_id": payment_id,
                "gateway_signature": signature or None,
                "receipt_number": PaymentService._receipt_number(transaction.id),
                "completed_at": now,
            }
        )
        if not settled:
            db.session.rollback()
            raise InvalidState("This payment order has already been processed.")
        db.session.commit()

        PaymentService._notify_settled(booking, transaction)
        return transaction, booking

    @staticmethod
    def payment_options(booking_id, actor):
        booking = BookingService.get_for_party(booking_id, actor)
        can_pay = booking.farmer_id == actor.id and booking.status == "completed" and booking.payment_status == "pending"
        return {
            "booking_id": booking.id,
            "amount": booking.total_cost,
            "status": booking.status,
            "payment_status": booking.payment_status,
            "can_pay": can_pay,
            "methods": [
                {"id": "cash", "label": "Cash after work", "enabled": can_pay},
                {"id": "upi", "label": "UPI (recorded offline)", "enabled": can_pay},
                {"id": "bank_transfer", "label": "Bank transfer (recorded offline)", "enabled": can_pay},
                {"id": "razorpay", "label": "Pay online", "enabled": can_pay, "is_mock": gateway.is_mock},
            ],
            "razorpay_key": gateway.key_id or None,
        }

    @staticmethod
    def history(user_id, status=None):
        query = Transaction.query.filter(or_(Transaction.payer_id == user_id, Transaction.payee_id == user_id))
        if status:
            query = query.filter(Transaction.status == status)
        return query.order_by(Transaction.created_at.desc()).all()

    @staticmethod
    def dashboard(user):
        def total(column, status):
            return (
                db.session.query(func.coalesce(func.sum(Transaction.amount), 0))
                .filter(column == user.id, Transaction.status == status)
                .scalar()
            )

        counts = dict(
            db.session.query(Transaction.status, func.count(Transaction.id))
            .filter(or_(Transaction.payer_id == user.id, Transaction.payee_id == user.id))
            .group_by(Transaction.status)
            .all()
        )
        awaiting = (
            Booking.query.filter(or_(Booking.farmer_id == user.id, Booking.provider_id == user.id))
            .filter_by(status="completed", payment_status="pending")
            .order_by(Booking.completed_at.desc())
            .all()
        )
        return {
            "total_paid": total(Transaction.payer_id, "completed"),
            "total_received": total(Transaction.payee_id, "completed"),
            "completed_count": counts.get("completed", 0),
            "pending_count": counts.get("pending", 0),
            "failed_count": counts.get("failed", 0),
            "awaiting_payment": awaiting,
        }

    @staticmethod
    def get_receipt(transaction_id, actor):
        transaction = db.session.get(Transaction, transaction_id)
        if not transaction:
            raise NotFound("Transaction not found.")
        if actor.role != "admin" and actor.id not in {transaction.payer_id, transaction.payee_id}:
            raise Forbidden("You are not a party to this transaction.")
        if transaction.status != "completed" or not transaction.receipt_number:
            raise InvalidState("Receipts are available only for completed payments.")
        return transaction
