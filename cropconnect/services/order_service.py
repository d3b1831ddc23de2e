import secrets
from decimal import Decimal

from flask import current_app

from cropconnect.errors import Forbidden, InvalidState, NotFound, ValidationError, VerificationFailed
from cropconnect.extensions import db, gateway
from cropconnect.gateway import GatewayError
from cropconnect.models import Cart, CartItem, Crop, Order, OrderItem
from cropconnect.models.base import utcnow
from cropconnect.models.order import ORDER_PAYMENT_METHODS
from cropconnect.services.notification_service import NotificationService
from cropconnect.services.parsing import clean_str, parse_choice, round_money, to_paise

ORDER_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"picked", "cancelled"},
    "picked": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


class OrderService:
    """Crop orders: checkout from the cart, then seller and buyer status steps.

    Stock is taken from a crop with a conditional update at checkout and given
    back when an order is cancelled. A cart holding crops from several sellers
    becomes one order per seller.
    """

    @staticmethod
    def get(order_id):
        order = db.session.get(Order, order_id)
        if not order:
            raise NotFound("Order not found.")
        return order

    @staticmethod
    def get_for_party(order_id, actor):
        order = OrderService.get(order_id)
        if actor.role != "admin" and not order.is_party(actor.id):
            raise Forbidden("You are not a party to this order.")
        return order

    @staticmethod
    def _take_stock(crop_id, quantity):
        taken = Crop.query.filter(
            Crop.id == crop_id, Crop.status == "available", Crop.quantity >= quantity
        ).update({"quantity": Crop.quantity - quantity}, synchronize_session=False)
        if not taken:
            return False
        Crop.query.filter(Crop.id == crop_id, Crop.status == "available", Crop.quantity <= 0).update(
            {"status": "sold"}, synchronize_session=False
        )
        return True

    @staticmethod
    def _restore_stock(order):
        for item in order.items:
            if item.crop_id is None:
                continue
            Crop.query.filter(Crop.id == item.crop_id).update(
                {"quantity": Crop.quantity + item.quantity}, synchronize_session=False
            )
            Crop.query.filter(Crop.id == item.crop_id, Crop.status == "sold").update(
                {"status": "available"}, synchronize_session=False
            )

    @staticmethod
    def checkout(buyer, payload):
        cart = Cart.query.filter_by(user_id=buyer.id).first()
        if cart is None or not cart.items:
            raise ValidationError("No items in order.")

        address = payload.get("delivery_address") or {}
        full_address = clean_str(address.get("full_address"))
        if not full_address:
            raise ValidationError("Delivery address is required.")
        payment_method = parse_choice(
            payload.get("payment_method"), "Payment method", ORDER_PAYMENT_METHODS, default="razorpay"
        )

        by_seller = {}
        for item in cart.items:
            crop = item.crop
            if crop.seller_id == buyer.id:
                raise ValidationError("You cannot order your own crop.")
            by_seller.setdefault(crop.seller_id, []).append((item, crop))

        orders = []
        for seller_id, lines in by_seller.items():
            order = Order(
                buyer_id=buyer.id,
                seller_id=seller_id,
                total_amount=0,
                payment_method=payment_method,
                payment_status="pending",
                status="pending",
                full_address=full_address,
                vehicle_details=payload.get("vehicle_details") or None,
                pickup_schedule=payload.get("pickup_schedule") or None,
            )
            order.apply_location(address)
            total = Decimal("0")
            for item, crop in lines:
                if not OrderService._take_stock(crop.id, item.quantity):
                    db.session.rollback()
                    raise InvalidState(f"Not enough {crop.crop_name} left to fill this order.")
                line_total = round_money(crop.price_per_unit * item.quantity)
                order.items.append(
                    OrderItem(
                        crop_id=crop.id,
                        crop_name=crop.crop_name,
                        unit=crop.unit,
                        quantity=item.quantity,
                        price_per_unit=crop.price_per_unit,
                        total=line_total,
                    )
                )
                total += line_total
            order.total_amount = total
            db.session.add(order)
            orders.append(order)
        db.session.flush()

        if payment_method == "razorpay":
            try:
                for order in orders:
                    gateway_order = gateway.create_order(
                        to_paise(order.total_amount),
                        receipt=f"order_{order.id}",
                        notes={"order_id": str(order.id), "buyer_id": str(buyer.id)},
                    )
                    order.gateway_order_id = gateway_order["id"]
            except GatewayError:
                db.session.rollback()
                raise

        CartItem.query.filter_by(cart_id=cart.id).delete()
        db.session.commit()
        current_app.logger.info("Buyer %s placed %s order(s)", buyer.id, len(orders))

        for order in orders:
            NotificationService.emit(
                order.seller_id,
                "order_placed",
                "New order received",
                f"{buyer.full_name} ordered {', '.join(item.crop_name for item in order.items)} "
                f"worth Rs. {order.total_amount}.",
                related_user_id=buyer.id,
                data={"order_id": order.id},
            )
            NotificationService.emit(
                buyer.id,
                "order_placed",
                "Order placed",
                f"Your order #{order.id} for Rs. {order.total_amount} was sent to the seller.",
                related_user_id=order.seller_id,
                data={"order_id": order.id},
            )
        return orders

    @staticmethod
    def verify_payment(order_id, actor, gateway_order_id, payment_id, signature):
        order = OrderService.get(order_id)
        if order.buyer_id != actor.id:
            raise Forbidden("Only the buyer can confirm this payment.")
        if order.payment_method != "razorpay" or order.gateway_order_id != clean_str(gateway_order_id):
            raise NotFound("Payment order not found.")
        if order.payment_status not in {"pending", "failed"}:
            raise InvalidState(f"Payment is already {order.payment_status}.")
        if order.status == "cancelled":
            raise InvalidState("Cancelled orders cannot be paid.")

        if gateway.is_mock_order(order.gateway_order_id):
            payment_id = clean_str(payment_id) or f"pay_mock_{secrets.token_hex(8)}"
        elif not gateway.verify_signature(order.gateway_order_id, payment_id, signature):
            order.payment_status = "failed"
            db.session.commit()
            current_app.logger.warning("Signature mismatch for crop order %s", order.id)
            NotificationService.emit(
                actor.id,
                "payment_failed",
                "Payment failed",
                f"We could not verify your payment for order #{order.id}.",
                data={"order_id": order.id},
            )
            raise VerificationFailed("Payment verification failed.")

        paid = Order.query.filter(Order.id == order.id, Order.payment_status.in_(("pending", "failed"))).update(
            {
                "payment_status": "completed",
                "gateway_payment_id": payment_id,
                "gateway_signature": signature or None,
            }
        )
        if not paid:
            db.session.rollback()
            raise InvalidState("This payment has already been processed.")
        db.session.commit()

        NotificationService.emit(
            order.seller_id,
            "order_paid",
            "Order paid",
            f"{actor.full_name} paid Rs. {order.total_amount} for order #{order.id}.",
            related_user_id=actor.id,
            data={"order_id": order.id},
        )
        return order

    @staticmethod
    def _for_seller(order_id, actor):
        order = OrderService.get(order_id)
        if order.seller_id != actor.id:
            raise Forbidden("Only the seller can update this order.")
        return order

    @staticmethod
    def confirm(order_id, actor):
        order = OrderService._for_seller(order_id, actor)
        if order.status in {"confirmed", "picked", "completed"}:
            return order
        if order.status == "cancelled":
            raise InvalidState("Order is cancelled and cannot be confirmed.")
        confirmed = Order.query.filter_by(id=order.id, status="pending").update({"status": "confirmed"})
        if not confirmed:
            db.session.rollback()
            raise InvalidState("Order has changed; reload and try again.")
        db.session.commit()

        NotificationService.emit(
            order.buyer_id,
            "order_confirmed",
            "Order confirmed",
            f"Your order #{order.id} has been confirmed by the farmer.",
            related_user_id=actor.id,
            data={"order_id": order.id},
        )
        return order

    @staticmethod
    def mark_picked(order_id, actor):
        order = OrderService._for_seller(order_id, actor)
        if order.status in {"picked", "completed"}:
            return order
        if order.status == "cancelled":
            raise InvalidState("Cancelled orders cannot be picked.")
        if order.status != "confirmed":
            raise InvalidState("Order must be confirmed first.")
        picked = Order.query.filter_by(id=order.id, status="confirmed").update(
            {"status": "picked", "picked_up_at": utcnow()}
        )
        if not picked:
            db.session.rollback()
            raise InvalidState("Order has changed; reload and try again.")
        db.session.commit()

        NotificationService.emit(
            order.buyer_id,
            "order_picked",
            "Order picked up",
            f"Your order #{order.id} has been picked up from the farm.",
            related_user_id=actor.id,
            data={"order_id": order.id},
        )
        return order

    @staticmethod
    def complete(order_id, actor):
        order = OrderService.get(order_id)
        if order.buyer_id != actor.id:
            raise Forbidden("Only the buyer can complete this order.")
        if order.status != "picked":
            raise InvalidState("Order must be picked first.")
        updates = {"status": "completed", "completed_at": utcnow()}
        if order.payment_method == "pay_after_delivery":
            updates["payment_status"] = "completed"
        completed = Order.query.filter_by(id=order.id, status="picked").update(updates)
        if not completed:
            db.session.rollback()
            raise InvalidState("Order has already been completed.")
        db.session.commit()

        NotificationService.emit(
            order.seller_id,
            "order_completed",
            "Order completed",
            f"Order #{order.id} was marked completed by the buyer.",
            related_user_id=actor.id,
            data={"order_id": order.id},
        )
        return order

    @staticmethod
    def cancel(order_id, actor, reason=None):
        order = OrderService.get(order_id)
        if not order.is_party(actor.id):
            raise Forbidden("Only the buyer or the seller can cancel this order.")
        if order.status in {"completed", "cancelled"}:
            raise InvalidState("Order cannot be cancelled.")

        reason = clean_str(reason) or None
        cancelled = Order.query.filter_by(id=order.id, status=order.status).update(
            {
                "status": "cancelled",
                "cancelled_at": utcnow(),
                "cancelled_by_id": actor.id,
                "cancellation_reason": reason,
            }
        )
        if not cancelled:
            db.session.rollback()
            raise InvalidState("Order has changed; reload and try again.")
        OrderService._restore_stock(order)
        db.session.commit()

        NotificationService.emit(
            order.counterparty_of(actor.id),
            "order_cancelled",
            "Order cancelled",
            f"Order #{order.id} has been cancelled. Reason: {reason or 'Not specified'}",
            related_user_id=actor.id,
            data={"order_id": order.id, "reason": reason},
        )
        return order

    @staticmethod
    def update_status(order_id, actor, new_status, reason=None):
        order = OrderService.get(order_id)
        new_status = (new_status or "").strip().lower()
        if new_status not in ORDER_TRANSITIONS.get(order.status, set()):
            raise InvalidState(f"Invalid status transition from {order.status} to {new_status or 'nothing'}.")
        if new_status == "confirmed":
            return OrderService.confirm(order_id, actor)
        if new_status == "picked":
            return OrderService.mark_picked(order_id, actor)
        if new_status == "completed":
            return OrderService.complete(order_id, actor)
        return OrderService.cancel(order_id, actor, reason=reason)

    @staticmethod
    def for_buyer(buyer_id):
        return Order.query.filter_by(buyer_id=buyer_id).order_by(Order.created_at.desc(), Order.id.desc()).all()

    @staticmethod
    def for_seller(seller_id):
        return Order.query.filter_by(seller_id=seller_id).order_by(Order.created_at.desc(), Order.id.desc()).all()

