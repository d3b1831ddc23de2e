"""Razorpay order creation and payment signature checks.

The gateway is configured once from the application config. When either
Razorpay key is missing it runs in mock mode: orders get a synthetic
``order_mock_`` id and no network call is made, which keeps local
development and the test-suite independent of the real gateway.
"""
import hashlib
import hmac
import logging
import secrets

from cropconnect.errors import AppError

logger = logging.getLogger(__name__)

MOCK_ORDER_PREFIX = "order_mock_"


class GatewayError(AppError):
    status_code = 502


class RazorpayGateway:
    def __init__(self, app=None):
        self.key_id = ""
        self.key_secret = ""
        self.currency = "INR"
        self._client = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.key_id = app.config.get("RAZORPAY_KEY_ID") or ""
        self.key_secret = app.config.get("RAZORPAY_KEY_SECRET") or ""
        self.currency = app.config.get("PAYMENT_CURRENCY", "INR")
        self._client = None
        app.extensions["razorpay_gateway"] = self
        if self.is_mock:
            app.logger.info("Razorpay credentials not configured; using mock orders.")

    @property
    def is_mock(self):
        return not (self.key_id and self.key_secret)

    @property
    def client(self):
        if self._client is None:
            import razorpay

            self._client = razorpay.Client(auth=(self.key_id, self.key_secret))
        return self._client

    @staticmethod
    def is_mock_order(order_id):
        return (order_id or "").startswith(MOCK_ORDER_PREFIX)

    def create_order(self, amount_minor, receipt, notes=None):
        payload = {
            "amount": int(amount_minor),
            "currency": self.currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        if self.is_mock:
            order = dict(payload, id=f"{MOCK_ORDER_PREFIX}{secrets.token_hex(8)}", status="created")
            logger.info("Issued mock order %s for receipt %s", order["id"], receipt)
            return order
        try:
            return self.client.order.create(data=payload)
        except Exception as exc:
            logger.warning("Razorpay order creation failed for %s: %s", receipt, exc)
            raise GatewayError("Payment gateway is unavailable. Please retry later.") from exc

    def signature_for(self, order_id, payment_id):
        body = f"{order_id}|{payment_id}".encode("utf-8")
        return hmac.new(self.key_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()

    def verify_signature(self, order_id, payment_id, signature):
        if not self.key_secret or not signature:
            return False
        expected = self.signature_for(order_id, payment_id)
        return hmac.compare_digest(expected, str(signature))
