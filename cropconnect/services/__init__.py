from cropconnect.services.auth_service import AuthService
from cropconnect.services.bid_service import BidService
from cropconnect.services.booking_service import BookingService
from cropconnect.services.cart_service import CartService
from cropconnect.services.crop_service import CropService
from cropconnect.services.hire_service import HireService
from cropconnect.services.listing_service import ListingService
from cropconnect.services.notification_service import NotificationService
from cropconnect.services.order_service import OrderService
from cropconnect.services.payment_service import PaymentService
from cropconnect.services.product_service import ProductService
from cropconnect.services.rating_service import RatingService
from cropconnect.services.requirement_service import RequirementService

__all__ = [
    "AuthService",
    "BidService",
    "BookingService",
    "CartService",
    "CropService",
    "HireService",
    "ListingService",
    "NotificationService",
    "OrderService",
    "PaymentService",
    "ProductService",
    "RatingService",
    "RequirementService",
]
