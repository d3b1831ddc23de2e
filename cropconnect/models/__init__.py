from cropconnect.models.bid import Bid
from cropconnect.models.booking import Booking
from cropconnect.models.cart import Cart, CartItem
from cropconnect.models.crop import Crop
from cropconnect.models.hire_request import HireRequest
from cropconnect.models.notification import Notification
from cropconnect.models.order import Order, OrderItem
from cropconnect.models.product import Product
from cropconnect.models.rating import Rating
from cropconnect.models.service_ref import ServiceRef
from cropconnect.models.tractor_listing import TractorListing
from cropconnect.models.tractor_requirement import TractorRequirement
from cropconnect.models.transaction import Transaction
from cropconnect.models.user import User
from cropconnect.models.worker_listing import WorkerListing
from cropconnect.models.worker_requirement import WorkerApplicant, WorkerRequirement

__all__ = [
    "User",
    "TractorListing",
    "WorkerListing",
    "ServiceRef",
    "TractorRequirement",
    "WorkerRequirement",
    "WorkerApplicant",
    "Bid",
    "HireRequest",
    "Booking",
    "Transaction",
    "Rating",
    "Notification",
    "Crop",
    "Product",
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
]
