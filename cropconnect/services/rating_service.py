from decimal import Decimal

from sqlalchemy import func

from cropconnect.errors import Forbidden, InvalidState, ValidationError
from cropconnect.extensions import db
from cropconnect.models import Booking, Rating
from cropconnect.services.booking_service import BookingService
from cropconnect.services.notification_service import NotificationService
from cropconnect.services.parsing import clean_str

PROVIDER_ROLE_LABELS = {"tractor": "tractor_owner", "worker": "worker"}


class RatingService:
    @staticmethod
    def _rating_type(booking, rater_id):
        provider_label = PROVIDER_ROLE_LABELS[booking.service_type]
        if rater_id == booking.farmer_id:
            return f"farmer_to_{provider_label}"
        return f"{provider_label}_to_farmer"

    @staticmethod
    def _refresh_service_aggregate(booking):
        listing = booking.service_ref.resolve()
        if listing is None:
            return
        avg_score, rating_count = (
            db.session.query(func.avg(Rating.score), func.count(Rating.id))
            .join(Booking, Booking.id == Rating.booking_id)
            .filter(
                Booking.service_type == booking.service_type,
                Booking.service_id == booking.service_id,
                Rating.ratee_id == booking.provider_id,
            )
            .one()
        )
        listing.rating_avg = Decimal(str(round(float(avg_score or 0), 2)))
        listing.rating_count = int(rating_count or 0)

    @staticmethod
    def submit(rater, booking_id, score, review=None):
        try:
            score = int(score)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Rating must be an integer between 1 and 5.") from exc
        if score < 1 or score > 5:
            raise ValidationError("Rating must be an integer between 1 and 5.")
        review = clean_str(review) or None
        if review and len(review) > 500:
            raise ValidationError("Review must be at most 500 characters.")

        booking = BookingService.get(booking_id)
        if not booking.is_party(rater.id):
            raise Forbidden("Only the farmer or the provider of this booking can rate it.")
        if booking.status != "completed":
            raise InvalidState("Ratings unlock after the work is completed.")

        rating = Rating.query.filter_by(booking_id=booking.id, rater_id=rater.id).first()
        if rating:
            rating.score = score
            rating.review = review
            rating.is_edited = True
        else:
            rating = Rating(
                booking_id=booking.id,
                rater_id=rater.id,
                ratee_id=booking.counterparty_of(rater.id),
                rating_type=RatingService._rating_type(booking, rater.id),
                score=score,
                review=review,
            )
            db.session.add(rating)
        db.session.flush()

        if rating.ratee_id == booking.provider_id:
            RatingService._refresh_service_aggregate(booking)
        db.session.commit()

        NotificationService.emit(
            rating.ratee_id,
            "rating_received",
            "New rating",
            f"{rater.full_name} rated you {score}/5 for booking #{booking.id}.",
            related_user_id=rater.id,
            related_booking_id=booking.id,
        )
        return rating

    @staticmethod
    def for_user(user_id):
        ratings = Rating.query.filter_by(ratee_id=user_id).order_by(Rating.created_at.desc()).all()
        average = round(sum(row.score for row in ratings) / len(ratings), 2) if ratings else 0
        return ratings, {"average": average, "count": len(ratings)}
