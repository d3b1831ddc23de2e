from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import re

from cropconnect.errors import ValidationError


def clean_str(value):
    return (value or "").strip() if isinstance(value, str) else value


def normalize_phone(phone, required=True):
    digits = "".join(ch for ch in str(phone or "") if ch.isdigit())
    if not digits and not required:
        return ""
    if not re.fullmatch(r"\d{10}", digits):
        raise ValidationError("Phone number must be exactly 10 digits.")
    return digits


def parse_decimal(value, label, minimum=None, required=True):
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{label} is required.")
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{label} must be a number.") from exc
    if not number.is_finite():
        raise ValidationError(f"{label} must be a number.")
    if minimum is not None and number < Decimal(str(minimum)):
        raise ValidationError(f"{label} must be at least {minimum}.")
    return number


def parse_int(value, label, minimum=None, maximum=None, default=None):
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValidationError(f"{label} is required.")
        return default
    try:
        number = int(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f"{label} must be a whole number.") from exc
    if minimum is not None and number < minimum:
        raise ValidationError(f"{label} must be at least {minimum}.")
    if maximum is not None and number > maximum:
        raise ValidationError(f"{label} must be at most {maximum}.")
    return number


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def parse_datetime(value, label, required=True):
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = clean_str(value)
        if not raw:
            if required:
                raise ValidationError(f"{label} is required.")
            return None
        try:
            parsed = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(f"{label} must be an ISO-8601 date.") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_choice(value, label, choices, default=None):
    raw = clean_str(value) or default
    if raw not in choices:
        raise ValidationError(f"{label} must be one of: {', '.join(choices)}.")
    return raw


def duration_days(text):
    """Leading whole number of a free-text duration ("3 days" -> 3), at least 1."""
    if isinstance(text, int):
        return max(text, 1)
    match = re.search(r"\d+", str(text or ""))
    days = int(match.group()) if match else 1
    return max(days, 1)


def whole_rupees(amount):
    return Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def to_paise(amount):
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_money(amount):
    return Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
