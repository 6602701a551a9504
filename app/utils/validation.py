import re
from typing import Any, List

from app.models.itinerary import ItineraryRequest

MAX_DESTINATION_LENGTH = 200
MIN_DESTINATION_LENGTH = 2
MIN_DAYS = 1
MAX_DAYS = 30

VALID_BUDGETS = ("budget", "mid-range", "luxury")
VALID_TRIP_TYPES = ("solo", "couple", "family", "friends")

REQUIRED_FIELDS = ("destination", "days", "budget", "tripType")

# Characters that could break out of the prompt's JSON example or inject markup.
_UNSAFE_CHARS = re.compile(r"[<>{}\[\]\\]")


class RequestValidationError(ValueError):
    """Raised when an itinerary request fails validation. Maps to a 400."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def sanitize_destination(destination: str) -> str:
    """
    Allows natural language destinations ("Paris, France") but strips
    characters that are never needed in a place name.
    """
    return _UNSAFE_CHARS.sub("", destination.strip())[:MAX_DESTINATION_LENGTH].strip()


def _parse_days(value: Any) -> int:
    if isinstance(value, bool):
        raise RequestValidationError("Days must be between 1 and 30")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    elif isinstance(value, str):
        digits = value.strip()
        if digits.isascii() and digits.isdigit() and len(digits) <= 3:
            value = int(digits)

    if not isinstance(value, int) or not MIN_DAYS <= value <= MAX_DAYS:
        raise RequestValidationError("Days must be between 1 and 30")
    return value


def _normalize_interests(interests: Any) -> List[str]:
    if not isinstance(interests, (list, tuple)):
        return []
    cleaned = [str(interest).strip() for interest in interests if interest is not None]
    return [interest for interest in cleaned if interest]


def validate_itinerary_request(payload: dict) -> ItineraryRequest:
    """
    Runs the checks in order and raises on the first failure.
    Returns the request with a sanitized destination.
    """
    if any(not payload.get(field) for field in REQUIRED_FIELDS):
        raise RequestValidationError("Missing required fields")

    destination = payload["destination"]
    if not isinstance(destination, str):
        raise RequestValidationError("Invalid destination name")
    sanitized = sanitize_destination(destination)
    if len(sanitized) < MIN_DESTINATION_LENGTH:
        raise RequestValidationError("Invalid destination name")

    days = _parse_days(payload["days"])

    if payload["budget"] not in VALID_BUDGETS:
        raise RequestValidationError("Invalid budget selection")

    if payload["tripType"] not in VALID_TRIP_TYPES:
        raise RequestValidationError("Invalid trip type selection")

    return ItineraryRequest(
        destination=sanitized,
        days=days,
        budget=payload["budget"],
        trip_type=payload["tripType"],
        interests=_normalize_interests(payload.get("interests")),
    )
