import json
import re
import logging
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from app.models.itinerary import ItineraryDay

logger = logging.getLogger(__name__)

RAW_EXCERPT_LENGTH = 200

_ARRAY_SPAN = re.compile(r"\[[\s\S]*\]")


class ItineraryParseError(ValueError):
    def __init__(self, raw_text: str):
        super().__init__("Failed to parse itinerary response")
        self.raw_excerpt = raw_text[:RAW_EXCERPT_LENGTH]


class InvalidItineraryError(ValueError):
    pass


def _parse_whole_text(text: str) -> Any:
    return json.loads(text.strip())


def _parse_bracket_span(text: str) -> Any:
    match = _ARRAY_SPAN.search(text)
    if not match:
        raise ValueError("No JSON array found in response")
    return json.loads(match.group(0))


# Tried in order; the first one that yields a JSON array wins.
EXTRACTION_STRATEGIES: List[Callable[[str], Any]] = [
    _parse_whole_text,
    _parse_bracket_span,
]


def _try_strategy(strategy: Callable[[str], Any], text: str) -> Optional[list]:
    try:
        parsed = strategy(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, list) else None


def extract_itinerary(text: str) -> list:
    """
    Pulls the itinerary array out of the model's raw reply.
    The model is told to return bare JSON but sometimes wraps it in
    markdown fences or a sentence of prose.
    """
    for strategy in EXTRACTION_STRATEGIES:
        parsed = _try_strategy(strategy, text)
        if parsed is not None:
            return parsed

    logger.error(f"Failed to parse itinerary response: {text}")
    raise ItineraryParseError(text)


def validate_itinerary(itinerary: Any) -> list:
    if not isinstance(itinerary, list) or not itinerary:
        raise InvalidItineraryError("Itinerary must be a non-empty list of days")

    for index, day in enumerate(itinerary):
        try:
            ItineraryDay.model_validate(day)
        except ValidationError as e:
            raise InvalidItineraryError(f"Day at index {index} is malformed: {e}") from e

    return itinerary
