# file: app/services/generation_service.py

import os
import logging
from types import MappingProxyType
from typing import Any, Dict, Optional

import httpx
from dotenv import load_dotenv

from app.models.itinerary import ItineraryRequest

load_dotenv()

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = os.getenv("ANTHROPIC_API_URL", "https://api.anthropic.com/v1/messages")
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-haiku-4-5"
DEFAULT_TIMEOUT_SECONDS = 120.0

# Output budget grows with trip length so a 30-day plan is not cut off mid-array.
MAX_TOKENS_FLOOR = 2048
MAX_TOKENS_PER_DAY = 400
MAX_TOKENS_CEILING = 16000

BUDGET_DESCRIPTIONS = MappingProxyType({
    "budget": "budget-friendly accommodations and meals",
    "mid-range": "comfortable 3-4 star hotels and a mix of local and nicer restaurants",
    "luxury": "5-star hotels, fine dining, and premium experiences",
})

TRIP_TYPE_DESCRIPTIONS = MappingProxyType({
    "solo": "solo traveler with flexible pacing",
    "couple": "couple seeking romantic and memorable experiences",
    "family": "family with children, requiring family-friendly activities and moderate pacing",
    "friends": "group of friends looking for fun and social activities",
})

INTEREST_PREFIXES = MappingProxyType({
    "food": "Culinary",
    "culture": "Cultural",
    "history": "Historic",
    "art": "Art-focused",
    "adventure": "Adventure-focused",
    "nature": "Nature-focused",
    "nightlife": "Nightlife-focused",
    "shopping": "Shopping-focused",
    "relaxation": "Relaxing",
    "beaches": "Beach",
})

_OUTPUT_FORMAT = """Return ONLY a JSON array (no markdown, no explanations):
[
  {
    "day": 1,
    "title": "Day 1 - Brief Title",
    "hotel": "Hotel Name (3★)",
    "activities": [
      {"when": "Morning", "what": "Activity", "notes": "Brief tip"}
    ]
  }
]"""


class MissingApiKeyError(RuntimeError):
    pass


class GenerationServiceError(Exception):
    """Non-2xx reply from the generation API."""

    def __init__(self, status_code: int, message: str, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details


def interest_prefix(interests) -> str:
    if not interests:
        return ""
    return INTEREST_PREFIXES.get(interests[0].strip().lower(), "")


def max_tokens_for(days: int) -> int:
    return min(MAX_TOKENS_CEILING, MAX_TOKENS_FLOOR + days * MAX_TOKENS_PER_DAY)


def build_itinerary_prompt(request: ItineraryRequest) -> str:
    interests_text = (
        f"Focus on these interests: {', '.join(request.interests)}."
        if request.interests else ""
    )
    prefix = interest_prefix(request.interests)
    place = f"{prefix} {request.destination}" if prefix else request.destination

    prompt = f"""Create a {request.days}-day travel itinerary for {place}.

Trip: {BUDGET_DESCRIPTIONS[request.budget]}, {TRIP_TYPE_DESCRIPTIONS[request.trip_type]}. {interests_text}

Include exactly {request.days} day objects, one per day.

{_OUTPUT_FORMAT}

Keep it concise: 3-4 activities per day, short descriptions."""
    return prompt


def get_api_key() -> str:
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise MissingApiKeyError("ANTHROPIC_API_KEY not found in environment variables.")
    return api_key


def _error_payload(response: httpx.Response) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {"message": response.text}
    if not isinstance(payload, dict):
        return {"message": payload}
    return payload


def _error_message(payload: Dict[str, Any]) -> str:
    error = payload.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return "Failed to generate itinerary"


class GenerationClient:
    """
    Thin wrapper around the Anthropic Messages API.
    `generate` returns the generated text or raises GenerationServiceError.
    """

    def __init__(
            self,
            api_key: str,
            model: Optional[str] = None,
            api_url: str = ANTHROPIC_API_URL,
            timeout: Optional[float] = None,
            transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model or os.getenv("ANTHROPIC_MODEL", DEFAULT_MODEL)
        self.api_url = api_url
        self.timeout = timeout or float(os.getenv("ANTHROPIC_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
        self.transport = transport

    @classmethod
    def from_env(cls, **kwargs) -> "GenerationClient":
        return cls(api_key=get_api_key(), **kwargs)

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    async def generate(self, prompt: str, max_tokens: int) -> str:
        payload = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }

        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            response = await client.post(self.api_url, headers=self._headers(), json=payload)

        if not response.is_success:
            error = _error_payload(response)
            logger.error(f"Anthropic API error ({response.status_code}): {error}")
            raise GenerationServiceError(response.status_code, _error_message(error), error)

        data = response.json()
        return data["content"][0]["text"]
