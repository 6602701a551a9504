import json
import logging
from typing import Any, Optional, Union

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from app.models.itinerary import HandlerResponse, ItineraryResponse
from app.services.generation_service import (
    GenerationClient,
    GenerationServiceError,
    MissingApiKeyError,
    build_itinerary_prompt,
    max_tokens_for,
)
from app.services.itinerary_parser import (
    InvalidItineraryError,
    ItineraryParseError,
    extract_itinerary,
    validate_itinerary,
)
from app.utils.validation import RequestValidationError, validate_itinerary_request

router = APIRouter()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD", "TRACE", "CONNECT"]


def _error(status_code: int, message: str, **extra: Any) -> HandlerResponse:
    return HandlerResponse(status_code=status_code, body={"error": message, **extra})


def _parse_body(body: Union[str, bytes, dict, None]) -> dict:
    if isinstance(body, dict):
        return body
    payload = json.loads(body or "")
    if not isinstance(payload, dict):
        raise TypeError(f"Request body must be a JSON object, got {type(payload).__name__}")
    return payload


async def _run_pipeline(body: Union[str, bytes, dict, None], client: Optional[GenerationClient]) -> HandlerResponse:
    payload = _parse_body(body)

    try:
        itinerary_request = validate_itinerary_request(payload)
    except RequestValidationError as e:
        logger.warning(f"Rejected itinerary request: {e.message}")
        return _error(status.HTTP_400_BAD_REQUEST, e.message)

    prompt = build_itinerary_prompt(itinerary_request)

    if client is None:
        try:
            client = GenerationClient.from_env()
        except MissingApiKeyError as e:
            logger.error(str(e))
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "API key not configured")

    try:
        text = await client.generate(prompt, max_tokens=max_tokens_for(itinerary_request.days))
    except GenerationServiceError as e:
        status_code = e.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
        return _error(status_code, e.message, details=e.details)

    try:
        itinerary = validate_itinerary(extract_itinerary(text))
    except ItineraryParseError as e:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to parse itinerary response", raw=e.raw_excerpt)
    except InvalidItineraryError as e:
        logger.error(f"Generated itinerary rejected: {e}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Invalid itinerary format")

    logger.info(f"Generated {len(itinerary)}-day itinerary for {itinerary_request.destination}")
    return HandlerResponse(
        status_code=status.HTTP_200_OK,
        body={"itinerary": itinerary},
        headers={"Content-Type": "application/json"},
    )


async def process_itinerary_request(
        method: str,
        body: Union[str, bytes, dict, None],
        client: Optional[GenerationClient] = None,
) -> HandlerResponse:
    """
    Runs one itinerary request end to end and always returns a response.
    `client` replaces the environment-configured GenerationClient (tests).
    """
    if (method or "").upper() != "POST":
        return _error(status.HTTP_405_METHOD_NOT_ALLOWED, "Method not allowed")

    try:
        return await _run_pipeline(body, client)
    except Exception as e:
        logger.error(f"Itinerary generation failed: {e}", exc_info=True)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@router.api_route("/generate", methods=ALL_METHODS, responses={200: {"model": ItineraryResponse}})
async def generate_itinerary(request: Request):
    body = await request.body()
    result = await process_itinerary_request(request.method, body)
    return JSONResponse(status_code=result.status_code, content=result.body, headers=result.headers or None)
