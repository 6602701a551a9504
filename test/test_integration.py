import json
import pytest
import pytest_asyncio
from typing import AsyncGenerator

import httpx
from httpx import AsyncClient, ASGITransport

# --- App Imports ---
from main import app
from app.controllers.itinerary import process_itinerary_request
from app.services.generation_service import (
    ANTHROPIC_VERSION,
    GenerationClient,
    GenerationServiceError,
)

PARIS_REQUEST = {"destination": "Paris, France", "days": 3, "budget": "mid-range", "tripType": "couple"}

MOCK_ITINERARY = [
    {
        "day": day, "title": f"Day {day} - Paris", "hotel": "Hotel du Louvre (4★)",
        "activities": [
            {"when": "Morning", "what": "Eiffel Tower", "notes": "Book tickets online"},
            {"when": "Evening", "what": "Montmartre dinner", "notes": "Sunset views"},
        ]
    }
    for day in (1, 2, 3)
]


class FakeAnthropic:
    """Records outbound calls and replies with a canned Messages API response."""

    def __init__(self, status_code=200, text=None, payload=None, raw=None):
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(MOCK_ITINERARY)
        self.payload = payload
        self.raw = raw
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raw is not None:
            return httpx.Response(self.status_code, content=self.raw)
        if self.payload is not None:
            return httpx.Response(self.status_code, json=self.payload)
        return httpx.Response(self.status_code, json={
            "id": "msg_test", "type": "message", "role": "assistant",
            "content": [{"type": "text", "text": self.text}],
        })

    def client(self) -> GenerationClient:
        return GenerationClient(api_key="test-key", transport=httpx.MockTransport(self))


# --- CORE FIXTURES ---

@pytest_asyncio.fixture(scope="function")
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# =================================================================================
# --- GENERATION CLIENT ---
# =================================================================================

@pytest.mark.asyncio
async def test_itc_001_outbound_request_shape():
    fake = FakeAnthropic()
    text = await fake.client().generate("Plan a trip", max_tokens=3248)

    assert text == json.dumps(MOCK_ITINERARY)
    assert len(fake.requests) == 1
    sent = fake.requests[0]
    assert sent.method == "POST"
    assert str(sent.url) == "https://api.anthropic.com/v1/messages"
    assert sent.headers["x-api-key"] == "test-key"
    assert sent.headers["anthropic-version"] == ANTHROPIC_VERSION
    assert sent.headers["content-type"] == "application/json"

    body = json.loads(sent.content)
    assert body["max_tokens"] == 3248
    assert body["model"]
    assert body["messages"] == [{"role": "user", "content": "Plan a trip"}]


@pytest.mark.asyncio
async def test_itc_002_upstream_error_is_structured():
    payload = {"type": "error", "error": {"type": "rate_limit_error", "message": "Too many requests"}}
    fake = FakeAnthropic(status_code=429, payload=payload)

    with pytest.raises(GenerationServiceError) as exc:
        await fake.client().generate("Plan a trip", max_tokens=2048)

    assert exc.value.status_code == 429
    assert exc.value.message == "Too many requests"
    assert exc.value.details == payload


@pytest.mark.asyncio
async def test_itc_003_upstream_error_with_non_json_body():
    fake = FakeAnthropic(status_code=502, raw=b"<html>Bad Gateway</html>")

    with pytest.raises(GenerationServiceError) as exc:
        await fake.client().generate("Plan a trip", max_tokens=2048)

    assert exc.value.status_code == 502
    assert exc.value.message == "Failed to generate itinerary"
    assert exc.value.details == {"message": "<html>Bad Gateway</html>"}


def test_itc_004_from_env_reads_configuration(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")
    monkeypatch.setenv("ANTHROPIC_MODEL", "claude-sonnet-4-5")
    generation_client = GenerationClient.from_env()
    assert generation_client.api_key == "env-key"
    assert generation_client.model == "claude-sonnet-4-5"


# =================================================================================
# --- END-TO-END SCENARIOS ---
# =================================================================================

@pytest.mark.asyncio
async def test_itc_005_paris_three_day_trip():
    fake = FakeAnthropic()
    result = await process_itinerary_request("POST", json.dumps(PARIS_REQUEST), client=fake.client())

    assert result.status_code == 200
    itinerary = result.body["itinerary"]
    assert len(itinerary) == 3
    for day in itinerary:
        assert {"day", "title", "hotel", "activities"} <= set(day)

    prompt = json.loads(fake.requests[0].content)["messages"][0]["content"]
    assert "Paris, France" in prompt
    assert "3-day" in prompt


@pytest.mark.asyncio
async def test_itc_006_days_out_of_bounds():
    fake = FakeAnthropic()
    result = await process_itinerary_request("POST", json.dumps({**PARIS_REQUEST, "days": 45}), client=fake.client())

    assert result.status_code == 400
    assert result.body["error"] == "Days must be between 1 and 30"
    assert fake.requests == []


@pytest.mark.asyncio
async def test_itc_007_missing_api_key_makes_no_call(monkeypatch, mocker):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    spy = mocker.spy(httpx.AsyncClient, "post")

    result = await process_itinerary_request("POST", json.dumps(PARIS_REQUEST))

    assert result.status_code == 500
    assert "API key" in result.body["error"]
    assert spy.call_count == 0


@pytest.mark.asyncio
async def test_itc_008_upstream_failure_never_returns_200():
    payload = {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}
    fake = FakeAnthropic(status_code=529, payload=payload)

    result = await process_itinerary_request("POST", json.dumps(PARIS_REQUEST), client=fake.client())

    assert result.status_code == 529
    assert result.body == {"error": "Overloaded", "details": payload}


@pytest.mark.asyncio
async def test_itc_009_transport_failure_is_internal_error():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    generation_client = GenerationClient(api_key="test-key", transport=httpx.MockTransport(refuse))
    result = await process_itinerary_request("POST", json.dumps(PARIS_REQUEST), client=generation_client)

    assert result.status_code == 500
    assert result.body == {"error": "Internal server error"}


@pytest.mark.asyncio
async def test_itc_010_http_route_with_env_key(client: AsyncClient, monkeypatch, mocker):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")
    fake = FakeAnthropic(text="```json\n" + json.dumps(MOCK_ITINERARY) + "\n```")
    mocker.patch(
        "app.controllers.itinerary.GenerationClient.from_env",
        return_value=fake.client(),
    )

    response = await client.post("/api/itineraries/generate",
                                 json={**PARIS_REQUEST, "interests": ["history", "food"]})

    assert response.status_code == 200
    assert response.json() == {"itinerary": MOCK_ITINERARY}
    prompt = json.loads(fake.requests[0].content)["messages"][0]["content"]
    assert "Historic Paris, France" in prompt
    assert "Focus on these interests: history, food." in prompt
