from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Literal, Any

BudgetTier = Literal["budget", "mid-range", "luxury"]
TripType = Literal["solo", "couple", "family", "friends"]


class ItineraryRequest(BaseModel):
    destination: str = Field(min_length=2, max_length=200)
    days: int = Field(ge=1, le=30)
    budget: BudgetTier
    trip_type: TripType = Field(alias="tripType")
    interests: List[str] = []

    model_config = ConfigDict(populate_by_name=True)


class Activity(BaseModel):
    when: str
    what: str
    notes: str = ""


class ItineraryDay(BaseModel):
    day: int = Field(ge=1)
    title: str
    hotel: str
    activities: List[Activity]


class ItineraryResponse(BaseModel):
    itinerary: List[ItineraryDay]


class HandlerResponse(BaseModel):
    status_code: int
    body: Dict[str, Any]
    headers: Dict[str, str] = {}
