"""
Plan schemas - manual plans, AI generation and AI plan acceptance
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Optional


class TripRequestBase(BaseModel):
    """Fields every plan request carries"""
    from_date: datetime
    to_date: datetime
    number_of_people: int = Field(1, ge=1, le=50)
    needs_guide: bool = False
    preferences: List[str] = Field(default_factory=list)
    description: Optional[str] = Field(None, max_length=2000)


class ManualLocation(BaseModel):
    """A stop picked by the traveler"""
    title: str = Field(..., min_length=1, max_length=255)
    latitude: float
    longitude: float
    address: Optional[str] = None
    district: Optional[str] = None
    category: Optional[str] = None
    rating: Optional[float] = None
    estimated_duration: Optional[str] = None
    day_number: Optional[int] = Field(None, ge=1)


class ManualPlanRequest(TripRequestBase):
    locations: List[ManualLocation] = Field(default_factory=list)


class GeneratePlanRequest(TripRequestBase):
    """Candidate attractions the model may choose from"""
    attractions: List[Dict[str, Any]] = Field(default_factory=list)


class AcceptPlanRequest(TripRequestBase):
    """
    An AI plan the traveler accepted, as returned by plan generation:
    ``selectedAttractions``, ``dailyItinerary``, ``summary``,
    ``recommendations`` and ``feasibilityScore``.
    """
    ai_plan: Dict[str, Any]


class PlanCreated(BaseModel):
    trip_id: int
    total_distance: float
    locations_created: int
    dropped_attractions: int = 0
