"""
AI itinerary generation with Google Gemini.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors

from heritage_lanka.config.settings import GeminiSettings, get_settings
from heritage_lanka.core.exceptions import UpstreamFailureError
from heritage_lanka.schemas.plan import GeneratePlanRequest
from heritage_lanka.services.plan_ingestion import DEFAULT_FEASIBILITY_SCORE, trip_length_days

logger = logging.getLogger(__name__)

SERVICE_NAME = "gemini"
MAX_CANDIDATE_ATTRACTIONS = 100
MIN_CANDIDATE_RATING = 4


def build_prompt(request: GeneratePlanRequest, total_days: int) -> str:
    candidates = [
        a for a in request.attractions
        if a.get("rating") is None or (a.get("rating") or 0) >= MIN_CANDIDATE_RATING
    ][:MAX_CANDIDATE_ATTRACTIONS]
    notes = f"- Notes: {request.description}\n" if request.description else ""

    return f"""You are a professional Sri Lanka travel planner. Generate a complete {total_days}-day itinerary.
Always cover ALL {total_days} days, even if the trip is ambitious.

Trip details:
- Dates: {request.from_date.date()} to {request.to_date.date()} ({total_days} days)
- Travelers: {request.number_of_people}
- Need guide: {"Yes" if request.needs_guide else "No"}
- Preferences: {", ".join(request.preferences)}
{notes}
Available attractions:
{json.dumps(candidates, indent=2, default=str)}

Rules:
- Pick at most {min(total_days * 2, 15)} attractions
- Group by proximity and avoid backtracking
- At most 2-3 main activities per day
- Keep driving under about 150 km per day; roads in Sri Lanka are slow

Output ONLY valid JSON (no markdown) with this structure:
{{
  "summary": "2-3 sentence overview",
  "selectedAttractions": [
    {{"id": "attr_1", "name": "Temple of the Sacred Tooth Relic", "location": "Kandy",
      "lat": 7.2936, "lng": 80.6413, "estimatedDuration": "2-3 hours"}}
  ],
  "dailyItinerary": [
    {{"day": 1, "title": "Kandy", "activities": [
      {{"time": "09:00 AM", "activity": "Visit the temple", "attractionId": "attr_1",
        "lat": 7.2936, "lng": 80.6413, "notes": "Dress modestly"}}
    ]}}
  ],
  "recommendations": ["Carry cash for temple donations"],
  "feasibilityScore": 88
}}
Every attraction and activity MUST include decimal lat/lng coordinates.
"""


def parse_plan_text(text: Optional[str]) -> Dict[str, Any]:
    """
    Parse the model's reply into a plan dict.

    Raises:
        ValueError: when the reply is empty, not JSON, or has no itinerary days
    """
    if not text:
        raise ValueError("Empty model response")
    cleaned = text.replace("```json", "").replace("```", "").strip()
    plan = json.loads(cleaned)
    if not isinstance(plan, dict):
        raise ValueError("Plan is not a JSON object")
    itinerary = plan.get("dailyItinerary")
    if not isinstance(itinerary, list) or not itinerary:
        raise ValueError("Plan has no daily itinerary")
    if not isinstance(plan.get("selectedAttractions"), list):
        raise ValueError("Plan has no attraction list")
    return plan


class PlanGenerator:
    """Asks Gemini for an itinerary and retries malformed replies"""

    def __init__(self, gemini_settings: Optional[GeminiSettings] = None, client: Any = None):
        self.settings = gemini_settings or get_settings().gemini
        self.client = client

    def _get_client(self):
        if self.client is None:
            if not self.settings.api_key:
                raise UpstreamFailureError(
                    SERVICE_NAME, "Gemini API key is not configured", retryable=False
                )
            self.client = genai.Client(api_key=self.settings.api_key)
        return self.client

    def generate_ai_plan(self, request: GeneratePlanRequest) -> Dict[str, Any]:
        """
        Generate an itinerary for the request.

        Args:
            request: Trip fields and candidate attractions

        Returns:
            Plan dict with ``selectedAttractions``, ``dailyItinerary``,
            ``summary``, ``recommendations``, ``feasibilityScore`` and ``totalDays``
        """
        total_days = trip_length_days(request.from_date, request.to_date)
        prompt = build_prompt(request, total_days)
        client = self._get_client()

        last_error: Optional[Exception] = None
        for attempt in range(1, self.settings.max_attempts + 1):
            try:
                response = client.models.generate_content(model=self.settings.model, contents=prompt)
            except genai_errors.ServerError as exc:
                raise UpstreamFailureError(SERVICE_NAME, f"Gemini server error: {exc}") from exc
            except genai_errors.APIError as exc:
                raise UpstreamFailureError(
                    SERVICE_NAME, f"Gemini rejected the request: {exc}", retryable=False
                ) from exc
            except httpx.HTTPError as exc:
                raise UpstreamFailureError(SERVICE_NAME, f"Gemini unreachable: {exc}") from exc

            try:
                plan = parse_plan_text(response.text)
            except ValueError as exc:
                # json.JSONDecodeError is a ValueError too
                last_error = exc
                logger.warning(
                    f"Plan generation attempt {attempt} returned an unusable plan: {exc}",
                    extra={"attempt": attempt},
                )
                continue

            if len(plan["dailyItinerary"]) < total_days:
                logger.warning(
                    f"Plan covers {len(plan['dailyItinerary'])} of {total_days} days",
                    extra={"total_days": total_days},
                )
            if not plan.get("feasibilityScore"):
                plan["feasibilityScore"] = DEFAULT_FEASIBILITY_SCORE
            plan["totalDays"] = total_days
            logger.info(
                f"Generated plan with {len(plan['selectedAttractions'])} attractions",
                extra={"attempt": attempt, "total_days": total_days},
            )
            return plan

        raise UpstreamFailureError(
            SERVICE_NAME,
            f"Failed to generate a valid travel plan after {self.settings.max_attempts} attempts",
            details={"last_error": str(last_error)},
        )
