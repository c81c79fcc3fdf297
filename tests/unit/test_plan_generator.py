"""
Unit tests for Gemini itinerary generation with a stubbed client
"""
import json
from datetime import datetime
from types import SimpleNamespace

import httpx
import pytest

from heritage_lanka.config.settings import GeminiSettings
from heritage_lanka.core.exceptions import UpstreamFailureError
from heritage_lanka.schemas.plan import GeneratePlanRequest
from heritage_lanka.services.plan_generator import PlanGenerator, build_prompt, parse_plan_text

PLAN = {
    "summary": "Two days in Kandy",
    "selectedAttractions": [{"id": "attr_1", "name": "Temple of the Tooth", "lat": 7.29, "lng": 80.64}],
    "dailyItinerary": [{"day": 1, "activities": [{"attractionId": "attr_1"}]}],
    "recommendations": [],
}


class StubModels:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = 0

    def generate_content(self, model, contents):
        self.calls += 1
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(text=reply)


def _generator(replies, attempts=3):
    client = SimpleNamespace(models=StubModels(replies))
    settings = GeminiSettings(api_key="test-key", max_attempts=attempts)
    return PlanGenerator(settings, client), client.models


def _request():
    return GeneratePlanRequest(
        from_date=datetime(2026, 4, 1),
        to_date=datetime(2026, 4, 2),
        number_of_people=2,
        preferences=["culture", "nature"],
        attractions=[
            {"name": "Temple of the Tooth", "rating": 4.8},
            {"name": "Roadside stall", "rating": 2.1},
        ],
    )


def test_prompt_filters_low_rated_attractions():
    prompt = build_prompt(_request(), 2)

    assert "Temple of the Tooth" in prompt
    assert "Roadside stall" not in prompt
    assert "2-day itinerary" in prompt


def test_parse_plan_text_strips_code_fences():
    plan = parse_plan_text("```json\n" + json.dumps(PLAN) + "\n```")
    assert plan["summary"] == "Two days in Kandy"

    with pytest.raises(ValueError):
        parse_plan_text("")
    with pytest.raises(ValueError):
        parse_plan_text(json.dumps({"summary": "no days", "dailyItinerary": []}))


def test_retries_until_plan_parses():
    generator, models = _generator(["not json", json.dumps(PLAN)])

    plan = generator.generate_ai_plan(_request())

    assert models.calls == 2
    assert plan["totalDays"] == 2
    assert plan["feasibilityScore"] == 80


def test_gives_up_after_max_attempts():
    generator, models = _generator(["nope", "still nope"], attempts=2)

    with pytest.raises(UpstreamFailureError) as exc_info:
        generator.generate_ai_plan(_request())

    assert models.calls == 2
    assert "after 2 attempts" in exc_info.value.message


def test_transport_error_is_retryable_upstream_failure():
    generator, _ = _generator([httpx.ConnectError("connection refused")])

    with pytest.raises(UpstreamFailureError) as exc_info:
        generator.generate_ai_plan(_request())

    assert exc_info.value.retryable is True
    assert exc_info.value.status_code == 504


def test_missing_api_key():
    generator = PlanGenerator(GeminiSettings(api_key=None))

    with pytest.raises(UpstreamFailureError) as exc_info:
        generator.generate_ai_plan(_request())

    assert exc_info.value.retryable is False
