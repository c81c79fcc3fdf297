"""
End-to-end guided trip: plan, accept, pay, verify, start, complete, review
"""
import json
import time

import pytest
from fastapi.testclient import TestClient

from heritage_lanka.core.clock import get_clock
from heritage_lanka.core.dependencies import get_checkout_client
from heritage_lanka.main import app
from heritage_lanka.services.checkout_client import sign_webhook_payload
from tests.factories import PASSWORD, FakeCheckout, make_admin

API = "/api"


@pytest.fixture
def client(db, clock):
    checkout = FakeCheckout()
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_checkout_client] = lambda: checkout
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _register(client, email, **extra):
    body = {"email": email, "password": "Passw0rd!", "name": extra.pop("name", "User"), **extra}
    r = client.post("/auth/register", json=body)
    assert r.status_code == 201, r.text
    return {"Authorization": f"Bearer {r.json()['data']['token']['access_token']}"}


def _webhook(client, event_type, session_id):
    body = json.dumps({"type": event_type, "data": {"object": {"id": session_id}}}).encode()
    header = sign_webhook_payload(body, "whsec_test", int(time.time()))
    return client.post(
        f"{API}/webhooks/payments",
        content=body,
        headers={"Stripe-Signature": header, "Content-Type": "application/json"},
    )


def _admin_headers(client, db):
    make_admin(db, email="admin@example.com")
    r = client.post("/auth/login", json={"email": "admin@example.com", "password": PASSWORD})
    return {"Authorization": f"Bearer {r.json()['data']['token']['access_token']}"}


def _verify_guides(client, db):
    admin = _admin_headers(client, db)
    pending = client.get(f"{API}/admin/guides", headers=admin, params={"status": "PENDING"}).json()["data"]
    for guide in pending:
        r = client.post(f"{API}/admin/guides/{guide['id']}/verify", headers=admin)
        assert r.status_code == 200, r.text
        assert r.json()["data"]["status"] == "VERIFIED"
    return admin


def _manual_plan(client, headers, needs_guide=True):
    r = client.post(f"{API}/traveler/plans/manual", headers=headers, json={
        "from_date": "2026-03-17T08:00:00",
        "to_date": "2026-03-18T18:00:00",
        "number_of_people": 2,
        "needs_guide": needs_guide,
        "preferences": ["culture"],
        "locations": [
            {"title": "Temple of the Tooth", "latitude": 7.2936, "longitude": 80.6413},
            {"title": "Peradeniya Gardens", "latitude": 7.2690, "longitude": 80.5957},
        ],
    })
    assert r.status_code == 201, r.text
    return r.json()["data"]["trip_id"]


def test_guided_trip_lifecycle(client, db):
    traveler = _register(client, "traveler@example.com", name="Nimal", phone="+94771111111")
    guide = _register(
        client, "guide@example.com", name="Kamal", role="GUIDE", nic="199012345678",
        phone="+94772222222", languages=["Sinhala", "English"],
    )
    trip_id = _manual_plan(client, traveler)

    available = client.get(f"{API}/guider/trips/available", headers=guide).json()["data"]
    assert [item["trip"]["id"] for item in available] == [trip_id]
    assert available[0]["shared_languages"] == ["English"]

    # a newly registered guide waits for an admin
    r = client.get(f"{API}/guider/verification-status", headers=guide)
    assert r.json()["data"]["status"] == "PENDING"
    r = client.post(f"{API}/guider/trips/{trip_id}/accept", headers=guide)
    assert r.status_code == 409
    assert r.json()["error_code"] == "PRECONDITION_FAILED"
    _verify_guides(client, db)

    r = client.post(f"{API}/guider/trips/{trip_id}/accept", headers=guide)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["status"] == "CONFIRMED"
    assert r.json()["data"]["booking_status"] == "ACCEPTED"

    # starting before payment is a precondition failure
    r = client.post(f"{API}/traveler/trips/{trip_id}/start", headers=traveler)
    assert r.status_code == 409
    assert r.json()["error_code"] == "PRECONDITION_FAILED"

    r = client.post(f"{API}/traveler/trips/{trip_id}/payment", headers=traveler)
    assert r.status_code == 201, r.text
    checkout = r.json()["data"]
    assert checkout["payment"]["status"] == "PENDING"

    r = _webhook(client, "checkout.session.completed", "cs_test_1")
    assert r.status_code == 200, r.text
    r = client.get(f"{API}/traveler/trips/{trip_id}/payment", headers=traveler)
    assert r.json()["data"]["status"] == "PAID"

    r = client.post(f"{API}/traveler/trips/{trip_id}/otp", headers=traveler,
                    json={"latitude": 7.2936, "longitude": 80.6413})
    assert r.status_code == 201, r.text
    otp = r.json()["data"]["otp"]

    r = client.post(f"{API}/guider/trips/{trip_id}/verify", headers=guide,
                    json={"otp": otp, "latitude": 7.2940, "longitude": 80.6415})
    assert r.status_code == 200, r.text
    assert r.json()["data"]["verified"] is True
    assert "otp" not in r.json()["data"]
    r = client.get(f"{API}/traveler/trips/{trip_id}/otp", headers=traveler)
    assert r.json()["data"]["verified"] is True

    r = client.post(f"{API}/traveler/trips/{trip_id}/start", headers=traveler)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["status"] == "IN_PROGRESS"

    detail = client.get(f"{API}/traveler/trips/{trip_id}", headers=traveler).json()["data"]
    assert detail["guide"]["phone"] == "+94772222222"
    assert [loc["title"] for loc in detail["locations"]] == ["Temple of the Tooth", "Peradeniya Gardens"]

    dashboard = client.get(f"{API}/guider/dashboard-stats", headers=guide).json()["data"]
    assert dashboard["current_trip"]["trip"]["id"] == trip_id
    assert dashboard["current_trip"]["traveler_phone"] == "+94771111111"

    r = client.post(f"{API}/traveler/trips/{trip_id}/complete", headers=traveler)
    assert r.json()["data"]["status"] == "COMPLETED"
    r = client.get(f"{API}/traveler/trips/{trip_id}/payment", headers=traveler)
    assert r.json()["data"]["status"] == "RELEASED"
    stats = client.get(f"{API}/guider/jobs/statistics", headers=guide).json()["data"]
    assert (stats["completed"], stats["in_progress"], stats["total"]) == (1, 0, 1)

    r = client.post(f"{API}/reviews", headers=traveler, json={"trip_id": trip_id, "rating": 5, "comment": "Great"})
    assert r.status_code == 201, r.text
    r = client.post(f"{API}/reviews", headers=traveler, json={"trip_id": trip_id, "rating": 4})
    assert r.status_code == 409


def test_other_travelers_trip_is_not_found(client):
    owner = _register(client, "owner@example.com")
    stranger = _register(client, "stranger@example.com")
    trip_id = _manual_plan(client, owner, needs_guide=False)

    r = client.get(f"{API}/traveler/trips/{trip_id}", headers=stranger)
    assert r.status_code == 404
    r = client.delete(f"{API}/traveler/trips/{trip_id}", headers=stranger)
    assert r.status_code == 404


def test_self_guided_confirm_and_delete(client):
    traveler = _register(client, "solo@example.com")
    trip_id = _manual_plan(client, traveler, needs_guide=False)

    r = client.post(f"{API}/traveler/trips/{trip_id}/confirm", headers=traveler)
    assert r.json()["data"]["status"] == "CONFIRMED"

    r = client.post(f"{API}/traveler/trips/{trip_id}/complete", headers=traveler)
    assert r.status_code == 400
    assert r.json()["error_code"] == "INVALID_TRANSITION"

    r = client.delete(f"{API}/traveler/trips/{trip_id}", headers=traveler)
    assert r.status_code == 204
    assert client.get(f"{API}/traveler/trips", headers=traveler).json()["data"] == []


def test_webhook_rejects_bad_signature(client):
    body = json.dumps({"type": "checkout.session.completed", "data": {"object": {"id": "cs_x"}}}).encode()
    r = client.post(
        f"{API}/webhooks/payments",
        content=body,
        headers={"Stripe-Signature": "t=1,v1=deadbeef", "Content-Type": "application/json"},
    )
    assert r.status_code == 422
    assert r.json()["error_code"] == "VALIDATION_ERROR"


def test_webhook_rejects_signed_non_object_body(client):
    body = json.dumps([1, 2]).encode()
    header = sign_webhook_payload(body, "whsec_test", int(time.time()))
    r = client.post(
        f"{API}/webhooks/payments",
        content=body,
        headers={"Stripe-Signature": header, "Content-Type": "application/json"},
    )
    assert r.status_code == 422
    assert r.json()["error_code"] == "VALIDATION_ERROR"


def test_accepted_ai_plan_with_fractional_score_stays_readable(client):
    traveler = _register(client, "planner@example.com", name="Sunil")
    r = client.post(f"{API}/traveler/plans/accept", headers=traveler, json={
        "from_date": "2026-03-17T08:00:00",
        "to_date": "2026-03-18T18:00:00",
        "number_of_people": 1,
        "ai_plan": {
            "summary": "Kandy in a day",
            "selectedAttractions": [{"id": "a1", "name": "Temple of the Tooth", "lat": 7.2936, "lng": 80.6413}],
            "dailyItinerary": [{"day": 1, "activities": [{"attractionId": "a1"}]}],
            "recommendations": "Bring a shawl",
            "feasibilityScore": 87.5,
        },
    })
    assert r.status_code == 201, r.text
    trip_id = r.json()["data"]["trip_id"]

    r = client.get(f"{API}/traveler/trips/{trip_id}", headers=traveler)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["feasibility_score"] == 88
    assert r.json()["data"]["ai_recommendations"] == []


def test_admin_rejects_guide(client, db):
    guide = _register(client, "newguide@example.com", name="Ruwan", role="GUIDE", nic="198876543210")
    admin = _admin_headers(client, db)
    pending = client.get(f"{API}/admin/guides", headers=admin, params={"status": "PENDING"}).json()["data"]
    assert [g["email"] for g in pending] == ["newguide@example.com"]
    guide_id = pending[0]["id"]

    r = client.post(f"{API}/admin/guides/{guide_id}/reject", headers=admin, json={"reason": ""})
    assert r.status_code == 422
    r = client.post(f"{API}/admin/guides/{guide_id}/reject", headers=admin, json={"reason": "NIC mismatch"})
    assert r.status_code == 200, r.text

    status = client.get(f"{API}/guider/verification-status", headers=guide).json()["data"]
    assert status["status"] == "REJECTED"
    assert status["rejection_reason"] == "NIC mismatch"
    assert client.get(f"{API}/admin/guides", headers=guide).status_code == 403


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["database"] == "ok"
