"""
IELTS Prep - Mock Test API Tests
"""
import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient

from ieltsprep.models.mock_test import MockTest
from tests.conftest import LISTENING_KEY, auth_headers

BASE = "/api/v1/mock-tests"


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test the health check endpoint."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    response = await client.get("/api/v1/health")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient, user):
    response = await client.get(f"{BASE}/active")
    assert response.status_code == 401
    assert response.json() == {"error": "Authentication required.", "code": "UNAUTHORIZED", "retry": False}

    response = await client.get(f"{BASE}/active", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401

    expired = auth_headers(user, expires_delta=timedelta(minutes=-1))
    response = await client.get(f"{BASE}/active", headers=expired)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_deactivated_account_is_forbidden(client: AsyncClient, db_session, user):
    user.is_active = False
    await db_session.commit()

    response = await client.get(f"{BASE}/active", headers=auth_headers(user))

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_create_and_fetch(client: AsyncClient, user):
    headers = auth_headers(user)

    response = await client.get(f"{BASE}/active", headers=headers)
    assert response.status_code == 200
    assert response.json() is None

    response = await client.post(BASE, json={"variant": "ACADEMIC"}, headers=headers)
    assert response.status_code == 201
    created = response.json()
    assert created["current_section"] == "LISTENING"
    assert created["timing"]["duration_minutes"] == 40

    response = await client.get(f"{BASE}/{created['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json()["progress"]["total_sections"] == 4

    response = await client.post(BASE, json={"variant": "ACADEMIC"}, headers=headers)
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "MOCK_TEST_IN_PROGRESS"
    assert body["existingTestId"] == created["id"]


@pytest.mark.asyncio
async def test_invalid_payloads_render_validation_failed(client: AsyncClient, user):
    headers = auth_headers(user)

    response = await client.post(BASE, json={"variant": "TOEFL"}, headers=headers)
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_FAILED"
    assert body["details"][0]["loc"] == ["body", "variant"]

    created = (await client.post(BASE, json={"variant": "GENERAL"}, headers=headers)).json()
    response = await client.post(f"{BASE}/{created['id']}/sections/maths/start", headers=headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid section"


@pytest.mark.asyncio
async def test_other_users_test_is_forbidden(client: AsyncClient, user, other_user):
    created = (await client.post(BASE, json={"variant": "ACADEMIC"}, headers=auth_headers(user))).json()

    response = await client.get(f"{BASE}/{created['id']}", headers=auth_headers(other_user))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_listening_start_and_submit(client: AsyncClient, user, clock, seeded_content):
    headers = auth_headers(user)
    created = (await client.post(BASE, json={"variant": "ACADEMIC"}, headers=headers)).json()

    response = await client.post(f"{BASE}/{created['id']}/sections/LISTENING/start", headers=headers)
    assert response.status_code == 200
    started = response.json()
    assert "answers" not in started["content"]
    assert started["timing"]["time_remaining_seconds"] == 40 * 60

    response = await client.post(
        f"{BASE}/{created['id']}/sections/READING/submit",
        json={"content_id": started["content_id"], "answers": {}},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "WRONG_SECTION"
    assert response.json()["currentSection"] == "LISTENING"

    clock.advance(minutes=45)
    response = await client.post(
        f"{BASE}/{created['id']}/sections/listening/submit",
        json={"content_id": started["content_id"], "answers": LISTENING_KEY, "time_spent_seconds": 2700},
        headers=headers,
    )
    assert response.status_code == 200
    submitted = response.json()
    assert submitted["score"]["band"] == 9.0
    assert submitted["next_section"] == "READING"

    summary = (await client.get(f"{BASE}/{created['id']}", headers=headers)).json()
    assert summary["current_section"] == "READING"
    assert summary["progress"]["completed_sections"] == ["LISTENING"]
    assert summary["section_times"]["listening"]["timeSpent"] == 2700


@pytest.mark.asyncio
async def test_duplicate_evaluation_returns_conflict(client: AsyncClient, db_session, lock_service, user):
    headers = auth_headers(user)
    created = (await client.post(BASE, json={"variant": "ACADEMIC"}, headers=headers)).json()
    test = await db_session.get(MockTest, uuid.UUID(created["id"]))
    test.current_section = "SPEAKING"
    await db_session.flush()

    payload = {"audio_parts": [{"part": 1, "transcript": "I live in a small town."}]}
    async with lock_service.evaluation_lock(user.id, "SPEAKING"):
        response = await client.post(
            f"{BASE}/{created['id']}/sections/speaking/submit", json=payload, headers=headers
        )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "DUPLICATE_SUBMISSION"
    assert body["retry"] is True

    response = await client.post(
        f"{BASE}/{created['id']}/sections/speaking/submit", json=payload, headers=headers
    )
    assert response.status_code == 200
    submitted = response.json()
    assert submitted["is_test_complete"] is True
    assert submitted["evaluation"][0]["status"] == "SCORED"
    assert submitted["evaluation"][0]["band"] == 6.0


@pytest.mark.asyncio
async def test_abandon(client: AsyncClient, user):
    headers = auth_headers(user)
    created = (await client.post(BASE, json={"variant": "GENERAL"}, headers=headers)).json()

    response = await client.post(f"{BASE}/{created['id']}/abandon", headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["status"] == "ABANDONED"

    response = await client.post(f"{BASE}/{created['id']}/abandon", headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATE"

    response = await client.get(f"{BASE}/active", headers=headers)
    assert response.json() is None

    # A new test may be started once the previous one is abandoned
    response = await client.post(BASE, json={"variant": "ACADEMIC"}, headers=headers)
    assert response.status_code == 201
