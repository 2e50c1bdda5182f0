"""AI assistant and admin API tests."""

from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError


@pytest.mark.asyncio
async def test_chat_requires_auth(client: AsyncClient) -> None:
    response = await client.post("/api/v1/ai/chat", json={"message": "hi"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_chat_blank_message(client: AsyncClient, headers_for) -> None:
    response = await client.post("/api/v1/ai/chat", json={"message": "  "}, headers=headers_for(str(uuid.uuid4())))
    assert response.status_code == 400
    assert response.json()["detail"] == "Message is required"


@pytest.mark.asyncio
async def test_chat_daily_limit(client: AsyncClient, headers_for) -> None:
    headers = headers_for(str(uuid.uuid4()))
    for i in range(10):
        response = await client.post("/api/v1/ai/chat", json={"message": f"question {i}"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["remaining"] == 9 - i

    response = await client.post("/api/v1/ai/chat", json={"message": "one more"}, headers=headers)
    assert response.status_code == 429
    data = response.json()
    assert data["limit_reached"] is True
    assert data["remaining"] == 0
    assert data["limit"] == 10


@pytest.mark.asyncio
async def test_usage(client: AsyncClient, headers_for) -> None:
    headers = headers_for(str(uuid.uuid4()))
    await client.post("/api/v1/ai/chat", json={"message": "hello"}, headers=headers)
    response = await client.get("/api/v1/ai/usage", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["used"] == 1
    assert data["remaining"] == 9
    assert data["resets_at"].startswith("2026-03-16T00:00:00")


@pytest.mark.asyncio
async def test_admin_stats_forbidden_without_role(client: AsyncClient, headers_for) -> None:
    response = await client.get("/api/v1/admin/stats", headers=headers_for(str(uuid.uuid4())))
    assert response.status_code == 403
    assert response.json()["detail"] == "Admin access required"


@pytest.mark.asyncio
async def test_admin_stats_requires_auth(client: AsyncClient) -> None:
    response = await client.get("/api/v1/admin/stats")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_stats(client: AsyncClient, headers_for, fake_session) -> None:
    response = await client.get("/api/v1/admin/stats", headers=headers_for(str(uuid.uuid4()), role="admin"))
    assert response.status_code == 200
    stats = response.json()["stats"]
    assert stats["total_users"] == 3
    assert stats["total_points"] == 1570
    assert len(fake_session.executed) == 1


@pytest.mark.asyncio
async def test_admin_stats_database_down(client: AsyncClient, headers_for, fake_session) -> None:
    fake_session.error = OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))
    response = await client.get("/api/v1/admin/stats", headers=headers_for(str(uuid.uuid4()), role="admin"))
    assert response.status_code == 500
    assert response.json() == {"detail": "Database operation failed", "code": "UPSTREAM_FAILURE"}
