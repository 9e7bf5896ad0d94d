"""Integration tests for characters, leaderboard and admin endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient


class TestCharacters:
    @pytest.mark.asyncio
    async def test_initialize_and_fetch(self, client: AsyncClient, player: dict):
        response = await client.get("/api/v1/characters/me", headers=player)
        assert response.status_code == 200
        data = response.json()
        assert data["character_name"] == "Alice"
        assert data["credits"] == 1000
        assert data["level"] == 1
        assert data["badges"] == []
        assert data["role"] == "user"

    @pytest.mark.asyncio
    async def test_reinitialize_rejected(self, client: AsyncClient, player: dict):
        response = await client.post("/api/v1/characters", json={"character_name": "Again"}, headers=player)
        assert response.status_code == 409
        me = (await client.get("/api/v1/characters/me", headers=player)).json()
        assert me["character_name"] == "Alice"

    @pytest.mark.asyncio
    async def test_no_character_yet(self, client: AsyncClient, headers_for):
        response = await client.get("/api/v1/characters/me", headers=headers_for("newbie"))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_anonymous(self, client: AsyncClient):
        assert (await client.get("/api/v1/characters/me")).status_code == 401

    @pytest.mark.asyncio
    async def test_leaderboard(self, client: AsyncClient, player: dict, admin: dict):
        event_id = (await client.post(
            "/api/v1/events",
            json={"title": "x", "options": [{"label": "A", "odds": 2}, {"label": "B", "odds": 2}]},
            headers=player,
        )).json()["id"]
        await client.post(f"/api/v1/events/{event_id}/bets", json={"option": "A", "amount": 100}, headers=admin)

        board = (await client.get("/api/v1/leaderboard")).json()
        assert [(e["rank"], e["character_name"], e["credits"]) for e in board] == [
            (1, "Alice", 1000),
            (2, "Teacher", 900),
        ]


class TestAdmin:
    @pytest.mark.asyncio
    async def test_bootstrap_then_admin_only(self, client: AsyncClient, headers_for):
        first = headers_for("first")
        second = headers_for("second")
        await client.get("/api/v1/loans", headers=second)  # provision the second user

        response = await client.post("/api/v1/admin/admins", json={"email": "first@example.com"}, headers=first)
        assert response.status_code == 200

        response = await client.post("/api/v1/admin/admins", json={"email": "second@example.com"}, headers=second)
        assert response.status_code == 403

        response = await client.post("/api/v1/admin/admins", json={"email": "SECOND@example.com"}, headers=first)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_email(self, client: AsyncClient, admin: dict):
        response = await client.post("/api/v1/admin/admins", json={"email": "ghost@example.com"}, headers=admin)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_add_xp(self, client: AsyncClient, player: dict, admin: dict):
        me = (await client.get("/api/v1/characters/me", headers=player)).json()
        response = await client.post(f"/api/v1/admin/users/{me['id']}/xp", json={"amount": 230}, headers=admin)
        assert response.status_code == 200
        assert response.json() == {"leveled_up": True, "new_level": 3, "new_xp": 230}

        response = await client.post(f"/api/v1/admin/users/{me['id']}/xp", json={"amount": 5}, headers=player)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_stipend_run_is_idempotent(self, client: AsyncClient, player: dict, admin: dict):
        response = await client.post("/api/v1/admin/stipend", json={"week_iso": "2026-W43"}, headers=admin)
        assert response.status_code == 200
        data = response.json()
        assert data["recipients"] == 2
        assert data["amount"] == 200
        assert data["already_paid"] is False

        response = await client.post("/api/v1/admin/stipend", json={"week_iso": "2026-W43"}, headers=admin)
        assert response.json()["already_paid"] is True

        me = (await client.get("/api/v1/characters/me", headers=player)).json()
        assert me["credits"] == 1200

    @pytest.mark.asyncio
    async def test_stipend_rejects_bad_week(self, client: AsyncClient, admin: dict):
        response = await client.post("/api/v1/admin/stipend", json={"week_iso": "2025-W53"}, headers=admin)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_stipend_requires_admin(self, client: AsyncClient, player: dict):
        response = await client.post("/api/v1/admin/stipend", json={}, headers=player)
        assert response.status_code == 403
