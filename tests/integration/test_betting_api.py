"""Integration tests for the betting API."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

OPTIONS = [{"label": "A", "odds": 2.0}, {"label": "B", "odds": 1.5}]


async def _balance(client: AsyncClient, headers: dict[str, str]) -> int:
    response = await client.get("/api/v1/characters/me", headers=headers)
    assert response.status_code == 200
    return response.json()["credits"]


async def _create_event(client: AsyncClient, headers: dict[str, str], **extra) -> int:
    response = await client.post(
        "/api/v1/events",
        json={"title": "Friday quiz winner", "options": OPTIONS, **extra},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


class TestBettingLifecycle:
    @pytest.mark.asyncio
    async def test_place_and_win(self, client: AsyncClient, player: dict, admin: dict):
        event_id = await _create_event(client, admin)

        response = await client.post(
            f"/api/v1/events/{event_id}/bets", json={"option": "A", "amount": 100}, headers=player,
        )
        assert response.status_code == 201
        assert await _balance(client, player) == 900

        response = await client.post(
            f"/api/v1/events/{event_id}/resolve", json={"winning_option": "A"}, headers=admin,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["winners"] == 1
        assert data["total_payout"] == 200
        assert data["already_resolved"] is False
        assert await _balance(client, player) == 1100

    @pytest.mark.asyncio
    async def test_resolve_twice_is_noop(self, client: AsyncClient, player: dict):
        event_id = await _create_event(client, player)
        await client.post(f"/api/v1/events/{event_id}/bets", json={"option": "B", "amount": 10}, headers=player)
        await client.post(f"/api/v1/events/{event_id}/resolve", json={"winning_option": "B"}, headers=player)
        balance = await _balance(client, player)

        response = await client.post(
            f"/api/v1/events/{event_id}/resolve", json={"winning_option": "A"}, headers=player,
        )
        assert response.status_code == 200
        assert response.json()["already_resolved"] is True
        assert await _balance(client, player) == balance

        event = (await client.get(f"/api/v1/events/{event_id}")).json()
        assert event["status"] == "resolved"
        assert event["resolved_option"] == "B"

    @pytest.mark.asyncio
    async def test_cancel_refunds(self, client: AsyncClient, player: dict):
        event_id = await _create_event(client, player)
        await client.post(f"/api/v1/events/{event_id}/bets", json={"option": "A", "amount": 250}, headers=player)

        response = await client.delete(f"/api/v1/events/{event_id}/bets/me", headers=player)
        assert response.status_code == 200
        assert response.json()["refunded"] == 250
        assert await _balance(client, player) == 1000

    @pytest.mark.asyncio
    async def test_double_bet_conflict(self, client: AsyncClient, player: dict):
        event_id = await _create_event(client, player)
        await client.post(f"/api/v1/events/{event_id}/bets", json={"option": "A", "amount": 10}, headers=player)

        response = await client.post(
            f"/api/v1/events/{event_id}/bets", json={"option": "B", "amount": 10}, headers=player,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "InvariantViolation"
        assert await _balance(client, player) == 990

    @pytest.mark.asyncio
    async def test_insufficient_credits(self, client: AsyncClient, player: dict):
        event_id = await _create_event(client, player)
        response = await client.post(
            f"/api/v1/events/{event_id}/bets", json={"option": "A", "amount": 5000}, headers=player,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "InsufficientCredits"
        assert await _balance(client, player) == 1000

    @pytest.mark.asyncio
    async def test_close_by_non_creator_forbidden(self, client: AsyncClient, player: dict, headers_for):
        event_id = await _create_event(client, player)
        other = headers_for("mallory")
        response = await client.post(f"/api/v1/events/{event_id}/close", headers=other)
        assert response.status_code == 403
        assert response.json()["code"] == "NotAuthorized"

    @pytest.mark.asyncio
    async def test_close_blocks_new_bets(self, client: AsyncClient, player: dict):
        event_id = await _create_event(client, player)
        response = await client.post(f"/api/v1/events/{event_id}/close", headers=player)
        assert response.status_code == 200

        response = await client.post(
            f"/api/v1/events/{event_id}/bets", json={"option": "A", "amount": 10}, headers=player,
        )
        assert response.status_code == 409


class TestBettingErrors:
    @pytest.mark.asyncio
    async def test_anonymous_mutation(self, client: AsyncClient):
        response = await client.post("/api/v1/events", json={"title": "x", "options": OPTIONS})
        assert response.status_code == 401
        assert response.json()["code"] == "NotAuthenticated"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/events",
            json={"title": "x", "options": OPTIONS},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_one_option_is_invalid(self, client: AsyncClient, player: dict):
        response = await client.post(
            "/api/v1/events", json={"title": "x", "options": OPTIONS[:1]}, headers=player,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "InvalidArgument"

    @pytest.mark.asyncio
    async def test_oversized_numbers_are_rejected(self, client: AsyncClient, player: dict):
        event_id = await _create_event(client, player)
        response = await client.post(
            f"/api/v1/events/{event_id}/bets", json={"option": "A", "amount": 10**20}, headers=player,
        )
        assert response.status_code == 422
        assert response.json()["code"] == "InvalidArgument"
        assert await _balance(client, player) == 1000

        response = await client.post(
            "/api/v1/events",
            json={"title": "x", "options": [{"label": "A", "odds": 1e20}, {"label": "B", "odds": 2}]},
            headers=player,
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_event(self, client: AsyncClient, player: dict):
        response = await client.post(
            "/api/v1/events/999/bets", json={"option": "A", "amount": 10}, headers=player,
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NotFound"


class TestBettingQueries:
    @pytest.mark.asyncio
    async def test_listings(self, client: AsyncClient, player: dict, admin: dict):
        open_id = await _create_event(client, player)
        closed_id = await _create_event(client, player)
        await client.post(f"/api/v1/events/{closed_id}/close", headers=player)
        await client.post(f"/api/v1/events/{open_id}/bets", json={"option": "A", "amount": 5}, headers=player)

        open_events = (await client.get("/api/v1/events")).json()
        assert [e["id"] for e in open_events] == [open_id]

        mine = (await client.get("/api/v1/events/mine", headers=player)).json()
        assert {e["id"] for e in mine} == {open_id, closed_id}

        assert (await client.get("/api/v1/events/all", headers=player)).status_code == 403
        assert len((await client.get("/api/v1/events/all", headers=admin)).json()) == 2

        counts = (await client.get(f"/api/v1/events/bet-counts?ids={open_id}&ids={closed_id}")).json()
        assert counts["counts"] == {str(open_id): 1, str(closed_id): 0}

        bets = (await client.get("/api/v1/bets/mine", headers=player)).json()
        assert [(b["event_id"], b["option"], b["odds"]) for b in bets] == [(open_id, "A", 2.0)]

    @pytest.mark.asyncio
    async def test_anonymous_queries_are_empty(self, client: AsyncClient):
        assert (await client.get("/api/v1/events/mine")).json() == []
        assert (await client.get("/api/v1/bets/mine")).json() == []
