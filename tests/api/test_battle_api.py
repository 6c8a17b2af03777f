"""Tests for the battle HTTP endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

BATTLES = "/api/v1/battles"


class TestQueueEndpoints:
    @pytest.mark.asyncio
    async def test_pairing_through_the_queue(self, client: AsyncClient, make_profile, auth_headers, words) -> None:
        alice = await make_profile("alice")
        bob = await make_profile("bob")

        first = await client.post(f"{BATTLES}/queue", json={}, headers=auth_headers(alice))
        assert first.status_code == 200
        assert first.json()["status"] == "pending"
        assert first.json()["words"] == []

        second = await client.post(f"{BATTLES}/queue", json={}, headers=auth_headers(bob))
        assert second.status_code == 200
        match = second.json()
        assert match["id"] == first.json()["id"]
        assert match["status"] == "in_progress"
        assert match["player1_id"] == alice.id
        assert match["player2_id"] == bob.id
        assert len(match["words"]) == 10
        assert {"id", "word", "meaning"} <= set(match["words"][0])

    @pytest.mark.asyncio
    async def test_queue_while_playing_conflicts(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        await client.post(f"{BATTLES}/ai", json={}, headers=auth_headers(alice))

        resp = await client.post(f"{BATTLES}/queue", json={}, headers=auth_headers(alice))
        assert resp.status_code == 409
        assert resp.json()["detail"] == "Already in a match"

    @pytest.mark.asyncio
    async def test_active_match(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        empty = await client.get(f"{BATTLES}/active", headers=auth_headers(alice))
        assert empty.status_code == 200
        assert empty.json() is None

        started = await client.post(f"{BATTLES}/ai", json={"free": True}, headers=auth_headers(alice))
        assert started.json()["is_ai"] is True
        assert started.json()["is_free"] is True

        resp = await client.get(f"{BATTLES}/active", headers=auth_headers(alice))
        data = resp.json()
        assert data["match"]["id"] == started.json()["id"]
        assert 0 < data["remaining_seconds"] <= 60


class TestMatchEndpoints:
    @pytest.mark.asyncio
    async def test_progress_explicit_and_packed(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        match_id = (await client.post(f"{BATTLES}/ai", json={}, headers=auth_headers(alice))).json()["id"]

        resp = await client.post(
            f"{BATTLES}/{match_id}/progress",
            json={"points": 5, "questions_answered": 6, "ai": {"score": 10403}},
            headers=auth_headers(alice),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert (data["player1_points"], data["player1_answered"], data["player1_finished"]) == (5, 6, False)
        assert (data["player2_points"], data["player2_answered"], data["player2_finished"]) == (3, 4, True)

    @pytest.mark.asyncio
    async def test_progress_requires_points_or_score(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        match_id = (await client.post(f"{BATTLES}/ai", json={}, headers=auth_headers(alice))).json()["id"]

        resp = await client.post(
            f"{BATTLES}/{match_id}/progress", json={"questions_answered": 1}, headers=auth_headers(alice),
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_outsider_is_forbidden(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        eve = await make_profile("eve")
        match_id = (await client.post(f"{BATTLES}/ai", json={}, headers=auth_headers(alice))).json()["id"]

        resp = await client.get(f"{BATTLES}/{match_id}", headers=auth_headers(eve))
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_match(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        resp = await client.get(f"{BATTLES}/9999", headers=auth_headers(alice))
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_cancel_then_cancel_again(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        match_id = (await client.post(f"{BATTLES}/queue", json={}, headers=auth_headers(alice))).json()["id"]

        resp = await client.post(f"{BATTLES}/{match_id}/cancel", headers=auth_headers(alice))
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"

        again = await client.post(f"{BATTLES}/{match_id}/cancel", headers=auth_headers(alice))
        assert again.status_code == 400

    @pytest.mark.asyncio
    async def test_stats_for_new_player(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        resp = await client.get(f"{BATTLES}/stats", headers=auth_headers(alice))
        assert resp.status_code == 200
        assert resp.json()["rating"] == 1000
        assert resp.json()["win_rate"] == 0.0
        history = await client.get(f"{BATTLES}/history", headers=auth_headers(alice))
        assert history.json() == []


class TestSpectateEndpoint:
    @pytest.mark.asyncio
    async def test_friend_watches_stranger_refused(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        carol = await make_profile("carol")
        dave = await make_profile("dave")
        sent = await client.post(
            "/api/v1/social/friend-requests", json={"receiver_id": carol.id}, headers=auth_headers(alice)
        )
        await client.post(
            f"/api/v1/social/friend-requests/{sent.json()['id']}/respond",
            json={"accept": True},
            headers=auth_headers(carol),
        )
        started = await client.post(f"{BATTLES}/ai", json={}, headers=auth_headers(alice))
        match_id = started.json()["id"]

        resp = await client.get(f"{BATTLES}/{match_id}/spectate", headers=auth_headers(carol))
        assert resp.status_code == 200
        data = resp.json()
        assert data["player1"]["username"] == "alice"
        assert data["player2"]["username"] == "AI"
        assert "words" not in data

        refused = await client.get(f"{BATTLES}/{match_id}/spectate", headers=auth_headers(dave))
        assert refused.status_code == 403

        missing = await client.get(f"{BATTLES}/424242/spectate", headers=auth_headers(carol))
        assert missing.status_code == 404
