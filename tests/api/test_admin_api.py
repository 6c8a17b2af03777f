"""Tests for admin, function-trigger and health endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.jobs.tasks import JOBS


class TestAdminEndpoints:
    @pytest.mark.asyncio
    async def test_requires_admin(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        resp = await client.post("/api/v1/admin/coins", json={"amount": 10}, headers=auth_headers(alice))
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Admin access required"

    @pytest.mark.asyncio
    async def test_grant_coins(
        self, client: AsyncClient, db_session: AsyncSession, make_profile, auth_headers,
    ) -> None:
        admin = await make_profile("root", admin=True)
        bob = await make_profile("bob")

        resp = await client.post(
            "/api/v1/admin/coins", json={"amount": 300, "profile_id": bob.id}, headers=auth_headers(admin),
        )
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "profiles_credited": 1, "amount": 300}

        await db_session.refresh(bob)
        assert bob.coins == 300

    @pytest.mark.asyncio
    async def test_grant_coins_unknown_profile(self, client: AsyncClient, make_profile, auth_headers) -> None:
        admin = await make_profile("root", admin=True)
        resp = await client.post(
            "/api/v1/admin/coins", json={"amount": 5, "profile_id": 9999}, headers=auth_headers(admin),
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_grant_coins_rejects_zero(self, client: AsyncClient, make_profile, auth_headers) -> None:
        admin = await make_profile("root", admin=True)
        resp = await client.post("/api/v1/admin/coins", json={"amount": 0}, headers=auth_headers(admin))
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_create_season(self, client: AsyncClient, make_profile, auth_headers) -> None:
        admin = await make_profile("root", admin=True)
        resp = await client.post(
            "/api/v1/admin/seasons",
            json={
                "name": "Winter",
                "grade": 9,
                "start_date": "2026-12-01T00:00:00Z",
                "end_date": "2027-02-28T00:00:00Z",
            },
            headers=auth_headers(admin),
        )
        assert resp.status_code == 201
        assert resp.json()["name"] == "Winter"
        assert resp.json()["is_active"] is True

    @pytest.mark.asyncio
    async def test_grant_role(self, client: AsyncClient, make_profile, auth_headers) -> None:
        admin = await make_profile("root", admin=True)
        bob = await make_profile("bob")

        url = f"/api/v1/admin/profiles/{bob.id}/roles"
        first = await client.post(url, json={"role": "admin"}, headers=auth_headers(admin))
        assert first.status_code == 201
        assert first.json() == {"granted": True}

        # Bob can now reach admin routes
        resp = await client.get("/api/v1/functions", headers=auth_headers(bob))
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_cannot_delete_self(self, client: AsyncClient, make_profile, auth_headers) -> None:
        admin = await make_profile("root", admin=True)
        resp = await client.delete(f"/api/v1/admin/profiles/{admin.id}", headers=auth_headers(admin))
        assert resp.status_code == 400


class TestFunctionEndpoints:
    @pytest.mark.asyncio
    async def test_list(self, client: AsyncClient, make_profile, auth_headers) -> None:
        admin = await make_profile("root", admin=True)
        resp = await client.get("/api/v1/functions", headers=auth_headers(admin))
        assert "award-season-rewards" in resp.json()["functions"]

    @pytest.mark.asyncio
    async def test_run(self, client: AsyncClient, make_profile, auth_headers) -> None:
        admin = await make_profile("root", admin=True)
        resp = await client.post("/api/v1/functions/expire-stale-matches", headers=auth_headers(admin))
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Expired 0 stale matches"}

    @pytest.mark.asyncio
    async def test_failure_envelope(self, client: AsyncClient, make_profile, auth_headers, monkeypatch) -> None:
        async def broken(db, redis, now):
            raise RuntimeError("match table locked")

        monkeypatch.setitem(JOBS, "expire-stale-matches", broken)
        admin = await make_profile("root", admin=True)
        resp = await client.post("/api/v1/functions/expire-stale-matches", headers=auth_headers(admin))
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "match table locked"}

    @pytest.mark.asyncio
    async def test_unknown_function(self, client: AsyncClient, make_profile, auth_headers) -> None:
        admin = await make_profile("root", admin=True)
        resp = await client.post("/api/v1/functions/format-disk", headers=auth_headers(admin))
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_non_admin(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        resp = await client.post("/api/v1/functions/expire-stale-matches", headers=auth_headers(alice))
        assert resp.status_code == 403


class TestHealthEndpoints:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_version(self, client: AsyncClient) -> None:
        resp = await client.get("/version")
        assert resp.json()["version"] == "0.1.0"

    @pytest.mark.asyncio
    async def test_ready_with_redis_disabled(self, client: AsyncClient) -> None:
        resp = await client.get("/ready")
        data = resp.json()
        assert data["checks"] == {"database": "ok", "redis": "disabled"}
        assert data["status"] == "ready"
        assert "total_connections" in data["websockets"]


class TestEnergyEndpoints:
    @pytest.mark.asyncio
    async def test_purchase(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice", coins=100, energy=5)
        resp = await client.post("/api/v1/energy/purchase", json={"amount": 3}, headers=auth_headers(alice))
        assert resp.status_code == 200
        assert resp.json() == {"energy": 8, "coins": 75, "cost": 25}

    @pytest.mark.asyncio
    async def test_purchase_without_coins(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        resp = await client.post("/api/v1/energy/purchase", json={"amount": 1}, headers=auth_headers(alice))
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Insufficient coins"

    @pytest.mark.asyncio
    async def test_status_lists_packs(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        resp = await client.get("/api/v1/energy", headers=auth_headers(alice))
        data = resp.json()
        assert data["energy"] == 10
        assert {p["amount"] for p in data["packs"]} == {1, 3, 5, 10}
