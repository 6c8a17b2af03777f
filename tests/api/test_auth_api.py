"""Tests for the auth and profile HTTP endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

REGISTER = "/api/v1/auth/register"
LOGIN = "/api/v1/auth/login"


def _signup(email: str = "alice@example.com", username: str = "alice", **extra: object) -> dict:
    return {"email": email, "password": "wordduel123", "username": username, "grade": 7, **extra}


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_returns_token(self, client: AsyncClient) -> None:
        resp = await client.post(REGISTER, json=_signup(email="Alice@Example.com", class_name="7A"))
        assert resp.status_code == 201
        data = resp.json()
        assert data["access_token"]
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == "alice@example.com"
        assert data["profile_id"] > 0

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client: AsyncClient) -> None:
        await client.post(REGISTER, json=_signup())
        resp = await client.post(REGISTER, json=_signup(username="alice2"))
        assert resp.status_code == 409
        assert "already" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_duplicate_username(self, client: AsyncClient) -> None:
        await client.post(REGISTER, json=_signup())
        resp = await client.post(REGISTER, json=_signup(email="other@example.com", username="ALICE"))
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_weak_password(self, client: AsyncClient) -> None:
        body = {**_signup(), "password": "onlyletters"}
        resp = await client.post(REGISTER, json=body)
        assert resp.status_code == 400
        assert "digit" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_grade(self, client: AsyncClient) -> None:
        resp = await client.post(REGISTER, json=_signup(grade=11))
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_email(self, client: AsyncClient) -> None:
        resp = await client.post(REGISTER, json=_signup(email="not-an-email"))
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Validation error"


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_and_me(self, client: AsyncClient) -> None:
        await client.post(REGISTER, json=_signup())
        resp = await client.post(LOGIN, json={"email": "alice@example.com", "password": "wordduel123"})
        assert resp.status_code == 200
        token = resp.json()["access_token"]

        me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "alice@example.com"
        assert me.json()["last_login"] is not None

    @pytest.mark.asyncio
    async def test_wrong_password(self, client: AsyncClient) -> None:
        await client.post(REGISTER, json=_signup())
        resp = await client.post(LOGIN, json={"email": "alice@example.com", "password": "wrongpass1"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_unknown_email(self, client: AsyncClient) -> None:
        resp = await client.post(LOGIN, json={"email": "ghost@example.com", "password": "wordduel123"})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_garbage_token(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not.a.token"})
        assert resp.status_code == 401


class TestProfileEndpoints:
    @pytest.mark.asyncio
    async def test_get_my_profile(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice", coins=42)
        resp = await client.get("/api/v1/profiles/me", headers=auth_headers(alice))
        assert resp.status_code == 200
        data = resp.json()
        assert data["username"] == "alice"
        assert data["coins"] == 42
        assert data["rank_tier"] == "bronze"
        assert data["level_progress"] == 0.0

    @pytest.mark.asyncio
    async def test_rename(self, client: AsyncClient, db_session: AsyncSession, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        resp = await client.patch("/api/v1/profiles/me", json={"username": "alicia"}, headers=auth_headers(alice))
        assert resp.status_code == 200
        assert resp.json()["username"] == "alicia"

        await db_session.refresh(alice)
        assert alice.username == "alicia"

    @pytest.mark.asyncio
    async def test_rename_taken(self, client: AsyncClient, make_profile, auth_headers) -> None:
        await make_profile("alice")
        bob = await make_profile("bob")
        resp = await client.patch("/api/v1/profiles/me", json={"username": "Alice"}, headers=auth_headers(bob))
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_change_grade(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        resp = await client.put("/api/v1/profiles/me/grade", json={"grade": 8}, headers=auth_headers(alice))
        assert resp.status_code == 200
        assert resp.json()["grade"] == 8

        resp = await client.put("/api/v1/profiles/me/grade", json={"grade": 4}, headers=auth_headers(alice))
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_public_profile(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        bob = await make_profile("bob", coins=99)
        resp = await client.get(f"/api/v1/profiles/{bob.id}", headers=auth_headers(alice))
        assert resp.status_code == 200
        assert resp.json()["username"] == "bob"
        assert "coins" not in resp.json()

    @pytest.mark.asyncio
    async def test_public_profile_missing(self, client: AsyncClient, make_profile, auth_headers) -> None:
        alice = await make_profile("alice")
        resp = await client.get("/api/v1/profiles/9999", headers=auth_headers(alice))
        assert resp.status_code == 404
