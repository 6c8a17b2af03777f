"""Tests for the notification inbox."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.social.notification_service import create_notification, get_unread_count, mark_read

INBOX = "/api/v1/notifications"


@pytest.fixture
def notify(db_session: AsyncSession):
    async def _notify(profile_id: int, title: str) -> int:
        n = await create_notification(db_session, profile_id, "battle", "invite", title)
        await db_session.commit()
        return n.id

    return _notify


class TestNotificationService:
    @pytest.mark.asyncio
    async def test_rejects_unknown_type(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice")
        with pytest.raises(ValueError, match="Invalid notification type"):
            await create_notification(db_session, alice.id, "weather", "storm", "Rain incoming")

    @pytest.mark.asyncio
    async def test_pushes_to_profile(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice")
        redis = AsyncMock()
        await create_notification(db_session, alice.id, "team", "joined", "Welcome", redis=redis)

        channel, _body = redis.publish.await_args.args
        assert channel == f"ws:user:{alice.id}"

    @pytest.mark.asyncio
    async def test_mark_read_ignores_other_profiles(self, db_session: AsyncSession, make_profile, notify) -> None:
        alice = await make_profile("alice")
        bob = await make_profile("bob")
        mine = await notify(alice.id, "one")
        await notify(alice.id, "two")
        theirs = await notify(bob.id, "three")

        assert await mark_read(db_session, alice.id, [mine, theirs]) == 1
        assert await get_unread_count(db_session, alice.id) == 1
        assert await get_unread_count(db_session, bob.id) == 1

        assert await mark_read(db_session, alice.id, []) == 0
        assert await mark_read(db_session, alice.id) == 1
        assert await get_unread_count(db_session, alice.id) == 0


class TestNotificationEndpoints:
    @pytest.mark.asyncio
    async def test_list_newest_first(self, client: AsyncClient, make_profile, auth_headers, notify) -> None:
        alice = await make_profile("alice")
        await notify(alice.id, "first")
        await notify(alice.id, "second")

        resp = await client.get(INBOX, headers=auth_headers(alice))
        assert resp.status_code == 200
        data = resp.json()
        assert [n["title"] for n in data["notifications"]] == ["second", "first"]
        assert data["total"] == 2
        assert data["unread_count"] == 2

    @pytest.mark.asyncio
    async def test_mark_some_then_all(self, client: AsyncClient, make_profile, auth_headers, notify) -> None:
        alice = await make_profile("alice")
        first = await notify(alice.id, "first")
        await notify(alice.id, "second")
        await notify(alice.id, "third")

        resp = await client.post(f"{INBOX}/read", json={"ids": [first]}, headers=auth_headers(alice))
        assert resp.json() == {"unread_count": 2}

        unread = await client.get(INBOX, params={"unread_only": True}, headers=auth_headers(alice))
        assert [n["title"] for n in unread.json()["notifications"]] == ["third", "second"]

        resp = await client.post(f"{INBOX}/read", json={}, headers=auth_headers(alice))
        assert resp.json() == {"unread_count": 0}

        count = await client.get(f"{INBOX}/unread-count", headers=auth_headers(alice))
        assert count.json() == {"unread_count": 0}
