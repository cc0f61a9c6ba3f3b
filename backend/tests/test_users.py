"""
CodeSync Backend — User, Profile Visibility and Follow Tests
=============================================================

What we test:
    ✅ Follow toggle, counts and status
    ✅ Following yourself is rejected
    ✅ Public profile honors showEmail/showLocation; owner sees everything
    ✅ Private snippets are counted and listed only for the owner
    ✅ User search by name or username
"""

import pytest
from sqlalchemy import func, select

from codesync.models import Follow
from tests.conftest import create_snippet, register


class TestFollow:

    @pytest.mark.asyncio
    async def test_toggle_follow(self, client, alice, bob):
        first = await client.post("/api/users/bob/follow", headers=alice.headers)
        assert first.status_code == 200
        assert first.json() == {"isFollowing": True, "followersCount": 1, "message": "Followed bob"}

        status = await client.get("/api/users/bob/follow", headers=alice.headers)
        assert status.json() == {"isFollowing": True, "followersCount": 1, "followingCount": 0}

        second = await client.post("/api/users/bob/follow", headers=alice.headers)
        assert second.json() == {"isFollowing": False, "followersCount": 0, "message": "Unfollowed bob"}

    @pytest.mark.asyncio
    async def test_cannot_follow_yourself(self, client, db_session, alice):
        response = await client.post("/api/users/alice/follow", headers=alice.headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot follow yourself"
        assert await db_session.scalar(select(func.count(Follow.id))) == 0

    @pytest.mark.asyncio
    async def test_follow_unknown_user_is_404(self, client, alice):
        response = await client.post("/api/users/nobody/follow", headers=alice.headers)
        assert response.status_code == 404
        assert response.json()["message"] == "User not found"

    @pytest.mark.asyncio
    async def test_follow_requires_auth(self, client, bob):
        response = await client.post("/api/users/bob/follow")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_profile_counts_follows(self, client, alice, bob):
        carol = await register(client, "carol")
        await client.post("/api/users/bob/follow", headers=alice.headers)
        await client.post("/api/users/bob/follow", headers=carol.headers)
        await client.post("/api/users/alice/follow", headers=bob.headers)

        profile = (await client.get("/api/users/bob", headers=alice.headers)).json()
        assert profile["_count"]["followers"] == 2
        assert profile["_count"]["following"] == 1
        assert profile["isFollowing"] is True
        assert profile["isOwnProfile"] is False


class TestPublicProfile:

    @pytest.mark.asyncio
    async def test_privacy_switches(self, client, alice, bob):
        await client.put(
            "/api/profile",
            json={"location": "Lisbon", "showLocation": False, "showEmail": False},
            headers=alice.headers,
        )
        client.cookies.clear()

        seen_by_bob = (await client.get("/api/users/alice", headers=bob.headers)).json()
        assert seen_by_bob["email"] is None
        assert seen_by_bob["location"] is None

        seen_by_owner = (await client.get("/api/users/alice", headers=alice.headers)).json()
        assert seen_by_owner["email"] == "alice@example.com"
        assert seen_by_owner["location"] == "Lisbon"
        assert seen_by_owner["isOwnProfile"] is True

    @pytest.mark.asyncio
    async def test_show_email_exposes_email(self, client, alice):
        await client.put("/api/profile", json={"showEmail": True}, headers=alice.headers)
        client.cookies.clear()
        profile = (await client.get("/api/users/alice")).json()
        assert profile["email"] == "alice@example.com"

    @pytest.mark.asyncio
    async def test_private_snippets_only_for_owner(self, client, alice):
        await create_snippet(client, alice, title="open")
        await create_snippet(client, alice, title="secret", isPublic=False)

        public = (await client.get("/api/users/alice", params={"includeSnippets": "true"})).json()
        assert public["_count"]["snippets"] == 1
        assert [s["title"] for s in public["snippets"]] == ["open"]

        own = (
            await client.get("/api/users/alice", params={"includeSnippets": "true"}, headers=alice.headers)
        ).json()
        assert own["_count"]["snippets"] == 2
        assert {s["title"] for s in own["snippets"]} == {"open", "secret"}

    @pytest.mark.asyncio
    async def test_snippets_omitted_by_default(self, client, alice):
        await create_snippet(client, alice)
        profile = (await client.get("/api/users/alice")).json()
        assert profile["snippets"] is None

    @pytest.mark.asyncio
    async def test_unknown_user_is_404(self, client):
        response = await client.get("/api/users/nobody")
        assert response.status_code == 404


class TestSearch:

    @pytest.mark.asyncio
    async def test_search_by_name_or_username(self, client):
        await register(client, "grace_h", name="Grace Hopper")
        await register(client, "linus", name="Linus T")
        await register(client, "hopper_fan", name="Fan Account")

        response = await client.get("/api/users", params={"query": "hopper"})
        usernames = {u["username"] for u in response.json()["users"]}
        assert usernames == {"grace_h", "hopper_fan"}

    @pytest.mark.asyncio
    async def test_search_counts_public_snippets_only(self, client, alice):
        await create_snippet(client, alice)
        await create_snippet(client, alice, isPublic=False)
        users = (await client.get("/api/users", params={"query": "alice"})).json()["users"]
        assert users[0]["_count"]["snippets"] == 1

    @pytest.mark.asyncio
    async def test_listing_paginates(self, client, alice, bob):
        body = (await client.get("/api/users", params={"limit": 1})).json()
        assert len(body["users"]) == 1
        assert body["pagination"]["total"] == 2
