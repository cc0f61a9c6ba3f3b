"""
CodeSync Backend — Profile Endpoint Tests
==========================================

What we test:
    ✅ Own profile carries preferences and all counts
    ✅ Partial updates only touch provided fields and reissue the session
    ✅ Username changes: format rules, uniqueness, session refresh
    ✅ Password change rules (missing, short, wrong, OAuth-only)
    ✅ Avatar validation, upload (image host mocked) and removal
"""

from unittest.mock import AsyncMock, PropertyMock, patch

import pytest

from codesync.config import settings
from codesync.exceptions import ImageHostError
from codesync.models import User
from codesync.services.auth_service import create_session_token, decode_session_token
from codesync.services.image_service import ImageHostService, UploadedImage
from tests.conftest import DEFAULT_PASSWORD

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def session_cookie(response):
    return response.cookies.get(settings.session_cookie_name)


class TestGetProfile:

    @pytest.mark.asyncio
    async def test_profile_shape(self, client, alice):
        response = await client.get("/api/profile", headers=alice.headers)
        assert response.status_code == 200
        body = response.json()
        assert body["username"] == "alice"
        assert body["theme"] == "system"
        assert body["defaultSnippetVisibility"] == "public"
        assert body["hasPassword"] is True
        assert body["_count"] == {"snippets": 0, "followers": 0, "following": 0, "likes": 0}

    @pytest.mark.asyncio
    async def test_requires_auth(self, client):
        assert (await client.get("/api/profile")).status_code == 401


class TestUpdateProfile:

    @pytest.mark.asyncio
    async def test_partial_update(self, client, alice):
        await client.put("/api/profile", json={"bio": "Hello", "theme": "dark"}, headers=alice.headers)
        response = await client.put("/api/profile", json={"location": "Oslo"}, headers=alice.headers)
        body = response.json()
        assert body["bio"] == "Hello"
        assert body["theme"] == "dark"
        assert body["location"] == "Oslo"

    @pytest.mark.asyncio
    async def test_username_change_reissues_session(self, client, alice):
        response = await client.put("/api/profile", json={"username": "alice_2"}, headers=alice.headers)
        assert response.status_code == 200
        assert response.json()["username"] == "alice_2"

        token = session_cookie(response)
        assert decode_session_token(token)["username"] == "alice_2"
        assert (await client.get("/api/users/alice_2")).status_code == 200
        assert (await client.get("/api/users/alice")).status_code == 404

    @pytest.mark.asyncio
    async def test_taken_username_rejected(self, client, alice, bob):
        response = await client.put("/api/profile", json={"username": "bob"}, headers=alice.headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Username is already taken"
        profile = (await client.get("/api/profile", headers=alice.headers)).json()
        assert profile["username"] == "alice"

    @pytest.mark.asyncio
    async def test_username_claimed_after_check_rejected_by_constraint(self, client, alice, bob):
        # The availability check sees nothing, so the unique index has to catch it
        with patch("sqlalchemy.ext.asyncio.AsyncSession.scalar", new=AsyncMock(return_value=None)):
            response = await client.put("/api/profile", json={"username": "bob"}, headers=alice.headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Username is already taken"
        profile = (await client.get("/api/profile", headers=alice.headers)).json()
        assert profile["username"] == "alice"

    @pytest.mark.asyncio
    async def test_keeping_own_username_is_fine(self, client, alice):
        response = await client.put("/api/profile", json={"username": "alice"}, headers=alice.headers)
        assert response.status_code == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"username": "ab"},
            {"username": "has space"},
            {"website": "not a url"},
            {"theme": "neon"},
            {"defaultSnippetVisibility": "friends"},
            {"bio": "x" * 161},
        ],
    )
    async def test_invalid_fields_rejected(self, client, alice, payload):
        response = await client.put("/api/profile", json=payload, headers=alice.headers)
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_blank_url_clears_field(self, client, alice):
        await client.put("/api/profile", json={"website": "https://alice.dev"}, headers=alice.headers)
        response = await client.put("/api/profile", json={"website": ""}, headers=alice.headers)
        assert response.json()["website"] == ""


class TestChangePassword:

    @pytest.mark.asyncio
    async def test_change_password_then_login(self, client, alice):
        response = await client.put(
            "/api/profile/password",
            json={"currentPassword": DEFAULT_PASSWORD, "newPassword": "N3wSecret"},
            headers=alice.headers,
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Password updated successfully"

        old = await client.post("/api/auth/login", json={"email": alice.email, "password": DEFAULT_PASSWORD})
        new = await client.post("/api/auth/login", json={"email": alice.email, "password": "N3wSecret"})
        assert old.status_code == 401
        assert new.status_code == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload,message",
        [
            ({"newPassword": "N3wSecret"}, "Current password and new password are required"),
            ({"currentPassword": DEFAULT_PASSWORD, "newPassword": "abc"},
             "New password must be at least 6 characters long"),
            ({"currentPassword": "Wr0ngpass", "newPassword": "N3wSecret"}, "Current password is incorrect"),
        ],
    )
    async def test_rejections(self, client, alice, payload, message):
        response = await client.put("/api/profile/password", json=payload, headers=alice.headers)
        assert response.status_code == 400
        assert response.json()["message"] == message

    @pytest.mark.asyncio
    async def test_oauth_only_account_rejected(self, client, db_session):
        user = User(username="octocat", email="octo@example.com")
        db_session.add(user)
        await db_session.commit()
        token = create_session_token(user).token

        response = await client.put(
            "/api/profile/password",
            json={"currentPassword": "anything", "newPassword": "N3wSecret"},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == (
            "Cannot change password for OAuth accounts. Please set a password first."
        )


class TestAvatar:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "filename,content_type,content,message",
        [
            ("notes.txt", "text/plain", b"hello", "File must be an image"),
            ("pic.bmp", "image/bmp", b"BM....", "Only JPEG, PNG, GIF, and WebP images are allowed"),
            ("empty.png", "image/png", b"", "File is empty"),
        ],
    )
    async def test_invalid_uploads_rejected(self, client, alice, filename, content_type, content, message):
        response = await client.post(
            "/api/profile/avatar",
            files={"avatar": (filename, content, content_type)},
            headers=alice.headers,
        )
        assert response.status_code == 400
        assert response.json()["message"] == message

    @pytest.mark.asyncio
    async def test_oversized_upload_rejected(self, client, alice):
        big = b"\x00" * (settings.avatar_max_size + 1)
        response = await client.post(
            "/api/profile/avatar",
            files={"avatar": ("big.png", big, "image/png")},
            headers=alice.headers,
        )
        assert response.status_code == 400
        assert response.json()["message"].startswith("File size must be less than")

    @pytest.mark.asyncio
    async def test_unconfigured_image_host_is_503(self, client, alice):
        response = await client.post(
            "/api/profile/avatar",
            files={"avatar": ("me.png", PNG_BYTES, "image/png")},
            headers=alice.headers,
        )
        assert response.status_code == 503
        assert response.json()["error"] == "image_host_error"

    @pytest.mark.asyncio
    async def test_upload_replaces_previous_avatar(self, client, alice):
        uploads = [
            UploadedImage(url="https://img.example/a1.png", public_id="codesync/avatars/a1"),
            UploadedImage(url="https://img.example/a2.png", public_id="codesync/avatars/a2"),
        ]
        with patch.object(ImageHostService, "configured", new_callable=PropertyMock, return_value=True), \
             patch("codesync.services.profile_service.image_service.upload_avatar",
                   new=AsyncMock(side_effect=uploads)), \
             patch("codesync.services.profile_service.image_service.destroy",
                   new=AsyncMock()) as mock_destroy:

            first = await client.post(
                "/api/profile/avatar",
                files={"avatar": ("me.png", PNG_BYTES, "image/png")},
                headers=alice.headers,
            )
            assert first.status_code == 200
            assert first.json()["imageUrl"] == "https://img.example/a1.png"
            assert first.json()["message"] == "Avatar uploaded successfully"
            mock_destroy.assert_not_awaited()

            second = await client.post(
                "/api/profile/avatar",
                files={"avatar": ("me.png", PNG_BYTES, "image/png")},
                headers=alice.headers,
            )
            assert second.json()["user"]["image"] == "https://img.example/a2.png"
            mock_destroy.assert_awaited_once_with("codesync/avatars/a1")
            assert decode_session_token(session_cookie(second))["picture"] == "https://img.example/a2.png"

    @pytest.mark.asyncio
    async def test_failed_upload_keeps_previous_avatar(self, client, alice):
        uploads = [
            UploadedImage(url="https://img.example/a1.png", public_id="codesync/avatars/a1"),
            ImageHostError(),
        ]
        with patch.object(ImageHostService, "configured", new_callable=PropertyMock, return_value=True), \
             patch("codesync.services.profile_service.image_service.upload_avatar",
                   new=AsyncMock(side_effect=uploads)), \
             patch("codesync.services.profile_service.image_service.destroy",
                   new=AsyncMock()) as mock_destroy:

            await client.post(
                "/api/profile/avatar",
                files={"avatar": ("me.png", PNG_BYTES, "image/png")},
                headers=alice.headers,
            )
            failed = await client.post(
                "/api/profile/avatar",
                files={"avatar": ("me.png", PNG_BYTES, "image/png")},
                headers=alice.headers,
            )

        assert failed.status_code == 503
        mock_destroy.assert_not_awaited()
        profile = (await client.get("/api/profile", headers=alice.headers)).json()
        assert profile["image"] == "https://img.example/a1.png"

    @pytest.mark.asyncio
    async def test_remove_avatar(self, client, alice):
        with patch.object(ImageHostService, "configured", new_callable=PropertyMock, return_value=True), \
             patch("codesync.services.profile_service.image_service.upload_avatar",
                   new=AsyncMock(return_value=UploadedImage(url="https://img.example/a.png", public_id="a"))), \
             patch("codesync.services.profile_service.image_service.destroy",
                   new=AsyncMock()) as mock_destroy:
            await client.post(
                "/api/profile/avatar",
                files={"avatar": ("me.png", PNG_BYTES, "image/png")},
                headers=alice.headers,
            )
            response = await client.delete("/api/profile/avatar", headers=alice.headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Avatar removed successfully"
        assert response.json()["user"]["image"] is None
        mock_destroy.assert_awaited_once_with("a")
