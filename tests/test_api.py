"""
Messagely Backend — API Tests
================================

What:  End-to-end tests through the HTTP surface.
How:   HTTPX AsyncClient against a fresh app per test, backed by a
       throwaway SQLite database (see conftest.py).

What we test:
    ✅ Register / login flows and their error responses
    ✅ Owner-only user routes reject other users and anonymous callers
    ✅ Sending, viewing and marking messages read, with the
       participant / recipient checks
    ✅ Tokens accepted from body, query string and Bearer header
    ✅ Error body shape for app, validation and routing errors
    ✅ Health check, and auth rate limiting driven by create_app settings
"""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from messagely.config import Settings, settings


async def send(client, token: str, from_username: str, to_username: str, body: str = "hi"):
    return await client.post(
        "/messages/",
        json={
            "_token": token,
            "from_username": from_username,
            "to_username": to_username,
            "body": body,
        },
    )


class TestAuthRoutes:

    @pytest.mark.asyncio
    async def test_register_returns_token(self, client, token_service, register_user):
        token = await register_user("alice")
        assert token_service.verify(token).username == "alice"

    @pytest.mark.asyncio
    async def test_login(self, client, register_user):
        await register_user("alice", "pw1")

        response = await client.post("/auth/login", json={"username": "alice", "password": "pw1"})

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Logged In!"
        assert data["token"]

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client, register_user):
        await register_user("alice", "pw1")

        response = await client.post("/auth/login", json={"username": "alice", "password": "nope"})

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "bad_credentials"
        assert data["status"] == 400
        assert data["message"] == "Invalid username/password"
        assert "request_id" in data

    @pytest.mark.asyncio
    async def test_login_unknown_user_same_error(self, client):
        response = await client.post("/auth/login", json={"username": "ghost", "password": "pw1"})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid username/password"

    @pytest.mark.asyncio
    async def test_register_duplicate(self, client, register_user):
        await register_user("alice")

        response = await client.post(
            "/auth/register",
            json={
                "username": "alice",
                "password": "other",
                "first_name": "Another",
                "last_name": "Alice",
                "phone": "555-000-0000",
            },
        )

        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_user"

    @pytest.mark.asyncio
    async def test_register_missing_field(self, client):
        response = await client.post(
            "/auth/register", json={"username": "alice", "password": "hunter2secret"}
        )

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "validation_error"
        assert data["status"] == 422
        assert "body.first_name" in data["message"]
        assert "request_id" in data
        assert "detail" not in data
        assert "hunter2secret" not in response.text

    @pytest.mark.asyncio
    async def test_login_rate_limited(self, app_factory):
        application = app_factory(Settings(auth_rate_limit_requests=2))
        credentials = {"username": "ghost", "password": "pw1"}

        transport = ASGITransport(app=application)
        async with AsyncClient(transport=transport, base_url="http://test") as strict_client:
            for _ in range(2):
                response = await strict_client.post("/auth/login", json=credentials)
                assert response.status_code == 400

            response = await strict_client.post("/auth/login", json=credentials)

        assert response.status_code == 429
        assert response.json()["error"] == "rate_limit_exceeded"
        assert int(response.headers["Retry-After"]) > 0

    @pytest.mark.asyncio
    async def test_default_app_ignores_other_settings(self, app_factory, client):
        app_factory(Settings(auth_rate_limit_requests=1))
        credentials = {"username": "ghost", "password": "pw1"}

        for _ in range(3):
            response = await client.post("/auth/login", json=credentials)
            assert response.status_code == 400


class TestUserRoutes:

    @pytest.mark.asyncio
    async def test_list_users_is_public(self, client, register_user):
        await register_user("bob")
        await register_user("alice")

        response = await client.get("/users/")

        assert response.status_code == 200
        users = response.json()["users"]
        assert [u["username"] for u in users] == ["alice", "bob"]
        for user in users:
            assert set(user) == {"username", "first_name", "last_name", "phone"}

    @pytest.mark.asyncio
    async def test_get_own_profile(self, client, register_user):
        token = await register_user("alice")

        response = await client.get("/users/alice", params={"_token": token})

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["username"] == "alice"
        assert user["join_at"]
        assert user["last_login_at"]
        assert "password" not in user

    @pytest.mark.asyncio
    async def test_profile_token_in_body(self, client, register_user):
        token = await register_user("alice")

        response = await client.request("GET", "/users/alice", json={"_token": token})

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_other_users_profile_denied(self, client, register_user):
        await register_user("alice")
        bob_token = await register_user("bob")

        response = await client.get(
            "/users/alice", headers={"Authorization": f"Bearer {bob_token}"}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_anonymous_and_forged_denied(self, client, register_user):
        token = await register_user("alice")

        assert (await client.get("/users/alice")).status_code == 401
        forged = token[:-4] + "AAAA"
        assert (await client.get("/users/alice", params={"_token": forged})).status_code == 401

    @pytest.mark.asyncio
    async def test_message_listings(self, client, register_user):
        alice = await register_user("alice")
        bob = await register_user("bob")
        await send(client, alice, "alice", "bob", "first")
        await send(client, alice, "alice", "bob", "second")
        await send(client, bob, "bob", "alice", "reply")

        inbound = (await client.get("/users/bob/to", params={"_token": bob})).json()["messages"]
        outbound = (await client.get("/users/alice/from", params={"_token": alice})).json()["messages"]

        assert [m["body"] for m in inbound] == ["first", "second"]
        assert inbound[0]["from_username"] == {
            "username": "alice",
            "first_name": "Alice",
            "last_name": "Tester",
            "phone": "555-555-5555",
        }
        assert [m["body"] for m in outbound] == ["first", "second"]
        assert all(m["to_username"]["username"] == "bob" for m in outbound)
        assert "to_user" not in outbound[0] and "from_user" not in inbound[0]
        assert all(m["read_at"] is None for m in inbound)

    @pytest.mark.asyncio
    async def test_listings_are_owner_only(self, client, register_user):
        await register_user("alice")
        bob = await register_user("bob")

        response = await client.get("/users/alice/to", params={"_token": bob})

        assert response.status_code == 401


class TestMessageRoutes:

    @pytest.mark.asyncio
    async def test_send_view_and_mark_read(self, client, register_user):
        alice = await register_user("alice")
        bob = await register_user("bob")

        response = await send(client, alice, "alice", "bob", "hello bob")
        assert response.status_code == 201
        created = response.json()["message"]
        assert created["from_username"] == "alice"
        assert created["to_username"] == "bob"
        message_id = created["id"]

        viewed = (await client.get(f"/messages/{message_id}", params={"_token": alice})).json()["message"]
        assert viewed["from_user"]["username"] == "alice"
        assert viewed["to_user"]["username"] == "bob"
        assert viewed["body"] == "hello bob"
        assert viewed["read_at"] is None

        response = await client.post(f"/messages/{message_id}/read", json={"_token": bob})
        assert response.status_code == 200
        read_state = response.json()["message"]
        assert read_state["id"] == message_id
        assert read_state["read_at"] is not None

        viewed = (await client.get(f"/messages/{message_id}", params={"_token": bob})).json()["message"]
        assert viewed["read_at"] is not None

    @pytest.mark.asyncio
    async def test_mark_read_is_idempotent(self, client, register_user):
        alice = await register_user("alice")
        bob = await register_user("bob")
        message_id = (await send(client, alice, "alice", "bob")).json()["message"]["id"]

        first = await client.post(f"/messages/{message_id}/read", json={"_token": bob})
        second = await client.post(f"/messages/{message_id}/read", json={"_token": bob})

        assert first.json()["message"]["read_at"] == second.json()["message"]["read_at"]

    @pytest.mark.asyncio
    async def test_sender_cannot_mark_read(self, client, register_user):
        alice = await register_user("alice")
        await register_user("bob")
        message_id = (await send(client, alice, "alice", "bob")).json()["message"]["id"]

        response = await client.post(f"/messages/{message_id}/read", json={"_token": alice})

        assert response.status_code == 401
        assert response.json()["message"] == "Cannot set this message to read"

    @pytest.mark.asyncio
    async def test_third_party_cannot_view(self, client, register_user):
        alice = await register_user("alice")
        await register_user("bob")
        carol = await register_user("carol")
        message_id = (await send(client, alice, "alice", "bob")).json()["message"]["id"]

        response = await client.get(f"/messages/{message_id}", params={"_token": carol})

        assert response.status_code == 401
        assert response.json()["message"] == "Cannot view this message"

    @pytest.mark.asyncio
    async def test_anonymous_cannot_view(self, client, register_user):
        alice = await register_user("alice")
        await register_user("bob")
        message_id = (await send(client, alice, "alice", "bob")).json()["message"]["id"]

        response = await client.get(f"/messages/{message_id}")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_cannot_send_as_someone_else(self, client, register_user):
        await register_user("alice")
        bob = await register_user("bob")

        response = await send(client, bob, "alice", "bob", "spoofed")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_message(self, client, register_user):
        alice = await register_user("alice")

        response = await client.get("/messages/999", params={"_token": alice})

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_empty_body_rejected(self, client, register_user):
        alice = await register_user("alice")
        await register_user("bob")

        response = await send(client, alice, "alice", "bob", "")

        assert response.status_code == 422


class TestHealthRoute:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "trace-42"})
        assert response.headers["X-Request-ID"] == "trace-42"

    @pytest.mark.asyncio
    async def test_malformed_request_id_replaced(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "not a valid id"})
        assert response.headers["X-Request-ID"] != "not a valid id"
        assert len(response.headers["X-Request-ID"]) == 8


class TestErrorEnvelope:

    @pytest.mark.asyncio
    async def test_unknown_path(self, client):
        response = await client.get("/nope")

        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "not_found"
        assert data["status"] == 404
        assert data["message"] == "Not Found"
        assert data["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_wrong_method(self, client):
        response = await client.delete("/users/")

        assert response.status_code == 405
        data = response.json()
        assert data["error"] == "method_not_allowed"
        assert "detail" not in data

    @pytest.mark.asyncio
    async def test_bad_path_parameter(self, client, register_user):
        alice = await register_user("alice")

        response = await client.get("/messages/abc", params={"_token": alice})

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "validation_error"
        assert "path.message_id" in data["message"]


class TestAppSettings:

    def test_settings_kept_on_app_state(self, app_factory):
        custom = Settings(auth_rate_limit_requests=1)

        application = app_factory(custom)

        assert application.state.settings is custom
        assert application.state.token_service.config.secret_key == custom.secret_key

    @pytest.mark.asyncio
    async def test_lifespan_reads_app_settings(self, app_factory):
        assert settings.db_create_all is False
        application = app_factory(Settings(db_create_all=True, log_level="ERROR"))

        with patch("messagely.main.create_tables", new=AsyncMock()) as create_tables, \
                patch("messagely.main.dispose_engine", new=AsyncMock()) as dispose_engine, \
                patch("messagely.main.setup_logging", new=MagicMock()) as setup_logging:
            async with application.router.lifespan_context(application):
                create_tables.assert_awaited_once()

        setup_logging.assert_called_once_with("ERROR")
        dispose_engine.assert_awaited_once()


class TestAccessLog:

    @pytest.mark.asyncio
    async def test_logs_acting_user_without_token(self, client, register_user, caplog):
        token = await register_user("alice")
        caplog.set_level(logging.INFO, logger="messagely.access")

        await client.get("/users/alice", params={"_token": token})

        lines = [r.getMessage() for r in caplog.records if r.name == "messagely.access"]
        assert any("GET /users/alice 200" in line and "user=alice" in line for line in lines)
        assert all(token not in line for line in lines)
