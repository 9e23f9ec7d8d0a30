"""API tests for authentication, health probes and the error body shape."""

from datetime import timedelta

from adorable.core.security import create_access_token


class TestAuth:
    async def test_register_login_me(self, client) -> None:
        response = await client.post(
            "/api/auth/register",
            json={"email": "New@Example.com", "password": "s3cure-pass", "name": "New"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["user"]["email"] == "new@example.com"
        assert body["token_type"] == "bearer"

        response = await client.post(
            "/api/auth/login", json={"email": "new@example.com", "password": "s3cure-pass"}
        )
        assert response.status_code == 200
        token = response.json()["access_token"]

        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.json()["user"]["name"] == "New"

    async def test_duplicate_email(self, client, alice) -> None:
        response = await client.post(
            "/api/auth/register", json={"email": "alice@example.com", "password": "another-pass"}
        )
        assert response.status_code == 409
        assert response.json() == {"error": "Email already registered"}

    async def test_wrong_password(self, client, alice) -> None:
        response = await client.post(
            "/api/auth/login", json={"email": "alice@example.com", "password": "wrong-password"}
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password"}

    async def test_short_password(self, client) -> None:
        response = await client.post(
            "/api/auth/register", json={"email": "x@example.com", "password": "short"}
        )
        assert response.status_code == 400
        assert response.json()["error"].startswith("password")

    async def test_expired_token(self, client, alice) -> None:
        token = create_access_token(alice.id, expires_delta=timedelta(seconds=-1))
        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_inactive_user(self, client, auth, make_user) -> None:
        user = await make_user("gone@example.com", is_active=False)
        response = await client.get("/api/auth/me", headers=auth(user))
        assert response.status_code == 401


class TestHealth:
    async def test_health(self, client) -> None:
        response = await client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database"] == "healthy"

    async def test_probes(self, client) -> None:
        assert (await client.get("/api/ready")).json() == {"ready": True}
        assert (await client.get("/api/live")).json() == {"alive": True}

    async def test_unknown_route_uses_error_body(self, client) -> None:
        response = await client.get("/api/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}
