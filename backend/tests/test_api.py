"""Tests for the HTTP surface and token handling."""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from eop_access.auth.jwt import create_identity_token, decode_identity
from eop_access.database import get_db
from eop_access.main import app


@pytest.mark.auth
@pytest.mark.asyncio
class TestContextEndpoints:
    """/api/context routes."""

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    async def test_readiness_probes_store(self, client: AsyncClient, session_factory):
        async def _db():
            async with session_factory() as session:
                yield session

        app.dependency_overrides[get_db] = _db
        response = await client.get("/health/ready")

        assert response.status_code == 200
        checks = response.json()["checks"]
        assert checks["database"] == "ok"
        assert checks["redis"] == "disabled"

    async def test_me_requires_token(self, client: AsyncClient):
        response = await client.get("/api/context/me")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_MISSING"
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_me_rejects_expired_token(self, client: AsyncClient):
        token = create_identity_token("user-1", expires_delta=timedelta(minutes=-5))
        response = await client.get(
            "/api/context/me", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    async def test_me(self, client: AsyncClient, auth_headers: dict):
        response = await client.get("/api/context/me", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["context"]["identity_id"] == "user-1"
        assert data["context"]["is_super_admin"] is False
        assert data["highest_role"] == "manager"
        assert data["role_label"] == "Manager"

    async def test_missing_profile_is_blocking_error(self, client: AsyncClient):
        token = create_identity_token("ghost")
        response = await client.get(
            "/api/context/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 403
        error = response.json()["error"]
        assert error["code"] == "PROFILE_RESOLUTION_FAILED"
        assert "ghost" not in error["message"]

    async def test_refresh(self, client: AsyncClient, admin_headers: dict):
        response = await client.post("/api/context/refresh", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["highest_role"] == "super_admin"

    async def test_selection_unselected_with_many_locations(self, client: AsyncClient, auth_headers: dict):
        response = await client.get("/api/context/selection", headers=auth_headers)

        data = response.json()
        assert data["kind"] == "unselected"
        assert data["mutations_disabled"] is True
        assert data["mutations_disabled_reason"] == "No location selected"

    async def test_selection_from_hint(self, client: AsyncClient, auth_headers: dict):
        response = await client.get(
            "/api/context/selection", params={"outlet": "A"}, headers=auth_headers
        )

        data = response.json()
        assert data["kind"] == "single"
        assert data["hint"] == "A"
        assert data["mutations_disabled"] is False
        assert data["assignment"]["role"] == "manager"

    async def test_aggregate_hint_ignored_below_org_admin(self, client: AsyncClient, auth_headers: dict):
        response = await client.get(
            "/api/context/selection", params={"outlet": "all"}, headers=auth_headers
        )
        assert response.json()["kind"] == "unselected"

    async def test_aggregate_for_super_admin(self, client: AsyncClient, admin_headers: dict):
        response = await client.get(
            "/api/context/selection", params={"outlet": "all"}, headers=admin_headers
        )

        data = response.json()
        assert data["kind"] == "all"
        assert data["mutations_disabled"] is True
        assert data["mutations_disabled_reason"]

    async def test_switch(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/context/selection/switch", json={"candidate": "B"}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json() == {"hint": "B"}

    async def test_switch_rejections(self, client: AsyncClient, auth_headers: dict):
        unknown = await client.post(
            "/api/context/selection/switch", json={"candidate": "Z"}, headers=auth_headers
        )
        assert unknown.status_code == 404
        assert unknown.json()["error"]["code"] == "UNKNOWN_LOCATION"

        aggregate = await client.post(
            "/api/context/selection/switch", json={"candidate": "all"}, headers=auth_headers
        )
        assert aggregate.status_code == 400
        assert aggregate.json()["error"]["code"] == "INVALID_SELECTION"

    async def test_selection_options(self, client: AsyncClient, admin_headers: dict):
        response = await client.get("/api/context/selection/options", headers=admin_headers)
        assert [o["value"] for o in response.json()] == ["all", "HQ"]

    async def test_assignable_roles(self, client: AsyncClient, auth_headers: dict):
        overall = await client.get("/api/context/assignable-roles", headers=auth_headers)
        assert overall.json() == {"assigner_role": "manager", "roles": ["staff"]}

        at_b = await client.get(
            "/api/context/assignable-roles", params={"location_id": "B"}, headers=auth_headers
        )
        assert at_b.json() == {"assigner_role": "staff", "roles": []}

    async def test_navigation(self, client: AsyncClient, auth_headers: dict):
        response = await client.get("/api/context/navigation", headers=auth_headers)
        assert [i["label"] for i in response.json()] == ["Users", "My Activity"]

    async def test_page_guard(self, client: AsyncClient, auth_headers: dict):
        allowed = await client.get("/api/context/pages/users", headers=auth_headers)
        assert allowed.status_code == 204

        denied = await client.get("/api/context/pages/settings", headers=auth_headers)
        assert denied.status_code == 403
        error = denied.json()["error"]
        assert error["code"] == "INSUFFICIENT_PERMISSION"
        assert error["details"] == {"required_role": "super_admin"}


@pytest.mark.unit
class TestIdentityTokens:
    """Identity provider token decoding."""

    def test_decode_identity(self):
        token = create_identity_token(
            "user-9", email="u9@example.com", full_name="User Nine", avatar_url="a.png"
        )
        identity = decode_identity(token)

        assert identity.id == "user-9"
        assert identity.email == "u9@example.com"
        assert identity.display_name == "User Nine"
        assert identity.avatar_ref == "a.png"
        assert identity.is_super_admin is False

    def test_explicit_super_admin_flag(self):
        identity = decode_identity(create_identity_token("root", is_super_admin=True))
        assert identity.is_super_admin is True

    def test_invalid_tokens(self):
        assert decode_identity(None) is None
        assert decode_identity("") is None
        assert decode_identity("invalid.token.here") is None
