"""Tests for the route-guard dependency factories."""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient

from eop_access.auth.deps import get_resolver, require_mutations_enabled, require_role
from eop_access.auth.roles import Role
from eop_access.middleware.exceptions import register_exception_handlers
from eop_access.schemas.context import AuthorizationContext


def _build_app() -> FastAPI:
    guarded = FastAPI()
    register_exception_handlers(guarded)

    @guarded.get("/outlets/{location_id}")
    async def outlet_detail(
        location_id: str,
        ctx: AuthorizationContext = Depends(
            require_role(Role.LOCATION_ADMIN, location_param="location_id")
        ),
    ):
        return {"location_id": location_id}

    @guarded.get("/users")
    async def users(ctx: AuthorizationContext = Depends(require_role(Role.MANAGER))):
        return {"identity_id": ctx.identity_id}

    @guarded.get("/members")
    async def members(
        ctx: AuthorizationContext = Depends(
            require_role(Role.MANAGER, location_param="location_id")
        ),
    ):
        return {"ok": True}

    @guarded.post("/tasks")
    async def create_task(location_id: str = Depends(require_mutations_enabled)):
        return {"location_id": location_id}

    return guarded


@pytest_asyncio.fixture
async def guarded_client(resolver) -> AsyncGenerator[AsyncClient, None]:
    guarded = _build_app()
    guarded.dependency_overrides[get_resolver] = lambda: resolver
    async with AsyncClient(transport=ASGITransport(app=guarded), base_url="http://test") as client:
        yield client


@pytest.mark.auth
@pytest.mark.asyncio
class TestRouteGuards:
    """user-1 is manager at A and staff at B."""

    async def test_role_anywhere(self, guarded_client: AsyncClient, auth_headers: dict):
        response = await guarded_client.get("/users", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"identity_id": "user-1"}

    async def test_role_at_path_location(self, guarded_client: AsyncClient, auth_headers: dict):
        response = await guarded_client.get("/outlets/A", headers=auth_headers)

        assert response.status_code == 403
        assert response.json()["error"]["details"] == {
            "required_role": "location_admin",
            "location_id": "A",
        }

    async def test_role_at_query_location(self, guarded_client: AsyncClient, auth_headers: dict):
        ok = await guarded_client.get("/members", params={"location_id": "A"}, headers=auth_headers)
        assert ok.status_code == 200

        denied = await guarded_client.get("/members", params={"location_id": "B"}, headers=auth_headers)
        assert denied.status_code == 403

    async def test_missing_location_never_widens_check(self, guarded_client: AsyncClient, auth_headers: dict):
        response = await guarded_client.get("/members", headers=auth_headers)
        assert response.status_code == 400

    async def test_super_admin_passes(self, guarded_client: AsyncClient, admin_headers: dict):
        response = await guarded_client.get("/outlets/anything", headers=admin_headers)
        assert response.status_code == 200

    async def test_mutations_need_single_location(self, guarded_client: AsyncClient, auth_headers: dict):
        unselected = await guarded_client.post("/tasks", headers=auth_headers)
        assert unselected.status_code == 400
        assert unselected.json()["error"]["code"] == "INVALID_SELECTION"

        selected = await guarded_client.post("/tasks", params={"outlet": "B"}, headers=auth_headers)
        assert selected.status_code == 200
        assert selected.json() == {"location_id": "B"}

    async def test_mutations_blocked_in_aggregate_view(self, guarded_client: AsyncClient, admin_headers: dict):
        response = await guarded_client.post("/tasks", params={"outlet": "all"}, headers=admin_headers)
        assert response.status_code == 400
