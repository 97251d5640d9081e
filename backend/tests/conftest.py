"""Pytest configuration and fixtures for eop-access tests.

Provides context builders, an in-memory data service, a seeded SQLite
store, and an HTTP client over the FastAPI app.
"""

import os

# Set test environment BEFORE any eop_access imports (settings load at import).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-secret")
os.environ.setdefault("CONTEXT_CACHE_TTL_SECONDS", "0")

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import eop_access.models  # noqa: E402,F401  registers every table
from eop_access.auth.deps import get_resolver  # noqa: E402
from eop_access.auth.jwt import create_identity_token  # noqa: E402
from eop_access.auth.roles import Role  # noqa: E402
from eop_access.database import PublicBase  # noqa: E402
from eop_access.main import app  # noqa: E402
from eop_access.models.public.location import Location, LocationUser  # noqa: E402
from eop_access.models.public.organization import Organization  # noqa: E402
from eop_access.models.public.profile import Profile  # noqa: E402
from eop_access.schemas.context import (  # noqa: E402
    AssignmentRow,
    AuthorizationContext,
    IdentityHandle,
    LocationRoleAssignment,
    ProfileRow,
    UserProfile,
)
from eop_access.services.resolver import ContextResolver  # noqa: E402


# ── Context builders ─────────────────────────────────────────────

def make_ctx(
    *assignments: tuple[str, Role],
    is_super_admin: bool = False,
    identity_id: str = "user-1",
) -> AuthorizationContext:
    """Build a context from (location_id, role) pairs."""
    return AuthorizationContext(
        identity_id=identity_id,
        is_super_admin=is_super_admin,
        assignments=tuple(
            LocationRoleAssignment(location_id=loc, role=role)
            for loc, role in assignments
        ),
        profile=UserProfile(id=identity_id, email="user@example.com", display_name="Test User"),
    )


@pytest.fixture
def staff_ctx() -> AuthorizationContext:
    return make_ctx(("A", Role.STAFF))


@pytest.fixture
def mixed_ctx() -> AuthorizationContext:
    """Manager at A, staff at B."""
    return make_ctx(("A", Role.MANAGER), ("B", Role.STAFF))


@pytest.fixture
def org_admin_ctx() -> AuthorizationContext:
    return make_ctx(("HQ", Role.ORG_ADMIN), ("A", Role.MANAGER))


@pytest.fixture
def super_admin_ctx() -> AuthorizationContext:
    return make_ctx(is_super_admin=True)


@pytest.fixture
def empty_ctx() -> AuthorizationContext:
    return make_ctx()


# ── In-memory data service ───────────────────────────────────────

class InMemoryDataService:
    """DataService double: rows keyed by identity id, optional failures."""

    def __init__(
        self,
        profiles: dict[str, ProfileRow] | None = None,
        assignments: dict[str, list[AssignmentRow]] | None = None,
    ):
        self.profiles = profiles or {}
        self.assignments = assignments or {}
        self.profile_error: Exception | None = None
        self.assignments_error: Exception | None = None
        self.calls: list[tuple[str, str]] = []

    async def get_profile(self, identity_id: str) -> ProfileRow | None:
        self.calls.append(("profile", identity_id))
        if self.profile_error is not None:
            raise self.profile_error
        return self.profiles.get(identity_id)

    async def get_assignments(self, identity_id: str) -> list[AssignmentRow]:
        self.calls.append(("assignments", identity_id))
        if self.assignments_error is not None:
            raise self.assignments_error
        return list(self.assignments.get(identity_id, []))


@pytest.fixture
def data_service() -> InMemoryDataService:
    return InMemoryDataService(
        profiles={
            "user-1": ProfileRow(display_name="Ada Manager", email="ada@example.com"),
            "admin-1": ProfileRow(display_name="Root", email="root@example.com"),
        },
        assignments={
            "user-1": [
                AssignmentRow(location_id="A", role="manager", location_name="Outlet A", org_name="Org"),
                AssignmentRow(location_id="B", role="staff", location_name="Outlet B", org_name="Org"),
            ],
            "admin-1": [
                AssignmentRow(location_id="HQ", role="super_admin", location_name="HQ", org_name="Org"),
            ],
        },
    )


@pytest.fixture
def identity() -> IdentityHandle:
    return IdentityHandle(id="user-1", email="ada@example.com", display_name="Ada")


# ── SQLite store ─────────────────────────────────────────────────

@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """A seeded in-memory store shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(PublicBase.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        session.add_all([
            Profile(id="user-1", email="ada@example.com", full_name="Ada Manager"),
            Profile(id="nobody", email="nobody@example.com", full_name=None),
        ])
        session.add(Organization(id="org-1", name="Acme Foods"))
        await session.flush()
        session.add_all([
            Location(id="loc-a", name="Downtown", organization_id="org-1"),
            Location(id="loc-b", name="Harbour", organization_id="org-1"),
        ])
        await session.flush()
        session.add_all([
            LocationUser(user_id="user-1", outlet_id="loc-a", role="outlet_admin"),
            LocationUser(user_id="user-1", outlet_id="loc-b", role="staff"),
        ])
        await session.commit()

    yield factory

    await engine.dispose()


# ── HTTP client ──────────────────────────────────────────────────

@pytest.fixture
def resolver(data_service: InMemoryDataService) -> ContextResolver:
    return ContextResolver(data_service)


@pytest_asyncio.fixture
async def client(resolver: ContextResolver) -> AsyncGenerator[AsyncClient, None]:
    """Test client whose resolver reads from the in-memory data service."""
    app.dependency_overrides[get_resolver] = lambda: resolver

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {create_identity_token('user-1', email='ada@example.com')}"}


@pytest.fixture
def admin_headers() -> dict:
    return {"Authorization": f"Bearer {create_identity_token('admin-1', email='root@example.com')}"}


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "auth: Authentication and authorization tests")
    config.addinivalue_line("markers", "cache: Cache tests")
