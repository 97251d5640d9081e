"""Read contract over the external data store.

DataService is what the context resolver consumes:
  get_profile(identity_id)      → ProfileRow | None (None = row absent)
  get_assignments(identity_id)  → list[AssignmentRow] with location/org names

DatabaseDataService reads the store's tables with SQLAlchemy. Each call
opens its own session so the resolver can run both fetches concurrently.
"""

import logging
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eop_access.middleware.exceptions import (
    ProfileResolutionFailed,
    RoleAssignmentQueryFailed,
)
from eop_access.models.public.location import Location, LocationUser
from eop_access.models.public.organization import Organization
from eop_access.models.public.profile import Profile
from eop_access.schemas.context import AssignmentRow, ProfileRow

logger = logging.getLogger(__name__)


class DataService(Protocol):
    async def get_profile(self, identity_id: str) -> ProfileRow | None:
        ...

    async def get_assignments(self, identity_id: str) -> list[AssignmentRow]:
        ...


class DatabaseDataService:
    """DataService backed by the store's Postgres tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_profile(self, identity_id: str) -> ProfileRow | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Profile).where(Profile.id == identity_id)
                )
                profile = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Profile query failed for %s: %s", identity_id, e)
            raise ProfileResolutionFailed(identity_id, "profile query failed") from e

        if profile is None:
            return None
        return ProfileRow(
            display_name=profile.full_name,
            email=profile.email,
            avatar_ref=profile.avatar_url,
        )

    async def get_assignments(self, identity_id: str) -> list[AssignmentRow]:
        stmt = (
            select(
                LocationUser.outlet_id,
                LocationUser.role,
                Location.name,
                Organization.name,
            )
            .outerjoin(Location, Location.id == LocationUser.outlet_id)
            .outerjoin(Organization, Organization.id == Location.organization_id)
            .where(LocationUser.user_id == identity_id)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Role assignment query failed for %s: %s", identity_id, e)
            raise RoleAssignmentQueryFailed(identity_id, "assignment query failed") from e

        return [
            AssignmentRow(
                location_id=outlet_id,
                role=role,
                location_name=location_name,
                org_name=org_name,
            )
            for outlet_id, role, location_name, org_name in rows
        ]
