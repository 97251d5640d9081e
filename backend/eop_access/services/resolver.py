"""Context resolver: authenticated identity → AuthorizationContext.

Flow:
  1. No identity                              → AuthenticationMissing
  2. Fetch profile + assignments concurrently (both must finish)
  3. Super-admin = explicit provider flag OR a top-rank assignment
  4. Coarse display role (presentation only, never used for gating)
  5. Missing profile                          → ProfileResolutionFailed,
     unless profile fallback is enabled (client-only path), in which case
     the provider's display fields are used instead.

The context is built in one go and returned whole; nothing is exposed
until both fetches have completed.
"""

import asyncio
import logging

from eop_access.auth.roles import BOTTOM_ROLE, TOP_ROLE, Role, parse_role, rank
from eop_access.config import settings
from eop_access.middleware.exceptions import (
    AccessError,
    AuthenticationMissing,
    ProfileResolutionFailed,
    RoleAssignmentQueryFailed,
)
from eop_access.schemas.context import (
    AssignmentRow,
    AuthorizationContext,
    IdentityHandle,
    LocationRoleAssignment,
    ProfileRow,
    UserProfile,
)
from eop_access.services.data_service import DataService
from eop_access.utils.cache import ContextCache

logger = logging.getLogger("eop.resolver")

# Roles that can surface as the coarse display label, most privileged first.
_DISPLAY_ROLES = (Role.ORG_ADMIN, Role.LOCATION_ADMIN, Role.MANAGER)


def build_assignments(identity_id: str, rows: list[AssignmentRow]) -> tuple[LocationRoleAssignment, ...]:
    """Turn raw rows into assignments, one per location.

    Rows with an unknown role are skipped. The store guarantees one row per
    location; if it ever sends two, the higher rank wins.
    """
    by_location: dict[str, LocationRoleAssignment] = {}
    for row in rows:
        role = parse_role(row.role)
        if role is None:
            logger.warning(
                "Skipping assignment with unknown role %r for %s at %s",
                row.role, identity_id, row.location_id,
            )
            continue
        existing = by_location.get(row.location_id)
        if existing is not None:
            logger.warning("Duplicate assignment for %s at %s", identity_id, row.location_id)
            if rank(existing.role) >= rank(role):
                continue
        by_location[row.location_id] = LocationRoleAssignment(
            location_id=row.location_id,
            role=role,
            location_name=row.location_name,
            org_name=row.org_name,
        )
    return tuple(by_location.values())


def derive_app_role(assignments, is_super_admin: bool) -> Role:
    """Coarse role label for display. Defaults to the lowest rank."""
    if is_super_admin:
        return TOP_ROLE
    held = {a.role for a in assignments}
    for role in _DISPLAY_ROLES:
        if role in held:
            return role
    return BOTTOM_ROLE


def _still_current(cached: AuthorizationContext, identity: IdentityHandle) -> bool:
    """A cached context is reusable only if the provider flag has not changed its super-admin status."""
    return cached.is_super_admin == (
        identity.is_super_admin or any(a.role is TOP_ROLE for a in cached.assignments)
    )


class ContextResolver:
    """Resolve authorization contexts through a DataService.

    Args:
        data_service: read contract over the external store
        cache: optional ContextCache; None disables caching
        allow_profile_fallback: client-only path; defaults to settings
    """

    def __init__(
        self,
        data_service: DataService,
        cache: ContextCache | None = None,
        allow_profile_fallback: bool | None = None,
    ):
        self.data_service = data_service
        self.cache = cache
        self.allow_profile_fallback = (
            settings.allow_profile_fallback
            if allow_profile_fallback is None
            else allow_profile_fallback
        )

    async def resolve(
        self,
        identity: IdentityHandle | None,
        use_cache: bool = True,
    ) -> AuthorizationContext:
        if identity is None:
            raise AuthenticationMissing()

        if use_cache and self.cache is not None:
            cached = await self.cache.get(identity.id)
            if cached is not None and _still_current(cached, identity):
                return cached

        logger.debug("Resolving context for %s", identity.id)
        profile_row, rows = await self._fetch(identity.id)

        assignments = build_assignments(identity.id, rows)
        is_super_admin = identity.is_super_admin or any(
            a.role is TOP_ROLE for a in assignments
        )

        ctx = AuthorizationContext(
            identity_id=identity.id,
            is_super_admin=is_super_admin,
            assignments=assignments,
            profile=self._build_profile(
                identity, profile_row, derive_app_role(assignments, is_super_admin)
            ),
        )
        logger.debug(
            "Resolved context for %s: %d assignment(s), super_admin=%s",
            identity.id, len(assignments), is_super_admin,
        )

        if self.cache is not None:
            await self.cache.set(ctx)
        return ctx

    async def invalidate(self, identity_id: str) -> None:
        if self.cache is not None:
            await self.cache.invalidate(identity_id)

    async def _fetch(self, identity_id: str) -> tuple[ProfileRow | None, list[AssignmentRow]]:
        """Run both fetches; classify any failure once both have settled."""
        profile_result, rows_result = await asyncio.gather(
            self.data_service.get_profile(identity_id),
            self.data_service.get_assignments(identity_id),
            return_exceptions=True,
        )

        for result in (profile_result, rows_result):
            if isinstance(result, asyncio.CancelledError):
                raise result

        if isinstance(rows_result, BaseException):
            if isinstance(rows_result, AccessError):
                raise rows_result
            logger.error("Assignment fetch failed for %s: %s", identity_id, rows_result)
            raise RoleAssignmentQueryFailed(identity_id, "assignment fetch failed") from rows_result

        if isinstance(profile_result, BaseException):
            if isinstance(profile_result, AccessError):
                raise profile_result
            logger.error("Profile fetch failed for %s: %s", identity_id, profile_result)
            raise ProfileResolutionFailed(identity_id, "profile fetch failed") from profile_result

        return profile_result, rows_result

    def _build_profile(
        self,
        identity: IdentityHandle,
        row: ProfileRow | None,
        app_role: Role,
    ) -> UserProfile:
        if row is None:
            if not self.allow_profile_fallback:
                raise ProfileResolutionFailed(identity.id)
            logger.info("Profile row missing for %s; using provider fields", identity.id)
            return UserProfile(
                id=identity.id,
                email=identity.email or "",
                display_name=identity.display_name or "Unknown User",
                avatar_ref=identity.avatar_ref,
                app_role=app_role,
            )

        return UserProfile(
            id=identity.id,
            email=row.email or identity.email or "",
            display_name=row.display_name or identity.display_name or "",
            avatar_ref=row.avatar_ref or identity.avatar_ref,
            app_role=app_role,
        )
