"""Gates for privileged actions, navigation, and page entry.

The privileged actions themselves (create organization, create location,
assign role) run server-side elsewhere. These helpers only decide whether
the caller may invoke them at all.
"""

from __future__ import annotations

from dataclasses import dataclass

from eop_access.auth.permissions import (
    can_assign_role,
    has_role,
    require_role,
    role_at_location,
)
from eop_access.auth.roles import Role, rank
from eop_access.middleware.exceptions import InvalidSelection
from eop_access.schemas.context import AuthorizationContext

# Minimum role that may add people to a location at all.
ASSIGN_ROLE_MIN = Role.MANAGER


# ── Privileged actions ──────────────────────────────────────

def can_create_organization(ctx: AuthorizationContext) -> bool:
    return ctx.is_super_admin


def can_create_location(ctx: AuthorizationContext) -> bool:
    return has_role(ctx, Role.ORG_ADMIN)


def can_invoke_assign_role(
    ctx: AuthorizationContext,
    location_id: str,
    target_role: Role,
) -> bool:
    """Whether the caller may grant `target_role` at `location_id`.

    The caller's own role at that location must be manager or above and
    must rank strictly above the target.
    """
    assigner = role_at_location(ctx, location_id)
    if assigner is None or rank(assigner) < rank(ASSIGN_ROLE_MIN):
        return False
    return can_assign_role(assigner, target_role)


# ── Navigation ──────────────────────────────────────────────

@dataclass(frozen=True)
class NavItem:
    label: str
    href: str
    min_role: Role | None  # None = any authenticated identity


NAV_ITEMS: tuple[NavItem, ...] = (
    NavItem("Outlets", "/outlets", Role.ORG_ADMIN),
    NavItem("Users", "/users", Role.MANAGER),
    NavItem("My Activity", "/audit", None),
    NavItem("Settings", "/settings", Role.SUPER_ADMIN),
    NavItem("Organizations", "/organizations", Role.SUPER_ADMIN),
)


def visible_nav_items(ctx: AuthorizationContext) -> list[NavItem]:
    """UI filtering only; pages still guard themselves with guard_page()."""
    return [
        item for item in NAV_ITEMS
        if item.min_role is None or has_role(ctx, item.min_role)
    ]


# ── Page guards ─────────────────────────────────────────────

PAGE_MIN_ROLES: dict[str, Role] = {
    "users": Role.MANAGER,
    "settings": Role.SUPER_ADMIN,
    "outlets": Role.ORG_ADMIN,
    "organizations": Role.SUPER_ADMIN,
    # Detail page of one location; checked against that location only.
    "outlet_detail": Role.LOCATION_ADMIN,
}


def guard_page(ctx: AuthorizationContext, page: str, location_id: str | None = None) -> None:
    """Raise InsufficientPermission if the context may not enter `page`.

    Pages not listed in PAGE_MIN_ROLES are open to any resolved context.
    """
    min_role = PAGE_MIN_ROLES.get(page)
    if min_role is None:
        return
    if page == "outlet_detail":
        if location_id is None:
            raise InvalidSelection("outlet_detail guard needs a location id")
        require_role(ctx, min_role, location_id)
    else:
        require_role(ctx, min_role)
