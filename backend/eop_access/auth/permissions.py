"""Permission evaluator for location-scoped RBAC.

Design:
  - Every function takes an AuthorizationContext snapshot and answers a
    question about it. No I/O, no mutation, deterministic.
  - "No" is a normal answer: these functions return False for unknown
    locations and missing assignments, they never raise.
  - require_role() is the single hard-stop: it converts a False from
    has_role() into InsufficientPermission.
  - Super-admin status is read from `ctx.is_super_admin`, not from the
    assignments, so it also covers super-admins with no location.

Usage:
    if has_role(ctx, Role.MANAGER, location_id):
        ...
    require_role(ctx, Role.ORG_ADMIN)   # raises InsufficientPermission
"""

from __future__ import annotations

from eop_access.auth.roles import ALL_ROLES, TOP_ROLE, Role, rank
from eop_access.middleware.exceptions import InsufficientPermission
from eop_access.schemas.context import AuthorizationContext


def has_role(
    ctx: AuthorizationContext,
    required_role: Role,
    location_id: str | None = None,
) -> bool:
    """Check whether the context holds at least `required_role`.

    With `location_id`, only the assignment at that location counts.
    Without it, any assignment anywhere that meets the requirement is
    enough ("can this identity do X somewhere").
    """
    if ctx.is_super_admin:
        return True

    required = rank(required_role)

    if location_id is not None:
        assignment = ctx.assignment_for(location_id)
        if assignment is None:
            return False
        return rank(assignment.role) >= required

    return any(rank(a.role) >= required for a in ctx.assignments)


def can_access_location(ctx: AuthorizationContext, location_id: str) -> bool:
    """Visibility check: any assignment at the location, whatever the role."""
    if ctx.is_super_admin:
        return True
    return ctx.assignment_for(location_id) is not None


def can_assign_role(assigner_role: Role, target_role: Role) -> bool:
    """Whether `assigner_role` may grant `target_role` to someone else.

    - The top rank is never a target, whoever assigns it.
    - The assigner must rank strictly above the target (no lateral grants).
    """
    if Role(target_role) is TOP_ROLE:
        return False
    return rank(assigner_role) > rank(target_role)


def get_highest_role(ctx: AuthorizationContext) -> Role | None:
    """Return the most privileged role the context holds.

    Super-admins get the top rank even with no assignments. Returns None
    for a non-super-admin with no assignments. Among equal-rank
    assignments only the role is reported, never which location backs it.
    """
    if ctx.is_super_admin:
        return TOP_ROLE
    if not ctx.assignments:
        return None
    return max((a.role for a in ctx.assignments), key=rank)


def require_role(
    ctx: AuthorizationContext,
    required_role: Role,
    location_id: str | None = None,
) -> None:
    """Raise InsufficientPermission unless has_role() holds."""
    if not has_role(ctx, required_role, location_id):
        raise InsufficientPermission(required_role, location_id)


def assignable_roles(assigner_role: Role | None) -> list[Role]:
    """Roles `assigner_role` may grant, least privileged first."""
    if assigner_role is None:
        return []
    return [role for role in ALL_ROLES if can_assign_role(assigner_role, role)]


def role_at_location(ctx: AuthorizationContext, location_id: str) -> Role | None:
    """Effective role at one location (the top rank for super-admins)."""
    if ctx.is_super_admin:
        return TOP_ROLE
    assignment = ctx.assignment_for(location_id)
    return assignment.role if assignment else None
