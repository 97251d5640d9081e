"""Authorization context routes consumed by views and page guards.

Route overview:
  GET  /me                 : resolved context, highest role, display label
  POST /refresh            : drop the cached context and re-resolve
  GET  /selection          : selection for the `?outlet=` hint + mutation gate
  GET  /selection/options  : valid switch targets
  POST /selection/switch   : validate a switch target, return the hint to persist
  GET  /assignable-roles   : roles the caller may grant (optionally at one location)
  GET  /navigation         : nav items visible to the caller
  GET  /pages/{page}       : 204 if the caller may enter the page
"""

from fastapi import APIRouter, Depends, Response, status

from eop_access.auth.deps import (
    get_authorization_context,
    get_identity,
    get_resolver,
    get_selection,
)
from eop_access.auth.gates import can_invoke_assign_role, guard_page, visible_nav_items
from eop_access.auth.permissions import assignable_roles, get_highest_role, role_at_location
from eop_access.auth.roles import ALL_ROLES, role_label
from eop_access.schemas.context import (
    AssignableRolesOut,
    AuthorizationContext,
    ContextOut,
    IdentityHandle,
    NavItemOut,
    SelectionOut,
    SwitchOptionOut,
    SwitchOut,
    SwitchRequest,
)
from eop_access.services.gating import compute_mutation_gate
from eop_access.services.resolver import ContextResolver
from eop_access.services.selection import (
    LocationSelection,
    request_switch,
    selected_assignment,
    switch_options,
)

router = APIRouter()


def _context_out(ctx: AuthorizationContext) -> ContextOut:
    highest = get_highest_role(ctx)
    return ContextOut(
        context=ctx,
        highest_role=highest,
        role_label=role_label(highest) if highest else None,
    )


# ── Context ─────────────────────────────────────────────────

@router.get("/me", response_model=ContextOut)
async def me(ctx: AuthorizationContext = Depends(get_authorization_context)):
    return _context_out(ctx)


@router.post("/refresh", response_model=ContextOut)
async def refresh(
    identity: IdentityHandle = Depends(get_identity),
    resolver: ContextResolver = Depends(get_resolver),
):
    """Explicit refresh: a new context replaces the cached one wholesale."""
    await resolver.invalidate(identity.id)
    ctx = await resolver.resolve(identity, use_cache=False)
    return _context_out(ctx)


# ── Selection ───────────────────────────────────────────────

@router.get("/selection", response_model=SelectionOut)
async def selection(
    ctx: AuthorizationContext = Depends(get_authorization_context),
    current: LocationSelection = Depends(get_selection),
):
    gate = compute_mutation_gate(current)
    return SelectionOut(
        kind=current.kind.value,
        location_id=current.location_id,
        hint=current.hint,
        mutations_disabled=gate.disabled,
        mutations_disabled_reason=gate.reason,
        assignment=selected_assignment(current, ctx),
    )


@router.get("/selection/options", response_model=list[SwitchOptionOut])
async def selection_options(ctx: AuthorizationContext = Depends(get_authorization_context)):
    return [
        SwitchOptionOut(value=o.value, label=o.label, role=o.role)
        for o in switch_options(ctx)
    ]


@router.post("/selection/switch", response_model=SwitchOut)
async def switch_selection(
    body: SwitchRequest,
    ctx: AuthorizationContext = Depends(get_authorization_context),
):
    """Validate only. The caller persists the returned hint (URL / local state)."""
    return SwitchOut(hint=request_switch(body.candidate, ctx))


# ── Roles, navigation, pages ────────────────────────────────

@router.get("/assignable-roles", response_model=AssignableRolesOut)
async def get_assignable_roles(
    location_id: str | None = None,
    ctx: AuthorizationContext = Depends(get_authorization_context),
):
    if location_id is None:
        assigner = get_highest_role(ctx)
        return AssignableRolesOut(assigner_role=assigner, roles=assignable_roles(assigner))

    return AssignableRolesOut(
        assigner_role=role_at_location(ctx, location_id),
        roles=[r for r in ALL_ROLES if can_invoke_assign_role(ctx, location_id, r)],
    )


@router.get("/navigation", response_model=list[NavItemOut])
async def navigation(ctx: AuthorizationContext = Depends(get_authorization_context)):
    return [
        NavItemOut(label=item.label, href=item.href, min_role=item.min_role)
        for item in visible_nav_items(ctx)
    ]


@router.get("/pages/{page}", status_code=status.HTTP_204_NO_CONTENT)
async def check_page(
    page: str,
    location_id: str | None = None,
    ctx: AuthorizationContext = Depends(get_authorization_context),
):
    guard_page(ctx, page, location_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
