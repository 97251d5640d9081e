"""Location selection state machine.

The active selection is never stored as ground truth. It is recomputed
from an external hint (the `?outlet=` query value on the web surface,
in-memory state on mobile) plus the current AuthorizationContext:

  1. hint == "all" and org_admin+ anywhere      → ALL
  2. hint is an accessible location id          → SINGLE(hint)
  3. exactly one assignment                     → SINGLE(that id)
  4. several assignments, no valid hint         → UNSELECTED (caller must ask)
  5. no assignments: super-admin                → ALL
                     anyone else                → NO_ACCESS (dead end, not a crash)

Switching only validates a candidate and returns the hint the caller
should persist. This module never writes storage.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from eop_access.auth.permissions import can_access_location, has_role
from eop_access.auth.roles import Role, TOP_ROLE, role_label
from eop_access.middleware.exceptions import InvalidSelection, UnknownLocation
from eop_access.schemas.context import AuthorizationContext, LocationRoleAssignment

AGGREGATE_SENTINEL = "all"

# Minimum role for the aggregate ("all locations") view.
AGGREGATE_MIN_ROLE = Role.ORG_ADMIN

# Location id used for a super-admin acting outside any assigned location.
SYSTEM_LOCATION_ID = "system"


class SelectionKind(str, enum.Enum):
    UNSELECTED = "unselected"
    SINGLE = "single"
    ALL = "all"
    NO_ACCESS = "no_access"


@dataclass(frozen=True)
class LocationSelection:
    kind: SelectionKind
    location_id: str | None = None

    @classmethod
    def single(cls, location_id: str) -> "LocationSelection":
        return cls(SelectionKind.SINGLE, location_id)

    @classmethod
    def all(cls) -> "LocationSelection":
        return cls(SelectionKind.ALL)

    @classmethod
    def unselected(cls) -> "LocationSelection":
        return cls(SelectionKind.UNSELECTED)

    @classmethod
    def no_access(cls) -> "LocationSelection":
        return cls(SelectionKind.NO_ACCESS)

    @property
    def is_all(self) -> bool:
        return self.kind is SelectionKind.ALL

    @property
    def hint(self) -> str | None:
        """The value to carry back out as the selection hint."""
        if self.kind is SelectionKind.SINGLE:
            return self.location_id
        if self.kind is SelectionKind.ALL:
            return AGGREGATE_SENTINEL
        return None


def _normalize_hint(hint: str | None) -> str | None:
    if hint is None:
        return None
    hint = hint.strip()
    return hint or None


def can_see_all(ctx: AuthorizationContext) -> bool:
    return has_role(ctx, AGGREGATE_MIN_ROLE)


def compute_selection(hint: str | None, ctx: AuthorizationContext) -> LocationSelection:
    """Resolve the effective selection for `hint` under `ctx`.

    Stale or foreign hints are ignored, never raised on.
    """
    hint = _normalize_hint(hint)

    if hint == AGGREGATE_SENTINEL:
        if can_see_all(ctx):
            return LocationSelection.all()
    elif hint is not None and can_access_location(ctx, hint):
        return LocationSelection.single(hint)

    if len(ctx.assignments) == 1:
        return LocationSelection.single(ctx.assignments[0].location_id)

    if len(ctx.assignments) > 1:
        return LocationSelection.unselected()

    if ctx.is_super_admin:
        return LocationSelection.all()

    return LocationSelection.no_access()


def request_switch(candidate: str | None, ctx: AuthorizationContext) -> str:
    """Validate a switch target and return the new hint to persist.

    Raises InvalidSelection for an empty candidate or an aggregate request
    without org_admin+, and UnknownLocation for a location the context
    cannot access. On rejection the caller keeps its prior selection.
    """
    candidate = _normalize_hint(candidate)
    if candidate is None:
        raise InvalidSelection("Empty selection")

    if candidate == AGGREGATE_SENTINEL:
        if not can_see_all(ctx):
            raise InvalidSelection(
                f"Aggregate view requires {AGGREGATE_MIN_ROLE.value} or above"
            )
        return AGGREGATE_SENTINEL

    if not can_access_location(ctx, candidate):
        raise UnknownLocation(candidate)
    return candidate


def selected_assignment(
    selection: LocationSelection,
    ctx: AuthorizationContext,
) -> LocationRoleAssignment | None:
    """The assignment backing a selection, for location-scoped queries.

    A super-admin on a location they hold no assignment for gets a
    synthetic top-rank assignment, and a super-admin with no assignments
    at all is scoped to the system location. Other selections have none.
    """
    if ctx.is_super_admin and not ctx.assignments:
        return LocationRoleAssignment(
            location_id=selection.location_id or SYSTEM_LOCATION_ID, role=TOP_ROLE
        )
    if selection.kind is not SelectionKind.SINGLE or selection.location_id is None:
        return None
    assignment = ctx.assignment_for(selection.location_id)
    if assignment is not None:
        return assignment
    if ctx.is_super_admin:
        return LocationRoleAssignment(location_id=selection.location_id, role=TOP_ROLE)
    return None


@dataclass(frozen=True)
class SwitchOption:
    value: str
    label: str
    role: Role | None = None


def switch_options(ctx: AuthorizationContext) -> list[SwitchOption]:
    """Valid switch targets: the aggregate view first (org_admin+), then each location."""
    options: list[SwitchOption] = []
    if can_see_all(ctx):
        options.append(SwitchOption(AGGREGATE_SENTINEL, "All Outlets"))
    for assignment in ctx.assignments:
        name = assignment.location_name or assignment.location_id
        options.append(
            SwitchOption(
                assignment.location_id,
                f"{name} ({role_label(assignment.role)})",
                assignment.role,
            )
        )
    return options
