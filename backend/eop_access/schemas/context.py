"""Authorization context value objects.

AuthorizationContext is built once per resolution and never patched:
a refresh produces a whole new instance (all models here are frozen).
"""

from pydantic import BaseModel, Field

from eop_access.auth.roles import Role


class LocationRoleAssignment(BaseModel):
    """One identity's granted role at one location."""
    location_id: str
    role: Role
    location_name: str | None = None
    org_name: str | None = None

    model_config = {"frozen": True}


class UserProfile(BaseModel):
    id: str
    email: str = ""
    display_name: str = ""
    avatar_ref: str | None = None
    # Coarse label for presentation only; never used for gating.
    app_role: Role = Role.STAFF

    model_config = {"frozen": True}


class AuthorizationContext(BaseModel):
    identity_id: str
    is_super_admin: bool = False
    assignments: tuple[LocationRoleAssignment, ...] = Field(default_factory=tuple)
    profile: UserProfile

    model_config = {"frozen": True}

    def assignment_for(self, location_id: str) -> LocationRoleAssignment | None:
        """Return the assignment held at `location_id`, if any."""
        for assignment in self.assignments:
            if assignment.location_id == location_id:
                return assignment
        return None

    @property
    def location_ids(self) -> list[str]:
        return [a.location_id for a in self.assignments]


# ── Raw rows from the external store ────────────────────────

class ProfileRow(BaseModel):
    display_name: str | None = None
    email: str | None = None
    avatar_ref: str | None = None


class AssignmentRow(BaseModel):
    location_id: str
    role: str
    location_name: str | None = None
    org_name: str | None = None


# ── API output ──────────────────────────────────────────────

class ContextOut(BaseModel):
    context: AuthorizationContext
    highest_role: Role | None
    role_label: str | None


class SelectionOut(BaseModel):
    kind: str                        # "single" | "all" | "unselected" | "no_access"
    location_id: str | None = None
    hint: str | None = None          # value to carry in the URL / local state
    mutations_disabled: bool
    mutations_disabled_reason: str | None = None
    assignment: LocationRoleAssignment | None = None


class SwitchRequest(BaseModel):
    candidate: str


class SwitchOut(BaseModel):
    hint: str


class SwitchOptionOut(BaseModel):
    value: str
    label: str
    role: Role | None = None


class AssignableRolesOut(BaseModel):
    assigner_role: Role | None
    roles: list[Role]


class NavItemOut(BaseModel):
    label: str
    href: str
    min_role: Role | None


# ── Identity provider handle ────────────────────────────────

class IdentityHandle(BaseModel):
    """An authenticated identity as the identity provider reports it."""
    id: str
    email: str | None = None
    display_name: str | None = None
    avatar_ref: str | None = None
    # Explicit super-admin flag from the provider, when it supplies one.
    is_super_admin: bool = False

    model_config = {"frozen": True}
