"""Role hierarchy for location-scoped RBAC.

Design:
  - The set of roles is closed: staff < manager < location_admin
    < org_admin < super_admin.
  - Every role maps to a strictly increasing integer rank in ROLE_RANK.
    All ordering goes through the rank, never through the role string
    ("manager" < "staff" alphabetically, which is exactly wrong).
  - super_admin is the ceiling rank. On a resolved context it is also a
    bypass flag, because super-admin status can exist without any
    location assignment (see AuthorizationContext.is_super_admin).

The external store names the location-scoped admin role `outlet_admin`;
parse_role() accepts it as an alias of LOCATION_ADMIN.
"""

from __future__ import annotations

import enum


class Role(str, enum.Enum):
    STAFF = "staff"
    MANAGER = "manager"
    LOCATION_ADMIN = "location_admin"
    ORG_ADMIN = "org_admin"
    SUPER_ADMIN = "super_admin"

    @property
    def rank(self) -> int:
        return ROLE_RANK[self]

    # Rank ordering replaces str ordering for every comparison operator.
    def __lt__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank >= other.rank


class Comparison(enum.IntEnum):
    LESS = -1
    EQUAL = 0
    GREATER = 1


# ── Rank table ──────────────────────────────────────────────

ROLE_RANK: dict[Role, int] = {
    Role.STAFF: 1,
    Role.MANAGER: 2,
    Role.LOCATION_ADMIN: 3,
    Role.ORG_ADMIN: 4,
    Role.SUPER_ADMIN: 5,
}

# Ordered from least to most privileged.
ALL_ROLES: tuple[Role, ...] = tuple(sorted(ROLE_RANK, key=ROLE_RANK.__getitem__))

TOP_ROLE: Role = ALL_ROLES[-1]
BOTTOM_ROLE: Role = ALL_ROLES[0]

ROLE_LABELS: dict[Role, str] = {
    Role.STAFF: "Staff",
    Role.MANAGER: "Manager",
    Role.LOCATION_ADMIN: "Location Admin",
    Role.ORG_ADMIN: "Org Admin",
    Role.SUPER_ADMIN: "Super Admin",
}

_ALIASES: dict[str, Role] = {
    "outlet_admin": Role.LOCATION_ADMIN,
}


# ── Public helpers ──────────────────────────────────────────

def rank(role: Role) -> int:
    """Return the integer rank of a role (higher = more privileged)."""
    return ROLE_RANK[Role(role)]


def compare(a: Role, b: Role) -> Comparison:
    """Compare two roles by rank."""
    diff = rank(a) - rank(b)
    if diff < 0:
        return Comparison.LESS
    if diff > 0:
        return Comparison.GREATER
    return Comparison.EQUAL


def parse_role(value: str | Role | None) -> Role | None:
    """Map a stored role string onto a Role, or None if it is not one.

    Unknown strings are never coerced into a role.
    """
    if value is None:
        return None
    if isinstance(value, Role):
        return value
    normalized = str(value).strip().lower()
    if normalized in _ALIASES:
        return _ALIASES[normalized]
    try:
        return Role(normalized)
    except ValueError:
        return None


def role_label(role: Role | str) -> str:
    parsed = parse_role(role)
    if parsed is None:
        return str(role)
    return ROLE_LABELS[parsed]
