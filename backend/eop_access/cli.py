"""Management CLI for access decisions.

Usage:
    python -m eop_access.cli roles                  # Show the role hierarchy
    python -m eop_access.cli assignable <role>      # Roles <role> may grant
    python -m eop_access.cli resolve <identity_id>  # Resolve a context from the store
"""

import asyncio
import sys

from eop_access.auth.permissions import assignable_roles, get_highest_role
from eop_access.auth.roles import ALL_ROLES, ROLE_LABELS, parse_role
from eop_access.database import async_session, engine
from eop_access.middleware.exceptions import AccessError
from eop_access.schemas.context import IdentityHandle
from eop_access.services.data_service import DatabaseDataService
from eop_access.services.resolver import ContextResolver
from eop_access.services.selection import compute_selection


def list_roles():
    for role in ALL_ROLES:
        print(f"  {role.rank}  {role.value:<16} {ROLE_LABELS[role]}")


def show_assignable(value: str) -> int:
    role = parse_role(value)
    if role is None:
        print(f"Unknown role: {value}")
        return 1
    roles = assignable_roles(role)
    if not roles:
        print(f"  {role.value} cannot grant any role")
    for r in roles:
        print(f"  {r.value}")
    return 0


async def _resolve(identity_id: str) -> int:
    resolver = ContextResolver(DatabaseDataService(async_session))
    try:
        ctx = await resolver.resolve(IdentityHandle(id=identity_id))
    except AccessError as e:
        print(f"  FAILED: {e.error_code} - {e.message}")
        return 1
    finally:
        await engine.dispose()

    highest = get_highest_role(ctx)
    print(f"  identity:    {ctx.identity_id}")
    print(f"  name:        {ctx.profile.display_name} <{ctx.profile.email}>")
    print(f"  super_admin: {ctx.is_super_admin}")
    print(f"  highest:     {highest.value if highest else '-'}")
    print(f"  selection:   {compute_selection(None, ctx).kind.value}")
    for a in ctx.assignments:
        print(f"    {a.location_id}  {a.role.value:<16} {a.location_name or ''} / {a.org_name or ''}")
    print(f"\n{len(ctx.assignments)} assignment(s)")
    return 0


def main(argv: list[str]) -> int:
    cmd = argv[1] if len(argv) > 1 else ""
    if cmd == "roles":
        list_roles()
        return 0
    if cmd == "assignable" and len(argv) > 2:
        return show_assignable(argv[2])
    if cmd == "resolve" and len(argv) > 2:
        return asyncio.run(_resolve(argv[2]))
    print("Usage: python -m eop_access.cli [roles|assignable <role>|resolve <identity_id>]")
    return 2


def run() -> None:
    sys.exit(main(sys.argv))


if __name__ == "__main__":
    run()
