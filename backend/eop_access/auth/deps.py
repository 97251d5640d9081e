"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_identity               → decode the provider token, return IdentityHandle
  get_authorization_context  → resolve the full context for that identity
  get_selection              → location selection from the `?outlet=` hint
  require_role(...)          → restrict to a minimum role (optionally per location)
  require_mutations_enabled  → restrict writes to a single selected location
"""

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from eop_access.auth.jwt import decode_identity
from eop_access.auth.permissions import require_role as _require_role
from eop_access.auth.roles import Role
from eop_access.config import settings
from eop_access.database import async_session
from eop_access.middleware.exceptions import AuthenticationMissing, InvalidSelection
from eop_access.schemas.context import AuthorizationContext, IdentityHandle
from eop_access.services.data_service import DatabaseDataService
from eop_access.services.gating import require_mutations_enabled as _require_mutations_enabled
from eop_access.services.resolver import ContextResolver
from eop_access.services.selection import LocationSelection, compute_selection
from eop_access.utils.cache import ContextCache

# Tokens are issued by the identity provider; a missing header is ours to report.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/v1/token", auto_error=False)

_resolver: ContextResolver | None = None


def get_resolver() -> ContextResolver:
    """Process-wide resolver over the configured store (override in tests)."""
    global _resolver
    if _resolver is None:
        _resolver = ContextResolver(
            DatabaseDataService(async_session),
            cache=ContextCache(),
        )
    return _resolver


# ── Identity and context ────────────────────────────────────

async def get_identity(token: str | None = Depends(oauth2_scheme)) -> IdentityHandle:
    identity = decode_identity(token)
    if identity is None:
        raise AuthenticationMissing(
            "Missing bearer token" if not token else "Invalid or expired token"
        )
    return identity


async def get_authorization_context(
    identity: IdentityHandle = Depends(get_identity),
    resolver: ContextResolver = Depends(get_resolver),
) -> AuthorizationContext:
    """Resolve a fresh context per request. Nothing partial is ever returned."""
    return await resolver.resolve(identity)


# ── Location selection ──────────────────────────────────────

async def get_selection(
    request: Request,
    ctx: AuthorizationContext = Depends(get_authorization_context),
) -> LocationSelection:
    hint = request.query_params.get(settings.selection_query_param)
    return compute_selection(hint, ctx)


async def require_mutations_enabled(
    selection: LocationSelection = Depends(get_selection),
) -> str:
    """Return the selected location id, or fail if writes are gated off."""
    return _require_mutations_enabled(selection)


# ── Role-based access control ───────────────────────────────

def require_role(role: Role, location_param: str | None = None):
    """Dependency factory: restrict to a minimum role.

    With `location_param`, the role is checked at the location whose id is
    in that path or query parameter; otherwise at any location.

    Usage:
        @router.get("/outlets/{location_id}")
        async def detail(
            ctx: AuthorizationContext = Depends(
                require_role(Role.LOCATION_ADMIN, location_param="location_id")
            ),
        ):
            ...
    """
    async def _check(
        request: Request,
        ctx: AuthorizationContext = Depends(get_authorization_context),
    ) -> AuthorizationContext:
        location_id = None
        if location_param is not None:
            location_id = (
                request.path_params.get(location_param)
                or request.query_params.get(location_param)
            )
            # Never widen a location-scoped check to "any location".
            if not location_id:
                raise InvalidSelection(f"Missing location parameter: {location_param}")
        _require_role(ctx, role, location_id)
        return ctx

    return _check
