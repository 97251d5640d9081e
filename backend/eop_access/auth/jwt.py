"""Identity provider (Supabase) access tokens.

Claims read:
  - sub:             identity id
  - email:           identity email
  - user_metadata:   full_name / avatar_url (display fallback only)
  - app_metadata:    is_super_admin flag, or role == "super_admin"
  - exp:             expiry timestamp (checked by python-jose)

Audience and issuer are not verified: the provider issues project-scoped
tokens whose `aud` is "authenticated" and whose `iss` varies per project.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from eop_access.config import settings
from eop_access.schemas.context import IdentityHandle

ALGORITHM = settings.jwt_algorithm


def create_identity_token(
    user_id: str,
    email: str | None = None,
    full_name: str | None = None,
    avatar_url: str | None = None,
    is_super_admin: bool = False,
    expires_delta: timedelta | None = None,
) -> str:
    """Mint a provider-shaped token. Used by tests and local tooling."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    payload = {
        "sub": user_id,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": expire,
        "user_metadata": {},
        "app_metadata": {},
    }
    if email:
        payload["email"] = email
    if full_name:
        payload["user_metadata"]["full_name"] = full_name
    if avatar_url:
        payload["user_metadata"]["avatar_url"] = avatar_url
    if is_super_admin:
        payload["app_metadata"]["is_super_admin"] = True
    return jwt.encode(payload, settings.supabase_jwt_secret, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=[ALGORITHM],
            options={"verify_aud": False, "verify_iss": False},
        )
    except JWTError:
        return {}


def identity_from_claims(payload: dict) -> IdentityHandle | None:
    user_id = payload.get("sub")
    if not user_id:
        return None

    user_meta = payload.get("user_metadata") or {}
    app_meta = payload.get("app_metadata") or {}
    explicit_super_admin = (
        app_meta.get("is_super_admin") is True
        or app_meta.get("role") == "super_admin"
    )
    return IdentityHandle(
        id=user_id,
        email=payload.get("email"),
        display_name=user_meta.get("full_name"),
        avatar_ref=user_meta.get("avatar_url"),
        is_super_admin=explicit_super_admin,
    )


def decode_identity(token: str | None) -> IdentityHandle | None:
    """Return the identity behind `token`, or None if it is missing or invalid."""
    if not token:
        return None
    return identity_from_claims(decode_token(token))
