"""Read models for the external store's public schema."""

from eop_access.models.public.location import Location, LocationUser
from eop_access.models.public.organization import Organization
from eop_access.models.public.profile import Profile

__all__ = ["Location", "LocationUser", "Organization", "Profile"]
