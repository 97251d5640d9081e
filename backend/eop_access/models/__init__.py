"""Aggregate model imports so PublicBase.metadata sees every table."""

from eop_access.models.public.profile import Profile  # noqa: F401
from eop_access.models.public.organization import Organization  # noqa: F401
from eop_access.models.public.location import Location, LocationUser  # noqa: F401
