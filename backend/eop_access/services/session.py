"""Per-session owner of the resolved authorization context.

Each call to begin() tags the resolution with the next sequence number.
When the fetch returns, the result is applied only if its number is still
current; a sign-out or another begin() in the meantime makes it stale,
and a stale result (or stale failure) is dropped, never merged.

The context is replaced wholesale on every resolution. Reading it before
a resolution has completed raises ContextNotResolved.
"""

import logging

from eop_access.middleware.exceptions import AccessError, ContextNotResolved
from eop_access.schemas.context import AuthorizationContext, IdentityHandle
from eop_access.services.gating import MutationGate, compute_mutation_gate
from eop_access.services.resolver import ContextResolver
from eop_access.services.selection import (
    LocationSelection,
    compute_selection,
    request_switch,
)

logger = logging.getLogger("eop.session")


class AuthSession:
    """One signed-in session. Not shared between sessions."""

    def __init__(self, resolver: ContextResolver):
        self.resolver = resolver
        self._sequence = 0
        self._identity: IdentityHandle | None = None
        self._context: AuthorizationContext | None = None
        self._error: AccessError | None = None
        # In-memory selection hint (mobile surface).
        self._hint: str | None = None

    # ── Resolution ──────────────────────────────────────────

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def identity(self) -> IdentityHandle | None:
        return self._identity

    @property
    def is_resolved(self) -> bool:
        return self._context is not None

    @property
    def error(self) -> AccessError | None:
        """Failure of the most recent current resolution, if any."""
        return self._error

    def is_current(self, sequence: int) -> bool:
        return sequence == self._sequence

    async def begin(
        self,
        identity: IdentityHandle | None,
        use_cache: bool = True,
    ) -> AuthorizationContext | None:
        """Resolve the context for a (new) identity.

        Returns the context, or None if this resolution was superseded
        while in flight. Failures of a current resolution are raised.
        """
        if identity is None:
            self.end()
            return None

        if self._identity is None or self._identity.id != identity.id:
            self._hint = None
        self._sequence += 1
        sequence = self._sequence
        self._identity = identity
        self._context = None
        self._error = None

        try:
            ctx = await self.resolver.resolve(identity, use_cache=use_cache)
        except AccessError as exc:
            if not self.is_current(sequence):
                logger.info("Dropping stale resolution failure for %s (#%d)", identity.id, sequence)
                return None
            self._error = exc
            raise

        if not self.is_current(sequence):
            logger.info("Dropping stale resolution for %s (#%d)", identity.id, sequence)
            return None

        self._context = ctx
        return ctx

    async def refresh(self) -> AuthorizationContext | None:
        """Re-resolve the current identity, bypassing the cache."""
        if self._identity is None:
            raise ContextNotResolved("No identity to refresh")
        await self.resolver.invalidate(self._identity.id)
        return await self.begin(self._identity, use_cache=False)

    def end(self) -> None:
        """Tear down: any in-flight resolution becomes stale."""
        self._sequence += 1
        self._identity = None
        self._context = None
        self._error = None
        self._hint = None

    @property
    def context(self) -> AuthorizationContext:
        if self._context is None:
            raise ContextNotResolved()
        return self._context

    # ── Selection ───────────────────────────────────────────

    @property
    def hint(self) -> str | None:
        return self._hint

    def selection(self, hint: str | None = None) -> LocationSelection:
        """Selection for `hint`, or for the session's own hint when omitted."""
        return compute_selection(hint if hint is not None else self._hint, self.context)

    def mutation_gate(self, hint: str | None = None) -> MutationGate:
        return compute_mutation_gate(self.selection(hint))

    def switch(self, candidate: str) -> str:
        """Validate and adopt a new hint. On rejection the old hint stays."""
        new_hint = request_switch(candidate, self.context)
        self._hint = new_hint
        return new_hint
