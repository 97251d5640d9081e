"""Mutation gating derived from the location selection.

The gate is recomputed from the selection on every call and never
cached: writes are only allowed while exactly one location is selected.
"""

from __future__ import annotations

from dataclasses import dataclass

from eop_access.middleware.exceptions import InvalidSelection
from eop_access.services.selection import LocationSelection, SelectionKind

REASON_AGGREGATE = "Select a specific location to perform this action"
REASON_UNSELECTED = "No location selected"
REASON_NO_ACCESS = "You have not been assigned to any location"


@dataclass(frozen=True)
class MutationGate:
    disabled: bool
    reason: str | None = None


_GATES: dict[SelectionKind, MutationGate] = {
    SelectionKind.SINGLE: MutationGate(disabled=False),
    SelectionKind.ALL: MutationGate(disabled=True, reason=REASON_AGGREGATE),
    SelectionKind.UNSELECTED: MutationGate(disabled=True, reason=REASON_UNSELECTED),
    SelectionKind.NO_ACCESS: MutationGate(disabled=True, reason=REASON_NO_ACCESS),
}


def compute_mutation_gate(selection: LocationSelection) -> MutationGate:
    return _GATES[selection.kind]


def require_mutations_enabled(selection: LocationSelection) -> str:
    """Return the selected location id, or raise InvalidSelection with the gate's reason."""
    gate = compute_mutation_gate(selection)
    if gate.disabled:
        raise InvalidSelection(gate.reason or "Mutations are disabled")
    return selection.location_id
