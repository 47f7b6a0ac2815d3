"""Owner entities that carry runtime variables."""

from dynvars.owners.base import VariableOwner
from dynvars.owners.models import (
    ClassroomRef,
    ClassScopedOwner,
    Scenario,
    Store,
    StoreType,
    Submission,
)
from dynvars.owners.overlays import OwnerOverlays, configure_overlays

__all__ = [
    "ClassroomRef",
    "ClassScopedOwner",
    "OwnerOverlays",
    "Scenario",
    "Store",
    "StoreType",
    "Submission",
    "VariableOwner",
    "configure_overlays",
]
