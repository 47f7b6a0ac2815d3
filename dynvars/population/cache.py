"""Per-instance hydration cache carried on owner objects."""

import asyncio
from dataclasses import dataclass
from typing import Any

from dynvars.variables.enums import HydrationState


@dataclass(eq=False)
class VariableCache:
    """Hydration state of one in-memory owner instance.

    Lives as long as the instance does. Copies of an owner never share a
    cache: copying a VariableCache yields a fresh, un-hydrated one.
    """

    state: HydrationState = HydrationState.UNHYDRATED
    view: Any = None
    # Bumped on every successful load; lets callers detect a re-hydration.
    generation: int = 0
    # Single-load task, or the future of a batch that took the load over.
    pending: asyncio.Future | None = None

    @property
    def is_hydrated(self) -> bool:
        return self.state is HydrationState.HYDRATED

    def commit(self, view: Any) -> None:
        """Record a freshly loaded view."""
        self.view = view
        self.state = HydrationState.HYDRATED
        self.generation += 1

    def reset(self) -> None:
        """Drop the loaded view; the generation counter is kept."""
        self.view = None
        self.state = HydrationState.UNHYDRATED
        self.pending = None

    def __copy__(self) -> "VariableCache":
        return VariableCache()

    def __deepcopy__(self, memo: dict[int, Any]) -> "VariableCache":
        return VariableCache()
