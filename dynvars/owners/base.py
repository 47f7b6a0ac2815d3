"""Base model for entities that own runtime variables."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from dynvars.population.cache import VariableCache
from dynvars.population.overlay import overlay_for
from dynvars.variables.models import utc_now


class VariableOwner(BaseModel):
    """An entity whose serialized form carries hydrated variables.

    Each instance carries its own hydration cache. Copies (``copy``,
    ``deepcopy``, ``model_copy``) start un-hydrated. Equality compares field
    data only, so a copy still equals its hydrated original.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    tenant_id: UUID = Field(..., description="Owning tenant")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update")

    _variable_cache: VariableCache = PrivateAttr(default_factory=VariableCache)

    @property
    def variable_cache(self) -> VariableCache:
        return self._variable_cache

    def model_post_init(self, context: Any, /) -> None:
        overlay = overlay_for(type(self))
        if overlay is not None:
            overlay.schedule(self)

    def __eq__(self, other: Any) -> bool:
        # Field data only; the hydration cache is per-instance state.
        if not isinstance(other, VariableOwner):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.__dict__ == other.__dict__
            and self.__pydantic_extra__ == other.__pydantic_extra__
        )

    def __copy__(self) -> "VariableOwner":
        copied = super().__copy__()
        copied._variable_cache = VariableCache()
        return copied

    def __deepcopy__(self, memo: dict[int, Any] | None = None) -> "VariableOwner":
        copied = super().__deepcopy__(memo)
        copied._variable_cache = VariableCache()
        return copied
