"""Population overlay configuration."""

from pydantic import BaseModel, Field


class OverlaySettings(BaseModel):
    """Settings shared by every owner-type overlay."""

    field_name: str = Field(
        default="variables",
        min_length=1,
        description="Field the hydrated view is serialized under",
    )
    eager_hydration: bool = Field(
        default=False,
        description="Schedule a background hydrate when an owner is constructed",
    )
    conflict_retries: int = Field(
        default=1,
        ge=0,
        le=5,
        description="Times a conflicting value insert is retried as an update",
    )
