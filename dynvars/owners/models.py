"""Owner entities: stores, scenarios, submissions and store types."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from dynvars.owners.base import VariableOwner
from dynvars.population.accessors import reference_id


class ClassroomRef(BaseModel):
    """A populated classroom reference."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(..., description="Classroom identifier")
    name: str | None = Field(default=None, description="Classroom name")


class ClassScopedOwner(VariableOwner):
    """Owner bound to a class; ``classroom_id`` may be populated."""

    classroom_id: UUID | ClassroomRef | None = Field(
        default=None, description="Class scope, raw id or populated reference"
    )

    @property
    def class_scope_id(self) -> UUID | None:
        return reference_id(self.classroom_id)


class Store(ClassScopedOwner):
    """A student's store within a class."""

    user_id: UUID | None = Field(default=None, description="Owning student")
    shop_name: str = Field(..., description="Store name")
    store_description: str = Field(default="", description="Store description")
    store_location: str = Field(default="", description="Store location")
    starting_balance: float = Field(default=0, description="Opening cash balance")
    store_type_id: UUID | None = Field(default=None, description="Store type")


class Scenario(ClassScopedOwner):
    """A weekly scenario published to a class."""

    title: str = Field(..., description="Scenario title")
    description: str = Field(default="", description="Scenario description")
    week: int | None = Field(default=None, ge=1, description="Week number")
    is_published: bool = Field(default=False, description="Visible to students")
    is_closed: bool = Field(default=False, description="No longer accepts submissions")


class Submission(ClassScopedOwner):
    """A student's submission for a scenario."""

    scenario_id: UUID = Field(..., description="Scenario answered")
    user_id: UUID = Field(..., description="Submitting student")
    store_id: UUID | None = Field(default=None, description="Student's store")
    submitted_at: datetime | None = Field(default=None, description="Submission time")


class StoreType(VariableOwner):
    """Organization-wide store archetype; not bound to a class."""

    key: str = Field(..., description="Store type key")
    label: str = Field(..., description="Display name")
    description: str = Field(default="", description="Store type description")
    is_active: bool = Field(default=True, description="False once soft-deleted")
