"""Wire one population overlay per owner type."""

from pydantic import BaseModel, ConfigDict

from dynvars.config.models.overlay import OverlaySettings
from dynvars.owners.models import Scenario, Store, StoreType, Submission
from dynvars.population.accessors import class_scope_accessor, org_scope_accessor
from dynvars.population.overlay import OverlayConfig, PopulationOverlay
from dynvars.variables.enums import OutputShape, ScopeCategory
from dynvars.variables.store import VariableDefinitionStore, VariableValueStore


class OwnerOverlays(BaseModel):
    """The installed overlay of each owner type."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    store: PopulationOverlay
    scenario: PopulationOverlay
    submission: PopulationOverlay
    store_type: PopulationOverlay

    def for_category(self, category: ScopeCategory) -> PopulationOverlay:
        return {
            ScopeCategory.STORE: self.store,
            ScopeCategory.SCENARIO: self.scenario,
            ScopeCategory.SUBMISSION: self.submission,
            ScopeCategory.STORE_TYPE: self.store_type,
        }[category]


def configure_overlays(
    definitions: VariableDefinitionStore,
    values: VariableValueStore,
    settings: OverlaySettings | None = None,
) -> OwnerOverlays:
    """Build and install overlays for Store, Scenario, Submission and StoreType.

    Stores and scenarios serialize as definition arrays; submissions and
    store types as value maps. Submissions fill definition defaults for
    unset keys.
    """
    settings = settings or OverlaySettings()
    common = {
        "field_name": settings.field_name,
        "eager_hydration": settings.eager_hydration,
    }

    def build(config: OverlayConfig, owner_cls: type) -> PopulationOverlay:
        overlay = PopulationOverlay(config, definitions, values)
        overlay.install(owner_cls)
        return overlay

    return OwnerOverlays(
        store=build(
            OverlayConfig(
                category=ScopeCategory.STORE,
                output_shape=OutputShape.DEFINITION_ARRAY,
                scope_accessor=class_scope_accessor(ScopeCategory.STORE),
                **common,
            ),
            Store,
        ),
        scenario=build(
            OverlayConfig(
                category=ScopeCategory.SCENARIO,
                output_shape=OutputShape.DEFINITION_ARRAY,
                scope_accessor=class_scope_accessor(ScopeCategory.SCENARIO),
                **common,
            ),
            Scenario,
        ),
        submission=build(
            OverlayConfig(
                category=ScopeCategory.SUBMISSION,
                output_shape=OutputShape.VALUE_MAP,
                scope_accessor=class_scope_accessor(ScopeCategory.SUBMISSION),
                apply_defaults=True,
                **common,
            ),
            Submission,
        ),
        store_type=build(
            OverlayConfig(
                category=ScopeCategory.STORE_TYPE,
                output_shape=OutputShape.VALUE_MAP,
                scope_accessor=org_scope_accessor(ScopeCategory.STORE_TYPE),
                **common,
            ),
            StoreType,
        ),
    )
