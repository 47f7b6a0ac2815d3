"""Tests for bootstrapping the variable engine."""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
import redis.asyncio as redis

from dynvars.bootstrap import VariableEngine, bootstrap
from dynvars.config.settings import Settings, set_toml_config
from dynvars.owners import Submission
from dynvars.population import overlay_for
from dynvars.variables.enums import ScopeCategory
from dynvars.variables.models import OwnerRef, VariableScope
from dynvars.variables.stores import CachedVariableDefinitionStore


@pytest.fixture(autouse=True)
def empty_toml() -> None:
    set_toml_config({})


class TestBootstrap:
    """Tests for bootstrap wiring."""

    def test_builds_engine_from_settings(self):
        engine = bootstrap(Settings(), configure_logging=False)

        assert isinstance(engine, VariableEngine)
        assert overlay_for(Submission) is engine.overlays.submission

    def test_conflict_retries_from_settings(self):
        engine = bootstrap(Settings(overlay={"conflict_retries": 3}), configure_logging=False)
        assert engine.values._conflict_retries == 3

    def test_redis_client_passed_to_cache(self):
        client = AsyncMock(spec=redis.Redis)
        settings = Settings(storage={"definition_cache": {"enabled": True}})

        engine = bootstrap(settings, redis_client=client, configure_logging=False)

        assert isinstance(engine.stores.definitions, CachedVariableDefinitionStore)
        assert engine.stores.redis_client is client

    def test_metrics_server_started_when_requested(self):
        with patch("dynvars.bootstrap.start_http_server") as start:
            bootstrap(Settings(), configure_logging=False, serve_metrics=True)
        start.assert_called_once_with(9090)

    def test_metrics_server_not_started_when_disabled(self):
        settings = Settings(observability={"metrics": {"enabled": False}})
        with patch("dynvars.bootstrap.start_http_server") as start:
            bootstrap(settings, configure_logging=False, serve_metrics=True)
        start.assert_not_called()

    def test_loads_settings_when_omitted(self, test_config_dir, mock_toml_files, monkeypatch):
        mock_toml_files({"default.toml": "[overlay]\nfield_name = 'vars'"})
        monkeypatch.setenv("DYNVARS_CONFIG_DIR", str(test_config_dir))
        monkeypatch.setenv("DYNVARS_ENV", "nonexistent")

        engine = bootstrap(configure_logging=False)

        assert engine.overlays.store.field_name == "vars"

    @pytest.mark.asyncio
    async def test_engine_round_trip(self):
        engine = bootstrap(Settings(), configure_logging=False)
        tenant_id, class_scope_id = uuid4(), uuid4()
        scope = VariableScope.for_class(tenant_id, ScopeCategory.SUBMISSION, class_scope_id)
        await engine.registry.register(
            scope, {"key": "expectedDemand", "label": "Expected Demand", "data_type": "number"}
        )
        submission = Submission(
            tenant_id=tenant_id,
            classroom_id=class_scope_id,
            scenario_id=uuid4(),
            user_id=uuid4(),
        )
        await engine.values.set_value(
            scope,
            OwnerRef(kind=ScopeCategory.SUBMISSION, id=submission.id),
            "expectedDemand",
            1200,
        )

        await engine.overlays.submission.hydrate(submission)

        assert submission.model_dump()["variables"] == {"expectedDemand": 1200}
        await engine.close()
