"""Shared test fixtures for the dynvars test suite."""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

import pytest

from dynvars.owners import Scenario, Store, StoreType, Submission
from dynvars.population import PopulationOverlay
from dynvars.variables.enums import ScopeCategory
from dynvars.variables.models import VariableScope
from dynvars.variables.registry import DefinitionRegistry
from dynvars.variables.stores.inmemory import (
    InMemoryVariableDefinitionStore,
    InMemoryVariableValueStore,
)
from dynvars.variables.values import VariableValueService


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "app_name = 'test'",
                "development.toml": "debug = true",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            toml_file = test_config_dir / filename
            toml_file.write_text(content)

    return _create_toml_files


class EnvOverrideContext:
    """Context manager for temporarily setting environment variables."""

    def __init__(self, overrides: dict[str, str]) -> None:
        self.overrides = overrides
        self.original_env: dict[str, str | None] = {}

    def __enter__(self) -> None:
        for key, value in self.overrides.items():
            self.original_env[key] = os.environ.get(key)
            os.environ[key] = value

    def __exit__(self, *args: Any) -> None:
        for key in self.overrides:
            if self.original_env[key] is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = self.original_env[key]


@pytest.fixture
def env_override() -> Generator[Callable[[dict[str, str]], EnvOverrideContext], None, None]:
    """Context manager for temporarily setting environment variables.

    Usage:
        def test_something(env_override):
            with env_override({"DYNVARS_DEBUG": "true"}):
                # test code here
    """

    def _env_override(overrides: dict[str, str]) -> EnvOverrideContext:
        return EnvOverrideContext(overrides)

    yield _env_override


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache before and after each test.

    This ensures test isolation for configuration tests.
    """
    from dynvars.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def uninstall_owner_overlays() -> Generator[None, None, None]:
    """Unbind owner classes from overlays installed during a test."""
    yield
    for owner_cls in (Store, Scenario, Submission, StoreType):
        PopulationOverlay.uninstall(owner_cls)


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def class_scope_id() -> UUID:
    return uuid4()


@pytest.fixture
def store_scope(tenant_id: UUID, class_scope_id: UUID) -> VariableScope:
    return VariableScope.for_class(tenant_id, ScopeCategory.STORE, class_scope_id)


@pytest.fixture
def submission_scope(tenant_id: UUID, class_scope_id: UUID) -> VariableScope:
    return VariableScope.for_class(tenant_id, ScopeCategory.SUBMISSION, class_scope_id)


@pytest.fixture
def store_type_scope(tenant_id: UUID) -> VariableScope:
    return VariableScope.org_wide(tenant_id, ScopeCategory.STORE_TYPE)


@pytest.fixture
def definition_store() -> InMemoryVariableDefinitionStore:
    return InMemoryVariableDefinitionStore()


@pytest.fixture
def value_store() -> InMemoryVariableValueStore:
    return InMemoryVariableValueStore()


@pytest.fixture
def registry(
    definition_store: InMemoryVariableDefinitionStore,
    value_store: InMemoryVariableValueStore,
) -> DefinitionRegistry:
    return DefinitionRegistry(definition_store, value_store)


@pytest.fixture
def value_service(
    definition_store: InMemoryVariableDefinitionStore,
    value_store: InMemoryVariableValueStore,
) -> VariableValueService:
    return VariableValueService(value_store, definition_store)
