"""
==============================================================================
Pytest Configuration and Fixtures
==============================================================================

Provides settings, the settings provider override and the test client.

==============================================================================
"""

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from fakes import block, profile
from scanflow.config import EnvSettingsProvider, Settings
from scanflow.core.dependencies import get_settings_provider
from scanflow.main import app
from scanflow.profiles import BlockKind, ProfileStore


# ============================================================================
# SERVICE FIXTURES
# ============================================================================

@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings isolated from the environment and .env file."""
    return Settings(_env_file=None, profiles_file=str(tmp_path / "profiles.json"))


@pytest.fixture
def provider(test_settings: Settings) -> EnvSettingsProvider:
    """Provider serving an in-memory set of profiles."""
    store = ProfileStore(profiles=[
        profile(
            block(BlockKind.BARCODE, "BARCODE"),
            block(BlockKind.KEY, "enter"),
            name="Default",
        ),
        profile(
            block(BlockKind.BARCODE, "BARCODE"),
            block(BlockKind.VARIABLE, "quantity", label="How many?"),
            name="Quantity",
        ),
    ])
    return EnvSettingsProvider(test_settings, store)


@pytest.fixture(scope="function")
def client(provider: EnvSettingsProvider) -> Generator[TestClient, None, None]:
    """Create test client with the settings provider override."""
    app.dependency_overrides[get_settings_provider] = lambda: provider

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
