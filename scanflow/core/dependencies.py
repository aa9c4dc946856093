"""
==============================================================================
FastAPI Dependencies Module
==============================================================================

Dependency providers shared by the HTTP routes and the scan WebSocket.

Dependency Hierarchy:
--------------------
        ┌─────────────────┐
        │ get_settings()  │
        └────────┬────────┘
                 │
    ┌────────────▼────────────┐
    │ get_settings_provider() │
    └─────────────────────────┘

Tests replace ``get_settings_provider`` through
``app.dependency_overrides`` to inject profiles and preferences.

==============================================================================
"""

from __future__ import annotations

import logging
from functools import lru_cache

from scanflow.config import EnvSettingsProvider, get_settings


# Module logger
logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_settings_provider() -> EnvSettingsProvider:
    """
    Get the process-wide settings provider.

    Returns:
        EnvSettingsProvider reading the configured profiles file
    """
    settings = get_settings()
    provider = EnvSettingsProvider(settings)
    logger.debug(f"Settings provider ready: {len(provider.store.profiles)} profiles")
    return provider
