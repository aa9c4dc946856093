"""
==============================================================================
Configuration Package
==============================================================================

Centralized configuration management using Pydantic Settings.

This package provides:
- Environment-based configuration loading
- Type-safe scanner preferences and engine limits
- The environment-backed settings provider consumed by the engine

Usage:
------
    from scanflow.config import get_settings, Settings

    settings = get_settings()
    print(settings.device_name)

==============================================================================
"""

from .settings import Settings, get_settings
from .provider import EnvSettingsProvider

__all__ = [
    "Settings",
    "get_settings",
    "EnvSettingsProvider",
]
