"""
==============================================================================
Settings Provider Module
==============================================================================

Adapts the environment-backed Settings and the JSON profile store to the
engine's SettingsProvider contract.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import List, Optional

from scanflow.engine.barcodes import BarcodeFormatSetting
from scanflow.engine.collaborators import ScanPreferences
from scanflow.profiles import OutputProfile, ProfileStore
from .settings import Settings, get_settings


# Module logger
logger = logging.getLogger(__name__)


class EnvSettingsProvider:
    """
    SettingsProvider backed by environment settings and a profile file.

    Attributes:
        settings: Application settings
        store: Output profile store

    Example:
        >>> provider = EnvSettingsProvider()
        >>> preferences = await provider.get_preferences()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[ProfileStore] = None
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store or ProfileStore(self.settings.profiles_path)

    async def get_preferences(self) -> ScanPreferences:
        """Build scanner preferences from the current settings."""
        formats = [
            BarcodeFormatSetting(name=f["name"], enabled=bool(f.get("enabled", True)))
            for f in self.settings.barcode_formats_list
        ]
        return ScanPreferences(
            prefer_front_camera=self.settings.prefer_front_camera,
            enable_limit_barcode_formats=self.settings.enable_limit_barcode_formats,
            barcode_formats=formats,
            quantity_type=self.settings.quantity_type,
            continue_mode_timeout=self.settings.continue_mode_timeout or None,
            device_name=self.settings.device_name,
            torch_on=self.settings.torch_on,
            continuous_mode_supported=self.settings.continuous_mode_supported,
        )

    async def get_output_profiles(self) -> List[OutputProfile]:
        """Return the stored output profiles, never empty."""
        return self.store.profiles

    def reload_profiles(self) -> None:
        """Re-read the profiles file."""
        self.store.reload()
        logger.info(f"🔄 Output profiles reloaded: {len(self.store.profiles)}")
