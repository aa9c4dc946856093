"""
==============================================================================
Output Profile Store Module
==============================================================================

Read-only store of output profiles loaded from a JSON file.

JSON Structure:
--------------
[
  {
    "name": "Output template 1",
    "outputBlocks": [
      {"type": "barcode", "value": "BARCODE"},
      {"type": "key", "value": "enter"}
    ]
  },
  ...
]

Missing or empty files fall back to the default profile (BARCODE, ENTER).

==============================================================================
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from scanflow.core import ScanEngineException
from .models import OutputProfile, default_profile


# Module logger
logger = logging.getLogger(__name__)


class ProfileStore:
    """
    Output profile store with index lookup.

    Attributes:
        profiles: All loaded profiles, never empty

    Example:
        >>> store = ProfileStore(Path("data/output_profiles.json"))
        >>> profile = store.get(0)
    """

    def __init__(
        self,
        profiles_file: Optional[Path] = None,
        profiles: Optional[List[OutputProfile]] = None
    ) -> None:
        """
        Initialize store from a JSON file or an explicit profile list.

        Args:
            profiles_file: Path to the profiles JSON file
            profiles: Profiles to use instead of reading a file
        """
        self._profiles_file = profiles_file
        self._profiles: List[OutputProfile] = list(profiles or [])

        if profiles is None and profiles_file is not None:
            self._load()

        if not self._profiles:
            self._profiles = [default_profile()]

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def profiles(self) -> List[OutputProfile]:
        """Get all profiles."""
        return self._profiles.copy()

    # =========================================================================
    # LOADING
    # =========================================================================

    def _load(self) -> None:
        """Load profiles from the JSON file."""
        if not self._profiles_file.exists():
            logger.warning(f"Profiles file not found: {self._profiles_file}")
            return

        try:
            with self._profiles_file.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid profiles JSON: {e}")
            return

        if not isinstance(data, list):
            logger.warning("Profiles file must contain a JSON array")
            return

        for position, item in enumerate(data):
            try:
                self._profiles.append(OutputProfile.model_validate(item))
            except (ValidationError, ScanEngineException) as e:
                logger.warning(f"Skipping invalid profile #{position}: {e}")

        logger.info(f"📦 Loaded {len(self._profiles)} output profiles")

    def reload(self) -> None:
        """Re-read the profiles file."""
        if self._profiles_file is None:
            return
        self._profiles = []
        self._load()
        if not self._profiles:
            self._profiles = [default_profile()]

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def get(self, index: int) -> OutputProfile:
        """
        Get a profile by index.

        Out-of-range indexes select the last profile, negative ones the first.

        Args:
            index: Profile position

        Returns:
            Selected OutputProfile
        """
        if index >= len(self._profiles):
            index = len(self._profiles) - 1
        if index < 0:
            index = 0
        return self._profiles[index]
