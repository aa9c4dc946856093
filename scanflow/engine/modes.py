"""
==============================================================================
Acquisition Mode Module
==============================================================================

Derives how barcodes are actually acquired from the scan mode the user
picked.

The requested mode is what the user can choose (manual, single, continue).
The acquisition mode adds ``mixed_continue``: continuous scanning where the
whole profile is re-run per barcode because a blocking prompt, a timeout
gate or a limited barcode source sits between acquisitions.

==============================================================================
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ScanMode(str, Enum):
    """Scan modes selectable by the user."""
    MANUAL = "manual"
    SINGLE = "single"
    CONTINUE = "continue"


class AcquisitionMode(str, Enum):
    """Effective barcode acquisition modes."""
    MANUAL = "manual"
    SINGLE = "single"
    CONTINUE = "continue"
    MIXED_CONTINUE = "mixed_continue"


def select_acquisition_mode(
    requested: ScanMode,
    has_blocking_component: bool,
    continuous_supported: bool,
    continue_mode_timeout: Optional[int] = None,
) -> AcquisitionMode:
    """
    Compute the effective acquisition mode.

    Args:
        requested: Mode chosen by the user
        has_blocking_component: Profile prompts the user during a scan
        continuous_supported: Barcode source can stream autonomously
        continue_mode_timeout: Add-more countdown in seconds (0/None = none)

    Returns:
        AcquisitionMode to use for the whole invocation
    """
    requested = ScanMode(requested)
    if requested == ScanMode.MANUAL:
        return AcquisitionMode.MANUAL
    if requested == ScanMode.SINGLE:
        return AcquisitionMode.SINGLE

    if has_blocking_component or not continuous_supported or continue_mode_timeout:
        return AcquisitionMode.MIXED_CONTINUE
    return AcquisitionMode.CONTINUE
