"""
==============================================================================
Collaborator Contracts Module
==============================================================================

Interfaces the engine consumes from the surrounding application: barcode
source, user prompts, alerts and settings. The engine only depends on
these protocols; the WebSocket bridge and the tests provide implementations.

==============================================================================
"""

from __future__ import annotations

from typing import AsyncIterator, List, Optional, Protocol

from pydantic import BaseModel, Field

from scanflow.profiles import OutputProfile
from .barcodes import BarcodeFormatSetting, BarcodeScanResult


# =============================================================================
# DATA EXCHANGED WITH COLLABORATORS
# =============================================================================

class ScanPreferences(BaseModel):
    """User preferences read once per top-level scan invocation."""

    prefer_front_camera: bool = False
    enable_limit_barcode_formats: bool = False
    barcode_formats: List[BarcodeFormatSetting] = Field(default_factory=list)
    quantity_type: str = "number"
    continue_mode_timeout: Optional[int] = None
    device_name: str = ""
    torch_on: bool = False
    continuous_mode_supported: bool = True


class BarcodeScanOptions(BaseModel):
    """Options handed to the barcode source for an acquisition."""

    prompt: str = ""
    prefer_front_camera: bool = False
    torch_on: bool = False
    continuous_mode: bool = False
    show_flip_camera_button: bool = True
    show_torch_button: bool = True
    formats: Optional[str] = None


# =============================================================================
# PROTOCOLS
# =============================================================================

class BarcodeSource(Protocol):
    async def request_single(self, options: BarcodeScanOptions) -> BarcodeScanResult:
        """Acquire one barcode; a cancelled result means the user gave up."""
        ...

    def subscribe(self, options: BarcodeScanOptions) -> AsyncIterator[BarcodeScanResult]:
        """Stream barcodes until a cancelled result; closing unsubscribes."""
        ...


class ManualInput(Protocol):
    async def request(self, placeholder: Optional[str]) -> str:
        ...


class QuantityPrompt(Protocol):
    async def request(self, label: Optional[str], expected_type: str) -> Optional[str]:
        """Return the typed quantity, or None when cancelled."""
        ...


class SelectOptionPrompt(Protocol):
    async def request(self, options: List[str]) -> str:
        ...


class AddMorePrompt(Protocol):
    async def request(self, countdown_seconds: Optional[int]) -> bool:
        """True to keep scanning; resolves True when the countdown expires."""
        ...


class InfiniteLoopPrompt(Protocol):
    async def request(self) -> bool:
        """True to keep scanning, False to stop."""
        ...


class AlertPresenter(Protocol):
    async def show_error(self, message: str) -> None:
        ...


class SettingsProvider(Protocol):
    async def get_preferences(self) -> ScanPreferences:
        ...

    async def get_output_profiles(self) -> List[OutputProfile]:
        ...


class ScanCollaborators:
    """
    Bundle of the collaborators used by one orchestrator.

    Attributes:
        barcode_source: Camera/decoder adapter
        manual_input: Keyboard entry used in manual mode
        quantity_prompt: Quantity dialog
        select_prompt: Single-choice dialog
        add_more_prompt: "Continue scanning?" dialog
        infinite_loop_prompt: Infinite loop confirmation dialog
        alerts: Error alert presenter
    """

    def __init__(
        self,
        barcode_source: BarcodeSource,
        manual_input: ManualInput,
        quantity_prompt: QuantityPrompt,
        select_prompt: SelectOptionPrompt,
        add_more_prompt: AddMorePrompt,
        infinite_loop_prompt: InfiniteLoopPrompt,
        alerts: AlertPresenter,
    ) -> None:
        self.barcode_source = barcode_source
        self.manual_input = manual_input
        self.quantity_prompt = quantity_prompt
        self.select_prompt = select_prompt
        self.add_more_prompt = add_more_prompt
        self.infinite_loop_prompt = infinite_loop_prompt
        self.alerts = alerts
