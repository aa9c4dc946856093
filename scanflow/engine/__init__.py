"""
==============================================================================
Engine Package - Output Profile Execution
==============================================================================

Executes output profiles against live input and streams scan results.

Modules:
--------
- expressions: Sandboxed expression evaluator and template interpolation
- barcodes: Barcode results and format fixes (Code 39 to Code 32)
- modes: Scan mode to acquisition mode derivation
- acquisition: Barcode acquisition for each mode
- interpreter: Single pass over an output profile
- orchestrator: Repeated passes, infinite loop guard, cancellation

Usage:
------
    from scanflow.engine import ScanOrchestrator, ScanMode

    orchestrator = ScanOrchestrator(collaborators, settings_provider)
    async for scan in orchestrator.scan(ScanMode.SINGLE, profile_index=0):
        print(scan.display_value)

==============================================================================
"""

from .acquisition import BarcodeAcquirer
from .barcodes import (
    BarcodeFormatSetting,
    BarcodeScanResult,
    apply_format_fixes,
    convert_code39_to_code32,
)
from .cancellation import CancellationGeneration, GenerationToken
from .collaborators import (
    AddMorePrompt,
    AlertPresenter,
    BarcodeScanOptions,
    BarcodeSource,
    InfiniteLoopPrompt,
    ManualInput,
    QuantityPrompt,
    ScanCollaborators,
    ScanPreferences,
    SelectOptionPrompt,
    SettingsProvider,
)
from .expressions import evaluate, interpolate
from .interpreter import AbortReason, BlockInterpreter, PassOutcome, ScanVariables
from .modes import AcquisitionMode, ScanMode, select_acquisition_mode
from .orchestrator import RepeatGuard, ScanOrchestrator, ScanStream

__all__ = [
    # Barcodes
    "BarcodeAcquirer",
    "BarcodeFormatSetting",
    "BarcodeScanResult",
    "apply_format_fixes",
    "convert_code39_to_code32",
    # Cancellation
    "CancellationGeneration",
    "GenerationToken",
    # Collaborators
    "AddMorePrompt",
    "AlertPresenter",
    "BarcodeScanOptions",
    "BarcodeSource",
    "InfiniteLoopPrompt",
    "ManualInput",
    "QuantityPrompt",
    "ScanCollaborators",
    "ScanPreferences",
    "SelectOptionPrompt",
    "SettingsProvider",
    # Execution
    "evaluate",
    "interpolate",
    "AbortReason",
    "BlockInterpreter",
    "PassOutcome",
    "ScanVariables",
    "AcquisitionMode",
    "ScanMode",
    "select_acquisition_mode",
    "RepeatGuard",
    "ScanOrchestrator",
    "ScanStream",
]
