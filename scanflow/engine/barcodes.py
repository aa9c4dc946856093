"""
==============================================================================
Barcode Format Rules Module
==============================================================================

Barcode results, format settings and the text rewrites applied to every
acquired barcode.

Code 32 (Italian pharmacode) is printed as a Code 39 symbol carrying the
9-digit number in base 32. Decoders report it as CODE_39, so when the
user enabled CODE_32 the text is converted back to its "A" + 9 digits form.

==============================================================================
"""

from __future__ import annotations

from typing import Iterable, Optional

from pydantic import BaseModel, Field


CODE_32_ALPHABET = "0123456789BCDFGHJKLMNPQRSTUVWXYZ"


class BarcodeScanResult(BaseModel):
    """
    Outcome of one barcode acquisition.

    Attributes:
        text: Decoded text
        format: Symbology name (e.g. "EAN_13", "CODE_39")
        cancelled: True when the user dismissed the scanner
    """

    text: str = Field(default="")
    format: Optional[str] = Field(default=None)
    cancelled: bool = Field(default=False)

    @classmethod
    def cancellation(cls) -> "BarcodeScanResult":
        return cls(cancelled=True)


class BarcodeFormatSetting(BaseModel):
    """Barcode format with its user-selected enabled flag."""

    name: str
    enabled: bool = True


def convert_code39_to_code32(text: str) -> str:
    """
    Convert a Code 39 encoded pharmacode to its Code 32 text.

    Args:
        text: Six base-32 characters as read from the Code 39 symbol

    Returns:
        "A" followed by nine digits, or ``text`` unchanged when it isn't
        a valid base-32 pharmacode
    """
    if len(text) != 6 or any(c not in CODE_32_ALPHABET for c in text):
        return text

    value = 0
    for char in text:
        value = value * 32 + CODE_32_ALPHABET.index(char)

    digits = str(value)
    if len(digits) > 9:
        return text
    return "A" + digits.zfill(9)


def is_format_enabled(formats: Iterable[BarcodeFormatSetting], name: str) -> bool:
    return any(f.enabled and f.name == name for f in formats)


def apply_format_fixes(
    result: BarcodeScanResult,
    formats: Iterable[BarcodeFormatSetting]
) -> BarcodeScanResult:
    """
    Apply symbology-specific text rewrites to an acquired barcode.

    Every acquisition path (one-shot, continuous stream, frame decoding)
    goes through this function so the rewrite is identical everywhere.

    Args:
        result: Raw acquisition result
        formats: Format settings from the user preferences

    Returns:
        Result with rewritten text, or ``result`` itself when no rule applies
    """
    if result.cancelled or not result.text:
        return result

    if result.format == "CODE_39" and is_format_enabled(formats, "CODE_32"):
        converted = convert_code39_to_code32(result.text)
        if converted != result.text:
            return result.model_copy(update={"text": converted})

    return result
