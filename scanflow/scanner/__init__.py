"""
==============================================================================
Scanner Package - Barcode Detection
==============================================================================

Barcode decoding of client camera frames with OpenCV and pyzbar.

Classes:
--------
- FrameDecoder: Base64 frame to BarcodeScanResult decoder

==============================================================================
"""

from .core import FrameDecoder, format_name

__all__ = ["FrameDecoder", "format_name"]
