"""
==============================================================================
Frame Decoder Module
==============================================================================

Decodes barcodes from camera frames sent by the client.

Features:
---------
- Base64 JPEG/PNG frame decoding with OpenCV
- Barcode detection with pyzbar
- pyzbar symbology names mapped to the scanner format names
  (CODE39 -> CODE_39, EAN13 -> EAN_13, ...)
- Optional restriction to the enabled formats

==============================================================================
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Dict, List, Optional, Set

import cv2
import numpy as np

from scanflow.engine.barcodes import BarcodeScanResult


# Module logger
logger = logging.getLogger(__name__)


# =============================================================================
# SYMBOLOGY NAMES
# =============================================================================

PYZBAR_FORMATS: Dict[str, str] = {
    "QRCODE": "QR_CODE",
    "EAN13": "EAN_13",
    "EAN8": "EAN_8",
    "UPCA": "UPC_A",
    "UPCE": "UPC_E",
    "CODE39": "CODE_39",
    "CODE93": "CODE_93",
    "CODE128": "CODE_128",
    "CODABAR": "CODABAR",
    "I25": "ITF",
    "DATABAR": "RSS14",
    "DATABAR_EXP": "RSS_EXPANDED",
    "PDF417": "PDF_417",
}


def format_name(symbology: str) -> str:
    """Map a pyzbar symbology name to the scanner format name."""
    return PYZBAR_FORMATS.get(symbology, symbology)


class FrameDecoder:
    """
    Barcode decoder for client camera frames.

    Attributes:
        formats: Format names to accept (None = all)

    Example:
        >>> decoder = FrameDecoder(formats="EAN_13,CODE_39")
        >>> result = decoder.decode_base64(data["frame"])
        >>> if result:
        ...     print(result.text, result.format)
    """

    def __init__(self, formats: Optional[str] = None) -> None:
        """
        Initialize decoder.

        Args:
            formats: Comma-joined format names to accept
        """
        self._formats: Optional[Set[str]] = None
        self.set_formats(formats)
        self._frames = 0

        logger.debug("Frame decoder created")

    def set_formats(self, formats: Optional[str]) -> None:
        """Restrict decoding to the comma-joined format names."""
        if formats:
            self._formats = {f.strip() for f in formats.split(",") if f.strip()}
        else:
            self._formats = None

    @property
    def frames_decoded(self) -> int:
        return self._frames

    # =========================================================================
    # FRAME PROCESSING METHODS
    # =========================================================================

    @staticmethod
    def load_frame(data: str) -> Optional[np.ndarray]:
        """
        Decode a base64 image into an OpenCV frame.

        Args:
            data: Base64 image, optionally with a data URL prefix

        Returns:
            BGR image, or None if the data isn't a readable image
        """
        if "," in data and data.startswith("data:"):
            data = data.split(",", 1)[1]

        try:
            img_data = base64.b64decode(data)
        except (binascii.Error, ValueError) as e:
            logger.warning(f"Invalid base64 frame: {e}")
            return None

        nparr = np.frombuffer(img_data, np.uint8)
        if nparr.size == 0:
            return None
        return cv2.imdecode(nparr, cv2.IMREAD_COLOR)

    def process_frame(self, frame: np.ndarray) -> List[BarcodeScanResult]:
        """
        Detect every accepted barcode in a frame.

        Args:
            frame: OpenCV image (numpy array)

        Returns:
            Decoded barcodes, in detection order
        """
        if frame is None or frame.size == 0:
            return []

        # needs the zbar shared library, only loaded once frames arrive
        from pyzbar.pyzbar import decode

        self._frames += 1
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if frame.ndim == 3 else frame
        results = []

        for barcode in decode(gray):
            try:
                text = barcode.data.decode("utf-8")
            except UnicodeDecodeError:
                logger.warning(f"Skipping non UTF-8 {barcode.type} barcode")
                continue

            name = format_name(barcode.type)
            if not self.accepts(name):
                continue
            results.append(BarcodeScanResult(text=text, format=name))

        return results

    def decode_base64(self, data: str) -> Optional[BarcodeScanResult]:
        """Decode the first accepted barcode of a base64 frame."""
        frame = self.load_frame(data)
        if frame is None:
            return None

        results = self.process_frame(frame)
        if results:
            logger.debug(f"Frame decoded: {results[0].format} {results[0].text!r}")
            return results[0]
        return None

    def accepts(self, name: str) -> bool:
        if self._formats is None:
            return True
        # CODE_32 barcodes are read as CODE_39 and rewritten later
        return name in self._formats or (name == "CODE_39" and "CODE_32" in self._formats)

