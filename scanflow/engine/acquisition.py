"""
==============================================================================
Barcode Acquisition Module
==============================================================================

Dispatches barcode requests to the right collaborator for the effective
acquisition mode.

Modes:
------
- single / mixed_continue: one-shot request to the barcode source
- continue: the source streams barcodes on its own; a pump task moves
  them into a one-slot queue consumed by the running pass
- manual: text typed by the user

Every result goes through ``apply_format_fixes`` before reaching the
interpreter, whatever path produced it.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, List, Optional, Union

from .barcodes import BarcodeFormatSetting, BarcodeScanResult, apply_format_fixes
from .collaborators import BarcodeScanOptions, BarcodeSource, ManualInput, ScanPreferences
from .modes import AcquisitionMode


# Module logger
logger = logging.getLogger(__name__)


def build_scan_options(
    preferences: ScanPreferences,
    mode: AcquisitionMode,
    default_label: str
) -> BarcodeScanOptions:
    """
    Build the barcode source options for an invocation.

    Args:
        preferences: User preferences
        mode: Effective acquisition mode
        default_label: Prompt shown when a block has no label

    Returns:
        BarcodeScanOptions shared by every acquisition of the invocation
    """
    options = BarcodeScanOptions(
        prompt=default_label,
        prefer_front_camera=preferences.prefer_front_camera,
        torch_on=preferences.torch_on,
        continuous_mode=mode == AcquisitionMode.CONTINUE,
    )
    if preferences.enable_limit_barcode_formats:
        options.formats = ",".join(
            f.name for f in preferences.barcode_formats if f.enabled
        )
    return options


class ContinuousBarcodeFeed:
    """
    Bridge between an autonomous barcode stream and sequential requests.

    The pump task reads the source's stream and parks at most one barcode
    in the queue; it waits while the slot is taken, so the pass that asks
    next gets exactly the next barcode.
    """

    def __init__(
        self,
        source: BarcodeSource,
        options: BarcodeScanOptions,
        formats: List[BarcodeFormatSetting]
    ) -> None:
        self._source = source
        self._options = options
        self._formats = formats
        self._queue: "asyncio.Queue[Union[BarcodeScanResult, BaseException]]" = asyncio.Queue(maxsize=1)
        self._pump: Optional[asyncio.Task] = None

    @property
    def is_subscribed(self) -> bool:
        return self._pump is not None and not self._pump.done()

    async def next(self) -> BarcodeScanResult:
        """Wait for the next streamed barcode."""
        if self._pump is None or self._pump.done():
            self._pump = asyncio.create_task(self._run())
            logger.debug("Continuous barcode stream subscribed")

        item = await self._queue.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def _run(self) -> None:
        stream = self._source.subscribe(self._options)
        try:
            async for result in stream:
                if result is None or result.cancelled:
                    await self._queue.put(BarcodeScanResult.cancellation())
                    return
                await self._queue.put(apply_format_fixes(result, self._formats))
            # a stream that ends on its own counts as the user leaving the scanner
            await self._queue.put(BarcodeScanResult.cancellation())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Continuous barcode stream failed: {e}")
            await self._queue.put(e)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
            logger.debug("Continuous barcode stream unsubscribed")

    def interrupt(self) -> None:
        """Unsubscribe and wake a pass waiting on the feed with a cancellation."""
        if self._pump is not None and not self._pump.done():
            self._pump.cancel()
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(BarcodeScanResult.cancellation())

    async def close(self) -> None:
        """Unsubscribe from the source and drop any parked barcode."""
        if self._pump is not None and not self._pump.done():
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
        self._pump = None
        while not self._queue.empty():
            self._queue.get_nowait()


class BarcodeAcquirer:
    """
    Per-invocation barcode acquisition front end.

    Attributes:
        mode: Effective acquisition mode
        options: Options passed to the barcode source
        awaiting_barcode: True while a request is outstanding
    """

    def __init__(
        self,
        mode: AcquisitionMode,
        source: BarcodeSource,
        manual_input: ManualInput,
        preferences: ScanPreferences,
        default_label: str,
    ) -> None:
        self.mode = mode
        self._source = source
        self._manual_input = manual_input
        self._formats = list(preferences.barcode_formats)
        self._default_label = default_label
        self.options = build_scan_options(preferences, mode, default_label)
        self.awaiting_barcode = False
        self._feed: Optional[ContinuousBarcodeFeed] = None
        self._request: Optional[asyncio.Future] = None
        self._interrupted = False

    async def acquire(self, label: Optional[str] = None) -> BarcodeScanResult:
        """
        Acquire one barcode.

        Args:
            label: Prompt for this acquisition (block label)

        Returns:
            Format-fixed result; ``cancelled`` is set when the user gave up
        """
        self.awaiting_barcode = True
        try:
            if self.mode == AcquisitionMode.MANUAL:
                text = await self._interruptible(self._manual_input.request(label))
                if self._interrupted:
                    return BarcodeScanResult.cancellation()
                return BarcodeScanResult(text=text or "")

            if self.mode == AcquisitionMode.CONTINUE:
                if self._feed is None:
                    self._feed = ContinuousBarcodeFeed(self._source, self.options, self._formats)
                return await self._feed.next()

            options = self.options.model_copy(update={"prompt": label or self._default_label})
            result = await self._interruptible(self._source.request_single(options))
            if result is None or result.cancelled:
                return BarcodeScanResult.cancellation()
            return apply_format_fixes(result, self._formats)
        finally:
            self.awaiting_barcode = False

    async def _interruptible(self, request: Awaitable[Any]) -> Any:
        """Await a collaborator request; resolves to None once interrupted."""
        self._interrupted = False
        self._request = asyncio.ensure_future(request)
        try:
            return await self._request
        except asyncio.CancelledError:
            if self._interrupted and self._request.cancelled():
                return None
            raise
        finally:
            self._request = None

    def interrupt(self) -> None:
        """Wake a pass waiting on a barcode so it can notice it was superseded."""
        if self._request is not None and not self._request.done():
            self._interrupted = True
            self._request.cancel()
        if self._feed is not None:
            self._feed.interrupt()

    async def close(self) -> None:
        """Release the continuous subscription, if any."""
        if self._feed is not None:
            await self._feed.close()
            self._feed = None
