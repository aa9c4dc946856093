"""
==============================================================================
Scan Loop Orchestrator Module
==============================================================================

Drives repeated interpreter passes for one top-level scan invocation and
streams the resulting ScanModels to the caller.

Loop:
-----
1. Stop silently if a newer invocation took over (stale generation)
2. Ask the user to confirm when the same result keeps repeating
3. Run one interpreter pass on a fresh clone of the profile
4. Emit the result and decide whether to loop:
   - continue / manual: loop immediately
   - mixed_continue:    loop if the user wants to add more
   - single:            complete

Infinite Loop Detection:
-----------------------
A profile like [IF(false)] [BARCODE] [ENDIF] never suspends, so the loop
would spin forever. Identical consecutive display values increment a
counter that an idle timer resets; past the threshold the user decides
whether to go on.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional, Union

from scanflow.profiles import OutputProfile, ProfileStore
from scanflow.schemas.scan import ScanModel
from .acquisition import BarcodeAcquirer
from .cancellation import CancellationGeneration, GenerationToken
from .collaborators import ScanCollaborators, ScanPreferences, SettingsProvider
from .interpreter import BlockInterpreter, ScanVariables
from .modes import AcquisitionMode, ScanMode, select_acquisition_mode


# Module logger
logger = logging.getLogger(__name__)


DEFAULT_ACQUISITION_LABEL = "Place a barcode inside the scan area"


class ScanStream:
    """
    Lazy, cancellable sequence of ScanModels for one invocation.

    Iterate with ``async for``; iteration ends when the stream completes.
    A completed stream can't be restarted.
    """

    _DONE = object()

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._completed = False
        self._exhausted = False

    @property
    def is_completed(self) -> bool:
        return self._completed

    def emit(self, scan: ScanModel) -> bool:
        """Queue a result; ignored once the stream is completed."""
        if self._completed:
            return False
        self._queue.put_nowait(scan)
        return True

    def complete(self) -> None:
        if not self._completed:
            self._completed = True
            self._queue.put_nowait(self._DONE)

    def fail(self, error: BaseException) -> None:
        """Complete the stream by raising ``error`` to the consumer."""
        if not self._completed:
            self._completed = True
            self._queue.put_nowait(error)

    def __aiter__(self) -> "ScanStream":
        return self

    async def __anext__(self) -> ScanModel:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is self._DONE:
            self._exhausted = True
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            self._exhausted = True
            raise item
        return item


class RepeatGuard:
    """
    Counts consecutive passes with the same display value.

    Args:
        threshold: Counter value above which the guard trips
        reset_after: Idle seconds after which the counter drops to zero
    """

    def __init__(self, threshold: int = 30, reset_after: float = 0.5) -> None:
        self.threshold = threshold
        self.reset_after = reset_after
        self.count = 0
        self._previous: Optional[str] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def tripped(self) -> bool:
        return self.count > self.threshold

    def record(self, display_value: str) -> None:
        if display_value == self._previous:
            self.count += 1
        else:
            self.count = 0
        self._previous = display_value

        self.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.reset_after, self.reset)

    def reset(self) -> None:
        self.count = 0

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class ScanOrchestrator:
    """
    Runs output profiles against live input, one invocation at a time.

    At most one stream is active: starting a new invocation completes the
    previous stream and invalidates its generation, so a pass still waiting
    on a collaborator ends without a result once it resumes.

    Attributes:
        collaborators: Barcode source, prompts and alerts
        settings_provider: Preferences and profiles, read once per invocation

    Example:
        >>> orchestrator = ScanOrchestrator(collaborators, settings_provider)
        >>> async for scan in orchestrator.scan(ScanMode.CONTINUE, 0, "Inventory"):
        ...     print(scan.display_value)
    """

    def __init__(
        self,
        collaborators: ScanCollaborators,
        settings_provider: SettingsProvider,
        default_acquisition_label: str = DEFAULT_ACQUISITION_LABEL,
        infinite_loop_threshold: int = 30,
        repeat_reset_seconds: float = 0.5,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.collaborators = collaborators
        self.settings_provider = settings_provider
        self._default_label = default_acquisition_label
        self._loop_threshold = infinite_loop_threshold
        self._repeat_reset_seconds = repeat_reset_seconds
        self._clock = clock or (lambda: int(time.time() * 1000))

        self._generation = CancellationGeneration()
        self._stream: Optional[ScanStream] = None
        self._task: Optional[asyncio.Task] = None
        self._acquirer: Optional[BarcodeAcquirer] = None
        self._profile: Optional[OutputProfile] = None
        self._profile_index = 0
        self.acquisition_mode: Optional[AcquisitionMode] = None

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def awaiting_barcode(self) -> bool:
        """Check if the live invocation is waiting for a barcode."""
        return self._acquirer is not None and self._acquirer.awaiting_barcode

    @property
    def task(self) -> Optional[asyncio.Task]:
        """Driver task of the latest invocation."""
        return self._task

    # =========================================================================
    # INVOCATION
    # =========================================================================

    def scan(
        self,
        mode: Union[ScanMode, str],
        profile_index: int = 0,
        scan_session_name: str = "",
    ) -> ScanStream:
        """
        Start a top-level scan invocation.

        Must be called from a running event loop.

        Args:
            mode: Scan mode chosen by the user
            profile_index: Index of the output profile to run
            scan_session_name: Injected as the scan_session_name variable

        Returns:
            ScanStream yielding one ScanModel per completed pass
        """
        self._supersede()

        token = self._generation.mint()
        stream = ScanStream()
        self._stream = stream
        self._profile_index = profile_index
        self._task = asyncio.create_task(
            self._drive(stream, token, ScanMode(mode), scan_session_name)
        )
        return stream

    def stop(self) -> None:
        """Complete the active stream and invalidate its generation."""
        self._generation.invalidate()
        self._supersede()

    async def refresh_profile(self) -> None:
        """Reload the selected profile; later passes of the live invocation use it."""
        profiles = await self.settings_provider.get_output_profiles()
        self._profile = ProfileStore(profiles=profiles).get(self._profile_index)
        logger.debug(f"Output profile refreshed: {self._profile.name}")

    def _supersede(self) -> None:
        if self._stream is not None:
            self._stream.complete()
            self._stream = None
        if self._acquirer is not None:
            self._acquirer.interrupt()

    # =========================================================================
    # LOOP
    # =========================================================================

    async def _drive(
        self,
        stream: ScanStream,
        token: GenerationToken,
        mode: ScanMode,
        scan_session_name: str,
    ) -> None:
        acquirer: Optional[BarcodeAcquirer] = None
        guard = RepeatGuard(self._loop_threshold, self._repeat_reset_seconds)

        try:
            preferences = await self.settings_provider.get_preferences()
            profiles = await self.settings_provider.get_output_profiles()
            if not token.is_current:
                return

            self._profile = ProfileStore(profiles=profiles).get(self._profile_index)
            effective = select_acquisition_mode(
                mode,
                self._profile.has_blocking_component,
                preferences.continuous_mode_supported,
                preferences.continue_mode_timeout,
            )
            self.acquisition_mode = effective
            acquirer = BarcodeAcquirer(
                effective,
                self.collaborators.barcode_source,
                self.collaborators.manual_input,
                preferences,
                self._default_label,
            )
            self._acquirer = acquirer
            interpreter = BlockInterpreter(self.collaborators, preferences.quantity_type or "number")

            logger.info(
                f"▶️ Scan started: profile={self._profile.name!r}, "
                f"mode={mode.value}, acquisition={effective.value}"
            )

            while await self._again(stream, token, guard):
                date = self._clock()
                variables = ScanVariables.seed(date, preferences.device_name, scan_session_name)
                outcome = await interpreter.execute(
                    self._profile.clone_blocks(), variables, acquirer, token, date
                )

                if not outcome.completed:
                    logger.info(f"⏹️ Scan ended: {outcome.abort_reason.value}")
                    return

                guard.record(outcome.scan.display_value)
                stream.emit(outcome.scan)
                logger.debug(f"Scan emitted: {outcome.scan.display_value!r}")

                if not await self._should_repeat(effective, preferences, token):
                    return

        except Exception as e:
            logger.error(f"❌ Scan loop failed: {e}")
            stream.fail(e)
        finally:
            guard.cancel()
            if acquirer is not None:
                await acquirer.close()
                if self._acquirer is acquirer:
                    self._acquirer = None
            stream.complete()

    async def _again(self, stream: ScanStream, token: GenerationToken, guard: RepeatGuard) -> bool:
        """Check whether another pass may start."""
        if not token.is_current or stream.is_completed:
            logger.debug("Scan superseded by a newer invocation")
            return False

        if guard.tripped:
            logger.warning(f"⚠️ Possible infinite loop: {guard.count} identical scans")
            keep_going = await self.collaborators.infinite_loop_prompt.request()
            if not token.is_current or not keep_going:
                return False
            guard.reset()

        return True

    async def _should_repeat(
        self,
        mode: AcquisitionMode,
        preferences: ScanPreferences,
        token: GenerationToken,
    ) -> bool:
        if mode in (AcquisitionMode.CONTINUE, AcquisitionMode.MANUAL):
            return True

        if mode == AcquisitionMode.MIXED_CONTINUE:
            add_more = await self.collaborators.add_more_prompt.request(
                preferences.continue_mode_timeout
            )
            return token.is_current and add_more

        return False
