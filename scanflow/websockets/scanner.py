"""
==============================================================================
Scan WebSocket Module
==============================================================================

Runs the scan engine for a remote client over a WebSocket connection.
The client plays every collaborator: it shows the barcode scanner and the
dialogs, and answers the prompts the engine sends.

Protocol:
---------
1. Client sends start with mode, profile index and scan session name
2. Server sends prompts (barcode, quantity, select_option, add_more, ...)
   and the client answers with barcode / frame / cancel / reply
3. Server sends every completed scan, then complete
4. Client sends stop (or disconnects) to end the session

In continue mode the server sends subscribe once; the client then pushes
barcodes (or frames) freely until it sends cancel.

See ``scanflow.schemas.session`` for the message shapes.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from scanflow.config import EnvSettingsProvider, Settings
from scanflow.core import ScanEngineException, exceptions
from scanflow.core.dependencies import get_settings_provider
from scanflow.engine import (
    BarcodeScanOptions,
    BarcodeScanResult,
    ScanCollaborators,
    ScanMode,
    ScanOrchestrator,
    ScanStream,
)
from scanflow.scanner import FrameDecoder
from scanflow.schemas.session import (
    ClientMessage,
    ClientMessageType,
    PromptKind,
    ServerMessageType,
)


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter()


class ScanSessionBridge:
    """
    Request/response plumbing between the engine and one client.

    Prompts are tracked by request id; barcodes pushed by the client go to
    the outstanding one-shot request, or to the continuous stream when the
    client is subscribed.
    """

    def __init__(self, websocket: WebSocket):
        self._websocket = websocket
        self._send_lock = asyncio.Lock()
        self._pending: Dict[int, asyncio.Future] = {}
        self._next_id = 0
        self._barcode_waiter: Optional[asyncio.Future] = None
        self._stream_queue: Optional[asyncio.Queue] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, message_type: ServerMessageType, **payload: Any) -> None:
        """Send a message to the client; dropped once the session is closed."""
        if self._closed:
            logger.debug(f"Session closed, dropping {message_type.value} message")
            return
        async with self._send_lock:
            await self._websocket.send_json({"type": message_type.value, **payload})

    async def send_error(self, error: ScanEngineException) -> None:
        """Send error message to client."""
        await self.send(
            ServerMessageType.ERROR,
            code=error.code,
            message=error.message,
            details=error.details,
        )

    # =========================================================================
    # PROMPTS
    # =========================================================================

    def _mint_request(self) -> int:
        self._next_id += 1
        return self._next_id

    async def ask(self, kind: PromptKind, timeout: Optional[float] = None, **payload: Any) -> Any:
        """
        Send a prompt and wait for the client's reply.

        Args:
            kind: Dialog to show
            timeout: Seconds before the prompt is dismissed
            **payload: Prompt fields

        Returns:
            Reply value (None when the session closes first)

        Raises:
            asyncio.TimeoutError: If the timeout expires first
        """
        if self._closed:
            return None

        request_id = self._mint_request()
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        try:
            await self.send(
                ServerMessageType.PROMPT, request_id=request_id, kind=kind.value, **payload
            )
            if timeout is None:
                return await future
            try:
                return await asyncio.wait_for(future, timeout)
            except asyncio.TimeoutError:
                await self.send(ServerMessageType.DISMISS, request_id=request_id)
                raise
        finally:
            self._pending.pop(request_id, None)

    def resolve(self, request_id: Optional[int], value: Any) -> bool:
        """Resolve a pending prompt with the client's reply."""
        future = self._pending.get(request_id)
        if future is None or future.done():
            logger.debug(f"Reply for unknown request {request_id}")
            return False
        future.set_result(value)
        return True

    # =========================================================================
    # BARCODES
    # =========================================================================

    async def request_barcode(self, options: BarcodeScanOptions) -> BarcodeScanResult:
        """Ask the client to open the scanner for one barcode."""
        if self._closed:
            return BarcodeScanResult.cancellation()

        # a superseded request still waiting here gives up
        if self._barcode_waiter is not None and not self._barcode_waiter.done():
            self._barcode_waiter.set_result(BarcodeScanResult.cancellation())

        waiter = asyncio.get_running_loop().create_future()
        self._barcode_waiter = waiter
        try:
            await self.send(
                ServerMessageType.PROMPT,
                request_id=self._mint_request(),
                kind=PromptKind.BARCODE.value,
                options=options.model_dump(),
            )
            return await waiter
        finally:
            if self._barcode_waiter is waiter:
                self._barcode_waiter = None

    async def stream_barcodes(self, options: BarcodeScanOptions) -> AsyncIterator[BarcodeScanResult]:
        """Yield barcodes pushed by the client until it cancels."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._stream_queue = queue
        try:
            await self.send(ServerMessageType.SUBSCRIBE, options=options.model_dump())
            while True:
                result = await queue.get()
                yield result
                if result.cancelled:
                    return
        finally:
            if self._stream_queue is queue:
                self._stream_queue = None
            await self.send(ServerMessageType.UNSUBSCRIBE)

    def push_barcode(self, result: BarcodeScanResult) -> bool:
        """Route a barcode (or a cancellation) from the client."""
        if self._barcode_waiter is not None and not self._barcode_waiter.done():
            self._barcode_waiter.set_result(result)
            return True
        if self._stream_queue is not None:
            return self._park(self._stream_queue, result)
        logger.debug("Barcode received while no acquisition is pending")
        return False

    @staticmethod
    def _park(queue: asyncio.Queue, result: BarcodeScanResult) -> bool:
        """
        Hold one streamed barcode until the engine asks for it.

        While the slot is taken further barcodes are dropped; a cancellation
        replaces a parked barcode so it always gets through.
        """
        if queue.full():
            parked = queue.get_nowait()
            if parked.cancelled or not result.cancelled:
                queue.put_nowait(parked)
                logger.debug("Barcode dropped, previous one not consumed yet")
                return False
        queue.put_nowait(result)
        return True

    def close(self) -> None:
        """Release everything waiting on the client."""
        if self._closed:
            return
        self._closed = True
        for future in self._pending.values():
            if not future.done():
                future.set_result(None)
        self.push_barcode(BarcodeScanResult.cancellation())


# =============================================================================
# COLLABORATORS
# =============================================================================

class RemoteBarcodeSource:
    """Barcode source backed by the client's scanner."""

    def __init__(self, bridge: ScanSessionBridge):
        self._bridge = bridge

    async def request_single(self, options: BarcodeScanOptions) -> BarcodeScanResult:
        return await self._bridge.request_barcode(options)

    def subscribe(self, options: BarcodeScanOptions) -> AsyncIterator[BarcodeScanResult]:
        return self._bridge.stream_barcodes(options)


class RemoteManualInput:
    def __init__(self, bridge: ScanSessionBridge):
        self._bridge = bridge

    async def request(self, placeholder: Optional[str]) -> str:
        value = await self._bridge.ask(PromptKind.MANUAL, placeholder=placeholder)
        return "" if value is None else str(value)


class RemoteQuantityPrompt:
    def __init__(self, bridge: ScanSessionBridge):
        self._bridge = bridge

    async def request(self, label: Optional[str], expected_type: str) -> Optional[str]:
        value = await self._bridge.ask(
            PromptKind.QUANTITY, label=label, expected_type=expected_type
        )
        return None if value is None else str(value)


class RemoteSelectOptionPrompt:
    def __init__(self, bridge: ScanSessionBridge):
        self._bridge = bridge

    async def request(self, options: List[str]) -> str:
        value = await self._bridge.ask(
            PromptKind.SELECT_OPTION, options=options, selected=options[0]
        )
        # the first option is pre-selected
        return options[0] if value is None else str(value)


class RemoteAddMorePrompt:
    """
    "Continue scanning?" dialog.

    The client shows a countdown ticking once per second; when it passes
    zero the dialog is dismissed and scanning goes on.
    """

    def __init__(self, bridge: ScanSessionBridge):
        self._bridge = bridge

    async def request(self, countdown_seconds: Optional[int]) -> bool:
        countdown = countdown_seconds or 0
        try:
            value = await self._bridge.ask(
                PromptKind.ADD_MORE, timeout=countdown + 1, countdown=countdown
            )
        except asyncio.TimeoutError:
            logger.debug("Add more countdown expired, continuing")
            return True
        return bool(value)


class RemoteInfiniteLoopPrompt:
    def __init__(self, bridge: ScanSessionBridge):
        self._bridge = bridge

    async def request(self) -> bool:
        return bool(await self._bridge.ask(PromptKind.INFINITE_LOOP))


class RemoteAlertPresenter:
    def __init__(self, bridge: ScanSessionBridge):
        self._bridge = bridge

    async def show_error(self, message: str) -> None:
        await self._bridge.send(ServerMessageType.ALERT, message=message)


def remote_collaborators(bridge: ScanSessionBridge) -> ScanCollaborators:
    """Collaborators played by the client on the other end of ``bridge``."""
    return ScanCollaborators(
        barcode_source=RemoteBarcodeSource(bridge),
        manual_input=RemoteManualInput(bridge),
        quantity_prompt=RemoteQuantityPrompt(bridge),
        select_prompt=RemoteSelectOptionPrompt(bridge),
        add_more_prompt=RemoteAddMorePrompt(bridge),
        infinite_loop_prompt=RemoteInfiniteLoopPrompt(bridge),
        alerts=RemoteAlertPresenter(bridge),
    )


# =============================================================================
# HANDLER
# =============================================================================

class ScanWebSocketHandler:
    """
    Handler for scan engine WebSocket connections.

    Manages the lifecycle of a scan session including:
    - Engine invocations (start / stop / refresh)
    - Routing client barcodes, frames and replies
    - Forwarding scan results
    """

    def __init__(
        self,
        websocket: WebSocket,
        provider: EnvSettingsProvider,
        settings: Optional[Settings] = None
    ):
        self._websocket = websocket
        self._settings = settings or provider.settings
        self._bridge = ScanSessionBridge(websocket)
        self._decoder = FrameDecoder()
        if self._settings.enable_limit_barcode_formats:
            self._decoder.set_formats(",".join(
                f["name"] for f in self._settings.barcode_formats_list if f.get("enabled", True)
            ))

        self._orchestrator = ScanOrchestrator(
            remote_collaborators(self._bridge),
            provider,
            default_acquisition_label=self._settings.default_acquisition_label,
            infinite_loop_threshold=self._settings.infinite_loop_threshold,
            repeat_reset_seconds=self._settings.repeat_reset_seconds,
        )
        self._forwarder: Optional[asyncio.Task] = None

    @property
    def orchestrator(self) -> ScanOrchestrator:
        return self._orchestrator

    async def handle_start(self, message: ClientMessage) -> None:
        """Start a new invocation, superseding the previous one."""
        try:
            mode = ScanMode(message.mode)
        except ValueError:
            await self._bridge.send_error(exceptions.invalid_message(f"unknown scan mode {message.mode!r}"))
            return

        logger.info(f"Start: mode={mode.value}, profile={message.profile_index}")
        stream = self._orchestrator.scan(mode, message.profile_index, message.scan_session_name)
        self._forwarder = asyncio.create_task(self._forward(stream))

    async def _forward(self, stream: ScanStream) -> None:
        try:
            async for scan in stream:
                await self._bridge.send(ServerMessageType.SCAN, scan=scan.model_dump(mode="json"))
            await self._bridge.send(ServerMessageType.COMPLETE)
        except ScanEngineException as e:
            await self._bridge.send_error(e)
        except WebSocketDisconnect:
            logger.debug("Client gone while forwarding scans")
        except Exception as e:
            logger.error(f"Scan stream error: {e}")
            await self._bridge.send_error(exceptions.internal_error(str(e)))

    def handle_frame(self, message: ClientMessage) -> None:
        """Decode a camera frame and route its barcode, if any."""
        if not message.frame:
            return
        result = self._decoder.decode_base64(message.frame)
        if result is not None:
            self._bridge.push_barcode(result)

    async def dispatch(self, message: ClientMessage) -> bool:
        """
        Handle one client message.

        Returns:
            False when the session should end
        """
        kind = message.type

        if kind == ClientMessageType.START:
            await self.handle_start(message)
        elif kind == ClientMessageType.BARCODE:
            self._bridge.push_barcode(
                BarcodeScanResult(text=message.text or "", format=message.format)
            )
        elif kind == ClientMessageType.FRAME:
            self.handle_frame(message)
        elif kind == ClientMessageType.CANCEL:
            self._bridge.push_barcode(BarcodeScanResult.cancellation())
        elif kind == ClientMessageType.REPLY:
            self._bridge.resolve(message.request_id, message.value)
        elif kind == ClientMessageType.REFRESH:
            await self._orchestrator.refresh_profile()
        elif kind == ClientMessageType.STOP:
            logger.info("🛑 Client requested stop")
            self._orchestrator.stop()
            return False

        return True

    @staticmethod
    async def _wait_for(task: Optional[asyncio.Task], timeout: float = 1.0) -> None:
        if task is not None and not task.done():
            await asyncio.wait({task}, timeout=timeout)

    async def run(self) -> None:
        """Main handler loop."""
        await self._websocket.accept()
        logger.info("📱 Scan WebSocket connected")
        disconnected = False

        try:
            while True:
                try:
                    data = await self._websocket.receive_json()
                except ValueError:
                    await self._bridge.send_error(exceptions.invalid_message("not JSON"))
                    continue

                try:
                    message = ClientMessage.model_validate(data)
                except ValidationError as e:
                    await self._bridge.send_error(exceptions.invalid_message(e.errors()[0]["msg"]))
                    continue

                if not await self.dispatch(message):
                    break

        except WebSocketDisconnect:
            logger.info("📱 Client disconnected")
            disconnected = True
        finally:
            self._orchestrator.stop()
            if disconnected:
                self._bridge.close()
            # complete reaches the client before the socket closes
            await self._wait_for(self._forwarder)
            self._bridge.close()
            await self._wait_for(self._orchestrator.task)
            if self._forwarder is not None and not self._forwarder.done():
                self._forwarder.cancel()
            logger.info("✅ Scan WebSocket closed")

        if not disconnected:
            await self._websocket.close()


@router.websocket("/ws/scan")
async def websocket_scan(
    websocket: WebSocket,
    provider: EnvSettingsProvider = Depends(get_settings_provider)
):
    """Run the scan engine for a remote client."""
    handler = ScanWebSocketHandler(websocket, provider)
    await handler.run()
